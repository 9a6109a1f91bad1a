"""Attachment references (payment proofs, shipment documents).

Attachments are opaque strings, usually base64 data URLs. The service only
counts and size-checks them before they are stored on a record.
"""
import base64
import binascii
import logging
import re

from flask import current_app

from app.utils.errors import StorageCapacityError, ValidationError

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[a-zA-Z0-9]+/[a-zA-Z0-9.+-]+);base64,(?P<data>.+)$', re.DOTALL)


def parse_data_url(reference):
    """Return (mime_type, base64_payload) or None when not a data URL"""
    if not isinstance(reference, str):
        return None
    match = DATA_URL_PATTERN.match(reference.strip())
    if not match:
        return None
    return match.group('mime'), match.group('data')


def attachment_size(reference):
    """Size in bytes of the stored content"""
    parsed = parse_data_url(reference)
    if parsed is None:
        return len(str(reference).encode('utf-8'))
    try:
        return len(base64.b64decode(parsed[1], validate=False))
    except (binascii.Error, ValueError):
        return len(parsed[1])


def check_attachment(reference, max_bytes=None):
    if max_bytes is None:
        max_bytes = current_app.config['MAX_ATTACHMENT_BYTES']
    size = attachment_size(reference)
    if size > max_bytes:
        raise StorageCapacityError(
            f'Attachment of {size} bytes exceeds the {max_bytes} byte limit',
            size=size,
            limit=max_bytes
        )
    return size


def accept_attachments(references, max_bytes=None, field='attachments'):
    """Split references into the ones that fit and warnings for the rest.

    An oversized attachment never fails the surrounding save; the record is
    stored without it and the warning is returned to the caller. References
    must arrive as a list, a bare string is rejected rather than split into
    characters.
    """
    if references is None:
        references = []
    if not isinstance(references, (list, tuple)):
        raise ValidationError('Invalid attachments', errors={field: 'Must be a list of attachments'})
    kept = []
    warnings = []
    for index, reference in enumerate(references):
        if not reference:
            continue
        try:
            check_attachment(reference, max_bytes)
        except StorageCapacityError as e:
            logger.warning("Dropped attachment %d: %s", index + 1, e.message)
            warnings.append(f'Attachment {index + 1} was not saved: {e.message}')
            continue
        kept.append(reference)
    return kept, warnings
