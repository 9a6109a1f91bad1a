"""Advisory payment proof analysis using the Claude API.

The result only suggests an amount; it is never trusted without going through
the payment ledger, and a failure never blocks manual entry.
"""
import json
import logging
from dataclasses import dataclass

from flask import current_app

from app.services.attachments import parse_data_url
from app.services.tax_calculator import round_money, to_decimal
from app.utils.errors import AdvisoryServiceError

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp')

PROOF_ANALYSIS_PROMPT = """\
Analyze the attached payment proof image(s).
The expected invoice total is {expected_total}.

1. Identify the total amount paid shown in the screenshot(s).
2. Calculate the difference: expected invoice total minus amount paid.
   - A positive difference means money is still owed.
   - Zero means fully paid.
   - A negative difference means the customer overpaid.
3. Write a brief note on what you found (e.g. "Found payment of 5000 via UPI transaction 12345").

Return a JSON object with exactly this structure:
{{"paidAmount": <number>, "difference": <number>, "notes": "<short explanation>"}}

Return ONLY valid JSON, no markdown formatting.
"""


@dataclass(frozen=True)
class ProofAnalysis:
    paid_amount: object
    difference: object
    notes: str

    def to_dict(self):
        return {
            'paid_amount': float(self.paid_amount),
            'difference': float(self.difference),
            'notes': self.notes,
        }


def build_image_blocks(images):
    """Claude image content blocks for the data-URL images, others skipped"""
    blocks = []
    for image in images or []:
        parsed = parse_data_url(image)
        if parsed is None:
            continue
        media_type, data = parsed
        if media_type not in SUPPORTED_IMAGE_TYPES:
            continue
        blocks.append({
            'type': 'image',
            'source': {
                'type': 'base64',
                'media_type': media_type,
                'data': data,
            },
        })
    return blocks


def parse_analysis(response_text, expected_total):
    # Strip markdown code fences if present
    text = response_text.strip()
    if text.startswith('```'):
        lines = text.split('\n')
        text = '\n'.join(lines[1:-1])
    data = json.loads(text)

    paid = round_money(data['paidAmount'])
    difference = data.get('difference')
    if difference is None:
        difference = to_decimal(expected_total) - paid
    return ProofAnalysis(
        paid_amount=paid,
        difference=round_money(difference),
        notes=str(data.get('notes') or ''),
    )


def analyze_proof(expected_total, images):
    """Send payment proof images to Claude and return the detected payment.

    Raises:
        AdvisoryServiceError: not configured, no usable image, or the call failed
    """
    import anthropic

    config = current_app.config
    if not config.get('ANTHROPIC_API_KEY'):
        raise AdvisoryServiceError('Payment proof analysis is not configured (missing API key)')

    image_blocks = build_image_blocks(images)
    if not image_blocks:
        raise AdvisoryServiceError('No analysable payment proof image was provided')

    client = anthropic.Anthropic(
        api_key=config['ANTHROPIC_API_KEY'],
        timeout=config.get('PROOF_ANALYSIS_TIMEOUT', 30.0),
        max_retries=1,
    )
    try:
        message = client.messages.create(
            model=config.get('PROOF_ANALYSIS_MODEL', 'claude-sonnet-4-20250514'),
            max_tokens=1024,
            messages=[
                {
                    'role': 'user',
                    'content': image_blocks + [
                        {
                            'type': 'text',
                            'text': PROOF_ANALYSIS_PROMPT.format(expected_total=expected_total),
                        },
                    ],
                }
            ],
        )
    except anthropic.APIError as e:
        logger.error("Claude API error during proof analysis: %s", e)
        raise AdvisoryServiceError(f'Claude API error: {e}')

    try:
        return parse_analysis(message.content[0].text, expected_total)
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, ArithmeticError, ValueError) as e:
        logger.error("Failed to parse proof analysis result: %s", e)
        raise AdvisoryServiceError(f'Failed to parse analysis result: {e}')


def try_analyze_proof(expected_total, images):
    """analyze_proof, returning None when the advisory service is unavailable"""
    try:
        return analyze_proof(expected_total, images)
    except AdvisoryServiceError as e:
        logger.warning("Payment proof analysis unavailable: %s", e.message)
        return None
