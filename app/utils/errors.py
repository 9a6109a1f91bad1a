"""Domain errors for MediCourier"""


class MediCourierError(Exception):
    status_code = 400

    def __init__(self, message, entity_type=None, entity_id=None, errors=None):
        super().__init__(message)
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.errors = errors or {}

    def to_dict(self):
        data = {'error': self.message}
        if self.entity_type:
            data['entity_type'] = self.entity_type
        if self.entity_id is not None:
            data['entity_id'] = self.entity_id
        if self.errors:
            data['errors'] = self.errors
        return data


class ValidationError(MediCourierError):
    """Missing or invalid input. Carries per-field messages in ``errors``."""
    status_code = 400


class NotFoundError(MediCourierError):
    status_code = 404


class ConflictError(MediCourierError):
    """Duplicate conversion or duplicate shipment."""
    status_code = 409


class InvalidTransitionError(ConflictError):
    pass


class StorageCapacityError(MediCourierError):
    """An attachment exceeds what the store accepts."""
    status_code = 413

    def __init__(self, message, size=None, limit=None, **kwargs):
        super().__init__(message, **kwargs)
        self.size = size
        self.limit = limit


class AdvisoryServiceError(MediCourierError):
    """The payment proof analysis service failed or is not configured."""
    status_code = 503
