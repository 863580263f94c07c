"""
Exception hierarchy for the courier desk service.

CourierDeskError
├── ValidationError      rejected before any write
├── NotFoundError
├── PermissionDeniedError  order not editable by this courier
├── RecordStoreError     Supabase query / network failure
└── UploadError          image CDN failure
"""


class CourierDeskError(Exception):
    """Base exception for all courier desk errors."""

    status_code = 500

    def __init__(self, message: str = "", *, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} | {self.detail}"
        return self.message


class ValidationError(CourierDeskError):
    status_code = 400


class NotFoundError(CourierDeskError):
    status_code = 404

    def __init__(self, entity: str = "", id_value=None, **kwargs):
        if entity and id_value is not None:
            message = f"{entity} {id_value} not found"
        elif entity:
            message = f"{entity} not found"
        else:
            message = "Record not found"
        super().__init__(message, **kwargs)
        self.entity = entity
        self.id_value = id_value


class RecordStoreError(CourierDeskError):
    status_code = 502


class UploadError(CourierDeskError):
    status_code = 502


class PermissionDeniedError(CourierDeskError):
    status_code = 403
