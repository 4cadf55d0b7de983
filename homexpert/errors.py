class AppError(Exception):
    """Base application error rendered as ``{"success": false, "error": ...}``."""

    status_code = 400

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        return {"success": False, "error": self.message, **self.payload}


class ValidationError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class PermissionDeniedError(AppError):
    status_code = 403

    def __init__(self, message="Permission denied", permission=None, payload=None):
        super().__init__(message, payload=payload)
        self.permission = permission


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409
