from signup_api.core.error_codes import ErrorCode


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = str(code)
        self.message = message
        super().__init__(message)


class AuthorizationError(ApiError):
    """Neither an allowed browser origin nor a valid webhook token."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(status_code=403, code=ErrorCode.FORBIDDEN, message=message)


class MethodError(ApiError):
    def __init__(self, message: str = "Method not allowed"):
        super().__init__(status_code=405, code=ErrorCode.METHOD_NOT_ALLOWED, message=message)


class ContentTypeError(ApiError):
    def __init__(self, message: str = "Unsupported content type"):
        super().__init__(status_code=415, code=ErrorCode.UNSUPPORTED_CONTENT_TYPE, message=message)


class ValidationError(ApiError):
    def __init__(self, message: str = "Invalid email"):
        super().__init__(status_code=400, code=ErrorCode.INVALID_EMAIL, message=message)


class StorageUnavailable(ApiError):
    """No write path is configured."""

    def __init__(self, message: str = "Server misconfigured"):
        super().__init__(status_code=500, code=ErrorCode.SERVER_MISCONFIGURED, message=message)


class StorageFailure(ApiError):
    """A write was attempted and rejected. `detail` stays server-side."""

    def __init__(self, detail: str = "", message: str = "Database write failed", status_code: int = 502):
        super().__init__(status_code=status_code, code=ErrorCode.STORAGE_WRITE_FAILED, message=message)
        self.detail = detail


class StorageTimeout(StorageFailure):
    def __init__(self, detail: str = ""):
        super().__init__(detail=detail, message="Database timeout", status_code=504)
        self.code = ErrorCode.STORAGE_TIMEOUT
