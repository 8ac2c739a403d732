class ErrorCode:
    FORBIDDEN = "FORBIDDEN"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    INVALID_EMAIL = "INVALID_EMAIL"
    SERVER_MISCONFIGURED = "SERVER_MISCONFIGURED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    STORAGE_TIMEOUT = "STORAGE_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
