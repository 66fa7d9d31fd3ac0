# ================================
# CUSTOM EXCEPTIONS (core/exceptions.py)
# ================================

class AppException(Exception):
    """Base exception for application errors"""

    def __init__(self, detail: str, status_code: int = 400, error_code: str = None):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(detail)

class AuthenticationError(AppException):
    """Missing, invalid or expired credentials"""

    def __init__(self, detail: str = "Authentication failed", error_code: str = "AUTH_FAILED"):
        super().__init__(detail, 401, error_code)

class AuthorizationError(AppException):
    """Authenticated but not allowed"""

    def __init__(self, detail: str = "Access denied", error_code: str = "ACCESS_DENIED"):
        super().__init__(detail, 403, error_code)

class NotFoundError(AppException):
    """Requested resource does not exist"""

    def __init__(self, detail: str = "Resource not found", error_code: str = "NOT_FOUND"):
        super().__init__(detail, 404, error_code)

class ValidationError(AppException):
    """Business rule violation on otherwise well-formed input"""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(detail, 400, error_code)

class ExternalServiceError(AppException):
    """Failure of an external dependency (Gemini, email, pg_dump)"""

    def __init__(self, detail: str, error_code: str = "EXTERNAL_SERVICE_ERROR", status_code: int = 502):
        super().__init__(detail, status_code, error_code)
