class BefriendException(Exception):
    """Base exception for the application"""
    pass


class ValidationError(BefriendException):
    """Validation related errors"""
    pass


class NotFoundError(BefriendException):
    """Resource not found errors"""
    pass


class StoreError(BefriendException):
    """Relationship store failures (connectivity, unexpected database errors)"""
    pass


class ConflictError(StoreError):
    """Resource conflict errors, raised on uniqueness violations"""
    pass
