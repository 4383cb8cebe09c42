class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class InsufficientStockError(AppError):
    def __init__(self, message: str, article_id: int | None = None, requested: int = 0, available: int = 0):
        super().__init__(message)
        self.article_id = article_id
        self.requested = requested
        self.available = available


class InvalidTransitionError(AppError):
    def __init__(self, message: str, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class DuplicateKeyError(AppError):
    def __init__(self, message: str, key: object = None):
        super().__init__(message)
        self.key = key


class StorageUnavailableError(AppError):
    pass
