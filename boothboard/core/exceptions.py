"""
Exception taxonomy for the booth board
Every failure surfaced to a caller derives from BoothBoardError
"""
from typing import Optional

# PostgreSQL error codes surfaced by the store
# Reference: https://www.postgresql.org/docs/current/errcodes-appendix.html
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class BoothBoardError(Exception):
    """
    Base exception for the booth board
    """
    def __init__(self, message: str = "Booth board error"):
        self.message = message
        super().__init__(self.message)


class ConfigError(BoothBoardError):
    """
    Raised when required configuration is missing or invalid
    Fatal: startup must not continue
    """
    def __init__(self, message: str = "Missing store configuration"):
        super().__init__(message)


class AuthError(BoothBoardError):
    """
    Raised when sign-in, sign-up or sign-out fails
    """
    def __init__(self, message: str = "Authentication failed", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StoreError(BoothBoardError):
    """
    Raised when a query or mutation against the entity store fails

    Attributes:
        code: Store error code when one is known (e.g. "23505")
    """
    def __init__(self, message: str = "Store request failed", code: Optional[str] = None):
        self.code = code
        super().__init__(message)

    @property
    def is_duplicate(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class NotFoundError(StoreError):
    """
    Raised when a lookup returns no row where one was expected
    """
    def __init__(self, table: str, key: str):
        self.table = table
        self.key = key
        super().__init__(f"No row in {table} for {key}")


class InvalidOrderTransition(BoothBoardError):
    """
    Raised when an order status change would leave a terminal state
    """
    def __init__(self, order_id: str, current: str, requested: str):
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_id} cannot move from {current} to {requested}"
        )
