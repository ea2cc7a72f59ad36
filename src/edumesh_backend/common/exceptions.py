"""
Application-specific exceptions.

Both are HTTPException subclasses so FastAPI's handlers (and the envelope
handler in main.py) turn them into responses without extra wiring.
"""
from fastapi import HTTPException, status


class UnauthenticatedError(HTTPException):
    """Raised when a request carries no usable bearer credential."""
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class UnauthorizedError(HTTPException):
    """Raised when the credential is valid but the subject may not proceed."""
    def __init__(self, detail: str = "You do not have permission to perform this action."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
