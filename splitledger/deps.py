from typing import TypeVar

from fastapi import HTTPException, Request, status

from .database import Store
from .results import ErrorKind, Failure, Result

T = TypeVar("T")

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_store(request: Request) -> Store:
    return request.app.state.store


def unwrap(result: Result[T]) -> T:
    """Return the success value or raise the HTTP error matching the failure kind."""
    if isinstance(result, Failure):
        raise HTTPException(status_code=STATUS_BY_KIND[result.kind], detail=result.message)
    return result.value
