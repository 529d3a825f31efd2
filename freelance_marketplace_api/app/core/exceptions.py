"""
Domain exceptions raised by the service layer.

Services signal rule violations and missing records with ``ValueError``
subclasses so that business logic stays independent of FastAPI.  Routers
translate them with :func:`to_http_exception`:

* ``ValidationError`` (and plain ``ValueError``) -> 400
* ``NotFoundError`` -> 404
* ``StorageError`` -> 500
"""

from fastapi import HTTPException, status


class ValidationError(ValueError):
    """Input violates a business rule."""


class NotFoundError(ValueError):
    """Requested entity does not exist."""


class StorageError(RuntimeError):
    """File storage backend failed."""


def to_http_exception(exc: Exception) -> HTTPException:
    """Map a service exception onto the matching ``HTTPException``."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
