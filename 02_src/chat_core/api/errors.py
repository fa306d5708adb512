"""Mapping of core errors to HTTP errors."""

from fastapi import HTTPException

from ..errors import NotFound, PermissionDenied, ValidationError


def to_http_exception(error: Exception) -> HTTPException:
    """Translate a core error into the matching HTTPException."""
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, PermissionDenied):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
