from __future__ import annotations

from fastapi import HTTPException
from starlette.status import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT

from iam_core.services.errors import Conflict, NotFound


def service_http_error(err: Exception) -> HTTPException:
    if isinstance(err, NotFound):
        return HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(err))
    if isinstance(err, Conflict):
        return HTTPException(status_code=HTTP_409_CONFLICT, detail=str(err))
    return HTTPException(status_code=422, detail=str(err))
