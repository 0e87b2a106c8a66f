import logging

from fastapi import HTTPException

from cinetrack_core.errors import DomainError

log = logging.getLogger(__name__)


def to_http(e: DomainError) -> HTTPException:
    if e.status >= 500:
        log.warning("request failed: %s (%s)", e, e.code)
    return HTTPException(status_code=e.status, detail=e.code)
