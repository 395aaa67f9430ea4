"""Typed failures of the dashboard pipeline and their HTTP mapping."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DashboardError(Exception):
    status_code = 500
    code = "dashboard_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DataUnavailable(DashboardError):
    """The metric store could not be reached or did not answer in time."""

    status_code = 503
    code = "data_unavailable"


class InvalidRange(DashboardError):
    """Start month after end month, or a window wider than the configured maximum."""

    status_code = 422
    code = "invalid_range"


class InvalidTransition(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move instance from {current} to {target}")
        self.current = current
        self.target = target


async def dashboard_error_handler(request: Request, exc: DashboardError):
    logger.warning("%s on %s: %s", exc.code, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc), "code": "invalid_transition"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DashboardError, dashboard_error_handler)
    app.add_exception_handler(InvalidTransition, invalid_transition_handler)
