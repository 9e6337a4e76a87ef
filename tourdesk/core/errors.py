"""Domain exceptions and FastAPI exception handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("tourdesk.errors")


class TourDeskError(Exception):
    """Base class for errors raised by the catalog workflow."""


class FetchError(TourDeskError):
    """Network, HTTP or parse failure while talking to the upstream catalog."""

    def __init__(
        self,
        message: str,
        *,
        category: str | None = None,
        page: int | None = None,
        content_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.page = page
        self.content_id = content_id

    def context(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        if self.category is not None:
            payload["category"] = self.category
        if self.page is not None:
            payload["page"] = self.page
        if self.content_id is not None:
            payload["content_id"] = self.content_id
        return payload


class SyncError(FetchError):
    """A category sync stopped on a failing page.

    Rows accumulated before the failing page have already been written, so
    ``created_count`` and ``updated_count`` describe committed work.
    """

    def __init__(
        self,
        message: str,
        *,
        category: str,
        page: int,
        created_count: int = 0,
        updated_count: int = 0,
    ) -> None:
        super().__init__(message, category=category, page=page)
        self.created_count = created_count
        self.updated_count = updated_count

    def context(self) -> dict[str, Any]:
        return super().context() | {
            "created_count": self.created_count,
            "updated_count": self.updated_count,
        }


class EnrichmentError(TourDeskError):
    """A single record could not be enriched; the pass moves on."""


class MatchNotFound(EnrichmentError):
    """No English catalog candidate matched a local record."""


async def fetch_error_handler(request: Request, exc: FetchError) -> JSONResponse:
    """Surface upstream failures with enough context to retry by hand."""

    logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc.context())
    return JSONResponse(
        status_code=502,
        content={
            "error": "sync_failed" if isinstance(exc, SyncError) else "upstream_error",
            **exc.context(),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    """Return a generic JSON error response while logging the exception."""

    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "Something unexpected happened. Please try again later.",
        },
    )
