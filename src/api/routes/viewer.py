"""Viewer slot endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from api.schemas import AttachRequest, ErrorMessage, LinePage, ViewerStatusResponse
from errors import NotFoundError
from services import ViewerService


def get_router(service: ViewerService) -> APIRouter:
    """Create a router bound to the provided viewer service."""

    router = APIRouter(prefix="/viewer", tags=["viewer"])

    @router.get("", response_model=ViewerStatusResponse)
    def get_status() -> ViewerStatusResponse:
        return ViewerStatusResponse(**service.to_status_payload(service.status()))

    @router.put(
        "",
        response_model=ViewerStatusResponse,
        responses={status.HTTP_404_NOT_FOUND: {"model": ErrorMessage}},
    )
    def attach(payload: AttachRequest) -> ViewerStatusResponse:
        try:
            current = service.attach(payload.path)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return ViewerStatusResponse(**service.to_status_payload(current))

    @router.delete("", status_code=status.HTTP_204_NO_CONTENT)
    def detach() -> Response:
        service.detach()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/lines", response_model=LinePage)
    def get_lines(
        offset: int = Query(default=0, ge=0),
        limit: Optional[int] = Query(default=None, ge=1, le=10000),
    ) -> LinePage:
        lines = service.lines(offset, limit)
        return LinePage(offset=offset, total=service.sink.line_count(), lines=lines)

    return router
