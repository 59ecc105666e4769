"""
Paste routes.
Handles create, peek (API), consume (API), and view (HTML) operations.
"""
import html
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from pastebin.config import Settings
from pastebin.errors import NotFound, StoreUnavailable
from pastebin.models import ErrorResponse, PasteCreate, PasteResponse, PasteView
from pastebin.routes.dependencies import get_service, get_settings, simulated_now_ms
from pastebin.service import PasteService

router = APIRouter()

_NOT_FOUND = {404: {"model": ErrorResponse}}


def _share_url(request: Request, settings: Settings, paste_id: str) -> str:
    base_url = settings.APP_DOMAIN or str(request.base_url)
    return f"{base_url.rstrip('/')}/p/{paste_id}"


@router.post(
    "/api/pastes",
    response_model=PasteResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
def create_paste(
    paste: PasteCreate,
    request: Request,
    service: PasteService = Depends(get_service),
    settings: Settings = Depends(get_settings),
    now_ms: Optional[int] = Depends(simulated_now_ms),
) -> PasteResponse:
    """
    Create a new paste.

    Args:
        paste: Paste data (content, optional ttl_seconds, optional max_views)
        request: HTTP request context

    Returns:
        Paste ID and shareable URL
    """
    record = service.create(
        paste.content,
        ttl_seconds=paste.ttl_seconds,
        max_views=paste.max_views,
        now_ms=now_ms,
    )
    return PasteResponse(id=record.id, url=_share_url(request, settings, record.id))


@router.get("/api/pastes/{paste_id}", response_model=PasteView, responses=_NOT_FOUND)
def fetch_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
    now_ms: Optional[int] = Depends(simulated_now_ms),
) -> PasteView:
    """
    Fetch a paste without consuming a view.
    Expired or exhausted pastes are deleted and reported as 404.
    """
    return service.peek(paste_id, now_ms=now_ms)


@router.post("/api/pastes/{paste_id}/consume", response_model=PasteView, responses=_NOT_FOUND)
def consume_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
    now_ms: Optional[int] = Depends(simulated_now_ms),
) -> PasteView:
    """Fetch a paste and consume one view."""
    return service.consume(paste_id, now_ms=now_ms)


@router.get("/p/{paste_id}", response_class=HTMLResponse)
def view_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
    now_ms: Optional[int] = Depends(simulated_now_ms),
) -> HTMLResponse:
    """
    View a paste as HTML.
    Each view consumes one view from the paste's budget.
    """
    try:
        view = service.consume(paste_id, now_ms=now_ms)
    except NotFound:
        return HTMLResponse(_render_page("Paste not found"), status_code=404)
    except StoreUnavailable:
        body = "<p>Pastes are temporarily unavailable. Please try again shortly.</p>"
        return HTMLResponse(_render_page("Service unavailable", body), status_code=503)

    body = f'<pre class="content">{html.escape(view.content)}</pre>'
    return HTMLResponse(_render_page("Paste", body))


def _render_page(title: str, body: Optional[str] = None) -> str:
    if body is None:
        body = (
            "<p>This paste was not found, has expired, "
            "or its view limit has been exceeded.</p>"
        )
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
</head>
<body>
    {body}
</body>
</html>"""
