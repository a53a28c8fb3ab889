"""Scan-time redirect endpoint. Unauthenticated; the scanning device has no session."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from qr_service.database import get_db
from qr_service.services.redirect_resolver import RedirectResolver
from qr_service.services.scan_context import ScanContext

router = APIRouter(prefix="/qr", tags=["resolve"])


@router.get("/resolve", response_class=RedirectResponse, status_code=302)
def resolve(
    request: Request,
    short_id: str = Query("", alias="shortId"),
    target_url: str | None = Query(None, alias="targetUrl"),
    db: Session = Depends(get_db),
):
    """Redirect to the saved target, or to ``targetUrl`` for unsaved previews."""
    url = RedirectResolver(db).resolve(short_id, target_url, ScanContext.from_request(request))
    return RedirectResponse(url, status_code=302)
