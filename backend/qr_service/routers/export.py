"""Export API router."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from qr_service.database import get_db
from qr_service.dependencies.auth import get_session_claims
from qr_service.schemas.auth import SessionClaims
from qr_service.services.export_service import ExportFormat, ExportService

router = APIRouter(tags=["export"])


@router.get("/export")
def export_data(
    format: str = Query("pdf", description="pdf or excel"),
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    """
    Download the caller's QR codes and scans.

    The owner always comes from the session; there is no way to name another user.
    """
    document = ExportService(db).export(claims.id, ExportFormat.parse(format))
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )
