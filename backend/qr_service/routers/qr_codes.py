"""QR codes API router."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.database import get_db
from qr_service.dependencies.auth import get_current_user, get_session_claims
from qr_service.models import QrCode, User
from qr_service.schemas.auth import SessionClaims
from qr_service.schemas.qr_code import DashboardSummary, QrCodeCreate
from qr_service.schemas.qr_code import QrCode as QrCodeSchema
from qr_service.schemas.qr_code import ScanEvent as ScanEventSchema
from qr_service.services.export_service import summarize
from qr_service.services.redirect_resolver import scan_url
from qr_service.services.repositories import QrCodeRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/qr", tags=["qr-codes"])


def to_schema(qr_code: QrCode) -> QrCodeSchema:
    """Response model for a record, including the URL to encode in the printed code."""
    return QrCodeSchema(
        short_id=qr_code.short_id,
        target_url=qr_code.target_url,
        title=qr_code.title,
        text_content=qr_code.text_content,
        show_title=qr_code.show_title,
        show_text=qr_code.show_text,
        qr_options=qr_code.qr_options or {},
        scan_count=qr_code.scan_count,
        created_at=qr_code.created_at,
        last_scanned=qr_code.last_scanned,
        scan_url=scan_url(settings.public_base_url, qr_code.short_id, qr_code.target_url),
    )



@router.post("", response_model=QrCodeSchema, status_code=status.HTTP_201_CREATED)
def create_qr_code(
    data: QrCodeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Save the QR code currently shown in the editor."""
    qr_code = QrCodeRepository(db).create(
        owner_id=current_user.id,
        target_url=str(data.target_url),
        title=data.title,
        text_content=data.text_content,
        show_title=data.show_title,
        show_text=data.show_text,
        qr_options=data.qr_options,
    )
    db.commit()
    db.refresh(qr_code)

    logger.info(f"QR code {qr_code.short_id} created by user {current_user.id}")
    return to_schema(qr_code)


@router.get("", response_model=list[QrCodeSchema])
def list_qr_codes(
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    """The caller's QR codes, newest first."""
    return [to_schema(code) for code in QrCodeRepository(db).find_by_owner(claims.id)]


@router.get("/summary", response_model=DashboardSummary)
def get_summary(
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    """Totals across the caller's QR codes."""
    return summarize(QrCodeRepository(db).find_by_owner(claims.id))


@router.get("/{short_id}", response_model=QrCodeSchema)
def get_qr_code(
    short_id: str,
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    return to_schema(QrCodeRepository(db).get_owned(short_id, claims.id))


@router.get("/{short_id}/scans", response_model=list[ScanEventSchema])
def list_scans(
    short_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    """Scan history for one of the caller's codes, newest first."""
    codes = QrCodeRepository(db)
    qr_code = codes.get_owned(short_id, claims.id)
    return codes.recent_scans(qr_code.id, limit)


@router.delete("/{short_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_qr_code(
    short_id: str,
    db: Session = Depends(get_db),
    claims: SessionClaims = Depends(get_session_claims),
):
    """Delete one of the caller's codes. Another owner's code is reported as missing."""
    QrCodeRepository(db).delete_owned(short_id, claims.id)
    db.commit()
    logger.info(f"QR code {short_id} deleted by user {claims.id}")
