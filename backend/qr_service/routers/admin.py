"""Admin router for site-wide statistics."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qr_service.database import get_db
from qr_service.dependencies.admin import get_admin_user
from qr_service.models import User
from qr_service.schemas.admin import SiteStats
from qr_service.services.repositories import QrCodeRepository, UserRepository

router = APIRouter(prefix="/api/admin", tags=["admin"])


def site_stats(db: Session) -> SiteStats:
    total_codes, total_scans = QrCodeRepository(db).totals()
    return SiteStats(
        total_users=UserRepository(db).count(),
        total_codes=total_codes,
        total_scans=total_scans,
    )


@router.get("/stats", response_model=SiteStats)
def get_stats(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
) -> SiteStats:
    """Totals across all accounts."""
    return site_stats(db)
