"""Owner-scoped export of QR codes and their scans as PDF or Excel."""

import base64
import io
import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import qrcode
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from qr_service.config import settings
from qr_service.errors import DocumentGenerationError, NotFoundError, ValidationError
from qr_service.schemas.qr_code import DashboardSummary
from qr_service.services.redirect_resolver import scan_url
from qr_service.services.repositories import QrCodeRepository, UserRepository
from qr_service.templating import render_template

logger = logging.getLogger(__name__)

RECENT_SCANS_PER_CODE = 5

PDF_FILENAME = "QRData.pdf"
EXCEL_FILENAME = "qr-codes-export.xlsx"
PDF_MEDIA_TYPE = "application/pdf"
EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Rendering runs off the request thread so it can be abandoned on timeout. A
# running render cannot be cancelled and keeps its worker until it returns, so
# each render holds a slot and new exports fail fast once every slot is taken.
_executor = ThreadPoolExecutor(max_workers=settings.export_workers, thread_name_prefix="export")
_render_slots = threading.BoundedSemaphore(settings.export_workers)


class ExportFormat(str, Enum):
    PDF = "pdf"
    EXCEL = "excel"

    @classmethod
    def parse(cls, value: str | None) -> "ExportFormat":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValidationError(
                "Invalid format. Use 'pdf' or 'excel'", code="invalid_format"
            ) from None


@dataclass(frozen=True)
class ExportDocument:
    """A rendered export ready to be sent as an attachment."""

    content: bytes
    media_type: str
    filename: str


@dataclass
class ScanRow:
    scanned_at: datetime
    device: str | None
    browser: str | None
    os: str | None
    location: str | None


@dataclass
class CodeRow:
    """Detached snapshot of one QR code, safe to use from the render thread."""

    short_id: str
    title: str
    target_url: str
    text_content: str
    scan_count: int
    created_at: datetime | None
    last_scanned: datetime | None
    scan_url: str
    scans: list[ScanRow] = field(default_factory=list)


def _format_datetime(value: datetime | None, empty: str = "Never") -> str:
    if value is None:
        return empty
    return value.strftime("%Y-%m-%d %H:%M")


def summarize(rows: Sequence) -> DashboardSummary:
    """Totals across QR codes (records or rows); average is rounded to a whole scan."""
    total_scans = sum(row.scan_count for row in rows)
    most_scanned = max(rows, key=lambda row: row.scan_count, default=None)
    return DashboardSummary(
        total_codes=len(rows),
        total_scans=total_scans,
        average_scans=round(total_scans / len(rows)) if rows else 0,
        most_scanned=(most_scanned.title or most_scanned.short_id) if most_scanned else None,
    )


def qr_png_data_uri(data: str) -> str:
    """Render a QR code as a PNG data URI."""
    img = qrcode.make(data)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


def _render_in_slot(slots: threading.BoundedSemaphore, render, *args) -> bytes:
    try:
        return render(*args)
    finally:
        slots.release()


def _html_to_pdf(html_content: str) -> bytes:
    """Convert HTML to PDF bytes with WeasyPrint."""
    try:
        from weasyprint import HTML
    except (ImportError, OSError) as e:
        raise DocumentGenerationError(f"PDF rendering is unavailable: {e}") from e
    return HTML(string=html_content).write_pdf()


def _code_context(row: CodeRow) -> dict:
    return {
        "row": row,
        "qr_image": qr_png_data_uri(row.scan_url),
        "created_at": _format_datetime(row.created_at, ""),
        "last_scanned": _format_datetime(row.last_scanned),
        "scans": [
            {
                "scanned_at": _format_datetime(scan.scanned_at),
                "device": scan.device or "Unknown",
                "browser": scan.browser or "Unknown",
                "os": scan.os or "Unknown",
                "location": scan.location or "Unknown",
            }
            for scan in row.scans[:RECENT_SCANS_PER_CODE]
        ],
    }


def render_pdf(owner_name: str, owner_email: str, rows: list[CodeRow]) -> bytes:
    """Cover page, summary, then one detail block per code with its latest scans."""
    html_content = render_template(
        "export_report.html",
        {
            "owner_name": owner_name,
            "owner_email": owner_email,
            "generated_at": _format_datetime(datetime.now(UTC)),
            "summary": summarize(rows),
            "codes": [_code_context(row) for row in rows],
        },
    )
    return _html_to_pdf(html_content)


def _write_sheet(ws, headers: list[str], rows: list[list]) -> None:
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row_idx, values in enumerate(rows, start=2):
        for col_idx, value in enumerate(values, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    # Auto-size columns based on content length (with caps)
    for col_idx, header in enumerate(headers, start=1):
        max_len = len(header)
        for values in rows:
            value = values[col_idx - 1]
            max_len = max(max_len, len(str(value)) if value is not None else 0)
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max(12, max_len + 2), 60)


def render_workbook(rows: list[CodeRow]) -> bytes:
    """Workbook with a "QR Codes" sheet and a "Scans" sheet."""
    wb = Workbook()
    ws = wb.active
    ws.title = "QR Codes"
    _write_sheet(
        ws,
        ["QR Code ID", "Title", "Created Date", "Content", "Scan URL", "Scan Count", "Last Scanned"],
        [
            [
                row.short_id,
                row.title,
                _format_datetime(row.created_at, ""),
                row.target_url,
                row.scan_url,
                row.scan_count,
                _format_datetime(row.last_scanned),
            ]
            for row in rows
        ],
    )

    _write_sheet(
        wb.create_sheet("Scans"),
        ["QR Code ID", "Scanned At", "Device", "Browser", "OS", "Location"],
        [
            [
                row.short_id,
                _format_datetime(scan.scanned_at),
                scan.device or "",
                scan.browser or "",
                scan.os or "",
                scan.location or "",
            ]
            for row in rows
            for scan in row.scans
        ],
    )

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class ExportService:
    """Builds export documents for a single owner's records."""

    def __init__(self, db: Session) -> None:
        self._db = db
        self._users = UserRepository(db)
        self._codes = QrCodeRepository(db)

    def collect(self, owner_id: str, scans_per_code: int | None = None) -> list[CodeRow]:
        """Snapshot the owner's codes and scans. Only the owner's rows are read."""
        rows = []
        for qr_code in self._codes.find_by_owner(owner_id):
            rows.append(
                CodeRow(
                    short_id=qr_code.short_id,
                    title=qr_code.title,
                    target_url=qr_code.target_url,
                    text_content=qr_code.text_content,
                    scan_count=qr_code.scan_count,
                    created_at=qr_code.created_at,
                    last_scanned=qr_code.last_scanned,
                    scan_url=scan_url(
                        settings.public_base_url, qr_code.short_id, qr_code.target_url
                    ),
                    scans=[
                        ScanRow(
                            scanned_at=scan.scanned_at,
                            device=scan.device,
                            browser=scan.browser,
                            os=scan.os,
                            location=scan.location,
                        )
                        for scan in self._codes.recent_scans(qr_code.id, scans_per_code)
                    ],
                )
            )
        return rows

    def export(self, owner_id: str, fmt: ExportFormat) -> ExportDocument:
        """Render the owner's records in the requested format.

        Raises NotFoundError when the owner has no records and
        DocumentGenerationError when rendering fails, times out, or produces
        nothing.
        """
        owner = self._users.get_by_id(owner_id)

        if fmt is ExportFormat.PDF:
            rows = self.collect(owner_id, RECENT_SCANS_PER_CODE)
        else:
            rows = self.collect(owner_id)
        if not rows:
            raise NotFoundError("QR codes for user", owner_id)

        slots = _render_slots
        if not slots.acquire(blocking=False):
            logger.error(f"{fmt.value} export for user {owner_id} rejected, all render slots busy")
            raise DocumentGenerationError("Too many exports in progress, try again shortly")

        if fmt is ExportFormat.PDF:
            render, args = render_pdf, (owner.display_name, owner.email, rows)
        else:
            render, args = render_workbook, (rows,)
        try:
            future = _executor.submit(_render_in_slot, slots, render, *args)
        except Exception:
            slots.release()
            raise

        try:
            content = future.result(timeout=settings.export_timeout_seconds)
        except FutureTimeoutError:
            logger.error(f"{fmt.value} export for user {owner_id} timed out")
            raise DocumentGenerationError("Export timed out") from None
        except DocumentGenerationError:
            logger.exception(f"{fmt.value} export for user {owner_id} failed")
            raise
        except Exception as e:
            logger.exception(f"{fmt.value} export for user {owner_id} failed")
            raise DocumentGenerationError(f"Failed to generate {fmt.value} export: {e}") from e

        if not content:
            raise DocumentGenerationError(f"Generated {fmt.value} export is empty")

        logger.info(f"Exported {len(rows)} QR codes as {fmt.value} for user {owner_id}")
        if fmt is ExportFormat.PDF:
            return ExportDocument(content, PDF_MEDIA_TYPE, PDF_FILENAME)
        return ExportDocument(content, EXCEL_MEDIA_TYPE, EXCEL_FILENAME)
