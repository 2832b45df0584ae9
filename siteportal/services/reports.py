"""PDF sign-on reports and document sign-sheets (reportlab, A4).

Rows are laid out top-down with a running cursor. When the next row would
cross the bottom margin a new page is started and the table header redrawn.
"""
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.orm import Session

from siteportal.config import settings
from siteportal.metrics import REPORTS_GENERATED_TOTAL
from siteportal.models.person import Person
from siteportal.models.site import DocumentSignature, Project, ProjectSignOn
from siteportal.services.filenames import sign_sheet_filename, signon_report_filename
from siteportal.services.projects import Projects
from siteportal.services.sign_links import SignLinkKind, build_sign_on_url, render_qr_png
from siteportal.services.signature_canvas import is_image_data_uri, load_signature_image
from siteportal.services.signon import site_timezone
from siteportal.services.site_documents import SiteDocuments

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
FOOTER_SPACE = 20 * mm
HEADER_ROW_HEIGHT = 8 * mm

SHADE = colors.HexColor("#F3F4F6")
HEADER_FILL = colors.HexColor("#E5E7EB")
RULE = colors.HexColor("#9CA3AF")
MUTED = colors.HexColor("#6B7280")


@dataclass(frozen=True)
class RenderedReport:
    filename: str
    content: bytes
    row_count: int
    media_type: str = "application/pdf"


def resolve_names(db: Session, person_ids: Iterable) -> dict[uuid.UUID, str]:
    """Display names for ``person_ids`` in a single query.

    Ids without a profile map to ``"Unknown User"``.
    """
    ids = {pid for pid in person_ids if pid is not None}
    names = {pid: UNKNOWN_USER for pid in ids}
    if not ids:
        return names
    rows = db.execute(
        select(Person.id, Person.full_name).where(Person.id.in_(ids))
    ).all()
    for person_id, full_name in rows:
        names[person_id] = full_name or UNKNOWN_USER
    return names


def _format_dt(value: datetime | None) -> str:
    if value is None:
        return "-"
    # SQLite hands timestamps back naive; they are stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(site_timezone()).strftime("%d/%m/%Y %H:%M")


def fit_text(
    text: str, max_width: float, font_name: str = "Helvetica", font_size: float = 10
) -> str:
    """Truncate ``text`` with an ellipsis so it fits in ``max_width`` points."""
    if stringWidth(text, font_name, font_size) <= max_width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font_name, font_size) > max_width:
        text = text[:-1]
    return text.rstrip() + ellipsis if text else ""


@dataclass(frozen=True)
class Column:
    title: str
    width: float


class _TableWriter:
    """Draws a paginated table with alternating row shading."""

    def __init__(self, pdf: canvas.Canvas, columns: Sequence[Column], row_height: float):
        self.pdf = pdf
        self.columns = columns
        self.row_height = row_height
        self.y = PAGE_HEIGHT - MARGIN
        self.rows = 0

    @property
    def width(self) -> float:
        return sum(c.width for c in self.columns)

    def header(self) -> None:
        pdf = self.pdf
        top = self.y
        pdf.setFillColor(HEADER_FILL)
        pdf.rect(MARGIN, top - HEADER_ROW_HEIGHT, self.width, HEADER_ROW_HEIGHT, fill=1, stroke=0)
        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica-Bold", 10)
        x = MARGIN
        for column in self.columns:
            pdf.drawString(x + 2 * mm, top - HEADER_ROW_HEIGHT + 2.5 * mm, column.title)
            x += column.width
        self.y = top - HEADER_ROW_HEIGHT

    def _ensure_room(self, height: float) -> None:
        if self.y - height < MARGIN + FOOTER_SPACE:
            self.pdf.showPage()
            self.y = PAGE_HEIGHT - MARGIN
            self.header()

    def row(self, cells: Sequence) -> None:
        """Append a row; a cell is text or a callable drawing into (x, y, w, h)."""
        self._ensure_room(self.row_height)
        pdf = self.pdf
        bottom = self.y - self.row_height
        if self.rows % 2 == 1:
            pdf.setFillColor(SHADE)
            pdf.rect(MARGIN, bottom, self.width, self.row_height, fill=1, stroke=0)
        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica", 10)
        x = MARGIN
        text_y = bottom + (self.row_height - 3.5 * mm) / 2
        for column, cell in zip(self.columns, cells):
            if callable(cell):
                cell(x, bottom, column.width, self.row_height)
            else:
                text = fit_text(str(cell), column.width - 4 * mm)
                pdf.drawString(x + 2 * mm, text_y, text)
            x += column.width
        pdf.setStrokeColor(RULE)
        pdf.setLineWidth(0.3)
        pdf.line(MARGIN, bottom, MARGIN + self.width, bottom)
        self.y = bottom
        self.rows += 1

    def placeholder(self, text: str) -> None:
        self._ensure_room(self.row_height)
        bottom = self.y - self.row_height
        self.pdf.setFont("Helvetica-Oblique", 10)
        self.pdf.setFillColor(MUTED)
        self.pdf.drawCentredString(
            MARGIN + self.width / 2, bottom + (self.row_height - 3.5 * mm) / 2, text
        )
        self.pdf.setFillColor(colors.black)
        self.y = bottom


def _draw_footer(pdf: canvas.Canvas, lines: Sequence[str]) -> None:
    y = MARGIN + FOOTER_SPACE - 6 * mm
    pdf.setStrokeColor(RULE)
    pdf.setLineWidth(0.5)
    pdf.line(MARGIN, y + 4 * mm, PAGE_WIDTH - MARGIN, y + 4 * mm)
    pdf.setFillColor(colors.black)
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(MARGIN, y, lines[0])
    pdf.setFont("Helvetica", 8)
    pdf.setFillColor(MUTED)
    for offset, line in enumerate(lines[1:], start=1):
        pdf.drawString(MARGIN, y - offset * 4.5 * mm, line)
    pdf.setFillColor(colors.black)


# ---------------------------------------------------------------------------
# Sign-on report
# ---------------------------------------------------------------------------


def _signon_rows(db: Session, kind: SignLinkKind, entity_id: str):
    if kind is SignLinkKind.project:
        project = Projects.get(db, entity_id)
        rows = db.scalars(
            select(ProjectSignOn)
            .where(ProjectSignOn.project_id == project.id)
            .order_by(ProjectSignOn.signed_at.desc())
        ).all()
        return project.name, project.project_number, rows

    document = SiteDocuments.get(db, entity_id)
    rows = db.scalars(
        select(DocumentSignature)
        .where(DocumentSignature.document_id == document.id)
        .order_by(DocumentSignature.signed_at.desc())
    ).all()
    project = db.get(Project, document.project_id)
    return document.title, project.project_number if project else None, rows


def generate_signon_report(
    db: Session,
    kind: SignLinkKind | str,
    entity_id: str,
    now: datetime | None = None,
) -> RenderedReport:
    """Every sign-on (or signature) for a project or document, newest first."""
    kind = SignLinkKind(kind)
    now = now or datetime.now(timezone.utc)
    name, project_number, rows = _signon_rows(db, kind, entity_id)
    names = resolve_names(db, (row.person_id for row in rows))

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    pdf.setTitle(f"Sign-On Report - {name}")

    y = PAGE_HEIGHT - MARGIN
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawString(MARGIN, y - 6 * mm, "Sign-On Report")
    pdf.setFont("Helvetica", 12)
    pdf.drawString(MARGIN, y - 14 * mm, name)
    y -= 14 * mm
    pdf.setFont("Helvetica", 9)
    pdf.setFillColor(MUTED)
    if project_number:
        y -= 6 * mm
        pdf.drawString(MARGIN, y, f"Project #: {project_number}")
    y -= 6 * mm
    pdf.drawString(MARGIN, y, f"Generated: {_format_dt(now)}")
    pdf.setFillColor(colors.black)

    content_width = PAGE_WIDTH - 2 * MARGIN
    table = _TableWriter(
        pdf,
        [Column("Name", content_width * 0.6), Column("Date & Time", content_width * 0.4)],
        row_height=8 * mm,
    )
    table.y = y - 8 * mm
    table.header()
    if not rows:
        table.placeholder("No sign-ons recorded")
    for row in rows:
        table.row([names.get(row.person_id, UNKNOWN_USER), _format_dt(row.signed_at)])

    _draw_footer(
        pdf,
        [f"Total Sign-Ons: {len(rows)}", f"Generated: {_format_dt(now)}"],
    )
    pdf.save()

    REPORTS_GENERATED_TOTAL.labels(report="signon").inc()
    logger.info(
        "Generated %s sign-on report for %s with %d rows", kind.value, entity_id, len(rows)
    )
    return RenderedReport(
        filename=signon_report_filename(kind.value, name),
        content=buf.getvalue(),
        row_count=len(rows),
    )


# ---------------------------------------------------------------------------
# Document sign-sheet
# ---------------------------------------------------------------------------


def _signature_cell(pdf: canvas.Canvas, value: str | None):
    """Drawing callable for the signature column, or placeholder text."""
    if not is_image_data_uri(value):
        return "[signed]"
    try:
        image = ImageReader(load_signature_image(value))
    except ValueError as e:
        logger.warning("Undecodable signature image in sign-sheet: %s", e)
        return "[signature]"

    def draw(x: float, y: float, width: float, height: float) -> None:
        iw, ih = image.getSize()
        max_w, max_h = width - 4 * mm, height - 2 * mm
        scale = min(max_w / iw, max_h / ih)
        w, h = iw * scale, ih * scale
        pdf.drawImage(image, x + 2 * mm, y + (height - h) / 2, width=w, height=h, mask="auto")

    return draw


def _draw_info_box(
    pdf: canvas.Canvas, top: float, lines: Sequence[tuple[str, str]], width: float
) -> float:
    height = (len(lines) + 1) * 6 * mm
    pdf.setStrokeColor(RULE)
    pdf.setLineWidth(0.6)
    pdf.rect(MARGIN, top - height, width, height, fill=0, stroke=1)
    y = top - 7 * mm
    for label, value in lines:
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawString(MARGIN + 3 * mm, y, f"{label}:")
        pdf.setFont("Helvetica", 10)
        pdf.drawString(MARGIN + 30 * mm, y, fit_text(value, width - 33 * mm))
        y -= 6 * mm
    return top - height


def generate_document_sign_sheet(
    db: Session, document_id: str, now: datetime | None = None
) -> RenderedReport:
    """Printable sign-on sheet with every signature on a document, oldest first."""
    now = now or datetime.now(timezone.utc)
    document = SiteDocuments.get(db, document_id)
    project = db.get(Project, document.project_id)
    rows = db.scalars(
        select(DocumentSignature)
        .where(DocumentSignature.document_id == document.id)
        .order_by(DocumentSignature.signed_at.asc())
    ).all()
    names = resolve_names(db, (row.person_id for row in rows))

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    pdf.setTitle(f"Sign-On Sheet - {document.title}")
    content_width = PAGE_WIDTH - 2 * MARGIN

    y = PAGE_HEIGHT - MARGIN
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawCentredString(PAGE_WIDTH / 2, y - 6 * mm, "DOCUMENT SIGN-ON SHEET")
    y -= 14 * mm

    qr_size = 30 * mm
    type_line = document.document_type.value
    if document.version:
        type_line = f"{type_line} (v{document.version})"
    project_line = project.name if project else "-"
    if project and project.project_number:
        project_line = f"{project_line} (#{project.project_number})"
    box_bottom = _draw_info_box(
        pdf,
        y,
        [
            ("Document", document.title),
            ("Type", type_line),
            ("Project", project_line),
            ("Generated", _format_dt(now)),
        ],
        content_width - qr_size - 5 * mm,
    )

    url = build_sign_on_url(SignLinkKind.document, document.id)
    try:
        qr = ImageReader(io.BytesIO(render_qr_png(url)))
    except Exception as e:
        logger.exception("Skipping QR code on sign-sheet for %s: %s", document.id, e)
    else:
        pdf.drawImage(qr, PAGE_WIDTH - MARGIN - qr_size, y - qr_size, width=qr_size, height=qr_size)
        pdf.setFont("Helvetica", 7)
        pdf.setFillColor(MUTED)
        pdf.drawCentredString(PAGE_WIDTH - MARGIN - qr_size / 2, y - qr_size - 3 * mm, "Scan to sign")
        pdf.setFillColor(colors.black)
        box_bottom = min(box_bottom, y - qr_size - 3 * mm)

    table = _TableWriter(
        pdf,
        [
            Column("Name", content_width * 0.35),
            Column("Signature", content_width * 0.35),
            Column("Date Signed", content_width * 0.30),
        ],
        row_height=16 * mm,
    )
    table.y = box_bottom - 8 * mm
    table.header()
    if not rows:
        table.placeholder("No signatures yet")
    for row in rows:
        table.row(
            [
                names.get(row.person_id, UNKNOWN_USER),
                _signature_cell(pdf, row.signature_data),
                _format_dt(row.signed_at),
            ]
        )

    _draw_footer(
        pdf,
        [
            f"Total Signatures: {len(rows)}",
            f"Generated: {_format_dt(now)}",
            settings.brand_name,
        ],
    )
    pdf.save()

    REPORTS_GENERATED_TOTAL.labels(report="sign_sheet").inc()
    logger.info(
        "Generated sign-sheet for document %s with %d signatures", document.id, len(rows)
    )
    return RenderedReport(
        filename=sign_sheet_filename(document.title),
        content=buf.getvalue(),
        row_count=len(rows),
    )
