# tradedocs/services/document_pdf.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any, Iterable

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas

from tradedocs.errors import RenderFailure
from tradedocs.models import DocumentKind
from tradedocs.money import exact_arithmetic, parse_decimal, round2

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

MARGIN_X = 48
HEADER_HEIGHT = 72
ACCENT_HEIGHT = 4
CONTENT_GAP = 24
LINE_HEIGHT = 14
ROW_PADDING = 6
BOTTOM_MARGIN = 80

LABEL_SIZE = 10
VALUE_SIZE = 12
FIELD_GAP = 12
FIELD_BAND = 16 + VALUE_SIZE + FIELD_GAP
TABLE_HEADER_GAP = 14
BODY_SIZE = 11

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

NAVY = (0.03, 0.17, 0.36)
ORANGE = (0.97, 0.28, 0.09)
TEXT = (0.08, 0.10, 0.15)
MUTED = (0.35, 0.38, 0.44)
WHITE = (1, 1, 1)

COL_DESC = MARGIN_X
COL_PRICE = PAGE_WIDTH - MARGIN_X - 160
COL_TOTAL = PAGE_WIDTH - MARGIN_X - 72
DESC_WIDTH = COL_PRICE - COL_DESC - 16
HEADER_VALUE_WIDTH = PAGE_WIDTH - 2 * MARGIN_X

CONTENT_TOP = PAGE_HEIGHT - HEADER_HEIGHT - ACCENT_HEIGHT - CONTENT_GAP

PLACEHOLDER = "—"
ELLIPSIS = "..."
CURRENCY = "$"


def _safe_str(x: Any) -> str:
    if isinstance(x, date):
        return x.isoformat()
    return (str(x) if x is not None else "").strip()


def _get(obj: Any, *names: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        for n in names:
            if n in obj and obj[n] not in (None, ""):
                return obj[n]
        return default
    for n in names:
        if hasattr(obj, n):
            v = getattr(obj, n)
            if v not in (None, ""):
                return v
    return default


def _format_value(value: Any) -> str:
    return _safe_str(value) or PLACEHOLDER


def _format_money(value: Decimal | None) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{CURRENCY}{round2(value):.2f}"


def _split_long_word(word: str, font: str, size: float, max_width: float) -> list[str]:
    chunks: list[str] = []
    cur = ""
    for ch in word:
        if cur and stringWidth(cur + ch, font, size) > max_width:
            chunks.append(cur)
            cur = ch
        else:
            cur += ch
    if cur:
        chunks.append(cur)
    return chunks


def wrap_text(text: str, font: str = FONT, size: float = BODY_SIZE, max_width: float = DESC_WIDTH) -> list[str]:
    text = _safe_str(text)
    if not text:
        return []
    lines: list[str] = []
    cur = ""
    for w in text.split():
        if stringWidth(w, font, size) > max_width:
            pieces = _split_long_word(w, font, size, max_width)
            if cur:
                lines.append(cur)
            lines.extend(pieces[:-1])
            cur = pieces[-1]
            continue
        cand = f"{cur} {w}" if cur else w
        if stringWidth(cand, font, size) <= max_width:
            cur = cand
        else:
            lines.append(cur)
            cur = w
    if cur:
        lines.append(cur)
    return lines


def fit_text(text: str, font: str = FONT, size: float = VALUE_SIZE, max_width: float = HEADER_VALUE_WIDTH) -> str:
    """Truncate a single-line value with an ellipsis so it stays inside max_width."""
    if stringWidth(text, font, size) <= max_width:
        return text
    limit = max_width - stringWidth(ELLIPSIS, font, size)
    width = 0.0
    for index, ch in enumerate(text):
        width += stringWidth(ch, font, size)
        if width > limit:
            return text[:index].rstrip() + ELLIPSIS
    return text


@dataclass
class RenderRow:
    description: str
    quantity: Decimal
    unit_price: Decimal | None
    total: Decimal | None

    @property
    def price_text(self) -> str:
        return _format_money(self.unit_price)

    @property
    def total_text(self) -> str:
        return _format_money(self.total)


@dataclass
class RowPlacement:
    row: RenderRow
    top: float
    height: float
    lines: list[str]


@dataclass
class PageLayout:
    number: int
    rows: list[RowPlacement] = field(default_factory=list)


def normalize_items(items: Iterable[Any] | None) -> list[RenderRow]:
    rows: list[RenderRow] = []
    for it in items or []:
        unit_price = parse_decimal(_get(it, "unit_rate", "unit_price", "price", "rate"))
        quantity = parse_decimal(_get(it, "quantity", "qty"))
        if not quantity:
            quantity = Decimal("1")
        total = parse_decimal(_get(it, "amount", "total"))
        if total is None and unit_price is not None:
            with exact_arithmetic():
                total = unit_price * quantity
        rows.append(
            RenderRow(
                description=_format_value(_get(it, "description", "title")),
                quantity=quantity,
                unit_price=unit_price,
                total=total,
            )
        )
    return rows


def _first_row_top() -> float:
    # Header fields and the column header sit above the first row on page one.
    return CONTENT_TOP - 4 * FIELD_BAND - 8 - TABLE_HEADER_GAP


def _continuation_row_top() -> float:
    return CONTENT_TOP - TABLE_HEADER_GAP - ROW_PADDING


def plan_layout(rows: list[RenderRow]) -> list[PageLayout]:
    """
    Greedy page assignment: a row goes on the current page if it fits above
    BOTTOM_MARGIN, otherwise a new page starts with that row. A row is
    never split. A row too tall for an empty page is still placed alone.
    """
    pages = [PageLayout(number=1)]
    y = _first_row_top()
    for row in rows:
        lines = wrap_text(row.description)
        height = max(len(lines), 1) * LINE_HEIGHT + ROW_PADDING
        page = pages[-1]
        if y - height < BOTTOM_MARGIN and (page.rows or page.number == 1):
            page = PageLayout(number=len(pages) + 1)
            pages.append(page)
            y = _continuation_row_top()
        page.rows.append(RowPlacement(row=row, top=y, height=height, lines=lines))
        y -= height
    return pages


def _draw_banner(c: Canvas, title: str) -> None:
    c.setFillColorRGB(*NAVY)
    c.rect(0, PAGE_HEIGHT - HEADER_HEIGHT, PAGE_WIDTH, HEADER_HEIGHT, stroke=0, fill=1)
    c.setFillColorRGB(*ORANGE)
    c.rect(0, PAGE_HEIGHT - HEADER_HEIGHT - ACCENT_HEIGHT, PAGE_WIDTH, ACCENT_HEIGHT, stroke=0, fill=1)
    c.setFillColorRGB(*WHITE)
    c.setFont(FONT_BOLD, 20)
    c.drawString(MARGIN_X, PAGE_HEIGHT - 44, title)


def _draw_header_fields(c: Canvas, fields: list[tuple[str, str]], y: float) -> float:
    for label, value in fields:
        c.setFillColorRGB(*MUTED)
        c.setFont(FONT_BOLD, LABEL_SIZE)
        c.drawString(MARGIN_X, y, label)
        c.setFillColorRGB(*TEXT)
        c.setFont(FONT, VALUE_SIZE)
        c.drawString(MARGIN_X, y - 16, fit_text(value))
        y -= FIELD_BAND
    return y


def _draw_table_header(c: Canvas, y: float) -> None:
    c.setFillColorRGB(*MUTED)
    c.setFont(FONT_BOLD, LABEL_SIZE)
    c.drawString(COL_DESC, y, "DESCRIPTION")
    c.drawString(COL_PRICE, y, "PRICE")
    c.drawString(COL_TOTAL, y, "TOTAL")


def _draw_row(c: Canvas, placement: RowPlacement) -> None:
    c.setFillColorRGB(*TEXT)
    c.setFont(FONT, BODY_SIZE)
    line_y = placement.top
    for ln in placement.lines or [PLACEHOLDER]:
        c.drawString(COL_DESC, line_y, ln)
        line_y -= LINE_HEIGHT
    c.drawString(COL_PRICE, placement.top, placement.row.price_text)
    c.drawString(COL_TOTAL, placement.top, placement.row.total_text)


def header_fields_for(document: Any) -> list[tuple[str, str]]:
    return [
        ("Reference No", _format_value(_get(document, "reference_number", "number", "variation_no"))),
        ("Date", _format_value(_get(document, "date", "issue_date"))),
        ("Issued To", _format_value(_get(document, "counterpart_name", "issued_to", "client_name"))),
        ("Project", _format_value(_get(document, "project_name"))),
    ]


def render_document_to_pdf_bytes(document: Any, items: Iterable[Any] | None = None) -> bytes:
    """
    Render a quote, invoice, purchase order or variation to PDF bytes.

    `document` may be a RenderableDocument, a dict or any object carrying
    the header fields; `items` defaults to the document's own items.
    Raises UnsupportedDocumentKind before drawing anything, and RenderFailure
    if reportlab fails part way (no partial bytes are returned).
    """
    kind = DocumentKind.parse(_get(document, "kind", "type"))
    if items is None:
        items = _get(document, "items", default=None)

    rows = normalize_items(items)
    pages = plan_layout(rows)
    fields = header_fields_for(document)

    buf = BytesIO()
    try:
        c = Canvas(buf, pagesize=A4)
        c.setTitle(f"{kind.display_title} {fields[0][1]}")
        for page in pages:
            if page.number > 1:
                c.showPage()
            _draw_banner(c, kind.display_title)
            if page.number == 1:
                y = _draw_header_fields(c, fields, CONTENT_TOP) - 8
            else:
                y = CONTENT_TOP
            _draw_table_header(c, y)
            for placement in page.rows:
                _draw_row(c, placement)
        c.save()
    except Exception as exc:
        logger.error("PDF render failed for %s with %d items: %s", kind.value, len(rows), exc)
        raise RenderFailure(f"Could not render {kind.display_title.lower()} PDF") from exc

    pdf_bytes = buf.getvalue()
    logger.debug("Rendered %s PDF: %d pages, %d bytes", kind.value, len(pages), len(pdf_bytes))
    return pdf_bytes
