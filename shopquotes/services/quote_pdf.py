"""Quote PDF generation.

Lays out a fixed, single-page A4 document for one quote: header, client
block, item table, total and a validity footer. Coordinates are absolute;
there is no pagination and long descriptions are cut to their column.

The canvas runs in reportlab's invariant mode, so rendering the same quote
twice yields byte-identical output.
"""

import io
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from zoneinfo import ZoneInfo

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import getAscent, stringWidth
from reportlab.pdfgen import canvas

from shopquotes.exceptions import PdfRenderError
from shopquotes.schemas.quote import QuoteBase, parse_iso_datetime

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
LEFT = MARGIN
RIGHT = PAGE_WIDTH - MARGIN

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
# Helvetica (ascender - descender + line gap) / units per em
LINE_FACTOR = 1.156

BLACK = HexColor("#000000")
INK = HexColor("#111111")
MUTED = HexColor("#555555")
FOOTER_GREY = HexColor("#666666")
RULE = HexColor("#e5e7eb")

# Item table grid
COL_DESC = 275
COL_QTY = 60
COL_UNIT = 80
COL_TOTAL = 80
ROW_GAP = 4

# Total block: value column hugs the right margin
TOTAL_VALUE_WIDTH = 120

DEFAULT_VALIDITY_DAYS = 15
DEFAULT_TIMEZONE = "America/Sao_Paulo"

NBSP = "\u00a0"


def format_brl(value) -> str:
    """Format as pt-BR currency: R$ 1.234,56 (non-breaking space after R$)."""
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,.2f}"
    # 1,234.56 -> 1.234,56
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R${NBSP}{grouped}"


def format_quantity(quantity) -> str:
    if isinstance(quantity, float) and quantity.is_integer():
        return str(int(quantity))
    return str(quantity)


def format_issue_date(iso_date: str, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """dd/mm/yyyy, HH:MM:SS in the shop's timezone."""
    issued = parse_iso_datetime(iso_date).astimezone(ZoneInfo(tz_name))
    return issued.strftime("%d/%m/%Y, %H:%M:%S")


def _fit(text: str, font: str, size: float, width: float) -> str:
    """Cut text to fit width, marking the cut with an ellipsis."""
    if stringWidth(text, font, size) <= width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font, size) > width:
        text = text[:-1]
    return text.rstrip() + ellipsis


class _Page:
    """Top-down cursor over a reportlab canvas."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.y = PAGE_HEIGHT - MARGIN
        self.size = 10

    def line_height(self, size: Optional[float] = None) -> float:
        return (size or self.size) * LINE_FACTOR

    def move_down(self, lines: float = 1.0):
        self.y -= self.line_height() * lines

    def text(
        self,
        value: str,
        x: float = LEFT,
        width: Optional[float] = None,
        align: str = "left",
        font: str = FONT,
        size: Optional[float] = None,
        color=INK,
        top: Optional[float] = None,
        underline: bool = False,
        advance: bool = True,
    ) -> float:
        """Draw one line with its top at `top` (default: cursor). Returns the next top."""
        size = size or self.size
        self.size = size
        top = self.y if top is None else top
        baseline = top - getAscent(font, size)
        width = RIGHT - x if width is None else width

        self.c.setFont(font, size)
        self.c.setFillColor(color)
        text_width = stringWidth(value, font, size)
        if align == "right":
            start = x + width - text_width
        elif align == "center":
            start = x + (width - text_width) / 2
        else:
            start = x
        self.c.drawString(start, baseline, value)

        if underline:
            self.c.setStrokeColor(color)
            self.c.setLineWidth(size / 20)
            self.c.line(start, baseline - size * 0.1, start + text_width, baseline - size * 0.1)

        next_top = top - self.line_height(size)
        if advance:
            self.y = next_top
        return next_top

    def rule(self):
        self.c.setStrokeColor(RULE)
        self.c.setLineWidth(1)
        self.c.line(LEFT, self.y, RIGHT, self.y)


def _draw_header(page: _Page, quote: QuoteBase, tz_name: str):
    band_top = page.y
    company = quote.company

    page.text(company.name, size=18, color=BLACK)
    page.move_down(0.2)
    page.text(f"CNPJ: {company.cnpj}", size=10, color=MUTED)
    page.text(company.address, color=MUTED)
    page.text(f"{company.phone}  |  {company.email}", color=MUTED)
    left_bottom = page.y

    right_top = page.text(
        f"Orçamento {quote.number}", top=band_top, align="right",
        size=14, color=BLACK, advance=False,
    )
    right_bottom = page.text(
        format_issue_date(quote.date, tz_name), top=right_top, align="right",
        size=10, color=MUTED, advance=False,
    )

    page.y = min(left_bottom, right_bottom)


def _draw_client(page: _Page, quote: QuoteBase):
    client = quote.client
    page.text("Dados do Cliente", size=12, color=BLACK, underline=True)
    page.move_down(0.3)
    page.size = 10
    for label, value in (
        ("Nome", client.name),
        ("Telefone", client.phone),
        ("Veículo", client.vehicle),
        ("Placa", client.plate),
    ):
        page.text(f"{label}: {value}", color=INK)


def _draw_items(page: _Page, quote: QuoteBase):
    x_qty = LEFT + COL_DESC
    x_unit = x_qty + COL_QTY
    x_total = x_unit + COL_UNIT

    page.text("Itens do Orçamento", size=12, color=BLACK, underline=True)
    page.move_down(0.5)

    page.size = 10
    top = page.y
    page.text("Descrição", LEFT, COL_DESC, top=top, advance=False)
    page.text("Qtd", x_qty, COL_QTY, align="center", top=top, advance=False)
    page.text("Unitário", x_unit, COL_UNIT, align="right", top=top, advance=False)
    page.y = page.text("Total", x_total, COL_TOTAL, align="right", top=top, advance=False)
    page.move_down(0.3)
    page.rule()

    for item in quote.items:
        top = page.y - ROW_GAP
        description = _fit(item.description, FONT, 10, COL_DESC - ROW_GAP)
        page.text(description, LEFT, COL_DESC, top=top, advance=False)
        page.text(format_quantity(item.quantity), x_qty, COL_QTY, align="center", top=top, advance=False)
        page.text(format_brl(item.unit_price), x_unit, COL_UNIT, align="right", top=top, advance=False)
        page.y = page.text(format_brl(item.line_total), x_total, COL_TOTAL, align="right", top=top, advance=False)
        page.move_down(0.4)


def _draw_total(page: _Page, quote: QuoteBase):
    value_x = RIGHT - TOTAL_VALUE_WIDTH
    top = page.y
    page.text("TOTAL:", LEFT, value_x - LEFT - ROW_GAP, align="right",
              size=12, color=BLACK, top=top, advance=False)
    page.y = page.text(format_brl(quote.total), value_x, TOTAL_VALUE_WIDTH, align="right",
                       font=FONT_BOLD, size=12, color=BLACK, top=top, advance=False)


def render_quote_pdf(
    quote: QuoteBase,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
    tz_name: str = DEFAULT_TIMEZONE,
) -> bytes:
    """Render one quote and return the complete PDF bytes.

    Raises PdfRenderError on any failure; no partial output is returned.
    """
    try:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        c.setTitle(f"Orçamento {quote.number}")
        c.setAuthor(quote.company.name)
        c.setSubject(f"Orçamento para {quote.client.name}")
        c.setCreator("shopquotes")

        page = _Page(c)
        _draw_header(page, quote, tz_name)
        page.move_down()
        page.rule()
        page.move_down()

        _draw_client(page, quote)
        page.move_down()
        page.rule()
        page.move_down()

        _draw_items(page, quote)
        page.move_down()
        page.rule()
        page.move_down()

        _draw_total(page, quote)
        page.move_down(2)

        page.text(
            f"Orçamento válido por {validity_days} dias.",
            align="center", size=9, color=FOOTER_GREY,
        )

        c.showPage()
        c.save()
        pdf_bytes = buffer.getvalue()
    except Exception as e:
        logger.error(f"[QUOTE-PDF] Failed to render {quote.number}: {type(e).__name__}: {e}")
        raise PdfRenderError("Erro ao gerar PDF") from e

    if not pdf_bytes:
        raise PdfRenderError("Erro ao gerar PDF")

    logger.info(f"[QUOTE-PDF] Generated PDF for {quote.number}: {len(pdf_bytes)} bytes")
    return pdf_bytes
