"""A4 invoice/quote renderer"""

from datetime import date
from io import BytesIO
from typing import List, Optional, Union
from xml.sax.saxutils import escape
import base64
import logging
import math

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, Table, TableStyle

from invoicehub.models.app_settings import AppSettings, CompanyProfile
from invoicehub.models.decimal_wire import decimal_to_wire
from invoicehub.models.document import Document
from invoicehub.pdf.branding import RGB, fit_logo, load_logo, palette_for, ribbon_color
from invoicehub.utils.formatting import format_amount, to_ddmmyyyy

logger = logging.getLogger(__name__)

PAGE_W_MM = A4[0] / mm
PAGE_H_MM = A4[1] / mm
MARGIN_MM = 15
CONTENT_W_MM = PAGE_W_MM - 2 * MARGIN_MM

# Printed on every line regardless of the document's rate
VAT_RATE_LABEL = "23.00%"
CREDIT_TERMS = "30 Days"
FOOTER_CREDIT = "Created by Clonmel Glass Invoice Hub"

FOOTER_STRIP_MM = 15
BODY_BOTTOM_MM = PAGE_H_MM - FOOTER_STRIP_MM - 5
CONTINUATION_TOP_MM = 35
# Gap above the totals plus the stacked total lines drawn by _draw_totals
TOTALS_BLOCK_MM = 62
BANK_BLOCK_MM = 26
NOTE_LEADING_MM = 3.5

TEXT = (0, 0, 0)
RULE_GRAY = (200, 200, 200)
LIGHT_GRAY = (243, 244, 246)
BORDER_GRAY = (229, 231, 235)
TOTALS_GRAY = (209, 213, 219)
DARK_GRAY = (31, 41, 55)
FOOTER_TEXT = (75, 85, 99)


def _color(rgb: RGB) -> colors.Color:
    return colors.Color(rgb[0] / 255, rgb[1] / 255, rgb[2] / 255)


def pdf_filename(document: Document) -> str:
    return f"{document.number}.pdf"


def encode_pdf_base64(pdf_bytes: bytes) -> str:
    return base64.b64encode(pdf_bytes).decode("ascii")


class _PageCountCanvas(canvas.Canvas):
    """
    Canvas that holds finished pages back until ``save`` so every page can be
    stamped with the final page count.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._page_states = []
        self.stamp_page = None

    def showPage(self):
        self._page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._page_states)
        for state in self._page_states:
            self.__dict__.update(state)
            if self.stamp_page:
                self.stamp_page(self.getPageNumber(), total)
            super().showPage()
        super().save()


class DocumentRenderer:
    """
    Renders a document onto A4 pages.

    Layout is expressed in millimetres from the top-left corner of the page
    and converted to PDF points when drawing. A typical document fits on one
    page; long item lists and notes continue onto further pages. Output is
    byte-identical for identical inputs (reportlab invariant mode, explicit
    print date).
    """

    def __init__(self, logo_dir: Optional[str] = None):
        self.logo_dir = logo_dir
        self.c: Optional[_PageCountCanvas] = None
        self._document: Optional[Document] = None

    # --- coordinate helpers ---

    @staticmethod
    def _y(y_mm: float) -> float:
        return (PAGE_H_MM - y_mm) * mm

    def _text(self, x_mm: float, y_mm: float, text: str, font: str = "Helvetica", size: float = 8) -> None:
        self.c.setFont(font, size)
        self.c.drawString(x_mm * mm, self._y(y_mm), text)

    def _text_right(self, x_mm: float, y_mm: float, text: str, font: str = "Helvetica", size: float = 8) -> None:
        self.c.setFont(font, size)
        self.c.drawRightString(x_mm * mm, self._y(y_mm), text)

    def _line(self, x1: float, y1: float, x2: float, y2: float, rgb: RGB, width_mm: float) -> None:
        self.c.setStrokeColor(_color(rgb))
        self.c.setLineWidth(width_mm * mm)
        self.c.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))

    def _horizontal_rule(self, y_mm: float, thickness: float = 0.1) -> None:
        self._line(MARGIN_MM, y_mm, PAGE_W_MM - MARGIN_MM, y_mm, RULE_GRAY, thickness)

    @staticmethod
    def _wrap(text: str, width_mm: float, font: str = "Helvetica", size: float = 8) -> List[str]:
        return simpleSplit(text, font, size, width_mm * mm) or [""]

    def _draw_table(self, table: Table, x_mm: float, y_mm: float, width_mm: float) -> float:
        """Draw ``table`` with its top edge at ``y_mm``; returns the bottom edge"""
        _, height = table.wrapOn(self.c, width_mm * mm, PAGE_H_MM * mm)
        table.drawOn(self.c, x_mm * mm, self._y(y_mm) - height)
        return y_mm + height / mm

    def _new_page(self) -> float:
        """Finish the current page and start a continuation page; returns its first y"""
        self.c.showPage()
        self.c.setFillColor(_color(TEXT))
        self._text(MARGIN_MM, 20, f"{self._document.title} {self._document.number} (continued)",
                   font="Helvetica-Bold", size=10)
        self._horizontal_rule(25)
        return CONTINUATION_TOP_MM

    def _ensure_space(self, y: float, needed_mm: float) -> float:
        if y + needed_mm > BODY_BOTTOM_MM:
            return self._new_page()
        return y

    # --- public API ---

    def render(
        self,
        document: Document,
        app_settings: AppSettings,
        logo: Optional[Union[bytes, str]] = None,
        created_by: str = "Admin",
        printed_at: Optional[date] = None,
    ) -> bytes:
        """
        Render ``document`` to PDF bytes.

        Args:
            document: Invoice or quote to render
            app_settings: Company identity and bank blocks
            logo: Optional logo override (bytes, base64 or data URL)
            created_by: Label shown as the account manager
            printed_at: Date for the "Printed as" footer (defaults to today)
        """
        buffer = BytesIO()
        self.c = _PageCountCanvas(buffer, pagesize=A4, invariant=1)
        self.c.setTitle(f"{document.title} {document.number}")
        self.c.setAuthor(FOOTER_CREDIT)
        self.c.setCreator(FOOTER_CREDIT)
        self.c.stamp_page = lambda page, total: self._draw_page_strip(printed_at or date.today(), page, total)
        self._document = document

        profile = app_settings.profile_for(document.company)
        try:
            self._draw_ribbon(document.is_paid)
            y = self._draw_header(document, logo)
            y = self._draw_addresses(document, profile, y)
            y = self._draw_info_strip(document, app_settings, created_by, y)
            y = self._draw_items(document, y)
            y = self._draw_totals(document, self._ensure_space(y, TOTALS_BLOCK_MM))
            self._draw_footer(document, profile, y)
            self.c.showPage()
            self.c.save()
        finally:
            self.c = None
            self._document = None

        pdf = buffer.getvalue()
        logger.debug(f"Rendered {document.number} ({len(pdf)} bytes)")
        return pdf

    # --- sections ---

    def _draw_ribbon(self, paid: bool) -> None:
        """Diagonal PAID/UNPAID strip across the top-left corner"""
        length, thickness = 70, 12
        angle = math.radians(-45)
        cos, sin = math.cos(angle), math.sin(angle)
        x1, y1 = -10, 25
        x2, y2 = x1 + length * cos, y1 + length * sin
        x3, y3 = x2 - thickness * sin, y2 + thickness * cos
        x4, y4 = x1 - thickness * sin, y1 + thickness * cos

        self.c.saveState()
        self.c.setFillColor(_color(ribbon_color(paid)))
        path = self.c.beginPath()
        path.moveTo(x1 * mm, self._y(y1))
        path.lineTo(x2 * mm, self._y(y2))
        path.lineTo(x3 * mm, self._y(y3))
        path.lineTo(x4 * mm, self._y(y4))
        path.close()
        self.c.drawPath(path, fill=1, stroke=0)

        self.c.translate(15 * mm, self._y(15))
        self.c.rotate(45)
        self.c.setFillColor(colors.white)
        self.c.setFont("Helvetica-Bold", 10)
        # Vertically centred on the anchor point
        self.c.drawCentredString(0, -3.5, "PAID" if paid else "UNPAID")
        self.c.restoreState()

    def _draw_header(self, document: Document, logo: Optional[Union[bytes, str]]) -> float:
        y = 25
        palette = palette_for(document.company)

        self.c.setFillColor(_color(palette.primary))
        self._text(MARGIN_MM, y, document.title, size=20)
        self.c.setFillColor(_color(TEXT))
        self._text(MARGIN_MM, y + 7, document.number, size=12)

        loaded = load_logo(document.company, override=logo, logo_dir=self.logo_dir)
        if loaded:
            image, width_px, height_px = loaded
            w, h = fit_logo(width_px, height_px, palette.logo_max_width_mm, palette.logo_max_height_mm)
            x = PAGE_W_MM - MARGIN_MM - w
            try:
                # Image top edge sits 10mm above the title baseline
                self.c.drawImage(image, x * mm, self._y(y - 10) - h * mm, width=w * mm, height=h * mm)
            except (OSError, ValueError) as e:
                logger.warning(f"Logo could not be drawn for {document.number}: {e}")

        y += 20
        self._horizontal_rule(y)
        return y

    def _draw_addresses(self, document: Document, profile: CompanyProfile, y: float) -> float:
        y += 8
        col_w = CONTENT_W_MM / 3
        col2_x = MARGIN_MM + col_w
        col3_x = MARGIN_MM + 2 * col_w

        bill_lines = [document.customer.name] if document.customer.name else []
        for part in document.customer.address_lines():
            bill_lines.extend(self._wrap(part, col_w - 5))

        # Bill-to and deliver-to are the same address
        self._text(MARGIN_MM, y, f"{document.title} To:", font="Helvetica-Bold")
        self._text(col2_x, y, "Deliver To:", font="Helvetica-Bold")
        bill_y = ship_y = y + 5
        for line in bill_lines:
            self._text(MARGIN_MM, bill_y, line)
            self._text(col2_x, ship_y, line)
            bill_y += 4
            ship_y += 4

        self._text(col3_x, y, profile.name, font="Helvetica-Bold")
        company_lines = [
            profile.address,
            "",
            f"Tel: {profile.phone}",
            f"Email: {profile.email}",
        ]
        if profile.website:
            company_lines.append(f"Web: {profile.website}")
        comp_y = y + 5
        for line in company_lines:
            for wrapped in self._wrap(line, col_w - 5):
                self._text(col3_x, comp_y, wrapped)
                comp_y += 4

        return max(bill_y, ship_y, comp_y) + 5

    def _draw_info_strip(self, document: Document, app_settings: AppSettings, created_by: str, y: float) -> float:
        self._horizontal_rule(y)
        y += 6

        columns = [
            (f"{document.title} Date", to_ddmmyyyy(document.issue_date)),
            ("Ref. No.", document.number),
            ("Account Manager", created_by),
            ("VAT No.", app_settings.vat_number),
            ("Payment Due", to_ddmmyyyy(document.due_date) if document.due_date else "On Receipt"),
            ("Credit Terms", CREDIT_TERMS),
        ]
        width = CONTENT_W_MM / len(columns)
        for i, (label, _) in enumerate(columns):
            self._text(MARGIN_MM + i * width, y, label, font="Helvetica-Bold")
        y += 5
        for i, (_, value) in enumerate(columns):
            self._text(MARGIN_MM + i * width, y, value)

        y += 5
        self._horizontal_rule(y)
        return y


    def _draw_items(self, document: Document, y: float) -> float:
        """Item table, split across pages with the header row repeated; returns the bottom edge"""
        y += 10
        cell_style = ParagraphStyle("cell", fontName="Helvetica", fontSize=8, leading=10)
        fixed = [25, 30, 25, 30]
        desc_w = CONTENT_W_MM - sum(fixed)

        rows = [["Description", "Quantity", "Price", "VAT Rate", "Total"]]
        for item in document.items:
            rows.append([
                Paragraph(escape(item.description), cell_style),
                decimal_to_wire(item.quantity),
                format_amount(item.unit_price),
                VAT_RATE_LABEL,
                format_amount(item.total),
            ])

        table = Table(rows, colWidths=[desc_w * mm] + [w * mm for w in fixed], repeatRows=1)
        table.setStyle(TableStyle([
            ("FONT", (0, 0), (-1, -1), "Helvetica", 8),
            ("TEXTCOLOR", (0, 0), (-1, -1), _color(TEXT)),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
            ("LEFTPADDING", (0, 0), (-1, -1), 5),
            ("RIGHTPADDING", (0, 0), (-1, -1), 5),
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 9),
            ("TEXTCOLOR", (0, 0), (-1, 0), _color(DARK_GRAY)),
            ("BACKGROUND", (0, 0), (-1, 0), _color(LIGHT_GRAY)),
        ]))

        while True:
            available = (BODY_BOTTOM_MM - y) * mm
            _, height = table.wrapOn(self.c, CONTENT_W_MM * mm, available)
            if height <= available:
                return self._draw_table(table, MARGIN_MM, y, CONTENT_W_MM)
            parts = table.split(CONTENT_W_MM * mm, available)
            if len(parts) < 2:
                if y == CONTINUATION_TOP_MM:
                    # A single row taller than a whole page; draw it and let it run over
                    logger.warning(f"Item row too tall for one page in {document.number}")
                    return self._draw_table(table, MARGIN_MM, y, CONTENT_W_MM)
                y = self._new_page()
                continue
            self._draw_table(parts[0], MARGIN_MM, y, CONTENT_W_MM)
            table = parts[1]
            y = self._new_page()

    def _draw_totals(self, document: Document, y: float) -> float:
        """VAT analysis on the left, totals block on the right; returns the lower edge"""
        y += 10

        self.c.setFillColor(_color(TEXT))
        self._text(MARGIN_MM, y - 2, "VAT Analysis", font="Helvetica-Bold", size=9)
        vat_table = Table(
            [
                ["VAT Rate %", "Net", "VAT", "Gross"],
                [
                    VAT_RATE_LABEL,
                    f"€{format_amount(document.subtotal)}",
                    f"€{format_amount(document.tax_amount)}",
                    f"€{format_amount(document.total)}",
                ],
            ],
            colWidths=[22.5 * mm] * 4,
        )
        vat_table.setStyle(TableStyle([
            ("FONT", (0, 0), (-1, -1), "Helvetica", 8),
            ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 8),
            ("BACKGROUND", (0, 0), (-1, 0), _color(LIGHT_GRAY)),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("GRID", (0, 0), (-1, -1), 0.1 * mm, _color(BORDER_GRAY)),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ]))
        vat_end = self._draw_table(vat_table, MARGIN_MM, y, 90)

        label_x = PAGE_W_MM - MARGIN_MM - 60
        value_x = PAGE_W_MM - MARGIN_MM
        totals_y = y

        def total_line(label: str, value: str, bold: bool = False, final: bool = False) -> None:
            nonlocal totals_y
            font = "Helvetica-Bold" if bold else "Helvetica"
            size = 11 if bold and final else 9
            self.c.setFillColor(_color(TEXT))
            self._text(label_x, totals_y + 4, label, font=font, size=size)
            self._text_right(value_x, totals_y + 4, value, font=font, size=size)
            totals_y += 6

        self._line(label_x, totals_y, value_x, totals_y, TOTALS_GRAY, 0.3)
        total_line("Total Net", f"€{format_amount(document.subtotal)}")
        total_line("Total Discount", f"€{format_amount(0)}")
        total_line("Total VAT", f"€{format_amount(document.tax_amount)}")

        totals_y += 4
        self._line(label_x, totals_y, value_x, totals_y, TOTALS_GRAY, 0.3)
        totals_y += 2
        total_line("Total Gross", f"€{format_amount(document.total)}", bold=True)

        totals_y += 2
        self._line(label_x, totals_y, value_x, totals_y, TOTALS_GRAY, 0.3)
        totals_y += 2
        total_line("Less Deposit", f"€{format_amount(document.amount_paid)}")

        totals_y += 4
        self._line(label_x, totals_y, value_x, totals_y, DARK_GRAY, 0.5)
        totals_y += 2
        # Balance due, not gross, once a deposit has been taken
        total_line("Total Payable", f"€{format_amount(document.balance_due)}", bold=True, final=True)

        return max(vat_end, totals_y)

    def _draw_footer(self, document: Document, profile: CompanyProfile, y: float) -> None:
        """Notes and bank details; notes continue onto a new page when they run out of room"""
        y += 15
        self._line(MARGIN_MM, y, PAGE_W_MM - MARGIN_MM, y, BORDER_GRAY, 0.1)
        y += 5

        self.c.setFillColor(_color(TEXT))
        if document.notes:
            lines = []
            for paragraph in document.notes.splitlines() or [""]:
                lines.extend(self._wrap(paragraph, 80))
            y = self._ensure_space(y, 4 + NOTE_LEADING_MM)
            self._text(MARGIN_MM, y, "Notes:", font="Helvetica-Bold", size=9)
            y += 4
            for line in lines:
                y = self._ensure_space(y, NOTE_LEADING_MM)
                self.c.setFillColor(_color(TEXT))
                self._text(MARGIN_MM, y, line)
                y += NOTE_LEADING_MM
            y += 6
        else:
            y += 10

        y = self._ensure_space(y, BANK_BLOCK_MM)
        self.c.setFillColor(_color(TEXT))
        self._text(MARGIN_MM, y, "Bank Details", font="Helvetica-Bold", size=9)
        y += 5
        for label, value in (
            ("Account Name:", profile.account_name),
            ("Bank Name:", profile.bank_name),
            ("BIC/SWIFT:", profile.bic),
            ("IBAN:", profile.iban),
        ):
            self._text(MARGIN_MM, y, label, font="Helvetica-Bold")
            self._text(MARGIN_MM + 25, y, value)
            y += 4

    def _draw_page_strip(self, printed_at: date, page: int, total: int) -> None:
        bottom = PAGE_H_MM - 10
        self.c.setFillColor(_color(LIGHT_GRAY))
        self.c.rect(0, self._y(bottom + 10), PAGE_W_MM * mm, FOOTER_STRIP_MM * mm, fill=1, stroke=0)
        self.c.setFillColor(_color(FOOTER_TEXT))
        self._text(MARGIN_MM, bottom + 2, f"Printed as: {to_ddmmyyyy(printed_at)} | Page {page} of {total}")
        self._text_right(PAGE_W_MM - MARGIN_MM, bottom + 2, FOOTER_CREDIT)
