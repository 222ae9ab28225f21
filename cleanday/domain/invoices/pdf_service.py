"""
Invoice PDF Generator
Renders a branded, single-document invoice with reportlab
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ...models import Company
from ...models_invoice import Invoice
from ..scheduling.time_utils import format_currency

logger = logging.getLogger(__name__)


class InvoicePDFGenerator:
    """Builds the PDF bytes for one invoice"""

    def __init__(self, invoice: Invoice, company: Company):
        self.invoice = invoice
        self.company = company
        self.client = invoice.client

        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        self.brand_color = colors.HexColor("#14b8a6")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def generate(self) -> bytes:
        logger.info(f"📄 Generating invoice PDF for {self.invoice.invoice_number}")
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Invoice {self.invoice.invoice_number}",
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "InvoiceTitle",
            parent=styles["Heading1"],
            fontSize=24,
            textColor=self.brand_color,
            spaceAfter=12,
        )
        body_style = ParagraphStyle(
            "InvoiceBody",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.dark_gray,
            spaceAfter=6,
        )

        story = [
            Paragraph(escape(self.company.name), title_style),
            Paragraph(f"INVOICE {self.invoice.invoice_number}", body_style),
            Spacer(1, 0.25 * inch),
        ]

        info_data = [
            ["Bill to:", self.client.full_name if self.client else "N/A"],
            ["Email:", (self.client.email if self.client else None) or "N/A"],
            ["Issued:", self.invoice.issue_date.strftime("%B %d, %Y")],
            ["Due:", self.invoice.due_date.strftime("%B %d, %Y") if self.invoice.due_date else "On receipt"],
            ["Status:", self.invoice.status.replace("_", " ").title()],
        ]
        info_table = Table(info_data, colWidths=[1.5 * inch, 4.5 * inch])
        info_table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        story.append(info_table)
        story.append(Spacer(1, 0.3 * inch))
        story.append(self._line_items_table())
        story.append(Spacer(1, 0.2 * inch))
        story.append(self._totals_table())

        if self.invoice.notes:
            story.append(Spacer(1, 0.3 * inch))
            story.append(Paragraph(escape(self.invoice.notes), body_style))

        doc.build(story, onFirstPage=self._add_page_number, onLaterPages=self._add_page_number)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"✅ Generated invoice PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _line_items_table(self) -> Table:
        rows = [["Description", "Qty", "Unit price", "Amount"]]
        for item in self.invoice.line_items or []:
            quantity = item.get("quantity", 1)
            unit_price = item.get("unit_price", 0)
            rows.append(
                [
                    item.get("description", ""),
                    f"{quantity:g}",
                    format_currency(unit_price),
                    format_currency(item.get("amount", quantity * unit_price)),
                ]
            )

        table = Table(rows, colWidths=[3.5 * inch, 0.7 * inch, 1.1 * inch, 1.2 * inch], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("TEXTCOLOR", (0, 1), (-1, -1), self.dark_gray),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("TOPPADDING", (0, 0), (-1, -1), 6),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _totals_table(self) -> Table:
        invoice = self.invoice
        rows = [["Subtotal", format_currency(invoice.subtotal)]]
        if invoice.discount_amount:
            rows.append(["Discount", format_currency(-invoice.discount_amount)])
        rows.append(["Tax", format_currency(invoice.tax_amount)])
        rows.append(["Total", format_currency(invoice.total)])
        if invoice.amount_paid:
            rows.append(["Paid", format_currency(invoice.amount_paid)])
            rows.append(["Balance due", format_currency(invoice.balance_due)])

        table = Table(rows, colWidths=[5.3 * inch, 1.2 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (-1, -1), "Helvetica", 10),
                    ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 11),
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("LINEABOVE", (0, -1), (-1, -1), 1, self.brand_color),
                ]
            )
        )
        return table

    def _add_page_number(self, canvas_obj, doc):
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawRightString(
            self.page_width - self.margin, self.margin / 2, f"Page {canvas_obj.getPageNumber()}"
        )


def generate_invoice_pdf(invoice: Invoice, company: Company) -> bytes:
    return InvoicePDFGenerator(invoice, company).generate()
