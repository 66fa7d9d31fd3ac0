# ================================
# INVOICE PDF RENDERING (services/pdf_service.py)
# ================================

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from xml.sax.saxutils import escape
from datetime import date, datetime
from io import BytesIO
import logging

from app.config import settings
from app.models.business import Invoice

logger = logging.getLogger(__name__)

DARK = colors.HexColor("#111827")
GRAY = colors.HexColor("#6b7280")
ACCENT = colors.HexColor("#2563eb")
BORDER = colors.HexColor("#e5e7eb")

def _fmt_date(d) -> str:
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return d.strftime("%m/%d/%Y")
    return str(d)

def _money(v) -> str:
    return f"${float(v or 0):,.2f}"

def _qty(v) -> str:
    value = float(v or 0)
    return f"{value:g}"

def _multiline(text: str) -> str:
    return "<br/>".join(escape(line) for line in (text or "").splitlines())

class PDFService:
    """Renders invoices to PDF bytes (no database writes)"""

    @staticmethod
    def render_invoice(invoice: Invoice) -> bytes:
        buf = BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=LETTER,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=18 * mm,
            bottomMargin=18 * mm,
            title=f"Invoice {invoice.invoice_number}",
            author=settings.COMPANY_NAME,
        )

        styles = getSampleStyleSheet()
        normal = ParagraphStyle("body", parent=styles["Normal"], fontSize=9, leading=12, textColor=DARK)
        muted = ParagraphStyle("muted", parent=normal, textColor=GRAY)
        heading = ParagraphStyle("heading", parent=styles["Heading1"], fontSize=20, textColor=ACCENT, spaceAfter=0)
        company = ParagraphStyle("company", parent=styles["Heading2"], fontSize=14, textColor=DARK, spaceAfter=2)
        label = ParagraphStyle("label", parent=normal, fontName="Helvetica-Bold")

        story = []

        # Header: company left, invoice meta right
        company_lines = [Paragraph(escape(settings.COMPANY_NAME), company)]
        company_lines.append(Paragraph(_multiline(settings.COMPANY_ADDRESS), muted))
        contact = " | ".join(filter(None, [settings.COMPANY_PHONE, settings.COMPANY_EMAIL]))
        if contact:
            company_lines.append(Paragraph(escape(contact), muted))

        meta = [
            [Paragraph("INVOICE", heading)],
            [Paragraph(f"<b>Invoice #:</b> {escape(invoice.invoice_number)}", normal)],
            [Paragraph(f"<b>Date:</b> {_fmt_date(invoice.invoice_date)}", normal)],
            [Paragraph(f"<b>Due:</b> {_fmt_date(invoice.due_date)}", normal)],
            [Paragraph(f"<b>Status:</b> {escape(invoice.status)}", normal)],
        ]
        if invoice.payment_date:
            meta.append([Paragraph(f"<b>Paid:</b> {_fmt_date(invoice.payment_date)}", normal)])

        header = Table([[company_lines, Table(meta)]], colWidths=[100 * mm, 80 * mm])
        header.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ]))
        story.append(header)
        story.append(Spacer(1, 10 * mm))

        # Bill to / service location
        customer = invoice.customer
        bill_to = [Paragraph("BILL TO", label), Paragraph(escape(customer.name), normal)]
        if customer.billing_address:
            bill_to.append(Paragraph(_multiline(customer.billing_address), normal))
        if customer.email:
            bill_to.append(Paragraph(escape(customer.email), muted))
        if customer.phone:
            bill_to.append(Paragraph(escape(customer.phone), muted))

        service_location = []
        if invoice.property:
            prop = invoice.property
            city_line = ", ".join(filter(None, [prop.city, prop.state]))
            if prop.zip_code:
                city_line = f"{city_line} {prop.zip_code}".strip()
            service_location = [Paragraph("SERVICE LOCATION", label), Paragraph(escape(prop.name), normal)]
            service_location.append(Paragraph(_multiline(prop.address), normal))
            if city_line:
                service_location.append(Paragraph(escape(city_line), normal))

        parties = Table([[bill_to, service_location or ""]], colWidths=[90 * mm, 90 * mm])
        parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        story.append(parties)
        story.append(Spacer(1, 8 * mm))

        # Line items
        rows = [["Description", "Qty", "Unit Price", "Amount"]]
        for item in invoice.line_items:
            rows.append([
                Paragraph(escape(item.description), normal),
                _qty(item.quantity),
                _money(item.unit_price),
                _money(item.line_total),
            ])

        items_table = Table(rows, colWidths=[100 * mm, 20 * mm, 30 * mm, 30 * mm], repeatRows=1)
        items_table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), DARK),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("LINEBELOW", (0, 1), (-1, -1), 0.5, BORDER),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        story.append(items_table)
        story.append(Spacer(1, 4 * mm))

        # Totals
        totals = Table([
            ["Subtotal", _money(invoice.subtotal)],
            [f"Tax ({float(invoice.tax_rate or 0):g}%)", _money(invoice.tax_amount)],
            ["Total", _money(invoice.grand_total)],
        ], colWidths=[30 * mm, 30 * mm], hAlign="RIGHT")
        totals.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
            ("LINEABOVE", (0, 2), (-1, 2), 1, DARK),
        ]))
        story.append(totals)

        if invoice.notes:
            story.append(Spacer(1, 8 * mm))
            story.append(Paragraph("NOTES", label))
            story.append(Paragraph(_multiline(invoice.notes), normal))

        story.append(Spacer(1, 12 * mm))
        story.append(Paragraph("Thank you for your business!", muted))

        doc.build(story)
        pdf = buf.getvalue()
        logger.debug(f"Rendered PDF for invoice {invoice.invoice_number} ({len(pdf)} bytes)")
        return pdf
