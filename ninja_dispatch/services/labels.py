from io import BytesIO
from typing import List, Optional

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode import code128, qr
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from ninja_dispatch.schemas import CustomWaybill

LABEL_WIDTH = 4 * inch
LABEL_HEIGHT = 6 * inch
BARCODE_HEIGHT = 0.7 * inch
QRCODE_WIDTH = 1.1 * inch
MARGIN = 0.2 * inch
MAX_LABELS = 100


def _draw_qr(c: canvas.Canvas, value: str, x: float, y: float, size: float) -> None:
    widget = qr.QrCodeWidget(value)
    x1, y1, x2, y2 = widget.getBounds()
    w, h = x2 - x1, y2 - y1
    d = Drawing(size, size, transform=[size / w, 0, 0, size / h, 0, 0])
    d.add(widget)
    renderPDF.draw(d, c, x, y)


def _draw_block(c: canvas.Canvas, title: str, lines: List[str], y: float) -> float:
    c.setFont("Helvetica-Bold", 8)
    c.drawString(MARGIN, y, title)
    y -= 12
    c.setFont("Helvetica", 9)
    for line in lines:
        if line:
            c.drawString(MARGIN, y, line[:60])
            y -= 11
    return y - 6


def _draw_label(c: canvas.Canvas, label: CustomWaybill) -> None:
    top = LABEL_HEIGHT - MARGIN

    # --- HEADER ---
    c.setFont("Helvetica-Bold", 16)
    c.setFillColor(colors.red)
    c.drawString(MARGIN, top - 14, "Ninja Van")
    c.setFillColor(colors.black)
    c.setFont("Helvetica", 9)
    c.drawRightString(LABEL_WIDTH - MARGIN, top - 10, label.type)
    c.drawRightString(LABEL_WIDTH - MARGIN, top - 22, f"{label.weight:g} kg")
    c.line(MARGIN, top - 30, LABEL_WIDTH - MARGIN, top - 30)

    # --- BARCODE ---
    barcode = code128.Code128(label.tracking_id, barHeight=BARCODE_HEIGHT, barWidth=1.1)
    bx = max(MARGIN, (LABEL_WIDTH - barcode.width) / 2)
    barcode.drawOn(c, bx, top - 40 - BARCODE_HEIGHT)
    c.setFont("Helvetica-Bold", 11)
    c.drawCentredString(LABEL_WIDTH / 2, top - 54 - BARCODE_HEIGHT, label.tracking_id)

    y = top - 74 - BARCODE_HEIGHT
    c.line(MARGIN, y + 8, LABEL_WIDTH - MARGIN, y + 8)

    # --- PARTIES ---
    y = _draw_block(c, "TO", [label.receiver.name, label.receiver.contact, label.receiver.address], y)
    y = _draw_block(c, "FROM", [label.sender.name, label.sender.contact, label.sender.address], y)

    # --- DELIVERY ---
    cod = f"{label.cod.currency or ''} {label.cod.amount:.2f}".strip()
    y = _draw_block(c, "DELIVERY", [label.delivery_date, f"COD: {cod}"], y)
    if label.comments:
        _draw_block(c, "COMMENTS", [label.comments], y)

    _draw_qr(c, label.tracking_id, LABEL_WIDTH - MARGIN - QRCODE_WIDTH, MARGIN, QRCODE_WIDTH)


def render_labels(labels: List[CustomWaybill], title: Optional[str] = None) -> bytes:
    """One 4x6in page per label, returned as PDF bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(LABEL_WIDTH, LABEL_HEIGHT))
    c.setTitle(title or "Shipping Labels")
    for label in labels:
        _draw_label(c, label)
        c.showPage()
    c.save()
    return buffer.getvalue()
