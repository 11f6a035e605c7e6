"""Purchase order PDF rendered with reportlab"""
from io import BytesIO

from django.utils import timezone
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

MARGIN = 50
LINE = 16


def _money(value):
    return f"${value:,.2f}"


def _date(value):
    return value.strftime('%d/%m/%Y') if value else '-'


def _user_name(user):
    if user is None:
        return '-'
    return user.get_full_name() or user.username


def render_purchase_order_pdf(po):
    """Return the PDF bytes of one purchase order"""
    buffer = BytesIO()
    w, h = letter
    c = canvas.Canvas(buffer, pagesize=letter)
    y = h - MARGIN

    def section(title):
        nonlocal y
        y -= LINE
        c.setFont("Helvetica-Bold", 11)
        c.setFillColor(colors.HexColor("#1e3a5f"))
        c.drawString(MARGIN, y, title)
        c.setFillColor(colors.black)
        y -= 4
        c.setStrokeColor(colors.HexColor("#cccccc"))
        c.line(MARGIN, y, w - MARGIN, y)
        y -= LINE

    def field(label, value):
        nonlocal y
        c.setFont("Helvetica-Bold", 9)
        c.drawString(MARGIN, y, f"{label}:")
        c.setFont("Helvetica", 9)
        c.drawString(MARGIN + 130, y, str(value) if value not in (None, '') else '-')
        y -= LINE

    def paragraph(text):
        nonlocal y
        c.setFont("Helvetica", 9)
        for raw_line in (text or '-').splitlines() or ['-']:
            # Wrap long lines at roughly the printable width
            while raw_line:
                chunk, raw_line = raw_line[:100], raw_line[100:]
                c.drawString(MARGIN, y, chunk)
                y -= LINE - 4
                if y < MARGIN + 40:
                    c.showPage()
                    y = h - MARGIN
        y -= 4

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(w / 2, y, "ORDEN DE COMPRA")
    y -= LINE + 6
    c.setFont("Helvetica", 10)
    c.drawString(MARGIN, y, f"Folio: {po.folio}")
    c.drawRightString(w - MARGIN, y, f"Estado: {po.status_label}")
    y -= LINE
    c.drawString(MARGIN, y, f"Fecha de Creación: {_date(po.created_at)}")
    if po.authorized_at:
        c.drawRightString(w - MARGIN, y, f"Fecha de Autorización: {_date(po.authorized_at)}")
    y -= 4

    section("PROVEEDOR")
    field("Nombre", po.supplier.name if po.supplier else None)
    field("RFC", po.supplier.tax_id if po.supplier else None)

    if po.project:
        section("PROYECTO")
        field("Nombre", po.project.name)

    section("DESCRIPCIÓN")
    paragraph(po.description)

    section("DESGLOSE DE MONTOS")
    field("Subtotal", _money(po.subtotal))
    field("IVA (16%)", _money(po.vat))
    c.setFont("Helvetica-Bold", 11)
    c.drawString(MARGIN, y, "TOTAL:")
    c.drawString(MARGIN + 130, y, _money(po.total))
    y -= LINE

    if po.min_payment_date or po.max_payment_date:
        section("FECHAS DE PAGO")
        field("Fecha Mínima", _date(po.min_payment_date))
        field("Fecha Máxima", _date(po.max_payment_date))

    if po.comments:
        section("COMENTARIOS")
        paragraph(po.comments)

    y -= LINE
    field("Creado por", _user_name(po.created_by))
    if po.authorized_by_id:
        field("Autorizado por", _user_name(po.authorized_by))

    now = timezone.localtime()
    c.setFont("Helvetica-Oblique", 8)
    c.setFillColor(colors.grey)
    c.drawCentredString(w / 2, MARGIN / 2,
                        f"Generado el {now.strftime('%d/%m/%Y')} a las {now.strftime('%H:%M')}")

    c.showPage()
    c.save()
    return buffer.getvalue()
