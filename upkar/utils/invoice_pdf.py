from io import BytesIO
from datetime import datetime
from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Table, TableStyle, Paragraph, SimpleDocTemplate, Spacer

def _money(value):
    return f"{float(value or 0):,.2f}"

def render_invoice_pdf(order, invoice_number, company, gst_rate):
    """
    Render a GST invoice for an order.

    company is a dict with name, address and gst. Returns the PDF as bytes.
    """
    buffer = BytesIO()
    styles = getSampleStyleSheet()
    story = []

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=invoice_number,
    )

    # Header
    story.append(Paragraph(f"<b>{company.get('name')}</b>", styles["Title"]))
    if company.get('address'):
        story.append(Paragraph(company['address'], styles["Normal"]))
    if company.get('gst'):
        story.append(Paragraph(f"GSTIN: {company['gst']}", styles["Normal"]))
    story.append(Spacer(1, 8))
    story.append(Paragraph("<b>TAX INVOICE</b>", styles["Heading2"]))

    # Invoice info
    placed = order.created_at or datetime.utcnow()
    info = [
        ["Invoice No", invoice_number],
        ["Invoice Date", datetime.utcnow().strftime("%d-%b-%Y")],
        ["Order No", f"#{order.id}"],
        ["Order Date", placed.strftime("%d-%b-%Y")],
        ["Payment", (order.payment_method or 'credit').title()],
    ]
    t = Table(info, colWidths=[100, 300])
    t.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.25, colors.black),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(t)
    story.append(Spacer(1, 10))

    # Bill to
    doctor = order.doctor
    bill_to = [
        ["Bill To", f"Dr. {doctor.name}"],
        ["Clinic", doctor.clinic_name or "-"],
        ["Address", Paragraph(order.billing_address or doctor.address or "-", styles["Normal"])],
        ["GSTIN", doctor.gst_number or "-"],
        ["Phone", doctor.phone or "-"],
    ]
    bt = Table(bill_to, colWidths=[100, 300])
    bt.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.25, colors.black),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    story.append(bt)
    story.append(Spacer(1, 10))

    # Line items
    data = [["#", "Item", "Qty", "Rate (Rs.)", "Amount (Rs.)"]]
    for i, item in enumerate(order.items, 1):
        data.append([
            str(i),
            Paragraph(item.product_name, styles["Normal"]),
            str(item.quantity),
            _money(item.price_per_unit),
            _money(item.total_price),
        ])

    rate_label = f"{float(gst_rate) * 100:g}%"
    data.append(["", "", "", "Subtotal", _money(order.subtotal)])
    data.append(["", "", "", f"GST {rate_label}", _money(order.tax_amount)])
    if order.shipping_cost:
        data.append(["", "", "", "Shipping", _money(order.shipping_cost)])
    if order.discount_amount:
        data.append(["", "", "", "Discount", f"-{_money(order.discount_amount)}"])
    data.append(["", "", "", "Total", _money(order.total_amount)])

    item_rows = len(order.items)
    items_table = Table(data, colWidths=[25, 215, 40, 80, 90], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#0f766e")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, item_rows), 0.25, colors.grey),
        ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
        ("FONTNAME", (3, -1), (-1, -1), "Helvetica-Bold"),
        ("LINEABOVE", (3, -1), (-1, -1), 0.5, colors.black),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 16))

    story.append(Paragraph("Amounts are payable against the credit account of the billed doctor.", styles["Italic"]))
    story.append(Paragraph("This is a computer generated invoice.", styles["Italic"]))

    doc.build(story)
    return buffer.getvalue()
