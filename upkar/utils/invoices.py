import os
import logging
from datetime import datetime
from flask import current_app

from upkar.models import db, Invoice, OrderValidationError
from upkar.utils.invoice_pdf import render_invoice_pdf
from upkar.utils.storage import save_file

logger = logging.getLogger(__name__)

def company_details():
    config = current_app.config
    return {
        'name': config.get('COMPANY_NAME'),
        'address': config.get('COMPANY_ADDRESS'),
        'gst': config.get('COMPANY_GST')
    }

def invoice_download_url(order):
    return f'/api/orders/{order.id}/invoice'

def generate_invoice(order, regenerate=False):
    """
    Render and store the invoice PDF for an order.

    Returns (invoice, created). An order that already has an invoice is
    returned unchanged unless regenerate is set. The caller commits.
    """
    existing = order.invoice
    if existing is not None and order.invoice_generated and not regenerate:
        return existing, False

    if not order.items:
        raise OrderValidationError('Cannot generate an invoice for an order without items')

    invoice_number = order.invoice_number or Invoice.number_for(order)
    pdf_bytes = render_invoice_pdf(order, invoice_number, company_details(),
                                   current_app.config.get('GST_RATE'))
    pdf_path = save_file(f'{invoice_number}.pdf', pdf_bytes)

    invoice = existing or Invoice(order_id=order.id, doctor_id=order.doctor_id)
    invoice.invoice_number = invoice_number
    invoice.invoice_date = datetime.utcnow()
    invoice.pdf_path = pdf_path
    invoice.pdf_url = invoice_download_url(order)
    db.session.add(invoice)

    order.invoice_number = invoice_number
    order.invoice_url = invoice.pdf_url
    order.invoice_generated = True

    logger.info(f"Generated invoice {invoice_number} for order {order.id}")
    return invoice, True

def invoice_file_exists(invoice):
    return bool(invoice and invoice.pdf_path and os.path.isfile(invoice.pdf_path))
