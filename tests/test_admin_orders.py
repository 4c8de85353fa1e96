import pytest

from upkar.models import db, OrderStatus, OrderNotification, Notification, CreditTransaction, Invoice

def set_status(client, headers, order, status, **extra):
    return client.put(f'/api/admin/orders/{order.id}/status', json={'status': status, **extra}, headers=headers)

@pytest.fixture
def order(doctor, products, factory):
    return factory.order(doctor, [(products[0], 2), (products[1], 1)])

def test_doctor_cannot_update_status(client, doctor_headers, order):
    assert set_status(client, doctor_headers, order, 'processing').status_code == 403

def test_legal_transition_appends_history_and_notifies(client, admin_headers, doctor, order):
    response = set_status(client, admin_headers, order, 'processing')

    assert response.status_code == 200
    assert response.get_json()['order']['status'] == 'processing'
    assert [h.status for h in order.status_history] == ['processing', 'pending']
    assert order.status_history[0].notes == 'Status changed to processing'

    assert Notification.query.filter_by(user_id=doctor.user_id, type='order').count() == 1
    attempts = {n.notification_type: n.status for n in OrderNotification.query.filter_by(order_id=order.id)}
    # SendGrid is unconfigured in tests, Twilio is simulated
    assert attempts['email'] == 'failed'
    assert attempts['whatsapp'] == 'sent'
    assert order.whatsapp_notification_sent is True

def test_processing_generates_invoice(client, admin_headers, order):
    set_status(client, admin_headers, order, 'processing')

    assert order.invoice_generated is True
    assert order.invoice_number == f"INV-{order.created_at.strftime('%Y%m%d')}-{order.id:06d}"
    assert Invoice.query.filter_by(order_id=order.id).count() == 1

@pytest.mark.parametrize('path,target', [
    (['processing', 'shipped'], 'pending'),
    (['cancelled'], 'processing'),
    ([], 'delivered'),
    ([], 'returned'),
    (['processing', 'delivered'], 'shipped'),
])
def test_illegal_transitions_are_rejected(client, admin_headers, order, path, target):
    for status in path:
        assert set_status(client, admin_headers, order, status).status_code == 200

    response = set_status(client, admin_headers, order, target)

    assert response.status_code == 400
    assert 'Cannot change order status' in response.get_json()['error']
    assert len(order.status_history) == len(path) + 1

def test_unknown_status(client, admin_headers, order):
    assert set_status(client, admin_headers, order, 'lost').status_code == 400
    assert set_status(client, admin_headers, order, '').status_code == 400

def test_admin_cancel_restocks(client, admin_headers, doctor, products, order):
    set_status(client, admin_headers, order, 'processing')
    response = set_status(client, admin_headers, order, 'cancelled', notes='Out of cold storage')

    assert response.status_code == 200
    assert products[0].stock == 100
    assert products[1].stock == 5
    assert CreditTransaction.balance_for(doctor.id) == 0
    assert order.status_history[0].notes == 'Out of cold storage'

def test_delivered_sets_delivery_date(client, admin_headers, order):
    set_status(client, admin_headers, order, 'processing')
    set_status(client, admin_headers, order, 'delivered')
    assert order.actual_delivery_date is not None

def test_shipping_update_moves_processing_to_shipped(client, admin_headers, order):
    set_status(client, admin_headers, order, 'processing')

    response = client.put(f'/api/admin/orders/{order.id}/shipping', json={
        'tracking_number': 'BD123456789IN',
        'shipping_carrier': 'BlueDart',
        'estimated_delivery_date': '2030-01-15'
    }, headers=admin_headers)

    assert response.status_code == 200
    body = response.get_json()['order']
    assert body['status'] == 'shipped'
    assert body['tracking_number'] == 'BD123456789IN'
    assert body['estimated_delivery_date'] == '2030-01-15'

def test_shipping_update_requires_fields(client, admin_headers, order):
    response = client.put(f'/api/admin/orders/{order.id}/shipping', json={'tracking_number': 'X'},
                          headers=admin_headers)
    assert response.status_code == 400

def test_admin_order_list_has_product_summary(client, admin_headers, doctor, order, factory, products):
    other = factory.doctor(name='Vikram Nair')
    factory.order(other, [(products[0], 1)])

    response = client.get('/api/admin/orders', headers=admin_headers)
    orders = response.get_json()['orders']
    assert len(orders) == 2
    mine = next(o for o in orders if o['id'] == order.id)
    assert mine['product_summary'] == 'Paracetamol 500mg (2), Cetirizine 10mg (1)'
    assert mine['doctor']['name'] == doctor.name
    assert mine['doctor']['phone'] == doctor.phone

    by_doctor = client.get(f'/api/admin/orders?doctor_id={other.id}', headers=admin_headers).get_json()
    assert len(by_doctor['orders']) == 1
    searched = client.get('/api/admin/orders?search=Vikram', headers=admin_headers).get_json()
    assert [o['doctor']['name'] for o in searched['orders']] == ['Vikram Nair']
    pending = client.get('/api/admin/orders?status=pending', headers=admin_headers).get_json()
    assert len(pending['orders']) == 2
