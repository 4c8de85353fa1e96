from upkar.models import db, CreditTransaction, Payment, TransactionType, OrderStatus

def test_summary_tracks_orders_and_payments(client, doctor_headers, admin_headers, doctor, products, factory):
    factory.order(doctor, [(products[0], 2)])  # 51.00 + 9.18 GST

    summary = client.get('/api/credits/summary', headers=doctor_headers).get_json()['summary']
    assert summary['total_debit'] == 60.18
    assert summary['total_paid'] == 0
    assert summary['current_balance'] == 60.18
    assert summary['pending_orders_amount'] == 60.18
    assert summary['last_payment'] is None

    response = client.post(f'/api/credits/doctors/{doctor.id}/payments',
                           json={'amount': 50, 'notes': 'NEFT ref 1182'}, headers=admin_headers)
    assert response.status_code == 201
    payment_id = response.get_json()['payment']['id']
    assert response.get_json()['summary']['current_balance'] == 10.18

    summary = client.get('/api/credits/summary', headers=doctor_headers).get_json()['summary']
    assert summary['total_paid'] == 50
    assert summary['last_payment']['amount'] == 50
    assert summary['last_payment']['notes'] == 'NEFT ref 1182'

    entry = CreditTransaction.query.filter_by(reference_id=f'payment-{payment_id}').one()
    assert entry.type == TransactionType.CREDIT

def test_payment_validation(client, admin_headers, doctor):
    url = f'/api/credits/doctors/{doctor.id}/payments'
    assert client.post(url, json={}, headers=admin_headers).status_code == 400
    assert client.post(url, json={'amount': 0}, headers=admin_headers).status_code == 400
    assert client.post(url, json={'amount': -10}, headers=admin_headers).status_code == 400
    assert client.post(url, json={'amount': 'abc'}, headers=admin_headers).status_code == 400
    assert Payment.query.count() == 0
    assert client.post('/api/credits/doctors/9999/payments', json={'amount': 10},
                       headers=admin_headers).status_code == 404

def test_payment_is_admin_only(client, doctor_headers, doctor):
    response = client.post(f'/api/credits/doctors/{doctor.id}/payments', json={'amount': 10},
                           headers=doctor_headers)
    assert response.status_code == 403

def test_transactions_newest_first(client, doctor_headers, doctor, products, factory):
    order = factory.order(doctor, [(products[0], 1)])
    order.set_status(OrderStatus.CANCELLED)
    db.session.commit()

    transactions = client.get('/api/credits/transactions', headers=doctor_headers).get_json()['transactions']
    assert [t['type'] for t in transactions] == ['credit', 'debit']
    assert [t['reference_id'] for t in transactions] == [f'order-{order.id}-cancel', f'order-{order.id}']

def test_admin_summaries_cover_approved_doctors(client, admin_headers, doctor, pending_doctor, products, factory):
    other = factory.doctor()
    factory.order(doctor, [(products[0], 2)])
    factory.order(other, [(products[1], 1)])  # 35.75 + 6.44 GST

    body = client.get('/api/credits/doctors', headers=admin_headers).get_json()
    ids = {s['doctor_id'] for s in body['summaries']}
    assert ids == {doctor.id, other.id}
    assert body['total_outstanding'] == 102.37

    detail = client.get(f'/api/credits/doctors/{doctor.id}', headers=admin_headers).get_json()
    assert detail['summary']['current_balance'] == 60.18
    assert len(detail['transactions']) == 1
    assert detail['payments'] == []

def test_pending_doctor_has_no_credit_access(client, pending_headers):
    response = client.get('/api/credits/summary', headers=pending_headers)
    assert response.status_code == 403
