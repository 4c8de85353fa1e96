from upkar.models import db, Doctor, Product, AuditLog, Notification, OrderStatus
from tests.conftest import auth_headers

def test_admin_routes_require_admin(client, doctor_headers):
    assert client.get('/api/admin/dashboard', headers=doctor_headers).status_code == 403
    assert client.get('/api/admin/dashboard').status_code == 401

def test_dashboard_statistics(client, admin_headers, doctor, pending_doctor, products, factory):
    order = factory.order(doctor, [(products[0], 2)])
    order.set_status(OrderStatus.PROCESSING)
    order.set_status(OrderStatus.DELIVERED)
    db.session.commit()
    factory.order(doctor, [(products[1], 1)])

    stats = client.get('/api/admin/dashboard', headers=admin_headers).get_json()['statistics']

    assert stats['doctors'] == {'total': 2, 'pending': 1, 'approved': 1, 'rejected': 0}
    assert stats['products']['total'] == 2
    assert stats['products']['low_stock'] == 1
    assert stats['orders']['total'] == 2
    assert stats['orders']['by_status']['delivered'] == 1
    assert stats['orders']['by_status']['pending'] == 1
    assert stats['revenue']['total'] == 60.18
    assert stats['credit']['outstanding'] == 102.37

def test_doctor_list_filters(client, admin_headers, doctor, pending_doctor, factory):
    rejected = factory.doctor(approved=False, name='Meera Iyer')
    rejected.reject('Invalid licence')
    db.session.commit()

    def ids(query):
        body = client.get(f'/api/admin/doctors{query}', headers=admin_headers).get_json()
        return {d['id'] for d in body['doctors']}

    assert ids('') == {doctor.id, pending_doctor.id, rejected.id}
    assert ids('?status=pending') == {pending_doctor.id}
    assert ids('?status=approved') == {doctor.id}
    assert ids('?status=rejected') == {rejected.id}
    assert ids('?search=Meera') == {rejected.id}
    assert client.get('/api/admin/doctors?status=unknown', headers=admin_headers).status_code == 400

def test_approve_doctor(client, admin_headers, admin, pending_doctor):
    response = client.put(f'/api/admin/doctors/{pending_doctor.id}/approve', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['doctor']['approval_status'] == 'approved'
    assert pending_doctor.approved_at is not None
    assert Notification.query.filter_by(user_id=pending_doctor.user_id, type='approval').count() == 1
    log = AuditLog.query.filter_by(action='doctor_approved').one()
    assert log.user_id == admin.id
    assert log.new_values == {'approval_status': 'approved'}

def test_approve_is_idempotent(client, admin_headers, doctor):
    approved_at = doctor.approved_at

    response = client.put(f'/api/admin/doctors/{doctor.id}/approve', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['message'] == 'Doctor is already approved'
    assert doctor.approved_at == approved_at
    assert AuditLog.query.filter_by(action='doctor_approved').count() == 0

def test_reject_doctor_blocks_ordering(client, admin_headers, doctor, factory):
    response = client.put(f'/api/admin/doctors/{doctor.id}/reject', json={'reason': 'GST mismatch'},
                          headers=admin_headers)

    assert response.status_code == 200
    body = response.get_json()['doctor']
    assert body['approval_status'] == 'rejected'
    assert body['rejection_reason'] == 'GST mismatch'

    cart = client.get('/api/cart', headers=auth_headers(doctor.user))
    assert cart.status_code == 403
    assert cart.get_json()['approval_status'] == 'rejected'

def test_doctor_detail(client, admin_headers, doctor, products, factory):
    factory.order(doctor, [(products[0], 2)])

    body = client.get(f'/api/admin/doctors/{doctor.id}', headers=admin_headers).get_json()['doctor']
    assert body['order_count'] == 1
    assert body['balance'] == 60.18
    assert client.get('/api/admin/doctors/9999', headers=admin_headers).status_code == 404

def test_create_product(client, admin_headers):
    response = client.post('/api/admin/products', json={
        'name': 'Azithromycin 500mg',
        'description': 'Macrolide antibiotic',
        'category': 'Antibiotics',
        'price': '112.40',
        'stock': 30
    }, headers=admin_headers)

    assert response.status_code == 201
    product = response.get_json()['product']
    assert product['price'] == 112.40
    assert product['is_active'] is True
    assert AuditLog.query.filter_by(action='product_created', record_id=product['id']).count() == 1

def test_create_product_validation(client, admin_headers):
    assert client.post('/api/admin/products', json={'name': 'X'}, headers=admin_headers).status_code == 400
    assert client.post('/api/admin/products', json={'name': 'X', 'price': -1},
                       headers=admin_headers).status_code == 400
    assert client.post('/api/admin/products', json={'name': 'X', 'price': '1.005'},
                       headers=admin_headers).status_code == 400
    assert client.post('/api/admin/products', json={'name': 'X', 'price': 10, 'stock': -3},
                       headers=admin_headers).status_code == 400
    assert Product.query.count() == 0

def test_update_product(client, admin_headers, products):
    response = client.put(f'/api/admin/products/{products[0].id}', json={'price': 27, 'category': 'Analgesics'},
                          headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['product']['price'] == 27.0
    assert products[0].category == 'Analgesics'
    assert products[0].name == 'Paracetamol 500mg'

def test_delete_unreferenced_product(client, admin_headers, products):
    product_id = products[1].id

    response = client.delete(f'/api/admin/products/{product_id}', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['deactivated'] is False
    assert db.session.get(Product, product_id) is None

def test_delete_ordered_product_deactivates(client, admin_headers, doctor, products, factory):
    factory.order(doctor, [(products[0], 1)])

    response = client.delete(f'/api/admin/products/{products[0].id}', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['deactivated'] is True
    assert products[0].is_active is False

def test_admin_product_list_includes_inactive(client, admin_headers, products, factory):
    factory.product(name='Ranitidine 150mg', is_active=False)

    body = client.get('/api/admin/products', headers=admin_headers).get_json()
    assert len(body['products']) == 3
    inactive = client.get('/api/admin/products?status=inactive', headers=admin_headers).get_json()
    assert [p['name'] for p in inactive['products']] == ['Ranitidine 150mg']
    low = client.get('/api/admin/products?low_stock=true', headers=admin_headers).get_json()
    assert [p['name'] for p in low['products']] == ['Cetirizine 10mg']

def test_stock_set_and_adjust(client, admin_headers, products):
    url = f'/api/admin/products/{products[1].id}/stock'

    assert client.put(url, json={'stock': 40}, headers=admin_headers).get_json()['product']['stock'] == 40
    assert client.put(url, json={'delta': -15}, headers=admin_headers).get_json()['product']['stock'] == 25

    response = client.put(url, json={'delta': -30}, headers=admin_headers)
    assert response.status_code == 400
    assert products[1].stock == 25

    assert client.put(url, json={'stock': -1}, headers=admin_headers).status_code == 400
    assert client.put(url, json={}, headers=admin_headers).status_code == 400

def test_update_product_active_flag_parsing(client, admin_headers, products):
    url = f'/api/admin/products/{products[0].id}'

    response = client.put(url, json={'is_active': 'false'}, headers=admin_headers)
    assert response.status_code == 200
    assert products[0].is_active is False

    assert client.put(url, json={'is_active': 'yes'}, headers=admin_headers).status_code == 400
    assert client.put(url, json={'is_active': 1}, headers=admin_headers).status_code == 400
    assert products[0].is_active is False

    assert client.put(url, json={'is_active': True}, headers=admin_headers).status_code == 200
    assert products[0].is_active is True
