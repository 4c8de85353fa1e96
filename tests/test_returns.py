import pytest

from upkar.models import db, OrderStatus, Return, ReturnStatus, CreditTransaction
from upkar.models.returns import returned_quantities

@pytest.fixture
def delivered_order(doctor, products, factory):
    order = factory.order(doctor, [(products[0], 4), (products[1], 2)])
    order.set_status(OrderStatus.PROCESSING)
    order.set_status(OrderStatus.DELIVERED)
    db.session.commit()
    return order

def request_return(client, headers, order, items, reason='Damaged strips'):
    return client.post(f'/api/orders/{order.id}/returns', json={'reason': reason, 'items': items},
                       headers=headers)

def test_only_delivered_orders_can_be_returned(client, doctor_headers, doctor, products, factory):
    order = factory.order(doctor, [(products[0], 1)])
    item = order.items[0]

    response = request_return(client, doctor_headers, order, [{'order_item_id': item.id, 'quantity': 1}])

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Only delivered orders can be returned'

def test_initiate_return_uses_order_prices(client, doctor_headers, delivered_order):
    item = delivered_order.items[0]

    response = request_return(client, doctor_headers, delivered_order,
                              [{'order_item_id': item.id, 'quantity': 3, 'condition': 'damaged'}])

    assert response.status_code == 201
    body = response.get_json()['return']
    assert body['status'] == 'pending'
    assert body['amount'] == 76.50
    assert body['items'][0]['product_name'] == 'Paracetamol 500mg'
    assert delivered_order.status == OrderStatus.RETURN_INITIATED

def test_return_quantity_cannot_exceed_ordered(client, doctor_headers, delivered_order):
    item = delivered_order.items[1]

    response = request_return(client, doctor_headers, delivered_order, [{'order_item_id': item.id, 'quantity': 3}])

    assert response.status_code == 400
    assert 'Returnable: 2' in response.get_json()['error']
    assert Return.query.count() == 0

def test_return_requires_reason_and_items(client, doctor_headers, delivered_order):
    item = delivered_order.items[0]
    assert request_return(client, doctor_headers, delivered_order,
                          [{'order_item_id': item.id, 'quantity': 1}], reason='').status_code == 400
    assert request_return(client, doctor_headers, delivered_order, []).status_code == 400
    assert request_return(client, doctor_headers, delivered_order,
                          [{'order_item_id': 9999, 'quantity': 1}]).status_code == 400

def test_approve_return_restocks_and_credits(client, doctor_headers, admin_headers, doctor, products,
                                             delivered_order):
    item = delivered_order.items[0]
    return_id = request_return(client, doctor_headers, delivered_order,
                               [{'order_item_id': item.id, 'quantity': 2}]).get_json()['return']['id']
    balance_before = CreditTransaction.balance_for(doctor.id)

    response = client.put(f'/api/admin/returns/{return_id}', json={'status': 'approved'},
                          headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['return']['status'] == 'approved'
    assert products[0].stock == 98
    assert delivered_order.status == OrderStatus.RETURNED
    assert balance_before - CreditTransaction.balance_for(doctor.id) == 51
    credit = CreditTransaction.query.filter_by(reference_id=f'return-{return_id}').one()
    assert float(credit.amount) == 51.0

def test_reject_return_restores_delivered(client, doctor_headers, admin_headers, doctor, products,
                                          delivered_order):
    item = delivered_order.items[0]
    return_id = request_return(client, doctor_headers, delivered_order,
                               [{'order_item_id': item.id, 'quantity': 1}]).get_json()['return']['id']

    response = client.put(f'/api/admin/returns/{return_id}',
                          json={'status': 'rejected', 'notes': 'Seal intact, not eligible'},
                          headers=admin_headers)

    assert response.status_code == 200
    assert delivered_order.status == OrderStatus.DELIVERED
    assert products[0].stock == 96
    assert CreditTransaction.query.filter_by(reference_id=f'return-{return_id}').count() == 0
    assert delivered_order.status_history[0].notes == 'Seal intact, not eligible'

def test_return_can_only_be_processed_once(client, doctor_headers, admin_headers, delivered_order):
    item = delivered_order.items[0]
    return_id = request_return(client, doctor_headers, delivered_order,
                               [{'order_item_id': item.id, 'quantity': 1}]).get_json()['return']['id']
    client.put(f'/api/admin/returns/{return_id}', json={'status': 'approved'}, headers=admin_headers)

    response = client.put(f'/api/admin/returns/{return_id}', json={'status': 'rejected'},
                          headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Return is already approved'

def test_invalid_return_status(client, doctor_headers, admin_headers, delivered_order):
    item = delivered_order.items[0]
    return_id = request_return(client, doctor_headers, delivered_order,
                               [{'order_item_id': item.id, 'quantity': 1}]).get_json()['return']['id']

    for status in ('pending', 'lost', None):
        response = client.put(f'/api/admin/returns/{return_id}', json={'status': status},
                              headers=admin_headers)
        assert response.status_code == 400

def test_admin_return_list_and_detail(client, doctor_headers, admin_headers, delivered_order):
    item = delivered_order.items[0]
    return_id = request_return(client, doctor_headers, delivered_order,
                               [{'order_item_id': item.id, 'quantity': 1}]).get_json()['return']['id']

    listing = client.get('/api/admin/returns?status=pending', headers=admin_headers).get_json()
    assert [r['id'] for r in listing['returns']] == [return_id]

    detail = client.get(f'/api/admin/returns/{return_id}', headers=admin_headers).get_json()['return']
    assert detail['order']['id'] == delivered_order.id
    assert detail['doctor_name'] == delivered_order.doctor.name

    assert client.get('/api/admin/returns/9999', headers=admin_headers).status_code == 404

def test_repeated_line_cannot_exceed_ordered_quantity(client, doctor_headers, delivered_order):
    item = delivered_order.items[1]  # 2 ordered

    response = request_return(client, doctor_headers, delivered_order, [
        {'order_item_id': item.id, 'quantity': 2},
        {'order_item_id': item.id, 'quantity': 2},
    ])

    assert response.status_code == 400
    assert 'Returnable: 0' in response.get_json()['error']
    assert Return.query.count() == 0
    assert delivered_order.status == OrderStatus.DELIVERED

def test_repeated_line_within_ordered_quantity(client, doctor_headers, delivered_order):
    item = delivered_order.items[0]  # 4 ordered

    response = request_return(client, doctor_headers, delivered_order, [
        {'order_item_id': item.id, 'quantity': 1},
        {'order_item_id': item.id, 'quantity': 3},
    ])

    assert response.status_code == 201
    assert response.get_json()['return']['amount'] == 102.0

def test_rejected_return_frees_quantities(client, doctor_headers, admin_headers, delivered_order):
    item = delivered_order.items[1]
    first = request_return(client, doctor_headers, delivered_order,
                           [{'order_item_id': item.id, 'quantity': 2}]).get_json()['return']['id']
    client.put(f'/api/admin/returns/{first}', json={'status': 'rejected'}, headers=admin_headers)

    response = request_return(client, doctor_headers, delivered_order, [{'order_item_id': item.id, 'quantity': 2}])

    assert response.status_code == 201
    assert response.get_json()['return']['amount'] == 71.5

def test_earlier_returns_count_against_returnable(delivered_order):
    item = delivered_order.items[0]  # 4 ordered
    Return.initiate(delivered_order, 'Expired on arrival', [{'order_item_id': item.id, 'quantity': 3}])
    db.session.commit()

    # a pending return keeps its units reserved
    assert returned_quantities(delivered_order.id) == {item.id: 3}

    pending = Return.query.one()
    pending.process(ReturnStatus.REJECTED, processed_by=None)
    db.session.commit()
    assert returned_quantities(delivered_order.id) == {}

    approved = Return.initiate(delivered_order, 'Expired on arrival', [{'order_item_id': item.id, 'quantity': 3}])
    db.session.commit()
    approved.process(ReturnStatus.APPROVED, processed_by=None)
    db.session.commit()
    assert returned_quantities(delivered_order.id) == {item.id: 3}

def test_second_return_limited_by_pending_one(client, doctor_headers, delivered_order):
    item = delivered_order.items[0]  # 4 ordered
    Return.initiate(delivered_order, 'Crushed box', [{'order_item_id': item.id, 'quantity': 3}])
    # put the order back in a returnable state while that return is still pending
    delivered_order.set_status(OrderStatus.DELIVERED)
    db.session.commit()

    response = request_return(client, doctor_headers, delivered_order, [{'order_item_id': item.id, 'quantity': 2}])

    assert response.status_code == 400
    assert 'Returnable: 1' in response.get_json()['error']

def test_return_items_must_be_objects(client, doctor_headers, delivered_order):
    response = request_return(client, doctor_headers, delivered_order, [5])
    assert response.status_code == 400
