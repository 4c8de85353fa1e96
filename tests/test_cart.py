from upkar.models import CartItem

def test_pending_doctor_cannot_use_cart(client, pending_headers, products):
    response = client.post('/api/cart/items', json={'product_id': products[0].id, 'quantity': 1},
                           headers=pending_headers)
    assert response.status_code == 403
    assert response.get_json()['approval_status'] == 'pending'

def test_admin_cannot_use_cart(client, admin_headers):
    assert client.get('/api/cart', headers=admin_headers).status_code == 403

def test_adding_same_product_increments_line(client, doctor_headers, products):
    paracetamol = products[0]
    client.post('/api/cart/items', json={'product_id': paracetamol.id, 'quantity': 2}, headers=doctor_headers)
    response = client.post('/api/cart/items', json={'product_id': paracetamol.id, 'quantity': 3},
                           headers=doctor_headers)

    assert response.status_code == 200
    cart = response.get_json()['cart']
    assert len(cart['items']) == 1
    assert cart['items'][0]['quantity'] == 5
    assert cart['total_items'] == 5
    assert cart['total_amount'] == 127.5
    assert CartItem.query.count() == 1

def test_add_rejects_bad_quantity(client, doctor_headers, products):
    for quantity in (0, -1, 'two', 1.5):
        response = client.post('/api/cart/items', json={'product_id': products[0].id, 'quantity': quantity},
                               headers=doctor_headers)
        assert response.status_code == 400, quantity

def test_add_unknown_or_inactive_product(client, doctor_headers, factory):
    inactive = factory.product(is_active=False)
    assert client.post('/api/cart/items', json={'product_id': 9999, 'quantity': 1},
                       headers=doctor_headers).status_code == 404
    assert client.post('/api/cart/items', json={'product_id': inactive.id, 'quantity': 1},
                       headers=doctor_headers).status_code == 404

def test_add_more_than_stock(client, doctor_headers, products):
    cetirizine = products[1]
    response = client.post('/api/cart/items', json={'product_id': cetirizine.id, 'quantity': 6},
                           headers=doctor_headers)
    assert response.status_code == 400
    assert 'Available: 5' in response.get_json()['error']

def test_update_remove_clear_and_count(client, doctor_headers, products):
    first = client.post('/api/cart/items', json={'product_id': products[0].id, 'quantity': 1},
                        headers=doctor_headers).get_json()['item']
    client.post('/api/cart/items', json={'product_id': products[1].id, 'quantity': 2}, headers=doctor_headers)

    response = client.put(f"/api/cart/items/{first['id']}", json={'quantity': 4}, headers=doctor_headers)
    assert response.status_code == 200
    assert client.get('/api/cart/count', headers=doctor_headers).get_json()['count'] == 6

    response = client.delete(f"/api/cart/items/{first['id']}", headers=doctor_headers)
    assert response.status_code == 200
    assert client.get('/api/cart/count', headers=doctor_headers).get_json()['count'] == 2

    response = client.delete('/api/cart/clear', headers=doctor_headers)
    assert response.status_code == 200
    assert client.get('/api/cart', headers=doctor_headers).get_json()['cart']['items'] == []

def test_cannot_touch_another_doctors_cart_line(client, factory, products, doctor_headers):
    other = factory.doctor()
    cart = factory.cart(other, [(products[0], 1)])

    response = client.put(f'/api/cart/items/{cart.items[0].id}', json={'quantity': 2}, headers=doctor_headers)
    assert response.status_code == 404
