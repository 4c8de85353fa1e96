from upkar.models import db, Notification

def add(user, title, read=False):
    notification = Notification.create_notification(user.id, title, f'{title} message', type='order')
    if read:
        notification.mark_as_read()
    db.session.commit()
    return notification

def test_list_and_unread_filter(client, doctor, doctor_headers):
    add(doctor.user, 'Order #1 processing', read=True)
    add(doctor.user, 'Order #1 shipped')

    body = client.get('/api/notifications', headers=doctor_headers).get_json()
    assert [n['title'] for n in body['notifications']] == ['Order #1 shipped', 'Order #1 processing']

    unread = client.get('/api/notifications?unread_only=true', headers=doctor_headers).get_json()
    assert [n['title'] for n in unread['notifications']] == ['Order #1 shipped']

    assert client.get('/api/notifications/unread-count', headers=doctor_headers).get_json()['count'] == 1

def test_list_is_limited_to_fifty(client, doctor, doctor_headers):
    for i in range(55):
        Notification.create_notification(doctor.user_id, f'Note {i}', 'message')
    db.session.commit()

    body = client.get('/api/notifications', headers=doctor_headers).get_json()
    assert len(body['notifications']) == 50

def test_mark_read_only_own(client, doctor, doctor_headers, admin, admin_headers):
    mine = add(doctor.user, 'Mine')
    theirs = add(admin, 'Admin only')

    response = client.put(f'/api/notifications/{mine.id}/read', headers=doctor_headers)
    assert response.status_code == 200
    assert response.get_json()['notification']['is_read'] is True

    assert client.put(f'/api/notifications/{theirs.id}/read', headers=doctor_headers).status_code == 404
    assert theirs.is_read is False

def test_mark_all_read(client, doctor, doctor_headers, admin):
    add(doctor.user, 'One')
    add(doctor.user, 'Two')
    add(admin, 'Admin')

    response = client.put('/api/notifications/read-all', headers=doctor_headers)

    assert response.get_json()['updated'] == 2
    assert Notification.query.filter_by(user_id=doctor.user_id, is_read=False).count() == 0
    assert Notification.query.filter_by(user_id=admin.id, is_read=False).count() == 1

def test_pending_doctor_can_read_notifications(client, pending_doctor, pending_headers):
    add(pending_doctor.user, 'Welcome')
    assert client.get('/api/notifications', headers=pending_headers).status_code == 200

def test_new_order_notifies_admins(client, admin, doctor, doctor_headers, products, factory):
    factory.cart(doctor, [(products[0], 1)])

    client.post('/api/orders', json={}, headers=doctor_headers)

    notification = Notification.query.filter_by(user_id=admin.id).one()
    assert notification.title == 'New order received'
    assert 'Paracetamol 500mg (1)' in notification.message
