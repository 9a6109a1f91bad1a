from app.models import ActivityLog, User, UserRole


def payload(response):
    return response.get_json()


NEW_USER = {
    'name': 'Priya Nair',
    'email': 'Priya@Example.com',
    'role': UserRole.FINANCE,
    'password': 'Ledger#2024',
    'phone': '+91 98470 12345',
}


class TestUserAdministration:

    def test_admin_creates_user_who_can_log_in(self, client, auth_headers, db):
        response = client.post('/api/users', json=NEW_USER, headers=auth_headers())

        assert response.status_code == 201
        data = payload(response)['data']
        assert data['email'] == 'priya@example.com'
        assert data['role'] == UserRole.FINANCE
        assert 'password_hash' not in data

        login = client.post('/api/auth/login', json={'email': 'priya@example.com', 'password': 'Ledger#2024'})
        assert login.status_code == 200
        assert db.session.query(ActivityLog).filter_by(entity_type='user', activity_type='create').count() == 1

    def test_weak_password_is_rejected(self, client, auth_headers):
        response = client.post('/api/users', json=dict(NEW_USER, password='password'), headers=auth_headers())

        assert response.status_code == 400
        assert 'password' in payload(response)['errors']

    def test_unknown_role_is_rejected(self, client, auth_headers):
        response = client.post('/api/users', json=dict(NEW_USER, role='Courier'), headers=auth_headers())

        assert response.status_code == 400
        assert 'role' in payload(response)['errors']

    def test_duplicate_email(self, client, auth_headers):
        response = client.post('/api/users', json=dict(NEW_USER, email='sales@example.com'),
                               headers=auth_headers())

        assert response.status_code == 409

    def test_list_filters_by_role(self, client, auth_headers):
        response = client.get('/api/users?role=Operations', headers=auth_headers())

        items = payload(response)['data']['items']
        assert [item['email'] for item in items] == ['operations@example.com']

    def test_update_role_and_password(self, client, auth_headers, users):
        sales = users[UserRole.SALES]

        response = client.put(f'/api/users/{sales.id}', json={
            'role': UserRole.OPERATIONS, 'password': 'Courier#2025'
        }, headers=auth_headers())

        assert payload(response)['data']['role'] == UserRole.OPERATIONS
        login = client.post('/api/auth/login', json={'email': 'sales@example.com', 'password': 'Courier#2025'})
        assert login.status_code == 200

    def test_delete_deactivates(self, client, auth_headers, users, db):
        finance = users[UserRole.FINANCE]

        response = client.delete(f'/api/users/{finance.id}', headers=auth_headers())

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(User, finance.id).is_active is False
        login = client.post('/api/auth/login', json={'email': 'finance@example.com', 'password': 'secret'})
        assert login.status_code == 403

    def test_cannot_delete_yourself(self, client, auth_headers, users):
        response = client.delete(f'/api/users/{users[UserRole.ADMIN].id}', headers=auth_headers())

        assert response.status_code == 409

    def test_cannot_demote_yourself(self, client, auth_headers, users):
        response = client.put(f'/api/users/{users[UserRole.ADMIN].id}', json={'role': UserRole.SALES},
                              headers=auth_headers())

        assert response.status_code == 409

    def test_missing_user(self, client, auth_headers):
        assert client.get('/api/users/999', headers=auth_headers()).status_code == 404

    def test_other_roles_are_refused(self, client, auth_headers):
        for role in (UserRole.SALES, UserRole.OPERATIONS, UserRole.FINANCE):
            assert client.get('/api/users', headers=auth_headers(role)).status_code == 403
            assert client.post('/api/users', json=NEW_USER, headers=auth_headers(role)).status_code == 403
