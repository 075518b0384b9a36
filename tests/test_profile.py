"""
ForexPro - Profile and Dashboard Tests
======================================
"""

import io
import os
from decimal import Decimal

from extensions import db
from models import Transaction


def png(size=64):
    return io.BytesIO(b'\x89PNG\r\n\x1a\n' + b'\x00' * size)


def upload(client, headers, stream, filename, mimetype='image/png'):
    return client.post(
        '/api/user/profile-image',
        data={'profileImage': (stream, filename, mimetype)},
        headers=headers,
        content_type='multipart/form-data',
    )


class TestGetProfile:

    def test_profile_payload(self, client, test_user, user_headers):
        response = client.get('/api/user/profile', headers=user_headers)
        assert response.status_code == 200

        user = response.get_json()['user']
        assert user['email'] == 'test@example.com'
        assert user['formattedBalance'] == 'KSh 1,000.00'
        assert user['convertedBalance'] == {'amount': 7.71, 'currency': 'USD', 'formatted': '$7.71'}
        assert user['bonusCount'] == 0
        assert user['completedReferrals'] == 0
        assert 'password_hash' not in user

    def test_bonus_count(self, client, test_user, user_headers):
        db.session.add(Transaction(user_id=test_user.id, type='bonus', method='signup_bonus',
                                   amount=Decimal('200'), currency='KSH', status='completed'))
        db.session.commit()
        user = client.get('/api/user/profile', headers=user_headers).get_json()['user']
        assert user['bonusCount'] == 1

    def test_demo_profile(self, client, demo_headers):
        user = client.get('/api/user/profile', headers=demo_headers).get_json()['user']
        assert user['isDemo'] is True
        assert user['name'] == 'Demo User'

    def test_deleted_account(self, client, test_user, user_headers):
        db.session.delete(test_user)
        db.session.commit()
        response = client.get('/api/user/profile', headers=user_headers)
        assert response.status_code == 404
        assert response.get_json()['error'] == 'User not found'


class TestUpdateProfile:

    def test_update_fields(self, client, test_user, user_headers, refresh):
        response = client.put('/api/user/profile', json={
            'name': 'New Name', 'phone': '+254712345678', 'country': 'Uganda',
        }, headers=user_headers)
        assert response.status_code == 200

        user = refresh(test_user)
        assert user.name == 'New Name'
        assert user.phone == '+254712345678'
        assert user.country == 'Uganda'

    def test_email_taken(self, client, test_user, user_headers, make_user, refresh):
        make_user(email='taken@example.com')
        response = client.put('/api/user/profile', json={'email': 'Taken@Example.com'}, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Email already in use'
        assert refresh(test_user).email == 'test@example.com'

    def test_invalid_phone(self, client, user_headers):
        response = client.put('/api/user/profile', json={'phone': 'call me'}, headers=user_headers)
        assert response.status_code == 400

    def test_currency_switch_converts_balance(self, client, test_user, user_headers, refresh):
        response = client.put('/api/user/profile', json={'currency': 'USD'}, headers=user_headers)
        assert response.status_code == 200
        data = response.get_json()['user']
        assert data['currency'] == 'USD'
        assert data['formattedBalance'] == '$7.71'

        user = refresh(test_user)
        assert user.currency == 'USD'
        assert user.balance == Decimal('7.71')

    def test_same_currency_is_untouched(self, client, test_user, user_headers, refresh):
        client.put('/api/user/profile', json={'currency': 'KSH'}, headers=user_headers)
        assert refresh(test_user).balance == Decimal('1000.00')

    def test_demo_cannot_update(self, client, demo_headers):
        response = client.put('/api/user/profile', json={'name': 'Demo'}, headers=demo_headers)
        assert response.status_code == 403


class TestChangePassword:

    def test_change_password(self, client, test_user, user_headers):
        response = client.put('/api/user/password', json={
            'currentPassword': 'Password123',
            'newPassword': 'NewPassword456',
            'confirmPassword': 'NewPassword456',
        }, headers=user_headers)
        assert response.status_code == 200

        login = client.post('/api/auth/login', json={'email': 'test@example.com', 'password': 'NewPassword456'})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, user_headers):
        response = client.put('/api/user/password', json={
            'currentPassword': 'wrong-one',
            'newPassword': 'NewPassword456',
            'confirmPassword': 'NewPassword456',
        }, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Current password is incorrect'

    def test_mismatch(self, client, user_headers):
        response = client.put('/api/user/password', json={
            'currentPassword': 'Password123',
            'newPassword': 'NewPassword456',
            'confirmPassword': 'Different789',
        }, headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Passwords do not match'

    def test_short_new_password(self, client, user_headers):
        response = client.put('/api/user/password', json={
            'currentPassword': 'Password123',
            'newPassword': 'short',
            'confirmPassword': 'short',
        }, headers=user_headers)
        assert response.status_code == 400


class TestProfileImage:

    def test_upload_and_serve(self, app, client, test_user, user_headers, refresh):
        response = upload(client, user_headers, png(), 'me.png')
        assert response.status_code == 200

        path = response.get_json()['profileImage']
        assert path.startswith(f'/uploads/profiles/profile-{test_user.id}-')
        assert path.endswith('.png')
        assert refresh(test_user).profile_image == path

        served = client.get(path)
        assert served.status_code == 200
        assert served.data.startswith(b'\x89PNG')

    def test_replacing_removes_old_file(self, app, client, user_headers):
        upload(client, user_headers, png(), 'first.png')
        second = upload(client, user_headers, png(), 'second.jpg', 'image/jpeg').get_json()['profileImage']

        files = os.listdir(app.config['UPLOAD_DIR'])
        assert files == [second.rsplit('/', 1)[1]]

    def test_no_file(self, client, user_headers):
        response = client.post('/api/user/profile-image', data={}, headers=user_headers,
                               content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'No image uploaded'

    def test_not_an_image(self, client, user_headers):
        response = upload(client, user_headers, io.BytesIO(b'#!/bin/sh'), 'run.sh', 'text/x-sh')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Only image files are allowed'

    def test_too_large(self, client, user_headers):
        response = upload(client, user_headers, png(3 * 1024 * 1024), 'huge.png')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Image must be 3MB or smaller'

    def test_demo_cannot_upload(self, client, demo_headers):
        response = upload(client, demo_headers, png(), 'me.png')
        assert response.status_code == 403


class TestDashboard:

    def test_dashboard(self, client, test_user, user_headers):
        client.post('/api/bots', json={'name': 'Starter', 'investment': 500}, headers=user_headers)

        data = client.get('/api/dashboard', headers=user_headers).get_json()
        assert data['balance'] == 500.0
        assert data['formattedBalance'] == 'KSh 500.00'
        assert data['activeBots'] == 1
        assert data['bots']['active'] == 1
        assert data['bots']['formattedInvested'] == 'KSh 500.00'
        assert [t['type'] for t in data['recentTransactions']] == ['purchase']

    def test_demo_dashboard(self, client, demo_headers):
        data = client.get('/api/dashboard', headers=demo_headers).get_json()
        assert data['user']['isDemo'] is True
        assert data['recentTransactions'] == []
