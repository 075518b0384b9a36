"""
ForexPro - Application Wiring Tests
===================================
Service selection, health check, pages, error bodies and the deposit address cache.
"""

import pytest

from ledger.cache import DepositAddressCache


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestServices:

    def test_healthz(self, client):
        response = client.get('/healthz')
        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['service'] == 'all'
        assert data['timestamp']

    def test_security_headers(self, client):
        response = client.get('/healthz')
        assert response.headers['X-Frame-Options'] == 'SAMEORIGIN'
        assert response.headers['X-Content-Type-Options'] == 'nosniff'

    @pytest.mark.parametrize('service, present, absent', [
        ('trading', '/api/bots', '/api/auth/login'),
        ('admin', '/api/admin/stats', '/api/bots'),
        ('dashboard', '/api/user/profile', '/api/withdraw'),
    ])
    def test_service_blueprints(self, service, present, absent):
        from app import create_app
        from config import TestingConfig

        service_app = create_app(service, config_class=TestingConfig)
        rules = {rule.rule for rule in service_app.url_map.iter_rules()}
        assert present in rules
        assert absent not in rules
        assert '/healthz' in rules
        assert '/dashboard' in rules

    def test_unknown_service(self):
        from app import create_app
        from config import TestingConfig

        with pytest.raises(ValueError):
            create_app('billing', config_class=TestingConfig)


class TestErrors:

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nope')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Not found'}

    def test_wrong_method_is_json(self, client):
        response = client.delete('/api/auth/login')
        assert response.status_code == 405
        assert response.get_json()['error'] == 'Method not allowed'

    def test_non_object_body(self, client):
        response = client.post('/api/auth/login', json=['a', 'b'])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid or missing JSON body'

    def test_missing_field_message(self, client):
        response = client.post('/api/auth/login', json={'email': 'a@example.com'})
        assert response.status_code == 400
        assert response.get_json()['errors'] == [{'field': 'password', 'message': 'password is required'}]


class TestPages:

    def test_missing_page(self, client):
        response = client.get('/dashboard')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Page not found'

    def test_page_served_by_route_and_file_name(self, app, client):
        import os

        os.makedirs(app.config['PUBLIC_DIR'], exist_ok=True)
        with open(os.path.join(app.config['PUBLIC_DIR'], 'trading.html'), 'w') as fh:
            fh.write('<h1>Trading</h1>')

        assert b'Trading' in client.get('/trading').data
        assert b'Trading' in client.get('/trading.html').data


class TestDepositAddressCache:

    def test_entries_expire(self):
        clock = FakeClock()
        cache = DepositAddressCache(ttl=300, clock=clock)
        cache.set('usdt', 'bsc', {'address': '0xabc'})

        clock.now += 299
        assert cache.get('USDT', 'BSC') == {'address': '0xabc'}

        clock.now += 1
        assert cache.get('USDT', 'BSC') is None

    def test_get_or_load_calls_loader_once(self):
        calls = []

        def loader():
            calls.append(1)
            return {'address': '0xabc'}

        cache = DepositAddressCache(ttl=300, clock=FakeClock())
        assert cache.get_or_load('USDT', 'BSC', loader) == {'address': '0xabc'}
        assert cache.get_or_load('USDT', 'BSC', loader) == {'address': '0xabc'}
        assert len(calls) == 1

    def test_missing_value_is_not_cached(self):
        calls = []

        def loader():
            calls.append(1)
            return None

        cache = DepositAddressCache(ttl=300, clock=FakeClock())
        assert cache.get_or_load('USDT', 'BSC', loader) is None
        assert cache.get_or_load('USDT', 'BSC', loader) is None
        assert len(calls) == 2

    def test_invalidate_and_clear(self):
        cache = DepositAddressCache(ttl=300, clock=FakeClock())
        cache.set('USDT', 'BSC', {'address': '0xabc'})
        cache.set('BTC', 'BTC', {'address': 'bc1q'})

        cache.invalidate('USDT', 'BSC')
        assert cache.get('USDT', 'BSC') is None
        assert cache.get('BTC', 'BTC') == {'address': 'bc1q'}

        cache.clear()
        assert cache.get('BTC', 'BTC') is None
