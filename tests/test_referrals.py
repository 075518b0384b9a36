"""
ForexPro - Referral Tests
=========================
A refers B; B's first qualifying deposit pays A exactly once.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from ledger import balances, referrals
from ledger.exceptions import LedgerError
from models import ReferralBonus, Transaction, User


def signup(client, email, currency='KSH', referral_code=None):
    body = {'name': email.split('@')[0].title(), 'email': email, 'password': 'Password123', 'currency': currency}
    if referral_code:
        body['referralCode'] = referral_code
    data = client.post('/api/auth/signup', json=body).get_json()
    return data['user'], {'Authorization': f"Bearer {data['token']}"}


def deposit(client, headers, amount, currency='KSH'):
    return client.post('/api/deposit', json={'amount': amount, 'method': 'mpesa', 'currency': currency},
                       headers=headers)


def balance_of(user_id):
    from extensions import db
    db.session.expire_all()
    return db.session.get(User, user_id).balance


@pytest.fixture
def referrer(client):
    return signup(client, 'alice@example.com')


@pytest.fixture
def referred(client, referrer):
    user, _ = referrer
    return signup(client, 'bob@example.com', referral_code=user['referral_code'])


class TestReferralCompletion:

    def test_qualifying_deposit_pays_referrer_once(self, client, referrer, referred):
        alice, alice_headers = referrer
        bob, bob_headers = referred
        assert balance_of(alice['id']) == Decimal('200.00')

        response = deposit(client, bob_headers, 10000)
        assert response.status_code == 201
        assert response.get_json()['referralBonusCompleted'] is True
        assert balance_of(alice['id']) == Decimal('500.00')

        response = deposit(client, bob_headers, 20000)
        assert response.get_json()['referralBonusCompleted'] is False
        assert balance_of(alice['id']) == Decimal('500.00')

        bonus = ReferralBonus.query.filter_by(referred_id=bob['id']).one()
        assert bonus.status == 'completed'
        assert bonus.completed_at is not None

        payouts = Transaction.query.filter_by(user_id=alice['id'], method='referral').all()
        assert len(payouts) == 1
        assert payouts[0].amount == Decimal('300.00')
        assert payouts[0].reference_id == bob['id']

    def test_small_deposit_does_not_qualify(self, client, referrer, referred):
        alice, _ = referrer
        _, bob_headers = referred

        response = deposit(client, bob_headers, '9999.99')
        assert response.get_json()['referralBonusCompleted'] is False
        assert balance_of(alice['id']) == Decimal('200.00')
        assert ReferralBonus.query.one().status == 'pending'

    def test_foreign_currency_deposit_is_converted_before_the_threshold(self, client, referrer, referred):
        alice, _ = referrer
        _, bob_headers = referred

        # 100 USD is 12,976 KSH
        response = deposit(client, bob_headers, 100, currency='USD')
        assert response.get_json()['referralBonusCompleted'] is True
        assert balance_of(alice['id']) == Decimal('500.00')

    def test_usd_referred_user_threshold(self, client, referrer):
        alice, _ = referrer
        _, bob_headers = signup(client, 'bob@example.com', currency='USD', referral_code=alice['referral_code'])

        assert deposit(client, bob_headers, '66.66', currency='USD').get_json()['referralBonusCompleted'] is False
        assert deposit(client, bob_headers, '66.67', currency='USD').get_json()['referralBonusCompleted'] is True

    def test_bonus_is_paid_in_referrer_currency(self, client):
        alice, _ = signup(client, 'alice@example.com', currency='USD')
        _, bob_headers = signup(client, 'bob@example.com', referral_code=alice['referral_code'])

        deposit(client, bob_headers, 10000)
        assert balance_of(alice['id']) == Decimal('3.80')   # 1.5 signup + 2.3 referral

    def test_deposit_without_referrer(self, client, referrer):
        _, alice_headers = referrer
        response = deposit(client, alice_headers, 50000)
        assert response.status_code == 201
        assert response.get_json()['referralBonusCompleted'] is False

    def test_referral_failure_does_not_block_deposit(self, client, referrer, referred, monkeypatch):
        alice, _ = referrer
        bob, bob_headers = referred

        def broken(user, amount):
            raise LedgerError("referral store unavailable")

        monkeypatch.setattr('blueprints.payments.complete_referral_bonus', broken)

        response = deposit(client, bob_headers, 10000)
        assert response.status_code == 201
        assert response.get_json()['referralBonusCompleted'] is False
        assert Transaction.query.filter_by(user_id=bob['id'], type='deposit').count() == 1
        assert balance_of(alice['id']) == Decimal('200.00')

    def test_bonus_claimed_first_elsewhere(self, client, referrer, referred, competing_update):
        alice, _ = referrer
        bob, bob_headers = referred
        competing_update(referrals, update(ReferralBonus).where(ReferralBonus.referred_id == bob['id']).values(
            status='completed'))

        response = deposit(client, bob_headers, 10000)
        assert response.status_code == 201
        assert response.get_json()['referralBonusCompleted'] is False
        assert balance_of(alice['id']) == Decimal('200.00')
        assert Transaction.query.filter_by(user_id=alice['id'], method='referral').count() == 0

    def test_referrer_currency_switch_keeps_bonus_pending(self, client, referrer, referred, competing_update):
        alice, _ = referrer
        bob, bob_headers = referred
        competing_update(balances, update(User).where(User.id == alice['id']).values(
            currency='USD', balance=Decimal('1.54')))

        response = deposit(client, bob_headers, 10000)
        assert response.status_code == 201
        assert response.get_json()['referralBonusCompleted'] is False
        assert ReferralBonus.query.filter_by(referred_id=bob['id']).one().status == 'pending'
        assert balance_of(alice['id']) == Decimal('200.00')

        # The next qualifying deposit pays it
        response = deposit(client, bob_headers, 10000)
        assert response.get_json()['referralBonusCompleted'] is True
        assert balance_of(alice['id']) == Decimal('500.00')


class TestReferralViews:

    def test_stats(self, client, referrer, referred):
        _, alice_headers = referrer
        _, bob_headers = referred
        signup(client, 'carol@example.com', referral_code=referrer[0]['referral_code'])
        deposit(client, bob_headers, 10000)

        data = client.get('/api/referral/stats', headers=alice_headers).get_json()
        assert data['totalReferrals'] == 2
        assert data['completedReferrals'] == 1
        assert data['pendingReferrals'] == 1
        assert data['totalBonus'] == 300.0
        assert data['pendingBonus'] == 300.0
        assert data['bonusPerReferral'] == 300.0
        assert data['qualifyingDeposit'] == 10000.0
        assert data['formattedTotalBonus'] == 'KSh 300.00'
        assert data['referralCode'] == referrer[0]['referral_code']

    def test_history_lists_referred_users(self, client, referrer, referred):
        _, alice_headers = referrer
        bob, bob_headers = referred
        deposit(client, bob_headers, 10000)

        history = client.get('/api/referral/history', headers=alice_headers).get_json()['history']
        assert len(history) == 1
        assert history[0]['userId'] == bob['id']
        assert history[0]['status'] == 'completed'
        assert history[0]['bonus'] == 300.0
        assert history[0]['completedAt'] is not None

    def test_referral_lists(self, client, referrer, referred):
        _, alice_headers = referrer
        bob, _ = referred

        referrals = client.get('/api/referrals', headers=alice_headers).get_json()['referrals']
        assert referrals[0]['referredName'] == bob['name']
        assert referrals[0]['formattedAmount'] == 'KSh 300.00'

        bonuses = client.get('/api/user/referral-bonuses', headers=alice_headers).get_json()['bonuses']
        assert bonuses[0]['status'] == 'pending'

        users = client.get('/api/user/referred-users', headers=alice_headers).get_json()['users']
        assert users == [{
            'id': bob['id'],
            'name': bob['name'],
            'email': 'bob@example.com',
            'joinedAt': users[0]['joinedAt'],
            'bonusStatus': 'pending',
        }]

    def test_demo_stats(self, client, demo_headers):
        data = client.get('/api/referral/stats', headers=demo_headers).get_json()
        assert data['totalReferrals'] == 0
        assert data['referralCode'] is None
