# -*- coding: utf-8 -*-
"""
Pasarela de pago: firma de webhooks y creación de sesiones con el SDK de Stripe.
"""
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from app_shop.errors import ExternalServiceError, InvalidSignature
from app_shop.services import payment_gateway
from app_shop.services.payment_gateway import StripeCheckoutGateway, verify_webhook_event


SECRET = 'whsec_unit'
BODY = json.dumps({'id': 'evt_9', 'type': 'checkout.session.completed', 'data': {'object': {'id': 'cs_9'}}}).encode()


# ==============================================================================
# Firma
# ==============================================================================

def test_valid_signature_parses_event(sign):
    gateway = StripeCheckoutGateway('sk_test')
    event = gateway.verify_and_parse_webhook_event(BODY, sign(BODY, SECRET), SECRET, 300)
    assert event.id == 'evt_9'
    assert event.object == {'id': 'cs_9'}
    assert event.idempotency_key == 'evt_9_checkout.session.completed'


@pytest.mark.parametrize('header', [
    '',
    'garbage',
    't=123',
    'v1=abcdef',
])
def test_malformed_headers_are_rejected(header):
    with pytest.raises(InvalidSignature):
        verify_webhook_event(BODY, header, SECRET, 300)


def test_tampered_body_is_rejected(sign):
    header = sign(BODY, SECRET)
    with pytest.raises(InvalidSignature):
        verify_webhook_event(BODY + b' ', header, SECRET, 300)


def test_wrong_secret_is_rejected(sign):
    header = sign(BODY, 'other')
    with pytest.raises(InvalidSignature):
        verify_webhook_event(BODY, header, SECRET, 300)


def test_old_timestamp_is_rejected(sign):
    header = sign(BODY, SECRET, timestamp=int(time.time()) - 3600)
    with pytest.raises(InvalidSignature):
        verify_webhook_event(BODY, header, SECRET, 300)


def test_missing_secret_is_rejected(sign):
    with pytest.raises(InvalidSignature):
        verify_webhook_event(BODY, sign(BODY, SECRET), '', 300)


def test_signed_but_unreadable_body_is_rejected(sign):
    body = b'not json'
    with pytest.raises(InvalidSignature):
        verify_webhook_event(body, sign(body, SECRET), SECRET, 300)


def test_event_without_type_is_rejected(sign):
    body = json.dumps({'id': 'evt_1'}).encode()
    with pytest.raises(InvalidSignature):
        verify_webhook_event(body, sign(body, SECRET), SECRET, 300)


# ==============================================================================
# Sesiones alojadas
# ==============================================================================

class FakeSessions:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result or SimpleNamespace(id='cs_live_1', url='https://pay.test/cs_live_1')
        self.error = error

    def create(self, params=None, options=None):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return self.result


def fake_client(sessions):
    return SimpleNamespace(checkout=SimpleNamespace(sessions=sessions))


LINE_ITEMS = [
    {'name': 'Product A', 'amount': 50, 'quantity': 2},
    {'name': 'Tax', 'amount': 5.005, 'quantity': 1, 'description': 'VAT 5%'},
]


def test_create_hosted_session_sends_params():
    sessions = FakeSessions()
    gateway = StripeCheckoutGateway('sk_test', currency='aed', client=fake_client(sessions))

    session = gateway.create_hosted_session(
        LINE_ITEMS, 'https://shop/ok', 'https://shop/cancel', {'order_id': '5', 'user_id': '1'}, 'a@b.c',
    )

    assert session.session_id == 'cs_live_1'
    assert session.checkout_url == 'https://pay.test/cs_live_1'
    params = sessions.calls[0]
    assert params['mode'] == 'payment'
    assert params['success_url'] == 'https://shop/ok'
    assert params['line_items'][0] == {
        'price_data': {'currency': 'aed', 'unit_amount': 5000, 'product_data': {'name': 'Product A'}},
        'quantity': 2,
    }
    assert params['line_items'][1]['price_data']['unit_amount'] == 501
    assert params['line_items'][1]['price_data']['product_data']['description'] == 'VAT 5%'
    assert params['metadata'] == {'order_id': '5', 'user_id': '1'}
    assert params['payment_intent_data'] == {'metadata': {'order_id': '5', 'user_id': '1'}}
    assert params['customer_email'] == 'a@b.c'


def test_customer_email_is_optional():
    sessions = FakeSessions()
    StripeCheckoutGateway('sk_test', client=fake_client(sessions)).create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})
    assert 'customer_email' not in sessions.calls[0]


def test_stripe_error_is_masked():
    sessions = FakeSessions(error=stripe.APIError('Your card was declined (402)', http_status=402))
    gateway = StripeCheckoutGateway('sk_test', client=fake_client(sessions))
    with pytest.raises(ExternalServiceError) as exc:
        gateway.create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})
    assert exc.value.http_status == 400
    assert '402' not in exc.value.message


def test_connection_error_becomes_external_service_error():
    sessions = FakeSessions(error=stripe.APIConnectionError('read timed out'))
    with pytest.raises(ExternalServiceError):
        StripeCheckoutGateway('sk_test', client=fake_client(sessions)).create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})


def test_session_without_url_is_rejected():
    sessions = FakeSessions(result=SimpleNamespace(id='cs_1', url=None))
    with pytest.raises(ExternalServiceError):
        StripeCheckoutGateway('sk_test', client=fake_client(sessions)).create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})


def test_missing_secret_key():
    sessions = FakeSessions()
    with pytest.raises(ExternalServiceError):
        StripeCheckoutGateway('', client=fake_client(sessions)).create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})
    assert sessions.calls == []


def test_client_uses_configured_timeout_and_api_base(monkeypatch):
    built = {}

    def fake_requests_client(timeout=None, **kwargs):
        built['timeout'] = timeout
        return 'http-client'

    def fake_stripe_client(api_key, http_client=None, base_addresses=None, **kwargs):
        built.update(api_key=api_key, http_client=http_client, base_addresses=base_addresses)
        return fake_client(FakeSessions())

    monkeypatch.setattr(payment_gateway.stripe, 'RequestsClient', fake_requests_client)
    monkeypatch.setattr(payment_gateway.stripe, 'StripeClient', fake_stripe_client)

    gateway = StripeCheckoutGateway('sk_test', api_base='https://api.test/', timeout=7)
    gateway.create_hosted_session(LINE_ITEMS, 'ok', 'cancel', {})

    assert built == {
        'timeout': 7,
        'api_key': 'sk_test',
        'http_client': 'http-client',
        'base_addresses': {'api': 'https://api.test'},
    }


def test_timeout_is_clamped_by_settings(tmp_path):
    from app_shop.config import Settings

    assert Settings(data_dir=str(tmp_path), gateway_timeout=60).gateway_timeout == 10.0
    assert Settings(data_dir=str(tmp_path), gateway_timeout=1).gateway_timeout == 5.0
