# -*- coding: utf-8 -*-
"""
Fixtures compartidas: datos sembrados en una carpeta temporal, contenedor
aislado, pasarela falsa y cliente Flask con sesión iniciada.
"""
import hashlib
import hmac
import json
import time

import pytest

from app_shop.app_container import AppContainer
from app_shop.config import Settings
from app_shop.errors import ExternalServiceError
from app_shop.repositories import (
    DeliveryPricingRepository,
    ProductRepository,
    TaxRepository,
)
from app_shop.services.payment_gateway import HostedSession, verify_webhook_event


WEBHOOK_SECRET = 'whsec_test_secret'

USER_ID = 1
OTHER_USER_ID = 2

PUBLISHED = '2024-01-01T00:00:00Z'

PRODUCTS = [
    # A: 50 sin variaciones
    {'id': 1, 'name': 'Product A', 'price': 50, 'stock': 10, 'published_at': PUBLISHED, 'sku': 'A-1'},
    # B: 30 con variaciones (+10 en M, sin stock en L)
    {
        'id': 2, 'name': 'Product B', 'price': 30, 'stock': 0, 'has_variations': True,
        'published_at': PUBLISHED, 'sku': 'B-1',
        'variations': [
            {'id': 'v1', 'size': 'M', 'color': 'Red', 'sku': 'B-1-M', 'price_adjustment': 10, 'stock': 5},
            {'id': 'v2', 'size': 'L', 'color': 'Red', 'sku': 'B-1-L', 'price_adjustment': 0, 'stock': 0},
        ],
    },
    # C: no publicado
    {'id': 3, 'name': 'Draft product', 'price': 20, 'stock': 5, 'published_at': None},
    # D: en oferta (80 en lugar de 100) hasta 2099
    {
        'id': 4, 'name': 'Sale product', 'price': 80, 'original_price': 100, 'on_sale': True,
        'sale_end_date': '2099-01-01T00:00:00Z', 'stock': 3, 'published_at': PUBLISHED,
    },
]

TAXES = [
    {'id': 1, 'name': 'VAT', 'rate': 5, 'minimum_amount': 0, 'maximum_amount': None,
     'is_active': True, 'created_at': '2024-01-01T00:00:00+00:00'},
]

DELIVERY_PRICING = [
    {'id': 1, 'type': 'Standard', 'amount': 20},
    {'id': 2, 'type': 'Express', 'amount': 35},
    {'id': 3, 'type': 'Same-Day', 'amount': 50},
    {'id': 4, 'type': 'Scheduled', 'amount': 25},
]

SHIPPING_ADDRESS = {
    'name': 'Jane Doe',
    'addressLine1': 'Building 5, Street 12',
    'city': 'Dubai',
    'emirate': 'Dubai',
    'phoneNumber': '+971500000000',
    'email': 'jane@example.com',
}


def sign_payload(payload, secret, timestamp=None):
    """Cabecera Stripe-Signature tal como la envía Stripe: t=<ts>,v1=<hmac-sha256>."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f'{timestamp}.'.encode('utf-8') + payload
    digest = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


@pytest.fixture
def sign():
    return sign_payload


class FakeGateway:
    """Pasarela en memoria: registra las sesiones creadas y verifica firmas reales."""

    def __init__(self):
        self.sessions = []
        self.fail_next = False

    def create_hosted_session(self, line_items, success_url, cancel_url, metadata, customer_email=None):
        if self.fail_next:
            self.fail_next = False
            raise ExternalServiceError()
        session_id = f'cs_test_{len(self.sessions) + 1}'
        self.sessions.append({
            'session_id': session_id,
            'line_items': line_items,
            'success_url': success_url,
            'cancel_url': cancel_url,
            'metadata': metadata,
            'customer_email': customer_email,
        })
        return HostedSession(session_id=session_id, checkout_url=f'https://checkout.test/{session_id}')

    def verify_and_parse_webhook_event(self, raw_body, signature_header, secret, tolerance_seconds=300):
        return verify_webhook_event(raw_body, signature_header, secret, tolerance_seconds)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path),
        secret_key='test-secret',
        stripe_secret_key='sk_test',
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_url='http://shop.test',
    )


@pytest.fixture
def seeded(settings):
    ProductRepository(settings.data_dir).save_all(PRODUCTS)
    TaxRepository(settings.data_dir).save_all(TAXES)
    DeliveryPricingRepository(settings.data_dir).save_all(DELIVERY_PRICING)
    return settings


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def container(seeded, gateway):
    AppContainer.reset_instance()
    c = AppContainer(settings=seeded, gateway=gateway)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture
def checkout_data(shipping_address):
    return {
        'deliveryType': 'Standard',
        'paymentMethod': 'card',
        'shippingAddress': shipping_address,
    }


@pytest.fixture
def signed_webhook():
    """Devuelve (cuerpo, cabecera) para un evento de la pasarela."""
    def _build(event_type, obj, event_id='evt_1', secret=WEBHOOK_SECRET, timestamp=None):
        body = json.dumps({
            'id': event_id,
            'type': event_type,
            'created': int(time.time()),
            'data': {'object': obj},
        }).encode('utf-8')
        return body, sign_payload(body, secret, timestamp)
    return _build


@pytest.fixture
def completed_session():
    """Objeto checkout.session de un pago exitoso."""
    def _build(order, session_id='cs_test_1'):
        return {
            'id': session_id,
            'payment_intent': 'pi_test_1',
            'customer': 'cus_test_1',
            'payment_status': 'paid',
            'amount_total': int(round(order.total_amount * 100)),
            'currency': 'aed',
            'customer_details': {'email': 'jane@example.com'},
            'metadata': {'order_id': str(order.id), 'user_id': str(order.user_id)},
        }
    return _build


@pytest.fixture
def client(container):
    from app_shop.main import app

    app.config['TESTING'] = True
    with app.test_client() as c:
        with c.session_transaction() as sess:
            sess['user_id'] = USER_ID
            sess['role'] = 'customer'
            sess['email'] = 'jane@example.com'
        yield c


@pytest.fixture
def anonymous_client(container):
    from app_shop.main import app

    app.config['TESTING'] = True
    # Not used as a context manager: nesting two preserving test clients
    # makes Flask pop their request contexts in the wrong order on teardown.
    yield app.test_client()
