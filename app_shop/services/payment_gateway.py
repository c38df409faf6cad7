# ==============================================================================
# PASARELA DE PAGO - Checkout alojado + verificación de webhooks (Stripe)
# ==============================================================================
# La pasarela es un colaborador externo. Esta aplicación solo:
#   1. crea sesiones de checkout alojado (el cliente paga en la web de Stripe)
#   2. verifica la firma de los webhooks y los convierte en WebhookEvent
#
# Ambas cosas pasan por el SDK oficial (paquete `stripe`):
#   - stripe.StripeClient(...).checkout.sessions.create(...)
#   - stripe.Webhook.construct_event(cuerpo, cabecera, secreto, tolerancia)
#
# Los montos viajan en unidades menores (céntimos).
# Las llamadas HTTP usan RequestsClient con un timeout de 5-10 segundos.
# ==============================================================================

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import stripe

from app_shop.errors import ExternalServiceError, InvalidSignature
from app_shop.utils import to_minor_units


logger = logging.getLogger(__name__)


@dataclass
class HostedSession:
    """Sesión de checkout alojado creada en la pasarela."""
    session_id: str
    checkout_url: str


@dataclass
class WebhookEvent:
    """Evento verificado de la pasarela."""
    id: str
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    created: Optional[int] = None

    @property
    def object(self) -> Dict[str, Any]:
        """Objeto principal del evento (sesión, payment intent, factura...)."""
        return self.data.get('object') or {}

    @property
    def idempotency_key(self) -> str:
        return f'{self.id}_{self.type}'


@runtime_checkable
class PaymentGateway(Protocol):
    """Contrato con la pasarela de pago."""

    def create_hosted_session(
        self,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> HostedSession:
        ...

    def verify_and_parse_webhook_event(
        self,
        raw_body: bytes,
        signature_header: str,
        secret: str,
        tolerance_seconds: int,
    ) -> WebhookEvent:
        ...


# ==============================================================================
# WEBHOOKS
# ==============================================================================

def verify_webhook_event(raw_body: bytes, signature_header: str, secret: str, tolerance_seconds: int = 300) -> WebhookEvent:
    """
    Verifica la firma con el SDK y devuelve el evento.

    Raises:
        InvalidSignature: secreto vacío, cabecera mal formada, firma distinta,
                          marca de tiempo fuera de tolerancia o cuerpo ilegible
    """
    if not secret:
        raise InvalidSignature('Secreto de webhook no configurado')

    try:
        stripe.Webhook.construct_event(raw_body, signature_header or '', secret, tolerance=tolerance_seconds)
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(f'Firma inválida: {e.user_message or e}') from e
    except ValueError as e:
        raise InvalidSignature('Cuerpo del webhook ilegible') from e

    return parse_event(raw_body)


def parse_event(raw_body: bytes) -> WebhookEvent:
    """Convierte un cuerpo ya verificado en WebhookEvent (dicts planos)."""
    try:
        payload = json.loads(raw_body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidSignature('Cuerpo del webhook ilegible') from e

    if not isinstance(payload, dict) or not payload.get('id') or not payload.get('type'):
        raise InvalidSignature('Evento sin id o tipo')

    return WebhookEvent(
        id=str(payload['id']),
        type=str(payload['type']),
        data=payload.get('data') or {},
        created=payload.get('created'),
    )


# ==============================================================================
# CHECKOUT ALOJADO
# ==============================================================================

class StripeCheckoutGateway:
    """
    Pasarela Stripe (API de Checkout Sessions).

    Cada línea recibida tiene la forma:
        {'name': str, 'amount': float (unidades mayores), 'quantity': int,
         'description': str opcional}
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = 'https://api.stripe.com',
        timeout: float = 10.0,
        currency: str = 'aed',
        client: Optional[Any] = None,
    ):
        """
        Args:
            secret_key: Clave privada de Stripe
            api_base: URL base de la API
            timeout: Timeout (s) de cada llamada HTTP
            currency: Moneda de los montos
            client: StripeClient ya construido (por defecto se crea al primer uso)
        """
        self.secret_key = secret_key
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.currency = currency
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = stripe.StripeClient(
                self.secret_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                base_addresses={'api': self.api_base},
            )
        return self._client

    def build_session_params(
        self,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'mode': 'payment',
            'success_url': success_url,
            'cancel_url': cancel_url,
            'metadata': metadata,
            # El payment intent también lleva los metadatos (eventos payment_intent.*)
            'payment_intent_data': {'metadata': metadata},
            'line_items': [],
        }
        for item in line_items:
            product_data = {'name': item['name']}
            if item.get('description'):
                product_data['description'] = item['description']
            params['line_items'].append({
                'price_data': {
                    'currency': self.currency,
                    'unit_amount': to_minor_units(item['amount']),
                    'product_data': product_data,
                },
                'quantity': int(item.get('quantity', 1)),
            })
        if customer_email:
            params['customer_email'] = customer_email
        return params

    def create_hosted_session(
        self,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> HostedSession:
        """
        Crea una sesión de checkout alojado.

        Raises:
            ExternalServiceError: sin clave configurada o cualquier error de
                                  Stripe (red, timeout, petición rechazada)
        """
        if not self.secret_key:
            logger.error('STRIPE_SECRET_KEY no configurada')
            raise ExternalServiceError('La pasarela de pago no está configurada')

        params = self.build_session_params(line_items, success_url, cancel_url, metadata, customer_email)
        try:
            session = self.client.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            logger.error('Error creando sesión de pago: %s', e)
            raise ExternalServiceError() from e

        session_id = getattr(session, 'id', None)
        checkout_url = getattr(session, 'url', None)
        if not session_id or not checkout_url:
            logger.error('Sesión de Stripe sin id/url')
            raise ExternalServiceError()

        logger.info('Sesión de pago %s creada', session_id)
        return HostedSession(session_id=session_id, checkout_url=checkout_url)

    def verify_and_parse_webhook_event(
        self,
        raw_body: bytes,
        signature_header: str,
        secret: str,
        tolerance_seconds: int = 300,
    ) -> WebhookEvent:
        return verify_webhook_event(raw_body, signature_header, secret, tolerance_seconds)
