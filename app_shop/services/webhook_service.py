# ==============================================================================
# SERVICIO DE WEBHOOKS DE PAGO
# ==============================================================================
# Aplica los eventos asíncronos de la pasarela a pedidos, pagos y carritos.
#
# RESPUESTAS (la pasarela reintenta ante cualquier respuesta no 2xx):
#   400 -> solo firma inválida o secreto no configurado
#   200 -> todo lo demás, incluso errores de procesamiento (se registran en log)
#
# IDEMPOTENCIA:
#   clave = "<event id>_<event type>", guardada en webhook_events.json.
#   Un evento repetido no tiene efectos. Además, un pedido ya pagado no se
#   vuelve a procesar (converge con el reintento de pago del usuario).
# ==============================================================================

import logging
from typing import Any, Dict, Tuple

from app_shop.config import Settings
from app_shop.errors import InvalidSignature, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import PaymentMethod, PaymentStatus
from app_shop.performance_logger import profile_function
from app_shop.repositories.interfaces import IWebhookEventRepository
from app_shop.services.cart_service import CartService
from app_shop.services.notification_service import NotificationService
from app_shop.services.order_service import OrderService
from app_shop.services.payment_gateway import PaymentGateway, WebhookEvent
from app_shop.services.payment_service import PaymentService
from app_shop.utils import now_iso, to_float


logger = logging.getLogger(__name__)


CHECKOUT_SESSION_COMPLETED = 'checkout.session.completed'
PAYMENT_INTENT_SUCCEEDED = 'payment_intent.succeeded'
PAYMENT_INTENT_FAILED = 'payment_intent.payment_failed'
INVOICE_PAYMENT_SUCCEEDED = 'invoice.payment_succeeded'
INVOICE_PAYMENT_FAILED = 'invoice.payment_failed'

SUPPORTED_EVENTS = frozenset([
    CHECKOUT_SESSION_COMPLETED,
    PAYMENT_INTENT_SUCCEEDED,
    PAYMENT_INTENT_FAILED,
    INVOICE_PAYMENT_SUCCEEDED,
    INVOICE_PAYMENT_FAILED,
])


class WebhookService:
    """Reconciliación de eventos de la pasarela de pago."""

    def __init__(
        self,
        gateway: PaymentGateway,
        settings: Settings,
        event_repo: IWebhookEventRepository,
        order_service: OrderService,
        payment_service: PaymentService,
        cart_service: CartService,
        notification_service: NotificationService,
        locks: KeyedLockRegistry,
    ):
        self.gateway = gateway
        self.settings = settings
        self.event_repo = event_repo
        self.order_service = order_service
        self.payment_service = payment_service
        self.cart_service = cart_service
        self.notification_service = notification_service
        self.locks = locks

        self._handlers = {
            CHECKOUT_SESSION_COMPLETED: self._handle_checkout_completed,
            PAYMENT_INTENT_FAILED: self._handle_payment_intent_failed,
            PAYMENT_INTENT_SUCCEEDED: self._log_only,
            INVOICE_PAYMENT_SUCCEEDED: self._log_only,
            INVOICE_PAYMENT_FAILED: self._log_only,
        }

    # =========================================================================
    # ENTRADA
    # =========================================================================

    @profile_function(name='Procesar webhook de pago')
    def handle(self, raw_body: bytes, signature: str) -> Tuple[Dict[str, Any], int]:
        """
        Verifica y procesa un webhook.

        Args:
            raw_body: Cuerpo HTTP sin parsear (la firma se calcula sobre él)
            signature: Cabecera Stripe-Signature

        Returns:
            (cuerpo JSON, código HTTP)
        """
        secret = self.settings.stripe_webhook_secret
        if not secret:
            logger.error('Webhook recibido pero STRIPE_WEBHOOK_SECRET no está configurado')
            return {'ok': False, 'error': 'Webhook no configurado', 'kind': 'invalid_signature'}, 400

        try:
            event = self.gateway.verify_and_parse_webhook_event(
                raw_body, signature or '', secret, self.settings.webhook_tolerance,
            )
        except InvalidSignature as e:
            logger.warning('Webhook rechazado: %s', e.message)
            return {'ok': False, 'error': e.message, 'kind': e.kind}, 400

        if event.type not in SUPPORTED_EVENTS:
            logger.info('Evento %s (%s) ignorado', event.id, event.type)
            return {'received': True, 'message': 'Event type not handled'}, 200

        key = event.idempotency_key
        with self.locks.hold(f'webhook:{key}'):
            if self.event_repo.has(key):
                logger.info('Evento %s ya procesado', key)
                return {'received': True, 'message': 'Event already processed'}, 200

            try:
                self._handlers[event.type](event)
            except Exception:
                logger.exception('Error procesando evento %s', key)
                return {'received': True, 'error': 'Webhook processing failed'}, 200

            self.event_repo.add(key)

        return {'received': True}, 200

    # =========================================================================
    # MANEJADORES
    # =========================================================================

    @staticmethod
    def _metadata_ids(obj: Dict[str, Any]) -> Tuple[Any, Any]:
        metadata = obj.get('metadata') or {}
        return metadata.get('order_id'), metadata.get('user_id')

    def _handle_checkout_completed(self, event: WebhookEvent) -> None:
        """
        Pago confirmado: pedido pagado, pago completed, carrito vacío y
        notificación de confirmación.
        """
        session = event.object
        order_id, user_id = self._metadata_ids(session)
        if not order_id or not user_id:
            raise ValidationError(f'Sesión {session.get("id")} sin order_id/user_id en metadata')

        with self.locks.hold(f'order:{order_id}'):
            order = self.order_service.get_order(order_id)
            if order.is_paid:
                logger.info('Pedido %s ya estaba pagado; evento %s sin efectos', order.id, event.id)
                return
            if str(order.user_id) != str(user_id):
                logger.warning('Metadata user_id %s no coincide con el dueño del pedido %s', user_id, order.id)

            amount_total = session.get('amount_total')
            amount = to_float(amount_total) / 100 if amount_total is not None else order.total_amount

            self.payment_service.upsert_for_order(
                order_id=order.id,
                user_id=order.user_id,
                amount=amount,
                payment_method=PaymentMethod.CARD.value,
                status=PaymentStatus.COMPLETED.value,
                transaction_id=session.get('payment_intent') or session.get('id'),
                payment_details={
                    'stripeSessionId': session.get('id'),
                    'stripeCustomerId': session.get('customer'),
                    'paymentIntentId': session.get('payment_intent'),
                    'paymentStatus': session.get('payment_status'),
                    'amountTotal': amount,
                    'currency': session.get('currency'),
                    'customerEmail': (session.get('customer_details') or {}).get('email') or session.get('customer_email'),
                    'completedAt': now_iso(),
                },
            )
            order, _ = self.order_service.mark_paid(order.id)

        try:
            self.cart_service.clear_cart(order.user_id)
        except Exception:
            logger.exception('No se pudo vaciar el carrito del usuario %s tras el pago', order.user_id)

        self.notification_service.send_order_confirmation(order, asynchronous=True)
        logger.info('Pago confirmado para pedido %s', order.id)

    def _handle_payment_intent_failed(self, event: WebhookEvent) -> None:
        intent = event.object
        order_id, _ = self._metadata_ids(intent)
        if not order_id:
            logger.info('payment_intent %s fallido sin pedido asociado', intent.get('id'))
            return

        with self.locks.hold(f'order:{order_id}'):
            order = self.order_service.get_order(order_id)
            order, changed = self.order_service.mark_payment_failed(order.id)
            if not changed:
                logger.info('Pedido %s no está pendiente; falla de pago ignorada', order.id)
                return
            error = intent.get('last_payment_error') or {}
            self.payment_service.upsert_for_order(
                order_id=order.id,
                user_id=order.user_id,
                amount=order.total_amount,
                payment_method=PaymentMethod.CARD.value,
                status=PaymentStatus.FAILED.value,
                transaction_id=intent.get('id'),
                payment_details={'paymentIntentId': intent.get('id'), 'failureMessage': error.get('message')},
            )

        self.notification_service.notify_async(
            order.user_id,
            'Payment Failed',
            'Your payment has failed. Please try again or contact customer support.',
            kind='payment',
        )

    def _log_only(self, event: WebhookEvent) -> None:
        logger.info('Evento %s (%s) recibido', event.id, event.type)
