# ==============================================================================
# SERVICIO DE CHECKOUT
# ==============================================================================
# Orquesta un intento de compra:
#
#   1. VALIDAR   -> datos obligatorios, carrito no vacío (sin efectos)
#   2. PRECIO    -> subtotal + tarifa de entrega + impuesto
#   3. PEDIDO    -> se crea con payment_status = pending
#   4. PAGO
#      - cash_on_delivery: pago pending, se vacía el carrito, sin pasarela
#      - card: sesión de checkout alojado; el carrito se vacía recién cuando
#              el webhook confirma el pago
#      - otros (paypal, apple_pay, google_pay): pago simulado
#   5. CONFIRMACIÓN -> notificación en segundo plano
#
# Si la pasarela falla después de crear el pedido, el pedido queda pending
# y se puede reintentar con create_payment_for_order().
# ==============================================================================

import logging
import uuid
from typing import Any, Dict, List, Optional

from app_shop.config import Settings
from app_shop.errors import (
    AlreadyPaid,
    CartEmpty,
    Conflict,
    NotAuthenticated,
    ShopError,
    Unauthorized,
    ValidationError,
)
from app_shop.locks import KeyedLockRegistry
from app_shop.models import (
    DeliveryType,
    Order,
    PaymentMethod,
    PaymentStatus,
    ShippingAddress,
)
from app_shop.performance_logger import profile_function
from app_shop.services import pricing_service
from app_shop.services.cart_service import CartService
from app_shop.services.delivery_service import DeliveryService, is_valid_delivery_type
from app_shop.services.notification_service import NotificationService
from app_shop.services.order_service import OrderService
from app_shop.services.payment_gateway import PaymentGateway
from app_shop.services.payment_service import PaymentService
from app_shop.services.tax_service import TaxService
from app_shop.utils import money, parse_datetime, to_float, utcnow


logger = logging.getLogger(__name__)


# Catálogo de métodos de pago
PAYMENT_METHODS = [
    {'id': PaymentMethod.CARD.value, 'name': 'Credit / Debit Card', 'description': 'Pay securely with your card', 'enabled': True},
    {'id': PaymentMethod.PAYPAL.value, 'name': 'PayPal', 'description': 'Pay with your PayPal account', 'enabled': False},
    {'id': PaymentMethod.APPLE_PAY.value, 'name': 'Apple Pay', 'description': 'Pay with Apple Pay', 'enabled': False},
    {'id': PaymentMethod.GOOGLE_PAY.value, 'name': 'Google Pay', 'description': 'Pay with Google Pay', 'enabled': False},
    {'id': PaymentMethod.CASH_ON_DELIVERY.value, 'name': 'Cash on Delivery', 'description': 'Pay when your order arrives', 'enabled': True},
]

_VALID_METHODS = frozenset(m['id'] for m in PAYMENT_METHODS)


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ''):
            return data[key]
    return None


class CheckoutService:
    """
    Orquestador del checkout.

    Responsabilidades:
    - Validar los datos de checkout
    - Calcular el resumen del pedido (subtotal, entrega, impuesto)
    - Crear el pedido e iniciar el pago según el método
    - Reintentar el pago de un pedido pendiente o fallido
    """

    def __init__(
        self,
        cart_service: CartService,
        order_service: OrderService,
        payment_service: PaymentService,
        delivery_service: DeliveryService,
        tax_service: TaxService,
        notification_service: NotificationService,
        gateway: PaymentGateway,
        settings: Settings,
        locks: KeyedLockRegistry,
    ):
        self.cart_service = cart_service
        self.order_service = order_service
        self.payment_service = payment_service
        self.delivery_service = delivery_service
        self.tax_service = tax_service
        self.notification_service = notification_service
        self.gateway = gateway
        self.settings = settings
        self.locks = locks

    # =========================================================================
    # MÉTODOS DE PAGO Y VALIDACIÓN
    # =========================================================================

    def get_payment_methods(self, include_disabled: bool = False) -> List[Dict[str, Any]]:
        return [dict(m) for m in PAYMENT_METHODS if include_disabled or m['enabled']]

    def validate_checkout_input(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Valida y normaliza los datos del checkout.

        Acepta nombres camelCase (frontend) o snake_case.

        Returns:
            Dict con delivery_type, payment_method, shipping_address (ShippingAddress),
            scheduled_date_time y payment_details

        Raises:
            ValidationError: con la lista completa de errores encontrados
        """
        data = data or {}
        errors = []

        delivery_type = _pick(data, 'deliveryType', 'delivery_type')
        if not delivery_type:
            errors.append('El tipo de entrega es obligatorio')
        elif not is_valid_delivery_type(delivery_type):
            errors.append(f'Tipo de entrega inválido: {delivery_type}')

        payment_method = _pick(data, 'paymentMethod', 'payment_method')
        if not payment_method:
            errors.append('El método de pago es obligatorio')
        elif payment_method not in _VALID_METHODS:
            errors.append(f'Método de pago inválido: {payment_method}')

        raw_address = _pick(data, 'shippingAddress', 'shipping_address')
        if not isinstance(raw_address, dict):
            errors.append('La dirección de envío es obligatoria')
            address = ShippingAddress()
        else:
            address = ShippingAddress.from_dict(raw_address)
            for label in address.missing_fields():
                errors.append(f'Falta el campo {label} en la dirección de envío')

        scheduled = _pick(data, 'scheduledDateTime', 'scheduled_date_time')
        if delivery_type == DeliveryType.SCHEDULED.value:
            if not scheduled:
                errors.append('La fecha de entrega es obligatoria para entregas programadas')
            elif parse_datetime(scheduled) is None:
                errors.append('Fecha de entrega programada inválida')

        if errors:
            raise ValidationError('Datos de checkout inválidos', errors=errors)

        return {
            'delivery_type': delivery_type,
            'payment_method': payment_method,
            'shipping_address': address,
            'scheduled_date_time': parse_datetime(scheduled).isoformat() if scheduled else None,
            'payment_details': _pick(data, 'paymentDetails', 'payment_details') or {},
        }

    # =========================================================================
    # RESUMEN
    # =========================================================================

    def calculate_order_summary(self, user_id: Any, delivery_type: str = DeliveryType.STANDARD.value) -> Dict[str, Any]:
        """
        Resumen del pedido (solo lectura).

        Returns:
            Dict con subtotal, delivery_fee, tax, tax_rate (%), tax_details,
            total, item_count, total_items, selected_delivery_type,
            delivery_options e items con su desglose de precio
        """
        now = utcnow()
        cart = self.cart_service.get_or_create_cart(user_id)
        totals = self.cart_service.totals_for(cart, now)

        items = []
        for item, product, _ in self.cart_service.priced_lines(cart, now):
            if product is None:
                continue
            variation = product.get_variation(item.variation_id) or item.variation_details
            breakdown = pricing_service.price_breakdown(product, variation, item.quantity, now)
            breakdown.update({
                'product_id': product.id,
                'name': product.name,
                'quantity': item.quantity,
                'variation_id': item.variation_id,
                'variation_details': item.variation_details.to_dict() if item.variation_details else None,
            })
            items.append(breakdown)

        subtotal = totals['subtotal']
        delivery_fee = self.delivery_service.get_delivery_fee(delivery_type)
        tax = self.tax_service.calculate_tax(subtotal, now)

        return {
            'subtotal': subtotal,
            'delivery_fee': delivery_fee,
            'tax': tax['tax_amount'],
            'tax_rate': round(tax['tax_rate'] * 100, 4),
            'tax_details': tax['tax_details'],
            'total': money(subtotal + delivery_fee + tax['tax_amount']),
            'item_count': totals['item_count'],
            'total_items': totals['total_items'],
            'selected_delivery_type': delivery_type,
            'delivery_options': self.delivery_service.get_delivery_options(),
            'items': items,
        }

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def _success_url(self, order_id: Any) -> str:
        return f'{self.settings.frontend_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}&order_id={order_id}'

    def _cancel_url(self, order_id: Any) -> str:
        return f'{self.settings.frontend_url}/checkout/cancel?order_id={order_id}'

    def _build_line_items(self, order: Order) -> List[Dict[str, Any]]:
        """Una línea por producto del pedido + entrega + impuesto."""
        line_items = []
        for product_line in order.products:
            product = self.cart_service.stock_service.find_product(product_line.product_id)
            name = product.name if product else f'Product #{product_line.product_id}'
            description = None
            if product and product_line.variation_id:
                variation = product.get_variation(product_line.variation_id)
                if variation:
                    description = ' / '.join(v for v in (variation.size, variation.color) if v) or None
            line_items.append({
                'name': name,
                'description': description,
                'amount': product_line.unit_price,
                'quantity': product_line.quantity,
            })

        if order.delivery_fee > 0:
            line_items.append({'name': f'Delivery ({order.delivery_type})', 'amount': order.delivery_fee, 'quantity': 1})
        if order.tax_amount > 0:
            line_items.append({'name': 'Tax', 'amount': order.tax_amount, 'quantity': 1})
        return line_items

    @staticmethod
    def _ensure_payable(order: Order) -> None:
        if order.is_paid:
            raise AlreadyPaid()
        if order.is_cancelled:
            raise Conflict('El pedido fue cancelado')
        if order.payment_status not in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
            raise Conflict(f'No se puede pagar un pedido con estado {order.payment_status}')

    def _start_hosted_payment(self, order: Order, customer_email: Optional[str]) -> Dict[str, Any]:
        """
        Crea la sesión en la pasarela y registra el pago pendiente.

        El webhook puede confirmar el pedido mientras se crea la sesión: el
        registro se hace bajo el lock del pedido y con su estado releído.

        Raises:
            AlreadyPaid, Conflict, ExternalServiceError
        """
        session = self.gateway.create_hosted_session(
            self._build_line_items(order),
            success_url=self._success_url(order.id),
            cancel_url=self._cancel_url(order.id),
            metadata={'order_id': str(order.id), 'user_id': str(order.user_id)},
            customer_email=customer_email,
        )

        with self.locks.hold(f'order:{order.id}'):
            current = self.order_service.get_order(order.id)
            if current.is_paid:
                logger.info('Pedido %s pagado mientras se creaba la sesión %s', order.id, session.session_id)
            self._ensure_payable(current)
            self.payment_service.upsert_for_order(
                order_id=current.id,
                user_id=current.user_id,
                amount=current.total_amount,
                payment_method=PaymentMethod.CARD.value,
                status=PaymentStatus.PENDING.value,
                transaction_id=session.session_id,
                payment_details={'stripeSessionId': session.session_id},
            )
        return {'session_id': session.session_id, 'checkout_url': session.checkout_url}

    def _process_cash_on_delivery(self, order: Order, user_id: Any) -> Dict[str, Any]:
        # El efectivo se cobra al entregar: pago y pedido quedan pending
        self.payment_service.upsert_for_order(
            order_id=order.id,
            user_id=user_id,
            amount=order.total_amount,
            payment_method=PaymentMethod.CASH_ON_DELIVERY.value,
            status=PaymentStatus.PENDING.value,
            transaction_id=f'cod_{order.id}',
        )
        self.cart_service.clear_cart(user_id)
        self.notification_service.send_order_confirmation(order, asynchronous=True)
        return {
            'success': True,
            'order': order.to_dict(),
            'requires_payment': False,
            'message': 'Pedido registrado. Pagarás al recibirlo.',
        }

    def _process_mock_payment(self, order: Order, user_id: Any, method: str, details: Dict[str, Any]) -> Dict[str, Any]:
        """Pago simulado para métodos sin integración real."""
        failed_reason = None
        if details.get('simulateFailure'):
            failed_reason = 'Pago rechazado'
        elif method == PaymentMethod.PAYPAL.value and not details.get('email'):
            failed_reason = 'Se requiere el email de PayPal'

        transaction_id = f'{method}_{uuid.uuid4().hex[:12]}'
        if failed_reason:
            self.payment_service.upsert_for_order(order.id, user_id, order.total_amount, method, PaymentStatus.FAILED.value, transaction_id)
            self.order_service.mark_payment_failed(order.id)
            return {'success': False, 'error': failed_reason, 'kind': 'payment_failed', 'order_id': order.id, 'http_status': 400}

        self.payment_service.upsert_for_order(order.id, user_id, order.total_amount, method, PaymentStatus.COMPLETED.value, transaction_id)
        order, _ = self.order_service.mark_paid(order.id)
        self.cart_service.clear_cart(user_id)
        self.notification_service.send_order_confirmation(order, asynchronous=True)
        return {'success': True, 'order': order.to_dict(), 'requires_payment': False, 'transaction_id': transaction_id}

    @staticmethod
    def _failure(error: ShopError, **extra: Any) -> Dict[str, Any]:
        result = {'success': False, 'error': error.message, 'kind': error.kind, 'http_status': error.http_status}
        result.update(error.details)
        result.update(extra)
        return result

    @profile_function(name='Procesar checkout')
    def process_checkout(self, user_id: Any, data: Dict[str, Any], customer_email: Optional[str] = None) -> Dict[str, Any]:
        """
        Procesa un checkout completo.

        Args:
            user_id: Usuario autenticado
            data: deliveryType, paymentMethod, shippingAddress,
                  scheduledDateTime (entregas programadas), paymentDetails
            customer_email: Email para la pasarela (opcional)

        Returns:
            {success: True, order, requires_payment, checkout_url?} o
            {success: False, error, kind, http_status}
        """
        if user_id is None:
            return self._failure(NotAuthenticated())

        order = None
        try:
            checkout = self.validate_checkout_input(data)
            cart = self.cart_service.get_or_create_cart(user_id)
            if not cart.items:
                raise CartEmpty()

            subtotal = self.cart_service.totals_for(cart)['subtotal']
            tax = self.tax_service.calculate_tax(subtotal)
            order = self.order_service.create_from_cart(user_id, {
                'delivery_type': checkout['delivery_type'],
                'payment_method': checkout['payment_method'],
                'shipping_address': checkout['shipping_address'],
                'scheduled_date_time': checkout['scheduled_date_time'],
                'tax_amount': tax['tax_amount'],
            })

            method = checkout['payment_method']
            if method == PaymentMethod.CASH_ON_DELIVERY.value:
                return self._process_cash_on_delivery(order, user_id)

            if method == PaymentMethod.CARD.value:
                email = customer_email or checkout['shipping_address'].email or None
                session = self._start_hosted_payment(order, email)
                self.notification_service.notify_async(
                    user_id,
                    'Order Placed',
                    f'Your order #{order.id} has been placed. Complete the payment to confirm it.',
                )
                return {
                    'success': True,
                    'order': order.to_dict(),
                    'requires_payment': True,
                    'checkout_url': session['checkout_url'],
                    'session_id': session['session_id'],
                }

            return self._process_mock_payment(order, user_id, method, checkout['payment_details'])

        except ShopError as e:
            if order is not None:
                logger.warning('Checkout del pedido %s falló después de crearlo: %s', order.id, e.message)
                return self._failure(e, order_id=order.id)
            return self._failure(e)
        except Exception:
            logger.exception('Error inesperado en checkout de usuario %s', user_id)
            result = {'success': False, 'error': 'Error al procesar el checkout', 'kind': 'internal', 'http_status': 500}
            if order is not None:
                result['order_id'] = order.id
            return result

    # =========================================================================
    # REINTENTOS E INTENTOS DE PAGO SUELTOS
    # =========================================================================

    @profile_function(name='Reintentar pago de pedido')
    def create_payment_for_order(self, user_id: Any, order_id: Any, customer_email: Optional[str] = None) -> Dict[str, Any]:
        """
        Genera una nueva sesión de pago para un pedido pendiente o fallido.

        Raises:
            OrderNotFound, Unauthorized, AlreadyPaid,
            Conflict (pedido cancelado o en otro estado), ExternalServiceError
        """
        order = self.order_service.get_order(order_id)
        if str(order.user_id) != str(user_id):
            raise Unauthorized('Este pedido no te pertenece')
        self._ensure_payable(order)

        session = self._start_hosted_payment(order, customer_email)
        logger.info('Nueva sesión de pago %s para pedido %s', session['session_id'], order.id)
        return {'order_id': order.id, **session}

    def create_payment_intent(self, user_id: Any, amount: Any, description: Optional[str] = None,
                              customer_email: Optional[str] = None) -> Dict[str, Any]:
        """
        Sesión de pago de una sola línea por un monto arbitrario.

        Raises:
            ValidationError: monto <= 0
            ExternalServiceError
        """
        value = money(amount)
        if to_float(amount) <= 0 or value <= 0:
            raise ValidationError('El monto debe ser mayor a 0')

        base = self.settings.frontend_url
        session = self.gateway.create_hosted_session(
            [{'name': description or 'Payment', 'amount': value, 'quantity': 1}],
            success_url=f'{base}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}',
            cancel_url=f'{base}/checkout/cancel',
            metadata={'user_id': str(user_id)},
            customer_email=customer_email,
        )
        return {'amount': value, 'session_id': session.session_id, 'checkout_url': session.checkout_url}
