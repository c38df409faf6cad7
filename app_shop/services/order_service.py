# ==============================================================================
# SERVICIO DE PEDIDOS
# ==============================================================================
# Libro de pedidos: creación desde el carrito, log de estados (solo se
# agregan entradas, nunca se editan ni se borran), transiciones de estado
# de pago, cancelación y consultas.
#
# TRANSICIONES DE PAGO:
#   pending -> completed                (flujo normal)
#   pending / processing -> failed      (falla o cancelación)
#   pending / processing -> refunded
#   Solo se cancela desde pending o processing.
#
# La cancelación se guarda como payment_status = failed + entrada "Cancelled"
# en el log. Usar siempre Order.is_cancelled para preguntar por ella.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional, Tuple

from app_shop.errors import (
    CannotCancel,
    CartEmpty,
    InvalidCart,
    OrderNotFound,
    Unauthorized,
    ValidationError,
)
from app_shop.locks import KeyedLockRegistry
from app_shop.models import (
    STATUS_CANCELLED,
    STATUS_ORDER_PLACED,
    STATUS_PAYMENT_FAILED,
    STATUS_PROCESSING,
    Order,
    OrderProduct,
    OrderStatusEntry,
    PaymentStatus,
    ShippingAddress,
)
from app_shop.performance_logger import profile_function
from app_shop.repositories.interfaces import IOrderRepository
from app_shop.services.cart_service import CartService
from app_shop.services.delivery_service import DeliveryService
from app_shop.services.notification_service import NotificationService
from app_shop.utils import money, now_iso, pagination, parse_datetime, to_float


logger = logging.getLogger(__name__)


# Mensaje al usuario según el nuevo estado de pago
PAYMENT_STATUS_MESSAGES = {
    PaymentStatus.PENDING.value: 'Your payment is pending.',
    PaymentStatus.PROCESSING.value: 'Your payment is being processed.',
    PaymentStatus.COMPLETED.value: 'Your payment has been completed successfully.',
    PaymentStatus.FAILED.value: 'Your payment has failed. Please try again or contact customer support.',
    PaymentStatus.REFUNDED.value: 'Your payment has been refunded.',
}

PAYMENT_CONFIRMED_NOTE = 'Payment confirmed, order is being processed'
PAYMENT_FAILED_NOTE = 'Payment failed, please contact customer support'


def validate_payment_status(status: Any) -> str:
    try:
        return PaymentStatus(status).value
    except ValueError:
        raise ValidationError(f'Estado de pago inválido: {status}')


class OrderService:
    """
    Servicio de pedidos.

    Responsabilidades:
    - Crear pedidos a partir del carrito (no vacía el carrito)
    - Registrar estados en el log (append-only)
    - Cambiar el estado de pago y avisar al dueño
    - Cancelar pedidos
    - Historial, búsqueda y estadísticas
    """

    def __init__(
        self,
        order_repo: IOrderRepository,
        cart_service: CartService,
        delivery_service: DeliveryService,
        notification_service: NotificationService,
        locks: KeyedLockRegistry,
    ):
        self.order_repo = order_repo
        self.cart_service = cart_service
        self.delivery_service = delivery_service
        self.notification_service = notification_service
        self.locks = locks

    def _order_lock(self, order_id: Any):
        return self.locks.hold(f'order:{order_id}')

    def get_order(self, order_id: Any) -> Order:
        order = self.order_repo.get(order_id)
        if order is None:
            raise OrderNotFound()
        return order

    # =========================================================================
    # CREACIÓN
    # =========================================================================

    @profile_function(name='Crear pedido desde carrito')
    def create_from_cart(self, user_id: Any, order_input: Dict[str, Any]) -> Order:
        """
        Crea un pedido con el contenido actual del carrito.

        Args:
            user_id: Dueño del carrito
            order_input: delivery_type, payment_method, shipping_address,
                         scheduled_date_time y tax_amount (opcional, lo calcula el checkout)

        Returns:
            Order creado con payment_status = pending

        Raises:
            CartEmpty: carrito sin items
            InvalidCart: algún item ya no es válido (mensaje de la validación)
        """
        cart = self.cart_service.get_or_create_cart(user_id)
        if not cart.items:
            raise CartEmpty()

        validation = self.cart_service.validate_for_checkout(user_id)
        if not validation['valid']:
            raise InvalidCart(validation['message'], invalid_items=validation['invalid_items'])

        lines = self.cart_service.priced_lines(cart)
        sub_total = money(sum(unit_price * item.quantity for item, _, unit_price in lines))
        delivery_type = order_input.get('delivery_type') or 'Standard'
        delivery_fee = self.delivery_service.get_delivery_fee(delivery_type)
        tax_amount = money(order_input.get('tax_amount') or 0)

        shipping = order_input.get('shipping_address')
        if not isinstance(shipping, ShippingAddress):
            shipping = ShippingAddress.from_dict(shipping)

        order = Order(
            id=None,
            user_id=user_id,
            products=[
                OrderProduct(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    variation_id=item.variation_id,
                    unit_price=money(unit_price),
                )
                for item, _, unit_price in lines
            ],
            delivery_type=delivery_type,
            delivery_fee=delivery_fee,
            sub_total=sub_total,
            tax_amount=tax_amount,
            total_amount=money(sub_total + delivery_fee + tax_amount),
            payment_method=order_input.get('payment_method') or 'card',
            payment_status=PaymentStatus.PENDING.value,
            shipping_address=shipping,
            scheduled_date_time=order_input.get('scheduled_date_time'),
            status_log=[OrderStatusEntry(status=STATUS_ORDER_PLACED, timestamp=now_iso(), note='Order received')],
        )

        data = order.to_dict()
        for computed in ('id', 'current_status', 'is_cancelled', 'created_at', 'updated_at'):
            data.pop(computed, None)
        created = Order.from_dict(self.order_repo.create(data))
        logger.info('Pedido %s creado para usuario %s (total %.2f)', created.id, user_id, created.total_amount)
        return created

    # =========================================================================
    # LOG DE ESTADOS Y PAGO
    # =========================================================================

    def append_status(self, order_id: Any, status: str, note: Optional[str] = None) -> Order:
        """Agrega una entrada al log de estados del pedido."""
        with self._order_lock(order_id):
            order = self.get_order(order_id)
            order.status_log.append(OrderStatusEntry(status=status, timestamp=now_iso(), note=note))
            return self.order_repo.save(order)

    def update_payment_status(self, order_id: Any, status: Any, notify: bool = True) -> Order:
        """
        Cambia el estado de pago del pedido y avisa al dueño.

        Raises:
            ValidationError: estado fuera del enum
            OrderNotFound
        """
        status = validate_payment_status(status)
        with self._order_lock(order_id):
            order = self.get_order(order_id)
            order.payment_status = status
            order = self.order_repo.save(order)

        if notify:
            self.notification_service.notify(order.user_id, 'Payment Status Updated', PAYMENT_STATUS_MESSAGES[status])
        return order

    def mark_paid(self, order_id: Any, note: str = PAYMENT_CONFIRMED_NOTE) -> Tuple[Order, bool]:
        """
        Marca el pedido como pagado y agrega "Processing" al log.

        Returns:
            (pedido, True si cambió) - un pedido ya pagado no se toca
        """
        with self._order_lock(order_id):
            order = self.get_order(order_id)
            if order.is_paid:
                return order, False
            order.payment_status = PaymentStatus.COMPLETED.value
            order.status_log.append(OrderStatusEntry(status=STATUS_PROCESSING, timestamp=now_iso(), note=note))
            order = self.order_repo.save(order)
        logger.info('Pedido %s pagado', order.id)
        return order, True

    def mark_payment_failed(self, order_id: Any, note: str = PAYMENT_FAILED_NOTE) -> Tuple[Order, bool]:
        """Marca el pago como fallido si el pedido sigue pendiente o en proceso."""
        with self._order_lock(order_id):
            order = self.get_order(order_id)
            if not order.can_cancel:
                return order, False
            order.payment_status = PaymentStatus.FAILED.value
            order.status_log.append(OrderStatusEntry(status=STATUS_PAYMENT_FAILED, timestamp=now_iso(), note=note))
            order = self.order_repo.save(order)
        logger.info('Pago del pedido %s marcado como fallido', order.id)
        return order, True

    def cancel(self, order_id: Any, user_id: Any, is_admin: bool = False, reason: Optional[str] = None) -> Order:
        """
        Cancela un pedido.

        Raises:
            OrderNotFound
            Unauthorized: el usuario no es dueño ni admin
            CannotCancel: el pago ya no está pending ni processing
        """
        with self._order_lock(order_id):
            order = self.get_order(order_id)
            if not is_admin and str(order.user_id) != str(user_id):
                raise Unauthorized('No puedes cancelar un pedido ajeno')
            if not order.can_cancel:
                raise CannotCancel(f'No se puede cancelar un pedido con pago {order.payment_status}')

            order.payment_status = PaymentStatus.FAILED.value
            order.status_log.append(OrderStatusEntry(
                status=STATUS_CANCELLED,
                timestamp=now_iso(),
                note=reason or 'Order cancelled by customer',
            ))
            order = self.order_repo.save(order)

        logger.info('Pedido %s cancelado por %s', order.id, 'admin' if is_admin else f'usuario {user_id}')
        return order

    def update_order_status(self, order_id: Any, status: str, note: Optional[str] = None) -> Order:
        """Cambio de estado manual (admin). Avisa al dueño."""
        if not status or not str(status).strip():
            raise ValidationError('El estado es obligatorio')
        order = self.append_status(order_id, str(status).strip(), note)
        self.notification_service.notify(
            order.user_id,
            'Order Status Updated',
            f'Your order #{order.id} status has been updated to {order.current_status}.',
        )
        return order

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_user_order_history(self, user_id: Any, page: int = 1, page_size: int = 10, sort: str = '-id') -> Dict[str, Any]:
        orders, total = self.order_repo.find(
            {'user_id': lambda v: str(v) == str(user_id)},
            sort=sort,
            page=page,
            page_size=page_size,
        )
        return {
            'orders': [Order.from_dict(o).to_dict() for o in orders],
            'pagination': pagination(page, page_size, total),
        }

    def get_order_details(self, order_id: Any, user_id: Any = None, is_admin: bool = False) -> Order:
        """
        Raises:
            OrderNotFound, Unauthorized (pedido de otro usuario)
        """
        order = self.get_order(order_id)
        if user_id is not None and not is_admin and str(order.user_id) != str(user_id):
            raise Unauthorized('No tienes acceso a este pedido')
        return order

    def search_orders(
        self,
        filters: Optional[Dict[str, Any]] = None,
        user_id: Any = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        """
        Búsqueda de pedidos.

        Args:
            filters: start_date, end_date, payment_status, min_amount,
                     max_amount, search_term (texto sobre la dirección de envío)
            user_id: Limita a los pedidos de un usuario (None = todos, admin)
        """
        filters = filters or {}
        start = parse_datetime(filters.get('start_date'))
        end = parse_datetime(filters.get('end_date'))
        min_amount = filters.get('min_amount')
        max_amount = filters.get('max_amount')
        status = filters.get('payment_status')
        term = str(filters.get('search_term') or '').strip().lower()

        def matches(record: Dict[str, Any]) -> bool:
            if user_id is not None and str(record.get('user_id')) != str(user_id):
                return False
            if status and record.get('payment_status') != status:
                return False
            created = parse_datetime(record.get('created_at'))
            if start and (created is None or created < start):
                return False
            if end and (created is None or created > end):
                return False
            total = to_float(record.get('total_amount'))
            if min_amount not in (None, '') and total < to_float(min_amount):
                return False
            if max_amount not in (None, '') and total > to_float(max_amount):
                return False
            if term:
                address = record.get('shipping_address') or {}
                haystack = ' '.join(str(v) for v in address.values() if v).lower()
                if term not in haystack:
                    return False
            return True

        orders, total = self._find_matching(matches, page, page_size)
        return {
            'orders': [Order.from_dict(o).to_dict() for o in orders],
            'pagination': pagination(page, page_size, total),
        }

    def _find_matching(self, predicate, page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        matching = [r for r in self.order_repo.find_all(sort='-id') if predicate(r)]
        start = (max(1, page) - 1) * page_size
        return matching[start:start + page_size], len(matching)

    def get_order_stats(self, user_id: Any = None) -> Dict[str, Any]:
        """Conteo por estado de pago, ingresos (pedidos pagados) y ticket promedio."""
        filters = {'user_id': lambda v: str(v) == str(user_id)} if user_id is not None else None
        orders = [Order.from_dict(r) for r in self.order_repo.find_all(filters)]

        by_status = {status.value: 0 for status in PaymentStatus}
        for order in orders:
            by_status[order.payment_status] = by_status.get(order.payment_status, 0) + 1

        completed = [o for o in orders if o.is_paid]
        revenue = money(sum(o.total_amount for o in completed))
        return {
            'total_orders': len(orders),
            'by_payment_status': by_status,
            'cancelled_orders': sum(1 for o in orders if o.is_cancelled),
            'total_revenue': revenue,
            'average_order_value': money(revenue / len(completed)) if completed else 0.0,
        }
