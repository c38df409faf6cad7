# ==============================================================================
# SERVICIO DE PAGOS
# ==============================================================================
# Registros de pago (payments.json). Un pedido tiene a lo sumo un registro:
# los reintentos actualizan el existente (upsert_for_order).
#
# Cuando un pago ligado a un pedido cambia de estado:
#   completed -> el pedido queda pagado + "Processing" en su log
#   failed    -> el pedido queda fallido + "Payment Failed" en su log
#   otro      -> se copia el estado al pedido
# y el dueño recibe un mensaje según el estado.
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from app_shop.errors import NotFound, Unauthorized, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import Payment, PaymentStatus
from app_shop.repositories.interfaces import IPaymentRepository
from app_shop.services.notification_service import NotificationService
from app_shop.services.order_service import (
    PAYMENT_STATUS_MESSAGES,
    OrderService,
    validate_payment_status,
)
from app_shop.utils import money, pagination, to_float


logger = logging.getLogger(__name__)


class PaymentService:
    """Gestión de registros de pago."""

    def __init__(
        self,
        payment_repo: IPaymentRepository,
        order_service: OrderService,
        notification_service: NotificationService,
        locks: KeyedLockRegistry,
    ):
        self.payment_repo = payment_repo
        self.order_service = order_service
        self.notification_service = notification_service
        self.locks = locks

    def create_payment(self, data: Dict[str, Any]) -> Payment:
        """
        Crea un registro de pago.

        Args:
            data: amount (> 0), payment_method, order_id, user_id,
                  status, transaction_id, payment_details

        Raises:
            ValidationError: monto inválido o estado fuera del enum
        """
        amount = to_float(data.get('amount'))
        if amount <= 0:
            raise ValidationError('El monto del pago debe ser mayor a 0')

        record = self.payment_repo.create({
            'amount': money(amount),
            'status': validate_payment_status(data.get('status') or PaymentStatus.PENDING.value),
            'payment_method': data.get('payment_method') or 'card',
            'order_id': data.get('order_id'),
            'user_id': data.get('user_id'),
            'transaction_id': data.get('transaction_id'),
            'payment_details': data.get('payment_details') or {},
        })
        return Payment.from_dict(record)

    def upsert_for_order(
        self,
        order_id: Any,
        user_id: Any,
        amount: Any,
        payment_method: str,
        status: str,
        transaction_id: Optional[str] = None,
        payment_details: Optional[Dict[str, Any]] = None,
    ) -> Payment:
        """
        Crea o actualiza el pago de un pedido (seguro ante reintentos).

        Los payment_details nuevos se combinan con los existentes. Un pago
        completado no vuelve a pending, processing ni failed.
        """
        status = validate_payment_status(status)
        with self.locks.hold(f'payment-order:{order_id}'):
            existing = self.payment_repo.find_by_order(order_id)
            if existing is None:
                return self.create_payment({
                    'order_id': order_id,
                    'user_id': user_id,
                    'amount': amount,
                    'payment_method': payment_method,
                    'status': status,
                    'transaction_id': transaction_id,
                    'payment_details': payment_details,
                })

            # Un pago completado solo puede pasar a reembolsado
            if existing.status == PaymentStatus.COMPLETED.value and status not in (
                PaymentStatus.COMPLETED.value,
                PaymentStatus.REFUNDED.value,
            ):
                logger.warning('Pago %s del pedido %s ya completado; se ignora el cambio a %s',
                               existing.id, order_id, status)
                return existing

            details = dict(existing.payment_details)
            details.update(payment_details or {})
            record = self.payment_repo.update(existing.id, {
                'amount': money(amount) if to_float(amount) > 0 else existing.amount,
                'payment_method': payment_method or existing.payment_method,
                'status': status,
                'transaction_id': transaction_id or existing.transaction_id,
                'payment_details': details,
            })
            logger.info('Pago %s del pedido %s actualizado a %s', existing.id, order_id, status)
            return Payment.from_dict(record)

    def update_payment_status(self, payment_id: Any, status: Any, details: Optional[Dict[str, Any]] = None) -> Payment:
        """
        Cambia el estado de un pago y propaga el cambio al pedido.

        Raises:
            ValidationError, NotFound
        """
        status = validate_payment_status(status)
        payment = self.payment_repo.get(payment_id)
        if payment is None:
            raise NotFound('Pago no encontrado')

        merged = dict(payment.payment_details)
        merged.update(details or {})
        payment = Payment.from_dict(self.payment_repo.update(payment.id, {'status': status, 'payment_details': merged}))

        if payment.order_id is not None:
            if status == PaymentStatus.COMPLETED.value:
                self.order_service.mark_paid(payment.order_id)
            elif status == PaymentStatus.FAILED.value:
                self.order_service.mark_payment_failed(payment.order_id)
            else:
                self.order_service.update_payment_status(payment.order_id, status, notify=False)

        owner = payment.user_id
        if owner is None and payment.order_id is not None:
            owner = self.order_service.get_order(payment.order_id).user_id
        self.notification_service.notify(owner, 'Payment Status Updated', PAYMENT_STATUS_MESSAGES[status], kind='payment')
        return payment

    def get_payment_details(self, payment_id: Any, user_id: Any = None, is_admin: bool = False) -> Payment:
        """
        Raises:
            NotFound, Unauthorized (pago de otro usuario)
        """
        payment = self.payment_repo.get(payment_id)
        if payment is None:
            raise NotFound('Pago no encontrado')
        if user_id is not None and not is_admin and str(payment.user_id) != str(user_id):
            raise Unauthorized('No tienes acceso a este pago')
        return payment

    def get_payment_for_order(self, order_id: Any) -> Optional[Payment]:
        return self.payment_repo.find_by_order(order_id)

    def get_user_payments(self, user_id: Any, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
        records, total = self.payment_repo.find(
            {'user_id': lambda v: str(v) == str(user_id)},
            sort='-id',
            page=page,
            page_size=page_size,
        )
        return {
            'payments': [Payment.from_dict(r).to_dict() for r in records],
            'pagination': pagination(page, page_size, total),
        }
