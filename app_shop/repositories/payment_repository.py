# ==============================================================================
# REPOSITORIO DE PAGOS
# ==============================================================================
# Encapsula el acceso a payments.json
# ==============================================================================

from typing import Any, Optional

from app_shop.models import Payment
from .base import EntityRepository


class PaymentRepository(EntityRepository):
    """Repositorio de pagos."""

    FILE_NAME = 'payments.json'

    def get(self, payment_id: Any) -> Optional[Payment]:
        record = self.find_one(payment_id)
        return Payment.from_dict(record) if record else None

    def find_by_order(self, order_id: Any) -> Optional[Payment]:
        """Pago más reciente asociado a un pedido."""
        record = self.find_first({'order_id': lambda v: str(v) == str(order_id)}, sort='-id')
        return Payment.from_dict(record) if record else None

    def find_by_transaction(self, transaction_id: str) -> Optional[Payment]:
        if not transaction_id:
            return None
        record = self.find_first({'transaction_id': transaction_id})
        return Payment.from_dict(record) if record else None
