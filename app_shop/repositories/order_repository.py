# ==============================================================================
# REPOSITORIO DE PEDIDOS
# ==============================================================================
# Encapsula el acceso a orders.json
# ==============================================================================

from typing import Any, Dict, Optional

from app_shop.models import Order
from .base import EntityRepository


class OrderRepository(EntityRepository):
    """Repositorio de pedidos."""

    FILE_NAME = 'orders.json'

    def get(self, order_id: Any) -> Optional[Order]:
        record = self.find_one(order_id)
        return Order.from_dict(record) if record else None

    def save(self, order: Order) -> Order:
        """Guarda los campos mutables del pedido (estado de pago y log)."""
        data: Dict[str, Any] = order.to_dict()
        for computed in ('current_status', 'is_cancelled'):
            data.pop(computed, None)
        record = self.update(order.id, data)
        return Order.from_dict(record) if record else order
