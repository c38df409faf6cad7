# ==============================================================================
# REPOSITORIO DE CARRITOS
# ==============================================================================
# Encapsula el acceso a carts.json
# Formato: [{"id": 1, "user_id": 7, "items": [{product_id, quantity, ...}]}]
# ==============================================================================

from typing import Any, List, Optional

from app_shop.models import Cart, CartItem
from .base import EntityRepository


class CartRepository(EntityRepository):
    """Repositorio de carritos de compra."""

    FILE_NAME = 'carts.json'

    def get(self, cart_id: Any) -> Optional[Cart]:
        record = self.find_one(cart_id)
        return Cart.from_dict(record) if record else None

    def find_by_user(self, user_id: Any) -> List[Cart]:
        """
        Todos los carritos de un usuario, del más antiguo al más nuevo.
        Lo normal es uno solo; más de uno es una inconsistencia a reparar.
        """
        records = self.find_all({'user_id': lambda v: str(v) == str(user_id)}, sort='id')
        return [Cart.from_dict(r) for r in records]

    def create_for_user(self, user_id: Any) -> Cart:
        return Cart.from_dict(self.create({'user_id': user_id, 'items': []}))

    def save_items(self, cart_id: Any, items: List[CartItem]) -> Optional[Cart]:
        """Reemplaza la lista completa de items del carrito."""
        record = self.update(cart_id, {'items': [item.to_dict() for item in items]})
        return Cart.from_dict(record) if record else None
