# ==============================================================================
# REPOSITORIO DE LISTAS DE DESEOS
# ==============================================================================
# Encapsula el acceso a wishlists.json
# Formato: [{"id": 1, "user_id": 7, "items": [{product_id, variation_id, ...}]}]
# ==============================================================================

from typing import Any, List, Optional

from app_shop.models import Wishlist, WishlistItem
from .base import EntityRepository


class WishlistRepository(EntityRepository):
    """Repositorio de listas de deseos."""

    FILE_NAME = 'wishlists.json'

    def get(self, wishlist_id: Any) -> Optional[Wishlist]:
        record = self.find_one(wishlist_id)
        return Wishlist.from_dict(record) if record else None

    def find_by_user(self, user_id: Any) -> List[Wishlist]:
        """Listas del usuario, de la más antigua a la más nueva."""
        records = self.find_all({'user_id': lambda v: str(v) == str(user_id)}, sort='id')
        return [Wishlist.from_dict(r) for r in records]

    def create_for_user(self, user_id: Any) -> Wishlist:
        return Wishlist.from_dict(self.create({'user_id': user_id, 'items': []}))

    def save_items(self, wishlist_id: Any, items: List[WishlistItem]) -> Optional[Wishlist]:
        record = self.update(wishlist_id, {'items': [item.to_dict() for item in items]})
        return Wishlist.from_dict(record) if record else None
