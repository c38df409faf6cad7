# ==============================================================================
# REPOSITORIO DE DIRECCIONES GUARDADAS
# ==============================================================================
# Encapsula el acceso a shipping_addresses.json
# ==============================================================================

from typing import Any, List, Optional

from app_shop.models import SavedAddress
from .base import EntityRepository


class ShippingAddressRepository(EntityRepository):
    """Direcciones de envío guardadas por cada usuario."""

    FILE_NAME = 'shipping_addresses.json'

    def get(self, address_id: Any) -> Optional[SavedAddress]:
        record = self.find_one(address_id)
        return SavedAddress.from_dict(record) if record else None

    def find_by_user(self, user_id: Any) -> List[SavedAddress]:
        records = self.find_all({'user_id': lambda v: str(v) == str(user_id)}, sort='id')
        return [SavedAddress.from_dict(r) for r in records]
