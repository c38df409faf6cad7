# ==============================================================================
# REPOSITORIO DE TARIFAS DE ENTREGA
# ==============================================================================
# Encapsula el acceso a delivery_pricing.json
# Formato: [{"id": 1, "type": "Standard", "amount": 20}, ...]
# ==============================================================================

from typing import List, Optional

from app_shop.models import DeliveryPricing
from .base import EntityRepository


class DeliveryPricingRepository(EntityRepository):
    """Tabla de tarifas por tipo de entrega (solo lectura)."""

    FILE_NAME = 'delivery_pricing.json'

    def list_all(self) -> List[DeliveryPricing]:
        return [DeliveryPricing.from_dict(r) for r in self.find_all(sort='type')]

    def find_by_type(self, delivery_type: str) -> Optional[DeliveryPricing]:
        record = self.find_first({'type': delivery_type})
        return DeliveryPricing.from_dict(record) if record else None
