# ==============================================================================
# SERVICIO DE ENTREGAS
# ==============================================================================
# Tarifa plana por tipo de entrega (delivery_pricing.json) y textos por defecto
# para mostrar cada opción en el checkout.
# Un tipo sin tarifa configurada cuesta 0 (no es error).
# ==============================================================================

from typing import Any, Dict, List

from app_shop.models import DeliveryPricing, DeliveryType
from app_shop.repositories.interfaces import IDeliveryPricingRepository
from app_shop.utils import money


# Textos por defecto cuando la fila de tarifa no trae los suyos
DELIVERY_DEFAULTS = {
    DeliveryType.STANDARD.value: {
        'description': '3-5 business days',
        'estimated_time': '3-5 days',
        'icon': 'truck',
    },
    DeliveryType.EXPRESS.value: {
        'description': '1-2 business days',
        'estimated_time': '1-2 days',
        'icon': 'rocket',
    },
    DeliveryType.SAME_DAY.value: {
        'description': 'Same day delivery (order before 2 PM)',
        'estimated_time': 'Same day',
        'icon': 'bolt',
    },
    DeliveryType.NEXT_DAY.value: {
        'description': 'Next business day',
        'estimated_time': '1 day',
        'icon': 'calendar-day',
    },
    DeliveryType.SCHEDULED.value: {
        'description': 'Choose your preferred date and time',
        'estimated_time': 'As scheduled',
        'icon': 'calendar',
    },
}


def is_valid_delivery_type(value: Any) -> bool:
    return value in DELIVERY_DEFAULTS


class DeliveryService:
    """Consulta de tipos y tarifas de entrega."""

    def __init__(self, delivery_repo: IDeliveryPricingRepository):
        self.delivery_repo = delivery_repo

    def _describe(self, pricing: DeliveryPricing) -> Dict[str, Any]:
        defaults = DELIVERY_DEFAULTS.get(pricing.type, {})
        return {
            'id': pricing.id,
            'type': pricing.type,
            'amount': money(pricing.amount),
            'description': pricing.description or defaults.get('description', ''),
            'estimated_time': pricing.estimated_time or defaults.get('estimated_time', ''),
            'icon': pricing.icon or defaults.get('icon', 'truck'),
        }

    def list_delivery_types(self) -> List[Dict[str, Any]]:
        """Todas las tarifas configuradas, ordenadas por tipo."""
        return [self._describe(p) for p in self.delivery_repo.list_all()]

    def get_delivery_options(self) -> List[Dict[str, Any]]:
        """Opciones para el checkout, de la más barata a la más cara."""
        return sorted(self.list_delivery_types(), key=lambda option: option['amount'])

    def get_delivery_fee(self, delivery_type: Any) -> float:
        """Tarifa del tipo de entrega; 0 si no hay fila configurada."""
        if not delivery_type:
            return 0.0
        pricing = self.delivery_repo.find_by_type(str(delivery_type))
        return money(pricing.amount) if pricing else 0.0
