# ==============================================================================
# REPOSITORIO DE SOLICITUDES PICK-DROP
# ==============================================================================
# Encapsula el acceso a pick_drops.json
# ==============================================================================

from typing import Any, Optional

from app_shop.models import PickDrop
from .base import EntityRepository


class PickDropRepository(EntityRepository):
    """Solicitudes de recogida y entrega."""

    FILE_NAME = 'pick_drops.json'

    def get(self, pick_drop_id: Any) -> Optional[PickDrop]:
        record = self.find_one(pick_drop_id)
        return PickDrop.from_dict(record) if record else None
