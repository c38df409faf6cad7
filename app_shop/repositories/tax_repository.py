# ==============================================================================
# REPOSITORIO DE IMPUESTOS
# ==============================================================================
# Encapsula el acceso a taxes.json
# ==============================================================================

from typing import List

from app_shop.models import Tax
from .base import EntityRepository


class TaxRepository(EntityRepository):
    """Repositorio de impuestos configurables."""

    FILE_NAME = 'taxes.json'

    def find_active(self) -> List[Tax]:
        """Impuestos activos, el creado más recientemente primero."""
        records = self.find_all({'is_active': True})
        records.sort(key=lambda r: (r.get('created_at') or '', r.get('id') or 0), reverse=True)
        return [Tax.from_dict(r) for r in records]
