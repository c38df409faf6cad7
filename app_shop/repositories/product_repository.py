# ==============================================================================
# REPOSITORIO DE PRODUCTOS
# ==============================================================================
# Encapsula el acceso a products.json (catálogo, solo lectura para la tienda).
# Las variaciones viven dentro del producto: {"variations": [{...}, ...]}
# ==============================================================================

from typing import Any, Optional

from app_shop.models import Product
from .base import EntityRepository


class ProductRepository(EntityRepository):
    """Repositorio de productos y sus variaciones."""

    FILE_NAME = 'products.json'

    def get(self, product_id: Any) -> Optional[Product]:
        """
        Obtiene un producto como entidad.

        Returns:
            Product o None si no existe
        """
        record = self.find_one(product_id)
        return Product.from_dict(record) if record else None
