# ==============================================================================
# SERVICIO DE STOCK
# ==============================================================================
# Valida cantidades contra el inventario vivo (producto o variación).
# Lo usan el carrito y el checkout. Nunca modifica el stock: el descuento
# de inventario al comprar no forma parte de esta aplicación.
# ==============================================================================

from dataclasses import dataclass
from typing import Any, Optional

from app_shop.errors import (
    InsufficientStock,
    NotFound,
    Unavailable,
    VariationNotFound,
    VariationRequired,
)
from app_shop.models import Product, Variation
from app_shop.repositories.interfaces import IProductRepository


@dataclass
class StockCheck:
    """Resultado de una validación de stock exitosa."""
    product: Product
    variation: Optional[Variation] = None


class StockService:
    """Validación de stock a nivel de producto y de variación."""

    def __init__(self, product_repo: IProductRepository):
        self.product_repo = product_repo

    def find_product(self, product_id: Any) -> Optional[Product]:
        return self.product_repo.get(product_id)

    def get_product(self, product_id: Any) -> Product:
        product = self.find_product(product_id)
        if product is None:
            raise NotFound('El producto ya no existe')
        return product

    def check_stock(self, product_id: Any, quantity: int, variation_id: Any = None) -> StockCheck:
        """
        Verifica que se puedan comprar `quantity` unidades.

        Args:
            product_id: ID del producto
            quantity: Cantidad pedida
            variation_id: ID de la variación (obligatorio si el producto tiene variaciones)

        Returns:
            StockCheck con el producto y la variación resuelta (None si el
            producto no maneja variaciones)

        Raises:
            NotFound, Unavailable, VariationRequired, VariationNotFound, InsufficientStock
        """
        product = self.get_product(product_id)

        if not product.is_published:
            raise Unavailable('El producto ya no está disponible')

        if product.has_variations:
            if variation_id in (None, ''):
                raise VariationRequired('Debe seleccionar una variación para este producto')

            variation = product.get_variation(variation_id)
            if variation is None:
                raise VariationNotFound('La variación del producto ya no existe')

            if quantity > variation.stock_count:
                raise InsufficientStock(
                    f'Solo hay {variation.stock_count} unidades disponibles de esta variación',
                    available=variation.stock_count,
                )
            return StockCheck(product=product, variation=variation)

        if quantity > product.stock_count:
            raise InsufficientStock(
                f'Solo hay {product.stock_count} unidades disponibles',
                available=product.stock_count,
            )
        return StockCheck(product=product)
