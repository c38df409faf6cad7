# ==============================================================================
# MOTOR DE PRECIOS
# ==============================================================================
# Funciones puras: precio efectivo de un producto según su ventana de oferta,
# ajuste efectivo de una variación y desglose por línea.
#
# Reglas:
#   - Oferta activa: on_sale y start <= ahora <= end (cada límite es opcional)
#   - Producto en oferta     -> price
#   - Producto sin oferta    -> original_price si existe, si no price
#   - Variación en oferta    -> price_adjustment
#   - Variación sin oferta   -> original_price_adjustment si existe, si no price_adjustment
#   - Precio unitario = precio efectivo del producto + ajuste efectivo de la variación
#
# Los valores numéricos se leen con to_float (tolerante: lo ilegible vale 0).
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, Optional

from app_shop.models import Product, Variation
from app_shop.utils import money, parse_datetime, to_float, utcnow


def _is_missing(value: Any) -> bool:
    return value is None or value == ''


def is_sale_active(product: Product, now: Optional[datetime] = None) -> bool:
    """True si el producto está en oferta y `now` cae dentro de la ventana."""
    if not product.on_sale:
        return False
    now = now or utcnow()
    start = parse_datetime(product.sale_start_date)
    end = parse_datetime(product.sale_end_date)
    if start and now < start:
        return False
    if end and now > end:
        return False
    return True


def regular_product_price(product: Product) -> float:
    """Precio sin oferta: original_price, o price si no hay original."""
    if _is_missing(product.original_price):
        return to_float(product.price)
    return to_float(product.original_price)


def effective_product_price(product: Product, now: Optional[datetime] = None) -> float:
    if is_sale_active(product, now):
        return to_float(product.price)
    return regular_product_price(product)


def regular_variation_adjustment(variation: Any) -> float:
    if variation is None:
        return 0.0
    if _is_missing(variation.original_price_adjustment):
        return to_float(variation.price_adjustment)
    return to_float(variation.original_price_adjustment)


def effective_variation_adjustment(variation: Any) -> float:
    """
    Ajuste efectivo de una variación.

    Acepta una Variation viva o un VariationSnapshot (mismos campos de precio).
    """
    if variation is None:
        return 0.0
    if variation.on_sale:
        return to_float(variation.price_adjustment)
    return regular_variation_adjustment(variation)


def effective_unit_price(product: Product, variation: Any = None, now: Optional[datetime] = None) -> float:
    """Precio unitario sin redondear (el redondeo se hace sobre el total)."""
    return effective_product_price(product, now) + effective_variation_adjustment(variation)


def discount_percentage(product: Product, now: Optional[datetime] = None) -> float:
    """
    Porcentaje de descuento vigente.
    Usa el valor guardado si existe; si no, lo deriva de original_price vs price.
    """
    if not is_sale_active(product, now):
        return 0.0

    stored = to_float(product.discount_percentage)
    if stored > 0:
        return stored

    original = regular_product_price(product)
    current = to_float(product.price)
    if original <= 0 or current >= original:
        return 0.0
    return round((original - current) / original * 100, 2)


def price_breakdown(
    product: Product,
    variation: Optional[Variation] = None,
    quantity: int = 1,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Desglose de precio de una línea para el resumen del pedido.

    Returns:
        Dict con original_price, discount_amount, discount_percentage,
        variation_adjustment, final_unit_price, line_total y on_sale
    """
    now = now or utcnow()
    on_sale = is_sale_active(product, now)
    original_unit = regular_product_price(product) + regular_variation_adjustment(variation)
    final_unit = effective_unit_price(product, variation, now)

    return {
        'original_price': money(original_unit),
        'discount_amount': money(max(0.0, original_unit - final_unit)),
        'discount_percentage': discount_percentage(product, now),
        'variation_adjustment': money(effective_variation_adjustment(variation)),
        'final_unit_price': money(final_unit),
        'line_total': money(final_unit * quantity),
        'on_sale': on_sale,
    }
