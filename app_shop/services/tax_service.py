# ==============================================================================
# SERVICIO DE IMPUESTOS
# ==============================================================================
# El impuesto vigente es el activo creado más recientemente cuya ventana de
# aplicación contiene el momento actual.
#
# Cálculo:
#   monto < minimum_amount  -> 0
#   impuesto = monto * rate / 100, limitado por maximum_amount si existe
# ==============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from app_shop.models import Tax
from app_shop.repositories.interfaces import ITaxRepository
from app_shop.utils import money, to_float, utcnow


logger = logging.getLogger(__name__)

DEFAULT_TAX_NAME = 'Default VAT'


class TaxService:
    """Selección del impuesto vigente y cálculo del monto."""

    def __init__(self, tax_repo: ITaxRepository):
        self.tax_repo = tax_repo

    def get_all_active_taxes(self, now: Optional[datetime] = None) -> List[Tax]:
        """Impuestos activos y aplicables ahora, el más reciente primero."""
        now = now or utcnow()
        return [tax for tax in self.tax_repo.find_active() if tax.is_applicable(now)]

    def get_current_active_tax(self, now: Optional[datetime] = None) -> Optional[Tax]:
        taxes = self.get_all_active_taxes(now)
        return taxes[0] if taxes else None

    def calculate_tax(self, amount: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Calcula el impuesto de un monto.

        Args:
            amount: Monto base (subtotal del carrito)
            now: Momento de referencia (por defecto, ahora)

        Returns:
            Dict con tax_amount, tax_rate (decimal: 0.05 = 5%),
            tax_details (None si no hay impuesto vigente) y total_with_tax
        """
        base = money(amount)
        tax = self.get_current_active_tax(now)

        if tax is None:
            return {'tax_amount': 0.0, 'tax_rate': 0.0, 'tax_details': None, 'total_with_tax': base}

        tax_amount = 0.0
        if base >= tax.minimum_amount:
            tax_amount = base * tax.rate / 100
            if tax.maximum_amount is not None:
                tax_amount = min(tax_amount, tax.maximum_amount)
        tax_amount = money(tax_amount)

        return {
            'tax_amount': tax_amount,
            'tax_rate': round(tax.rate / 100, 6),
            'tax_details': {
                'id': tax.id,
                'name': tax.name,
                'rate': tax.rate,
                'minimum_amount': tax.minimum_amount,
                'maximum_amount': tax.maximum_amount,
                'description': tax.description,
            },
            'total_with_tax': money(base + tax_amount),
        }

    def create_default_taxes(self) -> Optional[Tax]:
        """
        Crea el impuesto por defecto (5%) si no existe ninguno con ese nombre.

        Returns:
            Tax creado, o None si ya existía
        """
        if self.tax_repo.find_all({'name': DEFAULT_TAX_NAME}):
            return None
        record = self.tax_repo.create({
            'name': DEFAULT_TAX_NAME,
            'rate': 5,
            'minimum_amount': 0,
            'maximum_amount': None,
            'applicable_from': None,
            'applicable_to': None,
            'is_active': True,
            'description': 'Value added tax',
        })
        logger.info('Impuesto por defecto creado (%s%%)', to_float(record['rate']))
        return Tax.from_dict(record)
