# ==============================================================================
# UTILIDADES - Conversión numérica, fechas y redondeo de montos
# ==============================================================================
# Funciones pequeñas compartidas por servicios y rutas.
# El contrato de conversión numérica es tolerante: lo que no se puede leer
# como número vale 0. Los tests fijan este contrato con precisión.
# ==============================================================================

import math
import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional


# Prefijo numérico al inicio del texto: "12.5abc" -> 12.5
_NUMERIC_PREFIX = re.compile(r'^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)')

_CENT = Decimal('0.01')


def to_float(value: Any) -> float:
    """
    Convierte un valor a float de forma tolerante.

    - None, '' y textos no numéricos -> 0.0
    - Números (int/float) se devuelven como float
    - Textos con prefijo numérico usan solo el prefijo ("12.5abc" -> 12.5)
    - Valores no finitos (nan, inf) -> 0.0
    - bool no se considera número -> 0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float, Decimal)):
        result = float(value)
    else:
        match = _NUMERIC_PREFIX.match(str(value))
        if not match:
            return 0.0
        try:
            result = float(match.group(1))
        except ValueError:
            return 0.0

    if not math.isfinite(result):
        return 0.0
    return result


def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def money(value: Any) -> float:
    """Redondea un monto a 2 decimales (half-up, como en una boleta)."""
    return float(Decimal(str(to_float(value))).quantize(_CENT, rounding=ROUND_HALF_UP))


def to_minor_units(amount: Any) -> int:
    """Convierte un monto a céntimos para la pasarela de pago."""
    return int((Decimal(str(money(amount))) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utcnow().isoformat()


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Lee una fecha ISO-8601 (acepta sufijo 'Z').
    Las fechas sin zona horaria se asumen en UTC.

    Returns:
        datetime con zona horaria, o None si el valor está vacío o es inválido
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def pagination(page: int, page_size: int, total: int) -> dict:
    """Metadatos de paginación para las respuestas de listados."""
    return {
        'page': page,
        'page_size': page_size,
        'page_count': math.ceil(total / page_size) if page_size else 0,
        'total': total,
    }
