# ==============================================================================
# CONFIGURACIÓN - Variables de entorno y logging
# ==============================================================================
# Toda la configuración sale de variables de entorno.
#
#   SHOP_DATA_DIR              -> carpeta de los JSON (por defecto ./data)
#   SHOP_SECRET_KEY            -> clave de sesión Flask (OBLIGATORIA en producción)
#   SHOP_PRODUCTION_MODE       -> 1 = producción (cookies seguras, sin avisos debug)
#   SHOP_LOG_LEVEL             -> DEBUG / INFO / WARNING / ERROR
#   SHOP_ENABLE_PROFILING      -> 1 = activa performance_logger
#   STRIPE_SECRET_KEY          -> clave privada de la pasarela
#   STRIPE_WEBHOOK_SECRET      -> secreto para verificar webhooks
#   STRIPE_API_BASE            -> URL base de la API de la pasarela
#   SHOP_GATEWAY_TIMEOUT       -> segundos (se limita a 5-10)
#   SHOP_WEBHOOK_TOLERANCE     -> tolerancia de la marca de tiempo del webhook
#   SHOP_FRONTEND_URL          -> base de las URLs de éxito/cancelación
#   SHOP_CURRENCY              -> moneda de la pasarela
#   SHOP_PROCESSED_EVENTS_MAX  -> límite de eventos de webhook recordados
#   SHOP_PICK_DROP_BASE_PRICE  -> tarifa fija de una solicitud pick-drop
#   SHOP_PICK_DROP_PRICE_PER_KG -> tarifa por kg de una solicitud pick-drop
# ==============================================================================

import logging
import os
import sys
from dataclasses import dataclass


logger = logging.getLogger(__name__)

_DEFAULT_SECRET = 'app_shop_dev_secret_key_change_in_production'

# Rango permitido para llamadas a la pasarela (segundos)
GATEWAY_TIMEOUT_MIN = 5.0
GATEWAY_TIMEOUT_MAX = 10.0

LOG_FORMAT = '%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s'


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def clamp_timeout(seconds: float) -> float:
    """Limita el timeout de la pasarela al rango 5-10 segundos."""
    return max(GATEWAY_TIMEOUT_MIN, min(GATEWAY_TIMEOUT_MAX, seconds))


@dataclass
class Settings:
    """
    Configuración de la aplicación.

    Attributes:
        data_dir: Carpeta donde viven los archivos JSON
        secret_key: Clave de sesión de Flask
        production_mode: Activa cookies seguras y desactiva avisos de desarrollo
        log_level: Nivel del logger raíz
        enable_profiling: Activa el registro de rendimiento en /logs
        stripe_secret_key: Clave privada de la pasarela de pago
        stripe_webhook_secret: Secreto para verificar la firma de webhooks
        stripe_api_base: URL base de la API de la pasarela
        gateway_timeout: Timeout (s) de las llamadas a la pasarela
        webhook_tolerance: Tolerancia (s) de la marca de tiempo de la firma
        frontend_url: Base para URLs de éxito/cancelación del checkout
        currency: Moneda enviada a la pasarela
        processed_events_max: Máximo de eventos de webhook recordados
        pick_drop_base_price: Tarifa fija de recogida y entrega
        pick_drop_price_per_kg: Tarifa por kg de recogida y entrega
    """
    data_dir: str
    secret_key: str = _DEFAULT_SECRET
    production_mode: bool = False
    log_level: str = 'INFO'
    enable_profiling: bool = False
    stripe_secret_key: str = ''
    stripe_webhook_secret: str = ''
    stripe_api_base: str = 'https://api.stripe.com'
    gateway_timeout: float = GATEWAY_TIMEOUT_MAX
    webhook_tolerance: int = 300
    frontend_url: str = 'http://localhost:3000'
    currency: str = 'aed'
    processed_events_max: int = 1000
    pick_drop_base_price: float = 10.0
    pick_drop_price_per_kg: float = 5.0

    def __post_init__(self):
        self.gateway_timeout = clamp_timeout(self.gateway_timeout)

    @classmethod
    def from_env(cls, base_path: str = None) -> 'Settings':
        """
        Construye la configuración desde variables de entorno.

        Args:
            base_path: Carpeta base para `data/` si SHOP_DATA_DIR no está definida
        """
        base = base_path or os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        production = _env_bool('SHOP_PRODUCTION_MODE', False)
        secret = os.environ.get('SHOP_SECRET_KEY')

        if production and not secret:
            logger.warning('SHOP_PRODUCTION_MODE activo sin SHOP_SECRET_KEY definida')

        return cls(
            data_dir=os.environ.get('SHOP_DATA_DIR') or os.path.join(base, 'data'),
            secret_key=secret or _DEFAULT_SECRET,
            production_mode=production,
            log_level=os.environ.get('SHOP_LOG_LEVEL', 'INFO').upper(),
            enable_profiling=_env_bool('SHOP_ENABLE_PROFILING', False),
            stripe_secret_key=os.environ.get('STRIPE_SECRET_KEY', ''),
            stripe_webhook_secret=os.environ.get('STRIPE_WEBHOOK_SECRET', ''),
            stripe_api_base=os.environ.get('STRIPE_API_BASE', 'https://api.stripe.com').rstrip('/'),
            gateway_timeout=_env_float('SHOP_GATEWAY_TIMEOUT', GATEWAY_TIMEOUT_MAX),
            webhook_tolerance=_env_int('SHOP_WEBHOOK_TOLERANCE', 300),
            frontend_url=os.environ.get('SHOP_FRONTEND_URL', 'http://localhost:3000').rstrip('/'),
            currency=os.environ.get('SHOP_CURRENCY', 'aed').lower(),
            processed_events_max=_env_int('SHOP_PROCESSED_EVENTS_MAX', 1000),
            pick_drop_base_price=_env_float('SHOP_PICK_DROP_BASE_PRICE', 10.0),
            pick_drop_price_per_kg=_env_float('SHOP_PICK_DROP_PRICE_PER_KG', 5.0),
        )


def setup_logging(level: str = 'INFO') -> None:
    """Configura el logger raíz (una sola vez)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
