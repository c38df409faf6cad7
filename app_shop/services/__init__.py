# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Toda la lógica de negocio de la tienda vive aquí.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y lanzan errores tipados (app_shop.errors)
# 3. Las rutas (main.py) solo llaman a servicios y traducen errores a JSON
# 4. Los servicios NO conocen el tipo de almacenamiento
#
# ESTRUCTURA:
# ├── pricing_service.py       → Precio efectivo, ofertas y desglose (funciones puras)
# ├── stock_service.py         → Validación de stock (nunca lo descuenta)
# ├── cart_service.py          → Carrito por usuario (locks por carrito)
# ├── delivery_service.py      → Tipos y tarifas de entrega
# ├── tax_service.py           → Impuesto vigente y cálculo
# ├── notification_service.py  → Notificaciones fire-and-forget
# ├── order_service.py         → Pedidos, log de estados, cancelación, consultas
# ├── payment_service.py       → Registros de pago
# ├── payment_gateway.py       → Pasarela externa (checkout alojado + firma)
# ├── checkout_service.py      → Orquestación del checkout
# ├── webhook_service.py       → Eventos de la pasarela (idempotentes)
# ├── wishlist_service.py      → Lista de deseos con banderas de stock
# ├── shipping_address_service.py → Direcciones guardadas (una predeterminada)
# └── pick_drop_service.py     → Solicitudes de recogida y entrega
# ==============================================================================

from app_shop.services import pricing_service
from app_shop.services.stock_service import StockService, StockCheck
from app_shop.services.cart_service import CartService
from app_shop.services.delivery_service import DeliveryService
from app_shop.services.tax_service import TaxService
from app_shop.services.notification_service import NotificationService
from app_shop.services.order_service import OrderService
from app_shop.services.payment_service import PaymentService
from app_shop.services.payment_gateway import (
    HostedSession,
    PaymentGateway,
    StripeCheckoutGateway,
    WebhookEvent,
)
from app_shop.services.checkout_service import CheckoutService
from app_shop.services.webhook_service import WebhookService
from app_shop.services.wishlist_service import WishlistService
from app_shop.services.shipping_address_service import ShippingAddressService
from app_shop.services.pick_drop_service import PickDropService

__all__ = [
    'pricing_service',
    'StockService',
    'StockCheck',
    'CartService',
    'DeliveryService',
    'TaxService',
    'NotificationService',
    'OrderService',
    'PaymentService',
    'HostedSession',
    'PaymentGateway',
    'StripeCheckoutGateway',
    'WebhookEvent',
    'CheckoutService',
    'WebhookService',
    'WishlistService',
    'ShippingAddressService',
    'PickDropService',
]
