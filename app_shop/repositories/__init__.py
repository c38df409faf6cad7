# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Encapsula todo el acceso a la persistencia (archivos JSON por entidad).
#
# ESTRUCTURA:
# ├── interfaces.py                   → Protocolos (contratos de los servicios)
# ├── base.py                         → BaseRepository + EntityRepository genérico
# ├── product_repository.py           → products.json
# ├── cart_repository.py              → carts.json
# ├── order_repository.py             → orders.json
# ├── payment_repository.py           → payments.json
# ├── tax_repository.py               → taxes.json
# ├── delivery_pricing_repository.py  → delivery_pricing.json
# ├── notification_repository.py      → notifications.json
# ├── webhook_event_repository.py     → webhook_events.json (idempotencia)
# ├── wishlist_repository.py          → wishlists.json
# ├── shipping_address_repository.py  → shipping_addresses.json
# └── pick_drop_repository.py         → pick_drops.json
# ==============================================================================

from .interfaces import (
    IEntityRepository,
    IProductRepository,
    ICartRepository,
    IOrderRepository,
    IPaymentRepository,
    ITaxRepository,
    IDeliveryPricingRepository,
    IWebhookEventRepository,
    IWishlistRepository,
    IShippingAddressRepository,
    IPickDropRepository,
)

from .base import BaseRepository, EntityRepository
from .product_repository import ProductRepository
from .cart_repository import CartRepository
from .order_repository import OrderRepository
from .payment_repository import PaymentRepository
from .tax_repository import TaxRepository
from .delivery_pricing_repository import DeliveryPricingRepository
from .notification_repository import NotificationRepository
from .webhook_event_repository import WebhookEventRepository
from .wishlist_repository import WishlistRepository
from .shipping_address_repository import ShippingAddressRepository
from .pick_drop_repository import PickDropRepository

__all__ = [
    # Interfaces
    'IEntityRepository',
    'IProductRepository',
    'ICartRepository',
    'IOrderRepository',
    'IPaymentRepository',
    'ITaxRepository',
    'IDeliveryPricingRepository',
    'IWebhookEventRepository',
    'IWishlistRepository',
    'IShippingAddressRepository',
    'IPickDropRepository',

    # Clases base
    'BaseRepository',
    'EntityRepository',

    # Implementaciones JSON
    'ProductRepository',
    'CartRepository',
    'OrderRepository',
    'PaymentRepository',
    'TaxRepository',
    'DeliveryPricingRepository',
    'NotificationRepository',
    'WebhookEventRepository',
    'WishlistRepository',
    'ShippingAddressRepository',
    'PickDropRepository',
]
