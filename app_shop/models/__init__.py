# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos de la tienda
# ==============================================================================
# Entidades del dominio como dataclasses con to_dict() / from_dict().
# Independientes del mecanismo de persistencia.
# ==============================================================================

from .entities import (
    # Enumeraciones
    DeliveryType,
    PaymentStatus,
    PaymentMethod,
    CANCELLABLE_STATUSES,
    STATUS_ORDER_PLACED,
    STATUS_PROCESSING,
    STATUS_PAYMENT_FAILED,
    STATUS_CANCELLED,

    # Catálogo
    Product,
    Variation,

    # Carrito
    Cart,
    CartItem,
    VariationSnapshot,

    # Pedidos
    Order,
    OrderProduct,
    OrderStatusEntry,
    ShippingAddress,

    # Pagos
    Payment,

    # Configuración de precios
    Tax,
    DeliveryPricing,

    # Notificaciones
    Notification,

    # Lista de deseos
    Wishlist,
    WishlistItem,

    # Direcciones guardadas
    SavedAddress,

    # Recogida y entrega
    PickDrop,
    PickDropStatus,
)

__all__ = [
    'DeliveryType',
    'PaymentStatus',
    'PaymentMethod',
    'CANCELLABLE_STATUSES',
    'STATUS_ORDER_PLACED',
    'STATUS_PROCESSING',
    'STATUS_PAYMENT_FAILED',
    'STATUS_CANCELLED',

    'Product',
    'Variation',

    'Cart',
    'CartItem',
    'VariationSnapshot',

    'Order',
    'OrderProduct',
    'OrderStatusEntry',
    'ShippingAddress',

    'Payment',

    'Tax',
    'DeliveryPricing',

    'Notification',

    'Wishlist',
    'WishlistItem',

    'SavedAddress',

    'PickDrop',
    'PickDropStatus',
]
