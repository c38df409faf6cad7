# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
# Contratos que usan los servicios. Cualquier almacenamiento (JSON hoy,
# base de datos mañana) que los cumpla se puede inyectar desde
# app_container.py sin tocar la lógica de negocio. También facilitan
# dobles de prueba en los tests.
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from app_shop.models import (
    Cart,
    CartItem,
    DeliveryPricing,
    Order,
    Payment,
    PickDrop,
    Product,
    SavedAddress,
    Tax,
    Wishlist,
    WishlistItem,
)


@runtime_checkable
class IEntityRepository(Protocol):
    """Datastore genérico: find / find_one / create / update / delete."""

    def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        page: Optional[int] = None,
        page_size: int = 10,
    ) -> Tuple[List[Dict[str, Any]], int]:
        ...

    def find_all(self, filters: Optional[Dict[str, Any]] = None, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        ...

    def find_one(self, record_id: Any) -> Optional[Dict[str, Any]]:
        ...

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update(self, record_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class IProductRepository(IEntityRepository, Protocol):
    def get(self, product_id: Any) -> Optional[Product]:
        ...


@runtime_checkable
class ICartRepository(IEntityRepository, Protocol):
    def get(self, cart_id: Any) -> Optional[Cart]:
        ...

    def find_by_user(self, user_id: Any) -> List[Cart]:
        ...

    def create_for_user(self, user_id: Any) -> Cart:
        ...

    def save_items(self, cart_id: Any, items: List[CartItem]) -> Optional[Cart]:
        ...


@runtime_checkable
class IOrderRepository(IEntityRepository, Protocol):
    def get(self, order_id: Any) -> Optional[Order]:
        ...

    def save(self, order: Order) -> Order:
        ...


@runtime_checkable
class IPaymentRepository(IEntityRepository, Protocol):
    def get(self, payment_id: Any) -> Optional[Payment]:
        ...

    def find_by_order(self, order_id: Any) -> Optional[Payment]:
        ...


@runtime_checkable
class ITaxRepository(IEntityRepository, Protocol):
    def find_active(self) -> List[Tax]:
        ...


@runtime_checkable
class IDeliveryPricingRepository(IEntityRepository, Protocol):
    def list_all(self) -> List[DeliveryPricing]:
        ...

    def find_by_type(self, delivery_type: str) -> Optional[DeliveryPricing]:
        ...


@runtime_checkable
class IWebhookEventRepository(Protocol):
    """Almacén acotado de claves de idempotencia."""

    def has(self, key: str) -> bool:
        ...

    def add(self, key: str) -> None:
        ...


@runtime_checkable
class IWishlistRepository(IEntityRepository, Protocol):
    def get(self, wishlist_id: Any) -> Optional[Wishlist]:
        ...

    def find_by_user(self, user_id: Any) -> List[Wishlist]:
        ...

    def create_for_user(self, user_id: Any) -> Wishlist:
        ...

    def save_items(self, wishlist_id: Any, items: List[WishlistItem]) -> Optional[Wishlist]:
        ...


@runtime_checkable
class IShippingAddressRepository(IEntityRepository, Protocol):
    def get(self, address_id: Any) -> Optional[SavedAddress]:
        ...

    def find_by_user(self, user_id: Any) -> List[SavedAddress]:
        ...


@runtime_checkable
class IPickDropRepository(IEntityRepository, Protocol):
    def get(self, pick_drop_id: Any) -> Optional[PickDrop]:
        ...
