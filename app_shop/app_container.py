# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener repositorios y servicios ya cableados.
#   - Las rutas (main.py) solo hablan con el contenedor
#   - Los tests crean un contenedor con Settings y pasarela propios
#   - Todos los servicios comparten el mismo registro de locks
#
# Para cambiar la persistencia basta con reemplazar los repositorios de
# este archivo: los servicios dependen de las interfaces (repositories/interfaces.py).
# ==============================================================================

import logging
from typing import Optional

from app_shop.config import Settings
from app_shop.locks import KeyedLockRegistry

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia (archivos JSON)
# ═══════════════════════════════════════════════════════════════════════════════
from app_shop.repositories import (
    ProductRepository,
    CartRepository,
    OrderRepository,
    PaymentRepository,
    TaxRepository,
    DeliveryPricingRepository,
    NotificationRepository,
    WebhookEventRepository,
    WishlistRepository,
    ShippingAddressRepository,
    PickDropRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from app_shop.services import (
    StockService,
    CartService,
    DeliveryService,
    TaxService,
    NotificationService,
    OrderService,
    PaymentService,
    PaymentGateway,
    StripeCheckoutGateway,
    CheckoutService,
    WebhookService,
    WishlistService,
    ShippingAddressService,
    PickDropService,
)


logger = logging.getLogger(__name__)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(settings=Settings.from_env())
        cart_service = container.cart_service
        checkout_service = container.checkout_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, settings: Settings = None, gateway: PaymentGateway = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, settings: Settings = None, gateway: PaymentGateway = None):
        """
        Inicializa el contenedor.

        Args:
            settings: Configuración (por defecto Settings.from_env())
            gateway: Pasarela de pago (por defecto StripeCheckoutGateway)
        """
        if self._initialized:
            return

        self.settings = settings or Settings.from_env()
        self.locks = KeyedLockRegistry()
        self._gateway: Optional[PaymentGateway] = gateway

        self._product_repo: Optional[ProductRepository] = None
        self._cart_repo: Optional[CartRepository] = None
        self._order_repo: Optional[OrderRepository] = None
        self._payment_repo: Optional[PaymentRepository] = None
        self._tax_repo: Optional[TaxRepository] = None
        self._delivery_repo: Optional[DeliveryPricingRepository] = None
        self._notification_repo: Optional[NotificationRepository] = None
        self._webhook_event_repo: Optional[WebhookEventRepository] = None
        self._wishlist_repo: Optional[WishlistRepository] = None
        self._address_repo: Optional[ShippingAddressRepository] = None
        self._pick_drop_repo: Optional[PickDropRepository] = None

        self._stock_service: Optional[StockService] = None
        self._cart_service: Optional[CartService] = None
        self._delivery_service: Optional[DeliveryService] = None
        self._tax_service: Optional[TaxService] = None
        self._notification_service: Optional[NotificationService] = None
        self._order_service: Optional[OrderService] = None
        self._payment_service: Optional[PaymentService] = None
        self._checkout_service: Optional[CheckoutService] = None
        self._webhook_service: Optional[WebhookService] = None
        self._wishlist_service: Optional[WishlistService] = None
        self._shipping_address_service: Optional[ShippingAddressService] = None
        self._pick_drop_service: Optional[PickDropService] = None

        self._initialized = True
        logger.info('Contenedor inicializado (datos en %s)', self.settings.data_dir)

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def product_repo(self) -> ProductRepository:
        if self._product_repo is None:
            self._product_repo = ProductRepository(self.settings.data_dir)
        return self._product_repo

    @property
    def cart_repo(self) -> CartRepository:
        if self._cart_repo is None:
            self._cart_repo = CartRepository(self.settings.data_dir)
        return self._cart_repo

    @property
    def order_repo(self) -> OrderRepository:
        if self._order_repo is None:
            self._order_repo = OrderRepository(self.settings.data_dir)
        return self._order_repo

    @property
    def payment_repo(self) -> PaymentRepository:
        if self._payment_repo is None:
            self._payment_repo = PaymentRepository(self.settings.data_dir)
        return self._payment_repo

    @property
    def tax_repo(self) -> TaxRepository:
        if self._tax_repo is None:
            self._tax_repo = TaxRepository(self.settings.data_dir)
        return self._tax_repo

    @property
    def delivery_repo(self) -> DeliveryPricingRepository:
        if self._delivery_repo is None:
            self._delivery_repo = DeliveryPricingRepository(self.settings.data_dir)
        return self._delivery_repo

    @property
    def notification_repo(self) -> NotificationRepository:
        if self._notification_repo is None:
            self._notification_repo = NotificationRepository(self.settings.data_dir)
        return self._notification_repo

    @property
    def webhook_event_repo(self) -> WebhookEventRepository:
        """Claves de eventos de webhook ya procesados (acotado)."""
        if self._webhook_event_repo is None:
            self._webhook_event_repo = WebhookEventRepository(
                self.settings.data_dir,
                max_events=self.settings.processed_events_max,
            )
        return self._webhook_event_repo

    @property
    def wishlist_repo(self) -> WishlistRepository:
        if self._wishlist_repo is None:
            self._wishlist_repo = WishlistRepository(self.settings.data_dir)
        return self._wishlist_repo

    @property
    def address_repo(self) -> ShippingAddressRepository:
        if self._address_repo is None:
            self._address_repo = ShippingAddressRepository(self.settings.data_dir)
        return self._address_repo

    @property
    def pick_drop_repo(self) -> PickDropRepository:
        if self._pick_drop_repo is None:
            self._pick_drop_repo = PickDropRepository(self.settings.data_dir)
        return self._pick_drop_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def gateway(self) -> PaymentGateway:
        """Pasarela de pago externa."""
        if self._gateway is None:
            self._gateway = StripeCheckoutGateway(
                self.settings.stripe_secret_key,
                api_base=self.settings.stripe_api_base,
                timeout=self.settings.gateway_timeout,
                currency=self.settings.currency,
            )
        return self._gateway

    @property
    def stock_service(self) -> StockService:
        if self._stock_service is None:
            self._stock_service = StockService(self.product_repo)
        return self._stock_service

    @property
    def cart_service(self) -> CartService:
        if self._cart_service is None:
            self._cart_service = CartService(self.cart_repo, self.stock_service, self.locks)
        return self._cart_service

    @property
    def delivery_service(self) -> DeliveryService:
        if self._delivery_service is None:
            self._delivery_service = DeliveryService(self.delivery_repo)
        return self._delivery_service

    @property
    def tax_service(self) -> TaxService:
        if self._tax_service is None:
            self._tax_service = TaxService(self.tax_repo)
        return self._tax_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.notification_repo)
        return self._notification_service

    @property
    def order_service(self) -> OrderService:
        if self._order_service is None:
            self._order_service = OrderService(
                self.order_repo,
                self.cart_service,
                self.delivery_service,
                self.notification_service,
                self.locks,
            )
        return self._order_service

    @property
    def payment_service(self) -> PaymentService:
        if self._payment_service is None:
            self._payment_service = PaymentService(
                self.payment_repo,
                self.order_service,
                self.notification_service,
                self.locks,
            )
        return self._payment_service

    @property
    def checkout_service(self) -> CheckoutService:
        """Orquestador del checkout (singleton)."""
        if self._checkout_service is None:
            self._checkout_service = CheckoutService(
                self.cart_service,
                self.order_service,
                self.payment_service,
                self.delivery_service,
                self.tax_service,
                self.notification_service,
                self.gateway,
                self.settings,
                self.locks,
            )
        return self._checkout_service

    @property
    def webhook_service(self) -> WebhookService:
        """Procesador de webhooks de la pasarela (singleton)."""
        if self._webhook_service is None:
            self._webhook_service = WebhookService(
                self.gateway,
                self.settings,
                self.webhook_event_repo,
                self.order_service,
                self.payment_service,
                self.cart_service,
                self.notification_service,
                self.locks,
            )
        return self._webhook_service

    @property
    def wishlist_service(self) -> WishlistService:
        if self._wishlist_service is None:
            self._wishlist_service = WishlistService(self.wishlist_repo, self.stock_service, self.locks)
        return self._wishlist_service

    @property
    def shipping_address_service(self) -> ShippingAddressService:
        if self._shipping_address_service is None:
            self._shipping_address_service = ShippingAddressService(self.address_repo, self.locks)
        return self._shipping_address_service

    @property
    def pick_drop_service(self) -> PickDropService:
        if self._pick_drop_service is None:
            self._pick_drop_service = PickDropService(
                self.pick_drop_repo,
                self.notification_service,
                self.locks,
                base_price=self.settings.pick_drop_base_price,
                price_per_kg=self.settings.pick_drop_price_per_kg,
            )
        return self._pick_drop_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Detiene el hilo de notificaciones si estaba corriendo.
        """
        if self._notification_service is not None:
            self._notification_service.shutdown()

        self._product_repo = None
        self._cart_repo = None
        self._order_repo = None
        self._payment_repo = None
        self._tax_repo = None
        self._delivery_repo = None
        self._notification_repo = None
        self._webhook_event_repo = None
        self._wishlist_repo = None
        self._address_repo = None
        self._pick_drop_repo = None

        self._stock_service = None
        self._cart_service = None
        self._delivery_service = None
        self._tax_service = None
        self._notification_service = None
        self._order_service = None
        self._payment_service = None
        self._checkout_service = None
        self._webhook_service = None
        self._wishlist_service = None
        self._shipping_address_service = None
        self._pick_drop_service = None

    @classmethod
    def get_instance(cls, settings: Settings = None, gateway: PaymentGateway = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            settings: Configuración (solo se usa en la primera llamada)
            gateway: Pasarela (solo se usa en la primera llamada)
        """
        if cls._instance is None:
            return cls(settings, gateway)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(settings: Settings = None) -> AppContainer:
    """Obtiene el contenedor de dependencias global."""
    return AppContainer.get_instance(settings)
