# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia:
# los repositorios guardan dicts y los servicios trabajan con estas clases
# mediante to_dict() / from_dict().
#
# Los campos de precio se guardan tal cual llegan del catálogo (pueden ser
# textos); la conversión numérica tolerante ocurre en pricing_service.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from app_shop.utils import money, parse_datetime, to_float, to_int


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class DeliveryType(str, Enum):
    """Tipos de entrega disponibles."""
    STANDARD = "Standard"
    EXPRESS = "Express"
    SAME_DAY = "Same-Day"
    NEXT_DAY = "Next-Day"
    SCHEDULED = "Scheduled"


class PaymentStatus(str, Enum):
    """Estados de pago de un pedido (y de su registro Payment)."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Métodos de pago conocidos. Solo algunos están habilitados."""
    CARD = "card"
    PAYPAL = "paypal"
    APPLE_PAY = "apple_pay"
    GOOGLE_PAY = "google_pay"
    CASH_ON_DELIVERY = "cash_on_delivery"


# Estados de pago desde los que todavía se puede cancelar
CANCELLABLE_STATUSES = frozenset([PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value])

# Entradas del log de estados con significado fijo
STATUS_ORDER_PLACED = "Order Placed"
STATUS_PROCESSING = "Processing"
STATUS_PAYMENT_FAILED = "Payment Failed"
STATUS_CANCELLED = "Cancelled"


def enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class Variation:
    """
    Sub-opción comprable de un producto (talla, color...).

    Attributes:
        id: Identificador (siempre se compara como texto)
        price_adjustment: Diferencia sobre el precio del producto (vigente en oferta)
        original_price_adjustment: Diferencia fuera de oferta
        on_sale: Si la variación está en oferta
        stock: Unidades disponibles de esta variación
    """
    id: str
    size: Optional[str] = None
    color: Optional[str] = None
    sku: Optional[str] = None
    price_adjustment: Any = 0
    original_price_adjustment: Any = None
    on_sale: bool = False
    stock: int = 0

    @property
    def stock_count(self) -> int:
        return int(to_float(self.stock))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'size': self.size,
            'color': self.color,
            'sku': self.sku,
            'price_adjustment': self.price_adjustment,
            'original_price_adjustment': self.original_price_adjustment,
            'on_sale': self.on_sale,
            'stock': self.stock,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Variation':
        return cls(
            id=str(data.get('id', '')),
            size=data.get('size'),
            color=data.get('color'),
            sku=data.get('sku'),
            price_adjustment=data.get('price_adjustment', 0),
            original_price_adjustment=data.get('original_price_adjustment'),
            on_sale=bool(data.get('on_sale', False)),
            stock=data.get('stock', 0),
        )


@dataclass
class Product:
    """
    Producto del catálogo. Solo lectura para esta aplicación:
    el stock se valida pero nunca se descuenta.

    Attributes:
        price: Precio vigente cuando la oferta está activa
        original_price: Precio sin descuento (si falta, se usa price)
        on_sale: Marca de oferta
        sale_start_date / sale_end_date: Ventana opcional de la oferta
        discount_percentage: Porcentaje guardado (si falta, se deriva)
        published_at: None = producto no publicado
    """
    id: int
    name: str = ''
    price: Any = 0
    original_price: Any = None
    on_sale: bool = False
    sale_start_date: Optional[str] = None
    sale_end_date: Optional[str] = None
    discount_percentage: Any = None
    stock: int = 0
    has_variations: bool = False
    variations: List[Variation] = field(default_factory=list)
    published_at: Optional[str] = None
    sku: Optional[str] = None
    image: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return bool(self.published_at)

    @property
    def stock_count(self) -> int:
        return int(to_float(self.stock))

    def get_variation(self, variation_id: Any) -> Optional[Variation]:
        """Busca una variación comparando ids como texto."""
        if variation_id is None:
            return None
        for variation in self.variations:
            if variation.id == str(variation_id):
                return variation
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'original_price': self.original_price,
            'on_sale': self.on_sale,
            'sale_start_date': self.sale_start_date,
            'sale_end_date': self.sale_end_date,
            'discount_percentage': self.discount_percentage,
            'stock': self.stock,
            'has_variations': self.has_variations,
            'variations': [v.to_dict() for v in self.variations],
            'published_at': self.published_at,
            'sku': self.sku,
            'image': self.image,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=to_int(data.get('id'), 0),
            name=data.get('name', ''),
            price=data.get('price', 0),
            original_price=data.get('original_price'),
            on_sale=bool(data.get('on_sale', False)),
            sale_start_date=data.get('sale_start_date'),
            sale_end_date=data.get('sale_end_date'),
            discount_percentage=data.get('discount_percentage'),
            stock=data.get('stock', 0),
            has_variations=bool(data.get('has_variations', False)),
            variations=[Variation.from_dict(v) for v in data.get('variations') or []],
            published_at=data.get('published_at'),
            sku=data.get('sku'),
            image=data.get('image'),
        )


# ==============================================================================
# CARRITO
# ==============================================================================

@dataclass
class VariationSnapshot:
    """
    Copia de los atributos de la variación al momento de agregarla.
    Solo para mostrar: stock y precio reales se consultan siempre en vivo.
    """
    size: Optional[str] = None
    color: Optional[str] = None
    sku: Optional[str] = None
    price_adjustment: Any = 0
    original_price_adjustment: Any = None
    on_sale: bool = False
    stock_at_snapshot: int = 0

    @classmethod
    def of(cls, variation: Variation) -> 'VariationSnapshot':
        return cls(
            size=variation.size,
            color=variation.color,
            sku=variation.sku,
            price_adjustment=variation.price_adjustment,
            original_price_adjustment=variation.original_price_adjustment,
            on_sale=variation.on_sale,
            stock_at_snapshot=variation.stock_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'size': self.size,
            'color': self.color,
            'sku': self.sku,
            'price_adjustment': self.price_adjustment,
            'original_price_adjustment': self.original_price_adjustment,
            'on_sale': self.on_sale,
            'stock_at_snapshot': self.stock_at_snapshot,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VariationSnapshot':
        return cls(
            size=data.get('size'),
            color=data.get('color'),
            sku=data.get('sku'),
            price_adjustment=data.get('price_adjustment', 0),
            original_price_adjustment=data.get('original_price_adjustment'),
            on_sale=bool(data.get('on_sale', False)),
            stock_at_snapshot=to_int(data.get('stock_at_snapshot'), 0),
        )


@dataclass
class CartItem:
    """
    Línea del carrito. Siempre guarda el id del producto (nunca el objeto);
    el producto se resuelve al leer.
    """
    product_id: int
    quantity: int
    variation_id: Optional[str] = None
    variation_details: Optional[VariationSnapshot] = None

    def matches(self, product_id: Any, variation_id: Any) -> bool:
        """True si la línea corresponde al par (producto, variación)."""
        wanted = str(variation_id) if variation_id not in (None, '') else None
        return str(self.product_id) == str(product_id) and self.variation_id == wanted

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'variation_id': self.variation_id,
            'variation_details': self.variation_details.to_dict() if self.variation_details else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartItem':
        product = data.get('product_id', data.get('product'))
        # Formato legacy: producto poblado como objeto
        if isinstance(product, dict):
            product = product.get('id')
        variation_id = data.get('variation_id')
        details = data.get('variation_details')
        return cls(
            product_id=to_int(product, 0),
            quantity=to_int(data.get('quantity'), 0),
            variation_id=str(variation_id) if variation_id not in (None, '') else None,
            variation_details=VariationSnapshot.from_dict(details) if details else None,
        )


@dataclass
class Cart:
    """Carrito de un usuario. Nunca se elimina, solo se vacía."""
    id: int
    user_id: int
    items: List[CartItem] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def find_item(self, product_id: Any, variation_id: Any = None) -> Optional[CartItem]:
        for item in self.items:
            if item.matches(product_id, variation_id):
                return item
        return None

    def items_to_dict(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'items': self.items_to_dict(),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cart':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            items=[CartItem.from_dict(i) for i in data.get('items') or []],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


# ==============================================================================
# PEDIDOS
# ==============================================================================

@dataclass
class ShippingAddress:
    """Dirección de envío. Acepta también los nombres camelCase del frontend."""
    name: str = ''
    address_line1: str = ''
    address_line2: str = ''
    city: str = ''
    region: str = ''
    phone_number: str = ''
    email: str = ''

    REQUIRED = (
        ('name', 'name'),
        ('address_line1', 'addressLine1'),
        ('region', 'emirate'),
        ('phone_number', 'phoneNumber'),
    )

    def missing_fields(self) -> List[str]:
        """Nombres (formato frontend) de los campos obligatorios vacíos."""
        return [label for attr, label in self.REQUIRED if not str(getattr(self, attr) or '').strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'address_line1': self.address_line1,
            'address_line2': self.address_line2,
            'city': self.city,
            'region': self.region,
            'phone_number': self.phone_number,
            'email': self.email,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ShippingAddress':
        data = data or {}

        def pick(*keys):
            for key in keys:
                if data.get(key):
                    return str(data[key])
            return ''

        return cls(
            name=pick('name', 'fullName'),
            address_line1=pick('address_line1', 'addressLine1'),
            address_line2=pick('address_line2', 'addressLine2'),
            city=pick('city'),
            region=pick('region', 'emirate'),
            phone_number=pick('phone_number', 'phoneNumber'),
            email=pick('email'),
        )


@dataclass
class OrderProduct:
    """Línea del pedido: producto, cantidad y precio unitario al crear el pedido."""
    product_id: int
    quantity: int
    variation_id: Optional[str] = None
    unit_price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'variation_id': self.variation_id,
            'unit_price': self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderProduct':
        return cls(
            product_id=to_int(data.get('product_id'), 0),
            quantity=to_int(data.get('quantity'), 0),
            variation_id=data.get('variation_id'),
            unit_price=to_float(data.get('unit_price')),
        )


@dataclass
class OrderStatusEntry:
    status: str
    timestamp: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status, 'timestamp': self.timestamp, 'note': self.note}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderStatusEntry':
        return cls(status=data.get('status', ''), timestamp=data.get('timestamp', ''), note=data.get('note'))


@dataclass
class Order:
    """
    Pedido creado a partir de un carrito.

    Las líneas no cambian después de crear el pedido y el log de estados
    solo crece (append-only).

    Attributes:
        sub_total: Suma de líneas al crear el pedido
        delivery_fee: Tarifa del tipo de entrega elegido
        tax_amount: Impuesto calculado por el checkout (0 si no aplica)
        total_amount: sub_total + delivery_fee + tax_amount
        status_log: Historial de estados [{status, timestamp, note}]
    """
    id: int
    user_id: int
    products: List[OrderProduct] = field(default_factory=list)
    delivery_type: str = DeliveryType.STANDARD.value
    delivery_fee: float = 0.0
    sub_total: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    payment_method: str = PaymentMethod.CARD.value
    payment_status: str = PaymentStatus.PENDING.value
    shipping_address: ShippingAddress = field(default_factory=ShippingAddress)
    scheduled_date_time: Optional[str] = None
    status_log: List[OrderStatusEntry] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def current_status(self) -> Optional[str]:
        return self.status_log[-1].status if self.status_log else None

    @property
    def is_cancelled(self) -> bool:
        """
        Un pedido cancelado se guarda con payment_status = failed.
        Esta propiedad es la única forma de preguntar por la cancelación.
        """
        return any(entry.status == STATUS_CANCELLED for entry in self.status_log)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value

    @property
    def can_cancel(self) -> bool:
        return self.payment_status in CANCELLABLE_STATUSES and not self.is_cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'products': [p.to_dict() for p in self.products],
            'delivery_type': enum_value(self.delivery_type),
            'delivery_fee': self.delivery_fee,
            'sub_total': self.sub_total,
            'tax_amount': self.tax_amount,
            'total_amount': self.total_amount,
            'payment_method': enum_value(self.payment_method),
            'payment_status': enum_value(self.payment_status),
            'shipping_address': self.shipping_address.to_dict(),
            'scheduled_date_time': self.scheduled_date_time,
            'status_log': [e.to_dict() for e in self.status_log],
            'current_status': self.current_status,
            'is_cancelled': self.is_cancelled,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            products=[OrderProduct.from_dict(p) for p in data.get('products') or []],
            delivery_type=data.get('delivery_type', DeliveryType.STANDARD.value),
            delivery_fee=to_float(data.get('delivery_fee')),
            sub_total=to_float(data.get('sub_total')),
            tax_amount=to_float(data.get('tax_amount')),
            total_amount=to_float(data.get('total_amount')),
            payment_method=data.get('payment_method', PaymentMethod.CARD.value),
            payment_status=data.get('payment_status', PaymentStatus.PENDING.value),
            shipping_address=ShippingAddress.from_dict(data.get('shipping_address')),
            scheduled_date_time=data.get('scheduled_date_time'),
            status_log=[OrderStatusEntry.from_dict(e) for e in data.get('status_log') or []],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


# ==============================================================================
# PAGOS
# ==============================================================================

@dataclass
class Payment:
    """
    Registro de pago de un pedido. Un reintento actualiza el mismo registro.

    Attributes:
        transaction_id: Referencia externa (sesión o intent de la pasarela)
        payment_details: JSON opaco con ids de la pasarela
    """
    id: int
    amount: float
    status: str = PaymentStatus.PENDING.value
    payment_method: str = PaymentMethod.CARD.value
    order_id: Optional[int] = None
    user_id: Optional[int] = None
    transaction_id: Optional[str] = None
    payment_details: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'status': enum_value(self.status),
            'payment_method': enum_value(self.payment_method),
            'order_id': self.order_id,
            'user_id': self.user_id,
            'transaction_id': self.transaction_id,
            'payment_details': self.payment_details,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        return cls(
            id=data.get('id'),
            amount=money(data.get('amount')),
            status=data.get('status', PaymentStatus.PENDING.value),
            payment_method=data.get('payment_method', PaymentMethod.CARD.value),
            order_id=data.get('order_id'),
            user_id=data.get('user_id'),
            transaction_id=data.get('transaction_id'),
            payment_details=data.get('payment_details') or {},
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


# ==============================================================================
# CONFIGURACIÓN DE PRECIOS
# ==============================================================================

@dataclass
class Tax:
    """
    Impuesto configurable.

    Attributes:
        rate: Porcentaje (5 = 5%)
        minimum_amount: Monto mínimo para que aplique
        maximum_amount: Tope opcional del impuesto
        applicable_from / applicable_to: Ventana opcional de vigencia
    """
    id: int
    name: str
    rate: float
    minimum_amount: float = 0.0
    maximum_amount: Optional[float] = None
    applicable_from: Optional[str] = None
    applicable_to: Optional[str] = None
    is_active: bool = True
    description: str = ''
    created_at: Optional[str] = None

    def is_applicable(self, now: datetime) -> bool:
        """True si está activo y `now` cae dentro de la ventana."""
        if not self.is_active:
            return False
        start = parse_datetime(self.applicable_from)
        end = parse_datetime(self.applicable_to)
        if start and now < start:
            return False
        if end and now > end:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'rate': self.rate,
            'minimum_amount': self.minimum_amount,
            'maximum_amount': self.maximum_amount,
            'applicable_from': self.applicable_from,
            'applicable_to': self.applicable_to,
            'is_active': self.is_active,
            'description': self.description,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Tax':
        maximum = data.get('maximum_amount')
        return cls(
            id=data.get('id'),
            name=data.get('name', ''),
            rate=to_float(data.get('rate')),
            minimum_amount=to_float(data.get('minimum_amount')),
            maximum_amount=to_float(maximum) if maximum not in (None, '') else None,
            applicable_from=data.get('applicable_from'),
            applicable_to=data.get('applicable_to'),
            is_active=bool(data.get('is_active', True)),
            description=data.get('description', ''),
            created_at=data.get('created_at'),
        )


@dataclass
class DeliveryPricing:
    """Tarifa plana por tipo de entrega."""
    id: int
    type: str
    amount: float
    description: Optional[str] = None
    estimated_time: Optional[str] = None
    icon: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeliveryPricing':
        return cls(
            id=data.get('id'),
            type=data.get('type', ''),
            amount=money(data.get('amount')),
            description=data.get('description'),
            estimated_time=data.get('estimated_time'),
            icon=data.get('icon'),
        )


@dataclass
class Notification:
    id: int
    user_id: int
    title: str
    message: str
    type: str = 'order'
    read: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            title=data.get('title', ''),
            message=data.get('message', ''),
            type=data.get('type', 'order'),
            read=bool(data.get('read', False)),
            created_at=data.get('created_at'),
        )


# ==============================================================================
# LISTA DE DESEOS
# ==============================================================================

@dataclass
class WishlistItem:
    """
    Producto guardado en la lista de deseos.
    El stock se consulta en vivo al mostrar la lista; el snapshot es informativo.
    """
    product_id: int
    variation_id: Optional[str] = None
    variation_details: Optional[VariationSnapshot] = None
    added_at: Optional[str] = None

    def matches(self, product_id: Any, variation_id: Any = None) -> bool:
        """Sin variation_id basta el producto; con variation_id deben coincidir ambos."""
        if str(self.product_id) != str(product_id):
            return False
        if variation_id in (None, ''):
            return True
        return self.variation_id == str(variation_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'variation_id': self.variation_id,
            'variation_details': self.variation_details.to_dict() if self.variation_details else None,
            'added_at': self.added_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WishlistItem':
        variation_id = data.get('variation_id')
        details = data.get('variation_details')
        return cls(
            product_id=to_int(data.get('product_id'), 0),
            variation_id=str(variation_id) if variation_id not in (None, '') else None,
            variation_details=VariationSnapshot.from_dict(details) if details else None,
            added_at=data.get('added_at'),
        )


@dataclass
class Wishlist:
    """Lista de deseos de un usuario (una por usuario, igual que el carrito)."""
    id: int
    user_id: int
    items: List[WishlistItem] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def find_item(self, product_id: Any, variation_id: Any = None) -> Optional[WishlistItem]:
        for item in self.items:
            if item.matches(product_id, variation_id):
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'items': [item.to_dict() for item in self.items],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Wishlist':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            items=[WishlistItem.from_dict(i) for i in data.get('items') or []],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


# ==============================================================================
# DIRECCIONES GUARDADAS
# ==============================================================================

@dataclass
class SavedAddress:
    """
    Dirección de envío guardada por un usuario.
    A lo sumo una dirección por usuario tiene is_default = True.
    """
    id: int
    user_id: int
    name: str = ''
    address_line1: str = ''
    address_line2: str = ''
    apartment_or_villa: str = ''
    city: str = ''
    region: str = ''
    phone_number: str = ''
    is_default: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # (atributo, nombre en el frontend)
    EDITABLE = (
        ('name', 'name'),
        ('address_line1', 'addressLine1'),
        ('address_line2', 'addressLine2'),
        ('apartment_or_villa', 'apartmentOrVilla'),
        ('city', 'city'),
        ('region', 'emirate'),
        ('phone_number', 'phoneNumber'),
    )
    REQUIRED = ('name', 'address_line1', 'region')

    def missing_fields(self) -> List[str]:
        labels = dict(self.EDITABLE)
        return [labels[attr] for attr in self.REQUIRED if not str(getattr(self, attr) or '').strip()]

    def to_shipping_address(self) -> ShippingAddress:
        """Dirección lista para un pedido (apartamento/villa va en la línea 2)."""
        line2 = ', '.join(part for part in (self.apartment_or_villa, self.address_line2) if part)
        return ShippingAddress(
            name=self.name,
            address_line1=self.address_line1,
            address_line2=line2,
            city=self.city,
            region=self.region,
            phone_number=self.phone_number,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'address_line1': self.address_line1,
            'address_line2': self.address_line2,
            'apartment_or_villa': self.apartment_or_villa,
            'city': self.city,
            'region': self.region,
            'phone_number': self.phone_number,
            'is_default': self.is_default,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SavedAddress':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            name=data.get('name') or '',
            address_line1=data.get('address_line1') or '',
            address_line2=data.get('address_line2') or '',
            apartment_or_villa=data.get('apartment_or_villa') or '',
            city=data.get('city') or '',
            region=data.get('region') or '',
            phone_number=data.get('phone_number') or '',
            is_default=bool(data.get('is_default', False)),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


# ==============================================================================
# RECOGIDA Y ENTREGA (PICK-DROP)
# ==============================================================================

class PickDropStatus(str, Enum):
    """Estados de una solicitud de recogida y entrega."""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PICKED_UP = "Picked Up"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


@dataclass
class PickDrop:
    """
    Solicitud de recogida de un paquete y entrega a un tercero.

    Attributes:
        item_weight: Peso en kg (> 0)
        price: Precio calculado al crear la solicitud
        assigned_rider: Repartidor asignado por un administrador
    """
    id: int
    user_id: int
    sender_name: str
    sender_contact: str
    receiver_name: str
    receiver_contact: str
    item_description: str
    item_weight: float
    price: float = 0.0
    preferred_pickup_time: Optional[str] = None
    status: str = PickDropStatus.PENDING.value
    assigned_rider: Optional[str] = None
    images: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'sender_name': self.sender_name,
            'sender_contact': self.sender_contact,
            'receiver_name': self.receiver_name,
            'receiver_contact': self.receiver_contact,
            'item_description': self.item_description,
            'item_weight': self.item_weight,
            'price': self.price,
            'preferred_pickup_time': self.preferred_pickup_time,
            'status': self.status,
            'assigned_rider': self.assigned_rider,
            'images': list(self.images),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PickDrop':
        return cls(
            id=data.get('id'),
            user_id=data.get('user_id'),
            sender_name=data.get('sender_name', ''),
            sender_contact=data.get('sender_contact', ''),
            receiver_name=data.get('receiver_name', ''),
            receiver_contact=data.get('receiver_contact', ''),
            item_description=data.get('item_description', ''),
            item_weight=to_float(data.get('item_weight')),
            price=money(data.get('price')),
            preferred_pickup_time=data.get('preferred_pickup_time'),
            status=data.get('status') or PickDropStatus.PENDING.value,
            assigned_rider=data.get('assigned_rider'),
            images=list(data.get('images') or []),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )
