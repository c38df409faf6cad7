# ==============================================================================
# API HTTP - Rutas Flask de la tienda
# ==============================================================================
# Las rutas son delgadas: leen la petición, llaman a un servicio del
# contenedor y devuelven JSON. Toda la lógica de negocio vive en services/.
#
# FORMATO DE RESPUESTA:
#   éxito -> {"ok": true, "data": ...}
#   error -> {"ok": false, "error": "...", "kind": "..."} (ver errors.py)
#
# SESIÓN: el usuario actual sale de session['user_id'] y session['role'].
# El login vive fuera de esta aplicación.
# ==============================================================================

import atexit
import logging
from functools import wraps

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from app_shop import performance_logger
from app_shop.app_container import AppContainer, get_container
from app_shop.config import Settings, setup_logging
from app_shop.errors import Forbidden, InternalError, NotAuthenticated, ShopError, ValidationError
from app_shop.performance_logger import init_profiling
from app_shop.utils import to_float, to_int


logger = logging.getLogger(__name__)

_settings = Settings.from_env()
setup_logging(_settings.log_level)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SESIÓN
# ═══════════════════════════════════════════════════════════════════════════
app.secret_key = _settings.secret_key
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=_settings.production_mode,
    SESSION_COOKIE_SAMESITE='Lax',
    MAX_CONTENT_LENGTH=1 * 1024 * 1024,
)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en SHOP_LOG_DIR.
performance_logger.ENABLE_PROFILING = _settings.enable_profiling
init_profiling(app)

# El hilo de notificaciones se detiene al salir del proceso
atexit.register(AppContainer.reset_instance)


def container() -> AppContainer:
    return get_container(_settings)


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN Y UTILIDADES DE PETICIÓN
# ═══════════════════════════════════════════════════════════════════════════

def current_user_id():
    return session.get('user_id')


def is_admin() -> bool:
    return session.get('role') == 'admin'


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            raise NotAuthenticated()
        return f(*args, **kwargs)
    return wrapper


def admin_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            raise NotAuthenticated()
        if not is_admin():
            raise Forbidden('Se requiere rol de administrador')
        return f(*args, **kwargs)
    return wrapper


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _arg(name: str, *aliases: str):
    for key in (name,) + aliases:
        value = request.args.get(key)
        if value not in (None, ''):
            return value
    return None


def _page_args():
    page = max(1, to_int(_arg('page'), 1))
    page_size = min(100, max(1, to_int(_arg('pageSize', 'page_size'), 10)))
    return page, page_size


def ok(data=None, status: int = 200):
    return jsonify({'ok': True, 'data': data}), status


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

@app.errorhandler(ShopError)
def handle_shop_error(error: ShopError):
    if error.http_status >= 500:
        logger.error('%s: %s', error.kind, error.message)
    return jsonify(error.to_dict()), error.http_status


@app.errorhandler(HTTPException)
def handle_http_error(error: HTTPException):
    return jsonify({'ok': False, 'error': error.description, 'kind': 'http'}), error.code


@app.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    logger.exception('Error no controlado en %s %s', request.method, request.path)
    internal = InternalError()
    return jsonify(internal.to_dict()), internal.http_status


# ═══════════════════════════════════════════════════════════════════════════
# CARRITO
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/cart/me', methods=['GET'])
@login_required
def cart_me():
    return ok(container().cart_service.describe_cart(current_user_id()))


@app.route('/cart/items', methods=['POST'])
@login_required
def cart_add_item():
    data = _json_body()
    product_id = data.get('productId', data.get('product_id'))
    if product_id in (None, ''):
        raise ValidationError('El producto es obligatorio')
    if 'quantity' not in data:
        raise ValidationError('La cantidad es obligatoria')

    cart_service = container().cart_service
    cart_service.add_item(
        current_user_id(),
        product_id,
        data['quantity'],
        data.get('variationId', data.get('variation_id')),
    )
    return ok(cart_service.describe_cart(current_user_id()))


@app.route('/cart/items/<product_id>', methods=['PUT'])
@login_required
def cart_update_item(product_id):
    data = _json_body()
    if 'quantity' not in data:
        raise ValidationError('La cantidad es obligatoria')

    cart_service = container().cart_service
    cart_service.update_item_quantity(
        current_user_id(),
        product_id,
        data['quantity'],
        data.get('variationId', data.get('variation_id')),
    )
    return ok(cart_service.describe_cart(current_user_id()))


@app.route('/cart/items/<product_id>', methods=['DELETE'])
@login_required
def cart_remove_item(product_id):
    cart_service = container().cart_service
    cart_service.remove_item(current_user_id(), product_id, _arg('variationId', 'variation_id'))
    return ok(cart_service.describe_cart(current_user_id()))


@app.route('/cart/clear', methods=['DELETE'])
@login_required
def cart_clear():
    cart_service = container().cart_service
    cart_service.clear_cart(current_user_id())
    return ok(cart_service.describe_cart(current_user_id()))


@app.route('/cart/totals', methods=['GET'])
@login_required
def cart_totals():
    return ok(container().cart_service.compute_totals(current_user_id()))


# ═══════════════════════════════════════════════════════════════════════════
# CHECKOUT
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/checkout', methods=['POST'])
@login_required
def checkout():
    data = _json_body()
    # Dirección guardada en lugar de una dirección completa
    address_id = data.get('shippingAddressId', data.get('shipping_address_id'))
    if address_id not in (None, '') and not data.get('shippingAddress', data.get('shipping_address')):
        saved = container().shipping_address_service.get_address(current_user_id(), address_id)
        data['shippingAddress'] = dict(saved.to_shipping_address().to_dict(), email=session.get('email') or '')

    result = container().checkout_service.process_checkout(
        current_user_id(),
        data,
        customer_email=session.get('email'),
    )
    if result.get('success'):
        return ok(result)

    status = result.pop('http_status', 400)
    result.pop('success', None)
    return jsonify({'ok': False, **result}), status


@app.route('/checkout/summary', methods=['GET'])
@login_required
def checkout_summary():
    delivery_type = _arg('deliveryType', 'delivery_type') or 'Standard'
    return ok(container().checkout_service.calculate_order_summary(current_user_id(), delivery_type))


@app.route('/checkout/payment-methods', methods=['GET'])
def checkout_payment_methods():
    return ok(container().checkout_service.get_payment_methods())


@app.route('/checkout/create-payment-intent', methods=['POST'])
@login_required
def checkout_create_payment_intent():
    data = _json_body()
    result = container().checkout_service.create_payment_intent(
        current_user_id(),
        data.get('amount'),
        description=data.get('description'),
        customer_email=session.get('email'),
    )
    return ok(result)


@app.route('/checkout/pay/<order_id>', methods=['POST'])
@login_required
def checkout_pay_order(order_id):
    result = container().checkout_service.create_payment_for_order(
        current_user_id(),
        order_id,
        customer_email=session.get('email'),
    )
    return ok(result)


@app.route('/stripe/webhook', methods=['POST'])
def stripe_webhook():
    # La firma se calcula sobre el cuerpo crudo: no parsear antes
    body, status = container().webhook_service.handle(
        request.get_data(cache=False),
        request.headers.get('Stripe-Signature', ''),
    )
    return jsonify(body), status


# ═══════════════════════════════════════════════════════════════════════════
# IMPUESTOS Y ENTREGA
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/tax/calculate', methods=['GET'])
def tax_calculate():
    amount = _arg('amount')
    if amount is None:
        raise ValidationError('El monto es obligatorio')
    if to_float(amount) < 0:
        raise ValidationError('El monto no puede ser negativo')
    return ok(container().tax_service.calculate_tax(amount))


@app.route('/delivery-types', methods=['GET'])
def delivery_types():
    return ok(container().delivery_service.list_delivery_types())


# ═══════════════════════════════════════════════════════════════════════════
# PEDIDOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/orders/me', methods=['GET'])
@login_required
def orders_me():
    page, page_size = _page_args()
    sort = _arg('sort') or '-id'
    return ok(container().order_service.get_user_order_history(current_user_id(), page, page_size, sort))


@app.route('/orders/search', methods=['GET'])
@login_required
def orders_search():
    page, page_size = _page_args()
    filters = {
        'start_date': _arg('startDate', 'start_date'),
        'end_date': _arg('endDate', 'end_date'),
        'payment_status': _arg('paymentStatus', 'payment_status'),
        'min_amount': _arg('minAmount', 'min_amount'),
        'max_amount': _arg('maxAmount', 'max_amount'),
        'search_term': _arg('searchTerm', 'search_term', 'q'),
    }
    owner = None if is_admin() else current_user_id()
    return ok(container().order_service.search_orders(filters, owner, page, page_size))


@app.route('/orders/stats', methods=['GET'])
@login_required
def orders_stats():
    owner = None if is_admin() else current_user_id()
    return ok(container().order_service.get_order_stats(owner))


@app.route('/orders/<order_id>', methods=['GET'])
@login_required
def order_detail(order_id):
    order = container().order_service.get_order_details(order_id, current_user_id(), is_admin())
    return ok(order.to_dict())


@app.route('/orders/<order_id>/status', methods=['PUT'])
@admin_required
def order_update_status(order_id):
    data = _json_body()
    order = container().order_service.update_order_status(order_id, data.get('status'), data.get('note'))
    return ok(order.to_dict())


@app.route('/orders/<order_id>/cancel', methods=['PUT'])
@login_required
def order_cancel(order_id):
    data = _json_body()
    order = container().order_service.cancel(order_id, current_user_id(), is_admin(), data.get('reason'))
    return ok(order.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
# PAGOS Y NOTIFICACIONES
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/payments/me', methods=['GET'])
@login_required
def payments_me():
    page, page_size = _page_args()
    return ok(container().payment_service.get_user_payments(current_user_id(), page, page_size))


@app.route('/notifications/me', methods=['GET'])
@login_required
def notifications_me():
    return ok(container().notification_service.get_user_notifications(current_user_id()))


# ═══════════════════════════════════════════════════════════════════════════
# LISTA DE DESEOS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/wishlist/me', methods=['GET'])
@login_required
def wishlist_me():
    return ok(container().wishlist_service.describe_wishlist(current_user_id()))


@app.route('/wishlist/products', methods=['POST'])
@login_required
def wishlist_add_product():
    data = _json_body()
    product_id = data.get('productId', data.get('product_id'))
    if product_id in (None, ''):
        raise ValidationError('El producto es obligatorio')

    wishlist_service = container().wishlist_service
    wishlist_service.add_product(current_user_id(), product_id, data.get('variationId', data.get('variation_id')))
    return ok(wishlist_service.describe_wishlist(current_user_id()))


@app.route('/wishlist/products/<product_id>', methods=['DELETE'])
@login_required
def wishlist_remove_product(product_id):
    wishlist_service = container().wishlist_service
    wishlist_service.remove_product(current_user_id(), product_id, _arg('variationId', 'variation_id'))
    return ok(wishlist_service.describe_wishlist(current_user_id()))


@app.route('/wishlist/clear', methods=['DELETE'])
@login_required
def wishlist_clear():
    wishlist_service = container().wishlist_service
    wishlist_service.clear_wishlist(current_user_id())
    return ok(wishlist_service.describe_wishlist(current_user_id()))


@app.route('/wishlist/check/<product_id>', methods=['GET'])
@login_required
def wishlist_check(product_id):
    found = container().wishlist_service.is_product_in_wishlist(
        current_user_id(), product_id, _arg('variationId', 'variation_id'),
    )
    return ok({'is_in_wishlist': found})


# ═══════════════════════════════════════════════════════════════════════════
# DIRECCIONES GUARDADAS
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/shipping-addresses/me', methods=['GET'])
@login_required
def addresses_me():
    addresses = container().shipping_address_service.list_addresses(current_user_id())
    return ok([a.to_dict() for a in addresses])


@app.route('/shipping-addresses', methods=['POST'])
@login_required
def addresses_add():
    address = container().shipping_address_service.add_address(current_user_id(), _json_body())
    return ok(address.to_dict(), 201)


@app.route('/shipping-addresses/<address_id>', methods=['PUT'])
@login_required
def addresses_update(address_id):
    address = container().shipping_address_service.update_address(current_user_id(), address_id, _json_body())
    return ok(address.to_dict())


@app.route('/shipping-addresses/<address_id>/default', methods=['PUT'])
@login_required
def addresses_set_default(address_id):
    address = container().shipping_address_service.set_default_address(current_user_id(), address_id)
    return ok(address.to_dict())


@app.route('/shipping-addresses/<address_id>', methods=['DELETE'])
@login_required
def addresses_delete(address_id):
    remaining = container().shipping_address_service.delete_address(current_user_id(), address_id)
    return ok([a.to_dict() for a in remaining])


# ═══════════════════════════════════════════════════════════════════════════
# PICK-DROP
# ═══════════════════════════════════════════════════════════════════════════

@app.route('/pick-drops', methods=['POST'])
@login_required
def pick_drop_create():
    pick_drop = container().pick_drop_service.create_request(current_user_id(), _json_body())
    return ok(pick_drop.to_dict(), 201)


@app.route('/pick-drops/me', methods=['GET'])
@login_required
def pick_drop_me():
    page, page_size = _page_args()
    sort = _arg('sort') or '-id'
    return ok(container().pick_drop_service.get_user_history(current_user_id(), page, page_size, sort))


@app.route('/pick-drops/calculate-price', methods=['GET'])
def pick_drop_price():
    weight = _arg('weight')
    return ok({'weight': to_float(weight), 'price': container().pick_drop_service.calculate_price(weight)})


@app.route('/pick-drops/<pick_drop_id>', methods=['GET'])
@login_required
def pick_drop_detail(pick_drop_id):
    pick_drop = container().pick_drop_service.get_details(pick_drop_id, current_user_id(), is_admin())
    return ok(pick_drop.to_dict())


@app.route('/pick-drops/<pick_drop_id>/status', methods=['PUT'])
@admin_required
def pick_drop_update_status(pick_drop_id):
    data = _json_body()
    pick_drop = container().pick_drop_service.update_status(
        pick_drop_id,
        data.get('status'),
        data.get('assignedRider', data.get('assigned_rider')),
    )
    return ok(pick_drop.to_dict())
