# ==============================================================================
# TIEMPOS DE LA TIENDA - Rutas HTTP y operaciones de checkout
# ==============================================================================
# Registra cuánto tarda cada petición y las operaciones que tocan dinero
# (checkout, alta de pedido, reintento de pago, webhooks). Nunca cambia la
# respuesta: un fallo al escribir el log solo genera un warning.
#
# Archivos en SHOP_LOG_DIR (por defecto ./logs), una línea por registro:
#   performance.log     -> todas las peticiones
#   slow_routes.log     -> peticiones sobre el umbral (LENTA / MUY LENTA)
#   slow_functions.log  -> operaciones decoradas sobre el umbral
#
# Se activa con SHOP_ENABLE_PROFILING=1.
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps


logger = logging.getLogger(__name__)

ENABLE_PROFILING = os.environ.get('SHOP_ENABLE_PROFILING', '0').strip().lower() in ('1', 'true', 'yes', 'on')

# Umbrales (ms)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = os.environ.get('SHOP_LOG_DIR') or os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'logs')

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Nombre de cada acción del cliente, por regla de Flask
ROUTE_NAMES = {
    'GET /cart/me': 'Ver carrito',
    'POST /cart/items': 'Agregar al carrito',
    'PUT /cart/items/<product_id>': 'Cambiar cantidad',
    'DELETE /cart/items/<product_id>': 'Quitar del carrito',
    'DELETE /cart/clear': 'Vaciar carrito',
    'GET /cart/totals': 'Totales del carrito',
    'POST /checkout': 'Procesar checkout',
    'GET /checkout/summary': 'Resumen del pedido',
    'GET /checkout/payment-methods': 'Métodos de pago',
    'POST /checkout/create-payment-intent': 'Crear intento de pago',
    'POST /checkout/pay/<order_id>': 'Reintentar pago',
    'POST /stripe/webhook': 'Webhook de pagos',
    'GET /tax/calculate': 'Calcular impuesto',
    'GET /delivery-types': 'Tipos de entrega',
    'GET /orders/me': 'Historial de pedidos',
    'GET /orders/<order_id>': 'Detalle de pedido',
    'PUT /orders/<order_id>/status': 'Cambiar estado de pedido',
    'PUT /orders/<order_id>/cancel': 'Cancelar pedido',
    'GET /orders/search': 'Buscar pedidos',
    'GET /orders/stats': 'Estadísticas de pedidos',
    'GET /payments/me': 'Mis pagos',
    'GET /notifications/me': 'Mis notificaciones',
    'GET /wishlist/me': 'Ver lista de deseos',
    'POST /wishlist/products': 'Agregar a lista de deseos',
    'DELETE /wishlist/products/<product_id>': 'Quitar de lista de deseos',
    'DELETE /wishlist/clear': 'Vaciar lista de deseos',
    'GET /wishlist/check/<product_id>': 'Consultar lista de deseos',
    'GET /shipping-addresses/me': 'Mis direcciones',
    'POST /shipping-addresses': 'Guardar dirección',
    'PUT /shipping-addresses/<address_id>': 'Editar dirección',
    'PUT /shipping-addresses/<address_id>/default': 'Dirección predeterminada',
    'DELETE /shipping-addresses/<address_id>': 'Borrar dirección',
    'POST /pick-drops': 'Solicitar pick-drop',
    'GET /pick-drops/me': 'Mis pick-drops',
    'GET /pick-drops/calculate-price': 'Cotizar pick-drop',
    'GET /pick-drops/<pick_drop_id>': 'Detalle de pick-drop',
    'PUT /pick-drops/<pick_drop_id>/status': 'Cambiar estado de pick-drop',
}

_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


def _append_line(filepath, fields):
    """Agrega una línea `campo | campo | ...` al archivo."""
    line = ' | '.join([datetime.now().strftime('%Y-%m-%d %H:%M:%S')] + [str(f) for f in fields]) + '\n'
    try:
        with _write_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(line)
    except OSError as e:
        logger.warning('No se pudo escribir %s: %s', filepath, e)


def action_name(method, path, rule=None):
    for candidate in (f'{method} {rule}' if rule else None, f'{method} {path}'):
        if candidate and candidate in ROUTE_NAMES:
            return ROUTE_NAMES[candidate]
    return f'{method} {path}'


# ------------------------------------------------------------------------------
# Peticiones HTTP
# ------------------------------------------------------------------------------

def log_request(method, path, rule, status_code, time_ms, user=None):
    """Una línea en performance.log y, si supera el umbral, otra en slow_routes.log."""
    if not ENABLE_PROFILING:
        return

    action = action_name(method, path, rule)
    user = user or 'anónimo'
    _append_line(PERFORMANCE_LOG, [f'{method} {path}', action, f'usuario={user}', status_code, f'{time_ms:.0f} ms'])

    if time_ms < THRESHOLD_WARNING:
        return
    level = 'MUY LENTA' if time_ms >= THRESHOLD_CRITICAL else 'LENTA'
    threshold = THRESHOLD_CRITICAL if time_ms >= THRESHOLD_CRITICAL else THRESHOLD_WARNING
    _append_line(SLOW_ROUTES_LOG, [level, f'{method} {path}', action, f'usuario={user}', f'{time_ms:.0f} ms > {threshold} ms'])
    logger.warning('%s (%s %s) tardó %.0f ms', action, method, path, time_ms)


def init_profiling(app):
    """Mide cada petición de la app Flask (solo si ENABLE_PROFILING)."""
    if not ENABLE_PROFILING:
        return

    from flask import g, request, session

    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time'):
            return response
        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        log_request(request.method, request.path, rule, response.status_code, elapsed, session.get('user_id'))
        return response


# ------------------------------------------------------------------------------
# Operaciones de checkout y pagos
# ------------------------------------------------------------------------------

def profile_function(func=None, name=None):
    """
    Acumula llamadas, promedio y máximo de una operación.

        @profile_function(name='Procesar checkout')
        def process_checkout(...):
            ...

    Las llamadas que terminan en excepción también cuentan.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)

            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    stats['max_time'] = max(stats['max_time'], elapsed_ms)
                if elapsed_ms >= THRESHOLD_WARNING:
                    level = 'MUY LENTA' if elapsed_ms >= THRESHOLD_CRITICAL else 'LENTA'
                    _append_line(SLOW_FUNCTIONS_LOG, [level, func_name, f'{elapsed_ms:.0f} ms'])

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats():
    """{operación: {calls, avg_time, max_time}} con tiempos en ms."""
    with _stats_lock:
        return {
            func_name: {
                'calls': stats['calls'],
                'avg_time': round(stats['total_time'] / stats['calls'], 2) if stats['calls'] else 0,
                'max_time': round(stats['max_time'], 2),
            }
            for func_name, stats in _function_stats.items()
        }


def reset_stats():
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
