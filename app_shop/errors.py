# ==============================================================================
# ERRORES DEL DOMINIO - Taxonomía cerrada
# ==============================================================================
# Cada error tiene un `kind` estable y un código HTTP.
# Los servicios lanzan estos errores en el punto donde detectan el problema;
# las rutas los traducen a JSON en un único manejador (ver main.py).
# Nunca se discrimina un error por el texto de su mensaje.
# ==============================================================================

from typing import Any, Dict, List, Optional


class ShopError(Exception):
    """Error base de la tienda."""

    kind = 'internal'
    http_status = 500
    default_message = 'Error interno'

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Respuesta JSON para el cliente."""
        payload = {'ok': False, 'error': self.message, 'kind': self.kind}
        payload.update(self.details)
        return payload


# ------------------------------------------------------------------------------
# 400 - Entrada inválida
# ------------------------------------------------------------------------------

class ValidationError(ShopError):
    kind = 'validation'
    http_status = 400
    default_message = 'Validación fallida'

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message, errors=list(errors or []))

    @property
    def errors(self) -> List[str]:
        return self.details['errors']


# ------------------------------------------------------------------------------
# 404 - Entidad inexistente
# ------------------------------------------------------------------------------

class NotFound(ShopError):
    kind = 'not_found'
    http_status = 404
    default_message = 'No encontrado'


class VariationNotFound(NotFound):
    kind = 'variation_not_found'
    default_message = 'La variación del producto ya no existe'


class OrderNotFound(NotFound):
    kind = 'order_not_found'
    default_message = 'Pedido no encontrado'


# ------------------------------------------------------------------------------
# 401 / 403 - Identidad y permisos
# ------------------------------------------------------------------------------

class Unauthorized(ShopError):
    """El usuario no tiene derecho sobre el recurso (no es el dueño)."""
    kind = 'unauthorized'
    http_status = 403
    default_message = 'No autorizado'


class NotAuthenticated(Unauthorized):
    kind = 'not_authenticated'
    http_status = 401
    default_message = 'Debes iniciar sesión'


class Forbidden(ShopError):
    kind = 'forbidden'
    http_status = 403
    default_message = 'Permiso denegado'


# ------------------------------------------------------------------------------
# 400 - Reglas de negocio
# ------------------------------------------------------------------------------

class Conflict(ShopError):
    kind = 'conflict'
    http_status = 400
    default_message = 'Operación no permitida'


class Unavailable(Conflict):
    kind = 'unavailable'
    default_message = 'El producto no está disponible'


class InsufficientStock(Conflict):
    kind = 'insufficient_stock'
    default_message = 'Stock insuficiente'

    def __init__(self, message: Optional[str] = None, available: int = 0):
        super().__init__(message, available=available)

    @property
    def available(self) -> int:
        return self.details['available']


class VariationRequired(Conflict):
    kind = 'variation_required'
    default_message = 'Debe seleccionar una variación para este producto'


class CartEmpty(Conflict):
    kind = 'cart_empty'
    default_message = 'El carrito está vacío'


class InvalidCart(Conflict):
    kind = 'invalid_cart'
    default_message = 'Algunos productos del carrito ya no están disponibles o no tienen stock suficiente'

    def __init__(self, message: Optional[str] = None, invalid_items: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, invalid_items=list(invalid_items or []))


class AlreadyPaid(Conflict):
    kind = 'already_paid'
    default_message = 'Este pedido ya fue pagado'


class CannotCancel(Conflict):
    kind = 'cannot_cancel'
    default_message = 'El pedido ya no se puede cancelar'


class AlreadyInWishlist(Conflict):
    kind = 'already_in_wishlist'
    default_message = 'El producto ya está en la lista de deseos'


# ------------------------------------------------------------------------------
# Servicios externos
# ------------------------------------------------------------------------------

class ExternalServiceError(ShopError):
    """Fallo de la pasarela de pago. El detalle real solo va al log."""
    kind = 'external_service'
    http_status = 400
    default_message = 'Error al procesar el pago'


class InvalidSignature(ShopError):
    kind = 'invalid_signature'
    http_status = 400
    default_message = 'Firma inválida'


class InternalError(ShopError):
    kind = 'internal'
    http_status = 500
    default_message = 'Error interno del servidor'
