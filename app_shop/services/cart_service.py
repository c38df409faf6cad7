# ==============================================================================
# SERVICIO DE CARRITO
# ==============================================================================
# Centraliza toda la lógica de negocio del carrito de compras.
# El carrito se guarda en carts.json (uno por usuario).
#
# REGLAS:
#   - add_item REEMPLAZA la cantidad de una línea existente (no la suma)
#   - Toda mutación (agregar / quitar / cambiar cantidad / vaciar) relee el
#     carrito y escribe dentro del lock "cart:<id>"
#   - El snapshot de variación es informativo; stock y precio siempre se
#     consultan en vivo
#   - Si un usuario tiene varios carritos se conserva el más antiguo y se
#     eliminan los demás
# ==============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from app_shop.errors import CartEmpty, NotFound, ShopError, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import Cart, CartItem, Product, VariationSnapshot
from app_shop.repositories.interfaces import ICartRepository
from app_shop.services import pricing_service
from app_shop.services.stock_service import StockService
from app_shop.utils import money, to_int, utcnow


logger = logging.getLogger(__name__)


class CartService:
    """
    Servicio para gestión del carrito de compras.

    Responsabilidades:
    - Crear el carrito bajo demanda y reparar duplicados
    - Agregar/quitar items y cambiar cantidades validando stock
    - Calcular totales
    - Validar el carrito antes del checkout
    """

    def __init__(self, cart_repo: ICartRepository, stock_service: StockService, locks: KeyedLockRegistry):
        """
        Args:
            cart_repo: Repositorio de carritos
            stock_service: Validación de stock y acceso a productos
            locks: Registro de locks por clave
        """
        self.cart_repo = cart_repo
        self.stock_service = stock_service
        self.locks = locks

    # =========================================================================
    # HELPERS INTERNOS
    # =========================================================================

    def _cart_lock(self, cart: Cart):
        return self.locks.hold(f'cart:{cart.id}')

    def _reload(self, cart: Cart) -> Cart:
        return self.cart_repo.get(cart.id) or cart

    def _save(self, cart: Cart) -> Cart:
        return self.cart_repo.save_items(cart.id, cart.items) or cart

    @staticmethod
    def _parse_quantity(quantity: Any) -> int:
        if isinstance(quantity, bool):
            quantity = None
        elif isinstance(quantity, float) and quantity.is_integer():
            quantity = int(quantity)
        elif isinstance(quantity, str):
            quantity = to_int(quantity.strip())
        if not isinstance(quantity, int):
            raise ValidationError('La cantidad debe ser un número entero')
        return quantity

    @staticmethod
    def _require_product_id(product_id: Any) -> int:
        value = to_int(product_id)
        if value is None:
            raise ValidationError('ID de producto inválido')
        return value

    @staticmethod
    def _normalize_variation_id(variation_id: Any) -> Optional[str]:
        if variation_id is None or str(variation_id).strip() == '':
            return None
        return str(variation_id).strip()

    def _backfill_variation_details(self, cart: Cart) -> Cart:
        """Completa el snapshot de las líneas con variación que no lo tienen."""
        if not any(item.variation_id and item.variation_details is None for item in cart.items):
            return cart

        with self._cart_lock(cart):
            cart = self._reload(cart)
            changed = False
            for item in cart.items:
                if not item.variation_id or item.variation_details is not None:
                    continue
                product = self.stock_service.find_product(item.product_id)
                variation = product.get_variation(item.variation_id) if product else None
                if variation is None:
                    continue
                item.variation_details = VariationSnapshot.of(variation)
                changed = True
            if changed:
                cart = self._save(cart)
                logger.debug('Snapshot de variaciones completado en carrito %s', cart.id)
            return cart

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_or_create_cart(self, user_id: Any) -> Cart:
        """
        Obtiene el carrito del usuario, creándolo si no existe.

        Si existen varios carritos para el mismo usuario, conserva el más
        antiguo y elimina el resto.
        """
        with self.locks.hold(f'user-cart:{user_id}'):
            carts = self.cart_repo.find_by_user(user_id)

            if not carts:
                cart = self.cart_repo.create_for_user(user_id)
                logger.info('Carrito %s creado para usuario %s', cart.id, user_id)
                return cart

            cart = carts[0]
            if len(carts) > 1:
                logger.warning(
                    'Usuario %s tiene %d carritos; se conserva el %s',
                    user_id, len(carts), cart.id,
                )
                for duplicate in carts[1:]:
                    try:
                        self.cart_repo.delete(duplicate.id)
                    except OSError:
                        logger.exception('No se pudo eliminar el carrito duplicado %s', duplicate.id)

        return self._backfill_variation_details(cart)

    def priced_lines(self, cart: Cart, now: Optional[datetime] = None) -> List[Tuple[CartItem, Optional[Product], float]]:
        """
        Resuelve cada línea contra el catálogo vivo.

        Returns:
            Lista de (item, producto o None, precio unitario sin redondear)
        """
        now = now or utcnow()
        lines = []
        for item in cart.items:
            product = self.stock_service.find_product(item.product_id)
            if product is None:
                logger.warning('Producto %s del carrito %s ya no existe', item.product_id, cart.id)
                lines.append((item, None, 0.0))
                continue
            # Si la variación desapareció, el snapshot conserva su ajuste
            variation = product.get_variation(item.variation_id) or item.variation_details
            lines.append((item, product, pricing_service.effective_unit_price(product, variation, now)))
        return lines

    def compute_totals(self, user_id: Any) -> Dict[str, Any]:
        """
        Calcula los totales del carrito.

        El subtotal se redondea una sola vez al final (no por línea).

        Returns:
            Dict con subtotal, item_count (líneas) y total_items (unidades)
        """
        cart = self.get_or_create_cart(user_id)
        return self.totals_for(cart)

    def totals_for(self, cart: Cart, now: Optional[datetime] = None) -> Dict[str, Any]:
        lines = self.priced_lines(cart, now)
        subtotal = sum(unit_price * item.quantity for item, _, unit_price in lines)
        return {
            'subtotal': money(subtotal),
            'item_count': len(cart.items),
            'total_items': sum(item.quantity for item in cart.items),
        }

    def describe_cart(self, user_id: Any) -> Dict[str, Any]:
        """Carrito con productos poblados y totales, listo para la respuesta JSON."""
        cart = self.get_or_create_cart(user_id)
        now = utcnow()
        items = []
        for item, product, unit_price in self.priced_lines(cart, now):
            entry = item.to_dict()
            entry['unit_price'] = money(unit_price)
            entry['line_total'] = money(unit_price * item.quantity)
            entry['product'] = None
            if product is not None:
                entry['product'] = {
                    'id': product.id,
                    'name': product.name,
                    'image': product.image,
                    'sku': product.sku,
                    'on_sale': pricing_service.is_sale_active(product, now),
                    'stock': product.stock_count,
                }
            items.append(entry)

        data = cart.to_dict()
        data['items'] = items
        data.update(self.totals_for(cart, now))
        return data

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def add_item(self, user_id: Any, product_id: Any, quantity: Any, variation_id: Any = None) -> Cart:
        """
        Agrega un producto al carrito o reemplaza la cantidad de su línea.

        Args:
            user_id: Dueño del carrito
            product_id: ID del producto
            quantity: Cantidad final de la línea (entero >= 1)
            variation_id: Variación elegida (obligatoria si el producto tiene variaciones)

        Returns:
            Carrito actualizado

        Raises:
            ValidationError, NotFound, Unavailable, VariationRequired,
            VariationNotFound, InsufficientStock (el carrito no cambia)
        """
        quantity = self._parse_quantity(quantity)
        if quantity < 1:
            raise ValidationError('La cantidad debe ser mayor a 0')
        product_id = self._require_product_id(product_id)
        variation_id = self._normalize_variation_id(variation_id)

        cart = self.get_or_create_cart(user_id)
        with self._cart_lock(cart):
            check = self.stock_service.check_stock(product_id, quantity, variation_id)
            # Productos sin variaciones nunca guardan variation_id
            line_variation_id = check.variation.id if check.variation else None
            snapshot = VariationSnapshot.of(check.variation) if check.variation else None

            cart = self._reload(cart)
            existing = cart.find_item(product_id, line_variation_id)
            if existing is not None:
                existing.quantity = quantity
                existing.variation_details = snapshot
            else:
                cart.items.append(CartItem(
                    product_id=check.product.id,
                    quantity=quantity,
                    variation_id=line_variation_id,
                    variation_details=snapshot,
                ))
            cart = self._save(cart)

        logger.info('Usuario %s: producto %s (variación %s) x%d en carrito', user_id, product_id, line_variation_id, quantity)
        return cart

    def remove_item(self, user_id: Any, product_id: Any, variation_id: Any = None) -> Cart:
        """
        Quita una línea del carrito.

        Con variation_id se usa la eliminación específica (NotFound si no
        existe la línea). Sin variation_id se quita la línea del producto
        sin variación; si no existe, el carrito se devuelve sin cambios.
        """
        variation_id = self._normalize_variation_id(variation_id)
        if variation_id is not None:
            return self.remove_specific_item(user_id, product_id, variation_id)

        cart = self.get_or_create_cart(user_id)
        with self._cart_lock(cart):
            cart = self._reload(cart)
            item = cart.find_item(product_id, None)
            if item is None:
                return cart
            cart.items.remove(item)
            return self._save(cart)

    def remove_specific_item(self, user_id: Any, product_id: Any, variation_id: Any) -> Cart:
        """Quita la línea (producto, variación). NotFound si no existe."""
        variation_id = self._normalize_variation_id(variation_id)
        cart = self.get_or_create_cart(user_id)
        with self._cart_lock(cart):
            cart = self._reload(cart)
            item = cart.find_item(product_id, variation_id)
            if item is None:
                raise NotFound('El producto no está en el carrito')
            cart.items.remove(item)
            return self._save(cart)

    def update_item_quantity(self, user_id: Any, product_id: Any, quantity: Any, variation_id: Any = None) -> Cart:
        """
        Cambia la cantidad de una línea existente.

        Sin variation_id se usa la primera línea del producto.
        Una cantidad <= 0 elimina la línea.

        Raises:
            NotFound si la línea no existe, InsufficientStock si supera el stock
        """
        quantity = self._parse_quantity(quantity)
        variation_id = self._normalize_variation_id(variation_id)

        cart = self.get_or_create_cart(user_id)
        with self._cart_lock(cart):
            cart = self._reload(cart)
            if variation_id is not None:
                item = cart.find_item(product_id, variation_id)
            else:
                item = next((i for i in cart.items if str(i.product_id) == str(product_id)), None)
            if item is None:
                raise NotFound('El producto no está en el carrito')

            if quantity <= 0:
                return self.remove_item(user_id, item.product_id, item.variation_id)

            check = self.stock_service.check_stock(item.product_id, quantity, item.variation_id)
            item.quantity = quantity
            if check.variation is not None:
                item.variation_details = VariationSnapshot.of(check.variation)
            return self._save(cart)

    def clear_cart(self, user_id: Any) -> Cart:
        """Vacía el carrito (idempotente)."""
        cart = self.get_or_create_cart(user_id)
        with self._cart_lock(cart):
            cart.items = []
            cart = self._save(cart)
        logger.info('Carrito %s vaciado', cart.id)
        return cart

    # =========================================================================
    # VALIDACIÓN PARA CHECKOUT
    # =========================================================================

    def validate_for_checkout(self, user_id: Any) -> Dict[str, Any]:
        """
        Revalida cada línea contra el catálogo vivo sin detenerse en la primera falla.

        Returns:
            {valid, invalid_items: [{item, reason, kind}], message}

        Raises:
            CartEmpty: si el carrito no tiene items
        """
        cart = self.get_or_create_cart(user_id)
        if not cart.items:
            raise CartEmpty()

        invalid_items = []
        for item in cart.items:
            try:
                self.stock_service.check_stock(item.product_id, item.quantity, item.variation_id)
            except ShopError as e:
                invalid_items.append({'item': item.to_dict(), 'reason': e.message, 'kind': e.kind})

        if invalid_items:
            message = 'Algunos productos del carrito ya no están disponibles o no tienen stock suficiente'
        else:
            message = 'Carrito válido'
        return {'valid': not invalid_items, 'invalid_items': invalid_items, 'message': message}
