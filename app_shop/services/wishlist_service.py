# ==============================================================================
# SERVICIO DE LISTA DE DESEOS
# ==============================================================================
# Una lista por usuario (wishlists.json), con la misma disciplina que el
# carrito:
#   - Se crea bajo demanda; si hay varias se conserva la más antigua
#   - Toda mutación relee la lista y escribe dentro del lock "wishlist:<id>"
#   - Al agregar se valida que haya al menos 1 unidad disponible
#   - Un par (producto, variación) aparece una sola vez
#
# Al mostrar la lista cada línea lleva banderas de stock calculadas en vivo
# (available, in_stock, stock), porque el stock cambia después de agregar.
# ==============================================================================

import logging
from typing import Any, Dict, Optional

from app_shop.errors import AlreadyInWishlist, NotFound, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import Wishlist, WishlistItem, VariationSnapshot
from app_shop.repositories.interfaces import IWishlistRepository
from app_shop.services import pricing_service
from app_shop.services.stock_service import StockService
from app_shop.utils import money, now_iso, to_int, utcnow


logger = logging.getLogger(__name__)


class WishlistService:
    """Lista de deseos por usuario."""

    def __init__(self, wishlist_repo: IWishlistRepository, stock_service: StockService, locks: KeyedLockRegistry):
        self.wishlist_repo = wishlist_repo
        self.stock_service = stock_service
        self.locks = locks

    def _wishlist_lock(self, wishlist: Wishlist):
        return self.locks.hold(f'wishlist:{wishlist.id}')

    def _reload(self, wishlist: Wishlist) -> Wishlist:
        return self.wishlist_repo.get(wishlist.id) or wishlist

    def _save(self, wishlist: Wishlist) -> Wishlist:
        return self.wishlist_repo.save_items(wishlist.id, wishlist.items) or wishlist

    @staticmethod
    def _normalize_variation_id(variation_id: Any) -> Optional[str]:
        if variation_id is None or str(variation_id).strip() == '':
            return None
        return str(variation_id).strip()

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_or_create_wishlist(self, user_id: Any) -> Wishlist:
        with self.locks.hold(f'user-wishlist:{user_id}'):
            wishlists = self.wishlist_repo.find_by_user(user_id)
            if not wishlists:
                wishlist = self.wishlist_repo.create_for_user(user_id)
                logger.info('Lista de deseos %s creada para usuario %s', wishlist.id, user_id)
                return wishlist

            wishlist = wishlists[0]
            if len(wishlists) > 1:
                logger.warning(
                    'Usuario %s tiene %d listas de deseos; se conserva la %s',
                    user_id, len(wishlists), wishlist.id,
                )
                for duplicate in wishlists[1:]:
                    try:
                        self.wishlist_repo.delete(duplicate.id)
                    except OSError:
                        logger.exception('No se pudo eliminar la lista duplicada %s', duplicate.id)
            return wishlist

    def describe_wishlist(self, user_id: Any) -> Dict[str, Any]:
        """
        Lista con productos poblados y banderas de stock en vivo.

        Cada línea incluye:
            available: el producto (y su variación) existe y está publicado
            stock: unidades disponibles ahora mismo
            in_stock: available y stock > 0
        """
        wishlist = self.get_or_create_wishlist(user_id)
        now = utcnow()
        items = []
        for item in wishlist.items:
            entry = item.to_dict()
            product = self.stock_service.find_product(item.product_id)
            if product is None:
                entry.update(product=None, available=False, stock=0, in_stock=False)
                items.append(entry)
                continue

            variation = product.get_variation(item.variation_id)
            if item.variation_id:
                stock = variation.stock_count if variation else 0
                available = product.is_published and variation is not None
            else:
                stock = product.stock_count
                available = product.is_published

            entry['product'] = {
                'id': product.id,
                'name': product.name,
                'image': product.image,
                'sku': product.sku,
                'on_sale': pricing_service.is_sale_active(product, now),
                'price': money(pricing_service.effective_unit_price(product, variation or item.variation_details, now)),
            }
            entry.update(available=available, stock=stock, in_stock=available and stock > 0)
            items.append(entry)

        data = wishlist.to_dict()
        data['items'] = items
        data['item_count'] = len(items)
        return data

    def is_product_in_wishlist(self, user_id: Any, product_id: Any, variation_id: Any = None) -> bool:
        wishlist = self.get_or_create_wishlist(user_id)
        return wishlist.find_item(product_id, self._normalize_variation_id(variation_id)) is not None

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def add_product(self, user_id: Any, product_id: Any, variation_id: Any = None) -> Wishlist:
        """
        Agrega un producto (y variación) a la lista.

        Raises:
            ValidationError: id de producto inválido
            NotFound, Unavailable, VariationRequired, VariationNotFound,
            InsufficientStock: igual que al agregar 1 unidad al carrito
            AlreadyInWishlist: el par (producto, variación) ya estaba
        """
        product_key = to_int(product_id)
        if product_key is None:
            raise ValidationError('ID de producto inválido')
        variation_id = self._normalize_variation_id(variation_id)

        wishlist = self.get_or_create_wishlist(user_id)
        with self._wishlist_lock(wishlist):
            check = self.stock_service.check_stock(product_key, 1, variation_id)
            line_variation_id = check.variation.id if check.variation else None

            wishlist = self._reload(wishlist)
            for item in wishlist.items:
                if str(item.product_id) == str(check.product.id) and item.variation_id == line_variation_id:
                    raise AlreadyInWishlist()

            wishlist.items.append(WishlistItem(
                product_id=check.product.id,
                variation_id=line_variation_id,
                variation_details=VariationSnapshot.of(check.variation) if check.variation else None,
                added_at=now_iso(),
            ))
            wishlist = self._save(wishlist)

        logger.info('Usuario %s: producto %s (variación %s) en lista de deseos', user_id, product_key, line_variation_id)
        return wishlist

    def remove_product(self, user_id: Any, product_id: Any, variation_id: Any = None) -> Wishlist:
        """
        Quita un producto de la lista.

        Sin variation_id se quita la primera línea del producto; con
        variation_id debe coincidir también la variación.

        Raises:
            NotFound: el producto no está en la lista
        """
        variation_id = self._normalize_variation_id(variation_id)
        wishlist = self.get_or_create_wishlist(user_id)
        with self._wishlist_lock(wishlist):
            wishlist = self._reload(wishlist)
            item = wishlist.find_item(product_id, variation_id)
            if item is None:
                raise NotFound('El producto no está en la lista de deseos')
            wishlist.items.remove(item)
            return self._save(wishlist)

    def clear_wishlist(self, user_id: Any) -> Wishlist:
        """Vacía la lista (idempotente)."""
        wishlist = self.get_or_create_wishlist(user_id)
        with self._wishlist_lock(wishlist):
            wishlist.items = []
            return self._save(wishlist)
