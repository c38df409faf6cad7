# ==============================================================================
# LOCKS POR CLAVE - Exclusión mutua por carrito / pedido / usuario
# ==============================================================================
# Cada operación lectura-modificación-escritura sobre un carrito (o pedido)
# se ejecuta dentro del lock de esa entidad. Dos usuarios distintos nunca
# se bloquean entre sí.
#
# Claves usadas:
#   cart:<id>           -> mutaciones de items del carrito
#   user-cart:<id>      -> creación / reparación de carritos duplicados
#   order:<id>          -> transiciones de pago y log de estados
#   payment-order:<id>  -> alta / actualización del pago de un pedido
#   webhook:<key>       -> procesamiento de un evento de la pasarela
#   user-wishlist:<id>  -> creación / reparación de listas de deseos
#   wishlist:<id>       -> mutaciones de la lista de deseos
#   user-addresses:<id> -> direcciones guardadas (dirección por defecto única)
#   pick-drop:<id>      -> cambios de estado de una solicitud pick-drop
#
# Los locks se cuentan por uso: cuando nadie tiene ni espera una clave, su
# lock se descarta. El registro solo contiene las claves en uso.
# ==============================================================================

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _KeyedLock:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLockRegistry:
    """Entrega un RLock por clave mientras la clave está en uso."""

    def __init__(self):
        self._locks: Dict[str, _KeyedLock] = {}
        self._global_lock = threading.Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Context manager para ejecutar un bloque con el lock de `key`.

        Uso:
            with locks.hold(f'cart:{cart.id}'):
                ...
        """
        with self._global_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyedLock()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._global_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._global_lock:
            return len(self._locks)
