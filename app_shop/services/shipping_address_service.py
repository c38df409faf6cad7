# ==============================================================================
# SERVICIO DE DIRECCIONES GUARDADAS
# ==============================================================================
# Libreta de direcciones de envío por usuario (shipping_addresses.json).
#
# REGLAS:
#   - name, addressLine1 y emirate son obligatorios
#   - Si el usuario tiene direcciones, exactamente una es la predeterminada
#     (la primera que agrega lo es automáticamente)
#   - Al borrar la predeterminada pasa a serlo la más antigua que quede
#   - Un usuario nunca ve ni modifica direcciones de otro (NotFound)
#
# Todas las mutaciones de un usuario corren dentro del lock "user-addresses:<id>".
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from app_shop.errors import NotFound, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import SavedAddress
from app_shop.repositories.interfaces import IShippingAddressRepository


logger = logging.getLogger(__name__)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def read_address_fields(data: Dict[str, Any]) -> Dict[str, str]:
    """
    Extrae los campos editables presentes en `data`.
    Acepta tanto snake_case como los nombres camelCase del frontend.
    """
    fields = {}
    for attr, label in SavedAddress.EDITABLE:
        for key in (attr, label):
            if key in data:
                value = data[key]
                fields[attr] = '' if value is None else str(value).strip()
                break
    return fields


class ShippingAddressService:
    """Direcciones de envío guardadas con una dirección predeterminada."""

    def __init__(self, address_repo: IShippingAddressRepository, locks: KeyedLockRegistry):
        self.address_repo = address_repo
        self.locks = locks

    def _user_lock(self, user_id: Any):
        return self.locks.hold(f'user-addresses:{user_id}')

    @staticmethod
    def _validate(address: SavedAddress) -> None:
        missing = address.missing_fields()
        if missing:
            raise ValidationError(
                'Validación fallida',
                errors=[f'{label} es obligatorio' for label in missing],
            )

    def _set_default(self, user_id: Any, address_id: Any) -> None:
        """Marca una dirección como predeterminada y desmarca el resto."""
        for address in self.address_repo.find_by_user(user_id):
            wanted = str(address.id) == str(address_id)
            if address.is_default != wanted:
                self.address_repo.update(address.id, {'is_default': wanted})

    # =========================================================================
    # LECTURA
    # =========================================================================

    def list_addresses(self, user_id: Any) -> List[SavedAddress]:
        """Direcciones del usuario: la predeterminada primero, luego por antigüedad."""
        addresses = self.address_repo.find_by_user(user_id)
        return sorted(addresses, key=lambda a: not a.is_default)

    def get_address(self, user_id: Any, address_id: Any) -> SavedAddress:
        address = self.address_repo.get(address_id)
        if address is None or str(address.user_id) != str(user_id):
            raise NotFound('Dirección no encontrada')
        return address

    def get_default_address(self, user_id: Any) -> Optional[SavedAddress]:
        addresses = self.list_addresses(user_id)
        if addresses and addresses[0].is_default:
            return addresses[0]
        return None

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    def add_address(self, user_id: Any, data: Dict[str, Any]) -> SavedAddress:
        """
        Guarda una dirección nueva.

        Args:
            data: name, addressLine1, addressLine2, apartmentOrVilla, city,
                  emirate, phoneNumber, isDefault

        Raises:
            ValidationError: faltan campos obligatorios (lista en `errors`)
        """
        fields = read_address_fields(data)
        self._validate(SavedAddress(id=0, user_id=user_id, **fields))

        with self._user_lock(user_id):
            is_first = not self.address_repo.find_by_user(user_id)
            make_default = is_first or _truthy(data.get('isDefault', data.get('is_default')))

            record = self.address_repo.create(dict(fields, user_id=user_id, is_default=False))
            if make_default:
                self._set_default(user_id, record['id'])

        logger.info('Usuario %s guardó la dirección %s', user_id, record['id'])
        return self.get_address(user_id, record['id'])

    def update_address(self, user_id: Any, address_id: Any, data: Dict[str, Any]) -> SavedAddress:
        """
        Actualiza una dirección. Los campos ausentes conservan su valor.

        isDefault=true la vuelve predeterminada. La predeterminada no se puede
        desmarcar directamente: hay que marcar otra.

        Raises:
            NotFound, ValidationError
        """
        with self._user_lock(user_id):
            address = self.get_address(user_id, address_id)
            fields = read_address_fields(data)
            merged = SavedAddress.from_dict(dict(address.to_dict(), **fields))
            self._validate(merged)

            if fields:
                self.address_repo.update(address.id, fields)
            if _truthy(data.get('isDefault', data.get('is_default'))):
                self._set_default(user_id, address.id)

            return self.get_address(user_id, address.id)

    def set_default_address(self, user_id: Any, address_id: Any) -> SavedAddress:
        with self._user_lock(user_id):
            address = self.get_address(user_id, address_id)
            self._set_default(user_id, address.id)
            return self.get_address(user_id, address.id)

    def delete_address(self, user_id: Any, address_id: Any) -> List[SavedAddress]:
        """
        Elimina una dirección y devuelve las restantes.
        Si era la predeterminada, pasa a serlo la más antigua.
        """
        with self._user_lock(user_id):
            address = self.get_address(user_id, address_id)
            self.address_repo.delete(address.id)

            remaining = self.address_repo.find_by_user(user_id)
            if address.is_default and remaining:
                self._set_default(user_id, remaining[0].id)
                logger.info('Dirección %s pasa a ser la predeterminada del usuario %s', remaining[0].id, user_id)

        return self.list_addresses(user_id)
