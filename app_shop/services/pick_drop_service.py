# ==============================================================================
# SERVICIO PICK-DROP - Recogida y entrega de paquetes
# ==============================================================================
# Un usuario pide que se recoja un paquete y se entregue a un tercero.
# El precio se calcula por peso al crear la solicitud:
#
#     precio = tarifa base + peso (kg) * tarifa por kg
#
# Solo un administrador cambia el estado (y asigna repartidor). Las
# solicitudes entregadas o canceladas ya no cambian.
# El dueño recibe una notificación al crear y en cada cambio de estado.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from app_shop.errors import Conflict, NotFound, ValidationError
from app_shop.locks import KeyedLockRegistry
from app_shop.models import PickDrop, PickDropStatus
from app_shop.repositories.interfaces import IPickDropRepository
from app_shop.services.notification_service import NotificationService
from app_shop.utils import money, pagination, parse_datetime, to_float


logger = logging.getLogger(__name__)

VALID_STATUSES = [s.value for s in PickDropStatus]
FINAL_STATUSES = frozenset([PickDropStatus.DELIVERED.value, PickDropStatus.CANCELLED.value])

# (atributo, nombre en el frontend, mensaje si falta)
REQUIRED_FIELDS = (
    ('sender_name', 'senderName', 'Sender name is required'),
    ('sender_contact', 'senderContact', 'Sender contact is required'),
    ('receiver_name', 'receiverName', 'Receiver name is required'),
    ('receiver_contact', 'receiverContact', 'Receiver contact is required'),
    ('item_description', 'itemDescription', 'Item description is required'),
)


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ''):
            return data[key]
    return None


def parse_weight(value: Any) -> float:
    """
    Peso en kg, mayor a 0.

    Raises:
        ValidationError: peso ausente, no numérico o <= 0
    """
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError('Item weight is required')
    weight = to_float(value)
    if weight <= 0:
        raise ValidationError('Item weight must be greater than 0')
    return weight


class PickDropService:
    """Solicitudes de recogida y entrega."""

    def __init__(
        self,
        pick_drop_repo: IPickDropRepository,
        notification_service: NotificationService,
        locks: KeyedLockRegistry,
        base_price: float = 10.0,
        price_per_kg: float = 5.0,
    ):
        """
        Args:
            pick_drop_repo: Repositorio de solicitudes
            notification_service: Avisos al dueño
            locks: Registro de locks por clave
            base_price: Tarifa fija por solicitud
            price_per_kg: Tarifa por kilogramo
        """
        self.pick_drop_repo = pick_drop_repo
        self.notification_service = notification_service
        self.locks = locks
        self.base_price = base_price
        self.price_per_kg = price_per_kg

    def calculate_price(self, weight: Any) -> float:
        return money(self.base_price + parse_weight(weight) * self.price_per_kg)

    # =========================================================================
    # ALTA
    # =========================================================================

    def create_request(self, user_id: Any, data: Dict[str, Any]) -> PickDrop:
        """
        Crea una solicitud en estado Pending.

        Args:
            data: senderName, senderContact, receiverName, receiverContact,
                  itemDescription, itemWeight, preferredPickupTime, images

        Raises:
            ValidationError: con la lista completa de problemas en `errors`
        """
        errors = []
        values = {}
        for attr, label, message in REQUIRED_FIELDS:
            value = _pick(data, label, attr)
            if value is None or not str(value).strip():
                errors.append(message)
            else:
                values[attr] = str(value).strip()

        weight = None
        try:
            weight = parse_weight(_pick(data, 'itemWeight', 'item_weight'))
        except ValidationError as e:
            errors.append(e.message)

        pickup_time = _pick(data, 'preferredPickupTime', 'preferred_pickup_time')
        if pickup_time is not None and parse_datetime(pickup_time) is None:
            errors.append('Preferred pickup time is not a valid date')

        images = data.get('images') or []
        if not isinstance(images, list):
            errors.append('Images must be a list')

        if errors:
            raise ValidationError(errors[0] if len(errors) == 1 else 'Validación fallida', errors=errors)

        record = self.pick_drop_repo.create(dict(
            values,
            user_id=user_id,
            item_weight=weight,
            price=self.calculate_price(weight),
            preferred_pickup_time=pickup_time,
            status=PickDropStatus.PENDING.value,
            assigned_rider=None,
            images=[str(i) for i in images],
        ))
        pick_drop = PickDrop.from_dict(record)
        logger.info('Pick-drop %s creado por usuario %s (%.2f kg)', pick_drop.id, user_id, weight)

        self.notification_service.notify(
            user_id,
            'Pick-Drop Request Created',
            f'Your pick-drop request #{pick_drop.id} has been created and is pending confirmation.',
            kind='pick_drop',
        )
        return pick_drop

    # =========================================================================
    # ESTADO (solo administradores)
    # =========================================================================

    def update_status(self, pick_drop_id: Any, status: Any, assigned_rider: Optional[str] = None) -> PickDrop:
        """
        Cambia el estado y, opcionalmente, el repartidor asignado.

        Raises:
            ValidationError: estado fuera del enum
            NotFound: la solicitud no existe
            Conflict: la solicitud ya fue entregada o cancelada
        """
        if status not in VALID_STATUSES:
            raise ValidationError(f"Estado inválido. Valores permitidos: {', '.join(VALID_STATUSES)}")

        with self.locks.hold(f'pick-drop:{pick_drop_id}'):
            pick_drop = self.pick_drop_repo.get(pick_drop_id)
            if pick_drop is None:
                raise NotFound('Solicitud pick-drop no encontrada')
            if pick_drop.status in FINAL_STATUSES and status != pick_drop.status:
                raise Conflict(f'La solicitud ya está en estado {pick_drop.status}')

            changes = {'status': status}
            if assigned_rider:
                changes['assigned_rider'] = str(assigned_rider)
            pick_drop = PickDrop.from_dict(self.pick_drop_repo.update(pick_drop.id, changes))

        logger.info('Pick-drop %s -> %s', pick_drop.id, status)
        self.notification_service.notify(
            pick_drop.user_id,
            'Pick-Drop Status Updated',
            f'Your pick-drop request #{pick_drop.id} status has been updated to {status}.',
            kind='pick_drop',
        )
        return pick_drop

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_user_history(self, user_id: Any, page: int = 1, page_size: int = 10, sort: str = '-id') -> Dict[str, Any]:
        records, total = self.pick_drop_repo.find(
            {'user_id': lambda v: str(v) == str(user_id)},
            sort=sort,
            page=page,
            page_size=page_size,
        )
        return {
            'pick_drops': [PickDrop.from_dict(r).to_dict() for r in records],
            'pagination': pagination(page, page_size, total),
        }

    def get_details(self, pick_drop_id: Any, user_id: Any = None, is_admin: bool = False) -> PickDrop:
        """
        Un usuario solo ve sus propias solicitudes; las ajenas no existen para él.

        Raises:
            NotFound
        """
        pick_drop = self.pick_drop_repo.get(pick_drop_id)
        if pick_drop is None:
            raise NotFound('Solicitud pick-drop no encontrada')
        if user_id is not None and not is_admin and str(pick_drop.user_id) != str(user_id):
            raise NotFound('Solicitud pick-drop no encontrada')
        return pick_drop

    def list_all(self, status: Optional[str] = None) -> List[PickDrop]:
        """Todas las solicitudes (vista de administración), más recientes primero."""
        filters = {'status': status} if status else None
        return [PickDrop.from_dict(r) for r in self.pick_drop_repo.find_all(filters, sort='-id')]
