# ==============================================================================
# REPOSITORIO DE NOTIFICACIONES
# ==============================================================================
# Encapsula el acceso a notifications.json
# ==============================================================================

from typing import Any, List

from app_shop.models import Notification
from .base import EntityRepository


class NotificationRepository(EntityRepository):
    """Notificaciones para usuarios (más recientes primero)."""

    FILE_NAME = 'notifications.json'

    def find_by_user(self, user_id: Any) -> List[Notification]:
        records = self.find_all({'user_id': lambda v: str(v) == str(user_id)}, sort='-id')
        return [Notification.from_dict(r) for r in records]
