# ==============================================================================
# REPOSITORIO DE EVENTOS DE WEBHOOK PROCESADOS
# ==============================================================================
# Guarda las claves de idempotencia ("<event id>_<event type>") de los eventos
# ya aplicados, en webhook_events.json, para que sobrevivan a reinicios y se
# compartan entre procesos que usen la misma carpeta de datos.
#
# Formato: [{"key": "evt_1_checkout.session.completed", "processed_at": "..."}]
# Límite: al superar max_events se conservan solo los más nuevos (la mitad).
# ==============================================================================

import os
from typing import List

from app_shop.utils import now_iso
from .base import BaseRepository


class WebhookEventRepository(BaseRepository):
    """Conjunto acotado de claves de eventos ya procesados."""

    FILE_NAME = 'webhook_events.json'

    def __init__(self, data_dir: str, max_events: int = 1000):
        """
        Args:
            data_dir: Carpeta de datos
            max_events: Máximo de claves recordadas antes de recortar
        """
        self.max_events = max(2, max_events)
        super().__init__(os.path.join(data_dir, self.FILE_NAME))

    def _empty_data(self) -> List:
        return []

    def _entries(self) -> List[dict]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def has(self, key: str) -> bool:
        return any(entry.get('key') == key for entry in self._entries())

    def add(self, key: str) -> None:
        """Registra una clave. No duplica claves existentes."""
        with self._file_lock:
            entries = self._entries()
            if any(entry.get('key') == key for entry in entries):
                return
            entries.append({'key': key, 'processed_at': now_iso()})
            if len(entries) > self.max_events:
                entries = entries[-(self.max_events // 2):]
            self._write_raw(entries)

    def keys(self) -> List[str]:
        return [entry.get('key') for entry in self._entries()]

    def __len__(self) -> int:
        return len(self._entries())
