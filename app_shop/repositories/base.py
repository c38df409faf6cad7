# ==============================================================================
# REPOSITORIO BASE - Datastore genérico sobre archivos JSON
# ==============================================================================
# Implementa el contrato find / find_one / create / update / delete que usan
# todos los servicios. Cada entidad vive en su propio archivo JSON como lista
# de registros: [{"id": 1, ...}, {"id": 2, ...}]
#
# Atomicidad: por llamada. Las secuencias de varias llamadas se protegen
# en los servicios con KeyedLockRegistry (ver app_shop/locks.py).
# ==============================================================================

import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from app_shop.utils import now_iso


Filter = Union[Any, Callable[[Any], bool]]


class BaseRepository(ABC):
    """
    Clase base abstracta para los repositorios JSON.
    Proporciona lectura/escritura atómica con un lock global de archivos.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        os.makedirs(os.path.dirname(file_path) or '.', exist_ok=True)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        with self._file_lock:
            if not os.path.exists(self.file_path):
                self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía del archivo (lista, dict...)."""

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.
        Si el archivo está corrupto o no existe, retorna datos vacíos.
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (json.JSONDecodeError, FileNotFoundError):
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """Escribe a un temporal y lo reemplaza (escritura atómica)."""
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise


def _matches(record: Dict[str, Any], filters: Dict[str, Filter]) -> bool:
    for field_name, expected in filters.items():
        value = record.get(field_name)
        if callable(expected):
            if not expected(value):
                return False
        elif value != expected:
            return False
    return True


class EntityRepository(BaseRepository):
    """
    Repositorio genérico de entidades con id autoincremental.

    Cada registro recibe `id`, `created_at` y `updated_at`.
    Las subclases solo definen FILE_NAME y, si hace falta, consultas propias.
    """

    FILE_NAME = ''

    def __init__(self, data_dir: str):
        """
        Args:
            data_dir: Carpeta donde se guardan los archivos JSON
        """
        super().__init__(os.path.join(data_dir, self.FILE_NAME))

    def _empty_data(self) -> List:
        return []

    def _records(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def _next_id(self, records: List[Dict[str, Any]]) -> int:
        ids = [r.get('id') for r in records if isinstance(r.get('id'), int)]
        return max(ids, default=0) + 1

    # =========================================================================
    # LECTURA
    # =========================================================================

    def find(
        self,
        filters: Optional[Dict[str, Filter]] = None,
        sort: Optional[str] = None,
        page: Optional[int] = None,
        page_size: int = 10,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Busca registros.

        Args:
            filters: {campo: valor} por igualdad o {campo: callable} como predicado
            sort: Campo de orden; prefijo '-' para descendente ('-created_at')
            page: Página (desde 1). None = sin paginar
            page_size: Registros por página

        Returns:
            Tupla (registros, total sin paginar)
        """
        records = [r for r in self._records() if _matches(r, filters or {})]

        if sort:
            descending = sort.startswith('-')
            field_name = sort.lstrip('-')
            # Los registros sin el campo quedan siempre al final
            present = [r for r in records if r.get(field_name) is not None]
            missing = [r for r in records if r.get(field_name) is None]
            present.sort(key=lambda r: r[field_name], reverse=descending)
            records = present + missing

        total = len(records)
        if page is not None:
            page = max(1, page)
            page_size = max(1, page_size)
            start = (page - 1) * page_size
            records = records[start:start + page_size]
        return records, total

    def find_all(self, filters: Optional[Dict[str, Filter]] = None, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        """Atajo de find() sin paginación."""
        return self.find(filters, sort=sort)[0]

    def find_one(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Obtiene un registro por ID.
        Acepta el id como int o como texto ("12").
        """
        for record in self._records():
            if str(record.get('id')) == str(record_id):
                return record
        return None

    def find_first(self, filters: Dict[str, Filter], sort: Optional[str] = None) -> Optional[Dict[str, Any]]:
        results = self.find_all(filters, sort=sort)
        return results[0] if results else None

    def count(self, filters: Optional[Dict[str, Filter]] = None) -> int:
        return self.find(filters)[1]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserta un registro nuevo con id autoincremental.

        Returns:
            Registro guardado (con id y fechas)
        """
        with self._file_lock:
            records = self._records()
            record = dict(data)
            record['id'] = self._next_id(records)
            stamp = now_iso()
            record.setdefault('created_at', stamp)
            record['updated_at'] = stamp
            records.append(record)
            self._write_raw(records)
            return record

    def update(self, record_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Actualiza campos de un registro (merge superficial).

        Returns:
            Registro actualizado o None si no existe
        """
        with self._file_lock:
            records = self._records()
            for record in records:
                if str(record.get('id')) == str(record_id):
                    record.update({k: v for k, v in data.items() if k not in ('id', 'created_at')})
                    record['updated_at'] = now_iso()
                    self._write_raw(records)
                    return record
            return None

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Elimina un registro.

        Returns:
            Registro eliminado o None si no existía
        """
        with self._file_lock:
            records = self._records()
            for index, record in enumerate(records):
                if str(record.get('id')) == str(record_id):
                    removed = records.pop(index)
                    self._write_raw(records)
                    return removed
            return None

    def save_all(self, records: List[Dict[str, Any]]) -> None:
        """Reemplazo completo (usado para sembrar datos)."""
        self._write_raw(list(records))
