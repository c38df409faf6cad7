# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Sumidero "fire-and-forget": guardar una notificación nunca hace fallar la
# operación que la origina. Los errores se registran en el log y se descartan.
#
# notify()        -> escritura inmediata
# notify_async()  -> encola y la escribe un hilo en segundo plano
# flush()         -> espera a que la cola quede vacía (apagado y tests)
# ==============================================================================

import logging
import threading
from dataclasses import asdict
from queue import Empty, Queue
from typing import Any, Dict, List, Optional

from app_shop.models import Notification, Order
from app_shop.repositories.notification_repository import NotificationRepository


logger = logging.getLogger(__name__)


class NotificationService:
    """Entrega de notificaciones a usuarios."""

    def __init__(self, notification_repo: NotificationRepository):
        self.notification_repo = notification_repo
        self._queue: Queue = Queue()
        self._worker: Optional[threading.Thread] = None
        self._worker_lock = threading.Lock()
        self._shutdown = False

    # =========================================================================
    # ENTREGA
    # =========================================================================

    def notify(self, user_id: Any, title: str, message: str, kind: str = 'order') -> Optional[Notification]:
        """
        Guarda una notificación para el usuario.

        Returns:
            Notification creada, o None si no se pudo guardar
        """
        if user_id is None:
            logger.warning('Notificación "%s" sin destinatario descartada', title)
            return None
        try:
            record = self.notification_repo.create({
                'user_id': user_id,
                'title': title,
                'message': message,
                'type': kind,
                'read': False,
            })
        except Exception:
            logger.exception('No se pudo guardar la notificación "%s" para usuario %s', title, user_id)
            return None
        return Notification.from_dict(record)

    def notify_async(self, user_id: Any, title: str, message: str, kind: str = 'order') -> None:
        """Encola la notificación; no bloquea al llamador."""
        self._start_worker()
        self._queue.put((user_id, title, message, kind))

    def flush(self, timeout: Optional[float] = None) -> None:
        """Bloquea hasta que todas las notificaciones encoladas se procesen."""
        if timeout is None:
            self._queue.join()
            return
        finished = threading.Event()

        def _wait():
            self._queue.join()
            finished.set()

        threading.Thread(target=_wait, daemon=True).start()
        finished.wait(timeout)

    def shutdown(self) -> None:
        """Procesa lo pendiente y detiene el hilo de fondo."""
        if self._worker is None:
            return
        self._shutdown = True
        self._queue.put(None)
        self._worker.join(timeout=5)
        self._worker = None
        self._shutdown = False

    # =========================================================================
    # HILO DE FONDO
    # =========================================================================

    def _start_worker(self) -> None:
        with self._worker_lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._worker_loop, name='notifications', daemon=True)
                self._worker.start()

    def _worker_loop(self) -> None:
        while True:
            try:
                item = self._queue.get(timeout=0.5)
            except Empty:
                if self._shutdown:
                    break
                continue
            try:
                if item is None:
                    break
                self.notify(*item)
            finally:
                self._queue.task_done()

    # =========================================================================
    # MENSAJES DEL NEGOCIO
    # =========================================================================

    def send_order_confirmation(self, order: Order, asynchronous: bool = True) -> None:
        """Avisa al dueño del pedido que fue confirmado."""
        message = f'Your order #{order.id} has been confirmed and is being processed.'
        if asynchronous:
            self.notify_async(order.user_id, 'Order Confirmed', message)
        else:
            self.notify(order.user_id, 'Order Confirmed', message)

    def get_user_notifications(self, user_id: Any) -> List[Dict[str, Any]]:
        return [asdict(n) for n in self.notification_repo.find_by_user(user_id)]
