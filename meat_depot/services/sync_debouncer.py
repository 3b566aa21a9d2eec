# ==============================================================================
# DEBOUNCE DE SINCRONIZACIÓN
# ==============================================================================
# Agrupa ráfagas de cambios en una sola sincronización: cada trigger()
# reinicia la cuenta regresiva. Solo se sincroniza cuando pasan `delay`
# segundos sin cambios nuevos.
# ==============================================================================

import threading
from typing import Callable, Optional


class SyncDebouncer:
    """
    Temporizador único reiniciable.

    Args:
        callback: Función a ejecutar cuando vence el tiempo
        delay: Segundos de silencio requeridos (2.0 por defecto)
        timer_factory: Constructor compatible con threading.Timer(delay, fn)
            (en tests se inyecta un temporizador manual)
    """

    def __init__(self, callback: Callable[[], None], delay: float = 2.0,
                 timer_factory: Callable = threading.Timer):
        self.callback = callback
        self.delay = delay
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._generation = 0
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        """Cancela la cuenta pendiente (si hay) y empieza una nueva."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay, lambda: self._fire(generation))
            # No bloquear el cierre del proceso por un sync pendiente
            if hasattr(timer, 'daemon'):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """Cancela la sincronización pendiente. Retorna True si había una."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def flush(self) -> bool:
        """Ejecuta ya la sincronización pendiente. Retorna False si no había."""
        if not self.cancel():
            return False
        self._run()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            # Un timer reemplazado que alcanzó a dispararse no hace nada
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        self.fire_count += 1
        try:
            self.callback()
        except Exception as e:
            # El hilo del timer no tiene a quién propagar
            print(f"[SYNC ERROR] Sincronización programada falló: {type(e).__name__}: {e}")
