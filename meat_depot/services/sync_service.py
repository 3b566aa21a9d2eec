# ==============================================================================
# SERVICIO DE SINCRONIZACIÓN CON LA NUBE
# ==============================================================================
# Orquesta el envío del estado a todos los backends configurados y la carga
# inicial desde la nube.
#
# SUBIDA (sync_to_cloud):
#   1. Se arma el sobre (overrides no nulos reemplazan al estado)
#   2. Todos los backends configurados guardan en paralelo
#   3. Ping best-effort al servidor
#   4. Token expirado en cualquiera → una sola notificación al admin
#      Si no → se marca la nube como cargada y se registra actividad SYNC
#
# CARGA (load_from_cloud):
#   Firebase → dominio propio → Drive. El primero que devuelva datos gana.
#
# DEBOUNCE:
#   Los cambios en colecciones sincronizadas reinician un temporizador de 2 s.
#   Solo se programa si hay backend configurado y ya se cargó desde la nube.
#   Si cambian las credenciales de config antes de la carga inicial, se
#   programa la carga (fuera del hilo de la petición).
# ==============================================================================

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

from ..backends import BackendError, ServerPing, SyncBackend, TokenExpiredError
from ..constants import WATCHED_KEYS
from ..models import ActivityAction, BackendResult, BackendStatus, SyncReport, utc_now_iso
from ..sync_logger import get_backend_stats, log_sync_event, log_sync_report
from .store_service import AppStore
from .sync_debouncer import SyncDebouncer

# Orden de la carga inicial
LOAD_ORDER = ('firebase', 'domain', 'drive')


def credential_fingerprint(config: Optional[Dict[str, Any]]) -> tuple:
    """Credenciales de config que disparan la carga inicial al cambiar."""
    config = config or {}
    firebase = config.get('firebaseConfig') or {}
    drive = config.get('googleDrive') or {}
    domain = config.get('customDomain') or {}
    return (
        firebase.get('apiKey'),
        drive.get('accessToken'),
        domain.get('url'),
        domain.get('apiKey'),
    )


class SyncService:
    """
    Coordina store ↔ backends.

    Args:
        store: Estado de la app
        backends: Adaptadores en orden de fan-out (firebase, domain, sheet, drive)
        server_ping: Aviso best-effort tras cada sync (opcional)
        debounce_seconds: Silencio requerido antes de sincronizar
        timer_factory: Inyectable para tests deterministas
    """

    def __init__(self, store: AppStore, backends: Iterable[SyncBackend],
                 server_ping: Optional[ServerPing] = None, debounce_seconds: float = 2.0,
                 timer_factory=threading.Timer):
        self.store = store
        self.backends: List[SyncBackend] = list(backends)
        self.server_ping = server_ping
        self.debouncer = SyncDebouncer(self._debounced_sync, debounce_seconds, timer_factory)
        self._timer_factory = timer_factory
        self._credentials = credential_fingerprint(store.config)
        self.pending_load = None
        self._sync_lock = threading.Lock()
        self.last_report: Optional[SyncReport] = None
        self.last_load: Optional[Dict[str, Any]] = None
        self.last_server_sync_at: Optional[str] = None

        store.subscribe(self.on_state_change)

    # ═══════════════════════════════════════════════════════════════════════
    # CONSULTAS
    # ═══════════════════════════════════════════════════════════════════════

    def backend(self, name: str) -> Optional[SyncBackend]:
        return next((b for b in self.backends if b.name == name), None)

    def configured_backends(self, config: Optional[Dict[str, Any]] = None) -> List[SyncBackend]:
        config = self.store.config if config is None else config
        return [b for b in self.backends if b.is_configured(config)]

    def has_cloud_backend(self, config: Optional[Dict[str, Any]] = None) -> bool:
        return bool(self.configured_backends(config))

    def status(self) -> Dict[str, Any]:
        config = self.store.config
        return {
            'pending': self.debouncer.pending,
            'syncing': self.store.is_cloud_syncing,
            'loaded': self.store.has_loaded_from_cloud,
            'debounce_fired': self.debouncer.fire_count,
            'backends': {b.name: b.is_configured(config) for b in self.backends},
            'last_report': self.last_report.to_dict() if self.last_report else None,
            'last_load': self.last_load,
            'last_server_sync_at': self.last_server_sync_at,
            'stats': get_backend_stats(),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # DEBOUNCE
    # ═══════════════════════════════════════════════════════════════════════

    def on_state_change(self, key: str) -> None:
        """
        Suscriptor del store. Programa un sync si cambió una colección
        sincronizada, hay backend y ya se hizo la carga inicial.
        """
        if key == 'config':
            self._check_credentials()
        if key not in WATCHED_KEYS:
            return
        if not self.store.has_loaded_from_cloud:
            return
        if not self.has_cloud_backend():
            return
        self.debouncer.trigger()

    def _check_credentials(self) -> None:
        credentials = credential_fingerprint(self.store.config)
        if credentials == self._credentials:
            return
        self._credentials = credentials
        if self.store.has_loaded_from_cloud or not self.has_cloud_backend():
            return
        if self.pending_load is not None:
            self.pending_load.cancel()
        print("[SYNC] Credenciales nuevas: carga inicial programada")
        self.pending_load = self._timer_factory(0, self._initial_load)
        self.pending_load.daemon = True
        self.pending_load.start()

    def _initial_load(self) -> None:
        self.pending_load = None
        try:
            self.load_from_cloud()
        except Exception as e:
            print(f"[SYNC ERROR] Carga inicial falló: {type(e).__name__}: {e}")

    def _debounced_sync(self) -> None:
        self.sync_to_cloud()

    def shutdown(self) -> None:
        """Ejecuta el sync pendiente antes de cerrar el proceso."""
        if self.debouncer.flush():
            print("[SYNC] Sync pendiente ejecutado al cerrar")

    # ═══════════════════════════════════════════════════════════════════════
    # SUBIDA
    # ═══════════════════════════════════════════════════════════════════════

    def _save_one(self, backend: SyncBackend, envelope: Dict[str, Any],
                  config: Dict[str, Any]) -> BackendResult:
        start = time.perf_counter()
        try:
            backend.save(envelope, config)
            status, message = BackendStatus.OK, ''
        except TokenExpiredError as e:
            status, message = BackendStatus.TOKEN_EXPIRED, e.message
        except BackendError as e:
            status, message = BackendStatus.FAILED, e.message
        except Exception as e:
            # Un error inesperado en un adaptador no debe tumbar a los demás
            status, message = BackendStatus.FAILED, f"{type(e).__name__}: {e}"
            print(f"[SYNC ERROR] {backend.name}: {message}")
        elapsed = (time.perf_counter() - start) * 1000
        return BackendResult(backend.name, status, message, elapsed)

    def sync_to_cloud(self, overrides: Optional[Dict[str, Any]] = None) -> SyncReport:
        """
        Envía el estado completo a todos los backends configurados.
        Las llamadas concurrentes se serializan.

        Args:
            overrides: Valores que reemplazan al estado (si no son None).
                Un override de config también decide qué backends se usan.

        Returns:
            SyncReport con el resultado de cada backend
        """
        with self._sync_lock:
            self.store.is_cloud_syncing = True
            try:
                envelope = self.store.build_envelope(overrides)
                config = envelope['config']
                report = SyncReport(timestamp=envelope['timestamp'])

                targets = self.configured_backends(config)
                if targets:
                    with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix='md-sync') as pool:
                        futures = [pool.submit(self._save_one, b, envelope, config) for b in targets]
                        report.results = [f.result() for f in futures]

                if self.server_ping is not None:
                    report.ping = self.server_ping.ping(envelope)
                report.finish()
            finally:
                self.store.is_cloud_syncing = False

            self.last_report = report
            log_sync_report(report)

            if report.token_expired:
                self.store.notify_token_expired(report.token_expired)
            else:
                self.store.has_loaded_from_cloud = True
                self.store.log_activity(ActivityAction.SYNC, 'System state redeployed to cloud(s)')
            return report

    # ═══════════════════════════════════════════════════════════════════════
    # CARGA INICIAL
    # ═══════════════════════════════════════════════════════════════════════

    def load_from_cloud(self, force: bool = False) -> Optional[str]:
        """
        Hidrata el estado desde el primer backend que tenga datos
        (Firebase → dominio → Drive). Se hace una sola vez salvo force=True.

        Returns:
            Nombre del backend usado, o None si no se cargó nada
        """
        if self.store.has_loaded_from_cloud and not force:
            return None

        config = self.store.config
        candidates = [b for b in (self.backend(n) for n in LOAD_ORDER) if b and b.is_configured(config)]
        if not candidates:
            return None

        self.store.is_cloud_syncing = True
        try:
            for backend in candidates:
                try:
                    data = backend.load(config)
                except TokenExpiredError:
                    self.store.notify_token_expired([backend.name])
                    log_sync_event('LOAD', f"{backend.name}: token expirado", level='WARNING')
                    continue
                except BackendError as e:
                    log_sync_event('LOAD', f"{backend.name}: {e.message}", level='WARNING')
                    continue
                except Exception as e:
                    # Respuesta inesperada: se trata como "sin datos"
                    log_sync_event('LOAD', f"{backend.name}: {type(e).__name__}: {e}", level='ERROR')
                    continue

                if data is None:
                    continue

                restored = self.store.restore_data(data, respect_versions=True)
                self.store.has_loaded_from_cloud = True
                self.last_load = {'backend': backend.name, 'restored': restored, 'at': utc_now_iso()}
                log_sync_event('LOAD', f"Estado cargado desde {backend.name}", restored)
                return backend.name
        finally:
            self.store.is_cloud_syncing = False

        log_sync_event('LOAD', 'Ningún backend devolvió datos, se mantiene el estado local')
        return None

    # ═══════════════════════════════════════════════════════════════════════
    # RECEPTOR DEL PING
    # ═══════════════════════════════════════════════════════════════════════

    def record_server_sync(self, envelope: Any) -> Dict[str, Any]:
        """Acusa recibo de un sobre enviado por otra instancia de la app."""
        self.last_server_sync_at = utc_now_iso()
        timestamp = envelope.get('timestamp') if isinstance(envelope, dict) else None
        log_sync_event('PING', f"Sync recibido en el servidor (sobre {timestamp or 'sin timestamp'})")
        return {'success': True, 'message': 'Data received by server'}
