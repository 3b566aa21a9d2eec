# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto central para obtener repositorios, backends y servicios. Facilita:
#   - Inyección de dependencias (cada app Flask tiene su propio contenedor)
#   - Testing (se pueden reemplazar backends, sesión HTTP y temporizador)
#   - Agregar un backend nuevo sin tocar el store ni las rutas
#
# NO es un singleton: create_app() crea uno y lo guarda en
# app.extensions['meat_depot'].
# ==============================================================================

import threading
from typing import Any, Callable, Dict, Optional

import requests

from .backends import DomainBackend, DriveBackend, FirebaseBackend, ServerPing, SheetBackend
from .repositories import LocalStateRepository
from .services import AppStore, BackupService, MediaService, SyncService


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Uso:
        container = AppContainer(app.config)
        container.store.add_product({...})
        container.sync_service.sync_to_cloud()

    Args:
        settings: Diccionario de configuración (ver settings.load_settings)
        session: Sesión HTTP compartida por los backends
        firestore_factory / bucket_factory: Reemplazos para Firebase
        timer_factory: Temporizador del debounce
    """

    def __init__(self, settings: Dict[str, Any], session: Optional[requests.Session] = None,
                 firestore_factory: Optional[Callable] = None, bucket_factory: Optional[Callable] = None,
                 timer_factory: Callable = threading.Timer):
        self.settings = settings
        self._session = session
        self._firestore_factory = firestore_factory
        self._bucket_factory = bucket_factory
        self._timer_factory = timer_factory

        # Lazy loading
        self._repository: Optional[LocalStateRepository] = None
        self._store: Optional[AppStore] = None
        self._backends: Optional[Dict[str, Any]] = None
        self._sync_service: Optional[SyncService] = None
        self._media_service: Optional[MediaService] = None
        self._backup_service: Optional[BackupService] = None

    # =========================================================================
    # PERSISTENCIA LOCAL
    # =========================================================================

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers['User-Agent'] = 'meat-depot-sync'
        return self._session

    @property
    def repository(self) -> LocalStateRepository:
        if self._repository is None:
            self._repository = LocalStateRepository(self.settings['DATA_DIR'])
        return self._repository

    @property
    def store(self) -> AppStore:
        if self._store is None:
            self._store = AppStore(self.repository, admin_password=self.settings.get('ADMIN_PASSWORD'))
        return self._store

    # =========================================================================
    # BACKENDS
    # =========================================================================

    @property
    def backends(self) -> Dict[str, Any]:
        """Adaptadores por nombre, en orden de fan-out."""
        if self._backends is None:
            timeout = self.settings.get('HTTP_TIMEOUT', 30)
            self._backends = {
                'firebase': FirebaseBackend(self._firestore_factory, self._bucket_factory,
                                            session=self.session, timeout=timeout),
                'domain': DomainBackend(self.session, timeout),
                'sheet': SheetBackend(self.session, timeout),
                'drive': DriveBackend(self.session, timeout),
            }
        return self._backends

    @property
    def drive(self) -> DriveBackend:
        return self.backends['drive']

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            ping = ServerPing(self.settings.get('SERVER_SYNC_URL'), self.session,
                              timeout=min(10, self.settings.get('HTTP_TIMEOUT', 30)))
            self._sync_service = SyncService(
                self.store,
                list(self.backends.values()),
                server_ping=ping,
                debounce_seconds=self.settings.get('SYNC_DEBOUNCE_SECONDS', 2.0),
                timer_factory=self._timer_factory,
            )
        return self._sync_service

    @property
    def media_service(self) -> MediaService:
        if self._media_service is None:
            self._media_service = MediaService(
                self.backends['drive'], self.backends['firebase'], self.backends['domain']
            )
        return self._media_service

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(self.repository, self.settings.get('MAX_BACKUPS'))
        return self._backup_service
