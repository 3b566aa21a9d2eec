# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# ESTRUCTURA:
# ├── store_service.py   → AppStore (estado canónico, preview, acciones)
# ├── sync_debouncer.py  → SyncDebouncer (agrupa ráfagas de cambios)
# ├── sync_service.py    → SyncService (fan-out a backends, carga inicial)
# ├── media_service.py   → MediaService (subida de imágenes según backupMethod)
# └── backup_service.py  → BackupService (ZIP diario, exportar/importar JSON)
#
# Las rutas solo orquestan request → service → response.
# ==============================================================================

from .store_service import AppStore, InvalidPreviewTransition, expire_specials
from .sync_debouncer import SyncDebouncer
from .sync_service import SyncService
from .media_service import MediaService
from .backup_service import BackupService, run_startup_backup

__all__ = [
    'AppStore',
    'InvalidPreviewTransition',
    'expire_specials',
    'SyncDebouncer',
    'SyncService',
    'MediaService',
    'BackupService',
    'run_startup_backup',
]
