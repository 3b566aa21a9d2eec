# ==============================================================================
# BACKENDS REMOTOS - Persistencia en la nube
# ==============================================================================
# ESTRUCTURA:
# ├── base.py              → SyncBackend (contrato) + errores
# ├── drive_backend.py     → Google Drive (archivo JSON + checkpoints)
# ├── sheet_backend.py     → Google Sheets (JSON troceado en columna A)
# ├── firebase_backend.py  → Firestore (un documento por colección)
# ├── domain_backend.py    → Endpoint propio con X-API-Key
# └── server_ping.py       → Aviso best-effort al servidor de la app
# ==============================================================================

from .base import BackendError, BackendUnavailableError, SyncBackend, TokenExpiredError
from .domain_backend import DomainBackend
from .drive_backend import DriveBackend
from .firebase_backend import FirebaseBackend
from .server_ping import ServerPing
from .sheet_backend import SheetBackend, chunk_snapshot, extract_sheet_id, join_chunks

__all__ = [
    'BackendError',
    'BackendUnavailableError',
    'SyncBackend',
    'TokenExpiredError',
    'DomainBackend',
    'DriveBackend',
    'FirebaseBackend',
    'ServerPing',
    'SheetBackend',
    'chunk_snapshot',
    'extract_sheet_id',
    'join_chunks',
]
