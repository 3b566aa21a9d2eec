# ==============================================================================
# CAPA DE REPOSITORIOS - Persistencia local
# ==============================================================================
# Esta capa encapsula el acceso al almacenamiento local del estado
# (un archivo JSON por colección, como localStorage en el navegador).
#
# ESTRUCTURA:
# ├── interfaces.py              → Protocolo ILocalStateRepository
# ├── base.py                    → BaseRepository (un archivo JSON, escritura atómica)
# └── local_state_repository.py  → LocalStateRepository (clave -> archivo)
#
# La persistencia REMOTA (Drive, Sheets, Firebase, dominio propio) vive en
# meat_depot/backends/.
# ==============================================================================

from .interfaces import ILocalStateRepository
from .base import BaseRepository
from .local_state_repository import LocalStateRepository

__all__ = [
    'ILocalStateRepository',
    'BaseRepository',
    'LocalStateRepository',
]
