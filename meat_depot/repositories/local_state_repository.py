# ==============================================================================
# REPOSITORIO DE ESTADO LOCAL
# ==============================================================================
# Un archivo JSON por clave dentro de DATA_DIR:
#   data/md_products.json, data/md_orders.json, data/md_config.json, ...
#
# Es el equivalente en servidor del localStorage del navegador: se escribe en
# cada cambio y se lee completo al arrancar.
# ==============================================================================

import os
import re
from typing import Any, Dict, List

from .base import BaseRepository

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_\-]+$')


class LocalStateRepository:
    """
    Repositorio clave -> valor respaldado por archivos JSON.

    Uso:
        repo = LocalStateRepository('/srv/meat_depot/data')
        repo.save('md_products', [...])
        products = repo.load('md_products', [])
    """

    FILE_SUFFIX = '.json'

    def __init__(self, data_dir: str):
        """
        Args:
            data_dir: Carpeta donde viven los archivos de estado
        """
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)
        self._files: Dict[str, BaseRepository] = {}

    def _file_for(self, key: str) -> BaseRepository:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Clave de estado inválida: {key!r}")
        if key not in self._files:
            path = os.path.join(self.data_dir, key + self.FILE_SUFFIX)
            self._files[key] = BaseRepository(path)
        return self._files[key]

    def path_for(self, key: str) -> str:
        return self._file_for(key).file_path

    def load(self, key: str, default: Any = None) -> Any:
        """
        Carga el valor guardado para una clave.

        Args:
            key: Clave de almacenamiento (ej: 'md_products')
            default: Valor si no hay archivo, está corrupto o contiene null

        Returns:
            Valor deserializado
        """
        repo = self._file_for(key)
        if not repo.exists():
            return default
        value = repo._read_raw()
        return default if value is None else value

    def save(self, key: str, value: Any) -> bool:
        """
        Guarda el valor de una clave.
        Los errores se registran pero no se propagan: el estado en memoria
        sigue siendo el válido.

        Returns:
            True si se escribió correctamente
        """
        try:
            self._file_for(key)._write_raw(value)
            return True
        except (OSError, TypeError, ValueError) as e:
            print(f"[STORAGE ERROR] No se pudo guardar '{key}': {e}")
            return False

    def keys(self) -> List[str]:
        if not os.path.isdir(self.data_dir):
            return []
        return sorted(
            name[:-len(self.FILE_SUFFIX)]
            for name in os.listdir(self.data_dir)
            if name.endswith(self.FILE_SUFFIX)
        )

    def file_paths(self) -> List[str]:
        """Rutas de todos los archivos de estado existentes (para backups)."""
        return [os.path.join(self.data_dir, key + self.FILE_SUFFIX) for key in self.keys()]
