# ==============================================================================
# REPOSITORIO BASE - Lectura/escritura atómica de archivos JSON
# ==============================================================================

import copy
import json
import os
import threading
from typing import Any


class BaseRepository:
    """
    Un archivo JSON con un valor por defecto.

    Proporciona lectura tolerante (archivo corrupto o inexistente -> default)
    y escritura atómica (archivo temporal + os.replace) protegida por lock.
    """

    # Lock global para evitar escrituras concurrentes a archivos
    _file_lock = threading.RLock()

    def __init__(self, file_path: str, default: Any = None):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON
            default: Valor que se devuelve si el archivo no existe o está corrupto
        """
        self.file_path = file_path
        self._default = default

    def _empty_data(self) -> Any:
        """Copia del valor por defecto (nunca se comparte la instancia)."""
        return copy.deepcopy(self._default)

    def exists(self) -> bool:
        return os.path.exists(self.file_path)

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados, o el default si el archivo está corrupto o no existe
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except (ValueError, OSError) as e:
                # JSON inválido, UTF-8 inválido o archivo ilegible
                print(f"[STORAGE ERROR] No se pudo leer '{os.path.basename(self.file_path)}': {e}")
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON.

        Raises:
            OSError: Si hay error de escritura
            TypeError: Si los datos no son serializables
        """
        with self._file_lock:
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except Exception:
                # Limpiar archivo temporal si algo falla
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise
