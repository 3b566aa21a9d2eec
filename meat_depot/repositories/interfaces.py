# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que usa el store para persistir su estado localmente. Permiten:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - El store depende de la interfaz, NO de archivos JSON concretos
#    - Un repositorio en memoria sirve igual para tests
#
# 2. DOCUMENTACIÓN
#    - Contrato claro de qué se guarda y cómo se recupera
#
# ==============================================================================

from typing import Any, Iterable, Protocol, runtime_checkable


@runtime_checkable
class ILocalStateRepository(Protocol):
    """
    Almacenamiento clave -> valor JSON (equivalente a localStorage).
    Usado por: AppStore.
    """

    def load(self, key: str, default: Any = None) -> Any:
        """Carga el valor de una clave, o el default si no existe."""
        ...

    def save(self, key: str, value: Any) -> bool:
        """Guarda el valor de una clave. Retorna False si falló."""
        ...

    def keys(self) -> Iterable[str]:
        """Claves guardadas actualmente."""
        ...
