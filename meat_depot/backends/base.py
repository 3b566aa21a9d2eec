# ==============================================================================
# BACKENDS REMOTOS - Contrato común
# ==============================================================================
# Cada backend sabe:
#   1. Si está configurado (a partir del registro config del negocio)
#   2. Cargar el sobre de sincronización (dict) o None si no hay datos
#   3. Guardar el sobre completo (True, o lanza excepción)
#
# Semántica de errores:
#   - HTTP 401 (o equivalente)           → TokenExpiredError
#   - Red caída, respuesta no-2xx, basura → BackendUnavailableError (solo save)
#   - En load, todo lo que no sea token expirado se trata como "sin datos"
# ==============================================================================

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

DEFAULT_TIMEOUT = 30


class BackendError(Exception):
    """Error base de los backends remotos."""

    def __init__(self, backend: str, message: str = ''):
        self.backend = backend
        self.message = message or self.__class__.__name__
        super().__init__(f"{backend}: {self.message}")


class TokenExpiredError(BackendError):
    """El backend rechazó las credenciales (HTTP 401)."""

    def __init__(self, backend: str, message: str = 'token_expired'):
        super().__init__(backend, message)


class BackendUnavailableError(BackendError):
    """Fallo de red, respuesta inesperada o error del servidor remoto."""


class SyncBackend(ABC):
    """
    Adaptador de almacenamiento remoto del sobre de sincronización.

    Los adaptadores no guardan estado propio: las credenciales llegan en cada
    llamada dentro de `config`. Solo retienen la sesión HTTP inyectada.
    """

    #: Nombre corto usado en reportes y logs
    name = 'backend'

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    @abstractmethod
    def is_configured(self, config: Dict[str, Any]) -> bool:
        """True si config trae credenciales suficientes para este backend."""

    @abstractmethod
    def load(self, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Lee el último sobre guardado.

        Returns:
            dict con los datos, o None si no hay datos o son inválidos

        Raises:
            TokenExpiredError: Si el backend rechaza las credenciales
        """

    @abstractmethod
    def save(self, snapshot: Dict[str, Any], config: Dict[str, Any]) -> bool:
        """
        Escribe el sobre completo.

        Raises:
            TokenExpiredError: Si el backend rechaza las credenciales
            BackendUnavailableError: Para cualquier otro fallo
        """

    # ─── Helpers HTTP ───

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Ejecuta una petición y traduce errores de red y 401."""
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise BackendUnavailableError(self.name, f"{method} {url}: {e}") from e
        self._raise_for_auth(response)
        return response

    def _raise_for_auth(self, response: requests.Response) -> None:
        if response.status_code == 401:
            raise TokenExpiredError(self.name)

    def _raise_for_status(self, response: requests.Response, what: str) -> None:
        if not response.ok:
            detail = (response.text or '')[:200]
            raise BackendUnavailableError(
                self.name, f"{what} falló ({response.status_code}): {detail}"
            )

    def _json_dict(self, response: requests.Response) -> Optional[Dict[str, Any]]:
        """
        Decodifica el cuerpo como objeto JSON.

        Returns:
            dict, o None si el cuerpo no es JSON (p.ej. HTML de un proxy) o no es un objeto
        """
        try:
            data = response.json()
        except ValueError:
            print(f"[SYNC WARNING] {self.name}: respuesta no es JSON ({response.status_code})")
            return None
        return data if isinstance(data, dict) else None

    def __repr__(self):
        return f"<{self.__class__.__name__} name={self.name!r}>"


def bearer(token: str) -> Dict[str, str]:
    return {'Authorization': f'Bearer {token}'}
