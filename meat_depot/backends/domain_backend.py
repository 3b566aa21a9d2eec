# ==============================================================================
# BACKEND DOMINIO PROPIO
# ==============================================================================
# Endpoint HTTP del negocio (plugin en su hosting):
#   POST {url}/sync     → guarda el sobre (cuerpo JSON)
#   GET  {url}/sync     → devuelve el último sobre ({} si nunca se guardó)
#   POST {url}/upload   → {image, name} → {url}
# Autenticación: cabecera X-API-Key.
# ==============================================================================

import time
from typing import Any, Dict, Optional

from ..sync_logger import profile_backend
from .base import BackendUnavailableError, SyncBackend, TokenExpiredError


def domain_settings(config: Dict[str, Any]) -> Dict[str, Any]:
    return (config or {}).get('customDomain') or {}


class DomainBackend(SyncBackend):
    """Sincronización contra el endpoint propio del negocio."""

    name = 'domain'

    def is_configured(self, config: Dict[str, Any]) -> bool:
        return bool(domain_settings(config).get('url'))

    def _base_url(self, config: Dict[str, Any]) -> str:
        return domain_settings(config)['url'].rstrip('/')

    def _headers(self, config: Dict[str, Any]) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        api_key = domain_settings(config).get('apiKey')
        if api_key:
            headers['X-API-Key'] = api_key
        return headers

    @profile_backend(name='domain.save')
    def save(self, snapshot: Dict[str, Any], config: Dict[str, Any]) -> bool:
        if not self.is_configured(config):
            raise BackendUnavailableError(self.name, 'Dominio no configurado')
        res = self._request('POST', f'{self._base_url(config)}/sync',
                            headers=self._headers(config), json=snapshot)
        self._raise_for_status(res, 'Sync con dominio')
        print("[SYNC] Estado guardado en dominio propio")
        return True

    @profile_backend(name='domain.load')
    def load(self, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.is_configured(config):
            return None
        try:
            res = self._request(
                'GET', f'{self._base_url(config)}/sync',
                params={'_t': int(time.time() * 1000)},  # evita caché intermedia
                headers=self._headers(config),
            )
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] Dominio inalcanzable: {e}")
            return None

        if not res.ok:
            print(f"[SYNC WARNING] Carga desde dominio falló con estado {res.status_code}")
            return None
        content_type = res.headers.get('Content-Type') or ''
        if 'application/json' not in content_type:
            print("[SYNC WARNING] El dominio respondió algo que no es JSON")
            return None
        try:
            data = res.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def upload_media(self, data_url: str, filename: str, config: Dict[str, Any]) -> Optional[str]:
        """Sube una imagen al dominio. Retorna la URL pública o None."""
        if not self.is_configured(config):
            return None
        try:
            res = self._request('POST', f'{self._base_url(config)}/upload',
                                headers=self._headers(config),
                                json={'image': data_url, 'name': filename})
        except (TokenExpiredError, BackendUnavailableError) as e:
            print(f"[SYNC WARNING] Subida al dominio falló: {e}")
            return None
        if not res.ok:
            print(f"[SYNC WARNING] Subida al dominio falló: {res.status_code}")
            return None
        return (self._json_dict(res) or {}).get('url')
