# ==============================================================================
# PING AL SERVIDOR DE SYNC
# ==============================================================================
# Tras cada sincronización se avisa al servidor (SERVER_SYNC_URL) enviando el
# sobre completo. Es best-effort: cualquier fallo se ignora y nunca cuenta
# como fallo de la sincronización.
# ==============================================================================

import time
from typing import Any, Dict, Optional

import requests

from ..models import BackendResult, BackendStatus


class ServerPing:
    """Notificación best-effort al servidor de la app."""

    name = 'server'

    def __init__(self, url: Optional[str], session: Optional[requests.Session] = None, timeout: float = 10):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def ping(self, envelope: Dict[str, Any]) -> BackendResult:
        if not self.url:
            return BackendResult(self.name, BackendStatus.SKIPPED, 'SERVER_SYNC_URL no definido')

        start = time.perf_counter()
        try:
            res = self.session.post(self.url, json={'data': envelope}, timeout=self.timeout)
            status = BackendStatus.OK if res.ok else BackendStatus.FAILED
            message = '' if res.ok else f'HTTP {res.status_code}'
        except requests.RequestException as e:
            status, message = BackendStatus.FAILED, str(e)
        elapsed = (time.perf_counter() - start) * 1000

        if status != BackendStatus.OK:
            # Solo informativo
            print(f"[SYNC] Ping al servidor sin respuesta ({message})")
        return BackendResult(self.name, status, message, elapsed)
