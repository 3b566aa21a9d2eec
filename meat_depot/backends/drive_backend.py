# ==============================================================================
# BACKEND GOOGLE DRIVE
# ==============================================================================
# Guarda el sobre completo como un archivo JSON dentro de una carpeta de Drive.
#
#   - Archivo principal: meat_depot_app_data.json (se actualiza con PATCH)
#   - Checkpoints:       meat_depot_checkpoint_<timestamp>.json (nunca se pisan)
#
# También sube imágenes (backupMethod = GOOGLE_DRIVE) y devuelve un enlace
# de miniatura utilizable directamente en la app.
# ==============================================================================

import base64
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from ..constants import BACKUP_FILENAME, CHECKPOINT_PREFIX
from ..sync_logger import profile_backend
from .base import BackendUnavailableError, SyncBackend, TokenExpiredError, bearer

DRIVE_API = 'https://www.googleapis.com/drive/v3/files'
DRIVE_UPLOAD_API = 'https://www.googleapis.com/upload/drive/v3/files'

DATA_BOUNDARY = 'meat_depot_app_boundary'
IMAGE_BOUNDARY = 'meat_depot_image_boundary'

_FILE_ID_IN_URL = re.compile(r'id=([^&]+)')


def drive_credentials(config: Dict[str, Any]):
    """Retorna (accessToken, folderId) o (None, None) si faltan."""
    drive = (config or {}).get('googleDrive') or {}
    token = drive.get('accessToken') or None
    folder = drive.get('folderId') or None
    if token and folder:
        return token, folder
    return None, None


def _multipart_body(boundary: str, metadata: Dict[str, Any], content_type: str,
                    payload: str, transfer_encoding: Optional[str] = None) -> str:
    """Cuerpo multipart/related para la subida con metadatos de Drive."""
    delimiter = f'--{boundary}\r\n'
    close_delim = f'\r\n--{boundary}--'
    extra = f'Content-Transfer-Encoding: {transfer_encoding}\r\n' if transfer_encoding else ''
    return (
        delimiter
        + 'Content-Type: application/json; charset=UTF-8\r\n\r\n'
        + json.dumps(metadata)
        + '\r\n'
        + delimiter
        + f'Content-Type: {content_type}\r\n'
        + extra
        + '\r\n'
        + payload
        + close_delim
    )


class DriveBackend(SyncBackend):
    """
    Sincronización contra Google Drive v3 (token OAuth + carpeta).

    Uso:
        drive = DriveBackend()
        drive.save(envelope, config)
        data = drive.load(config)
    """

    name = 'drive'

    def is_configured(self, config: Dict[str, Any]) -> bool:
        token, folder = drive_credentials(config)
        return bool(token and folder)

    # ═══════════════════════════════════════════════════════════════════════
    # BÚSQUEDA
    # ═══════════════════════════════════════════════════════════════════════

    def find_main_file(self, token: str, folder: str) -> Optional[str]:
        """
        Busca el archivo principal en la carpeta.

        Returns:
            ID del archivo o None si no existe (o la búsqueda falló)
        """
        query = f"name='{BACKUP_FILENAME}' and '{folder}' in parents and trashed=false"
        res = self._request(
            'GET', DRIVE_API,
            params={'q': query, 'fields': 'files(id)'},
            headers=bearer(token),
        )
        if not res.ok:
            return None
        files = (self._json_dict(res) or {}).get('files') or []
        return files[0].get('id') if files else None

    # ═══════════════════════════════════════════════════════════════════════
    # GUARDAR
    # ═══════════════════════════════════════════════════════════════════════

    @profile_backend(name='drive.save')
    def save(self, snapshot: Dict[str, Any], config: Dict[str, Any]) -> bool:
        token, folder = drive_credentials(config)
        if not token:
            raise BackendUnavailableError(self.name, 'Drive no configurado')

        file_id = self.find_main_file(token, folder)
        if file_id:
            res = self._request(
                'PATCH', f'{DRIVE_UPLOAD_API}/{file_id}',
                params={'uploadType': 'media'},
                headers={**bearer(token), 'Content-Type': 'application/json'},
                data=json.dumps(snapshot, indent=2).encode('utf-8'),
            )
        else:
            res = self._create_file(token, folder, BACKUP_FILENAME, snapshot)

        self._raise_for_status(res, 'Guardar en Drive')
        print(f"[SYNC] Estado guardado en Drive ({BACKUP_FILENAME})")
        return True

    def _create_file(self, token: str, folder: str, filename: str,
                     snapshot: Dict[str, Any]) -> requests.Response:
        metadata = {
            'name': filename,
            'mimeType': 'application/json',
            'parents': [folder],
        }
        body = _multipart_body(DATA_BOUNDARY, metadata, 'application/json', json.dumps(snapshot))
        return self._request(
            'POST', DRIVE_UPLOAD_API,
            params={'uploadType': 'multipart'},
            headers={**bearer(token), 'Content-Type': f'multipart/related; boundary={DATA_BOUNDARY}'},
            data=body.encode('utf-8'),
        )

    @profile_backend(name='drive.checkpoint')
    def create_checkpoint(self, snapshot: Dict[str, Any], config: Dict[str, Any],
                          now: Optional[datetime] = None) -> str:
        """
        Crea un archivo de checkpoint nuevo (nunca sobreescribe otro).

        Returns:
            Nombre del archivo creado
        """
        token, folder = drive_credentials(config)
        if not token:
            raise BackendUnavailableError(self.name, 'Drive no configurado')

        now = now or datetime.now(timezone.utc)
        stamp = now.strftime('%Y-%m-%dT%H-%M-%S-') + f'{now.microsecond // 1000:03d}Z'
        filename = f'{CHECKPOINT_PREFIX}{stamp}.json'

        res = self._create_file(token, folder, filename, snapshot)
        self._raise_for_status(res, 'Crear checkpoint en Drive')
        print(f"[BACKUP] Checkpoint creado en Drive: {filename}")
        return filename

    # ═══════════════════════════════════════════════════════════════════════
    # CARGAR
    # ═══════════════════════════════════════════════════════════════════════

    @profile_backend(name='drive.load')
    def load(self, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        token, folder = drive_credentials(config)
        if not token:
            return None
        try:
            file_id = self.find_main_file(token, folder)
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] Carga desde Drive falló: {e}")
            return None
        if not file_id:
            return None
        return self.load_backup(file_id, config)

    def load_backup(self, file_id: str, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Descarga un archivo concreto (principal o checkpoint)."""
        token = ((config or {}).get('googleDrive') or {}).get('accessToken')
        if not token:
            return None
        try:
            res = self._request('GET', f'{DRIVE_API}/{file_id}', params={'alt': 'media'}, headers=bearer(token))
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] No se pudo descargar {file_id} de Drive: {e}")
            return None
        if not res.ok:
            return None
        return self._json_dict(res)

    def list_backups(self, config: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Lista checkpoints y archivo principal, más recientes primero.
        Si el token expiró retorna lista vacía (no lanza).
        """
        token, folder = drive_credentials(config)
        if not token:
            return []
        query = (
            f"(name contains '{CHECKPOINT_PREFIX}' or name = '{BACKUP_FILENAME}') "
            f"and '{folder}' in parents and trashed=false"
        )
        try:
            res = self._request(
                'GET', DRIVE_API,
                params={'q': query, 'fields': 'files(id,name,createdTime)', 'orderBy': 'createdTime desc'},
                headers=bearer(token),
            )
        except TokenExpiredError:
            print("[SYNC WARNING] Listado de Drive omitido: token expirado")
            return []
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] No se pudieron listar los backups: {e}")
            return []
        if not res.ok:
            return []
        files = (self._json_dict(res) or {}).get('files')
        return files if isinstance(files, list) else []

    # ═══════════════════════════════════════════════════════════════════════
    # ARCHIVOS (imágenes)
    # ═══════════════════════════════════════════════════════════════════════

    def upload_media(self, data_url: str, filename: str, config: Dict[str, Any]) -> Optional[str]:
        """
        Sube una imagen (data URL base64) a la carpeta de Drive.

        Returns:
            URL de miniatura, o None si falló
        """
        token, folder = drive_credentials(config)
        if not token:
            return None
        try:
            header, b64_data = data_url.split(',', 1)
            content_type = header.split(';')[0].split(':')[1]
            base64.b64decode(b64_data, validate=True)
        except (ValueError, IndexError) as e:
            print(f"[SYNC WARNING] Imagen inválida para Drive: {e}")
            return None

        metadata = {'name': filename, 'mimeType': content_type, 'parents': [folder]}
        body = _multipart_body(IMAGE_BOUNDARY, metadata, content_type, b64_data, transfer_encoding='base64')
        try:
            res = self._request(
                'POST', DRIVE_UPLOAD_API,
                params={'uploadType': 'multipart', 'fields': 'id'},
                headers={**bearer(token), 'Content-Type': f'multipart/related; boundary={IMAGE_BOUNDARY}'},
                data=body.encode('utf-8'),
            )
        except TokenExpiredError:
            print("[SYNC WARNING] Subida a Drive: token expirado")
            return None
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] Subida a Drive falló: {e}")
            return None
        if not res.ok:
            return None
        file_id = (self._json_dict(res) or {}).get('id')
        if not file_id:
            return None
        return f'https://drive.google.com/thumbnail?id={file_id}&sz=w1000'

    def delete_media(self, file_url: str, config: Dict[str, Any]) -> bool:
        token = ((config or {}).get('googleDrive') or {}).get('accessToken')
        match = _FILE_ID_IN_URL.search(file_url or '')
        if not token or not match:
            return False
        try:
            res = self._request('DELETE', f'{DRIVE_API}/{match.group(1)}', headers=bearer(token))
        except (TokenExpiredError, BackendUnavailableError) as e:
            print(f"[SYNC WARNING] No se pudo borrar de Drive: {e}")
            return False
        return res.ok
