# ==============================================================================
# SERVICIO DE ARCHIVOS (imágenes de productos, banners, posts)
# ==============================================================================
# Sube y borra archivos según config.backupMethod:
#   FIREBASE       → Cloud Storage   (si falla, se conserva el data URL)
#   CUSTOM_DOMAIN  → {url}/upload    (si falla, se conserva el data URL)
#   GOOGLE_DRIVE   → carpeta de Drive (si falla, None)
# ==============================================================================

from typing import Any, Dict, Optional

from ..backends import DomainBackend, DriveBackend, FirebaseBackend
from ..models import BackupMethod


class MediaService:
    """Punto único de subida/borrado de archivos."""

    def __init__(self, drive: DriveBackend, firebase: FirebaseBackend, domain: DomainBackend):
        self.drive = drive
        self.firebase = firebase
        self.domain = domain

    @staticmethod
    def _method(config: Dict[str, Any]) -> str:
        return (config or {}).get('backupMethod') or BackupMethod.GOOGLE_DRIVE.value

    def upload_file(self, data_url: str, name: str, config: Dict[str, Any]) -> Optional[str]:
        """
        Args:
            data_url: Imagen en formato data:<mime>;base64,<datos>
            name: Nombre de archivo destino
            config: Config del negocio (credenciales y método)

        Returns:
            URL utilizable en la app, o None si Drive no pudo subirla
        """
        method = self._method(config)
        if method == BackupMethod.FIREBASE.value:
            return self.firebase.upload_media(data_url, name, config) or data_url
        if method == BackupMethod.CUSTOM_DOMAIN.value:
            return self.domain.upload_media(data_url, name, config) or data_url
        return self.drive.upload_media(data_url, name, config)

    def delete_file(self, url: str, config: Dict[str, Any]) -> bool:
        method = self._method(config)
        if method == BackupMethod.FIREBASE.value:
            return self.firebase.delete_media(url, config)
        if method == BackupMethod.CUSTOM_DOMAIN.value:
            # El endpoint del dominio no expone borrado
            return False
        return self.drive.delete_media(url, config)
