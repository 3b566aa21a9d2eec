# ==============================================================================
# BACKEND FIREBASE (Firestore + Cloud Storage)
# ==============================================================================
# Un documento por colección dentro de "meat_depot_system" para no chocar con
# el límite de 1 MB por documento:
#   meat_depot_system/config     → config plano + _syncedAt
#   meat_depot_system/products   → {items: [...], _syncedAt}
#   ...
#   meat_depot_system/syncMeta   → {timestamp, versions}
#
# Todos los documentos se escriben en un único batch (todo o nada).
# ==============================================================================

import base64
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote, urlparse

import firebase_admin
from firebase_admin import credentials, firestore, storage
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions

from ..constants import FIREBASE_COLLECTION, FIREBASE_DOC_IDS
from ..models import utc_now_iso
from ..sync_logger import profile_backend
from .base import BackendUnavailableError, SyncBackend, TokenExpiredError

META_DOC_ID = 'syncMeta'
UPLOADS_PREFIX = 'uploads/'


def firebase_settings(config: Dict[str, Any]) -> Dict[str, Any]:
    return (config or {}).get('firebaseConfig') or {}


def _app_for(fb_config: Dict[str, Any]):
    """
    App de firebase_admin con nombre propio por proyecto.
    Así cambiar de proyecto en config no reutiliza una app vieja.
    """
    project_id = fb_config['projectId']
    app_name = f'meat_depot-{project_id}'
    try:
        return firebase_admin.get_app(app_name)
    except ValueError:
        pass

    service_account = fb_config.get('serviceAccount')
    if service_account:
        cred = credentials.Certificate(service_account)
    else:
        cred = credentials.ApplicationDefault()

    options = {'projectId': project_id}
    if fb_config.get('storageBucket'):
        options['storageBucket'] = fb_config['storageBucket']
    print(f"[SYNC] Inicializando Firebase para el proyecto {project_id}")
    return firebase_admin.initialize_app(cred, options, name=app_name)


def default_client_factory(config: Dict[str, Any]):
    return firestore.client(app=_app_for(firebase_settings(config)))


def default_bucket_factory(config: Dict[str, Any]):
    return storage.bucket(app=_app_for(firebase_settings(config)))


class FirebaseBackend(SyncBackend):
    """
    Sincronización contra Firestore.

    Args:
        client_factory: config -> cliente Firestore (inyectable en tests)
        bucket_factory: config -> bucket de Cloud Storage
    """

    name = 'firebase'

    def __init__(self, client_factory: Optional[Callable] = None,
                 bucket_factory: Optional[Callable] = None, session=None, timeout=30):
        super().__init__(session, timeout)
        self.client_factory = client_factory or default_client_factory
        self.bucket_factory = bucket_factory or default_bucket_factory

    def is_configured(self, config: Dict[str, Any]) -> bool:
        fb = firebase_settings(config)
        return bool(fb.get('projectId') and (fb.get('apiKey') or fb.get('serviceAccount')))

    def _client(self, config: Dict[str, Any]):
        try:
            return self.client_factory(config)
        except (ValueError, OSError, google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise BackendUnavailableError(self.name, f"Inicialización falló: {e}") from e

    # ─── Guardar ───

    @profile_backend(name='firebase.save')
    def save(self, snapshot: Dict[str, Any], config: Dict[str, Any]) -> bool:
        db = self._client(config)
        collection = db.collection(FIREBASE_COLLECTION)
        synced_at = utc_now_iso()

        batch = db.batch()
        for doc_id in FIREBASE_DOC_IDS:
            value = snapshot.get(doc_id)
            if value is None:
                continue
            if doc_id == 'config':
                payload = {**value, '_syncedAt': synced_at}
            else:
                payload = {'items': value, '_syncedAt': synced_at}
            batch.set(collection.document(doc_id), payload)

        batch.set(collection.document(META_DOC_ID), {
            'timestamp': snapshot.get('timestamp'),
            'versions': snapshot.get('_versions') or {},
            '_syncedAt': synced_at,
        })

        try:
            batch.commit()
        except (google_exceptions.Unauthenticated, auth_exceptions.RefreshError) as e:
            raise TokenExpiredError(self.name) from e
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise BackendUnavailableError(self.name, str(e)) from e
        print("[SYNC] Estado guardado en Firebase")
        return True

    # ─── Cargar ───

    @profile_backend(name='firebase.load')
    def load(self, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            db = self._client(config)
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] {e}")
            return None
        collection = db.collection(FIREBASE_COLLECTION)

        combined: Dict[str, Any] = {}
        has_data = False
        try:
            for doc_id in FIREBASE_DOC_IDS:
                snap = collection.document(doc_id).get()
                if not snap.exists:
                    continue
                data = snap.to_dict() or {}
                has_data = True
                if doc_id == 'config':
                    data.pop('_syncedAt', None)
                    combined['config'] = data
                elif 'items' in data:
                    combined[doc_id] = data['items']

            meta = collection.document(META_DOC_ID).get()
            if meta.exists:
                meta_data = meta.to_dict() or {}
                if meta_data.get('versions'):
                    combined['_versions'] = meta_data['versions']
                if meta_data.get('timestamp'):
                    combined['timestamp'] = meta_data['timestamp']
        except (google_exceptions.Unauthenticated, auth_exceptions.RefreshError) as e:
            raise TokenExpiredError(self.name) from e
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            print(f"[SYNC WARNING] Carga desde Firebase falló: {e}")
            return None

        return combined if has_data else None

    # ─── Archivos (Cloud Storage) ───

    def upload_media(self, data_url: str, filename: str, config: Dict[str, Any]) -> Optional[str]:
        """Sube una imagen data-URL a uploads/<filename>. Retorna la URL pública o None."""
        try:
            header, b64_data = data_url.split(',', 1)
            content_type = header.split(';')[0].split(':')[1]
            raw = base64.b64decode(b64_data)
        except (ValueError, IndexError) as e:
            print(f"[SYNC WARNING] Imagen inválida para Firebase: {e}")
            return None
        try:
            bucket = self.bucket_factory(config)
            blob = bucket.blob(UPLOADS_PREFIX + filename)
            blob.upload_from_string(raw, content_type=content_type)
            blob.make_public()
            return blob.public_url
        except (ValueError, OSError, google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            print(f"[SYNC WARNING] Subida a Firebase falló: {e}")
            return None

    def delete_media(self, file_url: str, config: Dict[str, Any]) -> bool:
        path = unquote(urlparse(file_url or '').path)
        idx = path.find(UPLOADS_PREFIX)
        if idx < 0:
            return False
        try:
            bucket = self.bucket_factory(config)
            bucket.blob(path[idx:]).delete()
            return True
        except (ValueError, OSError, google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            print(f"[SYNC WARNING] No se pudo borrar de Firebase: {e}")
            return False
