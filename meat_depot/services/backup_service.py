# ==============================================================================
# SERVICIO DE BACKUPS LOCALES
# ==============================================================================
# 1. Backup diario en ZIP de los archivos de estado (md_*.json).
#    Mantiene solo los últimos N backups (rotación automática).
#    FORMATO: backups/backup_YYYY-MM-DD.zip
#
# 2. Exportación / importación del estado completo como JSON descargable
#    (meat_depot_backup_YYYY-MM-DD.json), el mismo sobre que viaja a la nube.
# ==============================================================================

import os
import zipfile
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..constants import SYNCED_KEYS
from ..repositories import LocalStateRepository
from .store_service import AppStore


class BackupService:
    """
    Servicio para gestión de backups locales.

    Uso:
        backup_service = BackupService(repository, max_backups=7)
        backup_service.run_daily_backup()
    """

    MAX_BACKUPS = 7
    BACKUP_DIR_NAME = 'backups'

    def __init__(self, repository: LocalStateRepository, max_backups: Optional[int] = None,
                 backup_root: Optional[str] = None):
        """
        Args:
            repository: Repositorio de estado local (provee los archivos a respaldar)
            max_backups: Cantidad de ZIP a conservar
            backup_root: Carpeta de backups (por defecto DATA_DIR/backups)
        """
        self.repository = repository
        self.max_backups = max_backups or self.MAX_BACKUPS
        self.backup_root = backup_root or os.path.join(repository.data_dir, self.BACKUP_DIR_NAME)
        os.makedirs(self.backup_root, exist_ok=True)

    def _get_today_zip_path(self) -> str:
        today = datetime.now().strftime('%Y-%m-%d')
        return os.path.join(self.backup_root, f'backup_{today}.zip')

    def _backup_exists_today(self) -> bool:
        zip_path = self._get_today_zip_path()
        return os.path.exists(zip_path) and os.path.getsize(zip_path) > 0

    def _get_existing_backups(self) -> List[str]:
        """
        Archivos backup_YYYY-MM-DD.zip ordenados por fecha (más reciente primero).
        """
        if not os.path.exists(self.backup_root):
            return []

        backups = []
        for item in os.listdir(self.backup_root):
            item_path = os.path.join(self.backup_root, item)
            if os.path.isfile(item_path) and item.startswith('backup_') and item.endswith('.zip'):
                try:
                    datetime.strptime(item[7:-4], '%Y-%m-%d')
                except ValueError:
                    continue
                backups.append(item)

        backups.sort(reverse=True)
        return backups

    def _zip_state_files(self, zip_path: str) -> Tuple[int, List[str]]:
        """
        Crea el ZIP con los archivos de estado.

        Returns:
            Tupla (archivos_agregados, lista_de_errores)
        """
        added = 0
        errors = []
        try:
            with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                for src in self.repository.file_paths():
                    filename = os.path.basename(src)
                    try:
                        zf.write(src, filename)
                        added += 1
                    except OSError as e:
                        errors.append(f"{filename}: {e}")
        except (OSError, zipfile.BadZipFile) as e:
            errors.append(f"Error creando ZIP: {e}")
            if os.path.exists(zip_path):
                try:
                    os.remove(zip_path)
                except OSError:
                    pass
        return added, errors

    def _delete_old_backups(self) -> int:
        backups = self._get_existing_backups()
        deleted = 0
        for backup_name in backups[self.max_backups:]:
            try:
                os.remove(os.path.join(self.backup_root, backup_name))
                deleted += 1
                print(f"[BACKUP] Eliminado backup antiguo: {backup_name}")
            except OSError as e:
                print(f"[BACKUP ERROR] No se pudo eliminar {backup_name}: {e}")
        return deleted

    def create_backup(self, force: bool = False) -> dict:
        """
        Crea el ZIP del día.

        Args:
            force: Si True, lo recrea aunque ya exista uno hoy

        Returns:
            Dict con resultado: {success, message, files_added, errors, backup_path}
        """
        result = {
            'success': False,
            'message': '',
            'files_added': 0,
            'errors': [],
            'backup_path': None,
        }

        zip_path = self._get_today_zip_path()
        if not force and self._backup_exists_today():
            result['success'] = True
            result['message'] = 'Backup del día ya existe'
            result['backup_path'] = zip_path
            print(f"[BACKUP] Backup ya existe hoy: {os.path.basename(zip_path)}")
            return result

        added, errors = self._zip_state_files(zip_path)
        result['success'] = added > 0
        result['files_added'] = added
        result['errors'] = errors
        result['backup_path'] = zip_path if added > 0 else None

        if added > 0:
            size_kb = round(os.path.getsize(zip_path) / 1024, 2)
            result['message'] = f'Backup creado: {added} archivos ({size_kb} KB)'
            print(f"[BACKUP] Backup creado: {os.path.basename(zip_path)} ({added} archivos, {size_kb} KB)")
        else:
            result['message'] = 'No se encontraron archivos para respaldar'
            if os.path.exists(zip_path):
                os.remove(zip_path)
        return result

    def rotate_backups(self) -> dict:
        deleted = self._delete_old_backups()
        return {
            'deleted_count': deleted,
            'remaining_count': len(self._get_existing_backups()),
        }

    def run_daily_backup(self) -> dict:
        """
        1. Crea el backup del día si no existe
        2. Rota backups antiguos
        """
        return {
            'backup': self.create_backup(),
            'rotation': self.rotate_backups(),
        }

    def get_backup_status(self) -> dict:
        backups = self._get_existing_backups()
        backup_info = []
        for backup_name in backups:
            backup_path = os.path.join(self.backup_root, backup_name)
            size_bytes = os.path.getsize(backup_path)
            try:
                with zipfile.ZipFile(backup_path, 'r') as zf:
                    file_count = len(zf.namelist())
            except zipfile.BadZipFile:
                file_count = 0
            backup_info.append({
                'filename': backup_name,
                'date': backup_name[7:-4],
                'files': file_count,
                'size_bytes': size_bytes,
                'size_kb': round(size_bytes / 1024, 2),
            })

        return {
            'total_backups': len(backups),
            'max_backups': self.max_backups,
            'backups': backup_info,
            'today_exists': self._backup_exists_today(),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # EXPORTAR / IMPORTAR JSON
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def export_filename(now: Optional[datetime] = None) -> str:
        return f"meat_depot_backup_{(now or datetime.now()).strftime('%Y-%m-%d')}.json"

    @staticmethod
    def export_snapshot(store: AppStore) -> Dict[str, Any]:
        """Sobre completo listo para descargar."""
        return store.build_envelope()

    @staticmethod
    def import_snapshot(store: AppStore, data: Any) -> dict:
        """
        Valida y restaura un respaldo JSON (fusión parcial, siempre se aplica).

        Returns:
            Dict {success, message, restored}
        """
        if not isinstance(data, dict):
            return {'success': False, 'message': 'El respaldo debe ser un objeto JSON', 'restored': []}
        if not any(key in data for key in SYNCED_KEYS):
            return {'success': False, 'message': 'El archivo no contiene datos de Meat Depot', 'restored': []}

        restored = store.restore_data(data)
        if not restored:
            return {'success': False, 'message': 'Ninguna sección válida para restaurar', 'restored': []}
        print(f"[BACKUP] Respaldo importado: {', '.join(restored)}")
        return {'success': True, 'message': f'{len(restored)} sección(es) restaurada(s)', 'restored': restored}


def run_startup_backup(service: BackupService) -> None:
    """
    Backup al iniciar la aplicación.
    Maneja los errores internamente para no romper el arranque.
    """
    try:
        result = service.run_daily_backup()
        if result['backup']['success'] and result['backup']['files_added'] > 0:
            print("[BACKUP] ✓ Backup diario completado")
        elif result['backup']['errors']:
            print(f"[BACKUP] ⚠ Errores: {result['backup']['errors']}")
    except OSError as e:
        print(f"[BACKUP ERROR] No se pudo ejecutar backup: {e}")
