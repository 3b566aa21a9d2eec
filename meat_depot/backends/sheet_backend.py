# ==============================================================================
# BACKEND GOOGLE SHEETS
# ==============================================================================
# Guarda el sobre como texto JSON repartido en filas de la columna A de la
# pestaña "System_State" (una celda admite ~50.000 caracteres, se usan
# trozos de 40.000).
#
# Formato de la columna A:
#   A1: #md-chunks:<cantidad>:<sha256 del JSON completo>
#   A2..An: trozos del JSON en orden
#
# Las hojas antiguas sin fila de cabecera se leen concatenando todas las filas.
# ==============================================================================

import hashlib
import json
import re
from typing import Any, Dict, List, Optional

from ..constants import (
    CUSTOMER_DATABASE_SHEET,
    SHEET_CHUNK_SIZE,
    SHEET_HEADER_PREFIX,
    SHEET_TAB_NAME,
)
from ..sync_logger import profile_backend
from .base import BackendUnavailableError, SyncBackend, bearer
from .drive_backend import drive_credentials

SHEETS_API = 'https://sheets.googleapis.com/v4/spreadsheets'
GVIZ_URL = 'https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq'

_SHEET_ID_IN_URL = re.compile(r'/d/([a-zA-Z0-9-_]+)')
_BARE_SHEET_ID = re.compile(r'^[a-zA-Z0-9-_]{20,}$')


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES PURAS
# ═══════════════════════════════════════════════════════════════════════════

def extract_sheet_id(url: Optional[str]) -> Optional[str]:
    """
    Extrae el ID de una URL de Google Sheets.
    También acepta un ID suelto.

    >>> extract_sheet_id('https://docs.google.com/spreadsheets/d/abc-123_X/edit')
    'abc-123_X'
    """
    if not url:
        return None
    match = _SHEET_ID_IN_URL.search(url)
    if match:
        return match.group(1)
    url = url.strip()
    return url if _BARE_SHEET_ID.match(url) else None


def chunk_snapshot(text: str, size: int = SHEET_CHUNK_SIZE) -> List[str]:
    """Parte el texto en trozos de `size` caracteres (el último puede ser menor)."""
    if size <= 0:
        raise ValueError("size debe ser positivo")
    return [text[i:i + size] for i in range(0, len(text), size)]


def build_header(text: str, chunk_count: int) -> str:
    digest = hashlib.sha256(text.encode('utf-8')).hexdigest()
    return f'{SHEET_HEADER_PREFIX}{chunk_count}:{digest}'


def build_rows(snapshot: Dict[str, Any], size: int = SHEET_CHUNK_SIZE) -> List[List[str]]:
    """Filas a escribir: cabecera + un trozo por fila."""
    text = json.dumps(snapshot, separators=(',', ':'), ensure_ascii=False)
    chunks = chunk_snapshot(text, size)
    return [[build_header(text, len(chunks))]] + [[chunk] for chunk in chunks]


def join_chunks(cells: List[str]) -> Optional[Dict[str, Any]]:
    """
    Reconstruye el sobre a partir de las celdas de la columna A (en orden).

    Returns:
        dict, o None si no hay datos, la cabecera no coincide o el JSON es inválido
    """
    cells = [c for c in cells if c]
    if not cells:
        return None

    if cells[0].startswith(SHEET_HEADER_PREFIX):
        try:
            count_str, digest = cells[0][len(SHEET_HEADER_PREFIX):].split(':', 1)
            expected_count = int(count_str)
        except ValueError:
            print("[SYNC WARNING] Cabecera de hoja inválida")
            return None
        chunks = cells[1:]
        text = ''.join(chunks)
        if len(chunks) != expected_count:
            print(f"[SYNC WARNING] Hoja incompleta: {len(chunks)}/{expected_count} trozos")
            return None
        if hashlib.sha256(text.encode('utf-8')).hexdigest() != digest:
            print("[SYNC WARNING] Checksum de la hoja no coincide")
            return None
    else:
        text = ''.join(cells)

    try:
        data = json.loads(text)
    except ValueError:
        print("[SYNC WARNING] El contenido de la hoja no es JSON válido")
        return None
    return data if isinstance(data, dict) else None


def parse_gviz_response(text: str) -> List[str]:
    """
    Extrae las celdas de la columna A de una respuesta gviz
    (JSON envuelto en `google.visualization.Query.setResponse(...)`).
    """
    start, end = text.find('{'), text.rfind('}')
    if start < 0 or end < start:
        return []
    try:
        payload = json.loads(text[start:end + 1])
    except ValueError:
        return []

    table = payload.get('table') or {}
    cells = []
    # gviz puede tomar la primera fila como etiqueta de columna
    cols = table.get('cols') or []
    if cols and str(cols[0].get('label') or '').startswith(SHEET_HEADER_PREFIX):
        cells.append(cols[0]['label'])
    for row in table.get('rows') or []:
        c = row.get('c') or []
        if c and c[0] and c[0].get('v'):
            cells.append(str(c[0]['v']))
    return cells


# ═══════════════════════════════════════════════════════════════════════════
# BACKEND
# ═══════════════════════════════════════════════════════════════════════════

class SheetBackend(SyncBackend):
    """
    Sincronización contra la pestaña System_State de una hoja de cálculo.
    Usa el mismo token OAuth que Drive.
    """

    name = 'sheet'

    def __init__(self, session=None, timeout=30, chunk_size: int = SHEET_CHUNK_SIZE,
                 default_sheet_id: Optional[str] = CUSTOMER_DATABASE_SHEET):
        super().__init__(session, timeout)
        self.chunk_size = chunk_size
        self.default_sheet_id = default_sheet_id

    def sheet_id(self, config: Dict[str, Any]) -> Optional[str]:
        return extract_sheet_id((config or {}).get('googleSheetUrl')) or self.default_sheet_id

    def is_configured(self, config: Dict[str, Any]) -> bool:
        token, folder = drive_credentials(config)
        return bool(token and folder and self.sheet_id(config))

    # ─── Guardar ───

    @profile_backend(name='sheet.save')
    def save(self, snapshot: Dict[str, Any], config: Dict[str, Any]) -> bool:
        token, _folder = drive_credentials(config)
        sheet_id = self.sheet_id(config)
        if not token or not sheet_id:
            raise BackendUnavailableError(self.name, 'Hoja no configurada')

        base_url = f'{SHEETS_API}/{sheet_id}'
        auth = bearer(token)

        meta_res = self._request('GET', base_url, headers=auth)
        self._raise_for_status(meta_res, 'Metadatos de la hoja')
        try:
            sheets = meta_res.json().get('sheets')
        except (ValueError, AttributeError):
            sheets = None
        if sheets is None:
            raise BackendUnavailableError(self.name, 'Respuesta de metadatos inválida')

        titles = [(s.get('properties') or {}).get('title') for s in sheets]
        if SHEET_TAB_NAME not in titles:
            add_res = self._request(
                'POST', f'{base_url}:batchUpdate', headers=auth,
                json={'requests': [{'addSheet': {'properties': {'title': SHEET_TAB_NAME}}}]},
            )
            self._raise_for_status(add_res, f'Crear pestaña {SHEET_TAB_NAME}')

        rows = build_rows(snapshot, self.chunk_size)

        clear_res = self._request('POST', f'{base_url}/values/{SHEET_TAB_NAME}!A:A:clear', headers=auth)
        self._raise_for_status(clear_res, 'Limpiar columna A')

        append_res = self._request(
            'POST', f'{base_url}/values/{SHEET_TAB_NAME}!A1:append',
            params={'valueInputOption': 'RAW'}, headers=auth,
            json={'values': rows},
        )
        self._raise_for_status(append_res, 'Escribir trozos en la hoja')
        print(f"[SYNC] Estado guardado en hoja ({len(rows) - 1} trozos)")
        return True

    # ─── Cargar ───

    @profile_backend(name='sheet.load')
    def load(self, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        sheet_id = self.sheet_id(config)
        if not sheet_id:
            return None
        token, _folder = drive_credentials(config)
        try:
            if token:
                cells = self._read_values(sheet_id, token)
            else:
                cells = self._read_gviz(sheet_id)
        except BackendUnavailableError as e:
            print(f"[SYNC WARNING] No se pudo leer la hoja: {e}")
            return None
        return join_chunks(cells)

    def _read_values(self, sheet_id: str, token: str) -> List[str]:
        res = self._request(
            'GET', f'{SHEETS_API}/{sheet_id}/values/{SHEET_TAB_NAME}!A:A',
            params={'majorDimension': 'ROWS'}, headers=bearer(token),
        )
        if not res.ok:
            return []
        try:
            values = res.json().get('values') or []
        except (ValueError, AttributeError):
            return []
        return [row[0] for row in values if row]

    def _read_gviz(self, sheet_id: str) -> List[str]:
        res = self._request(
            'GET', GVIZ_URL.format(sheet_id=sheet_id),
            params={'tqx': 'out:json', 'sheet': SHEET_TAB_NAME, 'select': 'A'},
        )
        if not res.ok:
            return []
        return parse_gviz_response(res.text)
