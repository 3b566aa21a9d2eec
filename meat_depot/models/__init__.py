# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Los registros del negocio viajan como dicts JSON (el sobre de sync debe ser
# serializable siempre). Este módulo define los valores válidos y las
# estructuras propias del store: preview y reportes de sincronización.
# ==============================================================================

from .entities import (
    # Enumeraciones
    UserRole,
    UnitType,
    OrderStatus,
    ActivityAction,
    BackupMethod,
    BackendStatus,

    # Preview
    PreviewData,

    # Sincronización
    BackendResult,
    SyncReport,

    # Utilidades
    utc_now_iso,
)

__all__ = [
    'UserRole',
    'UnitType',
    'OrderStatus',
    'ActivityAction',
    'BackupMethod',
    'BackendStatus',
    'PreviewData',
    'BackendResult',
    'SyncReport',
    'utc_now_iso',
]
