# ==============================================================================
# CONFIGURACIÓN DEL SERVICIO
# ==============================================================================
# Valores por defecto para desarrollo, sobrescribibles por variables de entorno.
# Se copian a app.config en create_app().
#
# NOTA: Las credenciales de Drive / Firebase / dominio propio NO viven aquí.
# Viajan dentro del registro "config" del negocio (ver constants.INITIAL_CONFIG).
# ==============================================================================

import os
from typing import Any, Dict, Optional

BASE = os.path.dirname(os.path.abspath(__file__))

# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# True = exige MD_SECRET_KEY y MD_ADMIN_PASSWORD reales
# False = modo desarrollo con valores por defecto
PRODUCTION_MODE = os.environ.get('MD_PRODUCTION', '0') == '1'

_DEFAULT_SECRET = "meat_depot_dev_secret_key_change_in_production"
_DEFAULT_ADMIN_PASSWORD = "CHANGE_THIS_PASSWORD_IMMEDIATELY"


def _env_float(name: str, default: float) -> float:
    """Lee un float del entorno; si el valor es inválido usa el default."""
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[CONFIG] Valor inválido para {name}: {raw!r}, usando {default}")
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Construye el diccionario de configuración del servicio.

    Args:
        overrides: Valores que reemplazan a los del entorno (útil en tests)

    Returns:
        Diccionario listo para app.config.update()
    """
    secret_key = os.environ.get('MD_SECRET_KEY')
    admin_password = os.environ.get('MD_ADMIN_PASSWORD')

    if PRODUCTION_MODE and not secret_key:
        print("[ADVERTENCIA] MD_PRODUCTION activo sin MD_SECRET_KEY definida")
    if PRODUCTION_MODE and not admin_password:
        print("[ADVERTENCIA] MD_PRODUCTION activo sin MD_ADMIN_PASSWORD definida")

    settings = {
        'PRODUCTION_MODE': PRODUCTION_MODE,
        'SECRET_KEY': secret_key or _DEFAULT_SECRET,
        'DATA_DIR': os.environ.get('MD_DATA_DIR') or os.path.join(BASE, 'data'),
        'LOGS_DIR': os.environ.get('MD_LOGS_DIR') or os.path.join(BASE, 'logs'),
        'ADMIN_PASSWORD': admin_password or _DEFAULT_ADMIN_PASSWORD,

        # Sincronización
        'SYNC_DEBOUNCE_SECONDS': _env_float('MD_SYNC_DEBOUNCE', 2.0),
        'HTTP_TIMEOUT': _env_float('MD_HTTP_TIMEOUT', 30.0),
        'SERVER_SYNC_URL': os.environ.get('MD_SERVER_SYNC_URL') or None,
        'STARTUP_CLOUD_LOAD': _env_flag('MD_STARTUP_CLOUD_LOAD', True),

        # Logs de sincronización (umbrales en milisegundos)
        'ENABLE_SYNC_LOG': _env_flag('MD_SYNC_LOG', True),
        'SLOW_BACKEND_WARNING_MS': 1500,
        'SLOW_BACKEND_CRITICAL_MS': 5000,

        # Backups locales
        'STARTUP_BACKUP': _env_flag('MD_STARTUP_BACKUP', True),
        'MAX_BACKUPS': int(_env_float('MD_MAX_BACKUPS', 7)),

        # Sesiones (mismo criterio que el panel de stock)
        'SESSION_COOKIE_HTTPONLY': True,
        'SESSION_COOKIE_SECURE': False,
        'SESSION_COOKIE_SAMESITE': 'Lax',
        'PERMANENT_SESSION_LIFETIME': 86400,
        'MAX_CONTENT_LENGTH': 50 * 1024 * 1024,  # el snapshot completo puede ser grande
    }

    if overrides:
        settings.update(overrides)
    return settings
