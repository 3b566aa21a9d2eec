# ==============================================================================
# LOGS DE SINCRONIZACIÓN Y PROFILING DE BACKENDS
# ==============================================================================
# Registra cada sincronización (qué backends respondieron, cuáles fallaron) y
# mide el tiempo de cada llamada a un backend remoto.
# Guarda logs legibles en LOGS_DIR para análisis humano:
#   - sync.log           → una entrada por sincronización / carga
#   - slow_backends.log  → llamadas lentas a Drive, Sheets, Firebase, dominio
#   - requests.log       → rutas HTTP del servicio
#
# ACTIVAR/DESACTIVAR: configure(enabled=...) o MD_SYNC_LOG=0
# ==============================================================================

import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_SYNC_LOG = True

# Umbrales de tiempo (en milisegundos). Las llamadas remotas son lentas por
# naturaleza, por eso son mucho más altos que los de las rutas locales.
THRESHOLD_WARNING = 1500
THRESHOLD_CRITICAL = 5000

LOGS_DIR = os.path.join(os.path.dirname(__file__), 'logs')
SYNC_LOG = os.path.join(LOGS_DIR, 'sync.log')
SLOW_BACKENDS_LOG = os.path.join(LOGS_DIR, 'slow_backends.log')
REQUESTS_LOG = os.path.join(LOGS_DIR, 'requests.log')

# Nombres legibles de las rutas (para logs más humanos)
ROUTE_NAMES = {
    'POST /api/login': 'Iniciar sesión',
    'POST /api/logout': 'Cerrar sesión',
    'GET /api/state': 'Ver estado completo',
    'POST /api/restore': 'Restaurar datos',
    'POST /api/cloud/sync': 'Sincronizar a la nube',
    'POST /api/cloud/load': 'Cargar desde la nube',
    'POST /api/sync': 'Recibir sync de la app',
    'POST /api/preview': 'Editar preview',
    'POST /api/preview/commit': 'Publicar preview',
    'POST /api/preview/cancel': 'Descartar preview',
    'POST /api/backups/checkpoint': 'Crear checkpoint en Drive',
    'GET /api/backup/export': 'Exportar respaldo JSON',
    'POST /api/backup/import': 'Importar respaldo JSON',
    'POST /api/orders': 'Crear pedido',
}

_config_lock = threading.Lock()
_write_lock = threading.Lock()


def configure(logs_dir=None, enabled=None, warning_ms=None, critical_ms=None):
    """
    Ajusta destino y umbrales de los logs (lo llama create_app con app.config).

    Args:
        logs_dir: Carpeta de logs (se crea si no existe)
        enabled: Activar o desactivar la escritura de logs
        warning_ms / critical_ms: Umbrales de llamada lenta
    """
    global ENABLE_SYNC_LOG, THRESHOLD_WARNING, THRESHOLD_CRITICAL
    global LOGS_DIR, SYNC_LOG, SLOW_BACKENDS_LOG, REQUESTS_LOG

    with _config_lock:
        if enabled is not None:
            ENABLE_SYNC_LOG = bool(enabled)
        if warning_ms is not None:
            THRESHOLD_WARNING = warning_ms
        if critical_ms is not None:
            THRESHOLD_CRITICAL = critical_ms
        if logs_dir:
            LOGS_DIR = logs_dir
            SYNC_LOG = os.path.join(LOGS_DIR, 'sync.log')
            SLOW_BACKENDS_LOG = os.path.join(LOGS_DIR, 'slow_backends.log')
            REQUESTS_LOG = os.path.join(LOGS_DIR, 'requests.log')


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE BACKENDS (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {backend: {calls, failures, total_time, max_time}}
_backend_stats = defaultdict(lambda: {'calls': 0, 'failures': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Escribe contenido a un archivo de log (thread-safe). Nunca lanza."""
    if not ENABLE_SYNC_LOG:
        return
    try:
        with _write_lock:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError as e:
        print(f"[SYNC WARNING] No se pudo escribir {os.path.basename(filepath)}: {e}")


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ EVENTOS DE SINCRONIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def log_sync_event(kind, summary, details=None, level='INFO'):
    """
    Registra un evento de sincronización en consola y en sync.log

    Args:
        kind: 'SYNC', 'LOAD', 'PING', 'RESTORE'...
        summary: Una línea legible
        details: Lista de líneas extra (ej: una por backend)
        level: 'INFO', 'WARNING' o 'ERROR'
    """
    tag = '[SYNC]' if level == 'INFO' else f'[SYNC {level}]'
    print(f"{tag} {kind}: {summary}")

    body = ''.join(f"  - {line}\n" for line in (details or []))
    log_entry = f"""
════════════════════════════════════════
[{kind}] {_get_timestamp()} ({level})
────────────────────────────────────────
{summary}
{body}"""
    _write_log(SYNC_LOG, log_entry)


def log_sync_report(report):
    """Vuelca un SyncReport completo a sync.log"""
    lines = []
    for result in report.results:
        line = f"{result.backend}: {result.status.value} ({result.duration_ms:.0f} ms)"
        if result.message:
            line += f" - {result.message}"
        lines.append(line)
    if report.ping is not None:
        lines.append(f"ping servidor: {report.ping.status.value}")

    if report.token_expired:
        level = 'WARNING'
        summary = f"Token expirado en: {', '.join(report.token_expired)}"
    elif report.failed:
        level = 'WARNING'
        summary = f"Fallaron: {', '.join(report.failed)}"
    elif report.results:
        level = 'INFO'
        summary = f"OK en {len(report.succeeded)} backend(s)"
    else:
        level = 'INFO'
        summary = "Sin backends configurados"

    log_sync_event('SYNC', f"{report.timestamp} | {summary}", lines, level)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA LLAMADAS A BACKENDS
# ═══════════════════════════════════════════════════════════════════════════

def profile_backend(func=None, name=None):
    """
    Decorador para medir llamadas a backends remotos.

    Uso:
        @profile_backend
        def save(self, snapshot, config):
            ...

        @profile_backend(name="drive.save")
        def save(self, snapshot, config):
            ...

    Registra:
        - Cantidad de llamadas y fallos (excepciones)
        - Tiempo promedio y máximo
        - Llamadas lentas en slow_backends.log
    """
    def decorator(fn):
        func_name = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            failed = False
            try:
                return fn(*args, **kwargs)
            except Exception:
                failed = True
                raise
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _backend_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if failed:
                        stats['failures'] += 1
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_backend_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_backend
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_backend_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    emoji = '🔴' if time_ms >= THRESHOLD_CRITICAL else '⚠️'

    log_entry = f"""
{emoji} [{severity}] {_get_timestamp()}
Backend: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_BACKENDS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ HOOKS PARA FLASK
# ═══════════════════════════════════════════════════════════════════════════

def _get_route_name(method, rule):
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


def init_request_logging(app):
    """
    Registra before/after_request para medir las rutas del servicio.
    Solo se loguean las rutas lentas y las que modifican estado.
    """
    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        if request.method == 'GET' and elapsed < THRESHOLD_WARNING:
            return response

        user = session.get('user_id') or 'anónimo'
        log_entry = (
            f"[{_get_timestamp()}] {_get_route_name(request.method, rule)} | "
            f"{request.method} {request.path} | {response.status_code} | "
            f"{elapsed:.0f} ms | {user}\n"
        )
        _write_log(REQUESTS_LOG, log_entry)
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_backend_stats():
    """
    Obtiene estadísticas de todas las llamadas perfiladas.

    Returns:
        dict: {nombre: {calls, failures, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _backend_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'failures': stats['failures'],
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2),
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _backend_stats.clear()


__all__ = [
    'configure',
    'log_sync_event',
    'log_sync_report',
    'profile_backend',
    'init_request_logging',
    'get_backend_stats',
    'reset_stats',
]
