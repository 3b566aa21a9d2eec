# ==============================================================================
# MEAT DEPOT - SERVICIO HTTP
# ==============================================================================
# Rutas delgadas: request → servicio → JSON. Toda la lógica vive en services/.
#
# Autenticación por sesión (login con hash werkzeug), token CSRF en toda
# escritura del panel admin y cabeceras de seguridad en cada respuesta.
# ==============================================================================

import atexit
import json
import uuid
from functools import wraps
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, Response, current_app, jsonify, request, session
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from . import sync_logger
from .app_container import AppContainer
from .backends import BackendError, TokenExpiredError
from .constants import CREDENTIAL_SECTIONS
from .models import UserRole
from .services import InvalidPreviewTransition, run_startup_backup
from .settings import load_settings

api = Blueprint('api', __name__, url_prefix='/api')


def _container() -> AppContainer:
    return current_app.extensions['meat_depot']


def _json_body(expected=dict) -> Any:
    """Cuerpo JSON de la petición; 400 si falta o no es del tipo esperado."""
    data = request.get_json(silent=True)
    if not isinstance(data, expected):
        raise InvalidPayload(f"Se esperaba un {'objeto' if expected is dict else 'arreglo'} JSON")
    return data


class InvalidPayload(ValueError):
    pass


# ═══════════════════════════════════════════════════════════════════════════
# DECORADORES DE ACCESO
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user_id' not in session:
            return {"ok": False, "error": "Debes iniciar sesión"}, 401
        return f(*args, **kwargs)
    return wrapper


def admin_required(f):
    @wraps(f)
    @login_required
    def wrapper(*args, **kwargs):
        if session.get('role') != UserRole.ADMIN.value:
            return {"ok": False, "error": "Permiso denegado"}, 403
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token() -> str:
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in ('POST', 'PUT', 'PATCH', 'DELETE'):
            token = session.get('csrf_token')
            sent = request.headers.get('X-CSRF-Token') or request.headers.get('X-CSRFToken')
            if not sent and request.is_json:
                body = request.get_json(silent=True)
                if isinstance(body, dict):
                    sent = body.get('csrf_token')
            if not token or not sent or token != sent:
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


def redact_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Config pública: sin credenciales de backends."""
    return {k: v for k, v in config.items() if k not in CREDENTIAL_SECTIONS}


def _payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Quita el token CSRF de un cuerpo JSON antes de guardarlo."""
    return {k: v for k, v in body.items() if k != 'csrf_token'}


# ═══════════════════════════════════════════════════════════════════════════
# SALUD Y SESIÓN
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/health')
def health():
    store = _container().store
    return {"ok": True, "loaded": store.has_loaded_from_cloud, "syncing": store.is_cloud_syncing}


@api.route('/csrf-token')
def csrf_token():
    return {"ok": True, "csrf_token": generate_csrf_token()}


@api.route('/login', methods=['POST'])
def login():
    body = _json_body()
    identifier = (body.get('username') or body.get('email') or '').strip()
    password = body.get('password') or ''
    if not identifier or not password:
        return {"ok": False, "error": "Usuario y contraseña requeridos"}, 400

    store = _container().store
    user = store.authenticate(identifier, password)
    if user is None:
        return {"ok": False, "error": "Usuario o contraseña incorrecta"}, 401

    session.clear()
    session.permanent = True
    session['user_id'] = user['id']
    session['role'] = user.get('role')
    store.login(user)
    return {"ok": True, "user": user, "csrf_token": generate_csrf_token()}


@api.route('/logout', methods=['POST'])
@login_required
@verify_csrf
def logout():
    _container().store.logout()
    session.clear()
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════════════════
# TIENDA PÚBLICA
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/storefront')
def storefront():
    view = _container().store.view()
    return {
        "ok": True,
        "products": view['products'],
        "posts": view['posts'],
        "config": redact_config(view['config']),
    }


@api.route('/products/<product_id>/view', methods=['POST'])
def product_view(product_id):
    _container().store.track_product_view(product_id)
    return {"ok": True}


@api.route('/orders', methods=['POST'])
def place_order():
    body = _json_body()
    order = body.get('order')
    if not isinstance(order, dict) or not order.get('id') or not isinstance(order.get('items'), list):
        return {"ok": False, "error": "Pedido inválido"}, 400
    _container().store.place_order(order, body.get('usedPromoCodeId'))
    return {"ok": True, "order_id": order['id']}, 201


# ═══════════════════════════════════════════════════════════════════════════
# ESTADO Y RESTAURACIÓN (admin)
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/state')
@admin_required
def state():
    return {"ok": True, "state": _container().store.snapshot()}


@api.route('/restore', methods=['POST'])
@admin_required
@verify_csrf
def restore():
    restored = _container().store.restore_data(_payload(_json_body()))
    return {"ok": True, "restored": restored}


# ═══════════════════════════════════════════════════════════════════════════
# SINCRONIZACIÓN
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/cloud/sync', methods=['POST'])
@admin_required
@verify_csrf
def cloud_sync():
    body = request.get_json(silent=True)
    overrides = body.get('overrides') if isinstance(body, dict) else None
    if overrides is not None and not isinstance(overrides, dict):
        return {"ok": False, "error": "overrides debe ser un objeto"}, 400
    report = _container().sync_service.sync_to_cloud(overrides)
    return {"ok": not report.token_expired, "report": report.to_dict()}


@api.route('/cloud/load', methods=['POST'])
@admin_required
@verify_csrf
def cloud_load():
    body = request.get_json(silent=True)
    force = bool(body.get('force')) if isinstance(body, dict) else False
    source = _container().sync_service.load_from_cloud(force=force)
    return {"ok": True, "source": source, "loaded": _container().store.has_loaded_from_cloud}


@api.route('/cloud/status')
@admin_required
def cloud_status():
    return {"ok": True, "status": _container().sync_service.status()}


@api.route('/sync', methods=['POST'])
def server_sync_receiver():
    """Receptor del ping de otras instancias: {"data": sobre}."""
    body = request.get_json(silent=True)
    envelope = body.get('data') if isinstance(body, dict) else None
    return _container().sync_service.record_server_sync(envelope)


# ═══════════════════════════════════════════════════════════════════════════
# PREVIEW
# ═══════════════════════════════════════════════════════════════════════════

def _preview_response():
    store = _container().store
    return {
        "ok": True,
        "state": store.preview_state,
        "isPreviewMode": store.is_preview_mode,
        "data": store.preview_data,
    }


@api.route('/preview', methods=['GET', 'POST'])
@admin_required
@verify_csrf
def preview():
    if request.method == 'POST':
        body = _payload(_json_body())
        if 'enabled' in body:
            _container().store.toggle_preview_mode(bool(body.pop('enabled')))
        if body:
            _container().store.set_preview_data(body)
    return _preview_response()


@api.route('/preview/commit', methods=['POST'])
@admin_required
@verify_csrf
def preview_commit():
    committed = _container().store.commit_preview()
    return {**_preview_response(), "committed": committed}


@api.route('/preview/cancel', methods=['POST'])
@admin_required
@verify_csrf
def preview_cancel():
    _container().store.cancel_preview()
    return _preview_response()


# ═══════════════════════════════════════════════════════════════════════════
# BACKUPS (Drive + locales)
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/backups')
@admin_required
def backups():
    container = _container()
    return {
        "ok": True,
        "drive": container.drive.list_backups(container.store.config),
        "local": container.backup_service.get_backup_status(),
    }


@api.route('/backups/checkpoint', methods=['POST'])
@admin_required
@verify_csrf
def backup_checkpoint():
    container = _container()
    store = container.store
    filename = container.drive.create_checkpoint(store.build_envelope(), store.config)
    return {"ok": True, "filename": filename}, 201


@api.route('/backups/<file_id>/restore', methods=['POST'])
@admin_required
@verify_csrf
def backup_restore(file_id):
    container = _container()
    data = container.drive.load_backup(file_id, container.store.config)
    if data is None:
        return {"ok": False, "error": "Backup no encontrado o ilegible"}, 404
    return {"ok": True, "restored": container.store.restore_data(data)}


@api.route('/backups/local', methods=['POST'])
@admin_required
@verify_csrf
def backup_local():
    result = _container().backup_service.create_backup(force=True)
    return {"ok": result['success'], "result": result}


@api.route('/backup/export')
@admin_required
def backup_export():
    container = _container()
    payload = container.backup_service.export_snapshot(container.store)
    filename = container.backup_service.export_filename()
    return Response(
        json.dumps(payload, indent=2, ensure_ascii=False),
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@api.route('/backup/import', methods=['POST'])
@admin_required
@verify_csrf
def backup_import():
    container = _container()
    upload = request.files.get('file')
    if upload is not None:
        try:
            data = json.load(upload.stream)
        except ValueError:
            return {"ok": False, "error": "El archivo no es JSON válido"}, 400
    else:
        data = _payload(_json_body())
    result = container.backup_service.import_snapshot(container.store, data)
    return {"ok": result['success'], **result}, (200 if result['success'] else 400)


# ═══════════════════════════════════════════════════════════════════════════
# CATÁLOGO, PEDIDOS, CONFIG, NOTIFICACIONES (admin)
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/products', methods=['GET', 'POST'])
@admin_required
@verify_csrf
def products():
    store = _container().store
    if request.method == 'POST':
        product = _payload(_json_body())
        if not product.get('id'):
            return {"ok": False, "error": "El producto requiere id"}, 400
        store.add_product(product)
        return {"ok": True, "product": product}, 201
    return {"ok": True, "products": store.get('products')}


@api.route('/products/<product_id>', methods=['PUT', 'DELETE'])
@admin_required
@verify_csrf
def product_detail(product_id):
    store = _container().store
    if request.method == 'DELETE':
        store.delete_product(product_id)
        return {"ok": True}
    product = {**_payload(_json_body()), 'id': product_id}
    store.update_product(product)
    return {"ok": True, "product": product}


@api.route('/products/<product_id>/move', methods=['POST'])
@admin_required
@verify_csrf
def product_move(product_id):
    direction = _json_body().get('direction')
    if direction not in ('up', 'down'):
        return {"ok": False, "error": "direction debe ser 'up' o 'down'"}, 400
    moved = _container().store.reorder_products(product_id, direction)
    return {"ok": True, "moved": moved}


@api.route('/orders', methods=['GET'])
@admin_required
def orders():
    return {"ok": True, "orders": _container().store.get('orders')}


@api.route('/orders/<order_id>', methods=['PATCH', 'DELETE'])
@admin_required
@verify_csrf
def order_detail(order_id):
    store = _container().store
    if request.method == 'DELETE':
        store.delete_order(order_id)
    else:
        store.update_order(order_id, _payload(_json_body()))
    return {"ok": True}


@api.route('/config', methods=['GET', 'PUT'])
@admin_required
@verify_csrf
def config():
    store = _container().store
    if request.method == 'PUT':
        store.update_config(_payload(_json_body()))
        return {"ok": True, "preview": store.is_preview_mode, "config": store.view()['config']}
    return {"ok": True, "config": store.config}


@api.route('/notifications')
@admin_required
def notifications():
    return {"ok": True, "notifications": _container().store.get('notifications')}


@api.route('/notifications/<notification_id>', methods=['DELETE'])
@admin_required
@verify_csrf
def notification_delete(notification_id):
    _container().store.delete_notification(notification_id)
    return {"ok": True}


@api.route('/media/upload', methods=['POST'])
@admin_required
@verify_csrf
def media_upload():
    body = _json_body()
    image = body.get('image') or ''
    name = secure_filename(body.get('name') or '') or f'{uuid.uuid4().hex}.img'
    if not image.startswith('data:'):
        return {"ok": False, "error": "image debe ser un data URL"}, 400
    container = _container()
    url = container.media_service.upload_file(image, name, container.store.config)
    if url is None:
        return {"ok": False, "error": "No se pudo subir el archivo"}, 502
    return {"ok": True, "url": url}


# ═══════════════════════════════════════════════════════════════════════════
# ERRORES Y CABECERAS
# ═══════════════════════════════════════════════════════════════════════════

def _register_handlers(app: Flask) -> None:

    @app.errorhandler(InvalidPreviewTransition)
    def _preview_conflict(e):
        return {"ok": False, "error": str(e)}, 409

    @app.errorhandler(InvalidPayload)
    def _bad_payload(e):
        return {"ok": False, "error": str(e)}, 400

    @app.errorhandler(TokenExpiredError)
    def _token_expired(e):
        _container().store.notify_token_expired([e.backend])
        return {"ok": False, "error": f"Token expirado en {e.backend}"}, 401

    @app.errorhandler(BackendError)
    def _backend_error(e):
        return {"ok": False, "error": str(e)}, 502

    @app.errorhandler(HTTPException)
    def _http_error(e):
        if request.path.startswith('/api/'):
            return {"ok": False, "error": e.description}, e.code
        return e

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APP
# ═══════════════════════════════════════════════════════════════════════════

def create_app(overrides: Optional[Dict[str, Any]] = None, container: Optional[AppContainer] = None) -> Flask:
    """
    Crea la app Flask con su propio contenedor de dependencias.

    Args:
        overrides: Valores que reemplazan a settings.load_settings()
        container: Contenedor ya armado (tests con backends falsos)
    """
    app = Flask(__name__)
    app.config.update(load_settings(overrides))

    sync_logger.configure(
        logs_dir=app.config['LOGS_DIR'],
        enabled=app.config['ENABLE_SYNC_LOG'],
        warning_ms=app.config['SLOW_BACKEND_WARNING_MS'],
        critical_ms=app.config['SLOW_BACKEND_CRITICAL_MS'],
    )
    sync_logger.init_request_logging(app)

    container = container or AppContainer(app.config)
    app.extensions['meat_depot'] = container

    # El servicio de sync se suscribe al store al crearse
    sync_service = container.sync_service

    _register_handlers(app)
    app.register_blueprint(api)

    if app.config.get('STARTUP_BACKUP') and not app.config.get('TESTING'):
        run_startup_backup(container.backup_service)

    if app.config.get('STARTUP_CLOUD_LOAD'):
        source = sync_service.load_from_cloud()
        print(f"[SYNC] Carga inicial: {source or 'sin datos remotos'}")

    if not app.config.get('TESTING'):
        atexit.register(sync_service.shutdown)

    return app


if __name__ == "__main__":
    import os
    # En producción usar WSGI (gunicorn wsgi:app)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    print(f"\n{'=' * 50}")
    print(f"  Meat Depot sync iniciado en http://{HOST}:{PORT}")
    print(f"{'=' * 50}\n")
    create_app().run(host=HOST, port=PORT, debug=DEBUG)
