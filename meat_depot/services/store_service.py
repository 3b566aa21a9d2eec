# ==============================================================================
# SERVICIO DE ESTADO (STORE)
# ==============================================================================
# Fuente de verdad en memoria de toda la app: productos, pedidos, usuarios,
# posts, promos, materia prima, lotes de producción, log de actividad, config
# y el estado "local" (usuario actual, carrito, notificaciones).
#
# FLUJO DE UNA ESCRITURA:
#   acción → _set(clave, valor) → archivo md_<clave>.json → suscriptores
#
# Los suscriptores (el servicio de sync) reciben la clave modificada y
# deciden si disparan una sincronización.
#
# PREVIEW:
#   Idle ──set_preview_data / toggle_preview_mode(True)──► Staged
#   Staged ──commit_preview──► Idle (los valores pasan al estado canónico)
#   Staged ──cancel_preview──► Idle (se descartan)
# ==============================================================================

import copy
import json
import threading
import uuid
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..constants import (
    ADMIN_USER_ID,
    DEFAULT_ADMIN,
    INITIAL_CONFIG,
    INITIAL_DATA,
    MAX_ACTIVITY_LOGS,
    SECTION_LABELS,
    STORAGE_KEYS,
    SYNCED_KEYS,
    TOKEN_EXPIRED_TITLE,
    VERSIONS_STORAGE_KEY,
)
from ..models import ActivityAction, PreviewData, UnitType, utc_now_iso
from ..repositories import ILocalStateRepository


class InvalidPreviewTransition(ValueError):
    """commit/cancel sin una preview en curso."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES AUXILIARES
# ═══════════════════════════════════════════════════════════════════════════

def expire_specials(products: List[Dict[str, Any]], today: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Anula las ofertas vencidas.

    Un producto con specialPrice y specialExpiryDate (YYYY-MM-DD) anterior a
    hoy queda con specialPrice = 0 y sin fecha de vencimiento.

    Args:
        products: Lista de productos (no se modifica)
        today: Fecha de hoy en formato YYYY-MM-DD (hora local por defecto)

    Returns:
        Nueva lista de productos
    """
    today = today or date.today().isoformat()
    result = []
    for product in products:
        expiry = product.get('specialExpiryDate')
        if expiry and product.get('specialPrice') and today > expiry:
            product = {k: v for k, v in product.items() if k != 'specialExpiryDate'}
            product['specialPrice'] = 0
        result.append(product)
    return result


def is_password_hash(value: str) -> bool:
    return value.startswith('pbkdf2:') or value.startswith('scrypt:')


def hash_plaintext_passwords(users: List[Dict[str, Any]]):
    """
    Migración de seguridad: hashea contraseñas guardadas en texto plano.

    Returns:
        (usuarios, cantidad migrada)
    """
    migrated = 0
    result = []
    for user in users:
        pwd = user.get('password') or ''
        if pwd and not is_password_hash(pwd):
            user = {**user, 'password': generate_password_hash(pwd)}
            migrated += 1
        result.append(user)
    if migrated:
        print(f"[SEGURIDAD] {migrated} contraseña(s) migrada(s) a hash")
    return result, migrated


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copia del usuario sin el hash de contraseña."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != 'password'}


def _new_id() -> str:
    return uuid.uuid4().hex[:9]


# ═══════════════════════════════════════════════════════════════════════════
# STORE
# ═══════════════════════════════════════════════════════════════════════════

class AppStore:
    """
    Estado canónico de la app con persistencia local por clave.

    Las lecturas devuelven copias profundas: modificar lo devuelto nunca
    altera el estado. Todas las escrituras pasan por _set().
    """

    def __init__(self, repository: ILocalStateRepository, admin_password: Optional[str] = None,
                 id_factory: Callable[[], str] = _new_id):
        """
        Args:
            repository: Almacenamiento local clave -> JSON
            admin_password: Contraseña inicial de la cuenta admin (se hashea)
            id_factory: Generador de IDs (logs, líneas de carrito, notificaciones)
        """
        self.repo = repository
        self._new_id = id_factory
        self._lock = threading.RLock()
        self._state: Dict[str, Any] = {}
        self._versions: Dict[str, Dict[str, Any]] = {}
        self._subscribers: List[Callable[[str], None]] = []

        self.is_preview_mode = False
        self._preview: Optional[PreviewData] = None
        self.is_cloud_syncing = False
        self.has_loaded_from_cloud = False

        self._load(admin_password)

    # ═══════════════════════════════════════════════════════════════════════
    # CARGA INICIAL
    # ═══════════════════════════════════════════════════════════════════════

    def _load(self, admin_password: Optional[str]) -> None:
        for key, storage_key in STORAGE_KEYS.items():
            if key == 'config':
                saved = self.repo.load(storage_key, {})
                if not isinstance(saved, dict):
                    saved = {}
                self._state[key] = {**copy.deepcopy(INITIAL_CONFIG), **saved}
            else:
                default = copy.deepcopy(INITIAL_DATA[key])
                saved = self.repo.load(storage_key, default)
                if isinstance(default, list) and not isinstance(saved, list):
                    print(f"[STORAGE ERROR] '{storage_key}' no contiene una lista, se usan los valores por defecto")
                    saved = default
                self._state[key] = saved

        versions = self.repo.load(VERSIONS_STORAGE_KEY, {})
        self._versions = versions if isinstance(versions, dict) else {}

        # Cuenta admin siempre presente
        users = list(self._state['users'])
        if not any(u.get('id') == ADMIN_USER_ID for u in users):
            admin = copy.deepcopy(DEFAULT_ADMIN)
            if admin_password:
                admin['password'] = generate_password_hash(admin_password)
            users.append(admin)
            print("[SEGURIDAD] Cuenta admin creada")
        elif admin_password:
            users = [
                {**u, 'password': generate_password_hash(admin_password)}
                if u.get('id') == ADMIN_USER_ID and not u.get('password') else u
                for u in users
            ]
        users, _ = hash_plaintext_passwords(users)
        if users != self._state['users']:
            self._set('users', users, bump=False, notify=False)

        products = expire_specials(self._state['products'])
        if products != self._state['products']:
            self._set('products', products, bump=False, notify=False)

    # ═══════════════════════════════════════════════════════════════════════
    # ESCRITURA Y SUSCRIPCIÓN
    # ═══════════════════════════════════════════════════════════════════════

    def subscribe(self, callback: Callable[[str], None]) -> None:
        """Registra un callback que recibe la clave de estado modificada."""
        self._subscribers.append(callback)

    def _set(self, key: str, value: Any, bump: bool = True, notify: bool = True,
             version: Optional[Dict[str, Any]] = None) -> None:
        """
        Único punto de escritura del estado.

        Args:
            key: Clave de estado ('products', 'config', ...)
            value: Nuevo valor (ya debe ser una copia propia)
            bump: Incrementar la versión de la colección (solo claves sincronizadas)
            notify: Avisar a los suscriptores
            version: Versión remota a adoptar en lugar de incrementar
        """
        with self._lock:
            self._state[key] = value
            self.repo.save(STORAGE_KEYS[key], value)

            if key in SYNCED_KEYS and (bump or version):
                if version and isinstance(version, dict):
                    self._versions[key] = dict(version)
                else:
                    current = self._versions.get(key) or {}
                    self._versions[key] = {
                        'version': int(current.get('version') or 0) + 1,
                        'updatedAt': utc_now_iso(),
                    }
                self.repo.save(VERSIONS_STORAGE_KEY, self._versions)

        if notify:
            for callback in list(self._subscribers):
                callback(key)

    # ═══════════════════════════════════════════════════════════════════════
    # LECTURA
    # ═══════════════════════════════════════════════════════════════════════

    def get(self, key: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._state[key])

    @property
    def config(self) -> Dict[str, Any]:
        return self.get('config')

    @property
    def current_user(self) -> Optional[Dict[str, Any]]:
        return self.get('currentUser')

    def versions(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._versions)

    def snapshot(self) -> Dict[str, Any]:
        """Estado completo (canónico) más los indicadores."""
        with self._lock:
            data = copy.deepcopy(self._state)
            data['_versions'] = copy.deepcopy(self._versions)
        data['isPreviewMode'] = self.is_preview_mode
        data['isCloudSyncing'] = self.is_cloud_syncing
        data['hasLoadedFromCloud'] = self.has_loaded_from_cloud
        return data

    def view(self) -> Dict[str, Any]:
        """
        products / posts / config tal como los ve la app: si hay preview activa
        se muestran los valores en preview.
        """
        with self._lock:
            result = {
                'products': copy.deepcopy(self._state['products']),
                'posts': copy.deepcopy(self._state['posts']),
                'config': copy.deepcopy(self._state['config']),
            }
            if self.is_preview_mode and self._preview is not None:
                result.update(self._preview.staged_sections())
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # LOG DE ACTIVIDAD
    # ═══════════════════════════════════════════════════════════════════════

    def log_activity(self, action: ActivityAction, details: str) -> Dict[str, Any]:
        """
        Agrega una entrada al log (más reciente primero, máximo 1000).
        """
        with self._lock:
            user = self._state.get('currentUser') or {}
            entry = {
                'id': self._new_id(),
                'userId': user.get('id') or 'system',
                'userName': user.get('name') or 'System',
                'action': ActivityAction(action).value,
                'details': details,
                'timestamp': utc_now_iso(),
            }
            logs = [entry] + self._state['activityLogs']
            self._set('activityLogs', logs[:MAX_ACTIVITY_LOGS])
        return entry

    # ═══════════════════════════════════════════════════════════════════════
    # RESTAURACIÓN Y SOBRE DE SINCRONIZACIÓN
    # ═══════════════════════════════════════════════════════════════════════

    def restore_data(self, data: Any, respect_versions: bool = False) -> List[str]:
        """
        Fusión parcial: solo se reemplazan las claves presentes en `data`.

        - products pasa por expire_specials
        - users pasa por la migración de contraseñas
        - config se mezcla sobre la config actual (merge superficial)

        Args:
            data: Sobre completo o parcial
            respect_versions: Si True, no se aplica una colección cuya versión
                remota (data['_versions']) sea más vieja que la local

        Returns:
            Claves restauradas
        """
        if not isinstance(data, dict):
            print(f"[SYNC WARNING] Restauración ignorada: se esperaba un objeto, llegó {type(data).__name__}")
            return []

        remote_versions = data.get('_versions') if isinstance(data.get('_versions'), dict) else {}
        restored = []

        with self._lock:
            for key in SECTION_LABELS:
                value = data.get(key)
                if value is None:
                    continue
                expected = dict if key == 'config' else list
                if not isinstance(value, expected):
                    print(f"[SYNC WARNING] '{key}' ignorado en la restauración: tipo inválido")
                    continue

                remote_version = remote_versions.get(key)
                if respect_versions and self._is_stale(key, remote_version):
                    print(f"[SYNC] '{key}' remoto es más viejo que el local, se conserva el local")
                    continue

                value = copy.deepcopy(value)
                if key == 'products':
                    value = expire_specials(value)
                elif key == 'users':
                    value, _ = hash_plaintext_passwords(value)
                elif key == 'config':
                    value = {**self._state['config'], **value}

                self._set(key, value, version=remote_version)
                restored.append(key)

            if restored:
                labels = ', '.join(SECTION_LABELS[k] for k in restored)
                self.log_activity(ActivityAction.SYNC, f"System restore executed for: {labels}")
        return restored

    def _is_stale(self, key: str, remote_version: Any) -> bool:
        local = self._versions.get(key)
        if not local or not isinstance(remote_version, dict):
            return False
        remote_at = remote_version.get('updatedAt') or ''
        local_at = local.get('updatedAt') or ''
        return bool(remote_at) and remote_at < local_at

    def build_envelope(self, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Sobre de sincronización con el estado actual.
        Un override reemplaza el valor siempre que no sea None.
        """
        overrides = overrides or {}
        with self._lock:
            envelope = {}
            for key in SYNCED_KEYS:
                value = overrides.get(key)
                envelope[key] = copy.deepcopy(value if value is not None else self._state[key])
            envelope['timestamp'] = utc_now_iso()
            envelope['_versions'] = copy.deepcopy(self._versions)
        return envelope

    # ═══════════════════════════════════════════════════════════════════════
    # PREVIEW
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def preview_state(self) -> str:
        return 'staged' if self._preview is not None else 'idle'

    @property
    def preview_data(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._preview.to_dict() if self._preview is not None else None

    def toggle_preview_mode(self, enabled: bool) -> None:
        with self._lock:
            self.is_preview_mode = bool(enabled)
            if enabled and self._preview is None:
                self._preview = PreviewData()

    def set_preview_data(self, partial: Dict[str, Any]) -> None:
        """Mezcla secciones en la preview (config / products / posts)."""
        with self._lock:
            if self._preview is None:
                self._preview = PreviewData()
            self._preview.merge(partial or {})
            self.is_preview_mode = True

    def commit_preview(self) -> List[str]:
        """
        Pasa las secciones en preview al estado canónico.

        Raises:
            InvalidPreviewTransition: Si no hay preview en curso
        """
        with self._lock:
            if self._preview is None:
                raise InvalidPreviewTransition("No hay preview en curso para publicar")
            staged = self._preview.staged_sections()
            self._preview = None
            self.is_preview_mode = False
            for key, value in staged.items():
                self._set(key, value)
            if staged:
                self.log_activity(ActivityAction.EDIT, f"Preview published: {', '.join(staged)}")
        return list(staged)

    def cancel_preview(self) -> None:
        with self._lock:
            if self._preview is None:
                raise InvalidPreviewTransition("No hay preview en curso para descartar")
            self._preview = None
            self.is_preview_mode = False

    # ═══════════════════════════════════════════════════════════════════════
    # USUARIOS
    # ═══════════════════════════════════════════════════════════════════════

    def _find_user(self, identifier: str) -> Optional[Dict[str, Any]]:
        ident = (identifier or '').strip().lower()
        if not ident:
            return None
        for user in self._state['users']:
            candidates = (user.get('id'), user.get('username'), user.get('email'), user.get('phone'))
            if any(c and str(c).lower() == ident for c in candidates):
                return user
        return None

    def authenticate(self, identifier: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Verifica credenciales (usuario, email, teléfono o id).

        Returns:
            Usuario sin contraseña, o None si no coincide
        """
        with self._lock:
            user = self._find_user(identifier)
            if not user or not user.get('password') or not password:
                return None
            if check_password_hash(user['password'], password):
                return public_user(user)
        return None

    def login(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Alta o actualización del usuario y lo deja como usuario actual."""
        user = copy.deepcopy(user)
        if user.get('password') and not is_password_hash(user['password']):
            user['password'] = generate_password_hash(user['password'])
        email = (user.get('email') or '').lower()

        with self._lock:
            def same(u):
                return u.get('id') == user.get('id') or (email and (u.get('email') or '').lower() == email)

            users = self._state['users']
            if any(same(u) for u in users):
                users = [{**u, **user} if same(u) else u for u in users]
            else:
                users = users + [user]
            self._set('users', users)
            merged = next(u for u in users if same(u))
            self._set('currentUser', public_user(merged))
            self.log_activity(ActivityAction.LOGIN, f"User {merged.get('name')} logged in")
            return public_user(merged)

    def logout(self) -> None:
        with self._lock:
            current = self._state.get('currentUser')
            if current:
                self.log_activity(ActivityAction.LOGIN, f"User {current.get('name')} logged out")
            self._set('currentUser', None)
            self._set('cart', [])

    def update_user(self, user: Dict[str, Any]) -> None:
        user = copy.deepcopy(user)
        with self._lock:
            existing = next((u for u in self._state['users'] if u.get('id') == user.get('id')), None)
            if existing is None:
                raise KeyError(user.get('id'))
            if user.get('password') and not is_password_hash(user['password']):
                user['password'] = generate_password_hash(user['password'])
            elif not user.get('password') and existing.get('password'):
                user['password'] = existing['password']
            self._set('users', [user if u.get('id') == user.get('id') else u for u in self._state['users']])
            current = self._state.get('currentUser')
            if current and current.get('id') == user.get('id'):
                self._set('currentUser', public_user(user))
            self.log_activity(ActivityAction.EDIT, f"User profile updated: {user.get('name')}")

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            self._set('users', [u for u in self._state['users'] if u.get('id') != user_id])
            current = self._state.get('currentUser')
            if current and current.get('id') == user_id:
                self.logout()
            self.log_activity(ActivityAction.EDIT, f"User deleted: {user_id}")

    def update_user_password(self, email: str, new_password: str) -> None:
        hashed = generate_password_hash(new_password)
        with self._lock:
            self._set('users', [
                {**u, 'password': hashed} if u.get('email') == email else u
                for u in self._state['users']
            ])
            self.log_activity(ActivityAction.EDIT, f"Password changed for {email}")

    # ═══════════════════════════════════════════════════════════════════════
    # CARRITO (estado local, no se sincroniza)
    # ═══════════════════════════════════════════════════════════════════════

    def add_to_cart(self, product: Dict[str, Any], quantity: int, weight: Optional[float] = None,
                    selected_options: Optional[List[str]] = None,
                    vacuum_packed: Optional[bool] = None) -> Dict[str, Any]:
        """
        Agrega una línea al carrito. Si ya existe una línea con el mismo
        producto, peso, opciones y envasado al vacío, suma la cantidad.
        """
        options_key = sorted(selected_options) if selected_options is not None else None
        with self._lock:
            cart = self._state['cart']
            for item in cart:
                item_options = item.get('selectedOptions')
                if (item.get('productId') == product.get('id')
                        and item.get('weight') == weight
                        and (sorted(item_options) if item_options is not None else None) == options_key
                        and item.get('vacuumPacked') == vacuum_packed):
                    updated = {**item, 'quantity': item['quantity'] + quantity}
                    self._set('cart', [updated if i is item else i for i in cart])
                    return copy.deepcopy(updated)

            line = {
                'id': self._new_id(),
                'productId': product.get('id'),
                'product': copy.deepcopy(product),
                'quantity': quantity,
                'weight': weight,
                'selectedOptions': copy.deepcopy(selected_options),
                'vacuumPacked': vacuum_packed,
            }
            self._set('cart', cart + [line])
            return copy.deepcopy(line)

    def remove_from_cart(self, cart_item_id: str) -> None:
        with self._lock:
            self._set('cart', [i for i in self._state['cart'] if i.get('id') != cart_item_id])

    def clear_cart(self) -> None:
        self._set('cart', [])

    # ═══════════════════════════════════════════════════════════════════════
    # PEDIDOS
    # ═══════════════════════════════════════════════════════════════════════

    def place_order(self, order: Dict[str, Any], used_promo_code_id: Optional[str] = None) -> None:
        """
        Registra un pedido:
        1. Lo agrega al inicio de la lista
        2. Marca la promo como usada por el usuario actual (o 'anonymous')
        3. Vacía el carrito
        4. Descuenta stock: gramos × cantidad para productos KG, cantidad
           para el resto. El stock nunca queda negativo.
        """
        order = copy.deepcopy(order)
        with self._lock:
            self._set('orders', [order] + self._state['orders'])

            if used_promo_code_id:
                current = self._state.get('currentUser') or {}
                used_by = current.get('id') or 'anonymous'
                self._set('promoCodes', [
                    {**c, 'usedBy': list(c.get('usedBy') or []) + [used_by]}
                    if c.get('id') == used_promo_code_id else c
                    for c in self._state['promoCodes']
                ])

            self._set('cart', [])

            products = {p.get('id'): dict(p) for p in self._state['products']}
            for item in order.get('items') or []:
                product = products.get(item.get('productId'))
                if product is None:
                    continue
                unit = (item.get('product') or {}).get('unit') or product.get('unit')
                quantity = item.get('quantity') or 0
                if unit == UnitType.KG.value:
                    deduction = (item.get('weight') or 0) * quantity
                else:
                    deduction = quantity
                product['stock'] = max(0, (product.get('stock') or 0) - deduction)
            self._set('products', [products.get(p.get('id'), p) for p in self._state['products']])

            action = ActivityAction.POS_SALE if order.get('isManual') else ActivityAction.ORDER
            self.log_activity(action, f"Order placed: #{order.get('id')} (R{order.get('total')})")

    def update_order(self, order_id: str, updates: Dict[str, Any]) -> None:
        with self._lock:
            self._set('orders', [
                {**o, **copy.deepcopy(updates)} if o.get('id') == order_id else o
                for o in self._state['orders']
            ])
            self.log_activity(ActivityAction.EDIT, f"Order #{order_id} updated: {json.dumps(updates)}")

    def delete_order(self, order_id: str) -> None:
        with self._lock:
            self._set('orders', [o for o in self._state['orders'] if o.get('id') != order_id])
            self.log_activity(ActivityAction.EDIT, f"Order #{order_id} deleted")

    # ═══════════════════════════════════════════════════════════════════════
    # CATÁLOGO
    # ═══════════════════════════════════════════════════════════════════════

    def _map_product(self, product_id: str, fn: Callable[[Dict[str, Any]], Dict[str, Any]]) -> None:
        self._set('products', [fn(p) if p.get('id') == product_id else p for p in self._state['products']])

    def add_product(self, product: Dict[str, Any]) -> None:
        with self._lock:
            self._set('products', [copy.deepcopy(product)] + self._state['products'])
            self.log_activity(ActivityAction.EDIT, f"Product added: {product.get('name')}")

    def update_product(self, product: Dict[str, Any]) -> None:
        with self._lock:
            self._map_product(product.get('id'), lambda p: copy.deepcopy(product))
            self.log_activity(ActivityAction.EDIT, f"Product updated: {product.get('name')}")

    def delete_product(self, product_id: str) -> None:
        with self._lock:
            self._set('products', [p for p in self._state['products'] if p.get('id') != product_id])
            self.log_activity(ActivityAction.EDIT, f"Product deleted: {product_id}")

    def reorder_products(self, product_id: str, direction: str) -> bool:
        """Mueve un producto una posición ('up' o 'down'). Retorna False si no se movió."""
        with self._lock:
            products = list(self._state['products'])
            index = next((i for i, p in enumerate(products) if p.get('id') == product_id), -1)
            if index == -1:
                return False
            new_index = index - 1 if direction == 'up' else index + 1
            if new_index < 0 or new_index >= len(products):
                return False
            products[index], products[new_index] = products[new_index], products[index]
            self._set('products', products)
            self.log_activity(ActivityAction.EDIT, f"Product {product_id} moved {direction}")
            return True

    def track_product_view(self, product_id: str) -> None:
        # Contador de analítica: no genera entrada de actividad
        with self._lock:
            self._map_product(product_id, lambda p: {**p, 'viewCount': (p.get('viewCount') or 0) + 1})

    def add_review(self, product_id: str, review: Dict[str, Any]) -> None:
        with self._lock:
            self._map_product(product_id, lambda p: {**p, 'reviews': [copy.deepcopy(review)] + (p.get('reviews') or [])})
            self.log_activity(ActivityAction.EDIT, f"Review added to product {product_id}")

    def delete_review(self, product_id: str, review_id: str) -> None:
        with self._lock:
            self._map_product(product_id, lambda p: {
                **p, 'reviews': [r for r in (p.get('reviews') or []) if r.get('id') != review_id]
            })
            self.log_activity(ActivityAction.EDIT, f"Review {review_id} deleted")

    def reply_to_review(self, product_id: str, review_id: str, reply: str) -> None:
        now = utc_now_iso()
        with self._lock:
            self._map_product(product_id, lambda p: {
                **p,
                'reviews': [
                    {**r, 'adminReply': reply, 'adminReplyDate': now} if r.get('id') == review_id else r
                    for r in (p.get('reviews') or [])
                ],
            })
            self.log_activity(ActivityAction.EDIT, f"Replied to review {review_id}")

    # ═══════════════════════════════════════════════════════════════════════
    # CONTENIDO Y CONFIG
    # ═══════════════════════════════════════════════════════════════════════

    def update_config(self, new_config: Dict[str, Any]) -> None:
        """
        Reemplaza la config. Con la preview activa se escribe en la preview
        y el estado canónico no cambia.
        """
        new_config = copy.deepcopy(new_config)
        with self._lock:
            if self.is_preview_mode:
                if self._preview is None:
                    self._preview = PreviewData()
                self._preview.merge({'config': new_config})
            else:
                self._set('config', new_config)
            self.log_activity(ActivityAction.EDIT, 'System configuration updated')

    def add_post(self, post: Dict[str, Any]) -> None:
        with self._lock:
            self._set('posts', [copy.deepcopy(post)] + self._state['posts'])
            self.log_activity(ActivityAction.EDIT, f"Post added: {post.get('title')}")

    def update_post(self, post: Dict[str, Any]) -> None:
        with self._lock:
            self._set('posts', [copy.deepcopy(post) if p.get('id') == post.get('id') else p
                                for p in self._state['posts']])
            self.log_activity(ActivityAction.EDIT, f"Post updated: {post.get('title')}")

    def delete_post(self, post_id: str) -> None:
        with self._lock:
            self._set('posts', [p for p in self._state['posts'] if p.get('id') != post_id])
            self.log_activity(ActivityAction.EDIT, f"Post deleted: {post_id}")

    def add_promo_code(self, code: Dict[str, Any]) -> None:
        code = {'usedBy': [], **copy.deepcopy(code)}
        with self._lock:
            self._set('promoCodes', [code] + self._state['promoCodes'])
            self.log_activity(ActivityAction.EDIT, f"Promo code added: {code.get('code')}")

    def delete_promo_code(self, code_id: str) -> None:
        with self._lock:
            self._set('promoCodes', [c for c in self._state['promoCodes'] if c.get('id') != code_id])
            self.log_activity(ActivityAction.EDIT, f"Promo code deleted: {code_id}")

    # ═══════════════════════════════════════════════════════════════════════
    # NOTIFICACIONES (estado local)
    # ═══════════════════════════════════════════════════════════════════════

    def add_notification(self, notification: Dict[str, Any]) -> None:
        with self._lock:
            self._set('notifications', [copy.deepcopy(notification)] + self._state['notifications'])

    def delete_notification(self, notification_id: str) -> None:
        with self._lock:
            self._set('notifications', [n for n in self._state['notifications']
                                        if n.get('id') != notification_id])

    def notify_token_expired(self, backends: List[str]) -> bool:
        """
        Aviso persistente para el admin cuando un backend rechazó el token.
        Solo existe uno a la vez (se deduplica por título).

        Returns:
            True si se agregó la notificación
        """
        with self._lock:
            if any(n.get('title') == TOKEN_EXPIRED_TITLE for n in self._state['notifications']):
                return False
            names = ', '.join(backends) if backends else 'cloud'
            self.add_notification({
                'id': f'sync-err-{self._new_id()}',
                'title': TOKEN_EXPIRED_TITLE,
                'body': (f"The access token for {names} has expired. Cloud sync is paused for it. "
                         "Please update it in Admin > App Manager to resume backups."),
                'type': 'ANNOUNCEMENT',
                'timestamp': utc_now_iso(),
                'targetUserId': ADMIN_USER_ID,
            })
            print(f"[SYNC WARNING] Token expirado en: {names}. Estado local preservado.")
            return True

    # ═══════════════════════════════════════════════════════════════════════
    # PRODUCCIÓN
    # ═══════════════════════════════════════════════════════════════════════

    def add_raw_material(self, material: Dict[str, Any]) -> None:
        with self._lock:
            self._set('rawMaterials', [copy.deepcopy(material)] + self._state['rawMaterials'])
            self.log_activity(ActivityAction.PRODUCTION, f"Raw material added: {material.get('name')}")

    def update_raw_material(self, material: Dict[str, Any]) -> None:
        with self._lock:
            self._set('rawMaterials', [copy.deepcopy(material) if m.get('id') == material.get('id') else m
                                       for m in self._state['rawMaterials']])
            self.log_activity(ActivityAction.PRODUCTION, f"Raw material updated: {material.get('name')}")

    def delete_raw_material(self, material_id: str) -> None:
        with self._lock:
            self._set('rawMaterials', [m for m in self._state['rawMaterials'] if m.get('id') != material_id])
            self.log_activity(ActivityAction.PRODUCTION, f"Raw material deleted: {material_id}")

    def add_production_batch(self, batch: Dict[str, Any]) -> None:
        with self._lock:
            self._set('productionBatches', [copy.deepcopy(batch)] + self._state['productionBatches'])
            self.log_activity(ActivityAction.PRODUCTION, f"Production batch recorded: {batch.get('id')}")
