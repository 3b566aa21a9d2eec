# -*- coding: utf-8 -*-
"""
Tests del store: carga inicial, escrituras, versiones, restauración,
usuarios, pedidos y log de actividad.
"""
import json
import os

import pytest
from werkzeug.security import check_password_hash

from conftest import ADMIN_PASSWORD
from meat_depot.constants import MAX_ACTIVITY_LOGS, TOKEN_EXPIRED_TITLE
from meat_depot.services import AppStore, expire_specials


def _product(pid, **extra):
    product = {'id': pid, 'name': f'Producto {pid}', 'price': 100, 'unit': 'UNIT', 'stock': 10}
    product.update(extra)
    return product


# ═══════════════════════════════════════════════════════════════════════════
# CARGA INICIAL
# ═══════════════════════════════════════════════════════════════════════════

def test_admin_created_with_hashed_password(store):
    users = store.get('users')
    admin = next(u for u in users if u['id'] == 'admin')
    assert admin['password'].startswith(('pbkdf2:', 'scrypt:'))
    assert check_password_hash(admin['password'], ADMIN_PASSWORD)


def test_startup_fixes_do_not_bump_versions(store):
    assert store.versions() == {}


def test_plaintext_passwords_migrated_on_load(repo):
    repo.save('md_users', [{'id': 'u1', 'name': 'Ana', 'email': 'ana@x.co', 'password': 'secreto'}])
    store = AppStore(repo)
    user = next(u for u in store.get('users') if u['id'] == 'u1')
    assert user['password'] != 'secreto'
    assert check_password_hash(user['password'], 'secreto')
    # persistido en disco
    saved = repo.load('md_users')
    assert next(u for u in saved if u['id'] == 'u1')['password'] == user['password']


def test_corrupt_list_file_falls_back_to_default(repo):
    repo.save('md_orders', {'no': 'es una lista'})
    store = AppStore(repo)
    assert store.get('orders') == []


def test_undecodable_file_does_not_break_startup(repo):
    with open(repo.path_for('md_products'), 'wb') as f:
        f.write(b'\xff\xfe\x00basura')
    store = AppStore(repo)
    assert store.get('products') == []
    assert any(u['id'] == 'admin' for u in store.get('users'))


def test_saved_config_merges_over_defaults(repo):
    repo.save('md_config', {'deliveryFee': 99})
    store = AppStore(repo)
    config = store.config
    assert config['deliveryFee'] == 99
    assert config['minimumOrder'] == 250


def test_expired_specials_cleared_on_load(repo):
    repo.save('md_products', [_product('p1', specialPrice=80, specialExpiryDate='2000-01-01')])
    store = AppStore(repo)
    product = store.get('products')[0]
    assert product['specialPrice'] == 0
    assert 'specialExpiryDate' not in product


def test_expire_specials_keeps_future_offers():
    products = [_product('p1', specialPrice=80, specialExpiryDate='2030-01-01')]
    result = expire_specials(products, today='2026-10-17')
    assert result[0]['specialPrice'] == 80
    assert result[0]['specialExpiryDate'] == '2030-01-01'


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURAS Y VERSIONES
# ═══════════════════════════════════════════════════════════════════════════

def test_reads_are_copies(store):
    store.add_product(_product('p1'))
    products = store.get('products')
    products[0]['name'] = 'modificado'
    assert store.get('products')[0]['name'] == 'Producto p1'


def test_write_persists_and_bumps_version(store, repo):
    store.add_product(_product('p1'))
    store.update_product(_product('p1', price=120))

    assert repo.load('md_products')[0]['price'] == 120
    versions = store.versions()
    assert versions['products']['version'] == 2
    assert versions['products']['updatedAt'].endswith('Z')
    assert repo.load('md_versions')['products']['version'] == 2


def test_local_keys_do_not_bump_versions(store):
    store.add_to_cart(_product('p1'), 1)
    store.add_notification({'id': 'n1', 'title': 'Hola'})
    assert 'cart' not in store.versions()
    assert 'notifications' not in store.versions()


def test_subscribers_receive_changed_key(store):
    changed = []
    store.subscribe(changed.append)
    store.add_post({'id': 'post1', 'title': 'Novedad'})
    assert 'posts' in changed
    assert 'activityLogs' in changed


def test_activity_log_capped_and_newest_first(store):
    for i in range(MAX_ACTIVITY_LOGS + 5):
        store.log_activity('EDIT', f'cambio {i}')
    logs = store.get('activityLogs')
    assert len(logs) == MAX_ACTIVITY_LOGS
    assert logs[0]['details'] == f'cambio {MAX_ACTIVITY_LOGS + 4}'
    assert logs[0]['userId'] == 'system'


def test_view_count_does_not_log_activity(store):
    store.add_product(_product('p1'))
    before = len(store.get('activityLogs'))
    store.track_product_view('p1')
    store.track_product_view('p1')
    assert store.get('products')[0]['viewCount'] == 2
    assert len(store.get('activityLogs')) == before


def test_reorder_products(store):
    store.add_product(_product('b'))
    store.add_product(_product('a'))
    assert [p['id'] for p in store.get('products')] == ['a', 'b']

    assert store.reorder_products('b', 'up') is True
    assert [p['id'] for p in store.get('products')] == ['b', 'a']
    assert store.reorder_products('b', 'up') is False
    assert store.reorder_products('zzz', 'down') is False


def test_reviews_and_reply(store):
    store.add_product(_product('p1'))
    store.add_review('p1', {'id': 'r1', 'rating': 5, 'comment': 'Excelente'})
    store.reply_to_review('p1', 'r1', 'Gracias!')
    review = store.get('products')[0]['reviews'][0]
    assert review['adminReply'] == 'Gracias!'
    assert review['adminReplyDate']

    store.delete_review('p1', 'r1')
    assert store.get('products')[0]['reviews'] == []


# ═══════════════════════════════════════════════════════════════════════════
# CARRITO Y PEDIDOS
# ═══════════════════════════════════════════════════════════════════════════

def test_add_to_cart_merges_identical_lines(store):
    product = _product('p1')
    store.add_to_cart(product, 1, weight=500, selected_options=['b', 'a'])
    store.add_to_cart(product, 2, weight=500, selected_options=['a', 'b'])
    store.add_to_cart(product, 1, weight=1000)
    cart = store.get('cart')
    assert len(cart) == 2
    assert cart[0]['quantity'] == 3


def test_place_order_deducts_stock_never_negative(store):
    store.add_product(_product('kg', unit='KG', stock=1500))
    store.add_product(_product('u', unit='UNIT', stock=1))
    store.add_promo_code({'id': 'promo1', 'code': 'DEPOTFRESH'})
    store.add_to_cart(_product('u'), 1)

    order = {
        'id': 'o1', 'total': 300,
        'items': [
            {'productId': 'kg', 'product': {'unit': 'KG'}, 'quantity': 2, 'weight': 500},
            {'productId': 'u', 'product': {'unit': 'UNIT'}, 'quantity': 5},
        ],
    }
    store.place_order(order, 'promo1')

    stock = {p['id']: p['stock'] for p in store.get('products')}
    assert stock['kg'] == 500
    assert stock['u'] == 0
    assert store.get('orders')[0]['id'] == 'o1'
    assert store.get('cart') == []
    assert store.get('promoCodes')[0]['usedBy'] == ['anonymous']
    assert store.get('activityLogs')[0]['action'] == 'ORDER'


def test_manual_order_logs_pos_sale(store):
    store.place_order({'id': 'o2', 'total': 50, 'items': [], 'isManual': True})
    assert store.get('activityLogs')[0]['action'] == 'POS_SALE'


def test_update_and_delete_order(store):
    store.place_order({'id': 'o1', 'status': 'PENDING', 'items': []})
    store.update_order('o1', {'status': 'PAID'})
    assert store.get('orders')[0]['status'] == 'PAID'
    store.delete_order('o1')
    assert store.get('orders') == []


# ═══════════════════════════════════════════════════════════════════════════
# USUARIOS
# ═══════════════════════════════════════════════════════════════════════════

def test_authenticate_by_username_email_or_phone(store):
    assert store.authenticate('MeatAdmin98', ADMIN_PASSWORD)['id'] == 'admin'
    assert store.authenticate('ADMIN@meatdepot.co.za', ADMIN_PASSWORD)['id'] == 'admin'
    assert store.authenticate('0844012488', ADMIN_PASSWORD)['id'] == 'admin'
    assert store.authenticate('MeatAdmin98', 'incorrecta') is None
    assert store.authenticate('nadie', ADMIN_PASSWORD) is None


def test_authenticate_never_returns_password(store):
    user = store.authenticate('admin', ADMIN_PASSWORD)
    assert 'password' not in user


def test_login_sets_current_user_without_password(store):
    store.login({'id': 'c1', 'name': 'Cliente', 'email': 'c@x.co', 'password': 'abc', 'role': 'CUSTOMER'})
    current = store.current_user
    assert current['id'] == 'c1'
    assert 'password' not in current
    stored = next(u for u in store.get('users') if u['id'] == 'c1')
    assert check_password_hash(stored['password'], 'abc')

    store.logout()
    assert store.current_user is None
    assert store.get('cart') == []


def test_update_user_keeps_existing_hash(store):
    store.login({'id': 'c1', 'name': 'Cliente', 'email': 'c@x.co', 'password': 'abc'})
    store.update_user({'id': 'c1', 'name': 'Cliente Nuevo', 'email': 'c@x.co'})
    stored = next(u for u in store.get('users') if u['id'] == 'c1')
    assert stored['name'] == 'Cliente Nuevo'
    assert check_password_hash(stored['password'], 'abc')
    assert store.current_user['name'] == 'Cliente Nuevo'


def test_update_unknown_user_raises(store):
    with pytest.raises(KeyError):
        store.update_user({'id': 'fantasma'})


def test_update_user_password(store):
    store.update_user_password('admin@meatdepot.co.za', 'nueva')
    assert store.authenticate('admin', 'nueva') is not None


# ═══════════════════════════════════════════════════════════════════════════
# RESTAURACIÓN Y SOBRE
# ═══════════════════════════════════════════════════════════════════════════

def test_restore_is_partial_merge(store):
    store.add_post({'id': 'keep', 'title': 'Se conserva'})
    restored = store.restore_data({
        'products': [_product('r1')],
        'config': {'deliveryFee': 75},
        'orders': None,
    })
    assert restored == ['products', 'config']
    assert store.get('products')[0]['id'] == 'r1'
    assert store.get('posts')[0]['id'] == 'keep'
    config = store.config
    assert config['deliveryFee'] == 75
    assert config['minimumOrder'] == 250

    log = store.get('activityLogs')[0]
    assert log['action'] == 'SYNC'
    assert log['details'] == 'System restore executed for: Products, Config'


def test_restore_skips_invalid_types(store):
    restored = store.restore_data({'products': {'no': 'lista'}, 'config': ['no', 'dict']})
    assert restored == []


def test_restore_rejects_non_dict(store):
    assert store.restore_data(['x']) == []


def test_restore_hashes_passwords_and_expires_specials(store):
    store.restore_data({
        'users': [{'id': 'u9', 'password': 'plano'}],
        'products': [_product('p1', specialPrice=10, specialExpiryDate='2001-01-01')],
    })
    user = next(u for u in store.get('users') if u['id'] == 'u9')
    assert check_password_hash(user['password'], 'plano')
    assert store.get('products')[0]['specialPrice'] == 0


def test_restore_respecting_versions_keeps_newer_local(store):
    store.add_product(_product('local'))
    local_at = store.versions()['products']['updatedAt']
    restored = store.restore_data({
        'products': [_product('remoto')],
        'posts': [{'id': 'post-remoto'}],
        '_versions': {
            'products': {'version': 1, 'updatedAt': '2000-01-01T00:00:00.000Z'},
            'posts': {'version': 4, 'updatedAt': '2099-01-01T00:00:00.000Z'},
        },
    }, respect_versions=True)

    assert restored == ['posts']
    assert store.get('products')[0]['id'] == 'local'
    assert store.versions()['products']['updatedAt'] == local_at
    # la versión remota se adopta tal cual
    assert store.versions()['posts'] == {'version': 4, 'updatedAt': '2099-01-01T00:00:00.000Z'}


def test_build_envelope_applies_non_null_overrides(store):
    store.add_product(_product('p1'))
    envelope = store.build_envelope({'products': [], 'orders': None})
    assert envelope['products'] == []
    assert envelope['orders'] == []
    assert set(envelope) >= {'products', 'users', 'config', 'activityLogs', 'timestamp', '_versions'}
    assert 'cart' not in envelope
    assert 'currentUser' not in envelope


# ═══════════════════════════════════════════════════════════════════════════
# NOTIFICACIONES
# ═══════════════════════════════════════════════════════════════════════════

def test_token_expired_notification_deduplicated(store):
    assert store.notify_token_expired(['drive']) is True
    assert store.notify_token_expired(['firebase']) is False
    notes = [n for n in store.get('notifications') if n['title'] == TOKEN_EXPIRED_TITLE]
    assert len(notes) == 1
    assert 'drive' in notes[0]['body']
    assert notes[0]['targetUserId'] == 'admin'


def test_production_actions_log_production(store):
    store.add_raw_material({'id': 'm1', 'name': 'Carne de res'})
    store.update_raw_material({'id': 'm1', 'name': 'Carne de res premium'})
    store.add_production_batch({'id': 'b1'})
    store.delete_raw_material('m1')
    actions = {log['action'] for log in store.get('activityLogs')}
    assert actions == {'PRODUCTION'}
    assert store.get('rawMaterials') == []
    assert store.get('productionBatches')[0]['id'] == 'b1'


def test_state_survives_restart(repo):
    first = AppStore(repo)
    first.add_product(_product('p1'))
    second = AppStore(repo)
    assert second.get('products')[0]['id'] == 'p1'
    assert second.versions()['products']['version'] == 1
    with open(repo.path_for('md_products'), encoding='utf-8') as f:
        assert json.load(f)[0]['id'] == 'p1'
    assert os.path.exists(repo.path_for('md_versions'))
