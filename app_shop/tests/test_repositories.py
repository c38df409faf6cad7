# -*- coding: utf-8 -*-
"""
Almacenamiento JSON genérico, locks por clave y configuración.
"""
import json
import os
import threading

from app_shop.config import Settings
from app_shop.locks import KeyedLockRegistry
from app_shop.repositories import OrderRepository


def test_create_assigns_ids_and_timestamps(tmp_path):
    repo = OrderRepository(str(tmp_path))
    first = repo.create({'user_id': 1})
    second = repo.create({'user_id': 2})

    assert (first['id'], second['id']) == (1, 2)
    assert first['created_at'] and first['updated_at']
    assert repo.find_one('2')['user_id'] == 2

    with open(os.path.join(str(tmp_path), 'orders.json'), encoding='utf-8') as f:
        assert len(json.load(f)) == 2


def test_find_filters_sorts_and_paginates(tmp_path):
    repo = OrderRepository(str(tmp_path))
    for total in (30, 10, None, 20):
        repo.create({'user_id': 1, 'total_amount': total})
    repo.create({'user_id': 2, 'total_amount': 99})

    records, total = repo.find({'user_id': 1}, sort='-total_amount', page=1, page_size=2)
    assert total == 4
    assert [r['total_amount'] for r in records] == [30, 20]

    records, _ = repo.find({'user_id': 1}, sort='total_amount')
    assert [r['total_amount'] for r in records] == [10, 20, 30, None]

    records, total = repo.find({'total_amount': lambda v: v is not None and v > 15})
    assert total == 3


def test_update_and_delete(tmp_path):
    repo = OrderRepository(str(tmp_path))
    record = repo.create({'user_id': 1, 'payment_status': 'pending'})

    updated = repo.update(record['id'], {'payment_status': 'completed', 'id': 50})
    assert updated['id'] == record['id']
    assert updated['payment_status'] == 'completed'
    assert repo.update(999, {'x': 1}) is None

    assert repo.delete(record['id'])['id'] == record['id']
    assert repo.delete(record['id']) is None
    assert repo.count() == 0


def test_concurrent_creates_keep_every_record(tmp_path):
    repo = OrderRepository(str(tmp_path))
    threads = [threading.Thread(target=repo.create, args=({'user_id': i},)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    records = repo.find_all()
    assert len(records) == 10
    assert len({r['id'] for r in records}) == 10


def test_keyed_locks_are_reentrant_and_released():
    locks = KeyedLockRegistry()

    with locks.hold('cart:1'):
        # Re-entrante dentro del mismo hilo
        with locks.hold('cart:1'):
            assert len(locks) == 1
        with locks.hold('cart:2'):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0


def test_keyed_locks_exclude_other_threads():
    locks = KeyedLockRegistry()
    inside = threading.Event()
    release = threading.Event()
    order = []

    def first():
        with locks.hold('order:1'):
            inside.set()
            release.wait(5)
            order.append('first')

    def second():
        inside.wait(5)
        with locks.hold('order:1'):
            order.append('second')

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for t in threads:
        t.start()
    inside.wait(5)
    release.set()
    for t in threads:
        t.join()

    assert order == ['first', 'second']
    assert len(locks) == 0


def test_lock_registry_does_not_grow_with_users(container):
    for user_id in range(1, 201):
        container.cart_service.clear_cart(user_id)
    assert len(container.locks) == 0


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv('SHOP_DATA_DIR', str(tmp_path))
    monkeypatch.setenv('SHOP_GATEWAY_TIMEOUT', '30')
    monkeypatch.setenv('SHOP_PRODUCTION_MODE', 'true')
    monkeypatch.setenv('SHOP_FRONTEND_URL', 'https://shop.example/')
    monkeypatch.delenv('SHOP_SECRET_KEY', raising=False)

    settings = Settings.from_env()

    assert settings.data_dir == str(tmp_path)
    assert settings.gateway_timeout == 10.0
    assert settings.production_mode is True
    assert settings.frontend_url == 'https://shop.example'
    assert settings.currency == 'aed'
    assert settings.processed_events_max == 1000
