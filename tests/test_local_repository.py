# -*- coding: utf-8 -*-
"""
Tests del repositorio local (un archivo JSON por clave, escritura atómica).
"""
import os

import pytest

from meat_depot.repositories import ILocalStateRepository, LocalStateRepository


def test_implements_interface(repo):
    assert isinstance(repo, ILocalStateRepository)


def test_save_and_load(repo):
    assert repo.save('md_products', [{'id': 'p1', 'name': 'Bœuf'}]) is True
    assert repo.load('md_products') == [{'id': 'p1', 'name': 'Bœuf'}]
    assert os.path.exists(repo.path_for('md_products'))
    assert not os.path.exists(repo.path_for('md_products') + '.tmp')


def test_missing_or_null_returns_default(repo):
    assert repo.load('md_orders', []) == []
    repo.save('md_currentUser', None)
    assert repo.load('md_currentUser', 'nadie') == 'nadie'


def test_corrupt_file_returns_default(repo):
    with open(repo.path_for('md_posts'), 'w', encoding='utf-8') as f:
        f.write('{roto')
    assert repo.load('md_posts', []) == []


def test_invalid_utf8_file_returns_default(repo, capsys):
    with open(repo.path_for('md_products'), 'wb') as f:
        f.write(b'\xff\xfe\x00basura')
    assert repo.load('md_products', []) == []
    assert '[STORAGE ERROR]' in capsys.readouterr().out


def test_unserializable_value_is_reported_not_raised(repo, capsys):
    assert repo.save('md_config', {'x': object()}) is False
    assert '[STORAGE ERROR]' in capsys.readouterr().out


def test_invalid_key_rejected(repo):
    with pytest.raises(ValueError):
        repo.load('../fuera')


def test_keys_and_file_paths(tmp_path):
    repo = LocalStateRepository(str(tmp_path / 'estado'))
    repo.save('md_b', 1)
    repo.save('md_a', 2)
    assert repo.keys() == ['md_a', 'md_b']
    assert [os.path.basename(p) for p in repo.file_paths()] == ['md_a.json', 'md_b.json']
