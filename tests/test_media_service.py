# -*- coding: utf-8 -*-
"""
Tests del servicio de archivos: el destino depende de config.backupMethod.
"""
from unittest import mock

from meat_depot.services import MediaService

DATA_URL = 'data:image/png;base64,aGVsbG8='


def _service():
    drive, firebase, domain = mock.Mock(), mock.Mock(), mock.Mock()
    return MediaService(drive, firebase, domain), drive, firebase, domain


def test_default_method_is_drive():
    service, drive, firebase, domain = _service()
    drive.upload_media.return_value = 'https://drive/thumb'
    assert service.upload_file(DATA_URL, 'x.png', {}) == 'https://drive/thumb'
    firebase.upload_media.assert_not_called()
    domain.upload_media.assert_not_called()


def test_drive_failure_returns_none():
    service, drive, _, _ = _service()
    drive.upload_media.return_value = None
    assert service.upload_file(DATA_URL, 'x.png', {'backupMethod': 'GOOGLE_DRIVE'}) is None


def test_firebase_failure_keeps_data_url():
    service, _, firebase, _ = _service()
    firebase.upload_media.return_value = None
    assert service.upload_file(DATA_URL, 'x.png', {'backupMethod': 'FIREBASE'}) == DATA_URL


def test_domain_upload():
    service, _, _, domain = _service()
    domain.upload_media.return_value = 'https://cdn/x.png'
    config = {'backupMethod': 'CUSTOM_DOMAIN'}
    assert service.upload_file(DATA_URL, 'x.png', config) == 'https://cdn/x.png'
    domain.upload_media.assert_called_once_with(DATA_URL, 'x.png', config)


def test_delete_by_method():
    service, drive, firebase, _ = _service()
    drive.delete_media.return_value = True
    firebase.delete_media.return_value = True
    assert service.delete_file('https://drive/thumb?id=1', {}) is True
    assert service.delete_file('https://storage/uploads/x', {'backupMethod': 'FIREBASE'}) is True
    assert service.delete_file('https://cdn/x', {'backupMethod': 'CUSTOM_DOMAIN'}) is False
