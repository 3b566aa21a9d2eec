# -*- coding: utf-8 -*-
"""
Tests del backend Firebase con un cliente Firestore en memoria
(firebase_admin nunca llega a inicializarse).
"""
from unittest import mock

import pytest
from google.api_core import exceptions as google_exceptions

from meat_depot.backends import BackendUnavailableError, FirebaseBackend, TokenExpiredError
from meat_depot.backends.firebase_backend import META_DOC_ID

CONFIG = {'firebaseConfig': {'projectId': 'meat-depot', 'apiKey': 'AIza'}}


class FakeSnapshot:
    def __init__(self, data):
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, store, doc_id):
        self.store = store
        self.id = doc_id

    def get(self):
        return FakeSnapshot(self.store.get(self.id))


class FakeBatch:
    def __init__(self, client):
        self.client = client
        self.pending = []

    def set(self, doc, data):
        self.pending.append((doc.id, data))

    def commit(self):
        if self.client.commit_error is not None:
            raise self.client.commit_error
        for doc_id, data in self.pending:
            self.client.docs[doc_id] = data


class FakeCollection:
    def __init__(self, client):
        self.client = client

    def document(self, doc_id):
        return FakeDocument(self.client.docs, doc_id)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.commit_error = None
        self.collections = []

    def collection(self, name):
        self.collections.append(name)
        return FakeCollection(self)

    def batch(self):
        return FakeBatch(self)


@pytest.fixture
def firestore_client():
    return FakeFirestore()


@pytest.fixture
def firebase(firestore_client):
    return FirebaseBackend(client_factory=lambda config: firestore_client,
                           bucket_factory=mock.Mock())


def test_is_configured_needs_project_and_key():
    backend = FirebaseBackend(client_factory=mock.Mock())
    assert backend.is_configured(CONFIG)
    assert backend.is_configured({'firebaseConfig': {'projectId': 'x', 'serviceAccount': {'type': 'service_account'}}})
    assert not backend.is_configured({'firebaseConfig': {'projectId': 'x'}})
    assert not backend.is_configured({'firebaseConfig': {'apiKey': 'k'}})


def test_save_writes_one_doc_per_collection_and_meta(firebase, firestore_client):
    envelope = {
        'config': {'deliveryFee': 50},
        'products': [{'id': 'p1'}],
        'orders': [],
        'timestamp': '2026-10-17T10:00:00.000Z',
        '_versions': {'products': {'version': 3, 'updatedAt': '2026-10-17T09:00:00.000Z'}},
    }
    assert firebase.save(envelope, CONFIG) is True

    docs = firestore_client.docs
    assert firestore_client.collections == ['meat_depot_system']
    assert docs['config']['deliveryFee'] == 50
    assert '_syncedAt' in docs['config']
    assert docs['products']['items'] == [{'id': 'p1'}]
    assert docs['orders']['items'] == []
    assert 'users' not in docs
    assert docs[META_DOC_ID]['versions']['products']['version'] == 3


def test_load_reassembles_envelope(firebase, firestore_client):
    firestore_client.docs.update({
        'config': {'deliveryFee': 80, '_syncedAt': 'x'},
        'products': {'items': [{'id': 'p1'}], '_syncedAt': 'x'},
        META_DOC_ID: {'timestamp': 't', 'versions': {'products': {'version': 1}}},
    })

    data = firebase.load(CONFIG)

    assert data['config'] == {'deliveryFee': 80}
    assert data['products'] == [{'id': 'p1'}]
    assert data['_versions'] == {'products': {'version': 1}}
    assert 'orders' not in data


def test_load_empty_project_returns_none(firebase):
    assert firebase.load(CONFIG) is None


def test_commit_unauthenticated_is_token_expired(firebase, firestore_client):
    firestore_client.commit_error = google_exceptions.Unauthenticated('token vencido')
    with pytest.raises(TokenExpiredError):
        firebase.save({'products': []}, CONFIG)


def test_commit_other_error_is_unavailable(firebase, firestore_client):
    firestore_client.commit_error = google_exceptions.ServiceUnavailable('caído')
    with pytest.raises(BackendUnavailableError):
        firebase.save({'products': []}, CONFIG)


def test_client_init_failure():
    backend = FirebaseBackend(client_factory=mock.Mock(side_effect=ValueError('credenciales inválidas')))
    with pytest.raises(BackendUnavailableError):
        backend.save({}, CONFIG)
    assert backend.load(CONFIG) is None


def test_upload_media_makes_blob_public():
    bucket = mock.Mock()
    blob = bucket.blob.return_value
    blob.public_url = 'https://storage.googleapis.com/b/uploads/x.png'
    backend = FirebaseBackend(client_factory=mock.Mock(), bucket_factory=lambda config: bucket)

    url = backend.upload_media('data:image/png;base64,aGVsbG8=', 'x.png', CONFIG)

    assert url == blob.public_url
    bucket.blob.assert_called_once_with('uploads/x.png')
    blob.upload_from_string.assert_called_once_with(b'hello', content_type='image/png')
    blob.make_public.assert_called_once()


def test_upload_media_failure_returns_none():
    bucket = mock.Mock()
    bucket.blob.return_value.upload_from_string.side_effect = google_exceptions.Forbidden('sin permiso')
    backend = FirebaseBackend(client_factory=mock.Mock(), bucket_factory=lambda config: bucket)
    assert backend.upload_media('data:image/png;base64,aGVsbG8=', 'x.png', CONFIG) is None


def test_delete_media_from_public_url():
    bucket = mock.Mock()
    backend = FirebaseBackend(client_factory=mock.Mock(), bucket_factory=lambda config: bucket)
    assert backend.delete_media('https://storage.googleapis.com/b/uploads/x%20y.png', CONFIG) is True
    bucket.blob.assert_called_once_with('uploads/x y.png')
    assert backend.delete_media('https://otro.sitio/imagen.png', CONFIG) is False
