# -*- coding: utf-8 -*-
"""
Tests del backend Google Sheets: troceo del sobre, cabecera con checksum,
lectura por API v4 y por gviz.
"""
import json

import pytest

from conftest import FakeResponse, FakeSession
from meat_depot.backends import SheetBackend, TokenExpiredError, chunk_snapshot, extract_sheet_id, join_chunks
from meat_depot.backends.sheet_backend import build_rows, parse_gviz_response

CONFIG = {
    'googleDrive': {'accessToken': 'tok', 'folderId': 'carpeta'},
    'googleSheetUrl': 'https://docs.google.com/spreadsheets/d/hoja-123_ABC/edit#gid=0',
}


def _big_envelope():
    # ~100.000 caracteres: obliga a usar varios trozos
    return {'products': [{'id': f'p{i}', 'description': 'ñ' * 90} for i in range(1000)]}


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES PURAS
# ═══════════════════════════════════════════════════════════════════════════

def test_extract_sheet_id():
    assert extract_sheet_id(CONFIG['googleSheetUrl']) == 'hoja-123_ABC'
    assert extract_sheet_id('1fWqLTRfqRJObWB59d2vdWl--LAfm7m-8') == '1fWqLTRfqRJObWB59d2vdWl--LAfm7m-8'
    assert extract_sheet_id('no es una hoja') is None
    assert extract_sheet_id('') is None


def test_chunk_snapshot_sizes():
    chunks = chunk_snapshot('a' * 90001, 40000)
    assert [len(c) for c in chunks] == [40000, 40000, 10001]
    with pytest.raises(ValueError):
        chunk_snapshot('abc', 0)


def test_rows_roundtrip_large_envelope():
    envelope = _big_envelope()
    rows = build_rows(envelope, 40000)

    assert rows[0][0].startswith('#md-chunks:')
    assert len(rows) > 3
    assert all(len(r[0]) <= 40000 for r in rows[1:])
    assert join_chunks([r[0] for r in rows]) == envelope


def test_missing_chunk_detected():
    rows = build_rows(_big_envelope(), 40000)
    cells = [r[0] for r in rows]
    del cells[2]
    assert join_chunks(cells) is None


def test_checksum_mismatch_detected():
    rows = build_rows({'products': [{'id': 'p1'}]}, 10)
    cells = [r[0] for r in rows]
    cells[1] = cells[1][:-1] + 'X'
    assert join_chunks(cells) is None


def test_legacy_rows_without_header():
    text = json.dumps({'posts': [{'id': 'viejo'}]})
    cells = [text[:10], text[10:]]
    assert join_chunks(cells) == {'posts': [{'id': 'viejo'}]}


def test_invalid_json_returns_none():
    assert join_chunks(['{no json']) is None
    assert join_chunks([]) is None


def test_parse_gviz_response_with_header_as_label():
    payload = {
        'table': {
            'cols': [{'label': '#md-chunks:2:abc'}],
            'rows': [{'c': [{'v': '{"a":'}]}, {'c': [{'v': '1}'}]}, {'c': [None]}],
        }
    }
    text = '/*O_o*/\ngoogle.visualization.Query.setResponse(' + json.dumps(payload) + ');'
    assert parse_gviz_response(text) == ['#md-chunks:2:abc', '{"a":', '1}']
    assert parse_gviz_response('basura') == []


# ═══════════════════════════════════════════════════════════════════════════
# BACKEND
# ═══════════════════════════════════════════════════════════════════════════

def test_is_configured_uses_default_sheet():
    sheet = SheetBackend(session=FakeSession())
    assert sheet.is_configured({'googleDrive': CONFIG['googleDrive'], 'googleSheetUrl': ''})
    assert not sheet.is_configured({'googleSheetUrl': CONFIG['googleSheetUrl']})


def test_save_creates_tab_clears_and_appends():
    session = FakeSession([
        FakeResponse(200, {'sheets': [{'properties': {'title': 'Hoja 1'}}]}),
        FakeResponse(200, {}),
        FakeResponse(200, {}),
        FakeResponse(200, {}),
    ])
    sheet = SheetBackend(session=session, chunk_size=50)

    assert sheet.save({'products': [{'id': 'p1', 'name': 'Lomo de res'}] * 3}, CONFIG) is True

    urls = [call[1] for call in session.calls]
    assert urls[1].endswith('hoja-123_ABC:batchUpdate')
    assert urls[2].endswith('/values/System_State!A:A:clear')
    assert urls[3].endswith('/values/System_State!A1:append')
    values = session.calls[3][2]['json']['values']
    assert values[0][0].startswith('#md-chunks:')
    assert session.calls[3][2]['params'] == {'valueInputOption': 'RAW'}


def test_save_skips_tab_creation_when_present():
    session = FakeSession([
        FakeResponse(200, {'sheets': [{'properties': {'title': 'System_State'}}]}),
        FakeResponse(200, {}),
        FakeResponse(200, {}),
    ])
    SheetBackend(session=session).save({'posts': []}, CONFIG)
    assert len(session.calls) == 3


def test_save_401_raises_token_expired():
    sheet = SheetBackend(session=FakeSession([FakeResponse(401, {})]))
    with pytest.raises(TokenExpiredError):
        sheet.save({'posts': []}, CONFIG)


def test_load_with_token_reads_values_api():
    envelope = {'orders': [{'id': 'o1'}]}
    rows = build_rows(envelope, 5)
    session = FakeSession([FakeResponse(200, {'values': rows})])

    assert SheetBackend(session=session).load(CONFIG) == envelope
    assert session.calls[0][1].endswith('/values/System_State!A:A')


def test_load_without_token_uses_gviz():
    envelope = {'orders': [{'id': 'o1'}]}
    rows = build_rows(envelope, 1000)
    payload = {'table': {'cols': [{'label': rows[0][0]}], 'rows': [{'c': [{'v': rows[1][0]}]}]}}
    session = FakeSession([FakeResponse(200, text='setResponse(' + json.dumps(payload) + ');')])
    config = {'googleSheetUrl': CONFIG['googleSheetUrl']}

    assert SheetBackend(session=session).load(config) == envelope
    assert '/gviz/tq' in session.calls[0][1]
