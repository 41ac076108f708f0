"""Tests for the gist-backed document service with urlopen patched out."""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from errors import MalformedSnapshot, RemoteNotFound, SyncFailed
from gist_client import GistDocumentService

SNAPSHOT = {'currentUser': 'admin', 'teachers': [], 'timetable': [], 'lessons': [], 'homework': []}


def fake_response(payload):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode('utf-8')
    response = MagicMock()
    response.read.return_value = body
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def http_error(code, payload=None):
    body = json.dumps(payload).encode('utf-8') if payload is not None else b''
    return urllib.error.HTTPError('https://api.test/gists', code, 'Error', {}, io.BytesIO(body))


@pytest.fixture
def service():
    return GistDocumentService(api_base='https://api.test/', filename='records.json', description='Backup', timeout=5)


@pytest.fixture
def urlopen():
    with patch('gist_client.urllib.request.urlopen') as mocked:
        yield mocked


def sent_request(urlopen, index=0):
    return urlopen.call_args_list[index][0][0]


class TestCreate:
    def test_posts_private_gist_with_bearer_token(self, service, urlopen):
        urlopen.return_value = fake_response({'id': 'abc123'})

        document_id = service.create_document(SNAPSHOT, token='tok')

        request = sent_request(urlopen)
        body = json.loads(request.data.decode('utf-8'))
        assert document_id == 'abc123'
        assert request.get_method() == 'POST'
        assert request.full_url == 'https://api.test/gists'
        assert request.get_header('Authorization') == 'Bearer tok'
        assert body['public'] is False
        assert body['description'] == 'Backup'
        assert json.loads(body['files']['records.json']['content']) == SNAPSHOT
        assert urlopen.call_args.kwargs['timeout'] == 5

    def test_missing_id_is_a_failure(self, service, urlopen):
        urlopen.return_value = fake_response({})

        with pytest.raises(SyncFailed):
            service.create_document(SNAPSHOT, token='tok')


class TestUpdate:
    def test_patches_existing_gist(self, service, urlopen):
        urlopen.return_value = fake_response({'id': 'abc123'})

        service.update_document('abc123', SNAPSHOT, token='tok')

        request = sent_request(urlopen)
        assert request.get_method() == 'PATCH'
        assert request.full_url == 'https://api.test/gists/abc123'

    def test_not_found(self, service, urlopen):
        urlopen.side_effect = http_error(404, {'message': 'Not Found'})

        with pytest.raises(RemoteNotFound):
            service.update_document('gone', SNAPSHOT, token='tok')

    def test_service_message_becomes_reason(self, service, urlopen):
        urlopen.side_effect = http_error(401, {'message': 'Bad credentials'})

        with pytest.raises(SyncFailed) as excinfo:
            service.update_document('abc123', SNAPSHOT, token='bad')

        assert excinfo.value.reason == 'Bad credentials'
        assert not isinstance(excinfo.value, RemoteNotFound)

    def test_unreachable_service(self, service, urlopen):
        urlopen.side_effect = urllib.error.URLError('Name or service not known')

        with pytest.raises(SyncFailed, match='Could not reach'):
            service.update_document('abc123', SNAPSHOT, token='tok')


class TestFetch:
    def test_returns_file_content(self, service, urlopen):
        urlopen.return_value = fake_response({
            'id': 'abc123',
            'files': {'records.json': {'content': json.dumps(SNAPSHOT)}},
        })

        assert service.fetch_document('abc123', token='tok') == SNAPSHOT
        assert sent_request(urlopen).get_method() == 'GET'

    def test_truncated_file_is_read_from_raw_url(self, service, urlopen):
        urlopen.side_effect = [
            fake_response({
                'id': 'abc123',
                'files': {'records.json': {
                    'content': '{"teach',
                    'truncated': True,
                    'raw_url': 'https://raw.test/abc123/records.json',
                }},
            }),
            fake_response(json.dumps(SNAPSHOT).encode('utf-8')),
        ]

        assert service.fetch_document('abc123', token='tok') == SNAPSHOT
        assert sent_request(urlopen, 1).full_url == 'https://raw.test/abc123/records.json'

    def test_missing_file_is_malformed(self, service, urlopen):
        urlopen.return_value = fake_response({'id': 'abc123', 'files': {'other.json': {'content': '{}'}}})

        with pytest.raises(MalformedSnapshot, match='records.json'):
            service.fetch_document('abc123', token='tok')

    def test_invalid_json_content_is_malformed(self, service, urlopen):
        urlopen.return_value = fake_response({'files': {'records.json': {'content': 'not json'}}})

        with pytest.raises(MalformedSnapshot):
            service.fetch_document('abc123', token='tok')

    def test_unreadable_response_is_a_failure(self, service, urlopen):
        urlopen.return_value = fake_response(b'<html>')

        with pytest.raises(SyncFailed):
            service.fetch_document('abc123', token='tok')
