from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional, Protocol

import settings
import snapshot_codec
from errors import MalformedSnapshot, RemoteNotFound, SyncFailed

logger = logging.getLogger(__name__)


class RemoteDocumentService(Protocol):
    def create_document(self, content: Dict[str, Any], *, token: str) -> str:
        ...

    def update_document(self, document_id: str, content: Dict[str, Any], *, token: str) -> None:
        ...

    def fetch_document(self, document_id: str, *, token: str) -> Dict[str, Any]:
        ...


def _error_message(exc: urllib.error.HTTPError) -> str:
    try:
        payload = json.loads(exc.read().decode('utf-8'))
    except (OSError, ValueError):
        payload = None
    if isinstance(payload, dict) and payload.get('message'):
        return str(payload['message'])
    return str(exc.reason or f'HTTP {exc.code}')


class GistDocumentService:
    """Stores the snapshot as a single file inside a private GitHub gist."""

    def __init__(
        self,
        api_base: str = settings.GIST_API_BASE,
        filename: str = settings.GIST_FILENAME,
        description: str = settings.GIST_DESCRIPTION,
        timeout: float = settings.SYNC_HTTP_TIMEOUT,
    ):
        self.api_base = api_base.rstrip('/')
        self.filename = filename
        self.description = description
        self.timeout = timeout

    def _open(self, url: str, token: str, *, method: str = 'GET', body: Optional[Dict[str, Any]] = None) -> bytes:
        request = urllib.request.Request(
            url,
            data=json.dumps(body).encode('utf-8') if body is not None else None,
            method=method,
            headers={
                'Authorization': f'Bearer {token}',
                'Accept': 'application/vnd.github+json',
                'Content-Type': 'application/json',
            },
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as resp:
                return resp.read()
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                raise RemoteNotFound() from exc
            raise SyncFailed(_error_message(exc)) from exc
        except (urllib.error.URLError, socket.timeout, TimeoutError) as exc:
            reason = getattr(exc, 'reason', None) or exc
            raise SyncFailed(f'Could not reach the document service: {reason}') from exc

    def _request(self, path: str, token: str, *, method: str = 'GET', body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        raw = self._open(f'{self.api_base}{path}', token, method=method, body=body)
        try:
            payload = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SyncFailed('The document service returned an unreadable response') from exc
        if not isinstance(payload, dict):
            raise SyncFailed('The document service returned an unexpected response')
        return payload

    def _gist_body(self, content: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'description': self.description,
            'public': False,
            'files': {self.filename: {'content': snapshot_codec.dumps(content)}},
        }

    @staticmethod
    def _path(document_id: str) -> str:
        return f"/gists/{urllib.parse.quote(document_id, safe='')}"

    def create_document(self, content: Dict[str, Any], *, token: str) -> str:
        payload = self._request('/gists', token, method='POST', body=self._gist_body(content))
        document_id = payload.get('id')
        if not document_id:
            raise SyncFailed('The document service did not return a document id')
        logger.info('Created remote document %s', document_id)
        return str(document_id)

    def update_document(self, document_id: str, content: Dict[str, Any], *, token: str) -> None:
        self._request(self._path(document_id), token, method='PATCH', body=self._gist_body(content))
        logger.info('Updated remote document %s', document_id)

    def fetch_document(self, document_id: str, *, token: str) -> Dict[str, Any]:
        payload = self._request(self._path(document_id), token)
        files = payload.get('files')
        entry = files.get(self.filename) if isinstance(files, dict) else None
        if not isinstance(entry, dict):
            raise MalformedSnapshot(f'Remote document has no {self.filename!r} file')

        # gists truncate large files in the API response; the raw URL has the rest
        if entry.get('truncated') and entry.get('raw_url'):
            text = self._open(entry['raw_url'], token).decode('utf-8', errors='replace')
        else:
            text = entry.get('content')
        return snapshot_codec.loads(text)
