from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Protocol

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json

import settings

logger = logging.getLogger(__name__)

DEFAULT_STATE: Dict[str, Any] = {
    'currentUser': None,
    'teachers': [],
    'timetable': [],
    'lessons': [],
    'homework': [],
}


class StorageError(Exception):
    pass


def ensure_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    for key, default in DEFAULT_STATE.items():
        if key not in data:
            data[key] = [] if isinstance(default, list) else default
    return data


class StorageBackend(Protocol):
    def read(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def write(self, key: str, document: Dict[str, Any]) -> None:
        ...


# --- JSON file ---------------------------------------------------------------


class JsonFileBackend:
    """One JSON file per key, replaced atomically on every write."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self._lock = Lock()

    def path_for(self, key: str) -> Path:
        return self.directory / f'{key}.json'

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageError(f'could not read {path.name}: {exc}') from exc
        if not isinstance(data, dict):
            raise StorageError(f'{path.name} does not contain a JSON object')
        return data

    def write(self, key: str, document: Dict[str, Any]) -> None:
        path = self.path_for(key)
        with self._lock:
            tmp_name = None
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    'w', encoding='utf-8', dir=self.directory, prefix=f'.{key}.', suffix='.tmp', delete=False
                ) as handle:
                    tmp_name = handle.name
                    json.dump(document, handle, ensure_ascii=False, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except (OSError, TypeError, ValueError) as exc:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise StorageError(f'could not write {path.name}: {exc}') from exc


# --- Postgres ----------------------------------------------------------------


class PostgresBackend:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self._table_ready = False

    def _ensure_table(self, conn: psycopg.Connection) -> None:
        if self._table_ready:
            return
        with conn.cursor() as cur:
            cur.execute(
                '''CREATE TABLE IF NOT EXISTS app_documents (
                     key TEXT PRIMARY KEY,
                     document JSONB NOT NULL,
                     updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                   )'''
            )
        self._table_ready = True

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with psycopg.connect(self.database_url, autocommit=True) as conn:
                self._ensure_table(conn)
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute('SELECT document FROM app_documents WHERE key = %s', (key,))
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f'could not read {key!r}: {exc}') from exc
        if not row:
            return None
        document = row['document']
        if not isinstance(document, dict):
            raise StorageError(f'{key!r} does not contain a JSON object')
        return document

    def write(self, key: str, document: Dict[str, Any]) -> None:
        try:
            with psycopg.connect(self.database_url, autocommit=True) as conn:
                self._ensure_table(conn)
                with conn.cursor() as cur:
                    cur.execute(
                        '''INSERT INTO app_documents (key, document, updated_at)
                           VALUES (%s, %s, now())
                           ON CONFLICT (key) DO UPDATE
                           SET document = EXCLUDED.document,
                               updated_at = now()''',
                        (key, Json(document)),
                    )
        except psycopg.Error as exc:
            raise StorageError(f'could not write {key!r}: {exc}') from exc


# --- In-memory ---------------------------------------------------------------


class MemoryBackend:
    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = copy.deepcopy(documents or {})
        self.writes = 0

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(key)
        return copy.deepcopy(document) if document is not None else None

    def write(self, key: str, document: Dict[str, Any]) -> None:
        self.documents[key] = copy.deepcopy(document)
        self.writes += 1


def default_backend() -> StorageBackend:
    if settings.USE_DB:
        logger.info('Using Postgres document storage')
        return PostgresBackend(settings.DATABASE_URL)  # type: ignore[arg-type]
    logger.info('Using JSON file storage in %s', settings.RECORDS_STORAGE_DIR)
    return JsonFileBackend(settings.RECORDS_STORAGE_DIR)
