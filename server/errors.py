from __future__ import annotations

from typing import Optional


class RecordsError(Exception):
    """Base class for record store and sync failures."""

    detail = 'records-error'

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or self.default_reason()
        super().__init__(self.reason)

    def default_reason(self) -> str:
        return self.detail.replace('-', ' ')


class NotFound(RecordsError):
    detail = 'not-found'

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f'{kind} {record_id!r} not found')


class MalformedSnapshot(RecordsError):
    detail = 'malformed-snapshot'


class MissingCredential(RecordsError):
    detail = 'missing-credential'

    def default_reason(self) -> str:
        return 'A sync token is required before syncing.'


class MissingRemoteId(RecordsError):
    detail = 'missing-remote-id'

    def default_reason(self) -> str:
        return 'A remote document id is required to restore from the cloud.'


class SyncFailed(RecordsError):
    detail = 'sync-failed'


class RemoteNotFound(SyncFailed):
    detail = 'remote-not-found'

    def default_reason(self) -> str:
        return 'Remote document not found. Check the id or push again to create a new one.'


class SyncInProgress(RecordsError):
    detail = 'sync-in-progress'

    def default_reason(self) -> str:
        return 'Another sync is already running.'
