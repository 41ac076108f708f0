from __future__ import annotations

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

import snapshot_codec
from errors import MissingCredential, MissingRemoteId, RecordsError, SyncFailed
from gist_client import RemoteDocumentService
from record_store import RecordStore
from sync_state import SyncStateMachine

logger = logging.getLogger(__name__)


class SyncClient:
    """Whole-snapshot push/pull between the record store and a remote document.

    Both operations go through the state machine, so only one can run at a
    time. Any failure leaves the local store as it was, moves the machine to
    ``error`` with a readable reason, and is re-raised as a ``RecordsError``.
    """

    def __init__(self, store: RecordStore, remote: RemoteDocumentService, state: Optional[SyncStateMachine] = None):
        self.store = store
        self.remote = remote
        self.state = state or SyncStateMachine()

    def _fail(self, operation: str, exc: Exception) -> RecordsError:
        error = exc if isinstance(exc, RecordsError) else SyncFailed(str(exc) or exc.__class__.__name__)
        self.state.fail(error.reason)
        logger.warning('Sync %s failed (%s): %s', operation, error.detail, error.reason)
        return error

    async def push(self) -> str:
        """Upload the current snapshot; returns the remote document id."""
        self.state.begin('push')
        try:
            credential = self.store.credential
            if not credential.token:
                raise MissingCredential()
            document = snapshot_codec.serialize(self.store.state())
            if credential.remoteId:
                await run_in_threadpool(
                    self.remote.update_document, credential.remoteId, document, token=credential.token
                )
                remote_id = credential.remoteId
            else:
                remote_id = await run_in_threadpool(self.remote.create_document, document, token=credential.token)
                self.store.set_credential(credential.token, remote_id)
        except Exception as exc:
            error = self._fail('push', exc)
            if error is exc:
                raise
            raise error from exc
        self.state.succeed()
        logger.info('Pushed records to remote document %s', remote_id)
        return remote_id

    async def pull(self) -> None:
        """Replace the local records with the remote snapshot, keeping the local credential."""
        self.state.begin('pull')
        try:
            credential = self.store.credential
            if not credential.token:
                raise MissingCredential()
            if not credential.remoteId:
                raise MissingRemoteId()
            document = await run_in_threadpool(
                self.remote.fetch_document, credential.remoteId, token=credential.token
            )
            restored = snapshot_codec.deserialize(document, credential=self.store.credential)
            self.store.replace_all(restored)
        except Exception as exc:
            error = self._fail('pull', exc)
            if error is exc:
                raise
            raise error from exc
        self.state.succeed()
        logger.info('Pulled records from remote document %s', credential.remoteId)
