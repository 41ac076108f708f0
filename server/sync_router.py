from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from errors import RecordsError
from records_router import http_error, require_session
from sync_client import SyncClient

sync_router = APIRouter(prefix='/api/sync', tags=['sync'])


class CredentialPayload(BaseModel):
    token: Optional[str] = None
    remoteId: Optional[str] = None


def _sync_client(request: Request) -> SyncClient:
    require_session(request)
    return request.app.state.sync_client


def _credential_view(client: SyncClient):
    credential = client.store.credential
    return {
        'hasToken': bool(credential.token),
        'token': credential.masked(),
        'remoteId': credential.remoteId,
        'connected': bool(credential.token and credential.remoteId),
    }


@sync_router.get('/credential')
def get_credential(request: Request):
    return _credential_view(_sync_client(request))


@sync_router.put('/credential')
def set_credential(request: Request, payload: CredentialPayload):
    client = _sync_client(request)
    client.store.set_credential(payload.token, payload.remoteId)
    return _credential_view(client)


@sync_router.delete('/credential')
def clear_credential(request: Request):
    client = _sync_client(request)
    client.store.clear_credential()
    return _credential_view(client)


@sync_router.post('/push')
async def push(request: Request):
    client = _sync_client(request)
    try:
        remote_id = await client.push()
    except RecordsError as exc:
        raise http_error(exc) from exc
    return {'ok': True, 'remoteId': remote_id, 'status': client.state.status()}


@sync_router.post('/pull')
async def pull(request: Request, confirm: bool = False):
    client = _sync_client(request)
    if not confirm:
        raise HTTPException(status_code=400, detail='confirmation-required')
    try:
        await client.pull()
    except RecordsError as exc:
        raise http_error(exc) from exc
    state = client.store.state()
    return {
        'ok': True,
        'counts': {
            'teachers': len(state.teachers),
            'timetable': len(state.timetable),
            'lessons': len(state.lessons),
            'homework': len(state.homework),
        },
        'status': client.state.status(),
    }


@sync_router.get('/status')
def sync_status(request: Request):
    return _sync_client(request).state.status()


@sync_router.post('/status/acknowledge')
def acknowledge_status(request: Request):
    client = _sync_client(request)
    client.state.acknowledge()
    return client.state.status()
