import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import settings
from gist_client import GistDocumentService, RemoteDocumentService
from record_store import RecordStore
from records_router import records_router
from storage import default_backend
from sync_client import SyncClient
from sync_router import sync_router

logger = logging.getLogger(__name__)


def create_app(store: Optional[RecordStore] = None, remote: Optional[RemoteDocumentService] = None) -> FastAPI:
    if store is None:
        store = RecordStore(default_backend()).load()
    app = FastAPI(title='Academy Records')
    app.state.record_store = store
    app.state.sync_client = SyncClient(store, remote or GistDocumentService())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(records_router)
    app.include_router(sync_router)

    @app.get("/health")
    def health():
        return {"ok": True, "saveError": store.save_error}

    if store.load_warning:
        logger.warning('Started with empty records: %s', store.load_warning)
    return app


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
