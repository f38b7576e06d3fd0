from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from session_api.core.deps import require_store
from session_api.services.sessions.errors import StoreUnavailableError
from session_api.storage.base import SessionStore

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
def readyz(store: SessionStore = Depends(require_store)) -> dict[str, str]:
    try:
        store.ping()
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="session store not ready",
        ) from e
    return {"status": "ready"}
