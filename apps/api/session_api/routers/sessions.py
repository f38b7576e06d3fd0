from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from session_api.core.deps import require_allocator, require_allocator_config, require_store
from session_api.schemas.sessions import (
    SessionCreateRequest,
    SessionCreateResponse,
    SessionRecordOut,
)
from session_api.services.sessions.allocator import AllocatorConfig, SessionAllocator
from session_api.services.sessions.errors import (
    AllocationExhaustedError,
    StoreUnavailableError,
    ValidationError,
)
from session_api.services.sessions.lookup import get_session_by_code
from session_api.services.sessions.types import isoformat_utc
from session_api.storage.base import SessionStore

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

STORE_UNAVAILABLE_DETAIL = "Service temporarily unavailable, try again later"


@router.post(
    "",
    response_model=SessionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def sessions_create(
    body: SessionCreateRequest,
    allocator: SessionAllocator = Depends(require_allocator),
) -> SessionCreateResponse:
    try:
        ticket = allocator.allocate(expires_at=body.expires_at, payload=body.payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except AllocationExhaustedError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not allocate code, try again",
            headers={"Retry-After": "1"},
        ) from e
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_UNAVAILABLE_DETAIL
        ) from e

    return SessionCreateResponse(code=ticket.code, expires_at=isoformat_utc(ticket.expires_at))


@router.get("/{code}", response_model=SessionRecordOut)
def sessions_get(
    code: str,
    store: SessionStore = Depends(require_store),
    config: AllocatorConfig = Depends(require_allocator_config),
) -> SessionRecordOut:
    try:
        record = get_session_by_code(store=store, config=config, code=code)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=STORE_UNAVAILABLE_DETAIL
        ) from e

    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found or expired"
        )
    return SessionRecordOut.model_validate(record)
