from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from libs.core.admission import AdmissionDecision, AdmissionStatus
from libs.core.exceptions import (
    AdmissionError,
    EnrichmentInProgressError,
    NoteLoadError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from libs.core.models import SourceType
from libs.core.stream_events import SSE_HEADERS, to_sse
from libs.db import RecordStore, SqlRecordStore
from libs.llm import EmbeddingsProvider, ModelGateway, ReplicateLLMClient
from libs.logging import setup_logging
from libs.usecases import (
    CreateNote,
    EnrichmentGuard,
    EnrichNote,
    Search,
    StreamNoteEnrichment,
    UpdateNote,
)


# ---------------------------------------------------------------------------
# Dependency factories


def get_store() -> RecordStore:
    return SqlRecordStore()


def get_llm_client() -> ReplicateLLMClient:
    return ReplicateLLMClient()


def get_embeddings_provider() -> EmbeddingsProvider:
    return EmbeddingsProvider()


@lru_cache
def get_guard() -> EnrichmentGuard:
    # One guard per process so concurrent requests see each other's runs
    return EnrichmentGuard()


def get_gateway(
    llm: ReplicateLLMClient = Depends(get_llm_client),
    emb: EmbeddingsProvider = Depends(get_embeddings_provider),
) -> ModelGateway:
    return ModelGateway(llm, emb)


def current_user(
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Owner id forwarded by the upstream auth layer."""
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id


# ---------------------------------------------------------------------------
# Pydantic schemas


class CreateNoteRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    source_type: SourceType = SourceType.TEXT
    file_url: Optional[str] = None


class UpdateNoteRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    content: Optional[str] = None
    tags: Optional[List[str]] = None


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    tags: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# FastAPI application


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    yield


app = FastAPI(title="Smart Notes API", lifespan=lifespan)


# Factory dependencies for use cases -------------------------------------------------


def create_note_uc(store: RecordStore = Depends(get_store)) -> CreateNote:
    return CreateNote(store)


def update_note_uc(store: RecordStore = Depends(get_store)) -> UpdateNote:
    return UpdateNote(store)


def enrich_note_uc(
    store: RecordStore = Depends(get_store),
    gateway: ModelGateway = Depends(get_gateway),
    guard: EnrichmentGuard = Depends(get_guard),
) -> EnrichNote:
    return EnrichNote(store, gateway, guard)


def stream_note_uc(
    store: RecordStore = Depends(get_store),
    gateway: ModelGateway = Depends(get_gateway),
    guard: EnrichmentGuard = Depends(get_guard),
) -> StreamNoteEnrichment:
    return StreamNoteEnrichment(store, gateway, guard)


def search_uc(store: RecordStore = Depends(get_store)) -> Search:
    return Search(store)


# Helpers --------------------------------------------------------------------


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _admission_payload(decision: AdmissionDecision) -> Dict[str, Any]:
    return {
        "status": decision.status.value,
        "eligible": decision.eligible,
        "wordCount": decision.word_count,
        "charCount": decision.char_count,
    }


def _admission_error(exc: AdmissionError) -> JSONResponse:
    decision = exc.decision
    if decision.status is AdmissionStatus.TOO_LONG:
        counts = {"wordCount": decision.word_count}
    else:
        counts = {"charCount": decision.char_count}
    return _error(
        status.HTTP_400_BAD_REQUEST,
        decision.error or "",
        **counts,
        message=decision.message,
    )


# Routes ---------------------------------------------------------------------


@app.post("/notes", status_code=status.HTTP_201_CREATED)
async def create_note(
    req: CreateNoteRequest,
    uc: CreateNote = Depends(create_note_uc),
    user: str = Depends(current_user),
) -> JSONResponse:
    try:
        note, decision = await uc(
            user,
            title=req.title,
            content=req.content,
            source_type=req.source_type,
            file_url=req.file_url,
        )
    except PersistenceError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create note")
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "note": note.model_dump(mode="json"),
            "admission": _admission_payload(decision),
        },
    )


@app.get("/notes")
async def list_notes(
    store: RecordStore = Depends(get_store),
    user: str = Depends(current_user),
) -> Dict[str, Any]:
    notes = await store.list_notes(user)
    return {"notes": [n.model_dump(mode="json") for n in notes]}


@app.get("/notes/{note_id}")
async def get_note(
    note_id: str,
    store: RecordStore = Depends(get_store),
    user: str = Depends(current_user),
) -> Any:
    note = await store.get_note(note_id, user)
    if note is None:
        return _error(status.HTTP_404_NOT_FOUND, "Note not found")
    return {"note": note.model_dump(mode="json")}


@app.patch("/notes/{note_id}")
async def update_note(
    note_id: str,
    req: UpdateNoteRequest,
    uc: UpdateNote = Depends(update_note_uc),
    user: str = Depends(current_user),
) -> Any:
    try:
        note = await uc(note_id, user, req.model_dump(exclude_unset=True))
    except NotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, "Note not found")
    except PersistenceError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update note")
    return {"note": note.model_dump(mode="json")}


@app.post("/notes/{note_id}/process")
async def process_note(
    note_id: str,
    uc: EnrichNote = Depends(enrich_note_uc),
    user: str = Depends(current_user),
) -> Any:
    try:
        result = await uc(note_id, user)
    except NotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, "Note not found")
    except NoteLoadError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load note")
    except AdmissionError as exc:
        return _admission_error(exc)
    except EnrichmentInProgressError:
        return _error(status.HTTP_409_CONFLICT, "Note is already being processed")
    except PersistenceError:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update note with AI data"
        )
    return {
        "success": True,
        "summary": result.summary,
        "tags": result.tags,
        "chunks": result.chunks,
        "tokens": result.tokens,
    }


@app.get("/notes/{note_id}/stream")
async def stream_note(
    note_id: str,
    request: Request,
    uc: StreamNoteEnrichment = Depends(stream_note_uc),
    user: str = Depends(current_user),
) -> Any:
    try:
        note = await uc.prepare(note_id, user)
    except NotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, "Note not found")
    except NoteLoadError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load note")
    except AdmissionError as exc:
        return _admission_error(exc)

    async def body() -> AsyncIterator[str]:
        async for event in uc.events(note, user, is_disconnected=request.is_disconnected):
            yield to_sse(event)

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)


@app.post("/search")
async def search(
    req: SearchRequest,
    uc: Search = Depends(search_uc),
    user: str = Depends(current_user),
) -> Any:
    try:
        notes = await uc(user, req.query, req.tags)
    except ValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PersistenceError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Search failed")
    return {"results": [n.model_dump(mode="json") for n in notes], "count": len(notes)}


__all__ = ["app"]
