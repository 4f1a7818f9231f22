"""
Context Store endpoints.

Endpoints:
    POST /v1/init        - create an empty context
    POST /v1/add_file    - add or overwrite a file
    POST /v1/remove_file - remove a file
    GET  /v1/get_context - snapshot of a context
    POST /v1/search      - case-insensitive line search
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_store
from api.schemas import AckResponse, AddFileRequest, InitResponse, RemoveFileRequest, SearchRequest
from core.contracts.models import ContextSnapshot, SearchResult
from core.contracts.store import ContextStore

router = APIRouter(prefix="/v1", tags=["context"])


@router.post("/init", response_model=InitResponse)
async def init_context(store: ContextStore = Depends(get_store)) -> InitResponse:
    """Initialize a new context."""
    return InitResponse(context_id=await store.create())


@router.post("/add_file", response_model=AckResponse)
async def add_file(body: AddFileRequest, store: ContextStore = Depends(get_store)) -> AckResponse:
    """Add a file to the context."""
    await store.add_file(body.context_id, body.path, body.content, repo=body.repo, branch=body.branch)
    return AckResponse()


@router.post("/remove_file", response_model=AckResponse)
async def remove_file(body: RemoveFileRequest, store: ContextStore = Depends(get_store)) -> AckResponse:
    """Remove a file from the context."""
    await store.remove_file(body.context_id, body.path)
    return AckResponse()


@router.get("/get_context", response_model=ContextSnapshot)
async def get_context(context_id: str = Query(...), store: ContextStore = Depends(get_store)) -> ContextSnapshot:
    """Get the current context."""
    return await store.get_context(context_id)


@router.post("/search", response_model=SearchResult)
async def search(body: SearchRequest, store: ContextStore = Depends(get_store)) -> SearchResult:
    """Search in the context."""
    return await store.search(body.context_id, body.query)
