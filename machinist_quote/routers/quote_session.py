"""
Quote Session API: the browser's view of one quoting session.

POST   /api/session               Start a new session (defaults, no file)
GET    /api/session/{id}          Current view: phase, loading, error, quote
POST   /api/session/{id}/file     Upload a CAD file, triggers a fresh quote
DELETE /api/session/{id}/file     Remove the file, back to idle
PUT    /api/session/{id}/options  Replace the options, re-quoted once settled
DELETE /api/session/{id}          Close the session
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..catalog import ALLOWED_EXTENSIONS, get_extension
from ..config import settings
from ..schemas import CadFile, QuoteOptions
from ..sessions import SessionStore, get_provider, get_store

router = APIRouter(prefix="/session", tags=["quote-session"])


@router.post("")
async def start_session(
    store: SessionStore = Depends(get_store),
    provider=Depends(get_provider),
):
    session = store.create(provider)
    return session.view()


@router.get("/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    session = store.require(session_id)
    return session.view()


@router.post("/{session_id}/file")
async def upload_file(
    session_id: str,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_store),
):
    """
    Select a CAD file for the session.

    - Validates file type (stl, step, stp, iges, igs, obj, 3mf)
    - Validates file size (max MAX_UPLOAD_BYTES)
    - Clears any previous quote and requests a new one immediately
    """
    session = store.require(session_id)

    ext = get_extension(file.filename or "")
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type '{ext}' not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    file_bytes = await file.read()

    if len(file_bytes) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=400,
            detail=(
                f"File too large ({len(file_bytes) / 1024 / 1024:.1f}MB). "
                f"Maximum is {settings.MAX_UPLOAD_BYTES / 1024 / 1024:.0f}MB."
            ),
        )

    if len(file_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file.")

    session.select_file(CadFile(
        name=file.filename,
        size=len(file_bytes),
        content_type=file.content_type,
    ))
    return session.view()


@router.delete("/{session_id}/file")
async def clear_file(session_id: str, store: SessionStore = Depends(get_store)):
    session = store.require(session_id)
    session.clear_file()
    return session.view()


@router.put("/{session_id}/options")
async def change_options(
    session_id: str,
    options: QuoteOptions,
    store: SessionStore = Depends(get_store),
):
    """Replace the options snapshot. The new quote is requested once edits settle."""
    session = store.require(session_id)
    session.change_options(options)
    return session.view()


@router.delete("/{session_id}")
async def close_session(session_id: str, store: SessionStore = Depends(get_store)):
    if not store.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True, "session_id": session_id}
