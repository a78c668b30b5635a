"""
SCORM Runtime Router

Opens a runtime session for a navigated-to item and relays protocol calls
from the content's API object to that session's data store.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from scorm_player.models.runtime import (
    ApiCall,
    ApiCallResult,
    SessionCreate,
    SessionOut,
)
from scorm_player.services.manifest_parser import find_item
from scorm_player.services.package_store import (
    PackageStore,
    get_package_store,
)
from scorm_player.services.runtime_api import UnknownApiCallError
from scorm_player.services.runtime_sessions import (
    RuntimeSessionRegistry,
    SessionNotFoundError,
    get_runtime_sessions,
)

router = APIRouter(prefix="/runtime", tags=["Runtime"])
logger = logging.getLogger(__name__)


@router.post(
    "/sessions",
    response_model=SessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def open_session(
    payload: SessionCreate,
    store: PackageStore = Depends(get_package_store),
    sessions: RuntimeSessionRegistry = Depends(get_runtime_sessions),
):
    package = await store.get_package(payload.packageId)
    if package is None:
        raise HTTPException(status_code=404, detail="Package not found")
    if not package.manifest.organizations:
        raise HTTPException(
            status_code=400, detail="Package has no organizations to launch"
        )

    item = find_item(package.manifest, payload.itemIdentifier)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")

    session = sessions.open(
        package_id=package.id,
        item_identifier=item.identifier,
        href=item.href,
        student_id=payload.studentId,
        student_name=payload.studentName,
    )
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=SessionOut)
async def get_session_state(
    session_id: str,
    sessions: RuntimeSessionRegistry = Depends(get_runtime_sessions),
):
    try:
        return sessions.get(session_id).snapshot()
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/sessions/{session_id}/calls", response_model=ApiCallResult)
async def call_api(
    session_id: str,
    payload: ApiCall,
    sessions: RuntimeSessionRegistry = Depends(get_runtime_sessions),
):
    """Relay one legacy (LMS*) or current protocol call."""
    try:
        session = sessions.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")

    try:
        result = session.call(payload.method, *payload.args)
    except UnknownApiCallError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TypeError:
        raise HTTPException(
            status_code=400,
            detail=f"Wrong number of arguments for {payload.method}",
        )

    return ApiCallResult(
        method=payload.method,
        result=result,
        lastError=session.context.data_store.get_last_error(),
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    sessions: RuntimeSessionRegistry = Depends(get_runtime_sessions),
):
    try:
        sessions.close(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return None
