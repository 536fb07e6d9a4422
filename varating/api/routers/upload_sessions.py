"""
Upload session routes.

Sessions belong to their creator; another user's session answers 404.
Concurrent updates are rejected with 409, either by the explicit ``version``
check or by the ORM version counter at flush time.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm.exc import StaleDataError

from varating.api.models import UploadSessionCreate, UploadSessionUpdate
from varating.api.utils import get_current_user, require_service_role, unwrap
from varating.database.core.upload_funcs import (
    create_upload_session,
    delete_upload_session,
    get_upload_session,
    purge_expired_sessions,
    update_upload_session,
)

router = APIRouter(prefix="/upload-sessions", tags=["upload-sessions"])


@router.post("")
def create_session(data: UploadSessionCreate, user: dict = Depends(get_current_user)):
    """
    Response:
        200: {'sessionId': str, 'expiresAt': str}
        400: "Invalid files metadata"
    """
    return unwrap(create_upload_session(user_id=user["id"], files=data.files))


@router.post("/purge")
def purge_sessions(_: str = Depends(require_service_role)):
    return {"purged": purge_expired_sessions()}


@router.get("/{session_id}")
def read_session(session_id: UUID, user: dict = Depends(get_current_user)):
    return unwrap(get_upload_session(user_id=user["id"], session_id=session_id))


@router.put("/{session_id}")
def update_session(session_id: UUID, data: UploadSessionUpdate, user: dict = Depends(get_current_user)):
    """
    Update files and/or progress.

    Response:
        200: {'message': 'Session updated', 'version': int}
        400 invalid values, 404 unknown, 409 concurrent update, 410 expired
    """
    try:
        result = update_upload_session(
            user_id=user["id"],
            session_id=session_id,
            files=data.files,
            progress=data.progress,
            audit_log=data.auditLog,
            version=data.version,
        )
    except StaleDataError:
        raise HTTPException(status_code=409, detail="Session was modified concurrently")
    return unwrap(result)


@router.delete("/{session_id}")
def remove_session(session_id: UUID, user: dict = Depends(get_current_user)):
    return {"message": unwrap(delete_upload_session(user_id=user["id"], session_id=session_id))}
