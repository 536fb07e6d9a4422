"""
Service-layer operations for upload sessions.

Sessions belong to their creator: every lookup is scoped to the caller, so a
foreign session reads exactly like a missing one ("Session not found").

Concurrency is optimistic. The ORM ``version_id_col`` turns an interleaved
write into ``sqlalchemy.orm.exc.StaleDataError`` at flush time; a client that
sends the version it last saw gets a 409 before any write is attempted.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.config.config import settings
from varating.database.daos.upload_session_dao import UploadSessionDao
from varating.database.entities.upload_session import UploadSession
from varating.database.helpers.columns import as_utc, iso, utcnow
from varating.database.helpers.transactionManagement import transactional

logger = logging.getLogger("uvicorn")

NOT_FOUND = {"res": False, "detail": "Session not found", "status_code": 404}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_expired(upload_session: UploadSession) -> bool:
    return as_utc(upload_session.expires_at) <= utcnow()


@transactional
def create_upload_session(session: Session, user_id: UUID, files) -> dict:
    """
    Open an upload session.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Creator.
    files : list
        Client file metadata.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {'sessionId', 'expiresAt'}}``
        - On failure: ``{'res': False, 'detail': 'Invalid files metadata', 'status_code': 400}``
    """
    if not isinstance(files, list):
        return {"res": False, "detail": "Invalid files metadata", "status_code": 400}
    upload_session = UploadSession(
        user_id=user_id, files=files, ttl_minutes=settings.UPLOAD_SESSION_TTL_MINUTES
    )
    UploadSessionDao().createSession(session, upload_session)
    logger.info(f"Upload session {upload_session.id} created for {user_id}")
    return {
        "res": True,
        "detail": {"sessionId": str(upload_session.id), "expiresAt": iso(upload_session.expires_at)},
    }


@transactional
def get_upload_session(session: Session, user_id: UUID, session_id: UUID) -> dict:
    """
    Read an upload session owned by the caller.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {id, files, progress, createdAt, updatedAt,
        expiresAt, auditLog, version, expired}}`` or the not-found failure.
    """
    upload_session = UploadSessionDao().fetchOwnedSession(session, session_id, user_id)
    if upload_session is None:
        return NOT_FOUND
    return {
        "res": True,
        "detail": {
            "id": str(upload_session.id),
            "files": upload_session.files,
            "progress": upload_session.progress,
            "createdAt": iso(upload_session.created_at),
            "updatedAt": iso(upload_session.updated_at),
            "expiresAt": iso(upload_session.expires_at),
            "auditLog": upload_session.audit_log,
            "version": upload_session.version,
            "expired": _is_expired(upload_session),
        },
    }


@transactional
def update_upload_session(
    session: Session,
    user_id: UUID,
    session_id: UUID,
    files=None,
    progress=None,
    audit_log=None,
    version=None,
) -> dict:
    """
    Update files and/or progress of an upload session.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id : UUID
        Caller; must own the session.
    session_id : UUID
        Upload session id.
    files : list, optional
        Replacement file metadata.
    progress : int | float, optional
        New progress, 0..100.
    audit_log : list, optional
        Client audit entries, appended after the server's entries.
    version : int, optional
        Version the client last read.

    Returns
    -------
    dict
        ``{'res': True, 'detail': {'message': 'Session updated', 'version': int}}``
        or a failure carrying 400/404/409/410.

    Raises
    ------
    sqlalchemy.orm.exc.StaleDataError
        When another writer updated the row between read and flush.
    """
    dao = UploadSessionDao()
    upload_session = dao.fetchOwnedSession(session, session_id, user_id)
    if upload_session is None:
        return NOT_FOUND
    if _is_expired(upload_session):
        return {"res": False, "detail": "Session expired", "status_code": 410}
    if progress is not None and (not _is_number(progress) or progress < 0 or progress > 100):
        return {"res": False, "detail": "Progress must be a number between 0 and 100", "status_code": 400}
    if files is not None and not isinstance(files, list):
        return {"res": False, "detail": "Invalid files metadata", "status_code": 400}
    if audit_log is not None and not isinstance(audit_log, list):
        return {"res": False, "detail": "Invalid audit log", "status_code": 400}
    if version is not None and version != upload_session.version:
        return {"res": False, "detail": "Session was modified concurrently", "status_code": 409}

    now = utcnow()
    changes = []
    if files is not None:
        upload_session.files = files
        changes.append("files")
    if progress is not None:
        upload_session.progress = int(progress)
        changes.append("progress")

    # JSON columns are reassigned so the change is tracked.
    entries = list(upload_session.audit_log or [])
    entries.extend(audit_log or [])
    entries.append({"timestamp": now.isoformat(), "action": "updated", "userId": str(user_id), "changes": changes})
    upload_session.audit_log = entries
    upload_session.updated_at = now

    session.flush()
    return {"res": True, "detail": {"message": "Session updated", "version": upload_session.version}}


@transactional
def delete_upload_session(session: Session, user_id: UUID, session_id: UUID) -> dict:
    deleted = UploadSessionDao().deleteOwnedSession(session, session_id, user_id)
    if not deleted:
        return NOT_FOUND
    return {"res": True, "detail": "Session deleted"}


@transactional
def purge_expired_sessions(session: Session) -> int:
    """
    Delete every expired upload session.

    Returns
    -------
    int
        Number of purged sessions.
    """
    purged = UploadSessionDao().deleteExpiredSessions(session)
    logger.info(f"Purged {purged} expired upload sessions")
    return purged
