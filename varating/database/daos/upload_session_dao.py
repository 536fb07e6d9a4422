"""
UploadSession DAO

Purpose
-------
Persistence for `upload_sessions`:
- Create
- Owner-scoped lookup (another user's session is indistinguishable from a
  missing one)
- Delete, purge of expired rows
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.upload_session import UploadSession
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class UploadSessionDao:
    """
    Data Access Object (DAO) for upload sessions.
    """

    def createSession(self, session: Session, upload_session: UploadSession) -> UploadSession:
        try:
            session.add(upload_session)
            session.flush()
            return upload_session
        except Exception as e:
            logger.error(f"Error in UploadSessionDao.createSession. Error: {e}")
            raise e

    def fetchOwnedSession(self, session: Session, session_id: UUID, user_id: UUID):
        """
        Fetch a session owned by ``user_id``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        session_id : UUID
            Upload session id.
        user_id : UUID
            Caller; must be the creator.

        Returns
        -------
        UploadSession | None
            None when the session is unknown or belongs to someone else.
        """
        try:
            return (
                session.query(UploadSession)
                .filter(UploadSession.id == session_id, UploadSession.user_id == user_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in UploadSessionDao.fetchOwnedSession. Error: {e}")
            raise e

    def deleteOwnedSession(self, session: Session, session_id: UUID, user_id: UUID) -> int:
        try:
            return (
                session.query(UploadSession)
                .filter(UploadSession.id == session_id, UploadSession.user_id == user_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in UploadSessionDao.deleteOwnedSession. Error: {e}")
            raise e

    def deleteExpiredSessions(self, session: Session) -> int:
        try:
            return (
                session.query(UploadSession)
                .filter(UploadSession.expires_at < utcnow())
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in UploadSessionDao.deleteExpiredSessions. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return (
                session.query(UploadSession)
                .filter(UploadSession.user_id == user_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in UploadSessionDao.deleteByUserId. Error: {e}")
            raise e
