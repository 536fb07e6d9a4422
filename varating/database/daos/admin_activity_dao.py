"""
AdminActivity DAO

Persistence for the `admin_activity_log` audit trail.
"""

import logging
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from varating.database.entities.admin_activity import AdminActivityLog

logger = logging.getLogger("uvicorn")


class AdminActivityDao:
    """
    Data Access Object (DAO) for admin activity entries.
    """

    def createEntry(self, session: Session, entry: AdminActivityLog) -> AdminActivityLog:
        try:
            session.add(entry)
            session.flush()
            return entry
        except Exception as e:
            logger.error(f"Error in AdminActivityDao.createEntry. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> int:
        """Delete entries where the user is either the admin or the target."""
        try:
            return (
                session.query(AdminActivityLog)
                .filter(or_(AdminActivityLog.admin_id == user_id, AdminActivityLog.target_user_id == user_id))
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in AdminActivityDao.deleteByUserId. Error: {e}")
            raise e
