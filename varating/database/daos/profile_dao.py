"""
Profile DAO

Purpose
-------
Thin data-access layer for the `Profile` ORM entity:
- Creation (registration, reconciliation)
- Lookup by id, listing of ids, notification recipients
- Deletion (account removal)

Design
------
- The DAO expects an active SQLAlchemy `Session` supplied by the caller.
- Business rules live in `varating.database.core`; the DAO only persists.

Error Handling
--------------
- Each method catches generic `Exception`, logs `Error in ProfileDao.<method>`
  and re-raises.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.profile import Profile

logger = logging.getLogger("uvicorn")


class ProfileDao:
    """
    Data Access Object (DAO) for managing Profile entities.
    """

    def createProfile(self, session: Session, profile: Profile) -> Profile:
        """
        Stage a new profile.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        profile : Profile
            Profile entity to add.

        Returns
        -------
        Profile
            The staged entity.
        """
        try:
            session.add(profile)
            session.flush()
            return profile
        except Exception as e:
            logger.error(f"Error in ProfileDao.createProfile. Error: {e}")
            raise e

    def fetchProfileById(self, session: Session, user_id: UUID):
        """
        Fetch a profile by its user id.

        Returns
        -------
        Profile | None
        """
        try:
            return session.query(Profile).filter(Profile.id == user_id).one_or_none()
        except Exception as e:
            logger.error(f"Error in ProfileDao.fetchProfileById. Error: {e}")
            raise e

    def fetchAllProfileIds(self, session: Session) -> set:
        try:
            return {row[0] for row in session.query(Profile.id).all()}
        except Exception as e:
            logger.error(f"Error in ProfileDao.fetchAllProfileIds. Error: {e}")
            raise e

    def fetchProfilesWithNotifications(self, session: Session):
        """
        Fetch every profile that opted in to notification emails.

        Returns
        -------
        list[Profile]
        """
        try:
            return (
                session.query(Profile)
                .filter(Profile.email_notifications_enabled.is_(True))
                .order_by(Profile.created_at)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ProfileDao.fetchProfilesWithNotifications. Error: {e}")
            raise e

    def deleteProfile(self, session: Session, user_id: UUID) -> int:
        try:
            return session.query(Profile).filter(Profile.id == user_id).delete(synchronize_session=False)
        except Exception as e:
            logger.error(f"Error in ProfileDao.deleteProfile. Error: {e}")
            raise e
