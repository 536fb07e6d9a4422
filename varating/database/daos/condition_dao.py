"""
Condition DAO

Purpose
-------
Persistence for the condition extractor's output:
- `user_conditions`: upsert on ``(user_id, name)``, listing, single lookup
- `disability_estimates`: upsert on ``(user_id, document_id, condition)``
- `condition_updates`: outbox rows for notification emails
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.conditions import ConditionUpdate, DisabilityEstimate, UserCondition
from varating.database.helpers.columns import utcnow

logger = logging.getLogger("uvicorn")


class ConditionDao:
    """
    Data Access Object (DAO) for conditions, estimates and condition updates.
    """

    def upsertUserCondition(self, session: Session, user_id: UUID, name: str, **fields) -> UserCondition:
        """
        Insert or update a user's condition (conflict key ``(user_id, name)``).

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        user_id : UUID
            Owner.
        name : str
            Condition name.
        **fields
            ``summary``, ``body_system``, ``keywords``, ``rating``,
            ``cfr_criteria``, ``cfr_link``.

        Returns
        -------
        UserCondition
        """
        try:
            condition = (
                session.query(UserCondition)
                .filter(UserCondition.user_id == user_id, UserCondition.name == name)
                .one_or_none()
            )
            if condition is None:
                condition = UserCondition(user_id=user_id, name=name, created_at=utcnow())
                session.add(condition)
            for column, value in fields.items():
                setattr(condition, column, value)
            condition.updated_at = utcnow()
            session.flush()
            return condition
        except Exception as e:
            logger.error(f"Error in ConditionDao.upsertUserCondition. Error: {e}")
            raise e

    def fetchConditionsByUserId(self, session: Session, user_id: UUID):
        """User conditions, newest first."""
        try:
            return (
                session.query(UserCondition)
                .filter(UserCondition.user_id == user_id)
                .order_by(UserCondition.created_at.desc())
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ConditionDao.fetchConditionsByUserId. Error: {e}")
            raise e

    def fetchOwnedCondition(self, session: Session, user_id: UUID, condition_id: UUID):
        try:
            return (
                session.query(UserCondition)
                .filter(UserCondition.user_id == user_id, UserCondition.id == condition_id)
                .one_or_none()
            )
        except Exception as e:
            logger.error(f"Error in ConditionDao.fetchOwnedCondition. Error: {e}")
            raise e

    def upsertDisabilityEstimate(
        self, session: Session, user_id: UUID, document_id: UUID, condition: str, **fields
    ) -> DisabilityEstimate:
        try:
            estimate = (
                session.query(DisabilityEstimate)
                .filter(
                    DisabilityEstimate.user_id == user_id,
                    DisabilityEstimate.document_id == document_id,
                    DisabilityEstimate.condition == condition,
                )
                .one_or_none()
            )
            if estimate is None:
                estimate = DisabilityEstimate(
                    user_id=user_id, document_id=document_id, condition=condition, created_at=utcnow()
                )
                session.add(estimate)
            for column, value in fields.items():
                setattr(estimate, column, value)
            session.flush()
            return estimate
        except Exception as e:
            logger.error(f"Error in ConditionDao.upsertDisabilityEstimate. Error: {e}")
            raise e

    def createConditionUpdate(self, session: Session, update: ConditionUpdate) -> ConditionUpdate:
        try:
            session.add(update)
            session.flush()
            return update
        except Exception as e:
            logger.error(f"Error in ConditionDao.createConditionUpdate. Error: {e}")
            raise e

    def fetchPendingUpdates(self, session: Session, user_id: UUID):
        """
        Condition updates of a user that have not been emailed yet, oldest first.

        Returns
        -------
        list[ConditionUpdate]
        """
        try:
            return (
                session.query(ConditionUpdate)
                .filter(ConditionUpdate.user_id == user_id, ConditionUpdate.notification_sent.is_(False))
                .order_by(ConditionUpdate.created_at)
                .all()
            )
        except Exception as e:
            logger.error(f"Error in ConditionDao.fetchPendingUpdates. Error: {e}")
            raise e

    def markUpdatesSent(self, session: Session, update_ids: list) -> int:
        try:
            if not update_ids:
                return 0
            return (
                session.query(ConditionUpdate)
                .filter(ConditionUpdate.id.in_(update_ids))
                .update(
                    {ConditionUpdate.notification_sent: True, ConditionUpdate.notification_sent_at: utcnow()},
                    synchronize_session=False,
                )
            )
        except Exception as e:
            logger.error(f"Error in ConditionDao.markUpdatesSent. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> dict:
        """
        Delete the user's condition updates, estimates and conditions.

        Returns
        -------
        dict
            Deleted row count per table.
        """
        try:
            counts = {}
            for model in (ConditionUpdate, DisabilityEstimate, UserCondition):
                counts[model.__tablename__] = (
                    session.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
                )
            return counts
        except Exception as e:
            logger.error(f"Error in ConditionDao.deleteByUserId. Error: {e}")
            raise e
