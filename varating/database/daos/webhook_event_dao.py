"""
WebhookEvent DAO

Purpose
-------
Persistence for `processed_webhook_events`, the record of Stripe events whose
side effects have been committed.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.entities.billing import ProcessedWebhookEvent

logger = logging.getLogger("uvicorn")


class WebhookEventDao:
    """
    Data Access Object (DAO) for processed Stripe events.
    """

    def fetchEvent(self, session: Session, event_id: str):
        try:
            return session.get(ProcessedWebhookEvent, event_id)
        except Exception as e:
            logger.error(f"Error in WebhookEventDao.fetchEvent. Error: {e}")
            raise e

    def eventExists(self, session: Session, event_id: str) -> bool:
        """Query the table itself, bypassing the identity map."""
        try:
            return (
                session.query(ProcessedWebhookEvent.event_id)
                .filter(ProcessedWebhookEvent.event_id == event_id)
                .first()
                is not None
            )
        except Exception as e:
            logger.error(f"Error in WebhookEventDao.eventExists. Error: {e}")
            raise e

    def createEvent(self, session: Session, event_id: str, event_type: str, user_id: Optional[UUID] = None):
        """
        Record an event as processed.

        The row is flushed immediately so that a concurrent delivery of the
        same event fails here with an ``IntegrityError``.
        """
        try:
            event = ProcessedWebhookEvent(event_id=event_id, event_type=event_type, user_id=user_id)
            session.add(event)
            session.flush()
            return event
        except Exception as e:
            logger.error(f"Error in WebhookEventDao.createEvent. Error: {e}")
            raise e

    def deleteByUserId(self, session: Session, user_id: UUID) -> int:
        try:
            return (
                session.query(ProcessedWebhookEvent)
                .filter(ProcessedWebhookEvent.user_id == user_id)
                .delete(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Error in WebhookEventDao.deleteByUserId. Error: {e}")
            raise e
