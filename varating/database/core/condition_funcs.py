"""
Service-layer operations for extracted conditions and their notifications.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from varating.database.daos.condition_dao import ConditionDao
from varating.database.daos.document_dao import DocumentDao
from varating.database.daos.profile_dao import ProfileDao
from varating.database.entities.conditions import ConditionUpdate, UserCondition
from varating.database.helpers.columns import iso
from varating.database.helpers.transactionManagement import transactional

logger = logging.getLogger("uvicorn")


def condition_to_dict(condition: UserCondition) -> dict:
    return {
        "id": str(condition.id),
        "user_id": str(condition.user_id),
        "name": condition.name,
        "summary": condition.summary,
        "body_system": condition.body_system,
        "keywords": condition.keywords or [],
        "rating": condition.rating,
        "cfr_criteria": condition.cfr_criteria,
        "cfr_link": condition.cfr_link,
        "created_at": iso(condition.created_at),
        "updated_at": iso(condition.updated_at),
    }


@transactional
def load_document_chunks(session: Session, user_id: UUID, document_id: UUID) -> Optional[list]:
    """
    Chunks of a user's document, ordered by page then index.

    Returns
    -------
    list[dict] | None
        ``[{'page_number', 'content'}]``; None when the document does not
        exist for that user.
    """
    dao = DocumentDao()
    if dao.fetchOwnedDocument(session, document_id, user_id) is None:
        return None
    return [
        {"page_number": chunk.page_number, "content": chunk.content}
        for chunk in dao.fetchChunksByDocumentId(session, document_id)
    ]


@transactional
def store_conditions(session: Session, user_id: UUID, document_id: UUID, conditions: list) -> int:
    """
    Upsert extracted conditions and their disability estimates, and record a
    condition update for the notifier.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    user_id, document_id : UUID
        Owner and source document.
    conditions : list[dict]
        Enriched conditions with ``name``, ``excerpt``, ``body_system``,
        ``keywords``, ``rating``, ``severity``, ``cfrCriteria``, ``cfr_link``.

    Returns
    -------
    int
        Number of stored conditions.
    """
    dao = ConditionDao()
    if not conditions:
        return 0

    combined_rating = max((c.get("rating") or 10) for c in conditions)
    for condition in conditions:
        name = condition["name"]
        keywords = condition.get("keywords") or []
        dao.upsertUserCondition(
            session,
            user_id,
            name,
            summary=condition.get("excerpt"),
            body_system=condition.get("body_system") or "general",
            keywords=list(keywords),
            rating=condition.get("rating"),
            cfr_criteria=condition.get("cfrCriteria"),
            cfr_link=condition.get("cfr_link"),
        )
        dao.upsertDisabilityEstimate(
            session,
            user_id,
            document_id,
            name.lower(),
            condition_display=name,
            estimated_rating=condition.get("rating") or 10,
            combined_rating=combined_rating,
            cfr_criteria=condition.get("cfrCriteria"),
            excerpt=condition.get("excerpt"),
            matched_keywords=list(keywords),
            severity=condition.get("severity") or "mild",
        )

    summary = [{"name": c["name"], "rating": c.get("rating"), "body_system": c.get("body_system")} for c in conditions]
    dao.createConditionUpdate(session, ConditionUpdate(user_id=user_id, document_id=document_id, conditions=summary))
    return len(conditions)


@transactional
def mark_document_analyzed(session: Session, document_id: UUID) -> None:
    DocumentDao().updateDocumentStatus(session, document_id, processing_status="completed", rag_status="completed")


@transactional
def mark_document_analysis_failed(session: Session, document_id: UUID, error_message: str) -> None:
    DocumentDao().updateDocumentStatus(
        session, document_id, processing_status="failed", rag_status="failed", error_message=error_message
    )


@transactional
def list_user_conditions(session: Session, user_id: UUID) -> list:
    """User conditions as dicts, newest first."""
    return [condition_to_dict(c) for c in ConditionDao().fetchConditionsByUserId(session, user_id)]


@transactional
def get_user_condition(session: Session, user_id: UUID, condition_id: UUID) -> Optional[dict]:
    condition = ConditionDao().fetchOwnedCondition(session, user_id, condition_id)
    return condition_to_dict(condition) if condition else None


@transactional
def get_notification_recipients(session: Session) -> list:
    """
    Profiles opted in to notification emails.

    Returns
    -------
    list[dict]
        ``[{'id', 'email', 'full_name'}]``.
    """
    return [
        {"id": p.id, "email": p.email, "full_name": p.full_name}
        for p in ProfileDao().fetchProfilesWithNotifications(session)
    ]


@transactional
def get_pending_condition_updates(session: Session, user_id: UUID) -> list:
    """
    Unsent condition updates of a user.

    Returns
    -------
    list[dict]
        ``[{'id', 'document_id', 'conditions', 'conditions_count', 'created_at'}]``.
    """
    return [
        {
            "id": u.id,
            "document_id": u.document_id,
            "conditions": u.conditions or [],
            "conditions_count": u.conditions_count,
            "created_at": iso(u.created_at),
        }
        for u in ConditionDao().fetchPendingUpdates(session, user_id)
    ]


@transactional
def mark_condition_updates_sent(session: Session, update_ids: list) -> int:
    return ConditionDao().markUpdatesSent(session, update_ids)
