"""
Entities Package: SQLAlchemy 2.0 ORM Models (PostgreSQL + UUID + UTC)
======================================================================

Contents
--------
- profile        : Profile
- billing        : StripeCustomer, StripeSubscription, StripeOrder, Payment,
                   TokenPurchase, UserTokens, ProcessedWebhookEvent
- documents      : Document, DocumentChunk, MedicalEntity, TextractJob
- conditions     : UserCondition, DisabilityEstimate, ConditionUpdate
- upload_session : UploadSession
- admin_activity : AdminActivityLog

Importing the package registers every table on the shared metadata.
"""

from varating.database.entities import admin_activity, billing, conditions, documents, profile, upload_session  # noqa: F401
