"""
DAOs Package: Data Access Layer (SQLAlchemy 2.0)
=================================================

Conventions
-----------
- SQLAlchemy 2.0 typed mappings and ``select()`` statements
- Session lifecycle (open/commit/rollback) is handled by callers
- Every method logs ``Error in <Dao>.<method>`` and re-raises

Contents
--------
- ProfileDao, AdminActivityDao
- StripeCustomerDao, StripeSubscriptionDao, StripeOrderDao, WebhookEventDao
- PaymentDao, TokenDao
- DocumentDao, ConditionDao
- UploadSessionDao
"""
