"""
Service layer.

Contents
--------
- account_funcs      : registration, account deletion, reconciliation, impersonation
- billing_funcs      : checkout, portal, billing info, Stripe webhook processing
- token_funcs        : token ledger balance, credit, consumption and validation
- notification_funcs : token alerts, generic and contact emails, condition digests
- upload_funcs       : upload sessions
- document_funcs     : storage operations and ingestion persistence
- condition_funcs    : extracted conditions, estimates and condition updates
"""
