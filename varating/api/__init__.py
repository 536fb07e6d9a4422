"""
API Package: FastAPI routers • request models • auth dependencies • AWS
=======================================================================

Contents
--------
- routers
    One ``APIRouter`` per area: account, billing, calculator, chat, documents,
    email, rag_agent, tokens, upload_sessions, va, webhook.

- models
    Pydantic request models. Fields whose error messages are part of the
    API contract are typed loosely and validated by the service layer.

- utils
    JWT helpers and dependencies:
      • verify_token / create_access_token: Supabase HS256 tokens
      • get_current_user: ``Authorization: Bearer`` → ``{id, email, role}``
      • require_service_role: cron and service endpoints
      • get_rag_caller: user token or RAG agent API key
      • unwrap: service result dict → body or HTTPException

- aws_funcs
    boto3 helpers for S3, Textract, SQS and Bedrock.
"""
