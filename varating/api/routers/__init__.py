"""
HTTP routers, one ``APIRouter`` per area.

Contents
--------
account, billing, calculator, chat, documents, email, rag_agent,
tokens, upload_sessions, va, webhook
"""
