"""
VA Rating Assistant backend.

Contents
--------
- main        : FastAPI application (CORS, lifespan, routers)
- api         : routers, request models, auth dependencies, AWS helpers
- database    : settings, engine, entities, DAOs and service-layer functions
- integrations: Stripe, Supabase Auth admin, email providers, VA Lighthouse
- processing  : Lambda-style handlers (document ingestion, RAG agent, eCFR)
- calculator  : combined rating and compensation math
"""
