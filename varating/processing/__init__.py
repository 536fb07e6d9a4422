"""
Event-driven processing: Lambda-style entry points and the pipelines behind
them.

Contents
--------
- handlers         : document processor, RAG agent and eCFR entry points
- ingestion        : S3 upload → Textract → chunks → RAG work queue
- textract_results : pure transformation of Textract blocks
- rag_agent        : condition extraction and condition detail
- conditions       : agent response parsing, deduplication, recommendations
- cfr_search       : 38 CFR Part 4 lookups on the eCFR API
- responses        : Lambda response envelopes
"""
