"""
Condition extraction (RAG agent)
================================

Reads the stored chunks of a processed document, asks the Bedrock agent to
list the medical conditions it finds, deduplicates and enriches them with
38 CFR Part 4 references, and stores them for the dashboard.

Results follow the service-layer convention: ``{'res': bool, 'detail': ...,
'status_code': int}``. The HTTP routes and the Lambda handlers translate
them.
"""

import json
import logging
from typing import Optional
from uuid import UUID

import httpx
from botocore.exceptions import ClientError
from sqlalchemy.exc import SQLAlchemyError

from varating.api.aws_funcs.bedrock import invoke_agent
from varating.database.config.config import settings
from varating.database.core.condition_funcs import (
    get_user_condition,
    list_user_conditions,
    load_document_chunks,
    mark_document_analysis_failed,
    mark_document_analyzed,
    store_conditions,
)
from varating.processing.cfr_search import ECFRError, format_agent_response, agent_parameter, search_conditions
from varating.processing.conditions import (
    extract_body_system_from_condition,
    format_condition_response,
    generate_cfr_link,
    generate_recommendation,
    merge_conditions,
    parse_agent_response,
)
from varating.processing.responses import create_error_response, create_success_response

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = '''
Analyze the following document excerpts and extract any phrases that appear to be medical conditions, diagnoses, or symptoms.

For each identified phrase, format it as a JSON object with the following keys: "name", "rating", "severity", "excerpt", "cfrCriteria", and "keywords".

- "name": The name of the condition.
- "rating": An estimated rating if mentioned, otherwise default to 10.
- "severity": "mild", "moderate", or "severe". If not mentioned, default to "mild".
- "excerpt": The exact text from the document where the condition was found.
- "cfrCriteria": The Code of Federal Regulations citation, if available.
- "keywords": A list of keywords related to the condition.

Document Excerpts:
"""
{excerpts}
"""

Your entire response must be a single JSON object. Do not include any other text.
The structure should be:
{{
  "conditions": [
    {{
      "name": "Example Condition",
      "rating": 10,
      "severity": "mild",
      "excerpt": "...",
      "cfrCriteria": "38 CFR §X.XX",
      "keywords": ["example"]
    }}
  ]
}}
'''


def _rating(value) -> int:
    try:
        return int(float(str(value).strip().rstrip("%")))
    except (TypeError, ValueError):
        return 10


def batch_chunks(chunks: list, batch_size: Optional[int] = None) -> list:
    """Agent inputs of ``batch_size`` chunks each, as ``"Page N: content"`` blocks."""
    size = batch_size or settings.CHUNK_BATCH_SIZE
    batches = []
    for start in range(0, len(chunks), size):
        batch = chunks[start:start + size]
        batches.append("\n\n".join(f"Page {c['page_number']}: {c['content']}" for c in batch))
    return batches


def get_cfr_data(condition: dict, body_system: str) -> Optional[dict]:
    """
    Best matching Part 4 section of a condition, or None.

    Lookup failures are logged and reported as None so extraction continues.
    """
    try:
        result = search_conditions(condition["name"], body_system, condition.get("keywords") or [condition["name"]])
    except (httpx.HTTPError, ECFRError) as e:
        logger.error(f"Could not get CFR data for {condition['name']}: {e}")
        return None
    if not result["sections"]:
        return None
    best = result["sections"][0]
    return {
        "id": best["identifier"],
        "identifier": best["identifier"],
        "title": best["label"],
        "content": best.get("content") or best.get("description"),
    }


def enrich_condition(condition: dict) -> dict:
    body_system = condition.get("bodySystem") or condition.get("body_system") or extract_body_system_from_condition(condition["name"])
    cfr_data = get_cfr_data(condition, body_system)
    enriched = dict(condition)
    enriched.update(
        rating=_rating(condition.get("rating")),
        severity=condition.get("severity") or "mild",
        body_system=body_system,
        cfr_data=cfr_data,
        cfr_link=generate_cfr_link(cfr_data["identifier"]) if cfr_data else None,
    )
    return enriched


def extract_conditions(user_id: UUID, document_id: UUID, batches: list, agent_client=None) -> list:
    """
    Ask the agent about each batch. A failing batch is logged and skipped.
    """
    found = []
    for index, excerpts in enumerate(batches):
        try:
            answer = invoke_agent(
                f"{user_id}-{document_id}-{index}", EXTRACTION_PROMPT.format(excerpts=excerpts), agent_client=agent_client
            )
        except (ClientError, ValueError) as e:
            logger.error(f"Error processing batch {index} of document {document_id}: {e}")
            continue
        conditions = parse_agent_response(answer["text"])["conditions"]
        logger.info(f"Found {len(conditions)} conditions in batch {index + 1}/{len(batches)}")
        found.extend(c for c in conditions if isinstance(c, dict))
    return found


def process_document(user_id: UUID, document_id: UUID, agent_client=None) -> dict:
    """
    Extract, deduplicate, enrich and store the conditions of a document.

    Returns
    -------
    dict
        - On success: ``{'res': True, 'detail': {message, uniqueConditionsFound, conditions}}``
          (``{message: "No content to process."}`` for a document without chunks)
        - On failure: 404 "Document not found" or 500 "Failed to store analysis results."
    """
    chunks = load_document_chunks(user_id=user_id, document_id=document_id)
    if chunks is None:
        return {"res": False, "detail": "Document not found", "status_code": 404}
    if not chunks:
        logger.info(f"No chunks for document {document_id}; nothing to process")
        return {"res": True, "detail": {"message": "No content to process."}}

    batches = batch_chunks(chunks)
    logger.info(f"Processing {len(chunks)} chunks of document {document_id} in {len(batches)} batches")
    unique = merge_conditions(extract_conditions(user_id, document_id, batches, agent_client))
    conditions = [enrich_condition(condition) for condition in unique]

    try:
        store_conditions(user_id=user_id, document_id=document_id, conditions=conditions)
        mark_document_analyzed(document_id=document_id)
    except SQLAlchemyError as e:
        logger.error(f"Error storing conditions of document {document_id}: {e}")
        mark_document_analysis_failed(document_id=document_id, error_message="Failed to store analysis results.")
        return {"res": False, "detail": "Failed to store analysis results.", "status_code": 500}

    logger.info(f"Document {document_id} processed: {len(conditions)} unique conditions")
    return {
        "res": True,
        "detail": {
            "message": "Document processed successfully",
            "uniqueConditionsFound": len(conditions),
            "conditions": conditions,
        },
    }


def get_conditions(user_id: UUID) -> dict:
    return {"res": True, "detail": list_user_conditions(user_id=user_id)}


def get_condition_detail(user_id: UUID, condition_id: UUID, runtime_client=None) -> dict:
    """
    One stored condition with its CFR sections and a rating recommendation.

    Returns
    -------
    dict
        ``format_condition_response`` output, 404 "Condition not found" or
        500 "Error processing condition: ...".
    """
    condition = get_user_condition(user_id=user_id, condition_id=condition_id)
    if condition is None:
        return {"res": False, "detail": "Condition not found", "status_code": 404}

    cfr_data = None
    if condition["keywords"]:
        try:
            cfr_data = search_conditions(condition["name"], condition["body_system"], condition["keywords"])
        except (httpx.HTTPError, ECFRError) as e:
            logger.error(f"Error getting CFR data for condition {condition_id}: {e}")

    try:
        recommendation = generate_recommendation(condition, cfr_data, runtime_client=runtime_client)
    except (ClientError, ValueError) as e:
        return {"res": False, "detail": f"Error processing condition: {e}", "status_code": 500}
    return {"res": True, "detail": format_condition_response(condition, cfr_data, recommendation)}


def handle_agent_action(event: dict) -> dict:
    """
    Action-group call made by the Bedrock agent (``searchCFR`` only).
    """
    function_name = event.get("function")
    action_group = event.get("actionGroup")
    if function_name != "searchCFR":
        return format_agent_response(function_name, f"Error processing {function_name}: Unknown function: {function_name}", action_group)

    query = agent_parameter(event.get("parameters"), "searchQuery")
    try:
        result = search_conditions(query, None, query.split(" "))
    except (httpx.HTTPError, ECFRError) as e:
        logger.error(f"Error in agent function {function_name}: {e}")
        return format_agent_response(function_name, f"Error processing {function_name}: {e}", action_group)

    sections = result["sections"]
    if not sections:
        text = (
            f'No specific CFR sections found for "{query}". This condition may need manual review or may fall '
            "under general disability rating criteria."
        )
    else:
        lines = [f'Found {len(sections)} CFR sections related to "{query}":\n']
        for section in sections[:3]:
            lines.append(f"**38 CFR § {section['identifier']}** - {section['label']}")
            if section.get("content"):
                lines.append(f"{section['content'][:200]}...\n")
        text = "\n".join(lines)
    return format_agent_response(function_name, text, action_group)


def handle_work_message(body: str, agent_client=None) -> dict:
    """
    Process one RAG work message ``{user_id, document_id, source}``.

    Returns
    -------
    dict
        Lambda envelope; 400 "Invalid work message format" when an id is
        missing or malformed.
    """
    try:
        message = json.loads(body)
        user_id = UUID(str(message["user_id"]))
        document_id = UUID(str(message["document_id"]))
    except (ValueError, KeyError, TypeError):
        logger.error(f"Invalid work message format: {body}")
        return create_error_response(400, "Invalid work message format")

    logger.info(f"Processing document {document_id} for user {user_id} (source: {message.get('source') or 'unknown'})")
    result = process_document(user_id, document_id, agent_client=agent_client)
    if not result["res"]:
        return create_error_response(result["status_code"], result["detail"])
    return create_success_response(result["detail"])
