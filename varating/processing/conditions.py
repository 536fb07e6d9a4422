"""
Condition helpers for the RAG agent
===================================

- ``parse_agent_response``: turns the agent's free-form answer into
  ``{'conditions': [...]}``; falls back to regex extraction and never raises
- ``normalize_condition_name`` / ``are_conditions_similar``: deduplication
- ``extract_body_system_from_condition`` / ``generate_cfr_link``: enrichment
- ``generate_recommendation`` / ``format_condition_response``: the detail
  view of one stored condition
"""

import json
import logging
import re
from typing import Optional

from botocore.exceptions import ClientError
from json_repair import repair_json

from varating.api.aws_funcs.bedrock import invoke_model
from varating.database.helpers.columns import utcnow

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
RAW_OBJECT = re.compile(r"\{[\s\S]*\}")
TRAILING_COMMA = re.compile(r",\s*([\]}])")

TEXT_PATTERNS = (
    re.compile(r"(?:diagnosed with|diagnosis of|suffering from|treated for|condition:)\s*([^.\n]+)", re.IGNORECASE),
    re.compile(r"(?:pain in|injury to|surgery on|therapy for)\s*([^.\n]+)", re.IGNORECASE),
    re.compile(r"(?:chronic|acute|severe|mild)\s+([a-zA-Z\s]+?)(?:\s|,|\.)", re.IGNORECASE),
)

SYNONYMS = {
    "tinnitus": ["ringing ears", "ear ringing"],
    "ptsd": ["post traumatic stress", "posttraumatic stress"],
    "anxiety": ["anxious", "panic"],
    "depression": ["depressive", "mood disorder"],
    "sleep apnea": ["sleep disorder", "breathing disorder"],
    "hypertension": ["high blood pressure", "elevated blood pressure"],
}

BODY_SYSTEM_KEYWORDS = (
    ("mental", ("mental", "anxiety", "depression", "ptsd")),
    ("musculoskeletal", ("shoulder", "knee", "back", "joint", "muscle")),
    ("cardiovascular", ("heart", "cardiac", "blood")),
    ("respiratory", ("lung", "respiratory", "breathing")),
    ("hearing", ("ear", "hearing", "tinnitus")),
    ("vision", ("eye", "vision", "sight")),
    ("digestive", ("digestive", "stomach", "intestine")),
    ("endocrine", ("thyroid", "diabetes", "hormone")),
    ("skin", ("skin", "dermatitis")),
)

CFR_SECTION_URL = "https://www.ecfr.gov/current/title-38/chapter-I/part-4/section-{identifier}"


def _load_json(text: str):
    cleaned = TRAILING_COMMA.sub(r"\1", text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        return json.loads(repair_json(cleaned))


def _text_conditions(response: str) -> list:
    conditions = []
    seen = set()
    for pattern in TEXT_PATTERNS:
        for match in pattern.finditer(response):
            name = match.group(1).strip()
            if not 3 < len(name) < 100 or name.lower() in seen:
                continue
            seen.add(name.lower())
            conditions.append(
                {
                    "name": name,
                    "rating": 10,
                    "severity": "mild",
                    "excerpt": match.group(0),
                    "cfrCriteria": "TBD",
                    "keywords": [word for word in name.lower().split() if len(word) > 2],
                }
            )
    return conditions


def parse_agent_response(response: str) -> dict:
    """
    Extract conditions from an agent answer.

    Looks for a fenced ```json block first, then the widest ``{...}`` span.
    Trailing commas are dropped and ``json_repair`` is tried before giving
    up on JSON. Without a ``conditions`` list the text itself is scanned for
    condition phrases.

    Returns
    -------
    dict
        ``{'conditions': list}``, possibly empty.
    """
    if not response:
        return {"conditions": []}

    fenced = FENCED_JSON.search(response)
    raw = RAW_OBJECT.search(response)
    candidate = fenced.group(1) if fenced else (raw.group(0) if raw else None)
    if candidate:
        try:
            parsed = _load_json(candidate)
            if isinstance(parsed, dict) and isinstance(parsed.get("conditions"), list):
                return parsed
            logger.warning("Parsed agent JSON without a conditions list")
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse agent JSON: {e}")

    logger.warning("Falling back to text parsing of the agent response")
    return {"conditions": _text_conditions(response)}


def normalize_condition_name(name: Optional[str]) -> str:
    """
    Lowercased name without punctuation, laterality or severity words.

    ``"Chronic Left Knee Pain!"`` -> ``"knee pain"``.
    """
    if not name:
        return "unknown"
    normalized = re.sub(r"[^\w\s]", "", name.strip().lower())
    normalized = re.sub(r"\s+", " ", normalized)
    normalized = re.sub(r"\b(left|right|bilateral|l|r)\b", "", normalized)
    normalized = re.sub(r"\b(chronic|acute|severe|mild|moderate)\b", "", normalized)
    return re.sub(r"\s+", " ", normalized).strip()


def are_conditions_similar(name1: Optional[str], name2: Optional[str]) -> bool:
    norm1 = normalize_condition_name(name1)
    norm2 = normalize_condition_name(name2)
    # nothing left after stripping qualifiers, e.g. "Chronic"
    if not norm1 or not norm2:
        return (name1 or "").strip().lower() == (name2 or "").strip().lower()
    if norm1 == norm2 or norm1 in norm2 or norm2 in norm1:
        return True
    for key, values in SYNONYMS.items():
        terms = [key] + values
        if any(term in norm1 for term in terms) and any(term in norm2 for term in terms):
            return True
    return False


def merge_conditions(conditions: list) -> list:
    """
    Deduplicate conditions in order.

    A condition similar to an earlier one is folded into it: excerpts are
    joined with ``" | "`` and keywords are unioned.
    """
    unique = []
    for condition in conditions:
        if not condition.get("name"):
            continue
        existing = next((u for u in unique if are_conditions_similar(u["name"], condition["name"])), None)
        if existing is None:
            unique.append(dict(condition))
            continue
        logger.info(f'Deduplicating "{condition["name"]}" into "{existing["name"]}"')
        existing["excerpt"] = f"{existing.get('excerpt') or ''} | {condition.get('excerpt') or ''}"
        if condition.get("keywords"):
            keywords = list(existing.get("keywords") or [])
            keywords.extend(k for k in condition["keywords"] if k not in keywords)
            existing["keywords"] = keywords
    return unique


def extract_body_system_from_condition(condition_name: str) -> str:
    name = (condition_name or "").lower()
    for system, keywords in BODY_SYSTEM_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return system
    return "general"


def generate_cfr_link(identifier: Optional[str]) -> Optional[str]:
    """eCFR link of a Part 4 section (``"4.130"`` or ``"130"``)."""
    if not identifier:
        return None
    identifier = str(identifier)
    if not identifier.startswith("4."):
        identifier = f"4.{identifier}"
    return CFR_SECTION_URL.format(identifier=identifier)


def _recommendation_prompt(condition: dict, cfr_data: Optional[dict]) -> str:
    sections = (cfr_data or {}).get("sections") or []
    if sections:
        cfr_text = "\n".join(
            f"Section: {s.get('identifier')}\nTitle: {s.get('label')}\nContent: {s.get('content')}\n" for s in sections
        )
    else:
        cfr_text = "No specific CFR sections found for this condition."
    return f"""
You are a VA disability claims expert. Based on the following information, provide a recommendation:

Condition: {condition.get('name')}
Description: {condition.get('summary') or condition.get('description') or 'No description provided'}
Symptoms: {condition.get('symptoms') or 'No symptoms provided'}

CFR Information:
{cfr_text}

Please provide:
1. A brief summary of how this condition relates to VA disability
2. The recommended VA percentage rating (0%, 10%, 20%, 30%, 40%, 50%, 60%, 70%, 80%, 90%, or 100%)
3. Key factors that support this rating

Format your response as JSON:
{{
    "summary": "Brief summary here",
    "recommendedPercentage": 30,
    "supportingFactors": ["Factor 1", "Factor 2", "Factor 3"]
}}
"""


def fallback_recommendation(condition_name: str) -> dict:
    return {
        "summary": (
            f"Based on the condition {condition_name}, this appears to be a service-connected disability "
            "that may qualify for VA benefits."
        ),
        "recommendedPercentage": 10,
        "supportingFactors": [
            "Condition is service-connected",
            "May require medical evaluation for specific rating",
            "Consult with VA representative for detailed assessment",
        ],
    }


def generate_recommendation(condition: dict, cfr_data: Optional[dict], runtime_client=None) -> dict:
    """
    Ask the model for a rating recommendation.

    Returns
    -------
    dict
        ``{'summary', 'recommendedPercentage', 'supportingFactors'}``; the
        fixed fallback when the model rejects the request as invalid.

    Raises
    ------
    botocore.exceptions.ClientError
        Any model error other than ``ValidationException``.
    ValueError
        When the answer holds no JSON object.
    """
    try:
        body = invoke_model(_recommendation_prompt(condition, cfr_data), max_tokens=1000, runtime_client=runtime_client)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ValidationException":
            logger.error(f"Model validation error, using fallback recommendation: {e}")
            return fallback_recommendation(condition.get("name"))
        raise

    if isinstance(body.get("content"), list) and body["content"]:
        text = body["content"][0].get("text")
    else:
        text = body.get("completion") or body.get("generation")
    if not text:
        raise ValueError("Unexpected response format from Bedrock")

    match = RAW_OBJECT.search(text)
    if not match:
        raise ValueError("No JSON object found in response text")
    return _load_json(match.group(0))


def format_condition_response(condition: dict, cfr_data: Optional[dict], recommendation: dict) -> dict:
    """Detail view of a stored condition with its primary CFR section."""
    sections = (cfr_data or {}).get("sections") or []
    primary = sections[0] if sections else None
    return {
        "id": condition.get("id"),
        "title": condition.get("name"),
        "summary": recommendation.get("summary"),
        "cfrSection": primary["identifier"] if primary else None,
        "cfrTitle": primary["label"] if primary else None,
        "cfrText": primary["content"] if primary else None,
        "cfrLink": generate_cfr_link(primary["identifier"]) if primary else None,
        "recommendedPercentage": recommendation.get("recommendedPercentage"),
        "supportingFactors": recommendation.get("supportingFactors"),
        "allSections": sections,
        "lastUpdated": utcnow().isoformat(),
    }
