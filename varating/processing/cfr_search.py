"""
eCFR search: 38 CFR Part 4 (Schedule for Rating Disabilities)
==============================================================

Looks up rating-schedule sections on the public eCFR versioner API.

- ``search_conditions``: the in-process lookup used by condition extraction;
  falls back to body-system, category and anatomical terms when the
  condition name matches nothing.
- ``search_cfr`` / ``get_cfr_section``: Bedrock agent action-group functions
  answering in the agent response envelope.
- ``handle_ecfr_event``: Lambda entry point routing both kinds of calls.

The title structure is large and stable for a snapshot date, so it is
fetched once per process.
"""

import logging
import re
from typing import Optional

import httpx

from varating.database.config.config import settings
from varating.processing.responses import lambda_response

logger = logging.getLogger(__name__)

ACTION_GROUP = "eCFRActionGroup"
CONTENT_NOT_AVAILABLE = "Content not available"

BODY_SYSTEM_TERMS = {
    "mental": ["mental", "psychiatric", "ptsd", "post-traumatic", "anxiety", "depression", "mood", "psychosis", "neurosis"],
    "cardiovascular": ["heart", "cardiac", "cardiovascular", "circulatory", "blood", "artery", "vein"],
    "respiratory": ["lung", "respiratory", "breathing", "pulmonary", "asthma", "emphysema"],
    "musculoskeletal": ["muscle", "bone", "joint", "spine", "back", "knee", "shoulder", "arm", "leg", "musculoskeletal"],
    "digestive": ["stomach", "intestine", "liver", "gallbladder", "pancreas", "digestive", "gastrointestinal"],
    "nervous": ["brain", "nervous", "neurological", "seizure", "stroke", "paralysis", "neuropathy"],
    "endocrine": ["diabetes", "thyroid", "hormone", "endocrine", "metabolic"],
    "skin": ["skin", "dermatological", "dermatitis", "eczema", "psoriasis"],
    "genitourinary": ["kidney", "bladder", "urinary", "genital", "reproductive"],
    "hearing": ["ear", "hearing", "deafness", "tinnitus", "auditory"],
    "vision": ["eye", "vision", "blindness", "visual", "ocular"],
    "immune": ["immune", "autoimmune", "allergy", "lupus", "rheumatoid"],
}

CATEGORY_RULES = (
    (("pain", "ache", "sore"), ["pain", "musculoskeletal", "joint"]),
    (("injury", "trauma", "fracture", "sprain", "strain"), ["musculoskeletal", "bone", "joint"]),
    (("infection", "bacterial", "viral", "fungal"), ["infection", "immune"]),
    (("cancer", "tumor", "malignant", "carcinoma", "sarcoma"), ["cancer", "neoplasm"]),
    (("chronic", "degenerative", "progressive"), ["chronic", "degenerative"]),
)

BODY_PARTS = (
    "head", "neck", "shoulder", "arm", "hand", "finger", "chest", "back", "spine",
    "hip", "leg", "knee", "foot", "toe", "eye", "ear", "nose", "throat", "heart",
    "lung", "stomach", "liver", "kidney", "bladder", "brain", "nerve", "muscle",
    "bone", "joint", "skin", "blood",
)

ANATOMICAL_SYSTEMS = (
    (("mental", "psych", "ptsd", "anxiety", "depression"), ["mental", "psychiatric"]),
    (("heart", "cardiac", "blood", "circulation"), ["cardiovascular", "heart"]),
    (("lung", "breathing", "respiratory"), ["respiratory", "lung"]),
    (("muscle", "bone", "joint", "spine"), ["musculoskeletal", "muscle", "bone"]),
)

TAG_PATTERN = re.compile(r"<[^>]*>")
URL_PATTERN = re.compile(r"(?:(?:https?://)|(?:www\.))[-\w.]+(?:\.[a-zA-Z]{2,3}|:[0-9]{1,5})(?:/[^\s<]*)?")

_structure_cache = {}


class ECFRError(Exception):
    """Raised when the eCFR API answers with something unusable."""


def _get(url: str, client: Optional[httpx.Client] = None) -> httpx.Response:
    if client is not None:
        response = client.get(url)
    else:
        response = httpx.get(url, timeout=settings.HTTP_TIMEOUT)
    response.raise_for_status()
    if not response.content:
        raise ECFRError("Empty response from API")
    return response


def structure_url() -> str:
    return f"{settings.ECFR_BASE_URL}/structure/{settings.ECFR_DATE}/title-38.json"


def section_url(identifier: str) -> str:
    return f"{settings.ECFR_BASE_URL}/full/{settings.ECFR_DATE}/title-38/part-4/section-{identifier}"


def get_title_structure(client: Optional[httpx.Client] = None) -> dict:
    """
    Structure tree of title 38 at ``ECFR_DATE``, cached per process.

    Raises
    ------
    httpx.HTTPError
    ECFRError
    """
    url = structure_url()
    if url not in _structure_cache:
        logger.info(f"Fetching eCFR structure from {url}")
        _structure_cache[url] = _get(url, client).json()
    return _structure_cache[url]


def clear_structure_cache() -> None:
    _structure_cache.clear()


def _walk(node: dict):
    yield node
    for child in node.get("children") or []:
        yield from _walk(child)


def filter_sections(structure: Optional[dict], query: str, part: str = "4") -> list:
    """
    Sections of a part whose label mentions any query term.

    Parameters
    ----------
    structure : dict
        eCFR structure tree.
    query : str
        Space-separated search terms (case-insensitive).
    part : str
        CFR part; section identifiers must start with ``"<part>."``.

    Returns
    -------
    list[dict]
        ``[{'identifier', 'label', 'description', 'matchScore'}]`` where the
        score counts the matching terms, best first.
    """
    if not structure or not structure.get("children"):
        return []
    terms = [term for term in query.lower().split(" ") if term]
    prefix = f"{part}."
    sections = []
    for node in _walk(structure):
        identifier = node.get("identifier")
        if node.get("type") != "section" or not identifier or not str(identifier).startswith(prefix):
            continue
        label = (node.get("label") or "").lower()
        description = (node.get("label_description") or "").lower()
        score = sum(1 for term in terms if term in label or term in description)
        if score > 0:
            sections.append(
                {
                    "identifier": identifier,
                    "label": node.get("label"),
                    "description": node.get("label_description"),
                    "matchScore": score,
                }
            )
    return sorted(sections, key=lambda section: section["matchScore"], reverse=True)


def find_section(structure: dict, identifier: str) -> Optional[dict]:
    for node in _walk(structure):
        if node.get("identifier") == identifier:
            return node
    return None


def extract_text_from_content(content) -> str:
    """
    Readable text of an eCFR content payload, with HTML/XML tags removed.

    Strings are stripped of tags, lists are joined line by line and objects
    are searched through ``content``, ``text``, ``value``, ``body`` and then
    ``children``, ``paragraphs`` or ``sections``.
    """
    if isinstance(content, str):
        return TAG_PATTERN.sub("", content).strip()
    if isinstance(content, list):
        return "\n".join(extract_text_from_content(item) for item in content)
    if isinstance(content, dict):
        if isinstance(content.get("text"), str) and content["text"]:
            return TAG_PATTERN.sub("", content["text"]).strip()
        for field in ("content", "text", "value", "body"):
            if content.get(field):
                return extract_text_from_content(content[field])
        children = content.get("children") or content.get("paragraphs") or content.get("sections")
        if children:
            return extract_text_from_content(children)
    return ""


def get_section_content(identifier: str, client: Optional[httpx.Client] = None) -> str:
    """
    Text of one Part 4 section.

    Tries the full-text endpoint first, then the title structure. Never
    raises; an explanatory message is returned when both fail.
    """
    try:
        response = _get(section_url(identifier), client)
        try:
            data = response.json()
        except ValueError:
            # The full-text endpoint answers XML.
            data = {"content": response.text}
        if isinstance(data, dict) and data.get("content"):
            return extract_text_from_content(data["content"])
    except (httpx.HTTPError, ECFRError) as e:
        logger.error(f"Error fetching section {identifier}: {e}")

    try:
        section = find_section(get_title_structure(client), identifier)
        if section:
            return f"Found section {identifier}: {section.get('label')}\n\n{section.get('text') or 'Content not available in structure API'}"
    except (httpx.HTTPError, ECFRError) as e:
        logger.error(f"Error searching structure for section {identifier}: {e}")

    return (
        f"Unable to retrieve CFR section {identifier}. The eCFR API may be temporarily unavailable "
        "or the section format may have changed."
    )


def body_system_terms(body_system: Optional[str]) -> list:
    return BODY_SYSTEM_TERMS.get((body_system or "").lower(), [])


def medical_categories(condition: str) -> list:
    text = condition.lower()
    categories = []
    for markers, terms in CATEGORY_RULES:
        if any(marker in text for marker in markers):
            categories.extend(terms)
    return categories or ["general", "unspecified"]


def anatomical_terms(condition: str) -> list:
    text = condition.lower()
    terms = [part for part in BODY_PARTS if part in text]
    if terms:
        return terms
    for markers, system_terms in ANATOMICAL_SYSTEMS:
        if any(marker in text for marker in markers):
            return list(system_terms)
    return []


def _first_match(structure: dict, candidates: list, part: str) -> list:
    for term in candidates:
        sections = filter_sections(structure, term, part)
        if sections:
            logger.info(f"Found {len(sections)} sections using fallback term {term}")
            return sections
    return []


def search_conditions(condition: str, body_system: Optional[str] = None, keywords=None, client: Optional[httpx.Client] = None) -> dict:
    """
    Rating-schedule sections for a condition, with content for the top 3.

    Parameters
    ----------
    condition : str
        Condition name, used as the primary query.
    body_system : str, optional
        Enables the body-system fallback.
    keywords : list[str], optional
        Accepted for callers that send them; the search is driven by the name.

    Returns
    -------
    dict
        ``{'condition', 'bodySystem', 'sections', 'totalFound'}``, or
        ``{'condition', 'bodySystem', 'sections': [], 'message'}`` when nothing
        matches.

    Raises
    ------
    httpx.HTTPError
        When the structure cannot be fetched.
    """
    part = "4"
    structure = get_title_structure(client)
    sections = filter_sections(structure, condition, part)
    if not sections and body_system:
        sections = _first_match(structure, body_system_terms(body_system), part)
    if not sections:
        sections = _first_match(structure, medical_categories(condition), part)
    if not sections:
        sections = _first_match(structure, anatomical_terms(condition), part)

    if not sections:
        return {
            "condition": condition,
            "bodySystem": body_system,
            "sections": [],
            "message": (
                f'No specific CFR sections found for "{condition}" in Part {part}. '
                "This may be a newer condition or may be rated under a different category."
            ),
        }

    detailed = []
    for section in sections[:3]:
        content = get_section_content(section["identifier"], client)
        detailed.append(
            {
                "identifier": section["identifier"],
                "label": section["label"],
                "description": section["description"],
                "content": content or CONTENT_NOT_AVAILABLE,
            }
        )
    return {"condition": condition, "bodySystem": body_system, "sections": detailed, "totalFound": len(sections)}


def hyperlink_urls(text: str) -> str:
    """Wrap ``http(s)://`` and ``www.`` URLs in anchors; bare ``www.`` gets ``https://``."""

    def anchor(match) -> str:
        url = match.group(0)
        href = url if url.startswith(("http://", "https://")) else f"https://{url}"
        return (
            f'<a href="{href}" target="_blank" rel="noopener noreferrer" '
            f'style="color: #3b82f6; text-decoration: underline; cursor: pointer;">{url}</a>'
        )

    return URL_PATTERN.sub(anchor, text)


def format_agent_response(function_name: str, body: str, action_group: str = ACTION_GROUP) -> dict:
    """Bedrock agent action-group response envelope with an HTML text body."""
    return {
        "messageVersion": "1.0",
        "response": {
            "actionGroup": action_group,
            "function": function_name,
            "functionResponse": {"responseBody": {"TEXT": {"body": body, "contentType": "text/html"}}},
        },
    }


def agent_parameter(parameters, name: str, default: str = "") -> str:
    for parameter in parameters or []:
        if parameter.get("name") == name:
            return parameter.get("value") or default
    return default


def search_cfr(search_query: str, part: str = "4", client: Optional[httpx.Client] = None) -> dict:
    """Agent function: titles of up to 5 matching sections."""
    try:
        sections = filter_sections(get_title_structure(client), search_query, part)
    except (httpx.HTTPError, ECFRError) as e:
        logger.error(f"Search error: {e}")
        return format_agent_response(
            "searchCFR",
            hyperlink_urls(f"Error searching CFR: {e}. The eCFR API may be temporarily unavailable."),
        )

    if not sections:
        return format_agent_response(
            "searchCFR",
            f'No specific CFR sections found for "{search_query}" in Part {part}. You may want to try searching '
            'for specific body parts or conditions like "musculoskeletal", "mental", "respiratory", etc.',
        )

    lines = [f'Found {len(sections)} relevant CFR section(s) for "{search_query}":\n']
    for section in sections[:5]:
        lines.append(f"**38 CFR § {section['identifier']}** - {section['label']}")
        if section["description"]:
            lines.append(section["description"])
        lines.append("")
    lines.append(
        "\nNote: This shows the section titles. For detailed rating criteria, ask me to get the specific "
        'section content (e.g., "Get me 38 CFR section 4.71a").'
    )
    return format_agent_response("searchCFR", hyperlink_urls("\n".join(lines)))


def get_cfr_section(section_number: str, client: Optional[httpx.Client] = None) -> dict:
    """Agent function: full text of one section."""
    content = get_section_content(section_number, client)
    if not content:
        return format_agent_response("getCFRSection", f"Section 38 CFR § {section_number} not found")
    return format_agent_response("getCFRSection", hyperlink_urls(f"**38 CFR § {section_number}**\n\n{content}"))


def handle_ecfr_event(event: dict) -> dict:
    """
    Lambda entry point of the eCFR function.

    Direct invocations (``{condition, bodySystem|body_system|keywords}``)
    answer a Lambda envelope; agent calls answer the agent envelope.
    """
    body_system = event.get("bodySystem") or event.get("body_system")
    if event.get("condition") and (body_system or event.get("keywords")):
        try:
            return lambda_response(200, search_conditions(event["condition"], body_system, event.get("keywords")))
        except (httpx.HTTPError, ECFRError) as e:
            logger.error(f"Direct invocation error: {e}")
            return lambda_response(500, {"error": str(e), "condition": event["condition"], "bodySystem": body_system})

    function_name = event.get("function")
    parameters = event.get("parameters")
    if function_name == "searchCFR":
        return search_cfr(agent_parameter(parameters, "searchQuery"), agent_parameter(parameters, "part", "4"))
    if function_name == "getCFRSection":
        return get_cfr_section(agent_parameter(parameters, "sectionNumber"))

    logger.error(f"No matching handler for event with function {function_name}")
    return lambda_response(400, {"error": "No matching handler for event", "event": event})
