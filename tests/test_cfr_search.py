import json

import httpx
import pytest

from varating.processing import cfr_search
from varating.processing.cfr_search import (
    extract_text_from_content,
    filter_sections,
    format_agent_response,
    get_section_content,
    handle_ecfr_event,
    hyperlink_urls,
    medical_categories,
    search_cfr,
    search_conditions,
)

STRUCTURE = {
    "type": "title",
    "identifier": "38",
    "children": [
        {
            "type": "part",
            "identifier": "4",
            "children": [
                {"type": "section", "identifier": "4.87", "label": "§ 4.87 Schedule of ratings—ear", "label_description": "Tinnitus, recurrent"},
                {"type": "section", "identifier": "4.130", "label": "§ 4.130 Schedule of ratings—mental disorders", "label_description": "PTSD and anxiety"},
                {"type": "section", "identifier": "4.71a", "label": "§ 4.71a Schedule of ratings—musculoskeletal system", "label_description": "Joint and spine"},
            ],
        },
        {"type": "section", "identifier": "3.1", "label": "§ 3.1 Definitions mental"},
    ],
}


@pytest.fixture(autouse=True)
def fresh_cache():
    cfr_search.clear_structure_cache()
    yield
    cfr_search.clear_structure_cache()


def make_client(sections=None, fail_full=False):
    sections = sections or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("title-38.json"):
            return httpx.Response(200, json=STRUCTURE)
        if "/full/" in path:
            if fail_full:
                return httpx.Response(503, text="unavailable")
            identifier = path.rsplit("section-", 1)[1]
            return httpx.Response(200, text=sections.get(identifier, "<section><p>Rating text</p></section>"))
        return httpx.Response(404)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_filter_sections_scores_and_restricts_part():
    sections = filter_sections(STRUCTURE, "mental anxiety")
    assert [s["identifier"] for s in sections] == ["4.130"]
    assert sections[0]["matchScore"] == 2
    assert filter_sections(STRUCTURE, "nothing") == []
    assert filter_sections({}, "mental") == []


def test_extract_text_from_content():
    assert extract_text_from_content("<p>Hello <b>world</b></p>") == "Hello world"
    assert extract_text_from_content({"children": [{"text": "<i>a</i>"}, {"value": "b"}]}) == "a\nb"
    assert extract_text_from_content(42) == ""


def test_section_content_strips_xml():
    client = make_client({"4.87": "<section><p>Recurrent tinnitus 10%</p></section>"})
    assert get_section_content("4.87", client) == "Recurrent tinnitus 10%"


def test_section_content_falls_back_to_structure():
    client = make_client(fail_full=True)
    content = get_section_content("4.87", client)
    assert content.startswith("Found section 4.87")


def test_search_conditions_direct_match():
    result = search_conditions("tinnitus", "hearing", client=make_client())
    assert result["totalFound"] == 1
    assert result["sections"][0]["identifier"] == "4.87"
    assert result["sections"][0]["content"] == "Rating text"


def test_search_conditions_uses_body_system_fallback():
    result = search_conditions("post deployment stress", "mental", client=make_client())
    assert result["sections"][0]["identifier"] == "4.130"


def test_search_conditions_without_match():
    result = search_conditions("zzz", None, client=make_client())
    assert result["sections"] == []
    assert "No specific CFR sections" in result["message"]


def test_medical_categories_default():
    assert medical_categories("zzz") == ["general", "unspecified"]
    assert "musculoskeletal" in medical_categories("ankle sprain")


def test_hyperlink_urls():
    text = hyperlink_urls("See www.ecfr.gov/part-4 now")
    assert 'href="https://www.ecfr.gov/part-4"' in text
    assert ">www.ecfr.gov/part-4</a>" in text


def test_agent_envelope():
    envelope = format_agent_response("searchCFR", "body")
    assert envelope["messageVersion"] == "1.0"
    assert envelope["response"]["actionGroup"] == "eCFRActionGroup"
    text = envelope["response"]["functionResponse"]["responseBody"]["TEXT"]
    assert text == {"body": "body", "contentType": "text/html"}


def test_search_cfr_lists_titles():
    envelope = search_cfr("musculoskeletal", client=make_client())
    body = envelope["response"]["functionResponse"]["responseBody"]["TEXT"]["body"]
    assert "**38 CFR § 4.71a**" in body
    assert "Note:" in body


def test_search_cfr_reports_errors_in_envelope():
    failing = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    envelope = search_cfr("mental", client=failing)
    assert "Error searching CFR" in envelope["response"]["functionResponse"]["responseBody"]["TEXT"]["body"]


def test_handle_ecfr_event_direct(monkeypatch):
    monkeypatch.setattr(cfr_search, "search_conditions", lambda condition, body_system, keywords: {"condition": condition})
    response = handle_ecfr_event({"condition": "tinnitus", "bodySystem": "hearing"})
    assert response["statusCode"] == 200
    assert json.loads(response["body"]) == {"condition": "tinnitus"}


def test_handle_ecfr_event_unknown():
    response = handle_ecfr_event({"function": "other"})
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["error"] == "No matching handler for event"
