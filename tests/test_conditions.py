from unittest import mock

import pytest
from botocore.exceptions import ClientError

from varating.processing import conditions
from varating.processing.conditions import (
    are_conditions_similar,
    extract_body_system_from_condition,
    format_condition_response,
    generate_cfr_link,
    generate_recommendation,
    merge_conditions,
    normalize_condition_name,
    parse_agent_response,
)


def test_parse_fenced_json():
    text = 'Here you go:\n```json\n{"conditions": [{"name": "Tinnitus", "rating": 10}]}\n```'
    assert parse_agent_response(text) == {"conditions": [{"name": "Tinnitus", "rating": 10}]}


def test_parse_raw_object_with_trailing_commas():
    text = 'Result {"conditions": [{"name": "PTSD", "rating": 50,},],} end'
    assert parse_agent_response(text)["conditions"][0]["name"] == "PTSD"


def test_parse_falls_back_to_text():
    text = "The veteran was diagnosed with lumbar strain. Reports pain in left knee."
    names = [c["name"] for c in parse_agent_response(text)["conditions"]]
    assert "lumbar strain" in names
    assert "left knee" in names
    first = parse_agent_response(text)["conditions"][0]
    assert first["rating"] == 10
    assert first["severity"] == "mild"
    assert first["cfrCriteria"] == "TBD"


def test_parse_never_raises():
    assert parse_agent_response("") == {"conditions": []}
    assert parse_agent_response("nothing useful here") == {"conditions": []}


def test_normalize_condition_name():
    assert normalize_condition_name("Chronic Left Knee Pain!") == "knee pain"
    assert normalize_condition_name(None) == "unknown"


@pytest.mark.parametrize(
    "first, second",
    [
        ("Tinnitus", "tinnitus, bilateral"),
        ("Knee pain", "Right knee pain"),
        ("PTSD", "Post traumatic stress disorder"),
        ("Hypertension", "High blood pressure"),
    ],
)
def test_similar_conditions(first, second):
    assert are_conditions_similar(first, second)


def test_different_conditions():
    assert not are_conditions_similar("Tinnitus", "Lumbar strain")


def test_qualifier_only_names_stay_separate():
    assert normalize_condition_name("Chronic") == ""
    assert not are_conditions_similar("Chronic", "Tinnitus")
    assert not are_conditions_similar("Knee pain", "Left")
    assert are_conditions_similar("Left", "left")

    merged = merge_conditions([{"name": "Left", "excerpt": "a"}, {"name": "Tinnitus", "excerpt": "b"}])
    assert [c["name"] for c in merged] == ["Left", "Tinnitus"]


def test_merge_conditions_joins_excerpts_and_keywords():
    merged = merge_conditions(
        [
            {"name": "Tinnitus", "excerpt": "ringing", "keywords": ["ear"]},
            {"name": "Bilateral tinnitus", "excerpt": "constant", "keywords": ["ear", "noise"]},
            {"name": "", "excerpt": "skipped"},
            {"name": "Lumbar strain", "excerpt": "back"},
        ]
    )
    assert [c["name"] for c in merged] == ["Tinnitus", "Lumbar strain"]
    assert merged[0]["excerpt"] == "ringing | constant"
    assert merged[0]["keywords"] == ["ear", "noise"]


def test_body_system_from_condition():
    assert extract_body_system_from_condition("PTSD") == "mental"
    assert extract_body_system_from_condition("Right knee strain") == "musculoskeletal"
    assert extract_body_system_from_condition("Tinnitus") == "hearing"
    assert extract_body_system_from_condition("Something else") == "general"


def test_generate_cfr_link():
    expected = "https://www.ecfr.gov/current/title-38/chapter-I/part-4/section-4.130"
    assert generate_cfr_link("4.130") == expected
    assert generate_cfr_link("130") == expected
    assert generate_cfr_link(None) is None


def test_recommendation_parses_model_text():
    body = {"content": [{"text": 'Sure: {"summary": "ok", "recommendedPercentage": 30, "supportingFactors": []}'}]}
    with mock.patch.object(conditions, "invoke_model", return_value=body):
        result = generate_recommendation({"name": "PTSD"}, None)
    assert result["recommendedPercentage"] == 30


def test_recommendation_falls_back_on_validation_error():
    error = ClientError({"Error": {"Code": "ValidationException", "Message": "bad"}}, "InvokeModel")
    with mock.patch.object(conditions, "invoke_model", side_effect=error):
        result = generate_recommendation({"name": "PTSD"}, None)
    assert result["recommendedPercentage"] == 10
    assert "PTSD" in result["summary"]


def test_recommendation_raises_other_model_errors():
    error = ClientError({"Error": {"Code": "ThrottlingException", "Message": "slow"}}, "InvokeModel")
    with mock.patch.object(conditions, "invoke_model", side_effect=error):
        with pytest.raises(ClientError):
            generate_recommendation({"name": "PTSD"}, None)


def test_format_condition_response():
    cfr = {"sections": [{"identifier": "4.130", "label": "Mental disorders", "content": "General rating formula"}]}
    result = format_condition_response({"id": "c1", "name": "PTSD"}, cfr, {"summary": "s", "recommendedPercentage": 50})
    assert result["cfrSection"] == "4.130"
    assert result["cfrLink"].endswith("section-4.130")
    assert result["recommendedPercentage"] == 50
    empty = format_condition_response({"id": "c1", "name": "PTSD"}, None, {})
    assert empty["cfrSection"] is None and empty["allSections"] == []
