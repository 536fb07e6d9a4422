import json

import pytest

from varating.calculator import (
    RateTableUnavailable,
    calculate_combined_rating,
    calculate_compensation,
    load_rate_table,
)
from varating.database.config.config import settings

RATES = {
    "flatRates": {"10": 171.23, "20": 338.49},
    "baseNoChild": {"30": [524.31, 586.31, 636.31, 686.31]},
    "baseOneChild": {"30": [565.31, 632.31, 682.31, 732.31]},
    "addAmounts": {"30": {"u18": 31.0, "o18": 102.0, "spouseAA": 57.0}},
}


def test_combined_rating_uses_va_math():
    assert calculate_combined_rating([{"percent": 50}, {"percent": 30}]) == 70
    assert calculate_combined_rating([{"percent": 10}, {"percent": 10}]) == 20


def test_combined_rating_rounds_half_up():
    assert calculate_combined_rating([{"percent": 45}]) == 50
    assert calculate_combined_rating([{"percent": 44}]) == 40


def test_combined_rating_applies_bilateral_factor():
    arms = [{"percent": 20, "extremity": "leftArm"}, {"percent": 20, "extremity": "rightArm"}]
    # 36 combined, 39.6 with the factor
    assert calculate_combined_rating(arms) == 40


def test_single_extremity_is_not_bilateral():
    assert calculate_combined_rating([{"percent": 30, "extremity": "leftLeg"}]) == 30


def test_combined_rating_edges():
    assert calculate_combined_rating([]) == 0
    assert calculate_combined_rating([{"percent": 0}]) == 0
    assert calculate_combined_rating([{"percent": 100}, {"percent": 50}]) == 100


def test_flat_rate_for_low_ratings():
    result = calculate_compensation(10, True, False, 2, 0, 0, RATES)
    assert result["total"] == 171.23
    assert result["breakdown"] == ["Flat rate for 10%"]


def test_compensation_veteran_alone():
    result = calculate_compensation(30, False, False, 0, 0, 0, RATES)
    assert result == {"total": 524.31, "breakdown": ["Base: $524.31"]}


def test_compensation_with_family():
    result = calculate_compensation(30, True, True, 2, 0, 1, RATES)
    # one-child table, spouse + one parent, one extra child, spouse A&A
    assert result["total"] == round(682.31 + 31.0 + 57.0, 2)
    assert len(result["breakdown"]) == 3


def test_load_rate_table(tmp_path):
    path = tmp_path / "rates.json"
    path.write_text(json.dumps(RATES))
    assert load_rate_table(str(path)) == RATES


def test_load_rate_table_without_configuration(monkeypatch):
    monkeypatch.setattr(settings, "VA_RATES_FILE", None)
    with pytest.raises(RateTableUnavailable):
        load_rate_table()


def test_calculator_endpoint(client, tmp_path, monkeypatch):
    path = tmp_path / "rates.json"
    path.write_text(json.dumps(RATES))
    monkeypatch.setattr(settings, "VA_RATES_FILE", str(path))
    response = client.post("/calculator", json={"disabilities": [{"percent": 30}]})
    assert response.status_code == 200
    assert response.json()["combined_rating"] == 30
    assert response.json()["total"] == 524.31


def test_calculator_endpoint_without_rates(client, monkeypatch):
    monkeypatch.setattr(settings, "VA_RATES_FILE", None)
    response = client.post("/calculator", json={"disabilities": [{"percent": 30}]})
    assert response.status_code == 503
