import pytest

from wsmux.infrastructure.conversion.units import (
    fahrenheit_to_celsius, inches_to_centimeters, mph_to_kmph, scale_response, scale_value,
)


def test_converters_round_like_the_api():
    assert inches_to_centimeters(1.0) == 2.54
    assert mph_to_kmph(10) == 16.1
    assert fahrenheit_to_celsius(212) == 100.0
    assert fahrenheit_to_celsius(50) == 10.0


def test_imperial_fahrenheit_leaves_data_untouched():
    data = {"temp": 50, "precip": 1.0, "windSpd": 10}
    assert scale_response(data) == {"temp": 50, "precip": 1.0, "windSpd": 10}


def test_metric_converts_distance_fields_only():
    data = {"temp": 50, "precip": "1.0", "windSpdMax": 10, "postal_code": "22222"}

    scale_response(data, distance_unit="metric", temperature_unit="fahrenheit")

    assert data == {"temp": 50, "precip": 2.54, "windSpdMax": 16.1, "postal_code": "22222"}


def test_celsius_converts_nested_temperatures_in_place():
    data = {
        "response": [
            {"timestamp": "2024-05-01", "tempMax": 212, "dewPt": 32},
            {"timestamp": "2024-05-02", "tempMax": 50, "dewPt": None},
        ],
    }

    result = scale_response(data, distance_unit="imperial", temperature_unit="celsius")

    assert result is data
    assert data["response"][0] == {"timestamp": "2024-05-01", "tempMax": 100.0, "dewPt": 0.0}
    assert data["response"][1]["tempMax"] == 10.0
    assert data["response"][1]["dewPt"] is None


@pytest.mark.parametrize("value", ["n/a", True, None, [1, 2]])
def test_non_numeric_values_pass_through(value):
    assert scale_value("temp", value, "metric", "celsius") == value
