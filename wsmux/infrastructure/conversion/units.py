"""Unit conversion for Weather Source API responses.

The API reports imperial units. When metric distances or Celsius
temperatures are configured, known fields are converted in place anywhere in
a decoded response.
"""

from typing import Any, FrozenSet

METRIC = "metric"
IMPERIAL = "imperial"
CELSIUS = "celsius"
FAHRENHEIT = "fahrenheit"

INCH_FIELDS: FrozenSet[str] = frozenset({
    "precip", "precipMax", "precipAvg", "precipMin",
    "snowfall", "snowfallMax", "snowfallAvg", "snowfallMin",
})
MPH_FIELDS: FrozenSet[str] = frozenset({
    "windSpd", "windSpdMax", "windSpdAvg", "windSpdMin", "prevailWindSpd",
})
FAHRENHEIT_FIELDS: FrozenSet[str] = frozenset({
    "temp", "tempMax", "tempAvg", "tempMin",
    "dewPt", "dewPtMax", "dewPtAvg", "dewPtMin",
    "feelsLike", "feelsLikeMax", "feelsLikeAvg", "feelsLikeMin",
    "wetBulb", "wetBulbMax", "wetBulbAvg", "wetBulbMin",
})


def inches_to_centimeters(inches: float) -> float:
    return round(inches * 2.54, 2)


def mph_to_kmph(mph: float) -> float:
    return round(mph * 1.60934, 1)


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return round((fahrenheit - 32) * 5 / 9, 1)


def _as_number(value: Any) -> Any:
    """Returns a float for numbers and numeric strings, None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def scale_value(key: Any, value: Any, distance_unit: str, temperature_unit: str) -> Any:
    """Converts one value if its key names a convertible field."""
    number = _as_number(value)
    if number is None:
        return value
    if key in INCH_FIELDS and distance_unit == METRIC:
        return inches_to_centimeters(number)
    if key in MPH_FIELDS and distance_unit == METRIC:
        return mph_to_kmph(number)
    if key in FAHRENHEIT_FIELDS and temperature_unit == CELSIUS:
        return fahrenheit_to_celsius(number)
    return value


def scale_response(data: Any, distance_unit: str = IMPERIAL, temperature_unit: str = FAHRENHEIT) -> Any:
    """Converts known fields throughout nested dicts and lists, in place.

    Args:
        data: Decoded JSON response.
        distance_unit: 'metric' converts inches and mph fields.
        temperature_unit: 'celsius' converts Fahrenheit fields.

    Returns:
        The same object, for convenience.
    """
    if distance_unit != METRIC and temperature_unit != CELSIUS:
        return data
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)):
                scale_response(value, distance_unit, temperature_unit)
            else:
                data[key] = scale_value(key, value, distance_unit, temperature_unit)
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)):
                scale_response(item, distance_unit, temperature_unit)
    return data
