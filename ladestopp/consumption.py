from ladestopp.constants import TEMPERATURE_VERY_COLD_C, TEMPERATURE_COLD_C, TEMPERATURE_HOT_C, \
    TEMPERATURE_VERY_COLD_PENALTY, TEMPERATURE_COLD_PENALTY, TEMPERATURE_HOT_PENALTY, WIND_STRONG_KMH, \
    WIND_MODERATE_KMH, WIND_STRONG_PENALTY, WIND_MODERATE_PENALTY, PRECIPITATION_HEAVY_MM_H, PRECIPITATION_PENALTY, \
    PRECIPITATION_HEAVY_PENALTY, WEATHER_PENALTY_CAP, TRAILER_PENALTY_STEPS, TRAILER_HEAVY_PENALTY, TRAILER_PENALTY_CAP
from ladestopp.types import WeatherSample

# Trailer impact levels, matching the steps in TRAILER_PENALTY_STEPS
TRAILER_LEVELS = ["minimal", "moderate", "significant"]
TRAILER_LEVEL_HEAVY = "severe"

NEUTRAL_WEATHER = WeatherSample(temperature_c=10.0, wind_speed_kmh=0.0, precipitation_mm_h=0.0)


def temperature_penalty(temperature_c: float) -> float:
    if temperature_c < TEMPERATURE_VERY_COLD_C:
        return TEMPERATURE_VERY_COLD_PENALTY
    if temperature_c < TEMPERATURE_COLD_C:
        return TEMPERATURE_COLD_PENALTY
    if temperature_c > TEMPERATURE_HOT_C:
        return TEMPERATURE_HOT_PENALTY
    return 0.0


def wind_penalty(wind_speed_kmh: float) -> float:
    if wind_speed_kmh > WIND_STRONG_KMH:
        return WIND_STRONG_PENALTY
    if wind_speed_kmh > WIND_MODERATE_KMH:
        return WIND_MODERATE_PENALTY
    return 0.0


def precipitation_penalty(precipitation_mm_h: float) -> float:
    if precipitation_mm_h > PRECIPITATION_HEAVY_MM_H:
        return PRECIPITATION_HEAVY_PENALTY
    if precipitation_mm_h > 0.0:
        return PRECIPITATION_PENALTY
    return 0.0


def weather_impact(sample: WeatherSample) -> float:
    """
    Calculate the multiplicative consumption factor caused by the weather

    :param sample: The weather conditions along the route
    :return: The consumption factor in the range [1.0, 1.0 + WEATHER_PENALTY_CAP]
    """
    penalty = temperature_penalty(sample.temperature_c) + \
        wind_penalty(max(0.0, sample.wind_speed_kmh)) + \
        precipitation_penalty(max(0.0, sample.precipitation_mm_h))
    return 1.0 + min(penalty, WEATHER_PENALTY_CAP)


def trailer_impact(weight_kg: float) -> float:
    """
    Calculate the multiplicative consumption factor caused by towing a trailer

    :param weight_kg: The trailer weight in kg, 0 meaning no trailer
    :return: The consumption factor in the range [1.0, 1.0 + TRAILER_PENALTY_CAP]
    """
    if weight_kg <= 0:
        return 1.0
    for max_weight_kg, penalty in TRAILER_PENALTY_STEPS:
        if weight_kg <= max_weight_kg:
            return 1.0 + min(penalty, TRAILER_PENALTY_CAP)
    return 1.0 + min(TRAILER_HEAVY_PENALTY, TRAILER_PENALTY_CAP)


def trailer_impact_level(weight_kg: float) -> str:
    if weight_kg <= 0:
        return "none"
    for (max_weight_kg, _), level in zip(TRAILER_PENALTY_STEPS, TRAILER_LEVELS):
        if weight_kg <= max_weight_kg:
            return level
    return TRAILER_LEVEL_HEAVY


def impact_percent(factor: float) -> float:
    """
    Convert a consumption factor to the added consumption in percent (e.g. 1.25 -> 25.0)
    """
    return round((factor - 1.0) * 100.0, 1)
