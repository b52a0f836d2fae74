from typing import List, Optional, Dict, Any, Tuple
import math
import re

from ladestopp.constants import AVAILABILITY_WEIGHT, CHARGER_SPEED_WEIGHT, PRICE_WEIGHT, PROXIMITY_WEIGHT, \
    ULTRA_FAST_CHARGER_KW, HIGH_POWER_CHARGER_KW, HIGH_POWER_CHARGER_SCORE, FAST_CHARGER_SCORE, \
    FAST_CHARGER_THRESHOLD_KW, PRICE_REFERENCE_KWH, PRICE_SCORE_PER_UNIT, PROXIMITY_DECAY_KM, \
    CRITICAL_BATTERY_PERCENT, CRITICAL_BATTERY_BONUS, TRUSTED_OPERATORS, TRUSTED_OPERATOR_BONUS, SCORE_MIN, \
    SCORE_MAX, ARRIVAL_BATTERY_MIN_PERCENT, ARRIVAL_BATTERY_MAX_PERCENT, EXCELLENT_SCORE, GOOD_SCORE, \
    TOP_STATIONS_IN_SUMMARY, FAST_CHARGING_KW, NORMAL_CHARGING_KW, REMAINING_ROUTE_ENERGY_BUFFER, MAX_CHARGE_FRACTION
from ladestopp.consumption import impact_percent
from ladestopp.errors import StationExclusion
from ladestopp.range_calculator import battery_percent_at_distance
from ladestopp.route_geometry import along_route_distance, haversine_km
from ladestopp.types import ChargingStationCandidate, Coordinate, RouteContext, Feasibility, VehicleSpec, \
    RankedStation, OptimizationAnalysis, StationSummary


def _first_present(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ("true", "yes", "1"):
            return True
        if normalized in ("false", "no", "0", ""):
            return False
        raise ValueError(f"Invalid flag '{value}'")
    return bool(value)


def parse_power_kw(value: Any) -> Optional[float]:
    """
    Parse a charger power rating, either a number or a string such as "150 kW"

    :return: The power in kW, or None if no rating could be found
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"\d+(?:[.,]\d+)?", str(value))
    if match is None:
        return None
    return float(match.group(0).replace(",", "."))


def normalize_station(record: Dict[str, Any]) -> ChargingStationCandidate:
    """
    Convert a raw station record from any of the historical record shapes into a canonical candidate

    :param record: The raw record, e.g. parsed JSON from a client or a station directory
    :return: The canonical charging station candidate
    """
    try:
        location = record.get("location")
        if isinstance(location, dict):
            lat, lng = location["lat"], location["lng"]
        else:
            lat = _first_present(record, "latitude", "lat")
            lng = _first_present(record, "longitude", "lng", "lon")
        coordinate = Coordinate(lat=float(lat), lng=float(lng))

        total = int(_first_present(record, "total", "total_connectors", "totalConnectors"))
        available = int(_first_present(record, "available", "available_connectors", "availableConnectors"))
        power_kw = parse_power_kw(_first_present(record, "power_kw", "powerKw", "power"))
        fast_flag = _first_present(record, "is_fast_charger", "fast_charger", "fastCharger")
        is_fast_charger = _parse_flag(fast_flag) if fast_flag is not None else \
            power_kw is not None and power_kw >= FAST_CHARGER_THRESHOLD_KW
        distance = _first_present(record, "distance_from_start_km", "distanceFromStart")

        return ChargingStationCandidate(
            id=str(record["id"]),
            name=str(_first_present(record, "name") or record["id"]),
            location=coordinate,
            available_connectors=max(0, min(available, total)),
            total_connectors=max(0, total),
            is_fast_charger=is_fast_charger,
            price_per_kwh=float(_first_present(record, "price_per_kwh", "cost", "pricePerKwh")),
            operator=str(_first_present(record, "operator", "provider") or ""),
            power_kw=power_kw,
            distance_from_start_km=None if distance is None else float(distance))
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid charging station record {record.get('id', '<no id>')!r}: {e}") from e


def availability_ratio(station: ChargingStationCandidate) -> float:
    if station.total_connectors <= 0:
        return 0.0
    return station.available_connectors / station.total_connectors


def charger_speed_score(station: ChargingStationCandidate) -> float:
    if not station.is_fast_charger:
        return 0.0
    # Fast chargers without a reported rating are assumed to be regular high power chargers
    power_kw = station.power_kw if station.power_kw is not None else HIGH_POWER_CHARGER_KW
    if power_kw >= ULTRA_FAST_CHARGER_KW:
        return CHARGER_SPEED_WEIGHT
    if power_kw >= HIGH_POWER_CHARGER_KW:
        return HIGH_POWER_CHARGER_SCORE
    return FAST_CHARGER_SCORE


def price_score(price_per_kwh: float) -> float:
    return max(0.0, min(PRICE_WEIGHT, PRICE_WEIGHT - (price_per_kwh - PRICE_REFERENCE_KWH) * PRICE_SCORE_PER_UNIT))


def proximity_score(distance_from_start_km: float, anchor_distance_km: float) -> float:
    deviation = abs(distance_from_start_km - anchor_distance_km)
    return PROXIMITY_WEIGHT * max(0.0, 1.0 - deviation / PROXIMITY_DECAY_KM)


def score_station(station: ChargingStationCandidate, distance_from_start_km: float, route: RouteContext,
                  feasibility: Feasibility) -> float:
    """
    Calculate how suitable a station is as the first charging stop

    :param station: The station to score
    :param distance_from_start_km: The along-route position of the station
    :param route: The route being planned
    :param feasibility: The feasibility result for the route, which must require charging
    :return: The score in the range [0, 100]
    """
    if feasibility.anchor_distance_km is None:
        raise RuntimeError("Stations can only be scored for routes that require charging")

    score = availability_ratio(station) * AVAILABILITY_WEIGHT
    score += charger_speed_score(station)
    score += price_score(station.price_per_kwh)
    score += proximity_score(distance_from_start_km, feasibility.anchor_distance_km)

    # With a critical battery, any reachable station matters more than the quality of the ranking
    if route.battery_percent <= CRITICAL_BATTERY_PERCENT and distance_from_start_km <= feasibility.safe_range_km:
        score += CRITICAL_BATTERY_BONUS

    if station.operator in TRUSTED_OPERATORS:
        score += TRUSTED_OPERATOR_BONUS

    return max(SCORE_MIN, min(SCORE_MAX, score))


def resolve_distance_from_start(station: ChargingStationCandidate, route: RouteContext,
                                estimate_missing_distances: bool) -> Optional[float]:
    """
    Find the along-route position of a station. Uses the position reported with the station, then the route path.
    Only if estimate_missing_distances is set, falls back to the straight-line distance from the origin.

    :return: The distance from the route start in km, or None if unknown
    """
    if station.distance_from_start_km is not None:
        return station.distance_from_start_km
    if route.path:
        return along_route_distance(route.path, station.location)[0]
    if estimate_missing_distances and route.origin.coordinate is not None:
        return haversine_km(route.origin.coordinate, station.location)
    return None


def estimate_charging_stop(vehicle: VehicleSpec, route: RouteContext, feasibility: Feasibility,
                           station: ChargingStationCandidate, distance_from_start_km: float,
                           arrival_battery_percent: float) -> Tuple[float, int, float]:
    """
    Estimate how much to charge at a station to finish the route with a buffer

    :return: Tuple of (energy to charge in kWh, charging time in minutes, charging cost)
    """
    remaining_km = max(0.0, route.total_distance_km - distance_from_start_km)
    energy_for_remainder = remaining_km / 100.0 * feasibility.adjusted_consumption_kwh_100km
    target_energy = min(vehicle.battery_capacity_kwh * MAX_CHARGE_FRACTION,
                        energy_for_remainder * REMAINING_ROUTE_ENERGY_BUFFER)
    arrival_energy = arrival_battery_percent / 100.0 * vehicle.battery_capacity_kwh
    energy_to_charge = max(0.0, target_energy - arrival_energy)

    charging_kw = FAST_CHARGING_KW if station.is_fast_charger else NORMAL_CHARGING_KW
    charging_minutes = math.ceil(energy_to_charge / charging_kw * 60.0) if energy_to_charge > 0 else 0
    return energy_to_charge, charging_minutes, energy_to_charge * station.price_per_kwh


def rank_stations(candidates: List[ChargingStationCandidate], vehicle: VehicleSpec, route: RouteContext,
                  feasibility: Feasibility,
                  arrival_band: Tuple[float, float] = (ARRIVAL_BATTERY_MIN_PERCENT, ARRIVAL_BATTERY_MAX_PERCENT),
                  estimate_missing_distances: bool = False) -> Tuple[List[RankedStation], List[StationExclusion]]:
    """
    Score and rank candidate stations for the first charging stop. Stations with an unknown position, stations past
    the destination and stations reached with a battery level outside the arrival band are excluded.

    :param candidates: The candidate stations
    :param vehicle: The vehicle driving the route
    :param route: The route being planned
    :param feasibility: The feasibility result for the route, which must require charging
    :param arrival_band: The (min, max) battery percentage allowed on arrival at a station
    :param estimate_missing_distances: Whether to estimate unknown along-route positions from straight-line distance
    :return: Tuple of (ranked stations with the best first, the excluded stations with reasons)
    """
    min_arrival, max_arrival = arrival_band
    ranked: List[RankedStation] = []
    exclusions: List[StationExclusion] = []
    for station in candidates:
        distance = resolve_distance_from_start(station, route, estimate_missing_distances)
        if distance is None:
            exclusions.append(StationExclusion(station.name, None, "along-route distance unavailable"))
            continue
        if distance > route.total_distance_km:
            exclusions.append(StationExclusion(station.name, distance, "located beyond the destination"))
            continue

        arrival = battery_percent_at_distance(vehicle, route.battery_percent, distance,
                                              feasibility.adjusted_consumption_kwh_100km)
        if arrival < min_arrival:
            exclusions.append(StationExclusion(station.name, distance,
                                               f"arrival battery {arrival:.1f}% below {min_arrival:.0f}%"))
            continue
        if arrival > max_arrival:
            exclusions.append(StationExclusion(station.name, distance,
                                               f"arrival battery {arrival:.1f}% above {max_arrival:.0f}%"))
            continue

        energy, minutes, cost = estimate_charging_stop(vehicle, route, feasibility, station, distance, arrival)
        ranked.append(RankedStation(station=station,
                                    score=score_station(station, distance, route, feasibility),
                                    distance_from_start_km=distance,
                                    projected_arrival_battery_percent=arrival,
                                    availability_ratio=availability_ratio(station),
                                    energy_to_charge_kwh=energy,
                                    charging_time_minutes=minutes,
                                    charging_cost=cost))

    # Best score first, ties broken by availability and then price. The id keeps the order total.
    ranked.sort(key=lambda r: (-r.score, -r.availability_ratio, r.station.price_per_kwh, r.station.id))
    return ranked, exclusions


def reason_label(score: float) -> str:
    if score > EXCELLENT_SCORE:
        return "excellent"
    if score > GOOD_SCORE:
        return "good"
    return "acceptable"


def summarize(ranked: List[RankedStation], weather_factor: float, trailer_factor: float,
              feasibility: Feasibility) -> OptimizationAnalysis:
    """
    Create the human-readable analysis of an optimization, including the top stations
    """
    top_stations = [
        StationSummary(name=r.station.name,
                       score=round(r.score),
                       availability=f"{r.station.available_connectors}/{r.station.total_connectors}",
                       cost=r.station.price_per_kwh,
                       reason_label=reason_label(r.score))
        for r in ranked[:TOP_STATIONS_IN_SUMMARY]
    ]
    return OptimizationAnalysis(weather_impact_percent=impact_percent(weather_factor),
                                trailer_impact_percent=impact_percent(trailer_factor),
                                safe_range_km=round(feasibility.safe_range_km, 1),
                                charging_needed=feasibility.charging_needed,
                                top_stations=top_stations)
