from typing import Optional

from ladestopp.constants import DEFAULT_SAFETY_MARGIN, FREE_TIER_SAFETY_MARGIN, ANCHOR_BUFFER
from ladestopp.types import VehicleSpec, Feasibility


def safety_margin_for_tier(tier: Optional[str]) -> float:
    """
    Returns the safety margin applied to the raw range for a subscription tier. Unknown or missing tiers get the
    default margin.
    """
    if tier is not None and tier.lower() == "free":
        return FREE_TIER_SAFETY_MARGIN
    return DEFAULT_SAFETY_MARGIN


def adjusted_consumption(vehicle: VehicleSpec, weather_factor: float, trailer_factor: float) -> float:
    return vehicle.rated_consumption_kwh_100km * weather_factor * trailer_factor


def compute_raw_range(vehicle: VehicleSpec, battery_percent: float, weather_factor: float,
                      trailer_factor: float) -> float:
    available_energy_kwh = vehicle.battery_capacity_kwh * battery_percent / 100.0
    return available_energy_kwh / adjusted_consumption(vehicle, weather_factor, trailer_factor) * 100.0


def compute_safe_range(vehicle: VehicleSpec, battery_percent: float, weather_factor: float, trailer_factor: float,
                       safety_margin: float = DEFAULT_SAFETY_MARGIN) -> float:
    """
    Calculate the usable driving distance with the current battery under the given conditions

    :param vehicle: The vehicle to calculate for
    :param battery_percent: The current battery level in the range [0, 100]
    :param weather_factor: Consumption factor from weather_impact()
    :param trailer_factor: Consumption factor from trailer_impact()
    :param safety_margin: Fraction of the raw range that is never planned for, at least DEFAULT_SAFETY_MARGIN
    :return: The safe range in kilometers
    """
    if safety_margin < DEFAULT_SAFETY_MARGIN:
        raise RuntimeError(f"Safety margin must be at least {DEFAULT_SAFETY_MARGIN}, was '{safety_margin}'")
    raw_range_km = compute_raw_range(vehicle, battery_percent, weather_factor, trailer_factor)
    return raw_range_km * (1.0 - safety_margin)


def check_feasibility(vehicle: VehicleSpec, battery_percent: float, total_distance_km: float, weather_factor: float,
                      trailer_factor: float, safety_margin: float = DEFAULT_SAFETY_MARGIN) -> Feasibility:
    """
    Determine whether the route can be driven without charging, and if not, where to look for the first stop
    """
    raw_range_km = compute_raw_range(vehicle, battery_percent, weather_factor, trailer_factor)
    safe_range_km = compute_safe_range(vehicle, battery_percent, weather_factor, trailer_factor, safety_margin)
    charging_needed = total_distance_km > safe_range_km
    return Feasibility(raw_range_km=raw_range_km, safe_range_km=safe_range_km,
                       adjusted_consumption_kwh_100km=adjusted_consumption(vehicle, weather_factor, trailer_factor),
                       charging_needed=charging_needed,
                       anchor_distance_km=safe_range_km * ANCHOR_BUFFER if charging_needed else None)


def battery_percent_at_distance(vehicle: VehicleSpec, battery_percent: float, distance_km: float,
                                consumption_kwh_100km: float) -> float:
    """
    Project the battery level after driving a distance at a given consumption. Never drops below 0.
    """
    start_energy_kwh = vehicle.battery_capacity_kwh * battery_percent / 100.0
    energy_used_kwh = distance_km / 100.0 * consumption_kwh_100km
    remaining_energy_kwh = max(0.0, start_energy_kwh - energy_used_kwh)
    return remaining_energy_kwh / vehicle.battery_capacity_kwh * 100.0
