import dataclasses
from typing import Callable, List, Optional

from ladestopp.constants import DEFAULT_SAFETY_MARGIN, ARRIVAL_BATTERY_MIN_PERCENT, ARRIVAL_BATTERY_MAX_PERCENT, \
    BATTERY_PERCENT_MIN, BATTERY_PERCENT_MAX, TRAILER_WEIGHT_MAX_KG, DIAGNOSTIC_EXCLUSIONS
from ladestopp.consumption import weather_impact, trailer_impact, NEUTRAL_WEATHER
from ladestopp.errors import ValidationError, NoSuitableStationError, UpstreamDataUnavailable
from ladestopp.logging import log
from ladestopp.range_calculator import check_feasibility
from ladestopp.station_ranking import rank_stations, summarize
from ladestopp.types import OptimizationRequest, OptimizationResult, OptimizationOutcome, RouteContext, WeatherSample
from ladestopp.vehicle_catalog import validate_vehicle

WeatherProvider = Callable[[RouteContext], WeatherSample]


@dataclasses.dataclass(frozen=True)
class OptimizerSettings:
    safety_margin: float = DEFAULT_SAFETY_MARGIN
    arrival_battery_min_percent: float = ARRIVAL_BATTERY_MIN_PERCENT
    arrival_battery_max_percent: float = ARRIVAL_BATTERY_MAX_PERCENT
    # Whether stations without a real along-route distance are ranked using the straight-line distance from the
    # origin. If not set, such stations are excluded.
    estimate_missing_distances: bool = False


DEFAULT_SETTINGS = OptimizerSettings()


def validate_request(request: OptimizationRequest) -> List[str]:
    """
    Check an optimization request for invalid input

    :param request: The request to check
    :return: Every violated constraint (empty if the request is valid)
    """
    violations: List[str] = []
    route = request.route
    if request.vehicle is None:
        violations.append("vehicle: no vehicle selected")
    else:
        violations.extend(f"vehicle: {error}" for error in validate_vehicle(request.vehicle))
    origin = route.origin.name.strip() if route.origin is not None and route.origin.name else ""
    destination = route.destination.name.strip() if route.destination is not None and route.destination.name else ""
    if not origin:
        violations.append("origin: missing")
    if not destination:
        violations.append("destination: missing")
    if origin and destination and origin.lower() == destination.lower():
        violations.append("destination: must differ from origin")
    if not BATTERY_PERCENT_MIN <= route.battery_percent <= BATTERY_PERCENT_MAX:
        violations.append(f"battery_percent: must be between {BATTERY_PERCENT_MIN:.0f} and "
                          f"{BATTERY_PERCENT_MAX:.0f}, was {route.battery_percent}")
    if not 0 <= route.trailer_weight_kg <= TRAILER_WEIGHT_MAX_KG:
        violations.append(f"trailer_weight_kg: must be between 0 and {TRAILER_WEIGHT_MAX_KG:.0f}, "
                          f"was {route.trailer_weight_kg}")
    if route.total_distance_km <= 0:
        violations.append(f"total_distance_km: must be positive, was {route.total_distance_km}")
    return violations


def _resolve_weather(request: OptimizationRequest, weather_provider: Optional[WeatherProvider]) -> WeatherSample:
    if request.weather is not None:
        return request.weather
    if weather_provider is None:
        log.warning("No weather provider configured - using neutral weather")
        return NEUTRAL_WEATHER
    try:
        return weather_provider(request.route)
    except UpstreamDataUnavailable as e:
        log.warning(f"Weather unavailable ({e}) - using neutral weather")
        return NEUTRAL_WEATHER


def optimize_charging_stop(request: OptimizationRequest, weather_provider: Optional[WeatherProvider] = None,
                           settings: OptimizerSettings = DEFAULT_SETTINGS) -> OptimizationResult:
    """
    Decide whether a route needs a charging stop, and if so, recommend the best station for the first stop

    :param request: The vehicle, route, candidate stations and optionally the weather along the route
    :param weather_provider: Used to look up the weather if the request has none
    :param settings: The optimization policy
    :return: The optimization result. The outcome tells whether charging is needed.
    :raises ValidationError: If the request is invalid
    :raises NoSuitableStationError: If charging is needed but no candidate station is suitable
    """
    violations = validate_request(request)
    if len(violations) > 0:
        raise ValidationError(violations)

    vehicle = request.vehicle
    route = request.route
    weather = _resolve_weather(request, weather_provider)
    weather_factor = weather_impact(weather)
    trailer_factor = trailer_impact(route.trailer_weight_kg)
    feasibility = check_feasibility(vehicle, route.battery_percent, route.total_distance_km, weather_factor,
                                    trailer_factor, settings.safety_margin)
    log.info(f"{vehicle.brand} {vehicle.model} at {route.battery_percent}% from {route.origin.name} to "
             f"{route.destination.name}: weather factor {weather_factor:.2f}, trailer factor {trailer_factor:.2f}, "
             f"safe range {feasibility.safe_range_km:.0f} km for {route.total_distance_km:.0f} km route")

    if not feasibility.charging_needed:
        log.info("No charging needed - safe range covers the route")
        return OptimizationResult(outcome=OptimizationOutcome.NO_CHARGING_NEEDED, charging_needed=False,
                                  recommended_station=None, ranked_stations=[],
                                  analysis=summarize([], weather_factor, trailer_factor, feasibility))

    ranked, exclusions = rank_stations(request.candidate_stations, vehicle, route, feasibility,
                                       arrival_band=(settings.arrival_battery_min_percent,
                                                     settings.arrival_battery_max_percent),
                                       estimate_missing_distances=settings.estimate_missing_distances)
    if len(ranked) == 0:
        # Report the excluded stations closest to where the stop was wanted
        anchor = feasibility.anchor_distance_km

        def _closeness(exclusion) -> float:
            if exclusion.distance_from_start_km is None:
                return float("inf")
            return abs(exclusion.distance_from_start_km - anchor)

        nearest = sorted(exclusions, key=_closeness)[:DIAGNOSTIC_EXCLUSIONS]
        log.info(f"No suitable station among {len(request.candidate_stations)} candidates")
        raise NoSuitableStationError(candidates_considered=len(request.candidate_stations), exclusions=nearest)

    best = ranked[0]
    log.info(f"Recommending {best.station.name} at {best.distance_from_start_km:.0f} km "
             f"(score {best.score:.1f}, arrival battery {best.projected_arrival_battery_percent:.1f}%)")
    return OptimizationResult(outcome=OptimizationOutcome.STATION_RECOMMENDED, charging_needed=True,
                              recommended_station=best.station, ranked_stations=ranked,
                              analysis=summarize(ranked, weather_factor, trailer_factor, feasibility))
