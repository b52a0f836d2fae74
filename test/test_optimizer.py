import dataclasses
from typing import List

import pytest

from ladestopp.errors import ValidationError, NoSuitableStationError, UpstreamDataUnavailable
from ladestopp.optimizer import optimize_charging_stop, validate_request, OptimizerSettings
from ladestopp.types import VehicleSpec, RouteContext, Location, Coordinate, ChargingStationCandidate, \
    OptimizationRequest, OptimizationOutcome, WeatherSample

COLD = WeatherSample(temperature_c=-15.0, wind_speed_kmh=0.0, precipitation_mm_h=0.0)
MILD = WeatherSample(temperature_c=10.0, wind_speed_kmh=0.0, precipitation_mm_h=0.0)


@pytest.fixture()
def vehicle() -> VehicleSpec:
    return VehicleSpec(id="test-75", brand="Test", model="75", battery_capacity_kwh=75.0, rated_range_km=520.0,
                       rated_consumption_kwh_100km=14.3)


@pytest.fixture()
def stations() -> List[ChargingStationCandidate]:
    return [
        ChargingStationCandidate(id="b", name="Station B", location=Coordinate(60.9, 10.0), available_connectors=1,
                                 total_connectors=4, is_fast_charger=False, price_per_kwh=5.0, operator="Local",
                                 power_kw=22.0, distance_from_start_km=100.0),
        ChargingStationCandidate(id="a", name="Station A", location=Coordinate(60.8, 10.0), available_connectors=4,
                                 total_connectors=4, is_fast_charger=True, price_per_kwh=3.5, operator="Fortum",
                                 power_kw=150.0, distance_from_start_km=90.0),
    ]


def make_request(vehicle, stations, battery_percent=40.0, trailer_weight_kg=1200.0, total_distance_km=300.0,
                 weather=COLD) -> OptimizationRequest:
    route = RouteContext(origin=Location("Oslo", Coordinate(60.0, 10.0)), destination=Location("Trondheim"),
                         trailer_weight_kg=trailer_weight_kg, battery_percent=battery_percent,
                         total_distance_km=total_distance_km)
    return OptimizationRequest(vehicle=vehicle, route=route, candidate_stations=stations, weather=weather)


def test_no_charging_needed(vehicle, stations) -> None:
    request = make_request(vehicle, stations, battery_percent=80, trailer_weight_kg=0, weather=MILD)
    result = optimize_charging_stop(request)
    assert result.outcome == OptimizationOutcome.NO_CHARGING_NEEDED
    assert not result.charging_needed
    assert result.recommended_station is None
    assert result.ranked_stations == []
    assert result.analysis.safe_range_km == pytest.approx(377.6, abs=0.1)
    assert result.analysis.weather_impact_percent == 0.0
    assert result.analysis.trailer_impact_percent == 0.0


def test_station_recommended(vehicle, stations) -> None:
    result = optimize_charging_stop(make_request(vehicle, stations))
    assert result.outcome == OptimizationOutcome.STATION_RECOMMENDED
    assert result.charging_needed
    assert result.recommended_station.id == "a"
    assert [r.station.id for r in result.ranked_stations] == ["a", "b"]
    assert result.ranked_stations[0].score == pytest.approx(95.6, abs=0.1)
    assert result.analysis.weather_impact_percent == 25.0
    assert result.analysis.trailer_impact_percent == 30.0
    assert result.analysis.safe_range_km == pytest.approx(116.2, abs=0.1)
    assert result.analysis.top_stations[0].reason_label == "excellent"
    for ranked in result.ranked_stations:
        assert 8.0 <= ranked.projected_arrival_battery_percent <= 15.0


def test_optimization_is_idempotent(vehicle, stations) -> None:
    request = make_request(vehicle, stations)
    assert optimize_charging_stop(request) == optimize_charging_stop(request)


def test_no_candidates(vehicle) -> None:
    with pytest.raises(NoSuitableStationError) as e:
        optimize_charging_stop(make_request(vehicle, []))
    assert e.value.candidates_considered == 0
    assert e.value.exclusions == []


def test_no_station_in_arrival_band(vehicle, stations) -> None:
    stations = [dataclasses.replace(stations[0], distance_from_start_km=60.0),
                dataclasses.replace(stations[1], distance_from_start_km=110.0)]
    with pytest.raises(NoSuitableStationError) as e:
        optimize_charging_stop(make_request(vehicle, stations))
    assert e.value.candidates_considered == 2
    # The station closest to the preferred stop is reported first
    assert [exclusion.station_name for exclusion in e.value.exclusions] == ["Station A", "Station B"]
    assert "below" in e.value.exclusions[0].reason
    assert "above" in e.value.exclusions[1].reason


def test_validation_reports_all_violations(vehicle, stations) -> None:
    request = make_request(None, stations, battery_percent=120, trailer_weight_kg=4000)
    request.route.origin = Location("")
    with pytest.raises(ValidationError) as e:
        optimize_charging_stop(request)
    fields = [violation.split(":")[0] for violation in e.value.violations]
    assert fields == ["vehicle", "origin", "battery_percent", "trailer_weight_kg"]


def test_validation(vehicle, stations) -> None:
    assert validate_request(make_request(vehicle, stations)) == []
    assert validate_request(make_request(vehicle, stations, battery_percent=0)) == []
    assert validate_request(make_request(vehicle, stations, trailer_weight_kg=3500)) == []
    assert validate_request(make_request(vehicle, stations, trailer_weight_kg=4000)) == \
        ["trailer_weight_kg: must be between 0 and 3500, was 4000"]
    assert validate_request(make_request(vehicle, stations, battery_percent=-1))[0].startswith("battery_percent")
    assert validate_request(make_request(vehicle, stations, total_distance_km=0))[0].startswith("total_distance_km")

    request = make_request(vehicle, stations)
    request.route.destination = Location(" oslo ")
    assert validate_request(request) == ["destination: must differ from origin"]


def test_weather_provider_used(vehicle, stations) -> None:
    requested_routes = []

    def provider(route: RouteContext) -> WeatherSample:
        requested_routes.append(route)
        return COLD

    request = make_request(vehicle, stations, weather=None)
    result = optimize_charging_stop(request, weather_provider=provider)
    assert requested_routes == [request.route]
    assert result.analysis.weather_impact_percent == 25.0

    # Weather given with the request takes precedence. Mild weather leaves both stations above the arrival band.
    with pytest.raises(NoSuitableStationError):
        optimize_charging_stop(make_request(vehicle, stations, weather=MILD), weather_provider=provider)
    assert len(requested_routes) == 1


def test_weather_unavailable_falls_back_to_neutral(vehicle, stations) -> None:
    def provider(route: RouteContext) -> WeatherSample:
        raise UpstreamDataUnavailable("weather", "service down")

    request = make_request(vehicle, stations, battery_percent=80, trailer_weight_kg=0, weather=None)
    result = optimize_charging_stop(request, weather_provider=provider)
    assert result.analysis.weather_impact_percent == 0.0
    assert result.outcome == OptimizationOutcome.NO_CHARGING_NEEDED

    result = optimize_charging_stop(request)
    assert result.analysis.weather_impact_percent == 0.0


def test_free_tier_safety_margin(vehicle, stations) -> None:
    request = make_request(vehicle, stations, battery_percent=80, trailer_weight_kg=0, weather=MILD)
    default = optimize_charging_stop(request)
    free = optimize_charging_stop(request, settings=OptimizerSettings(safety_margin=0.15))
    assert free.analysis.safe_range_km < default.analysis.safe_range_km


def test_estimate_missing_distances(vehicle, stations) -> None:
    # Station A 90 km straight north of the origin, without a reported along-route distance
    unknown = dataclasses.replace(stations[1], location=Coordinate(60.0 + 90.0 / 111.195, 10.0),
                                  distance_from_start_km=None)
    request = make_request(vehicle, [unknown])
    with pytest.raises(NoSuitableStationError) as e:
        optimize_charging_stop(request)
    assert e.value.exclusions[0].reason == "along-route distance unavailable"

    result = optimize_charging_stop(request, settings=OptimizerSettings(estimate_missing_distances=True))
    assert result.recommended_station.id == "a"
    assert result.ranked_stations[0].distance_from_start_km == pytest.approx(90.0, abs=0.1)


def test_validation_rejects_implausible_vehicle(vehicle, stations) -> None:
    no_consumption = dataclasses.replace(vehicle, rated_consumption_kwh_100km=0.0)
    with pytest.raises(ValidationError) as e:
        optimize_charging_stop(make_request(no_consumption, stations))
    assert len(e.value.violations) == 1
    assert e.value.violations[0].startswith("vehicle: test-75: rated consumption")

    no_battery = dataclasses.replace(vehicle, battery_capacity_kwh=0.0)
    violations = validate_request(make_request(no_battery, []))
    assert [v.split(":")[0] for v in violations] == ["vehicle"]
    assert "battery capacity" in violations[0]
