import threading
from typing import List, Callable, Optional, Dict, Any, Tuple

import datetime as dt
from flask import Flask, jsonify, Response, request
import waitress
from flask_cors import CORS

from ladestopp.errors import ValidationError, NoSuitableStationError, UpstreamDataUnavailable
from ladestopp.logging import log
from ladestopp.station_ranking import normalize_station
from ladestopp.types import VehicleSpec, OptimizationRequest, OptimizationResult, RouteContext, Location, \
    Coordinate, WeatherSample, ChargingStationCandidate
from dataclasses import asdict

OptimizationHandler = Callable[[OptimizationRequest, Optional[str]], OptimizationResult]
StationFinder = Callable[[List[Coordinate]], List[ChargingStationCandidate]]

NO_SUITABLE_STATION_GUIDANCE = "Increase charge before departure"


def _parse_coordinate(data: Any) -> Coordinate:
    if isinstance(data, dict):
        return Coordinate(lat=float(data["lat"]), lng=float(data["lng"]))
    lat, lng = data
    return Coordinate(lat=float(lat), lng=float(lng))


def _parse_location(data: Any) -> Location:
    if data is None or isinstance(data, str):
        return Location(name=data or "")
    if not isinstance(data, dict):
        raise TypeError(f"Location must be a name or an object, was {type(data).__name__}")
    coordinate = None
    if data.get("lat") is not None and data.get("lng") is not None:
        coordinate = _parse_coordinate(data)
    return Location(name=data.get("name") or "", coordinate=coordinate)


def parse_route(data: Dict[str, Any]) -> RouteContext:
    if not isinstance(data, dict):
        raise TypeError(f"Route must be an object, was {type(data).__name__}")
    travel_time = None
    if data.get("travel_time") is not None:
        travel_time = dt.datetime.fromisoformat(data["travel_time"])
    path = None
    if data.get("path") is not None:
        path = [_parse_coordinate(p) for p in data["path"]]
    return RouteContext(origin=_parse_location(data.get("origin")),
                        destination=_parse_location(data.get("destination")),
                        trailer_weight_kg=float(data.get("trailer_weight_kg", 0)),
                        battery_percent=float(data["battery_percent"]),
                        total_distance_km=float(data["total_distance_km"]),
                        travel_time=travel_time,
                        path=path)


def parse_vehicle(data: Dict[str, Any]) -> VehicleSpec:
    return VehicleSpec(id=str(data.get("id", "custom")),
                       brand=str(data["brand"]),
                       model=str(data["model"]),
                       battery_capacity_kwh=float(data["battery_capacity_kwh"]),
                       rated_range_km=float(data["rated_range_km"]),
                       rated_consumption_kwh_100km=float(data["rated_consumption_kwh_100km"]))


def parse_weather(data: Dict[str, Any]) -> WeatherSample:
    return WeatherSample(temperature_c=float(data["temperature_c"]),
                         wind_speed_kmh=float(data.get("wind_speed_kmh", 0.0)),
                         precipitation_mm_h=float(data.get("precipitation_mm_h", 0.0)))


def result_to_dict(result: OptimizationResult) -> Dict[str, Any]:
    converted = asdict(result)
    converted["outcome"] = result.outcome.value
    return converted


class LadestoppService:
    def __init__(self, host: str, port: int, vehicle_getter: Callable[[str], Optional[VehicleSpec]],
                 vehicle_lister: Callable[[], List[VehicleSpec]], optimization_handler: OptimizationHandler,
                 station_finder: Optional[StationFinder] = None) -> None:
        self._vehicle_getter = vehicle_getter
        self._vehicle_lister = vehicle_lister
        self._optimization_handler = optimization_handler
        self._station_finder = station_finder

        # Create Flask application
        self._service = Flask(__name__)

        # Enable cross-site requests
        CORS(self._service)

        # Add API endpoints
        self._service.add_url_rule("/vehicles", "vehicles", self.vehicles, methods=["GET"])
        self._service.add_url_rule("/optimize", "optimize", self.optimize, methods=["POST"])
        self._server = waitress.create_server(self._service, host=host, port=port, threads=1)
        self._server_thread = threading.Thread(target=self._server.run, name="server_thread", daemon=True)

    @property
    def endpoint(self) -> str:
        return f"http://{self._server.effective_host}:{self._server.effective_port}"

    def start(self) -> None:
        self._server_thread.start()
        log.info(f"Started webservice at {self.endpoint}")

    def stop(self) -> None:
        self._server.close()

    def __enter__(self) -> "LadestoppService":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def vehicles(self) -> Response:
        """
        API endpoint to list the vehicle catalog
        """
        return jsonify([asdict(v) for v in self._vehicle_lister()])

    def _find_stations(self, route: RouteContext) -> List[ChargingStationCandidate]:
        if self._station_finder is None or not route.path:
            return []
        try:
            return self._station_finder(route.path)
        except UpstreamDataUnavailable as e:
            log.warning(f"Station directory unavailable ({e}) - continuing without candidate stations")
            return []

    def _parse_optimization_request(self, data: Dict[str, Any]) -> Tuple[OptimizationRequest, Optional[str]]:
        if data.get("vehicle") is not None:
            vehicle = parse_vehicle(data["vehicle"])
        else:
            vehicle = self._vehicle_getter(str(data.get("vehicle_id", "")))
        route = parse_route(data["route"])
        if data.get("stations") is not None:
            stations = [normalize_station(s) for s in data["stations"]]
        else:
            stations = self._find_stations(route)
        weather = parse_weather(data["weather"]) if data.get("weather") is not None else None
        return OptimizationRequest(vehicle=vehicle, route=route, candidate_stations=stations, weather=weather), \
            data.get("tier")

    def optimize(self) -> Response:
        """
        API endpoint to find the best charging stop for a route
        """
        # Convert POST data to Python dataclasses
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return Response("Request body must be a JSON object", 400)
        try:
            optimization_request, tier = self._parse_optimization_request(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return Response(f"Unable to parse request parameters: '{e}'", 400)

        # Call handler and return result
        try:
            result = self._optimization_handler(optimization_request, tier)
        except ValidationError as e:
            return jsonify(dict(error="validation", violations=e.violations)), 400
        except NoSuitableStationError as e:
            return jsonify(dict(error="no_suitable_station", guidance=NO_SUITABLE_STATION_GUIDANCE,
                                candidates_considered=e.candidates_considered,
                                exclusions=[asdict(x) for x in e.exclusions])), 422
        return jsonify(result_to_dict(result))
