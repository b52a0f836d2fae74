import dataclasses
import datetime as dt
import enum
from typing import Optional, List


@dataclasses.dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclasses.dataclass
class Location:
    name: str
    coordinate: Optional[Coordinate] = None


@dataclasses.dataclass(frozen=True)
class VehicleSpec:
    id: str
    brand: str
    model: str
    battery_capacity_kwh: float
    rated_range_km: float
    rated_consumption_kwh_100km: float


@dataclasses.dataclass
class RouteContext:
    origin: Location
    destination: Location
    trailer_weight_kg: float  # 0 means no trailer
    battery_percent: float  # Current battery level in the range [0, 100]
    total_distance_km: float
    travel_time: Optional[dt.datetime] = None  # None means "now", later times use forecast weather
    path: Optional[List[Coordinate]] = None  # Route geometry from the routing provider


@dataclasses.dataclass(frozen=True)
class WeatherSample:
    temperature_c: float
    wind_speed_kmh: float
    precipitation_mm_h: float


@dataclasses.dataclass(frozen=True)
class ChargingStationCandidate:
    id: str
    name: str
    location: Coordinate
    available_connectors: int
    total_connectors: int
    is_fast_charger: bool
    price_per_kwh: float
    operator: str = ""
    power_kw: Optional[float] = None  # None if the directory does not report a power rating
    distance_from_start_km: Optional[float] = None  # Along-route position


@dataclasses.dataclass
class Feasibility:
    raw_range_km: float
    safe_range_km: float
    adjusted_consumption_kwh_100km: float
    charging_needed: bool
    anchor_distance_km: Optional[float]  # Where to look for the first stop (None if no charging needed)


@dataclasses.dataclass
class RankedStation:
    station: ChargingStationCandidate
    score: float
    distance_from_start_km: float
    projected_arrival_battery_percent: float
    availability_ratio: float
    energy_to_charge_kwh: float
    charging_time_minutes: int
    charging_cost: float


@dataclasses.dataclass
class StationSummary:
    name: str
    score: int
    availability: str  # "<available>/<total>"
    cost: float  # Price per kWh
    reason_label: str


@dataclasses.dataclass
class OptimizationAnalysis:
    weather_impact_percent: float
    trailer_impact_percent: float
    safe_range_km: float
    charging_needed: bool
    top_stations: List[StationSummary]


class OptimizationOutcome(enum.Enum):
    NO_CHARGING_NEEDED = "no_charging_needed"
    STATION_RECOMMENDED = "station_recommended"


@dataclasses.dataclass
class OptimizationRequest:
    vehicle: Optional[VehicleSpec]
    route: RouteContext
    candidate_stations: List[ChargingStationCandidate]
    weather: Optional[WeatherSample] = None  # Fetched from the weather provider if missing


@dataclasses.dataclass
class OptimizationResult:
    outcome: OptimizationOutcome
    charging_needed: bool
    recommended_station: Optional[ChargingStationCandidate]
    ranked_stations: List[RankedStation]
    analysis: OptimizationAnalysis
