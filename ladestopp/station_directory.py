import dataclasses
from typing import Dict, Any, List, Optional
import re

import requests

from ladestopp.constants import STATION_SEARCH_RADIUS_KM, STATION_SAMPLE_INTERVAL_KM, STATION_TIMEOUT_S, \
    STATION_MAX_RESULTS, UNKNOWN_PRICE_PER_KWH
from ladestopp.errors import UpstreamDataUnavailable
from ladestopp.logging import log
from ladestopp.route_geometry import along_route_distance, sample_path
from ladestopp.station_ranking import normalize_station
from ladestopp.types import ChargingStationCandidate, Coordinate

OPENCHARGEMAP_ENDPOINT = "https://api.openchargemap.io/v3/poi/"


def parse_usage_cost(usage_cost: Optional[str]) -> Optional[float]:
    """
    Parse the free-text usage cost of a station, e.g. "4,50 NOK/kWh" or "Free"

    :return: The price per kWh, or None if it cannot be determined
    """
    if usage_cost is None:
        return None
    if "free" in usage_cost.lower() or "gratis" in usage_cost.lower():
        return 0.0
    match = re.search(r"\d+(?:[.,]\d+)?", usage_cost)
    if match is None:
        return None
    return float(match.group(0).replace(",", "."))


def convert_poi(poi: Dict[str, Any], default_price_per_kwh: float = UNKNOWN_PRICE_PER_KWH) -> Dict[str, Any]:
    """
    Convert an Open Charge Map point of interest into a raw station record as accepted by normalize_station()
    """
    address = poi["AddressInfo"]
    connections = poi.get("Connections") or []
    total = sum(c.get("Quantity") or 1 for c in connections) or poi.get("NumberOfPoints") or 1
    available = sum(c.get("Quantity") or 1 for c in connections
                    if (c.get("StatusType") or {}).get("IsOperational", True))
    if len(connections) == 0:
        available = total
    powers = [c["PowerKW"] for c in connections if c.get("PowerKW") is not None]
    price = parse_usage_cost(poi.get("UsageCost"))
    return dict(id=f"ocm-{poi['ID']}",
                name=address.get("Title") or f"Station {poi['ID']}",
                latitude=address["Latitude"],
                longitude=address["Longitude"],
                available=available,
                total=total,
                power_kw=max(powers) if len(powers) > 0 else None,
                price_per_kwh=price if price is not None else default_price_per_kwh,
                operator=(poi.get("OperatorInfo") or {}).get("Title") or "")


class OpenChargeMapDirectory:
    """
    Charging station directory backed by Open Charge Map.

    See https://openchargemap.org/site/develop/api for more info.
    """

    def __init__(self, api_key: Optional[str], session: Optional[requests.Session] = None,
                 search_radius_km: float = STATION_SEARCH_RADIUS_KM,
                 sample_interval_km: float = STATION_SAMPLE_INTERVAL_KM,
                 timeout_s: float = STATION_TIMEOUT_S) -> None:
        self._api_key = api_key
        self._session = session if session is not None else requests.Session()
        self._search_radius_km = search_radius_km
        self._sample_interval_km = sample_interval_km
        self._timeout_s = timeout_s

    def find_nearby(self, coordinate: Coordinate) -> List[Dict[str, Any]]:
        params = dict(output="json", latitude=coordinate.lat, longitude=coordinate.lng,
                      distance=self._search_radius_km, distanceunit="KM", maxresults=STATION_MAX_RESULTS,
                      compact="true", verbose="false")
        if self._api_key:
            params["key"] = self._api_key
        try:
            response = self._session.get(OPENCHARGEMAP_ENDPOINT, params=params, timeout=self._timeout_s)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise UpstreamDataUnavailable("stations", f"request failed: {e}") from e
        except ValueError as e:
            raise UpstreamDataUnavailable("stations", f"unexpected response: {e}") from e

    def stations_along_route(self, path: List[Coordinate]) -> List[ChargingStationCandidate]:
        """
        Find charging stations along a route, annotated with their along-route distance

        :param path: The route path from the routing provider
        :return: The stations, ordered by distance from the route start
        :raises UpstreamDataUnavailable: If the directory could not be queried
        """
        pois: Dict[Any, Dict[str, Any]] = {}
        for point in sample_path(path, self._sample_interval_km):
            for poi in self.find_nearby(point):
                pois.setdefault(poi.get("ID"), poi)

        stations: List[ChargingStationCandidate] = []
        for poi in pois.values():
            try:
                station = normalize_station(convert_poi(poi))
            except (KeyError, TypeError, ValueError) as e:
                log.warning(f"Skipping malformed station {poi.get('ID')}: {e}")
                continue
            distance, _ = along_route_distance(path, station.location)
            stations.append(dataclasses.replace(station, distance_from_start_km=distance))

        stations.sort(key=lambda s: s.distance_from_start_km)
        log.info(f"Found {len(stations)} charging stations along route")
        return stations
