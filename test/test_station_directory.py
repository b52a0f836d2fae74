from typing import Dict, Any, List

import pytest
import requests

from ladestopp.errors import UpstreamDataUnavailable
from ladestopp.station_directory import parse_usage_cost, convert_poi, OpenChargeMapDirectory, \
    OPENCHARGEMAP_ENDPOINT
from ladestopp.station_ranking import normalize_station
from ladestopp.types import Coordinate


def make_poi(poi_id: int, lat: float, lng: float = 10.0, **kwargs) -> Dict[str, Any]:
    poi = dict(ID=poi_id, AddressInfo=dict(Title=f"Ladestasjon {poi_id}", Latitude=lat, Longitude=lng),
               Connections=[dict(Quantity=2, PowerKW=150.0, StatusType=dict(IsOperational=True))],
               UsageCost="3,90 NOK/kWh", OperatorInfo=dict(Title="Eviny"))
    poi.update(kwargs)
    return poi


class FakeResponse:
    def __init__(self, data: Any) -> None:
        self._data = data

    def raise_for_status(self) -> None:
        pass

    def json(self) -> Any:
        return self._data


class FakeSession:
    """
    Stands in for requests.Session, returning the same points of interest for every search
    """

    def __init__(self, pois: List[Dict[str, Any]]) -> None:
        self.pois = pois
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params: Dict[str, Any], timeout: float) -> FakeResponse:
        assert url == OPENCHARGEMAP_ENDPOINT
        self.calls.append(params)
        return FakeResponse(self.pois)


class FailingSession:
    def get(self, url: str, params: Dict[str, Any], timeout: float) -> FakeResponse:
        raise requests.Timeout("Read timed out")


def test_parse_usage_cost() -> None:
    assert parse_usage_cost(None) is None
    assert parse_usage_cost("Free") == 0.0
    assert parse_usage_cost("Gratis parkering og lading") == 0.0
    assert parse_usage_cost("4,50 NOK/kWh") == 4.5
    assert parse_usage_cost("NOK 3.2 per kWh") == 3.2
    assert parse_usage_cost("Pay at location") is None


def test_convert_poi() -> None:
    poi = make_poi(42, 60.5, Connections=[
        dict(Quantity=2, PowerKW=150.0, StatusType=dict(IsOperational=True)),
        dict(Quantity=1, PowerKW=50.0, StatusType=dict(IsOperational=False)),
        dict(PowerKW=None),
    ])
    station = normalize_station(convert_poi(poi))
    assert station.id == "ocm-42"
    assert station.name == "Ladestasjon 42"
    assert station.location == Coordinate(60.5, 10.0)
    assert station.total_connectors == 4
    assert station.available_connectors == 3
    assert station.power_kw == 150.0
    assert station.is_fast_charger
    assert station.price_per_kwh == 3.9
    assert station.operator == "Eviny"


def test_convert_poi_sparse() -> None:
    poi = dict(ID=7, AddressInfo=dict(Latitude=61.0, Longitude=9.0), NumberOfPoints=4)
    station = normalize_station(convert_poi(poi, default_price_per_kwh=6.0))
    assert station.name == "Station 7"
    assert station.total_connectors == 4
    assert station.available_connectors == 4
    assert station.power_kw is None
    assert not station.is_fast_charger
    assert station.price_per_kwh == 6.0
    assert station.operator == ""


def test_stations_along_route() -> None:
    path = [Coordinate(60.0, 10.0), Coordinate(61.0, 10.0)]
    session = FakeSession([make_poi(1, 60.5, 10.01), make_poi(2, 60.2, 9.99), dict(ID=3)])
    directory = OpenChargeMapDirectory("key", session=session, sample_interval_km=25.0)
    stations = directory.stations_along_route(path)

    # Every sample point returns the same stations, which are only reported once
    assert len(session.calls) > 1
    assert session.calls[0]["key"] == "key"
    assert [s.id for s in stations] == ["ocm-2", "ocm-1"]
    assert stations[0].distance_from_start_km == pytest.approx(0.2 * 111.195, abs=0.5)
    assert stations[1].distance_from_start_km == pytest.approx(0.5 * 111.195, abs=0.5)


def test_stations_along_route_without_api_key() -> None:
    session = FakeSession([])
    directory = OpenChargeMapDirectory(None, session=session)
    assert directory.stations_along_route([Coordinate(60.0, 10.0), Coordinate(60.1, 10.0)]) == []
    assert "key" not in session.calls[0]


def test_stations_along_route_failure() -> None:
    directory = OpenChargeMapDirectory("key", session=FailingSession())
    with pytest.raises(UpstreamDataUnavailable) as e:
        directory.stations_along_route([Coordinate(60.0, 10.0), Coordinate(61.0, 10.0)])
    assert e.value.source == "stations"
