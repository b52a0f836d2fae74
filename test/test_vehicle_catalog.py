from ladestopp.types import VehicleSpec
from ladestopp.vehicle_catalog import get_vehicle, list_vehicles, validate_vehicle, VEHICLE_CATALOG


def test_get_vehicle() -> None:
    vehicle = get_vehicle("tesla-model-3")
    assert vehicle.brand == "Tesla"
    assert vehicle.battery_capacity_kwh == 75.0
    assert get_vehicle("no-such-car") is None


def test_list_vehicles_sorted() -> None:
    vehicles = list_vehicles()
    assert len(vehicles) == len(VEHICLE_CATALOG)
    keys = [(v.brand, v.model) for v in vehicles]
    assert keys == sorted(keys)


def test_catalog_entries_valid() -> None:
    for vehicle in list_vehicles():
        assert validate_vehicle(vehicle) == []
        # Rated range and consumption should roughly agree with the battery capacity
        assert vehicle.rated_consumption_kwh_100km * vehicle.rated_range_km / 100 < vehicle.battery_capacity_kwh * 1.5


def test_validate_vehicle() -> None:
    vehicle = VehicleSpec(id="bad", brand="X", model="", battery_capacity_kwh=5, rated_range_km=400,
                          rated_consumption_kwh_100km=80)
    errors = validate_vehicle(vehicle)
    assert len(errors) == 4
    assert "bad: battery capacity must be between 10 and 200, was 5" in errors
