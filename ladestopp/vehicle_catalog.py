from typing import Dict, List, Optional

from ladestopp.types import VehicleSpec

# Catalog limits, used to catch typos in the reference data
BATTERY_CAPACITY_RANGE_KWH = (10.0, 200.0)
RATED_RANGE_RANGE_KM = (50.0, 1000.0)
CONSUMPTION_RANGE_KWH_100KM = (10.0, 50.0)

# (id, brand, model, battery capacity kWh, rated range km, rated consumption kWh/100km)
_CATALOG_DATA = [
    ("audi-q4-etron", "Audi", "Q4 e-tron", 82, 520, 18.1),
    ("audi-q8-etron", "Audi", "Q8 e-tron", 114, 582, 21.0),
    ("bmw-i4", "BMW", "i4", 84, 590, 16.1),
    ("bmw-ix", "BMW", "iX", 111, 630, 19.4),
    ("bmw-ix3", "BMW", "iX3", 80, 459, 18.9),
    ("byd-atto-3", "BYD", "Atto 3", 60, 420, 15.9),
    ("byd-seal", "BYD", "Seal", 82, 570, 15.7),
    ("cupra-born", "Cupra", "Born", 77, 548, 15.4),
    ("ford-mustang-mach-e", "Ford", "Mustang Mach-E", 91, 600, 16.5),
    ("hyundai-ioniq-5", "Hyundai", "IONIQ 5", 77, 507, 16.7),
    ("hyundai-ioniq-6", "Hyundai", "IONIQ 6", 77, 614, 13.7),
    ("hyundai-kona-electric", "Hyundai", "Kona Electric", 65, 484, 14.7),
    ("kia-ev6", "Kia", "EV6", 77, 528, 16.0),
    ("kia-ev9", "Kia", "EV9", 100, 563, 19.4),
    ("mercedes-eqe", "Mercedes-Benz", "EQE", 90, 660, 15.0),
    ("mg-4", "MG", "4", 64, 450, 15.8),
    ("nissan-ariya", "Nissan", "Ariya", 87, 533, 17.8),
    ("nissan-leaf", "Nissan", "Leaf", 62, 385, 17.1),
    ("polestar-2", "Polestar", "2", 78, 540, 15.8),
    ("polestar-3", "Polestar", "3", 111, 610, 19.9),
    ("renault-zoe", "Renault", "ZOE", 52, 395, 14.1),
    ("skoda-enyaq", "Skoda", "Enyaq iV", 82, 534, 16.7),
    ("tesla-model-3", "Tesla", "Model 3", 75, 629, 13.2),
    ("tesla-model-s", "Tesla", "Model S", 100, 652, 16.4),
    ("tesla-model-x", "Tesla", "Model X", 100, 543, 20.9),
    ("tesla-model-y", "Tesla", "Model Y", 75, 533, 15.3),
    ("toyota-bz4x", "Toyota", "bZ4X", 71, 516, 15.0),
    ("volkswagen-id3", "Volkswagen", "ID.3", 77, 554, 15.4),
    ("volkswagen-id4", "Volkswagen", "ID.4", 77, 520, 16.3),
    ("volkswagen-id-buzz", "Volkswagen", "ID. Buzz", 82, 423, 21.3),
    ("volvo-ex30", "Volvo", "EX30", 69, 476, 15.7),
    ("volvo-ex90", "Volvo", "EX90", 111, 614, 19.7),
    ("volvo-xc40-recharge", "Volvo", "XC40 Recharge", 78, 425, 19.9),
]


def validate_vehicle(vehicle: VehicleSpec) -> List[str]:
    """
    Check a vehicle record against the catalog limits

    :return: Every violated limit (empty if the record is valid)
    """
    errors = []
    if len(vehicle.brand.strip()) < 2:
        errors.append(f"{vehicle.id}: invalid brand")
    if len(vehicle.model.strip()) < 1:
        errors.append(f"{vehicle.id}: invalid model")
    for name, value, (low, high) in [
        ("battery capacity", vehicle.battery_capacity_kwh, BATTERY_CAPACITY_RANGE_KWH),
        ("rated range", vehicle.rated_range_km, RATED_RANGE_RANGE_KM),
        ("rated consumption", vehicle.rated_consumption_kwh_100km, CONSUMPTION_RANGE_KWH_100KM),
    ]:
        if not low <= value <= high:
            errors.append(f"{vehicle.id}: {name} must be between {low:g} and {high:g}, was {value:g}")
    return errors


def _load_catalog() -> Dict[str, VehicleSpec]:
    catalog = {}
    for vehicle_id, brand, model, capacity, rated_range, consumption in _CATALOG_DATA:
        vehicle = VehicleSpec(id=vehicle_id, brand=brand, model=model, battery_capacity_kwh=float(capacity),
                              rated_range_km=float(rated_range), rated_consumption_kwh_100km=float(consumption))
        errors = validate_vehicle(vehicle)
        if len(errors) > 0:
            raise RuntimeError(f"Invalid vehicle catalog entry: {'; '.join(errors)}")
        catalog[vehicle_id] = vehicle
    return catalog


VEHICLE_CATALOG = _load_catalog()


def get_vehicle(vehicle_id: str) -> Optional[VehicleSpec]:
    return VEHICLE_CATALOG.get(vehicle_id)


def list_vehicles() -> List[VehicleSpec]:
    """
    Returns all vehicles in the catalog, sorted by brand and model
    """
    return sorted(VEHICLE_CATALOG.values(), key=lambda v: (v.brand, v.model))
