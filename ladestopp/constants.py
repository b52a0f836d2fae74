MPS_TO_KMH = 3.6

# Weather penalties (fraction of added consumption)
TEMPERATURE_VERY_COLD_C = -10.0
TEMPERATURE_COLD_C = 0.0
TEMPERATURE_HOT_C = 30.0
TEMPERATURE_VERY_COLD_PENALTY = 0.25
TEMPERATURE_COLD_PENALTY = 0.15
TEMPERATURE_HOT_PENALTY = 0.10  # Cooling load
WIND_STRONG_KMH = 54.0  # 15 m/s
WIND_MODERATE_KMH = 36.0  # 10 m/s
WIND_STRONG_PENALTY = 0.08
WIND_MODERATE_PENALTY = 0.04
PRECIPITATION_HEAVY_MM_H = 5.0
PRECIPITATION_PENALTY = 0.05
PRECIPITATION_HEAVY_PENALTY = 0.10
WEATHER_PENALTY_CAP = 0.40

# Trailer penalties, as (upper weight bound in kg, penalty)
TRAILER_PENALTY_STEPS = [(500.0, 0.10), (1000.0, 0.20), (1500.0, 0.30)]
TRAILER_HEAVY_PENALTY = 0.40
TRAILER_PENALTY_CAP = 0.50

# Range
DEFAULT_SAFETY_MARGIN = 0.10
FREE_TIER_SAFETY_MARGIN = 0.15  # More conservative default for users without a subscription
ANCHOR_BUFFER = 0.9  # First stop is searched for at 90% of the safe range

# Input limits
BATTERY_PERCENT_MIN = 0.0
BATTERY_PERCENT_MAX = 100.0
TRAILER_WEIGHT_MAX_KG = 3500.0

# Station scoring
AVAILABILITY_WEIGHT = 40.0
CHARGER_SPEED_WEIGHT = 25.0
PRICE_WEIGHT = 15.0
PROXIMITY_WEIGHT = 20.0
ULTRA_FAST_CHARGER_KW = 250.0
HIGH_POWER_CHARGER_KW = 150.0
HIGH_POWER_CHARGER_SCORE = 20.0
FAST_CHARGER_SCORE = 10.0
FAST_CHARGER_THRESHOLD_KW = 50.0
PRICE_REFERENCE_KWH = 3.0  # Price (NOK/kWh) that still earns the full price score
PRICE_SCORE_PER_UNIT = 3.0  # Score lost per NOK/kWh above the reference price
PROXIMITY_DECAY_KM = 100.0
CRITICAL_BATTERY_PERCENT = 30.0
CRITICAL_BATTERY_BONUS = 30.0
TRUSTED_OPERATORS = ("Tesla", "Fortum", "Eviny")
TRUSTED_OPERATOR_BONUS = 5.0
SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Arrival battery band for a station to be considered at all
ARRIVAL_BATTERY_MIN_PERCENT = 8.0
ARRIVAL_BATTERY_MAX_PERCENT = 15.0

# Analysis labels
EXCELLENT_SCORE = 80.0
GOOD_SCORE = 60.0
TOP_STATIONS_IN_SUMMARY = 3
DIAGNOSTIC_EXCLUSIONS = 5

# Charging stop estimates
FAST_CHARGING_KW = 50.0
NORMAL_CHARGING_KW = 22.0
REMAINING_ROUTE_ENERGY_BUFFER = 1.2
MAX_CHARGE_FRACTION = 0.9

# Upstream services
WEATHER_CACHE_TTL_MINUTES = 30
WEATHER_TIMEOUT_S = 5
STATION_SEARCH_RADIUS_KM = 5.0
STATION_SAMPLE_INTERVAL_KM = 25.0
STATION_TIMEOUT_S = 15
STATION_MAX_RESULTS = 100
UNKNOWN_PRICE_PER_KWH = 5.0  # Assumed price when a station does not publish one
