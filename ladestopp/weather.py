from typing import Dict, Any, Optional, Callable, Tuple, List
import datetime as dt
import threading

import requests

from ladestopp.constants import MPS_TO_KMH, WEATHER_CACHE_TTL_MINUTES, WEATHER_TIMEOUT_S
from ladestopp.errors import UpstreamDataUnavailable
from ladestopp.logging import log
from ladestopp.types import Coordinate, RouteContext, WeatherSample

OPENWEATHERMAP_ENDPOINT = "https://api.openweathermap.org/data/2.5"
FORECAST_STEP_HOURS = 3

CacheKey = Tuple[float, float, Optional[str]]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class WeatherCache:
    """
    Cache of weather samples, owned by the caller and passed to the weather provider.

    Entries expire after the TTL. Entries are keyed on the coordinate (rounded to ~1 km) and the hour of travel, so
    changing the travel date always causes a new lookup. invalidate() drops everything, e.g. when the forecast source
    is known to have been updated.
    """

    def __init__(self, ttl: dt.timedelta = dt.timedelta(minutes=WEATHER_CACHE_TTL_MINUTES),
                 clock: Callable[[], dt.datetime] = _utc_now) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[dt.datetime, WeatherSample]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(coordinate: Coordinate, travel_time: Optional[dt.datetime]) -> CacheKey:
        travel_hour = None if travel_time is None else \
            travel_time.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H")
        return round(coordinate.lat, 2), round(coordinate.lng, 2), travel_hour

    def get(self, key: CacheKey) -> Optional[WeatherSample]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, sample = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return sample

    def put(self, key: CacheKey, sample: WeatherSample) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), sample)

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()

    def prune(self) -> int:
        """
        Remove expired entries

        :return: The number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


def parse_current_weather(data: Dict[str, Any]) -> WeatherSample:
    """
    Parse an OpenWeatherMap current weather response (metric units)
    """
    precipitation = data.get("rain", {}).get("1h") or data.get("snow", {}).get("1h") or 0.0
    return WeatherSample(temperature_c=float(data["main"]["temp"]),
                         wind_speed_kmh=float(data.get("wind", {}).get("speed", 0.0)) * MPS_TO_KMH,
                         precipitation_mm_h=float(precipitation))


def parse_forecast_weather(data: Dict[str, Any], travel_time: dt.datetime) -> WeatherSample:
    """
    Parse an OpenWeatherMap 5 day / 3 hour forecast response, picking the entry closest to the travel time
    """
    entries: List[Dict[str, Any]] = data["list"]
    if len(entries) == 0:
        raise ValueError("Forecast contains no entries")
    target = travel_time.timestamp()
    entry = min(entries, key=lambda e: abs(e["dt"] - target))
    gap_hours = abs(entry["dt"] - target) / 3600.0
    if gap_hours > FORECAST_STEP_HOURS:
        log.warning(f"Travel time {travel_time.isoformat()} is outside the forecast window - using the forecast "
                    f"{gap_hours:.0f} hours away")
    precipitation_3h = entry.get("rain", {}).get("3h") or entry.get("snow", {}).get("3h") or 0.0
    return WeatherSample(temperature_c=float(entry["main"]["temp"]),
                         wind_speed_kmh=float(entry.get("wind", {}).get("speed", 0.0)) * MPS_TO_KMH,
                         precipitation_mm_h=float(precipitation_3h) / FORECAST_STEP_HOURS)


def average_weather(samples: List[WeatherSample]) -> WeatherSample:
    n = len(samples)
    return WeatherSample(temperature_c=sum(s.temperature_c for s in samples) / n,
                         wind_speed_kmh=sum(s.wind_speed_kmh for s in samples) / n,
                         precipitation_mm_h=sum(s.precipitation_mm_h for s in samples) / n)


class OpenWeatherMapProvider:
    """
    Weather provider backed by OpenWeatherMap. Uses current weather for trips starting within the hour and the
    forecast for later trips.

    See https://openweathermap.org/api for more info.
    """

    def __init__(self, api_key: Optional[str], cache: WeatherCache, session: Optional[requests.Session] = None,
                 timeout_s: float = WEATHER_TIMEOUT_S, clock: Callable[[], dt.datetime] = _utc_now) -> None:
        self._api_key = api_key
        self._cache = cache
        self._session = session if session is not None else requests.Session()
        self._timeout_s = timeout_s
        self._clock = clock

    def _get(self, path: str, coordinate: Coordinate) -> Dict[str, Any]:
        params = dict(lat=coordinate.lat, lon=coordinate.lng, appid=self._api_key, units="metric")
        response = self._session.get(f"{OPENWEATHERMAP_ENDPOINT}/{path}", params=params, timeout=self._timeout_s)
        response.raise_for_status()
        return response.json()

    def get_weather(self, coordinate: Coordinate, travel_time: Optional[dt.datetime] = None) -> WeatherSample:
        """
        Get the weather at a coordinate

        :param coordinate: Where to look up the weather
        :param travel_time: When the weather is wanted, None meaning now
        :return: The weather sample
        :raises UpstreamDataUnavailable: If the weather could not be fetched
        """
        if not self._api_key:
            raise UpstreamDataUnavailable("weather", "no OpenWeatherMap API key configured")
        if travel_time is not None and travel_time.tzinfo is None:
            travel_time = travel_time.astimezone()
        use_forecast = travel_time is not None and travel_time > self._clock() + dt.timedelta(hours=1)
        key = self._cache.key(coordinate, travel_time if use_forecast else None)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            if use_forecast:
                sample = parse_forecast_weather(self._get("forecast", coordinate), travel_time)
            else:
                sample = parse_current_weather(self._get("weather", coordinate))
        except requests.RequestException as e:
            raise UpstreamDataUnavailable("weather", f"request failed: {e}") from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamDataUnavailable("weather", f"unexpected response: {e}") from e

        log.info(f"Weather at ({coordinate.lat:.3f}, {coordinate.lng:.3f}): {sample}")
        self._cache.put(key, sample)
        return sample

    def __call__(self, route: RouteContext) -> WeatherSample:
        """
        Get the weather along a route as the average of the weather at its origin and destination
        """
        coordinates = [loc.coordinate for loc in (route.origin, route.destination) if loc.coordinate is not None]
        if len(coordinates) == 0:
            raise UpstreamDataUnavailable("weather", "route has no coordinates")
        return average_weather([self.get_weather(c, route.travel_time) for c in coordinates])
