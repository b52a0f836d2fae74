import asyncio
import dataclasses
import os
from typing import Optional
import datetime as dt

import argparse

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ladestopp.constants import WEATHER_CACHE_TTL_MINUTES
from ladestopp.logging import log
from ladestopp.optimizer import optimize_charging_stop, OptimizerSettings
from ladestopp.range_calculator import safety_margin_for_tier
from ladestopp.station_directory import OpenChargeMapDirectory
from ladestopp.types import OptimizationRequest, OptimizationResult
from ladestopp.vehicle_catalog import get_vehicle, list_vehicles
from ladestopp.weather import WeatherCache, OpenWeatherMapProvider

from ladestopp.webservice import LadestoppService


class ApplicationState:
    def __init__(self, weather_cache: WeatherCache, weather_provider: OpenWeatherMapProvider,
                 settings: OptimizerSettings) -> None:
        self._weather_cache = weather_cache
        self._weather_provider = weather_provider
        self._settings = settings

    def on_optimization_request(self, request: OptimizationRequest, tier: Optional[str]) -> OptimizationResult:
        log.info(f"Received optimization request: {request.route.origin.name} -> {request.route.destination.name} "
                 f"({len(request.candidate_stations)} candidate stations, tier {tier})")
        settings = dataclasses.replace(self._settings, safety_margin=safety_margin_for_tier(tier))
        return optimize_charging_stop(request, weather_provider=self._weather_provider, settings=settings)

    def prune_weather_cache(self) -> None:
        removed = self._weather_cache.prune()
        if removed > 0:
            log.info(f"Pruned {removed} expired weather cache entries")


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--webservice_port", help="The port to use for the webservice", type=int, default=5042)
    parser.add_argument("--openweather_api_key", help="The OpenWeatherMap API key to use",
                        default=os.environ.get("OPENWEATHER_API_KEY"))
    parser.add_argument("--openchargemap_api_key", help="The Open Charge Map API key to use",
                        default=os.environ.get("OPENCHARGEMAP_API_KEY"))
    parser.add_argument("--weather_cache_ttl_minutes", help="How long fetched weather stays valid", type=int,
                        default=WEATHER_CACHE_TTL_MINUTES)
    parser.add_argument("--estimate_missing_distances", action="store_true",
                        help="Rank stations without a known along-route distance using straight-line distance")
    args = parser.parse_args()

    if not args.openweather_api_key:
        log.warning("No OpenWeatherMap API key given - neutral weather will be assumed")

    # The weather cache is shared by all requests and pruned by the scheduler below
    weather_cache = WeatherCache(ttl=dt.timedelta(minutes=args.weather_cache_ttl_minutes))
    weather_provider = OpenWeatherMapProvider(args.openweather_api_key, weather_cache)
    station_directory = OpenChargeMapDirectory(args.openchargemap_api_key)

    # Create application state to tie together different pieces of the app
    state = ApplicationState(weather_cache, weather_provider,
                             OptimizerSettings(estimate_missing_distances=args.estimate_missing_distances))

    # Start the webservice used to plan charging stops on a worker thread
    webservice = LadestoppService(host="0.0.0.0", port=args.webservice_port,
                                  vehicle_getter=get_vehicle,
                                  vehicle_lister=list_vehicles,
                                  optimization_handler=state.on_optimization_request,
                                  station_finder=station_directory.stations_along_route)
    webservice.start()

    # Create a scheduler that drops expired weather regularly
    scheduler = AsyncIOScheduler()
    scheduler.add_job(state.prune_weather_cache, IntervalTrigger(minutes=args.weather_cache_ttl_minutes),
                      max_instances=1)
    scheduler.start()

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        log.warning("Quitting due to keyboard interrupt")
        raise
    finally:
        # Clean up
        scheduler.shutdown(wait=False)
        webservice.stop()
        log.info("Web service shut down")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
