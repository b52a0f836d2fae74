import dataclasses
from typing import List, Optional


class ValidationError(ValueError):
    """
    Raised when an optimization request is invalid. Lists every violated constraint, not just the first one.
    """

    def __init__(self, violations: List[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = violations


@dataclasses.dataclass
class StationExclusion:
    station_name: str
    distance_from_start_km: Optional[float]
    reason: str


class NoSuitableStationError(RuntimeError):
    """
    Raised when charging is required but no candidate station survives filtering
    """

    def __init__(self, candidates_considered: int, exclusions: List[StationExclusion]) -> None:
        super().__init__(f"No suitable charging station among {candidates_considered} candidates")
        self.candidates_considered = candidates_considered
        self.exclusions = exclusions


class UpstreamDataUnavailable(RuntimeError):
    """
    Raised by upstream data providers (weather, station directory) when data could not be fetched or parsed
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason
