"""Domain models for ps_spot — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_SEARCH_RADIUS_DEG = 0.05


@dataclass
class Spot:
    id: str
    name: str
    address: str
    lat: float
    lng: float
    rate_cents: int          # hourly
    total_spots: int         # >= 1
    available_spots: int     # 0 <= available_spots <= total_spots
    zone: str
    restrictions: list[str] = field(default_factory=list)
    is_active: bool = True
    last_updated: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        return self.is_active and self.available_spots > 0

    @property
    def occupancy_percentage(self) -> float:
        return (self.total_spots - self.available_spots) / self.total_spots * 100


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def around(
        cls, lat: float, lng: float, radius: float = DEFAULT_SEARCH_RADIUS_DEG
    ) -> "BoundingBox":
        """Square box of +/- radius degrees; not a geodesic distance."""
        return cls(
            min_lat=max(-90.0, lat - radius),
            max_lat=min(90.0, lat + radius),
            min_lng=max(-180.0, lng - radius),
            max_lng=min(180.0, lng + radius),
        )


@dataclass(frozen=True)
class SpotQuery:
    zone: str | None = None
    bbox: BoundingBox | None = None
    include_inactive: bool = False


@dataclass
class SpotTotals:
    spot_count: int          # active spot records
    total_capacity: int      # SUM(total_spots) over active spots
    available: int           # SUM(available_spots) over active spots

    @property
    def occupancy_rate(self) -> float:
        if self.total_capacity == 0:
            return 0.0
        return (self.total_capacity - self.available) / self.total_capacity * 100


def clamp_available(value: int, total_spots: int) -> int:
    """Saturate an administrative availability value into [0, total_spots]."""
    return max(0, min(value, total_spots))
