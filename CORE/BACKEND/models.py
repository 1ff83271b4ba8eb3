"""
Domain records for territory capture.

Everything here round-trips through JSON documents with camelCase keys,
which is also the shape the HTTP API returns.
"""
import math
import time
from collections import namedtuple
from dataclasses import dataclass, field

from .errors import InvalidInput


def now_ms():
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


class PathType:
    SINGLE_HEX = "single_hex"
    OPEN_PATH = "open_path"
    CLOSED_LOOP = "closed_loop"


class CaptureMethod:
    CLICK = "click"
    LINE = "line"
    LOOP = "loop"

    ALL = (CLICK, LINE, LOOP)


METHOD_FOR_PATH_TYPE = {
    PathType.SINGLE_HEX: CaptureMethod.CLICK,
    PathType.OPEN_PATH: CaptureMethod.LINE,
    PathType.CLOSED_LOOP: CaptureMethod.LOOP,
}


Claim = namedtuple("Claim", ["cell", "user", "color", "method"])


@dataclass
class Territory:
    owner: str
    color: str
    captured_at: int
    method: str

    def to_dict(self):
        return {
            "owner": self.owner,
            "color": self.color,
            "capturedAt": self.captured_at,
            "method": self.method,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            owner=data["owner"],
            color=data["color"],
            captured_at=data["capturedAt"],
            method=data["method"],
        )


@dataclass
class ClaimOutcome:
    """What apply_claims observed: prior owners replaced and cells already held."""
    previous_owners: dict = field(default_factory=dict)
    already_owned: list = field(default_factory=list)


@dataclass
class Region:
    """
    Unit of storage and locking: every territory whose cell has this parent.

    Invariants kept by apply_claims:
        cell_count == len(territories)
        owner_cell_counts[u] == number of territories owned by u
    """
    id: str
    territories: dict = field(default_factory=dict)
    cell_count: int = 0
    last_update: int = 0
    owner_cell_counts: dict = field(default_factory=dict)
    contested_by: list = field(default_factory=list)

    def owner_of(self, cell):
        territory = self.territories.get(cell)
        return territory.owner if territory else None

    def _adjust_count(self, user, delta):
        self.owner_cell_counts[user] = max(0, self.owner_cell_counts.get(user, 0) + delta)

    def apply_claims(self, claims, now=None):
        """
        Overwrite ownership for each claim, last writer wins.

        Re-claiming a cell the user already owns only refreshes capturedAt.
        A cell repeated inside one call is applied once.

        Returns:
            ClaimOutcome
        """
        now = now if now is not None else now_ms()
        outcome = ClaimOutcome()
        seen = set()

        for claim in claims:
            if claim.cell in seen:
                continue
            seen.add(claim.cell)

            existing = self.territories.get(claim.cell)
            if existing is None:
                self._adjust_count(claim.user, 1)
            elif existing.owner != claim.user:
                outcome.previous_owners[claim.cell] = existing.owner
                self._adjust_count(existing.owner, -1)
                self._adjust_count(claim.user, 1)
            else:
                outcome.already_owned.append(claim.cell)

            self.territories[claim.cell] = Territory(
                owner=claim.user,
                color=claim.color,
                captured_at=now,
                method=claim.method,
            )
            if claim.user not in self.contested_by:
                self.contested_by.append(claim.user)

        self.cell_count = len(self.territories)
        self.last_update = now
        return outcome

    def to_dict(self):
        return {
            "id": self.id,
            "territories": {cell: t.to_dict() for cell, t in self.territories.items()},
            "metadata": {
                "cellCount": self.cell_count,
                "lastUpdate": self.last_update,
                "ownerCellCounts": dict(self.owner_cell_counts),
                "contestedBy": list(self.contested_by),
            },
        }

    @classmethod
    def from_dict(cls, data):
        meta = data.get("metadata", {})
        return cls(
            id=data["id"],
            territories={cell: Territory.from_dict(t) for cell, t in data.get("territories", {}).items()},
            cell_count=meta.get("cellCount", 0),
            last_update=meta.get("lastUpdate", 0),
            owner_cell_counts=dict(meta.get("ownerCellCounts", {})),
            contested_by=list(meta.get("contestedBy", [])),
        )


@dataclass
class PathOptions:
    auto_close: bool = True
    min_loop_size: int = 3


@dataclass
class PathInput:
    user: str
    color: str
    points: list
    options: PathOptions = field(default_factory=PathOptions)

    @classmethod
    def from_dict(cls, data, default_options=None):
        """
        Build from an API payload: {user, color, path|points, options}.
        Raises InvalidInput when the payload does not have that shape.
        """
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be a JSON object")

        user = data.get("user")
        color = data.get("color")
        raw_points = data.get("path", data.get("points"))
        if not user or not color or raw_points is None:
            raise InvalidInput("Missing required fields: user, color, path")

        defaults = default_options or PathOptions()
        raw_options = data.get("options") or {}
        if not isinstance(raw_options, dict):
            raise InvalidInput("options must be an object")

        auto_close = raw_options.get("autoClose", defaults.auto_close)
        min_loop_size = raw_options.get("minLoopSize", defaults.min_loop_size)
        if not isinstance(auto_close, bool):
            raise InvalidInput("options.autoClose must be a boolean")
        if isinstance(min_loop_size, bool) or not isinstance(min_loop_size, int):
            raise InvalidInput("options.minLoopSize must be an integer")

        return cls(
            user=str(user),
            color=str(color),
            points=parse_points(raw_points),
            options=PathOptions(auto_close=auto_close, min_loop_size=min_loop_size),
        )


def parse_points(raw_points):
    """Coerce [[lat, lng], ...] into a list of float tuples."""
    if not isinstance(raw_points, (list, tuple)):
        raise InvalidInput("path must be a list of [lat, lng] pairs")

    points = []
    for raw in raw_points:
        if not isinstance(raw, (list, tuple)) or len(raw) != 2:
            raise InvalidInput("path must be a list of [lat, lng] pairs")
        lat, lng = raw
        if isinstance(lat, bool) or isinstance(lng, bool) \
                or not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            raise InvalidInput("Coordinates must be numbers")
        points.append((float(lat), float(lng)))
    return points


def is_valid_coordinate(lat, lng):
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


@dataclass
class CaptureResult:
    user: str
    path_type: str
    cell_path: list
    claimed_cells: list
    boundary_count: int
    interior_count: int
    regions_affected: list = field(default_factory=list)
    conflicts: dict = field(default_factory=dict)
    already_owned: int = 0
    processing_time_ms: int = 0
    path_id: str = None

    @property
    def loop_closed(self):
        return self.path_type == PathType.CLOSED_LOOP

    def to_dict(self):
        return {
            "user": self.user,
            "pathType": self.path_type,
            "cellPath": list(self.cell_path),
            "loopClosed": self.loop_closed,
            "claimedCells": list(self.claimed_cells),
            "cellsCaptured": len(self.claimed_cells),
            "boundaryCount": self.boundary_count,
            "interiorCount": self.interior_count,
            "regionsAffected": list(self.regions_affected),
            "conflicts": dict(self.conflicts),
            "alreadyOwned": self.already_owned,
            "processingTimeMs": self.processing_time_ms,
            "pathId": self.path_id,
        }


@dataclass
class PathHistory:
    """Immutable audit record of one processed path."""
    id: str
    user: str
    coordinates: list
    result: CaptureResult
    timestamp: int

    def to_dict(self):
        doc = self.result.to_dict()
        doc.update({
            "id": self.id,
            "user": self.user,
            "coordinates": [list(p) for p in self.coordinates],
            "timestamp": self.timestamp,
        })
        return doc

    @classmethod
    def from_dict(cls, data):
        result = CaptureResult(
            user=data["user"],
            path_type=data["pathType"],
            cell_path=data.get("cellPath", []),
            claimed_cells=data.get("claimedCells", []),
            boundary_count=data.get("boundaryCount", 0),
            interior_count=data.get("interiorCount", 0),
            regions_affected=data.get("regionsAffected", []),
            conflicts=data.get("conflicts", {}),
            already_owned=data.get("alreadyOwned", 0),
            processing_time_ms=data.get("processingTimeMs", 0),
            path_id=data["id"],
        )
        return cls(
            id=data["id"],
            user=data["user"],
            coordinates=[tuple(p) for p in data.get("coordinates", [])],
            result=result,
            timestamp=data["timestamp"],
        )


@dataclass
class UserStats:
    user_id: str
    total_cells: int = 0
    total_regions: int = 0
    largest_capture: int = 0
    total_captures: int = 0
    last_active: int = 0
    active_regions: list = field(default_factory=list)

    def to_dict(self):
        return {
            "userId": self.user_id,
            "totalCells": self.total_cells,
            "totalRegions": self.total_regions,
            "largestCapture": self.largest_capture,
            "totalCaptures": self.total_captures,
            "lastActive": self.last_active,
            "activeRegions": list(self.active_regions),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            user_id=data["userId"],
            total_cells=data.get("totalCells", 0),
            total_regions=data.get("totalRegions", 0),
            largest_capture=data.get("largestCapture", 0),
            total_captures=data.get("totalCaptures", 0),
            last_active=data.get("lastActive", 0),
            active_regions=list(data.get("activeRegions", [])),
        )


@dataclass
class BoundingBox:
    west: float
    south: float
    east: float
    north: float

    def __post_init__(self):
        values = (self.west, self.south, self.east, self.north)
        if any(math.isnan(v) for v in values):
            raise InvalidInput("Invalid bounds format")
        if not (-90 <= self.south <= 90 and -90 <= self.north <= 90):
            raise InvalidInput("Bounds latitude out of range")
        if not (-180 <= self.west <= 180 and -180 <= self.east <= 180):
            raise InvalidInput("Bounds longitude out of range")
        if self.south > self.north or self.west > self.east:
            raise InvalidInput("Bounds must be ordered west,south,east,north")

    @classmethod
    def from_string(cls, bounds):
        """Parse "west,south,east,north" (lng1,lat1,lng2,lat2)."""
        if not bounds:
            raise InvalidInput("Bounds parameter is required")
        parts = bounds.split(",")
        if len(parts) != 4:
            raise InvalidInput("Invalid bounds format")
        try:
            west, south, east, north = (float(p) for p in parts)
        except ValueError:
            raise InvalidInput("Invalid bounds format")
        return cls(west, south, east, north)

    def corners(self):
        return [
            (self.south, self.west),
            (self.south, self.east),
            (self.north, self.west),
            (self.north, self.east),
        ]
