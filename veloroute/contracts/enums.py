"""Enumerations shared across all VeloRoute contracts."""

from enum import Enum


class WaypointKind(str, Enum):
    """Positional role of a waypoint within the route under construction."""
    START = "start"
    VIA = "via"
    END = "end"


class RoutingProfile(str, Enum):
    """Named preference set steering provider selection and costing."""
    ROAD = "road"
    GRAVEL = "gravel"
    MOUNTAIN = "mountain"
    COMMUTING = "commuting"


class RouteType(str, Enum):
    LOOP = "loop"
    OUT_BACK = "out_back"
    POINT_TO_POINT = "point_to_point"


class SurfaceType(str, Enum):
    PAVED = "paved"
    GRAVEL = "gravel"
    MIXED = "mixed"


class TrafficAvoidance(str, Enum):
    """How strongly busy roads should be avoided."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TrainingGoal(str, Enum):
    ENDURANCE = "endurance"
    INTERVALS = "intervals"
    RECOVERY = "recovery"
    TEMPO = "tempo"
    HILLS = "hills"


class Terrain(str, Enum):
    FLAT = "flat"
    ROLLING = "rolling"
    HILLY = "hilly"


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class SlopeDirection(str, Enum):
    UPHILL = "uphill"
    DOWNHILL = "downhill"
    FLAT = "flat"


class CardinalDirection(str, Enum):
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"


class RideStyle(str, Enum):
    """How a distance-only request should be anchored."""
    FROM_HISTORY = "from_history"
    EXPLORE = "explore"


class TranslatorState(str, Enum):
    """Lifecycle of a natural-language route request."""
    IDLE = "idle"
    PARSING = "parsing"
    NEEDS_CLARIFICATION = "needs_clarification"
    AWAITING_ANSWER = "awaiting_answer"
    RESOLVED = "resolved"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


class InfrastructureType(str, Enum):
    """Cycling infrastructure tiers, safest first."""
    PROTECTED_CYCLEWAY = "protected_cycleway"
    BIKE_LANE = "bike_lane"
    SHARED_PATH = "shared_path"
    BIKE_FRIENDLY = "bike_friendly"
    SHARED_LANE = "shared_lane"
