"""Route-construction exceptions.

Provider failures are absorbed by the routing gateway; only an exhausted
fallback chain reaches callers, and it does so as a ``RoutingFailure``
value rather than an exception.  Undo/redo at history bounds is not an
error: ``WaypointStore.undo()`` / ``redo()`` simply return ``False``.
"""


class RouteBuilderError(Exception):
    """Base exception for all route-construction errors."""


class ProviderUnavailable(RouteBuilderError):
    """A routing provider timed out, answered non-2xx, or returned junk."""

    def __init__(self, provider_id: str, reason: str):
        self.provider_id = provider_id
        self.reason = reason
        super().__init__(f"{provider_id} unavailable: {reason}")


class InvalidGpx(RouteBuilderError):
    """GPX text is malformed or holds fewer than two usable points."""


class UnparseableResponse(RouteBuilderError):
    """Text-completion output carried no valid route-intent JSON object."""


class GeocodeNotFound(RouteBuilderError):
    """None of the named places in a request could be geocoded."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Could not locate any of: {', '.join(names) or '(no places)'}")


class NoStartingPoint(GeocodeNotFound):
    """A request resolved no usable start: no origin and no named start."""

    def __init__(self, names: list[str]):
        self.names = names
        RouteBuilderError.__init__(
            self,
            "No starting point is known; share your location or name where the ride starts",
        )


class WaypointNotFoundError(RouteBuilderError):
    """A mutation referenced a waypoint id that is not in the store."""

    def __init__(self, waypoint_id: str):
        self.waypoint_id = waypoint_id
        super().__init__(f"waypoint {waypoint_id} not found")


class InvalidTransition(RouteBuilderError):
    """A translator action was requested in a state that does not allow it."""

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"cannot {action} while {state}")
