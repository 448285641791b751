"""Exception types raised by the routing core."""

from __future__ import annotations


class FieldRouteError(Exception):
    """Base class for every error raised by fieldroute."""


class ProviderUnavailable(FieldRouteError, ConnectionError):
    """The routing service exhausted its retries and no fallback was possible."""


class StopNotFound(FieldRouteError, LookupError):
    """A sequence or edit referenced a stop that has no backing ``Stop``."""


class UnknownDay(FieldRouteError, LookupError):
    """An edit referenced a day number that is not part of the result."""


class NoActiveStops(FieldRouteError, ValueError):
    """Optimisation was requested with an empty facility list."""


class NoHomeBase(FieldRouteError, ValueError):
    """Optimisation was requested without a home-base coordinate."""


class StaleMatrixError(FieldRouteError, ValueError):
    """A distance matrix was built for a different stop set than the one in use."""
