from .position_cache import CachedPosition, PositionCache
from .result_cache import ResultCache, make_result_key
from .singleflight import SingleFlight

__all__ = [
    "CachedPosition",
    "PositionCache",
    "ResultCache",
    "SingleFlight",
    "make_result_key",
]
