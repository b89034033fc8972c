from .acquisition import LocationAcquisition
from .providers import LocationProvider, ReportedLocationProvider, StaticLocationProvider
from .watch import LocationWatch, Subscription

__all__ = [
    "LocationAcquisition",
    "LocationProvider",
    "LocationWatch",
    "ReportedLocationProvider",
    "StaticLocationProvider",
    "Subscription",
]
