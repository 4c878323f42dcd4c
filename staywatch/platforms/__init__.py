"""Per-platform URL builders and page-text classifiers."""

from staywatch.platforms.agoda import AgodaClassifier
from staywatch.platforms.airbnb import AirbnbClassifier
from staywatch.platforms.base import (
    PRICE_UNCONFIRMED,
    STATUS_UNDETERMINABLE,
    PatternSet,
    PlatformClassifier,
)
from staywatch.platforms.registry import ClassifierRegistry, default_registry

__all__ = [
    "PRICE_UNCONFIRMED",
    "STATUS_UNDETERMINABLE",
    "AgodaClassifier",
    "AirbnbClassifier",
    "ClassifierRegistry",
    "PatternSet",
    "PlatformClassifier",
    "default_registry",
]
