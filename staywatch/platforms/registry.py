"""Platform tag → classifier registry.

The checker resolves a listing's classifier through a
:class:`ClassifierRegistry` instead of branching on the platform tag, so a
new platform is supported by registering one more classifier.

Typical usage::

    from staywatch.platforms.registry import default_registry

    registry = default_registry(settings)
    classifier = registry.get(listing.platform)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from staywatch.core.exceptions import UnknownPlatformError
from staywatch.core.models import Platform
from staywatch.core.settings import Settings
from staywatch.platforms.agoda import AgodaClassifier
from staywatch.platforms.airbnb import AirbnbClassifier
from staywatch.platforms.base import PlatformClassifier

__all__ = ["ClassifierRegistry", "default_registry"]

logger = logging.getLogger(__name__)


class ClassifierRegistry:
    """Maps each :class:`~staywatch.core.models.Platform` to its classifier.

    Args:
        classifiers: Initial classifiers to register.
    """

    def __init__(self, classifiers: Iterable[PlatformClassifier] = ()) -> None:
        self._classifiers: dict[Platform, PlatformClassifier] = {}
        for classifier in classifiers:
            self.register(classifier)

    def register(self, classifier: PlatformClassifier) -> None:
        """Register *classifier*, replacing any previous one for its platform."""
        previous = self._classifiers.get(classifier.platform)
        if previous is not None:
            logger.debug("Replacing classifier for %s: %r → %r", classifier.platform, previous, classifier)
        self._classifiers[classifier.platform] = classifier

    def get(self, platform: Platform | str) -> PlatformClassifier:
        """Return the classifier for *platform*.

        Raises:
            UnknownPlatformError: If nothing is registered for the tag.
        """
        try:
            return self._classifiers[Platform(platform)]
        except (KeyError, ValueError):
            raise UnknownPlatformError(str(platform)) from None

    def __contains__(self, platform: object) -> bool:
        try:
            return Platform(platform) in self._classifiers  # type: ignore[arg-type]
        except ValueError:
            return False

    @property
    def platforms(self) -> list[Platform]:
        """Registered platform tags, in registration order."""
        return list(self._classifiers)


def default_registry(settings: Settings | None = None) -> ClassifierRegistry:
    """Build the registry of every built-in platform classifier.

    Args:
        settings: Source of the Agoda partner id.  Built-in defaults are used
            when ``None``.
    """
    agoda = (
        AgodaClassifier(partner_cid=settings.agoda_partner_cid)
        if settings is not None
        else AgodaClassifier()
    )
    return ClassifierRegistry([AirbnbClassifier(), agoda])
