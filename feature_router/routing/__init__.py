"""Feature mapping resolution: tag matching, priority ordering and fallback expansion."""

from .models import ChainEntry, ResolutionChain
from .resolver import FeatureMappingResolver

__all__ = ["ChainEntry", "ResolutionChain", "FeatureMappingResolver"]
