# insight_bff/api/routes/__init__.py
from . import cluster, feed, system, translate

__all__ = ["cluster", "feed", "system", "translate"]
