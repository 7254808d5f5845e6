# insight_bff/api/__init__.py
"""HTTP 层（FastAPI）。"""

from .app import create_app

__all__ = ["create_app"]
