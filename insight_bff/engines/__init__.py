# insight_bff/engines/__init__.py
