# insight_bff/db/__init__.py
