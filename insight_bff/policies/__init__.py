# insight_bff/policies/__init__.py
