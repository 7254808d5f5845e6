# insight_bff/cli/__init__.py
