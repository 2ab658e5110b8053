# reanchor/logic/__init__.py

"""Statistical and heuristic helpers: drift calibration and layout volatility."""
