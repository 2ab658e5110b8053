# reanchor/service/__init__.py

"""Service layer: settings and the public anchoring entry points."""
