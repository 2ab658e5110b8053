# reanchor/core/__init__.py

"""Core domain models and utilities used across the anchoring system.

This package provides the anchor data model, the document and persistence
contracts, exceptions, and the heuristics loader shared by the rest of the
application.
"""
