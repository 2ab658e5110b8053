# reanchor/__init__.py

"""Resilient annotation anchoring for mutable hierarchical documents.

The stable entry points live in ``reanchor.service.pipeline``:
``generate_anchor``, ``resolve``, ``resolve_all``, ``record_correction``,
``fingerprint_changed`` and ``confirm_anchor``.
"""

__version__ = "0.1.0"
