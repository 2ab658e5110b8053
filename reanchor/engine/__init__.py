# reanchor/engine/__init__.py

"""Engine package providing locator strategies, fingerprinting and resolution.

This package contains the components that map stored anchors back onto the
live document.
"""
