# reanchor/logic/layout.py

"""Detection of documents whose layout keeps shifting under the reader."""

import logging
from urllib.parse import urlsplit

from reanchor.core.loader import HeuristicsLoader

logger = logging.getLogger(__name__)


def is_infinite_scroll_document(url: str, has_marker: bool = False) -> bool:
    """Returns True when content is likely appended while scrolling.

    Spatial positions recorded on such documents go stale quickly, so callers
    can warn before anchoring annotations there.

    Args:
        url: Document address
        has_marker: Whether the document carries one of the infinite-scroll
            markers. The core never inspects the document for them; adapters
            query the selectors from
            HeuristicsLoader.get_infinite_scroll_markers() and pass the result

    Returns:
        True for known feed hosts (except single post/article pages) or
        when a marker is present
    """
    loader = HeuristicsLoader.get_instance()
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]

    for domain in loader.get_infinite_scroll_domains():
        if host == domain or host.endswith("." + domain):
            static_path = loader.get_static_path_regex()
            if static_path is not None and static_path.search(parts.path or ""):
                return False
            logger.debug("Infinite scroll host detected", extra={"host": host})
            return True

    return has_marker
