"""
Derived artifact policy - path mapping and the worth-serving rule.
"""

import os
from typing import Optional

DERIVED_EXTENSION = 'webp'

# A derived file may exceed its source by this factor and still be served.
SIZE_TOLERANCE = 1.05


def derived_path(source_path: str) -> str:
    """
    Map a source or variant file path to its WebP sibling.

    Converts: /uploads/2024/photo-300x200.jpg -> /uploads/2024/photo-300x200.webp
    A path without a '.' gets the extension appended.
    """
    dot = source_path.rfind('.')
    if dot == -1:
        return f"{source_path}.{DERIVED_EXTENSION}"
    return f"{source_path[:dot]}.{DERIVED_EXTENSION}"


def file_size(path: str) -> Optional[int]:
    """Size of a file in bytes, or None if it cannot be determined."""
    try:
        return os.path.getsize(path)
    except OSError:
        return None


def worth_serving(source_path: str, webp_path: str) -> bool:
    """
    Whether an existing derived file should be served in place of its source.

    A derived file that is missing, or noticeably larger than the source,
    is not worth serving. If either size is unreadable the derived file is
    given the benefit of the doubt.
    """
    if not source_path or not webp_path:
        return False
    if not os.path.exists(webp_path):
        return False
    source_size = file_size(source_path)
    webp_size = file_size(webp_path)
    if source_size is None or webp_size is None:
        return True
    return webp_size <= source_size * SIZE_TOLERANCE
