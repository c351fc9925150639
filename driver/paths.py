"""Helpers for logical paths, object names and external locations."""

import posixpath
import secrets
from typing import Tuple

from common.constants import CONTENT_OBJECT_NAME, LOCATION_RANDOM_BYTES, SEGMENT_NUMBER_WIDTH


def clean_path(full_path: str) -> str:
    """
    Normalize a slash-separated logical path ('a//b/' -> '/a/b').
    """
    return posixpath.normpath("/" + full_path.strip("/"))


def split_path(full_path: str) -> Tuple[str, str]:
    """
    Split a logical path into its (dirname, basename) record key.

    Returns:
        ('/', '/') for the root, otherwise the parent directory and last element
    """
    cleaned = clean_path(full_path)
    if cleaned == "/":
        return "/", "/"
    return posixpath.dirname(cleaned), posixpath.basename(cleaned)


def join_path(dirname: str, basename: str) -> str:
    return posixpath.join(dirname, basename)


def prepend_prefix(prefix: str, full_path: str) -> str:
    if not prefix:
        return full_path.strip("/")
    return prefix + "/" + full_path.strip("/")


def generate_location() -> str:
    """
    Choose a new random external location (hex encoded). Errors of the
    random source propagate.
    """
    return secrets.token_hex(LOCATION_RANDOM_BYTES)


def content_object_path(prefix: str, location: str) -> str:
    """Object name of the composed content of an externally stored file."""
    return prepend_prefix(prefix, f"{location}/{CONTENT_OBJECT_NAME}")


def segment_object_path(prefix: str, location: str, number: int) -> str:
    return f"{prepend_prefix(prefix, location)}/{number:0{SEGMENT_NUMBER_WIDTH}d}"


def location_prefix(prefix: str, location: str) -> str:
    """Object prefix covering the content object and all segments of a location."""
    return prepend_prefix(prefix, location) + "/"
