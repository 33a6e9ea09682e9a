"""Helpers for building object keys from prefixes and names."""

import posixpath


def format_prefix(filename: str, prefix: str) -> str:
    """Return ``prefix`` adjusted so that ``prefix + filename`` has exactly one slash.

    >>> format_prefix("a.txt", "docs")
    'docs/'
    >>> format_prefix("/a.txt", "docs/")
    'docs'
    """
    prefix_slash = prefix.endswith("/")
    filename_slash = filename.startswith("/")
    if prefix_slash and filename_slash:
        return prefix[:-1]
    if not prefix_slash and not filename_slash:
        return prefix + "/"
    return prefix


def folder_prefix(prefix: str) -> str:
    """Normalise a folder prefix to end with a single slash ("" stays "")."""
    return format_prefix("", prefix) if prefix else ""


def join_key(prefix: str, name: str) -> str:
    """Destination key for ``name`` under ``prefix`` (plain concatenation)."""
    return f"{prefix or ''}{name}"


def base_name(key: str) -> str:
    return posixpath.basename(key.rstrip("/"))


def parent_folder(key: str) -> str:
    """Folder portion of a key including its trailing slash ("" at the root)."""
    head, _, _ = key.rpartition("/")
    return f"{head}/" if head else ""
