"""
Path Resolution

Maps a content-tree source path to its canonical site URL and language tag.

Content Layout
--------------
- ``zh/blog/<slug>/index.md``   -> ``<base>/blog/<slug>``       (zh)
- ``en/blog/<slug>/index.md``   -> ``<base>/en/blog/<slug>``    (en)
- ``zh/<section>/_index.md``    -> ``<base>/<section>``         (zh)
- ``en/<section>/_index.md``    -> ``<base>/en/<section>``      (en)

Any path without the English marker as its leading segment is classified
as Chinese, including root-level and untagged paths.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import PurePath
from typing import Literal, Optional, Union
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict

from ..core.errors import InvalidPathError


Language = Literal["zh", "en"]

ZH_MARKER = "zh"
EN_MARKER = "en"
BLOG_SEGMENT = "blog"
INDEX_MARKERS = ("_index", "index")

_MD_EXT = re.compile(r"\.md$", re.IGNORECASE)
_MULTI_SLASH = re.compile(r"/+")


class ResolvedPath(BaseModel):
    """Canonical URL and language tag for one source path."""

    url: str
    language: Language

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------

def relative_source_path(
    path: Union[str, PurePath],
    content_root: Optional[Union[str, PurePath]] = None,
) -> str:
    """
    Return ``path`` relative to ``content_root`` using forward slashes.

    Relative paths are taken as already root-relative.

    Raises
    ------
    InvalidPathError
        If the path lies outside the content root.
    """
    raw = str(path).replace("\\", "/")

    if content_root is not None and posixpath.isabs(raw):
        root = str(content_root).replace("\\", "/")
        rel = posixpath.relpath(posixpath.normpath(raw), posixpath.normpath(root))
    else:
        rel = raw

    rel = rel.lstrip("/")
    if not rel or rel == "." or rel == ".." or rel.startswith("../"):
        raise InvalidPathError(f"Path {str(path)!r} is not inside the content root")

    return rel


def _strip_index(no_ext: str) -> str:
    head, _, basename = no_ext.rpartition("/")
    if basename in INDEX_MARKERS:
        return head + "/" if head else ""
    return no_ext + "/"


def language_of(clean_path: str) -> Language:
    """Classify a root-relative path by its leading segment."""
    if clean_path == EN_MARKER or clean_path.startswith(EN_MARKER + "/"):
        return "en"
    return "zh"


def _rewrite_for_url(clean_path: str) -> str:
    zh_blog = f"{ZH_MARKER}/{BLOG_SEGMENT}/"
    en_blog = f"{EN_MARKER}/{BLOG_SEGMENT}/"

    if clean_path.startswith(zh_blog):
        return BLOG_SEGMENT + "/" + clean_path[len(zh_blog):]
    if clean_path.startswith(en_blog):
        return clean_path
    if clean_path.startswith(ZH_MARKER + "/"):
        return clean_path[len(ZH_MARKER) + 1:]
    return clean_path


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def resolve_path(
    path: Union[str, PurePath],
    base_url: str,
    content_root: Optional[Union[str, PurePath]] = None,
) -> ResolvedPath:
    """
    Derive the canonical URL and language of a content file.

    Parameters
    ----------
    path : str | PurePath
        Source path, either root-relative or absolute under ``content_root``.

    base_url : str
        Site base URL the canonical path is resolved against.

    content_root : Optional[str | PurePath]
        Content root. When given, ``path`` is made relative to it first.

    Returns
    -------
    ResolvedPath

    Raises
    ------
    InvalidPathError
        If the path cannot be made relative to the content root.
    """
    rel = relative_source_path(path, content_root)
    no_ext = _MD_EXT.sub("", rel)
    clean_path = _strip_index(no_ext)

    language = language_of(clean_path)
    final_path = _rewrite_for_url(clean_path)

    url_path = _MULTI_SLASH.sub("/", "/" + final_path)
    url_path = url_path.rstrip("/") or "/"

    return ResolvedPath(url=urljoin(base_url, url_path), language=language)


def logical_document_key(rel_path: str) -> str:
    """
    Language-agnostic key used to pair translations of one blog post.

    ``zh/blog/foo/index.md`` and ``en/blog/foo/index.md`` both map to ``foo``.
    """
    key = rel_path.replace("\\", "/")
    key = re.sub(rf"^({ZH_MARKER}|{EN_MARKER})/{BLOG_SEGMENT}/", "", key)
    key = re.sub(r"/(_index|index)\.md$", "", key, flags=re.IGNORECASE)
    return key
