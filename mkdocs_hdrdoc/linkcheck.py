"""
Post-generation link checker.

Every markdown link in every generated page is classified as external
(ignored), a same-page anchor, or a path to another generated page; the
latter two are checked against the anchors the pages actually define.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field

from .errors import BrokenLink

log = logging.getLogger("mkdocs.plugins.hdrdoc.linkcheck")

_MD_LINK_RE = re.compile(r"\[[^\]]*?\]\(([^)\s]+)\)")
_ANCHOR_RE = re.compile(r'<a\s+id="([^"]+)"\s*>')
_FENCE_RE = re.compile(r"^[ \t]*```.*?^[ \t]*```[ \t]*$", re.MULTILINE | re.DOTALL)
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


@dataclass
class GeneratedPage:
    path: str  # absolute, posix separators
    rel: str  # relative to its output root, for reports
    title: str
    body: str
    entries: list = field(default_factory=list)


def index_anchors(pages):
    """page path -> set of anchor ids defined on that page."""
    return {p.path: set(_ANCHOR_RE.findall(p.body)) for p in pages}


def _link_targets(body):
    text = _FENCE_RE.sub("", body)
    for m in _MD_LINK_RE.finditer(text):
        yield m.group(1)


def check_links(pages, page_extension=".mdx"):
    anchors = index_anchors(pages)
    problems = []
    for page in pages:
        for raw in _link_targets(page.body):
            if _SCHEME_RE.match(raw):
                continue
            if raw.startswith("#"):
                target_page, target_anchor = page.path, raw[1:]
            else:
                rel, _, target_anchor = raw.partition("#")
                if not rel.endswith(page_extension):
                    continue
                target_page = posixpath.normpath(
                    posixpath.join(posixpath.dirname(page.path), rel)
                )
                if target_page not in anchors:
                    problems.append(BrokenLink(page.rel, raw, "Page not generated"))
                    continue
            if target_anchor and target_anchor not in anchors[target_page]:
                problems.append(BrokenLink(page.rel, raw, "Anchor not found"))
    for problem in problems:
        log.error("hdrdoc: broken link %s", problem)
    return problems
