"""
Copies files referenced by ``@image``, ``@include`` and ``@snippet`` into the
shared assets directory.

Destination names are ``<sha1(abs source path)[:10]>-<basename>``, so every
reference to the same file lands on one stable name across runs, and two
files that share a basename never collide.
"""

from __future__ import annotations

import hashlib
import logging
import os
import posixpath
import re
import shutil
import textwrap

log = logging.getLogger("mkdocs.plugins.hdrdoc.assets")


def asset_name(abspath):
    digest = hashlib.sha1(abspath.encode("utf-8")).hexdigest()[:10]
    return f"{digest}-{os.path.basename(abspath)}"


def _file_digest(path):
    h = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _marker_re(label):
    return re.compile(rf"^\s*(?://[/!]?|#|/\*[*!]?)\s*\[{re.escape(label)}\]")


def extract_snippet(text, label):
    """Lines between the two ``//! [label]`` markers, or ``None`` if absent.

    An empty label selects the whole file.
    """
    if not label:
        return text.rstrip("\n")
    marker = _marker_re(label)
    lines = text.splitlines()
    hits = [i for i, line in enumerate(lines) if marker.match(line)]
    if len(hits) < 2:
        return None
    block = "\n".join(lines[hits[0] + 1 : hits[1]])
    return textwrap.dedent(block).strip("\n")


class AssetCopier:
    def __init__(self, assets_dir, input_roots=()):
        self.assets_dir = os.path.abspath(assets_dir)
        self.input_roots = [os.path.abspath(r) for r in input_roots]
        self.copied = {}

    def locate(self, src, header_dir):
        if os.path.isabs(src):
            return src if os.path.isfile(src) else None
        for base in [header_dir] + self.input_roots:
            path = os.path.normpath(os.path.join(base, src))
            if os.path.isfile(path):
                return path
        return None

    def copy(self, source):
        if source in self.copied:
            return self.copied[source]
        dest = os.path.join(self.assets_dir, asset_name(source))
        os.makedirs(self.assets_dir, exist_ok=True)
        if not (os.path.isfile(dest) and _file_digest(dest) == _file_digest(source)):
            shutil.copyfile(source, dest)
            log.debug("hdrdoc: copied asset %s -> %s", source, dest)
        self.copied[source] = dest
        return dest

    def process(self, entry, header_dir):
        """Resolve and copy every asset of ``entry``; its page must already be set."""
        page_dir = posixpath.dirname(entry.page) or "."
        for asset in entry.doc.assets:
            source = self.locate(asset.src, header_dir)
            if source is None:
                entry.warnings.append(f"asset not found: {asset.src}")
                continue
            dest = self.copy(source)
            asset.path = dest
            asset.href = posixpath.relpath(dest.replace(os.sep, "/"), page_dir)
            if asset.kind == "image":
                continue
            with open(source, "r", encoding="utf-8", errors="replace") as f:
                text = f.read()
            if asset.kind == "snippet":
                snippet = extract_snippet(text, asset.caption)
                if snippet is None:
                    entry.warnings.append(f"snippet [{asset.caption}] not found in {asset.src}")
                    continue
                asset.text = snippet
            else:
                asset.text = text.rstrip("\n")
