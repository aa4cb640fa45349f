"""
Stable anchors for generated documentation.

An anchor is derived once from ``(file, name, category)`` and then kept in
an :class:`AnchorStore` so later runs hand out the same id even if the
derivation rule or the surrounding page changes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re

from .errors import ConfigurationError

log = logging.getLogger("mkdocs.plugins.hdrdoc.anchors")


def slug(text):
    return re.sub(r"[^a-z0-9]+", "-", text.strip().lower()).strip("-")


def stable_key(file_rel, name, category):
    return f"{file_rel}::{name}::{category.value}"


def derive_anchor(file_rel, name, category):
    key = stable_key(file_rel, name, category)
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
    return f"{slug(f'{category.value}-{name}')}-{digest}"


class AnchorStore:
    """Key/value repository for assigned anchors."""

    def lookup(self, key):
        raise NotImplementedError

    def reserve(self, key, anchor):
        raise NotImplementedError

    def load(self):
        pass

    def save(self):
        pass


class MemoryAnchorStore(AnchorStore):
    def __init__(self, initial=None):
        self._anchors = dict(initial or {})

    def lookup(self, key):
        return self._anchors.get(key)

    def reserve(self, key, anchor):
        self._anchors[key] = anchor

    def as_dict(self):
        return dict(self._anchors)

    def __len__(self):
        return len(self._anchors)


class JsonAnchorStore(MemoryAnchorStore):
    """Anchors persisted as a sorted JSON object next to the generated pages."""

    def __init__(self, path):
        super().__init__()
        self.path = path

    def load(self):
        if not os.path.isfile(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"cannot read anchor map {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"anchor map {self.path} is not a JSON object")
        self._anchors = {str(k): str(v) for k, v in data.items()}
        log.debug("hdrdoc: loaded %d anchors from %s", len(self._anchors), self.path)

    def save(self):
        text = json.dumps(self._anchors, indent=2, sort_keys=True) + "\n"
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        if os.path.isfile(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                if f.read() == text:
                    return
        with open(self.path, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)


class AnchorManager:
    def __init__(self, store):
        self.store = store

    def assign(self, file_rel, name, category):
        """Return ``(anchor, note)``; ``note`` is set when the stored id drifted."""
        key = stable_key(file_rel, name, category)
        derived = derive_anchor(file_rel, name, category)
        existing = self.store.lookup(key)
        if existing is None:
            self.store.reserve(key, derived)
            return derived, None
        if existing != derived:
            return existing, f"anchor drift: keeping `{existing}` (derived `{derived}`)"
        return existing, None
