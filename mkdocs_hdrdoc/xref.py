"""
Symbol index and cross-reference resolution.

Runs only after every header has been extracted and every entry has its
anchor and page assigned: ``@copydoc`` inheritance first, then ``\\ref``
rewriting and see-also linking.
"""

from __future__ import annotations

import copy
import logging
import posixpath
import re

from .parser import Category

log = logging.getLogger("mkdocs.plugins.hdrdoc.xref")

# Lookup order for unqualified names
REF_ORDER = (
    Category.FUNCTION,
    Category.TYPEDEF,
    Category.CALLBACK_TYPEDEF,
    Category.MACRO_FN,
    Category.MACRO_CONST,
    Category.ENUM,
    Category.STRUCT,
    Category.UNION,
)
COPYDOC_ORDER = (
    Category.FUNCTION,
    Category.TYPEDEF,
    Category.CALLBACK_TYPEDEF,
    Category.MACRO_FN,
    Category.MACRO_CONST,
)

_CATEGORY_ALT = "|".join(
    re.escape(c.value) for c in sorted(Category, key=lambda c: len(c.value), reverse=True)
)
_REF_RE = re.compile(
    rf"[\\@]ref\s+(?P<name>[A-Za-z_]\w*)(?:\(\))?(?::(?P<cat>{_CATEGORY_ALT})(?![\w-]))?"
)
_SEE_NAME_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)(?:\(\))?(?::(?P<cat>[a-z-]+))?$")


def split_ref(ref):
    """``"foo:struct"`` -> ``("foo", Category.STRUCT)``; unknown suffixes give ``None``."""
    ref = ref.strip()
    name, sep, cat = ref.partition(":")
    if name.endswith("()"):
        name = name[:-2]
    if not sep:
        return name, None
    try:
        return name, Category(cat)
    except ValueError:
        return name, False


class SymbolIndex:
    """(category, name) -> first entry seen with that identity."""

    def __init__(self, entries=()):
        self._entries = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry):
        if entry.key in self._entries:
            return False
        self._entries[entry.key] = entry
        return True

    def get(self, category, name):
        return self._entries.get((category, name))

    def find(self, ref, order=REF_ORDER):
        name, category = split_ref(ref)
        if category is False:
            return None
        if category is not None:
            return self.get(category, name)
        for cat in order:
            entry = self.get(cat, name)
            if entry is not None:
                return entry
        return None

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries


def relative_link(from_page, target):
    """Link from the page at ``from_page`` to ``target``'s anchor."""
    if target.page == from_page:
        return f"#{target.anchor}"
    base = posixpath.dirname(from_page) or "."
    return f"{posixpath.relpath(target.page, base)}#{target.anchor}"


# ── copydoc ──


def _inherit(doc, src):
    if not doc.brief and src.brief:
        doc.brief = src.brief
    if not doc.description and src.description:
        doc.description = src.description
    if not doc.params and src.params:
        doc.params = copy.deepcopy(src.params)
    if not doc.returns and src.returns:
        doc.returns = src.returns
    if not doc.example and src.example:
        doc.example = src.example
    doc.see = list(dict.fromkeys(doc.see + src.see))


def resolve_copydoc(entries, index):
    """Fill missing fields of every ``@copydoc`` entry from its target.

    Targets that themselves use ``@copydoc`` are resolved first, so chains
    work; a cycle stops with a warning.
    """
    done = set()

    def resolve(entry, stack):
        if id(entry) in done:
            return
        stack = stack + [id(entry)]
        for ref in entry.doc.copydoc:
            target = index.find(ref, COPYDOC_ORDER)
            if target is None:
                entry.warnings.append(f"@copydoc target not found: {ref}")
                continue
            if id(target) in stack:
                entry.warnings.append(f"@copydoc cycle through `{ref}`")
                continue
            resolve(target, stack)
            _inherit(entry.doc, target.doc)
        done.add(id(entry))

    for entry in entries:
        if entry.doc.copydoc:
            resolve(entry, [])


# ── \ref and see-also ──


def _link(entry, target):
    return f"[`{target.name}`]({relative_link(entry.page, target)})"


def replace_refs(text, entry, index):
    if not text:
        return text

    def sub(m):
        ref = m.group("name")
        if m.group("cat"):
            ref = f"{ref}:{m.group('cat')}"
        target = index.find(ref)
        if target is None:
            entry.warnings.append(f"unresolved reference: {ref}")
            return f"`{m.group('name')}`"
        return _link(entry, target)

    return _REF_RE.sub(sub, text)


def link_see_also(item, entry, index):
    """Turn a bare ``@see name`` into a link when ``name`` is a known symbol."""
    if _REF_RE.search(item):
        return replace_refs(item, entry, index)
    m = _SEE_NAME_RE.match(item.strip())
    if not m:
        return item
    target = index.find(item.strip())
    return _link(entry, target) if target is not None else item


def resolve_refs(entries, index):
    for entry in entries:
        doc = entry.doc
        doc.brief = replace_refs(doc.brief, entry, index)
        doc.description = replace_refs(doc.description, entry, index)
        doc.returns = replace_refs(doc.returns, entry, index)
        doc.deprecated = replace_refs(doc.deprecated, entry, index)
        for param in doc.params:
            param.description = replace_refs(param.description, entry, index)
        for attr in ("errors", "notes", "warnings", "todos", "bugs"):
            setattr(doc, attr, [replace_refs(t, entry, index) for t in getattr(doc, attr)])
        doc.see = [link_see_also(s, entry, index) for s in doc.see]
