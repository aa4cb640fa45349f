"""
Markdown renderer for extracted header entries.

Takes the resolved entries of one header (or one group / standalone page)
and turns them into a page: frontmatter, a table of contents grouped by
category, and one anchored section per entry.
"""

from __future__ import annotations

import os
import posixpath
import re

import yaml

from .parser import Category, escape_angle
from .xref import relative_link

CATEGORY_ORDER = (
    Category.FILE,
    Category.MACRO_CONST,
    Category.MACRO_FN,
    Category.TYPEDEF,
    Category.CALLBACK_TYPEDEF,
    Category.ENUM,
    Category.STRUCT,
    Category.UNION,
    Category.FUNCTION,
)

_TOC_LABELS = {
    Category.FILE: "File",
    Category.MACRO_CONST: "Macros (Constants)",
    Category.MACRO_FN: "Macros (Function-like)",
    Category.TYPEDEF: "Typedefs",
    Category.CALLBACK_TYPEDEF: "Callback Typedefs",
    Category.ENUM: "Enums",
    Category.STRUCT: "Structs",
    Category.UNION: "Unions",
    Category.FUNCTION: "Functions",
}

_KIND_LABELS = {
    Category.FILE: "File",
    Category.MACRO_CONST: "Macro",
    Category.MACRO_FN: "Macro",
    Category.TYPEDEF: "Typedef",
    Category.CALLBACK_TYPEDEF: "Callback",
    Category.ENUM: "Enum",
    Category.STRUCT: "Struct",
    Category.UNION: "Union",
    Category.FUNCTION: "Function",
    Category.GROUP: "Group",
    Category.PAGE: "Page",
}

_LIST_SECTIONS = (
    ("errors", "Errors"),
    ("notes", "Notes"),
    ("warnings", "Warnings"),
    ("todos", "TODOs"),
    ("bugs", "Known Bugs"),
)

_LANG_BY_EXT = {
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".py": "python",
    ".sh": "bash",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".txt": "text",
}

_CODE_SPAN_RE = re.compile(r"(`[^`]*`)")


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=3,
        page_extension=".mdx",
        source_uri="",
        language="c",
    ):
        self.heading_level = heading_level
        self.page_extension = page_extension
        self.source_uri = source_uri
        self.language = language


def page_rel(file_rel, ext, kind=None, ident=None):
    """Generated page path for a header, mirroring its relative path.

    Group and standalone pages append ``.group.<id>`` / ``.page.<id>``
    before the extension.
    """
    base, _ = os.path.splitext(file_rel.replace(os.sep, "/"))
    if kind:
        return f"{base}.{kind}.{ident}{ext}"
    return f"{base}{ext}"


def frontmatter(title):
    body = yaml.safe_dump({"title": title}, default_flow_style=False, allow_unicode=True, width=1000)
    return f"---\n{body}---"


def _heading(text, level):
    return f"{'#' * level} {text}"


def prose(text):
    """Escape angle brackets outside inline code spans."""
    if not text:
        return ""
    pieces = _CODE_SPAN_RE.split(text)
    return "".join(p if i % 2 else escape_angle(p) for i, p in enumerate(pieces))


def _cell(text):
    return prose(text or "").replace("|", "\\|").replace("\n", " ")


def _code_cell(text):
    if not text:
        return ""
    return f"`{escape_angle(text).replace('|', '&#124;')}`"


def _fence(code, lang):
    return [f"```{lang}", code.rstrip(), "```", ""]


def _source_link(entry, cfg):
    if not cfg.source_uri:
        return ""
    uri = cfg.source_uri.format(filename=entry.file_rel, line=entry.line)
    return f" [[source]({uri})]"


def _anchor(entry):
    return [f'<a id="{entry.anchor}"></a>', ""]


def _params_rows(entry):
    """Merge declared parameter types with documented descriptions."""
    documented = {p.name: p for p in entry.doc.params}
    rows = []
    for name, ptype in entry.params:
        p = documented.pop(name, None)
        rows.append((name, ptype, p.direction if p else "", p.description if p else ""))
    for p in entry.doc.params:
        if p.name in documented:
            rows.append((p.name, "", p.direction, p.description))
    return rows


def _render_params(entry):
    rows = _params_rows(entry)
    if not rows:
        return []
    parts = ["**Parameters**", "", "| Name | Type | Description |", "|------|------|-------------|"]
    for name, ptype, direction, desc in rows:
        label = f"`{name}`" + (f" *[{direction}]*" if direction else "")
        parts.append(f"| {label} | {_code_cell(ptype)} | {_cell(desc)} |")
    parts.append("")
    return parts


def _render_markers(entry):
    parts = []
    if not entry.from_docblock:
        parts += [
            "> **Undocumented:** no doc comment found. "
            "Add a `/** ... */` block above this declaration.",
            "",
        ]
    if entry.doc.internal:
        parts += ["> **Internal:** not part of the public API.", ""]
    if entry.doc.deprecated is not None:
        note = prose(entry.doc.deprecated)
        parts += [f"> **Deprecated:** {note}".rstrip(), ""]
    return parts


def _render_text(doc):
    parts = []
    if doc.brief:
        parts += [prose(doc.brief), ""]
    if doc.description:
        parts += [prose(doc.description), ""]
    return parts


def _render_body(entry, cfg):
    cat = entry.category
    if cat == Category.FUNCTION and entry.signature:
        return _fence(entry.signature, cfg.language)
    if cat == Category.MACRO_FN:
        code = entry.signature + (f" {entry.value}" if entry.value else "")
        return _fence(code, cfg.language)
    if cat == Category.MACRO_CONST:
        return _fence(f"#define {entry.name} {entry.value}", cfg.language)
    if cat in (Category.TYPEDEF, Category.CALLBACK_TYPEDEF) and entry.definition:
        return _fence(entry.definition, cfg.language)
    if cat == Category.ENUM and entry.enumerators:
        parts = ["**Enumerators**", "", "| Name | Value |", "|------|-------|"]
        for name, value in entry.enumerators:
            parts.append(f"| `{name}` | {_code_cell(value)} |")
        return parts + [""]
    if cat in (Category.STRUCT, Category.UNION) and entry.members:
        parts = ["**Members**", "", "| Name | Type |", "|------|------|"]
        for name, mtype in entry.members:
            parts.append(f"| `{name}` | {_code_cell(mtype)} |")
        return parts + [""]
    return []


def _render_assets(doc):
    parts = []
    for asset in doc.assets:
        if not asset.href:
            continue
        if asset.kind == "image":
            alt = asset.caption or posixpath.basename(asset.src)
            parts += [f"![{_cell(alt)}]({asset.href})", ""]
            if asset.caption:
                parts += [f"*{prose(asset.caption)}*", ""]
        elif asset.text:
            lang = _LANG_BY_EXT.get(os.path.splitext(asset.src)[1].lower(), "")
            title = asset.src if asset.kind == "include" else f"{asset.src}: {asset.caption}"
            parts += [f"**Source:** [`{title}`]({asset.href})", ""]
            parts += _fence(asset.text, lang)
    return parts


def render_doc_sections(doc):
    """Labelled lists shared by every page kind (returns, errors, notes, ...)."""
    parts = []
    if doc.returns:
        parts += ["**Returns**", "", prose(doc.returns), ""]
    for attr, label in _LIST_SECTIONS:
        items = getattr(doc, attr)
        if items:
            parts += [f"**{label}**", ""]
            parts += [f"- {prose(item)}" for item in items]
            parts.append("")
    if doc.see:
        parts += ["**See also**", ""]
        parts += [f"- {prose(item)}" for item in doc.see]
        parts.append("")
    if doc.example:
        parts += ["**Example**", ""]
        parts += _fence(doc.example, "c")
    parts += _render_assets(doc)
    if doc.since:
        parts += [f"> Since: {prose(doc.since)}", ""]
    return parts


def render_entry(entry, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    label = _KIND_LABELS.get(entry.category, "")
    htxt = f"{label}: `{entry.name}`" if label else f"`{entry.name}`"
    htxt += _source_link(entry, cfg)

    parts = _anchor(entry)
    parts += [_heading(htxt, cfg.heading_level), ""]
    parts += _render_markers(entry)
    parts += _render_text(entry.doc)
    parts += _render_body(entry, cfg)
    if entry.category in (Category.FUNCTION, Category.MACRO_FN) or entry.doc.params:
        parts += _render_params(entry)
    parts += render_doc_sections(entry.doc)
    return "\n".join(parts).rstrip("\n") + "\n"


def sort_entries(entries):
    """Header entries in display order: category first, then source line."""
    rank = {cat: i for i, cat in enumerate(CATEGORY_ORDER)}
    shown = [e for e in entries if e.category in rank]
    return sorted(shown, key=lambda e: (rank[e.category], e.line, e.name))


def render_toc(entries):
    parts = ["## API"]
    by_cat = {}
    for entry in entries:
        by_cat.setdefault(entry.category, []).append(entry)
    for cat in CATEGORY_ORDER:
        if cat not in by_cat:
            continue
        parts += ["", f"### {_TOC_LABELS[cat]}", ""]
        parts += [f"- [`{e.name}`](#{e.anchor})" for e in by_cat[cat]]
    parts.append("")
    return parts


def render_header_page(file_rel, entries, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    title, _ = os.path.splitext(posixpath.basename(file_rel))
    parts = [
        frontmatter(title),
        "",
        f"> Auto-generated from `{file_rel}`. Edit doc comments in the header and rebuild.",
        "",
    ]
    shown = sort_entries(entries)
    if not shown:
        parts += ["_No declarations found in this header._", ""]
        return "\n".join(parts)
    parts += render_toc(shown)
    for entry in shown:
        parts += [render_entry(entry, cfg)]
    return "\n".join(parts)


def render_group_page(group, members, cfg=None):
    """A group's own page: its docs plus links to every member's anchor."""
    title = group.title or group.name
    parts = [frontmatter(title), ""]
    parts += _anchor(group)
    parts += [f"> Group: `{group.name}`", ""]
    parts += _render_text(group.doc)
    if members:
        parts += ["## Members", ""]
        for m in members:
            line = f"- [`{m.name}`]({relative_link(group.page, m)})"
            if m.doc.brief:
                line += f": {prose(m.doc.brief)}"
            parts.append(line)
        parts.append("")
    else:
        parts += ["_This group has no members._", ""]
    return "\n".join(parts).rstrip("\n") + "\n"


def render_standalone_page(page, cfg=None):
    title = page.title or page.name
    parts = [frontmatter(title), ""]
    parts += _anchor(page)
    parts += _render_text(page.doc)
    parts += render_doc_sections(page.doc)
    return "\n".join(parts).rstrip("\n") + "\n"


def render_index_page(index_path, roots, headers, groups=(), pages=()):
    """Landing page for one output root.

    ``headers`` is a list of ``(page path, file_rel, symbol count)``;
    ``groups`` and ``pages`` are entries with their pages assigned.
    """
    names = ", ".join(f"`{os.path.basename(r.rstrip(os.sep))}`" for r in roots)
    parts = [
        frontmatter("API Reference"),
        "",
        f"Browse API references generated from header files in {names}.",
        "",
    ]
    base = posixpath.dirname(index_path) or "."
    if headers:
        parts += ["## Headers", ""]
        for path, file_rel, count in headers:
            noun = "symbol" if count == 1 else "symbols"
            parts.append(f"- [`{file_rel}`]({posixpath.relpath(path, base)}): {count} {noun}")
        parts.append("")
    if groups:
        parts += ["## Groups", ""]
        for g in groups:
            parts.append(f"- [{_cell(g.title or g.name)}]({posixpath.relpath(g.page, base)})")
        parts.append("")
    if pages:
        parts += ["## Pages", ""]
        for p in pages:
            parts.append(f"- [{_cell(p.title or p.name)}]({posixpath.relpath(p.page, base)})")
        parts.append("")
    return "\n".join(parts)
