"""
Orchestrates a full documentation run.

Maps input roots to output roots, walks every header in sorted order,
extracts entries per file, then (only once every file is done) assigns
anchors and pages, copies assets, resolves cross-references, renders and
writes every page and finally checks the links between them.
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass, field

from .anchors import AnchorManager, JsonAnchorStore
from .assets import AssetCopier
from .config import HdrdocConfig, load_config
from .errors import BrokenLinksError, ConfigurationError, WarningsAsErrors
from .extractor import extract_file
from .linkcheck import GeneratedPage, check_links
from .parser import Category, Doc, Entry
from .renderer import (
    RenderConfig,
    page_rel,
    render_group_page,
    render_header_page,
    render_index_page,
    render_standalone_page,
    sort_entries,
)
from .xref import SymbolIndex, resolve_copydoc, resolve_refs

log = logging.getLogger("mkdocs.plugins.hdrdoc")


def map_roots(inputs, outputs):
    """Pair every input root with its output root.

    Either one shared output for all inputs, or exactly one per input.
    """
    if not inputs:
        raise ConfigurationError("no input roots configured")
    if not outputs:
        raise ConfigurationError("no output roots configured")
    if len(outputs) == 1:
        return [(i, outputs[0]) for i in inputs]
    if len(outputs) != len(inputs):
        raise ConfigurationError(
            f"{len(outputs)} output roots for {len(inputs)} input roots: "
            "give one shared output or one per input"
        )
    return list(zip(inputs, outputs))


def discover_headers(root, extensions=(".h",)):
    """Header paths under ``root``, relative and posix-style, sorted."""
    exts = {(e if e.startswith(".") else f".{e}").lower() for e in extensions}
    out = []
    for dirpath, dirnames, fnames in os.walk(root):
        dirnames.sort()
        for fn in sorted(fnames):
            if os.path.splitext(fn)[1].lower() not in exts:
                continue
            out.append(os.path.relpath(os.path.join(dirpath, fn), root).replace(os.sep, "/"))
    return sorted(out)


def _posix(path):
    return path.replace(os.sep, "/")


@dataclass
class HeaderUnit:
    in_root: str
    out_root: str
    rel: str
    abspath: str
    entries: list[Entry] = field(default_factory=list)
    page: str = ""


@dataclass
class GenerationResult:
    pages: list[GeneratedPage] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    broken_links: list = field(default_factory=list)
    headers: int = 0
    symbols: int = 0


class Generator:
    def __init__(self, config, base_dir=None):
        if not isinstance(config, HdrdocConfig):
            config = load_config(dict(config))
        self.config = config
        self.base_dir = base_dir or os.getcwd()
        self.pairs = []

    def _abs(self, path):
        return os.path.normpath(os.path.join(self.base_dir, os.path.expanduser(path)))

    # ── Setup ──

    def _pairs(self):
        pairs = map_roots(self.config["inputs"], self.config["outputs"])
        out = []
        for in_root, out_root in pairs:
            in_abs = self._abs(in_root)
            if not os.path.isdir(in_abs):
                raise ConfigurationError(f"input root not found: {in_root}")
            out.append((in_abs, self._abs(out_root)))
        return out

    def _load_stores(self, pairs):
        stores = {}
        for _, out_root in pairs:
            if out_root not in stores:
                store = JsonAnchorStore(os.path.join(out_root, self.config["anchor_map"]))
                store.load()
                stores[out_root] = store
        return stores

    def _extract(self, pairs):
        units = []
        defines = self.config["defines"]
        for in_root, out_root in pairs:
            headers = discover_headers(in_root, self.config["extensions"])
            log.info("hdrdoc: %d headers in %s", len(headers), in_root)
            for rel in headers:
                abspath = os.path.join(in_root, rel)
                entries = extract_file(abspath, rel, defines)
                log.debug("hdrdoc: %s: %d entries", rel, len(entries))
                units.append(HeaderUnit(in_root, out_root, rel, abspath, entries))
        return units

    # ── Groups ──

    def _collect_groups(self, units):
        """id -> group entry; ``@addtogroup`` on an unknown id defines it."""
        groups = {}
        for unit in units:
            for entry in unit.entries:
                if entry.category != Category.GROUP:
                    continue
                first = groups.get(entry.name)
                if first is None:
                    groups[entry.name] = entry
                else:
                    entry.warnings.append(
                        f"group `{entry.name}` already defined at {first.file_rel}:{first.line}"
                    )
        for unit in units:
            created = []
            for entry in unit.entries:
                for gid, title in entry.doc.group_add:
                    if gid in groups:
                        continue
                    group = Entry(
                        category=Category.GROUP,
                        name=gid,
                        file_rel=unit.rel,
                        from_docblock=True,
                        doc=Doc(),
                        line=entry.line,
                        title=title or gid,
                    )
                    groups[gid] = group
                    created.append(group)
            unit.entries.extend(created)
        return groups

    def _group_members(self, units, groups):
        members = {gid: [] for gid in groups}
        for ui, unit in enumerate(units):
            for entry in unit.entries:
                for gid in entry.doc.groups:
                    if gid == entry.name and entry.category == Category.GROUP:
                        continue
                    if gid not in members:
                        entry.warnings.append(f"unknown group `{gid}`")
                        continue
                    members[gid].append((ui, entry))
        return {
            gid: [e for _, e in sorted(found, key=lambda t: (t[0], t[1].line, t[1].name))]
            for gid, found in members.items()
        }

    # ── Anchors and pages ──

    def _assign(self, units, stores):
        ext = self.config["page_extension"]
        for unit in units:
            manager = AnchorManager(stores[unit.out_root])
            unit.page = posixpath.join(_posix(unit.out_root), page_rel(unit.rel, ext))
            for entry in unit.entries:
                entry.anchor, note = manager.assign(unit.rel, entry.name, entry.category)
                if note:
                    entry.warnings.append(note)
                if entry.category == Category.GROUP:
                    rel = page_rel(unit.rel, ext, "group", entry.name)
                    entry.page = posixpath.join(_posix(unit.out_root), rel)
                elif entry.category == Category.PAGE:
                    rel = page_rel(unit.rel, ext, "page", entry.name)
                    entry.page = posixpath.join(_posix(unit.out_root), rel)
                else:
                    entry.page = unit.page

    # ── Rendering ──

    def _render(self, units, groups, members):
        ext = self.config["page_extension"]
        cfg = RenderConfig(page_extension=ext, source_uri=self.config["source_uri"])
        pages = []

        def add(path, out_root, title, body, entries):
            rel = posixpath.relpath(path, _posix(out_root))
            pages.append(GeneratedPage(path, rel, title, body, entries))

        for unit in units:
            shown = sort_entries(unit.entries)
            title = posixpath.splitext(posixpath.basename(unit.rel))[0]
            add(unit.page, unit.out_root, title, render_header_page(unit.rel, shown, cfg), shown)
            for entry in unit.entries:
                if entry.category == Category.GROUP and groups.get(entry.name) is entry:
                    body = render_group_page(entry, members[entry.name], cfg)
                    add(entry.page, unit.out_root, entry.title or entry.name, body, [entry])
                elif entry.category == Category.PAGE:
                    body = render_standalone_page(entry, cfg)
                    add(entry.page, unit.out_root, entry.title or entry.name, body, [entry])

        if self.config["index_page"]:
            pages.extend(self._render_indexes(units, groups, ext))
        return pages

    def _render_indexes(self, units, groups, ext):
        out = []
        for out_root in dict.fromkeys(o for _, o in self.pairs):
            path = posixpath.join(_posix(out_root), "index" + ext)
            roots = [i for i, o in self.pairs if o == out_root]
            headers = []
            listed_groups = []
            standalone = []
            for unit in units:
                if unit.out_root != out_root:
                    continue
                shown = sort_entries(unit.entries)
                count = sum(1 for e in shown if e.category != Category.FILE)
                headers.append((unit.page, unit.rel, count))
                for entry in unit.entries:
                    if entry.category == Category.GROUP and groups.get(entry.name) is entry:
                        listed_groups.append(entry)
                    elif entry.category == Category.PAGE:
                        standalone.append(entry)
            body = render_index_page(path, roots, headers, listed_groups, standalone)
            out.append(GeneratedPage(path, "index" + ext, "API Reference", body, []))
        return out

    # ── Output ──

    def _write(self, pages, warnings):
        written = []
        kept = {}
        for page in pages:
            if page.path in kept:
                warnings.append(
                    f"{page.rel}: page collision, keeping the first generated page "
                    f"`{kept[page.path].title}`"
                )
                continue
            kept[page.path] = page
            if _write_if_changed(page.path, page.body):
                written.append(page.path)
        return list(kept.values()), written

    def run(self):
        """Generate every page; anchor maps are saved only when nothing fails."""
        self.pairs = pairs = self._pairs()
        stores = self._load_stores(pairs)
        units = self._extract(pairs)

        groups = self._collect_groups(units)
        members = self._group_members(units, groups)
        self._assign(units, stores)

        copier = AssetCopier(self._abs(self.config["assets_dir"]), [i for i, _ in pairs])
        all_entries = [e for u in units for e in u.entries]
        for unit in units:
            header_dir = os.path.dirname(unit.abspath)
            for entry in unit.entries:
                copier.process(entry, header_dir)

        index = SymbolIndex(all_entries)
        resolve_copydoc(all_entries, index)
        resolve_refs(all_entries, index)

        result = GenerationResult(headers=len(units), symbols=len(index))
        pages, result.written = self._write(self._render(units, groups, members), result.warnings)
        result.pages = pages

        for entry in all_entries:
            for w in entry.warnings:
                result.warnings.append(f"{entry.file_rel}:{entry.line}: {w}")
        for w in result.warnings:
            log.warning("hdrdoc: %s", w)

        result.broken_links = check_links(pages, self.config["page_extension"])
        log.info(
            "hdrdoc: %d headers, %d symbols, %d pages (%d written), %d warnings",
            result.headers,
            result.symbols,
            len(pages),
            len(result.written),
            len(result.warnings),
        )
        if result.broken_links:
            raise BrokenLinksError(result.broken_links)

        if self.config["fail_on_warn"] and result.warnings:
            raise WarningsAsErrors(result.warnings)

        for store in stores.values():
            store.save()
        return result


def _write_if_changed(path, text):
    if os.path.isfile(path):
        with open(path, "r", encoding="utf-8") as f:
            if f.read() == text:
                return False
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(text)
    return True


def generate(config, base_dir=None):
    return Generator(config, base_dir).run()
