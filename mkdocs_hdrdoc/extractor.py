"""
Declaration extraction for C headers.

Recognition is regex based and lives behind :func:`recognize`, which turns
comment-stripped text into :class:`Candidate` declarations. The extraction
passes pair those candidates with their doc comments and decide precedence:

  1. prototypes immediately following a docblock
  2. bare prototypes
  3. inline function definitions
  4. object-like and function-like macros
  5. typedefs (plain and callback)
  6. enums
  7. structs and unions

Each pass takes an :class:`ExtractionContext` holding the text and the
per-file dedup state, and returns new entries. A declaration claimed by an
earlier pass is never captured again by a later one.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import os
import re
from dataclasses import dataclass, field

from .parser import (
    Category,
    Doc,
    Entry,
    clean_signature,
    parse_docblock,
    parse_enumerators,
    parse_members,
    parse_params,
    preprocess,
    split_top_level,
    strip_comments,
)

log = logging.getLogger("mkdocs.plugins.hdrdoc.extractor")

# How far past a docblock the paired pass looks for its prototype
LOOKAHEAD = 2000

_DOCBLOCK_RE = re.compile(r"/\*\*(?![/*<])(.*?)\*/", re.DOTALL)

_IDENT = r"[A-Za-z_]\w*"
_TYPE_TOKEN = rf"(?:(?:struct|enum|union)\s+)?{_IDENT}"
_NOT_STATEMENT = r"(?!(?:return|else|case|goto|typedef|do|sizeof|if|while|for|switch)\b)"
_PROTO_HEAD = (
    rf"^[ \t]*{_NOT_STATEMENT}(?:{_TYPE_TOKEN}[ \t*]+)+(?P<name>{_IDENT})\s*"
    r"\((?P<params>(?:[^(){};]|\([^()]*\))*)\)"
)

PROTO_RE = re.compile(_PROTO_HEAD + r"\s*;[ \t]*$", re.MULTILINE)
DEF_RE = re.compile(_PROTO_HEAD + r"\s*\{", re.MULTILINE)
MACRO_RE = re.compile(
    rf"^[ \t]*#[ \t]*define[ \t]+(?P<name>{_IDENT})(?P<args>\([^)\n]*\))?"
    r"(?:[ \t]+(?P<body>(?:[^\n]*\\\n)*[^\n]*))?$",
    re.MULTILINE,
)
TYPEDEF_RE = re.compile(r"^[ \t]*typedef\s+(?P<body>[^;{}]+?)\s*;[ \t]*$", re.MULTILINE)
AGGREGATE_RE = re.compile(
    rf"^[ \t]*(?P<typedef>typedef\s+)?(?P<kind>struct|union|enum)(?:\s+(?P<tag>{_IDENT}))?\s*\{{",
    re.MULTILINE,
)
_AGGREGATE_TAIL_RE = re.compile(rf"\s*(?:\*\s*)*(?P<alias>{_IDENT})?[^;{{}}]*;")
_CALLBACK_RE = re.compile(rf"\(\s*\*\s*(?P<name>{_IDENT})\s*\)\s*\(")
_TRAILING_NAME_RE = re.compile(rf"(?P<name>{_IDENT})\s*(?:\[[^\]]*\]\s*)*$")

_AGGREGATE_CATEGORY = {
    "struct": Category.STRUCT,
    "union": Category.UNION,
    "enum": Category.ENUM,
}


@dataclass
class Candidate:
    category: Category
    name: str
    offset: int
    signature: str = ""
    params: list[tuple[str, str]] = field(default_factory=list)
    value: str = ""
    definition: str = ""
    enumerators: list[tuple[str, str | None]] = field(default_factory=list)
    members: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class Docblock:
    start: int
    end: int
    doc: Doc


@dataclass
class ExtractionContext:
    """Per-file extraction state threaded explicitly through every pass."""

    file_rel: str
    source: str
    stripped: str
    docblocks: list[Docblock] = field(default_factory=list)
    seen_signatures: set[str] = field(default_factory=set)
    seen_names: set[tuple[Category, str]] = field(default_factory=set)

    @classmethod
    def from_source(cls, file_rel, source):
        docblocks = [
            Docblock(m.start(), m.end(), parse_docblock(m.group(1)))
            for m in _DOCBLOCK_RE.finditer(source)
        ]
        return cls(
            file_rel=file_rel,
            source=source,
            stripped=strip_comments(source),
            docblocks=docblocks,
        )

    def claim(self, category, name, signature=None):
        if (category, name) in self.seen_names:
            return False
        if signature and signature in self.seen_signatures:
            return False
        self.seen_names.add((category, name))
        if signature:
            self.seen_signatures.add(signature)
        return True

    def line_of(self, offset):
        return self.source.count("\n", 0, offset) + 1

    def docblock_before(self, offset):
        """The docblock directly above ``offset``, if nothing else sits between."""
        for db in reversed(self.docblocks):
            if db.end > offset:
                continue
            if self.stripped[db.end : offset].strip() or db.doc.is_meta:
                return None
            return db
        return None

    def make_entry(self, cand, docblock=None):
        doc = copy.deepcopy(docblock.doc) if docblock else Doc()
        entry = Entry(
            category=cand.category,
            name=cand.name,
            file_rel=self.file_rel,
            from_docblock=docblock is not None,
            doc=doc,
            line=self.line_of(cand.offset),
            signature=cand.signature,
            params=list(cand.params),
            value=cand.value,
            definition=cand.definition,
            enumerators=list(cand.enumerators),
            members=list(cand.members),
        )
        if docblock is None:
            entry.warnings.append(
                f"undocumented {cand.category.value} `{cand.name}` (no doc comment found)"
            )
        return entry


def _short_hash(text, n=6):
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:n]


def _match_brace(text, open_idx):
    depth = 0
    for i in range(open_idx, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


# ── Recognizers: stripped text -> candidates ──


def _function_candidate(m, text, terminated):
    if terminated:
        proto = m.group(0)
    else:
        # Cut at the parameter list's closing paren and close it for display
        proto = text[m.start() : m.end("params") + 1] + ";"
    sig = clean_signature(proto)
    return Candidate(
        Category.FUNCTION,
        m.group("name"),
        m.start(),
        signature=sig,
        params=parse_params(sig),
    )


def recognize_prototypes(text):
    for m in PROTO_RE.finditer(text):
        yield _function_candidate(m, text, terminated=True)


def recognize_definitions(text):
    for m in DEF_RE.finditer(text):
        yield _function_candidate(m, text, terminated=False)


def recognize_macros(text):
    for m in MACRO_RE.finditer(text):
        name = m.group("name")
        body = re.sub(r"\s*\\\n\s*", " ", m.group("body") or "").strip()
        args = m.group("args")
        if args is not None:
            names = [a.strip() for a in args[1:-1].split(",") if a.strip()]
            yield Candidate(
                Category.MACRO_FN,
                name,
                m.start(),
                signature=f"#define {name}({', '.join(names)})",
                params=[(a, "") for a in names],
                value=body,
            )
        elif body:
            # Bare "#define NAME" (include guards, feature flags) carries no value
            yield Candidate(Category.MACRO_CONST, name, m.start(), value=body)


def recognize_typedefs(text):
    for m in TYPEDEF_RE.finditer(text):
        body = m.group("body")
        cb = _CALLBACK_RE.search(body)
        if cb:
            category, name = Category.CALLBACK_TYPEDEF, cb.group("name")
        else:
            tm = _TRAILING_NAME_RE.search(body)
            if not tm:
                continue
            category, name = Category.TYPEDEF, tm.group("name")
        yield Candidate(
            category,
            name,
            m.start(),
            definition=clean_signature(f"typedef {body};"),
        )


def _recognize_aggregates(text, kinds):
    consumed = -1
    for m in AGGREGATE_RE.finditer(text):
        # nested aggregates belong to the enclosing body
        if m.start() < consumed:
            continue
        close = _match_brace(text, m.end() - 1)
        if close < 0:
            continue
        consumed = close
        kind = m.group("kind")
        if kind not in kinds:
            continue
        tail = _AGGREGATE_TAIL_RE.match(text, close + 1)
        if not tail:
            continue
        body = text[m.end() : close]
        name = m.group("tag") or tail.group("alias")
        if not name:
            normalized = re.sub(r"\s+", " ", body).strip()
            name = f"anonymous_{kind}_{_short_hash(normalized)}"
        cand = Candidate(_AGGREGATE_CATEGORY[kind], name, m.start())
        if kind == "enum":
            cand.enumerators = parse_enumerators(body)
        else:
            cand.members = parse_members(body)
        yield cand


def recognize_enums(text):
    return _recognize_aggregates(text, ("enum",))


def recognize_aggregates(text):
    return _recognize_aggregates(text, ("struct", "union"))


RECOGNIZERS = (
    recognize_prototypes,
    recognize_definitions,
    recognize_macros,
    recognize_typedefs,
    recognize_enums,
    recognize_aggregates,
)


def recognize(text):
    """All candidate declarations in comment-stripped ``text``, in pass order."""
    out = []
    for recognizer in RECOGNIZERS:
        out.extend(recognizer(text))
    return out


# ── Extraction passes ──


def paired_prototypes(ctx):
    """Pass 1: a docblock followed directly by a ``;``-terminated prototype."""
    entries = []
    for i, db in enumerate(ctx.docblocks):
        if db.doc.is_meta:
            continue
        limit = db.end + LOOKAHEAD
        if i + 1 < len(ctx.docblocks):
            limit = min(limit, ctx.docblocks[i + 1].start)
        window = ctx.stripped[db.end : limit]
        m = PROTO_RE.search(window)
        if not m or window[: m.start()].strip():
            continue
        cand = _function_candidate(m, window, terminated=True)
        cand.offset += db.end
        if not ctx.claim(cand.category, cand.name, cand.signature):
            continue
        entries.append(ctx.make_entry(cand, db))
    return entries


def _claim_all(ctx, candidates, attach_docs=True):
    entries = []
    for cand in candidates:
        if not ctx.claim(cand.category, cand.name, cand.signature or None):
            continue
        db = ctx.docblock_before(cand.offset) if attach_docs else None
        entries.append(ctx.make_entry(cand, db))
    return entries


def bare_prototypes(ctx):
    """Pass 2: prototypes with no docblock of their own."""
    return _claim_all(ctx, recognize_prototypes(ctx.stripped), attach_docs=False)


def inline_definitions(ctx):
    return _claim_all(ctx, recognize_definitions(ctx.stripped))


def macros(ctx):
    return _claim_all(ctx, recognize_macros(ctx.stripped))


def typedefs(ctx):
    return _claim_all(ctx, recognize_typedefs(ctx.stripped))


def enums(ctx):
    return _claim_all(ctx, recognize_enums(ctx.stripped))


def aggregates(ctx):
    return _claim_all(ctx, recognize_aggregates(ctx.stripped))


PASSES = (
    paired_prototypes,
    bare_prototypes,
    inline_definitions,
    macros,
    typedefs,
    enums,
    aggregates,
)


def file_entry(ctx):
    for db in ctx.docblocks:
        if "file" in db.doc.tags:
            name = os.path.basename(ctx.file_rel)
            if not ctx.claim(Category.FILE, name):
                return []
            return [
                Entry(
                    category=Category.FILE,
                    name=name,
                    file_rel=ctx.file_rel,
                    from_docblock=True,
                    doc=copy.deepcopy(db.doc),
                    line=ctx.line_of(db.start),
                )
            ]
    return []


def meta_entries(ctx):
    """Group and standalone-page entries declared inside any docblock."""
    out = []
    for db in ctx.docblocks:
        for gid, title in db.doc.group_defs:
            if ctx.claim(Category.GROUP, gid):
                out.append(
                    Entry(
                        category=Category.GROUP,
                        name=gid,
                        file_rel=ctx.file_rel,
                        from_docblock=True,
                        doc=copy.deepcopy(db.doc),
                        line=ctx.line_of(db.start),
                        title=title,
                    )
                )
        if db.doc.page:
            pid, title = db.doc.page
            if ctx.claim(Category.PAGE, pid):
                out.append(
                    Entry(
                        category=Category.PAGE,
                        name=pid,
                        file_rel=ctx.file_rel,
                        from_docblock=True,
                        doc=copy.deepcopy(db.doc),
                        line=ctx.line_of(db.start),
                        title=title,
                    )
                )
    return out


def extract_entries(source, file_rel, defines=()):
    """Run the filter and every pass over one header's text."""
    ctx = ExtractionContext.from_source(file_rel, preprocess(source, defines))
    entries = file_entry(ctx)
    for extraction_pass in PASSES:
        found = extraction_pass(ctx)
        log.debug("hdrdoc: %s: %s found %d", file_rel, extraction_pass.__name__, len(found))
        entries.extend(found)
    entries.extend(meta_entries(ctx))
    return entries


def extract_file(path, file_rel, defines=()):
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        source = f.read()
    return extract_entries(source, file_rel, defines)
