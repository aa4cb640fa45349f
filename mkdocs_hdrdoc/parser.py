"""
Source-level parsing helpers for C headers.

Covers the pieces every later stage builds on:
  - the data model (Category, Doc, Asset, Entry)
  - a light conditional-compilation filter (flags only, no macro expansion)
  - comment stripping and signature cleaning
  - the Doxygen-style docblock parser

Nothing here knows about pages or anchors; see extractor.py for the
declaration passes and renderer.py for output.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass, field
from enum import Enum


class Category(Enum):
    FILE = "file"
    MACRO_CONST = "macro-const"
    MACRO_FN = "macro-fn"
    TYPEDEF = "typedef"
    CALLBACK_TYPEDEF = "callback-typedef"
    ENUM = "enum"
    STRUCT = "struct"
    UNION = "union"
    FUNCTION = "function"
    GROUP = "group"
    PAGE = "page"


@dataclass
class Param:
    name: str
    description: str = ""
    direction: str = ""


@dataclass
class Asset:
    kind: str  # "image", "include" or "snippet"
    src: str
    caption: str = ""
    # Filled in by the asset copier
    path: str = ""
    href: str = ""
    text: str = ""


@dataclass
class Doc:
    brief: str | None = None
    description: str | None = None
    params: list[Param] = field(default_factory=list)
    returns: str | None = None
    errors: list[str] = field(default_factory=list)
    since: str | None = None
    deprecated: str | None = None
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    todos: list[str] = field(default_factory=list)
    bugs: list[str] = field(default_factory=list)
    see: list[str] = field(default_factory=list)
    example: str | None = None
    assets: list[Asset] = field(default_factory=list)
    tags: dict[str, list[str]] = field(default_factory=dict)
    copydoc: list[str] = field(default_factory=list)
    group_defs: list[tuple[str, str]] = field(default_factory=list)
    group_add: list[tuple[str, str]] = field(default_factory=list)
    group_in: list[str] = field(default_factory=list)
    page: tuple[str, str] | None = None
    internal: bool = False

    @property
    def is_meta(self):
        """True for docblocks that describe the file, a group or a page."""
        return bool("file" in self.tags or self.group_defs or self.page)

    @property
    def groups(self):
        ids = list(self.group_in) + [gid for gid, _ in self.group_add]
        return list(dict.fromkeys(ids))


@dataclass
class Entry:
    category: Category
    name: str
    file_rel: str
    anchor: str = ""
    from_docblock: bool = False
    doc: Doc = field(default_factory=Doc)
    line: int = 0
    warnings: list[str] = field(default_factory=list)
    # Functions and function-like macros
    signature: str = ""
    params: list[tuple[str, str]] = field(default_factory=list)  # (name, type)
    # Object-like macros (and the body of function-like ones)
    value: str = ""
    # Typedefs
    definition: str = ""
    # Enums and aggregates
    enumerators: list[tuple[str, str | None]] = field(default_factory=list)
    members: list[tuple[str, str]] = field(default_factory=list)  # (name, type)
    # Groups and standalone pages
    title: str = ""
    # Generated page path, assigned by the generator
    page: str = ""

    @property
    def key(self):
        return (self.category, self.name)


# ── Conditional-compilation filter ──

_CONDITIONAL_RE = re.compile(r"^\s*#\s*(if|ifdef|ifndef|elif|else|endif)\b(.*)$")
_CONDITION_RE = re.compile(
    r"^(?P<neg>!)?\s*(?:defined\s*\(\s*(?P<d1>[A-Za-z_]\w*)\s*\)"
    r"|defined\s+(?P<d2>[A-Za-z_]\w*)|(?P<sym>[A-Za-z_]\w*)|(?P<num>\d+)[uUlL]*)$"
)


def eval_condition(expr, defines):
    """Evaluate a single ``#if``/``#elif`` term against the defined flags.

    Only one term is understood: ``X``, ``defined(X)``, ``defined X`` or an
    integer literal, each optionally negated with ``!``. Anything else
    (``&&``, ``||``, comparisons) evaluates false.
    """
    expr = _strip_line_comment(expr).strip()
    # integer literals cover the common `#if 0` / `#if 1` guards
    m = _CONDITION_RE.match(expr)
    if not m:
        return False
    if m.group("num") is not None:
        value = int(m.group("num")) != 0
    else:
        value = (m.group("d1") or m.group("d2") or m.group("sym")) in defines
    return not value if m.group("neg") else value


def _strip_line_comment(text):
    text = re.sub(r"/\*.*?\*/", " ", text)
    return text.split("//", 1)[0]


@dataclass
class _Frame:
    active: bool
    seen_true: bool


def preprocess(source, defines=()):
    """Blank out lines inside false conditional branches.

    Directive lines and inactive lines become empty strings so line numbers
    downstream still match the original file. Unbalanced ``#elif``/``#else``/
    ``#endif`` are ignored.
    """
    defines = set(defines)
    stack: list[_Frame] = []
    out = []

    def parent_active():
        return all(f.active for f in stack[:-1])

    for raw in re.split(r"\r?\n", source):
        m = _CONDITIONAL_RE.match(raw)
        if not m:
            out.append(raw if all(f.active for f in stack) else "")
            continue

        directive, rest = m.group(1), m.group(2)
        enclosing = all(f.active for f in stack)
        if directive in ("ifdef", "ifndef"):
            sym = _strip_line_comment(rest).strip()
            cond = sym in defines
            if directive == "ifndef":
                cond = not cond
            stack.append(_Frame(active=enclosing and cond, seen_true=cond))
        elif directive == "if":
            cond = eval_condition(rest, defines)
            stack.append(_Frame(active=enclosing and cond, seen_true=cond))
        elif directive == "elif":
            if stack:
                top = stack[-1]
                if top.seen_true:
                    top.active = False
                else:
                    cond = eval_condition(rest, defines)
                    top.active = parent_active() and cond
                    top.seen_true = cond
        elif directive == "else":
            if stack:
                top = stack[-1]
                top.active = parent_active() and not top.seen_true
                top.seen_true = True
        elif stack:
            stack.pop()
        out.append("")

    return "\n".join(out)


# ── Comment stripping and signature cleaning ──

_COMMENT_RE = re.compile(
    r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')|(/\*.*?\*/|//[^\n]*)""", re.DOTALL
)


def _blank(text):
    return re.sub(r"[^\n]", " ", text)


def strip_comments(source):
    """Replace every comment with blanks, keeping offsets and newlines intact.

    String and character literals are left alone so ``"http://..."`` in a
    macro body survives.
    """
    return _COMMENT_RE.sub(lambda m: m.group(1) or _blank(m.group(2)), source)


def clean_signature(sig):
    text = _COMMENT_RE.sub(lambda m: m.group(1) or " ", sig)
    return re.sub(r"\s+", " ", text).strip()


def escape_angle(text):
    return text.replace("<", "&lt;").replace(">", "&gt;")


# ── Declaration fragments ──

_IDENT_RE = re.compile(r"[A-Za-z_]\w*")
_FUNC_NAME_RE = re.compile(r"\b([A-Za-z_]\w*)\s*\(")
_FUNC_PTR_NAME_RE = re.compile(r"\(\s*\*\s*([A-Za-z_]\w*)\s*\)")
_DECLARATOR_RE = re.compile(
    r"^(?P<type>.*?[\s*&])?(?P<name>[A-Za-z_]\w*)\s*(?P<dims>(?:\[[^\]]*\]\s*)*)(?::\s*\w+)?$"
)


def func_name(signature):
    m = _FUNC_NAME_RE.search(signature)
    return m.group(1) if m else ""


def split_top_level(text, sep=","):
    """Split on ``sep`` outside parentheses, brackets and braces."""
    parts = []
    depth = 0
    cur = []
    for ch in text:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
    if "".join(cur).strip():
        parts.append("".join(cur))
    return parts


def parse_declarator(decl):
    """Split ``const char *name[4]`` into ``("name", "const char *[4]")``."""
    decl = re.sub(r"\s+", " ", decl).strip()
    if not decl:
        return None
    if decl == "...":
        return ("...", "...")
    fp = _FUNC_PTR_NAME_RE.search(decl)
    if fp:
        return (fp.group(1), decl)
    m = _DECLARATOR_RE.match(decl)
    if not m or not m.group("type"):
        return (decl, decl)
    ptype = m.group("type").strip() + re.sub(r"\s+", "", m.group("dims"))
    return (m.group("name"), ptype)


def parse_params(signature):
    """Best-effort ``[(name, type), ...]`` from a prototype's parameter list."""
    start = signature.find("(")
    end = signature.rfind(")")
    if start < 0 or end <= start:
        return []
    inner = signature[start + 1 : end].strip()
    if not inner or inner == "void":
        return []
    out = []
    for part in split_top_level(inner):
        parsed = parse_declarator(part)
        if parsed:
            out.append(parsed)
    return out


def parse_members(body):
    members = []
    for chunk in split_top_level(body, ";"):
        decl = re.sub(r"\s+", " ", chunk).strip()
        if not decl:
            continue
        if "{" in decl:
            # Nested aggregate: keep the keyword, elide the body
            head, _, tail = decl.rpartition("}")
            kw = head.split("{", 1)[0].strip() or "struct"
            for name in split_top_level(tail):
                name = name.strip().lstrip("*").strip()
                if _IDENT_RE.fullmatch(name):
                    members.append((name, f"{kw} {{...}}"))
            continue
        declarators = split_top_level(decl)
        first = parse_declarator(declarators[0])
        if not first:
            continue
        members.append(first)
        if len(declarators) > 1:
            base = first[1].rstrip("*[]0123456789 ").strip()
            for extra in declarators[1:]:
                extra = extra.strip()
                stars = len(extra) - len(extra.lstrip("*"))
                name = extra.lstrip("*").strip()
                if _IDENT_RE.fullmatch(name):
                    members.append((name, (base + " " + "*" * stars).strip()))
    return members


def parse_enumerators(body):
    out = []
    for part in split_top_level(body):
        s = re.sub(r"\s+", " ", part).strip()
        if not s:
            continue
        m = re.match(r"^([A-Za-z_]\w*)(?:\s*=\s*(.+))?$", s)
        if m:
            value = m.group(2).strip() if m.group(2) else None
            out.append((m.group(1), value))
    return out


# ── Docblock parser ──

_LEADER_RE = re.compile(r"^\s*\*? ?")
_TAG_RE = re.compile(r"^@(\w+)\b\s*(.*)$")
_PARAM_RE = re.compile(
    r"^(?:\[\s*(?P<dir>in|out|in\s*,\s*out)\s*\]\s*)?(?P<name>[A-Za-z_]\w*|\.\.\.)\s*(?P<desc>.*)$",
    re.IGNORECASE,
)
_IMAGE_RE = re.compile(r"^(\w+)\s+(\S+)(?:\s+(.*))?$")
_SRC_LABEL_RE = re.compile(r"^(\S+)(?:\s+(.*))?$")
_ID_TITLE_RE = re.compile(r"^(\S+)(?:\s+(.*))?$")

_LIST_TAGS = {
    "error": "errors",
    "note": "notes",
    "warning": "warnings",
    "todo": "todos",
    "bug": "bugs",
}


def _unquote(text):
    text = (text or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text


def docblock_lines(raw):
    """Strip the leading ``*`` continuation marker from each line."""
    return [_LEADER_RE.sub("", line).rstrip() for line in raw.split("\n")]


def parse_docblock(raw):
    """Parse the text between ``/**`` and ``*/`` into a :class:`Doc`."""
    lines = docblock_lines(raw)
    doc = Doc()
    prose = []

    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        i += 1
        m = _TAG_RE.match(stripped)
        if not m:
            # group brackets (@{ @}) and unknown @-lines are never prose
            if stripped and not stripped.startswith("@"):
                prose.append(stripped)
            continue

        tag, value = m.group(1), m.group(2).strip()
        if tag == "brief":
            doc.brief = value
        elif tag == "param":
            pm = _PARAM_RE.match(value)
            if pm:
                direction = re.sub(r"\s+", "", pm.group("dir") or "").lower()
                doc.params.append(Param(pm.group("name"), pm.group("desc").strip(), direction))
        elif tag in ("return", "returns"):
            doc.returns = value
        elif tag in _LIST_TAGS:
            getattr(doc, _LIST_TAGS[tag]).append(value)
        elif tag == "since":
            doc.since = value
        elif tag == "deprecated":
            doc.deprecated = value
        elif tag == "see":
            if value:
                doc.see.append(value)
        elif tag == "example":
            block = [value] if value else []
            while i < len(lines) and not lines[i].strip().startswith("@"):
                block.append(lines[i])
                i += 1
            text = textwrap.dedent("\n".join(block)).strip("\n").rstrip()
            if text.strip():
                doc.example = text
        elif tag == "image":
            im = _IMAGE_RE.match(value)
            if im:
                doc.assets.append(Asset("image", im.group(2), _unquote(im.group(3))))
        elif tag == "include":
            if value:
                doc.assets.append(Asset("include", value.split()[0]))
        elif tag == "snippet":
            sm = _SRC_LABEL_RE.match(value)
            if sm:
                doc.assets.append(Asset("snippet", sm.group(1), _unquote(sm.group(2))))
        elif tag == "internal":
            doc.internal = True
        elif tag == "copydoc":
            if value:
                doc.copydoc.append(value.split()[0])
        elif tag == "defgroup":
            gm = _ID_TITLE_RE.match(value)
            if gm:
                doc.group_defs.append((gm.group(1), (gm.group(2) or gm.group(1)).strip()))
        elif tag == "addtogroup":
            gm = _ID_TITLE_RE.match(value)
            if gm:
                doc.group_add.append((gm.group(1), (gm.group(2) or "").strip()))
        elif tag == "ingroup":
            doc.group_in.extend(value.split())
        elif tag == "page":
            pm = _ID_TITLE_RE.match(value)
            if pm:
                doc.page = (pm.group(1), (pm.group(2) or pm.group(1)).strip())
        else:
            doc.tags.setdefault(tag, []).append(value)

    text = "\n".join(prose).strip()
    if text:
        doc.description = text
    return doc
