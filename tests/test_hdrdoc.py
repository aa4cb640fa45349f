import json
import os
import textwrap
import pytest

from mkdocs.exceptions import PluginError

from mkdocs_hdrdoc.anchors import (
    AnchorManager,
    JsonAnchorStore,
    MemoryAnchorStore,
    derive_anchor,
    slug,
    stable_key,
)
from mkdocs_hdrdoc.assets import asset_name, extract_snippet
from mkdocs_hdrdoc.cli import main
from mkdocs_hdrdoc.errors import BrokenLinksError, ConfigurationError, WarningsAsErrors
from mkdocs_hdrdoc.extractor import extract_entries, recognize
from mkdocs_hdrdoc.generator import Generator, discover_headers, map_roots
from mkdocs_hdrdoc.linkcheck import GeneratedPage, check_links, index_anchors
from mkdocs_hdrdoc.parser import (
    Category,
    Entry,
    clean_signature,
    eval_condition,
    parse_docblock,
    parse_members,
    parse_params,
    preprocess,
    strip_comments,
)
from mkdocs_hdrdoc.plugin import HdrdocPlugin
from mkdocs_hdrdoc.renderer import (
    RenderConfig,
    frontmatter,
    page_rel,
    render_entry,
    render_header_page,
)
from mkdocs_hdrdoc.xref import SymbolIndex, relative_link, resolve_copydoc, resolve_refs


def _by_name(entries):
    return {e.name: e for e in entries}


def _write_tree(root, files):
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text))
    return root


API_H = """\
    #ifndef API_H
    #define API_H

    /**
     * @file
     * @brief Public API.
     */

    /** Maximum size. */
    #define API_MAX 64

    /**
     * @brief Open a handle.
     * @param path the path
     * @return handle, see \\ref api_close
     */
    int api_open(const char *path);

    /** Close it. */
    void api_close(int h);

    #endif
"""

EXTRA_H = """\
    int extra_fn(void);
"""


@pytest.fixture
def project(tmp_path):
    _write_tree(tmp_path / "include", {"api.h": API_H, "sub/extra.h": EXTRA_H})
    return tmp_path


def _config(root, **overrides):
    cfg = {
        "inputs": [str(root / "include")],
        "outputs": [str(root / "out")],
        "assets_dir": str(root / "assets"),
    }
    cfg.update(overrides)
    return cfg


# -- conditional compilation --


class TestPreprocess:
    SRC = "#ifdef FOO\nint a(void);\n#else\nint b(void);\n#endif\nint c(void);\n"

    def test_ifdef_taken(self):
        out = preprocess(self.SRC, {"FOO"})
        assert "int a(void);" in out
        assert "int b" not in out

    def test_else_taken(self):
        out = preprocess(self.SRC, set())
        assert "int b(void);" in out
        assert "int a" not in out

    def test_line_count_preserved(self):
        for defines in ({"FOO"}, set()):
            lines = preprocess(self.SRC, defines).split("\n")
            assert len(lines) == len(self.SRC.split("\n"))
            assert lines[5] == "int c(void);"

    def test_elif_chain(self):
        src = "#if 0\nint a;\n#elif defined(BAR)\nint b;\n#else\nint c;\n#endif\n"
        assert "int b;" in preprocess(src, {"BAR"})
        assert "int c;" not in preprocess(src, {"BAR"})
        assert "int c;" in preprocess(src, set())
        assert "int a;" not in preprocess(src, set())

    def test_nested_inactive_parent(self):
        src = "#ifdef OUTER\n#ifdef INNER\nint x;\n#else\nint y;\n#endif\n#endif\n"
        out = preprocess(src, {"INNER"})
        assert "int x;" not in out and "int y;" not in out

    def test_unbalanced_tolerated(self):
        out = preprocess("#endif\nint a;\n#else\nint b;\n", set())
        assert "int a;" in out and "int b;" in out

    def test_conditions(self):
        assert eval_condition("FOO", {"FOO"})
        assert eval_condition("!defined(FOO)", set())
        assert eval_condition("defined BAR", {"BAR"})
        assert eval_condition("1", set())
        assert not eval_condition("defined(A) && defined(B)", {"A", "B"})
        assert not eval_condition("VERSION > 2", {"VERSION"})


# -- comments and signatures --


class TestNormalizer:
    def test_strip_keeps_offsets(self):
        src = "int a; /* gone */ int b; // tail\nint c;"
        out = strip_comments(src)
        assert len(out) == len(src)
        assert "gone" not in out and "tail" not in out
        assert out.index("int c;") == src.index("int c;")

    def test_strings_survive(self):
        assert '"http://x"' in strip_comments('#define URL "http://x"')

    def test_clean_signature(self):
        assert clean_signature("int  f(int a, /* why */\n   int b);") == "int f(int a, int b);"

    def test_params_with_function_pointer(self):
        params = parse_params("int reg(void (*cb)(int), void *ud);")
        assert params == [("cb", "void (*cb)(int)"), ("ud", "void *")]

    def test_void_params(self):
        assert parse_params("int f(void);") == []

    def test_multi_declarator_members(self):
        assert parse_members("int a, *b; const char *name[4];") == [
            ("a", "int"),
            ("b", "int *"),
            ("name", "const char *[4]"),
        ]


# -- docblock parser --


class TestDocblock:
    RAW = textwrap.dedent("""
         * @brief Open a stream.
         *
         * Longer text
         * over two lines.
         * @param[in] path File path.
         * @param [out] handle Receives the handle.
         * @return 0 on success.
         * @note First note.
         * @custom something
         * @custom again
         * @example
         *   int h;
         *   open("x", &h);
         * @since 1.2
         """)

    def test_fields(self):
        doc = parse_docblock(self.RAW)
        assert doc.brief == "Open a stream."
        assert doc.description == "Longer text\nover two lines."
        assert doc.returns == "0 on success."
        assert doc.notes == ["First note."]
        assert doc.since == "1.2"

    def test_params_with_direction(self):
        doc = parse_docblock(self.RAW)
        assert [(p.name, p.direction, p.description) for p in doc.params] == [
            ("path", "in", "File path."),
            ("handle", "out", "Receives the handle."),
        ]

    def test_example_ends_at_next_tag(self):
        doc = parse_docblock(self.RAW)
        assert doc.example == 'int h;\nopen("x", &h);'

    def test_unknown_tags_kept(self):
        assert parse_docblock(self.RAW).tags["custom"] == ["something", "again"]

    def test_directives(self):
        doc = parse_docblock(
            "\n * @copydoc other_fn\n * @ingroup io net\n * @internal\n"
            " * @deprecated use v2\n * @image html pic.png \"A picture\"\n"
        )
        assert doc.copydoc == ["other_fn"]
        assert doc.groups == ["io", "net"]
        assert doc.internal
        assert doc.deprecated == "use v2"
        assert doc.assets[0].kind == "image"
        assert doc.assets[0].caption == "A picture"

    def test_meta(self):
        assert parse_docblock(" @file ").is_meta
        assert parse_docblock(" @defgroup io Input ").group_defs == [("io", "Input")]
        assert parse_docblock(" @page intro Getting started ").page == ("intro", "Getting started")
        assert not parse_docblock(" Plain text. ").is_meta

    def test_group_brackets_are_not_prose(self):
        doc = parse_docblock("\n * @addtogroup net Networking\n * @{\n ")
        assert doc.group_add == [("net", "Networking")]
        assert doc.description is None
        assert parse_docblock(" @} ").description is None

    def test_example_stops_at_group_bracket(self):
        doc = parse_docblock("\n * @example\n *   run();\n * @}\n ")
        assert doc.example == "run();"
        assert doc.description is None


# -- declaration extraction --


class TestExtractor:
    def test_paired_prototype_not_duplicated(self):
        src = textwrap.dedent("""\
            /**
             * @brief Adds.
             * @param a first
             */
            int add(int a, int b);
        """)
        entries = extract_entries(src, "m.h")
        assert [e.name for e in entries] == ["add"]
        add = entries[0]
        assert add.from_docblock
        assert add.doc.brief == "Adds."
        assert add.params == [("a", "int"), ("b", "int")]
        assert add.signature == "int add(int a, int b);"
        assert add.line == 5

    def test_bare_prototype_warns(self):
        entries = extract_entries("int lonely(void);\n", "m.h")
        assert len(entries) == 1
        assert not entries[0].from_docblock
        assert "undocumented" in entries[0].warnings[0]

    def test_macros(self):
        src = "#define MAX 100\n#define ADD(a,b) ((a)+(b))\n#define GUARD_H\n"
        named = _by_name(extract_entries(src, "m.h"))
        assert set(named) == {"MAX", "ADD"}
        assert named["MAX"].category == Category.MACRO_CONST
        assert named["MAX"].value == "100"
        assert named["ADD"].category == Category.MACRO_FN
        assert [p[0] for p in named["ADD"].params] == ["a", "b"]
        assert named["ADD"].signature == "#define ADD(a, b)"

    def test_callback_typedef(self):
        src = textwrap.dedent("""\
            /** Called on events. */
            typedef void (*event_cb)(int code, void *user);
            typedef unsigned long handle_t;
        """)
        named = _by_name(extract_entries(src, "m.h"))
        assert named["event_cb"].category == Category.CALLBACK_TYPEDEF
        assert named["event_cb"].from_docblock
        assert named["event_cb"].doc.description == "Called on events."
        assert named["handle_t"].category == Category.TYPEDEF
        assert named["handle_t"].definition == "typedef unsigned long handle_t;"

    def test_enum(self):
        src = textwrap.dedent("""\
            /** Colors. */
            typedef enum color {
                RED,
                GREEN = 5,
                BLUE
            } color_t;
        """)
        named = _by_name(extract_entries(src, "m.h"))
        assert named["color"].category == Category.ENUM
        assert named["color"].enumerators == [("RED", None), ("GREEN", "5"), ("BLUE", None)]
        assert named["color"].from_docblock

    def test_struct_with_alias(self):
        src = "typedef struct {\n    int x;\n    int y;\n} point_t;\n"
        named = _by_name(extract_entries(src, "m.h"))
        assert named["point_t"].category == Category.STRUCT
        assert named["point_t"].members == [("x", "int"), ("y", "int")]

    def test_anonymous_union_stable_name(self):
        src = "union {\n    int i;\n    float f;\n};\n"
        first = extract_entries(src, "m.h")
        again = extract_entries("\n\n" + src.replace("    ", "\t"), "m.h")
        assert first[0].category == Category.UNION
        assert first[0].name.startswith("anonymous_union_")
        assert first[0].name == again[0].name

    def test_inline_definition(self):
        src = "/** Square it. */\nstatic inline int square(int x) { return x * x; }\n"
        entries = extract_entries(src, "m.h")
        assert [e.name for e in entries] == ["square"]
        assert entries[0].signature == "static inline int square(int x);"
        assert entries[0].from_docblock

    def test_return_statements_are_not_prototypes(self):
        src = "static inline int f(int x)\n{\n    return g(x);\n}\n"
        assert [e.name for e in extract_entries(src, "m.h")] == ["f"]

    def test_nested_aggregates_stay_inside_parent(self):
        src = textwrap.dedent("""\
            /** A config. */
            struct config {
                struct {
                    int a;
                } inner;
                union {
                    int x;
                    float y;
                };
                enum { LOW, HIGH } level;
            };
        """)
        entries = extract_entries(src, "m.h")
        assert [(e.category, e.name) for e in entries] == [(Category.STRUCT, "config")]
        assert entries[0].members == [("inner", "struct {...}"), ("level", "enum {...}")]
        assert entries[0].warnings == []

    def test_defines_select_declaration(self):
        src = "#ifdef FOO\nint a(void);\n#else\nint b(void);\n#endif\nint c(void);\n"
        with_foo = _by_name(extract_entries(src, "m.h", {"FOO"}))
        without = _by_name(extract_entries(src, "m.h"))
        assert set(with_foo) == {"a", "c"}
        assert set(without) == {"b", "c"}
        assert with_foo["c"].line == without["c"].line == 6

    def test_meta_docblock_not_paired(self):
        src = "/**\n * @file\n * @brief Header.\n */\nint f(void);\n"
        named = _by_name(extract_entries(src, "m.h"))
        assert named["m.h"].category == Category.FILE
        assert not named["f"].from_docblock

    def test_group_and_page_entries(self):
        src = "/** @defgroup io Input and output */\n/** @page intro Intro\n * Text.\n */\n"
        named = _by_name(extract_entries(src, "m.h"))
        assert named["io"].category == Category.GROUP
        assert named["io"].title == "Input and output"
        assert named["intro"].category == Category.PAGE

    def test_recognize_interface(self):
        kinds = {c.category for c in recognize("#define X 1\nint f(void);\nstruct s { int a; };\n")}
        assert kinds == {Category.MACRO_CONST, Category.FUNCTION, Category.STRUCT}


# -- anchors --


class TestAnchors:
    def test_slug(self):
        assert slug("function-My_Func") == "function-my-func"

    def test_derived_shape(self):
        anchor = derive_anchor("a.h", "my_func", Category.FUNCTION)
        prefix, digest = anchor.rsplit("-", 1)
        assert prefix == "function-my-func"
        assert len(digest) == 8

    def test_idempotent(self):
        manager = AnchorManager(MemoryAnchorStore())
        first = manager.assign("a.h", "f", Category.FUNCTION)
        assert manager.assign("a.h", "f", Category.FUNCTION) == first
        assert first[1] is None

    def test_key_distinguishes_category(self):
        manager = AnchorManager(MemoryAnchorStore())
        fn, _ = manager.assign("a.h", "x", Category.FUNCTION)
        macro, _ = manager.assign("a.h", "x", Category.MACRO_CONST)
        assert fn != macro

    def test_stored_anchor_wins_with_note(self):
        key = stable_key("a.h", "f", Category.FUNCTION)
        manager = AnchorManager(MemoryAnchorStore({key: "legacy-anchor"}))
        anchor, note = manager.assign("a.h", "f", Category.FUNCTION)
        assert anchor == "legacy-anchor"
        assert "anchor drift" in note

    def test_json_store_roundtrip(self, tmp_path):
        path = str(tmp_path / "anchors.json")
        store = JsonAnchorStore(path)
        anchor, _ = AnchorManager(store).assign("a.h", "f", Category.FUNCTION)
        store.save()
        reloaded = JsonAnchorStore(path)
        reloaded.load()
        assert reloaded.lookup(stable_key("a.h", "f", Category.FUNCTION)) == anchor
        assert open(path).read().endswith("}\n")

    def test_corrupt_store(self, tmp_path):
        path = tmp_path / "anchors.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            JsonAnchorStore(str(path)).load()


# -- cross references --


def _resolved(src, page="/out/m.mdx"):
    entries = extract_entries(textwrap.dedent(src), "m.h")
    for e in entries:
        e.anchor = derive_anchor(e.file_rel, e.name, e.category)
        e.page = page
    index = SymbolIndex(entries)
    resolve_copydoc(entries, index)
    resolve_refs(entries, index)
    return _by_name(entries)


class TestXref:
    def test_copydoc_inherits(self):
        named = _resolved("""\
            /**
             * @brief Base brief.
             * @param x the x
             * @return something
             * @see other
             */
            int base(int x);

            /** @copydoc base */
            int derived(int x);
        """)
        derived = named["derived"]
        assert derived.doc.brief == "Base brief."
        assert [p.name for p in derived.doc.params] == ["x"]
        assert derived.doc.returns == "something"
        assert derived.doc.see == ["other"]
        assert derived.warnings == []

    def test_copydoc_keeps_own_fields(self):
        named = _resolved("""\
            /** @brief Base. */
            int base(void);

            /**
             * @brief Mine.
             * @copydoc base
             */
            int derived(void);
        """)
        assert named["derived"].doc.brief == "Mine."

    def test_copydoc_missing_target(self):
        named = _resolved("/** @copydoc missing_fn */\nint orphan(void);\n")
        assert "@copydoc target not found: missing_fn" in named["orphan"].warnings

    def test_copydoc_cycle(self):
        named = _resolved("/** @copydoc b */\nint a(void);\n/** @copydoc a */\nint b(void);\n")
        assert any("cycle" in w for w in named["a"].warnings + named["b"].warnings)

    def test_ref_same_page(self):
        named = _resolved("""\
            /** Uses \\ref helper for work. */
            int worker(void);
            /** Helper. */
            int helper(void);
        """)
        anchor = named["helper"].anchor
        assert named["worker"].doc.description == f"Uses [`helper`](#{anchor}) for work."

    def test_ref_qualified_and_unresolved(self):
        named = _resolved("""\
            /** See \\ref point:struct and \\ref nothing. */
            int f(void);
            struct point { int x; };
        """)
        desc = named["f"].doc.description
        assert f"[`point`](#{named['point'].anchor})" in desc
        assert "`nothing`" in desc
        assert "[`nothing`]" not in desc

    def test_see_also_autolink(self):
        named = _resolved("/** @see helper\n * @see the manual */\nint f(void);\nint helper(void);\n")
        assert named["f"].doc.see[0].startswith("[`helper`](#")
        assert named["f"].doc.see[1] == "the manual"

    def test_relative_link_across_pages(self):
        target = Entry(Category.FUNCTION, "f", "b/y.h", anchor="function-f-1", page="/o/b/y.mdx")
        assert relative_link("/o/a/x.mdx", target) == "../b/y.mdx#function-f-1"
        assert relative_link("/o/b/y.mdx", target) == "#function-f-1"

    def test_index_first_seen_wins(self):
        first = Entry(Category.FUNCTION, "f", "a.h")
        second = Entry(Category.FUNCTION, "f", "b.h")
        index = SymbolIndex([first, second])
        assert index.find("f") is first
        assert index.find("f:macro-const") is None
        assert index.find("f:bogus") is None


# -- link checker --


def _page(path, body):
    return GeneratedPage(path, os.path.basename(path), "t", body)


class TestLinkCheck:
    def test_valid_links(self):
        pages = [
            _page("/o/a.mdx", '<a id="one"></a>\n[x](#one)\n[y](b.mdx#two)\n[e](https://x.org)\n'),
            _page("/o/b.mdx", '<a id="two"></a>\n![img](../assets/p.png)\n'),
        ]
        assert check_links(pages) == []
        assert index_anchors(pages)["/o/b.mdx"] == {"two"}

    def test_broken_links(self):
        pages = [
            _page("/o/a.mdx", "[z](b.mdx#nope)\n[w](c.mdx)\n[s](#gone)\n"),
            _page("/o/b.mdx", '<a id="two"></a>\n'),
        ]
        problems = check_links(pages)
        assert [(p.page, p.target, p.reason) for p in problems] == [
            ("a.mdx", "b.mdx#nope", "Anchor not found"),
            ("a.mdx", "c.mdx", "Page not generated"),
            ("a.mdx", "#gone", "Anchor not found"),
        ]

    def test_code_fences_ignored(self):
        pages = [_page("/o/a.mdx", "```c\nx = arr[0](#zz);\n[q](#zz)\n```\n")]
        assert check_links(pages) == []


# -- renderer --


class TestRenderer:
    def test_page_paths(self):
        assert page_rel("dir/x.h", ".mdx") == "dir/x.mdx"
        assert page_rel("x.h", ".mdx", "group", "io") == "x.group.io.mdx"
        assert page_rel("x.h", ".md", "page", "intro") == "x.page.intro.md"

    def test_frontmatter_quoting(self):
        assert frontmatter("api") == "---\ntitle: api\n---"
        assert frontmatter("a: b") == "---\ntitle: 'a: b'\n---"

    def test_empty_header(self):
        out = render_header_page("empty.h", [])
        assert out.startswith("---\ntitle: empty\n---")
        assert "_No declarations found in this header._" in out

    def test_undocumented_marker(self):
        e = Entry(Category.FUNCTION, "f", "m.h", anchor="function-f-0", signature="int f(void);")
        out = render_entry(e, RenderConfig())
        assert '<a id="function-f-0"></a>' in out
        assert "### Function: `f`" in out
        assert "**Undocumented:**" in out
        assert "```c\nint f(void);\n```" in out

    def test_escapes_angle_brackets_in_prose(self):
        e = extract_entries("/** Returns a <b>value</b> or `a<b`. */\nint f(void);\n", "m.h")[0]
        out = render_entry(e)
        assert "&lt;b&gt;value&lt;/b&gt;" in out
        assert "`a<b`" in out

    def test_toc_order(self):
        src = "int f(void);\n#define M 1\nstruct s { int a; };\n"
        entries = extract_entries(src, "m.h")
        for e in entries:
            e.anchor = derive_anchor("m.h", e.name, e.category)
        out = render_header_page("m.h", entries)
        assert out.index("### Macros (Constants)") < out.index("### Structs") < out.index(
            "### Functions"
        )

    def test_source_link(self):
        e = Entry(Category.FUNCTION, "f", "m.h", anchor="a", line=7, from_docblock=True)
        out = render_entry(e, RenderConfig(source_uri="https://src/{filename}#L{line}"))
        assert "[[source](https://src/m.h#L7)]" in out


# -- assets --


class TestAssets:
    def test_snippet_region(self):
        text = "int main(void) {\n    //! [setup]\n    init();\n    //! [setup]\n}\n"
        assert extract_snippet(text, "setup") == "init();"
        assert extract_snippet(text, "missing") is None
        assert extract_snippet(text, "") == text.rstrip("\n")

    def test_asset_name(self):
        name = asset_name("/abs/dir/pic.png")
        assert name.endswith("-pic.png")
        assert len(name.split("-", 1)[0]) == 10

    def test_copy_and_render(self, tmp_path):
        header = """\
            /**
             * @brief Draw.
             * @image html diagram.png Overview diagram
             * @snippet example.c setup
             * @image html nope.png
             */
            void draw(void);
        """
        _write_tree(tmp_path / "include", {"api.h": header})
        (tmp_path / "include" / "diagram.png").write_bytes(b"\x89PNG")
        (tmp_path / "include" / "example.c").write_text(
            "int main(void) {\n    //! [setup]\n    init();\n    //! [setup]\n}\n"
        )
        result = Generator(_config(tmp_path)).run()
        name = asset_name(str(tmp_path / "include" / "diagram.png"))
        assert (tmp_path / "assets" / name).read_bytes() == b"\x89PNG"
        page = (tmp_path / "out" / "api.mdx").read_text()
        assert f"![Overview diagram](../assets/{name})" in page
        assert "init();" in page
        assert any("asset not found: nope.png" in w for w in result.warnings)

        again = Generator(_config(tmp_path)).run()
        assert again.written == []
        assert sorted(os.listdir(tmp_path / "assets")) == sorted(
            [name, asset_name(str(tmp_path / "include" / "example.c"))]
        )


# -- orchestrator --


class TestMapRoots:
    def test_shared_output(self):
        assert map_roots(["a", "b"], ["o"]) == [("a", "o"), ("b", "o")]

    def test_one_to_one(self):
        assert map_roots(["a", "b"], ["x", "y"]) == [("a", "x"), ("b", "y")]

    def test_no_inputs(self):
        with pytest.raises(ConfigurationError):
            map_roots([], ["o"])

    def test_mismatch(self):
        with pytest.raises(ConfigurationError) as exc:
            map_roots(["a", "b", "c"], ["x", "y"])
        assert exc.value.exit_code == 2


class TestGenerator:
    def test_discover_sorted(self, project):
        (project / "include" / "notes.txt").write_text("")
        assert discover_headers(str(project / "include")) == ["api.h", "sub/extra.h"]

    def test_pages_written(self, project):
        result = Generator(_config(project)).run()
        out = project / "out"
        api = (out / "api.mdx").read_text()
        assert api.startswith("---\ntitle: api\n---\n")
        assert "> Auto-generated from `api.h`." in api
        assert "## API" in api
        assert "### Macros (Constants)" in api
        assert "[`api_close`](#function-api-close-" in api
        assert (out / "sub" / "extra.mdx").exists()
        assert "[`sub/extra.h`](sub/extra.mdx): 1 symbol" in (out / "index.mdx").read_text()
        assert (out / ".hdrdoc-anchors.json").exists()
        assert result.broken_links == []

    def test_warnings_carry_location(self, project):
        result = Generator(_config(project)).run()
        assert "sub/extra.h:1: undocumented function `extra_fn` (no doc comment found)" in (
            result.warnings
        )

    def test_rerun_is_idempotent(self, project):
        Generator(_config(project)).run()
        out = project / "out"
        before = {p: p.read_bytes() for p in out.rglob("*") if p.is_file()}
        result = Generator(_config(project)).run()
        after = {p: p.read_bytes() for p in out.rglob("*") if p.is_file()}
        assert result.written == []
        assert before == after

    def test_anchors_survive_reordering(self, project):
        Generator(_config(project)).run()
        anchors = json.loads((project / "out" / ".hdrdoc-anchors.json").read_text())
        text = (project / "include" / "api.h").read_text()
        (project / "include" / "api.h").write_text(text.replace("API_MAX 64", "API_MAX 128"))
        Generator(_config(project)).run()
        assert json.loads((project / "out" / ".hdrdoc-anchors.json").read_text()) == anchors

    def test_fail_on_warn(self, project):
        with pytest.raises(WarningsAsErrors) as exc:
            Generator(_config(project, fail_on_warn=True)).run()
        assert exc.value.exit_code == 4
        assert (project / "out" / "api.mdx").exists()
        assert not (project / "out" / ".hdrdoc-anchors.json").exists()

    def test_broken_link_fails_then_recovers(self, tmp_path):
        bad = "/** See [the guide](missing.mdx#intro). */\nint f(void);\n"
        _write_tree(tmp_path / "include", {"a.h": bad})
        with pytest.raises(BrokenLinksError) as exc:
            Generator(_config(tmp_path)).run()
        assert exc.value.exit_code == 3
        assert [(p.page, p.target, p.reason) for p in exc.value.problems] == [
            ("a.mdx", "missing.mdx#intro", "Page not generated")
        ]
        assert not (tmp_path / "out" / ".hdrdoc-anchors.json").exists()

        (tmp_path / "include" / "a.h").write_text("/** See the guide. */\nint f(void);\n")
        assert Generator(_config(tmp_path)).run().broken_links == []

    def test_groups_and_pages(self, tmp_path):
        src = """\
            /**
             * @defgroup io Input/Output
             * @brief I/O functions.
             */

            /**
             * @brief Read.
             * @ingroup io
             */
            int io_read(void);

            /**
             * @brief Flush.
             * @addtogroup misc Miscellaneous
             */
            void io_flush(void);

            /**
             * @page overview Library Overview
             * This library does things.
             */
        """
        _write_tree(tmp_path / "include", {"api.h": src})
        Generator(_config(tmp_path)).run()
        out = tmp_path / "out"
        group = (out / "api.group.io.mdx").read_text()
        assert group.startswith("---\ntitle: Input/Output\n---")
        assert "I/O functions." in group
        assert "[`io_read`](api.mdx#function-io-read-" in group
        misc = (out / "api.group.misc.mdx").read_text()
        assert "[`io_flush`](api.mdx#function-io-flush-" in misc
        page = (out / "api.page.overview.mdx").read_text()
        assert "title: Library Overview" in page
        assert "This library does things." in page
        index = (out / "index.mdx").read_text()
        assert "[Input/Output](api.group.io.mdx)" in index
        assert "[Library Overview](api.page.overview.mdx)" in index

    def test_unknown_group_warns(self, tmp_path):
        _write_tree(tmp_path / "include", {"a.h": "/** @ingroup nowhere */\nint f(void);\n"})
        result = Generator(_config(tmp_path)).run()
        assert any("unknown group `nowhere`" in w for w in result.warnings)

    def test_missing_input_root(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Generator(_config(tmp_path)).run()


# -- command line --


class TestCli:
    def _args(self, root):
        return ["-q", "-i", str(root / "include"), "-o", str(root / "out"), "-a", str(root / "assets")]

    def test_success(self, project):
        assert main(self._args(project)) == 0
        assert (project / "out" / "api.mdx").exists()

    def test_fail_on_warn_exit(self, project):
        assert main(self._args(project) + ["--fail-on-warn"]) == 4

    def test_bad_mapping_exit(self, project, capsys):
        args = ["-q", "-i", "a", "-i", "b", "-o", "x", "-o", "y", "-o", "z"]
        assert main(args) == 2
        assert "output roots" in capsys.readouterr().err

    def test_broken_links_exit(self, tmp_path, capsys):
        _write_tree(tmp_path / "include", {"a.h": "/** [x](gone.mdx) */\nint f(void);\n"})
        assert main(self._args(tmp_path)) == 3
        assert "[a.mdx] -> (gone.mdx): Page not generated" in capsys.readouterr().err

    def test_yaml_config(self, project):
        (project / "hdrdoc.yml").write_text(
            "inputs: [include]\noutputs: [out]\nassets_dir: assets\npage_extension: .md\n"
        )
        assert main(["-q", "--config", str(project / "hdrdoc.yml")]) == 0
        assert (project / "out" / "api.md").exists()

    def test_flags_override_config(self, project):
        (project / "hdrdoc.yml").write_text("inputs: [include]\noutputs: [elsewhere]\nfail_on_warn: true\n")
        assert main(["-q", "--config", str(project / "hdrdoc.yml")]) == 4
        args = ["-q", "--config", str(project / "hdrdoc.yml"), "-o", str(project / "out2")]
        assert main(args) == 4
        assert (project / "out2" / "api.mdx").exists()

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "bad.yml").write_text("- just\n- a list\n")
        assert main(["-q", "--config", str(tmp_path / "bad.yml")]) == 2


# -- mkdocs plugin --


def _plugin(**overrides):
    plugin = HdrdocPlugin()
    plugin.config = {
        "inputs": ["include"],
        "outputs": [],
        "output_dir": "api",
        "assets_dir": "_assets",
        "defines": [],
        "fail_on_warn": False,
        "extensions": [".h"],
        "page_extension": ".md",
        "anchor_map": ".hdrdoc-anchors.json",
        "index_page": True,
        "source_uri": "",
        **overrides,
    }
    return plugin


class TestPlugin:
    def _mkdocs_config(self, root):
        (root / "docs").mkdir(exist_ok=True)
        return {"docs_dir": str(root / "docs"), "config_file_path": str(root / "mkdocs.yml")}

    def test_generates_into_docs_dir(self, project):
        plugin = _plugin()
        plugin.on_config(self._mkdocs_config(project))
        api = project / "docs" / "api"
        assert (api / "api.md").exists()
        assert (api / "index.md").exists()
        assert plugin.result.headers == 2

    def test_no_inputs_is_noop(self, tmp_path):
        plugin = _plugin(inputs=[])
        cfg = self._mkdocs_config(tmp_path)
        assert plugin.on_config(cfg) is cfg
        assert plugin.result is None

    def test_errors_become_plugin_errors(self, tmp_path):
        _write_tree(tmp_path / "include", {"a.h": "/** [x](gone.md) */\nint f(void);\n"})
        with pytest.raises(PluginError):
            _plugin().on_config(self._mkdocs_config(tmp_path))
