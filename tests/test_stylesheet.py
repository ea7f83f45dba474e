"""Tests for whole style sheet and style attribute sanitization."""

import unittest

from justcss import (
    CssSanitizerError,
    StylesheetSanitizer,
    UrlRule,
    Virtualization,
    collect_errors,
    make_url_policy,
    sanitize_style_attribute,
    sanitize_stylesheet,
    sanitize_stylesheet_with_externals,
)
from justcss.lexer import lex_css
from justcss.stylesheet import filter_media_query


def allow_all(uri, name):
    return uri


def css(text, virtualization=None, url_policy=None, **kwargs):
    return sanitize_stylesheet(None, text, virtualization or Virtualization(), url_policy, **kwargs)


class TestRulesets(unittest.TestCase):
    def test_hash_color(self):
        assert css("a { color: #ABCDEF }") == "a{color:#abcdef;}"

    def test_multiple_declarations(self):
        assert css("p { color: red; margin: 1px 2px; }") == "p{color:red;margin:1px 2px;}"

    def test_selector_list(self):
        assert css("p, ul li { color: red }") == "p, ul li{color:red;}"

    def test_unsafe_selector_is_dropped(self):
        assert css("script { color: red } p { color: blue }") == "p{color:blue;}"
        assert css("a, script { color: red }") == "a{color:red;}"

    def test_rule_without_surviving_declarations_is_dropped(self):
        assert css("p { bogus: 1; width: auto-ish }") == ""

    def test_important(self):
        assert css("a { color: red !IMPORTANT }") == "a{color:red !important;}"

    def test_scoping(self):
        virtualization = Virtualization(id_suffix="-sfx", container_class="sfx")
        assert css("a#foo { color: red }", virtualization) == ".sfx a#foo-sfx{color:red;}"

    def test_id_suffix_reaches_declarations(self):
        virtualization = Virtualization(id_suffix="-sfx")
        assert css("ol { counter-reset: item }", virtualization) == "ol{counter-reset:item-sfx;}"

    def test_root_as_ancestor_is_dropped(self):
        assert css(":root > :last-child { display: none }") == ""
        assert css(":root > p, a { color: red }") == "a{color:red;}"

    def test_declaration_emits_canonical_property_name(self):
        sanitizer = StylesheetSanitizer(None, Virtualization())
        sanitizer.start_stylesheet()
        sanitizer.start_ruleset(["p"])
        sanitizer.declaration("Word-Brea\u212a", ["normal"])
        sanitizer.end_ruleset()
        sanitizer.end_stylesheet()
        assert sanitizer.result.text == "p{word-break:normal;}"

    def test_font_family(self):
        assert css("p { font-family: Arial Black, serif }") == 'p{font-family:"arial black", serif;}'


class TestUrls(unittest.TestCase):
    def test_accepted_url(self):
        result = css("p { background: url(http://x.example/a.png) }", url_policy=allow_all)
        assert result == 'p{background:url("http://x.example/a.png");}'

    def test_javascript_url_drops_declaration(self):
        result = css("p { background: url('javascript:alert(1)'); color: red }", url_policy=allow_all)
        assert result == "p{color:red;}"

    def test_urls_resolve_against_base(self):
        result = sanitize_stylesheet(
            "https://example.com/css/site.css",
            "p { background-image: url(../img/a.png) }",
            Virtualization(),
            make_url_policy(UrlRule(allowed_schemes={"https"})),
        )
        assert result == 'p{background-image:url("https://example.com/img/a.png");}'

    def test_url_rule_rejects_other_hosts(self):
        policy = make_url_policy(UrlRule(allowed_hosts={"cdn.example"}))
        assert css("p { background: url(http://evil.example/a.png) red }", url_policy=policy) == ""


class TestHistorySensitive(unittest.TestCase):
    def test_visited_group_keeps_only_link_safe_properties(self):
        result = css("a:visited, a:hover { background-color: blue; color: green; }")
        assert result == "a:hover{background-color:blue;color:green;}a:visited{color:green;}"

    def test_only_history_sensitive_selectors(self):
        assert css("a:visited { background-color: blue; color: green }") == "a:visited{color:green;}"

    def test_history_sensitive_group_may_be_empty(self):
        assert css("a:visited { background-color: blue }") == ""


class TestAtRules(unittest.TestCase):
    def test_media_type_not_allowed(self):
        assert css("@media fax { a { color: red } }") == ""

    def test_media_list_is_filtered(self):
        assert css("@media screen, fax { a { color: red } }") == "@media screen{a{color:red;}}"

    def test_media_features(self):
        result = css("@media only screen and (min-width: 100px) { a { color: red } }")
        assert result == "@media only screen and (min-width:100px){a{color:red;}}"

    def test_unknown_media_feature(self):
        assert css("@media screen and (bogus: 1) { a { color: red } }") == ""

    def test_custom_media_types(self):
        assert css("@media screen { a { color: red } }", media_types={"print"}) == ""

    def test_nested_media(self):
        result = css("@media screen { @media print { a { color: red } } }")
        assert result == "@media screen{@media print{a{color:red;}}}"

    def test_unknown_at_rules_are_dropped(self):
        assert css("@font-face { font-family: x } p { color: red }") == "p{color:red;}"
        assert css("@media screen { @page { margin: 0 } a { color: red } }") == "@media screen{a{color:red;}}"
        assert css("@charset 'utf-8'; p { color: red }") == "p{color:red;}"

    def test_import_without_fetcher_is_dropped(self):
        with self.assertLogs("justcss.stylesheet", level="INFO"):
            assert css("@import 'x.css'; p { color: red }") == "p{color:red;}"


class TestFilterMediaQuery(unittest.TestCase):
    def test_types(self):
        assert filter_media_query(lex_css("screen, fax")) == "screen"
        assert filter_media_query(lex_css("SCREEN,print")) == "screen, print"
        assert filter_media_query(lex_css("fax")) == ""

    def test_only_and_not(self):
        assert filter_media_query(lex_css("not print")) == "not print"
        assert filter_media_query(lex_css("only")) == ""

    def test_features(self):
        assert filter_media_query(lex_css("screen and (color)")) == "screen and (color)"
        assert filter_media_query(lex_css("screen and (aspect-ratio: 16/9)")) == "screen and (aspect-ratio:16/9)"
        assert filter_media_query(lex_css("screen and (min-width: url(x))")) == ""
        assert filter_media_query(lex_css("screen and (min-width: 1px")) == ""
        assert filter_media_query(lex_css("screen or (color)")) == ""

    def test_custom_types(self):
        assert filter_media_query(lex_css("screen, print"), {"print"}) == "print"


class TestMalformedInput(unittest.TestCase):
    def test_unterminated_function(self):
        result = css("a { width: calc(100% - ; color: red } b { color: blue }")
        assert result == "a{color:red;}b{color:blue;}"

    def test_unterminated_function_at_end(self):
        assert css("a { width: calc(100% -") == ""

    def test_stray_close_braces(self):
        assert css("p { color: red; } } q { color: blue }") == "p{color:red;}q{color:blue;}"

    def test_output_is_balanced(self):
        for text in (
            "a { color: red",
            "@media screen { a { color: red }",
            "a { b { c } } d { color: red }",
            "@media screen { @media print { a { color: red",
            "}}}{{{ a { color: red } ",
            "a[ { color: red } b { color: blue }",
        ):
            result = css(text)
            assert result.count("{") == result.count("}"), (text, result)

    def test_deeply_nested_media(self):
        with collect_errors() as errors:
            result = css("@media screen{" * 2000 + "a{color:red}" + "}" * 2000 + "b{color:blue}")
        assert result.count("{") == result.count("}")
        assert "color:red" not in result
        assert result.endswith("b{color:blue;}")
        assert "nesting-too-deep" in [e.code for e in errors]

    def test_deeply_nested_calls(self):
        assert css("a{width:" + "calc(" * 3000 + "1px" + ")" * 3000 + "}") == ""

    def test_errors_are_reported(self):
        with collect_errors() as errors:
            css("script { color: red } p { bogus: 1 }")
        codes = {e.code for e in errors}
        assert "untranslatable-selector" in codes
        assert "unknown-property" in codes


class TestIdempotence(unittest.TestCase):
    def test_sanitizing_twice_changes_nothing(self):
        for text in (
            "a { color: #ABCDEF }",
            "a:visited, a:hover { background-color: blue; color: green; }",
            "@media screen, fax { a { color: red } }",
            "@media only screen and (min-width: 100px) { a { color: red } }",
            "p { font-family: Arial Black, serif; margin: -.5em +1px }",
            "p { background: url('http://x.example/a(b).png') red }",
            "div > p + ul ~ li, [title='x' i]::before { color: rgb(1, 2, 3) !important }",
            "p { width: calc(100% - 10px) }",
        ):
            once = css(text, url_policy=allow_all)
            assert css(once, url_policy=allow_all) == once, (text, once)


class TestStyleAttribute(unittest.TestCase):
    def test_declarations(self):
        assert sanitize_style_attribute("color: red; behavior: url(x)") == "color:red;"

    def test_url(self):
        result = sanitize_style_attribute("background: url(http://x.example/a.png)", allow_all)
        assert result == 'background:url("http://x.example/a.png");'

    def test_id_suffix(self):
        assert sanitize_style_attribute("counter-reset: item", id_suffix="-s") == "counter-reset:item-s;"

    def test_important(self):
        assert sanitize_style_attribute("color: red !important") == "color:red !important;"

    def test_property_name_is_canonical(self):
        assert sanitize_style_attribute("word-brea\u212a: normal") == "word-break:normal;"

    def test_policy_must_be_callable(self):
        with self.assertRaises(CssSanitizerError):
            sanitize_style_attribute("color: red", url_policy="yes")


class FakeFetcher:
    def __init__(self, sheets=None):
        self.sheets = sheets
        self.requests = []

    def __call__(self, uri, on_result):
        self.requests.append((uri, on_result))
        if self.sheets is not None:
            on_result(self.sheets.get(uri, ""))


class TestImports(unittest.TestCase):
    def setUp(self):
        self.continued = []

    def continuation(self, text, more_to_come):
        self.continued.append((text, more_to_come))

    def sanitize(self, text, fetcher, **kwargs):
        return sanitize_stylesheet_with_externals(
            "http://example.com/main.css",
            text,
            Virtualization(),
            allow_all,
            fetcher,
            self.continuation,
            **kwargs,
        )

    def test_import_is_spliced_in_when_it_arrives(self):
        fetcher = FakeFetcher()
        result = self.sanitize("@import 'a.css'; p { color: red }", fetcher)
        assert result.more_to_come
        assert result.text == "p{color:red;}"
        assert fetcher.requests[0][0] == "http://example.com/a.css"

        fetcher.requests[0][1]("b { color: blue; behavior: url(x) }")
        assert self.continued == [("b{color:blue;}", False)]
        assert not result.more_to_come
        assert result.text == "b{color:blue;}p{color:red;}"
        assert str(result) == result.text

    def test_result_is_delivered_once(self):
        fetcher = FakeFetcher()
        self.sanitize("@import 'a.css';", fetcher)
        on_result = fetcher.requests[0][1]
        on_result("b { color: blue }")
        on_result("b { color: red }")
        assert self.continued == [("b{color:blue;}", False)]

    def test_import_media_is_kept(self):
        fetcher = FakeFetcher({"http://example.com/a.css": "b { color: blue }"})
        result = self.sanitize("@import url(a.css) screen, fax;", fetcher)
        assert result.text == "@media screen{b{color:blue;}}"

    def test_import_with_no_allowed_media_is_skipped(self):
        fetcher = FakeFetcher({})
        result = self.sanitize("@import 'a.css' fax; p { color: red }", fetcher)
        assert fetcher.requests == []
        assert result.text == "p{color:red;}"

    def test_rejected_import_url(self):
        fetcher = FakeFetcher({})
        self.sanitize("@import 'javascript:alert(1)';", fetcher)
        assert fetcher.requests == []

    def test_import_inside_block_is_dropped(self):
        fetcher = FakeFetcher({})
        self.sanitize("@media screen { @import 'a.css'; }", fetcher)
        assert fetcher.requests == []

    def test_nested_imports(self):
        fetcher = FakeFetcher(
            {
                "http://example.com/a.css": "@import 'sub/b.css'; a { color: red }",
                "http://example.com/sub/b.css": "b { color: blue }",
            }
        )
        result = self.sanitize("@import 'a.css'; p { color: green }", fetcher)
        assert [uri for uri, _ in fetcher.requests] == ["http://example.com/a.css", "http://example.com/sub/b.css"]
        assert self.continued == [("b{color:blue;}a{color:red;}", False)]
        assert result.text == "b{color:blue;}a{color:red;}p{color:green;}"
        assert not result.more_to_come

    def test_nested_import_resolved_later(self):
        fetcher = FakeFetcher()
        result = self.sanitize("@import 'a.css'; p { color: green }", fetcher)
        fetcher.requests[0][1]("@import 'b.css'; a { color: red }")
        assert self.continued == []
        assert result.more_to_come
        assert fetcher.requests[1][0] == "http://example.com/b.css"

        fetcher.requests[1][1]("b { color: blue }")
        assert self.continued == [("b{color:blue;}a{color:red;}", False)]
        assert result.text == "b{color:blue;}a{color:red;}p{color:green;}"
        assert not result.more_to_come

    def test_each_top_level_import_continues_once(self):
        fetcher = FakeFetcher()
        self.sanitize("@import 'a.css'; @import 'b.css';", fetcher)
        fetcher.requests[1][1]("b { color: blue }")
        fetcher.requests[0][1]("a { color: red }")
        assert self.continued == [("b{color:blue;}", True), ("a{color:red;}", False)]

    def test_import_depth_limit(self):
        fetcher = FakeFetcher({"http://example.com/a.css": "@import 'a.css'; a { color: red }"})
        with self.assertLogs("justcss.stylesheet", level="WARNING"):
            result = self.sanitize("@import 'a.css';", fetcher, max_import_depth=2)
        assert len(fetcher.requests) == 2
        assert result.text == "a{color:red;}a{color:red;}"

    def test_no_continuation_drops_imports(self):
        fetcher = FakeFetcher({})
        result = sanitize_stylesheet_with_externals(None, "@import 'a.css'; p { color: red }", Virtualization(), allow_all, fetcher)
        assert fetcher.requests == []
        assert result.text == "p{color:red;}"
        assert not result.more_to_come

    def test_fetcher_must_be_callable(self):
        with self.assertRaises(CssSanitizerError):
            sanitize_stylesheet_with_externals(None, "", Virtualization(), None, "fetch", self.continuation)

    def test_virtualization_required(self):
        with self.assertRaises(CssSanitizerError):
            sanitize_stylesheet(None, "p { color: red }", None)


if __name__ == "__main__":
    unittest.main()
