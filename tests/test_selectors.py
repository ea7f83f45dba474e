"""Tests for selector sanitization and virtualization."""

import unittest

from justcss import CssSanitizerError, TagDecision, Virtualization, collect_errors, lex_css, sanitize_selectors
from justcss.htmlschema import AttrType, attribute_type, default_tag_policy


def allow_any_tag(name):
    return TagDecision(name)


def sel(css, virtualization=None, **kwargs):
    result = sanitize_selectors(lex_css(css), virtualization or Virtualization(), **kwargs)
    if result is None:
        return None
    return tuple(result)


class TestElements(unittest.TestCase):
    def test_safe_element(self):
        assert sel("p") == (["p"], [])
        assert sel("P") == (["p"], [])

    def test_unsafe_elements_are_dropped(self):
        assert sel("script") == ([], [])
        assert sel("iframe p") == ([], [])
        assert sel("body") == ([], [])

    def test_universal(self):
        assert sel("*") == (["*"], [])

    def test_tag_policy_renames(self):
        virtualization = Virtualization(tag_policy=lambda name: TagDecision("x-" + name))
        assert sel("p span", virtualization) == (["x-p x-span"], [])

    def test_html_as_ancestor_is_rejected(self):
        virtualization = Virtualization(tag_policy=allow_any_tag)
        assert sel("html body", virtualization) == ([], [])
        assert sel("html > p", virtualization) == ([], [])
        assert sel("html", virtualization) == (["html"], [])

    def test_root_pseudo_class_as_ancestor_is_rejected(self):
        assert sel(":root > :last-child") == ([], [])
        assert sel(":root p") == ([], [])
        assert sel(":scope div") == ([], [])
        assert sel("*:root > p") == ([], [])
        assert sel(":root") == ([":root"], [])

    def test_root_pseudo_class_under_container(self):
        virtualization = Virtualization(container_class="sfx")
        assert sel(":root > p", virtualization) == ([".sfx :root > p"], [])


class TestCombinators(unittest.TestCase):
    def test_descendant(self):
        assert sel("div  p") == (["div p"], [])

    def test_child_and_siblings(self):
        assert sel("div>p") == (["div > p"], [])
        assert sel("div+p") == (["div + p"], [])
        assert sel("div ~ p") == (["div ~ p"], [])

    def test_dangling_combinator_fails(self):
        assert sel("> p") == ([], [])
        assert sel("p >") == ([], [])
        assert sel("p > > a") == ([], [])

    def test_comma_separated(self):
        assert sel("p , ul li") == (["p", "ul li"], [])

    def test_bad_selector_does_not_affect_others(self):
        assert sel("script, p") == (["p"], [])


class TestIdsAndClasses(unittest.TestCase):
    def test_scoping(self):
        virtualization = Virtualization(id_suffix="-sfx", container_class="sfx")
        assert sel("a#foo", virtualization) == ([".sfx a#foo-sfx"], [])

    def test_container_class_only(self):
        assert sel("p", Virtualization(container_class="sfx")) == ([".sfx p"], [])

    def test_classes(self):
        assert sel(".foo.bar") == ([".foo.bar"], [])
        assert sel("p.Foo") == (["p.Foo"], [])

    def test_reserved_names_fail(self):
        assert sel("._foo") == ([], [])
        assert sel(".foo__") == ([], [])
        assert sel("#_x") == ([], [])
        assert sel("#x__") == ([], [])

    def test_numeric_id_fails(self):
        assert sel("#123") == ([], [])

    def test_dot_without_name_fails(self):
        assert sel("p.") == ([], [])


class TestAttributes(unittest.TestCase):
    def test_existence(self):
        assert sel("a[href]") == (["a[href]"], [])
        assert sel("[onclick]") == (["[onclick]"], [])

    def test_uri_attribute_allows_existence_only(self):
        assert sel('a[href^="javascript"]') == ([], [])
        assert sel("a[href=x]") == ([], [])

    def test_plain_attribute_any_operator(self):
        assert sel('[title="x" i]') == (['[title="x" i]'], [])
        assert sel("[lang|=en]") == (['[lang|="en"]'], [])
        assert sel("[title*=x]") == (['[title*="x"]'], [])

    def test_value_is_escaped(self):
        assert sel("[title='<x>']") == (['[title="\\3c x\\3e "]'], [])

    def test_id_attribute_gets_suffix(self):
        virtualization = Virtualization(id_suffix="-sfx")
        assert sel("[id=foo]", virtualization) == (['[id="foo-sfx"]'], [])
        assert sel("[id^=foo]", virtualization) == (['[id^="foo"]'], [])
        assert sel("[id$=foo]", virtualization) == (['[id$="foo-sfx"]'], [])

    def test_id_attribute_substring_fails(self):
        assert sel("[id*=foo]", Virtualization(id_suffix="-sfx")) == ([], [])

    def test_case_insensitive_suffixed_value_fails(self):
        assert sel("[id=foo i]", Virtualization(id_suffix="-sfx")) == ([], [])
        assert sel("[id=foo i]") == (['[id="foo" i]'], [])

    def test_idrefs(self):
        virtualization = Virtualization(id_suffix="-sfx")
        assert sel("td[headers~=a]", virtualization) == (['td[headers~="a-sfx"]'], [])
        assert sel("td[headers=a]", virtualization) == ([], [])

    def test_element_specific_attribute(self):
        assert sel("label[for=x]") == (['label[for="x"]'], [])
        assert sel("p[for=x]") == ([], [])

    def test_unknown_attribute_fails(self):
        assert sel("[bogus]") == ([], [])
        assert sel("[data-x]") == ([], [])

    def test_unclosed_attribute_fails(self):
        assert sel("a[href") == ([], [])

    def test_bad_flag_fails(self):
        assert sel("[title=x s]") == ([], [])


class TestPseudoClasses(unittest.TestCase):
    def test_allowed(self):
        assert sel("a:hover") == (["a:hover"], [])
        assert sel("li:FIRST-CHILD") == (["li:first-child"], [])

    def test_pseudo_elements(self):
        assert sel("p::before") == (["p::before"], [])
        assert sel("p::hover") == ([], [])

    def test_unknown_pseudo_fails(self):
        assert sel("a:bogus") == ([], [])
        assert sel("a:not(.x)") == ([], [])

    def test_pseudo_must_be_last(self):
        assert sel("a:hover:focus") == ([], [])
        assert sel("a:hover.x") == ([], [])
        assert sel("a:hover b") == (["a:hover b"], [])

    def test_history_sensitive(self):
        assert sel("a:visited, a:hover") == (["a:hover"], ["a:visited"])

    def test_history_sensitive_forces_anchor(self):
        assert sel(":visited") == ([], ["a:visited"])
        assert sel("*:link") == ([], ["a:link"])
        assert sel("p:visited") == ([], [])

    def test_history_sensitive_descendant(self):
        assert sel("a:visited span") == ([], ["a:visited span"])

    def test_history_sensitive_uses_tag_policy(self):
        virtualization = Virtualization(tag_policy=lambda name: TagDecision("x-" + name))
        assert sel(":visited", virtualization) == ([], ["x-a:visited"])

        def no_anchors(name):
            return None if name == "a" else TagDecision(name)

        assert sel(":link", Virtualization(tag_policy=no_anchors)) == ([], [])


class TestUntranslatable(unittest.TestCase):
    def test_callback_receives_tokens(self):
        seen = []

        def callback(tokens):
            seen.append(tokens)
            return True

        assert sel("script, p", on_untranslatable=callback) == (["p"], [])
        assert seen == [["script"]]

    def test_falsy_callback_aborts(self):
        assert sel("script, p", on_untranslatable=lambda tokens: False) is None

    def test_reported(self):
        with collect_errors() as errors:
            sel("script")
        assert "untranslatable-selector" in [e.code for e in errors]


class TestIdempotence(unittest.TestCase):
    def test_output_sanitizes_to_itself(self):
        for css in ("div > p", "a:visited", "[title=\"x\" i]", "ul li.x", "p::after", "a[href]", "*"):
            first = sel(css)
            texts = first[0] + first[1]
            for text in texts:
                again = sel(text)
                assert again[0] + again[1] == [text]


class TestHtmlSchema(unittest.TestCase):
    def test_attribute_type(self):
        assert attribute_type("a", "href") is AttrType.URI
        assert attribute_type("p", "id") is AttrType.ID
        assert attribute_type("", "title") is AttrType.NONE
        assert attribute_type("*", "class") is AttrType.CLASSES
        assert attribute_type("p", "href") is None

    def test_custom_attribute_types(self):
        types = {"*::data-x": AttrType.NONE}
        assert attribute_type("p", "data-x", types) is AttrType.NONE
        assert sel("[data-x=y]", attribute_types=types) == (['[data-x="y"]'], [])

    def test_default_tag_policy(self):
        assert default_tag_policy("p") == TagDecision("p")
        for name in ("script", "style", "iframe", "object", "html", "body", "base", "link", "meta"):
            assert default_tag_policy(name) is None


class TestVirtualization(unittest.TestCase):
    def test_invalid_id_suffix(self):
        with self.assertRaises(CssSanitizerError):
            Virtualization(id_suffix="a b")

    def test_invalid_container_class(self):
        with self.assertRaises(CssSanitizerError):
            Virtualization(container_class="1x")
        with self.assertRaises(CssSanitizerError):
            Virtualization(container_class="a{")

    def test_tag_policy_must_be_callable(self):
        with self.assertRaises(CssSanitizerError):
            Virtualization(tag_policy="a")

    def test_virtualization_required(self):
        with self.assertRaises(CssSanitizerError):
            sanitize_selectors(["p"], None)

    def test_is_frozen(self):
        virtualization = Virtualization()
        with self.assertRaises(AttributeError):
            virtualization.id_suffix = "x"


if __name__ == "__main__":
    unittest.main()
