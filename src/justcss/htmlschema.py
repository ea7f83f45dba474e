"""HTML element and attribute schema used when sanitizing selectors.

Element selectors are checked against a tag policy; attribute selectors are
checked against the type of the attribute (`AttrType`), because the type
decides how an attribute's value is rewritten when the document is
virtualized and therefore which match operators can still be translated.

Usage:
    from justcss.htmlschema import ATTRIBUTE_TYPES, default_tag_policy
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AttrType(Enum):
    NONE = "none"
    CLASSES = "classes"
    LOCAL_NAME = "local_name"
    GLOBAL_NAME = "global_name"
    ID = "id"
    IDREF = "idref"
    IDREFS = "idrefs"
    URI = "uri"
    URI_FRAGMENT = "uri_fragment"
    SCRIPT = "script"
    STYLE = "style"
    FRAME_TARGET = "frame_target"


@dataclass(frozen=True, slots=True)
class TagDecision:
    """A tag policy's verdict: the element name to emit in its place."""

    tag_name: str


# Elements guest CSS may select on.
SAFE_ELEMENTS = frozenset(
    {
        "a",
        "abbr",
        "acronym",
        "address",
        "area",
        "article",
        "aside",
        "audio",
        "b",
        "bdi",
        "bdo",
        "big",
        "blockquote",
        "br",
        "button",
        "canvas",
        "caption",
        "center",
        "cite",
        "code",
        "col",
        "colgroup",
        "data",
        "datalist",
        "dd",
        "del",
        "details",
        "dfn",
        "dialog",
        "dir",
        "div",
        "dl",
        "dt",
        "em",
        "fieldset",
        "figcaption",
        "figure",
        "font",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hgroup",
        "hr",
        "i",
        "img",
        "input",
        "ins",
        "kbd",
        "label",
        "legend",
        "li",
        "main",
        "map",
        "mark",
        "menu",
        "meter",
        "nav",
        "nobr",
        "ol",
        "optgroup",
        "option",
        "output",
        "p",
        "picture",
        "pre",
        "progress",
        "q",
        "rp",
        "rt",
        "ruby",
        "s",
        "samp",
        "section",
        "select",
        "small",
        "source",
        "span",
        "strike",
        "strong",
        "sub",
        "summary",
        "sup",
        "table",
        "tbody",
        "td",
        "textarea",
        "tfoot",
        "th",
        "thead",
        "time",
        "tr",
        "track",
        "tt",
        "u",
        "ul",
        "var",
        "video",
        "wbr",
    }
)

# "tag::attr" -> type; "*::attr" applies to every element.
ATTRIBUTE_TYPES: dict[str, AttrType] = {
    "*::class": AttrType.CLASSES,
    "*::dir": AttrType.NONE,
    "*::hidden": AttrType.NONE,
    "*::id": AttrType.ID,
    "*::lang": AttrType.NONE,
    "*::onclick": AttrType.SCRIPT,
    "*::onload": AttrType.SCRIPT,
    "*::style": AttrType.STYLE,
    "*::tabindex": AttrType.NONE,
    "*::title": AttrType.NONE,
    "a::href": AttrType.URI,
    "a::hreflang": AttrType.NONE,
    "a::name": AttrType.GLOBAL_NAME,
    "a::rel": AttrType.NONE,
    "a::target": AttrType.FRAME_TARGET,
    "a::type": AttrType.NONE,
    "area::href": AttrType.URI,
    "area::shape": AttrType.NONE,
    "area::target": AttrType.FRAME_TARGET,
    "button::disabled": AttrType.NONE,
    "button::name": AttrType.LOCAL_NAME,
    "button::type": AttrType.NONE,
    "button::value": AttrType.NONE,
    "col::span": AttrType.NONE,
    "colgroup::span": AttrType.NONE,
    "form::action": AttrType.URI,
    "form::method": AttrType.NONE,
    "form::name": AttrType.GLOBAL_NAME,
    "form::target": AttrType.FRAME_TARGET,
    "img::alt": AttrType.NONE,
    "img::height": AttrType.NONE,
    "img::name": AttrType.GLOBAL_NAME,
    "img::src": AttrType.URI,
    "img::usemap": AttrType.URI_FRAGMENT,
    "img::width": AttrType.NONE,
    "input::checked": AttrType.NONE,
    "input::disabled": AttrType.NONE,
    "input::name": AttrType.LOCAL_NAME,
    "input::placeholder": AttrType.NONE,
    "input::readonly": AttrType.NONE,
    "input::src": AttrType.URI,
    "input::type": AttrType.NONE,
    "input::value": AttrType.NONE,
    "label::for": AttrType.IDREF,
    "map::name": AttrType.GLOBAL_NAME,
    "ol::start": AttrType.NONE,
    "ol::type": AttrType.NONE,
    "option::selected": AttrType.NONE,
    "option::value": AttrType.NONE,
    "select::multiple": AttrType.NONE,
    "select::name": AttrType.LOCAL_NAME,
    "td::colspan": AttrType.NONE,
    "td::headers": AttrType.IDREFS,
    "td::rowspan": AttrType.NONE,
    "textarea::name": AttrType.LOCAL_NAME,
    "th::colspan": AttrType.NONE,
    "th::headers": AttrType.IDREFS,
    "th::rowspan": AttrType.NONE,
    "th::scope": AttrType.NONE,
    "ul::type": AttrType.NONE,
}


def attribute_type(element, attribute, attribute_types=ATTRIBUTE_TYPES):
    """Type of `attribute` on `element` ("" or "*" for any), or None if unknown."""
    if element and element != "*":
        atype = attribute_types.get(f"{element}::{attribute}")
        if atype is not None:
            return atype
    return attribute_types.get(f"*::{attribute}")


def default_tag_policy(tag_name: str) -> TagDecision | None:
    """Allow safe HTML elements under their own name, reject everything else."""
    if tag_name in SAFE_ELEMENTS:
        return TagDecision(tag_name)
    return None
