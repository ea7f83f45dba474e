"""CSS property schema.

A property schema is a capability table: for every CSS property it lists which
kinds of value tokens the property may carry (`PropBit`), which keywords it
accepts (literal groups), and which functions may appear in its value. Each
function is itself described by a schema entry (named `"rgb()"` etc.), so
sanitizing `linear-gradient(...)` recurses into the entry for
`linear-gradient()`.

Schemas are immutable once built. The only derived state, the union of an
entry's literal groups, is computed lazily and memoized on the entry. The
computation is idempotent, so concurrent first use needs no lock.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import IntFlag
from typing import Any

from .errors import CssSanitizerError


class PropBit(IntFlag):
    QUANTITY = 1
    HASH_VALUE = 2
    NEGATIVE_QUANTITY = 4
    QSTRING = 8
    URL = 16
    UNRESERVED_WORD = 64
    GLOBAL_NAME = 512
    PROPERTY_NAME = 1024
    # May vary between :link and :visited without leaking history.
    ALLOWED_IN_LINK = 2048


_VENDOR_PREFIXES = ("-webkit-", "-moz-", "-ms-", "-o-")


def without_vendor_prefix(name: str) -> str:
    for prefix in _VENDOR_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix) :]
    return name


class SchemaEntry:
    """Schema for one property or function."""

    __slots__ = ("_literals", "bits", "functions", "literal_groups", "name")

    def __init__(self, name: str, bits: int, literal_groups: tuple[tuple[str, ...], ...] = ()) -> None:
        self.name = name
        self.bits = PropBit(bits)
        self.literal_groups = tuple(tuple(group) for group in literal_groups)
        # Bare function name ("rgb") -> entry, filled in by PropertySchema.
        self.functions: dict[str, SchemaEntry] = {}
        self._literals: frozenset[str] | None = None

    @property
    def literals(self) -> frozenset[str]:
        literals = self._literals
        if literals is None:
            literals = frozenset(lit for group in self.literal_groups for lit in group)
            self._literals = literals
        return literals

    def allows(self, bit: PropBit) -> bool:
        return bool(self.bits & bit)

    def __repr__(self) -> str:
        return f"SchemaEntry({self.name!r}, {self.bits!r})"


class PropertySchema(Mapping[str, SchemaEntry]):
    """Immutable lookup from lower-case property name to `SchemaEntry`."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, SchemaEntry]) -> None:
        self._entries = dict(entries)

    @classmethod
    def from_table(cls, table: Mapping[str, Mapping[str, Any]]) -> PropertySchema:
        """Build a schema from plain data.

        Each table value may carry `bits`, `literals` (a sequence of keyword
        groups) and `functions` (names of other table keys such as
        `"rgb()"`). Function references are resolved here, so a dangling
        reference is reported immediately.
        """

        entries: dict[str, SchemaEntry] = {}
        for name, definition in table.items():
            key = str(name).lower()
            entries[key] = SchemaEntry(key, int(definition.get("bits", 0)), tuple(definition.get("literals", ())))

        for name, definition in table.items():
            entry = entries[str(name).lower()]
            for fn_name in definition.get("functions", ()):
                fn_key = str(fn_name).lower()
                fn_entry = entries.get(fn_key)
                if fn_entry is None or not fn_key.endswith("()"):
                    raise CssSanitizerError(f"Schema entry {name!r} refers to unknown function {fn_name!r}")
                entry.functions[fn_key[:-2]] = fn_entry
        return cls(entries)

    def __getitem__(self, name: str) -> SchemaEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries


# -------------
# Default table
# -------------

_Q = PropBit.QUANTITY
_H = PropBit.HASH_VALUE
_N = PropBit.NEGATIVE_QUANTITY
_S = PropBit.QSTRING
_U = PropBit.URL
_W = PropBit.UNRESERVED_WORD
_G = PropBit.GLOBAL_NAME
_P = PropBit.PROPERTY_NAME
_L = PropBit.ALLOWED_IN_LINK

_COMMA = (",",)
_SLASH = ("/",)
_AUTO = ("auto",)
_NONE = ("none",)
_NORMAL = ("normal",)
_COLORS = (
    "aqua",
    "black",
    "blue",
    "currentcolor",
    "fuchsia",
    "gray",
    "green",
    "grey",
    "lime",
    "maroon",
    "navy",
    "olive",
    "orange",
    "purple",
    "red",
    "silver",
    "teal",
    "transparent",
    "white",
    "yellow",
)
_BORDER_STYLES = ("dashed", "dotted", "double", "groove", "hidden", "inset", "none", "outset", "ridge", "solid")
_BORDER_WIDTHS = ("medium", "thick", "thin")
_FONT_FAMILIES = ("cursive", "fantasy", "monospace", "sans-serif", "serif", "system-ui")
_FONT_SIZES = ("large", "larger", "medium", "small", "smaller", "x-large", "x-small", "xx-large", "xx-small")
_FONT_STYLES = ("italic", "oblique")
_FONT_WEIGHTS = ("bold", "bolder", "lighter")
_FONT_VARIANTS = ("small-caps",)
_DISPLAYS = (
    "block",
    "contents",
    "flex",
    "flow-root",
    "grid",
    "inline",
    "inline-block",
    "inline-flex",
    "inline-grid",
    "inline-table",
    "list-item",
    "none",
    "table",
    "table-caption",
    "table-cell",
    "table-column",
    "table-column-group",
    "table-footer-group",
    "table-header-group",
    "table-row",
    "table-row-group",
)
# No "fixed": fixed boxes can be drawn over the embedding page.
_POSITIONS = ("absolute", "relative", "static", "sticky")
_SIDES = ("bottom", "center", "left", "right", "top")
_TEXT_ALIGNS = ("center", "end", "justify", "left", "right", "start")
_TEXT_DECORATIONS = ("blink", "line-through", "none", "overline", "underline")
_TEXT_TRANSFORMS = ("capitalize", "lowercase", "none", "uppercase")
_WHITE_SPACES = ("normal", "nowrap", "pre", "pre-line", "pre-wrap")
_VERTICAL_ALIGNS = ("baseline", "bottom", "middle", "sub", "super", "text-bottom", "text-top", "top")
_VISIBILITIES = ("collapse", "hidden", "visible")
_OVERFLOWS = ("auto", "hidden", "scroll", "visible")
_FLOATS = ("left", "none", "right")
_CLEARS = ("both", "left", "none", "right")
_CURSORS = (
    "auto",
    "crosshair",
    "default",
    "e-resize",
    "help",
    "move",
    "n-resize",
    "ne-resize",
    "not-allowed",
    "nw-resize",
    "pointer",
    "progress",
    "s-resize",
    "se-resize",
    "sw-resize",
    "text",
    "w-resize",
    "wait",
)
_LIST_STYLE_TYPES = (
    "circle",
    "decimal",
    "decimal-leading-zero",
    "disc",
    "lower-alpha",
    "lower-greek",
    "lower-latin",
    "lower-roman",
    "none",
    "square",
    "upper-alpha",
    "upper-latin",
    "upper-roman",
)
_LIST_STYLE_POSITIONS = ("inside", "outside")
_BG_REPEATS = ("no-repeat", "repeat", "repeat-x", "repeat-y", "round", "space")
_BG_ATTACHMENTS = ("local", "scroll")
_BG_SIZES = ("auto", "contain", "cover")
_BORDER_COLLAPSES = ("collapse", "separate")
_TABLE_LAYOUTS = ("auto", "fixed")
_WORD_BREAKS = ("break-all", "break-word", "keep-all", "normal")
_OVERFLOW_WRAPS = ("anywhere", "break-word", "normal")
_BOX_SIZINGS = ("border-box", "content-box")
_TIMING_FUNCTIONS = ("ease", "ease-in", "ease-in-out", "ease-out", "linear", "step-end", "step-start")
_FLEX_DIRECTIONS = ("column", "column-reverse", "row", "row-reverse")
_FLEX_WRAPS = ("nowrap", "wrap", "wrap-reverse")
_ALIGNMENTS = (
    "baseline",
    "center",
    "end",
    "flex-end",
    "flex-start",
    "space-around",
    "space-between",
    "space-evenly",
    "start",
    "stretch",
)
_GRADIENT_DIRECTIONS = ("bottom", "left", "right", "to", "top")
_RADIAL_SHAPES = (
    "at",
    "circle",
    "closest-corner",
    "closest-side",
    "ellipse",
    "farthest-corner",
    "farthest-side",
)
_CALC_OPERATORS = ("*", "+", "-", "/")
_COLOR_FUNCTIONS = ("rgb()", "rgba()", "hsl()", "hsla()")
_IMAGE_FUNCTIONS = ("linear-gradient()", "radial-gradient()", "repeating-linear-gradient()")


def _length(*extra: tuple[str, ...], negative: bool = False) -> dict[str, Any]:
    bits = _Q | _N if negative else _Q
    return {"bits": bits, "literals": extra, "functions": ("calc()",)}


def _color(*, in_link: bool = False) -> dict[str, Any]:
    bits = _H | _L if in_link else _H
    return {"bits": bits, "literals": (_COLORS,), "functions": _COLOR_FUNCTIONS}


def _border() -> dict[str, Any]:
    return {
        "bits": _H | _Q,
        "literals": (_BORDER_STYLES, _BORDER_WIDTHS, _COLORS),
        "functions": _COLOR_FUNCTIONS,
    }


DEFAULT_SCHEMA_TABLE: dict[str, dict[str, Any]] = {
    # Functions.
    "rgb()": {"bits": _Q, "literals": (_COMMA, _SLASH)},
    "rgba()": {"bits": _Q, "literals": (_COMMA, _SLASH)},
    "hsl()": {"bits": _Q, "literals": (_COMMA, _SLASH)},
    "hsla()": {"bits": _Q, "literals": (_COMMA, _SLASH)},
    "calc()": {"bits": _Q | _N, "literals": (_CALC_OPERATORS,), "functions": ("calc()",)},
    "linear-gradient()": {
        "bits": _H | _Q | _N,
        "literals": (_COMMA, _GRADIENT_DIRECTIONS, _COLORS),
        "functions": _COLOR_FUNCTIONS + ("calc()",),
    },
    "repeating-linear-gradient()": {
        "bits": _H | _Q | _N,
        "literals": (_COMMA, _GRADIENT_DIRECTIONS, _COLORS),
        "functions": _COLOR_FUNCTIONS + ("calc()",),
    },
    "radial-gradient()": {
        "bits": _H | _Q,
        "literals": (_COMMA, _RADIAL_SHAPES, _SIDES, _COLORS),
        "functions": _COLOR_FUNCTIONS + ("calc()",),
    },
    # Colors and backgrounds.
    "color": _color(in_link=True),
    "background-color": _color(),
    "border-color": _color(),
    "border-top-color": _color(),
    "border-right-color": _color(),
    "border-bottom-color": _color(),
    "border-left-color": _color(),
    "outline-color": _color(),
    "background": {
        "bits": _H | _Q | _N | _U,
        "literals": (_COLORS, _BG_REPEATS, _BG_ATTACHMENTS, _SIDES, _NONE, _COMMA, _SLASH, _BG_SIZES),
        "functions": _COLOR_FUNCTIONS + _IMAGE_FUNCTIONS,
    },
    "background-image": {"bits": _U, "literals": (_NONE, _COMMA), "functions": _IMAGE_FUNCTIONS},
    "background-repeat": {"bits": 0, "literals": (_BG_REPEATS, _COMMA)},
    "background-attachment": {"bits": 0, "literals": (_BG_ATTACHMENTS, _COMMA)},
    "background-position": {"bits": _Q | _N, "literals": (_SIDES, _COMMA), "functions": ("calc()",)},
    "background-size": {"bits": _Q, "literals": (_BG_SIZES, _COMMA), "functions": ("calc()",)},
    "opacity": {"bits": _Q},
    # Box model.
    "width": _length(_AUTO),
    "height": _length(_AUTO),
    "min-width": _length(_AUTO),
    "min-height": _length(_AUTO),
    "max-width": _length(_NONE),
    "max-height": _length(_NONE),
    "margin": _length(_AUTO, negative=True),
    "margin-top": _length(_AUTO, negative=True),
    "margin-right": _length(_AUTO, negative=True),
    "margin-bottom": _length(_AUTO, negative=True),
    "margin-left": _length(_AUTO, negative=True),
    "padding": _length(),
    "padding-top": _length(),
    "padding-right": _length(),
    "padding-bottom": _length(),
    "padding-left": _length(),
    "box-sizing": {"bits": 0, "literals": (_BOX_SIZINGS,)},
    # Borders.
    "border": _border(),
    "border-top": _border(),
    "border-right": _border(),
    "border-bottom": _border(),
    "border-left": _border(),
    "outline": _border(),
    "border-style": {"bits": 0, "literals": (_BORDER_STYLES,)},
    "border-width": _length(_BORDER_WIDTHS),
    "border-radius": {"bits": _Q, "literals": (_SLASH,), "functions": ("calc()",)},
    "border-collapse": {"bits": 0, "literals": (_BORDER_COLLAPSES,)},
    "border-spacing": _length(),
    # Layout.
    "display": {"bits": 0, "literals": (_DISPLAYS,)},
    "position": {"bits": 0, "literals": (_POSITIONS,)},
    "top": _length(_AUTO, negative=True),
    "right": _length(_AUTO, negative=True),
    "bottom": _length(_AUTO, negative=True),
    "left": _length(_AUTO, negative=True),
    "z-index": {"bits": _Q | _N, "literals": (_AUTO,)},
    "float": {"bits": 0, "literals": (_FLOATS,)},
    "clear": {"bits": 0, "literals": (_CLEARS,)},
    "visibility": {"bits": 0, "literals": (_VISIBILITIES,)},
    "overflow": {"bits": 0, "literals": (_OVERFLOWS,)},
    "overflow-x": {"bits": 0, "literals": (_OVERFLOWS,)},
    "overflow-y": {"bits": 0, "literals": (_OVERFLOWS,)},
    "vertical-align": _length(_VERTICAL_ALIGNS, negative=True),
    "flex-direction": {"bits": 0, "literals": (_FLEX_DIRECTIONS,)},
    "flex-wrap": {"bits": 0, "literals": (_FLEX_WRAPS,)},
    "flex": {"bits": _Q, "literals": (_AUTO, _NONE)},
    "flex-grow": {"bits": _Q},
    "flex-shrink": {"bits": _Q},
    "flex-basis": _length(_AUTO),
    "justify-content": {"bits": 0, "literals": (_ALIGNMENTS,)},
    "align-items": {"bits": 0, "literals": (_ALIGNMENTS,)},
    "align-self": {"bits": 0, "literals": (_ALIGNMENTS, _AUTO)},
    "gap": _length(_NORMAL),
    # Text and fonts.
    "font": {
        "bits": _Q | _S | _W,
        "literals": (_FONT_FAMILIES, _FONT_SIZES, _FONT_STYLES, _FONT_WEIGHTS, _FONT_VARIANTS, _NORMAL, _COMMA, _SLASH),
    },
    "font-family": {"bits": _S | _W, "literals": (_FONT_FAMILIES, _COMMA)},
    "font-size": _length(_FONT_SIZES),
    "font-style": {"bits": 0, "literals": (_FONT_STYLES, _NORMAL)},
    "font-weight": {"bits": _Q, "literals": (_FONT_WEIGHTS, _NORMAL)},
    "font-variant": {"bits": 0, "literals": (_FONT_VARIANTS, _NORMAL)},
    "line-height": _length(_NORMAL),
    "letter-spacing": _length(_NORMAL, negative=True),
    "word-spacing": _length(_NORMAL, negative=True),
    "text-align": {"bits": 0, "literals": (_TEXT_ALIGNS,)},
    "text-decoration": {"bits": _H, "literals": (_TEXT_DECORATIONS, _COLORS), "functions": _COLOR_FUNCTIONS},
    "text-indent": _length(negative=True),
    "text-transform": {"bits": 0, "literals": (_TEXT_TRANSFORMS,)},
    "white-space": {"bits": 0, "literals": (_WHITE_SPACES,)},
    "word-break": {"bits": 0, "literals": (_WORD_BREAKS,)},
    "word-wrap": {"bits": 0, "literals": (_OVERFLOW_WRAPS,)},
    "overflow-wrap": {"bits": 0, "literals": (_OVERFLOW_WRAPS,)},
    "cursor": {"bits": _L, "literals": (_CURSORS,)},
    # Lists and tables.
    "list-style": {"bits": _U, "literals": (_LIST_STYLE_TYPES, _LIST_STYLE_POSITIONS)},
    "list-style-type": {"bits": 0, "literals": (_LIST_STYLE_TYPES,)},
    "list-style-position": {"bits": 0, "literals": (_LIST_STYLE_POSITIONS,)},
    "list-style-image": {"bits": _U, "literals": (_NONE,)},
    "table-layout": {"bits": 0, "literals": (_TABLE_LAYOUTS,)},
    "caption-side": {"bits": 0, "literals": (("bottom", "top"),)},
    "empty-cells": {"bits": 0, "literals": (("hide", "show"),)},
    # Counters and transitions.
    "counter-reset": {"bits": _G | _Q | _N, "literals": (_NONE,)},
    "counter-increment": {"bits": _G | _Q | _N, "literals": (_NONE,)},
    "transition-property": {"bits": _P, "literals": (("all",), _NONE, _COMMA)},
    "transition-duration": {"bits": _Q, "literals": (_COMMA,)},
    "transition-timing-function": {"bits": 0, "literals": (_TIMING_FUNCTIONS, _COMMA)},
    "transition": {"bits": _P | _Q, "literals": (("all",), _NONE, _TIMING_FUNCTIONS, _COMMA)},
}

DEFAULT_SCHEMA = PropertySchema.from_table(DEFAULT_SCHEMA_TABLE)
