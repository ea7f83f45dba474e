"""Selector sanitization and virtualization.

A selector list is split into complex selectors (on top-level commas) and each
complex selector into compound selectors (on combinators). Every compound is
rebuilt from the pieces it is allowed to contain:

    element   via the tag policy, or *
    #id       id suffix appended
    .class
    [attr]    operators restricted by the attribute's type
    :pseudo   at most one, from PSEUDO_CLASSES, and it must come last

A complex selector with any piece that cannot be rebuilt is dropped as a
whole. Selectors that use :link or :visited are returned separately because
the declarations they may carry are restricted (see `justcss.history`).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

from .errors import CssSanitizerError, emit_error
from .htmlschema import ATTRIBUTE_TYPES, AttrType, TagDecision, attribute_type, default_tag_policy
from .lexer import decode_css, escape_css_string

TagPolicy = Callable[[str], TagDecision | None]

PSEUDO_CLASSES = frozenset(
    {
        "active",
        "after",
        "before",
        "blank",
        "checked",
        "default",
        "disabled",
        "drop",
        "empty",
        "enabled",
        "first",
        "first-child",
        "first-letter",
        "first-line",
        "first-of-type",
        "fullscreen",
        "focus",
        "hover",
        "in-range",
        "indeterminate",
        "invalid",
        "last-child",
        "last-of-type",
        "left",
        "only-child",
        "only-of-type",
        "optional",
        "out-of-range",
        "placeholder-shown",
        "read-only",
        "read-write",
        "required",
        "right",
        "root",
        "scope",
        "user-error",
        "valid",
    }
)

# Pseudo-classes that depend on browsing history.
HISTORY_PSEUDO_CLASSES = frozenset({"link", "visited"})

PSEUDO_ELEMENTS = frozenset({"after", "before", "first-letter", "first-line"})

_COMBINATORS = {" ": " ", ">": " > ", "+": " + ", "~": " ~ "}
_MATCH_OPERATORS = frozenset({"=", "~=", "|=", "^=", "$=", "*="})

_IDENT = re.compile(r"^-?[a-zA-Z_][a-zA-Z0-9_\-]*$")
_SUFFIX = re.compile(r"^[\w\-]*$")
_QUOTED = re.compile(r'^"((?:[^"\\\n\r\f]|\\[\s\S])*)"$')

# Operators each attribute type can still be matched with once the document
# has been virtualized, and whether the id suffix has to be added to the value.
_EXISTENCE_ONLY: dict[str, bool] = {}
_SUFFIXED_OPERATORS = {"=": True, "^=": False, "$=": True}
_SUFFIXED_LIST_OPERATORS = {"~=": True}


@dataclass(frozen=True, slots=True)
class Virtualization:
    """How selectors are confined to a sandboxed subtree.

    `container_class` prefixes every selector with `.container_class `;
    `id_suffix` is appended to ids and id-typed attribute values; `tag_policy`
    maps element names to the names emitted in their place, or rejects them.
    """

    id_suffix: str = ""
    tag_policy: TagPolicy = default_tag_policy
    container_class: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id_suffix, str) or not _SUFFIX.match(self.id_suffix):
            raise CssSanitizerError(f"Invalid id suffix: {self.id_suffix!r}")
        if self.container_class is not None and (
            not isinstance(self.container_class, str) or not _IDENT.match(self.container_class)
        ):
            raise CssSanitizerError(f"Invalid container class: {self.container_class!r}")
        if not callable(self.tag_policy):
            raise CssSanitizerError("tag_policy must be callable")


class SelectorResult(NamedTuple):
    history_insensitive: list[str]
    history_sensitive: list[str]


def _valid_name(name):
    return bool(_IDENT.match(name)) and not name.startswith("_") and not name.endswith("__")


def _normalize_whitespace(tokens):
    """Drop spaces that are not descendant combinators."""
    out = []
    depth = 0
    for tok in tokens:
        if tok == " ":
            if depth or not out or out[-1] in _COMBINATORS or out[-1] == ",":
                continue
            out.append(tok)
            continue
        if tok in ("[", "(") or tok.endswith("("):
            depth += 1
        elif tok in ("]", ")") and depth:
            depth -= 1
        if not depth and (tok in _COMBINATORS or tok == ",") and out and out[-1] == " ":
            out.pop()
        out.append(tok)
    if out and out[-1] == " ":
        out.pop()
    return out


def _split_top_level(tokens, separators):
    """Split `tokens` on separators found outside brackets.

    Yields (part, separator) pairs; the last separator is None.
    """
    depth = 0
    start = 0
    for i, tok in enumerate(tokens):
        if tok in ("[", "(") or tok.endswith("("):
            depth += 1
        elif tok in ("]", ")") and depth:
            depth -= 1
        elif not depth and tok in separators:
            yield tokens[start:i], tok
            start = i + 1
    yield tokens[start:], None


class _Compound:
    """Rebuilds one compound selector."""

    __slots__ = ("attribute_types", "history_sensitive", "virtualization")

    def __init__(self, virtualization, attribute_types):
        self.virtualization = virtualization
        self.attribute_types = attribute_types
        self.history_sensitive = False

    def sanitize(self, parts, last):
        n = len(parts)
        if not n:
            return None
        i = 0
        element = ""
        source_element = ""
        tok = parts[0].lower()
        if tok == "*":
            element = source_element = "*"
            i = 1
        elif _IDENT.match(tok):
            if tok == "html" and not last:
                emit_error("root-selector", message="Dropped selector with html as an ancestor")
                return None
            decision = self.virtualization.tag_policy(tok)
            if decision is None:
                emit_error("disallowed-element", message=f"Dropped selector on <{tok}>")
                return None
            element = decision.tag_name
            source_element = tok
            i = 1

        out = []
        while i < n:
            tok = parts[i]
            if tok.startswith("#"):
                name = tok[1:]
                if not _valid_name(name):
                    emit_error("malformed-selector", message=f"Dropped selector with id {tok!r}")
                    return None
                out.append("#" + name + self.virtualization.id_suffix)
                i += 1
            elif tok == ".":
                name = parts[i + 1] if i + 1 < n else ""
                if not _valid_name(name):
                    emit_error("malformed-selector", message=f"Dropped selector with class {name!r}")
                    return None
                out.append("." + name)
                i += 2
            elif tok == "[":
                i, text = self._attribute(parts, i + 1, source_element)
                if text is None:
                    return None
                out.append(text)
            elif tok == ":":
                text = self._pseudo(parts, i + 1, source_element)
                if text is None:
                    return None
                pseudo, i = text
                if pseudo in (":root", ":scope") and not last and self.virtualization.container_class is None:
                    emit_error("root-selector", message=f"Dropped selector with {pseudo} as an ancestor")
                    return None
                if i != n:
                    emit_error("malformed-selector", message="Dropped selector with a non-trailing pseudo-class")
                    return None
                if pseudo in (":link", ":visited"):
                    decision = self.virtualization.tag_policy("a")
                    if decision is None:
                        return None
                    element = decision.tag_name
                out.append(pseudo)
            else:
                emit_error("malformed-selector", message=f"Dropped selector containing {tok!r}")
                return None

        if not element and not out:
            return None
        return element + "".join(out)

    def _pseudo(self, parts, i, source_element):
        """Returns (text, next_index) or None."""
        n = len(parts)
        prefix = ":"
        if i < n and parts[i] == ":":
            prefix = "::"
            i += 1
        name = parts[i].lower() if i < n else ""
        if prefix == "::":
            allowed = name in PSEUDO_ELEMENTS
        else:
            allowed = name in PSEUDO_CLASSES or name in HISTORY_PSEUDO_CLASSES
        if not allowed:
            emit_error("disallowed-pseudo-class", message=f"Dropped selector with {prefix}{name}")
            return None
        if name in HISTORY_PSEUDO_CLASSES:
            if source_element not in ("", "*", "a"):
                emit_error("disallowed-pseudo-class", message=f"Dropped :{name} on <{source_element}>")
                return None
            self.history_sensitive = True
        return prefix + name, i + 1

    def _attribute(self, parts, i, source_element):
        """Parse `name [op value [i]] ]` starting after `[`.

        Returns (next_index, text); text is None when the selector must go.
        """
        n = len(parts)
        end = i
        while end < n and parts[end] != "]":
            end += 1
        if end >= n:
            emit_error("malformed-selector", message="Dropped selector with unclosed [")
            return end, None
        body = parts[i:end]
        next_index = end + 1
        if not body or not _IDENT.match(body[0]):
            emit_error("malformed-selector", message="Dropped malformed attribute selector")
            return next_index, None
        name = body[0].lower()
        atype = attribute_type(source_element, name, self.attribute_types)
        if atype is None:
            emit_error("disallowed-attribute", message=f"Dropped selector on attribute {name!r}")
            return next_index, None
        if len(body) == 1:
            return next_index, f"[{name}]"

        op = body[1]
        if op not in _MATCH_OPERATORS or len(body) not in (3, 4):
            emit_error("malformed-selector", message=f"Dropped malformed [{name}] selector")
            return next_index, None
        raw_value = body[2]
        m = _QUOTED.match(raw_value)
        if m is not None:
            value = decode_css(m.group(1))
        elif _IDENT.match(raw_value):
            value = raw_value
        else:
            emit_error("malformed-selector", message=f"Dropped [{name}] selector with value {raw_value!r}")
            return next_index, None
        case_flag = False
        if len(body) == 4:
            if body[3].lower() != "i":
                emit_error("malformed-selector", message=f"Dropped [{name}] selector with flag {body[3]!r}")
                return next_index, None
            case_flag = True

        value = self._attribute_value(atype, op, value, case_flag)
        if value is None:
            emit_error("untranslatable-attribute", message=f"Dropped [{name}{op}...] on a {atype.value} attribute")
            return next_index, None
        flag = " i" if case_flag else ""
        return next_index, f'[{name}{op}"{escape_css_string(value)}"{flag}]'

    def _attribute_value(self, atype, op, value, case_flag):
        """The value to match once the document is virtualized, or None."""
        suffix = self.virtualization.id_suffix
        if atype in (AttrType.NONE, AttrType.CLASSES, AttrType.LOCAL_NAME):
            return value
        if atype in (AttrType.ID, AttrType.IDREF, AttrType.GLOBAL_NAME):
            rules = _SUFFIXED_OPERATORS
        elif atype is AttrType.IDREFS:
            rules = _SUFFIXED_LIST_OPERATORS
        else:
            rules = _EXISTENCE_ONLY
        if op not in rules or not value:
            return None
        # Suffixed values are matched case-sensitively.
        if case_flag and suffix:
            return None
        return value + suffix if rules[op] else value


def _sanitize_complex(tokens, virtualization, attribute_types):
    """Returns (text, history_sensitive), or None if the selector must go."""
    compounds = list(_split_top_level(tokens, _COMBINATORS))
    compound = _Compound(virtualization, attribute_types)
    out = []
    last_index = len(compounds) - 1
    for index, (parts, combinator) in enumerate(compounds):
        text = compound.sanitize(parts, index == last_index)
        if text is None:
            return None
        out.append(text)
        if combinator is not None:
            out.append(_COMBINATORS[combinator])
    text = "".join(out)
    if virtualization.container_class is not None:
        text = "." + virtualization.container_class + " " + text
    return text, compound.history_sensitive


def sanitize_selectors(tokens, virtualization, on_untranslatable=None, *, attribute_types=ATTRIBUTE_TYPES):
    """Sanitize a selector list given as lexer tokens.

    Returns a `SelectorResult` holding the history-insensitive and the
    history-sensitive selectors. Selectors that cannot be made safe are
    dropped; when `on_untranslatable` is given it is called with the tokens
    of each such selector, and a falsy return aborts the whole list (None is
    returned).
    """
    if not isinstance(virtualization, Virtualization):
        raise CssSanitizerError("virtualization must be a Virtualization instance")
    insensitive = []
    sensitive = []
    for selector, _ in _split_top_level(_normalize_whitespace(tokens), {","}):
        result = _sanitize_complex(selector, virtualization, attribute_types) if selector else None
        if result is None:
            emit_error("untranslatable-selector", message="Dropped selector " + repr("".join(selector)))
            if on_untranslatable is not None and not on_untranslatable(selector):
                return None
            continue
        text, history_sensitive = result
        (sensitive if history_sensitive else insensitive).append(text)
    return SelectorResult(insensitive, sensitive)
