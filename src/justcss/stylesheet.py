"""Stylesheet sanitization driver.

`StylesheetSanitizer` receives the parser's structural events and assembles
the safe style sheet. Every open block has a marker on a stack:

    _Marker.ELIDED      nothing inside is emitted
    _KeptAtRule         an @media rule whose filtered header survived
    _RulesetPending     a ruleset collecting its sanitized declarations

Rulesets are emitted from `end_ruleset`, once all declarations are known: the
history-insensitive selectors get every declaration, the history-sensitive
ones (:link, :visited) only those allowed by `filter_history_sensitive`.

@import is only honoured through `sanitize_stylesheet_with_externals`, which
hands the target to a caller-supplied fetcher and splices the sanitized result
in place of the rule once it arrives.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from .errors import CssSanitizerError, emit_error
from .history import filter_history_sensitive
from .lexer import decode_css
from .parser import StylesheetHandler, parse_declarations, parse_stylesheet
from .properties import join_value, sanitize_property
from .schema import DEFAULT_SCHEMA
from .selectors import Virtualization, sanitize_selectors
from .urls import resolve_uri, safe_uri

logger = logging.getLogger(__name__)

MEDIA_TYPES = frozenset(
    {
        "all",
        "aural",
        "braille",
        "embossed",
        "handheld",
        "print",
        "projection",
        "screen",
        "speech",
        "tty",
        "tv",
    }
)

MEDIA_FEATURES = frozenset(
    {
        "aspect-ratio",
        "color",
        "color-index",
        "device-aspect-ratio",
        "device-height",
        "device-width",
        "grid",
        "height",
        "hover",
        "max-aspect-ratio",
        "max-color",
        "max-color-index",
        "max-device-aspect-ratio",
        "max-device-height",
        "max-device-width",
        "max-height",
        "max-monochrome",
        "max-resolution",
        "max-width",
        "min-aspect-ratio",
        "min-color",
        "min-color-index",
        "min-device-aspect-ratio",
        "min-device-height",
        "min-device-width",
        "min-height",
        "min-monochrome",
        "min-resolution",
        "min-width",
        "monochrome",
        "orientation",
        "pointer",
        "prefers-color-scheme",
        "prefers-reduced-motion",
        "resolution",
        "scan",
        "width",
    }
)

DEFAULT_MAX_IMPORT_DEPTH = 8

_MEDIA_NUMBER = re.compile(r"^(?:\d+(?:\.\d+)?|\.\d+)(?:[a-z]+)?$")
_MEDIA_KEYWORD = re.compile(r"^[a-z][a-z\-]*$")
_QUOTED = re.compile(r'^"((?:[^"\\\n\r\f]|\\[\s\S])*)"$')
_URL_TOKEN = re.compile(r'^url\("((?:[^"\\\n\r\f]|\\[\s\S])*)"\)$', re.IGNORECASE)


class _Marker(Enum):
    ELIDED = "elided"


class _KeptAtRule:
    __slots__ = ("header",)

    def __init__(self, header):
        self.header = header


class _RulesetPending:
    __slots__ = ("declarations", "selectors")

    def __init__(self, selectors):
        self.selectors = selectors
        self.declarations = []


def _media_feature(tokens):
    """Render one `(feature[:value])` expression, or None."""
    if not tokens or not _MEDIA_KEYWORD.match(tokens[0].lower()):
        return None
    feature = tokens[0].lower()
    if feature not in MEDIA_FEATURES:
        return None
    if len(tokens) == 1:
        return f"({feature})"
    if tokens[1] != ":":
        return None
    value = [tok.lower() for tok in tokens[2:]]
    if len(value) == 1 and (_MEDIA_NUMBER.match(value[0]) or _MEDIA_KEYWORD.match(value[0])):
        return f"({feature}:{value[0]})"
    if len(value) == 3 and value[1] == "/" and value[0].isdigit() and value[2].isdigit():
        return f"({feature}:{value[0]}/{value[2]})"
    return None


def _media_query(tokens, media_types):
    """Render one media query, or None if it is not on the allow-list."""
    words = [tok for tok in tokens if tok != " "]
    if not words:
        return None
    out = []
    first = words[0].lower()
    i = 0
    if first in ("only", "not"):
        out.append(first)
        i = 1
    if i >= len(words) or words[i].lower() not in media_types:
        return None
    out.append(words[i].lower())
    i += 1
    while i < len(words):
        if words[i].lower() != "and" or i + 1 >= len(words) or words[i + 1] != "(":
            return None
        end = i + 2
        while end < len(words) and words[end] != ")":
            end += 1
        if end >= len(words):
            return None
        feature = _media_feature(words[i + 2 : end])
        if feature is None:
            return None
        out.append("and")
        out.append(feature)
        i = end + 1
    return " ".join(out)


def filter_media_query(header, media_types=MEDIA_TYPES):
    """Filter a comma separated media query list.

    Queries that are malformed or use a media type outside `media_types`
    are dropped; the survivors are returned joined with ", " ("" if none).
    """
    queries = []
    start = 0
    for i in range(len(header) + 1):
        if i == len(header) or header[i] == ",":
            query = _media_query(header[start:i], media_types)
            if query is None:
                emit_error("disallowed-media-query", message="Dropped media query " + repr("".join(header[start:i])))
            else:
                queries.append(query)
            start = i + 1
    return ", ".join(queries)


def _split_important(value):
    """Strip a trailing `! important` from `value`. Returns (tokens, important)."""
    if len(value) >= 2 and value[-2] == "!" and value[-1].lower() == "important":
        return value[:-2], True
    return list(value), False


def _render(declaration):
    name, _, *value = declaration
    return name + ":" + join_value(value[:-1]) + ";"


class _ImportContext:
    """State shared by a sheet and everything it imports."""

    __slots__ = ("continuation", "fetcher", "max_depth", "pending")

    def __init__(self, fetcher, continuation, max_depth):
        self.fetcher = fetcher
        self.continuation = continuation
        self.max_depth = max_depth
        self.pending = 0

    def settle(self, slot):
        """Count one resolved fetch against `slot` and its ancestors.

        The continuation runs once per top-level import, when its whole
        subtree of imports has been sanitized.
        """
        while slot is not None:
            slot.waiting -= 1
            if slot.waiting:
                return
            if slot.parent is None:
                self.continuation(slot.text, self.pending > 0)
                return
            slot = slot.parent


class _ImportSlot:
    """Placeholder in the output for one @import, filled when it resolves.

    `waiting` counts the slot's own fetch plus every nested import still
    outstanding below it. The slot is complete when it reaches zero.
    """

    __slots__ = ("media", "parent", "result", "waiting")

    def __init__(self, media, parent):
        self.media = media
        self.parent = parent
        self.result = None
        self.waiting = 1

    @property
    def text(self):
        if self.result is None:
            return ""
        text = self.result.text
        if text and self.media:
            return f"@media {self.media}{{{text}}}"
        return text


class SanitizationResult:
    """The sanitized text of a sheet, including imports resolved so far."""

    __slots__ = ("_imports", "_parts")

    def __init__(self, parts, imports):
        self._parts = parts
        self._imports = imports

    @property
    def text(self):
        return "".join(part if isinstance(part, str) else part.text for part in self._parts)

    @property
    def more_to_come(self):
        """True while @import fetches are outstanding."""
        return self._imports is not None and self._imports.pending > 0

    def __str__(self):
        return self.text

    def __repr__(self):
        return f"SanitizationResult(text={self.text!r}, more_to_come={self.more_to_come})"


class StylesheetSanitizer(StylesheetHandler):
    """Turns parse events into sanitized CSS.

    The output is a list of strings and `_ImportSlot` placeholders, wrapped by
    `result` in a `SanitizationResult`.
    """

    def __init__(
        self,
        base_uri,
        virtualization,
        url_policy=None,
        *,
        schema=DEFAULT_SCHEMA,
        media_types=MEDIA_TYPES,
        imports=None,
        depth=0,
        slot=None,
    ):
        self.base_uri = base_uri
        self.virtualization = virtualization
        self.url_policy = url_policy
        self.schema = schema
        self.media_types = media_types
        self.imports = imports
        self.depth = depth
        # The import this sheet was fetched for; None for the top-level sheet.
        self.slot = slot
        self.out = []
        self.stack = []
        self.result = SanitizationResult(self.out, imports)

    def _eliding(self):
        return bool(self.stack) and self.stack[-1] is _Marker.ELIDED

    def start_stylesheet(self):
        self.out.clear()
        self.stack.clear()

    def end_stylesheet(self):
        if self.stack:
            logger.debug("Stylesheet ended with %d open blocks", len(self.stack))
            self.stack.clear()

    def start_atrule(self, name, header):
        """Open an at-rule.

        Only @media and @import are understood. Any other at-rule is elided
        with its block: its contents cannot be checked, and unchecked CSS is
        never emitted.
        """
        if self._eliding():
            self.stack.append(_Marker.ELIDED)
            return
        if name == "@media":
            media = filter_media_query(header, self.media_types)
            if media:
                self.stack.append(_KeptAtRule("@media " + media))
                return
            emit_error("disallowed-media-query", message="Dropped @media rule with no allowed media")
        elif name == "@import":
            self._import(header)
        else:
            emit_error("disallowed-at-rule", message=f"Dropped {name} rule")
        self.stack.append(_Marker.ELIDED)

    def end_atrule(self):
        if self.stack:
            self.stack.pop()

    def start_block(self):
        top = self.stack[-1] if self.stack else None
        if isinstance(top, _KeptAtRule):
            self.out.append(top.header + "{")

    def end_block(self):
        top = self.stack[-1] if self.stack else None
        if isinstance(top, _KeptAtRule):
            self.out.append("}")
            # The block has been closed; nothing else belongs to the at-rule.
            self.stack[-1] = _Marker.ELIDED

    def start_ruleset(self, selector):
        if self._eliding():
            self.stack.append(_Marker.ELIDED)
            return
        selectors = sanitize_selectors(selector, self.virtualization)
        if selectors is None or not (selectors.history_insensitive or selectors.history_sensitive):
            self.stack.append(_Marker.ELIDED)
            return
        self.stack.append(_RulesetPending(selectors))

    def end_ruleset(self):
        if not self.stack:
            return
        pending = self.stack.pop()
        if not isinstance(pending, _RulesetPending) or not pending.declarations:
            return
        insensitive, sensitive = pending.selectors
        if insensitive:
            body = "".join(_render(declaration) for declaration in pending.declarations)
            self.out.append(", ".join(insensitive) + "{" + body + "}")
        if sensitive:
            body = filter_history_sensitive(
                [tok for declaration in pending.declarations for tok in declaration],
                schema=self.schema,
            )
            if body:
                self.out.append(", ".join(sensitive) + "{" + body + "}")

    def declaration(self, property_name, value):
        pending = self.stack[-1] if self.stack else None
        if not isinstance(pending, _RulesetPending):
            return
        # Emit the schema key, not the source spelling.
        name = property_name.lower()
        tokens, important = _split_important(value)
        sanitize_property(
            name,
            tokens,
            self.url_policy,
            self.base_uri,
            schema=self.schema,
            id_suffix=self.virtualization.id_suffix,
        )
        if not tokens:
            return
        if important:
            tokens.append("!important")
        pending.declarations.append([name, ":", *tokens, ";"])

    def _import(self, header):
        imports = self.imports
        if imports is None:
            logger.info("Dropped @import: no fetcher was supplied")
            emit_error("import-without-fetcher", message="Dropped @import without a fetcher")
            return
        if self.stack:
            emit_error("misplaced-import", message="Dropped @import inside a block")
            return
        words = [tok for tok in header if tok != " "]
        target = None
        if words:
            m = _QUOTED.match(words[0]) or _URL_TOKEN.match(words[0])
            if m is not None:
                target = decode_css(m.group(1))
        if target is None:
            emit_error("malformed-import", message="Dropped @import without a URL")
            return
        media = None
        if len(words) > 1:
            media = filter_media_query(header[header.index(words[0]) + 1 :], self.media_types)
            if not media:
                emit_error("disallowed-media-query", message=f"Dropped @import {target!r} with no allowed media")
                return
        if self.depth >= imports.max_depth:
            logger.warning("Dropped @import %r: nested deeper than %d", target, imports.max_depth)
            emit_error("import-too-deep", message=f"Dropped @import {target!r}")
            return
        uri = safe_uri(resolve_uri(self.base_uri, target), "@import", self.url_policy)
        if uri is None:
            emit_error("rejected-url", message=f"Dropped @import {target!r}")
            return

        slot = _ImportSlot(media, self.slot)
        if self.slot is not None:
            self.slot.waiting += 1
        self.out.append(slot)
        imports.pending += 1
        sanitizer = StylesheetSanitizer(
            uri,
            self.virtualization,
            self.url_policy,
            schema=self.schema,
            media_types=self.media_types,
            imports=imports,
            depth=self.depth + 1,
            slot=slot,
        )

        def on_result(text):
            if slot.result is not None:
                return
            slot.result = sanitizer.result
            parse_stylesheet(text or "", sanitizer)
            imports.pending -= 1
            imports.settle(slot)

        imports.fetcher(uri, on_result)


def _check_callable(value, name):
    if value is not None and not callable(value):
        raise CssSanitizerError(f"{name} must be callable")


def sanitize_stylesheet_with_externals(
    base_uri,
    css_text,
    virtualization,
    url_policy=None,
    fetcher=None,
    continuation=None,
    *,
    schema=DEFAULT_SCHEMA,
    media_types=MEDIA_TYPES,
    max_import_depth=DEFAULT_MAX_IMPORT_DEPTH,
):
    """Sanitize a style sheet, resolving @import through `fetcher`.

    `fetcher(absolute_uri, on_result)` must eventually call `on_result(text)`
    with the fetched sheet. Once a top-level import and everything it imports
    have been sanitized, `continuation(imported_text, more_to_come)` is called
    for it, once. The returned `SanitizationResult` always reflects the imports
    resolved so far.

    Without both a fetcher and a continuation, @import rules are dropped.
    """
    if not isinstance(virtualization, Virtualization):
        raise CssSanitizerError("virtualization must be a Virtualization instance")
    _check_callable(url_policy, "url_policy")
    _check_callable(fetcher, "fetcher")
    _check_callable(continuation, "continuation")
    imports = None
    if fetcher is not None and continuation is not None:
        imports = _ImportContext(fetcher, continuation, max_import_depth)
    sanitizer = StylesheetSanitizer(
        base_uri,
        virtualization,
        url_policy,
        schema=schema,
        media_types=media_types,
        imports=imports,
    )
    parse_stylesheet(css_text, sanitizer)
    return sanitizer.result


def sanitize_stylesheet(
    base_uri,
    css_text,
    virtualization,
    url_policy=None,
    *,
    schema=DEFAULT_SCHEMA,
    media_types=MEDIA_TYPES,
):
    """Sanitize a style sheet and return the safe CSS text.

    @import rules are dropped; use `sanitize_stylesheet_with_externals` to
    follow them.
    """
    return sanitize_stylesheet_with_externals(
        base_uri,
        css_text,
        virtualization,
        url_policy,
        schema=schema,
        media_types=media_types,
    ).text


class _DeclarationCollector(StylesheetHandler):

    def __init__(self, url_policy, base_uri, schema, id_suffix):
        self.url_policy = url_policy
        self.base_uri = base_uri
        self.schema = schema
        self.id_suffix = id_suffix
        self.out = []

    def declaration(self, property_name, value):
        name = property_name.lower()
        tokens, important = _split_important(value)
        sanitize_property(
            name,
            tokens,
            self.url_policy,
            self.base_uri,
            schema=self.schema,
            id_suffix=self.id_suffix,
        )
        if tokens:
            if important:
                tokens.append("!important")
            self.out.append(name + ":" + join_value(tokens) + ";")


def sanitize_style_attribute(css_text, url_policy=None, base_uri=None, *, schema=DEFAULT_SCHEMA, id_suffix=None):
    """Sanitize the contents of a `style="..."` attribute."""
    _check_callable(url_policy, "url_policy")
    collector = _DeclarationCollector(url_policy, base_uri, schema, id_suffix)
    parse_declarations(css_text, collector)
    return "".join(collector.out)
