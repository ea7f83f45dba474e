"""Structural CSS parser.

Walks the token list produced by `lex_css` and reports the structure of the
sheet to a `StylesheetHandler`:

    start_stylesheet()
      start_atrule(name, header_tokens)
        start_block() ... end_block()
      end_atrule()
      start_ruleset(selector_tokens)
        declaration(property, value_tokens)
      end_ruleset()
    end_stylesheet()

Error recovery follows CSS 2.1: a malformed statement or declaration is
skipped up to the next point where parsing can safely resume, and unclosed
blocks and rulesets are closed at the end of input. Every start event is
matched by its end event.
"""

from .errors import emit_error
from .lexer import lex_css

_OPENERS = {"[": "]", "(": ")"}
# Blocks nested deeper than this are skipped without events.
MAX_NESTING_DEPTH = 64


class StylesheetHandler:
    """Receives parse events. Every method is a no-op by default."""

    def start_stylesheet(self):
        pass

    def end_stylesheet(self):
        pass

    def start_atrule(self, name, header):
        pass

    def end_atrule(self):
        pass

    def start_block(self):
        pass

    def end_block(self):
        pass

    def start_ruleset(self, selector):
        pass

    def end_ruleset(self):
        pass

    def declaration(self, property_name, value):
        pass


def _is_ident(token):
    first = token[:1]
    if first == "-":
        first = token[1:2]
    return bool(first) and (first.isalpha() or first in "_\\" or ord(first) > 0x7F) and not token.endswith("(")


class _Parser:
    __slots__ = ("depth", "handler", "n", "tokens")

    def __init__(self, tokens, handler):
        self.tokens = tokens
        self.handler = handler
        self.n = len(tokens)
        self.depth = 0

    def stylesheet(self):
        self.handler.start_stylesheet()
        i = 0
        while i < self.n:
            i = i + 1 if self.tokens[i] == " " else self._statement(i)
        self.handler.end_stylesheet()

    def declarations(self):
        tokens = self.tokens
        i = 0
        while i < self.n:
            tok = tokens[i]
            if tok in (" ", ";", "}"):
                i += 1
            elif tok == "{":
                i = self._skip_block(i)
            else:
                i = self._declaration(i)

    def _statement(self, i):
        if self.tokens[i].startswith("@"):
            return self._at_rule(i)
        return self._ruleset(i)

    def _skip_block(self, i):
        """Skip the balanced {...} starting at `i`."""
        tokens = self.tokens
        depth = 0
        while i < self.n:
            tok = tokens[i]
            i += 1
            if tok == "{":
                depth += 1
            elif tok == "}":
                depth -= 1
                if not depth:
                    break
        return i

    def _at_rule(self, i):
        tokens = self.tokens
        start = i
        i += 1
        while i < self.n and tokens[i] not in ("{", ";", "}"):
            i += 1
        if i >= self.n or tokens[i] == "}":
            # Missing terminator: drop the rule.
            emit_error("unterminated-at-rule", message=f"Dropped {tokens[start]} without ';' or block")
            return i
        s, e = start + 1, i
        if s < e and tokens[s] == " ":
            s += 1
        if e > s and tokens[e - 1] == " ":
            e -= 1
        if tokens[i] == "{" and self.depth >= MAX_NESTING_DEPTH:
            emit_error("nesting-too-deep", message=f"Dropped {tokens[start]} nested {self.depth} blocks deep")
            return self._skip_block(i)
        self.handler.start_atrule(tokens[start].lower(), tokens[s:e])
        i = self._block(i) if tokens[i] == "{" else i + 1
        self.handler.end_atrule()
        return i

    def _block(self, i):
        tokens = self.tokens
        handler = self.handler
        i += 1
        handler.start_block()
        self.depth += 1
        while i < self.n:
            tok = tokens[i]
            if tok == "}":
                i += 1
                break
            if tok in (" ", ";"):
                i += 1
            elif tok == "{":
                i = self._skip_block(i)
            else:
                i = self._statement(i)
        self.depth -= 1
        handler.end_block()
        return i

    def _selector(self, i):
        """Return the index of the token ending the selector at `i`.

        Returns a negative (~index) value if brackets are left open.
        """
        tokens = self.tokens
        brackets = []
        while i < self.n:
            tok = tokens[i]
            if tok in _OPENERS or tok.endswith("("):
                brackets.append(_OPENERS.get(tok, ")"))
            elif brackets and tok == brackets[-1]:
                brackets.pop()
            elif tok in ("{", "}", ";") or tok.startswith("@"):
                break
            i += 1
        if brackets:
            return ~i
        return i

    def _ruleset(self, i):
        tokens = self.tokens
        handler = self.handler
        s = i
        e = self._selector(i)
        if e < 0:
            e = ~e
            emit_error("malformed-selector", message="Dropped selector with unbalanced brackets")
            if e < self.n and tokens[e] == "{":
                return self._skip_block(e)
            return e + 1 if e == s else e
        if e >= self.n or tokens[e] != "{":
            if e > s:
                emit_error("malformed-selector", message="Dropped selector without a declaration block")
            return e + 1 if e == s else e
        i = e + 1
        if e > s and tokens[e - 1] == " ":
            e -= 1
        handler.start_ruleset(tokens[s:e])
        while i < self.n:
            tok = tokens[i]
            if tok == "}":
                i += 1
                break
            if tok in (" ", ";"):
                i += 1
            elif tok == "{":
                i = self._skip_block(i)
            else:
                i = self._declaration(i)
        handler.end_ruleset()
        return i

    def _skip_declaration(self, i):
        tokens = self.tokens
        while i < self.n:
            tok = tokens[i]
            if tok == ";":
                return i + 1
            if tok == "}":
                return i
            if tok == "{":
                i = self._skip_block(i)
            else:
                i += 1
        return i

    def _declaration(self, i):
        tokens = self.tokens
        property_name = tokens[i]
        i += 1
        if not _is_ident(property_name):
            emit_error("malformed-declaration", message=f"Dropped declaration starting with {property_name!r}")
            return self._skip_declaration(i)
        if i < self.n and tokens[i] == " ":
            i += 1
        if i >= self.n or tokens[i] != ":":
            emit_error("malformed-declaration", message=f"Dropped {property_name!r} without ':'")
            return self._skip_declaration(i)
        i += 1

        value = []
        malformed = False
        while i < self.n:
            tok = tokens[i]
            if tok in (";", "}"):
                break
            if tok == "{":
                malformed = True
                i = self._skip_block(i)
                continue
            if tok != " ":
                value.append(tok)
            i += 1
        if i < self.n and tokens[i] == ";":
            i += 1

        if malformed:
            emit_error("malformed-declaration", message=f"Dropped {property_name!r} containing a block")
        elif value:
            self.handler.declaration(property_name.lower(), value)
        return i


def parse_stylesheet(css_text, handler):
    """Lex and parse a style sheet, dispatching events to `handler`."""
    _Parser(lex_css(css_text), handler).stylesheet()


def parse_declarations(css_text, handler):
    """Parse the body of a style attribute (a bare declaration list).

    Only `declaration` events are dispatched.
    """
    _Parser(lex_css(css_text), handler).declarations()
