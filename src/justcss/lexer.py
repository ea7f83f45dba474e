"""CSS lexer.

Turns CSS text into a flat list of normalized token strings. The sanitizers
only ever look at these normal forms:

    whitespace, comments, <!-- and -->   " "   (runs collapsed to one)
    quoted strings                       "..."  (always double quoted, re-escaped)
    url(...)                             url("...")
    functions                            name(
    hashes                               #name
    numbers                              12px, -.5em, 50%, +3
    at-keywords                          @media
    attribute operators                  ~= |= ^= $= *=
    everything else                      one punctuation character

Anything that cannot be put into one of these forms (an unterminated string,
a url() with an unquoted body containing quotes, a stray control character)
is dropped and reported.
"""

import re

from .errors import emit_error

_HEX_ESCAPE = r"\\(?:[0-9a-fA-F]{1,6}(?:\r\n|[ \t\r\n\f])?|[^\r\n\f0-9a-fA-F])"
_NMSTART = rf"(?:[a-zA-Z_]|[^\x00-\x7f]|{_HEX_ESCAPE})"
_NMCHAR = rf"(?:[a-zA-Z0-9_\-]|[^\x00-\x7f]|{_HEX_ESCAPE})"
_IDENT = rf"-?{_NMSTART}{_NMCHAR}*"
_STRING_BODY_DQ = r'(?:[^"\\\r\n\f]|\\(?:\r\n|[\s\S]))*'
_STRING_BODY_SQ = r"(?:[^'\\\r\n\f]|\\(?:\r\n|[\s\S]))*"
_STRING = rf'"{_STRING_BODY_DQ}"|\'{_STRING_BODY_SQ}\''
_BAD_STRING = rf'"{_STRING_BODY_DQ}|\'{_STRING_BODY_SQ}'
_URL_CHAR = rf"(?:[^\s\"'()\\\x00-\x08\x0b\x0e-\x1f\x7f]|{_HEX_ESCAPE})"
_NUMBER = r"[+-]?(?:\d+(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d+)?"
_WS = r"[ \t\r\n\f]"

_TOKEN_PATTERN = re.compile(
    rf"(?P<space>{_WS}+)"
    r"|(?P<comment>/\*(?:[^*]|\*(?!/))*\*/)"
    r"|(?P<bad_comment>/\*[\s\S]*)"
    r"|(?P<cdx><!--|-->)"
    rf"|(?P<string>{_STRING})"
    rf"|(?P<bad_string>{_BAD_STRING})"
    rf"|[uU][rR][lL]\({_WS}*(?:(?P<url_string>{_STRING})|(?P<url_raw>{_URL_CHAR}*)){_WS}*\)"
    r"|(?P<urange>[uU]\+[0-9a-fA-F?]{1,6}(?:-[0-9a-fA-F]{1,6})?)"
    rf"|(?P<number>{_NUMBER})(?P<unit>%|{_IDENT})?"
    rf"|(?P<at>@{_IDENT})"
    rf"|(?P<hash>#{_NMCHAR}+)"
    rf"|(?P<function>{_IDENT})\("
    rf"|(?P<ident>{_IDENT})"
    r"|(?P<match>[~|^$*]=)"
    r"|(?P<punct>[\s\S])"
)

_PUNCTUATION = frozenset("!%&()*+,-./:;<=>?@[]^{|}~")

_ESCAPE_PATTERN = re.compile(r"\\(?:([0-9a-fA-F]{1,6})(?:\r\n|[ \t\r\n\f])?|(\r\n|[\r\n\f])|([\s\S]))")
_STRING_SPECIALS = re.compile("[\x00-\x1f\x7f\"'\\\\<>&]")
_IDENT_SPECIALS = re.compile(r"[^a-zA-Z0-9_\-\u0080-\U0010ffff]")
_UNIT_PATTERN = re.compile(r"^(?:%|[a-zA-Z]+)$")
_NEWLINES = re.compile(r"\r\n|[\r\f]")


def _decode_escape(match):
    hex_digits, newline, char = match.groups()
    if hex_digits is not None:
        code = int(hex_digits, 16)
        if code == 0 or 0xD800 <= code <= 0xDFFF or code > 0x10FFFF:
            return "\ufffd"
        return chr(code)
    if newline is not None:
        # Escaped newlines are line continuations inside strings.
        return ""
    return char


def decode_css(text):
    """Decode CSS backslash escapes in an identifier or string body."""
    if "\\" not in text:
        return text
    return _ESCAPE_PATTERN.sub(_decode_escape, text)


def _hex_escape(match):
    return f"\\{ord(match.group(0)):x} "


def escape_css_string(text):
    """Escape `text` for use inside a double quoted CSS string.

    Quotes, backslashes, angle brackets, ampersands and control characters are
    hex escaped so the result cannot end the string or an enclosing <style>.
    """
    return _STRING_SPECIALS.sub(_hex_escape, text)


def escape_css_ident(text):
    """Escape `text` so it lexes back as exactly one identifier token."""
    if not text:
        return text
    escaped = _IDENT_SPECIALS.sub(_hex_escape, text)
    first = escaped[0]
    if first.isdigit() or (first == "-" and len(escaped) > 1 and escaped[1].isdigit()):
        offset = 0 if first.isdigit() else 1
        escaped = escaped[:offset] + f"\\{ord(escaped[offset]):x} " + escaped[offset + 1 :]
    return escaped


def _quote(text):
    return '"' + escape_css_string(text) + '"'


def _position(text, pos):
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


def lex_css(text):
    """Split CSS text into normalized tokens.

    Runs of whitespace and comments become a single " " token. No whitespace
    token is emitted at the start or end of the result.
    """
    text = _NEWLINES.sub("\n", text or "").replace("\x00", "\ufffd")
    tokens = []
    pos = 0
    length = len(text)
    while pos < length:
        m = _TOKEN_PATTERN.match(text, pos)
        kind = m.lastgroup
        start = pos
        pos = m.end()

        if kind in ("space", "comment", "cdx"):
            token = " "
        elif kind == "bad_comment":
            line, column = _position(text, start)
            emit_error("unterminated-comment", line=line, column=column)
            token = " "
        elif kind == "string":
            token = _quote(decode_css(m.group(kind)[1:-1]))
        elif kind == "bad_string":
            line, column = _position(text, start)
            emit_error("unterminated-string", line=line, column=column)
            continue
        elif kind == "url_string":
            token = "url(" + _quote(decode_css(m.group(kind)[1:-1])) + ")"
        elif kind == "url_raw":
            token = "url(" + _quote(decode_css(m.group(kind))) + ")"
        elif kind == "urange":
            token = m.group(kind).lower()
        elif kind in ("number", "unit"):
            unit = m.group("unit")
            token = m.group("number")
            if unit:
                unit = decode_css(unit)
                if not _UNIT_PATTERN.match(unit):
                    line, column = _position(text, start)
                    emit_error("bad-unit", line=line, column=column, message=f"Dropped number with unit {unit!r}")
                    continue
                token += unit
        elif kind == "at":
            token = "@" + escape_css_ident(decode_css(m.group(kind)[1:]))
        elif kind == "hash":
            # Hash names may start with a digit (#123), so only specials are escaped.
            token = "#" + _IDENT_SPECIALS.sub(_hex_escape, decode_css(m.group(kind)[1:]))
        elif kind == "function":
            token = escape_css_ident(decode_css(m.group(kind))) + "("
        elif kind == "ident":
            token = escape_css_ident(decode_css(m.group(kind)))
        elif kind == "match":
            token = m.group(kind)
        else:
            token = m.group("punct")
            if token not in _PUNCTUATION:
                line, column = _position(text, start)
                emit_error("unexpected-character", line=line, column=column, message=f"Dropped {token!r}")
                continue

        if token == " " and (not tokens or tokens[-1] == " "):
            continue
        tokens.append(token)

    if tokens and tokens[-1] == " ":
        tokens.pop()
    return tokens
