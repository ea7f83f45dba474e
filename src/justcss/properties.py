"""Sanitize the value of one CSS declaration against a property schema.

Tokens are classified by their own surface form (quoted string, hash,
number, url, function call, keyword) and kept, rewritten or dropped
according to the property's `SchemaEntry`. The token list is rewritten in
place; afterwards it holds only the surviving tokens.

Function calls are matched against the functions the entry permits and their
arguments are sanitized recursively against the function's own entry.
"""

import re

from .errors import emit_error
from .lexer import decode_css, escape_css_string
from .schema import DEFAULT_SCHEMA, PropBit, without_vendor_prefix
from .urls import normalize_url, resolve_uri, safe_uri

_HASH_COLOR = re.compile(r"^#(?:[0-9a-f]{3}){1,2}$")
_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d+)?|\.\d+)(?:e[+-]?\d+)?(?:%|[a-z]+)?$")
_QUOTED = re.compile(r'^"((?:[^"\\\n\r\f]|\\[\s\S])*)"$')
_URL_TOKEN = re.compile(r'^url\("((?:[^"\\\n\r\f]|\\[\s\S])*)"\)$', re.IGNORECASE)
_NAME = re.compile(r"^-?[a-z_][a-z0-9_\-]*$")
_WORD = re.compile(r"^[a-z_][a-z0-9_\-]*$")
_DIGITS = frozenset("0123456789")
# Calls nested deeper than this are dropped.
MAX_CALL_DEPTH = 32

_STRING_BITS = PropBit.URL | PropBit.UNRESERVED_WORD
_IDENT_BITS = PropBit.GLOBAL_NAME | PropBit.PROPERTY_NAME


class _Context:
    __slots__ = ("base_uri", "id_suffix", "property_name", "schema", "url_policy")

    def __init__(self, property_name, url_policy, base_uri, schema, id_suffix):
        self.property_name = property_name
        self.url_policy = url_policy
        self.base_uri = base_uri
        self.schema = schema
        self.id_suffix = id_suffix


def sanitize_property(property_name, tokens, url_policy=None, base_uri=None, *, schema=DEFAULT_SCHEMA, id_suffix=None):
    """Sanitize the value `tokens` of `property_name` in place.

    Unknown properties lose their whole value. A URL rejected by the scheme
    check or by `url_policy` also empties the whole value rather than leaving
    the declaration with a substitute. Without a `url_policy` no URL survives.
    `id_suffix` is appended to identifiers of properties whose values name
    document-global things (counters).
    """
    key = property_name.lower()
    entry = schema.get(key)
    if entry is None:
        emit_error("unknown-property", message=f"Dropped unknown property {property_name!r}")
        del tokens[:]
        return
    ctx = _Context(key, url_policy, base_uri, schema, id_suffix)
    if _sanitize(entry, tokens, ctx):
        del tokens[:]


def join_value(tokens):
    """Join sanitized value tokens: `a b, c`."""
    out = []
    for tok in tokens:
        if out and tok != ",":
            out.append(" ")
        out.append(tok)
    return "".join(out)


def _call_ends(tokens):
    """Map the index of every call opener to the index of its closing ')'.

    Unterminated calls have no entry.
    """
    ends = {}
    open_calls = []
    for i, token in enumerate(tokens):
        if token == ")":
            if open_calls:
                ends[open_calls.pop()] = i
        elif token.endswith("(") and token[:1] not in "\"'":
            open_calls.append(i)
    return ends


def _number(token, bits):
    """Normalize a signed or dot-leading quantity; None if `token` isn't one."""
    if not _NUMBER.match(token):
        return None
    first = token[0]
    if first == "+":
        body = token[1:]
        if not bits & PropBit.QUANTITY:
            return ""
        return "0" + body if body.startswith(".") else body
    if first == "-":
        body = token[1:]
        if bits & PropBit.NEGATIVE_QUANTITY:
            return "-0" + body if body.startswith(".") else token
        return "0" if bits & PropBit.QUANTITY else ""
    if first == ".":
        return "0" + token if bits & PropBit.QUANTITY else ""
    return token if bits & PropBit.QUANTITY else ""


def _url(uri, ctx):
    """Return `url("...")` for an accepted URL, None for a rejected one."""
    safe = safe_uri(resolve_uri(ctx.base_uri, uri), ctx.property_name, ctx.url_policy)
    if safe is None:
        emit_error("rejected-url", message=f"Dropped {ctx.property_name} URL {uri!r}")
        return None
    return normalize_url(safe)


def _sanitize(entry, tokens, ctx, depth=0):
    """Sanitize `tokens` against `entry`. Returns True if a URL was rejected."""
    ends = _call_ends(tokens)
    bits = entry.bits
    string_disposition = bits & _STRING_BITS
    ident_disposition = bits & _IDENT_BITS
    literals = entry.literals
    rejected = False
    last_quoted = -1
    k = 0
    i = 0
    while i < len(tokens):
        raw = tokens[i]
        token = raw.lower()
        first = token[:1]
        out = ""
        reported = False

        if not first or first == " ":
            pass
        elif first == '"':
            m = _QUOTED.match(raw)
            if m is None:
                pass
            elif string_disposition == PropBit.URL:
                if ctx.url_policy is not None:
                    out = _url(decode_css(m.group(1)), ctx)
                    if out is None:
                        rejected = True
                        out = ""
            elif bits & PropBit.QSTRING and string_disposition != _STRING_BITS:
                out = '"' + escape_css_string(decode_css(m.group(1))) + '"'
        elif token == "inherit":
            out = token
        elif without_vendor_prefix(token) in literals:
            out = token
        elif first == "#" and _HASH_COLOR.match(token):
            if bits & PropBit.HASH_VALUE:
                out = token
        elif first in _DIGITS or (first in "+-." and _NUMBER.match(token)):
            out = _number(token, bits) or ""
        elif token.startswith("url(") and token.endswith(")"):
            m = _URL_TOKEN.match(raw)
            if m is not None and bits & PropBit.URL and ctx.url_policy is not None:
                out = _url(decode_css(m.group(1)), ctx)
                if out is None:
                    rejected = True
                    out = ""
        elif token.endswith("("):
            end = ends.get(i)
            if end is None:
                # Unterminated call: everything after it belongs to the call.
                emit_error("unterminated-function", message=f"Dropped unterminated {token}...")
                i = len(tokens)
                continue
            fn_entry = entry.functions.get(without_vendor_prefix(token[:-1]))
            if depth >= MAX_CALL_DEPTH:
                emit_error("nesting-too-deep", message=f"Dropped {token}...) nested {depth} calls deep")
            elif fn_entry is None:
                emit_error("disallowed-function", message=f"Dropped {token}...) in {ctx.property_name}")
            else:
                args = tokens[i + 1 : end]
                if _sanitize(fn_entry, args, ctx, depth + 1):
                    rejected = True
                elif args:
                    out = token + join_value(args) + ")"
            reported = True
            i = end
        elif ident_disposition and _NAME.match(token) and not token.endswith("__"):
            if ident_disposition == PropBit.GLOBAL_NAME:
                if ctx.id_suffix is not None:
                    out = raw + ctx.id_suffix
            elif ident_disposition == PropBit.PROPERTY_NAME:
                known = ctx.schema.get(token)
                if known is not None and not token.endswith("()"):
                    out = token
        elif string_disposition == PropBit.UNRESERVED_WORD and bits & PropBit.QSTRING and _WORD.match(token):
            if k and last_quoted == k - 1:
                # Join with the previous word: Arial Black -> "arial black".
                tokens[k - 1] = tokens[k - 1][:-1] + " " + token + '"'
                reported = True
            else:
                last_quoted = k
                out = '"' + token + '"'

        if out:
            tokens[k] = out
            k += 1
        elif first and first != " " and not reported:
            emit_error("disallowed-value", message=f"Dropped {raw!r} from {ctx.property_name}")
        i += 1
    del tokens[k:]
    return rejected
