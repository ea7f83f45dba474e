"""Declarations allowed on :link and :visited selectors.

Styling that differs between visited and unvisited links can be measured by
the page, which leaks the user's browsing history. Rules whose selectors are
history sensitive therefore only keep the declarations whose property carries
`PropBit.ALLOWED_IN_LINK`.
"""

from .errors import emit_error
from .properties import join_value
from .schema import DEFAULT_SCHEMA, PropBit


def filter_history_sensitive(declaration_tokens, *, schema=DEFAULT_SCHEMA):
    """Render `prop : value... ;` groups, blanking disallowed properties.

    `declaration_tokens` is a flat token list of already sanitized
    declarations. Returns the surviving declarations as `prop:value;` text.
    """
    out = []
    name = None
    allowed = False
    seen_colon = False
    value = []
    for tok in declaration_tokens:
        if tok == ";":
            if allowed and value:
                out.append(name + ":" + join_value(value) + ";")
            name = None
            allowed = seen_colon = False
            value = []
        elif tok == " ":
            continue
        elif name is None:
            name = tok.lower()
            entry = schema.get(name)
            allowed = entry is not None and entry.allows(PropBit.ALLOWED_IN_LINK)
            if not allowed:
                emit_error("history-sensitive-property", message=f"Dropped {name} from a :visited rule")
        elif tok == ":" and not seen_colon:
            seen_colon = True
        elif allowed:
            value.append(tok)
    if allowed and value:
        out.append(name + ":" + join_value(value) + ";")
    return "".join(out)
