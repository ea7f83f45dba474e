"""URL handling for url(...) values and @import targets.

The engine never decides on its own which URLs are acceptable: every URL is
resolved against the sheet's base URI, checked for a scheme that cannot run
script, and then handed to the caller's URL policy

    url_policy(absolute_uri, property_or_attribute_name) -> str | None

which returns the (possibly rewritten) URL to emit, or None to drop it.
`UrlRule` and `make_url_policy` build such a policy from data.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit

UrlPolicy = Callable[[str, str], str | None]

# Schemes that are never script-bearing. The caller's policy narrows further.
SAFE_SCHEMES = frozenset({"http", "https", "mailto"})

_SCHEME_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
# Characters that could end url("...") or start an escape inside it, plus
# targets for CSS error recovery. Control characters and spaces go as well.
_URL_SPECIALS = re.compile(r"[\x00-\x20\x7f\"'()*<>\\]")


def _percent_escape(match):
    return f"%{ord(match.group(0)):02x}"


def resolve_uri(base_uri, uri):
    """Resolve `uri` against `base_uri`; a missing base leaves `uri` unchanged."""
    if not base_uri:
        return uri
    try:
        return urljoin(base_uri, uri)
    except ValueError:
        return uri


def uri_scheme(uri):
    m = _SCHEME_PATTERN.match(uri)
    return m.group(1).lower() if m else None


def safe_uri(uri, name, url_policy):
    """Run `uri` through the scheme check and then `url_policy`."""
    if url_policy is None:
        return None
    scheme = uri_scheme(uri.strip())
    if scheme is not None and scheme not in SAFE_SCHEMES:
        return None
    result = url_policy(uri, name)
    if result is None:
        return None
    result = str(result)
    scheme = uri_scheme(result.strip())
    if scheme is not None and scheme not in SAFE_SCHEMES:
        return None
    return result


def normalize_url(uri):
    """Render an accepted URL as `url("...")`."""
    return 'url("' + _URL_SPECIALS.sub(_percent_escape, uri) + '")'


@dataclass(frozen=True, slots=True)
class UrlRule:
    """Data-driven URL policy.

    Relative URLs only reach the policy when no base URI was supplied, since
    everything else is resolved first.
    """

    # Allow relative URLs (including /path, ./path, ../path, ?query).
    allow_relative: bool = True

    # Allow same-document fragments (#foo).
    allow_fragment: bool = True

    # Allow protocol-relative URLs (//example.com). These are effectively
    # network URLs.
    allow_protocol_relative: bool = False

    # Allow absolute URLs with these schemes (lowercase), e.g. {"https"}.
    # If empty, all absolute URLs with a scheme are disallowed.
    allowed_schemes: Collection[str] = field(default_factory=lambda: {"http", "https"})

    # If provided, absolute URLs are allowed only if the parsed host is in this
    # allowlist.
    allowed_hosts: Collection[str] | None = None

    def __post_init__(self) -> None:
        # Accept lists/tuples from user code, normalize for internal use.
        if not isinstance(self.allowed_schemes, frozenset):
            object.__setattr__(self, "allowed_schemes", frozenset(s.lower() for s in self.allowed_schemes))
        if self.allowed_hosts is not None and not isinstance(self.allowed_hosts, frozenset):
            object.__setattr__(self, "allowed_hosts", frozenset(h.lower() for h in self.allowed_hosts))

    def accepts(self, uri: str) -> bool:
        uri = uri.strip()
        if not uri:
            return False
        if uri.startswith("#"):
            return self.allow_fragment
        if uri.startswith("//"):
            if not self.allow_protocol_relative:
                return False
            return self._host_allowed(uri)
        scheme = uri_scheme(uri)
        if scheme is None:
            return self.allow_relative
        if scheme not in self.allowed_schemes:
            return False
        return self._host_allowed(uri)

    def _host_allowed(self, uri: str) -> bool:
        if self.allowed_hosts is None:
            return True
        try:
            host = urlsplit(uri).hostname
        except ValueError:
            return False
        return host is not None and host in self.allowed_hosts


def make_url_policy(rule: UrlRule) -> UrlPolicy:
    """Turn a `UrlRule` into a URL policy callable."""

    def policy(uri: str, name: str) -> str | None:
        _ = name
        return uri if rule.accepts(uri) else None

    return policy
