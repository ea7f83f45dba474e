from .errors import CssSanitizerError, ParseError, collect_errors
from .history import filter_history_sensitive
from .htmlschema import ATTRIBUTE_TYPES, AttrType, TagDecision, default_tag_policy
from .lexer import lex_css
from .parser import StylesheetHandler, parse_declarations, parse_stylesheet
from .properties import sanitize_property
from .schema import DEFAULT_SCHEMA, PropBit, PropertySchema, SchemaEntry
from .selectors import SelectorResult, Virtualization, sanitize_selectors
from .stylesheet import (
    MEDIA_TYPES,
    SanitizationResult,
    StylesheetSanitizer,
    sanitize_style_attribute,
    sanitize_stylesheet,
    sanitize_stylesheet_with_externals,
)
from .urls import UrlRule, make_url_policy

__all__ = [
    "ATTRIBUTE_TYPES",
    "DEFAULT_SCHEMA",
    "MEDIA_TYPES",
    "AttrType",
    "CssSanitizerError",
    "ParseError",
    "PropBit",
    "PropertySchema",
    "SanitizationResult",
    "SchemaEntry",
    "SelectorResult",
    "StylesheetHandler",
    "StylesheetSanitizer",
    "TagDecision",
    "UrlRule",
    "Virtualization",
    "collect_errors",
    "default_tag_policy",
    "filter_history_sensitive",
    "lex_css",
    "make_url_policy",
    "parse_declarations",
    "parse_stylesheet",
    "sanitize_property",
    "sanitize_selectors",
    "sanitize_style_attribute",
    "sanitize_stylesheet",
    "sanitize_stylesheet_with_externals",
]
