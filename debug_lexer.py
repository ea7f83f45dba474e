#!/usr/bin/env python3
"""Debug script to inspect how a piece of CSS is lexed, parsed and sanitized."""

import argparse
import sys

from justcss import (
    StylesheetHandler,
    Virtualization,
    collect_errors,
    lex_css,
    parse_stylesheet,
    sanitize_stylesheet,
)


class EventPrinter(StylesheetHandler):
    def __init__(self):
        self.depth = 0

    def _print(self, text):
        print("  " * self.depth + text)

    def start_stylesheet(self):
        self._print("start_stylesheet")
        self.depth += 1

    def end_stylesheet(self):
        self.depth -= 1
        self._print("end_stylesheet")

    def start_atrule(self, name, header):
        self._print(f"start_atrule {name!r} {header!r}")
        self.depth += 1

    def end_atrule(self):
        self.depth -= 1
        self._print("end_atrule")

    def start_block(self):
        self._print("start_block")
        self.depth += 1

    def end_block(self):
        self.depth -= 1
        self._print("end_block")

    def start_ruleset(self, selector):
        self._print(f"start_ruleset {selector!r}")
        self.depth += 1

    def end_ruleset(self):
        self.depth -= 1
        self._print("end_ruleset")

    def declaration(self, property_name, value):
        self._print(f"declaration {property_name!r} {value!r}")


def _allow_all(uri, name):
    return uri


def debug_css(css_text, base_uri=None, id_suffix=None, container_class=None):
    print(f"Input: {css_text!r}")

    print("\nTokens:")
    for i, token in enumerate(lex_css(css_text)):
        print(f"  {i:3}: {token!r}")

    print("\nEvents:")
    parse_stylesheet(css_text, EventPrinter())

    virtualization = Virtualization(id_suffix=id_suffix, container_class=container_class)
    with collect_errors() as errors:
        output = sanitize_stylesheet(base_uri, css_text, virtualization, _allow_all)

    print("\nDropped:")
    for error in errors:
        print(f"  {error}")
    if not errors:
        print("  (nothing)")

    print(f"\nOutput: {output!r}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Show tokens, parse events and sanitized output for CSS")
    parser.add_argument("css", nargs="?", help="CSS text (read from stdin when omitted)")
    parser.add_argument("--base-uri", default=None, help="Base URI for relative URLs")
    parser.add_argument("--id-suffix", default=None, help="Suffix appended to ids and global names")
    parser.add_argument("--container-class", default=None, help="Class every selector is scoped under")
    args = parser.parse_args()

    css = args.css if args.css is not None else sys.stdin.read()
    debug_css(css, args.base_uri, args.id_suffix, args.container_class)
