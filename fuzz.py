#!/usr/bin/env python3
"""
Random fuzzer for the CSS sanitizer.
Generates malformed and hostile CSS and checks that sanitizing it never
crashes, never hangs, never lets a script-bearing URL through, always yields
balanced output and is stable when run on its own output.
"""

import argparse
import random
import re
import string
import sys
import time
import traceback

from justcss import Virtualization, sanitize_stylesheet

# Fuzzing strategies
ELEMENTS = [
    "a", "p", "div", "span", "ul", "ol", "li", "table", "td", "th", "label",
    "img", "input", "form", "h1", "em", "strong", "html", "body", "head",
    "script", "style", "iframe", "object", "embed", "svg", "math", "*",
]

PSEUDOS = [
    ":hover", ":focus", ":active", ":visited", ":link", ":first-child",
    ":last-child", ":nth-child(2n+1)", ":not(.x)", ":has(a)", "::before",
    "::after", "::selection", ":bogus", ":", "::",
]

ATTRIBUTES = [
    "[href]", "[href^=javascript]", "[id=x]", "[id$=x i]", "[title='x']",
    "[title=\"a\" s]", "[headers~=a]", "[class|=x]", "[for=x]", "[onclick]",
    "[style*=x]", "[data-x]", "[", "[=]", "[id=]",
]

COMBINATORS = [" ", " > ", "+", " ~ ", ">>", ",", " , ", "", "||"]

PROPERTIES = [
    "color", "background", "background-image", "background-color", "width",
    "margin", "padding", "display", "position", "font-family", "font",
    "counter-reset", "transition", "cursor", "list-style-image", "z-index",
    "behavior", "-moz-binding", "expression", "COLOR", "-webkit-transition",
]

VALUES = [
    "red", "#ABCDEF", "#abcd", "10px", "-5px", "+.5em", "50%", "1e3px",
    "auto", "inherit", "fixed", "absolute", "Arial Black", "serif", ",",
    "rgb(1, 2, 3)", "rgba(0,0,0,.5)", "calc(100% - 10px)", "calc(1px",
    "linear-gradient(to right, red, blue)", "expression(alert(1))",
    "attr(x)", "item", "none", "!important", "! important", "/", "*",
]

URLS = [
    "http://example.com/a.png", "https://example.com/a.png", "a.png",
    "../img/a.png", "//cdn.example/a.png", "javascript:alert(1)",
    "JaVaScRiPt:alert(1)", "java\\73 cript:alert(1)", "data:text/html,x",
    "vbscript:x", "mailto:a@b.example", " javascript:x", "a\"b", "a)b",
    "a\\", "", "http://x/\"),url(javascript:x)",
]

AT_RULES = [
    "@media screen", "@media print, fax", "@media only screen and (min-width: 100px)",
    "@media (max-width: 10em)", "@media screen and (bogus: 1)", "@media",
    "@font-face", "@page", "@keyframes x", "@supports (display: grid)",
    "@charset 'utf-8';", "@namespace x url(y);", "@import 'x.css';",
    "@import url(javascript:x);", "@", "@-moz-document url-prefix()",
]

SPECIAL_CHARS = [
    "\x00", "\x01", "\x0b", "\x0c", "\x7f",  # Control chars
    "\ufffd",  # Replacement character
    "\u00a0",  # Non-breaking space
    "\u2028", "\u2029",  # Line/paragraph separators
    "\u200b",  # Zero-width space
    "\ufeff",  # BOM
    "\\", "\\0", "\\26 ", "\\7d", "\\\n",  # Escapes
    "/*", "*/", "<!--", "-->", "<", ">", "&",
]

_OUTPUT_URL = re.compile(r'url\("([^"]*)"\)')
_ALLOWED_SCHEMES = ("http:", "https:", "mailto:")


def random_string(min_len=0, max_len=20):
    """Generate random ASCII string."""
    length = random.randint(min_len, max_len)
    return "".join(random.choices(string.ascii_letters + string.digits + "-_", k=length))


def random_whitespace():
    """Generate random whitespace (including weird ones)."""
    ws = [" ", "\t", "\n", "\r", "\f", "\v", "\x00", "/**/", ""]
    return "".join(random.choices(ws, k=random.randint(0, 3)))


def fuzz_compound():
    """Generate one compound selector."""
    parts = []
    if random.random() < 0.8:
        parts.append(random.choice(ELEMENTS))
    for _ in range(random.randint(0, 3)):
        strategy = random.choice(
            [
                lambda: "#" + random_string(0, 8),
                lambda: "." + random_string(0, 8),
                lambda: random.choice(ATTRIBUTES),
                lambda: random.choice(PSEUDOS),
                lambda: random.choice(SPECIAL_CHARS),
            ]
        )
        parts.append(strategy())
    return "".join(parts)


def fuzz_selector():
    """Generate a selector group with random combinators."""
    out = [fuzz_compound()]
    for _ in range(random.randint(0, 4)):
        out.append(random.choice(COMBINATORS))
        out.append(fuzz_compound())
    return "".join(out)


def fuzz_url():
    url = random.choice(URLS)
    quote_styles = [
        ("url(", ")"),
        ("url('", "')"),
        ('url("', '")'),
        ("URL(", ")"),
        ("url( ", " )"),
        ("url(", ""),  # Unclosed
        ("'", "'"),  # Bare string
    ]
    start, end = random.choice(quote_styles)
    return f"{start}{url}{end}"


def fuzz_value():
    """Generate a malformed declaration value."""
    strategies = [
        lambda: random.choice(VALUES),
        lambda: fuzz_url(),
        lambda: random_string(1, 10),
        lambda: random.choice(SPECIAL_CHARS),
        lambda: '"' + random_string() + '"',
        lambda: "'" + random_string(),  # Unclosed string
        lambda: random.choice(["rgb(", "calc(", "url(", "(", ")", "[", "]"]),
        lambda: "{" + random_string() + "}",
    ]
    parts = [random.choice(strategies)() for _ in range(random.randint(0, 5))]
    return random_whitespace().join(parts) or " "


def fuzz_declaration():
    name_strategies = [
        lambda: random.choice(PROPERTIES),
        lambda: random_string(1, 12),
        lambda: "",
        lambda: random.choice(SPECIAL_CHARS) + random.choice(PROPERTIES),
    ]
    separators = [":", " : ", "", "::", ";"]
    terminators = [";", "", ";;", " ; ", "}"]
    name = random.choice(name_strategies)()
    return f"{name}{random.choice(separators)}{fuzz_value()}{random.choice(terminators)}"


def fuzz_ruleset():
    """Generate a ruleset, sometimes unclosed."""
    declarations = "".join(fuzz_declaration() for _ in range(random.randint(0, 6)))
    close = random.choice(["}", "}", "}", "", "}}", "]}"])
    return f"{fuzz_selector()}{random_whitespace()}{{{declarations}{close}"


def fuzz_at_rule(depth=0, max_depth=4):
    """Generate an at-rule with an optional (possibly nested) block."""
    header = random.choice(AT_RULES)
    if header.endswith(";") or random.random() < 0.2:
        return header
    body = []
    for _ in range(random.randint(0, 4)):
        if depth < max_depth and random.random() < 0.3:
            body.append(fuzz_at_rule(depth + 1, max_depth))
        else:
            body.append(fuzz_ruleset())
    close = random.choice(["}", "}", ""])
    return f"{header} {{{''.join(body)}{close}"


def fuzz_garbage():
    """Generate stray punctuation and escapes."""
    chars = list("{}[]();:,@!#.>+~*\"'\\/") + SPECIAL_CHARS
    return "".join(random.choices(chars, k=random.randint(1, 20)))


def fuzz_deeply_nested():
    """Generate deep bracket nesting."""
    depth = random.randint(10, 3000)
    opener = random.choice(["{", "(", "[", "rgb(", "@media screen {"])
    return "a{color:" + opener * depth + "red"


def fuzz_long_value():
    """Generate very long token runs."""
    value = random.choice(VALUES)
    return f"p {{ margin: {' '.join([value] * random.randint(100, 1000))} }}"


def generate_fuzzed_css():
    """Generate a complete fuzzed style sheet."""
    parts = []
    num_parts = random.randint(1, 15)
    for _ in range(num_parts):
        part_type = random.choices(
            [
                fuzz_ruleset,
                fuzz_at_rule,
                fuzz_garbage,
                fuzz_deeply_nested,
                fuzz_long_value,
            ],
            weights=[60, 20, 10, 3, 2],
        )[0]
        parts.append(part_type())
        parts.append(random_whitespace())
    return "".join(parts)


def _allow_all(uri, name):
    return uri


def _sanitize(css):
    return sanitize_stylesheet("http://example.com/style.css", css, Virtualization(), _allow_all)


def check_output(output):
    """Return a list of problems with one sanitized output."""
    problems = []
    if output.count("{") != output.count("}"):
        problems.append("unbalanced braces")
    for url in _OUTPUT_URL.findall(output):
        if ":" in url.split("/", 1)[0] and not url.lower().startswith(_ALLOWED_SCHEMES):
            problems.append(f"unsafe url {url!r}")
    again = _sanitize(output)
    if again != output:
        problems.append(f"not idempotent: {again[:200]!r}")
    return problems


def run_fuzzer(num_tests, seed=None, verbose=False, save_failures=False):
    """Run the fuzzer against the sanitizer."""
    if seed is not None:
        random.seed(seed)

    crashes = []
    hangs = []
    violations = []
    successes = 0

    print(f"Fuzzing justcss with {num_tests} test cases...")
    start_time = time.time()

    for i in range(num_tests):
        css = generate_fuzzed_css()

        if verbose and i % 100 == 0:
            print(f"  Test {i}/{num_tests}...")

        try:
            start = time.perf_counter()
            output = _sanitize(css)
            elapsed = time.perf_counter() - start

            # Check for hangs (>5 seconds)
            if elapsed > 5.0:
                hangs.append({"test_num": i, "css": css, "time": elapsed})
                if verbose:
                    print(f"  HANG: Test {i} took {elapsed:.2f}s")
                continue

            problems = check_output(output)
            if problems:
                violations.append({"test_num": i, "css": css, "output": output, "problems": problems})
                if verbose:
                    print(f"  VIOLATION: Test {i}: {'; '.join(problems)}")
            else:
                successes += 1

        except Exception as e:
            crashes.append(
                {
                    "test_num": i,
                    "css": css,
                    "error": str(e),
                    "traceback": traceback.format_exc(),
                }
            )
            if verbose:
                print(f"  CRASH: Test {i}: {e}")

    elapsed_total = time.time() - start_time

    # Report results
    print(f"\n{'=' * 60}")
    print("FUZZING RESULTS: justcss")
    print(f"{'=' * 60}")
    print(f"Total tests:    {num_tests}")
    print(f"Successes:      {successes}")
    print(f"Crashes:        {len(crashes)}")
    print(f"Hangs (>5s):    {len(hangs)}")
    print(f"Violations:     {len(violations)}")
    print(f"Total time:     {elapsed_total:.2f}s")
    print(f"Tests/second:   {num_tests / elapsed_total:.1f}")

    if crashes:
        print(f"\n{'=' * 60}")
        print("CRASH DETAILS:")
        print(f"{'=' * 60}")
        for crash in crashes[:10]:  # Show first 10
            print(f"\nTest #{crash['test_num']}:")
            print(f"  CSS: {crash['css'][:200]!r}...")
            print(f"  Error: {crash['error']}")
        if len(crashes) > 10:
            print(f"\n... and {len(crashes) - 10} more crashes")

    if violations:
        print(f"\n{'=' * 60}")
        print("VIOLATION DETAILS:")
        print(f"{'=' * 60}")
        for violation in violations[:10]:
            print(f"\nTest #{violation['test_num']}:")
            print(f"  CSS: {violation['css'][:200]!r}...")
            print(f"  Output: {violation['output'][:200]!r}...")
            for problem in violation["problems"]:
                print(f"  - {problem}")

    if hangs:
        print(f"\n{'=' * 60}")
        print("HANG DETAILS:")
        print(f"{'=' * 60}")
        for hang in hangs[:5]:
            print(f"\nTest #{hang['test_num']} ({hang['time']:.2f}s):")
            print(f"  CSS: {hang['css'][:200]!r}...")

    if save_failures and (crashes or hangs or violations):
        filename = f"fuzz_failures_justcss_{int(time.time())}.txt"
        with open(filename, "w", encoding="utf-8") as f:
            f.write("Fuzzing results for justcss\n")
            f.write(f"Seed: {seed}\n\n")
            for crash in crashes:
                f.write(f"=== CRASH #{crash['test_num']} ===\n")
                f.write(f"CSS:\n{crash['css']}\n")
                f.write(f"Error: {crash['error']}\n")
                f.write(f"Traceback:\n{crash['traceback']}\n\n")
            for violation in violations:
                f.write(f"=== VIOLATION #{violation['test_num']} ===\n")
                f.write(f"CSS:\n{violation['css']}\n")
                f.write(f"Output:\n{violation['output']}\n")
                f.write("Problems:\n" + "\n".join(violation["problems"]) + "\n\n")
            for hang in hangs:
                f.write(f"=== HANG #{hang['test_num']} ({hang['time']:.2f}s) ===\n")
                f.write(f"CSS:\n{hang['css']}\n\n")
        print(f"\nFailures saved to {filename}")

    return not crashes and not hangs and not violations


def main():
    parser = argparse.ArgumentParser(description="Fuzz the CSS sanitizer with hostile input")
    parser.add_argument(
        "--num-tests",
        "-n",
        type=int,
        default=1000,
        help="Number of test cases to generate (default: 1000)",
    )
    parser.add_argument(
        "--seed",
        "-s",
        type=int,
        default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--save-failures",
        action="store_true",
        help="Save failures to a file",
    )
    parser.add_argument(
        "--sample",
        type=int,
        metavar="N",
        help="Just print N sample fuzzed style sheets (no sanitizing)",
    )

    args = parser.parse_args()

    if args.sample:
        if args.seed is not None:
            random.seed(args.seed)
        for i in range(args.sample):
            print(f"=== Sample {i + 1} ===")
            print(generate_fuzzed_css())
            print()
        return

    success = run_fuzzer(
        args.num_tests,
        seed=args.seed,
        verbose=args.verbose,
        save_failures=args.save_failures,
    )

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
