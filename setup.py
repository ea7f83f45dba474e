"""
Build script for justcss with optional mypyc compilation.

Usage:
    # Pure Python build (default)
    python -m build

    # Compiled with mypyc
    JUSTCSS_USE_MYPYC=1 pip install .
"""

import os
import sys
from pathlib import Path

from setuptools import setup

USE_MYPYC = os.environ.get("JUSTCSS_USE_MYPYC", "0") == "1"

# Modules on the per-token hot path. stylesheet.py is excluded: the handler
# subclass and the import closures don't compile cleanly.
MYPYC_MODULES = [
    "src/justcss/lexer.py",
    "src/justcss/properties.py",
    "src/justcss/selectors.py",
]


def build_with_mypyc() -> list:
    """Build extension modules using mypyc."""
    try:
        from mypyc.build import mypycify
    except ImportError:
        print(
            "ERROR: mypyc is not installed. Install with: pip install mypy",
            file=sys.stderr,
        )
        print("Or install with mypyc support: pip install justcss[mypyc]", file=sys.stderr)
        sys.exit(1)

    for module_path in MYPYC_MODULES:
        if not Path(module_path).exists():
            print(f"ERROR: Module not found: {module_path}", file=sys.stderr)
            sys.exit(1)

    print(f"Building justcss with mypyc ({len(MYPYC_MODULES)} modules):")
    for module in MYPYC_MODULES:
        print(f"  - {module}")

    mypyc_options = {
        "opt_level": os.environ.get("MYPYC_OPT_LEVEL", "3"),
        "debug_level": os.environ.get("MYPYC_DEBUG_LEVEL", "0"),
        "verbose": True,
        "separate": False,
        "multi_file": False,
    }

    return mypycify(MYPYC_MODULES, **mypyc_options)


if __name__ == "__main__":
    ext_modules = []

    if USE_MYPYC:
        ext_modules = build_with_mypyc()
    else:
        print("Building justcss in pure Python mode (no mypyc compilation)")
        print("To enable mypyc: JUSTCSS_USE_MYPYC=1 pip install .")

    setup(
        ext_modules=ext_modules,
    )
