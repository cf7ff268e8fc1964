from __future__ import annotations

"""Name generation and validation.

CONTRACT
- Inputs: Source names, provider names
- Outputs (required):
  - new_dispatch_id() returns time-sortable string
  - validate_source_name() returns validated name or raises
- Invariants:
  - Source names are non-empty and contain no wildcard characters (`*?[`)
  - Provider names are non-empty; wildcards are allowed (resolved by the registry)
- Failure:
  - Raises ValueError on invalid names
"""

import datetime
import random
import string

_WILDCARD_CHARS = frozenset("*?[")


def has_wildcard(text: str) -> bool:
    return any(c in _WILDCARD_CHARS for c in text)


def new_dispatch_id() -> str:
    # YYYYMMDD_HHMMSS_<rand4>
    ts = datetime.datetime.now(datetime.UTC).strftime("%Y%m%d_%H%M%S")
    suffix = "".join(random.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"{ts}_{suffix}"


def validate_source_name(name: str) -> str:
    if not name or not name.strip():
        raise ValueError("Invalid source name. The name must not be empty.")
    if has_wildcard(name):
        raise ValueError(f"Invalid source name '{name}'. Wildcard characters are not supported.")
    return name


def validate_provider_name(name: str) -> str:
    if not name or not name.strip():
        raise ValueError("Invalid provider name. The name must not be empty.")
    return name.strip()


if __name__ == "__main__":
    import argparse
    import sys

    parser = argparse.ArgumentParser(description="Utilities for source and provider names")
    parser.add_argument("--new-dispatch-id", action="store_true", help="Generate a new dispatch ID")
    parser.add_argument("--validate-source", help="Validate a source name (returns it or fails)")
    args = parser.parse_args()

    try:
        if args.new_dispatch_id:
            print(new_dispatch_id())
        elif args.validate_source:
            print(validate_source_name(args.validate_source))
        else:
            parser.print_help()
            sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
