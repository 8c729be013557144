from __future__ import annotations

import sys

from . import estimate_cli


def main() -> int:
    return estimate_cli.main()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
