"""Allow ``python -m confstore``."""

from __future__ import annotations

import sys

import confstore.cli

if __name__ == "__main__":
    sys.exit(confstore.cli.main())
