"""Allow ``python -m fastcert``."""

import sys

from fastcert.cli import main

if __name__ == "__main__":
    sys.exit(main())
