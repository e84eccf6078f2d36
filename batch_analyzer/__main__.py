# Allows the package to be run as a script using `python -m batch_analyzer`

from __future__ import annotations

import sys

from batch_analyzer.cli import main

if __name__ == "__main__":
    sys.exit(main())
