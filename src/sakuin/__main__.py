"""Allow ``python -m sakuin``."""

import sys

from sakuin.cli import main

sys.exit(main())
