"""Allow ``python -m gtfs_store``."""

import sys

from gtfs_store.cli import main

sys.exit(main())
