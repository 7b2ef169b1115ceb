"""Allow ``python -m bookbuddy.cli`` execution."""

import sys

from bookbuddy.cli.commands import main

sys.exit(main())
