"""Allow ``python -m campaign_sync``."""

import sys

from .cli import main

sys.exit(main())
