"""Allow ``python -m pricewatch``."""

import sys

from pricewatch.main import main

sys.exit(main())
