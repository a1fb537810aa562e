"""``python -m hestonmc``: same as the ``monte-heston-sim`` console script."""

import sys

from hestonmc.cli import main


if __name__ == "__main__":
    sys.exit(main())
