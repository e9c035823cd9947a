import sys

from coin_scout.cli import main

if __name__ == "__main__":
    sys.exit(main())
