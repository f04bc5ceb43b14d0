import sys

from trader.main import main

if __name__ == "__main__":
    sys.exit(main())
