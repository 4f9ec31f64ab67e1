"""Allow ``python -m logsweep``."""

from .cli import main

if __name__ == "__main__":
    main()
