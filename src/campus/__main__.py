"""Entry point for ``python -m campus``."""

from campus.cli import main

if __name__ == "__main__":
    main()
