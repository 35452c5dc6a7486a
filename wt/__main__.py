"""Allow `python -m wt`."""

from wt.cli import main

if __name__ == "__main__":
    main()
