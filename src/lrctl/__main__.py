"""Entry point for ``python -m lrctl``."""

from lrctl.launcher import run

if __name__ == "__main__":
    run()
