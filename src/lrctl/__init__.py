"""lrctl launcher.

Resolves which lrctl container image to run, keeps the launcher's one-flag
configuration in a named volume, and replaces its own executable when a
different build is published.
"""

__version__ = "0.4.0"
