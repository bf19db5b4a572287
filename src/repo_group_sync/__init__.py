"""Clone and update groups of git repositories with live progress."""

__version__ = "1.0.0"
