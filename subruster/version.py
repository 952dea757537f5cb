"""Version string for subruster."""

__version__ = "2.0.0"
