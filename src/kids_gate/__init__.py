"""Screen-time gate for a children's media launcher."""

__version__ = "0.1.0"
