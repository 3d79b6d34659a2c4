"""questlog: gamified task tracking with a dual-backend task lifecycle engine."""

__version__ = "0.1.0"
