"""Cost Report Infrastructure CDK."""

__version__ = "0.1.0"
