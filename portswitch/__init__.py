"""Forward a local listening port to one of several saved TCP targets."""

__version__ = "0.2.0"