"""Zoiner: turns Farcaster mentions into Zora coins."""

__version__ = "0.1.0"
