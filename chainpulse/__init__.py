"""chainpulse: live crypto market snapshot, sector hierarchy and treemap layout."""

__version__ = "0.1.0"
