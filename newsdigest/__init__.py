"""newsdigest - AI news digest pipeline (dedup step)."""

__version__ = "0.1.0"
