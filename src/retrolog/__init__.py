"""RetroLog feed synchronization and moderation core."""

__version__ = "0.1.0"
