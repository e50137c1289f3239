"""noderun: execution backend for visual workflow nodes."""

__version__ = "0.1.0"
