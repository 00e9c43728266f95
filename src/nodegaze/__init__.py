"""NodeGaze — Lightning node event propagation and notification delivery."""

__version__ = "0.1.0"
