"""chatledger - chat session and message persistence engine."""

__version__ = "0.1.0"
