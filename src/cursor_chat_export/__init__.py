"""Browse and export Cursor chat history."""

__version__ = "0.1.0"
