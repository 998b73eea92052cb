"""docshelf: browse and read local markdown documents in the terminal."""

__version__ = "0.1.0"
