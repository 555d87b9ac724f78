"""picsearch backend: social login, server-side sessions and image search."""

__version__ = "0.3.0"
