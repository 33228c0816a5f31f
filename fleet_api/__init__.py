"""Fleet API - vehicle rental platform backend."""

__version__ = "1.0.0"
