"""fastcert - locally-trusted development certificates."""

__version__ = "1.0.0"
