"""Duck Racing - capacity-bounded sign-up races for chat channels."""

__version__ = "0.1.0"
