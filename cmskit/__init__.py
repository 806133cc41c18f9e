"""Schema-driven admin modules for FastAPI."""

__version__ = "0.1.0"
