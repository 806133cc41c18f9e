"""Schema registry and synthesizers for anonymous admin modules."""
