"""Core settings, logging and errors."""
