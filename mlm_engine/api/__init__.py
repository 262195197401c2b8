"""Callable operations consumed by the web client."""
