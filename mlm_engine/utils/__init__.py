"""Shared helpers: money, dates, exceptions, logging and DB decorators."""
