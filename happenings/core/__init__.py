"""Core utilities: civil calendar, configuration and exceptions."""
