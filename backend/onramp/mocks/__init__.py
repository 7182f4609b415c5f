"""In-process stand-ins for external providers."""
