"""T&B lead engine - lead scoring and email/SMS sequence automation."""

__version__ = "1.0.0"
