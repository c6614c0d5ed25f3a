"""Participant verification front end and admin console for the study backend."""

__version__ = "1.0.0"
