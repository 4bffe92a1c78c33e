"""Mentor–mentee matching engine for alumni mentoring programs."""

__version__ = "0.1.0"
