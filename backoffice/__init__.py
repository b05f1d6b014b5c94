"""Transactional workflow engine for a consumables manufacturer's back office."""

__version__ = "1.0.0"
