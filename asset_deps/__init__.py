"""Transitive dependency analysis for packaged content files."""

__version__ = '1.0.0'
