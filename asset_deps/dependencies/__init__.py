"""Dependency resolution."""

from asset_deps.dependencies.analyzer import DependencyAnalyzer

__all__ = ['DependencyAnalyzer']
