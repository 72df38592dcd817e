"""Metric values, labelled metric vectors, a collector registry, static label trees and a coarse clock."""

__version__ = "0.1.0"

__all__ = ["builder", "parser", "registry", "timer", "value", "vec"]