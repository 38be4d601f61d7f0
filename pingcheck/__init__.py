"""ICMP ping checks against configured targets, reported as connectivity metrics."""

__version__ = "0.1.0"

__all__ = ["__version__"]