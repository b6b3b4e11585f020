from .engine import StatsEngine

__all__ = ["StatsEngine"]
