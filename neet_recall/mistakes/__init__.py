from .aggregator import BatchResult, FailedItem, MistakeAggregator

__all__ = ["BatchResult", "FailedItem", "MistakeAggregator"]
