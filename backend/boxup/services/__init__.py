from .entry_filter import filter_entries
from .ranges import UsageRange, resolve_range
from .store import EntryStore
from .usage import UsageAggregator, aggregate_usage

__all__ = ["EntryStore", "UsageAggregator", "UsageRange", "aggregate_usage", "filter_entries", "resolve_range"]
