"""ActivityWatch range analyzer: activity statistics and LLM reports per time window."""

__version__ = "0.1.0"
