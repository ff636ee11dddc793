"""Mail agent: keyword, priority and topic analysis for incoming mail."""

__version__ = "0.1.0"
