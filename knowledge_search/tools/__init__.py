"""Agent-facing tools built on the search engine."""
