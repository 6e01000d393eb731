"""Common utilities shared across the search engine.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``circuit_breaker``: fail-fast guard for calls to external services.

Import pattern:
- from knowledge_search.common.config import SearchConfig
- from knowledge_search.common.logging import configure_logging
"""
