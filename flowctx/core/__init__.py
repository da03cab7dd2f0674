"""Core infrastructure package for request context and contextual logging.

This package provides the foundational components used by the API layer:

- **config**: Centralized configuration management with environment support
- **context**: Copy-on-write request context with typed field accessors
- **carrier**: Flow-scoped propagation of the request context
- **diagnostics**: Per-thread diagnostic store read by the logger
- **signals**: Flow lifecycle signals and contextual log handlers
- **exceptions**: Closed exception taxonomy with HTTP status mapping
- **logging**: Structured logging with context-aware formatters

These modules implement the cross-cutting concerns that keep log lines of
concurrent requests correctly attributed.
"""
