"""HTTP API layer with FastAPI.

This package implements the HTTP boundary of the service: the application
factory and the middleware chain that owns the request context.

Key components:
- **main**: Application factory and endpoint registration
- **middleware**: Cross-cutting concerns for all requests
  - Request identity (transaction id and correlator) and context attachment
  - Error mapping from the exception taxonomy to HTTP responses
  - Access logging driven by flow lifecycle signals
  - Operation tagging for handlers
- **schemas**: Pydantic models for the error body
- **utils**: orjson-backed response class

Design principles:
- **Async-first**: All middleware and endpoints use async/await
- **Single error formatter**: Only the error-mapping stage builds error responses
- **Context follows the flow**: Nothing in this layer relies on thread identity
"""
