"""FastAPI middleware package for cross-cutting request/response concerns.

This package contains the middleware chain that produces and consumes the
request context:

- **RequestContextMiddleware**: Builds the request context and echoes its ids
- **ErrorMappingMiddleware**: Converts any failure into a structured error body
- **RequestLoggingMiddleware**: Logs request start, completion and failure
- **operation**: Decorator tagging handler flows with an operation name

Middleware are executed in a specific order to ensure proper request processing:
1. Request context (attaches the context every later stage logs with)
2. Error mapping (sees failures after they were logged)
3. Request logging (logs the handler's outcome, re-raises failures)
"""
