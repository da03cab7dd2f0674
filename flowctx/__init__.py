"""flowctx - request context propagation and contextual logging for async services.

flowctx carries per-request diagnostic metadata (transaction id, correlator,
operation, user, realm, ...) through an asyncio request pipeline and annotates
every log record emitted on behalf of a request with that metadata.

Architecture Overview:
- **Core Layer**: Request context values, flow-scoped propagation, lifecycle
  signals with contextual logging, configuration and the exception taxonomy
- **API Layer**: FastAPI application factory and the middleware chain that
  populates the context, logs the request lifecycle and maps errors

Context never rides on a thread. It follows the logical request flow across
tasks and executor hand-offs, and it is mirrored into a per-thread diagnostic
store only for the duration of a single log action.
"""
