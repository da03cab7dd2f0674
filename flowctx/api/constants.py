"""API-related constants."""

# HTTP Headers
CORRELATOR_HEADER = "X-Correlator"
TRANSACTION_ID_HEADER = "X-Transaction-Id"

# Client metadata
USER_AGENT_MAX_LENGTH = 200
