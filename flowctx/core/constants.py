"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# HTTP status ranges
HTTP_400_BAD_REQUEST = 400
HTTP_500_INTERNAL_SERVER_ERROR = 500

# Message returned to clients instead of internal failure details
REDACTED_INTERNAL_MESSAGE = "An internal server error occurred"
