"""JSON response class using orjson serialization.

The ORJSONResponse class is set as the default response class for the whole
FastAPI application and is used by the error-mapping stage, so error bodies
and regular payloads serialize the same way.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI Response class using orjson for JSON serialization.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", exclude_none=True)

        # Use consistent sorting for predictable output
        return orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
