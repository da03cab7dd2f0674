"""Pydantic schema models for API responses.

The schemas document the wire format of responses in the generated OpenAPI
description and validate it before serialization.
"""
