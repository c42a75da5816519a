"""Strict JSON payload parsing shared by the submission routes."""

import logging
from typing import Type, TypeVar

import pydantic
from fastapi import Request

from school_gateway.shared.errors import BadRequestError, ValidationError

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "body"
    return f"{location}: {error.get('msg', 'invalid value')}"


async def parse_json_payload(request: Request, schema: Type[SchemaT]) -> SchemaT:
    """
    Parse the request body into ``schema`` in one step.

    Raises BadRequestError when the body is not a JSON object and
    ValidationError (with one entry per structural problem) when the object
    does not fit the schema.
    """
    try:
        body = await request.json()
    except ValueError:
        raise BadRequestError("Invalid JSON body")

    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")

    try:
        return schema.model_validate(body)
    except pydantic.ValidationError as e:
        details = [_describe(error) for error in e.errors()]
        logging.info(f"Rejected {schema.__name__} payload with {len(details)} structural error(s)")
        raise ValidationError(details=details, message="Invalid request body")
