from typing import Any, Callable, Union

import requests
from pydantic import BaseModel, TypeAdapter, ValidationError

from ninja_dispatch.errors import (
    InputValidationError,
    OutputValidationError,
    generate_error,
)
from ninja_dispatch.logger import NULL_LOGGER, LogMessages as ms
from ninja_dispatch.services.transport import execute

Schema = Union[type, TypeAdapter]


def validate(schema: Schema, data: Any) -> Any:
    """Parse-or-fail against a pydantic model class or a TypeAdapter."""
    if isinstance(schema, TypeAdapter):
        return schema.validate_python(data)
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_validate(data)
    raise TypeError(f"Unsupported schema: {schema!r}")


def invoke(
    input_schema: Schema,
    output_schema: Schema,
    raw_args: Any,
    transport: Callable[[Any], requests.Response],
    exceptional: bool = False,
    log=None,
) -> Any:
    """
    The single path every remote operation takes.

    validate input -> call -> parse body by content type -> raise on non-200
    -> validate output. `exceptional` lets a body through when it does not
    match `output_schema` (binary payloads such as waybill PDFs).
    """
    log = log or NULL_LOGGER

    log.info(ms.VALIDATING_API_CALL_ARGS)
    try:
        args = validate(input_schema, raw_args)
    except ValidationError as e:
        log.bind(error=str(e)).error(ms.INVALID_API_CALL_ARGS)
        raise InputValidationError(str(e), errors=e.errors()) from e
    log.info(ms.VALID_API_CALL_ARGS)

    log.info(ms.CALLING_API)
    result = execute(lambda: transport(args))
    log.bind(status=result.status_code).info(ms.API_RESPONDED)

    log.info(ms.GETTING_RESPONSE_BODY)
    data = result.body.value
    log.bind(kind=result.body.kind).info(ms.GOT_RESPONSE_BODY)

    if not result.ok:
        err = generate_error(data, status_code=result.status_code)
        log.bind(error=str(err), status=result.status_code).error(ms.API_RESPONDED_WITH_ERROR)
        raise err

    log.info(ms.VALIDATING_API_RESPONSE)
    try:
        output = validate(output_schema, data)
    except ValidationError as e:
        if not exceptional:
            log.bind(error=str(e)).error(ms.INVALID_API_RESPONSE)
            raise OutputValidationError(str(e), errors=e.errors()) from e
        output = data

    log.info(ms.VALID_API_RESPONSE)
    return output
