# grocery_shop/errors.py
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError


class FieldError(Exception):
    """Validation failure tied to one or more form fields."""

    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__(errors)


def field_error(field: str, message: str) -> FieldError:
    return FieldError({field: message})


def _clean_message(message: str) -> str:
    # Pydantic prefixes messages raised from validators
    for prefix in ("Value error, ", "Assertion failed, "):
        if message.startswith(prefix):
            return message[len(prefix):]
    return message


def errors_from_pydantic(errors) -> dict:
    """Collapse a pydantic error list to ``{field: first message}``."""
    collected = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "__root__"
        collected.setdefault(field, _clean_message(error.get("msg", "Invalid value.")))
    return collected


async def field_error_handler(request: Request, exc: FieldError):
    return JSONResponse(status_code=422, content={"errors": exc.errors})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"errors": errors_from_pydantic(exc.errors())})


async def pydantic_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"errors": errors_from_pydantic(exc.errors())})


def register_error_handlers(app):
    app.add_exception_handler(FieldError, field_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_handler)


def form_errors(exc) -> dict:
    """Field messages for re-rendering an HTML form."""
    if isinstance(exc, FieldError):
        return exc.errors
    return errors_from_pydantic(exc.errors())
