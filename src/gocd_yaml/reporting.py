"""Uniform response envelope for the boundary operations.

Every public operation answers with an EngineResponse. A collection that
carries file errors is still a ``success``; ``bad_request`` and ``error``
are reserved for failures of the request itself.
"""

import functools
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from gocd_yaml.codes import ENGINE_SCOPE, ErrorCode
from gocd_yaml.contracts import Capabilities, PluginError
from gocd_yaml.kernel.collection import ConfigCollection

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


class Outcome(str, Enum):
    SUCCESS = "success"
    BAD_REQUEST = "bad_request"
    ERROR = "error"


class RequestError(ValueError):
    """The caller sent something the engine cannot act on."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EngineResponse(BaseModel):
    """What the hosting layer serializes outward."""
    outcome: Outcome
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS


def success(body: Any, headers: Optional[Dict[str, str]] = None) -> EngineResponse:
    return EngineResponse(
        outcome=Outcome.SUCCESS,
        body=body,
        headers=headers if headers is not None else {"Content-Type": JSON_CONTENT_TYPE},
    )


def bad_request(message: str) -> EngineResponse:
    return EngineResponse(
        outcome=Outcome.BAD_REQUEST,
        body={"message": message},
        headers={"Content-Type": JSON_CONTENT_TYPE},
    )


def internal_error(exc: BaseException) -> EngineResponse:
    """A fresh, finalized collection holding one synthetic error."""
    collection = ConfigCollection()
    collection.add_error(ENGINE_SCOPE, PluginError(
        message=f"internal error: {type(exc).__name__}: {exc}",
        location=ENGINE_SCOPE,
        code=ErrorCode.INTERNAL_ERROR,
    ))
    collection.finalize()
    body = collection.to_json()
    body.pop("target-version", None)
    return EngineResponse(
        outcome=Outcome.ERROR,
        body=body,
        headers={"Content-Type": JSON_CONTENT_TYPE},
    )


def capabilities_body() -> Dict[str, bool]:
    return Capabilities().model_dump()


def handling_errors(func: Callable[..., EngineResponse]) -> Callable[..., EngineResponse]:
    """Turn RequestError into bad_request and anything unexpected into error."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> EngineResponse:
        try:
            return func(*args, **kwargs)
        except RequestError as e:
            logger.info("Bad request to %s: %s", func.__name__, e.message)
            return bad_request(e.message)
        except Exception as e:
            logger.exception("Unexpected failure in %s", func.__name__)
            return internal_error(e)

    return wrapper
