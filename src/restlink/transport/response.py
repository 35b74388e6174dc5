"""Response envelope returned by every RestClient verb."""

from __future__ import annotations

import collections.abc
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, get_origin

import httpx

T = TypeVar("T")

_SEQUENCE_ORIGINS = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Collection,
    collections.abc.Iterable,
)


@dataclass(frozen=True)
class RestResponse(Generic[T]):
    """Raw transport response paired with its deserialized result.

    ``has_result`` is False when no result was produced (empty body, or the
    call did not ask for one), which keeps it distinguishable from a body
    that deserialized to a falsy value such as ``0``, ``[]`` or ``False``.

    Attributes:
        original_response: The final ``httpx.Response`` (after any retry);
            ``original_response.request`` echoes the request that was sent.
        result_object: Deserialized body, or None.
        has_result: Whether ``result_object`` holds a deserialized body.
    """

    original_response: httpx.Response
    result_object: T | None = None
    has_result: bool = False

    @property
    def status_code(self) -> int:
        return self.original_response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.original_response.headers

    @classmethod
    def empty(cls, result_type: Any = None) -> RestResponse[Any]:
        """Build a 200 envelope without calling any service.

        Sequence result types (``list[X]``, ``Sequence[X]``, ``Iterable[X]``)
        get an empty list; every other type gets no result.
        """
        response = httpx.Response(200)
        origin = get_origin(result_type) or result_type
        if origin in _SEQUENCE_ORIGINS:
            return cls(original_response=response, result_object=[], has_result=True)
        return cls(original_response=response)
