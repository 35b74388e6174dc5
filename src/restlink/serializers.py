"""Request/response body serializers.

A serializer turns a request value into JSON text and response text back into
a value of the declared result type. Two implementations ship with restlink:

- CamelCaseJsonSerializer (default): field names and mapping keys are written
  in lowerCamelCase with compact separators. On read, camelCase keys are
  matched to the snake_case fields of models, dataclasses and TypedDicts in the
  result type; keys of plain mappings are kept as sent.
- PlainJsonSerializer: keys are written and read as they are.

Values are dumped with pydantic (models, dataclasses, datetimes, enums ...)
and results are validated with a cached ``TypeAdapter`` for the result type.

The process-wide default can be swapped wholesale with ``use_serializer()``;
a single call can pass its own serializer without touching the default.

Example:
    >>> serializer = CamelCaseJsonSerializer()
    >>> serializer.serialize({"display_name": "A"})
    '{"displayName":"A"}'
    >>> serializer.deserialize('{"displayName":"A"}', dict[str, str])
    {'displayName': 'A'}
"""

from __future__ import annotations

import dataclasses
import json
import re
import types
from collections.abc import Mapping
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    Protocol,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from pydantic import BaseModel, TypeAdapter
from pydantic.alias_generators import to_camel
from pydantic_core import to_jsonable_python
from typing_extensions import is_typeddict

_CAMEL_KEY = re.compile(r"^[a-z][a-z0-9]*(?:[A-Z][A-Za-z0-9]*)+$")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

_COMPACT_SEPARATORS = (",", ":")


@runtime_checkable
class Serializer(Protocol):
    """Body serializer used by RestClient."""

    def serialize(self, value: Any) -> str:
        """Serialize a request value to text."""
        ...

    def deserialize(self, text: str | None, result_type: Any) -> Any | None:
        """Deserialize response text into ``result_type``; empty text gives None."""
        ...


@lru_cache(maxsize=256)
def _cached_adapter(result_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(result_type)


def _adapter(result_type: Any) -> TypeAdapter[Any]:
    try:
        return _cached_adapter(result_type)
    except TypeError:
        # unhashable type expressions are not cached
        return TypeAdapter(result_type)


def _camel_key(key: Any) -> Any:
    if isinstance(key, str) and key.isidentifier():
        return to_camel(key)
    return key


def _snake_key(key: Any) -> Any:
    if isinstance(key, str) and _CAMEL_KEY.match(key):
        return _CAMEL_BOUNDARY.sub("_", key).lower()
    return key


def _convert_keys(data: Any, convert: Any) -> Any:
    if isinstance(data, dict):
        return {convert(k): _convert_keys(v, convert) for k, v in data.items()}
    if isinstance(data, list):
        return [_convert_keys(item, convert) for item in data]
    return data


def _field_types(result_type: Any) -> dict[str, Any] | None:
    """Accepted keys and their types for structured result types, else None."""
    if isinstance(result_type, type) and issubclass(result_type, BaseModel):
        fields: dict[str, Any] = {}
        for name, info in result_type.model_fields.items():
            fields[name] = info.annotation
            if info.alias:
                fields[info.alias] = info.annotation
        return fields
    if isinstance(result_type, type) and dataclasses.is_dataclass(result_type):
        hints = get_type_hints(result_type)
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(result_type)}
    if is_typeddict(result_type):
        return get_type_hints(result_type)
    return None


def _match_keys(data: Any, result_type: Any) -> Any:
    """Rename camelCase keys onto the snake_case fields ``result_type`` declares.

    Only keys that name no field as sent, and whose snake_case form does, are
    renamed. Plain mapping keys and unknown keys are left alone.
    """
    fields = _field_types(result_type)
    if fields is not None:
        if not isinstance(data, dict):
            return data
        matched = {}
        for key, value in data.items():
            name = key
            if key not in fields and _snake_key(key) in fields:
                name = _snake_key(key)
            matched[name] = _match_keys(value, fields.get(name, Any))
        return matched

    origin = get_origin(result_type)
    args = get_args(result_type)
    if origin is Annotated:
        return _match_keys(data, args[0])
    if origin is Union or origin is types.UnionType:
        for arg in args:
            if arg is type(None):
                continue
            if isinstance(data, dict):
                fits = _field_types(arg) is not None or _is_mapping(arg)
            else:
                fits = isinstance(data, list) and bool(get_args(arg)) and not _is_mapping(arg)
            if fits:
                return _match_keys(data, arg)
        return data
    if not args:
        return data
    if isinstance(data, dict) and _is_mapping(result_type):
        value_type = args[-1]
        return {key: _match_keys(value, value_type) for key, value in data.items()}
    if isinstance(data, list):
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            return [_match_keys(item, arg) for item, arg in zip(data, args)] + data[len(args) :]
        return [_match_keys(item, args[0]) for item in data]
    return data


def _is_mapping(result_type: Any) -> bool:
    origin = get_origin(result_type) or result_type
    return isinstance(origin, type) and issubclass(origin, Mapping)


class CamelCaseJsonSerializer:
    """JSON serializer with lowerCamelCase keys on the wire.

    Args:
        process_dictionary_keys: Also convert keys of plain mappings, not only
            model field names. Both end up as dict keys once dumped, so
            disabling this leaves every key untouched on write.
    """

    def __init__(self, process_dictionary_keys: bool = True) -> None:
        self.process_dictionary_keys = process_dictionary_keys

    def serialize(self, value: Any) -> str:
        data = to_jsonable_python(value, by_alias=True)
        if self.process_dictionary_keys:
            data = _convert_keys(data, _camel_key)
        return json.dumps(data, separators=_COMPACT_SEPARATORS, ensure_ascii=False)

    def deserialize(self, text: str | None, result_type: Any) -> Any | None:
        if not text:
            return None
        data = json.loads(text)
        if self.process_dictionary_keys:
            data = _match_keys(data, result_type)
        return _adapter(result_type).validate_python(data)


class PlainJsonSerializer:
    """JSON serializer that leaves keys exactly as the value names them.

    Args:
        **dumps_options: Extra keyword arguments for ``json.dumps``
            (e.g. ``indent=2`` or ``sort_keys=True``).
    """

    def __init__(self, **dumps_options: Any) -> None:
        self.dumps_options: dict[str, Any] = {
            "separators": _COMPACT_SEPARATORS,
            "ensure_ascii": False,
            **dumps_options,
        }

    def serialize(self, value: Any) -> str:
        return json.dumps(to_jsonable_python(value, by_alias=True), **self.dumps_options)

    def deserialize(self, text: str | None, result_type: Any) -> Any | None:
        if not text:
            return None
        return _adapter(result_type).validate_json(text)


_current_serializer: Serializer = CamelCaseJsonSerializer()


def get_default_serializer() -> Serializer:
    """Return the process-wide default serializer."""
    return _current_serializer


def use_serializer(serializer: Serializer) -> None:
    """Replace the process-wide default serializer."""
    global _current_serializer
    _current_serializer = serializer


def use_camel_case_json(process_dictionary_keys: bool = True) -> None:
    """Make CamelCaseJsonSerializer the process-wide default."""
    use_serializer(CamelCaseJsonSerializer(process_dictionary_keys=process_dictionary_keys))


def use_plain_json(**dumps_options: Any) -> None:
    """Make PlainJsonSerializer the process-wide default."""
    use_serializer(PlainJsonSerializer(**dumps_options))


def deserialize_body(
    text: str | None, result_type: Any, serializer: Serializer | None = None
) -> Any | None:
    """Deserialize a response body with ``serializer`` or the default.

    Empty text returns None without calling the serializer, so custom
    serializers never see an empty document.
    """
    if not text:
        return None
    return (serializer or _current_serializer).deserialize(text, result_type)
