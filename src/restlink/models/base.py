"""Shared pydantic configuration for restlink models.

Options, settings and token records are read concurrently by every call of
a client, so they are frozen once built. Unknown fields are errors rather
than silently ignored, which turns a misspelled option into a failure at
start-up.
"""

from pydantic import BaseModel, ConfigDict


class RestLinkBaseModel(BaseModel):
    """Frozen, strict base for restlink options and token records.

    Example:
        >>> class Limits(RestLinkBaseModel):
        ...     max_items: int
        >>> Limits(max_items=5, max_itmes=6)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )
