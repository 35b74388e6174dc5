"""Configuration models and constants for restlink."""

from restlink.models.base import RestLinkBaseModel
from restlink.models.options import HeaderOptions, RestClientOptions

__all__ = [
    "HeaderOptions",
    "RestClientOptions",
    "RestLinkBaseModel",
]
