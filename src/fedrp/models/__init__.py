"""Shared model base for fedrp records."""

from fedrp.models.base import FedRPBaseModel

__all__ = ["FedRPBaseModel"]
