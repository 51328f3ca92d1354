"""Shared pydantic base for domain models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    """Accepts snake_case names in Python and camelCase keys from upstream JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
