"""Base Pydantic model configuration for fedrp models.

All fedrp records inherit from FedRPBaseModel to ensure consistent behavior:
- Immutability (frozen=True): a cached record is replaced, never mutated
- Strict validation (extra="forbid") to catch typos and invalid fields
- Flexible field naming (populate_by_name=True) so camelCase wire names
  and snake_case attribute names are both accepted
"""

from pydantic import BaseModel, ConfigDict


class FedRPBaseModel(BaseModel):
    """Base model for all fedrp records.

    Example:
        >>> from pydantic import Field
        >>> class MyRecord(FedRPBaseModel):
        ...     op_id: str
        ...     count: int = Field(default=0, ge=0)
        >>>
        >>> obj = MyRecord(op_id="https://op.example.com", count=5)
        >>> obj.count = 10  # Raises ValidationError (frozen)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
