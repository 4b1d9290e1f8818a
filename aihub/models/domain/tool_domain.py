from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _FieldBase(BaseModel):
    """Common descriptor attributes; `type` selects the variant."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    label: str | None = None
    placeholder: str | None = None
    required: bool = False


class TextField(_FieldBase):
    type: Literal["text"]
    default_value: str | None = Field(default=None, alias="defaultValue")


class TextareaField(_FieldBase):
    type: Literal["textarea"]
    default_value: str | None = Field(default=None, alias="defaultValue")


class SelectField(_FieldBase):
    type: Literal["select"]
    options: list[str] = []
    default_value: str | None = Field(default=None, alias="defaultValue")


class CheckboxField(_FieldBase):
    type: Literal["checkbox"]
    default_value: bool | None = Field(default=None, alias="defaultValue")


class NumberField(_FieldBase):
    type: Literal["number"]
    default_value: float | None = Field(default=None, alias="defaultValue")


ToolField = Annotated[
    TextField | TextareaField | SelectField | CheckboxField | NumberField,
    Field(discriminator="type"),
]

ExecutionStatus = Literal["pending", "completed", "error"]


class Tool(BaseModel):
    """Catalog entry from public.tools (read-only for this service)."""

    id: str
    name: str
    description: str | None = None
    category: str | None = None
    credit_cost: int = Field(default=1, ge=0)
    input_schema: list[ToolField] = []
    output_schema: dict[str, Any] | None = None
    webhook_link: str | None = None
    rating: float | None = None
    total_uses: int = 0
    execution_type: str | None = None

    @field_validator("input_schema", mode="before")
    @classmethod
    def _unwrap_fields(cls, value: Any) -> Any:
        # Stored either as a bare list or as {"fields": [...]}
        if value is None:
            return []
        if isinstance(value, dict):
            value = value.get("fields") or []
        # Descriptors without a type render as plain text inputs
        return [
            {**item, "type": item.get("type") or "text"} if isinstance(item, dict) else item
            for item in value
        ]

    @model_validator(mode="after")
    def _unique_field_names(self) -> "Tool":
        names = [field.name for field in self.input_schema]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate input field names: {', '.join(duplicates)}")
        return self


class ToolExecution(BaseModel):
    """Row of public.tool_executions."""

    id: str
    user_id: str
    tool_id: str
    input_data: dict[str, Any] | None = None
    output_data: Any = None
    status: ExecutionStatus
    credits_used: int | None = None
    duration_ms: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
