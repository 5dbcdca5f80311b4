from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_FILE_NAME = "unknown"


class BinaryAttachmentModel(BaseModel):
    """One named binary payload carried by an input item."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    data: str
    mime_type: str = Field(default="", alias="mimeType")
    file_name: str = Field(default=DEFAULT_FILE_NAME, alias="fileName")

    @field_validator("mime_type", mode="before")
    @classmethod
    def _empty_mime_type(cls, value: Any) -> str:
        return value or ""

    @field_validator("file_name", mode="before")
    @classmethod
    def _default_file_name(cls, value: Any) -> str:
        return value or DEFAULT_FILE_NAME


class InputItemModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    json_payload: dict[str, Any] = Field(default_factory=dict, alias="json")
    binary: dict[str, BinaryAttachmentModel] = Field(default_factory=dict)


class ConversionOptions(BaseModel):
    """Per-item conversion settings."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    binary_property_name: str = "data"
    include_file_name: bool = True
    include_sheet_name: bool = True
    include_row_numbers: bool = False
    separate_sheets: bool = False
    continue_on_failure: bool = False

    def merged(self, overrides: dict[str, Any] | None) -> "ConversionOptions":
        if not overrides:
            return self
        return ConversionOptions.model_validate({**self.model_dump(), **overrides})


def validate_input_item(payload: dict[str, Any]) -> InputItemModel:
    return InputItemModel.model_validate(payload)


def conversion_options_json_schema() -> dict[str, Any]:
    """Expose JSON schema for tests and tooling."""

    return ConversionOptions.model_json_schema()
