from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.message_broker.message_types import (
    ButtonType,
    MessageTemplateType,
    TranslationSource,
)


def normalize_variable_name(name: str) -> str:
    """Strip placeholder braces so '{{pickup_location}}' and 'pickup_location' match."""
    return (name or "").strip().strip("{}").strip()


# ========== Inbound event ==========


class FleetEvent(BaseModel):
    """Telematics event as received from the fleet provider webhook.

    Only the envelope is validated; ``data`` is whatever the provider sent.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: Optional[str] = Field(default=None, alias="eventType")
    type: Optional[str] = None
    timestamp: Optional[Union[datetime, str]] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None

    @field_validator("data", mode="before")
    @classmethod
    def _null_data_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_payload(self) -> Dict[str, Any]:
        """Plain mapping in the provider's camelCase shape, as the engine reads it."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ========== Template store records ==========


class ResponseOption(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    button_text: str
    button_payload: str
    button_type: ButtonType = ButtonType.REPLY
    sort_order: int = 1
    display_conditions: Optional[Dict[str, Any]] = None
    is_active: bool = True


class Template(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    event_type: str
    language_code: str
    template_type: MessageTemplateType
    header: Optional[str] = None
    body: str
    footer: Optional[str] = None
    category: Optional[str] = None
    priority: int = 1
    is_active: bool = True
    response_options: List[ResponseOption] = Field(default_factory=list)


class TemplateVariable(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    variable_name: str
    event_type: str
    data_path: str
    default_value: Optional[str] = None
    description: Optional[str] = None
    is_required: bool = False
    # Raw value -> display text; "*" catches any other resolved value
    value_map: Optional[Dict[str, str]] = None
    # Name of a formatter in formatters.VALUE_FORMATTERS, e.g. "time"
    value_format: Optional[str] = None

    @field_validator("variable_name")
    @classmethod
    def _strip_braces(cls, value: str) -> str:
        return normalize_variable_name(value)


class TemplateSeed(BaseModel):
    """A template plus the variable bindings its placeholders need."""

    template: Template
    variables: List[TemplateVariable] = Field(default_factory=list)


# ========== Engine output ==========


class MessageButton(BaseModel):
    text: str
    payload: str
    type: ButtonType = ButtonType.REPLY


class GeneratedMessage(BaseModel):
    """Channel-agnostic message descriptor handed to the dispatcher."""

    type: MessageTemplateType
    header: Optional[str] = None
    body: str
    footer: Optional[str] = None
    buttons: Optional[List[MessageButton]] = None


class TranslationResult(BaseModel):
    event_type: Optional[str] = None
    language_code: str
    source: TranslationSource
    message: GeneratedMessage


# ========== HTTP API ==========


class TranslateRequest(BaseModel):
    event: FleetEvent
    language_code: Optional[str] = None


class InitializeTemplatesResponse(BaseModel):
    initialized: int


class LanguagesResponse(BaseModel):
    languages: List[str]
    default: str
