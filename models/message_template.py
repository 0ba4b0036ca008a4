"""
Message template database models for the FleetChat backend.

Defines SQLAlchemy ORM models for administrator-managed message templates,
their response options (buttons) and the variable bindings that fill
template placeholders from event data.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from common.constants import (
    MESSAGE_TEMPLATES_TABLE,
    RESPONSE_OPTIONS_TABLE,
    TEMPLATE_VARIABLES_TABLE,
)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class MessageTemplate(Base):
    """Per-(event type, language) message template."""

    __tablename__ = MESSAGE_TEMPLATES_TABLE
    __table_args__ = (
        UniqueConstraint("event_type", "language_code", name="uk_template_event_lang"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    language_code: Mapped[str] = mapped_column(String(3), nullable=False)

    # text / template / interactive
    template_type: Mapped[str] = mapped_column(String(20), nullable=False)

    header: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    footer: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    response_options: Mapped[List["MessageResponseOption"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="MessageResponseOption.sort_order",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class MessageResponseOption(Base):
    """Button attached to a message template."""

    __tablename__ = RESPONSE_OPTIONS_TABLE

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey(f"{MESSAGE_TEMPLATES_TABLE}.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    button_text: Mapped[str] = mapped_column(String(100), nullable=False)
    button_payload: Mapped[str] = mapped_column(String(100), nullable=False)

    # reply / call / url
    button_type: Mapped[str] = mapped_column(String(20), nullable=False, default="reply")

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Conditions stored as JSON: {"data.geofence.type": "pickup_location"}
    display_conditions: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    template: Mapped[MessageTemplate] = relationship(back_populates="response_options")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class MessageTemplateVariable(Base):
    """Binding from a placeholder name to a path inside event data."""

    __tablename__ = TEMPLATE_VARIABLES_TABLE
    __table_args__ = (
        UniqueConstraint("variable_name", "event_type", name="uk_variable_name_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    variable_name: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    data_path: Mapped[str] = mapped_column(String(255), nullable=False)
    default_value: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # {"pickup_location": "pickup", "*": "delivery"}
    value_map: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    value_format: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
