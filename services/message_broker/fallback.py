"""
Fallback Generator - hardcoded messages for the known fleet event taxonomy.

Used whenever no usable template exists for an event. Every builder reads
the event defensively and substitutes placeholder literals for missing
values, so generate() returns a message for any input.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from common.constants import GENERIC_NOTICE
from services.message_broker.formatters import format_clock_time
from services.message_broker.message_types import (
    ButtonType,
    FleetEventType,
    MessageTemplateType,
)
from services.message_broker.schemas import GeneratedMessage, MessageButton
from services.message_broker.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)

FallbackBuilder = Callable[[Mapping[str, Any]], GeneratedMessage]


def _reply(text: str, payload: str) -> MessageButton:
    return MessageButton(text=text, payload=payload, type=ButtonType.REPLY)


def _or_default(value: Any, default: str) -> str:
    # Zero and False are real values; None and "" are not
    if value is None or value == "":
        return default
    return str(value)


def format_pickup_time(value: Any) -> str:
    """Scheduled pickup time as HH:MM, or "TBD" when the stop has none."""
    return format_clock_time(value) or "TBD"


class FallbackGenerator:
    def __init__(self, resolver: Optional[VariableResolver] = None) -> None:
        self._resolver = resolver or VariableResolver()
        self._builders: Dict[str, FallbackBuilder] = {
            FleetEventType.ROUTE_ASSIGNED.value: self._route_assigned,
            FleetEventType.PICKUP_REMINDER.value: self._pickup_reminder,
            FleetEventType.VEHICLE_LOCATION.value: self._vehicle_location,
            FleetEventType.GEOFENCE_ENTER.value: self._geofence_enter,
            FleetEventType.DELIVERY_DUE.value: self._delivery_due,
            FleetEventType.HOS_WARNING.value: self._hos_warning,
        }

    @property
    def known_event_types(self) -> List[str]:
        return list(self._builders)

    def generate(self, event: Mapping[str, Any]) -> GeneratedMessage:
        event = event if isinstance(event, Mapping) else {}
        event_type = event.get("eventType") or event.get("type")
        builder = self._builders.get(event_type) if isinstance(event_type, str) else None
        if builder is None:
            logger.debug("No fallback rule for event type %r, using generic notice", event_type)
            builder = self._generic
        return builder(event)

    def _get(self, path: str, event: Mapping[str, Any]) -> Any:
        return self._resolver.resolve(path, event)

    def _route_assigned(self, event: Mapping[str, Any]) -> GeneratedMessage:
        stops = self._get("data.route.stops", event)
        if not isinstance(stops, list):
            stops = []
        pickup = next(
            (s for s in stops if isinstance(s, Mapping) and s.get("type") == "pickup"), {}
        )
        delivery = next(
            (s for s in stops if isinstance(s, Mapping) and s.get("type") == "delivery"), {}
        )

        body = (
            "You have been assigned a new delivery route:\n\n"
            f"📍 Pickup: {_or_default(pickup.get('location'), 'Unknown location')}\n"
            f"🚩 Delivery: {_or_default(delivery.get('location'), 'Unknown location')}\n"
            f"⏰ Pickup window: {format_pickup_time(pickup.get('scheduledTime'))}\n"
            f"📊 Route: {_or_default(self._get('data.route.name', event), 'Transport route')}"
        )
        return GeneratedMessage(
            type=MessageTemplateType.TEMPLATE,
            header="🚛 New Route Assigned",
            body=body,
            buttons=[
                _reply("Acknowledge Route", "acknowledge_route"),
                _reply("View Details", "view_details"),
            ],
        )

    def _pickup_reminder(self, event: Mapping[str, Any]) -> GeneratedMessage:
        body = (
            "Reminder: Your pickup window starts soon.\n\n"
            f"📍 {_or_default(self._get('data.stop.location', event), 'Pickup location')}\n"
            f"📍 {_or_default(self._get('data.stop.address', event), 'Address not specified')}\n"
            f"⏰ Window: {_or_default(self._get('data.stop.timeWindow', event), 'ASAP')}\n"
            f"📞 Contact: {_or_default(self._get('data.stop.customerContact', event), 'N/A')}\n\n"
            "Please confirm your arrival time."
        )
        return GeneratedMessage(
            type=MessageTemplateType.TEMPLATE,
            header="⏰ Pickup Reminder",
            body=body,
            buttons=[
                _reply("On My Way", "en_route"),
                _reply("Share Location", "share_location"),
            ],
        )

    def _vehicle_location(self, event: Mapping[str, Any]) -> GeneratedMessage:
        address = _or_default(self._get("data.location.address", event), "Current position")
        speed = _or_default(self._get("data.location.speed", event), "0")
        return GeneratedMessage(
            type=MessageTemplateType.TEXT,
            body=f"📍 Location update received: {address}\nSpeed: {speed} km/h",
        )

    def _geofence_enter(self, event: Mapping[str, Any]) -> GeneratedMessage:
        name = _or_default(self._get("data.geofence.name", event), "destination")
        is_pickup = self._get("data.geofence.type", event) == "pickup_location"

        if is_pickup:
            buttons = [
                _reply("Pickup Confirmed", "pickup_confirmed"),
                _reply("Cargo Loaded", "loaded"),
            ]
        else:
            buttons = [
                _reply("Delivered", "delivered"),
                _reply("Issue/Delay", "report_issue"),
            ]

        return GeneratedMessage(
            type=MessageTemplateType.TEMPLATE,
            header="🎯 Arrival Confirmed",
            body=(
                f"You have arrived at {name}.\n\n"
                f"Please confirm when {'pickup' if is_pickup else 'delivery'} is complete."
            ),
            buttons=buttons,
        )

    def _delivery_due(self, event: Mapping[str, Any]) -> GeneratedMessage:
        body = (
            "Your delivery is approaching:\n\n"
            f"🏭 {_or_default(self._get('data.stop.location', event), 'Delivery location')}\n"
            f"📍 {_or_default(self._get('data.stop.address', event), 'Address not specified')}\n"
            f"👤 Contact: {_or_default(self._get('data.stop.customerName', event), 'Customer')}\n"
            f"📝 Special: "
            f"{_or_default(self._get('data.stop.specialInstructions', event), 'Standard delivery')}"
        )
        return GeneratedMessage(
            type=MessageTemplateType.TEMPLATE,
            header="🚚 Delivery Due",
            body=body,
            buttons=[
                _reply("Delivered", "delivered"),
                _reply("Issue/Delay", "report_issue"),
            ],
        )

    def _hos_warning(self, event: Mapping[str, Any]) -> GeneratedMessage:
        remaining = _or_default(self._get("data.violation.timeRemaining", event), "Unknown")
        rest = _or_default(self._get("data.violation.nextRestLocation", event), "Check navigation")
        body = (
            "Drive time limit approaching!\n\n"
            f"⏰ Time remaining: {remaining} minutes\n"
            "🛑 Mandatory break required\n"
            f"📍 Next rest area: {rest}\n\n"
            "Please plan your break accordingly."
        )
        return GeneratedMessage(
            type=MessageTemplateType.TEMPLATE,
            header="⚠️ Hours of Service Warning",
            body=body,
            buttons=[
                _reply("Taking Break", "need_break"),
                _reply("Continue to Delivery", "continue_delivery"),
            ],
        )

    def _generic(self, event: Mapping[str, Any]) -> GeneratedMessage:
        for path in ("data.message", "message"):
            text = self._get(path, event)
            if isinstance(text, str) and text.strip():
                return GeneratedMessage(type=MessageTemplateType.TEXT, body=text)
        return GeneratedMessage(type=MessageTemplateType.TEXT, body=GENERIC_NOTICE)
