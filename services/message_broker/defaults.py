from typing import Any, Dict, List, Optional

from services.message_broker.message_types import (
    ButtonType,
    FleetEventType,
    LanguageCode,
    MessageTemplateType,
)
from services.message_broker.schemas import (
    ResponseOption,
    Template,
    TemplateSeed,
    TemplateVariable,
)


# Baseline English templates seeded into an empty store. For every event they
# render the same header, body and buttons as the hardcoded fallback rules;
# administrators edit or translate them from there.
def _seed(
    event_type: FleetEventType,
    template_type: MessageTemplateType,
    body: str,
    variables: List[tuple],
    header: Optional[str] = None,
    buttons: Optional[List[ResponseOption]] = None,
    category: str = "transport",
    priority: int = 1,
) -> TemplateSeed:
    return TemplateSeed(
        template=Template(
            event_type=event_type.value,
            language_code=LanguageCode.ENGLISH.value,
            template_type=template_type,
            header=header,
            body=body,
            category=category,
            priority=priority,
            response_options=buttons or [],
        ),
        variables=[
            TemplateVariable(
                variable_name=name,
                event_type=event_type.value,
                data_path=path,
                default_value=default,
                **(options[0] if options else {}),
            )
            for name, path, default, *options in variables
        ],
    )


def _button(
    text: str, payload: str, sort_order: int, when: Optional[Dict[str, Any]] = None
) -> ResponseOption:
    return ResponseOption(
        button_text=text,
        button_payload=payload,
        button_type=ButtonType.REPLY,
        sort_order=sort_order,
        display_conditions=dict(when) if when else None,
    )


_PICKUP_GEOFENCE = {"data.geofence.type": "pickup_location"}
# Anything that is not a pickup, including a missing type, is a delivery stop
_DELIVERY_GEOFENCE = {"data.geofence.type": {"ne": "pickup_location"}}


DEFAULT_TEMPLATES: List[TemplateSeed] = [
    _seed(
        FleetEventType.ROUTE_ASSIGNED,
        MessageTemplateType.TEMPLATE,
        header="🚛 New Route Assigned",
        body=(
            "You have been assigned a new delivery route:\n\n"
            "📍 Pickup: {{pickup_location}}\n"
            "🚩 Delivery: {{delivery_location}}\n"
            "⏰ Pickup window: {{pickup_time}}\n"
            "📊 Route: {{route_name}}"
        ),
        buttons=[
            _button("Acknowledge Route", "acknowledge_route", 1),
            _button("View Details", "view_details", 2),
        ],
        variables=[
            ("pickup_location", "data.route.stops[type=pickup].location", "Unknown location"),
            ("delivery_location", "data.route.stops[type=delivery].location", "Unknown location"),
            (
                "pickup_time",
                "data.route.stops[type=pickup].scheduledTime",
                "TBD",
                {"value_format": "time"},
            ),
            ("route_name", "data.route.name", "Transport route"),
        ],
    ),
    _seed(
        FleetEventType.GEOFENCE_ENTER,
        MessageTemplateType.TEMPLATE,
        header="🎯 Arrival Confirmed",
        body="You have arrived at {{geofence_name}}.\n\nPlease confirm when {{operation_type}} is complete.",
        buttons=[
            _button("Pickup Confirmed", "pickup_confirmed", 1, when=_PICKUP_GEOFENCE),
            _button("Cargo Loaded", "loaded", 2, when=_PICKUP_GEOFENCE),
            _button("Delivered", "delivered", 1, when=_DELIVERY_GEOFENCE),
            _button("Issue/Delay", "report_issue", 2, when=_DELIVERY_GEOFENCE),
        ],
        variables=[
            ("geofence_name", "data.geofence.name", "destination"),
            (
                "operation_type",
                "data.geofence.type",
                "delivery",
                {"value_map": {"pickup_location": "pickup", "*": "delivery"}},
            ),
        ],
    ),
    _seed(
        FleetEventType.PICKUP_REMINDER,
        MessageTemplateType.TEMPLATE,
        header="⏰ Pickup Reminder",
        body=(
            "Reminder: Your pickup window starts soon.\n\n"
            "📍 {{pickup_location}}\n"
            "📍 {{pickup_address}}\n"
            "⏰ Window: {{time_window}}\n"
            "📞 Contact: {{customer_contact}}\n\n"
            "Please confirm your arrival time."
        ),
        buttons=[
            _button("On My Way", "en_route", 1),
            _button("Share Location", "share_location", 2),
        ],
        variables=[
            ("pickup_location", "data.stop.location", "Pickup location"),
            ("pickup_address", "data.stop.address", "Address not specified"),
            ("time_window", "data.stop.timeWindow", "ASAP"),
            ("customer_contact", "data.stop.customerContact", "N/A"),
        ],
    ),
    _seed(
        FleetEventType.DELIVERY_DUE,
        MessageTemplateType.TEMPLATE,
        header="🚚 Delivery Due",
        body=(
            "Your delivery is approaching:\n\n"
            "🏭 {{delivery_location}}\n"
            "📍 {{delivery_address}}\n"
            "👤 Contact: {{customer_name}}\n"
            "📝 Special: {{special_instructions}}"
        ),
        buttons=[
            _button("Delivered", "delivered", 1),
            _button("Issue/Delay", "report_issue", 2),
        ],
        variables=[
            ("delivery_location", "data.stop.location", "Delivery location"),
            ("delivery_address", "data.stop.address", "Address not specified"),
            ("customer_name", "data.stop.customerName", "Customer"),
            ("special_instructions", "data.stop.specialInstructions", "Standard delivery"),
        ],
    ),
    _seed(
        FleetEventType.HOS_WARNING,
        MessageTemplateType.TEMPLATE,
        header="⚠️ Hours of Service Warning",
        body=(
            "Drive time limit approaching!\n\n"
            "⏰ Time remaining: {{time_remaining}} minutes\n"
            "🛑 Mandatory break required\n"
            "📍 Next rest area: {{next_rest_location}}\n\n"
            "Please plan your break accordingly."
        ),
        buttons=[
            _button("Taking Break", "need_break", 1),
            _button("Continue to Delivery", "continue_delivery", 2),
        ],
        category="safety",
        variables=[
            ("time_remaining", "data.violation.timeRemaining", "Unknown"),
            ("next_rest_location", "data.violation.nextRestLocation", "Check navigation"),
        ],
    ),
    _seed(
        FleetEventType.VEHICLE_LOCATION,
        MessageTemplateType.TEXT,
        body="📍 Location update received: {{location_address}}\nSpeed: {{vehicle_speed}} km/h",
        category="tracking",
        priority=2,
        variables=[
            ("location_address", "data.location.address", "Current position"),
            ("vehicle_speed", "data.location.speed", "0"),
        ],
    ),
]


def get_default_templates() -> List[TemplateSeed]:
    """Fresh copies of the default seeds, safe for callers to mutate."""
    return [seed.model_copy(deep=True) for seed in DEFAULT_TEMPLATES]
