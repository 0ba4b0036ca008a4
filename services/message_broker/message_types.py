from enum import Enum


class LanguageCode(str, Enum):
    ENGLISH = "ENG"
    SPANISH = "SPA"
    FRENCH = "FRA"
    GERMAN = "GER"
    PORTUGUESE = "POR"


class MessageTemplateType(str, Enum):
    TEXT = "text"
    TEMPLATE = "template"
    INTERACTIVE = "interactive"


class ButtonType(str, Enum):
    REPLY = "reply"
    CALL = "call"
    URL = "url"


class TranslationSource(str, Enum):
    TEMPLATE = "template"
    FALLBACK = "fallback"


class FleetEventType(str, Enum):
    ROUTE_ASSIGNED = "route.assigned"
    PICKUP_REMINDER = "route.pickup_reminder"
    DELIVERY_DUE = "route.delivery_due"
    VEHICLE_LOCATION = "vehicle.location"
    GEOFENCE_ENTER = "vehicle.geofence.enter"
    HOS_WARNING = "driver.hos.warning"
