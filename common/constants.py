"""
Application-wide constants for the FleetChat backend.

This module contains all shared constants used across the application.
"""

import os

# ========= Language Configuration =========
# Language used when a request omits one or names an unsupported one
DEFAULT_LANGUAGE_CODE = os.getenv("DEFAULT_LANGUAGE", "ENG").upper()

# Two-letter ISO codes accepted as aliases of the stored three-letter codes
LANGUAGE_ALIASES = {
    "EN": "ENG",
    "ES": "SPA",
    "FR": "FRA",
    "DE": "GER",
    "PT": "POR",
}

# ========= Template Configuration =========
# Placeholder syntax inside template header/body/footer: {{ variable_name }}
PLACEHOLDER_PATTERN = r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}"

# Body used when an unknown event carries no message of its own
GENERIC_NOTICE = "Transport update available"

# ========= Database Configuration =========
# Table names for the template store
MESSAGE_TEMPLATES_TABLE = "message_templates"
RESPONSE_OPTIONS_TABLE = "response_options"
TEMPLATE_VARIABLES_TABLE = "template_variables"
