"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_ROLE_NAME_LENGTH = 100
MAX_ROLE_COLOR_LENGTH = 32
MAX_PERMISSION_RESOURCE_LENGTH = 100
MAX_PERMISSION_ACTION_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 255

# Role defaults
DEFAULT_ROLE_COLOR = "blue"

# Permission keys are "resource:action"
PERMISSION_KEY_SEPARATOR = ":"

# Legacy privilege tiers run from 0 to 3 (deprecated, kept for actors.privilege_level)
LEGACY_PRIVILEGE_NONE = 0
LEGACY_PRIVILEGE_SUPER_ADMIN = 3

# Token settings
ACCESS_TOKEN_JTI_LENGTH = 32

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"

# Path markers of handlers that are public by design
DEFAULT_AUDIT_ALLOW_LIST = (
    "auth",
    "public",
    "setup",
    "health",
    "favicon",
    "logo",
)
