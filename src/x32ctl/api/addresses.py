"""X32 OSC address space used by this package.

Based on the unofficial X32/M32 OSC Remote Protocol documentation.
"""

import re

DEFAULT_PORT = 10023
DEFAULT_LOCAL_PORT = 10024

# Scene slots 0-99
MAX_SCENES = 100
SCENE_NAME_MAX_LENGTH = 64

# Console info
INFO = "/xinfo"
STATUS = "/status"

# Scene management
SCENE_CURRENT = "/-show/prepos/current"
SCENE_GO = "/-action/goscene"  # fire-and-forget, never acknowledged

# Remote session keep-alive (console drops the session after 10s without it)
XREMOTE = "/xremote"

# Bulk node read; the console replies on the bare address "node"
NODE = "/node"
NODE_REPLY = "node"

SCENE_ADDRESS_PATTERN = re.compile(r"^/-show/showfile/scene/(\d{3})/(name|notes)$")


def format_scene_index(index: int) -> str:
    """Format a scene index the way the console does ("004")."""
    return f"{index:03d}"


def scene_name(index: int) -> str:
    """Return the address of a scene slot's name."""
    return f"/-show/showfile/scene/{format_scene_index(index)}/name"


def scene_notes(index: int) -> str:
    """Return the address of a scene slot's notes."""
    return f"/-show/showfile/scene/{format_scene_index(index)}/notes"
