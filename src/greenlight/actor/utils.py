"""Key and modifier helpers for ``Input.dispatchKeyEvent``."""

import logging

logger = logging.getLogger(__name__)

# key name -> (code, windowsVirtualKeyCode)
KEY_MAPPINGS: dict[str, tuple[str, int]] = {
    'Control': ('ControlLeft', 17),
    'Backspace': ('Backspace', 8),
}

MODIFIER_BITS = {
    'Alt': 1,
    'Control': 2,
    'Meta': 4,
    'Shift': 8,
}


def get_key_info(key: str) -> tuple[str, int | None]:
    """Get the DOM ``code`` and Windows virtual key code for a named key.

    Returns:
        Tuple of (code, windowsVirtualKeyCode); the key code is None for
        keys without a mapping.
    """
    if key in KEY_MAPPINGS:
        return KEY_MAPPINGS[key]

    logger.warning(f'Unknown key: {key}, using default handling')
    return (key, None)


def calculate_modifier_bitmask(modifiers: list[str] | None) -> int:
    """Calculate the CDP modifier bitmask from modifier names ('Alt', 'Control', 'Meta', 'Shift')."""
    if not modifiers:
        return 0

    bitmask = 0
    for mod in modifiers:
        bitmask |= MODIFIER_BITS.get(mod, 0)
    return bitmask
