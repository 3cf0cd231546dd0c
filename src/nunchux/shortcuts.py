# =============================================================================
# Shortcut Validation
# =============================================================================

from dataclasses import dataclass, field

from loguru import logger

from nunchux.models import RESERVED_KEYS, SUPPORTED_KEYS, Settings

# Settings fields whose keys cannot be reused as item shortcuts
RESERVING_FIELDS = (
    "primary_key",
    "secondary_key",
    "action_menu_key",
    "toggle_shortcuts_key",
    "popup_key",
    "window_key",
    "background_window_key",
    "pane_right_key",
    "pane_left_key",
    "pane_above_key",
    "pane_below_key",
)


@dataclass
class ShortcutError:
    key: str
    item_name: str
    message: str

    def __str__(self) -> str:
        return f"{self.key}: {self.message}"


def is_valid_key(key: str) -> bool:
    """Check whether the picker recognises ``key`` (case-insensitive)."""
    return key.lower() in SUPPORTED_KEYS


def get_reserved_keys(settings: Settings) -> dict[str, str]:
    """
    Compute the reserved key set from the current settings.

    Returns:
        Mapping of reserved key to the reason (a settings field name, or
        "reserved by nunchux" for the fixed keys)
    """
    reserved = {key: "reserved by nunchux" for key in RESERVED_KEYS}
    for field_name in RESERVING_FIELDS:
        key = getattr(settings, field_name)
        if key:
            reserved[key.lower()] = field_name
    return reserved


def validate_shortcut(
    key: str,
    item_name: str,
    settings: Settings,
    registered: dict[str, str],
) -> ShortcutError | None:
    """
    Validate one shortcut against the key whitelist, reserved keys and
    shortcuts already taken.

    Args:
        key: Shortcut as written in the config
        item_name: Item that wants the shortcut
        settings: Current settings (reserved keys are derived from them)
        registered: Normalized key -> item name of accepted shortcuts

    Returns:
        None if the shortcut is usable, otherwise a ShortcutError
    """
    if not key:
        return None

    normalized = key.lower()

    if not is_valid_key(normalized):
        return ShortcutError(key, item_name, f"'{key}' is not a valid key")

    reason = get_reserved_keys(settings).get(normalized)
    if reason:
        return ShortcutError(key, item_name, f"'{key}' is reserved ({reason})")

    existing = registered.get(normalized)
    if existing is not None and existing != item_name:
        return ShortcutError(key, item_name, f"'{key}' is already used by '{existing}'")

    return None


@dataclass
class ShortcutValidator:
    """Collects shortcuts for one registry build, keeping every rejection."""

    settings: Settings
    shortcuts: dict[str, str] = field(default_factory=dict)
    errors: list[ShortcutError] = field(default_factory=list)

    def register(self, key: str, item_name: str) -> ShortcutError | None:
        if not key:
            return None

        error = validate_shortcut(key, item_name, self.settings, self.shortcuts)
        if error:
            self.errors.append(error)
            logger.debug(
                "Shortcut rejected",
                operation="register_shortcut",
                status="rejected",
                key=key,
                item_name=item_name,
                reason=error.message
            )
            return error

        self.shortcuts[key.lower()] = item_name
        return None

    def has_errors(self) -> bool:
        return len(self.errors) > 0
