# =============================================================================
# Action Resolution
# =============================================================================

from dataclasses import replace

from nunchux.items import Item
from nunchux.models import Action, Settings

# Shown by the action menu, in this order
ACTION_CHOICES: list[tuple[Action, str]] = [
    (Action.POPUP, "Open in popup"),
    (Action.WINDOW, "Open in window"),
    (Action.BACKGROUND_WINDOW, "Open in background window"),
    (Action.PANE_RIGHT, "Open in pane to the right"),
    (Action.PANE_LEFT, "Open in pane to the left"),
    (Action.PANE_ABOVE, "Open in pane above"),
    (Action.PANE_BELOW, "Open in pane below"),
]


def direct_action_keys(settings: Settings) -> list[tuple[str, Action]]:
    """Configured direct-action keys, in resolution priority order."""
    return [
        (settings.popup_key, Action.POPUP),
        (settings.window_key, Action.WINDOW),
        (settings.background_window_key, Action.BACKGROUND_WINDOW),
        (settings.pane_right_key, Action.PANE_RIGHT),
        (settings.pane_left_key, Action.PANE_LEFT),
        (settings.pane_above_key, Action.PANE_ABOVE),
        (settings.pane_below_key, Action.PANE_BELOW),
    ]


def resolve_action(key: str, settings: Settings) -> Action | str:
    """
    Map the key the picker reports to a launch action.

    Direct-action keys win, then the secondary key; anything else,
    including "" (the accept key), is the primary action. Unset (empty)
    direct keys never match.
    """
    if key:
        for action_key, action in direct_action_keys(settings):
            if action_key and key == action_key:
                return action
        if settings.secondary_key and key == settings.secondary_key:
            return settings.secondary_action
    return settings.primary_action


def resolve_item_action(key: str, settings: Settings, item: Item) -> Action | str:
    """
    resolve_action with the item's own primary/secondary actions standing
    in for the global ones. Direct-action keys are unaffected.
    """
    return resolve_action(key, replace(
        settings,
        primary_action=item.get_primary_action() or settings.primary_action,
        secondary_action=item.get_secondary_action() or settings.secondary_action,
    ))
