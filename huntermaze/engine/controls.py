from __future__ import annotations

from typing import Mapping

from huntermaze.common.types import Intent

KEY_ALIASES: dict[str, Intent] = {
    "ArrowUp": Intent.UP,
    "w": Intent.UP,
    "W": Intent.UP,
    "ArrowDown": Intent.DOWN,
    "s": Intent.DOWN,
    "S": Intent.DOWN,
    "ArrowLeft": Intent.LEFT,
    "a": Intent.LEFT,
    "A": Intent.LEFT,
    "ArrowRight": Intent.RIGHT,
    "d": Intent.RIGHT,
    "D": Intent.RIGHT,
    " ": Intent.RESTART,
    "Enter": Intent.RESTART,
}


def resolve_key(key: str) -> Intent | None:
    """Map a raw key name or a logical intent name to an Intent."""
    if key in KEY_ALIASES:
        return KEY_ALIASES[key]
    try:
        return Intent(key.lower())
    except ValueError:
        return None


class InputState:
    """Pressed-key buffer sampled by the clock once per tick."""

    def __init__(self) -> None:
        self._pressed: dict[str, bool] = {}

    def press(self, key: str) -> None:
        self._pressed[key] = True

    def release(self, key: str) -> None:
        self._pressed[key] = False

    def replace(self, keys: Mapping[str, bool]) -> None:
        self._pressed = {k: bool(v) for k, v in keys.items()}

    def clear(self) -> None:
        self._pressed.clear()

    def intent(self) -> dict[Intent, bool]:
        intent = {i: False for i in Intent}
        for key, pressed in self._pressed.items():
            if not pressed:
                continue
            resolved = resolve_key(key)
            if resolved is not None:
                intent[resolved] = True
        return intent

    def __call__(self) -> dict[Intent, bool]:
        return self.intent()
