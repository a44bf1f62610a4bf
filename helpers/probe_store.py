import logging
import re
from enum import Enum
from typing import Mapping, Optional

from helpers.device_profile import ClassificationInput, Orientation
from helpers.globals import cfg

DEFAULT_COOKIE_NAMES = {
    "screen_width": "screen_width",
    "screen_height": "screen_height",
    "orientation": "orientation",
    "has_touch": "has_touch",
    "detected": "device_detected",
}

# At most 9 digits; longer runs are rejected rather than truncated
_LEADING_INT = re.compile(r"\s*(-?\d{1,9})(?!\d)")


class ProbeState(str, Enum):
    PROBE_NEEDED = "probe_needed"
    PROBE_SATISFIED = "probe_satisfied"


def cookie_names() -> dict:
    names = dict(DEFAULT_COOKIE_NAMES)
    configured = cfg("probe.cookies", {}) or {}
    if isinstance(configured, dict):
        names.update({k: v for k, v in configured.items() if k in names and v})
    return names


def skip_param() -> str:
    return cfg("probe.skip_param", "no_reload")


class ProbeResultReader:
    """
    Read-only view over the values an earlier probe round-trip left in the
    client's cookie store. The mapping is supplied by the request layer;
    nothing here writes cookies.
    """

    def __init__(self, cookies: Optional[Mapping] = None, names: Optional[dict] = None):
        self.cookies = cookies or {}
        self.names = names or cookie_names()

    def _raw(self, field: str) -> Optional[str]:
        value = self.cookies.get(self.names[field])
        if value is None:
            return None
        return str(value)

    def _dimension(self, field: str) -> Optional[int]:
        raw = self._raw(field)
        if raw is None:
            return None

        m = _LEADING_INT.match(raw)
        value = int(m.group(1)) if m else -1
        if value < 0:
            logging.warning(f"[Probe] Ignoring invalid {field} value: {raw[:32]!r}")
            return None
        return value

    @property
    def screen_width(self) -> Optional[int]:
        return self._dimension("screen_width")

    @property
    def screen_height(self) -> Optional[int]:
        return self._dimension("screen_height")

    @property
    def orientation(self) -> Optional[Orientation]:
        raw = self._raw("orientation")
        if raw is None:
            return None
        try:
            return Orientation(raw.strip().lower())
        except ValueError:
            logging.warning(f"[Probe] Ignoring invalid orientation value: {raw!r}")
            return None

    @property
    def has_touch(self) -> Optional[bool]:
        raw = self._raw("has_touch")
        if raw is None:
            return None
        return raw.strip() == "true"

    @property
    def detected(self) -> bool:
        return self._raw("detected") == "1"

    def build_input(self, user_agent: Optional[str]) -> ClassificationInput:
        return ClassificationInput(
            user_agent=user_agent or "",
            screen_width=self.screen_width,
            screen_height=self.screen_height,
            orientation=self.orientation,
            has_touch=self.has_touch,
        )


def build_input(user_agent: Optional[str], cookies: Optional[Mapping] = None) -> ClassificationInput:
    return ProbeResultReader(cookies).build_input(user_agent)


def skip_probe_requested(args: Optional[Mapping]) -> bool:
    return bool(args) and skip_param() in args


def auto_reload_enabled() -> bool:
    return bool(cfg("probe.auto_reload", True))


def probe_state(screen_known: bool, skip_probe: bool, auto_reload: bool = True) -> ProbeState:
    """
    Decide whether the request layer has to run the client-side probe
    before answering. Once the probe ran (skip flag on the re-issued request)
    the answer is always PROBE_SATISFIED, even if no metrics came back.
    With auto_reload off the probe is never requested and unknown screens
    keep their guessed defaults.
    """
    if screen_known or skip_probe or not auto_reload:
        return ProbeState.PROBE_SATISFIED
    return ProbeState.PROBE_NEEDED
