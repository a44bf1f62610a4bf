import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from markupsafe import escape


class DeviceCategory(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    BOT = "bot"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


# Keys populated by build_default_custom_vars; anything else is caller-defined
WELL_KNOWN_CUSTOM_VARS = (
    "fontSize", "buttonSize", "navigationStyle",
    "imageQuality", "layout", "hasTouch",
)

# Upper bounds (exclusive) of the responsive width ranges; xl is open-ended
RESOLUTION_RANGES = [
    ("xs", 576),
    ("sm", 768),
    ("md", 992),
    ("lg", 1200),
    ("xl", None),
]


@dataclass(frozen=True)
class ClassificationInput:
    """
    Everything the classifier is allowed to see for one request: the raw
    User-Agent plus whatever a previous probe round-trip stored client-side.
    Screen fields are None when the probe has not reported them.
    """
    user_agent: str = ""
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None
    orientation: Optional[Orientation] = None
    has_touch: Optional[bool] = None

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        if self.user_agent is None:
            object.__setattr__(self, "user_agent", "")

        for name in ("screen_width", "screen_height"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                object.__setattr__(self, name, None)

        if self.has_touch is not None and not isinstance(self.has_touch, bool):
            object.__setattr__(self, "has_touch", None)

        if self.orientation is not None and not isinstance(self.orientation, Orientation):
            try:
                orientation = Orientation(str(self.orientation).lower())
            except ValueError:
                orientation = None
            object.__setattr__(self, "orientation", orientation)

    @property
    def has_screen(self) -> bool:
        return self.screen_width is not None and self.screen_height is not None


@dataclass(frozen=True)
class DeviceProfile:
    user_agent: str
    device_category: DeviceCategory
    browser_name: str
    browser_version: str
    os_name: str
    os_version: str
    screen_width: int
    screen_height: int
    orientation: Orientation
    is_known_screen: bool

    @property
    def is_mobile(self) -> bool:
        return self.device_category is DeviceCategory.MOBILE

    @property
    def is_tablet(self) -> bool:
        return self.device_category is DeviceCategory.TABLET

    @property
    def is_desktop(self) -> bool:
        return self.device_category is DeviceCategory.DESKTOP

    @property
    def is_bot(self) -> bool:
        return self.device_category is DeviceCategory.BOT


class CustomVars(dict):
    """
    Presentation hints keyed by name.

    Only WELL_KNOWN_CUSTOM_VARS have defined meaning; callers may add their
    own keys at any point during the request.
    """

    def __init__(self, *args, **kwargs):
        super().__init__()
        self.update(*args, **kwargs)

    def __setitem__(self, key, value):
        if not isinstance(key, str):
            raise TypeError(f"custom var name must be a string, got {type(key).__name__}")
        if not isinstance(value, (str, int, float, bool)):
            raise TypeError(f"custom var '{key}' has unsupported type {type(value).__name__}")
        super().__setitem__(key, value)

    def update(self, *args, **kwargs):
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def setdefault(self, key, default=None):
        if key not in self:
            self[key] = default
        return self[key]

    def set(self, name: str, value) -> "CustomVars":
        self[name] = value
        return self

    def caller_defined(self) -> dict:
        return {k: v for k, v in self.items() if k not in WELL_KNOWN_CUSTOM_VARS}


class DeviceDetection:
    """
    Result of classifying one request: an immutable DeviceProfile plus the
    CustomVars the caller may keep adjusting while building the response.
    """

    def __init__(self, profile: DeviceProfile, custom_vars: Optional[CustomVars] = None):
        self.profile = profile
        self.custom_vars = custom_vars if custom_vars is not None else CustomVars()

    def __eq__(self, other):
        if not isinstance(other, DeviceDetection):
            return NotImplemented
        return self.profile == other.profile and dict(self.custom_vars) == dict(other.custom_vars)

    def __repr__(self):
        p = self.profile
        return f"<DeviceDetection {p.device_category.value} {p.browser_name}/{p.os_name}>"

    # accessors

    @property
    def user_agent(self) -> str:
        return self.profile.user_agent

    @property
    def device_type(self) -> str:
        return self.profile.device_category.value

    @property
    def browser(self) -> str:
        return self.profile.browser_name

    @property
    def browser_version(self) -> str:
        return self.profile.browser_version

    @property
    def os(self) -> str:
        return self.profile.os_name

    @property
    def os_version(self) -> str:
        return self.profile.os_version

    @property
    def screen_width(self) -> int:
        return self.profile.screen_width

    @property
    def screen_height(self) -> int:
        return self.profile.screen_height

    @property
    def orientation(self) -> str:
        return self.profile.orientation.value

    @property
    def is_known_screen(self) -> bool:
        return self.profile.is_known_screen

    def is_mobile(self) -> bool:
        return self.profile.is_mobile

    def is_tablet(self) -> bool:
        return self.profile.is_tablet

    def is_desktop(self) -> bool:
        return self.profile.is_desktop

    def is_bot(self) -> bool:
        return self.profile.is_bot

    def set_custom_var(self, name: str, value) -> "DeviceDetection":
        self.custom_vars.set(name, value)
        return self

    def get_custom_var(self, name: str, default: Any = None) -> Any:
        return self.custom_vars.get(name, default)

    def all_custom_vars(self) -> dict:
        return dict(self.custom_vars)

    # responsive helpers

    def is_breakpoint(self, min_width: int, max_width: Optional[int] = None) -> bool:
        if max_width is None:
            return self.screen_width >= min_width
        return min_width <= self.screen_width <= max_width

    def resolution_range(self) -> str:
        for name, upper in RESOLUTION_RANGES:
            if upper is None or self.screen_width < upper:
                return name
        return RESOLUTION_RANGES[-1][0]

    def is_resolution_range(self, name: str) -> bool:
        return self.resolution_range() == name

    def responsive_classes(self) -> str:
        return " ".join([
            f"device-{self.device_type}",
            f"orientation-{self.orientation}",
            f"breakpoint-{self.resolution_range()}",
        ])

    # serialization

    def to_dict(self) -> dict:
        p = self.profile
        return {
            "userAgent": p.user_agent,
            "deviceType": p.device_category.value,
            "browser": p.browser_name,
            "browserVersion": p.browser_version,
            "os": p.os_name,
            "osVersion": p.os_version,
            "isMobile": p.is_mobile,
            "isTablet": p.is_tablet,
            "isDesktop": p.is_desktop,
            "isBot": p.is_bot,
            "screenWidth": p.screen_width,
            "screenHeight": p.screen_height,
            "orientation": p.orientation.value,
            "isKnownScreen": p.is_known_screen,
            "customVars": dict(self.custom_vars),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceDetection":
        """
        Rebuild a detection from to_dict() output. The derived is* flags are
        recomputed from deviceType rather than trusted.
        """
        if not isinstance(data, dict):
            raise ValueError("device detection payload must be an object")

        try:
            profile = DeviceProfile(
                user_agent=str(data.get("userAgent", "")),
                device_category=DeviceCategory(data["deviceType"]),
                browser_name=str(data["browser"]),
                browser_version=str(data["browserVersion"]),
                os_name=str(data["os"]),
                os_version=str(data["osVersion"]),
                screen_width=int(data["screenWidth"]),
                screen_height=int(data["screenHeight"]),
                orientation=Orientation(data["orientation"]),
                is_known_screen=bool(data["isKnownScreen"]),
            )
            custom_vars = CustomVars(data.get("customVars") or {})
        except KeyError as e:
            raise ValueError(f"device detection payload is missing {e}") from e
        except TypeError as e:
            raise ValueError(f"invalid device detection payload: {e}") from e

        return cls(profile, custom_vars)

    @classmethod
    def from_json(cls, raw: str) -> "DeviceDetection":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid device detection JSON: {e}") from e
        return cls.from_dict(data)

    # diagnostics

    def _debug_rows(self) -> list:
        def yes_no(flag):
            return "Yes" if flag else "No"

        custom = ", ".join(f"{k}={_format_var(v)}" for k, v in self.custom_vars.items())
        return [
            ("Device Type", self.device_type),
            ("Browser", f"{self.browser} {self.browser_version}".strip()),
            ("Operating System", f"{self.os} {self.os_version}".strip()),
            ("Is Mobile", yes_no(self.is_mobile())),
            ("Is Tablet", yes_no(self.is_tablet())),
            ("Is Desktop", yes_no(self.is_desktop())),
            ("Is Bot", yes_no(self.is_bot())),
            ("Screen Resolution", f"{self.screen_width} x {self.screen_height}"),
            ("Screen Known", yes_no(self.is_known_screen)),
            ("Orientation", self.orientation),
            ("Custom Variables", custom),
        ]

    def debug(self, as_html: bool = False) -> str:
        """Human readable summary of every field, as plain text lines or an HTML table."""
        rows = self._debug_rows()

        if as_html:
            out = ['<div class="device-debug">', "<h3>Device Detection Results</h3>",
                   '<table border="1" cellpadding="5" cellspacing="0">']
            for label, value in rows:
                out.append(f"<tr><th>{escape(label)}</th><td>{escape(value)}</td></tr>")
            out.append("</table>")
            out.append("</div>")
            return "".join(out)

        lines = ["===== Device Detection Results ====="]
        lines.extend(f"{label}: {value}" for label, value in rows)
        return "\n".join(lines) + "\n"


def _format_var(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
