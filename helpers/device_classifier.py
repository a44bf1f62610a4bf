import logging
import re
from typing import NamedTuple, Optional

from helpers.device_profile import (
    ClassificationInput,
    CustomVars,
    DeviceCategory,
    DeviceDetection,
    DeviceProfile,
    Orientation,
)

UNKNOWN = "Unknown"


class MatchRule:
    """
    One entry of an ordered marker table.

    A rule is either a literal substring or a regular expression; tables are
    scanned in declared order and the first matching rule wins.
    """

    def __init__(self, pattern: str, result=None, regex: bool = False, ignore_case: bool = False):
        self.pattern = pattern
        self.result = pattern if result is None else result
        self.regex = regex
        self.ignore_case = ignore_case
        if regex:
            self._compiled = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
        else:
            self._needle = pattern.lower() if ignore_case else pattern

    def __repr__(self):
        kind = "regex" if self.regex else "literal"
        return f"MatchRule({self.pattern!r} -> {self.result!r}, {kind})"

    def matches(self, text: str) -> bool:
        if self.regex:
            return self._compiled.search(text) is not None
        haystack = text.lower() if self.ignore_case else text
        return self._needle in haystack


def first_match(rules, text: str) -> Optional[MatchRule]:
    if not text:
        return None
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def _literals(markers, ignore_case=True):
    return [MatchRule(m, ignore_case=ignore_case) for m in markers]


BOT_RULES = _literals([
    "googlebot", "bingbot", "yandexbot", "baiduspider", "facebookexternalhit",
    "twitterbot", "rogerbot", "linkedinbot", "embedly", "quora link preview",
    "showyoubot", "outbrain", "pinterest", "slackbot", "vkShare", "W3C_Validator",
])

MOBILE_RULES = _literals([
    "Mobile", "Android", "iPhone", "iPod", "BlackBerry", "Windows Phone",
    "webOS", "Opera Mini", "IEMobile", "Silk/",
])

# Android without a later "Mobile" token is treated as a tablet
TABLET_RULES = [
    MatchRule("iPad", ignore_case=True),
    MatchRule(r"Android(?!.*Mobile)", "Android", regex=True, ignore_case=True),
    MatchRule("Tablet", ignore_case=True),
    MatchRule("Kindle", ignore_case=True),
    MatchRule("Silk", ignore_case=True),
    MatchRule("PlayBook", ignore_case=True),
    MatchRule("Nexus 7", ignore_case=True),
    MatchRule("Nexus 10", ignore_case=True),
]

BROWSER_RULES = [
    MatchRule("Chrome", "Chrome"),
    MatchRule("Firefox", "Firefox"),
    MatchRule("MSIE", "Internet Explorer"),
    MatchRule("Trident/7.0", "Internet Explorer 11"),
    MatchRule("Edge", "Edge"),
    MatchRule("Edg", "Edge"),
    MatchRule("Safari", "Safari"),
    MatchRule("Opera", "Opera"),
    MatchRule("OPR", "Opera"),
    MatchRule("SamsungBrowser", "Samsung Browser"),
    MatchRule("UCBrowser", "UC Browser"),
    MatchRule("YaBrowser", "Yandex Browser"),
]

# Most specific first: iOS strings also contain "like Mac OS X",
# Ubuntu strings also contain "Linux".
OS_RULES = [
    MatchRule("Windows NT 10.0", "Windows 10"),
    MatchRule("Windows NT 6.3", "Windows 8.1"),
    MatchRule("Windows NT 6.2", "Windows 8"),
    MatchRule("Windows NT 6.1", "Windows 7"),
    MatchRule("Windows NT 6.0", "Windows Vista"),
    MatchRule("Windows NT 5.1", "Windows XP"),
    MatchRule("Windows NT 5.0", "Windows 2000"),
    MatchRule("iPad; CPU OS", "iPadOS"),
    MatchRule("iPhone OS", "iOS"),
    MatchRule("Mac OS X", "macOS"),
    MatchRule("Macintosh", "Mac"),
    MatchRule("CrOS", "Chrome OS"),
    MatchRule("Android", "Android"),
    MatchRule("Ubuntu", "Ubuntu"),
    MatchRule("Linux", "Linux"),
]

# os name -> (version regex, underscores become dots)
_OS_VERSION_PATTERNS = {
    "Android": (re.compile(r"Android\s+([0-9.]+)"), False),
    "iOS": (re.compile(r"iPhone OS\s+([0-9_]+)"), True),
    "iPadOS": (re.compile(r"CPU OS\s+([0-9_]+)"), True),
    "macOS": (re.compile(r"Mac OS X\s+([0-9_.]+)"), True),
}
_WINDOWS_VERSION = re.compile(r"Windows NT\s+([0-9.]+)")
_SAFARI_VERSION = re.compile(r"Version/([0-9.]+)")

_FONT_BUTTON_NAV = {
    DeviceCategory.MOBILE: ("14px", "large", "hamburger"),
    DeviceCategory.TABLET: ("16px", "medium", "compact"),
    DeviceCategory.DESKTOP: ("16px", "normal", "full"),
    DeviceCategory.BOT: ("16px", "normal", "full"),
}

_GUESSED_ORIENTATION = {
    DeviceCategory.MOBILE: Orientation.PORTRAIT,
    DeviceCategory.TABLET: Orientation.LANDSCAPE,
    DeviceCategory.DESKTOP: Orientation.LANDSCAPE,
    DeviceCategory.BOT: Orientation.LANDSCAPE,
}


class ScreenState(NamedTuple):
    width: int
    height: int
    orientation: Orientation
    is_known_screen: bool


def with_extra_bot_markers(markers) -> list:
    """Built-in bot rules followed by additional case-insensitive markers."""
    extra = [m for m in (markers or []) if m]
    return BOT_RULES + _literals(extra)


def classify_bot(user_agent: str, rules=BOT_RULES) -> bool:
    return first_match(rules, user_agent or "") is not None


def classify_device_category(user_agent: str, bot_rules=BOT_RULES) -> DeviceCategory:
    ua = user_agent or ""

    is_mobile = first_match(MOBILE_RULES, ua) is not None
    is_tablet = first_match(TABLET_RULES, ua) is not None

    # tablet wins the tie, never the reverse
    if is_tablet:
        is_mobile = False

    if classify_bot(ua, bot_rules):
        return DeviceCategory.BOT
    if is_mobile:
        return DeviceCategory.MOBILE
    if is_tablet:
        return DeviceCategory.TABLET
    return DeviceCategory.DESKTOP


def classify_browser(user_agent: str) -> tuple:
    """
    Return (name, version) for the first browser marker found.

    The version is read from "<marker>/<digits>" (or ':' separator). IE 11
    has no such token and always reports 11.0; Safari keeps its release
    number in a separate "Version/x.y" token.
    """
    ua = user_agent or ""
    rule = first_match(BROWSER_RULES, ua)
    if rule is None:
        return UNKNOWN, ""

    version = ""
    m = re.search(re.escape(rule.pattern) + r"\s*[/:]\s*([0-9.]+)", ua)
    if m:
        version = m.group(1)
    elif rule.pattern == "Trident/7.0":
        version = "11.0"
    elif rule.pattern == "Safari":
        m = _SAFARI_VERSION.search(ua)
        if m:
            version = m.group(1)

    return rule.result, version


def classify_os(user_agent: str) -> tuple:
    ua = user_agent or ""
    rule = first_match(OS_RULES, ua)
    if rule is None:
        return UNKNOWN, ""

    name = rule.result
    version = ""

    if name in _OS_VERSION_PATTERNS:
        pattern, dotted = _OS_VERSION_PATTERNS[name]
        m = pattern.search(ua)
        if m:
            version = m.group(1).replace("_", ".") if dotted else m.group(1)
    elif name.startswith("Windows"):
        m = _WINDOWS_VERSION.search(ua)
        if m:
            version = m.group(1)

    return name, version


def resolve_screen_state(data: ClassificationInput, category: DeviceCategory) -> ScreenState:
    """
    Use probe-reported screen metrics when both dimensions are present.
    Otherwise report 0x0 and guess the orientation from the device category;
    the guess is a default for layout, not a measurement.
    """
    if data.has_screen:
        width, height = data.screen_width, data.screen_height
        if data.orientation is not None:
            orientation = data.orientation
        elif width > height:
            orientation = Orientation.LANDSCAPE
        else:
            orientation = Orientation.PORTRAIT
        return ScreenState(width, height, orientation, True)

    return ScreenState(0, 0, _GUESSED_ORIENTATION[category], False)


def image_quality(screen_width: int) -> str:
    if screen_width > 1920:
        return "high"
    if screen_width > 1280:
        return "medium"
    return "low"


def build_default_custom_vars(profile: DeviceProfile, has_touch: Optional[bool] = None) -> CustomVars:
    font_size, button_size, navigation = _FONT_BUTTON_NAV[profile.device_category]

    if has_touch is None:
        has_touch = profile.is_mobile or profile.is_tablet

    return CustomVars(
        fontSize=font_size,
        buttonSize=button_size,
        navigationStyle=navigation,
        imageQuality=image_quality(profile.screen_width),
        layout=profile.orientation.value,
        hasTouch=bool(has_touch),
    )


def classify_client(data: ClassificationInput, bot_rules=BOT_RULES) -> DeviceDetection:
    """Classify one request. Pure: identical input gives an identical detection."""
    ua = data.user_agent or ""

    category = classify_device_category(ua, bot_rules)
    browser_name, browser_version = classify_browser(ua)
    os_name, os_version = classify_os(ua)
    screen = resolve_screen_state(data, category)

    profile = DeviceProfile(
        user_agent=ua,
        device_category=category,
        browser_name=browser_name,
        browser_version=browser_version,
        os_name=os_name,
        os_version=os_version,
        screen_width=screen.width,
        screen_height=screen.height,
        orientation=screen.orientation,
        is_known_screen=screen.is_known_screen,
    )

    logging.debug(
        f"[Classifier] {category.value} browser={browser_name} {browser_version} "
        f"os={os_name} {os_version} screen={screen.width}x{screen.height} known={screen.is_known_screen}"
    )

    return DeviceDetection(profile, build_default_custom_vars(profile, data.has_touch))
