import re
from typing import Any

# PT[nH][nM][nS]; every component optional, fixed order, no day/week part.
_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_duration(value: Any) -> int:
    """Parse a YouTube ``contentDetails.duration`` into whole seconds.

    Parsing is permissive: anything that does not match the format
    (``None``, ``""``, ``"P1DT2H"``, garbage) yields 0 instead of raising.

        PT1H2M3S -> 3723
        PT5M30S  -> 330
        PT45S    -> 45
        PT1H     -> 3600
    """
    if not isinstance(value, str):
        return 0
    match = _DURATION_RE.match(value.strip().upper())
    if not match:
        return 0
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds
