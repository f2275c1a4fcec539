"""
Frame label parsing and reserved markers.

Frame labels look like ``"name (https://host/path.js:12:34)"`` or,
for code evaluated at runtime, like
``"name (https://host/ line 7327 > injectedScript line 2 > eval:1:165)"``.
The script URL is the leading part of the trailing parenthesised segment.
"""

from __future__ import annotations

import re

# Prefix of frames that represent a DOM API entry point.
DOM_MARKER = "(DOM) "

# Frames injected by the automation tooling itself.  Activity under
# these is the measurement harness, not page script.
AUTOMATION_MARKERS_RE = re.compile(
    r"pptr:internal|pptr:evaluateHandle|__playwright_evaluation_script__|__playwright"
)

# Script URLs with these prefixes come from browser chrome or extensions.
INTERNAL_SCHEME_PREFIXES = (
    "chrome://",
    "resource://",
    "moz-extension://",
)

# "https://url.com/path" from "(https://url.com/path:1:2)" and
# "https://url.com/" from "(https://url.com/ line 7 > eval:1:2)".  Only the
# trailing segment counts; earlier parentheses belong to the function name.
_SCRIPT_URL_RE = re.compile(r"\(([^()]+?)(?: [^()]+)?:\d+:\d+\)$")
# Trailing segment without a line/column suffix, e.g. "(https://url.com/a.js)".
_BARE_SEGMENT_RE = re.compile(r"\(([^()\s]+)\)$")


def is_dom_label(label: str) -> bool:
    """Return True if *label* marks a DOM API frame."""
    return label.startswith(DOM_MARKER)


def is_automation_label(label: str) -> bool:
    """Return True if *label* belongs to the automation tooling."""
    return AUTOMATION_MARKERS_RE.search(label) is not None


def script_url_from_label(label: str) -> str | None:
    """Extract the script URL from a frame label.

    The result is not validated; it may be any text that appeared
    in the label's parenthesised segment.
    """
    match = _SCRIPT_URL_RE.search(label)
    if match:
        return match.group(1)
    match = _BARE_SEGMENT_RE.search(label)
    if match:
        return match.group(1)
    return None


def is_internal_script_url(script_url: str | None) -> bool:
    """Return True if *script_url* points at browser or extension internals."""
    if not script_url:
        return False
    return script_url.startswith(INTERNAL_SCHEME_PREFIXES)
