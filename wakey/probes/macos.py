"""macOS window probe — frontmost app, window title, browser URL, input idle time.

Reads the frontmost application from NSWorkspace, the window title from the
Quartz window list, and asks Chromium browsers and Safari for the active
tab's title and URL over AppleScript. Requires the Accessibility and
Automation permissions for the terminal or launcher running wakey.
"""

import logging
import subprocess

import Quartz
from AppKit import NSWorkspace

from wakey.models import WindowInfo

log = logging.getLogger(__name__)

_BROWSER_SCRIPTS = {
    "com.google.Chrome": (
        'tell application "Google Chrome" to get title of active tab of front window',
        'tell application "Google Chrome" to get URL of active tab of front window',
    ),
    "company.thebrowser.Browser": (
        'tell application "Arc" to get title of active tab of front window',
        'tell application "Arc" to get URL of active tab of front window',
    ),
    "com.apple.Safari": (
        'tell application "Safari" to get name of current tab of front window',
        'tell application "Safari" to get URL of current tab of front window',
    ),
}

# CGEventSource event type constants
_kCGEventKeyDown = 10
_kCGEventMouseMoved = 5


def _run_applescript(script: str) -> str:
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True, text=True, timeout=1,
        )
        return result.stdout.strip() if result.returncode == 0 else ""
    except (subprocess.TimeoutExpired, OSError):
        return ""


def _input_idle_seconds() -> float:
    """Seconds since the last keyboard or mouse event, whichever is more recent."""
    state = Quartz.kCGEventSourceStateCombinedSessionState
    return min(
        Quartz.CGEventSourceSecondsSinceLastEventType(state, _kCGEventKeyDown),
        Quartz.CGEventSourceSecondsSinceLastEventType(state, _kCGEventMouseMoved),
    )


def _frontmost_window_title() -> str:
    windows = Quartz.CGWindowListCopyWindowInfo(
        Quartz.kCGWindowListOptionOnScreenOnly | Quartz.kCGWindowListExcludeDesktopElements,
        Quartz.kCGNullWindowID,
    )
    if not windows:
        return ""
    for win in windows:
        if win.get(Quartz.kCGWindowLayer, -1) == 0:
            return win.get(Quartz.kCGWindowName, "") or ""
    return ""


class MacWindowProbe:
    """WindowProbe backed by pyobjc (AppKit + Quartz)."""

    def probe(self) -> WindowInfo | None:
        active = NSWorkspace.sharedWorkspace().activeApplication()
        if not active:
            return None

        app_name = active.get("NSApplicationName", "")
        if not app_name:
            return None
        bundle_id = active.get("NSApplicationBundleIdentifier", "")
        title = _frontmost_window_title()
        url = None

        scripts = _BROWSER_SCRIPTS.get(bundle_id)
        if scripts:
            title_script, url_script = scripts
            if not title:
                title = _run_applescript(title_script)
            url = _run_applescript(url_script) or None

        return WindowInfo(
            process_name=str(app_name),
            title=title or None,
            url=url,
            input_idle_s=_input_idle_seconds(),
        )
