import os
import tempfile
from typing import Callable, Optional

from patchright.async_api import Page


DEFAULT_DIRECTORY = os.path.join(tempfile.gettempdir(), "turnstile-screenshots")


class ScreenshotRecorder:
    """
    Numbered screenshot sequence for following a solve step by step.

    Files are named `NNN-label.png` so a directory listing reads in capture
    order. A recorder without a directory does nothing.
    """

    def __init__(self, directory: Optional[str] = None) -> None:
        self.directory = directory
        self.counter = 0
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return bool(self.directory)

    async def capture(self, page: Page, label: str, info: Callable[[str], None]) -> Optional[str]:
        if not self.directory:
            return None
        try:
            self.counter += 1
            path = os.path.join(self.directory, f"{self.counter:03d}-{label}.png")
            await page.screenshot(path=path, full_page=False)
        except Exception as exc:  # noqa: BLE001
            info(f"Screenshot failed ({label}): {exc}")
            return None
        info(f"Screenshot: {path}")
        return path


_default_recorder = ScreenshotRecorder()


def enable_diagnostic_capture(directory: Optional[str] = None) -> ScreenshotRecorder:
    """
    Turns on screenshots for every solve started after this call that does not
    bring its own recorder.
    """
    global _default_recorder
    _default_recorder = ScreenshotRecorder(directory or DEFAULT_DIRECTORY)
    return _default_recorder


def disable_diagnostic_capture() -> None:
    global _default_recorder
    _default_recorder = ScreenshotRecorder()


def default_recorder() -> ScreenshotRecorder:
    return _default_recorder
