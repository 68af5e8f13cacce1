import asyncio
import random
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from patchright.async_api import (
    ElementHandle,
    Page,
    TimeoutError as PatchrightTimeoutError,
)

from turnstile.detector import POLL_INTERVAL, wait_for_turnstile_resolution
from turnstile.diagnostics import ScreenshotRecorder, default_recorder
from turnstile.logger import log
from turnstile.motion import create_cursor


TURNSTILE_IFRAME_SELECTOR = 'iframe[src*="challenges.cloudflare.com"]'
MAX_ATTEMPTS = 3
WAIT_FOR_IFRAME = 10.0
GRACE_PERIOD = 5.0
WAIT_FOR_RESOLVE = 15.0
RACE_TIMEOUT = 30.0
HESITATION = (0.2, 0.5)
SETTLE_DELAY = (1.5, 3.5)

# Checkbox sits this far from the iframe's left edge, vertically centered
CHECKBOX_OFFSET = (28.0, 36.0)
VERTICAL_JITTER = 2.0

BoundingBox = Dict[str, float]
LogFn = Callable[[str], None]


class Outcome(str, Enum):
    SOLVED = "solved"
    NOT_FOUND = "not-found"
    UNRESOLVED = "unresolved-after-retries"


class RaceOutcome(str, Enum):
    CONTENT = "content"
    SOLVED = "solved"
    BLOCKED = "blocked"


class GeometryUnavailable(Exception):
    """The challenge iframe has no bounding box (detached or hidden)."""


def compute_click_target(box: BoundingBox, rng: Any = random) -> Tuple[float, float]:
    """
    Picks a point on the checkbox: a randomized offset from the left edge and
    the vertical center with a little jitter. Both coordinates are clamped to
    the box, so narrow or flat frames never push the click outside.
    """
    left = float(box["x"])
    top = float(box["y"])
    width = max(0.0, float(box["width"]))
    height = max(0.0, float(box["height"]))

    offset = min(rng.uniform(*CHECKBOX_OFFSET), width)
    y = top + height / 2 + rng.uniform(-VERTICAL_JITTER, VERTICAL_JITTER)
    y = min(top + height, max(top, y))
    return left + offset, y


class TurnstileSolver:
    """
    Clicks through a Cloudflare Turnstile checkbox with a human-like cursor.

    The widget lives in a cross-origin iframe inside a closed shadow root, so
    nothing inside it can be queried. The solver works from the outside: it
    measures the iframe, clicks at the checkbox position with page-level mouse
    input, and watches host-page signals to decide whether the challenge went
    away.

    Parameters:
        page: Patchright page already showing (or about to show) the challenge.
        log_fn: Single-argument callback receiving progress lines. Defaults to
            the console logger.
        screenshots: Recorder for step-by-step screenshots. Defaults to the
            process-wide recorder configured by `enable_diagnostic_capture`.
        cursor_factory: Callable `(page) -> cursor` where the cursor has an
            awaitable `move_to(x, y)`.
        rng: Source of randomness exposing `uniform(a, b)`.
    """

    def __init__(
        self,
        page: Page,
        log_fn: Optional[LogFn] = None,
        *,
        screenshots: Optional[ScreenshotRecorder] = None,
        cursor_factory: Callable[[Page], Any] = create_cursor,
        rng: Any = None,
        max_attempts: int = MAX_ATTEMPTS,
        iframe_timeout: float = WAIT_FOR_IFRAME,
        grace_period: float = GRACE_PERIOD,
        resolve_timeout: float = WAIT_FOR_RESOLVE,
        poll_interval: float = POLL_INTERVAL,
        hesitation: Tuple[float, float] = HESITATION,
        settle_delay: Tuple[float, float] = SETTLE_DELAY,
    ) -> None:
        self.page = page
        self._log_fn = log_fn or log.sink()
        self.screenshots = screenshots or default_recorder()
        self.cursor_factory = cursor_factory
        self.rng = rng or random
        self.max_attempts = max_attempts
        self.iframe_timeout = iframe_timeout
        self.grace_period = grace_period
        self.resolve_timeout = resolve_timeout
        self.poll_interval = poll_interval
        self.hesitation = hesitation
        self.settle_delay = settle_delay

    def info(self, message: str) -> None:
        self._log_fn(f"[turnstile] {message}")

    async def solve(self) -> Outcome:
        self.info("Waiting for Turnstile iframe...")
        iframe = await self._wait_for_iframe(self.iframe_timeout)
        if iframe is None:
            self.info("No Turnstile iframe found")
            return Outcome.NOT_FOUND

        return await self.click_checkbox(iframe)

    async def click_checkbox(self, iframe: ElementHandle) -> Outcome:
        """
        Waits out the managed check, then clicks the checkbox up to
        `max_attempts` times, polling for resolution after each click.
        """
        try:
            box = await self._require_box(iframe)
        except GeometryUnavailable:
            self.info("Could not get iframe bounding box")
            return Outcome.NOT_FOUND

        self.info(
            f"Iframe bounds: {box['x']:.0f},{box['y']:.0f} {box['width']:.0f}x{box['height']:.0f}"
        )

        # The managed check runs first and often passes on its own; clicking
        # while the spinner is up does nothing useful.
        self.info("Waiting for widget to become interactive...")
        if await wait_for_turnstile_resolution(self.page, self.grace_period, self.poll_interval):
            self.info("Page resolved during managed check, no click needed")
            await self.screenshots.capture(self.page, "managed-resolve", self.info)
            return Outcome.SOLVED

        await self.screenshots.capture(self.page, "widget-ready", self.info)

        cursor = self.cursor_factory(self.page)

        for attempt in range(1, self.max_attempts + 1):
            box = await self._read_box(iframe) or box
            click_x, click_y = compute_click_target(box, self.rng)
            self.info(f"Attempt {attempt}: moving to ({click_x:.0f}, {click_y:.0f})")

            await self.screenshots.capture(self.page, f"before-click-{attempt}", self.info)

            if await self._click(cursor, click_x, click_y):
                await self.screenshots.capture(self.page, f"after-click-{attempt}", self.info)

            await asyncio.sleep(self.rng.uniform(*self.settle_delay))
            await self.screenshots.capture(self.page, f"after-delay-{attempt}", self.info)

            if await wait_for_turnstile_resolution(self.page, self.resolve_timeout, self.poll_interval):
                await self.screenshots.capture(self.page, "solved", self.info)
                self.info("Turnstile solved!")
                return Outcome.SOLVED

            self.info(f"Attempt {attempt} did not resolve, retrying...")

        self.info(f"Failed to solve after {self.max_attempts} attempts")
        return Outcome.UNRESOLVED

    async def race(self, content_selector: str, timeout: float = RACE_TIMEOUT) -> RaceOutcome:
        """
        Waits for the page content and the challenge iframe at the same time.
        The first branch with a decisive answer wins and the other is
        cancelled. If both time out, the iframe is looked up once more.
        """
        content_task = asyncio.create_task(self._wait_for_content(content_selector, timeout))
        challenge_task = asyncio.create_task(self._watch_challenge(timeout))
        pending = {content_task, challenge_task}

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in (content_task, challenge_task):
                    if task in done and task.result() is not None:
                        return task.result()
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        self.info("Neither content nor Turnstile detected in race, checking once more...")
        try:
            late_iframe = await self.page.query_selector(TURNSTILE_IFRAME_SELECTOR)
        except Exception:  # noqa: BLE001
            late_iframe = None

        if late_iframe:
            outcome = await self.click_checkbox(late_iframe)
            return RaceOutcome.SOLVED if outcome is Outcome.SOLVED else RaceOutcome.BLOCKED

        return RaceOutcome.BLOCKED

    async def _wait_for_content(self, selector: str, timeout: float) -> Optional[RaceOutcome]:
        try:
            await self.page.wait_for_selector(selector, timeout=timeout * 1_000)
        except PatchrightTimeoutError:
            return None
        except Exception as exc:  # noqa: BLE001
            self.info(f"Waiting for {selector} failed: {exc}")
            return None
        return RaceOutcome.CONTENT

    async def _watch_challenge(self, timeout: float) -> Optional[RaceOutcome]:
        iframe = await self._wait_for_iframe(timeout)
        if iframe is None:
            return None

        self.info("Turnstile detected, solving...")
        outcome = await self.click_checkbox(iframe)
        return RaceOutcome.SOLVED if outcome is Outcome.SOLVED else RaceOutcome.BLOCKED

    async def _wait_for_iframe(self, timeout: float) -> Optional[ElementHandle]:
        try:
            return await self.page.wait_for_selector(
                TURNSTILE_IFRAME_SELECTOR,
                timeout=timeout * 1_000,
            )
        except PatchrightTimeoutError:
            return None
        except Exception as exc:  # noqa: BLE001
            self.info(f"Waiting for Turnstile iframe failed: {exc}")
            return None

    async def _read_box(self, iframe: ElementHandle) -> Optional[BoundingBox]:
        try:
            return await iframe.bounding_box()
        except Exception:  # noqa: BLE001
            return None

    async def _require_box(self, iframe: ElementHandle) -> BoundingBox:
        box = await self._read_box(iframe)
        if not box:
            raise GeometryUnavailable(TURNSTILE_IFRAME_SELECTOR)
        return box

    async def _click(self, cursor: Any, x: float, y: float) -> bool:
        """
        Moves the cursor, hesitates, then clicks through page-level input,
        which reaches into the cross-origin iframe. Returns False when the
        driver fails, usually because the page just navigated.
        """
        try:
            await cursor.move_to(x, y)
            await asyncio.sleep(self.rng.uniform(*self.hesitation))
            await self.page.mouse.click(x, y)
        except Exception as exc:  # noqa: BLE001
            self.info(f"Click interrupted: {exc}")
            return False
        return True


async def solve_turnstile(
    page: Page,
    log_fn: Optional[LogFn] = None,
    *,
    screenshots: Optional[ScreenshotRecorder] = None,
) -> bool:
    """
    Solves a Turnstile challenge on the current page.
    Returns False when no challenge showed up or every attempt failed.
    """
    outcome = await TurnstileSolver(page, log_fn, screenshots=screenshots).solve()
    return outcome is Outcome.SOLVED


async def race_content_or_turnstile(
    page: Page,
    content_selector: str,
    log_fn: Optional[LogFn] = None,
    *,
    screenshots: Optional[ScreenshotRecorder] = None,
) -> str:
    """
    Call right after `page.goto()`. Returns 'content' when the page loaded
    normally, 'solved' when a challenge was passed, 'blocked' otherwise.
    """
    outcome = await TurnstileSolver(page, log_fn, screenshots=screenshots).race(content_selector)
    return outcome.value
