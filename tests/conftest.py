import asyncio
from typing import Callable, Dict, List, Optional

import pytest
from patchright.async_api import TimeoutError as PatchrightTimeoutError

from turnstile import detector
from turnstile.diagnostics import disable_diagnostic_capture
from turnstile.solver import TURNSTILE_IFRAME_SELECTOR


# ---------------------------------------------------------------------------
# Fake driver surfaces
# ---------------------------------------------------------------------------


class FakeMouse:
    def __init__(self, fail_clicks: bool = False):
        self.fail_clicks = fail_clicks
        self.clicks: List[tuple] = []
        self.moves: List[tuple] = []

    async def click(self, x, y):
        if self.fail_clicks:
            raise RuntimeError("Target page, context or browser has been closed")
        self.clicks.append((x, y))

    async def move(self, x, y, steps=1):
        self.moves.append((x, y))


class FakeIframe:
    """Iframe handle; returns boxes in order and repeats the last one."""

    def __init__(self, *boxes):
        self.boxes = list(boxes)
        self.calls = 0

    async def bounding_box(self):
        index = min(self.calls, len(self.boxes) - 1)
        self.calls += 1
        return self.boxes[index]


class FakePage:
    """
    Stateful page double.

    resolver: called with the 1-based evaluate count, returns the detector
        answer (or raises).
    elements: selector -> handle returned by wait_for_selector.
    gates: selector -> asyncio.Event that must be set before the wait returns.
    late: selector -> handle returned only by query_selector.
    """

    def __init__(
        self,
        resolver: Optional[Callable[[int], bool]] = None,
        elements: Optional[Dict[str, object]] = None,
        gates: Optional[Dict[str, asyncio.Event]] = None,
        late: Optional[Dict[str, object]] = None,
        fail_screenshots: bool = False,
        fail_clicks: bool = False,
        clock: Optional["FakeClock"] = None,
        evaluate_cost: float = 0.0,
    ):
        self.resolver = resolver or (lambda count: False)
        self.elements = elements or {}
        self.gates = gates or {}
        self.late = late or {}
        self.fail_screenshots = fail_screenshots
        self.mouse = FakeMouse(fail_clicks)
        self.clock = clock
        self.evaluate_cost = evaluate_cost
        self.viewport_size = {"width": 1280, "height": 800}
        self.url = "https://example.com/"
        self.evaluations = 0
        self.evaluate_args: List[tuple] = []
        self.waits: List[tuple] = []
        self.cancelled: List[str] = []
        self.queries: List[str] = []
        self.screenshots: List[dict] = []

    async def evaluate(self, expression, arg=None):
        self.evaluations += 1
        self.evaluate_args.append((expression, arg))
        if self.clock is not None:
            self.clock.advance(self.evaluate_cost)
        return self.resolver(self.evaluations)

    async def wait_for_selector(self, selector, timeout=None):
        self.waits.append((selector, timeout))
        gate = self.gates.get(selector)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled.append(selector)
                raise
        element = self.elements.get(selector)
        if element is None:
            raise PatchrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        return element

    async def query_selector(self, selector):
        self.queries.append(selector)
        return self.late.get(selector)

    async def screenshot(self, path=None, full_page=True):
        if self.fail_screenshots:
            raise RuntimeError("Screenshot failed: page closed")
        self.screenshots.append({"path": path, "full_page": full_page})
        return b""


class FakeCursor:
    def __init__(self):
        self.targets: List[tuple] = []

    async def move_to(self, x, y):
        self.targets.append((x, y))


class FakeClock:
    """
    Stands in for asyncio.sleep and time.monotonic. Sleeping moves the clock
    forward by the requested delay, which is also recorded. Time advances in
    1/1024s steps so deadline comparisons are exact.
    """

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    @property
    def elapsed(self) -> float:
        return sum(self.sleeps)

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * 1024) / 1024

    async def sleep(self, delay, result=None):
        self.sleeps.append(delay)
        self.advance(delay)
        return result


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


CHECKBOX_FRAME_BOX = {"x": 100.0, "y": 200.0, "width": 300.0, "height": 65.0}


def resolved_after(count: int) -> Callable[[int], bool]:
    return lambda evaluations: evaluations >= count


def never_resolved(evaluations: int) -> bool:
    return False


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(asyncio, "sleep", fake.sleep)
    monkeypatch.setattr(detector, "time", fake)
    return fake


@pytest.fixture
def cursor():
    return FakeCursor()


@pytest.fixture
def iframe():
    return FakeIframe(CHECKBOX_FRAME_BOX)


@pytest.fixture
def challenge_page(iframe):
    def build(resolver=never_resolved, **kwargs):
        elements = kwargs.pop("elements", {})
        elements.setdefault(TURNSTILE_IFRAME_SELECTOR, iframe)
        return FakePage(resolver=resolver, elements=elements, **kwargs)

    return build


@pytest.fixture(autouse=True)
def reset_diagnostics():
    disable_diagnostic_capture()
    yield
    disable_diagnostic_capture()
