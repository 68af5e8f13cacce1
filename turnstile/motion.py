import asyncio
import math
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from patchright.async_api import Page

@dataclass
class Point:
    x: float
    y: float


class MouseMotion:
    """
    Moves the page pointer along a curved path with uneven speed: slow start,
    fast middle, slow landing. Distance drives both the step count and the
    total travel time.
    """

    def __init__(
        self,
        page: Page,
        start: Optional[Tuple[float, float]] = None,
        *,
        min_duration: float = 0.25,
        max_duration: float = 0.9,
    ) -> None:
        self.page = page
        self._position: Optional[Point] = Point(*start) if start else None
        self.min_duration = min_duration
        self.max_duration = max_duration

    @property
    def current_position(self) -> Optional[Tuple[float, float]]:
        if self._position is None:
            return None
        return (self._position.x, self._position.y)

    async def move_to(self, x: float, y: float) -> None:
        target = Point(x, y)

        start = self._position or await self._init_position()
        path = self._build_path(start, target)
        delays = self._step_delays(start, target, len(path))

        for point, delay in zip(path, delays):
            await self.page.mouse.move(point.x, point.y, steps=1)
            if delay > 0:
                await asyncio.sleep(delay)

        self._position = Point(target.x, target.y)

    async def _init_position(self) -> Point:
        viewport = self.page.viewport_size
        if viewport:
            start = Point(
                x=random.uniform(viewport["width"] * 0.2, viewport["width"] * 0.8),
                y=random.uniform(viewport["height"] * 0.2, viewport["height"] * 0.8),
            )
        else:
            # Fallback when viewport is undefined
            start = Point(x=random.uniform(200, 600), y=random.uniform(200, 500))

        await self.page.mouse.move(start.x, start.y)
        self._position = start
        return start

    def _travel_time(self, start: Point, end: Point) -> float:
        # Fitts's law with a 30px target width
        distance = math.dist((start.x, start.y), (end.x, end.y))
        index = math.log2(distance / 30.0 + 1.0)
        duration = 0.12 + 0.11 * index
        return min(self.max_duration, max(self.min_duration, duration * random.uniform(0.85, 1.15)))

    def _step_delays(self, start: Point, end: Point, count: int) -> List[float]:
        if count <= 0:
            return []
        total = self._travel_time(start, end)
        # Inverse of a sine bell: short pauses mid-path, long ones at the ends
        weights = [1.0 / (0.35 + math.sin(math.pi * (i + 0.5) / count)) for i in range(count)]
        scale = total / sum(weights)
        return [w * scale for w in weights]

    def _build_path(self, start: Point, end: Point, steps: Optional[int] = None) -> List[Point]:
        distance = math.dist((start.x, start.y), (end.x, end.y))
        step_count = steps or max(12, min(45, int(distance / 12)))

        control_scale = max(distance * 0.25, 40)
        angle = math.atan2(end.y - start.y, end.x - start.x)
        control_angle = angle + random.uniform(-0.9, 0.9)

        control1 = Point(
            x=start.x + math.cos(control_angle) * control_scale,
            y=start.y + math.sin(control_angle) * control_scale,
        )
        control2 = Point(
            x=end.x - math.cos(control_angle) * control_scale,
            y=end.y - math.sin(control_angle) * control_scale,
        )

        path: List[Point] = []
        for i in range(1, step_count):
            t = i / step_count
            x = (
                (1 - t) ** 3 * start.x
                + 3 * (1 - t) ** 2 * t * control1.x
                + 3 * (1 - t) * t**2 * control2.x
                + t**3 * end.x
            )
            y = (
                (1 - t) ** 3 * start.y
                + 3 * (1 - t) ** 2 * t * control1.y
                + 3 * (1 - t) * t**2 * control2.y
                + t**3 * end.y
            )

            # Less wobble near the landing point
            jitter = min(6, max(1.2, distance / 60)) * (1 - t)
            x += random.uniform(-jitter, jitter)
            y += random.uniform(-jitter, jitter)
            path.append(Point(x=x, y=y))

        path.append(end)
        return path


def create_cursor(page: Page, start: Optional[Tuple[float, float]] = None) -> MouseMotion:
    return MouseMotion(page, start)
