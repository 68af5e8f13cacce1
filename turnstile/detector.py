import asyncio
import time

from patchright.async_api import Page


TOKEN_INPUT_SELECTOR = '[name="cf-turnstile-response"]'
CHALLENGE_SCRIPT_SELECTOR = 'script[src*="/cdn-cgi/challenge-platform/"]'
POLL_INTERVAL = 0.5

# The widget iframe sits in a closed shadow root, so querying for it from the
# page context always comes back empty. Only host-page artifacts are checked.
_RESOLVED_SCRIPT = """
([tokenSelector, scriptSelector]) => {
    const tokenInput = document.querySelector(tokenSelector);
    if (tokenInput && tokenInput.value && tokenInput.value.length > 0) {
        return true;
    }
    if (document.querySelector(scriptSelector)) {
        return false;
    }
    if (tokenInput) {
        return false;
    }
    return true;
}
"""


async def is_turnstile_resolved(page: Page) -> bool:
    """
    Returns True once the challenge has been passed or is no longer on the page.

    Order of checks:
        1. token input carries a value -> solved
        2. challenge-platform script still in the document -> in progress
        3. token input present but empty -> in progress
        4. neither present -> navigated away, treated as solved

    A failed evaluation usually means the page navigated mid-call, which is
    itself a sign the challenge went away.
    """
    try:
        result = await page.evaluate(
            _RESOLVED_SCRIPT,
            [TOKEN_INPUT_SELECTOR, CHALLENGE_SCRIPT_SELECTOR],
        )
    except Exception:  # noqa: BLE001
        return True
    return bool(result)


async def wait_for_turnstile_resolution(
    page: Page,
    timeout: float,
    interval: float = POLL_INTERVAL,
) -> bool:
    """
    Sleeps `interval`, then asks the detector, until it says resolved or
    `timeout` seconds have passed on the monotonic clock.
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        await asyncio.sleep(interval)
        if await is_turnstile_resolved(page):
            return True
    return False
