import asyncio
import time

from patchright.async_api import async_playwright

from turnstile.diagnostics import enable_diagnostic_capture
from turnstile.logger import log
from turnstile.solver import race_content_or_turnstile


TARGET_URL = "https://nopecha.com/demo/cloudflare" # Page protected by Turnstile
CONTENT_SELECTOR = "main" # Selector that only exists once the real page is shown
HEADLESS = False
SCREENSHOTS = False # True - Save numbered screenshots of every step
SCREENSHOT_DIR = None # None - Use the system temp directory


async def main() -> None:
    if SCREENSHOTS:
        recorder = enable_diagnostic_capture(SCREENSHOT_DIR)
        log.info(f"Saving screenshots to {recorder.directory}")

    async with async_playwright() as patchright:
        browser = await patchright.chromium.launch(headless=HEADLESS)
        context = await browser.new_context()
        page = await context.new_page()

        await page.goto(TARGET_URL, wait_until="domcontentloaded")

        start_time = time.time()
        result = await race_content_or_turnstile(page, CONTENT_SELECTOR)
        end_time = time.time()

        if result == "content":
            log.success("Page loaded without a challenge", start_time, end_time)
        elif result == "solved":
            log.turnstile(f"Challenge solved. Now at {page.url}", start_time, end_time)
        else:
            log.failure("Blocked by Turnstile", start_time, end_time)

        await browser.close()
        input("Press Enter to exit...")


if __name__ == "__main__":
    asyncio.run(main())
