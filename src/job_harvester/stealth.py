"""
Fingerprint masking and human-like pacing for Playwright pages.
"""

import logging
import random
from typing import Any, List, Optional

from job_harvester.cancel import CancellationToken

logger = logging.getLogger(__name__)


# Browser launch arguments for stealth
STEALTH_ARGS: List[str] = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--disable-site-isolation-trials",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--window-size=1920,1080",
    "--start-maximized",
    "--disable-infobars",
    "--disable-extensions",
    "--disable-plugins-discovery",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-ipc-flooding-protection",
    "--disable-default-apps",
    "--disable-sync",
    "--disable-hang-monitor",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--no-first-run",
    "--no-default-browser-check",
]

# Chromium adds this when launched by an automation driver
IGNORE_DEFAULT_ARGS: List[str] = ["--enable-automation"]


# Runs before any page script on every navigation
STEALTH_INIT_SCRIPT: str = """
// Remove webdriver property
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
    configurable: true
});

// Add chrome runtime object
window.chrome = window.chrome || {};
window.chrome.runtime = window.chrome.runtime || {};

// Fix plugins to look realistic
Object.defineProperty(navigator, 'plugins', {
    get: () => {
        const plugins = [
            { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format' },
            { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '' },
            { name: 'Native Client', filename: 'internal-nacl-plugin', description: '' },
        ];
        plugins.item = (i) => plugins[i] || null;
        plugins.namedItem = (name) => plugins.find(p => p.name === name) || null;
        plugins.refresh = () => {};
        return plugins;
    },
    configurable: true
});

// Fix languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
    configurable: true
});

// Fix hardware concurrency / device memory
Object.defineProperty(navigator, 'hardwareConcurrency', {
    get: () => 4,
    configurable: true
});
Object.defineProperty(navigator, 'deviceMemory', {
    get: () => 8,
    configurable: true
});

// Fix permissions API
const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
if (originalQuery) {
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications' ?
            Promise.resolve({ state: Notification.permission }) :
            originalQuery(parameters)
    );
}
"""


def pick_user_agent(pool: List[str], fixed: str = "", rng: Optional[random.Random] = None) -> str:
    """Return the fixed user agent if configured, else a random one from the pool."""
    if fixed:
        return fixed
    if not pool:
        raise ValueError("User-agent pool is empty")
    return (rng or random).choice(pool)


def simulate_human(page: Any, token: CancellationToken, rng: Optional[random.Random] = None) -> None:
    """Simulate human-like behavior to avoid bot detection"""
    rng = rng or random
    try:
        # Initial delay to let page settle
        token.sleep(rng.uniform(1.0, 3.0))

        # Random mouse movements
        for _ in range(rng.randint(2, 4)):
            page.mouse.move(rng.randint(200, 1200), rng.randint(200, 800))
            token.sleep(rng.uniform(0.3, 0.9))

        # Scroll down in steps, like skimming the results
        for _ in range(rng.randint(2, 4)):
            page.evaluate(f"window.scrollBy(0, {rng.randint(150, 450)})")
            token.sleep(rng.uniform(0.8, 2.0))

        # Scroll back up a bit
        page.evaluate(f"window.scrollBy(0, -{rng.randint(50, 200)})")
        token.sleep(rng.uniform(0.5, 1.5))

        logger.debug("Human behavior simulation completed")
    except Exception as exc:
        logger.debug("Human behavior simulation failed: %s", exc)
