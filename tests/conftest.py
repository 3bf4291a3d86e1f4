# tests/conftest.py
import copy
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import pytest
import yaml

from job_harvester.cancel import CancellationToken
from job_harvester.config_loader import ConfigLoader
from job_harvester.errors import SessionLaunchError
from job_harvester.session import ScrapeSession
from job_harvester.store import SqliteJobStore

FIXTURES = pathlib.Path(__file__).parent / "fixtures"

HOME_URL = "https://www.indeed.com"
SEARCH_URL = "https://www.indeed.com/jobs"
HOME_HTML = "<html><head><title>Job Search | Indeed</title></head><body><h1>Find jobs</h1></body></html>"
CHALLENGE_HTML = (
    "<html><head><title>Just a moment...</title></head>"
    "<body><div id='challenge-form'>Checking your browser before accessing</div></body></html>"
)
EMPTY_RESULTS_HTML = "<html><head><title>Jobs | Indeed</title></head><body><p>No jobs match</p></body></html>"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


# ---------------------------------------------------------------------
# Fake Playwright surface: just the calls the harvester makes
# ---------------------------------------------------------------------
@dataclass
class Frame:
    title: str
    html: str


def frame_from_html(html: str) -> Frame:
    start = html.find("<title>")
    end = html.find("</title>")
    title = html[start + len("<title>"):end] if start != -1 and end != -1 else ""
    return Frame(title=title, html=html)


Route = Union[str, List[str], Exception]


class FakeSite:
    """URL-prefix routing table; the longest matching prefix wins."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})

    def route(self, prefix: str, response: Route) -> "FakeSite":
        self.routes[prefix] = response
        return self

    def resolve(self, url: str) -> Route:
        matches = [prefix for prefix in self.routes if url.startswith(prefix)]
        if not matches:
            return RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        return self.routes[max(matches, key=len)]


class FakeMouse:
    def __init__(self) -> None:
        self.moves: List[tuple] = []

    def move(self, x, y) -> None:
        self.moves.append((x, y))


class FakeKeyboard:
    def __init__(self) -> None:
        self.pressed: List[str] = []

    def press(self, key: str) -> None:
        self.pressed.append(key)


class FakePage:
    """
    Serves frames from a FakeSite. A route given as a list of HTML strings
    plays one frame per content() call and then stays on the last one,
    which is how a challenge interstitial clearing is simulated.
    """

    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.url = "about:blank"
        self.visits: List[str] = []
        self.screenshots: List[str] = []
        self.mouse = FakeMouse()
        self.keyboard = FakeKeyboard()
        self.closed = False
        self._frames: List[Frame] = [Frame("", "")]
        self._index = 0

    def goto(self, url: str, **kwargs: Any) -> None:
        self.visits.append(url)
        response = self.site.resolve(url)
        if isinstance(response, Exception):
            raise response
        pages = response if isinstance(response, list) else [response]
        self._frames = [frame_from_html(html) for html in pages]
        self._index = 0
        self.url = url

    def title(self) -> str:
        return self._frames[self._index].title

    def content(self) -> str:
        html = self._frames[self._index].html
        self._index = min(self._index + 1, len(self._frames) - 1)
        return html

    def wait_for_selector(self, selector: str, **kwargs: Any) -> None:
        return None

    def wait_for_load_state(self, *args: Any, **kwargs: Any) -> None:
        return None

    def query_selector(self, selector: str) -> None:
        return None

    def evaluate(self, script: str) -> None:
        return None

    def set_default_timeout(self, timeout: int) -> None:
        return None

    def set_default_navigation_timeout(self, timeout: int) -> None:
        return None

    def screenshot(self, path: str, **kwargs: Any) -> None:
        pathlib.Path(path).write_bytes(b"")
        self.screenshots.append(path)

    def close(self) -> None:
        self.closed = True


class ScriptedTitlePage(FakePage):
    """Page whose title() walks a fixed script, one entry per call."""

    def __init__(self, titles: List[str]) -> None:
        super().__init__(FakeSite())
        self.titles = list(titles)
        self.title_calls = 0

    def title(self) -> str:
        self.title_calls += 1
        position = min(self.title_calls, len(self.titles)) - 1
        return self.titles[position]

    def content(self) -> str:
        return "<html><body>page</body></html>"


class FakeSessionManager:
    def __init__(self, site: FakeSite, fail_launch: bool = False) -> None:
        self.site = site
        self.fail_launch = fail_launch
        self.sessions: List[ScrapeSession] = []
        self.warmed_up = 0
        self.closed = 0

    def initialize(self, token: Optional[CancellationToken] = None) -> ScrapeSession:
        if self.fail_launch:
            raise SessionLaunchError("Browser launch failed: executable not found")
        session = ScrapeSession(page=FakePage(self.site), token=token or CancellationToken())
        self.sessions.append(session)
        return session

    def warm_up(self, session: ScrapeSession) -> None:
        self.warmed_up += 1

    def close(self, session: ScrapeSession) -> None:
        session.closed = True
        self.closed += 1


# ---------------------------------------------------------------------
# Config / store fixtures
# ---------------------------------------------------------------------
BASE_SETTINGS: Dict[str, Any] = {
    "search": {
        "queries": ["junior developer"],
        "location": "",
        "max_records": 50,
        "home_url": HOME_URL,
        "search_url": SEARCH_URL,
        "delay_min": 0,
        "delay_max": 0,
        "detail_fetch": False,
    },
    "browser": {
        "headless": True,
        "max_retries": 1,
        "settle_delay_min": 0,
        "settle_delay_max": 0,
        "human_simulation": False,
    },
    "warmup": {"enabled": False},
    "challenge": {
        "max_wait_seconds": 0.1,
        "poll_interval_seconds": 0.01,
        "idle_move_every": 2,
    },
    "backoff": {
        "base_seconds": 0,
        "max_attempts": 2,
    },
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("HARVESTER_SQLITE_PATH", "HARVESTER_HEADLESS", "HARVESTER_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_factory(tmp_path: pathlib.Path):
    counter = {"n": 0}

    def _make(overrides: Optional[Dict[str, Any]] = None) -> ConfigLoader:
        counter["n"] += 1
        settings = _merge(BASE_SETTINGS, {
            "storage": {"sqlite_path": str(tmp_path / "jobs.db")},
            "output": {
                "artifacts_dir": str(tmp_path / "artifacts"),
                "report_file": str(tmp_path / "reports" / "run_report_{timestamp}.json"),
            },
            "logging": {"log_file": str(tmp_path / "logs" / "harvester.log")},
        })
        settings = _merge(settings, overrides or {})
        path = tmp_path / f"settings_{counter['n']}.yaml"
        path.write_text(yaml.safe_dump(settings), encoding="utf-8")
        return ConfigLoader(str(path))

    return _make


@pytest.fixture
def config(config_factory) -> ConfigLoader:
    return config_factory()


@pytest.fixture
def store(tmp_path: pathlib.Path):
    job_store = SqliteJobStore(tmp_path / "jobs.db")
    yield job_store
    job_store.close()


@pytest.fixture
def results_html() -> str:
    return load_fixture("indeed_results.html")


@pytest.fixture
def detail_html() -> str:
    return load_fixture("indeed_detail.html")


@pytest.fixture
def site(results_html: str) -> FakeSite:
    return FakeSite({
        HOME_URL: HOME_HTML,
        SEARCH_URL: results_html,
    })
