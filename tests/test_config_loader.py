from pathlib import Path

import pytest

from job_harvester.config_loader import ConfigLoader, DEFAULT_HEADERS, load_config
from job_harvester.errors import ConfigValidationError
from job_harvester.selectors import DEFAULT_RESULTS_SELECTORS


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader(str(tmp_path / "nope.yaml"))


def test_empty_file_uses_defaults(tmp_path):
    config = load_config(_write(tmp_path, ""))

    assert config.get_source() == "indeed"
    assert config.get_max_records() == 50
    assert config.get_query_delay_min() == 15.0
    assert config.get_query_delay_max() == 30.0
    assert config.get_page_timeout() == 30000
    assert config.requires_title_and_company() is True
    assert config.normalize_salary_to_annual() is True
    assert config.get_sqlite_path() == Path("data/jobs.db")
    assert config.get_extra_headers() == DEFAULT_HEADERS


def test_dot_path_get(tmp_path):
    config = load_config(_write(tmp_path, "search:\n  location: Philadelphia, PA\n"))
    assert config.get("search.location") == "Philadelphia, PA"
    assert config.get("search.missing", "fallback") == "fallback"
    assert config.get("search.location.deeper", "fallback") == "fallback"


@pytest.mark.parametrize(
    "text",
    [
        "search:\n  delay_min: -1\n",
        "search:\n  delay_min: 40\n  delay_max: 30\n",
        "browser:\n  page_timeout: 0\n",
        "browser:\n  settle_delay_min: 9\n  settle_delay_max: 2\n",
        "backoff:\n  max_attempts: 0\n",
        "search:\n  queries: python developer\n",
        "selectors:\n  results: ['.card']\n",
    ],
)
def test_invalid_values_are_rejected(tmp_path, text):
    with pytest.raises(ConfigValidationError):
        load_config(_write(tmp_path, text))


def test_non_mapping_top_level_is_rejected(tmp_path):
    with pytest.raises(ConfigValidationError):
        load_config(_write(tmp_path, "- just\n- a list\n"))


def test_selector_overrides_replace_single_fields(tmp_path):
    config = load_config(_write(tmp_path, "selectors:\n  results:\n    company:\n      - '.employer'\n"))
    table = config.get_selectors("results")

    assert table["company"] == [".employer"]
    assert table["title"] == DEFAULT_RESULTS_SELECTORS["title"]


def test_backoff_policy_from_config(tmp_path):
    config = load_config(_write(tmp_path, "backoff:\n  base_seconds: 5\n  max_attempts: 4\n"))
    policy = config.get_backoff_policy()
    assert policy.base_seconds == 5.0
    assert policy.max_attempts == 4


def test_env_overrides(tmp_path, monkeypatch):
    config = load_config(_write(tmp_path, "browser:\n  headless: false\nlogging:\n  level: info\n"))
    monkeypatch.setenv("HARVESTER_HEADLESS", "1")
    monkeypatch.setenv("HARVESTER_SQLITE_PATH", str(tmp_path / "other.db"))
    monkeypatch.setenv("HARVESTER_LOG_LEVEL", "debug")

    assert config.is_headless() is True
    assert config.get_sqlite_path() == tmp_path / "other.db"
    assert config.get_log_level() == "DEBUG"


def test_timestamped_paths(tmp_path):
    config = load_config(_write(tmp_path, "output:\n  report_file: out/report_{timestamp}.json\n"))
    path = config.get_report_path()
    assert path.parent == Path("out")
    assert "{timestamp}" not in path.name


def test_shipped_settings_file_is_valid():
    settings = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"
    config = load_config(str(settings))
    assert config.get_queries()
    assert config.get_challenge_max_wait() == 30.0
