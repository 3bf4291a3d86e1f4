"""
Harvester - wires session, driver and persistence into one run
"""

import logging
import random
from typing import List, Optional, Sequence

from job_harvester.cancel import CancellationToken
from job_harvester.challenge import ChallengeHandler
from job_harvester.driver import QueryDriver
from job_harvester.errors import ConnectivityError, RunCancelled, SessionLaunchError
from job_harvester.extraction import ExtractionEngine
from job_harvester.models import JobPosting
from job_harvester.persistence import PersistenceGate
from job_harvester.run_metrics import RunReport
from job_harvester.session import SessionManager
from job_harvester.store import JobStore

logger = logging.getLogger(__name__)


class Harvester:
    """
    Usage:
        harvester = Harvester(config, SqliteJobStore(config.get_sqlite_path()))
        report = harvester.run()

    The browser session is always closed before run() returns, whether the
    run finished, was cancelled or aborted on a fatal error. Postings
    collected before a cancellation or an unexpected error are still saved.
    """

    def __init__(
        self,
        config,
        store: JobStore,
        session_manager: Optional[SessionManager] = None,
        token: Optional[CancellationToken] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.store = store
        self.rng = rng or random.Random()
        self.session_manager = session_manager or SessionManager(config, rng=self.rng)
        self.token = token or CancellationToken()
        self.gate = PersistenceGate(config, store)

    def run(
        self,
        queries: Optional[Sequence[str]] = None,
        max_records: Optional[int] = None,
        warmup: Optional[bool] = None,
    ) -> RunReport:
        queries = list(queries) if queries else self.config.get_queries()
        warmup = self.config.is_warmup_enabled() if warmup is None else warmup
        report = RunReport(source=self.config.get_source())
        report.set_gauge("queries", len(queries))

        print("\n" + "=" * 60)
        print("🤖 STARTING JOB HARVEST")
        print("=" * 60)

        collected: List[JobPosting] = []
        driver = None
        session = None
        try:
            session = self.session_manager.initialize(self.token)
            if warmup:
                self.session_manager.warm_up(session)

            driver = QueryDriver(
                self.config,
                ChallengeHandler(self.config, rng=self.rng),
                ExtractionEngine(self.config),
                report,
                rng=self.rng,
            )
            collected = driver.run(session, queries, max_records)
        except (SessionLaunchError, ConnectivityError) as exc:
            logger.error("Run aborted: %s", exc)
            print(f"\n❌ Run aborted: {exc}")
            report.fatal_error = f"{type(exc).__name__}: {exc}"
        except RunCancelled as exc:
            logger.warning("Run cancelled (%s); saving partial results", exc)
            print("\n⚠️  Interrupted - saving partial results")
            report.cancelled = True
            collected = list(driver.collected) if driver is not None else []
        except Exception as exc:
            logger.exception("Run failed unexpectedly")
            print(f"\n❌ Run failed: {exc} - saving partial results")
            report.fatal_error = f"{type(exc).__name__}: {exc}"
            collected = list(driver.collected) if driver is not None else []
        finally:
            if session is not None:
                report.artifacts.extend(a for a in session.artifacts if a not in report.artifacts)
                self.session_manager.close(session)

        report.inc("collected", len(collected))
        if collected:
            save = self.gate.save_all(collected)
            report.inc("saved", save.saved)
            report.inc("skipped", save.skipped)
            report.inc("errored", save.errored)
            for reason, count in save.skip_reasons.items():
                report.inc(f"skipped_{reason}", count)
            for error in save.errors:
                report.record_event("save_failed", error=error)

        report.finish()
        print(f"\n📊 Total: {report.summary()}")
        print("=" * 60 + "\n")
        logger.info("Run complete: %s", report.summary())
        return report
