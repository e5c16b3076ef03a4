"""
SyncPipeline - Fetch -> Project -> Publish -> Synchronize -> Settle -> Teardown

Runs one export of approved records to the Felt layer. Every step fails
fast; the pipeline logs the failure, always tears down the tunnel and the
local listener, and reports the outcome in a SyncReport.
"""

import logging
import time
from collections.abc import Callable
from typing import Optional

from ..domain.enums import EmptyPolicy
from ..domain.models import SyncReport, SyncResult, SyncSettings
from .felt import FeltLayerManager
from .publish import TransientPublisher
from .source import AirtableSource
from .transform import CsvProjector

logger = logging.getLogger(__name__)


class SyncPipeline:
    """
    Sequence the pipeline stages for one run.

    The settle delay exists because Felt acknowledges create/refresh before
    it has fetched the CSV; tearing the tunnel down immediately would race
    that fetch. With ``wait_for_processing`` the layer status is polled
    after the delay as well.
    """

    def __init__(
        self,
        source: AirtableSource,
        projector: CsvProjector,
        publisher: TransientPublisher,
        synchronizer: FeltLayerManager,
        settings: SyncSettings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.projector = projector
        self.publisher = publisher
        self.synchronizer = synchronizer
        self.settings = settings
        self._sleep = sleep

    def run(self) -> SyncReport:
        report = SyncReport()
        try:
            self._run_steps(report)
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.error(f"Pipeline execution failed: {report.error}")
            logger.debug("Failure details", exc_info=True)
        finally:
            self.teardown()

        if report.ok:
            logger.info("Pipeline completed successfully")
        return report

    def _run_steps(self, report: SyncReport) -> None:
        settings = self.settings

        # Step 1: Fetch
        records = self.source.fetch(settings.status, settings.status_field)
        report.records_fetched = len(records)

        if not records:
            if settings.on_empty == EmptyPolicy.SKIP:
                logger.warning(f"No records with {settings.status_field} = '{settings.status}'; nothing to publish")
                report.skipped = True
                return
            logger.warning("No matching records; publishing a header-only CSV")

        # Step 2: Project
        document = self.projector.render(records)
        report.rows_written = document.row_count

        if settings.csv_output:
            try:
                path = document.write(settings.csv_output)
                logger.info(f"Saved CSV copy to {path}")
            except OSError as e:
                logger.warning(f"Could not save CSV copy to {settings.csv_output}: {e}")

        # Step 3: Publish
        report.public_url = self.publisher.publish(document)

        # Step 4: Synchronize
        report.sync = self.synchronizer.sync(settings.layer_name, report.public_url)

        # Step 5: Settle
        report.layer_status = self._settle(report.sync)

    def _settle(self, result: SyncResult) -> Optional[str]:
        settings = self.settings
        if settings.settle_seconds > 0:
            logger.info(f"Waiting {settings.settle_seconds:.0f}s for Felt to fetch the CSV")
            self._sleep(settings.settle_seconds)

        if not settings.wait_for_processing:
            return None
        if not result.layer_id:
            logger.warning("Felt did not return a layer id; skipping status polling")
            return None
        return self.synchronizer.wait_until_processed(
            result.layer_id,
            timeout_s=settings.processing_timeout_s,
            interval_s=settings.poll_interval_s,
            sleep=self._sleep,
        )

    def teardown(self) -> None:
        """Close the tunnel, then the listener. Failures are logged, never raised."""
        try:
            self.publisher.disconnect()
        except Exception as e:
            logger.error(f"Tunnel teardown failed: {e}")
        try:
            self.publisher.close()
        except Exception as e:
            logger.error(f"Listener teardown failed: {e}")
