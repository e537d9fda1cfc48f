import asyncio
import time
from datetime import datetime, timezone
from typing import Callable

import structlog

from costreport.config import Config
from costreport.errors import (
    CollaboratorError,
    CostReportError,
    OutputWriteError,
    SerializationError,
    TimeParseError,
)
from costreport.metrics import MetricsUpdater
from costreport.models import ComputedProvider, TimeRange
from costreport.report import create_report, resolve_report_range, write_report
from costreport.source.base import BillingSource

logger = structlog.get_logger()


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


def _error_stage(err: "CostReportError") -> "str":
    if isinstance(err, TimeParseError):
        return "window"
    if isinstance(err, CollaboratorError):
        return "billing"
    if isinstance(err, (SerializationError, OutputWriteError)):
        return "write"
    return "other"


def report_filename(template: "str", begin: "datetime") -> "str":
    """
    expands the report filename template, e.g.
    "cost-report-{begin:%Y%m%dT%H%M}.json".
    """
    try:
        return template.format(begin=begin)
    except (KeyError, IndexError, ValueError, AttributeError) as err:
        raise OutputWriteError(
            f"invalid report filename template {template!r}: {err!r}"
        ) from err


class ReportRunner:
    """
    ReportRunner orchestrates periodic report generation. Every cycle
    builds the report for the next window from the billing source,
    writes it out and records the outcome in the metrics.

    Windows are contiguous: the first one is resolved from the start
    option (or ends now), each following one starts where the previous
    one ended and spans the configured granularity. Between cycles the
    loop sleeps until the next window has closed, and it runs until
    stop() is called.
    """

    def __init__(
        self,
        config: "Config",
        source: "BillingSource",
        metrics_updater: "MetricsUpdater",
        filename_template: "str",
        start: "str" = "",
        timeout_seconds: "float | None" = None,
        clock: "Callable[[], datetime]" = _utcnow,
    ) -> "None":
        self._config = config
        self._source = source
        self._metrics = metrics_updater
        self._filename_template = filename_template
        self._start = start
        self._timeout = timeout_seconds
        self._clock = clock
        # last window a cycle was run for, reported or not
        self._last_window: "TimeRange | None" = None
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the runner loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def close(self) -> "None":
        """
        closes the billing source session.
        """
        await self._source.close()

    def next_window(self) -> "TimeRange":
        """
        returns the window the next cycle reports on.
        """
        if self._last_window is None:
            return resolve_report_range(self._start, self._config, self._clock())

        end = self._last_window.end
        return TimeRange(start=end, end=end + self._config.granularity())

    def seconds_until_next_window(self) -> "float":
        """
        seconds until the next window has closed, 0 when it already has.
        """
        remaining = self.next_window().end - self._clock()
        return max(remaining.total_seconds(), 0.0)

    async def run_once(self) -> "str | None":
        """
        generates and writes the report for the next window, returning
        the written path (None for stdout). Errors are recorded and
        re-raised; the window is consumed either way.
        """
        cycle_start = time.monotonic()
        try:
            window = self.next_window()
            self._last_window = window
            output = await create_report(
                self._start,
                self._config,
                self._source,
                clock=self._clock,
                timeout=self._timeout,
                time_range=window,
            )
            filename = report_filename(self._filename_template, window.start)
            path = write_report(output, self._config, filename)
        except CostReportError as err:
            self._metrics.inc_report_error(_error_stage(err))
            raise
        finally:
            self._metrics.observe_report_duration(time.monotonic() - cycle_start)

        computed = output.providers[0]
        if isinstance(computed, ComputedProvider):
            self._metrics.update_provider(computed)
        self._metrics.set_last_report_success(time.time())
        return path

    async def run(self) -> "None":
        """
        runs the main report loop. Runs until stop() is called.
        """
        while not self._stop_event.is_set():
            logger.info("report_cycle_start")
            try:
                path = await self.run_once()
            except CostReportError:
                window = self._last_window
                logger.exception(
                    "report_cycle_error",
                    start=str(window.start) if window else "",
                    end=str(window.end) if window else "",
                )
            else:
                logger.info("report_cycle_end", path=path or "stdout")

            try:
                delay = self.seconds_until_next_window()
            except CostReportError:
                logger.exception("report_window_error")
                return

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except TimeoutError:
                pass
