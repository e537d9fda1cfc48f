import asyncio
import signal
from datetime import datetime, timedelta, timezone

import structlog
from prometheus_client import start_http_server

from costreport.cli import parse_args
from costreport.config import load_config
from costreport.errors import CostReportError
from costreport.logging import setup_logging
from costreport.metrics import MetricsUpdater
from costreport.runner import ReportRunner, report_filename
from costreport.source.http import HTTPBillingSource

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def main() -> "None":
    settings = parse_args()
    setup_logging(settings.log_level, settings.log_format)

    try:
        config = load_config(settings.config_file)
        # fail fast on a bad duration or filename template
        config.granularity()
        report_filename(settings.report_file, datetime.now(timezone.utc))
    except CostReportError as err:
        raise SystemExit(str(err)) from err

    if not settings.single_run and config.granularity() <= timedelta(0):
        raise SystemExit("Periodic reports need a positive opts.duration.")

    if not settings.billing_url:
        raise SystemExit(
            "No billing source configured. Set --billing.url or COSTREPORT_BILLING_URL."
        )

    if settings.listen_address:
        host, port = _parse_listen_address(settings.listen_address)
        start_http_server(port, addr=host)
        logger.info("metrics_server_started", host=host, port=port)

    async def _run() -> "None":
        source = HTTPBillingSource(
            settings.billing_url,
            token=settings.billing_token,
            timeout=settings.report_timeout,
        )
        runner = ReportRunner(
            config,
            source,
            MetricsUpdater(),
            settings.report_file,
            start=settings.report_start,
            timeout_seconds=settings.report_timeout,
        )

        try:
            if settings.single_run:
                await runner.run_once()
                return

            loop = asyncio.get_running_loop()
            # for SIGINT and SIGTERM, signal the runner
            # to stop gracefully
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, runner.stop)

            await runner.run()
        finally:
            logger.info("shutting_down")
            await runner.close()
            logger.info("shutdown_complete")

    try:
        asyncio.run(_run())
    except CostReportError as err:
        raise SystemExit(str(err)) from err


if __name__ == "__main__":
    main()
