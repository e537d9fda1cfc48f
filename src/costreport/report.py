import contextlib
import json
import os
import sys
import tempfile
from datetime import datetime, timezone
from typing import Callable, TextIO

import structlog

from costreport.aggregate import build_computed_provider
from costreport.config import Config
from costreport.errors import OutputWriteError, SerializationError, TimeParseError
from costreport.models import Output, Report, TimeRange
from costreport.source.base import BillingSource
from costreport.timerange import resolve_time_range

logger = structlog.get_logger()


def _utcnow() -> "datetime":
    return datetime.now(timezone.utc)


def resolve_report_range(
    start: "str",
    config: "Config",
    now: "datetime",
) -> "TimeRange":
    """
    resolves the report window from start and the configured granularity.
    """
    try:
        return resolve_time_range(start, config.granularity(), now=now)
    except TimeParseError as err:
        raise TimeParseError(
            f"problem retrieving report start and end: {err}"
        ) from err


async def create_report(
    start: "str",
    config: "Config",
    source: "BillingSource",
    clock: "Callable[[], datetime]" = _utcnow,
    timeout: "float | None" = None,
    time_range: "TimeRange | None" = None,
) -> "Output":
    """
    builds a fresh Output for the window starting at start (or ending
    now when start is empty). An already resolved time_range takes
    precedence over start. The computed aws provider always comes
    first, followed by the declared providers as configured.
    """
    logger.info("report_create_start", start=start or "now")
    report_range = time_range
    if report_range is None:
        report_range = resolve_report_range(start, config, clock())

    computed = await build_computed_provider(source, report_range, timeout=timeout)

    output = Output(
        providers=(computed, *config.providers),
        report=Report(
            begin=str(report_range.start),
            end=str(report_range.end),
            generated=str(clock()),
        ),
    )
    logger.info(
        "report_create_done",
        account_count=len(computed.accounts),
        provider_count=len(output.providers),
    )
    return output


def render_report(output: "Output") -> "str":
    """
    encodes output as indented JSON with a stable key order.
    """
    try:
        return json.dumps(output.to_dict(), indent=4, allow_nan=False)
    except (TypeError, ValueError) as err:
        raise SerializationError(f"problem marshalling report into JSON: {err}") from err


def write_report(
    output: "Output",
    config: "Config",
    filename: "str",
    stream: "TextIO | None" = None,
) -> "str | None":
    """
    writes the report to config's output directory under filename and
    returns the path. Without a directory the report goes to stream
    (stdout by default) and None is returned.
    """
    body = render_report(output)

    if not config.options.directory:
        print(body, file=stream if stream is not None else sys.stdout)
        return None

    path = os.path.join(config.options.directory, filename)
    logger.info("report_write", path=path)

    # the report only appears at path once it is fully written
    tmp_path = ""
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=config.options.directory,
            prefix=".costreport-",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_path = fh.name
            fh.write(body)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
        tmp_path = ""
    except OSError as err:
        raise OutputWriteError(f"problem writing report to {path}: {err}") from err
    finally:
        if tmp_path:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)

    return path
