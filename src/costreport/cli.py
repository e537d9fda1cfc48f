import argparse

from costreport.config import Settings


def parse_args(argv: "list[str] | None" = None) -> "Settings":
    parser = argparse.ArgumentParser(
        prog="costreport",
        description="Periodic cloud cost report generator",
    )
    parser.add_argument(
        "--config.file",
        dest="config_file",
        required=True,
        help="YAML file with declared providers and report options",
    )
    parser.add_argument(
        "--report.start",
        dest="report_start",
        default="",
        help="Report window start as YYYY-MM-DDTHH:MM (implies --once)",
    )
    parser.add_argument(
        "--report.file",
        dest="report_file",
        default="cost-report-{begin:%Y%m%dT%H%M}.json",
        help="Report filename template (default: cost-report-{begin:%%Y%%m%%dT%%H%%M}.json)",
    )
    parser.add_argument(
        "--report.timeout",
        dest="report_timeout",
        type=float,
        default=60.0,
        help="Seconds allowed for the billing source call (default: 60)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Generate a single report and exit",
    )
    parser.add_argument(
        "--billing.url",
        dest="billing_url",
        default=None,
        help="Billing export base URL (default: $COSTREPORT_BILLING_URL)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default="",
        help="Address to expose metrics on, e.g. :9186 (default: disabled)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log.format",
        dest="log_format",
        default="console",
        choices=["console", "json"],
        help="Log output format (default: console)",
    )

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    settings.config_file = args.config_file
    settings.report_start = args.report_start
    settings.report_file = args.report_file
    settings.report_timeout = args.report_timeout
    settings.once = args.once
    if args.billing_url is not None:
        settings.billing_url = args.billing_url
    settings.listen_address = args.listen_address
    settings.log_level = args.log_level
    settings.log_format = args.log_format
    return settings
