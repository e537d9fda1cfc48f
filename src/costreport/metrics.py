from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from costreport.models import ComputedProvider


class MetricsUpdater:
    """
    records report runs and a summary of the last computed provider
    in Prometheus metrics.
     - items: number of aggregated items, labeled by account and service.
     - instance_hours: summed uptime hours, labeled by account and service.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._report_duration: "Histogram" = Histogram(
            "costreport_report_duration_seconds",
            "Duration of report generation runs",
            registry=registry,
        )
        self._report_errors: "Counter" = Counter(
            "costreport_report_errors_total",
            "Total number of failed report runs by stage",
            ["stage"],
            registry=registry,
        )
        self._last_success: "Gauge" = Gauge(
            "costreport_last_report_success_timestamp_seconds",
            "Unix timestamp of the last successful report",
            registry=registry,
        )
        self._items: "Gauge" = Gauge(
            "costreport_items",
            "Aggregated items in the last report",
            ["account", "service"],
            registry=registry,
        )
        self._instance_hours: "Gauge" = Gauge(
            "costreport_instance_hours",
            "Total instance hours in the last report",
            ["account", "service"],
            registry=registry,
        )

    def update_provider(self, provider: "ComputedProvider") -> "None":
        """
        replaces the per-account gauges with the contents of provider,
        so accounts missing from the last report disappear.
        """
        self._items.clear()
        self._instance_hours.clear()

        for account in provider.accounts:
            for service in account.services:
                labels = {"account": account.name, "service": service.name}
                self._items.labels(**labels).set(len(service.items))
                self._instance_hours.labels(**labels).set(
                    sum(item.total_hours for item in service.items)
                )

    def observe_report_duration(self, duration_seconds: "float") -> "None":
        self._report_duration.observe(duration_seconds)

    def inc_report_error(self, stage: "str") -> "None":
        self._report_errors.labels(stage=stage).inc()

    def set_last_report_success(self, timestamp: "float") -> "None":
        self._last_success.set(timestamp)
