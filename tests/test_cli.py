import pytest

from costreport.cli import parse_args


class TestParseArgs:
    def test_defaults(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.delenv("COSTREPORT_BILLING_URL", raising=False)
        settings = parse_args(["--config.file", "config.yaml"])

        assert settings.config_file == "config.yaml"
        assert settings.report_start == ""
        assert settings.report_file == "cost-report-{begin:%Y%m%dT%H%M}.json"
        assert settings.report_timeout == 60.0
        assert settings.once is False
        assert settings.billing_url == ""
        assert settings.listen_address == ""
        assert settings.log_level == "info"
        assert settings.log_format == "console"

    def test_flags_override(self, monkeypatch: "pytest.MonkeyPatch") -> "None":
        monkeypatch.setenv("COSTREPORT_BILLING_URL", "https://from-env")
        settings = parse_args(
            [
                "--config.file",
                "c.yaml",
                "--report.start",
                "2023-01-01T00:00",
                "--billing.url",
                "https://from-flag",
                "--web.listen-address",
                ":9186",
                "--log.format",
                "json",
            ]
        )

        assert settings.billing_url == "https://from-flag"
        assert settings.listen_address == ":9186"
        assert settings.log_format == "json"
        assert settings.single_run is True

    def test_env_billing_url_used_without_flag(
        self, monkeypatch: "pytest.MonkeyPatch"
    ) -> "None":
        monkeypatch.setenv("COSTREPORT_BILLING_URL", "https://from-env")
        settings = parse_args(["--config.file", "c.yaml"])
        assert settings.billing_url == "https://from-env"

    def test_config_file_is_required(self) -> "None":
        with pytest.raises(SystemExit):
            parse_args([])
