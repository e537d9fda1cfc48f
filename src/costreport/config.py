import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Sequence

import yaml

from costreport.errors import ConfigParseError
from costreport.models import ComputedProvider, DeclaredProvider, Provider
from costreport.timerange import parse_duration


@dataclass(frozen=True, slots=True)
class Options:
    # granularity as a duration string, e.g. "4h"; empty means the default
    duration: "str" = ""
    # empty means the report is printed to stdout
    directory: "str" = ""


@dataclass(frozen=True, slots=True)
class Config:
    """
    Config is the report configuration loaded from YAML: the
    declared providers and the report options. It is immutable and
    passed explicitly through the pipeline.
    """

    providers: "tuple[DeclaredProvider, ...]" = ()
    options: "Options" = field(default_factory=Options)

    def granularity(self) -> "timedelta":
        """
        returns the configured report granularity, defaulting
        to 4 hours when no duration is set.
        """
        return parse_duration(self.options.duration)

    def to_dict(self) -> "dict[str, Any]":
        return {
            "providers": [provider.to_dict() for provider in self.providers],
            "opts": {
                "duration": self.options.duration,
                "directory": self.options.directory,
            },
        }


def _as_declared(provider: "Provider") -> "DeclaredProvider":
    # a computed provider has no cost and its accounts never go into the config
    if isinstance(provider, ComputedProvider):
        return DeclaredProvider(name=provider.name)
    return provider


def update_spend_providers(
    config: "Config",
    new_providers: "Sequence[Provider]",
) -> "Config":
    """
    merges new_providers into the config's providers by name. An
    existing provider only has its cost replaced and keeps its
    position; unknown providers are appended. Computed providers are
    merged as declared entries without a cost. Returns a new Config,
    the given one is left untouched.
    """
    providers = list(config.providers)

    for new in map(_as_declared, new_providers):
        for idx, old in enumerate(providers):
            if old.name == new.name:
                providers[idx] = replace(old, cost=new.cost)
                break
        else:
            providers.append(new)

    return replace(config, providers=tuple(providers))


def _parse_provider(raw: "Any") -> "DeclaredProvider":
    if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
        raise ConfigParseError(f"invalid provider entry: {raw!r}")

    if raw.get("accounts"):
        raise ConfigParseError(
            f"declared provider {raw['name']!r} cannot carry accounts"
        )

    cost = raw.get("cost")
    if cost is not None:
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            raise ConfigParseError(
                f"invalid cost for provider {raw['name']!r}: {cost!r}"
            )
        cost = float(cost)

    return DeclaredProvider(name=raw["name"], cost=cost)


def config_from_dict(data: "Any") -> "Config":
    """
    builds a Config from the parsed YAML document.
    """
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigParseError("config root must be a mapping")

    opts = data.get("opts") or {}
    if not isinstance(opts, dict):
        raise ConfigParseError("opts must be a mapping")

    providers = data.get("providers") or []
    if not isinstance(providers, list):
        raise ConfigParseError("providers must be a list")

    return Config(
        providers=tuple(_parse_provider(raw) for raw in providers),
        options=Options(
            duration=str(opts.get("duration") or ""),
            directory=str(opts.get("directory") or ""),
        ),
    )


def load_config(path: "str") -> "Config":
    """
    reads the YAML config file at path.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as err:
        raise ConfigParseError(f"invalid file: {path}") from err
    except yaml.YAMLError as err:
        raise ConfigParseError(f"invalid yaml format in {path}") from err

    return config_from_dict(data)


def save_config(config: "Config", path: "str") -> "None":
    """
    writes config back to path in the layout load_config reads.
    """
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(config.to_dict(), fh, sort_keys=False)


@dataclass
class Settings:
    """
    Settings holds the runtime options of the costreport process,
    filled from the environment and then from CLI flags.
    """

    config_file: "str" = ""
    # explicit window start, format YYYY-MM-DDTHH:MM
    report_start: "str" = ""
    report_file: "str" = "cost-report-{begin:%Y%m%dT%H%M}.json"
    # seconds allowed for the billing source call
    report_timeout: "float" = 60.0
    once: "bool" = False
    # listen_address: format ":9186" or "0.0.0.0:9186", empty disables
    listen_address: "str" = ""
    log_level: "str" = "info"
    log_format: "str" = "console"

    billing_url: "str" = ""
    billing_token: "str" = ""

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            billing_url=os.environ.get("COSTREPORT_BILLING_URL", ""),
            billing_token=os.environ.get("COSTREPORT_BILLING_TOKEN", ""),
        )

    @property
    def single_run(self) -> "bool":
        return self.once or bool(self.report_start)
