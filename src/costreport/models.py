from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class TimeRange:
    """
    TimeRange is the half-open reporting window [start, end).
    """

    start: "datetime"
    end: "datetime"


@dataclass(frozen=True, slots=True)
class ItemKey:
    """
    ItemKey identifies a group of raw usage records that are
    summarized together, e.g. an instance family and its
    pricing type.
    """

    name: "str"
    item_type: "str"


@dataclass(frozen=True, slots=True)
class EC2Item:
    """
    EC2Item is one observation of an instance's state over
    some interval, as returned by a billing source. A zero in
    count, uptime, price or fixed_price means the value is absent.
    """

    launched: "bool" = False
    terminated: "bool" = False
    # 0 means a single, unbatched instance
    count: "int" = 0
    # hours
    uptime: "int" = 0
    price: "float" = 0.0
    fixed_price: "float" = 0.0


@dataclass(frozen=True, slots=True)
class Item:
    """
    Item is the aggregated summary of every EC2Item sharing
    an ItemKey.
    """

    name: "str"
    item_type: "str"
    launched: "int" = 0
    terminated: "int" = 0
    total_hours: "int" = 0
    avg_price: "float" = 0.0
    fixed_price: "float" = 0.0
    avg_uptime: "float" = 0.0

    def to_dict(self) -> "dict[str, Any]":
        return {
            "name": self.name,
            "type": self.item_type,
            "launched": self.launched,
            "terminated": self.terminated,
            "total_hours": self.total_hours,
            "avg_price": self.avg_price,
            "fixed_price": self.fixed_price,
            "avg_uptime": self.avg_uptime,
        }


@dataclass(frozen=True, slots=True)
class Service:
    name: "str"
    items: "tuple[Item, ...]" = ()

    def to_dict(self) -> "dict[str, Any]":
        return {
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True, slots=True)
class Account:
    # owner identifier reported by the billing source
    name: "str"
    services: "tuple[Service, ...]" = ()

    def to_dict(self) -> "dict[str, Any]":
        return {
            "name": self.name,
            "services": [service.to_dict() for service in self.services],
        }


@dataclass(frozen=True, slots=True)
class ComputedProvider:
    """
    ComputedProvider is the cloud provider whose spend is derived
    from raw usage records. It never carries a manual cost.
    """

    name: "str"
    accounts: "tuple[Account, ...]" = ()

    def to_dict(self) -> "dict[str, Any]":
        return {
            "name": self.name,
            "accounts": [account.to_dict() for account in self.accounts],
        }


@dataclass(frozen=True, slots=True)
class DeclaredProvider:
    """
    DeclaredProvider is a spend entry supplied through the config
    file. It never carries accounts.
    """

    name: "str"
    cost: "float | None" = None

    def to_dict(self) -> "dict[str, Any]":
        data: "dict[str, Any]" = {"name": self.name}
        if self.cost is not None:
            data["cost"] = self.cost
        return data


Provider = Union[ComputedProvider, DeclaredProvider]


@dataclass(frozen=True, slots=True)
class Report:
    """
    Report holds display strings for the window and the build time.
    They are meant for humans and are not parsed back.
    """

    begin: "str"
    end: "str"
    generated: "str"

    def to_dict(self) -> "dict[str, str]":
        return {
            "begin": self.begin,
            "end": self.end,
            "generated": self.generated,
        }


@dataclass(frozen=True, slots=True)
class Output:
    providers: "tuple[Provider, ...]"
    report: "Report"

    def to_dict(self) -> "dict[str, Any]":
        return {
            "providers": [provider.to_dict() for provider in self.providers],
            "report": self.report.to_dict(),
        }
