import asyncio
from typing import Sequence

import structlog

from costreport.errors import CollaboratorError, CollaboratorTimeoutError
from costreport.models import (
    Account,
    ComputedProvider,
    EC2Item,
    Item,
    ItemKey,
    Service,
    TimeRange,
)
from costreport.source.base import BillingSource, InstanceMap
from costreport.stats import average

logger = structlog.get_logger()

AWS = "aws"
EC2 = "ec2"


def _instance_count(record: "EC2Item") -> "int":
    # a zero count stands for one instance that was not batched
    return record.count if record.count != 0 else 1


def build_item(key: "ItemKey", records: "Sequence[EC2Item]") -> "Item":
    """
    reduces every raw record sharing key into one Item.

    Sums: launched/terminated count instances on flagged records,
    total_hours adds uptime from every record whatever its flags.
    Averages: price, fixed price and uptime are averaged over the
    records where the value is nonzero and stay 0.0 when there
    are none.
    """
    launched = 0
    terminated = 0
    total_hours = 0
    prices: "list[float]" = []
    fixed_prices: "list[float]" = []
    uptimes: "list[float]" = []

    for record in records:
        if record.launched:
            launched += _instance_count(record)
        if record.terminated:
            terminated += _instance_count(record)
        total_hours += record.uptime

        if record.price != 0:
            prices.append(record.price)
        if record.fixed_price != 0:
            fixed_prices.append(record.fixed_price)
        if record.uptime != 0:
            uptimes.append(float(record.uptime))

    return Item(
        name=key.name,
        item_type=key.item_type,
        launched=launched,
        terminated=terminated,
        total_hours=total_hours,
        avg_price=average(prices) if prices else 0.0,
        fixed_price=average(fixed_prices) if fixed_prices else 0.0,
        avg_uptime=average(uptimes) if uptimes else 0.0,
    )


def build_accounts(instances: "InstanceMap") -> "tuple[Account, ...]":
    """
    builds one Account per owner, each holding a single ec2 Service
    whose items follow the iteration order of the source mapping.
    """
    accounts: "list[Account]" = []

    for owner, groups in instances.items():
        logger.info("aggregating_account", account=owner, item_count=len(groups))
        items = tuple(build_item(key, records) for key, records in groups.items())
        accounts.append(
            Account(name=owner, services=(Service(name=EC2, items=items),))
        )

    return tuple(accounts)


async def build_computed_provider(
    source: "BillingSource",
    time_range: "TimeRange",
    timeout: "float | None" = None,
) -> "ComputedProvider":
    """
    fetches raw records for time_range from source and assembles the
    aws provider. Source failures abort with CollaboratorError; an
    expired timeout raises CollaboratorTimeoutError. Cancellation is
    not converted.
    """
    logger.info(
        "billing_fetch_start",
        source=source.name,
        start=str(time_range.start),
        end=str(time_range.end),
    )
    try:
        instances = await asyncio.wait_for(
            source.get_ec2_instances(time_range), timeout=timeout
        )
    except TimeoutError as err:
        raise CollaboratorTimeoutError(
            f"billing source {source.name!r} timed out after {timeout}s "
            f"for window {time_range.start} - {time_range.end}"
        ) from err
    except Exception as err:
        raise CollaboratorError(
            f"problem getting EC2 instances from {source.name!r} "
            f"for window {time_range.start} - {time_range.end}: {err}"
        ) from err

    return ComputedProvider(name=AWS, accounts=build_accounts(instances))
