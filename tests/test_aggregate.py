import asyncio
from datetime import datetime, timezone

import pytest

from costreport.aggregate import (
    build_accounts,
    build_computed_provider,
    build_item,
)
from costreport.errors import CollaboratorError, CollaboratorTimeoutError
from costreport.models import EC2Item, Item, ItemKey, TimeRange

WINDOW = TimeRange(
    start=datetime(2023, 1, 1, 0, 0, tzinfo=timezone.utc),
    end=datetime(2023, 1, 1, 4, 0, tzinfo=timezone.utc),
)
KEY = ItemKey(name="c5.large", item_type="on-demand")


class MockSource:
    """
    A mock billing source that returns a pre-configured mapping.
    """

    def __init__(self, instances: "dict[str, dict[ItemKey, list[EC2Item]]]") -> "None":
        self._instances = instances
        self.windows: "list[TimeRange]" = []

    @property
    def name(self) -> "str":
        return "mock"

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "dict[str, dict[ItemKey, list[EC2Item]]]":
        self.windows.append(time_range)
        return self._instances

    async def close(self) -> "None":
        pass


class FailingSource:
    """
    A mock billing source that always raises on fetch.
    """

    @property
    def name(self) -> "str":
        return "failing"

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "dict[str, dict[ItemKey, list[EC2Item]]]":
        raise RuntimeError("billing fetch failed")

    async def close(self) -> "None":
        pass


class SlowSource:
    @property
    def name(self) -> "str":
        return "slow"

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "dict[str, dict[ItemKey, list[EC2Item]]]":
        await asyncio.sleep(10)
        return {}

    async def close(self) -> "None":
        pass


class CancelledSource:
    """
    A mock billing source whose fetch is cancelled from inside.
    """

    @property
    def name(self) -> "str":
        return "cancelled"

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "dict[str, dict[ItemKey, list[EC2Item]]]":
        raise asyncio.CancelledError()

    async def close(self) -> "None":
        pass


class TestBuildItem:
    def test_zero_count_counts_as_one_instance(self) -> "None":
        records = [
            EC2Item(launched=True, count=0),
            EC2Item(launched=True, count=5),
        ]
        item = build_item(KEY, records)
        assert item.launched == 6
        assert item.terminated == 0

    def test_terminated_uses_same_rule(self) -> "None":
        records = [
            EC2Item(terminated=True),
            EC2Item(terminated=True, count=3),
            EC2Item(launched=True, terminated=True, count=2),
        ]
        item = build_item(KEY, records)
        assert item.terminated == 6
        assert item.launched == 2

    def test_total_hours_counts_every_record(self) -> "None":
        records = [
            EC2Item(launched=True, uptime=4),
            EC2Item(terminated=True, uptime=3),
            # neither launched nor terminated in the window
            EC2Item(uptime=5),
        ]
        assert build_item(KEY, records).total_hours == 12

    def test_averages_skip_zero_values(self) -> "None":
        records = [
            EC2Item(launched=True, uptime=10, price=0.5),
            EC2Item(launched=True, count=5, fixed_price=100.0),
            EC2Item(terminated=True, count=2, uptime=3, price=0.341),
        ]
        item = build_item(KEY, records)

        assert item == Item(
            name="c5.large",
            item_type="on-demand",
            launched=6,
            terminated=2,
            total_hours=13,
            # mean of 0.5 and 0.341 is 0.4205, rounded up
            avg_price=0.43,
            fixed_price=100.0,
            avg_uptime=6.5,
        )

    def test_all_zero_fields_stay_zero(self) -> "None":
        item = build_item(KEY, [EC2Item(launched=True), EC2Item(terminated=True)])
        assert item.avg_price == 0.0
        assert item.fixed_price == 0.0
        assert item.avg_uptime == 0.0
        assert item.total_hours == 0

    def test_avg_uptime_is_independent_of_total_hours(self) -> "None":
        records = [EC2Item(uptime=2), EC2Item(uptime=0), EC2Item(uptime=4)]
        item = build_item(KEY, records)
        assert item.total_hours == 6
        assert item.avg_uptime == 3.0


class TestBuildAccounts:
    def test_one_account_per_owner_with_ec2_service(self) -> "None":
        other = ItemKey(name="m5.xlarge", item_type="reserved")
        accounts = build_accounts(
            {
                "alice": {
                    KEY: [EC2Item(launched=True)],
                    other: [EC2Item(terminated=True)],
                },
                "bob": {KEY: [EC2Item(uptime=3)]},
            }
        )

        assert [a.name for a in accounts] == ["alice", "bob"]
        for account in accounts:
            assert [s.name for s in account.services] == ["ec2"]

        alice_items = accounts[0].services[0].items
        assert [(i.name, i.item_type) for i in alice_items] == [
            ("c5.large", "on-demand"),
            ("m5.xlarge", "reserved"),
        ]
        assert accounts[1].services[0].items[0].total_hours == 3

    def test_no_data_builds_no_accounts(self) -> "None":
        assert build_accounts({}) == ()


class TestBuildComputedProvider:
    @pytest.mark.asyncio
    async def test_builds_aws_provider(self) -> "None":
        source = MockSource({"alice": {KEY: [EC2Item(launched=True)]}})
        provider = await build_computed_provider(source, WINDOW)

        assert provider.name == "aws"
        assert len(provider.accounts) == 1
        assert source.windows == [WINDOW]

    @pytest.mark.asyncio
    async def test_source_failure_is_wrapped(self) -> "None":
        with pytest.raises(CollaboratorError, match="failing") as exc_info:
            await build_computed_provider(FailingSource(), WINDOW)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout_error(self) -> "None":
        with pytest.raises(CollaboratorTimeoutError):
            await build_computed_provider(SlowSource(), WINDOW, timeout=0.01)

    @pytest.mark.asyncio
    async def test_cancellation_from_source_is_not_wrapped(self) -> "None":
        with pytest.raises(asyncio.CancelledError) as exc_info:
            await build_computed_provider(CancelledSource(), WINDOW, timeout=5)

        assert not isinstance(exc_info.value, CollaboratorError)

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_propagates(self) -> "None":
        task = asyncio.create_task(build_computed_provider(SlowSource(), WINDOW))
        # let the task reach the source call before cancelling it
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()
