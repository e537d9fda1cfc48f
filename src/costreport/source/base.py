from typing import Mapping, Protocol, Sequence

from costreport.models import EC2Item, ItemKey, TimeRange

# owner -> item key -> raw records sharing that key
InstanceMap = Mapping[str, Mapping[ItemKey, Sequence[EC2Item]]]


class BillingSource(Protocol):
    """
    BillingSource stands as the common protocol that every
    source of raw EC2 usage records must satisfy.

    A source returns the records observed inside a report window,
    partitioned by owning account and by item key. An empty mapping
    means "no data"; failures must be raised, never returned as an
    empty mapping.
    """

    @property
    def name(self) -> "str": ...

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "InstanceMap": ...

    async def close(self) -> "None": ...
