from typing import Any

import httpx
import structlog

from costreport.models import EC2Item, ItemKey, TimeRange

logger = structlog.get_logger()

INSTANCES_PATH = "/ec2/instances"


class HTTPBillingSource:
    """
    HTTPBillingSource implements the BillingSource protocol on top of a
    JSON billing export endpoint. It walks every page of the export for
    the requested window and folds the results into a single
    owner -> item key -> records mapping, keeping the order in which
    owners and keys were first seen.
    """

    def __init__(
        self,
        base_url: "str",
        token: "str" = "",
        timeout: "float" = 10.0,
    ) -> "None":
        self._base_url = base_url.rstrip("/")
        headers: "dict[str, str]" = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
        )

    @property
    def name(self) -> "str":
        return "http"

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    async def get_ec2_instances(
        self,
        time_range: "TimeRange",
    ) -> "dict[str, dict[ItemKey, list[EC2Item]]]":
        """
        fetches every page of EC2 usage records inside time_range.
        Non-2xx responses raise httpx.HTTPStatusError.
        """
        accounts: "dict[str, dict[ItemKey, list[EC2Item]]]" = {}
        params: "dict[str, str]" = {
            "start": time_range.start.isoformat(),
            "end": time_range.end.isoformat(),
        }
        pages = 0

        # loop instead of recursion until the export has no more pages
        while True:
            url = f"{self._base_url}{INSTANCES_PATH}"
            logger.debug("billing_fetch_page", url=url, page=params.get("page", ""))
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()

            data = resp.json()
            pages += 1

            for account in data.get("accounts", []):
                owner = account.get("owner") or "unknown"
                instances = accounts.setdefault(owner, {})

                for entry in account.get("items", []):
                    key = ItemKey(
                        name=entry.get("name", ""),
                        item_type=entry.get("type", ""),
                    )
                    records = instances.setdefault(key, [])
                    records.extend(
                        _parse_record(record) for record in entry.get("records", [])
                    )

            if not data.get("has_more"):
                break

            next_page = data.get("next_page", "")
            if not next_page:
                break
            params["page"] = next_page

        logger.debug(
            "billing_fetch_done",
            pages=pages,
            account_count=len(accounts),
        )
        return accounts


def _parse_record(raw: "dict[str, Any]") -> "EC2Item":
    return EC2Item(
        launched=bool(raw.get("launched", False)),
        terminated=bool(raw.get("terminated", False)),
        count=int(raw.get("count") or 0),
        uptime=int(raw.get("uptime") or 0),
        price=float(raw.get("price") or 0.0),
        fixed_price=float(raw.get("fixed_price") or 0.0),
    )
