"""List view threshold scenarios.

Each scenario queues queries on one session, runs them through the
resilient executor and reads the resolved values. A scenario that trips
the list view threshold fails with a ``ServerError`` whose
``is_list_view_threshold`` is true; throttling is absorbed by the executor.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from lvt_diagnostic.logging import throttle_logger
from lvt_diagnostic.scenarios.projections import (
    SIMPLE_LIST_FIELDS,
    load_list,
    load_list_item,
    load_list_item_collection,
    load_web,
)
from lvt_diagnostic.scenarios.views import ViewQuery

if TYPE_CHECKING:
    import structlog

    from lvt_diagnostic.client.session import ClientSession
    from lvt_diagnostic.config import Settings
    from lvt_diagnostic.retry.executor import ResilientExecutor
    from lvt_diagnostic.retry.models import RetryState


@dataclass(slots=True)
class ScenarioContext:
    """Everything a scenario needs for one run."""

    session: ClientSession
    executor: ResilientExecutor
    settings: Settings
    log: structlog.stdlib.BoundLogger

    def execute(self) -> RetryState:
        return self.executor.execute(self.session, throttle_logger(self.log))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SimpleExampleResult(BaseModel):
    list_title: str
    first_subfolder_name: str | None = None


class EnumerationResult(BaseModel):
    list_title: str
    pages: int = Field(default=0, ge=0)
    items: int = Field(default=0, ge=0)
    root_folder_item_count: int = Field(default=0, ge=0)
    will_trigger_lvt: bool = False


class ListItemResult(BaseModel):
    list_title: str
    item_id: int
    display_name: str | None = None


class StepwiseResult(BaseModel):
    list_title: str
    item_id: int
    steps_completed: list[str] = Field(default_factory=list)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _root_folder(list_value: dict[str, Any]) -> dict[str, Any]:
    return _as_dict(list_value.get("RootFolder"))


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def simple_example(ctx: ScenarioContext) -> SimpleExampleResult:
    """Load a list title together with its root folder's sub-folders.

    Expanding the sub-folders is enough to trip the threshold once the
    root folder holds more items than the limit.
    """
    list_handle = load_list(ctx.session, ctx.settings.site.list_title, SIMPLE_LIST_FIELDS)
    ctx.execute()

    value = _as_dict(list_handle.value)
    title = value.get("Title") or ""
    folders = _root_folder(value).get("Folders")
    first = folders[0] if isinstance(folders, list) and folders else None
    first_subfolder = first.get("Name") if isinstance(first, dict) else None

    if not title:
        ctx.log.warning("list_title_missing")
    if not first_subfolder:
        ctx.log.warning("first_subfolder_missing", list_title=title)

    return SimpleExampleResult(list_title=title, first_subfolder_name=first_subfolder)


def enumerate_list_items(ctx: ScenarioContext) -> EnumerationResult:
    """Scan every item of the list page by page."""
    scan = ctx.settings.scan
    load_web(ctx.session)
    list_handle = load_list(ctx.session, ctx.settings.site.list_title)
    query = ViewQuery(row_limit=scan.row_limit)
    result = EnumerationResult(list_title=ctx.settings.site.list_title)

    while True:
        items_handle = load_list_item_collection(ctx.session, list_handle, query)
        ctx.execute()

        list_value = _as_dict(list_handle.value)
        page = _as_dict(items_handle.value)
        item_count = int(_root_folder(list_value).get("ItemCount") or 0)

        result.list_title = list_value.get("Title") or result.list_title
        result.pages += 1
        result.items += len(page.get("Items") or [])
        result.root_folder_item_count = item_count
        result.will_trigger_lvt = item_count > scan.threshold

        ctx.log.info(
            "list_page_scanned",
            list_title=result.list_title,
            root_folder_item_count=item_count,
            will_trigger_lvt=result.will_trigger_lvt,
            page=result.pages,
        )

        position = page.get("ListItemCollectionPosition")
        paging_info = (
            position.get("PagingInfo") if isinstance(position, dict) else position
        )
        if not paging_info:
            return result
        query = query.model_copy(update={"position": paging_info})


def get_single_list_item(ctx: ScenarioContext) -> ListItemResult:
    """Fetch one item by id, with the web and the list, in one batch."""
    site = ctx.settings.site
    load_web(ctx.session)
    list_handle = load_list(ctx.session, site.list_title)
    item_handle = load_list_item(ctx.session, list_handle, site.list_item_id)
    ctx.execute()

    item = _as_dict(item_handle.value)
    return ListItemResult(
        list_title=_as_dict(list_handle.value).get("Title") or site.list_title,
        item_id=site.list_item_id,
        display_name=item.get("DisplayName"),
    )


def stepwise_list_item(ctx: ScenarioContext) -> StepwiseResult:
    """Fetch one item with a separate round trip per object.

    The web, the list and the item are each executed on their own, so the
    log shows which step the server rejects.
    """
    site = ctx.settings.site
    result = StepwiseResult(list_title=site.list_title, item_id=site.list_item_id)

    load_web(ctx.session)
    ctx.execute()
    result.steps_completed.append("web")
    ctx.log.info("step_completed", step="web")

    list_handle = load_list(ctx.session, site.list_title)
    ctx.execute()
    result.steps_completed.append("list")
    ctx.log.info("step_completed", step="list")

    load_list_item(ctx.session, list_handle, site.list_item_id)
    ctx.execute()
    result.steps_completed.append("item")
    ctx.log.info("step_completed", step="item")

    return result


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Scenario:
    name: str
    description: str
    run: Callable[[ScenarioContext], BaseModel]
    default: bool = True


SCENARIOS: dict[str, Scenario] = {
    scenario.name: scenario
    for scenario in (
        Scenario(
            "simple",
            "Load the list title and its root folder's sub-folders.",
            simple_example,
        ),
        Scenario(
            "enumerate-items",
            "Scan every list item page by page.",
            enumerate_list_items,
        ),
        Scenario(
            "single-item",
            "Fetch one list item by id in a single batch.",
            get_single_list_item,
        ),
        Scenario(
            "stepwise-item",
            "Fetch one list item with a round trip per object.",
            stepwise_list_item,
            default=False,
        ),
    )
}


def default_scenarios() -> list[str]:
    return [name for name, scenario in SCENARIOS.items() if scenario.default]
