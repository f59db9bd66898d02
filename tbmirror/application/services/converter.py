"""Converter — rewrites a platform v2 backup into the v3 import format."""

import copy
from typing import Any

from tbmirror.application.interfaces import TreeStore
from tbmirror.application.services.fan_out import fan_out
from tbmirror.application.services.tree_paths import (
    Category,
    decode_json,
    encode_json,
    is_json_file,
    join,
    name_from_file,
)
from tbmirror.domain.entities import ItemOutcome, RunReport, strip_source_fields
from tbmirror.infrastructure.logging.colored_logger import WalkLogger, WalkStage

_RULE_NODE_FIELDS = ("id", "createdTime", "ruleChainId")


def convert_rule_chain(name: str, metadata: dict[str, Any]) -> dict[str, Any]:
    """Wrap v2 rule chain metadata into a v3 ``{ruleChain, metadata}`` document."""
    converted = copy.deepcopy(metadata)
    converted.pop("ruleChainId", None)
    for node in converted.get("nodes") or []:
        for key in _RULE_NODE_FIELDS:
            node.pop(key, None)
    return {
        "ruleChain": {
            "additionalInfo": None,
            "name": name,
            "firstRuleNodeId": None,
            "root": False,
            "debugMode": False,
            "configuration": None,
        },
        "metadata": converted,
    }


def convert_dashboard(dashboard: dict[str, Any]) -> dict[str, Any]:
    converted = strip_source_fields(dashboard)
    converted.pop("assignedCustomers", None)
    return converted


class Converter:
    """Application service — converts rule chains and dashboards file by file."""

    def __init__(self, source: TreeStore, target: TreeStore, *, max_concurrency: int = 8):
        self._source = source
        self._target = target
        self._limit = max_concurrency
        self._log = WalkLogger("Converter")

    async def convert(self) -> RunReport:
        report = RunReport()
        for category in (Category.RULE_CHAINS, Category.DASHBOARDS, Category.WIDGETS):
            await self._target.make_dirs(category.value)

        with self._log.timed_step(WalkStage.CONVERT, "Converting backup"):
            report.extend(await self._convert_category(Category.RULE_CHAINS))
            report.extend(await self._convert_category(Category.DASHBOARDS))
        self._log.stats(succeeded=report.succeeded, failed=report.failed)
        return report

    async def _convert_category(self, category: Category) -> list[ItemOutcome]:
        directory = category.value
        if not self._source.is_dir(directory):
            self._log.warning(f'Input has no "{directory}/" directory')
            return [ItemOutcome.failed(directory, "*", f'missing "{directory}/" directory')]

        files = [f for f in await self._source.list_dir(directory) if is_json_file(f)]

        async def worker(filename: str) -> ItemOutcome:
            data = decode_json(await self._source.read_bytes(join(directory, filename)))
            if category == Category.RULE_CHAINS:
                converted = convert_rule_chain(name_from_file(filename), data)
            else:
                converted = convert_dashboard(data)
            await self._target.write_bytes(join(directory, filename), encode_json(converted))
            return ItemOutcome(directory, name_from_file(filename))

        return await fan_out(
            files, worker, category=directory, name_of=name_from_file, limit=self._limit
        )
