"""Flow tools: run a named sub-workflow once (sub_flow) or once per item (iterator).

A flow is any callable taking a single dict of parameters, sync or async,
registered by name in a FlowRegistry.
"""

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Optional

from orchestrator.registry import FlowRegistry

logger = logging.getLogger(__name__)


async def _call_flow(registry: FlowRegistry, name: str, params: Dict[str, Any]) -> Any:
    flow = registry.get(name)
    if flow is None:
        raise KeyError(f"Unknown flow: {name}")
    if inspect.iscoroutinefunction(flow):
        return await flow(params)
    res = await asyncio.to_thread(flow, params)
    if inspect.isawaitable(res):
        res = await res
    return res


def make_sub_flow(registry: FlowRegistry):
    async def sub_flow(flow: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.info(f"Running sub-flow {flow}")
        return await _call_flow(registry, flow, dict(params or {}))

    return sub_flow


def make_iterator(registry: FlowRegistry):
    async def iterator(flow: str, items: List[Any], params: Optional[Dict[str, Any]] = None) -> List[Any]:
        if not isinstance(items, list):
            raise TypeError("items must be a list")
        logger.info(f"Iterating flow {flow} over {len(items)} item(s)")
        results = []
        for i, item in enumerate(items):
            results.append(await _call_flow(registry, flow, {**(params or {}), "item": item, "index": i}))
        return results

    return iterator
