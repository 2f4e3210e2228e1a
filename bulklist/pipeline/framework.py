"""
Per-item task runners.

This module runs one async operation over a list of work items with a
fixed policy: every item is attempted, a failing item is logged and
recorded, and the run continues with the next item. Two runners share
that contract:

1. TaskRunner - one item at a time, in input order (reference behaviour)
2. ConcurrentTaskRunner - up to ``max_concurrency`` items in flight

Both report results in input order, so callers can swap one for the
other without changing what they observe per item.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

logger = logging.getLogger(__name__)

# Type variable for work items (e.g., group ids)
T = TypeVar("T")


@dataclass
class PipelineTask(Generic[T]):
    """
    Definition of a per-item pipeline task.

    Type Parameters:
        T: The type of work items

    Attributes:
        name: Identifier used in log messages
        process: Coroutine function handling a single item; raising marks
            the item as failed
        max_concurrency: Items allowed in flight at once (1 = sequential)
        timeout_seconds: Optional timeout per item in seconds
        on_item_done: Optional callback(item, succeeded) run after each item
    """

    name: str
    process: Callable[[T], Awaitable[Any]]
    max_concurrency: int = 1
    timeout_seconds: Optional[float] = None
    on_item_done: Optional[Callable[[T, bool], None]] = None


@dataclass
class RunResult(Generic[T]):
    """Aggregate outcome of a task run."""

    total_items: int = 0
    success_count: int = 0
    error_count: int = 0
    results: List[Tuple[T, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


class TaskRunner(Generic[T]):
    """
    Sequential runner for pipeline tasks.

    Items are processed strictly one after another in input order. A
    failure of one item never stops the remaining items.
    """

    def __init__(self, task: PipelineTask[T]) -> None:
        """
        Initialize a runner.

        Args:
            task: The PipelineTask definition to run
        """
        self.task = task

    async def run(self, items: Sequence[T]) -> RunResult[T]:
        """
        Run the task over every item.

        Args:
            items: Work items, processed in this order

        Returns:
            RunResult with per-item results and errors in input order
        """
        total_items = len(items)
        logger.info(f"Starting task {self.task.name} for {total_items} items")

        if not items:
            return RunResult()

        outcomes = await self._run_items(items)
        result = self._collect(items, outcomes)

        logger.info(
            f"Task {self.task.name} completed: {result.success_count} succeeded, "
            f"{result.error_count} failed"
        )
        return result

    async def _run_items(self, items: Sequence[T]) -> List[Tuple[bool, Any]]:
        outcomes = []
        for item in items:
            outcomes.append(await self._run_item(item))
        return outcomes

    async def _run_item(self, item: T) -> Tuple[bool, Any]:
        """
        Process a single item, converting any exception into a failure.

        Returns:
            (True, result) on success, (False, error message) on failure
        """
        try:
            awaitable = self.task.process(item)
            if self.task.timeout_seconds is not None:
                value = await asyncio.wait_for(awaitable, self.task.timeout_seconds)
            else:
                value = await awaitable
            outcome: Tuple[bool, Any] = (True, value)
        except asyncio.TimeoutError:
            logger.warning(
                f"Task {self.task.name} timed out on item {item} "
                f"after {self.task.timeout_seconds}s"
            )
            outcome = (False, f"Timed out after {self.task.timeout_seconds} seconds")
        except Exception as e:
            logger.warning(f"Task {self.task.name} failed on item {item}: {e}")
            outcome = (False, str(e) or type(e).__name__)

        if self.task.on_item_done is not None:
            try:
                self.task.on_item_done(item, outcome[0])
            except Exception as e:
                logger.warning(
                    f"Task {self.task.name} progress callback failed on item {item}: {e}"
                )
        return outcome

    def _collect(
        self, items: Sequence[T], outcomes: List[Tuple[bool, Any]]
    ) -> RunResult[T]:
        result: RunResult[T] = RunResult(total_items=len(items))
        for item, (ok, value) in zip(items, outcomes):
            if ok:
                result.results.append((item, value))
                result.success_count += 1
            else:
                result.errors.append({"item": item, "error": value})
                result.error_count += 1
        return result


class ConcurrentTaskRunner(TaskRunner[T]):
    """
    Runner that keeps up to ``max_concurrency`` items in flight.

    Items start in input order and results are reported in input order.
    Callers must apply shared-state updates between awaits only, so
    interleaved completions cannot overwrite each other.
    """

    async def _run_items(self, items: Sequence[T]) -> List[Tuple[bool, Any]]:
        semaphore = asyncio.Semaphore(max(1, self.task.max_concurrency))

        async def _bounded(item: T) -> Tuple[bool, Any]:
            async with semaphore:
                return await self._run_item(item)

        return list(await asyncio.gather(*[_bounded(item) for item in items]))


def make_runner(task: PipelineTask[T]) -> TaskRunner[T]:
    """Pick the runner matching a task's concurrency setting."""
    if task.max_concurrency > 1:
        return ConcurrentTaskRunner(task)
    return TaskRunner(task)
