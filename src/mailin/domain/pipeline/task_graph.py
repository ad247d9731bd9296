"""Directed acyclic task graph executed on the running event loop.

Each task declares the tasks whose outputs it consumes (``requires``, passed
to the action as keyword arguments) and the tasks it must merely wait for
(``after``). A task starts as soon as all of its prerequisites have completed.

When a task raises, every task depending on it (directly or transitively) is
skipped; independent tasks already running are left to finish. The graph
never raises for task failures, it reports them in the returned GraphRun.

Example:
    graph = TaskGraph()
    graph.add("dkim", check_dkim)
    graph.add("mail", parse_mail)
    graph.add("language", detect_language, requires=["mail"])
    graph.add("delivery", deliver, requires=["dkim", "mail", "language"])
    run = await graph.run()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Set, Tuple

logger = logging.getLogger(__name__)


class TaskGraphError(Exception):
    """Raised when a graph is declared incorrectly."""
    pass


@dataclass(frozen=True)
class GraphTask:
    """One node of the graph.

    Attributes:
        name: Unique task name, also the keyword its output is passed under
        action: Coroutine function called with the outputs of ``requires``
        requires: Tasks whose outputs this task consumes
        after: Tasks this task waits for without consuming their output
    """
    name: str
    action: Callable[..., Awaitable[Any]]
    requires: Tuple[str, ...] = ()
    after: Tuple[str, ...] = ()

    @property
    def prerequisites(self) -> Tuple[str, ...]:
        return self.requires + tuple(dep for dep in self.after if dep not in self.requires)


@dataclass
class GraphRun:
    """Outcome of one graph execution.

    Attributes:
        results: Output of every task that completed
        failures: Exception raised by every task that failed
        skipped: Tasks never started because a prerequisite failed
    """
    results: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, BaseException] = field(default_factory=dict)
    skipped: Set[str] = field(default_factory=set)

    @property
    def succeeded(self) -> bool:
        return not self.failures and not self.skipped


class TaskGraph:
    """Lightweight scheduler for a small dependency graph of coroutines."""

    def __init__(self):
        self._tasks: Dict[str, GraphTask] = {}

    def add(
        self,
        name: str,
        action: Callable[..., Awaitable[Any]],
        requires: Iterable[str] = (),
        after: Iterable[str] = (),
    ) -> "TaskGraph":
        """Register a task.

        Prerequisites must be registered first, which keeps the graph acyclic.

        Raises:
            TaskGraphError: If the name is taken or a prerequisite is unknown
        """
        if name in self._tasks:
            raise TaskGraphError(f"Task {name!r} is already declared")

        task = GraphTask(name=name, action=action, requires=tuple(requires), after=tuple(after))
        unknown = [dep for dep in task.prerequisites if dep not in self._tasks]
        if unknown:
            raise TaskGraphError(
                f"Task {name!r} depends on undeclared task(s): {', '.join(unknown)}"
            )

        self._tasks[name] = task
        return self

    @property
    def names(self) -> List[str]:
        return list(self._tasks)

    def prerequisites_of(self, name: str) -> Tuple[str, ...]:
        return self._tasks[name].prerequisites

    async def run(self) -> GraphRun:
        """Execute the graph until every task has completed, failed or been skipped.

        If the run itself is cancelled, the tasks still in flight are cancelled too.
        """
        run = GraphRun()
        waiting: Dict[str, GraphTask] = dict(self._tasks)
        in_flight: Dict[asyncio.Task, str] = {}

        try:
            while waiting or in_flight:
                self._schedule_ready(waiting, in_flight, run)
                if not in_flight:
                    continue

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for finished in done:
                    name = in_flight.pop(finished)
                    error = finished.exception()
                    if error is not None:
                        logger.debug(f"Task {name} failed: {error!r}")
                        run.failures[name] = error
                    else:
                        run.results[name] = finished.result()
        except asyncio.CancelledError:
            for pending in in_flight:
                pending.cancel()
            raise

        return run

    def _schedule_ready(
        self,
        waiting: Dict[str, GraphTask],
        in_flight: Dict[asyncio.Task, str],
        run: GraphRun,
    ) -> None:
        # Declaration order is a topological order, so one pass settles every
        # task whose prerequisites are already decided.
        for name in list(waiting):
            task = waiting[name]
            prerequisites = task.prerequisites

            if any(dep in run.failures or dep in run.skipped for dep in prerequisites):
                run.skipped.add(name)
                del waiting[name]
                continue

            if all(dep in run.results for dep in prerequisites):
                kwargs = {dep: run.results[dep] for dep in task.requires}
                coroutine = task.action(**kwargs)
                in_flight[asyncio.ensure_future(coroutine)] = name
                del waiting[name]
