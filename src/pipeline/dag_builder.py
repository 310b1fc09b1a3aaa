# src/pipeline/dag_builder.py — v2
"""DAG builder — staged execution plan from agent dependencies.

Kahn's algorithm with level detection: each stage holds agents whose
dependencies are all satisfied by earlier stages, so a stage may run
concurrently. Used for staging inside Tier 2.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dealscope.config.agents import AgentId

logger = logging.getLogger(__name__)


class DAGError(Exception):
    """Raised when DAG construction fails (cycle, missing dep)."""


@dataclass
class ExecutionPlan:
    stages: list[list[AgentId]] = field(default_factory=list)
    total_agents: int = 0

    @property
    def flat_order(self) -> list[AgentId]:
        return [agent for stage in self.stages for agent in stage]


def build_dag(dependency_map: dict[AgentId, list[AgentId]]) -> ExecutionPlan:
    """Build a staged plan.

    Within a stage the input order is preserved, so declaration order in
    config/agents.py decides tie-breaks.

    Raises:
        DAGError: If a cycle is detected or a dependency is missing.
    """
    if not dependency_map:
        return ExecutionPlan()

    all_agents = list(dependency_map)
    known = set(all_agents)
    for agent, deps in dependency_map.items():
        for dep in deps:
            if dep not in known:
                raise DAGError(
                    f"Agent '{agent.value}' depends on '{dep.value}' which is not in the plan"
                )

    in_degree: dict[AgentId, int] = {a: 0 for a in all_agents}
    dependents: dict[AgentId, list[AgentId]] = {a: [] for a in all_agents}
    for agent, deps in dependency_map.items():
        for dep in deps:
            dependents[dep].append(agent)
            in_degree[agent] += 1

    order = {a: i for i, a in enumerate(all_agents)}
    stages: list[list[AgentId]] = []
    queue = [a for a in all_agents if in_degree[a] == 0]
    processed = 0

    while queue:
        stages.append(queue)
        next_queue: list[AgentId] = []
        for agent in queue:
            processed += 1
            for dependent in dependents[agent]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_queue.append(dependent)
        queue = sorted(next_queue, key=order.__getitem__)

    if processed != len(all_agents):
        remaining = [a.value for a in all_agents if in_degree[a] > 0]
        raise DAGError(f"Cycle detected involving agents: {remaining}")

    plan = ExecutionPlan(stages=stages, total_agents=processed)
    logger.debug(
        "DAG built: %d agents in %d stages → %s",
        plan.total_agents,
        len(plan.stages),
        [[a.value for a in s] for s in plan.stages],
    )
    return plan
