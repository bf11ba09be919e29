"""Centralized ECS action names and request parameter catalogue.

Single source of truth for the remote action names used by the bridge and
for the request members each List action accepts.

Usage:
    from ecsbridge.aws.actions import EcsActions

    target = EcsActions.target(EcsActions.LIST_TASKS)
    # Returns: "AmazonEC2ContainerServiceV20141113.ListTasks"
"""

from dataclasses import dataclass

from ..constants import ECS_TARGET_PREFIX


@dataclass(frozen=True)
class EcsActions:
    """
    ECS JSON protocol action names.

    The action is sent in the x-amz-target header, prefixed with the service
    version (see `target`).
    """

    # -------------------------------------------------------------------------
    # Clusters
    # -------------------------------------------------------------------------
    LIST_CLUSTERS: str = "ListClusters"
    DESCRIBE_CLUSTERS: str = "DescribeClusters"

    # -------------------------------------------------------------------------
    # Container instances
    # -------------------------------------------------------------------------
    LIST_CONTAINER_INSTANCES: str = "ListContainerInstances"
    DESCRIBE_CONTAINER_INSTANCES: str = "DescribeContainerInstances"

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------
    LIST_TASKS: str = "ListTasks"
    DESCRIBE_TASKS: str = "DescribeTasks"

    # -------------------------------------------------------------------------
    # Task definitions (Describe is singular, one definition per call)
    # -------------------------------------------------------------------------
    LIST_TASK_DEFINITIONS: str = "ListTaskDefinitions"
    DESCRIBE_TASK_DEFINITION: str = "DescribeTaskDefinition"

    @staticmethod
    def target(action: str) -> str:
        """Value of the x-amz-target header for an action."""
        return f"{ECS_TARGET_PREFIX}.{action}"


# Request members accepted by each List action (besides nextToken and maxResults).
# Qualification clauses outside these sets are evaluated client-side only.
LIST_PARAMETERS: dict[str, frozenset[str]] = {
    EcsActions.LIST_CLUSTERS: frozenset(),
    EcsActions.LIST_CONTAINER_INSTANCES: frozenset({"cluster", "filter", "status"}),
    EcsActions.LIST_TASKS: frozenset(
        {
            "cluster",
            "containerInstance",
            "family",
            "startedBy",
            "serviceName",
            "desiredStatus",
            "launchType",
        }
    ),
    EcsActions.LIST_TASK_DEFINITIONS: frozenset({"familyPrefix", "status", "sort"}),
}
