"""Supported ECS structures and the names derived from them."""

from enum import Enum

from ..aws.actions import EcsActions
from ..utils.exceptions import ValidationError


class EntityKind(str, Enum):
    """Structure a bridge request can target."""

    CLUSTERS = "Clusters"
    CONTAINER_INSTANCES = "ContainerInstances"
    TASKS = "Tasks"
    TASK_DEFINITIONS = "TaskDefinitions"

    @classmethod
    def from_structure(cls, structure: str) -> "EntityKind":
        """
        Look up a structure by name.

        Raises:
            ValidationError: If the structure is not supported
        """
        try:
            return cls(structure)
        except ValueError:
            raise ValidationError(
                f"Invalid Structure: '{structure}' is not a valid structure",
                field="structure",
            ) from None

    @classmethod
    def from_join_key(cls, join_key: str) -> "EntityKind | None":
        """Structure whose key identifier is join_key ("containerInstance")."""
        for kind in cls:
            if kind.key_identifier == join_key:
                return kind
        return None

    @property
    def key_identifier(self) -> str:
        """Singular lower-camel name: Clusters -> cluster, TaskDefinitions -> taskDefinition."""
        return self.value[0].lower() + self.value[1:-1]

    @property
    def identifier_field(self) -> str:
        """Record field holding the identifier, e.g. "clusterArn"."""
        return f"{self.key_identifier}Arn"

    @property
    def identifiers_key(self) -> str:
        """List response key and explicit-list clause key, e.g. "clusterArns"."""
        return f"{self.key_identifier}Arns"

    @property
    def describe_key(self) -> str:
        """Describe request/response key, e.g. "clusters"."""
        if self is EntityKind.TASK_DEFINITIONS:
            return self.key_identifier
        return f"{self.key_identifier}s"

    @property
    def list_action(self) -> str:
        return f"List{self.value}"

    @property
    def describe_action(self) -> str:
        if self is EntityKind.TASK_DEFINITIONS:
            return EcsActions.DESCRIBE_TASK_DEFINITION
        return f"Describe{self.value}"

    @property
    def describes_individually(self) -> bool:
        """Whether Describe takes one identifier per call."""
        return self is EntityKind.TASK_DEFINITIONS

    @property
    def cluster_scoped(self) -> bool:
        """Whether List/Describe calls accept a cluster parameter."""
        return self in (EntityKind.CONTAINER_INSTANCES, EntityKind.TASKS)


VALID_STRUCTURES: list[str] = [kind.value for kind in EntityKind]
