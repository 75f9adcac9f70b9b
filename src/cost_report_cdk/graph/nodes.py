"""Resource nodes and the evaluated resource graph."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..exceptions import ResourceNotFoundError


class ResourceType(str, Enum):
    """Kinds of provider objects a node can stand for."""

    KMS_KEY = "kms_key"
    KMS_ALIAS = "kms_alias"
    KMS_KEY_POLICY = "kms_key_policy"
    S3_BUCKET = "s3_bucket"
    BUCKET_VERSIONING = "bucket_versioning"
    BUCKET_ENCRYPTION = "bucket_encryption"
    PUBLIC_ACCESS_BLOCK = "public_access_block"
    BUCKET_POLICY = "bucket_policy"
    IAM_ROLE = "iam_role"
    IAM_ROLE_POLICY = "iam_role_policy"
    REPLICATION_CONFIGURATION = "replication_configuration"
    SNS_TOPIC = "sns_topic"
    SNS_TOPIC_POLICY = "sns_topic_policy"
    BUCKET_NOTIFICATION = "bucket_notification"
    CUR_REPORT_DEFINITION = "cur_report_definition"
    DATA_EXPORT = "data_export"


@dataclass(frozen=True)
class Ref:
    """Reference to an identifier generated when another node is created."""

    node: str
    attribute: str = "arn"

    def __str__(self) -> str:
        return f"${{{self.node}.{self.attribute}}}"


def iter_refs(value: Any) -> Iterator[Ref]:
    """Yield every Ref nested anywhere inside a property value."""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


def render(value: Any) -> Any:
    """Convert a property value to plain JSON types, refs become strings."""
    if isinstance(value, Ref):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {key: render(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render(item) for item in value]
    return value


@dataclass(frozen=True)
class ResourceNode:
    """One provider managed object in an evaluated graph.

    Attributes:
        name: Logical name, unique within a graph
        type: Kind of object
        properties: Property map; values may embed Refs at any depth
        depends_on: Explicit hard dependencies by node name
        region: Region the object's service endpoint is bound to, if fixed
    """

    name: str
    type: ResourceType
    properties: Mapping[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    region: str | None = None

    def references(self) -> tuple[str, ...]:
        """Names of nodes referenced from properties, in first-seen order."""
        seen: dict[str, None] = {}
        for ref in iter_refs(self.properties):
            seen.setdefault(ref.node, None)
        return tuple(seen)

    def dependencies(self) -> tuple[str, ...]:
        """Explicit dependencies followed by referenced nodes, without duplicates."""
        return tuple(dict.fromkeys(self.depends_on + self.references()))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "properties": render(self.properties),
            "depends_on": list(self.dependencies()),
        }
        if self.region:
            data["region"] = self.region
        return data


@dataclass(frozen=True)
class ResourceGraph:
    """Nodes in creation order plus the named output values."""

    nodes: tuple[ResourceNode, ...]
    outputs: Mapping[str, Any] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return any(node.name == name for node in self.nodes)

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def names(self) -> list[str]:
        """Node names in creation order."""
        return [node.name for node in self.nodes]

    def find(self, name: str) -> ResourceNode | None:
        """Return the node called ``name`` or None when it is absent."""
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def get(self, name: str) -> ResourceNode:
        """Return the node called ``name``.

        Raises:
            ResourceNotFoundError: If the node is not part of the graph
        """
        node = self.find(name)
        if node is None:
            raise ResourceNotFoundError(
                f"Resource node '{name}' is not present in the evaluated graph",
                node=name,
                present=", ".join(self.names()),
            )
        return node

    def to_dict(self) -> dict[str, Any]:
        """JSON ready representation used by the ``plan`` command."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "outputs": render(self.outputs),
        }
