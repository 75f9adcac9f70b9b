"""Resource graph evaluation for the Cost and Usage Report infrastructure."""

from .configuration import Configuration, load_configuration
from .evaluator import NODE_TABLE, evaluate
from .nodes import Ref, ResourceGraph, ResourceNode, ResourceType
from .ordering import order_nodes
from .policies import PolicyDocument, PolicyStatement

__all__ = [
    "Configuration",
    "NODE_TABLE",
    "PolicyDocument",
    "PolicyStatement",
    "Ref",
    "ResourceGraph",
    "ResourceNode",
    "ResourceType",
    "evaluate",
    "load_configuration",
    "order_nodes",
]
