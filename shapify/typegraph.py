"""Type graph model for inferred shapes.

The graph is an arena: every node lives in one insertion-ordered list and is
addressed through a `Handle`. Nodes never own each other, they only hold
handles, so recursive and shared structure is just handles pointing at an
earlier (or the same) slot.
"""

# pylint: disable=too-few-public-methods

import itertools
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Set, Union as TypingUnion


class ShapifyError(Exception):
    """Base class for errors raised while inferring a shape."""


class EmptyInputError(ShapifyError):
    """No usable sample or schema body was supplied."""

    def __init__(self, message: str = "no sample or schema body to infer from"):
        super().__init__(message)


class DanglingReferenceError(ShapifyError):
    """A `$ref` could not be resolved within its own document."""

    def __init__(self, ref: str):
        super().__init__(f"unresolved reference {ref!r}")
        self.ref = ref


class SchemaParseError(ShapifyError):
    """A raw schema text in a schema set is not valid JSON."""

    def __init__(self, name: str, cause: Exception):
        super().__init__(f"schema {name!r} could not be parsed: {cause}")
        self.name = name
        self.cause = cause


class NestingTooDeepError(ShapifyError):
    """The input nests deeper than the inferrer is willing to follow."""

    def __init__(self, max_depth: int):
        super().__init__(f"input nesting exceeds the maximum depth of {max_depth}")
        self.max_depth = max_depth


class ForeignHandleError(LookupError):
    """A handle was resolved against a graph that did not issue it."""


class TypeKind(Enum):
    """Tag of a type node."""
    INT = 'int'
    FLOAT = 'float'
    BOOL = 'bool'
    STRING = 'string'
    NULL = 'null'
    ANY = 'any'
    ARRAY = 'array'
    RECORD = 'record'
    UNION = 'union'

    @property
    def is_primitive(self) -> bool:
        """True for the leaf kinds that the graph canonicalizes."""
        return self in PRIMITIVE_KINDS


PRIMITIVE_KINDS = frozenset([
    TypeKind.INT, TypeKind.FLOAT, TypeKind.BOOL,
    TypeKind.STRING, TypeKind.NULL, TypeKind.ANY])


@dataclass(frozen=True)
class Handle:
    """Opaque reference to a node of one `TypeGraph`."""
    graph_id: int
    index: int

    def __repr__(self) -> str:
        return f"Handle(#{self.index})"


@dataclass
class Primitive:
    kind: TypeKind


@dataclass
class Array:
    element: Handle
    kind: TypeKind = field(default=TypeKind.ARRAY, init=False)


@dataclass
class Record:
    """An object shape. `fields` keeps first-seen key order."""
    fields: Dict[str, Handle] = field(default_factory=dict)
    name_hints: Set[str] = field(default_factory=set)
    kind: TypeKind = field(default=TypeKind.RECORD, init=False)


@dataclass
class Union:
    """A position where several incompatible shapes were observed."""
    members: List[Handle] = field(default_factory=list)
    kind: TypeKind = field(default=TypeKind.UNION, init=False)


Node = TypingUnion[Primitive, Array, Record, Union]

_graph_ids = itertools.count(1)


class TypeGraph:
    """Owns every type node of one inference run."""

    def __init__(self) -> None:
        self._id = next(_graph_ids)
        self._nodes: List[Node] = []
        self._primitives: Dict[TypeKind, Handle] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, handle: object) -> bool:
        return isinstance(handle, Handle) and handle.graph_id == self._id and 0 <= handle.index < len(self._nodes)

    def _append(self, node: Node) -> Handle:
        handle = Handle(self._id, len(self._nodes))
        self._nodes.append(node)
        return handle

    def get_or_create_primitive(self, kind: TypeKind) -> Handle:
        """Returns the canonical handle of a primitive kind, creating it on first use."""
        if not kind.is_primitive:
            raise ValueError(f"{kind} is not a primitive kind")
        handle = self._primitives.get(kind)
        if handle is None:
            handle = self._append(Primitive(kind))
            self._primitives[kind] = handle
        return handle

    def insert(self, node: Node) -> Handle:
        """Stores a freshly built array, record or union node under a new handle."""
        if isinstance(node, Primitive):
            raise ValueError("primitive nodes are created through get_or_create_primitive")
        if not isinstance(node, (Array, Record, Union)):
            raise TypeError(f"cannot insert {type(node).__name__} into a type graph")
        return self._append(node)

    def resolve(self, handle: Handle) -> Node:
        """Dereferences a handle issued by this graph."""
        if handle not in self:
            raise ForeignHandleError(f"{handle!r} does not belong to this type graph")
        return self._nodes[handle.index]

    def kind_of(self, handle: Handle) -> TypeKind:
        return self.resolve(handle).kind

    def handles(self) -> Iterator[Handle]:
        """All handles in insertion order, reachable or not."""
        for index in range(len(self._nodes)):
            yield Handle(self._id, index)

    def children(self, handle: Handle) -> List[Handle]:
        """Handles directly referenced by a node."""
        node = self.resolve(handle)
        if node.kind == TypeKind.ARRAY:
            return [node.element]
        if node.kind == TypeKind.RECORD:
            return list(node.fields.values())
        if node.kind == TypeKind.UNION:
            return list(node.members)
        return []

    def reachable(self, root: Handle) -> List[Handle]:
        """Handles reachable from `root`, breadth-first, each listed once."""
        seen = {root}
        order = [root]
        queue = deque([root])
        while queue:
            for child in self.children(queue.popleft()):
                if child not in seen:
                    seen.add(child)
                    order.append(child)
                    queue.append(child)
        return order


@dataclass
class Schema:
    """The result of an inference run: a type graph and its root handle."""
    graph: TypeGraph
    root: Handle

    def resolve(self, handle: Handle) -> Node:
        return self.graph.resolve(handle)

    @property
    def root_node(self) -> Node:
        return self.graph.resolve(self.root)

    def describe(self) -> Dict[str, Any]:
        """
        Describes the reachable part of the graph as plain data.

        Returns:
            dict: `{"root": index, "nodes": {index: {...}}}` where each node
            entry carries its kind and the indexes it references.
        """
        nodes: Dict[int, Dict[str, Any]] = {}
        for handle in self.graph.reachable(self.root):
            node = self.graph.resolve(handle)
            entry: Dict[str, Any] = {'kind': node.kind.value}
            if node.kind == TypeKind.ARRAY:
                entry['element'] = node.element.index
            elif node.kind == TypeKind.RECORD:
                entry['fields'] = {name: h.index for name, h in node.fields.items()}
                entry['name_hints'] = sorted(node.name_hints)
            elif node.kind == TypeKind.UNION:
                entry['members'] = [h.index for h in node.members]
            nodes[handle.index] = entry
        return {'root': self.root.index, 'nodes': nodes}
