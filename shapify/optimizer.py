"""Graph rewrite passes that run after inference.

Every pass groups nodes into classes, picks the node with the lowest arena
index of each class as its representative and redirects every reference to a
non-representative (record fields, array elements, union members and the
root) to the representative. Merged-away nodes stay in the arena, unreachable.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from shapify.equality import StructuralEquality
from shapify.typegraph import Handle, Schema, TypeKind

logger = logging.getLogger(__name__)


def redirect(schema: Schema, mapping: Dict[Handle, Handle]) -> Dict[Handle, Handle]:
    """
    Rewrites every reference in the graph according to `mapping`.

    Unions whose members collapse onto the same handle are deduplicated; a
    union that is left with a single member is itself redirected to that
    member.

    Returns:
        dict: Every handle that was redirected, mapped to its final target.
    """
    graph = schema.graph
    collapsed = set()
    moved: Dict[Handle, Handle] = {}
    while mapping:
        moved.update(mapping)
        for handle in graph.handles():
            node = graph.resolve(handle)
            if node.kind == TypeKind.ARRAY:
                node.element = mapping.get(node.element, node.element)
            elif node.kind == TypeKind.RECORD:
                for name, target in node.fields.items():
                    node.fields[name] = mapping.get(target, target)
            elif node.kind == TypeKind.UNION:
                members: List[Handle] = []
                for member in node.members:
                    member = mapping.get(member, member)
                    if member not in members:
                        members.append(member)
                node.members = members
        schema.root = mapping.get(schema.root, schema.root)
        mapping = {}
        for handle in graph.handles():
            node = graph.resolve(handle)
            if node.kind == TypeKind.UNION and len(node.members) == 1 and handle not in collapsed:
                collapsed.add(handle)
                mapping[handle] = node.members[0]

    final: Dict[Handle, Handle] = {}
    for handle, target in moved.items():
        seen = {handle}
        while target in moved and target not in seen:
            seen.add(target)
            target = moved[target]
        final[handle] = target
    return final


def representatives(handles: List[Handle], same: Callable[[Handle, Handle], bool]) -> Dict[Handle, Handle]:
    """Maps every handle that is not the first of its class to the first one."""
    reps: List[Handle] = []
    mapping: Dict[Handle, Handle] = {}
    for handle in sorted(handles, key=lambda h: h.index):
        rep = next((r for r in reps if same(r, handle)), None)
        if rep is None:
            reps.append(handle)
        else:
            mapping[handle] = rep
    return mapping


def reachable_of_kind(schema: Schema, kind: TypeKind) -> List[Handle]:
    graph = schema.graph
    return [h for h in graph.reachable(schema.root) if graph.kind_of(h) == kind]


def merge_similar_datatypes(schema: Schema) -> int:
    """
    Merges records that are structurally equal.

    The representative of each class absorbs the name hints of the records it
    replaces.

    Returns:
        int: The number of records redirected.
    """
    graph = schema.graph
    equal = StructuralEquality(graph)
    mapping = representatives(reachable_of_kind(schema, TypeKind.RECORD), equal)
    for handle, rep in mapping.items():
        graph.resolve(rep).name_hints |= graph.resolve(handle).name_hints
    redirect(schema, mapping)
    logger.debug("merge similar datatypes: %d records merged", len(mapping))
    return len(mapping)


def merge_name_datatypes(schema: Schema) -> int:
    """
    Merges records that share at least one name hint, whatever their fields.

    Sharing is transitive: records A and C end up together when both share a
    hint with B. The representative keeps its own fields and receives every
    hint of its group.

    Returns:
        int: The number of records redirected.
    """
    graph = schema.graph
    records = sorted(reachable_of_kind(schema, TypeKind.RECORD), key=lambda h: h.index)
    parent: Dict[Handle, Handle] = {h: h for h in records}

    def find(handle: Handle) -> Handle:
        while parent[handle] != handle:
            parent[handle] = parent[parent[handle]]
            handle = parent[handle]
        return handle

    owner_of_hint: Dict[str, Handle] = {}
    for handle in records:
        for hint in sorted(graph.resolve(handle).name_hints):
            if hint not in owner_of_hint:
                owner_of_hint[hint] = handle
                continue
            left, right = find(owner_of_hint[hint]), find(handle)
            if left != right:
                # the lower index stays the root of the group
                if right.index < left.index:
                    left, right = right, left
                parent[right] = left

    mapping: Dict[Handle, Handle] = {}
    for handle in records:
        rep = find(handle)
        if rep != handle:
            mapping[handle] = rep
            graph.resolve(rep).name_hints |= graph.resolve(handle).name_hints
    redirect(schema, mapping)
    logger.debug("merge name datatypes: %d records merged", len(mapping))
    return len(mapping)


def merge_same_unions(schema: Schema) -> int:
    """
    Merges unions whose member sets are structurally equal.

    Returns:
        int: The number of unions redirected.
    """
    equal = StructuralEquality(schema.graph)
    mapping = representatives(reachable_of_kind(schema, TypeKind.UNION), equal)
    redirect(schema, mapping)
    logger.debug("merge same unions: %d unions merged", len(mapping))
    return len(mapping)


@dataclass
class Optimizer:
    """
    Configurable set of rewrite passes, run in a fixed order.

    Attributes:
        merge_similar: Merge structurally equal records.
        merge_by_name: Merge records sharing a name hint.
        merge_unions: Merge unions with equal member sets.
    """
    merge_similar: bool = False
    merge_by_name: bool = False
    merge_unions: bool = False

    def optimize(self, schema: Schema) -> None:
        """Rewrites `schema` in place."""
        if self.merge_similar:
            merge_similar_datatypes(schema)
        if self.merge_by_name:
            merge_name_datatypes(schema)
        if self.merge_unions:
            merge_same_unions(schema)


def optimize(schema: Schema, merge_similar: bool = False, merge_by_name: bool = False,
             merge_unions: bool = False) -> None:
    """Runs the enabled optimizer passes over `schema` in place."""
    Optimizer(merge_similar=merge_similar, merge_by_name=merge_by_name,
              merge_unions=merge_unions).optimize(schema)
