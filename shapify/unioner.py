"""Builds the single type that represents one logical position."""

from collections import deque
from typing import Deque, Iterable, List, Optional, Set, Tuple

from shapify.equality import StructuralEquality
from shapify.typegraph import Handle, Record, TypeGraph, TypeKind, Union

# a folded record, one of its field names and the candidates for that field
PendingField = Tuple[Record, str, List[Handle]]


class Unioner:
    """
    Folds the candidate types observed for one position into one handle.

    Args:
        graph: The graph the candidates live in; new unions are inserted here.
        fold_records: Merge all record candidates of a position into a single
            record instead of keeping differently shaped records side by side.
            Fields that are missing from some of the records become nullable.
        opaque: Handles of nodes that are still being built. They are never
            flattened and only deduplicate against themselves. The set is
            shared with the caller, who adds and removes handles as it goes.
    """

    def __init__(self, graph: TypeGraph, fold_records: bool = False, opaque: Optional[Set[Handle]] = None):
        self.graph = graph
        self.fold_records = fold_records
        self.opaque = opaque if opaque is not None else set()

    def flatten(self, handles: Iterable[Handle]) -> List[Handle]:
        """Replaces every union among `handles` by its members."""
        flat: List[Handle] = []
        todo = list(handles)
        todo.reverse()
        while todo:
            handle = todo.pop()
            node = self.graph.resolve(handle)
            if node.kind == TypeKind.UNION and handle not in self.opaque:
                todo.extend(reversed(node.members))
            else:
                flat.append(handle)
        return flat

    def dedup(self, handles: Iterable[Handle]) -> List[Handle]:
        """Drops structurally equal duplicates, keeping the first occurrence."""
        equal = StructuralEquality(self.graph, self.opaque)
        distinct: List[Handle] = []
        for handle in handles:
            twin = next((kept for kept in distinct if equal(kept, handle)), None)
            if twin is None:
                distinct.append(handle)
            elif twin != handle and self.graph.kind_of(twin) == TypeKind.RECORD:
                self.graph.resolve(twin).name_hints |= self.graph.resolve(handle).name_hints
        return distinct

    def union(self, handles: Iterable[Handle]) -> Handle:
        """
        Returns the handle representing all `handles`.

        A position with one distinct shape gets that shape back unchanged; no
        candidates at all means nothing is known about the position.
        """
        pending: Deque[PendingField] = deque()
        result = self._union(handles, pending)
        self._fill(pending)
        return result

    def _union(self, handles: Iterable[Handle], pending: Deque[PendingField]) -> Handle:
        distinct = self.dedup(self.flatten(handles))
        if self.fold_records:
            distinct = self._fold(distinct, pending)
        if not distinct:
            return self.graph.get_or_create_primitive(TypeKind.ANY)
        if len(distinct) == 1:
            return distinct[0]
        return self.graph.insert(Union(members=distinct))

    def _fill(self, pending: Deque[PendingField]) -> None:
        # fields of folded records are unioned breadth-first so that deeply
        # nested records do not nest calls
        while pending:
            record, name, candidates = pending.popleft()
            record.fields[name] = self._union(candidates, pending)

    def _fold(self, handles: List[Handle], pending: Deque[PendingField]) -> List[Handle]:
        records = [h for h in handles if self.graph.kind_of(h) == TypeKind.RECORD and h not in self.opaque]
        if len(records) < 2:
            return handles
        folded = self._fold_records(records, pending)
        result: List[Handle] = []
        for handle in handles:
            if handle == records[0]:
                result.append(folded)
            elif handle not in records:
                result.append(handle)
        return result

    def fold_record_types(self, records: List[Handle]) -> Handle:
        """
        Merges several record types into one by combining their fields.

        Field order is first-seen across the records. A field present in
        every record gets the union of its types; a field missing from at
        least one record additionally admits null.
        """
        pending: Deque[PendingField] = deque()
        folded = self._fold_records(records, pending)
        self._fill(pending)
        return folded

    def _fold_records(self, records: List[Handle], pending: Deque[PendingField]) -> Handle:
        nodes: List[Record] = [self.graph.resolve(h) for h in records]
        field_names: List[str] = []
        for node in nodes:
            for name in node.fields:
                if name not in field_names:
                    field_names.append(name)
        null = self.graph.get_or_create_primitive(TypeKind.NULL)
        unknown = self.graph.get_or_create_primitive(TypeKind.ANY)
        merged = Record()
        for node in nodes:
            merged.name_hints |= node.name_hints
        for name in field_names:
            candidates = [node.fields[name] for node in nodes if name in node.fields]
            if len(candidates) < len(nodes):
                candidates.append(null)
            merged.fields[name] = unknown
            pending.append((merged, name, candidates))
        return self.graph.insert(merged)


def union_of(graph: TypeGraph, handles: Iterable[Handle], fold_records: bool = False) -> Handle:
    """Convenience wrapper around `Unioner.union`."""
    return Unioner(graph, fold_records=fold_records).union(handles)
