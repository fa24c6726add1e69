"""Infers a type graph from parsed JSON values.

Values are the trees `json.loads` produces: dicts, lists, strings, numbers,
booleans and None.
"""

from typing import Any, Iterable, List, Optional

from shapify.common import pascal
from shapify.typegraph import (Array, EmptyInputError, Handle, NestingTooDeepError,
                               Record, Schema, TypeGraph, TypeKind)
from shapify.unioner import Unioner

DEFAULT_MAX_DEPTH = 512


class JsonInferrer:
    """
    Builds a type graph from one or more JSON samples.

    Args:
        fold_records: Merge differently shaped objects seen at the same position
            into one record with nullable fields instead of a union of records.
        max_depth: Maximum nesting depth followed before giving up.
    """

    def __init__(self, fold_records: bool = False, max_depth: int = DEFAULT_MAX_DEPTH):
        self.graph = TypeGraph()
        self.unioner = Unioner(self.graph, fold_records=fold_records)
        self.max_depth = max_depth

    def infer(self, samples: Iterable[Any], root_name: Optional[str] = None) -> Schema:
        """
        Infers the schema of a position observed once per sample.

        Args:
            samples: Parsed JSON values describing the same logical position.
            root_name: Name hint for the root record.

        Returns:
            Schema: The graph and its root handle.

        Raises:
            EmptyInputError: If no sample was supplied.
        """
        handles = [self.infer_value(sample, root_name) for sample in samples]
        if not handles:
            raise EmptyInputError("no JSON sample to infer from")
        return Schema(self.graph, self.unioner.union(handles))

    def infer_value(self, value: Any, outer_name: Optional[str] = None, depth: int = 0) -> Handle:
        """Infers the type of a single value; `outer_name` is the key that held it."""
        if depth > self.max_depth:
            raise NestingTooDeepError(self.max_depth)
        if value is None:
            return self.graph.get_or_create_primitive(TypeKind.NULL)
        # bool is a subclass of int
        if isinstance(value, bool):
            return self.graph.get_or_create_primitive(TypeKind.BOOL)
        if isinstance(value, int):
            return self.graph.get_or_create_primitive(TypeKind.INT)
        if isinstance(value, float):
            return self.graph.get_or_create_primitive(TypeKind.FLOAT)
        if isinstance(value, str):
            return self.graph.get_or_create_primitive(TypeKind.STRING)
        if isinstance(value, (list, tuple)):
            elements: List[Handle] = []
            for item in value:
                elements.append(self.infer_value(item, outer_name, depth + 1))
            return self.graph.insert(Array(self.unioner.union(elements)))
        if isinstance(value, dict):
            record = Record()
            for key, item in value.items():
                key = str(key)
                record.fields[key] = self.infer_value(item, pascal(key), depth + 1)
            if outer_name:
                record.name_hints.add(outer_name)
            return self.graph.insert(record)
        raise TypeError(f"cannot infer a type for {type(value).__name__} value")


def infer_from_samples(samples: Iterable[Any], root_name: Optional[str] = None,
                       fold_records: bool = False, max_depth: int = DEFAULT_MAX_DEPTH) -> Schema:
    """
    Infers one schema from several JSON samples of the same shape position.

    Samples that disagree produce unions at the positions where they differ.

    Raises:
        EmptyInputError: If `samples` is empty.
        NestingTooDeepError: If a sample nests deeper than `max_depth`.
    """
    inferrer = JsonInferrer(fold_records=fold_records, max_depth=max_depth)
    return inferrer.infer(samples, root_name)
