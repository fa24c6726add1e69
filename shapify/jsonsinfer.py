"""Infers a type graph from JSON Schema documents.

Documents are consumed as already parsed trees. Only the keywords that shape
a type are interpreted; validation constraints such as `minimum` or `pattern`
are ignored.
"""

# pylint: disable=too-many-return-statements, too-many-branches

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Set
from urllib.parse import unquote, urlparse

import jsonpointer
from jsonpointer import JsonPointerException

from shapify.common import pascal
from shapify.optimizer import redirect
from shapify.typegraph import (Array, DanglingReferenceError, EmptyInputError, Handle,
                               NestingTooDeepError, Record, Schema, SchemaParseError,
                               TypeGraph, TypeKind, Union)
from shapify.unioner import Unioner

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

# Appended to hints derived from property keys so that schema-derived names
# stay distinguishable from names derived from JSON samples.
SCHEMA_NAME_SUFFIX = 'Schema'

SHAPE_KEYWORDS = frozenset([
    'type', 'properties', 'additionalProperties', 'patternProperties',
    'items', 'prefixItems', 'enum', 'const', 'anyOf', 'oneOf', 'allOf', '$ref'])

PRIMITIVE_TYPE_NAMES = {
    'integer': TypeKind.INT,
    'number': TypeKind.FLOAT,
    'boolean': TypeKind.BOOL,
    'string': TypeKind.STRING,
    'null': TypeKind.NULL,
}


def is_empty_schema(node: Any) -> bool:
    """True if a schema node declares no shape at all."""
    if node is None or node is True or node is False:
        return True
    if isinstance(node, dict):
        return not any(keyword in node for keyword in SHAPE_KEYWORDS)
    return False


def literal_kind(value: Any) -> TypeKind:
    """Maps an `enum`/`const` literal to the primitive kind it belongs to."""
    if value is None:
        return TypeKind.NULL
    if isinstance(value, bool):
        return TypeKind.BOOL
    if isinstance(value, int):
        return TypeKind.INT
    if isinstance(value, float):
        return TypeKind.FLOAT
    if isinstance(value, str):
        return TypeKind.STRING
    return TypeKind.ANY


class JsonSchemaInferrer:
    """
    Builds a type graph from JSON Schema documents.

    Several documents can be inferred into the same graph; `$ref` pointers are
    always resolved against the document currently being inferred.

    Attributes:
        graph: The type graph all documents are inferred into.
        max_depth: Maximum nesting depth followed before giving up.
    """

    def __init__(self, graph: Optional[TypeGraph] = None, max_depth: int = DEFAULT_MAX_DEPTH):
        self.graph = graph if graph is not None else TypeGraph()
        # nodes whose children are still being inferred
        self.building: Set[Handle] = set()
        self.unioner = Unioner(self.graph, opaque=self.building)
        self.max_depth = max_depth
        self.document: Any = None
        self.refs: Dict[str, Handle] = {}
        self.resolving: Set[str] = set()

    def infer(self, document: Any, root_name: Optional[str] = None) -> Schema:
        """
        Infers the schema of a single JSON Schema document.

        Args:
            document: The parsed JSON Schema document.
            root_name: Name hint for the outermost record.

        Returns:
            Schema: The graph and its root handle.

        Raises:
            EmptyInputError: If the document declares no shape.
            DanglingReferenceError: If a `$ref` does not resolve inside the document.
        """
        return Schema(self.graph, self.infer_document(document, root_name))

    def infer_document(self, document: Any, root_name: Optional[str] = None) -> Handle:
        """Infers one document into the shared graph and returns its root handle."""
        if is_empty_schema(document):
            raise EmptyInputError("the JSON schema is empty")
        self.document = document
        self.refs = {}
        self.resolving = set()
        self.building.clear()
        root = self.rinfer(document, None, 0, ref_key="")
        if root_name:
            node = self.graph.resolve(root)
            if node.kind == TypeKind.RECORD:
                node.name_hints.add(root_name)
        return root

    def rinfer(self, node: Any, outer_name: Optional[str], depth: int, ref_key: Optional[str] = None) -> Handle:
        """
        Infers the type of one schema node.

        Args:
            node: The schema node.
            outer_name: Name hint for a record built from this node.
            depth: Current nesting depth.
            ref_key: The reference this node is the target of. The record,
                array or union built for the node is registered under it before
                its children are inferred, so self references close into a cycle.
        """
        if depth > self.max_depth:
            raise NestingTooDeepError(self.max_depth)
        if is_empty_schema(node):
            return self.graph.get_or_create_primitive(TypeKind.ANY)
        if not isinstance(node, dict):
            raise ValueError(f"Invalid schema node: {node!r}")

        if '$ref' in node:
            return self.resolve_reference(node['$ref'], depth)
        if 'allOf' in node:
            return self.rinfer(self.merge_all_of(node, depth), outer_name, depth + 1, ref_key)
        for keyword in ('anyOf', 'oneOf'):
            if keyword in node:
                return self.infer_alternatives(node[keyword], outer_name, depth, ref_key)

        json_type = node.get('type')
        if isinstance(json_type, list):
            alternatives = [{**node, 'type': t} for t in json_type]
            return self.infer_alternatives(alternatives, outer_name, depth, ref_key)
        if json_type is None:
            json_type = self.implied_type(node)
            if json_type is None:
                return self.infer_literals(node)

        if json_type in PRIMITIVE_TYPE_NAMES:
            return self.graph.get_or_create_primitive(PRIMITIVE_TYPE_NAMES[json_type])
        if json_type == 'array':
            return self.infer_array(node, outer_name, depth, ref_key)
        if json_type == 'object':
            return self.infer_object(node, outer_name, depth, ref_key)
        logger.warning("Unknown JSON schema type %r, treating it as any", json_type)
        return self.graph.get_or_create_primitive(TypeKind.ANY)

    def implied_type(self, node: dict) -> Optional[str]:
        """Derives the type of a node that carries no `type` keyword."""
        if any(k in node for k in ('properties', 'additionalProperties', 'patternProperties')):
            return 'object'
        if 'items' in node or 'prefixItems' in node:
            return 'array'
        return None

    def infer_literals(self, node: dict) -> Handle:
        """Infers the type of an `enum` or `const` node from its literal values."""
        if 'const' in node:
            values = [node['const']]
        else:
            values = node.get('enum') or []
        kinds = [self.graph.get_or_create_primitive(literal_kind(v)) for v in values]
        return self.unioner.union(kinds)

    def infer_array(self, node: dict, outer_name: Optional[str], depth: int, ref_key: Optional[str]) -> Handle:
        """Infers an array node; tuple forms become an array of the union of their items."""
        handle = self.graph.insert(Array(self.graph.get_or_create_primitive(TypeKind.ANY)))
        if ref_key is not None:
            self.refs[ref_key] = handle
        items = node.get('items')
        item_schemas: List[Any] = list(node.get('prefixItems') or [])
        if isinstance(items, list):
            item_schemas.extend(items)
        elif items is not None and items is not False:
            item_schemas.append(items)
        self.building.add(handle)
        try:
            elements: List[Handle] = []
            for item in item_schemas:
                elements.append(self.rinfer(item, outer_name, depth + 1))
            element = self.unioner.union(elements)
        finally:
            self.building.discard(handle)
        self.graph.resolve(handle).element = element
        return handle

    def infer_object(self, node: dict, outer_name: Optional[str], depth: int, ref_key: Optional[str]) -> Handle:
        """Infers an object node into a record with one field per declared property."""
        record = Record()
        if outer_name:
            record.name_hints.add(outer_name)
        if isinstance(node.get('title'), str) and node['title'].strip():
            record.name_hints.add(pascal(node['title']))
        handle = self.graph.insert(record)
        if ref_key is not None:
            self.refs[ref_key] = handle
        self.building.add(handle)
        try:
            for key, value in (node.get('properties') or {}).items():
                record.fields[key] = self.rinfer(value, pascal(key) + SCHEMA_NAME_SUFFIX, depth + 1)
        finally:
            self.building.discard(handle)
        return handle

    def infer_alternatives(self, alternatives: List[Any], outer_name: Optional[str], depth: int,
                           ref_key: Optional[str]) -> Handle:
        """
        Infers `anyOf`/`oneOf` branches, or the entries of a `type` list, as one union.

        When the node is the target of a reference, an empty union stands in
        for it while the branches are inferred, so branches that refer back to
        the node close a cycle. The stand-in is filled with the branches
        afterwards, or replaced everywhere when only one shape is left.
        """
        placeholder = None
        if ref_key is not None:
            placeholder = self.graph.insert(Union())
            self.refs[ref_key] = placeholder
            self.building.add(placeholder)
        try:
            handles: List[Handle] = []
            for alternative in alternatives:
                handles.append(self.rinfer(alternative, outer_name, depth + 1))
            result = self.unioner.union(handles)
        finally:
            if placeholder is not None:
                self.building.discard(placeholder)
        if placeholder is None:
            return result
        return self.close_placeholder(placeholder, result)

    def close_placeholder(self, placeholder: Handle, result: Handle) -> Handle:
        """Gives the stand-in union of a referenced node its final shape."""
        graph = self.graph
        if result == placeholder:
            members: List[Handle] = []
        elif graph.kind_of(result) == TypeKind.UNION and result not in self.building:
            members = [m for m in graph.resolve(result).members if m != placeholder]
        else:
            members = [result]

        if len(members) > 1:
            graph.resolve(placeholder).members = members
            # unions built around the stand-in absorb its members
            for handle in graph.handles():
                node = graph.resolve(handle)
                if handle == placeholder or node.kind != TypeKind.UNION or placeholder not in node.members:
                    continue
                flat: List[Handle] = []
                for member in node.members:
                    for inner in (members if member == placeholder else [member]):
                        if inner not in flat:
                            flat.append(inner)
                node.members = flat
            return placeholder

        target = members[0] if members else graph.get_or_create_primitive(TypeKind.ANY)
        moved = redirect(Schema(graph, placeholder), {placeholder: target})
        for key, handle in self.refs.items():
            self.refs[key] = moved.get(handle, handle)
        return moved.get(placeholder, target)

    def lookup_reference(self, ref: str) -> tuple:
        """
        Resolves a local `$ref` against the current document.

        Returns:
            tuple: The normalized pointer and the schema node it points at.

        Raises:
            DanglingReferenceError: If the reference points outside the document
                or at a location that does not exist.
        """
        if not isinstance(ref, str):
            raise DanglingReferenceError(repr(ref))
        url = urlparse(ref)
        if url.scheme or url.netloc or url.path:
            raise DanglingReferenceError(ref)
        pointer = unquote(url.fragment)
        if not pointer:
            return pointer, self.document
        try:
            return pointer, jsonpointer.resolve_pointer(self.document, pointer)
        except JsonPointerException as e:
            raise DanglingReferenceError(ref) from e

    def resolve_reference(self, ref: str, depth: int) -> Handle:
        """Infers the target of a `$ref`, once per target and document."""
        pointer, target = self.lookup_reference(ref)
        if pointer in self.refs:
            return self.refs[pointer]
        if pointer in self.resolving:
            logger.warning("Reference %s refers back to itself without an object or array in between, treating it as any", ref)
            return self.graph.get_or_create_primitive(TypeKind.ANY)
        name = pointer.rsplit('/', 1)[-1]
        self.resolving.add(pointer)
        try:
            handle = self.rinfer(target, pascal(name) if name else None, depth + 1, pointer)
        finally:
            self.resolving.discard(pointer)
        self.refs[pointer] = handle
        return handle

    def merge_all_of(self, node: dict, depth: int, seen: Optional[Set[str]] = None) -> dict:
        """
        Folds the `allOf` alternatives of a node into one schema node.

        Properties of the node itself come first, then those of every
        alternative in order; the first declaration of a property wins.
        """
        if depth > self.max_depth:
            raise NestingTooDeepError(self.max_depth)
        seen = set() if seen is None else seen
        merged = {k: v for k, v in node.items() if k != 'allOf'}
        properties = dict(merged.get('properties') or {})
        for alternative in node.get('allOf') or []:
            if isinstance(alternative, dict) and '$ref' in alternative:
                pointer, target = self.lookup_reference(alternative['$ref'])
                if pointer in seen:
                    continue
                seen.add(pointer)
                alternative = target
            if not isinstance(alternative, dict):
                continue
            if 'allOf' in alternative:
                alternative = self.merge_all_of(alternative, depth + 1, seen)
            for key, value in (alternative.get('properties') or {}).items():
                properties.setdefault(key, value)
            for key, value in alternative.items():
                if key != 'properties':
                    merged.setdefault(key, value)
        if properties:
            merged['properties'] = properties
        if 'type' not in merged and properties:
            merged['type'] = 'object'
        return merged


def infer_from_schema(document: Any, root_name: Optional[str] = None, max_depth: int = DEFAULT_MAX_DEPTH) -> Schema:
    """
    Infers a schema from a single parsed JSON Schema document.

    Raises:
        EmptyInputError: If the document declares no shape.
        DanglingReferenceError: If a `$ref` does not resolve inside the document.
    """
    return JsonSchemaInferrer(max_depth=max_depth).infer(document, root_name)


def infer_from_schema_set(documents: Mapping[str, str], root_name: Optional[str] = None,
                          max_depth: int = DEFAULT_MAX_DEPTH) -> Schema:
    """
    Infers one schema from a set of named JSON Schema texts.

    Every text is parsed and inferred on its own; the results become the fields
    of a synthetic root record keyed by schema name, in input order. Documents
    that are empty or contain a dangling reference are skipped.

    Args:
        documents: Ordered mapping of schema name to raw JSON Schema text.
        root_name: Name hint for the synthetic root record.

    Raises:
        SchemaParseError: If a text is not a string holding valid JSON.
    """
    parsed: Dict[str, Any] = {}
    for name, text in documents.items():
        if text is not None and not isinstance(text, str):
            raise SchemaParseError(name, TypeError(f"expected schema text, got {type(text).__name__}"))
        if text is None or not text.strip():
            parsed[name] = None
            continue
        try:
            parsed[name] = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaParseError(name, e) from e

    inferrer = JsonSchemaInferrer(max_depth=max_depth)
    root = Record()
    if root_name:
        root.name_hints.add(root_name)
    for name, document in parsed.items():
        try:
            root.fields[name] = inferrer.infer_document(document, name)
        except (EmptyInputError, DanglingReferenceError) as e:
            logger.warning("Skipping schema %s: %s", name, e)
    return Schema(inferrer.graph, inferrer.graph.insert(root))
