"""Renders an inferred schema as Python TypedDict or dataclass declarations"""

# pylint: disable=line-too-long,too-many-instance-attributes

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from shapify.common import is_python_identifier, pascal, process_template, safe_identifier
from shapify.typegraph import Handle, Schema, TypeKind

PRIMITIVE_NAMES = {
    TypeKind.INT: 'int',
    TypeKind.FLOAT: 'float',
    TypeKind.BOOL: 'bool',
    TypeKind.STRING: 'str',
    TypeKind.NULL: 'None',
    TypeKind.ANY: 'Any',
}

KINDS = ('typeddict', 'dataclass')


@dataclass
class GenOutput:
    """Generated source, split into the import header, the classes and the aliases."""
    header: str
    body: str
    additional: str

    def join(self) -> str:
        return '\n'.join(part for part in (self.header, self.body, self.additional) if part)


def best_name_hint(hints: Set[str]) -> Optional[str]:
    """Picks the shortest usable hint, alphabetically first among equals"""
    candidates = sorted({pascal(h) for h in hints if h and pascal(h)}, key=lambda h: (len(h), h))
    for candidate in candidates:
        name = safe_identifier(candidate)
        if name:
            return name
    return None


class ShapeToPython:
    """
    Renders the records of a schema as Python classes.

    Args:
        kind: 'typeddict' or 'dataclass'.
        alias_unions: Emit a named alias for a union that is used more than once.
        indent: The indentation unit of the generated code.
        root_name: Name used for the root when no name hint is available.
    """

    def __init__(self, kind: str = 'typeddict', alias_unions: bool = True, indent: str = '    ', root_name: str = 'Root') -> None:
        if kind not in KINDS:
            raise ValueError(f"Unsupported class kind: {kind}")
        self.kind = kind
        self.alias_unions = alias_unions
        self.indent = indent
        self.root_name = safe_identifier(pascal(root_name) or 'Root')
        self.schema: Optional[Schema] = None
        self.class_names: Dict[Handle, str] = {}
        self.alias_names: Dict[Handle, str] = {}
        self.alias_order: List[Handle] = []
        self.used_names: Set[str] = set()
        self.typing_imports: Set[str] = set()
        self.quote_names = False
        self.root_alias: Optional[str] = None

    def unique_name(self, name: str, taken: Optional[Set[str]] = None) -> str:
        """Appends a counter to `name` until it is not in `taken`, the module level names by default"""
        taken = self.used_names if taken is None else taken
        candidate = name
        counter = 2
        while candidate in taken:
            candidate = f"{name}{counter}"
            counter += 1
        taken.add(candidate)
        return candidate

    def assign_names(self) -> None:
        """Names every reachable record, and the unions that get an alias."""
        graph = self.schema.graph
        reachable = graph.reachable(self.schema.root)
        if graph.kind_of(self.schema.root) != TypeKind.RECORD:
            self.root_alias = self.unique_name(self.root_name)
        union_uses: Dict[Handle, int] = {}
        for handle in reachable:
            for child in graph.children(handle):
                if graph.kind_of(child) == TypeKind.UNION:
                    union_uses[child] = union_uses.get(child, 0) + 1

        # records with hints are named first so that hinted names win collisions
        for handle in reachable:
            node = graph.resolve(handle)
            if node.kind == TypeKind.RECORD:
                hint = best_name_hint(node.name_hints)
                if hint:
                    self.class_names[handle] = self.unique_name(hint)

        def visit(handle: Handle, context: str, seen: Set[Handle]) -> None:
            if handle in seen:
                return
            seen.add(handle)
            node = graph.resolve(handle)
            if node.kind == TypeKind.RECORD:
                if handle not in self.class_names:
                    self.class_names[handle] = self.unique_name(context)
                for key, child in node.fields.items():
                    visit(child, self.class_names[handle] + pascal(safe_identifier(key)), seen)
            elif node.kind == TypeKind.ARRAY:
                visit(node.element, context + 'Item', seen)
            elif node.kind == TypeKind.UNION:
                if self.alias_unions and union_uses.get(handle, 0) > 1 and not self.is_optional(handle):
                    self.alias_names[handle] = self.unique_name(context + 'Union')
                    self.alias_order.append(handle)
                for member in node.members:
                    visit(member, context, seen)

        visit(self.schema.root, self.root_name, set())

    def is_optional(self, handle: Handle) -> bool:
        """True for a union of exactly one type and null"""
        graph = self.schema.graph
        node = graph.resolve(handle)
        return node.kind == TypeKind.UNION and len(node.members) == 2 and any(
            graph.kind_of(m) == TypeKind.NULL for m in node.members)

    def reference(self, name: str) -> str:
        return f"'{name}'" if self.quote_names else name

    def type_expression(self, handle: Handle, inline_alias: bool = False) -> str:
        """Python type expression for a handle"""
        graph = self.schema.graph
        node = graph.resolve(handle)
        if node.kind.is_primitive:
            if node.kind == TypeKind.ANY:
                self.typing_imports.add('Any')
            return PRIMITIVE_NAMES[node.kind]
        if node.kind == TypeKind.ARRAY:
            self.typing_imports.add('List')
            return f"List[{self.type_expression(node.element)}]"
        if node.kind == TypeKind.RECORD:
            return self.reference(self.class_names[handle])
        if handle in self.alias_names and not inline_alias:
            return self.reference(self.alias_names[handle])
        members = [m for m in node.members if graph.kind_of(m) != TypeKind.NULL]
        nullable = len(members) < len(node.members)
        if len(members) == 1:
            inner = self.type_expression(members[0])
        else:
            self.typing_imports.add('Union')
            inner = f"Union[{', '.join(self.type_expression(m) for m in members)}]"
        if nullable:
            self.typing_imports.add('Optional')
            return f"Optional[{inner}]"
        return inner

    def class_order(self) -> List[Handle]:
        """Records in dependency order, dependencies first"""
        graph = self.schema.graph
        order: List[Handle] = []
        visited: Set[Handle] = set()
        stack = [(self.schema.root, False)]
        while stack:
            handle, expanded = stack.pop()
            if expanded:
                if graph.kind_of(handle) == TypeKind.RECORD:
                    order.append(handle)
                continue
            if handle in visited:
                continue
            visited.add(handle)
            stack.append((handle, True))
            for child in reversed(graph.children(handle)):
                if child not in visited:
                    stack.append((child, False))
        return order

    def generate_class(self, handle: Handle) -> str:
        """Generates one class declaration"""
        node = self.schema.graph.resolve(handle)
        class_name = self.class_names[handle]
        functional = self.kind == 'typeddict' and not all(is_python_identifier(k) for k in node.fields)
        self.quote_names = functional
        try:
            if self.kind == 'dataclass':
                taken: Set[str] = set()
                fields = [{'name': self.unique_name(safe_identifier(key), taken), 'original_name': key, 'type': self.type_expression(child)}
                          for key, child in node.fields.items()]
                return process_template('shapetopython/dataclass.jinja', class_name=class_name, fields=fields, indent=self.indent)
            fields = [{'name': key, 'type': self.type_expression(child)} for key, child in node.fields.items()]
            self.typing_imports.add('TypedDict')
            template = 'shapetopython/typeddict_functional.jinja' if functional else 'shapetopython/typeddict.jinja'
            return process_template(template, class_name=class_name, fields=fields, indent=self.indent)
        finally:
            self.quote_names = False

    def generate_header(self) -> str:
        lines = ['from __future__ import annotations', '']
        if self.kind == 'dataclass':
            lines.append('from dataclasses import dataclass')
        if self.typing_imports:
            lines.append(f"from typing import {', '.join(sorted(self.typing_imports))}")
        return '\n'.join(lines) + '\n'

    def generate(self, schema: Schema) -> GenOutput:
        """
        Renders a schema.

        Args:
            schema: The (optionally optimized) schema.

        Returns:
            GenOutput: Import header, class declarations and type aliases.
        """
        self.schema = schema
        self.class_names = {}
        self.alias_names = {}
        self.alias_order = []
        self.used_names = set()
        self.typing_imports = set()
        self.root_alias = None
        self.assign_names()

        classes = [self.generate_class(handle).rstrip() for handle in self.class_order()]
        # module level aliases are evaluated eagerly, so forward references are quoted
        self.quote_names = True
        aliases = [f"{self.alias_names[h]} = {self.type_expression(h, inline_alias=True)}" for h in self.alias_order]
        if self.root_alias:
            aliases.append(f"{self.root_alias} = {self.type_expression(schema.root, inline_alias=True)}")
        self.quote_names = False
        body = '\n\n\n'.join(classes)
        additional = '\n'.join(aliases)
        return GenOutput(self.generate_header(), body + '\n' if body else '', additional + '\n' if additional else '')


def convert_shape_to_python(schema: Schema, kind: str = 'typeddict', alias_unions: bool = True, indent: str = '    ', root_name: str = 'Root') -> str:
    """Renders a schema as Python source text"""
    return ShapeToPython(kind=kind, alias_unions=alias_unions, indent=indent, root_name=root_name).generate(schema).join()
