"""Tests for rendering schemas as Python declarations."""

import os
import sys
import unittest

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from shapify.jsoninfer import infer_from_samples
from shapify.jsonsinfer import infer_from_schema
from shapify.optimizer import optimize
from shapify.shapetopython import ShapeToPython, best_name_hint, convert_shape_to_python


class TestShapeToPython(unittest.TestCase):
    """TypedDict and dataclass generation."""

    def test_typeddict(self):
        schema = infer_from_samples([{"name": "a", "age": 1, "tags": ["x"]}], "Person")
        output = ShapeToPython().generate(schema)
        self.assertIn("from __future__ import annotations", output.header)
        self.assertIn("from typing import List, TypedDict", output.header)
        self.assertIn("class Person(TypedDict):\n    name: str\n    age: int\n    tags: List[str]", output.body)
        self.assertEqual(output.additional, "")

    def test_generated_code_executes(self):
        schema = infer_from_samples([{"name": "a", "address": {"street": "s", "zip": None}, "scores": [1, 2.5]}], "Person")
        code = convert_shape_to_python(schema)
        namespace = {}
        exec(compile(code, "<generated>", "exec"), namespace)  # pylint: disable=exec-used
        self.assertIn("Person", namespace)
        self.assertIn("Address", namespace)

    def test_dependencies_come_first(self):
        schema = infer_from_samples([{"address": {"street": "s"}}], "Person")
        code = convert_shape_to_python(schema)
        self.assertLess(code.index("class Address("), code.index("class Person("))

    def test_dataclass(self):
        schema = infer_from_samples([{"name": "a", "class": 1}], "Person")
        code = convert_shape_to_python(schema, kind="dataclass")
        self.assertIn("from dataclasses import dataclass", code)
        self.assertIn("@dataclass\nclass Person:", code)
        self.assertIn("    name: str", code)
        self.assertIn('    # "class"\n    class_: int', code)

    def test_optional_fields(self):
        schema = infer_from_samples([{"a": 1, "b": "x"}, {"a": 2}], "Item", fold_records=True)
        code = convert_shape_to_python(schema)
        self.assertIn("    b: Optional[str]", code)
        self.assertIn("from typing import Optional, TypedDict", code)

    def test_functional_syntax_for_invalid_keys(self):
        schema = infer_from_samples([{"first-name": "a", "child": {"x": 1}}], "Person")
        code = convert_shape_to_python(schema)
        self.assertIn("Person = TypedDict('Person', {", code)
        self.assertIn('    "first-name": str,', code)
        self.assertIn("    \"child\": 'Child',", code)

    def test_empty_record(self):
        schema = infer_from_samples([{"meta": {}}], "Doc")
        code = convert_shape_to_python(schema)
        self.assertIn("class Meta(TypedDict):\n    pass", code)

    def test_union_alias(self):
        schema = infer_from_samples([{"x": [1, "a"], "y": [2, "b"]}])
        optimize(schema, merge_unions=True)
        output = ShapeToPython().generate(schema)
        self.assertIn("    x: List[RootXItemUnion]", output.body)
        self.assertIn("    y: List[RootXItemUnion]", output.body)
        self.assertIn("RootXItemUnion = Union[int, str]", output.additional)

    def test_union_inline_without_alias(self):
        schema = infer_from_samples([{"x": [1, "a"], "y": [2, "b"]}])
        optimize(schema, merge_unions=True)
        output = ShapeToPython(alias_unions=False).generate(schema)
        self.assertIn("    x: List[Union[int, str]]", output.body)
        self.assertEqual(output.additional, "")

    def test_recursive_schema(self):
        schema = infer_from_schema({
            "type": "object",
            "properties": {
                "value": {"type": "integer"},
                "children": {"type": "array", "items": {"$ref": "#"}}
            }
        }, "Node")
        code = convert_shape_to_python(schema)
        self.assertIn("class Node(TypedDict):\n    value: int\n    children: List[Node]", code)

    def test_dataclass_field_names_stay_distinct(self):
        schema = infer_from_samples([{"a-b": 1, "a_b": "x"}], "Pair")
        code = convert_shape_to_python(schema, kind="dataclass")
        self.assertIn('    # "a-b"\n    a_b: int\n    # "a_b"\n    a_b2: str', code)

    def test_nullable_recursive_definition(self):
        schema = infer_from_schema({
            "$ref": "#/definitions/Node",
            "definitions": {
                "Node": {
                    "type": ["object", "null"],
                    "properties": {"value": {"type": "integer"}, "next": {"$ref": "#/definitions/Node"}}
                }
            }
        })
        output = ShapeToPython().generate(schema)
        self.assertIn("class Node(TypedDict):\n    value: int\n    next: Optional[Node]", output.body)
        self.assertIn("Root = Optional['Node']", output.additional)
        namespace = {}
        exec(compile(output.join(), "<generated>", "exec"), namespace)  # pylint: disable=exec-used
        self.assertIn("Root", namespace)

    def test_root_array(self):
        schema = infer_from_samples([[{"a": 1}]])
        output = ShapeToPython().generate(schema)
        self.assertIn("class RootItem(TypedDict):", output.body)
        self.assertIn("Root = List['RootItem']", output.additional)

    def test_name_collisions(self):
        schema = infer_from_samples([{"a": {"data": {"x": 1}}, "b": {"data": {"y": "s"}}}], "Root")
        code = convert_shape_to_python(schema)
        self.assertIn("class Data(TypedDict):", code)
        self.assertIn("class Data2(TypedDict):", code)

    def test_best_name_hint(self):
        self.assertEqual(best_name_hint({"AddressSchema", "Address", "Addr"}), "Addr")
        self.assertEqual(best_name_hint({"Beta", "Alfa"}), "Alfa")
        self.assertIsNone(best_name_hint(set()))

    def test_invalid_kind(self):
        with self.assertRaises(ValueError):
            ShapeToPython(kind="pydantic")


if __name__ == '__main__':
    unittest.main()
