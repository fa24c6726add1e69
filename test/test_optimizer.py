"""Tests for the graph rewrite passes."""

import os
import sys
import unittest

current_script_path = os.path.abspath(__file__)
project_root = os.path.dirname(os.path.dirname(current_script_path))
sys.path.append(project_root)

from shapify.jsoninfer import infer_from_samples
from shapify.jsonsinfer import infer_from_schema
from shapify.optimizer import (Optimizer, merge_name_datatypes, merge_same_unions,
                               merge_similar_datatypes, optimize, redirect)
from shapify.typegraph import Record, Schema, TypeGraph, TypeKind, Union


class TestRedirect(unittest.TestCase):
    """Reference rewriting shared by every pass."""

    def test_collapsed_unions_report_their_final_target(self):
        graph = TypeGraph()
        int_handle = graph.get_or_create_primitive(TypeKind.INT)
        old = graph.insert(Record(fields={"a": int_handle}))
        new = graph.insert(Record(fields={"a": int_handle}))
        pair = graph.insert(Union(members=[old, new]))
        holder = graph.insert(Record(fields={"pair": pair, "old": old}))
        schema = Schema(graph, holder)
        moved = redirect(schema, {old: new})
        self.assertEqual(moved, {old: new, pair: new})
        holder_node = graph.resolve(holder)
        self.assertEqual(holder_node.fields, {"pair": new, "old": new})


class TestMergeSimilarDatatypes(unittest.TestCase):
    """Structurally equal records collapse onto one representative."""

    def test_equal_records_merge(self):
        schema = infer_from_samples([{"x": {"a": 1, "b": "s"}, "y": {"a": 2, "b": "t"}}], "Root")
        root = schema.root_node
        self.assertNotEqual(root.fields["x"], root.fields["y"])
        merged = merge_similar_datatypes(schema)
        self.assertEqual(merged, 1)
        self.assertEqual(root.fields["x"], root.fields["y"])
        self.assertEqual(schema.resolve(root.fields["x"]).name_hints, {"X", "Y"})

    def test_representative_is_first_and_root_is_redirected(self):
        graph = TypeGraph()
        first_node = Record(name_hints={"First"})
        second_node = Record(name_hints={"Second"})
        first = graph.insert(first_node)
        second = graph.insert(second_node)
        first_node.fields["other"] = second
        second_node.fields["other"] = first
        schema = Schema(graph, second)
        optimize(schema, merge_similar=True)
        self.assertEqual(schema.root, first)
        self.assertEqual(first_node.fields["other"], first)
        self.assertEqual(first_node.name_hints, {"First", "Second"})

    def test_different_records_stay(self):
        schema = infer_from_samples([{"x": {"a": 1}, "y": {"a": "s"}}])
        self.assertEqual(merge_similar_datatypes(schema), 0)
        root = schema.root_node
        self.assertNotEqual(root.fields["x"], root.fields["y"])

    def test_idempotent(self):
        schema = infer_from_samples([{"x": {"a": 1}, "y": [{"a": 2}], "z": {"a": 3, "w": {"a": 4}}}])
        merge_similar_datatypes(schema)
        once = schema.describe()
        size = len(schema.graph)
        self.assertEqual(merge_similar_datatypes(schema), 0)
        self.assertEqual(schema.describe(), once)
        self.assertEqual(len(schema.graph), size)


class TestMergeNameDatatypes(unittest.TestCase):
    """Records sharing a name hint collapse regardless of their fields."""

    def test_same_hint_merges(self):
        schema = infer_from_samples([{"address": {"street": "x"}, "other": [{"address": {"zip": 1}}]}], "Root")
        root = schema.root_node
        other = schema.resolve(schema.resolve(root.fields["other"]).element)
        self.assertNotEqual(other.fields["address"], root.fields["address"])
        merge_name_datatypes(schema)
        self.assertEqual(other.fields["address"], root.fields["address"])
        self.assertEqual(list(schema.resolve(root.fields["address"]).fields), ["street"])

    def test_sharing_is_transitive(self):
        graph = TypeGraph()
        integer = graph.get_or_create_primitive(TypeKind.INT)
        first = graph.insert(Record(fields={"a": integer}, name_hints={"A", "B"}))
        second = graph.insert(Record(fields={"b": integer}, name_hints={"B", "C"}))
        third = graph.insert(Record(fields={"c": integer}, name_hints={"C"}))
        root = graph.insert(Record(fields={"one": first, "two": second, "three": third}, name_hints={"Root"}))
        schema = Schema(graph, root)
        self.assertEqual(merge_name_datatypes(schema), 2)
        fields = schema.root_node.fields
        self.assertEqual(fields["one"], first)
        self.assertEqual(fields["two"], first)
        self.assertEqual(fields["three"], first)
        self.assertEqual(graph.resolve(first).name_hints, {"A", "B", "C"})

    def test_collapsed_union_is_replaced_by_its_member(self):
        schema = infer_from_samples([{"v": {"a": 1}}, {"v": {"b": 2}}], "Root")
        self.assertEqual(schema.root_node.kind, TypeKind.UNION)
        merge_name_datatypes(schema)
        root = schema.root_node
        self.assertEqual(root.kind, TypeKind.RECORD)
        self.assertEqual(list(schema.resolve(root.fields["v"]).fields), ["a"])

    def test_idempotent(self):
        schema = infer_from_samples([{"item": {"a": 1}, "items": [{"item": {"b": "x"}}]}], "Root")
        merge_name_datatypes(schema)
        once = schema.describe()
        self.assertEqual(merge_name_datatypes(schema), 0)
        self.assertEqual(schema.describe(), once)


class TestMergeSameUnions(unittest.TestCase):
    """Unions with equal member sets collapse."""

    def test_equal_unions_merge(self):
        schema = infer_from_samples([{"a": [1, "x"], "b": ["y", 2]}])
        root = schema.root_node
        first = schema.resolve(root.fields["a"])
        second = schema.resolve(root.fields["b"])
        self.assertNotEqual(first.element, second.element)
        self.assertEqual(merge_same_unions(schema), 1)
        self.assertEqual(first.element, second.element)

    def test_different_unions_stay(self):
        schema = infer_from_samples([{"a": [1, "x"], "b": [True, 2]}])
        self.assertEqual(merge_same_unions(schema), 0)

    def test_idempotent(self):
        schema = infer_from_samples([{"a": [1, "x"], "b": ["y", 2], "c": [None, 1.5]}])
        merge_same_unions(schema)
        once = schema.describe()
        self.assertEqual(merge_same_unions(schema), 0)
        self.assertEqual(schema.describe(), once)

    def test_union_members_merged_by_records(self):
        graph = TypeGraph()
        integer = graph.get_or_create_primitive(TypeKind.INT)
        first = graph.insert(Record(fields={"a": integer}))
        second = graph.insert(Record(fields={"a": integer}))
        left = graph.insert(Union(members=[integer, first]))
        right = graph.insert(Union(members=[second, integer]))
        root = graph.insert(Record(fields={"left": left, "right": right}))
        schema = Schema(graph, root)
        optimize(schema, merge_similar=True, merge_unions=True)
        self.assertEqual(schema.root_node.fields["left"], schema.root_node.fields["right"])
        self.assertEqual(graph.resolve(left).members, [integer, first])


class TestOptimizer(unittest.TestCase):
    """Pass configuration."""

    def test_noop_configuration(self):
        schema = infer_from_samples([{"x": {"a": 1}, "y": {"a": 2}}])
        before = schema.describe()
        Optimizer().optimize(schema)
        self.assertEqual(schema.describe(), before)

    def test_all_passes_on_recursive_schema(self):
        schema = infer_from_schema({
            "type": "object",
            "properties": {
                "a": {"$ref": "#/definitions/Node"},
                "b": {"$ref": "#/definitions/Other"}
            },
            "definitions": {
                "Node": {"type": "object", "properties": {"next": {"$ref": "#/definitions/Node"}}},
                "Other": {"type": "object", "properties": {"next": {"$ref": "#/definitions/Other"}}}
            }
        }, "Root")
        Optimizer(merge_similar=True, merge_by_name=True, merge_unions=True).optimize(schema)
        root = schema.root_node
        self.assertEqual(root.fields["a"], root.fields["b"])
        node = schema.resolve(root.fields["a"])
        self.assertEqual(node.fields["next"], root.fields["a"])
        self.assertEqual(node.name_hints, {"Node", "Other"})


if __name__ == '__main__':
    unittest.main()
