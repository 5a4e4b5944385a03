"""
Test suite for the Lumo tree shaker.

Tests cover:
- Roots: exports, export lists, statements and side-effecting initializers
- Transitive reachability (including recursion)
- Dynamic access keeping every declaration
- Name matching for programs that were never type checked
- Units with no roots, which keep every declaration

Author: xwest
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from lumo.lexer import Lexer
from lumo.parser import Parser
from lumo.parser.ast_nodes import ImportDecl
from lumo.analyzer import TypeChecker
from lumo.shaker import TreeShaker, shake_program


class TestTreeShaker(unittest.TestCase):
    """Test cases for dead-code elimination."""

    def _shake(self, source: str, check: bool = True):
        tokens = Lexer(source, "<test>").tokenize()
        parser = Parser(tokens)
        program = parser.parse()
        self.assertFalse(parser.has_errors(), [str(e) for e in parser.errors])
        if check:
            TypeChecker(strict=False).check(program)
        return TreeShaker(program).shake()

    def test_unused_function_is_removed(self):
        result = self._shake(
            "export fn f(n: num): num { return n <= 0 ? 0 : f(n - 1) }\n"
            "fn g() { }"
        )
        self.assertEqual(result.removed_names, ["g"])
        self.assertEqual([stmt.name for stmt in result.retained], ["f"])

    def test_transitive_references_are_kept(self):
        result = self._shake(
            "fn helper() { return 1 }\n"
            "fn middle() { return helper() }\n"
            "fn unused() { return helper() }\n"
            "log(middle())"
        )
        self.assertEqual(result.removed_names, ["unused"])

    def test_export_list_is_a_root(self):
        result = self._shake("a = 1\nb = 2\nexport { a }")
        self.assertEqual(result.removed_names, ["b"])

    def test_unit_without_roots_keeps_everything(self):
        result = self._shake("fn add(a: num, b: num): num { return a + b }\nfn unused() { }")
        self.assertEqual(result.removed, [])

        result = self._shake('import { join } from "path"\nfn add(a: num, b: num): num { return a + b }')
        self.assertEqual(result.removed, [])

    def test_export_list_alone_is_a_root(self):
        result = self._shake('import { join } from "path"\nfn unused() { }\nexport { join }')
        self.assertEqual(result.removed_names, ["unused"])

    def test_side_effecting_initializer_is_kept(self):
        result = self._shake(
            "fn setup() { return 1 }\n"
            "started = setup()\n"
            "idle = 5\n"
            "handler = () => setup()"
        )
        self.assertEqual(sorted(result.removed_names), ["handler", "idle"])

    def test_class_references(self):
        result = self._shake(
            "class Base { }\n"
            "class Child extends Base { }\n"
            "class Lonely { }\n"
            "export c = new Child()"
        )
        self.assertEqual(result.removed_names, ["Lonely"])

    def test_statements_and_imports_survive(self):
        result = self._shake('import { readFile } from "fs"\nunused = 1\nlog("hi")')
        kinds = [type(stmt) for stmt in result.retained]
        self.assertIn(ImportDecl, kinds)
        self.assertEqual(len(result.retained), 2)
        self.assertEqual(result.removed_names, ["unused"])

    def test_eval_keeps_everything(self):
        result = self._shake('a = 1\nb = 2\neval("a + b")')
        self.assertTrue(result.dynamic_access)
        self.assertEqual(result.removed, [])

    def test_global_index_access_keeps_everything(self):
        result = self._shake('a = 1\nname = "a"\nlog(globalThis[name])')
        self.assertTrue(result.dynamic_access)
        self.assertEqual(result.removed, [])

    def test_this_index_inside_method_is_not_dynamic(self):
        result = self._shake(
            "class Bag {\n  lookup(key: str) {\n    return this[key]\n  }\n}\n"
            "unused = 1\n"
            "export bag = new Bag()"
        )
        self.assertFalse(result.dynamic_access)
        self.assertEqual(result.removed_names, ["unused"])

    def test_shadowed_name_does_not_keep_declaration(self):
        """A parameter with the same name as a top-level binding is a different symbol."""
        result = self._shake(
            "value = 1\n"
            "export fn show(value: num) { return value }"
        )
        self.assertEqual(result.removed_names, ["value"])

    def test_unchecked_program_uses_name_matching(self):
        result = self._shake(
            "value = 1\n"
            "export fn show(value) { return value }",
            check=False,
        )
        self.assertEqual(result.removed_names, [])

    def test_retained_keeps_source_order(self):
        result = self._shake("a = 1\nlog(a)\nb = 2\nexport c = 3")
        self.assertEqual(result.removed_names, ["b"])
        self.assertEqual(len(result.program.body), 3)
        self.assertIs(result.program.body[0], result.retained[0])

    def test_input_program_is_unchanged(self):
        tokens = Lexer("a = 1\nb = 2\nlog(a)", "<test>").tokenize()
        program = Parser(tokens).parse()
        result = shake_program(program)
        self.assertEqual(len(program.body), 3)
        self.assertEqual(len(result.program.body), 2)


if __name__ == "__main__":
    unittest.main()
