"""
Test suite for the Lumo type checker.

Tests cover:
- Type inference for declarations and expressions
- Strict versus lenient reporting
- Mutability of bindings (auto-const, const, let)
- Nullability, `have` guards and narrowing
- Scoping, hoisting and reference errors
- Classes and structural object types

Author: xwest
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from lumo.lexer import Lexer, ErrorKind
from lumo.parser import Parser, Mutability
from lumo.analyzer import TypeChecker, SymbolTable, SymbolKind, is_assignable
from lumo.analyzer.types import (
    ANY, NUMBER, STRING, BOOLEAN, NULL, OPEN_MAP, list_of, nullable, map_type, join, join_all,
    TYPE_ALIASES,
)


class TestTypeChecker(unittest.TestCase):
    """Test cases for the type checker."""

    def _check(self, code: str, strict: bool = False, target: str = "node"):
        """Helper to type check a code snippet."""
        tokens = Lexer(code, "<test>").tokenize()
        parser = Parser(tokens)
        program = parser.parse()
        self.assertFalse(parser.has_errors(), [str(e) for e in parser.errors])
        return TypeChecker(strict=strict, target=target).check(program)

    def _codes(self, problems):
        return [problem.diagnostic.code for problem in problems]

    def _type_of(self, result, name: str) -> str:
        return str(result.symbol_table.module_scope.symbols[name].symbol_type)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def test_literal_inference(self):
        result = self._check('n = 42\ns = "hi"\nb = true\nxs = [1, 2, 3]\no = { a: 1 }\ne = {}')
        self.assertFalse(result.has_errors())
        self.assertFalse(result.has_warnings())
        self.assertEqual(self._type_of(result, "n"), "number")
        self.assertEqual(self._type_of(result, "s"), "string")
        self.assertEqual(self._type_of(result, "b"), "boolean")
        self.assertEqual(self._type_of(result, "xs"), "list<number>")
        self.assertEqual(self._type_of(result, "o"), "{ a: number }")
        self.assertEqual(self._type_of(result, "e"), "map")

    def test_expression_inference(self):
        result = self._check('a = 1 + 2\nb = "x" + 1\nc = 1 < 2\nd = typeof a')
        self.assertEqual(self._type_of(result, "a"), "number")
        self.assertEqual(self._type_of(result, "b"), "string")
        self.assertEqual(self._type_of(result, "c"), "boolean")
        self.assertEqual(self._type_of(result, "d"), "string")

    def test_function_signature_and_inferred_return(self):
        result = self._check("fn add(a: num, b: num): num { return a + b }\nfn twice(x: num) { return x * 2 }")
        self.assertFalse(result.has_errors())
        self.assertEqual(self._type_of(result, "add"), "fn(number, number): number")
        self.assertEqual(self._type_of(result, "twice"), "fn(number): number")

    def test_annotations_are_recorded(self):
        result = self._check("x = 1 + 2")
        self.assertTrue(any(str(t) == "number" for t in result.type_annotations.values()))

    def test_null_initializer_is_any(self):
        result = self._check("let slot = null\nslot = 5")
        self.assertFalse(result.has_errors())
        self.assertFalse(result.has_warnings())
        self.assertEqual(self._type_of(result, "slot"), "any")

    def test_match_expression_type(self):
        result = self._check('n = 1\nwith_else = match n { 1 => "one" else => "other" }\n'
                             'without_else = match n { 1 => "one" }')
        self.assertEqual(self._type_of(result, "with_else"), "string")
        self.assertEqual(self._type_of(result, "without_else"), "string?")

    # ------------------------------------------------------------------
    # Strict and lenient reporting
    # ------------------------------------------------------------------

    def test_type_errors_are_warnings_in_lenient_mode(self):
        result = self._check('x: num = "text"')
        self.assertFalse(result.has_errors())
        self.assertEqual(self._codes(result.warnings), ["S001"])
        self.assertEqual(result.warnings[0].diagnostic.severity, "warning")

        strict = self._check('x: num = "text"', strict=True)
        self.assertEqual(self._codes(strict.errors), ["S001"])
        self.assertTrue(strict.errors[0].diagnostic.is_error)

    def test_reference_errors_are_errors_in_both_modes(self):
        for strict in (False, True):
            with self.subTest(strict=strict):
                result = self._check("log(missing)", strict=strict)
                self.assertTrue(result.has_reference_errors())
                self.assertEqual(self._codes(result.errors), ["S010"])
                self.assertEqual(result.errors[0].diagnostic.kind, ErrorKind.REFERENCE)

    def test_undefined_name_suggests_similar_names(self):
        result = self._check("counter = 1\nlog(countr)")
        suggestions = result.errors[0].diagnostic.suggestions or []
        self.assertTrue(any("counter" in s for s in suggestions))

    # ------------------------------------------------------------------
    # Mutability
    # ------------------------------------------------------------------

    def test_auto_const_reassignment(self):
        strict = self._check("x = 10\nx = 20", strict=True)
        self.assertEqual(self._codes(strict.errors), ["S015"])
        self.assertEqual(strict.errors[0].diagnostic.location.line, 2)

        lenient = self._check("x = 10\nx = 20")
        self.assertFalse(lenient.has_errors())
        self.assertEqual(self._codes(lenient.warnings), ["S015"])

    def test_auto_const_compound_assignment_and_update(self):
        for source in ("x = 1\nx += 1", "x = 1\nx++"):
            with self.subTest(source=source):
                result = self._check(source, strict=True)
                self.assertIn("S015", self._codes(result.errors))

    def test_const_and_init_are_immutable(self):
        for keyword in ("const", "init"):
            with self.subTest(keyword=keyword):
                result = self._check(f"{keyword} x = 1\nx = 2", strict=True)
                self.assertIn("S015", self._codes(result.errors))

    def test_immutable_assignment_message_article(self):
        cases = {
            "x = 1\nx = 2": "an auto-const binding",
            "const x = 1\nx = 2": "a const binding",
            "init x = 1\nx = 2": "an init binding",
        }
        for source, phrase in cases.items():
            with self.subTest(source=source):
                result = self._check(source, strict=True)
                self.assertIn(phrase, result.errors[0].diagnostic.message)

    def test_let_and_var_are_mutable(self):
        result = self._check("let a = 1\na = 2\nvar b = 1\nb += 1", strict=True)
        self.assertFalse(result.has_errors())

    def test_parameters_are_mutable(self):
        result = self._check("fn f(n: num) { n = n + 1\n return n }", strict=True)
        self.assertFalse(result.has_errors())

    def test_assignment_type_must_match(self):
        result = self._check('let a = 1\na = "s"', strict=True)
        self.assertEqual(self._codes(result.errors), ["S001"])

    # ------------------------------------------------------------------
    # Nullability
    # ------------------------------------------------------------------

    def test_nullable_member_access(self):
        source = "fn size(s: str?) { log(s.length) }"
        strict = self._check(source, strict=True)
        self.assertEqual(self._codes(strict.errors), ["S016"])

        lenient = self._check(source)
        self.assertFalse(lenient.has_errors())
        self.assertEqual(self._codes(lenient.warnings), ["S016"])

    def test_have_guard_narrows(self):
        result = self._check("fn size(s: str?) {\n  if have s {\n    log(s.length)\n  }\n}", strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_null_comparison_narrows(self):
        result = self._check("fn size(s: str?) {\n  if s != null {\n    log(s.length)\n  }\n}", strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_early_exit_narrows_rest_of_block(self):
        source = "fn size(s: str?): num {\n  if not have s {\n    return 0\n  }\n  return s.length\n}"
        result = self._check(source, strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_narrowing_does_not_leak_into_else(self):
        source = "fn size(s: str?) {\n  if have s {\n    log(1)\n  } else {\n    log(s.length)\n  }\n}"
        result = self._check(source, strict=True)
        self.assertEqual(self._codes(result.errors), ["S016"])

    def test_optional_chaining_and_coalescing_are_allowed(self):
        source = 'fn size(s: str?) {\n  log(s?.length)\n  t = s ?? ""\n  log(t.length)\n}'
        result = self._check(source, strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_mixed_list_does_not_fit_typed_list(self):
        result = self._check('l: list<num> = [1, "a"]\nlog(l)', strict=True)
        self.assertEqual(self._codes(result.errors), ["S001"])
        self.assertIn("expected number, found string", result.errors[0].diagnostic.message)

        lenient = self._check('l: list<num> = [1, "a"]\nlog(l)')
        self.assertFalse(lenient.has_errors())
        self.assertEqual(self._codes(lenient.warnings), ["S001"])

    def test_mixed_list_checks_reach_every_slot(self):
        sources = [
            'l: list<list<num>> = [[1], [2, "b"]]',
            'fn total(xs: list<num>) { return xs.length }\ntotal([1, "a"])',
            'let l: list<num> = []\nl = [true, 2]',
            'fn make(): list<num> { return [1, "a"] }',
        ]
        for source in sources:
            with self.subTest(source=source):
                result = self._check(source, strict=True)
                self.assertIn("S001", self._codes(result.errors))

    def test_unannotated_mixed_list_is_any_list(self):
        result = self._check('xs = [1, "a"]\nys: list<any> = [1, "a"]', strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])
        self.assertEqual(self._type_of(result, "xs"), "list<any>")

    def test_nullable_accepts_null(self):
        result = self._check("let name: str? = null\nname = \"a\"\nname = null", strict=True)
        self.assertFalse(result.has_errors())

    def test_non_nullable_rejects_null(self):
        result = self._check("name: str = null", strict=True)
        self.assertEqual(self._codes(result.errors), ["S001"])

    # ------------------------------------------------------------------
    # Scoping and declarations
    # ------------------------------------------------------------------

    def test_redefinition(self):
        result = self._check("let a = 1\nlet a = 2")
        self.assertEqual(self._codes(result.errors), ["S011"])
        self.assertTrue(result.has_reference_errors())

    def test_shadowing_in_inner_scope_is_allowed(self):
        result = self._check("let a = 1\nfn f() {\n  let a = \"inner\"\n  return a\n}", strict=True)
        self.assertFalse(result.has_errors())

    def test_use_before_declaration(self):
        result = self._check("log(y)\ny = 1")
        self.assertEqual(self._codes(result.errors), ["S012"])

    def test_functions_are_hoisted(self):
        result = self._check("log(f())\nfn f() { return 1 }", strict=True)
        self.assertFalse(result.has_errors())

    def test_function_bodies_see_later_module_bindings(self):
        result = self._check("fn show() { log(later) }\nlater = 1\nshow()", strict=True)
        self.assertFalse(result.has_errors())

    def test_block_scoped_names_do_not_escape(self):
        result = self._check("if true {\n  let inner = 1\n}\nlog(inner)")
        self.assertEqual(self._codes(result.errors), ["S010"])

    def test_loop_variables(self):
        source = "for i in 0..3 { log(i * 2) }\nfor x of [1, 2] { log(x + 1) }\nobj = { a: 1 }\nfor k in obj { log(k) }"
        result = self._check(source, strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_return_outside_function(self):
        result = self._check("return 1", strict=True)
        self.assertIn("S054", self._codes(result.errors))

    def test_break_outside_loop(self):
        result = self._check("break", strict=True)
        self.assertIn("S062", self._codes(result.errors))

    def test_jump_out_of_nested_match_expression(self):
        sources = [
            "for i in 0..5 { v = [match i { 2 => { break } else => i }] }",
            "for i in 0..5 { log(match i { 2 => { continue } else => i }) }",
            "fn f(x: num) { log(match x { 1 => { return 1 } else => 2 }) }",
        ]
        for source in sources:
            for strict in (False, True):
                with self.subTest(source=source, strict=strict):
                    result = self._check(source, strict=strict)
                    self.assertEqual(self._codes(result.errors), ["S063"])
                    self.assertEqual(result.errors[0].kind, ErrorKind.SYNTAX)

    def test_statement_level_match_may_jump(self):
        sources = [
            "for i in 0..5 {\n  v = match i { 2 => { break } else => i }\n  log(v)\n}",
            'fn f(x: num) {\n  v = match x { 1 => { return "early" } else => "late" }\n  return v\n}',
            "fn g(x: num) {\n  return match x { 1 => { return 0 } else => x }\n}",
            "for i in 0..5 {\n  let v = 0\n  v = match i { 2 => { continue } else => i }\n}",
            "xs = [match 1 { 1 => { f = () => { return 2 }\n log(f()) } else => 0 }]",
            "for i in 0..5 { v = [match i { 2 => { for j in 0..2 { break } } else => i }] }",
        ]
        for source in sources:
            with self.subTest(source=source):
                result = self._check(source, strict=True)
                self.assertNotIn("S063", self._codes(result.errors + result.warnings))

    def test_target_builtins(self):
        self.assertFalse(self._check("x = require(\"fs\")", target="node").has_errors())
        self.assertTrue(self._check("d = document", target="node").has_reference_errors())
        self.assertFalse(self._check("d = document", target="browser").has_errors())

    # ------------------------------------------------------------------
    # Functions and calls
    # ------------------------------------------------------------------

    def test_arity_mismatch(self):
        result = self._check("fn add(a: num, b: num): num { return a + b }\nadd(1)", strict=True)
        self.assertEqual(self._codes(result.errors), ["S050"])

    def test_default_parameters_relax_arity(self):
        result = self._check("fn greet(name: str, greeting = \"hi\") { return greeting + name }\n"
                             "greet(\"a\")\ngreet(\"a\", \"yo\")", strict=True)
        self.assertFalse(result.has_errors())

    def test_argument_type_mismatch(self):
        result = self._check('fn add(a: num, b: num): num { return a + b }\nadd(1, "2")', strict=True)
        self.assertEqual(self._codes(result.errors), ["S001"])

    def test_not_callable(self):
        result = self._check("n = 5\nn()", strict=True)
        self.assertEqual(self._codes(result.errors), ["S004"])

    def test_invalid_operands(self):
        result = self._check("x = true - 1", strict=True)
        self.assertEqual(self._codes(result.errors), ["S003"])

    def test_return_type_mismatch(self):
        result = self._check('fn f(): num { return "s" }', strict=True)
        self.assertEqual(self._codes(result.errors), ["S001"])

    def test_divergent_returns_in_strict_mode(self):
        source = 'fn f(b: bool) {\n  if b { return 1 }\n  return "s"\n}'
        self.assertIn("S053", self._codes(self._check(source, strict=True).errors))
        lenient = self._check(source)
        self.assertNotIn("S053", self._codes(lenient.errors + lenient.warnings))

    def test_unknown_type(self):
        result = self._check("x: Widget = 1", strict=True)
        self.assertIn("S002", self._codes(result.errors))

    def test_arrow_functions(self):
        result = self._check("double = (n: num): num => n * 2\nlog(double(2))", strict=True)
        self.assertFalse(result.has_errors())
        self.assertEqual(self._type_of(result, "double"), "fn(number): number")

    # ------------------------------------------------------------------
    # Objects and classes
    # ------------------------------------------------------------------

    def test_structural_shapes(self):
        source = "p: { x: num } = { x: 1, y: 2 }\nlog(p.x)"
        self.assertFalse(self._check(source, strict=True).has_errors())

        missing = self._check("p: { x: num } = { y: 2 }", strict=True)
        self.assertEqual(self._codes(missing.errors), ["S001"])

    def test_unknown_member_on_shape(self):
        result = self._check("p = { x: 1 }\nlog(p.z)", strict=True)
        self.assertEqual(self._codes(result.errors), ["S005"])

    def test_open_map_allows_any_member(self):
        result = self._check("cfg: map = {}\nlog(cfg.anything)", strict=True)
        self.assertFalse(result.has_errors())

    def test_class_members(self):
        source = """
class Point {
  x: num
  constructor(x: num) {
    this.x = x
  }
  double(): num {
    return this.x * 2
  }
}
p = new Point(1)
log(p.double())
"""
        result = self._check(source, strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])
        self.assertEqual(self._type_of(result, "p"), "Point")

        bad = self._check(source + "log(p.missing)\nq = new Point()\n", strict=True)
        self.assertEqual(sorted(self._codes(bad.errors)), ["S005", "S050"])

    def test_inheritance(self):
        source = """
class Animal {
  speak(): str {
    return "..."
  }
}
class Dog extends Animal {
}
d: Animal = new Dog()
log(d.speak())
"""
        result = self._check(source, strict=True)
        self.assertFalse(result.has_errors(), [str(e) for e in result.errors])

    def test_classes_are_hoisted(self):
        result = self._check("fn make() { return new Box() }\nclass Box {\n}", strict=True)
        self.assertFalse(result.has_errors())

    def test_imports_are_any(self):
        result = self._check('import { readFile } from "fs"\nreadFile("a", 1, 2)', strict=True)
        self.assertFalse(result.has_errors())
        symbol = result.symbol_table.module_scope.symbols["readFile"]
        self.assertEqual(symbol.kind, SymbolKind.IMPORT)


class TestTypes(unittest.TestCase):
    """Test cases for type relations."""

    def test_any_is_compatible_both_ways(self):
        self.assertTrue(is_assignable(ANY, NUMBER))
        self.assertTrue(is_assignable(STRING, ANY))

    def test_primitives(self):
        self.assertTrue(is_assignable(NUMBER, NUMBER))
        self.assertFalse(is_assignable(STRING, NUMBER))

    def test_nullable(self):
        self.assertTrue(is_assignable(NULL, nullable(STRING)))
        self.assertTrue(is_assignable(STRING, nullable(STRING)))
        self.assertFalse(is_assignable(nullable(STRING), STRING))
        self.assertEqual(str(nullable(nullable(NUMBER))), "number?")
        self.assertIs(nullable(ANY), ANY)

    def test_lists(self):
        self.assertTrue(is_assignable(list_of(NUMBER), list_of(NUMBER)))
        self.assertFalse(is_assignable(list_of(STRING), list_of(NUMBER)))

    def test_structural_maps(self):
        point = map_type({"x": NUMBER, "y": NUMBER})
        self.assertTrue(is_assignable(point, map_type({"x": NUMBER})))
        self.assertFalse(is_assignable(map_type({"x": NUMBER}), point))
        self.assertTrue(is_assignable(point, OPEN_MAP))

    def test_join(self):
        self.assertEqual(join(NUMBER, NUMBER), NUMBER)
        self.assertEqual(str(join(NUMBER, NULL)), "number?")
        self.assertIsNone(join(NUMBER, STRING))
        self.assertEqual(str(join_all([])), "void")

    def test_aliases(self):
        self.assertIs(TYPE_ALIASES["num"], NUMBER)
        self.assertIs(TYPE_ALIASES["str"], STRING)
        self.assertIs(TYPE_ALIASES["bool"], BOOLEAN)


class TestSymbolTable(unittest.TestCase):
    """Test cases for scopes and the REPL checkpoint."""

    def test_builtins_live_outside_module_scope(self):
        table = SymbolTable("node")
        self.assertIsNotNone(table.lookup_symbol_safe("require"))
        self.assertIsNone(table.lookup_symbol_safe("document"))
        self.assertNotIn("require", table.module_scope.symbols)

    def test_checkpoint_and_rollback(self):
        table = SymbolTable()
        location = table.global_scope.symbols["log"].location
        table.define_variable("kept", NUMBER, location, Mutability.LET)
        snapshot = table.checkpoint()
        table.define_variable("dropped", NUMBER, location, Mutability.LET)
        table.rollback(snapshot)
        self.assertIn("kept", table.module_scope.symbols)
        self.assertNotIn("dropped", table.module_scope.symbols)
        self.assertIs(table.current_scope, table.module_scope)


if __name__ == "__main__":
    unittest.main()
