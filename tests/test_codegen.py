"""
Test suite for the Lumo JavaScript generator.

Tests cover:
- Declarations and type erasure
- Null-safety and match desugaring
- Loop lowering
- Module wrapping for node, browser and REPL fragments

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
from lumo.analyzer import TypeChecker
from lumo.codegen import JavaScriptGenerator, InternalCompilerError, generate_javascript

HEADER = '"use strict";\n\n'


class TestJavaScriptGenerator(unittest.TestCase):
    """Test cases for JavaScript generation."""

    def _generate(self, source: str, target: str = "node", fragment: bool = False,
                  check: bool = False) -> str:
        tokens = Lexer(source, "<test>").tokenize()
        parser = Parser(tokens)
        program = parser.parse()
        self.assertFalse(parser.has_errors(), [str(e) for e in parser.errors])
        if check:
            TypeChecker(strict=False, target=target).check(program)
        return JavaScriptGenerator(target, fragment=fragment).generate(program)

    def _body(self, source: str, **kwargs) -> str:
        """Node output without the header."""
        output = self._generate(source, **kwargs)
        self.assertTrue(output.startswith(HEADER), output)
        return output[len(HEADER):]

    # ------------------------------------------------------------------
    # Module structure
    # ------------------------------------------------------------------

    def test_empty_program(self):
        self.assertEqual(self._generate(""), '"use strict";\n')
        self.assertEqual(self._generate("", target="browser"), "")
        self.assertEqual(self._generate("", fragment=True), "")

    def test_node_header(self):
        self.assertEqual(self._generate("x = 10"), HEADER + "const x = 10;\n")

    def test_browser_has_no_header(self):
        self.assertEqual(self._generate("x = 10", target="browser"), "const x = 10;\n")

    def test_blank_lines_around_functions(self):
        body = self._body("x = 1\nfn f() { }\ny = 2")
        self.assertEqual(body, "const x = 1;\n\nfunction f() {\n}\n\nconst y = 2;\n")

    def test_node_imports(self):
        body = self._body(
            'import { readFile, join as joinPath } from "fs"\n'
            'import path from "path"\n'
            'import "polyfill"'
        )
        self.assertEqual(body.splitlines(), [
            'const { readFile, join: joinPath } = require("fs");',
            'const path = require("path");',
            'require("polyfill");',
        ])

    def test_browser_imports(self):
        output = self._generate(
            'import { readFile, join as joinPath } from "fs"\n'
            'import * as util from "util"\n'
            'import "polyfill"',
            target="browser",
        )
        self.assertEqual(output.splitlines(), [
            'import { readFile, join as joinPath } from "fs";',
            'import * as util from "util";',
            'import "polyfill";',
        ])

    def test_node_exports(self):
        body = self._body("export fn f() { }\ng = 1\nexport { g as answer }")
        self.assertTrue(body.startswith("function f() {\n}\n"), body)
        self.assertTrue(body.endswith("\nmodule.exports = { f, answer: g };\n"), body)
        self.assertNotIn("export ", body)

    def test_browser_exports(self):
        output = self._generate("export fn f() { }\ng = 1\nexport { g as answer }", target="browser")
        self.assertIn("export function f() {", output)
        self.assertIn("export { g as answer };", output)
        self.assertNotIn("module.exports", output)

    def test_fragment_uses_var_bindings(self):
        self.assertEqual(self._generate("x = 1", fragment=True), "var x = 1;\n")
        self.assertEqual(self._generate("let y = 2", fragment=True), "var y = 2;\n")
        self.assertEqual(self._generate("class A { }", fragment=True), "var A = class A {\n};\n")
        self.assertEqual(self._generate('import path from "path"', fragment=True),
                         'var path = require("path");\n')

    def test_fragment_ignores_exports(self):
        output = self._generate("export fn f() { }", fragment=True)
        self.assertNotIn("module.exports", output)
        self.assertNotIn("export", output)

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def test_auto_const_becomes_let_when_reassigned(self):
        self.assertEqual(self._body("x = 10\nx = 20"), "let x = 10;\nx = 20;\n")

    def test_declaration_keywords(self):
        body = self._body("let a = 1\nvar b = 2\nconst c = 3\ninit d = 4\nvar e")
        self.assertEqual(body.splitlines(), [
            "let a = 1;", "let b = 2;", "const c = 3;", "const d = 4;", "let e;",
        ])

    def test_type_annotations_are_erased(self):
        body = self._body("fn add(a: num, b: num): num { return a + b }\ntotal: num = add(1, 2)")
        self.assertEqual(body, "function add(a, b) {\n  return a + b;\n}\n\nconst total = add(1, 2);\n")

    def test_parameters(self):
        body = self._body("async fn load(url: str, tries = 3, ...rest: str[]) { }")
        self.assertEqual(body, "async function load(url, tries = 3, ...rest) {\n}\n")

    def test_class(self):
        source = """
class Point {
  x: num
  static origin = 0
  constructor(x: num) {
    this.x = x
  }
  norm(): num {
    return this.x
  }
}
"""
        self.assertEqual(self._body(source).splitlines(), [
            "class Point {",
            "  x;",
            "  static origin = 0;",
            "  constructor(x) {",
            "    this.x = x;",
            "  }",
            "  norm() {",
            "    return this.x;",
            "  }",
            "}",
        ])

    def test_class_extends(self):
        body = self._body("class A { }\nclass B extends A { }")
        self.assertIn("class B extends A {", body)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def test_equality_and_word_operators(self):
        self.assertEqual(self._body("v = a == b and c != d or not e"),
                         "const v = a === b && c !== d || !e;\n")

    def test_parentheses_follow_precedence(self):
        self.assertEqual(self._body("v = (1 + 2) * 3"), "const v = (1 + 2) * 3;\n")
        self.assertEqual(self._body("v = 1 - (2 - 3)"), "const v = 1 - (2 - 3);\n")
        self.assertEqual(self._body("v = 2 ** 3 ** 2"), "const v = 2 ** 3 ** 2;\n")

    def test_number_literals_keep_their_spelling(self):
        self.assertEqual(self._body("v = 0xFF + 1_000"), "const v = 0xFF + 1_000;\n")

    def test_strings_are_json_quoted(self):
        self.assertEqual(self._body("s = 'it\\'s'"), 'const s = "it\'s";\n')

    def test_template_literal(self):
        self.assertEqual(self._body("s = `a ${1 + 2} b`"), "const s = `a ${1 + 2} b`;\n")

    def test_print_builtins_map_to_console(self):
        self.assertEqual(self._body('log("hi")\nprint(1)'), 'console.log("hi");\nconsole.log(1);\n')

    def test_user_defined_log_is_not_rewritten(self):
        body = self._body("fn log(m) { }\nlog(1)")
        self.assertIn("function log(m) {", body)
        self.assertTrue(body.endswith("log(1);\n"))
        self.assertNotIn("console.log", body)

    def test_checked_program_resolves_builtins_by_symbol(self):
        body = self._body('log("x")', check=True)
        self.assertEqual(body, 'console.log("x");\n')

    def test_arrow_functions(self):
        self.assertEqual(self._body("f = x => x * 2"), "const f = (x) => x * 2;\n")
        self.assertEqual(self._body("add = a => b => a + b"), "const add = (a) => (b) => a + b;\n")
        self.assertEqual(self._body("f = (a: num): num => { return a }"),
                         "const f = (a) => {\n  return a;\n};\n")

    def test_have(self):
        self.assertEqual(self._body("ok = have user"),
                         "const ok = (user !== null && user !== undefined);\n")

    def test_nullish_coalescing(self):
        self.assertEqual(self._body('n = a ?? "anon"'),
                         'const n = (a !== null && a !== undefined ? a : "anon");\n')

    def test_nullish_coalescing_evaluates_left_once(self):
        body = self._body("n = f() ?? 0")
        self.assertEqual(body, "const n = ((__t1) => __t1 !== null && __t1 !== undefined ? __t1 : 0)(f());\n")

    def test_optional_chaining(self):
        self.assertEqual(self._body("n = a?.b"),
                         "const n = (a === null || a === undefined ? undefined : a.b);\n")

    def test_optional_chaining_binds_complex_base(self):
        self.assertEqual(self._body("n = f()?.b"),
                         "const n = ((__t1) => __t1 === null || __t1 === undefined ? undefined : __t1.b)(f());\n")

    def test_nullish_assignment(self):
        body = self._body("let a = null\na ??= 5")
        self.assertEqual(body, "let a = null;\n(a !== null && a !== undefined ? a : (a = 5));\n")

    def test_match_expression_ternary(self):
        self.assertEqual(self._body('label = match n { 1 => "one", 2 => "two" }'),
                         'const label = (n === 1 ? "one" : n === 2 ? "two" : undefined);\n')
        self.assertEqual(self._body('label = match n { 1 => "one", else => "many" }'),
                         'const label = (n === 1 ? "one" : "many");\n')

    def test_match_expression_with_block_arm_is_lowered_to_statements(self):
        body = self._body('v = match n { 1 => { log("one") } else => n * 2 }')
        self.assertEqual(body, (
            "let __t1;\n"
            "{\n"
            "  const __m1 = n;\n"
            "  if (__m1 === 1) {\n"
            '    console.log("one");\n'
            "  } else {\n"
            "    __t1 = n * 2;\n"
            "  }\n"
            "}\n"
            "const v = __t1;\n"
        ))

    def test_return_inside_match_arm_leaves_the_function(self):
        source = (
            "fn f(x) {\n"
            '  v = match x { 1 => { return "early" } else => "late" }\n'
            '  log("after")\n'
            "  return v\n"
            "}"
        )
        self.assertEqual(self._body(source), (
            "function f(x) {\n"
            "  let __t1;\n"
            "  {\n"
            "    const __m1 = x;\n"
            "    if (__m1 === 1) {\n"
            '      return "early";\n'
            "    } else {\n"
            '      __t1 = "late";\n'
            "    }\n"
            "  }\n"
            "  const v = __t1;\n"
            '  console.log("after");\n'
            "  return v;\n"
            "}\n"
        ))

    def test_break_inside_match_arm_stays_in_the_loop(self):
        body = self._body("for i in 0..5 {\n  v = match i { 2 => { break } else => i }\n  log(v)\n}")
        self.assertIn("    if (__m1 === 2) {\n      break;\n", body)
        self.assertNotIn("=>", body)

    def test_assigned_and_returned_matches_with_block_arms(self):
        body = self._body("let v = 0\nv = match n { 1 => { log(1) } else => 2 }")
        self.assertTrue(body.endswith("v = __t1;\n"), body)

        body = self._body("fn g(n) {\n  return match n { 1 => { log(1) } else => 2 }\n}")
        self.assertIn("  return __t1;\n", body)

    def test_nested_match_with_block_arm_uses_arrow(self):
        body = self._body("v = [match n { 1 => { log(1) } else => 2 }]")
        self.assertIn("((__m1) => {", body)
        self.assertIn("return undefined;", body)

    def test_fragment_hoists_match_into_var(self):
        output = self._generate("v = match n { 1 => { log(1) } else => 2 }", fragment=True)
        self.assertTrue(output.startswith("var __t1;\n"), output)
        self.assertTrue(output.endswith("var v = __t1;\n"), output)

    def test_member_operands_are_evaluated_once(self):
        self.assertEqual(self._body("n = o.c ?? 1"),
                         "const n = ((__t1) => __t1 !== null && __t1 !== undefined ? __t1 : 1)(o.c);\n")
        self.assertEqual(self._body("ok = have o.c"),
                         "const ok = ((__t1) => __t1 !== null && __t1 !== undefined)(o.c);\n")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def test_match_statement(self):
        source = """
match code {
  200, 201 => log("ok")
  -1 => { log("negative") }
  else => log("other")
}
"""
        self.assertEqual(self._body(source).splitlines(), [
            "{",
            "  const __m1 = code;",
            "  if (__m1 === 200 || __m1 === 201) {",
            '    console.log("ok");',
            "  } else if (__m1 === -1) {",
            '    console.log("negative");',
            "  } else {",
            '    console.log("other");',
            "  }",
            "}",
        ])

    def test_if_chain(self):
        body = self._body("if a { x() } elif b { y() } else { z() }")
        self.assertEqual(body.splitlines(), [
            "if (a) {",
            "  x();",
            "} else if (b) {",
            "  y();",
            "} else {",
            "  z();",
            "}",
        ])

    def test_try_catch_finally(self):
        body = self._body("try { risky() } catch (e) { log(e) } finally { done() }")
        self.assertEqual(body.splitlines(), [
            "try {",
            "  risky();",
            "} catch (e) {",
            "  console.log(e);",
            "} finally {",
            "  done();",
            "}",
        ])

    def test_range_loops(self):
        cases = {
            "for i in 0..10 { }": "for (let i = 0; i < 10; i++) {",
            "for i in 0..=10 step 2 { }": "for (let i = 0; i <= 10; i += 2) {",
            "for i in 10..0 step -1 { }": "for (let i = 10; i > 0; i += -1) {",
            "for i in 0..n { }": "for (let i = 0, __t1 = n; i < __t1; i++) {",
            "for i in 0..n step s { }":
                "for (let i = 0, __t1 = n, __t2 = s; __t2 > 0 ? i < __t1 : i > __t1; i += __t2) {",
        }
        for source, header in cases.items():
            with self.subTest(source=source):
                self.assertEqual(self._body(source), header + "\n}\n")

    def test_for_of_and_in_loops(self):
        self.assertEqual(self._body("for x of xs { log(x) }"),
                         "for (const x of xs) {\n  console.log(x);\n}\n")
        self.assertEqual(self._body("for (let k in obj) { }"), "for (let k in obj) {\n}\n")

    def test_c_style_loop(self):
        self.assertEqual(self._body("for (i = 0; i < 3; i++) { }"),
                         "for (let i = 0; i < 3; i++) {\n}\n")

    def test_while_loop(self):
        self.assertEqual(self._body("while n > 0 { n -= 1 }"),
                         "while (n > 0) {\n  n -= 1;\n}\n")

    # ------------------------------------------------------------------
    # Determinism and errors
    # ------------------------------------------------------------------

    def test_output_is_deterministic(self):
        source = "a = f() ?? 1\nb = g()?.h\nmatch a { 1 => log(b) }\nfor i in 0..n { }"
        self.assertEqual(self._generate(source), self._generate(source))

    def test_generate_javascript_helper(self):
        program = Parser(Lexer("x = 1", "<test>").tokenize()).parse()
        self.assertEqual(generate_javascript(program, "browser"), "const x = 1;\n")
        self.assertEqual(generate_javascript(program, fragment=True), "var x = 1;\n")

    def test_unsupported_node_is_an_internal_error(self):
        tokens = Lexer("v = 1", "<test>").tokenize()
        program = Parser(tokens).parse()
        program.body[0].initializer.kind = "regex"
        with self.assertRaises(InternalCompilerError) as ctx:
            JavaScriptGenerator("node").generate(program)
        self.assertEqual(ctx.exception.diagnostic.code, "I001")


if __name__ == "__main__":
    unittest.main()
