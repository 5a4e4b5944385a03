"""
Whole-compiler properties checked over a set of sample programs.

Tests cover:
- Deterministic output
- Tree shaking only ever removes declarations
- Nullability and auto-const rules in strict and lenient mode
- Runtime behaviour of generated code under Node.js (skipped without node)

Author: xwest
"""

import unittest
import shutil
import subprocess
import tempfile
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from lumo import CompilerOptions, compile_source
from lumo.parser.ast_nodes import VariableDecl, FunctionDef, ClassDef

SAMPLES = {
    "arithmetic": "a = 1 + 2 * 3\nb = a ** 2\nlog(b)",
    "functions": (
        "fn fib(n: num): num {\n"
        "  if n < 2 { return n }\n"
        "  return fib(n - 1) + fib(n - 2)\n"
        "}\n"
        "fn unused(): str { return \"x\" }\n"
        "log(fib(10))"
    ),
    "nullability": (
        "fn greet(name: str?): str {\n"
        "  if have name { return `hi ${name}` }\n"
        "  return \"nobody\"\n"
        "}\n"
        "log(greet(null))\n"
        "log(greet(\"ada\"))"
    ),
    "match": (
        "fn describe(code: num): str {\n"
        "  return match code { 200, 201 => \"ok\", 404 => \"missing\", else => \"other\" }\n"
        "}\n"
        "log(describe(201))\n"
        "log(describe(500))"
    ),
    "loops": (
        "let total = 0\n"
        "for i in 0..5 { total += i }\n"
        "for i in 10..0 step -2 { total += i }\n"
        "for x of [1, 2, 3] { total += x }\n"
        "log(total)"
    ),
    "classes": (
        "class Animal {\n"
        "  name: str\n"
        "  constructor(name: str) { this.name = name }\n"
        "  speak(): str { return this.name }\n"
        "}\n"
        "class Dog extends Animal {\n"
        "  speak(): str { return `${this.name} barks` }\n"
        "}\n"
        "class Cat extends Animal { }\n"
        "log(new Dog(\"rex\").speak())"
    ),
    "optional": (
        "user = { profile: { name: \"ada\" } }\n"
        "empty: { profile: { name: str }? }? = null\n"
        "log(user?.profile?.name ?? \"anon\")\n"
        "log(empty?.profile?.name ?? \"anon\")"
    ),
}

EXPECTED_STDOUT = {
    "arithmetic": "49\n",
    "functions": "55\n",
    "nullability": "nobody\nhi ada\n",
    "match": "ok\nother\n",
    "loops": "46\n",
    "classes": "rex barks\n",
    "optional": "ada\nanon\n",
}


def declaration_names(program):
    return [stmt.name for stmt in program.body if isinstance(stmt, (VariableDecl, FunctionDef, ClassDef))]


class TestCompilerProperties(unittest.TestCase):
    """Properties that hold for every sample program."""

    def test_samples_compile(self):
        for name, source in SAMPLES.items():
            with self.subTest(sample=name):
                result = compile_source(source, CompilerOptions(strict=True))
                self.assertTrue(result.ok, result.format_diagnostics())

    def test_output_is_deterministic(self):
        for name, source in SAMPLES.items():
            for target in ("node", "browser"):
                with self.subTest(sample=name, target=target):
                    options = CompilerOptions(target=target)
                    first = compile_source(source, options).output
                    second = compile_source(source, options).output
                    self.assertEqual(first, second)

    def test_shaking_only_removes_declarations(self):
        for name, source in SAMPLES.items():
            with self.subTest(sample=name):
                shaken = compile_source(source, CompilerOptions())
                full = compile_source(source, CompilerOptions(tree_shake=False))
                self.assertEqual(full.removed, [])

                all_names = declaration_names(shaken.program)
                self.assertTrue(set(shaken.removed) <= set(all_names))
                for removed in shaken.removed:
                    self.assertNotIn(f"function {removed}(", shaken.output)
                    self.assertNotIn(f"class {removed} ", shaken.output)
                self.assertLessEqual(len(shaken.output), len(full.output))

    def test_shaking_removes_the_expected_names(self):
        self.assertEqual(compile_source(SAMPLES["functions"]).removed, ["unused"])
        self.assertEqual(compile_source(SAMPLES["classes"]).removed, ["Cat"])
        self.assertEqual(compile_source(SAMPLES["arithmetic"]).removed, [])

    def test_match_arms_are_tested_in_order(self):
        result = compile_source(SAMPLES["match"])
        output = result.output
        self.assertLess(output.index("=== 200"), output.index("=== 201"))
        self.assertLess(output.index("=== 201"), output.index("=== 404"))

    def test_nullable_member_access(self):
        source = "s: str? = null\nn = s.length"
        strict = compile_source(source, CompilerOptions(strict=True))
        self.assertIsNone(strict.output)
        self.assertIn("S016", [d.code for d in strict.errors])

        lenient = compile_source(source, CompilerOptions())
        self.assertIsNotNone(lenient.output)
        self.assertIn("S016", [d.code for d in lenient.warnings])

    def test_narrowed_access_is_clean(self):
        source = "s: str? = null\nif have s { log(s.length) }"
        result = compile_source(source, CompilerOptions(strict=True))
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(result.diagnostics, [])

    def test_auto_const_rules(self):
        strict = CompilerOptions(strict=True)
        self.assertIsNone(compile_source("x = 1\nx = 2", strict).output)
        self.assertTrue(compile_source("let x = 1\nx = 2", strict).ok)
        self.assertTrue(compile_source("var x = 1\nx = 2", strict).ok)
        self.assertIsNone(compile_source("const x = 1\nx = 2", strict).output)


@unittest.skipUnless(shutil.which("node"), "Node.js is not installed")
class TestGeneratedCodeRuns(unittest.TestCase):
    """Runs generated JavaScript under Node.js and checks what it prints."""

    def _run(self, javascript: str) -> str:
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "main.js")
            with open(path, "w", encoding="utf-8") as f:
                f.write(javascript)
            completed = subprocess.run(["node", path], capture_output=True, text=True, timeout=30)
        self.assertEqual(completed.returncode, 0, completed.stderr)
        return completed.stdout

    def test_samples_print_expected_output(self):
        for name, source in SAMPLES.items():
            with self.subTest(sample=name):
                result = compile_source(source, CompilerOptions(strict=True))
                self.assertTrue(result.ok, result.format_diagnostics())
                self.assertEqual(self._run(result.output), EXPECTED_STDOUT[name])

    def test_shaking_does_not_change_behaviour(self):
        for name, source in SAMPLES.items():
            with self.subTest(sample=name):
                shaken = compile_source(source).output
                full = compile_source(source, CompilerOptions(tree_shake=False)).output
                self.assertEqual(self._run(shaken), self._run(full))

    def test_operands_are_evaluated_once(self):
        source = (
            "let calls = 0\n"
            "fn next(): num? { calls += 1\n return null }\n"
            "v = next() ?? 7\n"
            "w = next()?.toFixed(2)\n"
            "log(v, w, calls)"
        )
        result = compile_source(source)
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(self._run(result.output), "7 undefined 2\n")

    def test_member_operand_is_read_once(self):
        source = (
            "let reads = 0\n"
            "o = {}\n"
            "Object.defineProperty(o, \"c\", { get: () => { reads += 1\n return null } })\n"
            "v = o.c ?? 5\n"
            "log(v, reads)"
        )
        result = compile_source(source)
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(self._run(result.output), "5 1\n")

    def test_match_arm_returns_from_enclosing_function(self):
        source = (
            "fn f(x) {\n"
            "  v = match x { 1 => { return \"early\" } else => \"late\" }\n"
            "  log(\"after\")\n"
            "  return v\n"
            "}\n"
            "log(f(1))\n"
            "log(f(2))"
        )
        result = compile_source(source)
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(self._run(result.output), "early\nafter\nlate\n")

    def test_match_arm_breaks_enclosing_loop(self):
        source = (
            "let out = []\n"
            "for i in 0..5 {\n"
            "  v = match i { 2 => { break } else => i * 10 }\n"
            "  out.push(v)\n"
            "}\n"
            "log(out.join(\",\"))"
        )
        result = compile_source(source, CompilerOptions(strict=True))
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(self._run(result.output), "0,10\n")

    def test_non_constant_range_bounds(self):
        source = (
            "let out = []\n"
            "n = 3\n"
            "s = -1\n"
            "for i in n..0 step s { out.push(i) }\n"
            "for i in 0..=n { out.push(i) }\n"
            "log(out.join(\",\"))"
        )
        result = compile_source(source)
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(self._run(result.output), "3,2,1,0,1,2,3\n")


if __name__ == "__main__":
    unittest.main()
