"""
End-to-end tests for the Lumo compilation pipeline.

Tests cover:
- Stage ordering and which diagnostics stop generation
- Strict and lenient checking
- Tree shaking on and off
- Compiler options and post-processing passes

Author: xwest
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from lumo import (
    Compiler, CompilerOptions, Target, ConfigurationError, compile_source, credits_banner,
)
from lumo.analyzer import SymbolTable


class TestCompilationPipeline(unittest.TestCase):
    """Test cases for the full pipeline."""

    def _compile(self, source: str, **options):
        return compile_source(source, CompilerOptions(**options))

    def _codes(self, result):
        return [d.code for d in result.diagnostics]

    def test_simple_program(self):
        result = self._compile("x = 10\nlog(x)")
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(result.output, '"use strict";\n\nconst x = 10;\nconsole.log(x);\n')

    def test_auto_const_reassignment_strict(self):
        result = self._compile("x = 10\nx = 20", strict=True)
        self.assertIsNone(result.output)
        self.assertFalse(result.ok)
        self.assertIn("S015", [d.code for d in result.errors])

    def test_auto_const_reassignment_lenient(self):
        result = self._compile("x = 10\nx = 20")
        self.assertTrue(result.ok)
        self.assertIn("let x = 10;", result.output)
        self.assertIn("S015", [d.code for d in result.warnings])

    def test_types_are_erased(self):
        result = self._compile("export fn add(a: num, b: num): num { return a + b }")
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertIn("function add(a, b) {", result.output)
        self.assertNotIn("num", result.output)

    def test_declarations_only_unit_keeps_everything(self):
        result = self._compile("fn add(a: num, b: num): num { return a + b }")
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertEqual(result.output, '"use strict";\n\nfunction add(a, b) {\n  return a + b;\n}\n')
        self.assertEqual(result.removed, [])

    def test_jump_out_of_nested_match_blocks_generation(self):
        result = self._compile("for i in 0..5 { log(match i { 2 => { break } else => i }) }")
        self.assertIsNone(result.output)
        self.assertIn("S063", [d.code for d in result.errors])

    def test_syntax_errors_are_batched(self):
        result = self._compile("a = )\nb = @\nc = 1")
        self.assertIsNone(result.output)
        codes = self._codes(result)
        self.assertIn("L001", codes)
        self.assertTrue(any(code.startswith("P") for code in codes))
        self.assertIsNone(result.analysis)

    def test_reference_errors_stop_in_both_modes(self):
        for strict in (False, True):
            with self.subTest(strict=strict):
                result = self._compile("log(missing)", strict=strict)
                self.assertIsNone(result.output)
                self.assertIn("S010", self._codes(result))

    def test_lenient_type_error_still_generates(self):
        result = self._compile('n: num = "text"\nlog(n)')
        self.assertTrue(result.ok)
        self.assertIn("S001", [d.code for d in result.warnings])

    def test_strict_type_error_blocks_generation(self):
        result = self._compile('n: num = "text"\nlog(n)', strict=True)
        self.assertIsNone(result.output)
        self.assertIn("S001", [d.code for d in result.errors])

    def test_type_check_disabled(self):
        result = self._compile('n: num = "text"\nlog(n)', type_check=False, strict=True)
        self.assertTrue(result.ok)
        self.assertEqual(result.diagnostics, [])
        self.assertIsNone(result.analysis)

    def test_tree_shaking(self):
        source = "export fn f() { return 1 }\nfn g() { return 2 }"
        shaken = self._compile(source)
        self.assertEqual(shaken.removed, ["g"])
        self.assertNotIn("function g", shaken.output)

        kept = self._compile(source, tree_shake=False)
        self.assertEqual(kept.removed, [])
        self.assertIn("function g() {", kept.output)

    def test_browser_target(self):
        result = self._compile("export fn f() { return document }", target="browser")
        self.assertTrue(result.ok, result.format_diagnostics())
        self.assertIn("export function f() {", result.output)
        self.assertNotIn("use strict", result.output)

    def test_target_builtins(self):
        result = self._compile('fs = require("fs")\nlog(fs)', target="browser")
        self.assertIsNone(result.output)
        self.assertIn("S010", self._codes(result))

    def test_compiler_is_reusable(self):
        compiler = Compiler()
        first = compiler.compile("a = 1\nlog(a)")
        second = compiler.compile("a = 1\nlog(a)")
        self.assertEqual(first.output, second.output)

    def test_compile_fragment_extends_symbol_table(self):
        compiler = Compiler()
        table = SymbolTable("node")
        first = compiler.compile_fragment("x = 1", symbol_table=table)
        self.assertEqual(first.output, "var x = 1;\n")
        second = compiler.compile_fragment("log(x + 1)", symbol_table=table)
        self.assertTrue(second.ok, second.format_diagnostics())
        self.assertEqual(second.output, "console.log(x + 1);\n")

    def test_fragments_are_not_shaken(self):
        result = Compiler().compile_fragment("unused = 1", symbol_table=SymbolTable("node"))
        self.assertEqual(result.output, "var unused = 1;\n")
        self.assertEqual(result.removed, [])

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    def test_credits_banner(self):
        result = self._compile("log(1)", credits=True)
        self.assertTrue(result.output.startswith(credits_banner()))
        self.assertEqual(credits_banner(), "// Generated by Lumo 0.1.0\n")

    def test_registered_post_processor_runs(self):
        compiler = Compiler(CompilerOptions(minify=True))
        compiler.register_post_processor("minify", lambda js: js.replace("\n", ""))
        result = compiler.compile("log(1)")
        self.assertEqual(result.output, '"use strict";console.log(1);')

    def test_post_processors_run_in_order(self):
        calls = []

        def record(name):
            def process(js):
                calls.append(name)
                return js
            return process

        options = CompilerOptions(minify=True, obfuscate_runtime=True)
        compiler = Compiler(options, {"obfuscate_runtime": record("obfuscate"), "minify": record("minify")})
        compiler.compile("log(1)")
        self.assertEqual(calls, ["minify", "obfuscate"])

    def test_disabled_post_processor_is_skipped(self):
        compiler = Compiler(post_processors={"minify": lambda js: ""})
        self.assertNotEqual(compiler.compile("log(1)").output, "")

    def test_missing_post_processor_warns(self):
        with self.assertLogs("lumo.pipeline", "WARNING") as logs:
            result = self._compile("log(1)", minify=True)
        self.assertTrue(result.ok)
        self.assertIn("'minify' is enabled but no pass is registered", logs.output[0])

    def test_post_processing_skipped_on_failure(self):
        compiler = Compiler(CompilerOptions(credits=True))
        result = compiler.compile("log(missing)")
        self.assertIsNone(result.output)


class TestCompilerOptions(unittest.TestCase):
    """Test cases for compiler configuration."""

    def test_defaults(self):
        options = CompilerOptions()
        self.assertEqual(options.target, Target.NODE)
        self.assertFalse(options.strict)
        self.assertTrue(options.type_check)
        self.assertTrue(options.tree_shake)
        self.assertFalse(options.minify)
        self.assertFalse(options.credits)

    def test_target_from_string(self):
        self.assertEqual(CompilerOptions(target="browser").target, Target.BROWSER)
        self.assertEqual(CompilerOptions(target="NODE").target, Target.NODE)

    def test_invalid_target(self):
        with self.assertRaises(ConfigurationError):
            CompilerOptions(target="deno")

    def test_non_boolean_flag(self):
        with self.assertRaises(ConfigurationError):
            CompilerOptions(strict="yes")

    def test_from_mapping_accepts_camel_and_snake_case(self):
        options = CompilerOptions.from_mapping({"typeCheck": False, "tree_shake": False, "target": "browser"})
        self.assertFalse(options.type_check)
        self.assertFalse(options.tree_shake)
        self.assertEqual(options.target, Target.BROWSER)

    def test_from_mapping_ignores_unknown_keys(self):
        with self.assertLogs("lumo.options", "WARNING") as logs:
            options = CompilerOptions.from_mapping({"strict": True, "sourceMaps": True})
        self.assertTrue(options.strict)
        self.assertIn("Ignoring unknown compiler option 'sourceMaps'", logs.output[0])

    def test_to_dict(self):
        data = CompilerOptions(strict=True).to_dict()
        self.assertEqual(data["target"], "node")
        self.assertTrue(data["strict"])
        self.assertIn("typeCheck", data)
        self.assertIn("obfuscateRuntime", data)
        self.assertEqual(CompilerOptions.from_mapping(data), CompilerOptions(strict=True))

    def test_options_are_immutable(self):
        options = CompilerOptions()
        with self.assertRaises(Exception):
            options.strict = True
        changed = options.with_changes(strict=True)
        self.assertTrue(changed.strict)
        self.assertFalse(options.strict)


if __name__ == "__main__":
    unittest.main()
