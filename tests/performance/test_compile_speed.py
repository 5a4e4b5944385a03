#!/usr/bin/env python3
"""
Compilation Throughput Benchmarks
=================================

Times each pipeline stage on a generated program of a few thousand lines so
regressions in the lexer, parser, checker, shaker or generator show up in
pytest-benchmark comparisons.

Run with:  pytest tests/performance --benchmark-only
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from lumo import CompilerOptions, compile_source
from lumo.lexer import Lexer
from lumo.parser import Parser
from lumo.analyzer import TypeChecker
from lumo.shaker import TreeShaker
from lumo.codegen import JavaScriptGenerator

FUNCTION_COUNT = 300


def _generate_program(count: int) -> str:
    """A program with many small functions, half of them unused."""
    parts = []
    for i in range(count):
        parts.append(
            f"fn step{i}(n: num, label: str?): num {{\n"
            f"  total = n * {i} + 1\n"
            f"  name = label ?? \"step{i}\"\n"
            f"  return match total % 3 {{ 0 => total, 1 => total + name.length, else => -total }}\n"
            f"}}\n"
        )
    for i in range(0, count, 2):
        parts.append(f"log(step{i}({i}, null))\n")
    return "".join(parts)


SOURCE = _generate_program(FUNCTION_COUNT)


def _parse():
    tokens = Lexer(SOURCE, "<bench>").tokenize()
    return Parser(tokens).parse()


class TestCompileSpeed:
    """Per-stage and end-to-end timings."""

    def test_lexer(self, benchmark):
        tokens = benchmark(lambda: Lexer(SOURCE, "<bench>").tokenize())
        assert tokens[-1].type.name == "EOF"

    def test_parser(self, benchmark):
        tokens = Lexer(SOURCE, "<bench>").tokenize()
        program = benchmark(lambda: Parser(tokens).parse())
        assert len(program.body) == FUNCTION_COUNT + FUNCTION_COUNT // 2

    def test_type_checker(self, benchmark):
        def check():
            return TypeChecker(strict=True).check(_parse())

        result = benchmark(check)
        assert not result.has_errors()

    def test_tree_shaker(self, benchmark):
        program = _parse()
        TypeChecker().check(program)
        result = benchmark(lambda: TreeShaker(program).shake())
        assert len(result.removed) == FUNCTION_COUNT // 2

    def test_generator(self, benchmark):
        program = _parse()
        output = benchmark(lambda: JavaScriptGenerator("node").generate(program))
        assert output.startswith('"use strict";')

    @pytest.mark.parametrize("target", ["node", "browser"])
    def test_full_pipeline(self, benchmark, target):
        options = CompilerOptions(target=target, strict=True)
        result = benchmark(lambda: compile_source(SOURCE, options))
        assert result.ok
