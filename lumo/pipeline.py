"""
Compilation pipeline for one Lumo unit.

Runs Lexer -> Parser -> TypeChecker -> TreeShaker -> JavaScriptGenerator
strictly in order, each stage consuming the previous stage's output:

- lexical and syntax errors are collected together and returned as a batch
- a reference error (undefined or duplicate name) stops the unit before
  tree shaking and generation, in both modes
- in strict mode any type error blocks generation; in lenient mode type
  errors arrive as warnings and generation proceeds
- an InternalCompilerError from the generator is fatal and propagates

Author: xwest
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from . import __version__
from .options import CompilerOptions
from .lexer import Lexer, Diagnostic
from .parser import Parser, Program
from .analyzer import TypeChecker, AnalysisResult, SymbolTable
from .shaker import TreeShaker
from .codegen import JavaScriptGenerator

logger = logging.getLogger(__name__)

PostProcessor = Callable[[str], str]

# Option flag -> name under which its post-processing pass is registered
POST_PROCESSING_PASSES = ("minify", "obfuscate_runtime")


def credits_banner() -> str:
    """Comment prepended to the output when ``credits`` is enabled."""
    return f"// Generated by Lumo {__version__}\n"


@dataclass
class CompilationResult:
    """Outcome of compiling one unit."""
    output: Optional[str]
    diagnostics: List[Diagnostic] = field(default_factory=list)
    program: Optional[Program] = None
    removed: List[str] = field(default_factory=list)
    analysis: Optional[AnalysisResult] = None

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    @property
    def ok(self) -> bool:
        """True when JavaScript was produced."""
        return self.output is not None and not self.errors

    def format_diagnostics(self) -> str:
        return "\n".join(str(d) for d in self.diagnostics)


class Compiler:
    """
    Lumo-to-JavaScript compiler for single units.

    A Compiler holds no per-unit state, so one instance can compile any
    number of units (sequentially or from several threads).
    """

    def __init__(self, options: Optional[CompilerOptions] = None,
                 post_processors: Optional[Dict[str, PostProcessor]] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler options (defaults: node target, lenient checking,
                tree shaking on)
            post_processors: Opaque ``str -> str`` passes keyed by option name
                ("minify", "obfuscate_runtime")
        """
        self.options = options or CompilerOptions()
        self.post_processors: Dict[str, PostProcessor] = dict(post_processors or {})

    def register_post_processor(self, name: str, processor: PostProcessor) -> None:
        self.post_processors[name] = processor

    def compile(self, source: str, filename: str = "<input>") -> CompilationResult:
        """
        Compile a complete unit to JavaScript.

        Args:
            source: Lumo source text
            filename: Name used in diagnostics

        Returns:
            CompilationResult with the output, or ``output=None`` and the
            diagnostics that stopped compilation

        Raises:
            InternalCompilerError: If a pipeline invariant is violated
        """
        result = self._run(source, filename, fragment=False)
        if result.output is not None:
            result.output = self._post_process(result.output)
        return result

    def compile_fragment(self, source: str, symbol_table: Optional[SymbolTable] = None,
                         predeclared: Optional[Iterable[str]] = None,
                         filename: str = "<repl>") -> CompilationResult:
        """
        Compile one REPL entry against a persistent module scope.

        The fragment is checked against (and extends) ``symbol_table``; it is
        never tree shaken or post-processed.
        """
        return self._run(source, filename, fragment=True,
                         symbol_table=symbol_table, predeclared=predeclared)

    def _run(self, source: str, filename: str, fragment: bool,
             symbol_table: Optional[SymbolTable] = None,
             predeclared: Optional[Iterable[str]] = None) -> CompilationResult:
        options = self.options
        diagnostics: List[Diagnostic] = []

        # Lexing and parsing: errors are reported together
        lexer = Lexer(source, filename)
        tokens = lexer.tokenize()
        diagnostics.extend(lexer.get_diagnostics())

        if predeclared is None and symbol_table is not None:
            predeclared = list(symbol_table.module_scope.symbols)
        parser = Parser(tokens, predeclared=predeclared)
        program = parser.parse()
        diagnostics.extend(error.diagnostic for error in parser.errors)

        if diagnostics:
            logger.debug("%s: %d lexical/syntax errors", filename, len(diagnostics))
            return CompilationResult(None, diagnostics, program)

        # Type checking
        analysis = None
        if options.type_check:
            checker = TypeChecker(strict=options.strict, target=options.target.value,
                                  symbol_table=symbol_table)
            analysis = checker.check(program)
            diagnostics.extend(analysis.diagnostics())

            if analysis.has_reference_errors():
                logger.debug("%s: reference errors, stopping before generation", filename)
                return CompilationResult(None, diagnostics, program, analysis=analysis)
            if analysis.has_errors():
                logger.debug("%s: %d type errors in strict mode, not generating",
                             filename, len(analysis.errors))
                return CompilationResult(None, diagnostics, program, analysis=analysis)

        # Dead-code elimination
        emitted = program
        removed: List[str] = []
        if options.tree_shake and not fragment:
            shaken = TreeShaker(program).shake()
            emitted = shaken.program
            removed = shaken.removed_names

        generator = JavaScriptGenerator(options.target, fragment=fragment)
        output = generator.generate(emitted)
        logger.debug("%s: generated %d bytes of JavaScript", filename, len(output))
        return CompilationResult(output, diagnostics, program, removed, analysis)

    def _post_process(self, output: str) -> str:
        for name in POST_PROCESSING_PASSES:
            if not getattr(self.options, name):
                continue
            processor = self.post_processors.get(name)
            if processor is None:
                logger.warning("'%s' is enabled but no pass is registered; output left unchanged", name)
                continue
            output = processor(output)

        if self.options.source_map:
            logger.debug("Source maps are not produced; ignoring source_map")
        if self.options.credits:
            output = credits_banner() + output
        return output


def compile_source(source: str, options: Optional[CompilerOptions] = None,
                   filename: str = "<input>") -> CompilationResult:
    """Compile a source string with a fresh Compiler."""
    return Compiler(options).compile(source, filename)
