"""
Incremental evaluation for the Lumo REPL.

Each input line is compiled as a fragment against a module scope that
persists for the whole session, then run in a persistent JavaScript
runtime. A line that fails at any stage (lexing, parsing, checking,
generation or execution) leaves the session exactly as it was before the
line; earlier bindings survive.

Author: xwest
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from .. import __version__
from ..options import CompilerOptions
from ..lexer import Diagnostic
from ..analyzer import SymbolTable, SymbolKind
from ..codegen import InternalCompilerError
from ..parser.ast_nodes import Declaration, ImportDecl
from ..pipeline import Compiler
from .runtime import NodeRuntime, Runtime, RuntimeBridgeError

logger = logging.getLogger(__name__)


class ReplState(Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    ERROR_RECOVERY = "error_recovery"


@dataclass
class ReplResult:
    """What the console shows for one input line."""
    ok: bool
    value: Optional[str] = None
    output: str = ""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    javascript: Optional[str] = None
    error: Optional[str] = None

    # Set by session commands
    command: Optional[str] = None
    exit: bool = False
    clear: bool = False

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    def error_line(self) -> Optional[str]:
        """The single-line message for a failed line."""
        errors = self.errors
        if errors:
            line = errors[0].short()
            if len(errors) > 1:
                line += f" (and {len(errors) - 1} more)"
            return line
        return self.error

    def render(self) -> str:
        lines = [warning.short() for warning in self.warnings]
        if self.output:
            lines.append(self.output)
        if self.ok:
            if self.value is not None:
                lines.append(self.value)
        else:
            message = self.error_line()
            if message:
                lines.append(message)
        return "\n".join(lines)


HELP_TEXT = """\
.help        Show this help
.vars        List the session's bindings and their types
.js          Show the JavaScript accumulated so far
.load FILE   Evaluate a .lumo file in the session
.reset       Forget all bindings and restart the runtime context
.clear       Clear the screen
.version     Show the compiler version
.exit        Leave the REPL"""


class ReplSession:
    """
    One interactive session: a persistent module scope, the JavaScript
    produced so far, and the runtime that executed it.
    """

    def __init__(self, options: Optional[CompilerOptions] = None,
                 runtime: Optional[Runtime] = None):
        self.options = options or CompilerOptions()
        self.compiler = Compiler(self.options)
        self.runtime: Runtime = runtime if runtime is not None else NodeRuntime()

        self.state = ReplState.IDLE
        self.symbol_table = SymbolTable(self.options.target.value)
        # Module-level names, tracked separately for sessions without type checking
        self.declared_names: List[str] = []
        self.history: List[str] = []
        self.line_number = 0

        self.commands: Dict[str, Callable[[str], ReplResult]] = {
            ".help": self._cmd_help,
            ".vars": self._cmd_vars,
            ".js": self._cmd_js,
            ".load": self._cmd_load,
            ".reset": self._cmd_reset,
            ".clear": self._cmd_clear,
            ".version": self._cmd_version,
            ".exit": self._cmd_exit,
        }

    def evaluate(self, line: str) -> ReplResult:
        """Evaluate one input line (a statement or a session command)."""
        stripped = line.strip()
        if not stripped:
            return ReplResult(ok=True)
        if stripped.startswith(".") and stripped.split()[0] in self.commands:
            return self.execute_command(stripped)

        self.line_number += 1
        return self._evaluate_source(line, f"<repl:{self.line_number}>")

    def execute_command(self, text: str) -> ReplResult:
        """Run a session command. Commands never touch the compiler pipeline."""
        name, _, argument = text.strip().partition(" ")
        handler = self.commands.get(name)
        if handler is None:
            return ReplResult(ok=False, error=f"Unknown command '{name}' (try .help)", command=name)
        result = handler(argument.strip())
        result.command = name
        return result

    def close(self) -> None:
        self.runtime.close()

    def __enter__(self) -> "ReplSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _evaluate_source(self, source: str, filename: str) -> ReplResult:
        self.state = ReplState.EVALUATING
        snapshot = self.symbol_table.checkpoint()

        try:
            compiled = self.compiler.compile_fragment(
                source,
                symbol_table=self.symbol_table if self.options.type_check else None,
                predeclared=self.declared_names,
                filename=filename,
            )
        except InternalCompilerError as e:
            return self._recover(snapshot, ReplResult(ok=False, diagnostics=[e.diagnostic]))

        if not compiled.ok:
            return self._recover(snapshot, ReplResult(ok=False, diagnostics=compiled.diagnostics))

        javascript = compiled.output
        try:
            reply = self.runtime.execute(javascript)
        except RuntimeBridgeError as e:
            return self._recover(snapshot, ReplResult(
                ok=False, diagnostics=compiled.diagnostics, javascript=javascript, error=str(e)))

        if not reply.ok:
            return self._recover(snapshot, ReplResult(
                ok=False, output=reply.output, diagnostics=compiled.diagnostics,
                javascript=javascript, error=reply.error))

        # Commit the line
        self.history.append(javascript)
        self._record_names(compiled.program)
        self.state = ReplState.IDLE
        return ReplResult(ok=True, value=reply.value, output=reply.output,
                          diagnostics=compiled.diagnostics, javascript=javascript)

    def _recover(self, snapshot, result: ReplResult) -> ReplResult:
        self.state = ReplState.ERROR_RECOVERY
        self.symbol_table.rollback(snapshot)
        logger.debug("Line rejected, session restored: %s", result.error_line())
        self.state = ReplState.IDLE
        return result

    def _record_names(self, program) -> None:
        known: Set[str] = set(self.declared_names)
        for statement in program.body:
            if isinstance(statement, ImportDecl):
                names = statement.local_names
            elif isinstance(statement, Declaration):
                names = [statement.name]
            else:
                continue
            for name in names:
                if name not in known:
                    known.add(name)
                    self.declared_names.append(name)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _cmd_help(self, argument: str) -> ReplResult:
        return ReplResult(ok=True, value=HELP_TEXT)

    def _cmd_version(self, argument: str) -> ReplResult:
        return ReplResult(ok=True, value=f"Lumo {__version__}")

    def _cmd_clear(self, argument: str) -> ReplResult:
        return ReplResult(ok=True, clear=True)

    def _cmd_exit(self, argument: str) -> ReplResult:
        return ReplResult(ok=True, exit=True)

    def _cmd_js(self, argument: str) -> ReplResult:
        return ReplResult(ok=True, value="".join(self.history).rstrip("\n") or None)

    def _cmd_vars(self, argument: str) -> ReplResult:
        lines = []
        if self.options.type_check:
            for name, symbol in self.symbol_table.module_scope.symbols.items():
                if symbol.kind == SymbolKind.BUILTIN:
                    continue
                binding = symbol.binding_description()
                lines.append(f"{name}: {symbol.symbol_type} ({binding})")
        else:
            lines.extend(self.declared_names)
        return ReplResult(ok=True, value="\n".join(lines) or None)

    def _cmd_reset(self, argument: str) -> ReplResult:
        self.symbol_table = SymbolTable(self.options.target.value)
        self.declared_names = []
        self.history = []
        self.line_number = 0
        self.state = ReplState.IDLE
        try:
            self.runtime.reset()
        except RuntimeBridgeError as e:
            return ReplResult(ok=False, error=str(e))
        return ReplResult(ok=True, value="Session reset")

    def _cmd_load(self, argument: str) -> ReplResult:
        if not argument:
            return ReplResult(ok=False, error="usage: .load FILE")
        path = Path(argument).expanduser()
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            return ReplResult(ok=False, error=f"Cannot read {path}: {e.strerror or e}")
        return self._evaluate_source(source, str(path))
