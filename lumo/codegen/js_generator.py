"""
JavaScript code generator for Lumo.

Lowers a (checked, possibly tree-shaken) Lumo AST into JavaScript source
text. Type annotations are erased; ``have``, ``??``, ``?.``, ``??=`` and
``match`` are desugared into plain guarded expressions; the four loop forms
map onto counted, ``for...of``, ``for...in`` and classic ``for`` loops.

Statement and expression lowering is the same for every target. Targets
only differ in module wrapping:

- node: ``"use strict"`` header, ``require`` imports, ``module.exports``
- browser: ES module ``import``/``export``
- fragment (REPL): no header, no wrapping, top-level bindings become ``var``

Output is deterministic: temporaries are numbered from a per-unit counter
and nothing depends on hash or set ordering.

Author: xwest
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from ..options import Target
from ..analyzer.symbol_table import SymbolKind
from ..parser.ast_nodes import (
    ASTNode, Program, Statement, Declaration, VariableDecl, Parameter, FunctionDef, MethodDef,
    FieldDef, ClassDef, ImportDecl, ExportDecl, ExpressionStatement, BlockStatement,
    IfStatement, WhileLoop, ForRangeLoop, ForOfLoop, ForInLoop, ForClassicLoop, MatchArm,
    MatchStatement, TryStatement, ThrowStatement, ReturnStatement, BreakStatement,
    ContinueStatement, Expression, Literal, TemplateLiteral, Identifier, ThisExpression,
    SuperExpression, ArrayLiteral, ObjectProperty, ObjectLiteral, BinaryOp, UnaryOp,
    HaveExpression, UpdateExpression, Assignment, ConditionalExpression, FunctionCall,
    MemberAccess, IndexAccess, NewExpression, ArrowFunction, SpreadElement, AwaitExpression,
    MatchExpression, Mutability, statement_level_match,
)
from .errors import create_unsupported_node_error

logger = logging.getLogger(__name__)


class JSPrecedence(IntEnum):
    """JavaScript operator precedence, used to decide where parentheses go."""
    LOWEST = 0
    ASSIGNMENT = 1      # = op= => ...spread
    CONDITIONAL = 2     # ?:
    NULLISH = 3         # ??
    OR = 4              # ||
    AND = 5             # &&
    EQUALITY = 6        # === !==
    RELATIONAL = 7      # < > <= >= instanceof in
    ADDITIVE = 8        # + -
    MULTIPLICATIVE = 9  # * / %
    EXPONENT = 10       # ** (right associative)
    UNARY = 11          # ! - + typeof await
    UPDATE = 12         # ++ --
    CALL = 13           # () . [] new
    PRIMARY = 14


BINARY_PRECEDENCE = {
    "||": JSPrecedence.OR,
    "&&": JSPrecedence.AND,
    "===": JSPrecedence.EQUALITY,
    "!==": JSPrecedence.EQUALITY,
    "<": JSPrecedence.RELATIONAL,
    ">": JSPrecedence.RELATIONAL,
    "<=": JSPrecedence.RELATIONAL,
    ">=": JSPrecedence.RELATIONAL,
    "instanceof": JSPrecedence.RELATIONAL,
    "in": JSPrecedence.RELATIONAL,
    "+": JSPrecedence.ADDITIVE,
    "-": JSPrecedence.ADDITIVE,
    "*": JSPrecedence.MULTIPLICATIVE,
    "/": JSPrecedence.MULTIPLICATIVE,
    "%": JSPrecedence.MULTIPLICATIVE,
    "**": JSPrecedence.EXPONENT,
}

# Lumo spellings with a different JavaScript operator
OPERATOR_MAP = {
    "==": "===",
    "!=": "!==",
    "and": "&&",
    "or": "||",
    "not": "!",
}

# Words Lumo accepts as identifiers that JavaScript reserves
JS_RESERVED_WORDS = frozenset({
    "case", "debugger", "default", "delete", "do", "enum", "implements", "interface",
    "package", "private", "protected", "public", "switch", "void", "with", "yield",
})

PRINT_BUILTINS = frozenset({"log", "print"})

IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

CHAIN_NODES = (MemberAccess, IndexAccess, FunctionCall)
FUNCTION_NODES = (ArrowFunction, FunctionDef, MethodDef)

Generated = Tuple[str, JSPrecedence]


@dataclass
class JSGenContext:
    """Mutable state of one generation run."""
    lines: List[str] = field(default_factory=list)
    indent: int = 0
    temp_counts: Dict[str, int] = field(default_factory=lambda: {"__t": 0, "__m": 0})

    # Nodes whose value is already bound to a temporary name
    substitutions: Dict[ASTNode, str] = field(default_factory=dict)
    # Optional-chain links currently being emitted as plain links
    suppressed_optional: Set[ASTNode] = field(default_factory=set)

    # Names the program declares at top level (shadowing builtins)
    user_names: Set[str] = field(default_factory=set)
    # (local, exported) pairs collected for module.exports
    exports: List[Tuple[str, str]] = field(default_factory=list)


class JavaScriptGenerator:
    """
    JavaScript backend for Lumo.

    Converts a Lumo Program to JavaScript text and handles:
    - Type erasure
    - Null-safety and match desugaring
    - Loop lowering
    - Target-specific module wrapping
    """

    def __init__(self, target: Union[Target, str] = Target.NODE, fragment: bool = False):
        """
        Initialize the generator.

        Args:
            target: Deployment environment (node or browser)
            fragment: Emit a REPL fragment (no header, no module wrapping)
        """
        self.target = Target.parse(target)
        self.fragment = fragment
        self.context = JSGenContext()

    def generate(self, program: Program) -> str:
        """
        Generate JavaScript for a program.

        Args:
            program: Lumo program AST

        Returns:
            JavaScript source text
        """
        self.context = JSGenContext()
        self.context.user_names = self._collect_user_names(program)
        logger.debug("Generating %s%s output for %d statements", self.target.value,
                     " fragment" if self.fragment else "", len(program.body))

        if self.target == Target.NODE and not self.fragment:
            self._line('"use strict";')
            if program.body:
                self._line()

        previous = None
        for stmt in program.body:
            if previous is not None and (self._is_block_declaration(previous) or self._is_block_declaration(stmt)):
                self._line()
            self._generate_top_level(stmt)
            previous = stmt

        self._generate_module_exports()

        if not self.context.lines:
            return ""
        return "\n".join(self.context.lines) + "\n"

    # ------------------------------------------------------------------
    # Emission helpers
    # ------------------------------------------------------------------

    def _line(self, text: str = "") -> None:
        if text:
            self.context.lines.append(self._indentation() + text)
        else:
            self.context.lines.append("")

    def _indentation(self) -> str:
        return "  " * self.context.indent

    def _new_temp(self, prefix: str = "__t") -> str:
        self.context.temp_counts[prefix] += 1
        return f"{prefix}{self.context.temp_counts[prefix]}"

    def _render_braced(self, emit: Callable[[], None]) -> str:
        """Run ``emit`` one level deeper and return its lines as a ``{ ... }`` block."""
        ctx = self.context
        saved_lines = ctx.lines
        ctx.lines = []
        ctx.indent += 1
        try:
            emit()
            inner = ctx.lines
        finally:
            ctx.indent -= 1
            ctx.lines = saved_lines
        if not inner:
            return "{}"
        return "{\n" + "\n".join(inner) + "\n" + self._indentation() + "}"

    def _generate_indented(self, body: Union[Statement, Expression]) -> None:
        self.context.indent += 1
        self._generate_body_statements(body)
        self.context.indent -= 1

    def _generate_body_statements(self, body: Union[Statement, Expression]) -> None:
        if isinstance(body, BlockStatement):
            for stmt in body.statements:
                self._generate_statement(stmt)
        elif isinstance(body, Expression):
            self._generate_expression_statement(body)
        else:
            self._generate_statement(body)

    @staticmethod
    def _safe_name(name: str) -> str:
        return f"{name}_" if name in JS_RESERVED_WORDS else name

    @staticmethod
    def _property_key(key: str) -> str:
        return key if IDENTIFIER_RE.match(key) else json.dumps(key, ensure_ascii=False)

    @staticmethod
    def _is_block_declaration(stmt: Statement) -> bool:
        return isinstance(stmt, (FunctionDef, ClassDef))

    @staticmethod
    def _collect_user_names(program: Program) -> Set[str]:
        names = set()
        for stmt in program.body:
            if isinstance(stmt, Declaration):
                names.add(stmt.name)
            elif isinstance(stmt, ImportDecl):
                names.update(stmt.local_names)
        return names

    # ------------------------------------------------------------------
    # Module structure
    # ------------------------------------------------------------------

    def _generate_top_level(self, stmt: Statement) -> None:
        if isinstance(stmt, ImportDecl):
            self._generate_import(stmt)
        elif isinstance(stmt, ExportDecl):
            self._generate_export_list(stmt)
        elif isinstance(stmt, (VariableDecl, FunctionDef, ClassDef)):
            prefix = ""
            if stmt.exported and not self.fragment:
                if self.target == Target.BROWSER:
                    prefix = "export "
                else:
                    self.context.exports.append((stmt.name, stmt.name))
            self._generate_declaration(stmt, prefix=prefix, top_level=True)
        else:
            self._generate_statement(stmt)

    def _generate_import(self, imp: ImportDecl) -> None:
        source = json.dumps(imp.source, ensure_ascii=False)

        if self.target == Target.BROWSER and not self.fragment:
            clauses = []
            if imp.default:
                clauses.append(self._safe_name(imp.default))
            if imp.namespace:
                clauses.append(f"* as {self._safe_name(imp.namespace)}")
            if imp.specifiers:
                names = [spec.imported if spec.imported == spec.local
                         else f"{spec.imported} as {self._safe_name(spec.local)}"
                         for spec in imp.specifiers]
                clauses.append("{ " + ", ".join(names) + " }")
            if clauses:
                self._line(f"import {', '.join(clauses)} from {source};")
            else:
                self._line(f"import {source};")
            return

        module = f"require({source})"
        keyword = "var" if self.fragment else "const"
        if not imp.local_names:
            self._line(f"{module};")
        if imp.default:
            self._line(f"{keyword} {self._safe_name(imp.default)} = {module};")
        if imp.namespace:
            self._line(f"{keyword} {self._safe_name(imp.namespace)} = {module};")
        if imp.specifiers:
            names = [spec.imported if spec.imported == self._safe_name(spec.local)
                     else f"{self._property_key(spec.imported)}: {self._safe_name(spec.local)}"
                     for spec in imp.specifiers]
            self._line(f"{keyword} {{ {', '.join(names)} }} = {module};")

    def _generate_export_list(self, export: ExportDecl) -> None:
        if self.fragment:
            return
        if self.target == Target.BROWSER:
            names = [self._safe_name(spec.local) if spec.local == spec.exported
                     else f"{self._safe_name(spec.local)} as {spec.exported}"
                     for spec in export.specifiers]
            self._line(f"export {{ {', '.join(names)} }};")
        else:
            self.context.exports.extend((spec.local, spec.exported) for spec in export.specifiers)

    def _generate_module_exports(self) -> None:
        if not self.context.exports:
            return
        entries = []
        seen = set()
        for local, exported in self.context.exports:
            if exported in seen:
                continue
            seen.add(exported)
            value = self._safe_name(local)
            key = self._property_key(exported)
            entries.append(key if key == value else f"{key}: {value}")
        self._line()
        self._line(f"module.exports = {{ {', '.join(entries)} }};")

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _generate_declaration(self, decl: Declaration, prefix: str = "", top_level: bool = False) -> None:
        if isinstance(decl, VariableDecl):
            match = self._lowered_match(decl)
            value = self._hoist_match(match) if match is not None else None
            self._line(f"{prefix}{self._variable_declaration_text(decl, top_level, value)};")
        elif isinstance(decl, FunctionDef):
            self._generate_function_def(decl, prefix)
        elif isinstance(decl, ClassDef):
            self._generate_class_def(decl, prefix, top_level)
        else:
            raise create_unsupported_node_error(decl, "declaration")

    def _binding_keyword(self, mutability: Mutability, reassigned: bool = False,
                         top_level: bool = False) -> str:
        """Map a Lumo mutability kind to a JavaScript declaration keyword."""
        if self.fragment and top_level:
            return "var"
        if mutability in (Mutability.VAR, Mutability.LET):
            return "let"
        if mutability == Mutability.AUTO_CONST and reassigned:
            return "let"
        return "const"

    def _variable_declaration_text(self, decl: VariableDecl, top_level: bool = False,
                                   value: Optional[str] = None) -> str:
        keyword = self._binding_keyword(decl.mutability, decl.reassigned, top_level)
        name = self._safe_name(decl.name)
        if value is None and decl.initializer is not None:
            value = self._expr(decl.initializer, JSPrecedence.ASSIGNMENT)
        if value is None:
            return f"{keyword} {name}"
        return f"{keyword} {name} = {value}"

    def _parameter_list(self, params: List[Parameter]) -> str:
        rendered = []
        for param in params:
            name = self._safe_name(param.name)
            if param.is_rest:
                rendered.append(f"...{name}")
            elif param.default_value is not None:
                rendered.append(f"{name} = {self._expr(param.default_value, JSPrecedence.ASSIGNMENT)}")
            else:
                rendered.append(name)
        return ", ".join(rendered)

    def _generate_function_def(self, func: FunctionDef, prefix: str = "") -> None:
        modifier = "async " if func.is_async else ""
        params = self._parameter_list(func.params)
        self._line(f"{prefix}{modifier}function {self._safe_name(func.name)}({params}) {{")
        self._generate_indented(func.body)
        self._line("}")

    def _generate_class_def(self, cls: ClassDef, prefix: str = "", top_level: bool = False) -> None:
        name = self._safe_name(cls.name)
        heritage = ""
        if cls.superclass is not None:
            heritage = f" extends {self._expr(cls.superclass, JSPrecedence.CALL)}"

        if self.fragment and top_level:
            self._line(f"var {name} = class {name}{heritage} {{")
            closer = "};"
        else:
            self._line(f"{prefix}class {name}{heritage} {{")
            closer = "}"

        self.context.indent += 1
        for member in cls.members:
            if isinstance(member, FieldDef):
                self._generate_field_def(member)
            elif isinstance(member, MethodDef):
                self._generate_method_def(member)
            else:
                raise create_unsupported_node_error(member, "class member")
        self.context.indent -= 1
        self._line(closer)

    def _generate_field_def(self, field_def: FieldDef) -> None:
        modifier = "static " if field_def.is_static else ""
        key = self._property_key(field_def.name)
        if field_def.initializer is None:
            self._line(f"{modifier}{key};")
        else:
            value = self._expr(field_def.initializer, JSPrecedence.ASSIGNMENT)
            self._line(f"{modifier}{key} = {value};")

    def _generate_method_def(self, method: MethodDef) -> None:
        modifiers = ("static " if method.is_static else "") + ("async " if method.is_async else "")
        params = self._parameter_list(method.params)
        self._line(f"{modifiers}{self._property_key(method.name)}({params}) {{")
        self._generate_indented(method.body)
        self._line("}")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _generate_statement(self, stmt: Statement) -> None:
        """Generate a statement."""
        if isinstance(stmt, (VariableDecl, FunctionDef, ClassDef)):
            self._generate_declaration(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._generate_expression_statement_node(stmt)
        elif isinstance(stmt, BlockStatement):
            self._line("{")
            self._generate_indented(stmt)
            self._line("}")
        elif isinstance(stmt, IfStatement):
            self._generate_if_statement(stmt)
        elif isinstance(stmt, WhileLoop):
            self._line(f"while ({self._expr(stmt.condition)}) {{")
            self._generate_indented(stmt.body)
            self._line("}")
        elif isinstance(stmt, ForRangeLoop):
            self._generate_for_range_loop(stmt)
        elif isinstance(stmt, ForOfLoop):
            self._generate_for_each_loop(stmt.variable, stmt.binding, "of", stmt.iterable, stmt.body)
        elif isinstance(stmt, ForInLoop):
            self._generate_for_each_loop(stmt.variable, stmt.binding, "in", stmt.target, stmt.body)
        elif isinstance(stmt, ForClassicLoop):
            self._generate_for_classic_loop(stmt)
        elif isinstance(stmt, MatchStatement):
            self._generate_match_statement(stmt)
        elif isinstance(stmt, TryStatement):
            self._generate_try_statement(stmt)
        elif isinstance(stmt, ThrowStatement):
            self._line(f"throw {self._expr(stmt.value)};")
        elif isinstance(stmt, ReturnStatement):
            match = self._lowered_match(stmt)
            if match is not None:
                self._line(f"return {self._hoist_match(match)};")
            elif stmt.value is not None:
                self._line(f"return {self._expr(stmt.value)};")
            else:
                self._line("return;")
        elif isinstance(stmt, BreakStatement):
            self._line("break;")
        elif isinstance(stmt, ContinueStatement):
            self._line("continue;")
        else:
            raise create_unsupported_node_error(stmt, "statement")

    def _generate_expression_statement_node(self, stmt: ExpressionStatement) -> None:
        match = self._lowered_match(stmt)
        if match is None:
            self._generate_expression_statement(stmt.expression)
        elif match is stmt.expression:
            self._generate_match_chain(match)
        else:
            value = self._hoist_match(match)
            self._line(f"{self._expr(stmt.expression.target, JSPrecedence.CALL)} = {value};")

    def _generate_expression_statement(self, expression: Expression) -> None:
        text = self._expr(expression)
        # These would parse as a block, a declaration or a binding pattern
        if text.startswith(("{", "function", "async function", "class", "let [")):
            text = f"({text})"
        self._line(f"{text};")

    def _generate_if_statement(self, stmt: IfStatement) -> None:
        self._line(f"if ({self._expr(stmt.condition)}) {{")
        self._generate_indented(stmt.then_branch)
        branch = stmt.else_branch
        while isinstance(branch, IfStatement):
            self._line(f"}} else if ({self._expr(branch.condition)}) {{")
            self._generate_indented(branch.then_branch)
            branch = branch.else_branch
        if branch is not None:
            self._line("} else {")
            self._generate_indented(branch)
        self._line("}")

    def _generate_for_range_loop(self, loop: ForRangeLoop) -> None:
        """
        ``for i in a..b step s`` becomes a counted loop. Bounds that are not
        constants are evaluated once, before the first iteration.
        """
        var = self._safe_name(loop.variable)
        declarations = [f"{var} = {self._expr(loop.start, JSPrecedence.ASSIGNMENT)}"]
        end = self._hoist_operand(loop.end, declarations)
        less, greater = ("<=", ">=") if loop.inclusive else ("<", ">")

        if loop.step is None:
            condition, update = f"{var} {less} {end}", f"{var}++"
        else:
            step_value = self._constant_number(loop.step)
            if step_value is None:
                step = self._hoist_operand(loop.step, declarations, force=True)
                condition = f"{step} > 0 ? {var} {less} {end} : {var} {greater} {end}"
                update = f"{var} += {step}"
            else:
                comparison = greater if step_value < 0 else less
                condition = f"{var} {comparison} {end}"
                update = f"{var}++" if step_value == 1 else f"{var} += {self._expr(loop.step, JSPrecedence.ASSIGNMENT)}"

        self._line(f"for (let {', '.join(declarations)}; {condition}; {update}) {{")
        self._generate_indented(loop.body)
        self._line("}")

    def _hoist_operand(self, node: Expression, declarations: List[str], force: bool = False) -> str:
        if not force and self._constant_number(node) is not None:
            return self._expr(node, JSPrecedence.RELATIONAL + 1)
        temp = self._new_temp()
        declarations.append(f"{temp} = {self._expr(node, JSPrecedence.ASSIGNMENT)}")
        return temp

    @staticmethod
    def _constant_number(node: Expression) -> Optional[float]:
        if isinstance(node, Literal) and node.kind == "number":
            return node.value
        if isinstance(node, UnaryOp) and node.operator in ("-", "+"):
            inner = JavaScriptGenerator._constant_number(node.operand)
            if inner is not None:
                return -inner if node.operator == "-" else inner
        return None

    def _generate_for_each_loop(self, variable: str, binding: Optional[Mutability], keyword: str,
                                iterable: Expression, body: BlockStatement) -> None:
        declaration = "let" if binding in (Mutability.LET, Mutability.VAR) else "const"
        source = self._expr(iterable, JSPrecedence.ASSIGNMENT)
        self._line(f"for ({declaration} {self._safe_name(variable)} {keyword} {source}) {{")
        self._generate_indented(body)
        self._line("}")

    def _generate_for_classic_loop(self, loop: ForClassicLoop) -> None:
        init = ""
        if isinstance(loop.init, VariableDecl):
            init = self._variable_declaration_text(loop.init)
        elif isinstance(loop.init, ExpressionStatement):
            init = self._expr(loop.init.expression)
        elif loop.init is not None:
            raise create_unsupported_node_error(loop.init, "for-loop initializer")

        header = init + ";"
        if loop.condition is not None:
            header += " " + self._expr(loop.condition)
        header += ";"
        if loop.update is not None:
            header += " " + self._expr(loop.update)

        self._line(f"for ({header}) {{")
        self._generate_indented(loop.body)
        self._line("}")

    def _generate_match_statement(self, match: MatchStatement) -> None:
        self._generate_match_chain(match)

    def _generate_match_chain(self, match: Union[MatchStatement, MatchExpression],
                              result: Optional[str] = None) -> None:
        """
        Lower ``match`` to an if/else-if chain over a temporary holding the
        subject. The chain sits in its own block so the temporary never
        leaks into the enclosing scope. With ``result``, expression arms
        store their value in that variable.
        """
        subject = self._expr(match.subject, JSPrecedence.ASSIGNMENT)
        temp = self._new_temp("__m")

        self._line("{")
        self.context.indent += 1
        self._line(f"const {temp} = {subject};")
        for index, arm in enumerate(match.arms):
            opener = "if" if index == 0 else "} else if"
            self._line(f"{opener} ({self._match_condition(temp, arm)}) {{")
            self.context.indent += 1
            self._generate_arm(arm.body, result)
            self.context.indent -= 1

        if match.else_arm is not None:
            if match.arms:
                self._line("} else {")
                self.context.indent += 1
                self._generate_arm(match.else_arm.body, result)
                self.context.indent -= 1
                self._line("}")
            else:
                self._generate_arm(match.else_arm.body, result)
        elif match.arms:
            self._line("}")
        self.context.indent -= 1
        self._line("}")

    def _generate_arm(self, body: Union[BlockStatement, Expression], result: Optional[str]) -> None:
        if result is not None and not isinstance(body, BlockStatement):
            self._line(f"{result} = {self._expr(body, JSPrecedence.ASSIGNMENT)};")
        else:
            self._generate_body_statements(body)

    @staticmethod
    def _lowered_match(stmt: Statement) -> Optional[MatchExpression]:
        """A match with block arms that ``stmt`` uses directly; it is emitted as statements."""
        match = statement_level_match(stmt)
        if match is not None and match.has_block_arm():
            return match
        return None

    def _hoist_match(self, match: MatchExpression) -> str:
        """Emit ``match`` as statements ahead of its use; returns the variable holding its value."""
        temp = self._new_temp()
        keyword = "var" if self.fragment and self.context.indent == 0 else "let"
        self._line(f"{keyword} {temp};")
        self._generate_match_chain(match, temp)
        return temp

    def _match_condition(self, subject: str, arm: MatchArm) -> str:
        return " || ".join(
            f"{subject} === {self._expr(pattern, JSPrecedence.EQUALITY + 1)}"
            for pattern in arm.patterns
        )

    def _generate_try_statement(self, stmt: TryStatement) -> None:
        self._line("try {")
        self._generate_indented(stmt.body)
        if stmt.catch_body is not None:
            if stmt.catch_param:
                self._line(f"}} catch ({self._safe_name(stmt.catch_param)}) {{")
            else:
                self._line("} catch {")
            self._generate_indented(stmt.catch_body)
        if stmt.finally_body is not None:
            self._line("} finally {")
            self._generate_indented(stmt.finally_body)
        self._line("}")

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _expr(self, node: Expression, min_precedence: int = JSPrecedence.LOWEST) -> str:
        """Generate an expression, parenthesized if it binds looser than ``min_precedence``."""
        substitute = self.context.substitutions.get(node)
        if substitute is not None:
            return substitute
        text, precedence = self._generate_expression(node)
        if precedence < min_precedence:
            return f"({text})"
        return text

    def _generate_expression(self, expr: Expression) -> Generated:
        """Generate an expression; returns its text and precedence."""
        if isinstance(expr, Literal):
            return self._generate_literal(expr)
        elif isinstance(expr, Identifier):
            return self._generate_identifier(expr)
        elif isinstance(expr, TemplateLiteral):
            return self._generate_template_literal(expr)
        elif isinstance(expr, ThisExpression):
            return "this", JSPrecedence.PRIMARY
        elif isinstance(expr, SuperExpression):
            return "super", JSPrecedence.PRIMARY
        elif isinstance(expr, ArrayLiteral):
            elements = ", ".join(self._expr(e, JSPrecedence.ASSIGNMENT) for e in expr.elements)
            return f"[{elements}]", JSPrecedence.PRIMARY
        elif isinstance(expr, ObjectLiteral):
            return self._generate_object_literal(expr)
        elif isinstance(expr, BinaryOp):
            return self._generate_binary_op(expr)
        elif isinstance(expr, UnaryOp):
            return self._generate_unary_op(expr)
        elif isinstance(expr, HaveExpression):
            return self._generate_have(expr)
        elif isinstance(expr, UpdateExpression):
            operand = self._expr(expr.operand, JSPrecedence.CALL)
            text = f"{expr.operator}{operand}" if expr.prefix else f"{operand}{expr.operator}"
            return text, JSPrecedence.UPDATE
        elif isinstance(expr, Assignment):
            return self._generate_assignment(expr)
        elif isinstance(expr, ConditionalExpression):
            condition = self._expr(expr.condition, JSPrecedence.NULLISH)
            then_expr = self._expr(expr.then_expr, JSPrecedence.ASSIGNMENT)
            else_expr = self._expr(expr.else_expr, JSPrecedence.ASSIGNMENT)
            return f"{condition} ? {then_expr} : {else_expr}", JSPrecedence.CONDITIONAL
        elif isinstance(expr, CHAIN_NODES):
            link = self._find_optional_link(expr)
            if link is not None:
                return self._generate_optional_chain(expr, link)
            if isinstance(expr, FunctionCall):
                return self._generate_function_call(expr)
            elif isinstance(expr, MemberAccess):
                return self._generate_member_access(expr)
            return self._generate_index_access(expr)
        elif isinstance(expr, NewExpression):
            return self._generate_new_expression(expr)
        elif isinstance(expr, ArrowFunction):
            return self._generate_arrow_function(expr)
        elif isinstance(expr, SpreadElement):
            return f"...{self._expr(expr.argument, JSPrecedence.ASSIGNMENT)}", JSPrecedence.ASSIGNMENT
        elif isinstance(expr, AwaitExpression):
            return f"await {self._expr(expr.argument, JSPrecedence.UNARY)}", JSPrecedence.UNARY
        elif isinstance(expr, MatchExpression):
            return self._generate_match_expression(expr)
        else:
            raise create_unsupported_node_error(expr, "expression")

    def _generate_literal(self, literal: Literal) -> Generated:
        if literal.kind == "number":
            text = literal.raw if literal.raw is not None else self._format_number(literal.value)
            precedence = JSPrecedence.UNARY if text.startswith("-") else JSPrecedence.PRIMARY
            return text, precedence
        if literal.kind == "string":
            return json.dumps(literal.value, ensure_ascii=False), JSPrecedence.PRIMARY
        if literal.kind == "boolean":
            return ("true" if literal.value else "false"), JSPrecedence.PRIMARY
        if literal.kind == "null":
            return "null", JSPrecedence.PRIMARY
        if literal.kind == "undefined":
            return "undefined", JSPrecedence.PRIMARY
        raise create_unsupported_node_error(literal, f"'{literal.kind}' literal")

    @staticmethod
    def _format_number(value) -> str:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return repr(value)

    def _generate_identifier(self, identifier: Identifier) -> Generated:
        if identifier.name in PRINT_BUILTINS and self._refers_to_builtin(identifier):
            return "console.log", JSPrecedence.CALL
        return self._safe_name(identifier.name), JSPrecedence.PRIMARY

    def _refers_to_builtin(self, identifier: Identifier) -> bool:
        symbol = identifier.symbol
        if symbol is not None:
            return symbol.kind == SymbolKind.BUILTIN
        return identifier.name not in self.context.user_names

    def _generate_template_literal(self, template: TemplateLiteral) -> Generated:
        parts = [template.quasis[0]]
        for expression, quasi in zip(template.expressions, template.quasis[1:]):
            parts.append("${" + self._expr(expression) + "}")
            parts.append(quasi)
        return "`" + "".join(parts) + "`", JSPrecedence.PRIMARY

    def _generate_object_literal(self, obj: ObjectLiteral) -> Generated:
        if not obj.properties:
            return "{}", JSPrecedence.PRIMARY
        entries = []
        for prop in obj.properties:
            if isinstance(prop, SpreadElement):
                entries.append(self._expr(prop, JSPrecedence.ASSIGNMENT))
            elif isinstance(prop, ObjectProperty):
                value = self._expr(prop.value, JSPrecedence.ASSIGNMENT)
                if prop.computed is not None:
                    key = f"[{self._expr(prop.computed, JSPrecedence.ASSIGNMENT)}]"
                elif prop.quoted:
                    key = json.dumps(prop.key, ensure_ascii=False)
                else:
                    key = self._property_key(prop.key)
                entries.append(key if prop.shorthand and key == value else f"{key}: {value}")
            else:
                raise create_unsupported_node_error(prop, "object entry")
        return "{ " + ", ".join(entries) + " }", JSPrecedence.PRIMARY

    def _generate_binary_op(self, binary: BinaryOp) -> Generated:
        operator = OPERATOR_MAP.get(binary.operator, binary.operator)
        if operator == "??":
            return self._generate_nullish_coalescing(binary.left, binary.right)

        precedence = BINARY_PRECEDENCE.get(operator)
        if precedence is None:
            raise create_unsupported_node_error(binary, f"'{binary.operator}' operator")

        if operator == "**":
            # A unary operand on the left of ** must be parenthesized
            left = self._expr(binary.left, JSPrecedence.UPDATE)
            right = self._expr(binary.right, JSPrecedence.EXPONENT)
        else:
            left = self._expr(binary.left, precedence)
            right = self._expr(binary.right, precedence + 1)
        return f"{left} {operator} {right}", precedence

    def _generate_unary_op(self, unary: UnaryOp) -> Generated:
        operator = OPERATOR_MAP.get(unary.operator, unary.operator)
        operand = self._expr(unary.operand, JSPrecedence.UNARY)
        if operator == "typeof":
            return f"typeof {operand}", JSPrecedence.UNARY
        if operator in ("-", "+") and operand.startswith(operator):
            return f"{operator} {operand}", JSPrecedence.UNARY
        return f"{operator}{operand}", JSPrecedence.UNARY

    def _generate_arrow_function(self, arrow: ArrowFunction) -> Generated:
        modifier = "async " if arrow.is_async else ""
        params = self._parameter_list(arrow.params)
        if isinstance(arrow.body, BlockStatement):
            body = self._render_braced(lambda: self._generate_body_statements(arrow.body))
        else:
            body = self._expr(arrow.body, JSPrecedence.ASSIGNMENT)
            if body.startswith("{"):
                body = f"({body})"
        return f"{modifier}({params}) => {body}", JSPrecedence.ASSIGNMENT

    def _generate_function_call(self, call: FunctionCall) -> Generated:
        callee = self._expr(call.callee, JSPrecedence.CALL)
        arguments = ", ".join(self._expr(arg, JSPrecedence.ASSIGNMENT) for arg in call.arguments)
        return f"{callee}({arguments})", JSPrecedence.CALL

    def _generate_member_access(self, member: MemberAccess) -> Generated:
        obj = self._expr(member.object, JSPrecedence.CALL)
        if isinstance(member.object, Literal) and member.object.kind == "number":
            obj = f"({obj})"
        return f"{obj}.{member.member}", JSPrecedence.CALL

    def _generate_index_access(self, index: IndexAccess) -> Generated:
        obj = self._expr(index.object, JSPrecedence.CALL)
        return f"{obj}[{self._expr(index.index)}]", JSPrecedence.CALL

    def _generate_new_expression(self, new: NewExpression) -> Generated:
        # `new a.b().c()` would bind the arguments to the inner call
        callee_precedence = JSPrecedence.PRIMARY if self._chain_contains_call(new.callee) else JSPrecedence.CALL
        callee = self._expr(new.callee, callee_precedence)
        arguments = ", ".join(self._expr(arg, JSPrecedence.ASSIGNMENT) for arg in new.arguments)
        return f"new {callee}({arguments})", JSPrecedence.CALL

    @staticmethod
    def _chain_contains_call(node: Expression) -> bool:
        current = node
        while isinstance(current, CHAIN_NODES):
            if isinstance(current, FunctionCall):
                return True
            current = current.object
        return False

    # ------------------------------------------------------------------
    # Null-safety desugaring
    # ------------------------------------------------------------------

    @staticmethod
    def _present_check(text: str) -> str:
        return f"{text} !== null && {text} !== undefined"

    @staticmethod
    def _absent_check(text: str) -> str:
        return f"{text} === null || {text} === undefined"

    def _is_simple(self, node: Expression) -> bool:
        """Can ``node`` be evaluated twice without observable difference?"""
        if node in self.context.substitutions:
            return True
        return isinstance(node, (Identifier, ThisExpression, Literal))

    @staticmethod
    def _contains_await(*nodes: Optional[ASTNode]) -> bool:
        """Is there an ``await`` that belongs to the current function?"""
        stack = [node for node in nodes if node is not None]
        while stack:
            node = stack.pop()
            if isinstance(node, AwaitExpression):
                return True
            if isinstance(node, FUNCTION_NODES):
                continue
            stack.extend(node.children())
        return False

    @staticmethod
    def _bind(params: List[str], body: str, args: List[str], asynchronous: bool = False) -> Generated:
        """Evaluate ``args`` once and use them as ``params`` inside ``body`` (an arrow IIFE)."""
        arrow = f"({', '.join(params)}) => {body}"
        if asynchronous:
            return f"(await (async {arrow})({', '.join(args)}))", JSPrecedence.PRIMARY
        return f"({arrow})({', '.join(args)})", JSPrecedence.CALL

    def _generate_have(self, have: HaveExpression) -> Generated:
        """``have x`` is true when x is neither null nor undefined."""
        operand = have.operand
        if self._is_simple(operand):
            text = self._expr(operand, JSPrecedence.EQUALITY + 1)
            return f"({self._present_check(text)})", JSPrecedence.PRIMARY
        temp = self._new_temp()
        value = self._expr(operand, JSPrecedence.ASSIGNMENT)
        return self._bind([temp], self._present_check(temp), [value])

    def _generate_nullish_coalescing(self, left: Expression, right: Expression) -> Generated:
        if self._is_simple(left):
            value = self._expr(left, JSPrecedence.EQUALITY + 1)
            fallback = self._expr(right, JSPrecedence.ASSIGNMENT)
            return f"({self._present_check(value)} ? {value} : {fallback})", JSPrecedence.PRIMARY

        temp = self._new_temp()
        value = self._expr(left, JSPrecedence.ASSIGNMENT)
        fallback = self._expr(right, JSPrecedence.ASSIGNMENT)
        body = f"{self._present_check(temp)} ? {temp} : {fallback}"
        return self._bind([temp], body, [value], self._contains_await(right))

    def _generate_assignment(self, assign: Assignment) -> Generated:
        if assign.operator == "??=":
            return self._generate_nullish_assignment(assign)
        target = self._expr(assign.target, JSPrecedence.CALL)
        value = self._expr(assign.value, JSPrecedence.ASSIGNMENT)
        return f"{target} {assign.operator} {value}", JSPrecedence.ASSIGNMENT

    def _generate_nullish_assignment(self, assign: Assignment) -> Generated:
        """``t ??= v`` assigns only when t is null or undefined; t's parts are evaluated once."""
        target = assign.target
        parts: List[Expression] = []
        if isinstance(target, MemberAccess):
            parts = [target.object]
        elif isinstance(target, IndexAccess):
            parts = [target.object, target.index]

        params, args = [], []
        for part in parts:
            if self._is_simple(part):
                continue
            temp = self._new_temp()
            args.append(self._expr(part, JSPrecedence.ASSIGNMENT))
            params.append(temp)
            self.context.substitutions[part] = temp
        try:
            target_text = self._expr(target, JSPrecedence.CALL)
            value = self._expr(assign.value, JSPrecedence.ASSIGNMENT)
        finally:
            for part in parts:
                self.context.substitutions.pop(part, None)

        body = f"{self._present_check(target_text)} ? {target_text} : ({target_text} = {value})"
        if not params:
            return f"({body})", JSPrecedence.PRIMARY
        return self._bind(params, body, args, self._contains_await(assign.value))

    def _find_optional_link(self, node: Expression) -> Optional[Expression]:
        """The outermost ``?.`` link of the chain ending at ``node``, if any."""
        current = node
        while isinstance(current, CHAIN_NODES) and current not in self.context.substitutions:
            if current.optional and current not in self.context.suppressed_optional:
                return current
            current = current.callee if isinstance(current, FunctionCall) else current.object
        return None

    def _generate_optional_chain(self, top: Expression, link: Expression) -> Generated:
        """
        Lower ``base?.rest`` to ``base == null ? undefined : base.rest``.

        Everything above ``link`` in the chain short-circuits with it. Links
        below ``link`` are lowered recursively when ``base`` is generated.
        For ``o.m?.()`` the receiver ``o`` is bound so the call keeps its ``this``.
        """
        base = link.callee if isinstance(link, FunctionCall) else link.object
        bound = base
        if isinstance(link, FunctionCall) and isinstance(base, MemberAccess):
            bound = base.object

        ctx = self.context
        params, args = [], []
        if not self._is_simple(bound):
            temp = self._new_temp()
            args.append(self._expr(bound, JSPrecedence.ASSIGNMENT))
            params.append(temp)
            ctx.substitutions[bound] = temp

        ctx.suppressed_optional.add(link)
        try:
            guard = self._expr(base, JSPrecedence.EQUALITY + 1)
            rest = self._expr(top, JSPrecedence.ASSIGNMENT)
        finally:
            ctx.suppressed_optional.discard(link)
            ctx.substitutions.pop(bound, None)

        body = f"{self._absent_check(guard)} ? undefined : {rest}"
        if not params:
            return f"({body})", JSPrecedence.PRIMARY
        return self._bind(params, body, args, self._contains_await(top))

    # ------------------------------------------------------------------
    # match as an expression
    # ------------------------------------------------------------------

    def _generate_match_expression(self, match: MatchExpression) -> Generated:
        """
        Expression-bodied arms become a ternary chain. A match with block arms
        nested inside a larger expression becomes an arrow IIFE holding an
        if/else-if chain; the checker keeps break, continue and return out of
        those arms.
        An unmatched subject with no else arm yields undefined.
        """
        arms = list(match.arms)
        asynchronous = self._contains_await(*arms, match.else_arm)

        if all(not isinstance(arm.body, BlockStatement) for arm in arms + [match.else_arm] if arm):
            if self._is_simple(match.subject):
                subject = self._expr(match.subject, JSPrecedence.EQUALITY + 1)
                return f"({self._match_ternary(subject, match)})", JSPrecedence.PRIMARY
            temp = self._new_temp("__m")
            value = self._expr(match.subject, JSPrecedence.ASSIGNMENT)
            return self._bind([temp], self._match_ternary(temp, match), [value], asynchronous)

        temp = self._new_temp("__m")
        value = self._expr(match.subject, JSPrecedence.ASSIGNMENT)

        def emit():
            for index, arm in enumerate(arms):
                opener = "if" if index == 0 else "} else if"
                self._line(f"{opener} ({self._match_condition(temp, arm)}) {{")
                self.context.indent += 1
                self._generate_arm_value(arm.body)
                self.context.indent -= 1
            if arms:
                self._line("}")
            if match.else_arm is not None:
                self._generate_arm_value(match.else_arm.body)

        body = self._render_braced(emit)
        return self._bind([temp], body, [value], asynchronous)

    def _match_ternary(self, subject: str, match: MatchExpression) -> str:
        branches = []
        for arm in match.arms:
            value = self._expr(arm.body, JSPrecedence.ASSIGNMENT)
            branches.append(f"{self._match_condition(subject, arm)} ? {value} : ")
        fallback = "undefined"
        if match.else_arm is not None:
            fallback = self._expr(match.else_arm.body, JSPrecedence.ASSIGNMENT)
        return "".join(branches) + fallback

    def _generate_arm_value(self, body: Union[BlockStatement, Expression]) -> None:
        """Inside a match IIFE: run a block arm, or return an expression arm's value."""
        if isinstance(body, BlockStatement):
            for stmt in body.statements:
                self._generate_statement(stmt)
            self._line("return undefined;")
        else:
            self._line(f"return {self._expr(body)};")


def generate_javascript(program: Program, target: Union[Target, str] = Target.NODE,
                        fragment: bool = False) -> str:
    """Generate JavaScript for a program."""
    return JavaScriptGenerator(target, fragment).generate(program)
