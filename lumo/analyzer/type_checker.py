"""
Type checker for Lumo.

Coordinates the checking passes:
- Declaration collection (hoisted functions and classes, pending top-level variables)
- Statement-order type checking and inference
- Deferred checking of function bodies (so they see every top-level binding)

Along the way it tracks nullability and the narrowing introduced by
``have`` checks, enforces binding mutability and resolves every
identifier to its symbol (the tree shaker's reference graph is built
from those links).

Author: xwest
"""

import logging
from typing import List, Dict, Optional, Set, Tuple
from dataclasses import dataclass

from ..lexer.errors import Diagnostic, ErrorKind, edit_distance
from ..parser.ast_nodes import *
from .symbol_table import SymbolTable, Symbol, SymbolKind, Scope, ScopeKind
from .types import (
    SymbolType, TypeKind, ANY, NUMBER, STRING, BOOLEAN, VOID, NULL, ERROR, OPEN_MAP,
    TYPE_ALIASES, list_of, nullable, map_type, function_type, class_type, class_object_type,
    strip_nullable, is_assignable, join, join_all,
)
from .errors import (
    SemanticError, create_type_mismatch_error, create_undefined_type_error,
    create_invalid_operands_error, create_not_callable_error, create_unknown_member_error,
    create_undefined_symbol_error, create_use_before_declaration_error,
    create_immutable_assignment_error, create_nullable_access_error,
    create_arity_mismatch_error, create_divergent_return_error,
    create_invalid_control_flow_error, create_match_arm_exit_error,
)

logger = logging.getLogger(__name__)

# Members every object has, so they never count as unknown
OBJECT_PROTOTYPE_MEMBERS = {
    "toString", "toLocaleString", "valueOf", "hasOwnProperty",
    "isPrototypeOf", "propertyIsEnumerable", "constructor",
}

CLASS_OBJECT_MEMBERS = {"name", "prototype", "length"}

ARITHMETIC_OPERATORS = {"-", "*", "/", "%", "**"}
RELATIONAL_OPERATORS = {"<", ">", "<=", ">="}
EQUALITY_OPERATORS = {"==", "!=", "===", "!=="}

# A narrowing key is the root (symbol id or "this") followed by member names
PathKey = Tuple

Facts = Dict[PathKey, SymbolType]


@dataclass
class AnalysisResult:
    """Results of type checking."""
    ast: Program
    symbol_table: SymbolTable
    errors: List[SemanticError]
    warnings: List[SemanticError]
    type_annotations: Dict[ASTNode, SymbolType]  # Type information for AST nodes

    def has_errors(self) -> bool:
        """Check if checking found any errors."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if checking found any warnings."""
        return len(self.warnings) > 0

    def has_reference_errors(self) -> bool:
        return any(error.kind == ErrorKind.REFERENCE for error in self.errors)

    def diagnostics(self) -> List[Diagnostic]:
        return [problem.diagnostic for problem in self.errors + self.warnings]


class TypeChecker:
    """
    Type checker for Lumo programs.

    In strict mode every violation is a hard error. In lenient mode type
    errors are downgraded to warnings; reference errors (undefined names,
    duplicate declarations) stay errors in both modes.

    Pass an existing ``symbol_table`` to keep checking against a module
    scope that outlives one program (the REPL does this).
    """

    def __init__(self, strict: bool = False, target: str = "node",
                 symbol_table: Optional[SymbolTable] = None):
        """Initialize the type checker."""
        self.strict = strict
        self.symbol_table = symbol_table or SymbolTable(target)
        self.errors: List[SemanticError] = []
        self.warnings: List[SemanticError] = []
        self.type_annotations: Dict[ASTNode, SymbolType] = {}

        # Narrowing overlays, innermost last
        self.narrowing: List[Facts] = []
        self._path_roots: Dict[int, Symbol] = {}

        # Function and method bodies, checked once, possibly on demand
        self._definitions: Dict[ASTNode, Tuple[SymbolType, Scope, Optional[SymbolType]]] = {}
        self._lazy_returns: Dict[int, ASTNode] = {}
        self._checked_bodies: Set[ASTNode] = set()
        self._in_progress: Set[ASTNode] = set()
        self._deferred: List[ASTNode] = []
        self._rejected: Set[ASTNode] = set()

        # Match expressions lowered to statements, and block-arm scopes of the others
        self._statement_matches: Set[ASTNode] = set()
        self._embedded_arm_scopes: Set[int] = set()

    def check(self, ast: Program) -> AnalysisResult:
        """
        Type check a whole program.

        Args:
            ast: The program to check

        Returns:
            AnalysisResult containing the diagnostics and type annotations
        """
        logger.debug("Type checking %d top-level statements (strict=%s)", len(ast.body), self.strict)

        # Pass 1: collect declarations so functions and classes can be used before they appear
        self._collect_declarations(ast.body, top_level=True)

        # Pass 2: check statements in order
        self.narrowing.append({})
        for stmt in ast.body:
            self._check_statement(stmt)
        self.narrowing.pop()

        # Pass 3: function bodies that nothing forced earlier
        while self._deferred:
            self._check_definition(self._deferred.pop(0))

        logger.debug("Type checking finished: %d errors, %d warnings",
                     len(self.errors), len(self.warnings))

        return AnalysisResult(
            ast=ast,
            symbol_table=self.symbol_table,
            errors=self.errors,
            warnings=self.warnings,
            type_annotations=self.type_annotations
        )

    def _report(self, error: SemanticError):
        if error.kind == ErrorKind.TYPE and not self.strict:
            self.warnings.append(error.downgrade())
        else:
            self.errors.append(error)

    # ========================================================================
    # Pass 1: Declaration collection
    # ========================================================================

    def _collect_declarations(self, statements: List[Statement], top_level: bool = False):
        """Enter hoisted names for one block into the current scope."""
        classes: List[Tuple[ClassDef, Symbol]] = []

        for stmt in statements:
            try:
                if isinstance(stmt, ClassDef):
                    instance = class_type(stmt.name)
                    symbol = self.symbol_table.define_class(
                        stmt.name, class_object_type(instance), stmt.span.start, stmt)
                    symbol.declared = False
                    classes.append((stmt, symbol))
                elif isinstance(stmt, VariableDecl) and top_level:
                    symbol = self.symbol_table.define_variable(
                        stmt.name, ANY, stmt.span.start, stmt.mutability, stmt)
                    symbol.declared = False
                elif isinstance(stmt, ImportDecl) and top_level:
                    self._define_imports(stmt)
            except SemanticError as e:
                self._rejected.add(stmt)
                self._report(e)

        # Class members may mention any class of the block, so link them second
        for class_def, symbol in classes:
            self._collect_class_members(class_def, symbol.symbol_type)

        for stmt in statements:
            if isinstance(stmt, FunctionDef):
                signature = self._signature_of(stmt.params, stmt.return_type, stmt.is_async)
                try:
                    self.symbol_table.define_function(stmt.name, signature, stmt.span.start, stmt)
                except SemanticError as e:
                    self._report(e)
                self._register_definition(stmt, signature, ANY)
                self._deferred.append(stmt)

    def _define_imports(self, import_decl: ImportDecl):
        for name in import_decl.local_names:
            self.symbol_table.define_symbol(Symbol(
                name=name,
                kind=SymbolKind.IMPORT,
                symbol_type=ANY,
                location=import_decl.span.start,
                ast_node=import_decl,
            ))

    def _collect_class_members(self, class_def: ClassDef, class_object: SymbolType):
        """Fill in the superclass link and member signatures of a class."""
        instance = class_object.element

        if class_def.superclass is not None:
            parent = self.symbol_table.lookup_symbol_safe(class_def.superclass.name)
            if parent is None:
                self._report(create_undefined_symbol_error(
                    class_def.superclass.name, class_def.superclass.span.start, class_def.superclass,
                    self.symbol_table.current_scope.get_similar_names(class_def.superclass.name)))
                instance.superclass = ANY
                class_object.superclass = ANY
            else:
                class_def.superclass.symbol = parent
                if parent.kind == SymbolKind.CLASS:
                    class_object.superclass = parent.symbol_type
                    instance.superclass = parent.symbol_type.element
                elif parent.symbol_type.is_any or parent.kind in (SymbolKind.BUILTIN, SymbolKind.IMPORT):
                    instance.superclass = ANY
                    class_object.superclass = ANY
                else:
                    self._report(create_type_mismatch_error(
                        "a class", str(parent.symbol_type), class_def.superclass.span.start,
                        class_def.superclass))
                    instance.superclass = ANY
                    class_object.superclass = ANY

        constructor = class_def.constructor
        for member in class_def.members:
            if isinstance(member, FieldDef):
                field_type = self._resolve_type_reference(member.type_annotation) \
                    if member.type_annotation else ANY
                target = class_object if member.is_static else instance
                target.fields[member.name] = field_type
            elif isinstance(member, MethodDef):
                signature = self._signature_of(member.params, member.return_type, member.is_async)
                this_type = class_object if member.is_static else instance
                self._register_definition(member, signature, this_type)
                if member is constructor:
                    class_object.params = signature.params
                    class_object.min_arity = signature.min_arity
                    class_object.variadic = signature.variadic
                elif member.is_static:
                    class_object.fields[member.name] = signature
                else:
                    instance.fields[member.name] = signature

        if constructor is None:
            parent_object = class_object.superclass
            if parent_object is not None and parent_object.kind == TypeKind.CLASS_OBJECT:
                class_object.params = parent_object.params
                class_object.min_arity = parent_object.min_arity
                class_object.variadic = parent_object.variadic
            elif parent_object is not None:
                class_object.variadic = True

        # Fields created by `this.name = ...` inside methods
        for member in class_def.members:
            if isinstance(member, MethodDef) and not member.is_static:
                for node in walk(member.body):
                    if (isinstance(node, Assignment) and isinstance(node.target, MemberAccess)
                            and isinstance(node.target.object, ThisExpression)):
                        instance.fields.setdefault(node.target.member, ANY)

    def _register_definition(self, node: ASTNode, signature: SymbolType,
                             this_type: Optional[SymbolType]):
        self._definitions[node] = (signature, self.symbol_table.current_scope, this_type)
        if signature.return_type is None:
            self._lazy_returns[id(signature)] = node

    def _signature_of(self, params: List[Parameter], return_ref: Optional[TypeRef],
                      is_async: bool) -> SymbolType:
        """Build a function type from parameter and return annotations."""
        param_types = []
        min_arity = 0
        variadic = False
        for index, param in enumerate(params):
            if param.is_rest:
                variadic = True
                continue
            if param.type_annotation:
                param_type = self._resolve_type_reference(param.type_annotation)
            elif isinstance(param.default_value, Literal) and param.default_value.kind not in ("null", "undefined"):
                param_type = self._literal_type(param.default_value)
            else:
                param_type = ANY
            param_types.append(param_type)
            if param.default_value is None:
                min_arity = index + 1

        return_type = self._resolve_type_reference(return_ref) if return_ref else None
        return function_type(param_types, return_type, min_arity=min_arity,
                             variadic=variadic, is_async=is_async)

    # ========================================================================
    # Function bodies
    # ========================================================================

    def _check_definition(self, node: ASTNode):
        """Check the body of a hoisted function or a method, once."""
        if node in self._checked_bodies or node in self._in_progress:
            return
        signature, scope, this_type = self._definitions[node]
        self._in_progress.add(node)
        try:
            with self.symbol_table.switched_to(scope):
                saved_narrowing = self.narrowing
                self.narrowing = []
                try:
                    name = getattr(node, "name", "<anonymous>")
                    self._check_function_body(node, signature, name, this_type)
                finally:
                    self.narrowing = saved_narrowing
        finally:
            self._in_progress.discard(node)
            self._checked_bodies.add(node)

    def _return_type_of(self, function: SymbolType) -> SymbolType:
        """Return type of a function type, inferring it from the body if needed."""
        if function.return_type is None:
            node = self._lazy_returns.get(id(function))
            if node is not None:
                self._check_definition(node)
        return function.return_type if function.return_type is not None else ANY

    def _check_function_body(self, node: ASTNode, signature: SymbolType, name: str,
                             this_type: Optional[SymbolType]):
        """
        Check parameters and body of a function-like node, and fill in the
        signature's return type when it was not annotated.
        """
        declared_return = signature.return_type
        scope = self.symbol_table.enter_scope(ScopeKind.FUNCTION, name)
        scope.return_type = declared_return
        if this_type is not None:
            scope.this_type = this_type
        self.narrowing.append({})

        try:
            param_types = iter(signature.params)
            for param in node.params:
                if param.is_rest:
                    element = self._resolve_type_reference(param.type_annotation) \
                        if param.type_annotation else ANY
                    param_type = element if element.kind == TypeKind.LIST else list_of(element)
                else:
                    param_type = next(param_types, ANY)
                    if param.default_value is not None:
                        default_type = self._check_expression(param.default_value)
                        self._check_value_fits(param.default_value, default_type, param_type)
                try:
                    self.symbol_table.define_symbol(Symbol(
                        name=param.name,
                        kind=SymbolKind.PARAMETER,
                        symbol_type=param_type,
                        location=param.span.start,
                        ast_node=param,
                    ))
                except SemanticError as e:
                    self._report(e)
                param.resolved_type = param_type

            if isinstance(node.body, BlockStatement):
                self._collect_declarations(node.body.statements)
                for stmt in node.body.statements:
                    self._check_statement(stmt)
            else:
                scope.return_types.append(self._check_expression(node.body))
        finally:
            self.narrowing.pop()
            self.symbol_table.exit_scope()

        if declared_return is None:
            inferred = join_all(scope.return_types)
            if inferred is None:
                if self.strict:
                    self._report(create_divergent_return_error(
                        name, [str(t) for t in scope.return_types], node.span.start, node))
                inferred = ANY
            signature.return_type = inferred

    def _closure_narrowing(self) -> List[Facts]:
        """Narrowings that stay valid inside a nested function: those on immutable bindings."""
        merged: Facts = {}
        for facts in self.narrowing:
            merged.update(facts)
        kept = {}
        for key, narrowed in merged.items():
            root = self._path_roots.get(key[0])
            if root is not None and root.kind == SymbolKind.VARIABLE and not root.is_mutable:
                kept[key] = narrowed
        return [kept]

    # ========================================================================
    # Pass 2: Statements
    # ========================================================================

    def _check_statement(self, stmt: Statement, statement_position: bool = True):
        """Check one statement, collecting (not raising) its errors."""
        if statement_position:
            match = statement_level_match(stmt)
            if match is not None:
                self._statement_matches.add(match)
        try:
            if isinstance(stmt, VariableDecl):
                self._check_variable_decl_types(stmt)
            elif isinstance(stmt, FunctionDef):
                symbol = self.symbol_table.current_scope.lookup_symbol_local(stmt.name)
                if symbol is not None and symbol.ast_node is stmt:
                    stmt.resolved_type = symbol.symbol_type
            elif isinstance(stmt, ClassDef):
                self._check_class_types(stmt)
            elif isinstance(stmt, ImportDecl):
                if self.symbol_table.current_scope is not self.symbol_table.module_scope:
                    self._define_imports(stmt)
            elif isinstance(stmt, ExportDecl):
                self._check_export_types(stmt)
            elif isinstance(stmt, ExpressionStatement):
                self._check_expression(stmt.expression)
            elif isinstance(stmt, BlockStatement):
                self._check_block_statement_types(stmt, ScopeKind.BLOCK)
            elif isinstance(stmt, IfStatement):
                self._check_if_statement_types(stmt)
            elif isinstance(stmt, WhileLoop):
                self._check_while_loop_types(stmt)
            elif isinstance(stmt, ForRangeLoop):
                self._check_for_range_types(stmt)
            elif isinstance(stmt, ForOfLoop):
                self._check_for_of_types(stmt)
            elif isinstance(stmt, ForInLoop):
                self._check_for_in_types(stmt)
            elif isinstance(stmt, ForClassicLoop):
                self._check_for_classic_types(stmt)
            elif isinstance(stmt, MatchStatement):
                self._check_match_types(stmt)
            elif isinstance(stmt, TryStatement):
                self._check_try_statement_types(stmt)
            elif isinstance(stmt, ThrowStatement):
                self._check_expression(stmt.value)
            elif isinstance(stmt, ReturnStatement):
                self._check_return_statement_types(stmt)
                if self._leaves_match_expression(ScopeKind.FUNCTION):
                    self._report(create_match_arm_exit_error("return", stmt.span.start, stmt))
            elif isinstance(stmt, (BreakStatement, ContinueStatement)):
                keyword = "break" if isinstance(stmt, BreakStatement) else "continue"
                if not self.symbol_table.is_in_loop():
                    self._report(create_invalid_control_flow_error(keyword, "loop", stmt.span.start, stmt))
                elif self._leaves_match_expression(ScopeKind.LOOP):
                    self._report(create_match_arm_exit_error(keyword, stmt.span.start, stmt))
        except SemanticError as e:
            self._report(e)

    def _check_variable_decl_types(self, var_decl: VariableDecl):
        """Check types in a variable declaration."""
        var_type = None

        if var_decl.type_annotation:
            var_type = self._resolve_type_reference(var_decl.type_annotation)

        if var_decl.initializer:
            init_type = self._check_expression(var_decl.initializer)

            if var_type is None:
                # A binding initialized with null can later hold anything
                var_type = ANY if init_type.is_null else init_type
            else:
                self._check_value_fits(var_decl.initializer, init_type, var_type)

        if var_type is None:
            var_type = ANY

        pending = self.symbol_table.current_scope.lookup_symbol_local(var_decl.name)
        if pending is not None and pending.ast_node is var_decl and not pending.declared:
            pending.symbol_type = var_type
            pending.declared = True
        elif var_decl not in self._rejected:
            self.symbol_table.define_variable(
                var_decl.name, var_type, var_decl.span.start, var_decl.mutability, var_decl)

        var_decl.resolved_type = var_type
        self.type_annotations[var_decl] = var_type

    def _check_class_types(self, class_def: ClassDef):
        """Check field initializers and method bodies of a class."""
        symbol = self.symbol_table.current_scope.lookup_symbol_local(class_def.name)
        if symbol is None or symbol.ast_node is not class_def:
            return
        symbol.declared = True
        class_object = symbol.symbol_type
        instance = class_object.element
        class_def.resolved_type = class_object

        scope = self.symbol_table.enter_scope(ScopeKind.CLASS, class_def.name)
        scope.this_type = instance
        saved_narrowing = self.narrowing
        self.narrowing = [{}]
        try:
            for member in class_def.members:
                if isinstance(member, FieldDef):
                    self._check_field_types(member, class_object if member.is_static else instance)
                elif isinstance(member, MethodDef):
                    self._check_definition(member)
        finally:
            self.narrowing = saved_narrowing
            self.symbol_table.exit_scope()

    def _check_field_types(self, field_def: FieldDef, owner: SymbolType):
        if field_def.initializer is None:
            return
        scope = self.symbol_table.enter_scope(ScopeKind.FUNCTION, field_def.name)
        scope.this_type = owner
        try:
            init_type = self._check_expression(field_def.initializer)
        finally:
            self.symbol_table.exit_scope()

        if field_def.type_annotation:
            declared = owner.fields[field_def.name]
            self._check_value_fits(field_def.initializer, init_type, declared)
        elif not init_type.is_null:
            owner.fields[field_def.name] = init_type

    def _check_export_types(self, export_decl: ExportDecl):
        for spec in export_decl.specifiers:
            if self.symbol_table.module_scope.lookup_symbol(spec.local) is None:
                self._report(create_undefined_symbol_error(
                    spec.local, export_decl.span.start, export_decl,
                    self.symbol_table.module_scope.get_similar_names(spec.local)))

    def _check_block_statement_types(self, block: BlockStatement, kind: ScopeKind = ScopeKind.BLOCK,
                                     facts: Optional[Facts] = None,
                                     bindings: Optional[List[Symbol]] = None,
                                     embedded_arm: bool = False):
        """Check types in a block statement, in a fresh scope."""
        scope = self.symbol_table.enter_scope(kind, kind.value)
        self.narrowing.append(dict(facts) if facts else {})
        if embedded_arm:
            self._embedded_arm_scopes.add(id(scope))

        try:
            for symbol in bindings or []:
                self.symbol_table.define_symbol(symbol)
            self._collect_declarations(block.statements)
            for stmt in block.statements:
                self._check_statement(stmt)
        finally:
            self.narrowing.pop()
            self._embedded_arm_scopes.discard(id(scope))
            self.symbol_table.exit_scope()

    def _check_if_statement_types(self, if_stmt: IfStatement):
        """Check an if statement, narrowing inside each branch."""
        self._check_expression(if_stmt.condition)
        when_true, when_false = self._condition_facts(if_stmt.condition)

        self._check_branch(if_stmt.then_branch, when_true)
        if if_stmt.else_branch:
            self._check_branch(if_stmt.else_branch, when_false)

        # `if not have x { return }` narrows the rest of the enclosing block
        then_exits = self._always_exits(if_stmt.then_branch)
        else_exits = if_stmt.else_branch is not None and self._always_exits(if_stmt.else_branch)
        if then_exits and not else_exits:
            self.narrowing[-1].update(when_false)
        elif else_exits and not then_exits:
            self.narrowing[-1].update(when_true)

    def _check_branch(self, branch: Statement, facts: Facts):
        if isinstance(branch, BlockStatement):
            self._check_block_statement_types(branch, ScopeKind.BLOCK, facts)
        else:
            self.narrowing.append(dict(facts))
            try:
                self._check_statement(branch)
            finally:
                self.narrowing.pop()

    def _check_while_loop_types(self, while_loop: WhileLoop):
        """Check types in a while loop."""
        self._check_expression(while_loop.condition)
        when_true, _ = self._condition_facts(while_loop.condition)
        self._check_block_statement_types(while_loop.body, ScopeKind.LOOP, when_true)

    def _check_for_range_types(self, loop: ForRangeLoop):
        """Bounds and step of a counted loop must be numbers."""
        for bound in (loop.start, loop.end, loop.step):
            if bound is None:
                continue
            bound_type = self._require_present(bound, self._check_expression(bound))
            if not is_assignable(bound_type, NUMBER):
                self._report(create_type_mismatch_error("number", str(bound_type), bound.span.start, bound))

        variable = Symbol(loop.variable, SymbolKind.VARIABLE, NUMBER, loop.span.start,
                          mutability=Mutability.LET, ast_node=loop)
        self._check_block_statement_types(loop.body, ScopeKind.LOOP, bindings=[variable])

    def _check_for_of_types(self, loop: ForOfLoop):
        """Check types in an of-loop; the variable takes the element type."""
        iterable_type = self._require_present(loop.iterable, self._check_expression(loop.iterable))

        if iterable_type.kind == TypeKind.LIST:
            element_type = iterable_type.element
        elif iterable_type.is_primitive("string"):
            element_type = STRING
        elif iterable_type.kind == TypeKind.PRIMITIVE and not iterable_type.is_any:
            self._report(create_type_mismatch_error(
                "an iterable", str(iterable_type), loop.iterable.span.start, loop.iterable))
            element_type = ERROR
        else:
            element_type = ANY

        variable = Symbol(loop.variable, SymbolKind.VARIABLE, element_type, loop.span.start,
                          mutability=loop.binding or Mutability.CONST, ast_node=loop)
        self._check_block_statement_types(loop.body, ScopeKind.LOOP, bindings=[variable])

    def _check_for_in_types(self, loop: ForInLoop):
        """Check types in an in-loop; the variable is a key."""
        self._require_present(loop.target, self._check_expression(loop.target))
        variable = Symbol(loop.variable, SymbolKind.VARIABLE, STRING, loop.span.start,
                          mutability=loop.binding or Mutability.CONST, ast_node=loop)
        self._check_block_statement_types(loop.body, ScopeKind.LOOP, bindings=[variable])

    def _check_for_classic_types(self, loop: ForClassicLoop):
        self.symbol_table.enter_scope(ScopeKind.LOOP, "for")
        self.narrowing.append({})
        try:
            if loop.init is not None:
                self._check_statement(loop.init, statement_position=False)
            facts: Facts = {}
            if loop.condition is not None:
                self._check_expression(loop.condition)
                facts, _ = self._condition_facts(loop.condition)
            if loop.update is not None:
                self._check_expression(loop.update)
            self._check_block_statement_types(loop.body, ScopeKind.BLOCK, facts)
        finally:
            self.narrowing.pop()
            self.symbol_table.exit_scope()

    def _check_match_types(self, match) -> SymbolType:
        """Check a match statement or expression; returns the type of its value."""
        subject_type = self._check_expression(match.subject)
        arm_types = []
        embedded = isinstance(match, MatchExpression) and match not in self._statement_matches

        arms = list(match.arms) + ([match.else_arm] if match.else_arm else [])
        for arm in arms:
            for pattern in arm.patterns:
                pattern_type = self._check_expression(pattern)
                if join(strip_nullable(subject_type), pattern_type) is None and not pattern_type.is_null:
                    self._report(create_type_mismatch_error(
                        str(subject_type), str(pattern_type), pattern.span.start, pattern))
            if isinstance(arm.body, BlockStatement):
                self._check_block_statement_types(arm.body, ScopeKind.BLOCK, embedded_arm=embedded)
                arm_types.append(VOID)
            else:
                arm_types.append(self._check_expression(arm.body))

        result = join_all(arm_types) or ANY
        if match.else_arm is None and arm_types:
            result = nullable(result)
        return result

    def _check_try_statement_types(self, try_stmt: TryStatement):
        self._check_block_statement_types(try_stmt.body, ScopeKind.BLOCK)
        if try_stmt.catch_body is not None:
            bindings = []
            if try_stmt.catch_param:
                bindings.append(Symbol(try_stmt.catch_param, SymbolKind.VARIABLE, ANY,
                                       try_stmt.catch_body.span.start,
                                       mutability=Mutability.LET, ast_node=try_stmt))
            self._check_block_statement_types(try_stmt.catch_body, ScopeKind.BLOCK, bindings=bindings)
        if try_stmt.finally_body is not None:
            self._check_block_statement_types(try_stmt.finally_body, ScopeKind.BLOCK)

    def _check_return_statement_types(self, return_stmt: ReturnStatement):
        """Check types in a return statement."""
        if return_stmt.value:
            return_type = self._check_expression(return_stmt.value)
        else:
            return_type = VOID

        function_scope = self.symbol_table.get_current_function_scope()
        if function_scope is None:
            self._report(create_invalid_control_flow_error(
                "return", "function", return_stmt.span.start, return_stmt))
            return

        function_scope.return_types.append(return_type)

        declared = function_scope.return_type
        if declared is not None and not declared.is_primitive("void"):
            if return_stmt.value is None:
                if not is_assignable(return_type, declared):
                    self._report(create_type_mismatch_error(
                        str(declared), str(return_type), return_stmt.span.start, return_stmt))
            else:
                self._check_value_fits(return_stmt.value, return_type, declared, report_at=return_stmt)
        elif declared is not None and return_stmt.value is not None and not return_type.is_any:
            if not return_type.is_primitive("void"):
                self._report(create_type_mismatch_error(
                    "void", str(return_type), return_stmt.span.start, return_stmt))

    def _leaves_match_expression(self, target: ScopeKind) -> bool:
        """Would jumping to the nearest ``target`` scope leave a block arm of an embedded match expression?"""
        crossed = False
        current = self.symbol_table.current_scope
        while current:
            if current.kind == target:
                return crossed
            if current.kind in (ScopeKind.FUNCTION, ScopeKind.CLASS):
                return False
            if id(current) in self._embedded_arm_scopes:
                crossed = True
            current = current.parent
        return False

    # ========================================================================
    # Narrowing
    # ========================================================================

    def _path_key(self, expr: Expression) -> Optional[PathKey]:
        """Key identifying a narrowable place (a binding or a member path)."""
        if isinstance(expr, Identifier):
            symbol = self.symbol_table.lookup_symbol_safe(expr.name)
            if symbol is None:
                return None
            self._path_roots[id(symbol)] = symbol
            return (id(symbol),)
        if isinstance(expr, ThisExpression):
            return ("this",)
        if isinstance(expr, MemberAccess) and not expr.optional:
            base = self._path_key(expr.object)
            return base + (expr.member,) if base else None
        return None

    def _narrowed_type(self, key: Optional[PathKey]) -> Optional[SymbolType]:
        if key is None:
            return None
        for facts in reversed(self.narrowing):
            if key in facts:
                return facts[key]
        return None

    def _invalidate(self, key: Optional[PathKey]):
        """Forget narrowings of a place (and the places below it) after an assignment."""
        if key is None:
            return
        for facts in self.narrowing:
            for existing in list(facts):
                if existing[:len(key)] == key:
                    del facts[existing]

    def _condition_facts(self, condition: Expression) -> Tuple[Facts, Facts]:
        """What a condition proves when it is true, and when it is false."""
        if isinstance(condition, HaveExpression):
            key = self._path_key(condition.operand)
            operand_type = condition.operand.resolved_type
            if key is None or operand_type is None:
                return {}, {}
            return {key: strip_nullable(operand_type)}, {}

        if isinstance(condition, UnaryOp) and condition.operator == "!":
            when_true, when_false = self._condition_facts(condition.operand)
            return when_false, when_true

        if isinstance(condition, BinaryOp):
            if condition.operator == "&&":
                left_true, _ = self._condition_facts(condition.left)
                right_true, _ = self._condition_facts(condition.right)
                return {**left_true, **right_true}, {}
            if condition.operator == "||":
                _, left_false = self._condition_facts(condition.left)
                _, right_false = self._condition_facts(condition.right)
                return {}, {**left_false, **right_false}
            if condition.operator in EQUALITY_OPERATORS:
                compared = self._null_comparison_operand(condition)
                if compared is not None:
                    key = self._path_key(compared)
                    if key is None or compared.resolved_type is None:
                        return {}, {}
                    facts = {key: strip_nullable(compared.resolved_type)}
                    if condition.operator in ("!=", "!=="):
                        return facts, {}
                    return {}, facts

        return {}, {}

    @staticmethod
    def _null_comparison_operand(condition: BinaryOp) -> Optional[Expression]:
        def is_null(expr):
            return isinstance(expr, Literal) and expr.kind in ("null", "undefined")
        if is_null(condition.right):
            return condition.left
        if is_null(condition.left):
            return condition.right
        return None

    def _always_exits(self, stmt: Optional[Statement]) -> bool:
        if stmt is None:
            return False
        if isinstance(stmt, (ReturnStatement, ThrowStatement, BreakStatement, ContinueStatement)):
            return True
        if isinstance(stmt, BlockStatement):
            return any(self._always_exits(inner) for inner in stmt.statements)
        if isinstance(stmt, IfStatement):
            return self._always_exits(stmt.then_branch) and self._always_exits(stmt.else_branch)
        return False

    def _require_present(self, expr: Expression, expr_type: SymbolType) -> SymbolType:
        """Report a use of a possibly-null value where a value is required."""
        if expr_type.is_nullable:
            self._report(create_nullable_access_error(
                self._describe(expr), str(expr_type), expr.span.start, expr))
            return strip_nullable(expr_type)
        return expr_type

    def _describe(self, expr: Expression) -> str:
        if isinstance(expr, Identifier):
            return expr.name
        if isinstance(expr, ThisExpression):
            return "this"
        if isinstance(expr, MemberAccess):
            return f"{self._describe(expr.object)}{'?.' if expr.optional else '.'}{expr.member}"
        if isinstance(expr, FunctionCall):
            return f"{self._describe(expr.callee)}()"
        if isinstance(expr, IndexAccess):
            return f"{self._describe(expr.object)}[...]"
        return "expression"

    # ========================================================================
    # Expressions
    # ========================================================================

    def _check_expression(self, expr: Expression) -> SymbolType:
        """Check an expression and return (and record) its type."""
        expr_type = self._check_expression_types(expr)
        expr.resolved_type = expr_type
        self.type_annotations[expr] = expr_type
        return expr_type

    def _check_value_fits(self, value: Expression, value_type: SymbolType, expected: SymbolType,
                          report_at: Optional[ASTNode] = None):
        """
        Report a mismatch unless ``value`` fits a slot of type ``expected``.

        Array literals are checked element by element: a literal whose
        elements share no type is ``list<any>``, which fits any list slot.
        """
        misfit = self._misfit(value, value_type, expected)
        if misfit is None:
            return
        node, found, wanted = misfit
        if node is value and report_at is not None:
            node = report_at
        self._report(create_type_mismatch_error(str(wanted), str(found), node.span.start, node))

    def _misfit(self, value: Expression, value_type: SymbolType,
                expected: SymbolType) -> Optional[Tuple[Expression, SymbolType, SymbolType]]:
        if not is_assignable(value_type, expected):
            return value, value_type, expected
        target = strip_nullable(expected)
        if isinstance(value, ArrayLiteral) and target.kind == TypeKind.LIST:
            for element in value.elements:
                if isinstance(element, SpreadElement):
                    misfit = self._misfit(element.argument, element.argument.resolved_type or ANY, target)
                else:
                    misfit = self._misfit(element, element.resolved_type or ANY, target.element)
                if misfit is not None:
                    return misfit
        return None

    def _check_expression_types(self, expr: Expression) -> SymbolType:
        if isinstance(expr, Literal):
            return self._literal_type(expr)
        elif isinstance(expr, TemplateLiteral):
            for part in expr.expressions:
                self._check_expression(part)
            return STRING
        elif isinstance(expr, Identifier):
            return self._check_identifier_types(expr)
        elif isinstance(expr, ThisExpression):
            return self.symbol_table.get_this_type() or ANY
        elif isinstance(expr, SuperExpression):
            return ANY
        elif isinstance(expr, ArrayLiteral):
            return self._check_array_literal_types(expr)
        elif isinstance(expr, ObjectLiteral):
            return self._check_object_literal_types(expr)
        elif isinstance(expr, BinaryOp):
            return self._check_binary_op_types(expr)
        elif isinstance(expr, UnaryOp):
            return self._check_unary_op_types(expr)
        elif isinstance(expr, HaveExpression):
            self._check_expression(expr.operand)
            return BOOLEAN
        elif isinstance(expr, UpdateExpression):
            return self._check_update_types(expr)
        elif isinstance(expr, Assignment):
            return self._check_assignment_types(expr)
        elif isinstance(expr, ConditionalExpression):
            return self._check_conditional_types(expr)
        elif isinstance(expr, FunctionCall):
            return self._check_function_call_types(expr)
        elif isinstance(expr, MemberAccess):
            return self._check_member_access_types(expr)
        elif isinstance(expr, IndexAccess):
            return self._check_index_access_types(expr)
        elif isinstance(expr, NewExpression):
            return self._check_new_expression_types(expr)
        elif isinstance(expr, ArrowFunction):
            return self._check_arrow_function_types(expr)
        elif isinstance(expr, SpreadElement):
            return self._check_expression(expr.argument)
        elif isinstance(expr, AwaitExpression):
            argument_type = self._check_expression(expr.argument)
            return argument_type if not argument_type.is_any else ANY
        elif isinstance(expr, MatchExpression):
            return self._check_match_types(expr)
        else:
            return ANY

    @staticmethod
    def _literal_type(literal: Literal) -> SymbolType:
        return {
            "number": NUMBER,
            "string": STRING,
            "boolean": BOOLEAN,
        }.get(literal.kind, NULL)

    def _check_identifier_types(self, identifier: Identifier) -> SymbolType:
        """Resolve a name; applies any narrowing in effect."""
        symbol = self.symbol_table.lookup_symbol_safe(identifier.name)
        if symbol is None:
            self._report(create_undefined_symbol_error(
                identifier.name, identifier.span.start, identifier,
                self.symbol_table.current_scope.get_similar_names(identifier.name)))
            return ERROR

        identifier.symbol = symbol
        if not symbol.declared and not self._in_deferred_context():
            self._report(create_use_before_declaration_error(
                identifier.name, identifier.span.start, identifier))

        narrowed = self._narrowed_type(self._path_key(identifier))
        return narrowed if narrowed is not None else symbol.symbol_type

    def _in_deferred_context(self) -> bool:
        """Code inside functions and classes runs later, after every top-level binding exists."""
        current = self.symbol_table.current_scope
        while current:
            if current.kind in (ScopeKind.FUNCTION, ScopeKind.CLASS):
                return True
            current = current.parent
        return False

    def _check_array_literal_types(self, array: ArrayLiteral) -> SymbolType:
        element_types = []
        for element in array.elements:
            element_type = self._check_expression(element)
            if isinstance(element, SpreadElement):
                element_type = element_type.element if element_type.kind == TypeKind.LIST else ANY
            element_types.append(element_type)
        if not element_types:
            return list_of(ANY)
        return list_of(join_all(element_types) or ANY)

    def _check_object_literal_types(self, obj: ObjectLiteral) -> SymbolType:
        if not obj.properties:
            return OPEN_MAP
        fields: Dict[str, SymbolType] = {}
        is_open = False
        for prop in obj.properties:
            if isinstance(prop, SpreadElement):
                spread_type = self._check_expression(prop.argument)
                if spread_type.kind == TypeKind.MAP and spread_type.fields is not None:
                    fields.update(spread_type.fields)
                else:
                    is_open = True
                continue
            if prop.computed is not None:
                self._check_expression(prop.computed)
                is_open = True
            value_type = self._check_expression(prop.value)
            if prop.computed is None:
                fields[prop.key] = value_type
        return map_type(None if is_open else fields)

    def _check_binary_op_types(self, binary_op: BinaryOp) -> SymbolType:
        """Check types for a binary operation."""
        operator = binary_op.operator

        if operator in ("&&", "||"):
            left_type = self._check_expression(binary_op.left)
            when_true, when_false = self._condition_facts(binary_op.left)
            self.narrowing.append(dict(when_true if operator == "&&" else when_false))
            try:
                right_type = self._check_expression(binary_op.right)
            finally:
                self.narrowing.pop()
            if left_type.is_primitive("boolean") and right_type.is_primitive("boolean"):
                return BOOLEAN
            if operator == "||":
                left_type = strip_nullable(left_type)
            return join(left_type, right_type) or ANY

        if operator == "??":
            left_type = self._check_expression(binary_op.left)
            right_type = self._check_expression(binary_op.right)
            return join(strip_nullable(left_type), right_type) or ANY

        left_type = self._check_expression(binary_op.left)
        right_type = self._check_expression(binary_op.right)
        return self._infer_binary_op_result_type(
            operator, left_type, right_type, binary_op, binary_op.left, binary_op.right)

    def _infer_binary_op_result_type(self, operator: str, left_type: SymbolType,
                                     right_type: SymbolType, node: ASTNode,
                                     left: Expression, right: Expression) -> SymbolType:
        if operator in EQUALITY_OPERATORS or operator in ("instanceof", "in"):
            return BOOLEAN

        left_type = self._require_present(left, left_type)
        right_type = self._require_present(right, right_type)

        if operator == "+":
            if left_type.is_primitive("string") or right_type.is_primitive("string"):
                return STRING
            if left_type.is_any or right_type.is_any:
                return ANY
            if left_type.is_primitive("number") and right_type.is_primitive("number"):
                return NUMBER
            self._report(create_invalid_operands_error(
                operator, str(left_type), str(right_type), node.span.start, node))
            return ERROR

        if operator in ARITHMETIC_OPERATORS:
            for operand_type in (left_type, right_type):
                if not is_assignable(operand_type, NUMBER):
                    self._report(create_invalid_operands_error(
                        operator, str(left_type), str(right_type), node.span.start, node))
                    break
            return NUMBER

        if operator in RELATIONAL_OPERATORS:
            comparable = (
                left_type.is_any or right_type.is_any
                or (left_type.is_primitive("number") and right_type.is_primitive("number"))
                or (left_type.is_primitive("string") and right_type.is_primitive("string"))
            )
            if not comparable:
                self._report(create_invalid_operands_error(
                    operator, str(left_type), str(right_type), node.span.start, node))
            return BOOLEAN

        return ANY

    def _check_unary_op_types(self, unary_op: UnaryOp) -> SymbolType:
        """Check types for a unary operation."""
        operand_type = self._check_expression(unary_op.operand)

        if unary_op.operator == "!":
            return BOOLEAN
        if unary_op.operator == "typeof":
            return STRING
        if unary_op.operator in ("-", "+"):
            operand_type = self._require_present(unary_op.operand, operand_type)
            if unary_op.operator == "-" and not is_assignable(operand_type, NUMBER):
                self._report(create_type_mismatch_error(
                    "number", str(operand_type), unary_op.span.start, unary_op))
            return NUMBER
        return ANY

    def _check_update_types(self, update: UpdateExpression) -> SymbolType:
        target_type = self._check_assignment_target(update.operand)
        target_type = self._require_present(update.operand, target_type)
        if not is_assignable(target_type, NUMBER):
            self._report(create_type_mismatch_error(
                "number", str(target_type), update.span.start, update))
        return NUMBER

    def _check_assignment_types(self, assignment: Assignment) -> SymbolType:
        """Check an assignment: target mutability and value compatibility."""
        value_type = self._check_expression(assignment.value)
        target_type = self._check_assignment_target(assignment.target)
        operator = assignment.operator

        if operator == "=":
            result_type = value_type
        elif operator in ("??=", "||="):
            result_type = join(strip_nullable(target_type), value_type) or ANY
        elif operator == "&&=":
            result_type = value_type
        else:
            result_type = self._infer_binary_op_result_type(
                operator[:-1], target_type, value_type, assignment, assignment.target, assignment.value)

        self._check_value_fits(assignment.value, result_type, target_type)

        self._invalidate(self._path_key(assignment.target))
        return value_type

    def _check_assignment_target(self, target: Expression) -> SymbolType:
        """Check that ``target`` can be assigned; returns the type it was declared with."""
        if isinstance(target, Identifier):
            symbol = self.symbol_table.lookup_symbol_safe(target.name)
            if symbol is None:
                self._report(create_undefined_symbol_error(
                    target.name, target.span.start, target,
                    self.symbol_table.current_scope.get_similar_names(target.name)))
                target.resolved_type = ERROR
                return ERROR

            target.symbol = symbol
            if not symbol.declared and not self._in_deferred_context():
                self._report(create_use_before_declaration_error(target.name, target.span.start, target))
            if not symbol.is_mutable and symbol.kind != SymbolKind.BUILTIN:
                self._report(create_immutable_assignment_error(
                    target.name, symbol.binding_description(), target.span.start, target))
            target.resolved_type = symbol.symbol_type
            return symbol.symbol_type

        if isinstance(target, MemberAccess):
            object_type = self._check_expression(target.object)
            object_type = self._require_present(target.object, object_type)
            member_type = self._member_type(object_type, target.member, target)
            target.resolved_type = member_type
            return member_type

        if isinstance(target, IndexAccess):
            return self._check_expression(target)

        return self._check_expression(target)

    def _check_conditional_types(self, conditional: ConditionalExpression) -> SymbolType:
        self._check_expression(conditional.condition)
        when_true, when_false = self._condition_facts(conditional.condition)

        self.narrowing.append(dict(when_true))
        try:
            then_type = self._check_expression(conditional.then_expr)
        finally:
            self.narrowing.pop()

        self.narrowing.append(dict(when_false))
        try:
            else_type = self._check_expression(conditional.else_expr)
        finally:
            self.narrowing.pop()

        return join(then_type, else_type) or ANY

    # ------------------------------------------------------------------
    # Calls and member access (optional chains short-circuit as a whole)
    # ------------------------------------------------------------------

    @staticmethod
    def _continues_chain(node: Expression) -> bool:
        parent = node.parent
        if isinstance(parent, (MemberAccess, IndexAccess)):
            return parent.object is node
        if isinstance(parent, FunctionCall):
            return parent.callee is node
        return False

    def _chain_result(self, node: Expression, result: SymbolType, short_circuits: bool) -> SymbolType:
        node.set_attribute("short_circuits", short_circuits)
        if short_circuits and not self._continues_chain(node):
            return nullable(result)
        return result

    def _check_chain_base(self, node: Expression, base: Expression, optional: bool) -> Tuple[SymbolType, bool]:
        """Type of the object/callee of a chain link, and whether the chain may short-circuit."""
        base_type = self._check_expression(base)
        short_circuits = bool(base.get_attribute("short_circuits", False))
        if base_type.is_nullable:
            if optional:
                short_circuits = True
                base_type = strip_nullable(base_type)
            else:
                base_type = self._require_present(base, base_type)
        return base_type, short_circuits

    def _check_function_call_types(self, call: FunctionCall) -> SymbolType:
        """Check a call: callee must be callable; arguments must match."""
        if isinstance(call.callee, SuperExpression):
            for argument in call.arguments:
                self._check_expression(argument)
            return VOID

        callee_type, short_circuits = self._check_chain_base(call, call.callee, call.optional)
        argument_types = [self._check_expression(argument) for argument in call.arguments]

        if callee_type.is_any:
            return self._chain_result(call, ANY, short_circuits)

        if callee_type.kind == TypeKind.FUNCTION:
            self._check_arguments(call, self._describe(call.callee), callee_type, call.arguments, argument_types)
            return_type = self._return_type_of(callee_type)
            if callee_type.is_async:
                return_type = ANY
            return self._chain_result(call, return_type, short_circuits)

        self._report(create_not_callable_error(str(callee_type), call.span.start, call))
        return self._chain_result(call, ERROR, short_circuits)

    def _check_arguments(self, node: ASTNode, name: str, signature: SymbolType,
                         arguments: List[Expression], argument_types: List[SymbolType]):
        if any(isinstance(argument, SpreadElement) for argument in arguments):
            return

        count = len(arguments)
        too_few = count < signature.min_arity
        too_many = not signature.variadic and count > len(signature.params)
        if too_few or too_many:
            if signature.variadic:
                expected = f"at least {signature.min_arity}"
            elif signature.min_arity == len(signature.params):
                expected = str(signature.min_arity)
            else:
                expected = f"{signature.min_arity} to {len(signature.params)}"
            self._report(create_arity_mismatch_error(name, expected, count, node.span.start, node))

        for argument, argument_type, param_type in zip(arguments, argument_types, signature.params):
            self._check_value_fits(argument, argument_type, param_type)

    def _check_member_access_types(self, access: MemberAccess) -> SymbolType:
        object_type, short_circuits = self._check_chain_base(access, access.object, access.optional)
        member_type = self._member_type(object_type, access.member, access)

        narrowed = self._narrowed_type(self._path_key(access))
        if narrowed is not None:
            member_type = narrowed
        return self._chain_result(access, member_type, short_circuits)

    def _member_type(self, object_type: SymbolType, member: str, node: ASTNode) -> SymbolType:
        """Type of ``object.member`` for a non-null object type."""
        if object_type.is_any:
            return ANY

        kind = object_type.kind
        if kind in (TypeKind.LIST, TypeKind.PRIMITIVE) and member == "length":
            if kind == TypeKind.LIST or object_type.is_primitive("string"):
                return NUMBER

        if kind == TypeKind.PRIMITIVE:
            if object_type.is_primitive("void"):
                self._report(create_unknown_member_error(member, "void", node.span.start, node))
                return ERROR
            return ANY

        if kind in (TypeKind.LIST, TypeKind.FUNCTION):
            return ANY

        if kind == TypeKind.MAP:
            if object_type.fields is None:
                return ANY
            if member in object_type.fields:
                return object_type.fields[member]
            if member in OBJECT_PROTOTYPE_MEMBERS:
                return ANY
            self._report(create_unknown_member_error(
                member, str(object_type), node.span.start, node,
                self._similar_members(member, object_type)))
            return ERROR

        if kind in (TypeKind.CLASS, TypeKind.CLASS_OBJECT):
            found = object_type.lookup_member(member)
            if found is not None:
                return found
            if object_type.has_open_ancestry() or member in OBJECT_PROTOTYPE_MEMBERS:
                return ANY
            if kind == TypeKind.CLASS_OBJECT and member in CLASS_OBJECT_MEMBERS:
                return ANY
            self._report(create_unknown_member_error(
                member, str(object_type), node.span.start, node,
                self._similar_members(member, object_type)))
            return ERROR

        return ANY

    @staticmethod
    def _similar_members(member: str, object_type: SymbolType) -> List[str]:
        names = []
        current = object_type
        while current is not None and current.fields is not None:
            names.extend(current.fields)
            current = current.superclass
        return [name for name in names if edit_distance(member.lower(), name.lower()) <= 2]

    def _check_index_access_types(self, access: IndexAccess) -> SymbolType:
        object_type, short_circuits = self._check_chain_base(access, access.object, access.optional)
        index_type = self._check_expression(access.index)

        if object_type.kind == TypeKind.LIST:
            result = object_type.element
        elif object_type.is_primitive("string"):
            result = STRING
        elif (object_type.kind == TypeKind.MAP and object_type.fields is not None
              and isinstance(access.index, Literal) and access.index.kind == "string"
              and access.index.value in object_type.fields):
            result = object_type.fields[access.index.value]
        else:
            result = ANY

        if object_type.kind == TypeKind.LIST and not is_assignable(index_type, NUMBER):
            self._report(create_type_mismatch_error(
                "number", str(index_type), access.index.span.start, access.index))

        return self._chain_result(access, result, short_circuits)

    def _check_new_expression_types(self, new_expr: NewExpression) -> SymbolType:
        callee_type = self._check_expression(new_expr.callee)
        argument_types = [self._check_expression(argument) for argument in new_expr.arguments]

        if callee_type.kind == TypeKind.CLASS_OBJECT:
            self._check_arguments(new_expr, callee_type.name, callee_type,
                                  new_expr.arguments, argument_types)
            return callee_type.element
        if callee_type.is_any or callee_type.kind == TypeKind.FUNCTION:
            return ANY

        self._report(create_not_callable_error(str(callee_type), new_expr.span.start, new_expr))
        return ERROR

    def _check_arrow_function_types(self, arrow: ArrowFunction) -> SymbolType:
        signature = self._signature_of(arrow.params, arrow.return_type, arrow.is_async)
        saved_narrowing = self.narrowing
        self.narrowing = self._closure_narrowing()
        try:
            self._check_function_body(arrow, signature, "<arrow>", None)
        finally:
            self.narrowing = saved_narrowing
        return signature

    # ========================================================================
    # Type annotations
    # ========================================================================

    def _resolve_type_reference(self, type_ref: TypeRef) -> SymbolType:
        """Resolve a type annotation from the AST to a SymbolType."""
        if isinstance(type_ref, SimpleTypeRef):
            if type_ref.name in TYPE_ALIASES:
                return TYPE_ALIASES[type_ref.name]
            if type_ref.name in ("list", "array"):
                return list_of(ANY)
            symbol = self.symbol_table.lookup_symbol_safe(type_ref.name)
            if symbol is not None and symbol.kind == SymbolKind.CLASS:
                return symbol.symbol_type.element
            if symbol is not None and symbol.kind in (SymbolKind.BUILTIN, SymbolKind.IMPORT):
                return ANY
            self._report(create_undefined_type_error(type_ref.name, type_ref.span.start, type_ref))
            return ERROR

        if isinstance(type_ref, ListTypeRef):
            return list_of(self._resolve_type_reference(type_ref.element))

        if isinstance(type_ref, NullableTypeRef):
            return nullable(self._resolve_type_reference(type_ref.inner))

        if isinstance(type_ref, FunctionTypeRef):
            params = [self._resolve_type_reference(param) for param in type_ref.params]
            return_type = self._resolve_type_reference(type_ref.return_type) \
                if type_ref.return_type else VOID
            return function_type(params, return_type)

        if isinstance(type_ref, ShapeTypeRef):
            return map_type({name: self._resolve_type_reference(field_ref)
                             for name, field_ref in type_ref.fields})

        return ANY


def check_program(program: Program, strict: bool = False, target: str = "node") -> AnalysisResult:
    """Type check a program with a fresh symbol table."""
    return TypeChecker(strict=strict, target=target).check(program)
