"""
Dead-code elimination over top-level declarations.

Builds a reference graph between top-level declarations from identifier
resolution (the checker's symbols when type checking ran, plain name
matching otherwise) and keeps the transitive closure of the roots:

- exported declarations and names in export lists
- every top-level statement that is not a declaration
- declarations whose initializers may have side effects

Imports, exports and non-declaration statements are never removed. A unit
with no roots at all (only declarations, none exported or effectful) is a
library: everything in it is kept.

Author: xwest
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set

from ..parser.ast_nodes import (
    ASTNode, Program, Statement, VariableDecl, FunctionDef, ClassDef, FieldDef, MethodDef,
    ExportDecl, ImportDecl, Identifier, FunctionCall, NewExpression, AwaitExpression, Assignment,
    UpdateExpression, IndexAccess, ThisExpression, ArrowFunction, TypeRef, walk,
)

logger = logging.getLogger(__name__)

TopLevelDeclaration = (VariableDecl, FunctionDef, ClassDef)

# Index access on these names can reach any top-level binding
DYNAMIC_SCOPE_OBJECTS = {"globalThis", "window", "global", "self"}


@dataclass
class ShakeResult:
    """Outcome of tree shaking one program."""
    program: Program
    retained: List[Statement]
    removed: List[Statement] = field(default_factory=list)
    dynamic_access: bool = False

    @property
    def removed_names(self) -> List[str]:
        return [decl.name for decl in self.removed]


class TreeShaker:
    """
    Reachability analysis over the top-level declarations of a program.

    ``shake`` returns a new Program holding the retained statements in
    their original order; the input program's body list is left as is.
    """

    def __init__(self, program: Program):
        self.program = program
        self.declarations: List[Statement] = [
            stmt for stmt in program.body if isinstance(stmt, TopLevelDeclaration)
        ]
        self._by_name: Dict[str, List[Statement]] = {}
        for decl in self.declarations:
            self._by_name.setdefault(decl.name, []).append(decl)
        self._declaration_set: Set[Statement] = set(self.declarations)
        self.dynamic_access = False

    def shake(self) -> ShakeResult:
        """Compute the reachable declarations and drop the rest."""
        reachable = self.compute_reachable()

        retained = []
        removed = []
        for stmt in self.program.body:
            if isinstance(stmt, TopLevelDeclaration) and stmt not in reachable:
                removed.append(stmt)
            else:
                retained.append(stmt)

        if removed:
            logger.debug("Tree shaking removed %d declarations: %s",
                         len(removed), ", ".join(decl.name for decl in removed))

        return ShakeResult(
            program=Program(retained, self.program.span),
            retained=retained,
            removed=removed,
            dynamic_access=self.dynamic_access,
        )

    def compute_reachable(self) -> Set[Statement]:
        """Transitive closure of the declarations reachable from the roots."""
        roots = self._roots()
        if not roots and not any(isinstance(stmt, ExportDecl) for stmt in self.program.body):
            logger.debug("No exports or entry statements; keeping every declaration")
            return set(self.declarations)

        visited: Set[Statement] = set()
        queue: Deque[ASTNode] = deque(roots)
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            for target in self._references(node):
                if target not in visited:
                    queue.append(target)
            if self.dynamic_access:
                return set(self.declarations)

        return {node for node in visited if node in self._declaration_set}

    # ------------------------------------------------------------------
    # Graph construction
    # ------------------------------------------------------------------

    def _roots(self) -> List[ASTNode]:
        roots: List[ASTNode] = []
        for stmt in self.program.body:
            if isinstance(stmt, TopLevelDeclaration):
                if stmt.exported or self._has_side_effects(stmt):
                    roots.append(stmt)
            elif isinstance(stmt, ExportDecl):
                for spec in stmt.specifiers:
                    roots.extend(self._by_name.get(spec.local, []))
            elif not isinstance(stmt, ImportDecl):
                roots.append(stmt)
        return roots

    def _has_side_effects(self, decl: Statement) -> bool:
        """Could evaluating this declaration do something observable?"""
        if isinstance(decl, VariableDecl):
            return decl.initializer is not None and self._may_have_effects(decl.initializer)
        if isinstance(decl, ClassDef):
            return any(
                isinstance(member, FieldDef) and member.is_static and member.initializer is not None
                and self._may_have_effects(member.initializer)
                for member in decl.members
            )
        return False

    @staticmethod
    def _may_have_effects(expression: ASTNode) -> bool:
        stack = [expression]
        while stack:
            node = stack.pop()
            if isinstance(node, (FunctionCall, NewExpression, AwaitExpression, Assignment, UpdateExpression)):
                return True
            # A function value does nothing until it is called
            if isinstance(node, ArrowFunction):
                continue
            stack.extend(node.children())
        return False

    def _references(self, node: ASTNode) -> List[Statement]:
        """Top-level declarations referenced anywhere inside ``node``."""
        found: List[Statement] = []
        for inner in walk(node):
            if isinstance(inner, TypeRef):
                continue
            if isinstance(inner, Identifier):
                found.extend(self._resolve(inner))
            elif self._is_dynamic_access(inner):
                logger.debug("Dynamic access at %s keeps every declaration", inner.span.start)
                self.dynamic_access = True
        return found

    def _resolve(self, identifier: Identifier) -> List[Statement]:
        symbol = identifier.symbol
        if symbol is not None:
            target = symbol.ast_node
            return [target] if target in self._declaration_set else []
        # Unchecked program: any top-level declaration of that name
        return self._by_name.get(identifier.name, [])

    def _is_dynamic_access(self, node: ASTNode) -> bool:
        if isinstance(node, FunctionCall):
            return isinstance(node.callee, Identifier) and node.callee.name == "eval"
        if isinstance(node, IndexAccess):
            if isinstance(node.object, Identifier) and node.object.name in DYNAMIC_SCOPE_OBJECTS:
                return True
            if isinstance(node.object, ThisExpression):
                return self._enclosing_function(node) is None
        return False

    @staticmethod
    def _enclosing_function(node: ASTNode) -> Optional[ASTNode]:
        current = node.parent
        while current is not None:
            if isinstance(current, (FunctionDef, MethodDef, ArrowFunction, ClassDef)):
                return current
            current = current.parent
        return None


def shake_program(program: Program) -> ShakeResult:
    """Run tree shaking on a program."""
    return TreeShaker(program).shake()
