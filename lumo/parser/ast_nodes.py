"""
Abstract Syntax Tree node definitions for Lumo.

Every surface variant of a construct (type-first vs keyword-first
declarations, `and` vs `&&`, parenthesised vs bare for headers) is
normalized by the parser into one node shape defined here. Each node
owns a source span and, once the type checker has run, a
``resolved_type``.

Author: xwest
"""

from abc import ABC
from typing import List, Optional, Any, Union, Dict, Iterator, Tuple
from dataclasses import dataclass
from enum import Enum
import uuid

from ..lexer.tokens import SourceSpan


class ASTNodeType(Enum):
    """Enumeration of all AST node types."""

    # Top-level
    PROGRAM = "Program"

    # Declarations
    VARIABLE_DECL = "VariableDecl"
    FUNCTION_DEF = "FunctionDef"
    PARAMETER = "Parameter"
    CLASS_DEF = "ClassDef"
    METHOD_DEF = "MethodDef"
    FIELD_DEF = "FieldDef"
    IMPORT_DECL = "ImportDecl"
    EXPORT_DECL = "ExportDecl"

    # Statements
    EXPRESSION_STMT = "ExpressionStatement"
    BLOCK_STATEMENT = "BlockStatement"
    IF_STATEMENT = "IfStatement"
    WHILE_LOOP = "WhileLoop"
    FOR_RANGE_LOOP = "ForRangeLoop"
    FOR_OF_LOOP = "ForOfLoop"
    FOR_IN_LOOP = "ForInLoop"
    FOR_CLASSIC_LOOP = "ForClassicLoop"
    MATCH_STATEMENT = "MatchStatement"
    MATCH_ARM = "MatchArm"
    TRY_STATEMENT = "TryStatement"
    THROW_STATEMENT = "ThrowStatement"
    RETURN_STATEMENT = "ReturnStatement"
    BREAK_STATEMENT = "BreakStatement"
    CONTINUE_STATEMENT = "ContinueStatement"

    # Expressions
    LITERAL = "Literal"
    TEMPLATE_LITERAL = "TemplateLiteral"
    IDENTIFIER = "Identifier"
    THIS = "This"
    SUPER = "Super"
    ARRAY_LITERAL = "ArrayLiteral"
    OBJECT_LITERAL = "ObjectLiteral"
    OBJECT_PROPERTY = "ObjectProperty"
    BINARY_OP = "BinaryOp"
    UNARY_OP = "UnaryOp"
    HAVE = "Have"
    UPDATE = "Update"
    ASSIGNMENT = "Assignment"
    CONDITIONAL = "Conditional"
    FUNCTION_CALL = "FunctionCall"
    MEMBER_ACCESS = "MemberAccess"
    INDEX_ACCESS = "IndexAccess"
    NEW_EXPRESSION = "NewExpression"
    ARROW_FUNCTION = "ArrowFunction"
    SPREAD = "Spread"
    AWAIT_EXPRESSION = "AwaitExpression"
    MATCH_EXPRESSION = "MatchExpression"

    # Types
    SIMPLE_TYPE = "SimpleType"
    LIST_TYPE = "ListType"
    NULLABLE_TYPE = "NullableType"
    FUNCTION_TYPE = "FunctionType"
    SHAPE_TYPE = "ShapeType"


class Mutability(Enum):
    """Mutability kind of a binding; fixed for the binding's lifetime."""
    AUTO_CONST = "auto-const"   # `x = 1` with no keyword
    VAR = "var"
    LET = "let"
    CONST = "const"
    INIT = "init"

    @property
    def is_immutable(self) -> bool:
        return self in (Mutability.AUTO_CONST, Mutability.CONST, Mutability.INIT)


class ASTVisitor(ABC):
    """
    Visitor base class.

    ``visit`` dispatches to ``visit_<ClassName>`` and falls back to
    ``generic_visit``, which visits the children.
    """

    def visit(self, node: 'ASTNode') -> Any:
        method = getattr(self, f"visit_{node.__class__.__name__}", self.generic_visit)
        return method(node)

    def generic_visit(self, node: 'ASTNode') -> Any:
        for child in node.children():
            self.visit(child)
        return None


class ASTNode(ABC):
    """Base class for all AST nodes."""

    def __init__(self, node_type: ASTNodeType, span: SourceSpan):
        self.node_type = node_type
        self.span = span
        self.parent: Optional['ASTNode'] = None
        self.attributes: Dict[str, Any] = {}
        self.resolved_type = None  # set by the type checker
        # Generate unique ID for hashability
        self._id = uuid.uuid4()

    def accept(self, visitor: ASTVisitor) -> Any:
        """Accept a visitor (visitor pattern)."""
        return visitor.visit(self)

    def children(self) -> List['ASTNode']:
        """Get all child nodes."""
        return []

    def set_parent(self, parent: 'ASTNode'):
        """Set the parent node."""
        self.parent = parent

    def _adopt(self, *nodes):
        """Make this node the parent of every given node (lists allowed, None skipped)."""
        for node in nodes:
            if node is None:
                continue
            if isinstance(node, list):
                for item in node:
                    item.set_parent(self)
            else:
                node.set_parent(self)

    def get_attribute(self, key: str, default: Any = None) -> Any:
        """Get an attribute value."""
        return self.attributes.get(key, default)

    def set_attribute(self, key: str, value: Any):
        """Set an attribute value."""
        self.attributes[key] = value

    def __str__(self) -> str:
        return f"{self.node_type.value}@{self.span}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(span={self.span})"

    def __hash__(self) -> int:
        """Hash based on unique ID for use in dictionaries."""
        return hash(self._id)

    def __eq__(self, other) -> bool:
        """Equality based on unique ID."""
        if not isinstance(other, ASTNode):
            return False
        return self._id == other._id


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yield ``node`` and all of its descendants, depth first, in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children()))


def _present(*nodes) -> List[ASTNode]:
    result = []
    for node in nodes:
        if node is None:
            continue
        if isinstance(node, list):
            result.extend(node)
        else:
            result.append(node)
    return result


# ============================================================================
# Top-level nodes
# ============================================================================

class Program(ASTNode):
    """Root AST node representing a complete compilation unit."""
    body: List['Statement']

    def __init__(self, body: List['Statement'], span: SourceSpan):
        super().__init__(ASTNodeType.PROGRAM, span)
        self.body = body
        self._adopt(body)

    def children(self) -> List[ASTNode]:
        return list(self.body)


# ============================================================================
# Statements
# ============================================================================

class Statement(ASTNode):
    """Base class for statements."""
    pass


class Declaration(Statement):
    """Base class for statements that bind a name."""
    name: str
    exported: bool = False


class VariableDecl(Declaration):
    """
    Variable declaration.

    ``x = 1``, ``x: num = 1`` and ``const x: num = 1`` all produce this node;
    only ``mutability`` records the keyword that was used. ``reassigned`` is
    set by the parser when a later assignment in the unit targets the binding.
    """
    name: str
    type_annotation: Optional['TypeRef']
    initializer: Optional['Expression']
    mutability: Mutability

    def __init__(self, name: str, type_annotation: Optional['TypeRef'],
                 initializer: Optional['Expression'], mutability: Mutability,
                 span: SourceSpan, **kwargs):
        super().__init__(ASTNodeType.VARIABLE_DECL, span)
        self.name = name
        self.type_annotation = type_annotation
        self.initializer = initializer
        self.mutability = mutability
        self.exported = kwargs.get('exported', False)
        self.reassigned = False
        self._adopt(type_annotation, initializer)

    def children(self) -> List[ASTNode]:
        return _present(self.type_annotation, self.initializer)


class Parameter(ASTNode):
    """Function parameter (`name: type = default`, or `...rest`)."""
    name: str
    type_annotation: Optional['TypeRef']
    default_value: Optional['Expression']
    is_rest: bool = False

    def __init__(self, name: str, type_annotation: Optional['TypeRef'],
                 default_value: Optional['Expression'], span: SourceSpan,
                 is_rest: bool = False):
        super().__init__(ASTNodeType.PARAMETER, span)
        self.name = name
        self.type_annotation = type_annotation
        self.default_value = default_value
        self.is_rest = is_rest
        self._adopt(type_annotation, default_value)

    def children(self) -> List[ASTNode]:
        return _present(self.type_annotation, self.default_value)


class FunctionDef(Declaration):
    """Named function declaration."""
    name: str
    params: List[Parameter]
    return_type: Optional['TypeRef']
    body: 'BlockStatement'
    is_async: bool = False

    def __init__(self, name: str, params: List[Parameter], return_type: Optional['TypeRef'],
                 body: 'BlockStatement', span: SourceSpan, **kwargs):
        super().__init__(ASTNodeType.FUNCTION_DEF, span)
        self.name = name
        self.params = params
        self.return_type = return_type
        self.body = body
        self.is_async = kwargs.get('is_async', False)
        self.exported = kwargs.get('exported', False)
        self._adopt(params, return_type, body)

    def children(self) -> List[ASTNode]:
        return _present(self.params, self.return_type, self.body)


class MethodDef(ASTNode):
    """Class method; ``name == "constructor"`` marks the constructor."""

    def __init__(self, name: str, params: List[Parameter], return_type: Optional['TypeRef'],
                 body: 'BlockStatement', span: SourceSpan, **kwargs):
        super().__init__(ASTNodeType.METHOD_DEF, span)
        self.name = name
        self.params = params
        self.return_type = return_type
        self.body = body
        self.is_static = kwargs.get('is_static', False)
        self.is_async = kwargs.get('is_async', False)
        self._adopt(params, return_type, body)

    @property
    def is_constructor(self) -> bool:
        return self.name == "constructor" and not self.is_static

    def children(self) -> List[ASTNode]:
        return _present(self.params, self.return_type, self.body)


class FieldDef(ASTNode):
    """Class field (instance or static)."""

    def __init__(self, name: str, type_annotation: Optional['TypeRef'],
                 initializer: Optional['Expression'], span: SourceSpan, is_static: bool = False):
        super().__init__(ASTNodeType.FIELD_DEF, span)
        self.name = name
        self.type_annotation = type_annotation
        self.initializer = initializer
        self.is_static = is_static
        self._adopt(type_annotation, initializer)

    def children(self) -> List[ASTNode]:
        return _present(self.type_annotation, self.initializer)


class ClassDef(Declaration):
    """Class declaration with an optional single superclass."""
    name: str
    superclass: Optional['Identifier']
    members: List[Union[MethodDef, FieldDef]]

    def __init__(self, name: str, superclass: Optional['Identifier'],
                 members: List[Union[MethodDef, FieldDef]], span: SourceSpan, **kwargs):
        super().__init__(ASTNodeType.CLASS_DEF, span)
        self.name = name
        self.superclass = superclass
        self.members = members
        self.exported = kwargs.get('exported', False)
        self._adopt(superclass, members)

    @property
    def constructor(self) -> Optional[MethodDef]:
        for member in self.members:
            if isinstance(member, MethodDef) and member.is_constructor:
                return member
        return None

    def children(self) -> List[ASTNode]:
        return _present(self.superclass, self.members)


@dataclass
class ImportSpecifier:
    """`imported as local` inside an import list."""
    imported: str
    local: str


class ImportDecl(Statement):
    """
    Import declaration.

    Covers ``import { a, b as c } from "m"``, ``import d from "m"``,
    ``import * as ns from "m"`` and the bare ``import "m"``.
    """

    def __init__(self, source: str, specifiers: List[ImportSpecifier], span: SourceSpan,
                 default: Optional[str] = None, namespace: Optional[str] = None):
        super().__init__(ASTNodeType.IMPORT_DECL, span)
        self.source = source
        self.specifiers = specifiers
        self.default = default
        self.namespace = namespace

    @property
    def local_names(self) -> List[str]:
        names = [spec.local for spec in self.specifiers]
        if self.default:
            names.insert(0, self.default)
        if self.namespace:
            names.append(self.namespace)
        return names


@dataclass
class ExportSpecifier:
    """`local as exported` inside an export list."""
    local: str
    exported: str


class ExportDecl(Statement):
    """Export list: ``export { a, b as c }``. Exported declarations carry ``exported`` instead."""

    def __init__(self, specifiers: List[ExportSpecifier], span: SourceSpan):
        super().__init__(ASTNodeType.EXPORT_DECL, span)
        self.specifiers = specifiers


class ExpressionStatement(Statement):
    """Expression evaluated for its effect."""

    def __init__(self, expression: 'Expression', span: SourceSpan):
        super().__init__(ASTNodeType.EXPRESSION_STMT, span)
        self.expression = expression
        self._adopt(expression)

    def children(self) -> List[ASTNode]:
        return [self.expression]


class BlockStatement(Statement):
    """Block statement containing multiple statements."""
    statements: List[Statement]

    def __init__(self, statements: List[Statement], span: SourceSpan):
        super().__init__(ASTNodeType.BLOCK_STATEMENT, span)
        self.statements = statements
        self._adopt(statements)

    def children(self) -> List[ASTNode]:
        return list(self.statements)


class IfStatement(Statement):
    """If statement; `else if` and `elif` chains nest in ``else_branch``."""
    condition: 'Expression'
    then_branch: BlockStatement
    else_branch: Optional[Statement] = None

    def __init__(self, condition: 'Expression', then_branch: BlockStatement,
                 else_branch: Optional[Statement], span: SourceSpan):
        super().__init__(ASTNodeType.IF_STATEMENT, span)
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch
        self._adopt(condition, then_branch, else_branch)

    def children(self) -> List[ASTNode]:
        return _present(self.condition, self.then_branch, self.else_branch)


class WhileLoop(Statement):
    """While loop statement."""

    def __init__(self, condition: 'Expression', body: BlockStatement, span: SourceSpan):
        super().__init__(ASTNodeType.WHILE_LOOP, span)
        self.condition = condition
        self.body = body
        self._adopt(condition, body)

    def children(self) -> List[ASTNode]:
        return [self.condition, self.body]


class ForRangeLoop(Statement):
    """Counted loop: ``for i in start..end step s`` (``..=`` includes ``end``)."""

    def __init__(self, variable: str, start: 'Expression', end: 'Expression',
                 step: Optional['Expression'], inclusive: bool, body: BlockStatement,
                 span: SourceSpan):
        super().__init__(ASTNodeType.FOR_RANGE_LOOP, span)
        self.variable = variable
        self.start = start
        self.end = end
        self.step = step
        self.inclusive = inclusive
        self.body = body
        self._adopt(start, end, step, body)

    def children(self) -> List[ASTNode]:
        return _present(self.start, self.end, self.step, self.body)


class ForOfLoop(Statement):
    """Element-wise iteration: ``for x of xs``."""

    def __init__(self, variable: str, binding: Optional[Mutability], iterable: 'Expression',
                 body: BlockStatement, span: SourceSpan):
        super().__init__(ASTNodeType.FOR_OF_LOOP, span)
        self.variable = variable
        self.binding = binding
        self.iterable = iterable
        self.body = body
        self._adopt(iterable, body)

    def children(self) -> List[ASTNode]:
        return [self.iterable, self.body]


class ForInLoop(Statement):
    """Key-wise enumeration: ``for k in obj``."""

    def __init__(self, variable: str, binding: Optional[Mutability], target: 'Expression',
                 body: BlockStatement, span: SourceSpan):
        super().__init__(ASTNodeType.FOR_IN_LOOP, span)
        self.variable = variable
        self.binding = binding
        self.target = target
        self.body = body
        self._adopt(target, body)

    def children(self) -> List[ASTNode]:
        return [self.target, self.body]


class ForClassicLoop(Statement):
    """C-style loop: ``for (init; condition; update)``."""

    def __init__(self, init: Optional[Statement], condition: Optional['Expression'],
                 update: Optional['Expression'], body: BlockStatement, span: SourceSpan):
        super().__init__(ASTNodeType.FOR_CLASSIC_LOOP, span)
        self.init = init
        self.condition = condition
        self.update = update
        self.body = body
        self._adopt(init, condition, update, body)

    def children(self) -> List[ASTNode]:
        return _present(self.init, self.condition, self.update, self.body)


class MatchArm(ASTNode):
    """One `P1, P2 => body` arm. Body is a block or a single expression."""

    def __init__(self, patterns: List['Expression'], body: Union[BlockStatement, 'Expression'],
                 span: SourceSpan):
        super().__init__(ASTNodeType.MATCH_ARM, span)
        self.patterns = patterns
        self.body = body
        self._adopt(patterns, body)

    def children(self) -> List[ASTNode]:
        return _present(self.patterns, self.body)


class MatchStatement(Statement):
    """``match`` used as a statement; arms are tried in source order."""

    def __init__(self, subject: 'Expression', arms: List[MatchArm],
                 else_arm: Optional[MatchArm], span: SourceSpan):
        super().__init__(ASTNodeType.MATCH_STATEMENT, span)
        self.subject = subject
        self.arms = arms
        self.else_arm = else_arm
        self._adopt(subject, arms, else_arm)

    def children(self) -> List[ASTNode]:
        return _present(self.subject, self.arms, self.else_arm)


class TryStatement(Statement):
    """try/catch/finally; at least one of the handlers is present."""

    def __init__(self, body: BlockStatement, catch_param: Optional[str],
                 catch_body: Optional[BlockStatement], finally_body: Optional[BlockStatement],
                 span: SourceSpan):
        super().__init__(ASTNodeType.TRY_STATEMENT, span)
        self.body = body
        self.catch_param = catch_param
        self.catch_body = catch_body
        self.finally_body = finally_body
        self._adopt(body, catch_body, finally_body)

    def children(self) -> List[ASTNode]:
        return _present(self.body, self.catch_body, self.finally_body)


class ThrowStatement(Statement):
    def __init__(self, value: 'Expression', span: SourceSpan):
        super().__init__(ASTNodeType.THROW_STATEMENT, span)
        self.value = value
        self._adopt(value)

    def children(self) -> List[ASTNode]:
        return [self.value]


class ReturnStatement(Statement):
    """Return statement."""

    def __init__(self, value: Optional['Expression'], span: SourceSpan):
        super().__init__(ASTNodeType.RETURN_STATEMENT, span)
        self.value = value
        self._adopt(value)

    def children(self) -> List[ASTNode]:
        return _present(self.value)


class BreakStatement(Statement):
    def __init__(self, span: SourceSpan):
        super().__init__(ASTNodeType.BREAK_STATEMENT, span)


class ContinueStatement(Statement):
    def __init__(self, span: SourceSpan):
        super().__init__(ASTNodeType.CONTINUE_STATEMENT, span)


# ============================================================================
# Expressions
# ============================================================================

class Expression(ASTNode):
    """Base class for expressions."""
    pass


class Literal(Expression):
    """
    Number, string, boolean, null or undefined literal.

    ``kind`` is one of "number", "string", "boolean", "null", "undefined";
    ``raw`` keeps the source lexeme for numbers.
    """

    def __init__(self, value: Any, kind: str, span: SourceSpan, raw: Optional[str] = None):
        super().__init__(ASTNodeType.LITERAL, span)
        self.value = value
        self.kind = kind
        self.raw = raw


class TemplateLiteral(Expression):
    """
    Template literal. ``quasis`` holds the raw text fragments and always has
    exactly one more entry than ``expressions``.
    """

    def __init__(self, quasis: List[str], expressions: List[Expression], span: SourceSpan):
        super().__init__(ASTNodeType.TEMPLATE_LITERAL, span)
        self.quasis = quasis
        self.expressions = expressions
        self._adopt(expressions)

    def children(self) -> List[ASTNode]:
        return list(self.expressions)


class Identifier(Expression):
    """Name reference; ``symbol`` is filled in by the type checker."""

    def __init__(self, name: str, span: SourceSpan):
        super().__init__(ASTNodeType.IDENTIFIER, span)
        self.name = name
        self.symbol = None


class ThisExpression(Expression):
    def __init__(self, span: SourceSpan):
        super().__init__(ASTNodeType.THIS, span)


class SuperExpression(Expression):
    def __init__(self, span: SourceSpan):
        super().__init__(ASTNodeType.SUPER, span)


class ArrayLiteral(Expression):
    def __init__(self, elements: List[Expression], span: SourceSpan):
        super().__init__(ASTNodeType.ARRAY_LITERAL, span)
        self.elements = elements
        self._adopt(elements)

    def children(self) -> List[ASTNode]:
        return list(self.elements)


class ObjectProperty(ASTNode):
    """
    ``key: value`` entry. ``computed`` holds the key expression of
    ``[expr]: value``; ``shorthand`` marks ``{ name }``.
    """

    def __init__(self, key: str, value: Expression, span: SourceSpan,
                 computed: Optional[Expression] = None, shorthand: bool = False,
                 quoted: bool = False):
        super().__init__(ASTNodeType.OBJECT_PROPERTY, span)
        self.key = key
        self.value = value
        self.computed = computed
        self.shorthand = shorthand
        self.quoted = quoted
        self._adopt(computed, value)

    def children(self) -> List[ASTNode]:
        return _present(self.computed, self.value)


class ObjectLiteral(Expression):
    """Object literal; entries are ObjectProperty or SpreadElement nodes."""

    def __init__(self, properties: List[ASTNode], span: SourceSpan):
        super().__init__(ASTNodeType.OBJECT_LITERAL, span)
        self.properties = properties
        self._adopt(properties)

    def children(self) -> List[ASTNode]:
        return list(self.properties)


class BinaryOp(Expression):
    """
    Binary operation. ``operator`` is always the symbol form: the parser
    maps ``and``/``or`` to ``&&``/``||``.
    """

    def __init__(self, left: Expression, operator: str, right: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.BINARY_OP, span)
        self.left = left
        self.operator = operator
        self.right = right
        self._adopt(left, right)

    def children(self) -> List[ASTNode]:
        return [self.left, self.right]


class UnaryOp(Expression):
    """Prefix operator: ``!`` (also ``not``), ``-``, ``+`` or ``typeof``."""

    def __init__(self, operator: str, operand: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.UNARY_OP, span)
        self.operator = operator
        self.operand = operand
        self._adopt(operand)

    def children(self) -> List[ASTNode]:
        return [self.operand]


class HaveExpression(Expression):
    """``have x``: true when ``x`` is neither null nor undefined."""

    def __init__(self, operand: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.HAVE, span)
        self.operand = operand
        self._adopt(operand)

    def children(self) -> List[ASTNode]:
        return [self.operand]


class UpdateExpression(Expression):
    """``++``/``--`` in prefix or postfix position."""

    def __init__(self, operator: str, operand: Expression, prefix: bool, span: SourceSpan):
        super().__init__(ASTNodeType.UPDATE, span)
        self.operator = operator
        self.operand = operand
        self.prefix = prefix
        self._adopt(operand)

    def children(self) -> List[ASTNode]:
        return [self.operand]


class Assignment(Expression):
    """Assignment, plain or compound (``operator`` is "=", "+=", "??=", ...)."""

    def __init__(self, target: Expression, operator: str, value: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.ASSIGNMENT, span)
        self.target = target
        self.operator = operator
        self.value = value
        self._adopt(target, value)

    def children(self) -> List[ASTNode]:
        return [self.target, self.value]


class ConditionalExpression(Expression):
    def __init__(self, condition: Expression, then_expr: Expression, else_expr: Expression,
                 span: SourceSpan):
        super().__init__(ASTNodeType.CONDITIONAL, span)
        self.condition = condition
        self.then_expr = then_expr
        self.else_expr = else_expr
        self._adopt(condition, then_expr, else_expr)

    def children(self) -> List[ASTNode]:
        return [self.condition, self.then_expr, self.else_expr]


class FunctionCall(Expression):
    """Call expression; ``optional`` marks ``f?.(args)``."""

    def __init__(self, callee: Expression, arguments: List[Expression], span: SourceSpan,
                 optional: bool = False):
        super().__init__(ASTNodeType.FUNCTION_CALL, span)
        self.callee = callee
        self.arguments = arguments
        self.optional = optional
        self._adopt(callee, arguments)

    def children(self) -> List[ASTNode]:
        return [self.callee] + list(self.arguments)


class MemberAccess(Expression):
    """``obj.name`` or, with ``optional``, ``obj?.name``."""

    def __init__(self, obj: Expression, member: str, span: SourceSpan, optional: bool = False):
        super().__init__(ASTNodeType.MEMBER_ACCESS, span)
        self.object = obj
        self.member = member
        self.optional = optional
        self._adopt(obj)

    def children(self) -> List[ASTNode]:
        return [self.object]


class IndexAccess(Expression):
    """``obj[index]`` or ``obj?.[index]``."""

    def __init__(self, obj: Expression, index: Expression, span: SourceSpan, optional: bool = False):
        super().__init__(ASTNodeType.INDEX_ACCESS, span)
        self.object = obj
        self.index = index
        self.optional = optional
        self._adopt(obj, index)

    def children(self) -> List[ASTNode]:
        return [self.object, self.index]


class NewExpression(Expression):
    def __init__(self, callee: Expression, arguments: List[Expression], span: SourceSpan):
        super().__init__(ASTNodeType.NEW_EXPRESSION, span)
        self.callee = callee
        self.arguments = arguments
        self._adopt(callee, arguments)

    def children(self) -> List[ASTNode]:
        return [self.callee] + list(self.arguments)


class ArrowFunction(Expression):
    """Arrow function; ``body`` is a BlockStatement or a single expression."""

    def __init__(self, params: List[Parameter], body: Union[BlockStatement, Expression],
                 span: SourceSpan, return_type: Optional['TypeRef'] = None, is_async: bool = False):
        super().__init__(ASTNodeType.ARROW_FUNCTION, span)
        self.params = params
        self.body = body
        self.return_type = return_type
        self.is_async = is_async
        self._adopt(params, return_type, body)

    def children(self) -> List[ASTNode]:
        return _present(self.params, self.return_type, self.body)


class SpreadElement(Expression):
    """``...expr`` in calls, arrays and object literals."""

    def __init__(self, argument: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.SPREAD, span)
        self.argument = argument
        self._adopt(argument)

    def children(self) -> List[ASTNode]:
        return [self.argument]


class AwaitExpression(Expression):
    def __init__(self, argument: Expression, span: SourceSpan):
        super().__init__(ASTNodeType.AWAIT_EXPRESSION, span)
        self.argument = argument
        self._adopt(argument)

    def children(self) -> List[ASTNode]:
        return [self.argument]


class MatchExpression(Expression):
    """``match`` in expression position; yields the selected arm's value or undefined."""

    def __init__(self, subject: Expression, arms: List[MatchArm],
                 else_arm: Optional[MatchArm], span: SourceSpan):
        super().__init__(ASTNodeType.MATCH_EXPRESSION, span)
        self.subject = subject
        self.arms = arms
        self.else_arm = else_arm
        self._adopt(subject, arms, else_arm)

    def children(self) -> List[ASTNode]:
        return _present(self.subject, self.arms, self.else_arm)

    def has_block_arm(self) -> bool:
        arms = self.arms + ([self.else_arm] if self.else_arm else [])
        return any(isinstance(arm.body, BlockStatement) for arm in arms)


def statement_level_match(stmt: Statement) -> Optional[MatchExpression]:
    """
    The match expression whose value ``stmt`` uses directly, if any:
    ``v = match ...``, ``x = match ...``, ``return match ...`` or a bare
    ``match`` expression statement. Such a match can be lowered to
    statements, so its block arms may break, continue or return.
    """
    value = None
    if isinstance(stmt, VariableDecl):
        value = stmt.initializer
    elif isinstance(stmt, ReturnStatement):
        value = stmt.value
    elif isinstance(stmt, ExpressionStatement):
        value = stmt.expression
        if isinstance(value, Assignment) and value.operator == "=" and isinstance(value.target, Identifier):
            value = value.value
    return value if isinstance(value, MatchExpression) else None


# ============================================================================
# Type annotations (erased during code generation)
# ============================================================================

class TypeRef(ASTNode):
    """Base class for type annotations."""
    pass


class SimpleTypeRef(TypeRef):
    """Named type: a primitive alias (`num`, `str`, ...) or a class name."""

    def __init__(self, name: str, span: SourceSpan):
        super().__init__(ASTNodeType.SIMPLE_TYPE, span)
        self.name = name

    def __str__(self) -> str:
        return self.name


class ListTypeRef(TypeRef):
    """``list<T>`` or ``T[]``."""

    def __init__(self, element: TypeRef, span: SourceSpan):
        super().__init__(ASTNodeType.LIST_TYPE, span)
        self.element = element
        self._adopt(element)

    def children(self) -> List[ASTNode]:
        return [self.element]

    def __str__(self) -> str:
        return f"list<{self.element}>"


class NullableTypeRef(TypeRef):
    """``T?``."""

    def __init__(self, inner: TypeRef, span: SourceSpan):
        super().__init__(ASTNodeType.NULLABLE_TYPE, span)
        self.inner = inner
        self._adopt(inner)

    def children(self) -> List[ASTNode]:
        return [self.inner]

    def __str__(self) -> str:
        return f"{self.inner}?"


class FunctionTypeRef(TypeRef):
    """``fn(T, U): R``."""

    def __init__(self, params: List[TypeRef], return_type: Optional[TypeRef], span: SourceSpan):
        super().__init__(ASTNodeType.FUNCTION_TYPE, span)
        self.params = params
        self.return_type = return_type
        self._adopt(params, return_type)

    def children(self) -> List[ASTNode]:
        return _present(self.params, self.return_type)

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.params)
        return f"fn({params}): {self.return_type or 'void'}"


class ShapeTypeRef(TypeRef):
    """Structural object type ``{ a: T, b: U }``."""

    def __init__(self, fields: List[Tuple[str, TypeRef]], span: SourceSpan):
        super().__init__(ASTNodeType.SHAPE_TYPE, span)
        self.fields = fields
        self._adopt([type_ref for _, type_ref in fields])

    def children(self) -> List[ASTNode]:
        return [type_ref for _, type_ref in self.fields]

    def __str__(self) -> str:
        inner = ", ".join(f"{name}: {type_ref}" for name, type_ref in self.fields)
        return "{ " + inner + " }"
