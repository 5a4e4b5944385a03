"""
Lumo Pratt Parser Implementation

Top-down operator precedence (Pratt) parser for Lumo. Besides building the
AST it normalizes the language's interchangeable surface forms:

- ``x: num = 1``, ``var x: num = 1`` and ``x = 1`` all become VariableDecl
  (the latter as an auto-const when ``x`` is not bound yet)
- ``and``/``or``/``not`` become ``&&``/``||``/``!``
- ``elif`` becomes a nested ``else if``
- parenthesised and bare for-headers give the same loop nodes

Author: xwest
"""

import logging
from typing import List, Optional, Dict, Callable, Iterable, Tuple
from enum import IntEnum

from ..lexer.tokens import Token, TokenType, SourceLocation, SourceSpan
from .ast_nodes import (
    ASTNode, Program, Statement, Expression, VariableDecl, Mutability, Parameter,
    FunctionDef, MethodDef, FieldDef, ClassDef, ImportDecl, ImportSpecifier,
    ExportDecl, ExportSpecifier, ExpressionStatement, BlockStatement, IfStatement,
    WhileLoop, ForRangeLoop, ForOfLoop, ForInLoop, ForClassicLoop, MatchArm,
    MatchStatement, MatchExpression, TryStatement, ThrowStatement, ReturnStatement,
    BreakStatement, ContinueStatement, Literal, TemplateLiteral, Identifier,
    ThisExpression, SuperExpression, ArrayLiteral, ObjectLiteral, ObjectProperty,
    BinaryOp, UnaryOp, HaveExpression, UpdateExpression, Assignment,
    ConditionalExpression, FunctionCall, MemberAccess, IndexAccess, NewExpression,
    ArrowFunction, SpreadElement, AwaitExpression, TypeRef, SimpleTypeRef,
    ListTypeRef, NullableTypeRef, FunctionTypeRef, ShapeTypeRef
)
from .errors import (
    ParseError, SyntaxErrorRecovery, create_unexpected_token_error,
    create_missing_terminator_error, create_invalid_expression_error,
    create_invalid_assignment_target_error, create_misplaced_else_arm_error,
    create_missing_initializer_error
)

logger = logging.getLogger(__name__)


class Precedence(IntEnum):
    """Operator precedence levels for Pratt parsing."""
    NONE = 0
    ASSIGNMENT = 1      # = += -= *= /= %= **= ??= &&= ||=
    CONDITIONAL = 2     # ?:
    NULLISH = 3         # ??
    OR = 4              # || or
    AND = 5             # && and
    EQUALITY = 6        # == != === !==
    COMPARISON = 7      # < > <= >= instanceof in
    TERM = 8            # + -
    FACTOR = 9          # * / %
    EXPONENT = 10       # ** (right associative)
    UNARY = 11          # ! not - + typeof await have ++x --x ...
    POSTFIX = 12        # x++ x--
    CALL = 13           # () . ?. []
    PRIMARY = 14


DECLARATION_KEYWORDS = {
    TokenType.VAR: Mutability.VAR,
    TokenType.LET: Mutability.LET,
    TokenType.CONST: Mutability.CONST,
    TokenType.INIT: Mutability.INIT,
}

# Symbol spelling of every binary operator token
BINARY_OPERATORS = {
    TokenType.NULLISH: "??",
    TokenType.LOGICAL_OR: "||",
    TokenType.OR: "||",
    TokenType.LOGICAL_AND: "&&",
    TokenType.AND: "&&",
    TokenType.EQUAL: "==",
    TokenType.NOT_EQUAL: "!=",
    TokenType.STRICT_EQUAL: "===",
    TokenType.STRICT_NOT_EQUAL: "!==",
    TokenType.LESS_THAN: "<",
    TokenType.GREATER_THAN: ">",
    TokenType.LESS_EQUAL: "<=",
    TokenType.GREATER_EQUAL: ">=",
    TokenType.INSTANCEOF: "instanceof",
    TokenType.IN: "in",
    TokenType.PLUS: "+",
    TokenType.MINUS: "-",
    TokenType.MULTIPLY: "*",
    TokenType.DIVIDE: "/",
    TokenType.MODULO: "%",
    TokenType.POWER: "**",
}

ASSIGNMENT_OPERATORS = {
    TokenType.ASSIGN, TokenType.PLUS_ASSIGN, TokenType.MINUS_ASSIGN,
    TokenType.MULTIPLY_ASSIGN, TokenType.DIVIDE_ASSIGN, TokenType.MODULO_ASSIGN,
    TokenType.POWER_ASSIGN, TokenType.NULLISH_ASSIGN, TokenType.AND_ASSIGN,
    TokenType.OR_ASSIGN,
}

# Tokens that may appear in a type annotation (used when looking ahead for `=>`)
_TYPE_TOKENS = {
    TokenType.IDENTIFIER, TokenType.LESS_THAN, TokenType.GREATER_THAN,
    TokenType.LEFT_BRACKET, TokenType.RIGHT_BRACKET, TokenType.QUESTION,
    TokenType.COMMA, TokenType.COLON, TokenType.LEFT_BRACE, TokenType.RIGHT_BRACE,
    TokenType.LEFT_PAREN, TokenType.RIGHT_PAREN, TokenType.FN, TokenType.NULL,
    TokenType.UNDEFINED, TokenType.ARROW,
}


class Parser:
    """
    Lumo Pratt parser.

    ``parse`` always returns a Program; syntax errors are collected in
    ``errors`` and parsing resumes at the next statement boundary.
    """

    def __init__(self, tokens: List[Token], predeclared: Optional[Iterable[str]] = None):
        """
        Initialize parser with a list of tokens.

        Args:
            tokens: List of tokens from the lexer (INVALID tokens are skipped,
                the lexer has already reported them)
            predeclared: Names already bound at module level, e.g. by earlier
                REPL lines. Assigning to them is never a new declaration.
        """
        self.tokens = [token for token in tokens if token.type != TokenType.INVALID]
        if not self.tokens or self.tokens[-1].type != TokenType.EOF:
            last = self.tokens[-1].location if self.tokens else SourceLocation("<input>", 1, 1, 0)
            self.tokens.append(Token(TokenType.EOF, "", None, last))
        self.current = 0
        self.errors: List[ParseError] = []

        # Lexical scopes of names bound so far; values are the declaring
        # VariableDecl when there is one
        self.scopes: List[Dict[str, Optional[VariableDecl]]] = [
            {name: None for name in (predeclared or ())}
        ]

        self._init_parsing_tables()

    def _init_parsing_tables(self):
        """Initialize operator precedence and parsing function tables."""

        # Prefix parsing functions (for tokens that can start expressions)
        self.prefix_parsers: Dict[TokenType, Callable[[], Expression]] = {
            # Literals
            TokenType.NUMBER: self._parse_number_literal,
            TokenType.STRING: self._parse_string_literal,
            TokenType.TRUE: self._parse_keyword_literal,
            TokenType.FALSE: self._parse_keyword_literal,
            TokenType.NULL: self._parse_keyword_literal,
            TokenType.UNDEFINED: self._parse_keyword_literal,
            TokenType.TEMPLATE_START: self._parse_template_literal,

            # Names
            TokenType.IDENTIFIER: self._parse_identifier,
            TokenType.THIS: self._parse_this,
            TokenType.SUPER: self._parse_super,

            # Unary operators
            TokenType.MINUS: self._parse_unary,
            TokenType.PLUS: self._parse_unary,
            TokenType.LOGICAL_NOT: self._parse_unary,
            TokenType.NOT: self._parse_unary,
            TokenType.TYPEOF: self._parse_unary,
            TokenType.HAVE: self._parse_have,
            TokenType.AWAIT: self._parse_await,
            TokenType.INCREMENT: self._parse_prefix_update,
            TokenType.DECREMENT: self._parse_prefix_update,
            TokenType.ELLIPSIS: self._parse_spread,

            # Grouping and compound literals
            TokenType.LEFT_PAREN: self._parse_grouping_or_arrow,
            TokenType.LEFT_BRACKET: self._parse_array_literal,
            TokenType.LEFT_BRACE: self._parse_object_literal,

            # Keyword expressions
            TokenType.NEW: self._parse_new,
            TokenType.ASYNC: self._parse_async_arrow,
            TokenType.MATCH: self._parse_match_expression,
        }

        # Infix parsing functions (for binary operators)
        self.infix_parsers: Dict[TokenType, Callable[[Expression], Expression]] = {
            token_type: self._parse_binary for token_type in BINARY_OPERATORS
        }
        self.infix_parsers.update({
            token_type: self._parse_assignment for token_type in ASSIGNMENT_OPERATORS
        })
        self.infix_parsers.update({
            TokenType.QUESTION: self._parse_conditional,
            TokenType.INCREMENT: self._parse_postfix_update,
            TokenType.DECREMENT: self._parse_postfix_update,
            TokenType.LEFT_PAREN: self._parse_function_call,
            TokenType.DOT: self._parse_member_access,
            TokenType.OPTIONAL_CHAIN: self._parse_optional_chain,
            TokenType.LEFT_BRACKET: self._parse_index_access,
        })

        # Operator precedence table
        self.precedences: Dict[TokenType, Precedence] = {
            TokenType.QUESTION: Precedence.CONDITIONAL,
            TokenType.NULLISH: Precedence.NULLISH,
            TokenType.LOGICAL_OR: Precedence.OR,
            TokenType.OR: Precedence.OR,
            TokenType.LOGICAL_AND: Precedence.AND,
            TokenType.AND: Precedence.AND,
            TokenType.EQUAL: Precedence.EQUALITY,
            TokenType.NOT_EQUAL: Precedence.EQUALITY,
            TokenType.STRICT_EQUAL: Precedence.EQUALITY,
            TokenType.STRICT_NOT_EQUAL: Precedence.EQUALITY,
            TokenType.LESS_THAN: Precedence.COMPARISON,
            TokenType.GREATER_THAN: Precedence.COMPARISON,
            TokenType.LESS_EQUAL: Precedence.COMPARISON,
            TokenType.GREATER_EQUAL: Precedence.COMPARISON,
            TokenType.INSTANCEOF: Precedence.COMPARISON,
            TokenType.IN: Precedence.COMPARISON,
            TokenType.PLUS: Precedence.TERM,
            TokenType.MINUS: Precedence.TERM,
            TokenType.MULTIPLY: Precedence.FACTOR,
            TokenType.DIVIDE: Precedence.FACTOR,
            TokenType.MODULO: Precedence.FACTOR,
            TokenType.POWER: Precedence.EXPONENT,
            TokenType.INCREMENT: Precedence.POSTFIX,
            TokenType.DECREMENT: Precedence.POSTFIX,
            TokenType.LEFT_PAREN: Precedence.CALL,
            TokenType.DOT: Precedence.CALL,
            TokenType.OPTIONAL_CHAIN: Precedence.CALL,
            TokenType.LEFT_BRACKET: Precedence.CALL,
        }
        for token_type in ASSIGNMENT_OPERATORS:
            self.precedences[token_type] = Precedence.ASSIGNMENT

    def parse(self) -> Program:
        """
        Parse the token stream into an AST.

        Returns:
            Program AST node; check ``errors`` for syntax errors
        """
        self._prescan_module_declarations()
        statements = []

        while not self._is_at_end():
            if self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
                continue
            try:
                statements.append(self._parse_statement())
            except ParseError as e:
                self.errors.append(e)
                self._synchronize(in_block=False)

        start_location = self.tokens[0].location
        end_location = self.tokens[-1].location
        program = Program(statements, SourceSpan(start_location, end_location))
        logger.debug("parsed %d top-level statements, %d syntax errors",
                     len(statements), len(self.errors))
        return program

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def _synchronize(self, in_block: bool = True):
        position = self.current
        self.current = SyntaxErrorRecovery.synchronize_to_statement_boundary(self.tokens, self.current)
        if self.current == position and not self._is_at_end():
            # A `}` closing the enclosing block is left for the block parser
            if not (in_block and self._check(TokenType.RIGHT_BRACE)):
                self.current += 1

    def _prescan_module_declarations(self):
        """
        Bind every keyword-declared module-level name up front, so an
        assignment inside a function body to a variable declared further
        down is an assignment, not a new local auto-const.
        """
        depth = 0
        module_scope = self.scopes[0]
        for index, token in enumerate(self.tokens[:-1]):
            if token.type == TokenType.LEFT_BRACE:
                depth += 1
            elif token.type == TokenType.RIGHT_BRACE:
                depth = max(depth - 1, 0)
            elif depth == 0 and (token.type in DECLARATION_KEYWORDS
                                 or token.type in (TokenType.FN, TokenType.CLASS)):
                following = self.tokens[index + 1]
                if following.type == TokenType.IDENTIFIER:
                    module_scope.setdefault(following.lexeme, None)

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def _push_scope(self, names: Iterable[str] = ()):
        self.scopes.append({name: None for name in names})

    def _pop_scope(self):
        self.scopes.pop()

    def _declare(self, name: str, decl: Optional[VariableDecl] = None):
        self.scopes[-1][name] = decl

    def _is_bound(self, name: str) -> bool:
        return any(name in scope for scope in self.scopes)

    def _mark_reassigned(self, target: Expression):
        if not isinstance(target, Identifier):
            return
        for scope in reversed(self.scopes):
            if target.name in scope:
                decl = scope[target.name]
                if decl is not None:
                    decl.reassigned = True
                return

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_statement(self) -> Statement:
        """Parse one statement, including its terminator."""
        token = self._peek()

        if token.type == TokenType.EXPORT:
            return self._parse_export()
        if token.type == TokenType.IMPORT:
            return self._parse_import()
        if token.type in DECLARATION_KEYWORDS:
            decl = self._parse_variable_declaration()
            self._consume_statement_terminator()
            return decl
        if token.type == TokenType.FN or (token.type == TokenType.ASYNC and self._check_next(TokenType.FN)):
            return self._parse_function()
        if token.type == TokenType.CLASS:
            return self._parse_class()
        if token.type == TokenType.IF:
            return self._parse_if_statement()
        if token.type == TokenType.WHILE:
            return self._parse_while_statement()
        if token.type == TokenType.FOR:
            return self._parse_for_statement()
        if token.type == TokenType.MATCH:
            return self._parse_match_statement()
        if token.type == TokenType.TRY:
            return self._parse_try_statement()
        if token.type == TokenType.LEFT_BRACE:
            return self._parse_block()

        if token.type == TokenType.RETURN:
            statement = self._parse_return_statement()
        elif token.type == TokenType.THROW:
            self._advance()
            value = self._parse_expression()
            statement = ThrowStatement(value, self._span_from(token))
        elif token.type == TokenType.BREAK:
            self._advance()
            statement = BreakStatement(self._span_from(token))
        elif token.type == TokenType.CONTINUE:
            self._advance()
            statement = ContinueStatement(self._span_from(token))
        elif token.type == TokenType.IDENTIFIER and self._check_next(TokenType.COLON):
            statement = self._parse_type_first_declaration()
        elif (token.type == TokenType.IDENTIFIER and self._check_next(TokenType.ASSIGN)
              and not self._is_bound(token.lexeme)):
            statement = self._parse_auto_const_declaration()
        else:
            expression = self._parse_expression()
            statement = ExpressionStatement(expression, expression.span)

        self._consume_statement_terminator()
        return statement

    def _parse_block(self, names: Iterable[str] = ()) -> BlockStatement:
        """Parse `{ statements }` in a fresh scope seeded with ``names``."""
        start = self._consume(TokenType.LEFT_BRACE, "Expected '{' to start a block")
        self._push_scope(names)
        statements = []
        try:
            while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
                if self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
                    continue
                try:
                    statements.append(self._parse_statement())
                except ParseError as e:
                    self.errors.append(e)
                    self._synchronize()
            self._consume(TokenType.RIGHT_BRACE, "Expected '}' after block")
        finally:
            self._pop_scope()
        return BlockStatement(statements, self._span_from(start))

    def _parse_variable_declaration(self, exported: bool = False) -> VariableDecl:
        """Parse `var|let|const|init NAME (: type)? (= expr)?` (no terminator)."""
        keyword = self._advance()
        mutability = DECLARATION_KEYWORDS[keyword.type]
        name_token = self._consume(TokenType.IDENTIFIER, "Expected variable name")

        type_annotation = None
        if self._match(TokenType.COLON):
            type_annotation = self._parse_type()

        initializer = None
        if self._match(TokenType.ASSIGN):
            self._skip_newlines()
            initializer = self._parse_expression()
        elif mutability in (Mutability.CONST, Mutability.INIT):
            raise create_missing_initializer_error(keyword.lexeme, name_token.lexeme, name_token.location)

        decl = VariableDecl(name_token.lexeme, type_annotation, initializer, mutability,
                            self._span_from(keyword), exported=exported)
        self._declare(decl.name, decl)
        return decl

    def _parse_type_first_declaration(self, exported: bool = False) -> VariableDecl:
        """Parse `NAME: type = expr`; without a keyword the binding is an auto-const."""
        name_token = self._advance()
        self._consume(TokenType.COLON, "Expected ':' after variable name")
        type_annotation = self._parse_type()
        self._consume(TokenType.ASSIGN, "Expected '=' after type annotation")
        self._skip_newlines()
        initializer = self._parse_expression()
        decl = VariableDecl(name_token.lexeme, type_annotation, initializer, Mutability.AUTO_CONST,
                            self._span_from(name_token), exported=exported)
        self._declare(decl.name, decl)
        return decl

    def _parse_auto_const_declaration(self, exported: bool = False) -> VariableDecl:
        """Parse `NAME = expr` for a name that is not bound yet."""
        name_token = self._advance()
        self._consume(TokenType.ASSIGN, "Expected '='")
        self._skip_newlines()
        initializer = self._parse_expression()
        decl = VariableDecl(name_token.lexeme, None, initializer, Mutability.AUTO_CONST,
                            self._span_from(name_token), exported=exported)
        self._declare(decl.name, decl)
        return decl

    def _parse_function(self, exported: bool = False) -> FunctionDef:
        """Parse a function declaration."""
        start_token = self._peek()
        is_async = self._match(TokenType.ASYNC)
        self._consume(TokenType.FN, "Expected 'fn' or 'function'")

        name_token = self._consume(TokenType.IDENTIFIER, "Expected function name")
        self._declare(name_token.lexeme)

        params = self._parse_parameter_list()
        return_type = self._parse_return_annotation()
        body = self._parse_block(param.name for param in params)

        return FunctionDef(name_token.lexeme, params, return_type, body, self._span_from(start_token),
                           is_async=is_async, exported=exported)

    def _parse_parameter_list(self) -> List[Parameter]:
        """Parse `( params )`."""
        self._consume(TokenType.LEFT_PAREN, "Expected '(' before parameters")
        params = []
        while not self._check(TokenType.RIGHT_PAREN):
            params.append(self._parse_parameter())
            if not self._match(TokenType.COMMA):
                break
        self._consume(TokenType.RIGHT_PAREN, "Expected ')' after parameters")
        return params

    def _parse_parameter(self) -> Parameter:
        """Parse `name (: type)? (= default)?` or `...name (: type)?`."""
        start = self._peek()
        is_rest = self._match(TokenType.ELLIPSIS)
        name_token = self._consume(TokenType.IDENTIFIER, "Expected parameter name")

        type_annotation = None
        if self._match(TokenType.COLON):
            type_annotation = self._parse_type()

        default_value = None
        if not is_rest and self._match(TokenType.ASSIGN):
            default_value = self._parse_expression(Precedence.CONDITIONAL)

        return Parameter(name_token.lexeme, type_annotation, default_value,
                         self._span_from(start), is_rest=is_rest)

    def _parse_return_annotation(self) -> Optional[TypeRef]:
        if self._match(TokenType.COLON, TokenType.ARROW):
            return self._parse_type()
        return None

    def _parse_class(self, exported: bool = False) -> ClassDef:
        """Parse a class declaration."""
        start = self._advance()  # class
        name_token = self._consume(TokenType.IDENTIFIER, "Expected class name")
        self._declare(name_token.lexeme)

        superclass = None
        if self._match(TokenType.EXTENDS):
            super_token = self._consume(TokenType.IDENTIFIER, "Expected superclass name after 'extends'")
            superclass = Identifier(super_token.lexeme, SourceSpan.at(super_token.location))

        self._skip_newlines()
        self._consume(TokenType.LEFT_BRACE, "Expected '{' after class name")
        members = []
        while not self._check(TokenType.RIGHT_BRACE) and not self._is_at_end():
            if self._match(TokenType.NEWLINE, TokenType.SEMICOLON):
                continue
            try:
                members.append(self._parse_class_member())
            except ParseError as e:
                self.errors.append(e)
                self._synchronize()
        self._consume(TokenType.RIGHT_BRACE, "Expected '}' after class body")

        return ClassDef(name_token.lexeme, superclass, members, self._span_from(start), exported=exported)

    def _parse_class_member(self) -> ASTNode:
        """Parse a field, method or constructor."""
        start = self._peek()
        is_static = self._match(TokenType.STATIC)
        is_async = self._match(TokenType.ASYNC)
        self._match(TokenType.FN)
        name_token = self._consume_property_name("Expected member name")

        if self._check(TokenType.LEFT_PAREN):
            params = self._parse_parameter_list()
            return_type = self._parse_return_annotation()
            body = self._parse_block(param.name for param in params)
            return MethodDef(name_token.lexeme, params, return_type, body, self._span_from(start),
                             is_static=is_static, is_async=is_async)

        type_annotation = None
        if self._match(TokenType.COLON):
            type_annotation = self._parse_type()
        initializer = None
        if self._match(TokenType.ASSIGN):
            initializer = self._parse_expression()
        self._consume_statement_terminator()
        return FieldDef(name_token.lexeme, type_annotation, initializer, self._span_from(start),
                        is_static=is_static)

    def _parse_import(self) -> ImportDecl:
        """Parse the four import forms."""
        start = self._advance()  # import

        if self._check(TokenType.STRING):
            source = self._advance().value
            self._consume_statement_terminator()
            return ImportDecl(source, [], self._span_from(start))

        default = None
        namespace = None
        specifiers: List[ImportSpecifier] = []

        if self._check(TokenType.IDENTIFIER) and not self._check_word("from"):
            default = self._advance().lexeme
            if not self._match(TokenType.COMMA):
                return self._finish_import(start, specifiers, default, namespace)

        if self._match(TokenType.MULTIPLY):
            self._consume_word("as")
            namespace = self._consume(TokenType.IDENTIFIER, "Expected namespace name").lexeme
        elif self._match(TokenType.LEFT_BRACE):
            self._skip_newlines()
            while not self._check(TokenType.RIGHT_BRACE):
                imported = self._consume_property_name("Expected imported name").lexeme
                local = imported
                if self._match_word("as"):
                    local = self._consume(TokenType.IDENTIFIER, "Expected local name").lexeme
                specifiers.append(ImportSpecifier(imported, local))
                self._skip_newlines()
                if not self._match(TokenType.COMMA):
                    break
                self._skip_newlines()
            self._consume(TokenType.RIGHT_BRACE, "Expected '}' after import list")
        elif default is None:
            raise create_unexpected_token_error("import specifier", self._peek())

        return self._finish_import(start, specifiers, default, namespace)

    def _finish_import(self, start: Token, specifiers, default, namespace) -> ImportDecl:
        self._consume_word("from")
        source = self._consume(TokenType.STRING, "Expected module path").value
        decl = ImportDecl(source, specifiers, self._span_from(start), default=default, namespace=namespace)
        for name in decl.local_names:
            self._declare(name)
        self._consume_statement_terminator()
        return decl

    def _parse_export(self) -> Statement:
        """Parse `export <declaration>` or `export { a, b as c }`."""
        start = self._advance()  # export
        token = self._peek()

        if self._match(TokenType.LEFT_BRACE):
            specifiers = []
            self._skip_newlines()
            while not self._check(TokenType.RIGHT_BRACE):
                local = self._consume(TokenType.IDENTIFIER, "Expected exported name").lexeme
                exported = local
                if self._match_word("as"):
                    exported = self._consume_property_name("Expected export alias").lexeme
                specifiers.append(ExportSpecifier(local, exported))
                self._skip_newlines()
                if not self._match(TokenType.COMMA):
                    break
                self._skip_newlines()
            self._consume(TokenType.RIGHT_BRACE, "Expected '}' after export list")
            self._consume_statement_terminator()
            return ExportDecl(specifiers, self._span_from(start))

        if token.type == TokenType.FN or (token.type == TokenType.ASYNC and self._check_next(TokenType.FN)):
            return self._parse_function(exported=True)
        if token.type == TokenType.CLASS:
            return self._parse_class(exported=True)

        if token.type in DECLARATION_KEYWORDS:
            decl = self._parse_variable_declaration(exported=True)
        elif token.type == TokenType.IDENTIFIER and self._check_next(TokenType.COLON):
            decl = self._parse_type_first_declaration(exported=True)
        elif token.type == TokenType.IDENTIFIER and self._check_next(TokenType.ASSIGN):
            decl = self._parse_auto_const_declaration(exported=True)
        else:
            raise create_unexpected_token_error("declaration or export list after 'export'", token)
        self._consume_statement_terminator()
        return decl

    def _parse_if_statement(self) -> IfStatement:
        """Parse if / else if / elif / else."""
        start = self._advance()  # if or elif
        condition = self._parse_expression()
        then_branch = self._parse_block()

        else_branch = None
        if self._check_after_newlines(TokenType.ELSE, TokenType.ELIF):
            self._skip_newlines()
            if self._check(TokenType.ELIF):
                else_branch = self._parse_if_statement()
            else:
                self._advance()  # else
                if self._check(TokenType.IF):
                    else_branch = self._parse_if_statement()
                else:
                    else_branch = self._parse_block()

        return IfStatement(condition, then_branch, else_branch, self._span_from(start))

    def _parse_while_statement(self) -> WhileLoop:
        start = self._advance()
        condition = self._parse_expression()
        body = self._parse_block()
        return WhileLoop(condition, body, self._span_from(start))

    def _parse_for_statement(self) -> Statement:
        """
        Parse the four for-loop forms, with or without parentheses:
        counted range, `of`-iteration, `in`-enumeration and C-style.
        """
        start = self._advance()  # for
        parenthesized = self._match(TokenType.LEFT_PAREN)

        binding = None
        binding_token = None
        if self._peek().type in (TokenType.VAR, TokenType.LET, TokenType.CONST):
            binding_token = self._peek()
            binding = DECLARATION_KEYWORDS[binding_token.type]

        name_offset = 1 if binding else 0
        name_token = self._peek(name_offset)
        if name_token.type == TokenType.IDENTIFIER:
            following = self._peek(name_offset + 1)
            if following.type == TokenType.IDENTIFIER and following.lexeme == "of":
                self.current += name_offset + 2
                iterable = self._parse_expression()
                self._close_for_header(parenthesized)
                body = self._parse_block([name_token.lexeme])
                return ForOfLoop(name_token.lexeme, binding, iterable, body, self._span_from(start))

            if following.type == TokenType.IN:
                self.current += name_offset + 2
                first = self._parse_expression()
                if self._match(TokenType.RANGE_EXCLUSIVE, TokenType.RANGE_INCLUSIVE):
                    inclusive = self._previous().type == TokenType.RANGE_INCLUSIVE
                    end = self._parse_expression()
                    step = None
                    if self._match_word("step"):
                        step = self._parse_expression()
                    self._close_for_header(parenthesized)
                    body = self._parse_block([name_token.lexeme])
                    return ForRangeLoop(name_token.lexeme, first, end, step, inclusive, body,
                                        self._span_from(start))
                self._close_for_header(parenthesized)
                body = self._parse_block([name_token.lexeme])
                return ForInLoop(name_token.lexeme, binding, first, body, self._span_from(start))

        # C-style header; the loop variable lives in its own scope
        self._push_scope()
        try:
            init = None
            if binding is not None:
                init = self._parse_variable_declaration()
            elif (self._check(TokenType.IDENTIFIER) and self._check_next(TokenType.ASSIGN)
                  and not self._is_bound(self._peek().lexeme)):
                # An unbound `i = 0` in a loop header is a mutable counter
                name = self._advance()
                self._advance()  # =
                initializer = self._parse_expression()
                init = VariableDecl(name.lexeme, None, initializer, Mutability.LET, self._span_from(name))
                self._declare(init.name, init)
            elif not self._check(TokenType.SEMICOLON):
                expression = self._parse_expression()
                init = ExpressionStatement(expression, expression.span)
            self._consume(TokenType.SEMICOLON, "Expected ';' after loop initializer")

            condition = None
            if not self._check(TokenType.SEMICOLON):
                condition = self._parse_expression()
            self._consume(TokenType.SEMICOLON, "Expected ';' after loop condition")

            update = None
            if not (self._check(TokenType.RIGHT_PAREN) if parenthesized else self._check(TokenType.LEFT_BRACE)):
                update = self._parse_expression()
            self._close_for_header(parenthesized)
            body = self._parse_block()
        finally:
            self._pop_scope()
        return ForClassicLoop(init, condition, update, body, self._span_from(start))

    def _close_for_header(self, parenthesized: bool):
        if parenthesized:
            self._consume(TokenType.RIGHT_PAREN, "Expected ')' after for header")

    def _parse_match_statement(self) -> MatchStatement:
        start = self._peek()
        subject, arms, else_arm = self._parse_match_parts()
        return MatchStatement(subject, arms, else_arm, self._span_from(start))

    def _parse_match_expression(self) -> MatchExpression:
        start = self._peek()
        subject, arms, else_arm = self._parse_match_parts()
        return MatchExpression(subject, arms, else_arm, self._span_from(start))

    def _parse_match_parts(self) -> Tuple[Expression, List[MatchArm], Optional[MatchArm]]:
        """Parse `match subject { P1, P2 => body ... else => body }`."""
        self._advance()  # match
        subject = self._parse_expression()
        self._consume(TokenType.LEFT_BRACE, "Expected '{' after match subject")

        arms: List[MatchArm] = []
        else_arm = None
        while True:
            self._skip_separators()
            if self._check(TokenType.RIGHT_BRACE) or self._is_at_end():
                break
            if else_arm is not None:
                raise create_misplaced_else_arm_error(else_arm.span.start)

            arm_start = self._peek()
            if self._match(TokenType.ELSE):
                self._consume(TokenType.FAT_ARROW, "Expected '=>' after 'else'")
                else_arm = MatchArm([], self._parse_arm_body(), self._span_from(arm_start))
                continue

            patterns = [self._parse_match_pattern()]
            while self._match(TokenType.COMMA):
                self._skip_newlines()
                patterns.append(self._parse_match_pattern())
            self._consume(TokenType.FAT_ARROW, "Expected '=>' after match pattern")
            arms.append(MatchArm(patterns, self._parse_arm_body(), self._span_from(arm_start)))

        self._consume(TokenType.RIGHT_BRACE, "Expected '}' after match arms")
        return subject, arms, else_arm

    def _parse_arm_body(self):
        self._skip_newlines()
        if self._check(TokenType.LEFT_BRACE):
            return self._parse_block()
        return self._parse_expression()

    def _parse_match_pattern(self) -> Expression:
        """A pattern is a literal, a negative number or a dotted constant name."""
        token = self._peek()
        if token.type in (TokenType.NUMBER, TokenType.STRING, TokenType.TRUE, TokenType.FALSE,
                          TokenType.NULL, TokenType.UNDEFINED):
            return self.prefix_parsers[token.type]()
        if token.type == TokenType.MINUS and self._check_next(TokenType.NUMBER):
            self._advance()
            number = self._advance()
            return Literal(-number.value, "number", self._span_from(token), raw=f"-{number.lexeme}")
        if token.type == TokenType.IDENTIFIER:
            expression: Expression = self._parse_identifier_reference()
            while self._match(TokenType.DOT):
                member = self._consume_property_name("Expected member name")
                expression = MemberAccess(expression, member.lexeme, self._span_from(token))
            return expression
        raise ParseError(
            f"Invalid match pattern '{token.lexeme}'",
            token.location, token=token, code="P011",
            help_text="Match patterns are literals (or comma-separated lists of literals).",
        )

    def _parse_try_statement(self) -> TryStatement:
        start = self._advance()  # try
        body = self._parse_block()

        catch_param = None
        catch_body = None
        if self._check_after_newlines(TokenType.CATCH):
            self._skip_newlines()
            self._advance()
            if self._match(TokenType.LEFT_PAREN):
                catch_param = self._consume(TokenType.IDENTIFIER, "Expected catch parameter").lexeme
                self._consume(TokenType.RIGHT_PAREN, "Expected ')' after catch parameter")
            elif self._check(TokenType.IDENTIFIER):
                catch_param = self._advance().lexeme
            catch_body = self._parse_block([catch_param] if catch_param else [])

        finally_body = None
        if self._check_after_newlines(TokenType.FINALLY):
            self._skip_newlines()
            self._advance()
            finally_body = self._parse_block()

        if catch_body is None and finally_body is None:
            raise create_unexpected_token_error("'catch' or 'finally' after try block", self._peek())

        return TryStatement(body, catch_param, catch_body, finally_body, self._span_from(start))

    def _parse_return_statement(self) -> ReturnStatement:
        start = self._advance()
        value = None
        if not self._check_statement_terminator():
            value = self._parse_expression()
        return ReturnStatement(value, self._span_from(start))

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def _parse_type(self) -> TypeRef:
        """Parse a type annotation, including `T[]` and `T?` suffixes."""
        start = self._peek()
        type_ref = self._parse_primary_type()
        while True:
            if self._check(TokenType.LEFT_BRACKET) and self._check_next(TokenType.RIGHT_BRACKET):
                self._advance()
                self._advance()
                type_ref = ListTypeRef(type_ref, self._span_from(start))
            elif self._match(TokenType.QUESTION):
                type_ref = NullableTypeRef(type_ref, self._span_from(start))
            else:
                return type_ref

    def _parse_primary_type(self) -> TypeRef:
        start = self._peek()

        if self._match(TokenType.LEFT_PAREN):
            inner = self._parse_type()
            self._consume(TokenType.RIGHT_PAREN, "Expected ')' after type")
            return inner

        if self._match(TokenType.FN):
            self._consume(TokenType.LEFT_PAREN, "Expected '(' in function type")
            params = []
            while not self._check(TokenType.RIGHT_PAREN):
                # Parameter names are allowed and ignored: fn(x: num): num
                if self._check(TokenType.IDENTIFIER) and self._check_next(TokenType.COLON):
                    self._advance()
                    self._advance()
                params.append(self._parse_type())
                if not self._match(TokenType.COMMA):
                    break
            self._consume(TokenType.RIGHT_PAREN, "Expected ')' in function type")
            return_type = self._parse_return_annotation()
            return FunctionTypeRef(params, return_type, self._span_from(start))

        if self._match(TokenType.LEFT_BRACE):
            fields = []
            self._skip_separators()
            while not self._check(TokenType.RIGHT_BRACE):
                name = self._consume_property_name("Expected field name in shape type")
                optional = self._match(TokenType.QUESTION)
                self._consume(TokenType.COLON, "Expected ':' after field name")
                field_type = self._parse_type()
                if optional:
                    field_type = NullableTypeRef(field_type, field_type.span)
                fields.append((name.lexeme, field_type))
                self._skip_separators()
            self._consume(TokenType.RIGHT_BRACE, "Expected '}' after shape type")
            return ShapeTypeRef(fields, self._span_from(start))

        if self._match(TokenType.NULL, TokenType.UNDEFINED):
            return SimpleTypeRef(self._previous().lexeme, self._span_from(start))

        name_token = self._peek()
        if name_token.type != TokenType.IDENTIFIER:
            raise ParseError(f"Expected a type, found '{name_token.lexeme}'", name_token.location,
                             token=name_token, code="P007")
        self._advance()

        if name_token.lexeme == "list" and self._match(TokenType.LESS_THAN):
            element = self._parse_type()
            self._consume(TokenType.GREATER_THAN, "Expected '>' after list element type")
            return ListTypeRef(element, self._span_from(start))

        return SimpleTypeRef(name_token.lexeme, self._span_from(start))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self, precedence: Precedence = Precedence.ASSIGNMENT) -> Expression:
        """Parse an expression using Pratt parsing."""
        return self._parse_precedence(precedence)

    def _parse_precedence(self, precedence: Precedence) -> Expression:
        """Parse expression with given minimum precedence."""
        token = self._peek()
        prefix_parser = self.prefix_parsers.get(token.type)
        if prefix_parser is None:
            if token.type in (TokenType.EOF, TokenType.NEWLINE):
                raise create_unexpected_token_error("expression", token)
            raise create_invalid_expression_error(
                f"Unexpected token '{token.lexeme}' in expression", token.location, token
            )

        left = prefix_parser()

        while True:
            # A line starting with `.` or `?.` continues a method chain
            if self._check(TokenType.NEWLINE) and self._peek_past_newlines().type in (
                    TokenType.DOT, TokenType.OPTIONAL_CHAIN):
                self._skip_newlines()
            next_type = self._peek().type
            if precedence > self._get_precedence(next_type):
                break
            infix_parser = self.infix_parsers.get(next_type)
            if infix_parser is None:
                break
            left = infix_parser(left)

        return left

    def _get_precedence(self, token_type: TokenType) -> Precedence:
        """Get precedence for a token type."""
        return self.precedences.get(token_type, Precedence.NONE)

    # Prefix parsers (tokens that can start expressions)

    def _parse_number_literal(self) -> Literal:
        token = self._advance()
        return Literal(token.value, "number", SourceSpan.at(token.location), raw=token.lexeme)

    def _parse_string_literal(self) -> Literal:
        token = self._advance()
        return Literal(token.value, "string", SourceSpan.at(token.location), raw=token.lexeme)

    def _parse_keyword_literal(self) -> Literal:
        token = self._advance()
        span = SourceSpan.at(token.location)
        if token.type in (TokenType.TRUE, TokenType.FALSE):
            return Literal(token.type == TokenType.TRUE, "boolean", span)
        if token.type == TokenType.NULL:
            return Literal(None, "null", span)
        return Literal(None, "undefined", span)

    def _parse_template_literal(self) -> TemplateLiteral:
        """Parse the token group the lexer produces for a template literal."""
        start = self._advance()  # TEMPLATE_START
        quasis = [""]
        expressions = []
        while not self._match(TokenType.TEMPLATE_END):
            if self._match(TokenType.TEMPLATE_FRAGMENT):
                quasis[-1] += self._previous().lexeme
            elif self._match(TokenType.INTERPOLATION_START):
                self._skip_newlines()
                expressions.append(self._parse_expression())
                self._skip_newlines()
                self._consume(TokenType.INTERPOLATION_END, "Expected '}' to close template hole")
                quasis.append("")
            else:
                raise create_unexpected_token_error("template literal", self._peek())
        return TemplateLiteral(quasis, expressions, self._span_from(start))

    def _parse_identifier(self) -> Expression:
        if self._check_next(TokenType.FAT_ARROW):
            return self._parse_arrow_function()
        return self._parse_identifier_reference()

    def _parse_identifier_reference(self) -> Identifier:
        token = self._advance()
        return Identifier(token.lexeme, SourceSpan.at(token.location))

    def _parse_this(self) -> ThisExpression:
        return ThisExpression(SourceSpan.at(self._advance().location))

    def _parse_super(self) -> SuperExpression:
        return SuperExpression(SourceSpan.at(self._advance().location))

    def _parse_unary(self) -> UnaryOp:
        operator_token = self._advance()
        operator = "!" if operator_token.type == TokenType.NOT else operator_token.lexeme
        operand = self._parse_precedence(Precedence.UNARY)
        return UnaryOp(operator, operand, self._span_from(operator_token))

    def _parse_have(self) -> HaveExpression:
        start = self._advance()
        operand = self._parse_precedence(Precedence.UNARY)
        return HaveExpression(operand, self._span_from(start))

    def _parse_await(self) -> AwaitExpression:
        start = self._advance()
        argument = self._parse_precedence(Precedence.UNARY)
        return AwaitExpression(argument, self._span_from(start))

    def _parse_prefix_update(self) -> UpdateExpression:
        operator_token = self._advance()
        operand = self._parse_precedence(Precedence.UNARY)
        self._check_assignment_target(operand)
        self._mark_reassigned(operand)
        return UpdateExpression(operator_token.lexeme, operand, True, self._span_from(operator_token))

    def _parse_spread(self) -> SpreadElement:
        start = self._advance()
        argument = self._parse_expression()
        return SpreadElement(argument, self._span_from(start))

    def _parse_grouping_or_arrow(self) -> Expression:
        if self._is_arrow_ahead():
            return self._parse_arrow_function()
        self._advance()  # (
        expression = self._parse_expression()
        self._consume(TokenType.RIGHT_PAREN, "Expected ')' after expression")
        return expression

    def _parse_array_literal(self) -> ArrayLiteral:
        start = self._advance()  # [
        elements = []
        self._skip_newlines()
        while not self._check(TokenType.RIGHT_BRACKET):
            elements.append(self._parse_expression())
            self._skip_newlines()
            if not self._match(TokenType.COMMA):
                break
            self._skip_newlines()
        self._consume(TokenType.RIGHT_BRACKET, "Expected ']' after array elements")
        return ArrayLiteral(elements, self._span_from(start))

    def _parse_object_literal(self) -> ObjectLiteral:
        """Parse `{ key: value, "quoted": v, [computed]: v, shorthand, ...spread }`."""
        start = self._advance()  # {
        properties: List[ASTNode] = []
        self._skip_newlines()
        while not self._check(TokenType.RIGHT_BRACE):
            entry_start = self._peek()
            if self._check(TokenType.ELLIPSIS):
                properties.append(self._parse_spread())
            elif self._match(TokenType.LEFT_BRACKET):
                key_expression = self._parse_expression()
                self._consume(TokenType.RIGHT_BRACKET, "Expected ']' after computed key")
                self._consume(TokenType.COLON, "Expected ':' after property key")
                value = self._parse_expression()
                properties.append(ObjectProperty("", value, self._span_from(entry_start),
                                                 computed=key_expression))
            elif self._check(TokenType.STRING) or self._check(TokenType.NUMBER):
                key_token = self._advance()
                self._consume(TokenType.COLON, "Expected ':' after property key")
                value = self._parse_expression()
                properties.append(ObjectProperty(str(key_token.value) if key_token.type == TokenType.STRING
                                                 else key_token.lexeme,
                                                 value, self._span_from(entry_start),
                                                 quoted=key_token.type == TokenType.STRING))
            else:
                key_token = self._consume_property_name("Expected property name")
                if self._match(TokenType.COLON):
                    value = self._parse_expression()
                    properties.append(ObjectProperty(key_token.lexeme, value, self._span_from(entry_start)))
                else:
                    value = Identifier(key_token.lexeme, SourceSpan.at(key_token.location))
                    properties.append(ObjectProperty(key_token.lexeme, value, self._span_from(entry_start),
                                                     shorthand=True))
            self._skip_newlines()
            if not self._match(TokenType.COMMA):
                break
            self._skip_newlines()
        self._skip_newlines()
        self._consume(TokenType.RIGHT_BRACE, "Expected '}' after object literal")
        return ObjectLiteral(properties, self._span_from(start))

    def _parse_new(self) -> NewExpression:
        """Parse `new Callee(args)`; the callee is a name with optional member accesses."""
        start = self._advance()  # new
        callee: Expression
        if self._check(TokenType.LEFT_PAREN):
            self._advance()
            callee = self._parse_expression()
            self._consume(TokenType.RIGHT_PAREN, "Expected ')'")
        else:
            callee_token = self._consume(TokenType.IDENTIFIER, "Expected class name after 'new'")
            callee = Identifier(callee_token.lexeme, SourceSpan.at(callee_token.location))
        while self._match(TokenType.DOT):
            member = self._consume_property_name("Expected member name after '.'")
            callee = MemberAccess(callee, member.lexeme, self._span_from(start))

        arguments = []
        if self._check(TokenType.LEFT_PAREN):
            arguments = self._parse_arguments()
        return NewExpression(callee, arguments, self._span_from(start))

    def _parse_async_arrow(self) -> ArrowFunction:
        start = self._advance()  # async
        if not (self._check(TokenType.LEFT_PAREN) or
                (self._check(TokenType.IDENTIFIER) and self._check_next(TokenType.FAT_ARROW))):
            raise create_unexpected_token_error("arrow function after 'async'", self._peek())
        arrow = self._parse_arrow_function()
        arrow.is_async = True
        arrow.span = self._span_from(start)
        return arrow

    def _parse_arrow_function(self) -> ArrowFunction:
        """Parse `x => body` or `(params) (: type)? => body`; bodies may be arrows again."""
        start = self._peek()
        if self._check(TokenType.IDENTIFIER):
            name = self._advance()
            params = [Parameter(name.lexeme, None, None, SourceSpan.at(name.location))]
            return_type = None
        else:
            params = self._parse_parameter_list()
            return_type = None
            if self._match(TokenType.COLON):
                return_type = self._parse_type()
        self._consume(TokenType.FAT_ARROW, "Expected '=>' in arrow function")
        self._skip_newlines()

        param_names = [param.name for param in params]
        if self._check(TokenType.LEFT_BRACE):
            body = self._parse_block(param_names)
        else:
            self._push_scope(param_names)
            try:
                body = self._parse_expression()
            finally:
                self._pop_scope()
        return ArrowFunction(params, body, self._span_from(start), return_type=return_type)

    def _is_arrow_ahead(self) -> bool:
        """At `(`: does the matching `)` precede `=>` (optionally after `: type`)?"""
        depth = 0
        position = self.current
        while position < len(self.tokens):
            token_type = self.tokens[position].type
            if token_type == TokenType.LEFT_PAREN:
                depth += 1
            elif token_type == TokenType.RIGHT_PAREN:
                depth -= 1
                if depth == 0:
                    break
            elif token_type == TokenType.EOF:
                return False
            position += 1

        position += 1
        if position >= len(self.tokens):
            return False
        if self.tokens[position].type == TokenType.FAT_ARROW:
            return True
        if self.tokens[position].type != TokenType.COLON:
            return False
        position += 1
        while position < len(self.tokens) and self.tokens[position].type in _TYPE_TOKENS:
            position += 1
        return position < len(self.tokens) and self.tokens[position].type == TokenType.FAT_ARROW

    # Infix parsers

    def _parse_binary(self, left: Expression) -> BinaryOp:
        """Parse binary operation."""
        operator_token = self._advance()
        operator = BINARY_OPERATORS[operator_token.type]
        self._skip_newlines()

        precedence = self._get_precedence(operator_token.type)
        if operator_token.type == TokenType.POWER:
            # Right associative
            right = self._parse_precedence(precedence)
        else:
            right = self._parse_precedence(Precedence(precedence + 1))

        return BinaryOp(left, operator, right, SourceSpan(left.span.start, right.span.end))

    def _parse_assignment(self, left: Expression) -> Assignment:
        """Parse assignment (right associative)."""
        operator_token = self._advance()
        self._check_assignment_target(left)
        self._skip_newlines()
        value = self._parse_precedence(Precedence.ASSIGNMENT)
        self._mark_reassigned(left)
        return Assignment(left, operator_token.lexeme, value, SourceSpan(left.span.start, value.span.end))

    def _parse_conditional(self, condition: Expression) -> ConditionalExpression:
        self._advance()  # ?
        self._skip_newlines()
        then_expr = self._parse_expression()
        self._skip_newlines()
        self._consume(TokenType.COLON, "Expected ':' in conditional expression")
        self._skip_newlines()
        else_expr = self._parse_precedence(Precedence.ASSIGNMENT)
        return ConditionalExpression(condition, then_expr, else_expr,
                                     SourceSpan(condition.span.start, else_expr.span.end))

    def _parse_postfix_update(self, operand: Expression) -> UpdateExpression:
        operator_token = self._advance()
        self._check_assignment_target(operand)
        self._mark_reassigned(operand)
        return UpdateExpression(operator_token.lexeme, operand, False,
                                SourceSpan(operand.span.start, operator_token.location))

    def _parse_arguments(self) -> List[Expression]:
        self._consume(TokenType.LEFT_PAREN, "Expected '('")
        arguments = []
        while not self._check(TokenType.RIGHT_PAREN):
            arguments.append(self._parse_expression())
            if not self._match(TokenType.COMMA):
                break
        self._consume(TokenType.RIGHT_PAREN, "Expected ')' after arguments")
        return arguments

    def _parse_function_call(self, callee: Expression) -> FunctionCall:
        arguments = self._parse_arguments()
        return FunctionCall(callee, arguments, SourceSpan(callee.span.start, self._previous().location))

    def _parse_member_access(self, obj: Expression) -> MemberAccess:
        self._advance()  # .
        member = self._consume_property_name("Expected member name after '.'")
        return MemberAccess(obj, member.lexeme, SourceSpan(obj.span.start, member.location))

    def _parse_optional_chain(self, obj: Expression) -> Expression:
        """Parse `?.name`, `?.[index]` and `?.(args)`."""
        self._advance()  # ?.
        if self._check(TokenType.LEFT_PAREN):
            arguments = self._parse_arguments()
            return FunctionCall(obj, arguments, SourceSpan(obj.span.start, self._previous().location),
                                optional=True)
        if self._match(TokenType.LEFT_BRACKET):
            index = self._parse_expression()
            end = self._consume(TokenType.RIGHT_BRACKET, "Expected ']' after index")
            return IndexAccess(obj, index, SourceSpan(obj.span.start, end.location), optional=True)
        member = self._consume_property_name("Expected member name after '?.'")
        return MemberAccess(obj, member.lexeme, SourceSpan(obj.span.start, member.location), optional=True)

    def _parse_index_access(self, obj: Expression) -> IndexAccess:
        self._advance()  # [
        index = self._parse_expression()
        end = self._consume(TokenType.RIGHT_BRACKET, "Expected ']' after index")
        return IndexAccess(obj, index, SourceSpan(obj.span.start, end.location))

    def _check_assignment_target(self, target: Expression):
        valid = isinstance(target, Identifier) or (
            isinstance(target, (MemberAccess, IndexAccess)) and not target.optional)
        if not valid:
            raise create_invalid_assignment_target_error(target.span.start)

    # ------------------------------------------------------------------
    # Utility methods
    # ------------------------------------------------------------------

    def _match(self, *token_types: TokenType) -> bool:
        """Consume the current token if it has one of the given types."""
        if self._peek().type in token_types:
            self._advance()
            return True
        return False

    def _check(self, token_type: TokenType) -> bool:
        return self._peek().type == token_type

    def _check_next(self, token_type: TokenType) -> bool:
        return self._peek(1).type == token_type

    def _check_word(self, word: str) -> bool:
        """Check for a contextual keyword (`from`, `as`, `of`, `step`)."""
        token = self._peek()
        return token.type == TokenType.IDENTIFIER and token.lexeme == word

    def _match_word(self, word: str) -> bool:
        if self._check_word(word):
            self._advance()
            return True
        return False

    def _consume_word(self, word: str) -> Token:
        if self._check_word(word):
            return self._advance()
        raise create_unexpected_token_error(f"'{word}'", self._peek())

    def _check_after_newlines(self, *token_types: TokenType) -> bool:
        return self._peek_past_newlines().type in token_types

    def _peek_past_newlines(self) -> Token:
        position = self.current
        while self.tokens[position].type == TokenType.NEWLINE:
            position += 1
        return self.tokens[position]

    def _skip_newlines(self):
        while self._check(TokenType.NEWLINE):
            self._advance()

    def _skip_separators(self):
        while self._peek().type in (TokenType.NEWLINE, TokenType.COMMA, TokenType.SEMICOLON):
            self._advance()

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self._previous()

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        """Return a token ahead of the current one without consuming it."""
        position = min(self.current + offset, len(self.tokens) - 1)
        return self.tokens[position]

    def _previous(self) -> Token:
        if self.current > 0:
            return self.tokens[self.current - 1]
        return self.tokens[0]

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume token of expected type or raise error."""
        if self._check(token_type):
            return self._advance()
        raise create_unexpected_token_error(token_type, self._peek())

    def _consume_property_name(self, message: str) -> Token:
        """Property names may be any identifier-like word, keywords included."""
        token = self._peek()
        if token.type == TokenType.IDENTIFIER or (token.lexeme[:1].isalpha() and token.type != TokenType.EOF):
            return self._advance()
        raise create_unexpected_token_error(message.replace("Expected ", ""), token)

    def _check_statement_terminator(self) -> bool:
        return self._peek().type in (TokenType.SEMICOLON, TokenType.NEWLINE,
                                     TokenType.EOF, TokenType.RIGHT_BRACE)

    def _consume_statement_terminator(self):
        """A statement ends at `;`, a newline, a closing `}` or the end of input."""
        if self._match(TokenType.SEMICOLON, TokenType.NEWLINE):
            return
        if self._check(TokenType.RIGHT_BRACE) or self._is_at_end():
            return
        raise create_missing_terminator_error(self._peek())

    def _span_from(self, start: Token) -> SourceSpan:
        return SourceSpan(start.location, self._previous().location)


def parse_string(source: str, filename: str = "<string>") -> Program:
    """
    Convenience function to parse a source string.

    Raises:
        LexerError: If lexing fails
        ParseError: If parsing fails (the first error is raised)
    """
    from ..lexer import tokenize_string

    tokens = tokenize_string(source, filename)
    parser = Parser(tokens)
    program = parser.parse()
    if parser.errors:
        raise parser.errors[0]
    return program


def parse_file(filepath: str) -> Program:
    """
    Convenience function to parse a source file.

    Raises:
        ParseError: If parsing fails
        IOError: If file cannot be read
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        source = f.read()
    return parse_string(source, filepath)
