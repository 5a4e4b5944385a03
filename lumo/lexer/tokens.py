"""
Token definitions for the Lumo lexer.

This module defines all token types supported by Lumo, including:
- Keywords (declaration, control flow, module and null-safety keywords)
- Operators (with every multi-character form the lexer must match greedily)
- Literals (numbers, strings, template-literal fragments)
- Punctuation and delimiters

Author: xwest
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any


class TokenType(Enum):
    """
    Enumeration of all token types in Lumo.

    Organized by category for clarity and maintainability.
    """

    # ========================================================================
    # Special Tokens
    # ========================================================================
    EOF = auto()                    # End of input
    NEWLINE = auto()                # Newline (statement terminator)

    # ========================================================================
    # Literals
    # ========================================================================
    NUMBER = auto()                 # 42, 3.14, 1e3, 0xFF, 1_000
    STRING = auto()                 # "hello", 'world'
    TRUE = auto()                   # true
    FALSE = auto()                  # false
    NULL = auto()                   # null
    UNDEFINED = auto()              # undefined

    # Template literals: `a ${b} c`
    TEMPLATE_START = auto()         # opening backtick
    TEMPLATE_FRAGMENT = auto()      # raw text between holes
    INTERPOLATION_START = auto()    # ${
    INTERPOLATION_END = auto()      # } closing a hole
    TEMPLATE_END = auto()           # closing backtick

    # ========================================================================
    # Identifiers and Keywords
    # ========================================================================
    IDENTIFIER = auto()

    # Declarations
    VAR = auto()                    # var
    LET = auto()                    # let
    CONST = auto()                  # const
    INIT = auto()                   # init (immutable once initialized)
    FN = auto()                     # fn / function
    CLASS = auto()                  # class
    EXTENDS = auto()                # extends
    STATIC = auto()                 # static
    IMPORT = auto()                 # import
    EXPORT = auto()                 # export

    # Control flow
    IF = auto()                     # if
    ELSE = auto()                   # else
    ELIF = auto()                   # elif (equivalent to else if)
    WHILE = auto()                  # while
    FOR = auto()                    # for
    IN = auto()                     # in
    MATCH = auto()                  # match
    RETURN = auto()                 # return
    BREAK = auto()                  # break
    CONTINUE = auto()               # continue
    TRY = auto()                    # try
    CATCH = auto()                  # catch
    FINALLY = auto()                # finally
    THROW = auto()                  # throw

    # Expressions
    NEW = auto()                    # new
    THIS = auto()                   # this
    SUPER = auto()                  # super
    ASYNC = auto()                  # async
    AWAIT = auto()                  # await
    TYPEOF = auto()                 # typeof
    INSTANCEOF = auto()             # instanceof
    HAVE = auto()                   # have (null/undefined test)

    # Keyword-form logical operators
    AND = auto()                    # and
    OR = auto()                     # or
    NOT = auto()                    # not

    # ========================================================================
    # Operators
    # ========================================================================

    # Arithmetic
    PLUS = auto()                   # +
    MINUS = auto()                  # -
    MULTIPLY = auto()               # *
    DIVIDE = auto()                 # /
    MODULO = auto()                 # %
    POWER = auto()                  # **
    INCREMENT = auto()              # ++
    DECREMENT = auto()              # --

    # Assignment
    ASSIGN = auto()                 # =
    PLUS_ASSIGN = auto()            # +=
    MINUS_ASSIGN = auto()           # -=
    MULTIPLY_ASSIGN = auto()        # *=
    DIVIDE_ASSIGN = auto()          # /=
    MODULO_ASSIGN = auto()          # %=
    POWER_ASSIGN = auto()           # **=
    NULLISH_ASSIGN = auto()         # ??=
    AND_ASSIGN = auto()             # &&=
    OR_ASSIGN = auto()              # ||=

    # Comparison
    EQUAL = auto()                  # ==
    NOT_EQUAL = auto()              # !=
    STRICT_EQUAL = auto()           # ===
    STRICT_NOT_EQUAL = auto()       # !==
    LESS_THAN = auto()              # <
    GREATER_THAN = auto()           # >
    LESS_EQUAL = auto()             # <=
    GREATER_EQUAL = auto()          # >=

    # Logical (symbol form)
    LOGICAL_AND = auto()            # &&
    LOGICAL_OR = auto()             # ||
    LOGICAL_NOT = auto()            # !

    # Null safety
    NULLISH = auto()                # ??
    OPTIONAL_CHAIN = auto()         # ?.

    # ========================================================================
    # Punctuation and Delimiters
    # ========================================================================
    LEFT_PAREN = auto()             # (
    RIGHT_PAREN = auto()            # )
    LEFT_BRACKET = auto()           # [
    RIGHT_BRACKET = auto()          # ]
    LEFT_BRACE = auto()             # {
    RIGHT_BRACE = auto()            # }

    SEMICOLON = auto()              # ;
    COMMA = auto()                  # ,
    DOT = auto()                    # .
    COLON = auto()                  # :
    ARROW = auto()                  # ->
    FAT_ARROW = auto()              # =>
    QUESTION = auto()               # ?
    ELLIPSIS = auto()               # ...

    # Range operators
    RANGE_EXCLUSIVE = auto()        # ..
    RANGE_INCLUSIVE = auto()        # ..=

    # ========================================================================
    # Error and Recovery Tokens
    # ========================================================================
    INVALID = auto()                # Invalid/unrecognized input


@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in the source code.

    Used for error reporting and diagnostics.
    """
    filename: str
    line: int
    column: int
    offset: int  # Character offset from start of input

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"

    def __repr__(self) -> str:
        return f"SourceLocation({self.filename!r}, {self.line}, {self.column}, {self.offset})"


@dataclass(frozen=True)
class SourceSpan:
    """Represents a span of source code (start and end locations)."""
    start: SourceLocation
    end: SourceLocation

    def __str__(self) -> str:
        if self.start.filename == self.end.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start}-{self.end}"

    @classmethod
    def at(cls, location: SourceLocation) -> "SourceSpan":
        return cls(location, location)


@dataclass(frozen=True)
class Token:
    """
    Represents a lexical token in the Lumo language.

    Contains the token type, lexeme (raw text), semantic value,
    and source location for error reporting.
    """
    type: TokenType
    lexeme: str                     # Raw text from source
    value: Any                      # Parsed value (float for NUMBER, cooked text for strings)
    location: SourceLocation        # Source location

    def __str__(self) -> str:
        if self.value is not None and self.value != self.lexeme:
            return f"{self.type.name}({self.lexeme!r} -> {self.value!r})"
        return f"{self.type.name}({self.lexeme!r})"

    def __repr__(self) -> str:
        return (f"Token({self.type.name}, {self.lexeme!r}, "
                f"{self.value!r}, {self.location!r})")


# Reserved words
KEYWORDS = {
    # Declarations
    "var": TokenType.VAR,
    "let": TokenType.LET,
    "const": TokenType.CONST,
    "init": TokenType.INIT,
    "fn": TokenType.FN,
    "function": TokenType.FN,
    "class": TokenType.CLASS,
    "extends": TokenType.EXTENDS,
    "static": TokenType.STATIC,
    "import": TokenType.IMPORT,
    "export": TokenType.EXPORT,

    # Control flow
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "elif": TokenType.ELIF,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "match": TokenType.MATCH,
    "return": TokenType.RETURN,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "try": TokenType.TRY,
    "catch": TokenType.CATCH,
    "finally": TokenType.FINALLY,
    "throw": TokenType.THROW,

    # Expressions
    "new": TokenType.NEW,
    "this": TokenType.THIS,
    "super": TokenType.SUPER,
    "async": TokenType.ASYNC,
    "await": TokenType.AWAIT,
    "typeof": TokenType.TYPEOF,
    "instanceof": TokenType.INSTANCEOF,
    "have": TokenType.HAVE,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,

    # Literals
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "null": TokenType.NULL,
    "undefined": TokenType.UNDEFINED,
}

# Words that only act as keywords in one position and are plain identifiers
# everywhere else (`from` in imports, `of` in for headers, ...)
CONTEXTUAL_KEYWORDS = frozenset({"from", "as", "of", "step"})

OPERATORS = {
    # Arithmetic
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.MULTIPLY,
    "/": TokenType.DIVIDE,
    "%": TokenType.MODULO,
    "**": TokenType.POWER,
    "++": TokenType.INCREMENT,
    "--": TokenType.DECREMENT,

    # Assignment
    "=": TokenType.ASSIGN,
    "+=": TokenType.PLUS_ASSIGN,
    "-=": TokenType.MINUS_ASSIGN,
    "*=": TokenType.MULTIPLY_ASSIGN,
    "/=": TokenType.DIVIDE_ASSIGN,
    "%=": TokenType.MODULO_ASSIGN,
    "**=": TokenType.POWER_ASSIGN,
    "??=": TokenType.NULLISH_ASSIGN,
    "&&=": TokenType.AND_ASSIGN,
    "||=": TokenType.OR_ASSIGN,

    # Comparison
    "==": TokenType.EQUAL,
    "!=": TokenType.NOT_EQUAL,
    "===": TokenType.STRICT_EQUAL,
    "!==": TokenType.STRICT_NOT_EQUAL,
    "<": TokenType.LESS_THAN,
    ">": TokenType.GREATER_THAN,
    "<=": TokenType.LESS_EQUAL,
    ">=": TokenType.GREATER_EQUAL,

    # Logical
    "&&": TokenType.LOGICAL_AND,
    "||": TokenType.LOGICAL_OR,
    "!": TokenType.LOGICAL_NOT,

    # Null safety
    "??": TokenType.NULLISH,
    "?.": TokenType.OPTIONAL_CHAIN,

    # Punctuation
    "(": TokenType.LEFT_PAREN,
    ")": TokenType.RIGHT_PAREN,
    "[": TokenType.LEFT_BRACKET,
    "]": TokenType.RIGHT_BRACKET,
    "{": TokenType.LEFT_BRACE,
    "}": TokenType.RIGHT_BRACE,
    ";": TokenType.SEMICOLON,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    ":": TokenType.COLON,
    "->": TokenType.ARROW,
    "=>": TokenType.FAT_ARROW,
    "?": TokenType.QUESTION,
    "...": TokenType.ELLIPSIS,
    "..": TokenType.RANGE_EXCLUSIVE,
    "..=": TokenType.RANGE_INCLUSIVE,
}

# Longest operator first; the lexer tries these lengths in order
MAX_OPERATOR_LENGTH = max(len(op) for op in OPERATORS)

# Characters at which the lexer resynchronizes after an invalid character
PUNCTUATION_CHARS = frozenset("()[]{};,.:")
