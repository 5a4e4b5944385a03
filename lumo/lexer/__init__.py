"""
Lumo Lexer Package

Tokenizer for the Lumo language.

Key Features:
- Nested template literals (`${...}` holes re-enter the token loop)
- Greedy longest-match operators (`**=`, `??=`, `?.`, `..=`, ...)
- Significant newlines, suppressed inside parentheses and brackets
- Error recovery: bad input becomes an INVALID token and lexing continues

Author: xwest
"""

from .tokens import Token, TokenType, SourceLocation, SourceSpan, KEYWORDS, CONTEXTUAL_KEYWORDS
from .lexer import Lexer, tokenize_string, tokenize_file
from .errors import Diagnostic, ErrorKind, LexerError

__all__ = [
    "Lexer",
    "Token",
    "TokenType",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    "CONTEXTUAL_KEYWORDS",
    "Diagnostic",
    "ErrorKind",
    "LexerError",
    "tokenize_string",
    "tokenize_file",
]
