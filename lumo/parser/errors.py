"""
Error handling for the Lumo parser.

Syntax errors are collected rather than raised out of ``Parser.parse``:
after each one the parser skips to the next statement boundary and keeps
going, so a file with several mistakes reports all of them.

Author: xwest
"""

from typing import Optional, List, Union

from ..lexer.tokens import Token, TokenType, SourceLocation, SourceSpan
from ..lexer.errors import Diagnostic, ErrorKind


class ParseError(Exception):
    """
    Exception raised when the parser encounters a syntax error.

    Contains detailed diagnostic information for error reporting.
    """

    def __init__(
        self,
        message: str,
        location: SourceLocation,
        token: Optional[Token] = None,
        code: Optional[str] = None,
        help_text: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.diagnostic = Diagnostic(
            message=message,
            location=location,
            severity="error",
            kind=ErrorKind.SYNTAX,
            code=code,
            span=SourceSpan.at(location),
            help_text=help_text,
            suggestions=suggestions
        )
        self.token = token

    def __str__(self) -> str:
        return str(self.diagnostic)


class SyntaxErrorRecovery:
    """
    Utilities for error recovery in the parser.

    Provides strategies to continue parsing after encountering syntax errors,
    allowing the collection of multiple errors in a single pass.
    """

    # Keywords that begin a new statement; recovery stops in front of them
    STATEMENT_KEYWORDS = {
        TokenType.VAR,
        TokenType.LET,
        TokenType.CONST,
        TokenType.INIT,
        TokenType.FN,
        TokenType.CLASS,
        TokenType.IMPORT,
        TokenType.EXPORT,
        TokenType.IF,
        TokenType.WHILE,
        TokenType.FOR,
        TokenType.MATCH,
        TokenType.RETURN,
        TokenType.TRY,
        TokenType.THROW,
    }

    # Tokens that end a statement; recovery resumes just after them
    STATEMENT_TERMINATORS = {
        TokenType.SEMICOLON,
        TokenType.NEWLINE,
    }

    @staticmethod
    def suggest_missing_token(expected: TokenType) -> List[str]:
        """Suggest what token might be missing."""
        token_suggestions = {
            TokenType.SEMICOLON: ["Add a semicolon ';' or a newline to end the statement"],
            TokenType.RIGHT_PAREN: ["Add a closing parenthesis ')'"],
            TokenType.RIGHT_BRACKET: ["Add a closing bracket ']'"],
            TokenType.RIGHT_BRACE: ["Add a closing brace '}'"],
            TokenType.LEFT_BRACE: ["Add an opening brace '{' to start a block"],
            TokenType.FAT_ARROW: ["Separate a match pattern from its body with '=>'"],
            TokenType.ASSIGN: ["Add an assignment operator '='"],
        }
        return list(token_suggestions.get(expected, []))

    @staticmethod
    def synchronize_to_statement_boundary(tokens: List[Token], current_pos: int) -> int:
        """
        Synchronize parser to the next likely statement boundary.

        Brackets opened while skipping are skipped as a whole. A `}` that
        closes the enclosing block is left in place so the block parser can
        consume it.

        Returns the position to resume parsing from.
        """
        depth = 0
        start = current_pos
        while current_pos < len(tokens):
            token = tokens[current_pos]

            if token.type == TokenType.EOF:
                return current_pos

            if token.type in (TokenType.LEFT_PAREN, TokenType.LEFT_BRACKET, TokenType.LEFT_BRACE):
                depth += 1
            elif token.type in (TokenType.RIGHT_PAREN, TokenType.RIGHT_BRACKET, TokenType.RIGHT_BRACE):
                if depth == 0:
                    if token.type == TokenType.RIGHT_BRACE:
                        return current_pos
                else:
                    depth -= 1
            elif depth == 0:
                if token.type in SyntaxErrorRecovery.STATEMENT_TERMINATORS:
                    return current_pos + 1
                if token.type in SyntaxErrorRecovery.STATEMENT_KEYWORDS and current_pos > start:
                    return current_pos

            current_pos += 1

        return current_pos


# Common parser error codes for categorization
PARSER_ERROR_CODES = {
    "P001": "Unexpected token",
    "P002": "Expected token not found",
    "P003": "Missing statement terminator",
    "P005": "Invalid expression",
    "P006": "Invalid assignment target",
    "P007": "Invalid type annotation",
    "P008": "Misplaced else arm in match",
    "P009": "Missing initializer",
    "P010": "Unexpected end of input",
    "P011": "Invalid match pattern",
}


def _describe(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    if token.type == TokenType.NEWLINE:
        return "end of line"
    return f"'{token.lexeme}'"


def create_unexpected_token_error(expected: Union[TokenType, str], found: Token) -> ParseError:
    """Create an error for an unexpected token."""
    expected_str = expected.name if isinstance(expected, TokenType) else expected
    found_str = _describe(found)

    if found.type == TokenType.EOF:
        return create_unexpected_eof_error(expected_str, found.location)

    suggestions = SyntaxErrorRecovery.suggest_missing_token(expected) if isinstance(expected, TokenType) else []

    return ParseError(
        message=f"Expected {expected_str}, found {found_str}",
        location=found.location,
        token=found,
        code="P001",
        suggestions=suggestions or None
    )


def create_missing_terminator_error(found: Token) -> ParseError:
    return ParseError(
        message=f"Expected end of statement, found {_describe(found)}",
        location=found.location,
        token=found,
        code="P003",
        suggestions=SyntaxErrorRecovery.suggest_missing_token(TokenType.SEMICOLON)
    )


def create_invalid_expression_error(reason: str, location: SourceLocation,
                                    token: Optional[Token] = None) -> ParseError:
    """Create an error for an invalid expression."""
    return ParseError(
        message=f"Invalid expression: {reason}",
        location=location,
        token=token,
        code="P005",
        help_text=reason,
    )


def create_invalid_assignment_target_error(location: SourceLocation) -> ParseError:
    return ParseError(
        message="Invalid assignment target",
        location=location,
        code="P006",
        help_text="Only names, member accesses and index accesses can be assigned to.",
    )


def create_misplaced_else_arm_error(location: SourceLocation) -> ParseError:
    return ParseError(
        message="The 'else' arm must be the last arm of a match",
        location=location,
        code="P008",
    )


def create_missing_initializer_error(keyword: str, name: str, location: SourceLocation) -> ParseError:
    return ParseError(
        message=f"'{keyword}' declaration '{name}' must be initialized",
        location=location,
        code="P009",
        suggestions=[f"{keyword} {name} = <value>"],
    )


def create_unexpected_eof_error(expected: str, location: SourceLocation) -> ParseError:
    """Create an error for unexpected end of input."""
    return ParseError(
        message=f"Unexpected end of input, expected {expected}",
        location=location,
        code="P010",
        help_text=f"The parser reached the end of the file while expecting {expected}.",
    )
