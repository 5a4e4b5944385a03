"""
Lumo Lexer - turns source text into a token stream.

Template literals are the tricky part: every `${` hole re-enters the normal
token loop, which runs until the `}` that closes the hole, so holes can
contain further templates to any depth.

Newlines are significant (they end statements) except directly inside
parentheses, brackets and template holes.

Author: xwest
"""

import re
import logging
from typing import List

from .tokens import (
    Token, TokenType, SourceLocation, KEYWORDS, OPERATORS,
    MAX_OPERATOR_LENGTH, PUNCTUATION_CHARS
)
from .errors import (
    Diagnostic, LexerError, create_invalid_character_error,
    create_unterminated_string_error, create_invalid_number_error,
    create_unterminated_template_error, create_unterminated_comment_error
)

logger = logging.getLogger(__name__)

# Tokens after which a `.` cannot start a number (`a.5` is never a literal)
_VALUE_END_TOKENS = {
    TokenType.IDENTIFIER, TokenType.NUMBER, TokenType.STRING,
    TokenType.RIGHT_PAREN, TokenType.RIGHT_BRACKET, TokenType.RIGHT_BRACE,
    TokenType.TEMPLATE_END, TokenType.THIS,
}

_HOLE = "${"
_DIGITS = "0123456789"


class Lexer:
    """
    Lumo lexical analyzer.

    Errors never stop the scan: each malformed piece of input becomes an
    INVALID token plus an entry in ``errors``, and lexing resumes at the
    next whitespace or punctuation character.
    """

    def __init__(self, source: str, filename: str = "<unknown>"):
        """
        Initialize the lexer with source code.

        Args:
            source: Source code string
            filename: Name of source file for error reporting
        """
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self.errors: List[LexerError] = []

        # Open delimiters: "(", "[", "{" or "${"
        self._delimiters: List[str] = []

        self._compile_patterns()

    def _compile_patterns(self):
        """Compile regex patterns used by the lexer."""
        self.hex_pattern = re.compile(r'0[xX][0-9a-fA-F][0-9a-fA-F_]*')
        self.binary_pattern = re.compile(r'0[bB][01][01_]*')
        self.octal_pattern = re.compile(r'0[oO][0-7][0-7_]*')
        # A dot only belongs to the number when a digit follows, so `0..5` is 0, .., 5
        self.decimal_pattern = re.compile(
            r'(?:\d[\d_]*(?:\.\d[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d+)?'
        )
        self.identifier_tail = re.compile(r'[\w$]*')

    def tokenize(self) -> List[Token]:
        """
        Tokenize the entire source code.

        Returns:
            List of tokens terminated by an EOF token
        """
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens = []
        self.errors = []
        self._delimiters = []

        self._scan()

        self.tokens.append(Token(TokenType.EOF, "", None, self._location()))
        logger.debug("lexed %s: %d tokens, %d errors",
                     self.filename, len(self.tokens), len(self.errors))
        return self.tokens

    def _scan(self, in_hole: bool = False) -> bool:
        """
        Run the token loop.

        When ``in_hole`` is set the loop stops at the `}` that closes the
        current template hole and returns True; otherwise it runs to the end
        of input. Returns False when the input ran out.
        """
        while True:
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                return False

            if (in_hole and self.source[self.pos] == '}'
                    and self._delimiters and self._delimiters[-1] == _HOLE):
                return True

            start = (self.pos, self.line, self.column)
            try:
                self._scan_token()
            except LexerError as e:
                self.errors.append(e)
                self._recover(start)

    def _scan_token(self):
        """Scan one token (or a whole template literal) at the current position."""
        start_location = self._location()
        current_char = self.source[self.pos]

        if current_char == '\n':
            self._advance()
            suppressed = self._delimiters and self._delimiters[-1] in ("(", "[", _HOLE)
            if not suppressed and self.tokens and self.tokens[-1].type != TokenType.NEWLINE:
                self._add(TokenType.NEWLINE, '\n', None, start_location)
            return

        if current_char in _DIGITS or (
                current_char == '.' and self._peek() in _DIGITS and not self._after_value()):
            self._tokenize_number(start_location)
            return

        if current_char.isalpha() or current_char in '_$':
            self._tokenize_identifier_or_keyword(start_location)
            return

        if current_char in ('"', "'"):
            self._tokenize_string(current_char, start_location)
            return

        if current_char == '`':
            self._tokenize_template(start_location)
            return

        # Operators and punctuation, longest match first
        for op_len in range(MAX_OPERATOR_LENGTH, 0, -1):
            potential_op = self.source[self.pos:self.pos + op_len]
            if len(potential_op) != op_len or potential_op not in OPERATORS:
                continue
            # `a?.5:1` is a conditional, not an optional chain
            if potential_op == "?." and self._peek(2) in _DIGITS:
                continue
            self._advance_by(op_len)
            self._track_delimiter(potential_op)
            self._add(OPERATORS[potential_op], potential_op, None, start_location)
            return

        raise create_invalid_character_error(current_char, start_location)

    def _track_delimiter(self, op: str):
        if op in ("(", "[", "{"):
            self._delimiters.append(op)
        elif op in (")", "]", "}"):
            if self._delimiters and self._delimiters[-1] != _HOLE:
                self._delimiters.pop()

    def _recover(self, start):
        """Skip the rest of a malformed lexeme and record it as an INVALID token."""
        pos, line, column = start
        if self.pos == pos:
            self._advance()
        while (self.pos < len(self.source)
               and not self.source[self.pos].isspace()
               and self.source[self.pos] not in PUNCTUATION_CHARS):
            self._advance()
        lexeme = self.source[pos:self.pos]
        self.tokens.append(Token(
            TokenType.INVALID, lexeme, None,
            SourceLocation(self.filename, line, column, pos)
        ))

    def _after_value(self) -> bool:
        return bool(self.tokens) and self.tokens[-1].type in _VALUE_END_TOKENS

    def _tokenize_number(self, location: SourceLocation):
        """Tokenize integer and decimal literals (plus hex/binary/octal)."""
        remaining = self.source[self.pos:]

        for pattern, base in ((self.hex_pattern, 16), (self.binary_pattern, 2), (self.octal_pattern, 8)):
            match = pattern.match(remaining)
            if match:
                lexeme = match.group(0)
                self._advance_by(len(lexeme))
                self._add(TokenType.NUMBER, lexeme, int(lexeme[2:].replace('_', ''), base), location)
                return

        match = self.decimal_pattern.match(remaining)
        lexeme = match.group(0)
        self._advance_by(len(lexeme))

        # Identifier characters glued to a number (`12abc`) are an error
        if self.pos < len(self.source) and (self.source[self.pos].isalpha() or self.source[self.pos] == '_'):
            raise create_invalid_number_error(
                lexeme + self.source[self.pos], location,
                "Numbers cannot be directly followed by letters."
            )

        clean = lexeme.replace('_', '')
        try:
            if '.' in clean or 'e' in clean.lower():
                value = float(clean)
            else:
                value = int(clean)
        except ValueError:
            raise create_invalid_number_error(lexeme, location, "Cannot parse numeric literal")

        self._add(TokenType.NUMBER, lexeme, value, location)

    def _tokenize_identifier_or_keyword(self, location: SourceLocation):
        start_pos = self.pos
        self._advance()
        match = self.identifier_tail.match(self.source, self.pos)
        self._advance_by(len(match.group(0)))

        lexeme = self.source[start_pos:self.pos]
        token_type = KEYWORDS.get(lexeme, TokenType.IDENTIFIER)

        if token_type == TokenType.IDENTIFIER:
            value = lexeme
        elif token_type in (TokenType.TRUE, TokenType.FALSE):
            value = token_type == TokenType.TRUE
        else:
            value = None

        self._add(token_type, lexeme, value, location)

    def _tokenize_string(self, quote: str, location: SourceLocation):
        """Tokenize a single- or double-quoted string; value holds the cooked text."""
        start_pos = self.pos
        self._advance()  # Skip opening quote

        value_parts = []
        while self.pos < len(self.source) and self.source[self.pos] != quote:
            char = self.source[self.pos]
            if char == '\n':
                break
            if char == '\\':
                self._advance()
                value_parts.append(self._handle_escape_sequence())
            else:
                value_parts.append(char)
                self._advance()

        if self.pos >= len(self.source) or self.source[self.pos] != quote:
            raise create_unterminated_string_error(quote, location)

        self._advance()  # Skip closing quote
        self._add(TokenType.STRING, self.source[start_pos:self.pos], ''.join(value_parts), location)

    def _tokenize_template(self, location: SourceLocation):
        """
        Tokenize a template literal.

        Emits TEMPLATE_START, then alternating TEMPLATE_FRAGMENT runs and
        INTERPOLATION_START ... INTERPOLATION_END groups, then TEMPLATE_END.
        Fragment values are cooked (escapes resolved); the lexeme keeps the raw text.
        """
        self._advance()
        self._add(TokenType.TEMPLATE_START, '`', None, location)

        while True:
            fragment_location = self._location()
            fragment_start = self.pos
            parts = []
            while self.pos < len(self.source):
                char = self.source[self.pos]
                if char == '`' or (char == '$' and self._peek() == '{'):
                    break
                if char == '\\':
                    self._advance()
                    parts.append(self._handle_escape_sequence())
                else:
                    parts.append(char)
                    self._advance()

            if self.pos > fragment_start:
                self._add(TokenType.TEMPLATE_FRAGMENT, self.source[fragment_start:self.pos],
                          ''.join(parts), fragment_location)

            if self.pos >= len(self.source):
                raise create_unterminated_template_error(location)

            if self.source[self.pos] == '`':
                end_location = self._location()
                self._advance()
                self._add(TokenType.TEMPLATE_END, '`', None, end_location)
                return

            # `${` hole: lex ordinary tokens until its closing brace
            hole_location = self._location()
            self._advance_by(2)
            self._add(TokenType.INTERPOLATION_START, '${', None, hole_location)
            self._delimiters.append(_HOLE)
            closed = self._scan(in_hole=True)
            self._delimiters.pop()
            if not closed:
                raise create_unterminated_template_error(location)
            close_location = self._location()
            self._advance()
            self._add(TokenType.INTERPOLATION_END, '}', None, close_location)

    def _handle_escape_sequence(self) -> str:
        """Handle an escape sequence; the backslash has already been consumed."""
        if self.pos >= len(self.source):
            return '\\'

        escape_char = self.source[self.pos]
        self._advance()

        escape_sequences = {
            'n': '\n',
            't': '\t',
            'r': '\r',
            'b': '\b',
            'f': '\f',
            'v': '\v',
            '0': '\0',
            '\\': '\\',
            '"': '"',
            "'": "'",
            '`': '`',
            '$': '$',
            '\n': '',  # line continuation
        }

        if escape_char in escape_sequences:
            return escape_sequences[escape_char]
        elif escape_char == 'x':
            hex_digits = self.source[self.pos:self.pos + 2]
            if len(hex_digits) == 2 and all(c in '0123456789abcdefABCDEF' for c in hex_digits):
                self._advance_by(2)
                return chr(int(hex_digits, 16))
        elif escape_char == 'u':
            hex_digits = self.source[self.pos:self.pos + 4]
            if len(hex_digits) == 4 and all(c in '0123456789abcdefABCDEF' for c in hex_digits):
                self._advance_by(4)
                return chr(int(hex_digits, 16))

        # Unknown escape - keep the character itself
        return escape_char

    def _skip_whitespace_and_comments(self):
        """Skip whitespace (except newlines) and comments."""
        while self.pos < len(self.source):
            char = self.source[self.pos]
            if char.isspace() and char != '\n':
                self._advance()
                continue

            if self.source.startswith('//', self.pos):
                while self.pos < len(self.source) and self.source[self.pos] != '\n':
                    self._advance()
                continue

            if self.source.startswith('/*', self.pos):
                start_location = self._location()
                end = self.source.find('*/', self.pos + 2)
                if end == -1:
                    self.errors.append(create_unterminated_comment_error(start_location))
                    self._advance_by(len(self.source) - self.pos)
                    return
                self._advance_by(end + 2 - self.pos)
                continue

            break

    def _add(self, token_type: TokenType, lexeme: str, value, location: SourceLocation):
        self.tokens.append(Token(token_type, lexeme, value, location))

    def _location(self) -> SourceLocation:
        return SourceLocation(self.filename, self.line, self.column, self.pos)

    def _advance(self):
        """Advance position by one character, updating line/column."""
        if self.pos < len(self.source):
            if self.source[self.pos] == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _advance_by(self, count: int):
        """Advance position by multiple characters."""
        for _ in range(count):
            self._advance()

    def _peek(self, offset: int = 1) -> str:
        """Peek at character ahead without advancing."""
        peek_pos = self.pos + offset
        if peek_pos < len(self.source):
            return self.source[peek_pos]
        return '\0'

    def has_errors(self) -> bool:
        """Check if lexer encountered any errors."""
        return len(self.errors) > 0

    def get_diagnostics(self) -> List[Diagnostic]:
        return [error.diagnostic for error in self.errors]


def tokenize_string(source: str, filename: str = "<string>") -> List[Token]:
    """
    Convenience function to tokenize a source string.

    Args:
        source: Source code string
        filename: Filename for error reporting

    Returns:
        List of tokens

    Raises:
        LexerError: If lexing fails
    """
    lexer = Lexer(source, filename)
    tokens = lexer.tokenize()

    if lexer.has_errors():
        raise lexer.errors[0]

    return tokens


def tokenize_file(filepath: str) -> List[Token]:
    """
    Convenience function to tokenize a source file.

    Raises:
        LexerError: If lexing fails
        IOError: If file cannot be read
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        source = f.read()

    return tokenize_string(source, filepath)

