"""
Test suite for the Lumo lexer.

Tests cover:
- Literals, keywords and operators
- Significant newlines and their suppression inside brackets
- Nested template literals
- Error recovery and diagnostics

Author: xwest
"""

import unittest
import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from lumo.lexer import Lexer, TokenType, LexerError, ErrorKind, CONTEXTUAL_KEYWORDS, tokenize_string


class TestLexer(unittest.TestCase):
    """Test cases for the lexer."""

    def _tokenize(self, source: str):
        lexer = Lexer(source, "<test>")
        tokens = lexer.tokenize()
        return tokens, lexer

    def _types(self, source: str):
        tokens, _ = self._tokenize(source)
        return [token.type for token in tokens]

    def test_empty_source_has_only_eof(self):
        tokens, lexer = self._tokenize("")
        self.assertEqual([t.type for t in tokens], [TokenType.EOF])
        self.assertFalse(lexer.has_errors())

    def test_auto_const_declaration_tokens(self):
        self.assertEqual(self._types("x = 10"), [
            TokenType.IDENTIFIER, TokenType.ASSIGN, TokenType.NUMBER, TokenType.EOF,
        ])

    def test_number_literals(self):
        """Decimal, hex, binary, octal and separated numbers."""
        tokens, lexer = self._tokenize("42 3.5 1e3 0xFF 0b101 0o17 1_000")
        values = [t.value for t in tokens if t.type == TokenType.NUMBER]
        self.assertEqual(values, [42, 3.5, 1000.0, 255, 5, 15, 1000])
        self.assertFalse(lexer.has_errors())

    def test_range_is_not_a_decimal_point(self):
        self.assertEqual(self._types("0..5"), [
            TokenType.NUMBER, TokenType.RANGE_EXCLUSIVE, TokenType.NUMBER, TokenType.EOF,
        ])
        self.assertEqual(self._types("1..=3")[1], TokenType.RANGE_INCLUSIVE)

    def test_string_escapes_are_cooked(self):
        tokens, _ = self._tokenize('"a\\tb" \'it\\\'s\'')
        strings = [t for t in tokens if t.type == TokenType.STRING]
        self.assertEqual(strings[0].value, "a\tb")
        self.assertEqual(strings[1].value, "it's")

    def test_keywords_and_aliases(self):
        self.assertEqual(self._types("fn function")[:2], [TokenType.FN, TokenType.FN])
        self.assertEqual(self._types("and or not")[:3], [TokenType.AND, TokenType.OR, TokenType.NOT])
        self.assertEqual(self._types("have x")[0], TokenType.HAVE)

    def test_contextual_keywords_are_identifiers(self):
        tokens, _ = self._tokenize("from as of step")
        for token in tokens[:-1]:
            self.assertEqual(token.type, TokenType.IDENTIFIER)
            self.assertIn(token.lexeme, CONTEXTUAL_KEYWORDS)

    def test_longest_match_operators(self):
        self.assertEqual(self._types("a ??= b ** c")[:5], [
            TokenType.IDENTIFIER, TokenType.NULLISH_ASSIGN, TokenType.IDENTIFIER,
            TokenType.POWER, TokenType.IDENTIFIER,
        ])
        self.assertEqual(self._types("a?.b")[1], TokenType.OPTIONAL_CHAIN)
        self.assertEqual(self._types("x => x")[1], TokenType.FAT_ARROW)

    def test_newlines_terminate_statements(self):
        types = self._types("a = 1\n\n\nb = 2")
        self.assertEqual(types.count(TokenType.NEWLINE), 1)

    def test_newlines_suppressed_inside_parens_and_brackets(self):
        types = self._types("f(\n  1,\n  2\n)\nxs = [\n1\n]")
        self.assertEqual(types.count(TokenType.NEWLINE), 1)

    def test_comments_are_skipped(self):
        types = self._types("a // line comment\n/* block\ncomment */ b")
        self.assertNotIn(TokenType.INVALID, types)
        identifiers = [t for t in types if t == TokenType.IDENTIFIER]
        self.assertEqual(len(identifiers), 2)

    def test_template_literal_structure(self):
        self.assertEqual(self._types("`a${b}c`"), [
            TokenType.TEMPLATE_START,
            TokenType.TEMPLATE_FRAGMENT,
            TokenType.INTERPOLATION_START,
            TokenType.IDENTIFIER,
            TokenType.INTERPOLATION_END,
            TokenType.TEMPLATE_FRAGMENT,
            TokenType.TEMPLATE_END,
            TokenType.EOF,
        ])

    def test_nested_template_literals(self):
        tokens, lexer = self._tokenize("`outer ${`inner ${x}`} done`")
        types = [t.type for t in tokens]
        self.assertFalse(lexer.has_errors())
        self.assertEqual(types.count(TokenType.TEMPLATE_START), 2)
        self.assertEqual(types.count(TokenType.TEMPLATE_END), 2)
        self.assertEqual(types.count(TokenType.INTERPOLATION_START), 2)
        self.assertEqual(types.count(TokenType.INTERPOLATION_END), 2)

    def test_source_locations(self):
        tokens, _ = self._tokenize("a = 1\nbb = 2")
        bb = [t for t in tokens if t.lexeme == "bb"][0]
        self.assertEqual(bb.location.line, 2)
        self.assertEqual(bb.location.column, 1)
        self.assertEqual(bb.location.filename, "<test>")

    def test_invalid_character_recovers(self):
        """A bad character becomes an INVALID token and lexing continues."""
        tokens, lexer = self._tokenize("a = @ + b")
        self.assertTrue(lexer.has_errors())
        self.assertIn(TokenType.INVALID, [t.type for t in tokens])
        self.assertEqual(tokens[-2].lexeme, "b")

        diagnostic = lexer.get_diagnostics()[0]
        self.assertEqual(diagnostic.code, "L001")
        self.assertEqual(diagnostic.kind, ErrorKind.LEXICAL)
        self.assertTrue(diagnostic.is_error)

    def test_error_codes(self):
        cases = {
            '"unterminated': "L002",
            '"broken\nline"': "L002",
            "12abc": "L003",
            "`never closed": "L004",
            "/* never closed": "L005",
        }
        for source, code in cases.items():
            with self.subTest(source=source):
                _, lexer = self._tokenize(source)
                codes = [d.code for d in lexer.get_diagnostics()]
                self.assertIn(code, codes)

    def test_every_error_is_collected(self):
        _, lexer = self._tokenize("a = @\nb = #\nc = 1")
        self.assertEqual(len(lexer.get_diagnostics()), 2)

    def test_tokenize_string_raises_first_error(self):
        with self.assertRaises(LexerError) as ctx:
            tokenize_string("x = @")
        self.assertEqual(ctx.exception.diagnostic.code, "L001")


if __name__ == "__main__":
    unittest.main()
