"""Parser for the column declaration DSL.

Grammar::

    columns  : column (',' column)* [',']
    column   : IDENTIFIER ':' type_ref ['?']
    type_ref : IDENTIFIER ('[' ']')*

A trailing ``?`` marks the column nullable. Each ``[]`` adds one level of
array nesting, so ``float64[][]`` is an array of arrays of float64.
"""

from __future__ import annotations

from typing import Any

import ply.yacc as yacc

from typed_records.parsing.column_lexer import ColumnLexer
from typed_records.types import PRIMITIVE_TYPE_NAMES, ArrayTag, Column, PrimitiveTag, TypeTag


class ColumnParser:
    """Parser for column declarations and type references."""

    tokens = ColumnLexer.tokens

    def __init__(self) -> None:
        self.lexer = ColumnLexer()
        self.lexer.build()
        self._parsers: dict[str, yacc.LRParser] = {}

    def p_columns(self, p: yacc.YaccProduction) -> None:
        """columns : column_list
                   | column_list COMMA"""
        p[0] = p[1]

    def p_columns_empty(self, p: yacc.YaccProduction) -> None:
        """columns : """
        p[0] = []

    def p_column_list_single(self, p: yacc.YaccProduction) -> None:
        """column_list : column"""
        p[0] = [p[1]]

    def p_column_list_multiple(self, p: yacc.YaccProduction) -> None:
        """column_list : column_list COMMA column"""
        p[0] = p[1] + [p[3]]

    def p_column(self, p: yacc.YaccProduction) -> None:
        """column : IDENTIFIER COLON type_ref"""
        p[0] = Column(key=p[1], type_tag=p[3])

    def p_column_nullable(self, p: yacc.YaccProduction) -> None:
        """column : IDENTIFIER COLON type_ref QUESTION"""
        p[0] = Column(key=p[1], type_tag=p[3], nullable=True)

    def p_type_ref_simple(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        primitive = PRIMITIVE_TYPE_NAMES.get(p[1].lower())
        if primitive is None:
            raise ValueError(f"Unknown type '{p[1]}' (line {p.lineno(1)})")
        p[0] = PrimitiveTag(primitive)

    def p_type_ref_array(self, p: yacc.YaccProduction) -> None:
        """type_ref : type_ref LBRACKET RBRACKET"""
        p[0] = ArrayTag(p[1])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, start: str = "columns", **kwargs: Any) -> yacc.LRParser:
        """Build the parser for the given start symbol."""
        kwargs.setdefault("debug", False)
        kwargs.setdefault("write_tables", False)
        kwargs.setdefault("errorlog", yacc.NullLogger())
        parser = yacc.yacc(module=self, start=start, **kwargs)
        self._parsers[start] = parser
        return parser

    def _parse(self, data: str, start: str) -> Any:
        parser = self._parsers.get(start) or self.build(start)
        self.lexer.lexer.lineno = 1
        return parser.parse(data, lexer=self.lexer.lexer)

    def parse(self, data: str) -> list[Column]:
        """Parse column declarations and return them in order."""
        return self._parse(data, "columns") or []

    def parse_type(self, data: str) -> TypeTag:
        """Parse a single type reference such as ``string[]``."""
        return self._parse(data, "type_ref")


def parse_columns(data: str) -> list[Column]:
    """Parse column declarations with a fresh parser."""
    return ColumnParser().parse(data)


def parse_type(data: str) -> TypeTag:
    """Parse a single type reference with a fresh parser."""
    return ColumnParser().parse_type(data)
