"""Schema parsers that build a type universe."""

from .schema_parser import SchemaParser, TypeExpressionParser

__all__ = ["SchemaParser", "TypeExpressionParser"]
