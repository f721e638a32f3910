"""SQL classification, identifier sanitization and query builders."""

from .classifier import classify, validate_statement, parse_statement
from .identifiers import Identifier, sanitize, sanitize_column
from .introspection import IntrospectionQueryBuilder, translate_search_pattern
from .analysis import AnalysisQueryBuilder, AnalysisColumn, ANALYSIS_TYPES

__all__ = [
    'classify',
    'validate_statement',
    'parse_statement',
    'Identifier',
    'sanitize',
    'sanitize_column',
    'IntrospectionQueryBuilder',
    'translate_search_pattern',
    'AnalysisQueryBuilder',
    'AnalysisColumn',
    'ANALYSIS_TYPES'
]
