"""Query execution package."""

from maaser.queries.executor import InvalidQueryError, MonthDetailsExecutor

__all__ = ["InvalidQueryError", "MonthDetailsExecutor"]
