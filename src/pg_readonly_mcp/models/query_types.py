"""Value types passed between the classifier, the executor and the tools."""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union


@dataclass(frozen=True)
class SqlStatement:
    """A statement received for classification.

    Attributes:
        text: Statement exactly as received
        normalized: Trimmed, upper-cased form used for keyword matching
        leading_keyword: First keyword after any leading comments ('' if none)
        effective_keyword: Keyword leading the body of a WITH statement,
            otherwise the leading keyword itself; None when the text does
            not parse
        has_row_limit: The outermost SELECT already carries LIMIT, OFFSET
            or FETCH FIRST
    """

    text: str
    normalized: str
    leading_keyword: str
    effective_keyword: Optional[str]
    has_row_limit: bool = False


@dataclass(frozen=True)
class Allowed:
    """Verdict for a statement that may execute."""

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied:
    """Verdict for a rejected statement, carrying the violated rule."""

    reason: str

    def __bool__(self) -> bool:
        return False


ValidationVerdict = Union[Allowed, Denied]


@dataclass(frozen=True)
class ExecutionRequest:
    """A statement plus the row ceiling the caller asked for.

    ``params`` are bound by the driver, never interpolated into the text.
    """

    statement: str
    requested_limit: Optional[Any] = None
    params: Optional[Tuple[Any, ...]] = None
