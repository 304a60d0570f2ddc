from typing_extensions import *


class AutomataLabError(ValueError):
    """Base class for malformed input and algorithmic failures."""


class AutomatonError(AutomataLabError):
    pass


class AutomatonFormatError(AutomatonError):
    pass


class RegexSyntaxError(AutomataLabError):
    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class GrammarSyntaxError(AutomataLabError):
    def __init__(
        self, message: str, line_number: Optional[int] = None, line: str = ""
    ):
        if line_number is not None:
            message = f'Syntax error (Rule {line_number}: "{line}"): {message}'
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class ConvergenceError(AutomataLabError):
    """A fixpoint iteration ran past its ceiling."""


class MinimizationError(AutomatonError):
    pass


class LRConflictError(AutomataLabError):
    def __init__(self, conflict: Any):
        super().__init__(str(conflict))
        self.conflict = conflict
