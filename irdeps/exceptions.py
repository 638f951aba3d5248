from typing import Optional


class _BaseIRDepsException(Exception):
    """
    Base irdeps exception class.

    This exception is not raised directly. Other exceptions inherit it in
    order to share message and hint formatting.
    """

    def __init__(self, message="Error Message not found.", hint=None):
        """
        Exception initializer.

        Arguments
        ---------
        message : str
            Error message to display with the exception.
        hint : str, optional
            Suggestion appended to the message when the exception is
            rendered.
        """
        self._message = message
        self._hint = hint
        super().__init__(message)

    @property
    def hint(self) -> Optional[str]:
        return self._hint

    @property
    def message(self) -> str:
        msg = self._message
        if self._hint is not None:
            msg += f"\n\n  (hint: {self._hint})"
        return msg

    def __str__(self):
        return self.message


class IRDepsException(_BaseIRDepsException):
    pass


class MalformedFunction(IRDepsException):
    """
    A function cannot be analyzed: it has no basic blocks, one of its blocks
    is empty or unterminated, or a terminator references a block which does
    not exist in the function.
    """

    def __init__(self, message, function_name=None, label=None, hint=None):
        self.function_name = function_name
        self.label = label
        if function_name is not None:
            message = f"{message} (in function {function_name})"
        super().__init__(message, hint=hint)


class FunctionNotFound(IRDepsException):
    """No analyzed context defines a function with the requested name."""


class AmbiguousFunction(IRDepsException):
    """More than one analyzed context defines a function with the requested name."""


class IRParseError(IRDepsException):
    """Invalid syntax in textual IR."""

    def __init__(self, message, line=None, column=None, hint=None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"line {line}:{column}: {message}"
        super().__init__(message, hint=hint)


class IRDepsInternalException(_BaseIRDepsException):
    """
    Base irdeps internal exception class.

    This exception is not raised directly, it is subclassed by other internal
    exceptions.

    Internal exceptions are raised as a means of telling the user that an
    analysis invariant was violated, and that filing a bug report would be
    appropriate.
    """

    def __str__(self):
        return (
            f"{super().__str__()}\n\n"
            "This is an unhandled internal analysis error. "
            "Please report it together with the IR which triggered it."
        )


class AnalysisPanic(IRDepsInternalException):
    """General unexpected error during analysis."""
