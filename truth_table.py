# -*- coding: utf-8 -*-
"""
Truth table generation for boolean expressions.

This module drives the expression pipeline in boolexpr: it validates the
raw input, converts it to postfix once and evaluates the postfix for every
assignment of the expression's variables.
"""
from typing import Dict, Iterator, List, Optional, Sequence
from twisted.logger import Logger
import boolexpr

log = Logger()

IDLE = "idle"
VALIDATED = "validated"
INVALID = "invalid"

RESULT_HEADER = "Result"

RULES = (
    "Use variables: A, B, C, etc.",
    "AND operator: *",
    "OR operator: +",
    "NOT operator: '",
    "XOR operator: ^",
    "Use parentheses for grouping: (A * B)",
    "Example: (A * B)' + (C')",
)

TOKENIZE_FAILED = "Expression is valid, but tokenization failed."


class Diagnostic(object):
    """Why an expression could not be turned into a truth table."""

    def __init__(self, valid: bool, invalid_substrings: Sequence[str] = (),
                 reason: Optional[str] = None):
        self.valid = valid
        self.invalid_substrings = list(invalid_substrings)
        self.reason = reason

    def lines(self) -> List[str]:
        if self.reason:
            return [self.reason]
        lines = []
        if self.invalid_substrings:
            lines.append("Invalid Characters: %s" %
                         ", ".join(self.invalid_substrings))
        lines.append("Please check the format.")
        return lines

    @property
    def message(self) -> str:
        return "\n".join(self.lines())

    def __repr__(self):
        return (f"<Diagnostic valid={self.valid} "
                f"invalid_substrings={self.invalid_substrings} "
                f"reason={self.reason!r}>")


class ValidationFailure(boolexpr.ExpressionError):
    template = "{message}"

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(message=diagnostic.message)


class TooManyVariables(boolexpr.ExpressionError):
    template = "Expression has {token} variables, at most {limit} allowed"

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(None, count, limit=limit)


class TruthTable(object):

    def __init__(self, expression: str, variables: List[str],
                 postfix: List[str], rows: List[List[str]]):
        self.expression = expression
        self.variables = variables
        self.postfix = postfix
        self.rows = rows

    @property
    def header(self) -> List[str]:
        return self.variables + [RESULT_HEADER]

    def format_lines(self, separator: str = " | ") -> List[str]:
        widths = [len(cell) for cell in self.header]
        lines = []
        for row in [self.header] + self.rows:
            cells = [cell.ljust(width) for cell, width in zip(row, widths)]
            lines.append(separator.join(cells).rstrip())
        return lines


def assignments(variables: Sequence[str]) -> Iterator[Dict[str, int]]:
    count = len(variables)
    for index in range(2 ** count):
        yield {name: (index >> (count - i - 1)) & 1
               for i, name in enumerate(variables)}


def generate(variables: Sequence[str],
             postfix: Sequence[str]) -> List[List[str]]:
    """
    Evaluate a postfix expression for every assignment of its variables.

    Rows come in binary counting order with the first variable as the most
    significant bit. A row that cannot be evaluated gets the result "0".

    Args:
        variables: Variable names in column order
        postfix: Tokens as returned by boolexpr.to_postfix()

    Returns:
        List of rows, each the variable values followed by the result
    """
    rows = []
    for index, assignment in enumerate(assignments(variables)):
        try:
            result = boolexpr.evaluate(postfix, assignment)
        except boolexpr.EvalError as e:
            log.warn("Row {index} defaulted to 0: {error}",
                     index=index, error=e)
            result = 0
        rows.append([str(assignment[name]) for name in variables] +
                    [str(result)])
    return rows


def build(text: Optional[str],
          max_variables: Optional[int] = None) -> TruthTable:
    """
    Run the whole pipeline over raw input.

    Args:
        text: Expression as typed by the user, may be None
        max_variables: Refuse expressions with more variables than this

    Returns:
        TruthTable for the expression

    Raises:
        ValidationFailure: the expression is malformed
        TooManyVariables: max_variables was exceeded
    """
    if not boolexpr.is_valid(text):
        diagnostic = Diagnostic(False, boolexpr.invalid_substrings(text))
        log.info("Rejected expression {text!r}", text=text)
        raise ValidationFailure(diagnostic)
    try:
        tokens = boolexpr.tokenize(text)
    except boolexpr.TokenizeError as e:
        log.warn("Validated expression failed to tokenize: {error}", error=e)
        raise ValidationFailure(Diagnostic(False, reason=TOKENIZE_FAILED))
    names = boolexpr.variables(tokens)
    if max_variables is not None and len(names) > max_variables:
        raise TooManyVariables(len(names), max_variables)
    try:
        postfix = boolexpr.to_postfix(tokens)
    except boolexpr.ConversionError as e:
        log.warn("Validated expression failed to convert: {error}", error=e)
        raise ValidationFailure(Diagnostic(
            False, reason=f"Expression is valid, but conversion failed: {e}"))
    rows = generate(names, postfix)
    log.debug("Generated {count} rows for {variables}",
              count=len(rows), variables=names)
    return TruthTable(boolexpr.strip_whitespace(text), names, postfix, rows)


class ExpressionSession(object):
    """
    Input state of one user.

    The session is idle after every input change, and processing moves it
    to validated (with a table) or invalid (with a diagnostic).
    """

    def __init__(self, max_variables: Optional[int] = None):
        self.max_variables = max_variables
        self.text = ""
        self.state = IDLE
        self.table: Optional[TruthTable] = None
        self.diagnostic: Optional[Diagnostic] = None

    def change(self, text: Optional[str]) -> None:
        self.text = text
        self.state = IDLE
        self.table = None
        self.diagnostic = None

    def process(self) -> str:
        if self.state == VALIDATED:
            return self.state
        try:
            table = build(self.text, self.max_variables)
        except ValidationFailure as e:
            self._invalidate(e.diagnostic)
        except TooManyVariables as e:
            self._invalidate(Diagnostic(True, reason=str(e)))
        else:
            self.state = VALIDATED
            self.table = table
            self.diagnostic = None
        return self.state

    def _invalidate(self, diagnostic):
        self.state = INVALID
        self.table = None
        self.diagnostic = diagnostic

    @property
    def show_rules(self) -> bool:
        return self.state != VALIDATED

    @property
    def error_message(self) -> Optional[str]:
        if self.state == INVALID and boolexpr.strip_whitespace(self.text):
            return self.diagnostic.message
        return None
