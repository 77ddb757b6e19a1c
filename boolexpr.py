import re
from twisted.logger import Logger

log = Logger()

BOOL_NOT = "'"
BOOL_AND = "*"
BOOL_XOR = "^"
BOOL_OR = "+"
LEFT_PAREN = "("
RIGHT_PAREN = ")"
BOOL_SYNTAX = {
    BOOL_NOT: 4,
    BOOL_AND: 3,
    BOOL_XOR: 2,
    BOOL_OR: 1,
}
BINARY_OPERATORS = (BOOL_AND, BOOL_XOR, BOOL_OR)
RIGHT_ASSOCIATIVE = (BOOL_NOT,)

TOKEN_RE = re.compile(r"[A-Za-z0-9]+|['()+*^]")
INVALID_RE = re.compile(r"[^A-Za-z0-9'+*^()]+")
VARIABLE_RE = re.compile(r"[A-Z][A-Z0-9]*")


class ExpressionError(ValueError):
    template = "Invalid token {token} at position {position}"

    def __init__(self, position=None, token=None, **details):
        self.position = position
        self.token = token
        super().__init__(self.template.format(token=token, position=position,
                                              **details))


class TokenizeError(ExpressionError):
    template = "No tokens found in {token!r}"

    def __init__(self, text):
        super().__init__(None, text)


class ConversionError(ExpressionError):
    pass


class UnmatchedOpenParen(ConversionError):
    template = "Unmatched {token} at position {position}"


class UnmatchedCloseParen(ConversionError):
    template = "Unmatched {token} at position {position}"


class EvalError(ExpressionError):
    template = "Cannot evaluate {token} at position {position}"


class UndefinedVariable(EvalError):
    template = "Undefined variable {token} at position {position}"


class StackUnderflow(EvalError):
    template = "Missing operand for {token} at position {position}"


class InvalidValue(EvalError):
    template = "Variable {token} at position {position} is {value!r}, not 0 or 1"


class MalformedExpression(EvalError):
    template = "Expression left {token} values on the stack"

    def __init__(self, count):
        super().__init__(None, count)


class UnknownToken(ConversionError, EvalError):
    template = "Unknown token {token} at position {position}"


def strip_whitespace(text):
    if text is None:
        return ""
    return "".join(text.split())


def is_valid(text):
    if text is None:
        return False
    text = strip_whitespace(text)
    if not text or INVALID_RE.search(text):
        return False
    return _parses(text)


def _parses(text):
    """
    Match text against ``term ([+*^] term)*``.

    A term is a variable or a parenthesized group, optionally followed by
    one NOT. A group is everything from a ``(`` to some later ``)``, so its
    interior is only known to be in the allowed charset. Positions are
    checked from the right, parses[i] telling whether text[i:] is an
    expression.
    """
    n = len(text)
    parses = [False] * (n + 1)

    def follows_term(j):
        return j == n or (text[j] in BINARY_OPERATORS and parses[j + 1])

    for i in range(n - 1, -1, -1):
        if text[i].isalpha():
            j = i + 1
            while j < n and text[j].isalnum():
                j += 1
            ends = [j]
        elif text[i] == LEFT_PAREN:
            ends = [k + 1 for k in range(i + 2, n) if text[k] == RIGHT_PAREN]
        else:
            continue
        for j in ends:
            if follows_term(j) or (j < n and text[j] == BOOL_NOT
                                   and follows_term(j + 1)):
                parses[i] = True
                break
    return parses[0]


def invalid_substrings(text):
    return INVALID_RE.findall(strip_whitespace(text))


def tokenize(text):
    text = strip_whitespace(text)
    tokens = [token.upper() for token in TOKEN_RE.findall(text)]
    if text and not tokens:
        raise TokenizeError(text)
    return tokens


def variables(tokens):
    """
    Return the distinct variable names of a token sequence in the order
    they first appear.

    Numeric tokens such as ``1`` are operands but not variables.
    """
    seen = []
    for token in tokens:
        if VARIABLE_RE.fullmatch(token) and token not in seen:
            seen.append(token)
    return seen


def is_operand(token):
    return token.isascii() and token.isalnum()


def precedence(token):
    return BOOL_SYNTAX.get(token, 0)


def infix_to_postfix(tokens):
    stack = []
    for pos, token in enumerate(tokens):
        if token == LEFT_PAREN:
            stack.append((pos, token))
        elif token == RIGHT_PAREN:
            while True:
                try:
                    _, top = stack.pop()
                except IndexError:
                    raise UnmatchedCloseParen(pos, token)
                if top == LEFT_PAREN:
                    break
                yield top
        elif token in BOOL_SYNTAX:
            left_associative = token not in RIGHT_ASSOCIATIVE
            while stack and stack[-1][1] != LEFT_PAREN:
                top = stack[-1][1]
                if precedence(top) > precedence(token) or (
                        precedence(top) == precedence(token)
                        and left_associative):
                    yield stack.pop()[1]
                else:
                    break
            stack.append((pos, token))
        elif is_operand(token):
            yield token
        else:
            raise UnknownToken(pos, token)
    while stack:
        pos, token = stack.pop()
        if token == LEFT_PAREN:
            raise UnmatchedOpenParen(pos, token)
        yield token


def to_postfix(tokens):
    postfix = list(infix_to_postfix(tokens))
    log.debug("Postfix {postfix}", postfix=postfix)
    return postfix


def evaluate(postfix, assignment):
    """
    Evaluate a postfix token sequence.

    Args:
        postfix: Tokens in reverse polish order, as returned by to_postfix()
        assignment: Mapping of variable name to 0 or 1, matched case-insensitively

    Returns:
        0 or 1

    Raises:
        EvalError: the sequence cannot be evaluated with this assignment
    """
    values = {name.upper(): value for name, value in assignment.items()}
    stack = []
    for pos, token in enumerate(postfix):
        if token == BOOL_NOT:
            try:
                value = stack.pop()
            except IndexError:
                raise StackUnderflow(pos, token)
            stack.append(value ^ 1)
        elif token in BINARY_OPERATORS:
            if len(stack) < 2:
                raise StackUnderflow(pos, token)
            right = stack.pop()
            left = stack.pop()
            if token == BOOL_AND:
                stack.append(left & right)
            elif token == BOOL_OR:
                stack.append(left | right)
            else:
                stack.append(left ^ right)
        elif is_operand(token):
            try:
                value = values[token.upper()]
            except KeyError:
                raise UndefinedVariable(pos, token)
            if value not in (0, 1):
                raise InvalidValue(pos, token, value=value)
            stack.append(int(value))
        else:
            raise UnknownToken(pos, token)
    if len(stack) != 1:
        raise MalformedExpression(len(stack))
    return stack[0]
