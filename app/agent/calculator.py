"""
Safe arithmetic evaluator for the calculator tool.

Tokenizes the expression and evaluates it with a small recursive-descent
parser. Only numbers, + - * / // % ** ^, unary signs and parentheses are
accepted; nothing is ever handed to eval/exec.

Grammar:
    expr   := term (("+" | "-") term)*
    term   := unary (("*" | "/" | "//" | "%") unary)*
    unary  := ("+" | "-") unary | power
    power  := atom (("**" | "^") unary)?
    atom   := NUMBER | "(" expr ")"
"""

import math
import re

MAX_EXPRESSION_LENGTH = 500
MAX_EXPONENT = 10_000
MAX_DEPTH = 100

_TOKEN_RE = re.compile(r"\s*(?:(\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)|(\*\*|//|[-+*/%^()]))")


class CalculatorError(ValueError):
    """Raised for malformed or unsupported expressions."""


def tokenize(expression: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m or m.end() == pos:
            raise CalculatorError(f"unexpected character {text[pos:].lstrip()[:1]!r} at position {pos}")
        tokens.append(m.group(1) or m.group(2))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        tok = self.peek()
        if tok is None:
            raise CalculatorError("unexpected end of expression")
        self.pos += 1
        return tok

    def parse(self) -> int | float:
        if not self.tokens:
            raise CalculatorError("empty expression")
        value = self.expr()
        if self.peek() is not None:
            raise CalculatorError(f"unexpected token {self.peek()!r}")
        return value

    def expr(self) -> int | float:
        value = self.term()
        while self.peek() in ("+", "-"):
            op = self.take()
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def term(self) -> int | float:
        value = self.unary()
        while self.peek() in ("*", "/", "//", "%"):
            op = self.take()
            rhs = self.unary()
            if op == "*":
                value = value * rhs
                continue
            if rhs == 0:
                raise CalculatorError("division by zero")
            if op == "/":
                value = value / rhs
            elif op == "//":
                value = value // rhs
            else:
                value = value % rhs
        return value

    def unary(self) -> int | float:
        if self.peek() in ("+", "-"):
            op = self.take()
            self._enter()
            try:
                value = self.unary()
            finally:
                self.depth -= 1
            return -value if op == "-" else value
        return self.power()

    def power(self) -> int | float:
        base = self.atom()
        if self.peek() in ("**", "^"):
            self.take()
            exponent = self.unary()
            if abs(exponent) > MAX_EXPONENT:
                raise CalculatorError("exponent too large")
            if base == 0 and exponent < 0:
                raise CalculatorError("division by zero")
            try:
                result = base ** exponent
            except OverflowError as e:
                raise CalculatorError("result too large") from e
            if isinstance(result, complex):
                raise CalculatorError("result is not a real number")
            return result
        return base

    def atom(self) -> int | float:
        tok = self.take()
        if tok == "(":
            self._enter()
            try:
                value = self.expr()
            finally:
                self.depth -= 1
            if self.take() != ")":
                raise CalculatorError("expected ')'")
            return value
        if tok[0].isdigit() or tok[0] == ".":
            if any(c in tok for c in ".eE"):
                return float(tok)
            return int(tok)
        raise CalculatorError(f"unexpected token {tok!r}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise CalculatorError("expression nested too deeply")


def evaluate(expression: str) -> int | float:
    """Evaluate an arithmetic expression. Raises CalculatorError on bad input."""
    expr = (expression or "").strip()
    if not expr:
        raise CalculatorError("empty expression")
    if len(expr) > MAX_EXPRESSION_LENGTH:
        raise CalculatorError("expression too long")
    value = _Parser(tokenize(expr)).parse()
    if isinstance(value, float) and not math.isfinite(value):
        raise CalculatorError("result is not finite")
    return value


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)
