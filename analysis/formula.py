"""Safe parsing and evaluation for chart element formulas.

Formulas are operator-authored strings persisted alongside chart
configurations, e.g. `([stats.female] + [stats.male]) / [stats.allImages]`.
They are untrusted input, so this module never hands them to the Python
interpreter: a small tokenizer and a recursive descent parser turn the text
into an immutable AST which is then walked against a VariableResolver.

Supported syntax:
- numeric literals (`4.87`, `.2`, `100`),
- bracketed variable tokens (`[stats.female]`, `[PARAM:jerseyPrice]`, ...),
- bare legacy identifiers (`stats.reportText3`, `female`),
- binary `+ - * /`, unary `+ -` and parentheses,
- the functions `MAX(...)`, `MIN(...)`, `ROUND(x)` and `ABS(x)`.

Division by a divisor that evaluates to exactly 0 yields 0 instead of raising,
because ratio metrics over empty events are an expected state.

Input size is bounded by MAX_FORMULA_TOKENS and MAX_NESTING_DEPTH, and the
AST is evaluated with an explicit stack.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Final, Literal as TypingLiteral

from .variables import VariableResolver

BinaryOperator = TypingLiteral["+", "-", "*", "/"]
UnaryOperator = TypingLiteral["+", "-"]

MAX_NESTING_DEPTH: Final[int] = 64
MAX_FORMULA_TOKENS: Final[int] = 512

_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_IDENTIFIER_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_BRACKET_CONTENT_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9_.:\-]+")

# name -> (minimum args, maximum args or None for variadic)
_FUNCTION_ARITY: Final[dict[str, tuple[int, int | None]]] = {
    "MAX": (1, None),
    "MIN": (1, None),
    "ROUND": (1, 1),
    "ABS": (1, 1),
}


class FormulaError(ValueError):
    """Raised when a formula is malformed or cannot be evaluated.

    Attributes:
        message: Human-readable description without position details.
        formula: The offending formula text.
        position: Zero-based character offset of the problem.
    """

    def __init__(self, message: str, *, formula: str, position: int) -> None:
        super().__init__(f"{message} (position {position} in {formula!r})")
        self.message = message
        self.formula = formula
        self.position = position


@dataclass(frozen=True, slots=True)
class Literal:
    """Numeric constant."""

    value: float


@dataclass(frozen=True, slots=True)
class Variable:
    """Variable token reference, resolved at evaluation time."""

    token: str
    position: int


@dataclass(frozen=True, slots=True)
class UnaryOp:
    """Unary sign applied to an operand."""

    op: UnaryOperator
    operand: Node


@dataclass(frozen=True, slots=True)
class BinaryOp:
    """Binary arithmetic operation."""

    op: BinaryOperator
    left: Node
    right: Node
    position: int


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """Call of one of the supported math functions."""

    name: str
    args: tuple[Node, ...]


Node = Literal | Variable | UnaryOp | BinaryOp | FunctionCall


@dataclass(frozen=True, slots=True)
class Formula:
    """A parsed formula ready for repeated evaluation.

    Args:
        source: Original formula text.
        root: Root AST node.
    """

    source: str
    root: Node

    @property
    def is_single_token(self) -> bool:
        """Return True when the whole formula is one variable reference."""

        return isinstance(self.root, Variable)

    @property
    def variables(self) -> tuple[str, ...]:
        """Return referenced variable tokens in order of first appearance."""

        seen: dict[str, None] = {}
        for node in _walk(self.root):
            if isinstance(node, Variable):
                seen.setdefault(node.token, None)
        return tuple(seen)


@dataclass(frozen=True, slots=True)
class FormulaInspection:
    """Result of inspecting a formula without evaluating it.

    Args:
        variables: Variable tokens referenced by the formula (empty when invalid).
        is_valid_syntax: Whether the formula parses.
        error: Parse error message when invalid.
        position: Parse error position when invalid.
    """

    variables: tuple[str, ...]
    is_valid_syntax: bool
    error: str | None = None
    position: int | None = None


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(formula: str) -> list[_Token]:
    """Split formula text into tokens, rejecting unknown characters."""

    tokens: list[_Token] = []
    index = 0
    length = len(formula)
    while index < length:
        char = formula[index]
        if char.isspace():
            index += 1
            continue
        if len(tokens) >= MAX_FORMULA_TOKENS:
            raise FormulaError("Formula is too long", formula=formula, position=index)
        if char in "+-*/":
            tokens.append(_Token("op", char, index))
            index += 1
            continue
        if char == "(":
            tokens.append(_Token("lparen", char, index))
            index += 1
            continue
        if char == ")":
            tokens.append(_Token("rparen", char, index))
            index += 1
            continue
        if char == ",":
            tokens.append(_Token("comma", char, index))
            index += 1
            continue
        if char == "[":
            close = formula.find("]", index + 1)
            if close == -1:
                raise FormulaError("Unclosed variable bracket", formula=formula, position=index)
            content = formula[index + 1 : close].strip()
            if not _BRACKET_CONTENT_RE.fullmatch(content):
                raise FormulaError("Invalid variable token", formula=formula, position=index)
            tokens.append(_Token("variable", content, index))
            index = close + 1
            continue
        if char == "]":
            raise FormulaError("Unexpected ']'", formula=formula, position=index)

        match = _NUMBER_RE.match(formula, index)
        if match:
            tokens.append(_Token("number", match.group(), index))
            index = match.end()
            continue
        match = _IDENTIFIER_RE.match(formula, index)
        if match:
            tokens.append(_Token("identifier", match.group(), index))
            index = match.end()
            continue
        raise FormulaError(f"Unknown operator or character {char!r}", formula=formula, position=index)

    tokens.append(_Token("end", "", length))
    return tokens


class _Parser:
    """Recursive descent parser over the token list.

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := ("+" | "-") unary | primary
    primary    := NUMBER | VARIABLE | IDENTIFIER | FUNCTION "(" args ")" | "(" expression ")"
    """

    def __init__(self, formula: str, tokens: list[_Token]) -> None:
        self._formula = formula
        self._tokens = tokens
        self._index = 0
        self._depth = 0

    def parse(self) -> Node:
        if self._peek().kind == "end":
            raise FormulaError("Formula is empty", formula=self._formula, position=0)
        node = self._expression()
        token = self._peek()
        if token.kind == "rparen":
            raise self._error("Unbalanced parentheses: unexpected ')'", token)
        if token.kind != "end":
            raise self._error(f"Unexpected token {token.text!r}", token)
        return node

    def _peek(self) -> _Token:
        return self._tokens[self._index]

    def _advance(self) -> _Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _error(self, message: str, token: _Token) -> FormulaError:
        return FormulaError(message, formula=self._formula, position=token.position)

    def _enter(self, token: _Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise self._error("Formula nesting is too deep", token)

    def _expression(self) -> Node:
        node = self._term()
        while self._peek().kind == "op" and self._peek().text in "+-":
            token = self._advance()
            right = self._term()
            node = BinaryOp(op=token.text, left=node, right=right, position=token.position)  # type: ignore[arg-type]
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._peek().kind == "op" and self._peek().text in "*/":
            token = self._advance()
            right = self._unary()
            node = BinaryOp(op=token.text, left=node, right=right, position=token.position)  # type: ignore[arg-type]
        return node

    def _unary(self) -> Node:
        token = self._peek()
        if token.kind == "op" and token.text in "+-":
            self._advance()
            self._enter(token)
            operand = self._unary()
            self._depth -= 1
            return UnaryOp(op=token.text, operand=operand)  # type: ignore[arg-type]
        return self._primary()

    def _primary(self) -> Node:
        token = self._advance()
        if token.kind == "number":
            return Literal(value=float(token.text))
        if token.kind == "variable":
            return Variable(token=token.text, position=token.position)
        if token.kind == "identifier":
            if self._peek().kind == "lparen":
                return self._function_call(token)
            return Variable(token=token.text, position=token.position)
        if token.kind == "lparen":
            self._enter(token)
            if self._peek().kind == "end":
                raise self._error("Unbalanced parentheses: missing ')'", token)
            node = self._expression()
            if self._peek().kind != "rparen":
                raise self._error("Unbalanced parentheses: missing ')'", token)
            self._advance()
            self._depth -= 1
            return node
        if token.kind == "end":
            raise self._error("Unexpected end of formula", token)
        if token.kind == "rparen":
            raise self._error("Unbalanced parentheses: unexpected ')'", token)
        raise self._error(f"Unexpected token {token.text!r}", token)

    def _function_call(self, name_token: _Token) -> Node:
        name = name_token.text.upper()
        arity = _FUNCTION_ARITY.get(name)
        if arity is None:
            raise self._error(f"Unknown function {name_token.text!r}", name_token)
        open_token = self._advance()
        self._enter(open_token)
        args: list[Node] = []
        if self._peek().kind != "rparen":
            args.append(self._expression())
            while self._peek().kind == "comma":
                self._advance()
                args.append(self._expression())
        if self._peek().kind != "rparen":
            raise self._error("Unbalanced parentheses: missing ')'", open_token)
        self._advance()
        self._depth -= 1

        minimum, maximum = arity
        if len(args) < minimum or (maximum is not None and len(args) > maximum):
            raise self._error(f"{name} received {len(args)} argument(s)", name_token)
        return FunctionCall(name=name, args=tuple(args))


def parse_formula(formula: str) -> Formula:
    """Parse formula text into an immutable AST.

    Args:
        formula: Formula text.

    Returns:
        Parsed Formula.

    Raises:
        FormulaError: When the formula is empty or malformed.
    """

    text = formula if isinstance(formula, str) else ""
    tokens = _tokenize(text)
    root = _Parser(text, tokens).parse()
    return Formula(source=text, root=root)


def inspect_formula(formula: str) -> FormulaInspection:
    """Inspect a formula for syntax validity and referenced variables.

    Args:
        formula: Formula text.

    Returns:
        FormulaInspection; never raises.
    """

    try:
        parsed = parse_formula(formula)
    except FormulaError as exc:
        return FormulaInspection(
            variables=(),
            is_valid_syntax=False,
            error=exc.message,
            position=exc.position,
        )
    return FormulaInspection(variables=parsed.variables, is_valid_syntax=True)


def evaluate_formula(formula: Formula | str, resolver: VariableResolver) -> float | str:
    """Evaluate a formula against a resolver.

    A formula consisting of a single variable token that resolves to a string
    returns that string unchanged (text and image slots). Everything else is
    evaluated numerically.

    Args:
        formula: Parsed Formula or formula text.
        resolver: VariableResolver providing token values.

    Returns:
        Finite float result, or the resolved string for single-token formulas.

    Raises:
        FormulaError: When the formula is malformed, applies arithmetic to a
            string value, or produces a non-finite result.
    """

    parsed = formula if isinstance(formula, Formula) else parse_formula(formula)
    if isinstance(parsed.root, Variable):
        value = resolver.resolve(parsed.root.token).value
        if isinstance(value, str):
            return value
        return _finite(float(value), parsed)
    return _finite(_evaluate(parsed.root, resolver, parsed), parsed)


def _evaluate(root: Node, resolver: VariableResolver, formula: Formula) -> float:
    """Evaluate a numeric AST without recursion (post-order over an explicit stack)."""

    values: list[float] = []
    stack: list[tuple[Node, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if isinstance(node, Literal):
            values.append(node.value)
            continue
        if isinstance(node, Variable):
            values.append(_variable_value(node, resolver, formula))
            continue

        children = _children(node)
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in reversed(children))
            continue

        split = len(values) - len(children)
        args = values[split:]
        del values[split:]
        values.append(_apply(node, args))
    return values[0]


def _variable_value(node: Variable, resolver: VariableResolver, formula: Formula) -> float:
    """Resolve a variable used inside arithmetic."""

    value = resolver.resolve(node.token).value
    if isinstance(value, str):
        raise FormulaError(
            f"Variable [{node.token}] holds text and cannot be used in arithmetic",
            formula=formula.source,
            position=node.position,
        )
    return float(value)


def _apply(node: UnaryOp | BinaryOp | FunctionCall, args: list[float]) -> float:
    """Apply an operator or function to already evaluated operands."""

    if isinstance(node, UnaryOp):
        return -args[0] if node.op == "-" else args[0]

    if isinstance(node, BinaryOp):
        left, right = args
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        if right == 0:
            return 0.0
        return left / right

    if node.name == "MAX":
        return max(args)
    if node.name == "MIN":
        return min(args)
    if node.name == "ROUND":
        if not math.isfinite(args[0]):
            return args[0]
        return float(math.floor(args[0] + 0.5))
    return abs(args[0])


def _finite(value: float, formula: Formula) -> float:
    """Reject non-finite results and normalize negative zero."""

    if not math.isfinite(value):
        raise FormulaError("Formula result is not a finite number", formula=formula.source, position=0)
    return value + 0.0


def _children(node: Node) -> tuple[Node, ...]:
    """Return the operand nodes of an AST node, left to right."""

    if isinstance(node, UnaryOp):
        return (node.operand,)
    if isinstance(node, BinaryOp):
        return (node.left, node.right)
    if isinstance(node, FunctionCall):
        return node.args
    return ()


def _walk(node: Node):
    """Yield AST nodes depth-first, left to right."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(_children(current)))
