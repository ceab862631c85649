"""Rule condition language.

Conditions are small boolean expressions over a fixed context schema, e.g.::

    amount > 1000 AND history.count_1h > 3
    recipient IN ["acct_1", "acct_2"] OR NOT device.is_trusted

They are parsed once at registration time into an immutable expression tree
and evaluated by a restricted interpreter. Every node scores in [0, 1]:
comparisons yield 1.0 or 0.0, AND takes the minimum, OR the maximum, NOT the
complement, and a bare numeric field yields its value clamped to [0, 1].

Fields that cannot be resolved for a context (no prior history, collaborator
unavailable) make the enclosing expression unresolved, which scores 0.
"""

import operator
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple, Union

from geopy.distance import geodesic

from ..exceptions import ConfigurationError
from ..models import Location, TransactionContext


@dataclass(frozen=True)
class EvaluationContext:
    """Transaction context plus the collaborator signals resolved for it."""

    transaction: TransactionContext
    count_1h: Optional[int] = None
    count_24h: Optional[int] = None
    device_score: Optional[float] = None
    device_trusted: Optional[bool] = None
    last_location: Optional[Location] = None
    last_location_at: Optional[datetime] = None

    @property
    def distance_from_last_km(self) -> Optional[float]:
        """Geodesic distance from the user's last located transaction, if both points are known."""
        current = self.transaction.location
        previous = self.last_location
        if current is None or previous is None:
            return None
        if None in (current.latitude, current.longitude, previous.latitude, previous.longitude):
            return None
        return geodesic(
            (previous.latitude, previous.longitude),
            (current.latitude, current.longitude)
        ).kilometers


def _location_attr(name: str) -> Callable[[EvaluationContext], Any]:
    def resolve(ctx: EvaluationContext) -> Any:
        location = ctx.transaction.location
        return getattr(location, name) if location is not None else None
    return resolve


def _history_attr(name: str) -> Callable[[EvaluationContext], Any]:
    def resolve(ctx: EvaluationContext) -> Any:
        history = ctx.transaction.user_history
        return None if history.is_new_user else getattr(history, name)
    return resolve


def _network_attr(name: str) -> Callable[[EvaluationContext], Any]:
    def resolve(ctx: EvaluationContext) -> Any:
        network = ctx.transaction.device.network
        return getattr(network, name) if network is not None else None
    return resolve


def _amount_ratio(ctx: EvaluationContext) -> Optional[float]:
    history = ctx.transaction.user_history
    if history.max_amount <= 0:
        return None
    return ctx.transaction.amount / history.max_amount


FIELD_RESOLVERS: Dict[str, Callable[[EvaluationContext], Any]] = {
    "amount": lambda ctx: ctx.transaction.amount,
    "currency": lambda ctx: ctx.transaction.currency,
    "type": lambda ctx: ctx.transaction.type.value,
    "category": lambda ctx: ctx.transaction.category,
    "recipient": lambda ctx: ctx.transaction.recipient,
    "merchant": lambda ctx: ctx.transaction.merchant,
    "hour": lambda ctx: ctx.transaction.local_hour,
    "day_of_week": lambda ctx: ctx.transaction.timestamp.weekday(),
    "location.country": _location_attr("country"),
    "location.city": _location_attr("city"),
    "location.distance_from_last_km": lambda ctx: ctx.distance_from_last_km,
    "network.is_vpn": _network_attr("is_vpn"),
    "network.is_proxy": _network_attr("is_proxy"),
    "device.risk_score": lambda ctx: ctx.device_score,
    "device.is_trusted": lambda ctx: ctx.device_trusted,
    "history.total_transactions": lambda ctx: ctx.transaction.user_history.total_transactions,
    "history.average_amount": _history_attr("average_amount"),
    "history.max_amount": _history_attr("max_amount"),
    "history.amount_ratio": _amount_ratio,
    "history.count_1h": lambda ctx: ctx.count_1h,
    "history.count_24h": lambda ctx: ctx.count_24h,
    "history.frequent_recipients": _history_attr("frequent_recipients"),
    "history.frequent_merchants": _history_attr("frequent_merchants"),
    "history.frequent_countries": _history_attr("frequent_countries"),
}

COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
    "IN": lambda left, right: left in _as_collection(right),
    "NOT IN": lambda left, right: left not in _as_collection(right),
}


def _as_collection(value: Any) -> Union[list, tuple, set, frozenset]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise TypeError(f"IN expects a list, got {type(value).__name__}")
    return value


# Expression tree

@dataclass(frozen=True)
class Literal:
    value: Any

    def resolve(self, ctx: EvaluationContext) -> Any:
        return self.value


@dataclass(frozen=True)
class FieldRef:
    name: str

    def resolve(self, ctx: EvaluationContext) -> Any:
        return FIELD_RESOLVERS[self.name](ctx)


Operand = Union[Literal, FieldRef]


@dataclass(frozen=True)
class Comparison:
    left: Operand
    op: str
    right: Operand

    def evaluate(self, ctx: EvaluationContext) -> Optional[float]:
        left = self.left.resolve(ctx)
        right = self.right.resolve(ctx)
        if left is None or right is None:
            return None
        return 1.0 if COMPARATORS[self.op](left, right) else 0.0


@dataclass(frozen=True)
class FieldScore:
    name: str

    def evaluate(self, ctx: EvaluationContext) -> Optional[float]:
        value = FIELD_RESOLVERS[self.name](ctx)
        if value is None:
            return None
        if isinstance(value, bool):
            return 1.0 if value else 0.0
        if isinstance(value, (int, float)):
            return min(1.0, max(0.0, float(value)))
        raise TypeError(f"Field '{self.name}' is not numeric or boolean")


@dataclass(frozen=True)
class Not:
    operand: "Expression"

    def evaluate(self, ctx: EvaluationContext) -> Optional[float]:
        score = self.operand.evaluate(ctx)
        return None if score is None else 1.0 - score


@dataclass(frozen=True)
class AllOf:
    operands: Tuple["Expression", ...]

    def evaluate(self, ctx: EvaluationContext) -> Optional[float]:
        scores = [operand.evaluate(ctx) for operand in self.operands]
        resolved = [s for s in scores if s is not None]
        if resolved and min(resolved) == 0.0:
            return 0.0
        if len(resolved) < len(scores):
            return None
        return min(resolved)


@dataclass(frozen=True)
class AnyOf:
    operands: Tuple["Expression", ...]

    def evaluate(self, ctx: EvaluationContext) -> Optional[float]:
        resolved = [s for s in (operand.evaluate(ctx) for operand in self.operands) if s is not None]
        return max(resolved) if resolved else None


Expression = Union[Comparison, FieldScore, Not, AllOf, AnyOf]


@dataclass(frozen=True)
class Condition:
    """A compiled rule condition."""

    source: str
    root: Expression
    fields: FrozenSet[str]

    def score(self, ctx: EvaluationContext) -> float:
        """Score the condition in [0, 1]; unresolved conditions score 0."""
        result = self.root.evaluate(ctx)
        return 0.0 if result is None else result


# Parser

_TOKEN_RE = re.compile(r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<op>>=|<=|==|!=|>|<)
      | (?P<punct>[()\[\],])
      | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    )""", re.VERBOSE)

_KEYWORDS = {"AND", "OR", "NOT", "IN", "TRUE", "FALSE"}


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    position: int


def _tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    stripped_end = len(source.rstrip())
    while position < stripped_end:
        match = _TOKEN_RE.match(source, position)
        if match is None or match.end() == position:
            raise ConfigurationError(
                f"Unexpected character {source[position:position + 1]!r} at position {position}",
                field="condition",
                details=source,
            )
        kind = match.lastgroup
        value = match.group(kind)
        start = match.start(kind)
        if kind == "word" and value.upper() in _KEYWORDS:
            kind, value = "keyword", value.upper()
        tokens.append(_Token(kind, value, start))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser producing an expression tree."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.index = 0
        self.fields: set = set()

    def parse(self) -> Expression:
        if not self.tokens:
            self._fail("Condition is empty")
        expression = self._parse_or()
        if self._peek() is not None:
            self._fail(f"Unexpected token {self._peek().value!r}")
        return expression

    def _fail(self, message: str):
        raise ConfigurationError(message, field="condition", details=self.source)

    def _peek(self, offset: int = 0) -> Optional[_Token]:
        index = self.index + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            self._fail("Unexpected end of condition")
        self.index += 1
        return token

    def _accept(self, kind: str, value: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == kind and token.value == value:
            self.index += 1
            return True
        return False

    def _expect(self, kind: str, value: str) -> None:
        if not self._accept(kind, value):
            found = self._peek()
            self._fail(f"Expected {value!r}, found {found.value if found else 'end of condition'!r}")

    def _parse_or(self) -> Expression:
        operands = [self._parse_and()]
        while self._accept("keyword", "OR"):
            operands.append(self._parse_and())
        return operands[0] if len(operands) == 1 else AnyOf(tuple(operands))

    def _parse_and(self) -> Expression:
        operands = [self._parse_not()]
        while self._accept("keyword", "AND"):
            operands.append(self._parse_not())
        return operands[0] if len(operands) == 1 else AllOf(tuple(operands))

    def _parse_not(self) -> Expression:
        if self._accept("keyword", "NOT"):
            return Not(self._parse_not())
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        if self._accept("punct", "("):
            expression = self._parse_or()
            self._expect("punct", ")")
            return expression

        left = self._parse_operand()
        token = self._peek()

        if token is not None and token.kind == "op":
            self.index += 1
            return Comparison(left, token.value, self._parse_operand())

        if self._accept("keyword", "IN"):
            return Comparison(left, "IN", self._parse_operand())

        following = self._peek(1)
        if (token is not None and token.kind == "keyword" and token.value == "NOT"
                and following is not None and following.kind == "keyword" and following.value == "IN"):
            self.index += 2
            return Comparison(left, "NOT IN", self._parse_operand())

        if isinstance(left, FieldRef):
            return FieldScore(left.name)

        self._fail(f"Literal {left.value!r} cannot stand alone")

    def _parse_operand(self) -> Operand:
        token = self._next()

        if token.kind == "number":
            return Literal(float(token.value) if "." in token.value else int(token.value))

        if token.kind == "string":
            return Literal(re.sub(r"\\(.)", r"\1", token.value[1:-1]))

        if token.kind == "keyword" and token.value in ("TRUE", "FALSE"):
            return Literal(token.value == "TRUE")

        if token.kind == "punct" and token.value == "[":
            return Literal(tuple(self._parse_list()))

        if token.kind == "word":
            if token.value not in FIELD_RESOLVERS:
                raise ConfigurationError(
                    f"Unknown field '{token.value}' in condition",
                    field="condition",
                    details=self.source,
                )
            self.fields.add(token.value)
            return FieldRef(token.value)

        self._fail(f"Unexpected token {token.value!r} at position {token.position}")

    def _parse_list(self) -> List[Any]:
        items: List[Any] = []
        if self._accept("punct", "]"):
            return items
        while True:
            item = self._parse_operand()
            if not isinstance(item, Literal):
                self._fail("List literals may only contain constants")
            items.append(item.value)
            if self._accept("punct", "]"):
                return items
            self._expect("punct", ",")


def compile_condition(source: str) -> Condition:
    """Parse and validate a condition string.

    Args:
        source: Condition expression

    Returns:
        Compiled condition

    Raises:
        ConfigurationError: On syntax errors or unknown fields
    """
    parser = _Parser(source)
    root = parser.parse()
    return Condition(source=source, root=root, fields=frozenset(parser.fields))
