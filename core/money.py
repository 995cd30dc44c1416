# core/money.py
import math
import re
from dataclasses import dataclass, replace
from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Callable, Optional, Union


@dataclass(frozen=True)
class CurrencyFormat:
    """Formatting conventions; defaults are Philippine Peso."""
    symbol: str = "₱"
    separator: str = ","
    decimal: str = "."
    precision: int = 2


PHP_FORMAT = CurrencyFormat()

_PARENS_RE = re.compile(r"\((.*)\)")
_MONEY_TEXT_RE = re.compile(r"[^\d,.]")

Amount = Union["MonetaryAmount", Decimal, int, float, str]


def _to_decimal(amount: Amount, fmt: CurrencyFormat) -> Decimal:
    """Parse anything amount-like into a Decimal. Unparseable input is zero."""
    if isinstance(amount, MonetaryAmount):
        return amount.value
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, bool):
        return Decimal(0)
    elif isinstance(amount, int):
        value = Decimal(amount)
    elif isinstance(amount, float):
        if not math.isfinite(amount):
            return Decimal(0)
        # repr() is the shortest round-tripping form, so 10.99 stays 10.99
        value = Decimal(repr(amount))
    elif isinstance(amount, str):
        cleaned = _PARENS_RE.sub(r"-\1", amount)
        cleaned = re.sub(r"[^-\d" + re.escape(fmt.decimal) + r"]", "", cleaned)
        cleaned = cleaned.replace(fmt.decimal, ".")
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return Decimal(0)
    else:
        return Decimal(0)

    if not value.is_finite():
        return Decimal(0)
    return value


def _context(*values: Decimal, precision: int) -> Context:
    """
    A context wide enough to keep every significant digit of the operands plus a
    couple of guard digits past precision. Truncating those guard digits
    never moves a value across a half, so the final ROUND_HALF_UP is exact.
    """
    digits = sum(abs(v.adjusted()) + 1 for v in values)
    return Context(prec=max(digits + precision + 2, 28), rounding=ROUND_DOWN)


def _quantize(value: Decimal, precision: int) -> Decimal:
    exp = Decimal(1).scaleb(-precision)
    try:
        return value.quantize(exp, rounding=ROUND_HALF_UP, context=_context(value, precision=precision))
    except InvalidOperation:
        # exponent past the context limits
        return Decimal(0).quantize(exp)


@dataclass(frozen=True, init=False)
class MonetaryAmount:
    """
    Immutable currency amount.

    The decimal value is always rounded to the format precision (half away
    from zero), so the minor-unit integer and the decimal convert into each
    other without loss. Arithmetic returns new instances.
    """
    value: Decimal
    fmt: CurrencyFormat

    def __init__(
        self,
        amount: Amount = 0,
        fmt: Optional[CurrencyFormat] = None,
        **overrides,
    ):
        if fmt is None:
            fmt = amount.fmt if isinstance(amount, MonetaryAmount) else PHP_FORMAT
        if overrides:
            fmt = replace(fmt, **overrides)
        object.__setattr__(self, "fmt", fmt)
        object.__setattr__(self, "value", _quantize(_to_decimal(amount, fmt), fmt.precision))

    @classmethod
    def from_integer(
        cls,
        integer_value: Union[int, str, Decimal],
        fmt: Optional[CurrencyFormat] = None,
        **overrides,
    ) -> "MonetaryAmount":
        """Build from a stored minor-unit value (e.g. 1000 -> ₱10.00)."""
        base = replace(fmt or PHP_FORMAT, **overrides)
        minor = _to_decimal(integer_value, base)
        ctx = _context(minor, precision=base.precision)
        return cls(minor.scaleb(-base.precision, context=ctx), base)

    def to_integer(self) -> int:
        """Minor-unit value for storage (e.g. ₱10.25 -> 1025)."""
        ctx = _context(self.value, precision=self.fmt.precision)
        scaled = self.value.scaleb(self.fmt.precision, context=ctx)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))

    def to_number(self) -> float:
        return float(self.value)

    def format(self, **overrides) -> str:
        """
        Human string such as "₱1,000.50".

        Keyword overrides (symbol, separator, decimal, precision) apply to this
        call only; format(symbol="") gives the bare "1,000.50".
        """
        fmt = replace(self.fmt, **overrides) if overrides else self.fmt
        value = _quantize(self.value, fmt.precision)
        digits = f"{abs(value):,.{fmt.precision}f}"
        digits = digits.translate(str.maketrans({",": fmt.separator, ".": fmt.decimal}))
        sign = "-" if value < 0 else ""
        return f"{sign}{fmt.symbol}{digits}"

    def __str__(self) -> str:
        return self.format()

    # --- arithmetic ---

    def _apply(self, op: Callable[[Context, Decimal, Decimal], Decimal], other: Amount) -> "MonetaryAmount":
        a, b = self.value, _to_decimal(other, self.fmt)
        ctx = _context(a, b, precision=self.fmt.precision)
        return MonetaryAmount(op(ctx, a, b), self.fmt)

    def add(self, other: Amount) -> "MonetaryAmount":
        return self._apply(Context.add, other)

    def subtract(self, other: Amount) -> "MonetaryAmount":
        return self._apply(Context.subtract, other)

    def multiply(self, other: Amount) -> "MonetaryAmount":
        return self._apply(Context.multiply, other)

    def divide(self, other: Amount) -> "MonetaryAmount":
        # Division by zero raises decimal.DivisionByZero (a ZeroDivisionError)
        return self._apply(Context.divide, other)


def sanitize_money_text(text: str, max_decimals: int = 2) -> str:
    """
    Live keystroke filter for a price field: only digits, commas and one
    period survive, with at most max_decimals digits after the period.
    """
    cleaned = _MONEY_TEXT_RE.sub("", text or "")
    head, dot, tail = cleaned.partition(".")
    if not dot:
        return cleaned
    tail = tail.replace(".", "")
    return f"{head}.{tail[:max_decimals]}"


class MoneyInput:
    """
    Binds a plain text field to currency input.

    The host wires its change event to on_change() and its blur event to
    on_blur(), and renders `value`.
    """

    def __init__(
        self,
        value: str = "",
        on_commit: Optional[Callable[[str], None]] = None,
        fmt: Optional[CurrencyFormat] = None,
    ):
        self.fmt = fmt or PHP_FORMAT
        self.value = sanitize_money_text(value, self.fmt.precision)
        self.on_commit = on_commit

    def on_change(self, text: str) -> str:
        self.value = sanitize_money_text(text, self.fmt.precision)
        return self.value

    def on_blur(self) -> str:
        raw = self.value.replace(",", "")
        try:
            number = Decimal(raw)
        except InvalidOperation:
            self.value = ""
            return self.value

        self.value = MonetaryAmount(number, self.fmt).format(symbol="")
        if self.on_commit is not None:
            self.on_commit(self.value)
        return self.value

    def to_amount(self) -> MonetaryAmount:
        return MonetaryAmount(self.value, self.fmt)
