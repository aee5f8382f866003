"""
Integer input for the CLI: plain literals, grouped digits, and a whitelisted
subset of Python integer expressions.

    2**61-1   1_000_003*1_000_033   0xff   1 000 000   1e6   2**100 % 97
"""

from __future__ import annotations

import ast
import operator as op
import re

from fieldfactor.runtime import CFG
from fieldfactor.utility import UserInputError, dec_digits

_DEFAULT_MAX_DIGITS = 10_000
_MAX_NODES = 256

# thousands separators: space, comma, dot, underscore, no-break and thin spaces
_SEP = r"[ ,._   ]"
_GROUPED = re.compile(rf"[+-]?\d{{1,3}}(?:{_SEP}\d{{3}})+")
_PLAIN = re.compile(r"[+-]?\d[\d_]*")
_PREFIXED = re.compile(r"[+-]?0[xXbBoO][0-9a-fA-F_]+")

_COMPLEX = re.compile(
    r"\s*(?:[+-]?\d+(?:\.\d+)?\s*[+-]\s*)?\d+(?:\.\d+)?[ij]\s*",
    re.IGNORECASE,
)
# 1e6, -3E4; not inside identifiers, floats or hex literals
_SCIENTIFIC = re.compile(r"(?<![\w.])([+-]?)(\d+)[eE]([+-]?\d+)(?![\w.])")

_BINOPS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.FloorDiv: op.floordiv,
    ast.LShift: op.lshift,
    ast.RShift: op.rshift,
    ast.BitAnd: op.and_,
    ast.BitXor: op.xor,
    ast.BitOr: op.or_,
}
# reducing operands mod m early is sound only through these
_MOD_TRANSPARENT = (ast.Add, ast.Sub, ast.Mult)


class _NotAnInteger(Exception):
    """The text is not an integer expression; the caller treats it as something else."""


def _max_digits() -> int:
    return int(CFG("BEHAVIOUR.MAX_DIGITS", _DEFAULT_MAX_DIGITS))


def _too_many_digits(limit: int) -> UserInputError:
    return UserInputError(
        f"number has more than {limit} decimal digits. "
        "Increase BEHAVIOUR.MAX_DIGITS in the profile or pass a smaller value."
    )


def looks_like_complex(s: str) -> bool:
    return bool(_COMPLEX.fullmatch(s))


def _parse_literal(text: str) -> int | None:
    s = text.strip()
    for form, clean in (
        (_PREFIXED, lambda t: int(t.replace("_", ""), 0)),
        (_PLAIN, lambda t: int(t.replace("_", ""))),
        (_GROUPED, lambda t: int(re.sub(_SEP, "", t))),
    ):
        if form.fullmatch(s):
            try:
                return clean(s)
            except ValueError:
                return None
    return None


def _expand_scientific(expr: str) -> str:
    def repl(m: re.Match) -> str:
        sign, mantissa, exp = m.group(1), m.group(2), int(m.group(3))
        if exp < 0:
            raise _NotAnInteger("negative exponent in scientific notation")
        return f"({sign}{mantissa})*10**({exp})"

    return _SCIENTIFIC.sub(repl, expr)


def _pow_digits_lower_bound(base: int, exp: int) -> int:
    # |base| >= 2 gives at least exp*log10(2) digits
    if exp <= 0 or abs(base) <= 1:
        return 1
    return 1 + (exp * 30102) // 100000


class _Evaluator(ast.NodeVisitor):
    """
    Walks a parsed expression with an optional modulus in force. Under
    ``x ** e % m`` the power is taken with pow(x, e, m) and never built in
    full.
    """

    def __init__(self, limit: int):
        self.limit = limit

    def eval(self, node: ast.AST, modulus: int | None = None) -> int:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise _NotAnInteger(f"unsupported syntax: {type(node).__name__}")
        return method(node, modulus)

    def visit_Expression(self, node: ast.Expression, modulus: int | None) -> int:
        return self.eval(node.body, modulus)

    def visit_Constant(self, node: ast.Constant, modulus: int | None) -> int:
        val = node.value
        if isinstance(val, bool) or not isinstance(val, int):
            raise _NotAnInteger("only integer literals are allowed")
        if dec_digits(val) > self.limit:
            raise _too_many_digits(self.limit)
        return val

    def visit_UnaryOp(self, node: ast.UnaryOp, modulus: int | None) -> int:
        val = self.eval(node.operand, modulus)
        if isinstance(node.op, ast.USub):
            return -val
        if isinstance(node.op, ast.UAdd):
            return val
        raise _NotAnInteger(f"unsupported operator: {type(node.op).__name__}")

    def visit_BinOp(self, node: ast.BinOp, modulus: int | None) -> int:
        kind = type(node.op)
        if kind is ast.Pow:
            return self._power(node, modulus)
        if kind is ast.Mod:
            m = self.eval(node.right)
            if m == 0:
                raise _NotAnInteger("modulus by zero")
            return self.eval(node.left, m) % m
        if kind not in _BINOPS:
            raise _NotAnInteger(f"unsupported operator: {kind.__name__}")

        inner = modulus if kind in _MOD_TRANSPARENT else None
        left, right = self.eval(node.left, inner), self.eval(node.right, inner)
        if kind is ast.FloorDiv and right == 0:
            raise _NotAnInteger("division by zero")
        if kind in (ast.LShift, ast.RShift) and right < 0:
            raise _NotAnInteger("negative shift count")
        if kind is ast.LShift and right > self.limit * 4:
            raise _too_many_digits(self.limit)
        return _BINOPS[kind](left, right)

    def _power(self, node: ast.BinOp, modulus: int | None) -> int:
        base = self.eval(node.left, modulus)
        exp = self.eval(node.right)
        if exp < 0:
            raise UserInputError("negative exponents are not allowed in integer expressions")
        if modulus is not None:
            return pow(base, exp, modulus)
        if _pow_digits_lower_bound(base, exp) > self.limit:
            raise _too_many_digits(self.limit)
        return base ** exp


def _eval_int_expr(expr: str) -> int:
    limit = _max_digits()
    try:
        tree = ast.parse(_expand_scientific(expr).strip(), mode="eval")
    except SyntaxError as e:
        raise _NotAnInteger("invalid integer expression") from e
    if sum(1 for _ in ast.walk(tree)) > _MAX_NODES:
        raise _NotAnInteger("expression too large")

    value = _Evaluator(limit).eval(tree)
    if dec_digits(value) > limit:
        raise _too_many_digits(limit)
    return value


def parse_int_or_expr(s: str) -> int | None:
    """
    Integer from a literal or a safe expression, or None if ``s`` is neither
    (a profile name or command, say). Complex numbers and oversized values
    raise UserInputError.
    """
    n = _parse_literal(s)
    if n is not None:
        return n
    if looks_like_complex(s):
        raise UserInputError("fieldfactor factors integers only (ℤ, not ℂ).")
    try:
        return _eval_int_expr(s)
    except _NotAnInteger:
        return None
