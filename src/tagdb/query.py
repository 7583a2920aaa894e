"""Boolean tag queries: tokenizer and infix-to-postfix compiler.

Grammar (flat character stream):

    operand     bare run of characters, or {...} which may hold reserved chars
    !x          not (unary prefix, right-associative)
    x & y       and (left-associative)
    x | y       or  (left-associative)
    ( ... )     grouping

Precedence, tightest first: ``!``, ``&``, ``|``.

A space is a token boundary only when the next character is an operator or
a parenthesis; any other space belongs to the operand, so ``hip hop & jazz``
has the operands ``hip hop`` and ``jazz``.

The compiled postfix stream holds operators and the placeholder ``OPERAND``;
operand texts are read separately, in source order, with ``iter_operands``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tagdb.errors import ParseError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("tagdb.query")

NOT, AND, OR = "!", "&", "|"
LPAREN, RPAREN = "(", ")"
LBRACE, RBRACE = "{", "}"
OPERAND = "x"

OPERATORS = frozenset((NOT, AND, OR))
PARENS = frozenset((LPAREN, RPAREN))

# larger binds tighter
_PRECEDENCE = {OR: 1, AND: 2, NOT: 3}
_LEFT_ASSOC = {OR: True, AND: True, NOT: False}


def is_operator(c: str) -> bool:
    return c in OPERATORS


def _is_reserved(c: str) -> bool:
    return c in OPERATORS or c in PARENS


def is_query(text: str) -> bool:
    """True if ``text`` holds an operator or parenthesis outside {...} spans."""
    in_brace = False
    for c in text:
        if c == LBRACE:
            in_brace = True
        elif c == RBRACE:
            in_brace = False
        elif not in_brace and _is_reserved(c):
            return True
    return False


@dataclass(frozen=True)
class Token:
    kind: str       # OPERAND, one of the operators, or a parenthesis
    text: str       # operand text with braces stripped; the character otherwise
    pos: int        # offset in the source


def _operand_end(text: str, start: int) -> int:
    """Offset just past the operand starting at ``start``."""
    in_brace = False
    i = start
    n = len(text)
    while i < n:
        c = text[i]
        if c == LBRACE:
            in_brace = True
        elif c == RBRACE:
            in_brace = False
        elif not in_brace:
            if _is_reserved(c):
                break
            if c == " " and i + 1 < n and _is_reserved(text[i + 1]):
                break
        i += 1
    if in_brace:
        msg = f"Unterminated '{{' in query at offset {start}: {text!r}"
        raise ParseError(msg)
    return i


def _strip_braces(operand: str) -> str:
    if len(operand) >= 2 and operand[0] == LBRACE and operand[-1] == RBRACE:
        return operand[1:-1]
    return operand


def tokenize(text: str) -> Iterator[Token]:
    """Split a query into tokens."""
    text = text.rstrip()
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == " ":
            i += 1
        elif _is_reserved(c):
            yield Token(kind=c, text=c, pos=i)
            i += 1
        else:
            end = _operand_end(text, i)
            yield Token(kind=OPERAND, text=_strip_braces(text[i:end]), pos=i)
            i = end


def iter_operands(text: str) -> Iterator[str]:
    """Operand names of a query, in source order."""
    for token in tokenize(text):
        if token.kind == OPERAND:
            yield token.text


def compile_to_postfix(text: str) -> list[str]:
    """Convert an infix query to postfix (shunting-yard).

    Raises ParseError on mismatched parentheses.
    """
    output: list[str] = []
    stack: list[str] = []

    for token in tokenize(text):
        if token.kind == OPERAND:
            output.append(OPERAND)
        elif is_operator(token.kind):
            op = token.kind
            while stack and is_operator(stack[-1]):
                top = stack[-1]
                if (_LEFT_ASSOC[op] and _PRECEDENCE[op] <= _PRECEDENCE[top]) or (
                    _PRECEDENCE[op] < _PRECEDENCE[top]
                ):
                    output.append(stack.pop())
                else:
                    break
            stack.append(op)
        elif token.kind == LPAREN:
            stack.append(LPAREN)
        else:  # RPAREN
            while stack and stack[-1] != LPAREN:
                output.append(stack.pop())
            if not stack:
                msg = f"Parentheses mismatch: unmatched ')' at offset {token.pos} in {text!r}"
                raise ParseError(msg)
            stack.pop()

    while stack:
        op = stack.pop()
        if op == LPAREN:
            msg = f"Parentheses mismatch: unclosed '(' in {text!r}"
            raise ParseError(msg)
        output.append(op)

    logger.debug("query postfix order: %r -> %r", text, "".join(output))
    return output
