"""Evaluate compiled queries against the record store.

Operands name entities of ``operand_kind`` (tags by default); results are
entities of the other kind (files). ``!x`` is the complement within the
result kind's universe, never within the operand kind.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tagdb.errors import ParseError, UsageError
from tagdb.models import EntityKind
from tagdb.query import AND, NOT, OPERAND, OR, compile_to_postfix, iter_operands

if TYPE_CHECKING:
    from tagdb.setlist import SetList
    from tagdb.store import RelationStore

logger = logging.getLogger("tagdb.evaluate")


class QueryEvaluator:
    """Postfix evaluator over SetLists."""

    def __init__(self, store: RelationStore, operand_kind: EntityKind = EntityKind.TAG) -> None:
        self.store = store
        self.operand_kind = operand_kind

    @property
    def result_kind(self) -> EntityKind:
        return self.operand_kind.other

    def evaluate(self, text: str) -> SetList:
        """Evaluate ``text``; raises ParseError or UsageError."""
        postfix = compile_to_postfix(text)
        operands = iter_operands(text)
        stack: list[SetList] = []

        for token in postfix:
            if token == OPERAND:
                name = next(operands, None)
                if name is None:
                    msg = f"Operand missing in query {text!r}"
                    raise ParseError(msg)
                stack.append(self._related(name))
            elif token == NOT:
                if not stack:
                    msg = f"'!' without operand in query {text!r}"
                    raise ParseError(msg)
                universe = self.store.list_all(self.result_kind)
                stack.append(universe - stack.pop())
            elif token in (AND, OR):
                if len(stack) < 2:
                    msg = f"'{token}' needs two operands in query {text!r}"
                    raise ParseError(msg)
                right = stack.pop()
                left = stack.pop()
                stack.append(left & right if token == AND else left | right)

        if len(stack) != 1:
            msg = f"Malformed query {text!r}: {len(stack)} results left on stack"
            raise ParseError(msg)
        return stack[0]

    def _related(self, name: str) -> SetList:
        element = self.store.get(self.operand_kind, name)
        if element is None:
            msg = f"{self.operand_kind.label.capitalize()} '{name}' does not exist."
            raise UsageError(msg)
        return self.store.list_related(element)


def run_query(
    store: RelationStore,
    text: str,
    operand_kind: EntityKind = EntityKind.TAG,
) -> SetList | None:
    """Evaluate a query; None means it could not be evaluated.

    An empty SetList means the query was valid and matched nothing.
    """
    try:
        return QueryEvaluator(store, operand_kind).evaluate(text)
    except ParseError as exc:
        logger.error("query %r: %s", text, exc)
        return None
