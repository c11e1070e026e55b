#!/usr/bin/env python3

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Callable, Union
from .grammar import Symbol, Term, NonTerm, End, isTerm, Rule, Grammar, GrammarPredictor
from .table import Table, buildTable

log = logging.getLogger(__name__)

# Utility Functions
# #################

def asTerm(token: Any) -> Term:
    return token if isinstance(token, Term) else Term(token)

# Parse Tree
# ##########

@dataclass(frozen=True)
class ParseTree:
    def leaves(self):
        stack = [self]
        while stack:
            tree = stack.pop()
            if isinstance(tree, Leaf):
                yield tree.token
            else:
                stack.extend(reversed(tree.children))

@dataclass(frozen=True)
class Leaf(ParseTree):
    token: Any
    children: tuple = field(default=(), init=False)

    def __repr__(self):
        return repr(self.token.name if isinstance(self.token, Term) else self.token)

    def todict(self):
        return { "token": repr(self) }

@dataclass(frozen=True)
class Node(ParseTree):
    symbol: NonTerm
    children: tuple[ParseTree, ...] = ()

    def __repr__(self):
        return f"{self.symbol.name}({' '.join(repr(c) for c in self.children)})"

    def isEpsilon(self) -> bool:
        return len(self.children) == 0

    def todict(self):
        return { "symbol": self.symbol.name, "children": [ c.todict() for c in self.children ] }

@dataclass(frozen=True)
class ParseResult:
    accepted = False

@dataclass(frozen=True)
class Accepted(ParseResult):
    tree: ParseTree
    accepted = True

@dataclass(frozen=True)
class Rejected(ParseResult):
    remaining: tuple

@dataclass
class _Frame:
    rule: Rule
    children: list = field(default_factory=list)

    def complete(self) -> bool:
        return len(self.children) == len(self.rule)

# Predictive Parser
# #################

class PredictiveParser:
    grammar: Grammar
    table: Table
    matcher: Callable[[Any], Term]

    def __init__(self, grammar: Grammar, table: Table, matcher: Callable[[Any], Term] = asTerm):
        self.grammar = grammar
        self.table   = table
        self.matcher = matcher

    @classmethod
    def fromGrammar(cls, grammar: Grammar, matcher: Callable[[Any], Term] = asTerm):
        predictor = GrammarPredictor(grammar)
        return cls(grammar, buildTable(grammar, predictor.firstMap, predictor.followMap), matcher)

    def parse(self, tokens: Iterable[Any]) -> Union[Accepted, Rejected]:
        tokens = tuple(tokens)
        stack: list[Symbol] = [ End(), self.grammar.start ]
        frames: list[_Frame] = []
        done: list[ParseTree] = []
        index = 0

        def attach(tree):
            # close every frame this subtree completes
            while frames:
                frame = frames[-1]
                frame.children.append(tree)
                if not frame.complete(): return
                frames.pop()
                tree = Node(frame.rule.lhs, tuple(frame.children))
            done.append(tree)

        def reject(expected):
            log.debug("rejected at index %d: expected %r", index, expected)
            return Rejected(tokens[index:])

        while True:
            top = stack[-1]
            atEnd = index == len(tokens)
            focus = End() if atEnd else self.matcher(tokens[index])

            if isinstance(top, End):
                if atEnd: return Accepted(done[0])
                return reject(top)

            if isTerm(top):
                if focus != top: return reject(top)
                stack.pop()
                attach(Leaf(tokens[index]))
                index += 1
                continue

            rule = self.table.get(top, {}).get(focus)
            if rule is None: return reject(top)
            stack.pop()
            if rule.isEpsilon():
                attach(Node(top))
                continue
            stack.extend(reversed(rule.rhs))
            frames.append(_Frame(rule))
