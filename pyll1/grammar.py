#!/usr/bin/env python3

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar, Callable
from copy import deepcopy

T = TypeVar('T')
G = TypeVar('G')

EPSILON = "ε"
END = "$"

NONTERM_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_']*\Z")

log = logging.getLogger(__name__)

class GrammarValidationError(ValueError):
    """Raised when a rule or grammar violates a structural invariant."""

# Grammar Representation
# ######################

@dataclass(frozen=True)
class Symbol: pass

@dataclass(frozen=True)
class NonTerm(Symbol):
    name: str
    def __repr__(self): return self.name

@dataclass(frozen=True)
class PseudoTerm(Symbol): pass

@dataclass(frozen=True)
class Term(PseudoTerm):
    name: str
    def __repr__(self): return f'"{self.name}"'

@dataclass(frozen=True)
class Epsilon(PseudoTerm):
    def __repr__(self): return EPSILON

@dataclass(frozen=True)
class End(PseudoTerm):
    def __repr__(self): return END

@dataclass(frozen=True)
class Rule:
    lhs: NonTerm
    rhs: tuple[Symbol, ...]

    def __post_init__(self):
        rhs = tuple(self.rhs) if len(self.rhs) else (Epsilon(),)
        object.__setattr__(self, "rhs", rhs)
        if not isNonTerm(self.lhs):
            raise GrammarValidationError(f"Rule lhs must be a NonTerm, got {self.lhs!r}")
        for s in rhs:
            if not isinstance(s, Symbol):
                raise GrammarValidationError(f"Rule {self.lhs!r} has non-symbol {s!r} in its body")
        if len(rhs) > 1 and Epsilon() in rhs:
            raise GrammarValidationError(f"Rule {self.lhs!r} mixes epsilon with other symbols")

    def __repr__(self):
        res = self.lhs.name + " :="
        for s in self.rhs:
            res += " " + repr(s)
        return res

    def __len__(self):
        return len(self.rhs)

    def isEpsilon(self) -> bool:
        return self.rhs == (Epsilon(),)

@dataclass(frozen=True)
class Grammar:
    nonterms: frozenset[NonTerm]
    terms: frozenset[Term]
    rules: tuple[Rule, ...]
    start: NonTerm

    def __post_init__(self):
        object.__setattr__(self, "nonterms", frozenset(self.nonterms))
        object.__setattr__(self, "terms",    frozenset(self.terms))
        object.__setattr__(self, "rules",    tuple(self.rules))
        self.validate()

    def validate(self):
        for n in self.nonterms:
            if not isNonTerm(n) or not isinstance(n.name, str) or not NONTERM_NAME.match(n.name):
                raise GrammarValidationError(f"Malformed nonterminal {n!r}")
        for t in self.terms:
            if not isTerm(t) or not validTermName(t.name):
                raise GrammarValidationError(f"Terminal {t!r} is not a valid unicode terminal")
        declared = self.nonterms | self.terms | { Epsilon() }
        for rule in self.rules:
            if not isinstance(rule, Rule):
                raise GrammarValidationError(f"Expected a Rule, got {rule!r}")
            if rule.lhs not in self.nonterms:
                raise GrammarValidationError(f"{rule.lhs!r} is not a declared nonterminal")
            for s in rule.rhs:
                if s not in declared:
                    raise GrammarValidationError(f"Invalid symbol {s!r} in rule {rule!r}")
        if self.start not in self.nonterms:
            raise GrammarValidationError(f"Start symbol {self.start!r} is not a declared nonterminal")

    def __repr__(self):
        res = f"Grammar(\n  start = {self.start},\n"
        for rule in self.rules:
            res += "  " + repr(rule) + "\n"
        res += ")"
        return res

    def __getitem__(self, nonterm):
        if not isinstance(nonterm, NonTerm):
            raise ValueError("Grammar rule lookup must use valid non-terminal")
        return tuple(rule for rule in self.rules if rule.lhs == nonterm)

    def todict(self):
        return { "start":    self.start.name,
                 "nonterms": sorted(n.name for n in self.nonterms),
                 "terms":    sorted(t.name for t in self.terms),
                 "rules":    [ repr(rule) for rule in self.rules ]
               }

# utility functions
# #################

def isTerm(s: Symbol) -> bool:
    return isinstance(s, Term)

def isNonTerm(s: Symbol) -> bool:
    return isinstance(s, NonTerm)

def validTermName(name) -> bool:
    # surrogates are code points but not scalar values
    return isinstance(name, str) and len(name) > 0 \
        and not any(0xD800 <= ord(c) <= 0xDFFF for c in name)

def closure(f: Callable[[T, G], T]) -> Callable[[T, G], T]:

    def closure_f(s: T, g: G) -> T:
        s = deepcopy(s)
        passes = 0
        while True:
            old = deepcopy(s)
            s = f(s, g)
            passes += 1
            if s == old:
                log.debug("%s reached a fixed point after %d passes", f.__name__, passes)
                return s

    return closure_f

def setMapToDict(m: dict[NonTerm, frozenset[PseudoTerm]]) -> dict[str, list[str]]:
    return { n.name: sorted(repr(s) for s in syms) for n, syms in m.items() }

# grammar prediction
# ##################

def _nullable_1(null: set[NonTerm], g: Grammar) -> set[NonTerm]:
    for rule in g.rules:
        if rule.lhs in null: continue
        if all(s in null for s in rule.rhs):
            null.add(rule.lhs)
    return null

_nullable_0 = closure(_nullable_1)

def nullable(g: Grammar) -> frozenset[NonTerm]:
    return frozenset(_nullable_0({ rule.lhs for rule in g.rules if rule.isEpsilon() }, g))

def ringSum(*sets: Iterable[PseudoTerm]) -> frozenset[PseudoTerm]:
    """
    Concatenates FIRST sets: the next set only contributes while every set
    before it could vanish. The epsilon marker survives only if all do.
    """
    if not sets:
        return frozenset({ Epsilon() })
    acc = set(sets[0])
    for s in sets[1:]:
        if Epsilon() not in acc: break
        acc.discard(Epsilon())
        acc.update(s)
    return frozenset(acc)

def symbolFirst(firstMap: dict[NonTerm, frozenset[PseudoTerm]], sym: Symbol) -> frozenset[PseudoTerm]:
    if isNonTerm(sym):
        return frozenset(firstMap.get(sym, ()))
    return frozenset({ sym })

def firstOf(firstMap: dict[NonTerm, frozenset[PseudoTerm]], word: Iterable[Symbol]) -> frozenset[PseudoTerm]:
    return ringSum(*[ symbolFirst(firstMap, sym) for sym in word ])

def _buildFirst1(firstMap: dict[NonTerm, set[PseudoTerm]], g: Grammar):
    for rule in g.rules:
        if rule.isEpsilon(): continue
        firstMap[rule.lhs] |= firstOf(firstMap, rule.rhs)
    return firstMap

_buildFirst0 = closure(_buildFirst1)

def buildFirst(g: Grammar) -> dict[NonTerm, frozenset[PseudoTerm]]:
    firstMap = { n: set() for n in g.nonterms }
    for rule in g.rules:
        if rule.isEpsilon():      firstMap[rule.lhs].add(Epsilon())
        elif isTerm(rule.rhs[0]): firstMap[rule.lhs].add(rule.rhs[0])
    firstMap = _buildFirst0(firstMap, g)
    return { n: frozenset(syms) for n, syms in firstMap.items() }

def _buildFollow1(follow: dict[NonTerm, set[PseudoTerm]], gn: tuple[Grammar, frozenset[NonTerm]]):
    g, null = gn
    for rule in g.rules:
        lhs, rhs = rule.lhs, rule.rhs
        last = rhs[-1]
        if isNonTerm(last) and last != lhs:
            follow[last] |= follow[lhs]
        for i in range(len(rhs)-1):
            curr = rhs[i]
            if isNonTerm(curr) and all(s in null for s in rhs[i+1:]):
                follow[curr] |= follow[lhs]
    return follow

_buildFollow0 = closure(_buildFollow1)

def buildFollow(g: Grammar, firstMap: dict[NonTerm, frozenset[PseudoTerm]],
                null: frozenset[NonTerm]) -> dict[NonTerm, frozenset[PseudoTerm]]:
    follow = { n: set() for n in g.nonterms }
    follow[g.start].add(End())
    for rule in g.rules:
        for i in range(len(rule.rhs)-1):
            curr = rule.rhs[i]
            if isNonTerm(curr):
                follow[curr] |= firstOf(firstMap, rule.rhs[i+1:]) - { Epsilon() }
    follow = _buildFollow0(follow, (g, null))
    return { n: frozenset(syms) for n, syms in follow.items() }

def directingSet(firstMap: dict[NonTerm, frozenset[PseudoTerm]],
                 followMap: dict[NonTerm, frozenset[PseudoTerm]], rule: Rule) -> frozenset[PseudoTerm]:
    ruleFirst = firstOf(firstMap, rule.rhs)
    if Epsilon() in ruleFirst:
        return (ruleFirst - { Epsilon() }) | followMap.get(rule.lhs, frozenset())
    return ruleFirst

class GrammarPredictor:
    grammar: Grammar
    nullSet: frozenset[NonTerm]
    firstMap: dict[NonTerm, frozenset[PseudoTerm]]
    followMap: dict[NonTerm, frozenset[PseudoTerm]]

    def __init__(self, grammar: Grammar):
        self.grammar   = grammar
        self.nullSet   = nullable(self.grammar)
        self.firstMap  = buildFirst(self.grammar)
        self.followMap = buildFollow(self.grammar, self.firstMap, self.nullSet)

    def todict(self):
        return { "grammar":   self.grammar.todict(),
                 "nullable":  sorted(n.name for n in self.nullSet),
                 "firstMap":  setMapToDict(self.firstMap),
                 "followMap": setMapToDict(self.followMap)
               }

    def select(self, rule: Rule) -> frozenset[PseudoTerm]:
        return directingSet(self.firstMap, self.followMap, rule)

    def testSelect(self, lookahead: PseudoTerm, rule: Rule) -> bool:
        return lookahead in self.select(rule)
