#!/usr/bin/env python3

import logging
from dataclasses import dataclass
from itertools import combinations
from .grammar import NonTerm, PseudoTerm, Epsilon, Rule, Grammar, \
                     nullable, firstOf, buildFirst, buildFollow, directingSet

log = logging.getLogger(__name__)

Table = dict[NonTerm, dict[PseudoTerm, Rule]]

# Table Construction
# ##################

def setCell(table: Table, rule: Rule, lookahead: PseudoTerm):
    row = table[rule.lhs]
    prev = row.get(lookahead)
    if prev is not None and prev != rule:
        log.warning("LL(1) conflict on (%r, %r): %r replaces %r", rule.lhs, lookahead, rule, prev)
    row[lookahead] = rule

def buildTable(g: Grammar, firstMap: dict[NonTerm, frozenset[PseudoTerm]],
               followMap: dict[NonTerm, frozenset[PseudoTerm]]) -> Table:
    """
    Fills one row per nonterminal. Rules are visited in declaration order and
    a later rule claiming an occupied cell replaces the earlier one; use
    isLL1() to find out whether that can happen.
    """
    table = { n: {} for n in g.nonterms }
    for rule in g.rules:
        ruleFirst = firstOf(firstMap, rule.rhs)
        for t in ruleFirst - { Epsilon() }:
            setCell(table, rule, t)
        if Epsilon() in ruleFirst:
            for f in followMap.get(rule.lhs, frozenset()):
                setCell(table, rule, f)
    log.debug("built LL(1) table with %d cells", sum(len(row) for row in table.values()))
    return table

def tableToDict(table: Table) -> dict[str, dict[str, str]]:
    return { n.name: { repr(la): repr(rule) for la, rule in row.items() } for n, row in table.items() }

# LL(1) Verification
# ##################

@dataclass(frozen=True)
class Conflict:
    nonterm: NonTerm
    first: Rule
    second: Rule
    lookaheads: frozenset[PseudoTerm]

    def __repr__(self):
        las = ", ".join(sorted(repr(la) for la in self.lookaheads))
        return f"{self.nonterm!r}: {{{las}}} selects both ({self.first!r}) and ({self.second!r})"

def ll1Conflicts(g: Grammar, firstMap: dict[NonTerm, frozenset[PseudoTerm]],
                 followMap: dict[NonTerm, frozenset[PseudoTerm]]) -> list[Conflict]:
    res = []
    byLhs: dict[NonTerm, list[Rule]] = {}
    for rule in g.rules:
        byLhs.setdefault(rule.lhs, []).append(rule)
    for n, rules in byLhs.items():
        if len(rules) < 2: continue
        selects = [ (rule, directingSet(firstMap, followMap, rule)) for rule in rules ]
        for (r1, s1), (r2, s2) in combinations(selects, 2):
            common = s1 & s2
            if common:
                res.append(Conflict(n, r1, r2, common))
    return res

def isLL1(g: Grammar, firstMap=None, followMap=None) -> bool:
    if firstMap is None:
        firstMap = buildFirst(g)
    if followMap is None:
        followMap = buildFollow(g, firstMap, nullable(g))
    conflicts = ll1Conflicts(g, firstMap, followMap)
    for c in conflicts:
        log.debug("not LL(1): %r", c)
    return not conflicts
