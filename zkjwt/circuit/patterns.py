# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Deterministic finite automata for the command pattern matchers.

Each matcher is an explicit DFA with a precomputed 256-column transition
table.  :func:`scan` evaluates it over every position of a fixed-capacity
buffer at a cost that depends only on the capacity and the number of states:
each state carries the earliest start position that can reach it, starts are
injected at every position, and acceptances update a pending leftmost-longest
match through ``select``.  Two starts that meet in the same state share their
future, so keeping only the earliest one loses no match.

A pending match is committed once no live state holds a start at or before
it.  Committing marks its span, moves the floor for later starts to its end
and drops every state whose start lies inside it, so the revealed spans are
the successive non-overlapping leftmost-longest matches.

Automata
--------
``EMAIL_ADDRESS``
    ``[A-Za-z0-9!#$%&'*+=?^_`{|}~./-]+ @ label ( . label )*`` with
    ``label = [A-Za-z0-9-]+``.  A match may not start right after a
    local-part character.
``INVITATION_CODE``
    ``(0x)?[0-9a-fA-F]+``, bounded only by the buffer.
``INVITATION_CODE_WITH_PREFIX``
    An optional single space, ``[Cc]ode ``, then ``INVITATION_CODE``.
    Unless it begins with the space, a match may not start right after an
    alphanumeric.

Every automaton refuses a match that is directly followed by an
alphanumeric, so a hex run glued to other letters is never partially
revealed.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Sequence, Tuple

from zkjwt.circuit.buffers import is_equal, is_zero, less_equal, less_than, select

__all__ = [
    "Automaton",
    "MatchResult",
    "scan",
    "EMAIL_ADDRESS",
    "INVITATION_CODE",
    "INVITATION_CODE_WITH_PREFIX",
]

DEAD = 0

_ALNUM = frozenset((string.ascii_letters + string.digits).encode())
_HEX = frozenset(string.hexdigits.encode())
_EMAIL_LOCAL = _ALNUM | frozenset(b"!#$%&'*+=?^_`{|}~./-")
_EMAIL_LABEL = _ALNUM | frozenset(b"-")


def _indicator(chars: FrozenSet[int]) -> Tuple[int, ...]:
    return tuple(int(b in chars) for b in range(256))


@dataclass(frozen=True)
class Automaton:
    """A DFA plus the boundary rules applied around a match.

    Attributes:
        name:            Label used in logs and errors.
        transitions:     ``transitions[state][byte]`` is the next state;
                         state 0 is the absorbing dead state.
        accepting:       1 for accepting states, indexed by state.
        start:           Start state.
        not_before:      1 for bytes after which a match may not start.
        free_start:      1 for first bytes that lift the ``not_before`` rule.
        not_after:       1 for bytes that may not directly follow a match.
    """

    name: str
    transitions: Tuple[Tuple[int, ...], ...]
    accepting: Tuple[int, ...]
    start: int
    not_before: Tuple[int, ...]
    free_start: Tuple[int, ...]
    not_after: Tuple[int, ...]

    @property
    def state_count(self) -> int:
        return len(self.transitions)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of one scan.

    Attributes:
        flag:    1 if at least one match was found, else 0.
        start:   Index of the first byte of the first match (0 when ``flag`` is 0).
        end:     Index one past the first match (0 when ``flag`` is 0).
        count:   Number of non-overlapping matches.
        reveal:  Per-position 0/1 mask covering every matched span.
    """

    flag: int
    start: int
    end: int
    count: int
    reveal: Tuple[int, ...]


class _TableBuilder:
    def __init__(self) -> None:
        self._rows: List[Dict[int, int]] = [{}]
        self.accepting: set = set()

    def state(self, accepting: bool = False) -> int:
        self._rows.append({})
        index = len(self._rows) - 1
        if accepting:
            self.accepting.add(index)
        return index

    def edge(self, src: int, chars, dst: int) -> None:
        for c in chars:
            self._rows[src][c] = dst

    def build(self) -> Tuple[Tuple[Tuple[int, ...], ...], Tuple[int, ...]]:
        transitions = tuple(
            tuple(row.get(b, DEAD) for b in range(256)) for row in self._rows
        )
        accepting = tuple(int(s in self.accepting) for s in range(len(self._rows)))
        return transitions, accepting


def _build_email() -> Automaton:
    t = _TableBuilder()
    start = t.state()
    local = t.state()
    at = t.state()
    label = t.state(accepting=True)
    dot = t.state()
    t.edge(start, _EMAIL_LOCAL, local)
    t.edge(local, _EMAIL_LOCAL, local)
    t.edge(local, b"@", at)
    t.edge(at, _EMAIL_LABEL, label)
    t.edge(label, _EMAIL_LABEL, label)
    t.edge(label, b".", dot)
    t.edge(dot, _EMAIL_LABEL, label)
    transitions, accepting = t.build()
    return Automaton(
        name="email address",
        transitions=transitions,
        accepting=accepting,
        start=start,
        not_before=_indicator(_EMAIL_LOCAL),
        free_start=_indicator(frozenset()),
        not_after=_indicator(_ALNUM),
    )


def _hex_tail(t: _TableBuilder, entry: int) -> None:
    """Attach ``(0x)?[0-9a-fA-F]+`` after state *entry*."""
    run = t.state(accepting=True)
    # A leading '0' is either a one-digit run or the start of "0x".
    zero = t.state(accepting=True)
    prefixed = t.state()
    t.edge(entry, _HEX, run)
    t.edge(entry, b"0", zero)
    t.edge(zero, _HEX, run)
    t.edge(zero, b"x", prefixed)
    t.edge(prefixed, _HEX, run)
    t.edge(run, _HEX, run)


def _build_invitation_code(with_prefix: bool) -> Automaton:
    t = _TableBuilder()
    start = t.state()
    if with_prefix:
        space = t.state()
        c = t.state()
        co = t.state()
        cod = t.state()
        code = t.state()
        entry = t.state()
        t.edge(start, b" ", space)
        t.edge(start, b"Cc", c)
        t.edge(space, b"Cc", c)
        t.edge(c, b"o", co)
        t.edge(co, b"d", cod)
        t.edge(cod, b"e", code)
        t.edge(code, b" ", entry)
    else:
        entry = start
    _hex_tail(t, entry)
    transitions, accepting = t.build()
    return Automaton(
        name="invitation code" + (" with prefix" if with_prefix else ""),
        transitions=transitions,
        accepting=accepting,
        start=start,
        not_before=_indicator(_ALNUM),
        free_start=_indicator(frozenset(b" ") if with_prefix else frozenset()),
        not_after=_indicator(_ALNUM),
    )


EMAIL_ADDRESS = _build_email()
INVITATION_CODE = _build_invitation_code(with_prefix=False)
INVITATION_CODE_WITH_PREFIX = _build_invitation_code(with_prefix=True)


def scan(automaton: Automaton, data: Sequence[int]) -> MatchResult:
    """Find every non-overlapping leftmost-longest match of *automaton* in *data*.

    Every position and every state is visited regardless of what matches.
    """
    size = len(data)
    none = size + 1
    bits = (none + 1).bit_length()
    states = automaton.state_count
    table = automaton.transitions

    origin = [none] * states
    floor = 0
    pending_start = none
    pending_end = 0
    first_start = none
    first_end = 0
    count = 0
    # +1 where a committed span opens, +1 where it closes; index ``none`` absorbs no-ops.
    opens = [0] * (none + 1)
    closes = [0] * (none + 1)

    for i in range(size):
        current = data[i]
        previous = data[i - 1] if i else 0
        nxt = data[i + 1] if i + 1 < size else 0

        # Inject a start at position i.
        blocked = automaton.not_before[previous] * (1 - automaton.free_start[current])
        allowed = (1 - blocked) * less_equal(floor, i, bits)
        candidate = select(allowed, i, none)
        s0 = automaton.start
        origin[s0] = select(less_than(candidate, origin[s0], bits), candidate, origin[s0])

        advanced = [none] * states
        for s in range(states):
            t = table[s][current]
            advanced[t] = select(less_than(origin[s], advanced[t], bits), origin[s], advanced[t])
        advanced[DEAD] = none
        origin = advanced

        boundary_ok = 1 - automaton.not_after[nxt]
        for s in range(states):
            active = less_than(origin[s], none, bits)
            take = automaton.accepting[s] * active * boundary_ok * less_equal(origin[s], pending_start, bits)
            pending_start = select(take, origin[s], pending_start)
            pending_end = select(take, i + 1, pending_end)

        # Commit once nothing live can still precede or extend the pending match.
        pending = less_than(pending_start, none, bits)
        contenders = 0
        for s in range(states):
            contenders += less_than(origin[s], none, bits) * less_equal(origin[s], pending_start, bits)
        commit = pending * select(is_equal(i, size - 1), 1, is_zero(contenders))

        first = commit * is_zero(count)
        first_start = select(first, pending_start, first_start)
        first_end = select(first, pending_end, first_end)
        count += commit
        opens[select(commit, pending_start, none)] += commit
        closes[select(commit, pending_end, none)] += commit

        floor = select(commit, pending_end, floor)
        for s in range(states):
            inside = commit * less_than(origin[s], pending_end, bits)
            origin[s] = select(inside, none, origin[s])
        pending_start = select(commit, none, pending_start)
        pending_end = select(commit, 0, pending_end)

    flag = 1 - is_zero(count)
    reveal = []
    depth = 0
    for j in range(size):
        depth += opens[j] - closes[j]
        reveal.append(depth)
    return MatchResult(
        flag=flag,
        start=flag * first_start,
        end=flag * first_end,
        count=count,
        reveal=tuple(reveal),
    )
