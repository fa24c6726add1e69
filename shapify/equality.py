"""Structural equality over a possibly cyclic type graph."""

from typing import Dict, Generator, Iterable, List, Optional, Set, Tuple

from shapify.typegraph import Handle, TypeGraph, TypeKind

Pair = Tuple[Handle, Handle]
Comparison = Generator[Pair, Optional[bool], bool]


class StructuralEquality:
    """
    Compares type nodes by shape rather than by handle.

    A pair that is already being compared further up the current path is
    assumed equal, which makes the comparison co-inductive and lets it
    terminate on self-referencing records. Finished comparisons are memoized.
    The memo is only valid while the graph is not mutated, so create a new
    instance after rewriting nodes.

    The walk keeps its pending comparisons on an explicit stack, so the depth
    of the compared shapes is not limited by the interpreter's recursion limit.

    Args:
        graph: The graph both sides live in.
        opaque: Handles whose nodes are still being built. They are only equal
            to themselves.
    """

    def __init__(self, graph: TypeGraph, opaque: Optional[Set[Handle]] = None):
        self.graph = graph
        self.opaque = opaque if opaque is not None else set()
        self._memo: Dict[Pair, bool] = {}

    def __call__(self, left: Handle, right: Handle) -> bool:
        return self.equal(left, right)

    def _key(self, left: Handle, right: Handle) -> Pair:
        return (left, right) if left.index <= right.index else (right, left)

    def equal(self, left: Handle, right: Handle) -> bool:
        in_progress: Set[Pair] = set()
        stack: List[Tuple[Pair, Comparison]] = []
        answer = self._enter(left, right, in_progress, stack)
        while stack:
            key, comparison = stack[-1]
            try:
                left, right = comparison.send(answer)
            except StopIteration as done:
                stack.pop()
                in_progress.discard(key)
                answer = done.value
                # a negative answer is final; a positive one may rest on an
                # assumption made further up and is only cached at the top
                if not answer or not in_progress:
                    self._memo[key] = answer
                continue
            answer = self._enter(left, right, in_progress, stack)
        return answer

    def _enter(self, left: Handle, right: Handle, in_progress: Set[Pair],
               stack: List[Tuple[Pair, Comparison]]) -> Optional[bool]:
        """Answers a pair right away, or pushes its comparison and returns None."""
        if left == right:
            return True
        if left in self.opaque or right in self.opaque:
            return False
        key = self._key(left, right)
        if key in self._memo:
            return self._memo[key]
        if key in in_progress:
            return True
        in_progress.add(key)
        stack.append((key, self._compare(left, right)))
        return None

    def _compare(self, left: Handle, right: Handle) -> Comparison:
        """Yields the child pairs to compare and receives their answers."""
        lnode = self.graph.resolve(left)
        rnode = self.graph.resolve(right)
        if lnode.kind != rnode.kind:
            return False
        kind = lnode.kind
        if kind.is_primitive:
            return True
        if kind == TypeKind.ARRAY:
            return (yield lnode.element, rnode.element)
        if kind == TypeKind.RECORD:
            if list(lnode.fields.keys()) != list(rnode.fields.keys()):
                return False
            for name in lnode.fields:
                if not (yield lnode.fields[name], rnode.fields[name]):
                    return False
            return True
        if kind == TypeKind.UNION:
            if not (yield from self._covered(lnode.members, rnode.members)):
                return False
            return (yield from self._covered(rnode.members, lnode.members))
        raise ValueError(f"unexpected type kind {kind}")

    def _covered(self, members: Iterable[Handle], others: List[Handle]) -> Comparison:
        """True if every member has an equal partner among `others`."""
        for member in members:
            found = False
            for other in others:
                if (yield member, other):
                    found = True
                    break
            if not found:
                return False
        return True
