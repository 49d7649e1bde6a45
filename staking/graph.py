from typing import Iterator, Optional

from .errors import ValidationError
from .registry import IdentityRegistry


class ReferralGraph:
    """
    Referral forest over the registry's slots.

    ``_parent[slot]`` holds the referrer's slot (``None`` for root), and
    ``_children[slot]`` the referred slots in registration order. Every
    traversal uses an explicit frontier so deep chains never hit the
    recursion limit.
    """

    def __init__(self, registry: IdentityRegistry):
        self._registry = registry
        self._parent: list[Optional[int]] = []
        self._children: list[list[int]] = []

    def _grow_to(self, slot: int) -> None:
        while len(self._parent) <= slot:
            self._parent.append(None)
            self._children.append([])

    def _parent_of(self, slot: int) -> Optional[int]:
        return self._parent[slot] if slot < len(self._parent) else None

    def check_edge(self, parent: str, child: str) -> None:
        """Raise ``ValidationError`` if ``parent -> child`` could not be added."""
        if parent == child:
            raise ValidationError("An identity cannot refer itself")
        if not self._registry.exists(parent):
            raise ValidationError(f"Referrer {parent} is not registered")
        if self._registry.exists(child) and self._parent_of(self._registry.slot_of(child)) is not None:
            raise ValidationError(f"Identity {child} already has a referrer")

    def add_edge(self, parent: str, child: str) -> None:
        self.check_edge(parent, child)
        parent_slot = self._registry.slot_of(parent)
        child_slot = self._registry.slot_of(child)
        self._grow_to(max(parent_slot, child_slot))
        self._parent[child_slot] = parent_slot
        self._children[parent_slot].append(child_slot)

    def referrer_of(self, identity: str) -> Optional[str]:
        parent = self._parent_of(self._registry.slot_of(identity))
        return None if parent is None else self._registry.identity_at(parent)

    def direct_children(self, node: str) -> list[str]:
        slot = self._registry.slot_of(node)
        if slot >= len(self._children):
            return []
        return [self._registry.identity_at(child) for child in self._children[slot]]

    def lineage(self, first: str, max_hops: int) -> Iterator[tuple[str, int]]:
        """Yield ``(identity, hop)`` for ``first`` (hop 0) and then its ancestors."""
        current: Optional[int] = self._registry.slot_of(first) if self._registry.exists(first) else None
        for hop in range(max_hops):
            if current is None:
                return
            yield self._registry.identity_at(current), hop
            current = self._parent_of(current)

    def ancestor_walk(self, start: str, max_hops: int) -> Iterator[tuple[str, int]]:
        referrer = self.referrer_of(start)
        if referrer is None:
            return iter(())
        return self.lineage(referrer, max_hops)

    def level_order(self, start: str) -> list[list[str]]:
        """
        Breadth-first layers of descendants of ``start``.

        ``layers[0]`` holds the direct referrals, ``layers[1]`` their referrals
        and so on. Layering stops at the first empty layer.
        """
        frontier = [self._registry.slot_of(start)]
        layers: list[list[str]] = []

        # A forest over n identities has at most n - 1 non-empty descendant layers
        for _ in range(len(self._registry)):
            next_frontier = [
                child
                for slot in frontier if slot < len(self._children)
                for child in self._children[slot]
            ]
            if not next_frontier:
                break
            layers.append([self._registry.identity_at(slot) for slot in next_frontier])
            frontier = next_frontier
        return layers
