"""
Indexable skip list

Ordered set of unique, mutually comparable keys. Every forward link records
its width (how many level-0 steps it spans), so position lookups and
positional slices cost O(log N) on average. Level promotion follows the Redis
zset parameters: p = 0.25, at most 32 levels.
"""

import random
from typing import Any, Iterator, List, Optional

MAX_LEVEL = 32
PROMOTION_PROBABILITY = 0.25


class _Node:
    __slots__ = ("key", "next", "width")

    def __init__(self, key: Any, level: int):
        self.key = key
        self.next: List[Optional["_Node"]] = [None] * level
        self.width: List[int] = [1] * level


class IndexableSkipList:
    """Sorted set of keys with rank and positional range queries"""

    def __init__(self, seed: Optional[int] = None):
        self._head = _Node(None, MAX_LEVEL)
        self._size = 0
        self._random = random.Random(seed)

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[Any]:
        node = self._head.next[0]
        while node is not None:
            yield node.key
            node = node.next[0]

    def __contains__(self, key: Any) -> bool:
        return self.index(key) is not None

    def _random_level(self) -> int:
        level = 1
        while level < MAX_LEVEL and self._random.random() < PROMOTION_PROBABILITY:
            level += 1
        return level

    def insert(self, key: Any) -> None:
        """Insert ``key``; raises ValueError if it is already present"""
        chain: List[_Node] = [self._head] * MAX_LEVEL
        positions = [0] * MAX_LEVEL
        node = self._head
        pos = 0
        for i in reversed(range(MAX_LEVEL)):
            while node.next[i] is not None and node.next[i].key < key:
                pos += node.width[i]
                node = node.next[i]
            chain[i] = node
            positions[i] = pos

        successor = chain[0].next[0]
        if successor is not None and successor.key == key:
            raise ValueError(f"duplicate key: {key!r}")

        level = self._random_level()
        new = _Node(key, level)
        new_pos = positions[0] + 1
        for i in range(level):
            prev = chain[i]
            if prev.next[i] is not None:
                # The old successor shifts one place to the right
                new.width[i] = positions[i] + prev.width[i] + 1 - new_pos
            new.next[i] = prev.next[i]
            prev.next[i] = new
            prev.width[i] = new_pos - positions[i]
        for i in range(level, MAX_LEVEL):
            if chain[i].next[i] is not None:
                chain[i].width[i] += 1
        self._size += 1

    def remove(self, key: Any) -> None:
        """Remove ``key``; raises KeyError if it is absent"""
        chain: List[_Node] = [self._head] * MAX_LEVEL
        node = self._head
        for i in reversed(range(MAX_LEVEL)):
            while node.next[i] is not None and node.next[i].key < key:
                node = node.next[i]
            chain[i] = node

        target = chain[0].next[0]
        if target is None or target.key != key:
            raise KeyError(key)

        for i in range(len(target.next)):
            prev = chain[i]
            prev.width[i] += target.width[i] - 1
            prev.next[i] = target.next[i]
        for i in range(len(target.next), MAX_LEVEL):
            if chain[i].next[i] is not None:
                chain[i].width[i] -= 1
        self._size -= 1

    def index(self, key: Any) -> Optional[int]:
        """0-based position of ``key`` or None"""
        node = self._head
        pos = 0
        for i in reversed(range(MAX_LEVEL)):
            while node.next[i] is not None and node.next[i].key <= key:
                pos += node.width[i]
                node = node.next[i]
        if node is self._head or node.key != key:
            return None
        return pos - 1

    def slice(self, start: int, stop: int) -> List[Any]:
        """Keys at positions ``start``..``stop`` inclusive, capped to the size"""
        if start < 0 or stop < start or start >= self._size:
            return []
        stop = min(stop, self._size - 1)

        target = start + 1
        node = self._head
        pos = 0
        for i in reversed(range(MAX_LEVEL)):
            while node.next[i] is not None and pos + node.width[i] <= target:
                pos += node.width[i]
                node = node.next[i]

        keys = []
        for _ in range(stop - start + 1):
            keys.append(node.key)
            node = node.next[0]
        return keys

    def clear(self) -> None:
        self._head = _Node(None, MAX_LEVEL)
        self._size = 0
