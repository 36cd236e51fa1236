"""
Sorted Cost Tree
================

Red-black binary search tree used as a priority structure over edges.

Nodes are keyed by a floating point cost and carry an opaque hashable
handle.  A dictionary maps each handle to its node, so removal and update
by handle are O(log n) and the caller never has to remember the old cost.

A red-black tree has the following properties:

1. Null leaves are black.
2. A red node has no red child.
3. Paths from any node to its leaves contain the same number of black
   nodes.

By convention the root is always black.  Equal keys are inserted to the
right of existing ones, so entries with the same cost are traversed in
insertion order.
"""

from typing import Dict, Hashable, Iterator, Optional, Tuple


class _Node:
    __slots__ = ("key", "handle", "left", "right", "parent", "red")

    def __init__(self, handle: Hashable, key: float):
        self.key = key
        self.handle = handle
        self.left: Optional["_Node"] = None
        self.right: Optional["_Node"] = None
        self.parent: Optional["_Node"] = None
        self.red = True

    def __repr__(self):
        return f"Key: {self.key} {'red' if self.red else 'black'}"


def _is_red(node: Optional[_Node]) -> bool:
    return node is not None and node.red


def _minimum(node: _Node) -> _Node:
    while node.left is not None:
        node = node.left
    return node


def _successor(node: _Node) -> Optional[_Node]:
    if node.right is not None:
        return _minimum(node.right)
    parent = node.parent
    while parent is not None and node is parent.right:
        node = parent
        parent = parent.parent
    return parent


class RedBlackSortedTree:
    """
    Balanced tree of ``(cost, handle)`` pairs sorted by increasing cost.

    Traversal is done either with the Python iterator protocol or with the
    stateful cursor :meth:`first` / :meth:`next`, which allows callers to
    skip entries without removing them.
    """

    def __init__(self):
        self._root: Optional[_Node] = None
        self._nodes: Dict[Hashable, _Node] = {}
        self._cursor: Optional[_Node] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def size(self) -> int:
        return len(self._nodes)

    def is_empty(self) -> bool:
        return not self._nodes

    def __contains__(self, handle: Hashable) -> bool:
        return handle in self._nodes

    def contains(self, handle: Hashable) -> bool:
        return handle in self._nodes

    def get_key(self, handle: Hashable) -> float:
        """Return the cost currently stored for ``handle``."""
        return self._nodes[handle].key

    def __iter__(self) -> Iterator[Tuple[Hashable, float]]:
        node = _minimum(self._root) if self._root is not None else None
        while node is not None:
            yield node.handle, node.key
            node = _successor(node)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def first(self) -> Optional[Hashable]:
        """Move the cursor to the lowest cost entry and return its handle."""
        self._cursor = _minimum(self._root) if self._root is not None else None
        return None if self._cursor is None else self._cursor.handle

    def next(self) -> Optional[Hashable]:
        """Advance the cursor; return ``None`` past the last entry."""
        if self._cursor is not None:
            self._cursor = _successor(self._cursor)
        return None if self._cursor is None else self._cursor.handle

    # ------------------------------------------------------------------
    # Public modifiers
    # ------------------------------------------------------------------

    def insert(self, handle: Hashable, key: float):
        """Insert ``handle`` with cost ``key``.

        Raises:
            KeyError: if ``handle`` is already in the tree
        """
        if handle in self._nodes:
            raise KeyError(f"{handle!r} already in tree")
        node = _Node(handle, float(key))
        self._nodes[handle] = node
        self._insert_node(node)

    def remove(self, handle: Hashable) -> float:
        """Remove ``handle`` and return the cost it was stored with.

        Raises:
            KeyError: if ``handle`` is not in the tree
        """
        node = self._nodes.pop(handle)
        if node is self._cursor:
            self._cursor = None
        self._remove_node(node)
        return node.key

    def discard(self, handle: Hashable) -> Optional[float]:
        """Remove ``handle`` if present."""
        if handle in self._nodes:
            return self.remove(handle)
        return None

    def update(self, handle: Hashable, key: float):
        """Change the cost of ``handle``, inserting it if needed."""
        if handle in self._nodes:
            self.remove(handle)
        self.insert(handle, key)

    def clear(self):
        self._root = None
        self._nodes.clear()
        self._cursor = None

    # ------------------------------------------------------------------
    # Rotations
    # ------------------------------------------------------------------

    def _replace_child(self, parent: Optional[_Node], old: _Node,
                       new: Optional[_Node]):
        if parent is None:
            self._root = new
        elif parent.left is old:
            parent.left = new
        else:
            parent.right = new
        if new is not None:
            new.parent = parent

    def _rotate_left(self, x: _Node):
        y = x.right
        x.right = y.left
        if y.left is not None:
            y.left.parent = x
        self._replace_child(x.parent, x, y)
        y.left = x
        x.parent = y

    def _rotate_right(self, x: _Node):
        y = x.left
        x.left = y.right
        if y.right is not None:
            y.right.parent = x
        self._replace_child(x.parent, x, y)
        y.right = x
        x.parent = y

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def _insert_node(self, node: _Node):
        parent = None
        current = self._root
        while current is not None:
            parent = current
            if current.key > node.key:
                current = current.left
            else:
                current = current.right
        node.parent = parent
        if parent is None:
            self._root = node
        elif parent.key > node.key:
            parent.left = node
        else:
            parent.right = node

        current = node
        while True:
            parent = current.parent
            # Case 1: root node
            if parent is None:
                current.red = False
                return
            # Case 2: parent is black, nothing to do
            if not parent.red:
                return
            # Parent is red, so it is not the root and grandparent is black
            grandparent = parent.parent
            if parent is grandparent.left:
                uncle = grandparent.right
            else:
                uncle = grandparent.left
            if _is_red(uncle):
                # Case 3: uncle is red, repaint and continue from grandparent
                parent.red = False
                uncle.red = False
                grandparent.red = True
                current = grandparent
                continue
            # Case 4: rotate to put red nodes on the same side
            if current is parent.right and parent is grandparent.left:
                self._rotate_left(parent)
                current = parent
                parent = current.parent
            elif current is parent.left and parent is grandparent.right:
                self._rotate_right(parent)
                current = parent
                parent = current.parent
            # Case 5: rotate grandparent the opposite way and recolor
            parent.red = False
            grandparent.red = True
            if current is parent.left:
                self._rotate_right(grandparent)
            else:
                self._rotate_left(grandparent)
            return

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def _remove_node(self, node: _Node):
        if node.left is not None and node.right is not None:
            # Splice the successor in place of node, keeping node's color
            succ = _minimum(node.right)
            removed_red = succ.red
            child = succ.right
            if succ.parent is node:
                child_parent = succ
            else:
                child_parent = succ.parent
                self._replace_child(succ.parent, succ, succ.right)
                succ.right = node.right
                succ.right.parent = succ
            self._replace_child(node.parent, node, succ)
            succ.left = node.left
            succ.left.parent = succ
            succ.red = node.red
        else:
            removed_red = node.red
            child = node.left if node.left is not None else node.right
            child_parent = node.parent
            self._replace_child(node.parent, node, child)
        node.left = node.right = node.parent = None
        if not removed_red:
            self._remove_fixup(child, child_parent)

    def _remove_fixup(self, current: Optional[_Node], parent: Optional[_Node]):
        # current carries an extra black; it may be a null leaf
        while not _is_red(current):
            # Case 1: current is the root
            if parent is None:
                break
            on_left = current is parent.left
            sibling = parent.right if on_left else parent.left
            if sibling.red:
                # Case 2: sibling is red, rotate so that it becomes black
                sibling.red = False
                parent.red = True
                if on_left:
                    self._rotate_left(parent)
                    sibling = parent.right
                else:
                    self._rotate_right(parent)
                    sibling = parent.left
            near = sibling.left if on_left else sibling.right
            far = sibling.right if on_left else sibling.left
            if not _is_red(near) and not _is_red(far):
                sibling.red = True
                if parent.red:
                    # Case 4: parent is red, sibling and its children black
                    parent.red = False
                    return
                # Case 3: parent, sibling and its children are black
                current = parent
                parent = current.parent
                continue
            if not _is_red(far):
                # Case 5: near child red, far child black
                near.red = False
                sibling.red = True
                if on_left:
                    self._rotate_right(sibling)
                else:
                    self._rotate_left(sibling)
                far = sibling
                sibling = near
            # Case 6: sibling black, far child red
            sibling.red = parent.red
            parent.red = False
            far.red = False
            if on_left:
                self._rotate_left(parent)
            else:
                self._rotate_right(parent)
            return
        if current is not None:
            current.red = False

    # ------------------------------------------------------------------
    # Debugging
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        """Check ordering, parent links and red-black properties.

        Walks the whole tree, only meant for tests and debugging.
        """
        if self._root is None:
            return not self._nodes
        if self._root.red or self._root.parent is not None:
            return False
        count = 0
        stack = [(self._root, float("-inf"), float("inf"))]
        while stack:
            node, low, high = stack.pop()
            count += 1
            if not (low <= node.key <= high):
                return False
            if self._nodes.get(node.handle) is not node:
                return False
            for child in (node.left, node.right):
                if child is None:
                    continue
                if child.parent is not node:
                    return False
                if node.red and child.red:
                    return False
            if node.left is not None:
                stack.append((node.left, low, node.key))
            if node.right is not None:
                stack.append((node.right, node.key, high))
        if count != len(self._nodes):
            return False
        return self._black_height(self._root) >= 0

    def _black_height(self, node: Optional[_Node]) -> int:
        if node is None:
            return 1
        left = self._black_height(node.left)
        right = self._black_height(node.right)
        if left < 0 or right < 0 or left != right:
            return -1
        return left + (0 if node.red else 1)
