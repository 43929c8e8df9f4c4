import logging
from abc import abstractmethod
from typing import Any, Callable, cast, Generic, Optional, Protocol, TypeVar


logger = logging.getLogger(__name__)


class ComparableTreeDataType(Protocol):
    @abstractmethod
    def __lt__(self, other: Any, /) -> bool: ...


T = TypeVar('T', bound=ComparableTreeDataType)


class AvlgTreeError(Exception):
    """Base class for all errors raised by an AVL-G tree. Catch this to handle any of them."""


class InvalidBalanceError(AvlgTreeError, ValueError):
    """Raised when a tree is constructed with a max imbalance less than 1. No tree is created in that case."""


class EmptyTreeError(AvlgTreeError, LookupError):
    """Raised when searching, deleting or reading the root of a tree with no elements. Insert a value and retry."""


class AvlgTreeNode(Generic[T]):
    __slots__ = 'val', 'left', 'right', 'height'

    def __init__(self, init: T):
        self.val: T = init
        self.left: 'None | AvlgTreeNode[T]' = None
        self.right: 'None | AvlgTreeNode[T]' = None
        # height is max child edge count for any path; 0 if no children
        self.height: int = 0

    def __str__(self):
        return f'{self.__class__.__name__}({self.val})'

    def __repr__(self):
        return str(self)

    def __rotate_l(self) -> 'AvlgTreeNode[T]':
        """Perform a left rotation rooted at self. Will fail if self has no right child.

        Returns the new root, replacing self from this rotation (the former right node).
        """
        #    *A                  C
        #   B   C      =>     *A   G
        #  D E F G            B F H I
        #       H I          D E
        # C's left subtree moves across to A; A is now below C so its height goes first
        r = cast(AvlgTreeNode[T], self.right)
        self.right = r.left
        r.left = self
        self._update_node_height()
        r._update_node_height()
        logger.debug('left rotation at %s, new subtree root %s', self.val, r.val)
        return r

    def __rotate_r(self) -> 'AvlgTreeNode[T]':
        """Perform a right rotation rooted at self. Will fail if self has no left child.

        Returns the new root, replacing self from this rotation (the former left node).
        """
        #      *A              B
        #     B   C    =>    D  *A
        #    D E            F  E  C
        #   F
        l = cast(AvlgTreeNode[T], self.left)
        self.left = l.right
        l.right = self
        self._update_node_height()
        l._update_node_height()
        logger.debug('right rotation at %s, new subtree root %s', self.val, l.val)
        return l

    def __rotate_lr(self) -> 'AvlgTreeNode[T]':
        """Left rotate the left child, then right rotate self. Returns the new root, replacing self."""
        self.left = cast(AvlgTreeNode[T], self.left).__rotate_l()
        return self.__rotate_r()

    def __rotate_rl(self) -> 'AvlgTreeNode[T]':
        """Right rotate the right child, then left rotate self. Returns the new root, replacing self."""
        self.right = cast(AvlgTreeNode[T], self.right).__rotate_r()
        return self.__rotate_l()

    def __fix_insert_balance(self, inserted_val: T, max_imbalance: int) -> 'AvlgTreeNode[T]':
        """Fix the balance at this node after inserted_val was added below it. Caller needs to ensure accurate height
        of children.

        The rotation is picked by the direction the insertion went at the heavy child, not by the child's balance.
        Returns the new root at this node (self if no rotation was needed).
        """
        self._update_node_height()
        balance = self.get_balance()
        if balance > max_imbalance:
            if inserted_val < cast(AvlgTreeNode[T], self.left).val:
                # landed in the left child's left subtree
                return self.__rotate_r()
            return self.__rotate_lr()
        elif balance < -max_imbalance:
            # ties went right on the way down, so they count as the right child's right subtree here too
            if inserted_val < cast(AvlgTreeNode[T], self.right).val:
                return self.__rotate_rl()
            return self.__rotate_l()
        return self

    def __fix_delete_balance(self, max_imbalance: int) -> 'AvlgTreeNode[T]':
        """Fix the balance at this node after a deletion below it. Caller needs to ensure accurate height of children.

        Returns the new root at this node (self if no rotation was needed).
        """
        self._update_node_height()
        balance = self.get_balance()
        if balance > max_imbalance:
            # root is left heavy
            if cast(AvlgTreeNode[T], self.left).get_balance() >= 0:
                # left not right heavy
                return self.__rotate_r()
            return self.__rotate_lr()
        elif balance < -max_imbalance:
            # root is right heavy
            if cast(AvlgTreeNode[T], self.right).get_balance() <= 0:
                # right not left heavy
                return self.__rotate_l()
            return self.__rotate_rl()
        return self

    @staticmethod
    def __rebalance_path(path: 'list[tuple[AvlgTreeNode[T], bool]]',
                         fix: 'Callable[[AvlgTreeNode[T]], AvlgTreeNode[T]]') -> 'AvlgTreeNode[T]':
        """Walk back up a search path, deepest node first, running fix on each node and putting the subtree root it
        returns into the slot of the parent it came from. Each path entry is (node, went_left) where went_left says
        which child the walk took below that node. The path must not be empty.

        Returns the subtree root fix produced for the first node of the path.
        """
        while True:
            node, _ = path.pop()
            subtree_root = fix(node)
            if not path:
                return subtree_root
            parent, went_left = path[-1]
            if went_left:
                parent.left = subtree_root
            else:
                parent.right = subtree_root

    def _update_node_height(self):
        """Quickly update this node's height by looking at the heights of its children. Assumes child heights are valid.
        """
        children = self.get_children()
        if children:
            # the height of this node is 1 + the max height of its children
            self.height = max(n.height for n in children) + 1
        else:
            self.height = 0

    def _calculate_height(self) -> int:
        """Returns max depth of descendents of this node as the number of child edges. If this is a leaf, the depth is
        0. This walks the tree instead of reading the height field, so only use it for testing.
        """
        depth = 0
        next_level = list(self.get_children())
        while next_level:
            depth += 1
            next_level = [n for node in next_level for n in node.get_children()]
        return depth

    def _calculate_balance(self) -> int:
        """Calculate the balance of this node by walking both subtrees. Only use it for testing."""
        return (self.left._calculate_height() + 1 if self.left is not None else 0) - (self.right._calculate_height() + 1 if self.right is not None else 0)

    def _calculate_len(self) -> int:
        """Count the elements rooted at this node by visiting every one of them."""
        count = 0
        stack: 'list[AvlgTreeNode[T]]' = [self]
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(node.get_children())
        return count

    def _checked_height(self, max_imbalance: int) -> Optional[int]:
        """Recompute the height of this subtree from its structure, or return None if any node in it has a balance
        beyond max_imbalance in either direction.
        """
        # parents come before their children in a preorder, so walking it backwards sees every child first
        preorder: 'list[AvlgTreeNode[T]]' = []
        stack: 'list[AvlgTreeNode[T]]' = [self]
        while stack:
            node = stack.pop()
            preorder.append(node)
            stack.extend(node.get_children())
        heights: dict[int, int] = {}
        for node in reversed(preorder):
            left_height = heights.pop(id(node.left)) if node.left is not None else -1
            right_height = heights.pop(id(node.right)) if node.right is not None else -1
            if abs(left_height - right_height) > max_imbalance:
                return None
            heights[id(node)] = max(left_height, right_height) + 1
        return heights[id(self)]

    def get_balance(self) -> int:
        """Get the balance of this node based on the height of its children. The convention is that balance is left
        height - right height. This means a positive balance is left heavy, and a negative balance is right heavy.
        """
        return (self.left.height + 1 if self.left is not None else 0) - (self.right.height + 1 if self.right is not None else 0)

    def get_children(self) -> tuple['AvlgTreeNode[T]', ...]:
        """Get a tuple of this node's children. May have 0, 1, or 2 elements. If it has 2 children, the returned order
        will always be (left, right).
        """
        return tuple(i for i in [self.left, self.right] if i is not None)

    def get_min_node(self) -> 'AvlgTreeNode[T]':
        node = self
        while node.left is not None:
            node = node.left
        return node

    def get_max_node(self) -> 'AvlgTreeNode[T]':
        node = self
        while node.right is not None:
            node = node.right
        return node

    def search(self, val: T) -> 'AvlgTreeNode[T] | None':
        """Search for value among this node and its descendents. Return the found node or None."""
        node: 'AvlgTreeNode[T] | None' = self
        while node is not None:
            if val < node.val:
                node = node.left
            elif node.val < val:
                node = node.right
            else:
                return node
        return None

    def insert(self, to_insert_val: T, max_imbalance: int) -> 'AvlgTreeNode[T]':
        """Insert a value below this node, rebalancing every node on the way back up.

        Returns the new root of this subtree (self unless a rotation happened here). Equal values go right.
        """
        path: 'list[tuple[AvlgTreeNode[T], bool]]' = []
        node: 'AvlgTreeNode[T] | None' = self
        while node is not None:
            # lesser values are always in the left subtree, greater or equal values in the right subtree
            went_left = to_insert_val < node.val
            path.append((node, went_left))
            node = node.left if went_left else node.right
        parent, went_left = path[-1]
        if went_left:
            parent.left = self.__class__(to_insert_val)
        else:
            parent.right = self.__class__(to_insert_val)
        return AvlgTreeNode.__rebalance_path(path, lambda n: n.__fix_insert_balance(to_insert_val, max_imbalance))

    def delete(self, val: T, max_imbalance: int) -> tuple['AvlgTreeNode[T] | None', Optional[T]]:
        """Delete a value at or below this node, rebalancing every node on the way back up.

        returns (new_root, removed), where new_root is the new root of this subtree (None if it is now empty) and
        removed is the value taken out of the tree, or None if no equal value was present.
        """
        path: 'list[tuple[AvlgTreeNode[T], bool]]' = []
        node: 'AvlgTreeNode[T] | None' = self
        while node is not None and (val < node.val or node.val < val):
            went_left = val < node.val
            path.append((node, went_left))
            node = node.left if went_left else node.right
        if node is None:
            # nothing changed, so nothing to rebalance
            return (self, None)
        removed = node.val
        if node.left is not None and node.right is not None:
            # two children: take the successor's value and unlink the successor node instead
            # the successor has no left child, so it is spliced out like any other node with at most one child
            path.append((node, False))
            successor = node.right
            while successor.left is not None:
                path.append((successor, True))
                successor = successor.left
            node.val = successor.val
            node = successor
        # the child (if any) moves up and already has an accurate height and balance
        child = node.left if node.left is not None else node.right
        if not path:
            return (child, removed)
        parent, went_left = path[-1]
        if went_left:
            parent.left = child
        else:
            parent.right = child
        return (AvlgTreeNode.__rebalance_path(path, lambda n: n.__fix_delete_balance(max_imbalance)), removed)

    def is_bst(self) -> bool:
        """Check that every left child is strictly less and every right child is not less than its parent."""
        stack: 'list[AvlgTreeNode[T]]' = [self]
        while stack:
            node = stack.pop()
            if node.left is not None:
                if not node.left.val < node.val:
                    return False
                stack.append(node.left)
            if node.right is not None:
                if node.right.val < node.val:
                    return False
                stack.append(node.right)
        return True


class AvlgTree(Generic[T]):
    """AVL-G tree: a binary search tree where the heights of the two subtrees of any node differ by at most
    max_imbalance. With max_imbalance of 1 this is a classic avl tree; larger values trade a taller tree for fewer
    rotations. Equal values are allowed and are stored to the right, but lookups only ever find one of them.
    """
    __slots__ = ('_root', '_max_imbalance', '_count')

    def __init__(self, max_imbalance: int):
        """Initialize an empty tree allowing subtree heights to differ by up to max_imbalance (at least 1)."""
        if isinstance(max_imbalance, bool) or not isinstance(max_imbalance, int):
            raise TypeError(f'max_imbalance must be an int, not {type(max_imbalance).__name__}')
        if max_imbalance < 1:
            raise InvalidBalanceError(f'Max imbalance must be at least 1, got {max_imbalance}')
        self._max_imbalance = max_imbalance
        self._root: 'AvlgTreeNode[T] | None' = None
        self._count = 0
        logger.debug('created %s with max imbalance %d', self.__class__.__name__, max_imbalance)

    def __len__(self):
        """The number of values inserted and not yet deleted, duplicates included. Constant time."""
        return self._count

    def __contains__(self, x: T):
        return self._root is not None and self._root.search(x) is not None

    def __str__(self):
        return f'{self.__class__.__name__}(max_imbalance={self._max_imbalance}, count={self._count})'

    def __repr__(self):
        return str(self)

    @property
    def max_imbalance(self) -> int:
        return self._max_imbalance

    def get_count(self) -> int:
        return self._count

    def get_height(self) -> int:
        """Longest root to leaf path as a number of edges; 0 for a single node and -1 for an empty tree."""
        return self._root.height if self._root is not None else -1

    def is_empty(self) -> bool:
        return self._root is None

    def get_root(self) -> T:
        """Return the value stored at the root."""
        return self.__require_root().val

    def min(self) -> T:
        return self.__require_root().get_min_node().val

    def max(self) -> T:
        return self.__require_root().get_max_node().val

    def clear(self):
        """Removes all elements from the tree."""
        self._root = None
        self._count = 0
        logger.debug('cleared %s', self)

    def insert(self, val: T):
        """Insert a value into the tree. Values equal to one already present are still inserted."""
        if val is None:
            raise ValueError('Can\'t insert None into the tree')
        if self._root is None:
            self._root = AvlgTreeNode(val)
        else:
            self._root = self._root.insert(val, self._max_imbalance)
        self._count += 1

    def delete(self, val: T) -> Optional[T]:
        """Delete a value from the tree. Return the removed value, or None if it was not present."""
        root = self.__require_root()
        if self._count == 1:
            # only the root is left, so either it goes and the tree is empty or nothing happens
            if val < root.val or root.val < val:
                return None
            self.clear()
            return root.val
        self._root, removed = root.delete(val, self._max_imbalance)
        if removed is not None:
            self._count -= 1
        return removed

    def search(self, val: T) -> Optional[T]:
        """Return the stored value equal to val, or None if there is none."""
        node = self.__require_root().search(val)
        return node.val if node is not None else None

    def is_bst(self) -> bool:
        """Check the binary search tree ordering at every node. An empty tree is a valid bst."""
        return self._root is None or self._root.is_bst()

    def is_avlg_balanced(self) -> bool:
        """Check that no node has a balance beyond max_imbalance in either direction. Heights are recalculated from the
        tree structure, so this also holds up when the stored heights are wrong.
        """
        return self._root is None or self._root._checked_height(self._max_imbalance) is not None

    def __require_root(self) -> AvlgTreeNode[T]:
        if self._root is None:
            raise EmptyTreeError('Tree is empty')
        return self._root
