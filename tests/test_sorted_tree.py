import random

import pytest

from meshdecimate.sorted_tree import RedBlackSortedTree


def keys_in_order(tree):
    return [key for _, key in tree]


def test_empty_tree():
    tree = RedBlackSortedTree()
    assert len(tree) == 0
    assert tree.is_empty()
    assert tree.first() is None
    assert tree.next() is None
    assert list(tree) == []
    assert tree.is_valid()


def test_insert_keeps_order_and_balance():
    tree = RedBlackSortedTree()
    for i in range(100):
        tree.insert(f"h{i}", float(i))
        assert tree.is_valid()
    assert tree.size() == 100
    assert keys_in_order(tree) == [float(i) for i in range(100)]


def test_random_insert_remove_update():
    rng = random.Random(1)
    tree = RedBlackSortedTree()
    reference = {}
    for step in range(2000):
        action = rng.random()
        handle = rng.randrange(200)
        if action < 0.5:
            key = rng.uniform(-10.0, 10.0)
            tree.update(handle, key)
            reference[handle] = key
        elif handle in reference:
            assert tree.remove(handle) == reference.pop(handle)
        if step % 50 == 0:
            assert tree.is_valid()
    assert tree.is_valid()
    assert len(tree) == len(reference)
    assert keys_in_order(tree) == sorted(reference.values())
    for handle, key in reference.items():
        assert handle in tree
        assert tree.contains(handle)
        assert tree.get_key(handle) == key


def test_remove_everything():
    tree = RedBlackSortedTree()
    handles = list(range(64))
    for h in handles:
        tree.insert(h, float(h % 7))
    random.Random(3).shuffle(handles)
    for h in handles:
        tree.remove(h)
        assert tree.is_valid()
    assert tree.is_empty()


def test_equal_keys_keep_insertion_order():
    tree = RedBlackSortedTree()
    for name in "abcdef":
        tree.insert(name, 1.0)
    tree.insert("z", 0.5)
    assert [h for h, _ in tree] == ["z", "a", "b", "c", "d", "e", "f"]


def test_cursor_walks_in_ascending_order():
    tree = RedBlackSortedTree()
    for h, key in [("c", 3.0), ("a", 1.0), ("b", 2.0)]:
        tree.insert(h, key)
    assert tree.first() == "a"
    assert tree.next() == "b"
    assert tree.next() == "c"
    assert tree.next() is None
    assert tree.next() is None


def test_cursor_skip_without_removal():
    tree = RedBlackSortedTree()
    for i in range(5):
        tree.insert(i, float(i))
    handle = tree.first()
    while handle is not None and handle < 3:
        handle = tree.next()
    assert handle == 3
    assert len(tree) == 5


def test_duplicate_insert_raises():
    tree = RedBlackSortedTree()
    tree.insert("x", 1.0)
    with pytest.raises(KeyError):
        tree.insert("x", 2.0)


def test_remove_missing_raises():
    tree = RedBlackSortedTree()
    with pytest.raises(KeyError):
        tree.remove("missing")
    assert tree.discard("missing") is None


def test_update_moves_entry():
    tree = RedBlackSortedTree()
    tree.insert("a", 1.0)
    tree.insert("b", 2.0)
    tree.update("a", 3.0)
    assert [h for h, _ in tree] == ["b", "a"]
    assert tree.get_key("a") == 3.0


def test_clear():
    tree = RedBlackSortedTree()
    for i in range(10):
        tree.insert(i, float(i))
    tree.clear()
    assert len(tree) == 0
    assert tree.first() is None
    assert tree.is_valid()
