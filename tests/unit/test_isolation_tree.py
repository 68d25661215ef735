"""
Unit tests for isolation trees.
"""

import math

import numpy as np

from outlier_scoring.isolation.tree import (
    EULER_GAMMA,
    IsolationTree,
    average_path_length,
    default_max_depth,
)


def _walk(node, Xs, visit):
    visit(node, Xs)
    if node.is_leaf:
        return
    mask_lower = Xs[:, node.idx_feature] < node.split_threshold
    _walk(node.children[0], Xs[mask_lower], visit)
    _walk(node.children[1], Xs[~mask_lower], visit)


def test_average_path_length():
    assert average_path_length(0) == 0.0
    assert average_path_length(1) == 0.0
    assert math.isclose(average_path_length(2), 2.0 * EULER_GAMMA - 1.0)

    expected = 2.0 * (math.log(255) + EULER_GAMMA) - 2.0 * 255 / 256
    assert math.isclose(average_path_length(256), expected)


def test_default_max_depth():
    assert default_max_depth(2) == 1
    assert default_max_depth(3) == 2
    assert default_max_depth(100) == 7
    assert default_max_depth(256) == 8


def test_thresholds_lie_strictly_inside_node_range():
    rng = np.random.default_rng(5)
    Xs = rng.normal(size=(128, 3))
    tree = IsolationTree().fit(Xs, np.random.default_rng(1), subsample_size=None, max_depth=20)

    def check(node, Xs_node):
        if node.is_leaf:
            assert node.size == Xs_node.shape[0]
            return
        column = Xs_node[:, node.idx_feature]
        assert column.min() < node.split_threshold < column.max()

    _walk(tree.root, Xs, check)


def test_leaves_account_for_the_subsample():
    rng = np.random.default_rng(9)
    Xs = rng.normal(size=(300, 2))
    tree = IsolationTree().fit(Xs, np.random.default_rng(2), subsample_size=64)

    leaves = tree.root.leaves()
    assert tree.n_samples_fit == 64
    assert tree.max_depth == 6
    assert sum(leaf.size for leaf in leaves) == 64
    assert all(leaf.depth <= tree.max_depth for leaf in leaves)


def test_identical_points_make_a_single_leaf():
    Xs = np.ones((10, 2))
    tree = IsolationTree().fit(Xs, np.random.default_rng(0), subsample_size=None)

    assert tree.root.is_leaf
    assert tree.root.size == 10
    np.testing.assert_allclose(tree.get_path_lengths(Xs[:1]), [average_path_length(10)])


def test_constant_feature_is_never_split():
    rng = np.random.default_rng(4)
    Xs = np.column_stack([np.full(50, 3.0), rng.normal(size=50)])
    tree = IsolationTree().fit(Xs, np.random.default_rng(0), subsample_size=None)

    features = []
    _walk(tree.root, Xs, lambda node, _: features.append(node.idx_feature) if not node.is_leaf else None)
    assert features
    assert set(features) == {1}


def test_same_seed_same_tree():
    rng = np.random.default_rng(8)
    Xs = rng.normal(size=(200, 4))

    first = IsolationTree().fit(Xs, np.random.default_rng(42), subsample_size=50)
    second = IsolationTree().fit(Xs, np.random.default_rng(42), subsample_size=50)

    np.testing.assert_array_equal(first.get_path_lengths(Xs), second.get_path_lengths(Xs))


def test_unseen_points_descend_the_tree():
    Xs = np.array([[0.0], [1.0], [2.0], [3.0]])
    tree = IsolationTree().fit(Xs, np.random.default_rng(0), subsample_size=None)

    queries = np.array([[-100.0], [100.0]])
    path_lengths = tree.get_path_lengths(queries)
    scores = tree.scores(queries)

    assert np.all(path_lengths >= 1.0)
    assert np.all((scores > 0.0) & (scores <= 1.0))
