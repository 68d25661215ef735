"""
Unit tests for the Distance Index.
"""

import numpy as np
import pytest

from outlier_scoring.core.exceptions import DimensionMismatch, InvalidConfiguration
from outlier_scoring.neighbors.index import DistanceIndex


def test_neighbors_on_a_line(line_points):
    table = DistanceIndex(line_points).build(2)

    assert table.indices.tolist() == [[1, 2], [0, 2], [1, 0], [2, 1]]
    assert table.distances.tolist() == [[1.0, 3.0], [1.0, 2.0], [2.0, 3.0], [3.0, 5.0]]
    assert table.k_distance.tolist() == [3.0, 2.0, 3.0, 5.0]


def test_ties_go_to_lower_index():
    points = [[0.0], [1.0], [-1.0]]
    table = DistanceIndex(points).build(1)

    # both 1 and 2 are at distance 1 from point 0
    assert table.indices[0, 0] == 1


def test_duplicates_are_neighbors_but_self_is_not():
    points = [[0.0, 0.0], [0.0, 0.0], [5.0, 5.0]]
    table = DistanceIndex(points).build(1)

    assert table.indices[:, 0].tolist() == [1, 0, 0]
    assert table.distances[0, 0] == 0.0
    assert table.distances[1, 0] == 0.0


@pytest.mark.parametrize("k", [0, -1, 4, 10])
def test_k_out_of_range(line_points, k):
    index = DistanceIndex(line_points)
    with pytest.raises(InvalidConfiguration):
        index.build(k)


def test_non_integer_k(line_points):
    with pytest.raises(InvalidConfiguration):
        DistanceIndex(line_points).build(1.5)


def test_empty_dataset():
    with pytest.raises(InvalidConfiguration):
        DistanceIndex([])


def test_ragged_dataset():
    with pytest.raises(DimensionMismatch):
        DistanceIndex([[0.0, 1.0], [2.0], [3.0, 4.0]])


def test_unknown_algorithm(line_points):
    with pytest.raises(InvalidConfiguration):
        DistanceIndex(line_points, algorithm="ball_tree")


def test_neighbors_requires_build(line_points):
    index = DistanceIndex(line_points)
    with pytest.raises(InvalidConfiguration):
        index.neighbors(2)

    index.build(2)
    assert index.is_built(2)
    assert index.neighbors(2) is index.build(2)
    with pytest.raises(InvalidConfiguration):
        index.neighbors(1)


def test_entries_are_ranked_triples(line_points):
    table = DistanceIndex(line_points).build(2)
    entries = list(table.entries())

    assert len(entries) == 4 * 2
    assert entries[0] == (0, 0, 1.0)
    assert entries[1] == (0, 1, 3.0)
    assert table.row(3) == [(2, 3.0), (1, 5.0)]


def test_table_is_read_only(line_points):
    table = DistanceIndex(line_points).build(1)
    with pytest.raises(ValueError):
        table.distances[0, 0] = 42.0


def test_dataset_is_copied(line_points):
    index = DistanceIndex(line_points)
    line_points[0, 0] = 100.0

    assert index.points[0, 0] == 0.0


def test_kd_tree_matches_brute_with_ties(integer_grid):
    brute = DistanceIndex(integer_grid, algorithm="brute").build(6)
    kd = DistanceIndex(integer_grid, algorithm="kd_tree").build(6)

    np.testing.assert_array_equal(kd.indices, brute.indices)
    np.testing.assert_array_equal(kd.distances, brute.distances)


def test_kd_tree_matches_brute_on_continuous_data():
    rng = np.random.default_rng(0)
    points = rng.normal(size=(150, 3))

    brute = DistanceIndex(points, algorithm="brute").build(10)
    kd = DistanceIndex(points, algorithm="kd_tree").build(10)

    np.testing.assert_array_equal(kd.indices, brute.indices)
    np.testing.assert_allclose(kd.distances, brute.distances)


def test_block_size_does_not_change_result(integer_grid):
    whole = DistanceIndex(integer_grid, block_size=1000).build(4)
    blocked = DistanceIndex(integer_grid, block_size=7).build(4)

    np.testing.assert_array_equal(blocked.indices, whole.indices)
    np.testing.assert_array_equal(blocked.distances, whole.distances)


@pytest.mark.slow
def test_parallel_matches_sequential(integer_grid):
    sequential = DistanceIndex(integer_grid, block_size=16, n_jobs=1).build(5)
    parallel = DistanceIndex(integer_grid, block_size=16, n_jobs=2).build(5)

    np.testing.assert_array_equal(parallel.indices, sequential.indices)
    np.testing.assert_array_equal(parallel.distances, sequential.distances)


def test_rejects_zero_jobs(line_points):
    with pytest.raises(InvalidConfiguration):
        DistanceIndex(line_points, n_jobs=0)
