"""
Tests du k-means entier à un niveau.
"""

import numpy as np
import pytest

from hikm.builder.clustering import IKMeans, nearest_centers, check_int_data, max_abs_value

SIX_POINTS = np.array([
    [0, 0],
    [1, 1],
    [2, 2],
    [10, 10],
    [11, 11],
    [12, 12],
], dtype=np.uint8)


def test_unknown_method():
    with pytest.raises(ValueError):
        IKMeans("spectral")


def test_check_int_data_rejects_floats_and_vectors():
    with pytest.raises(ValueError):
        check_int_data(np.zeros((3, 2), dtype=np.float32))
    with pytest.raises(ValueError):
        check_int_data(np.zeros(3, dtype=np.int32))


def test_nearest_centers_ties_go_to_lowest_label():
    centers = np.array([[0, 0], [2, 2]])
    labels = nearest_centers(np.array([[1, 1], [2, 1], [0, 1]]), centers)
    np.testing.assert_array_equal(labels, [0, 1, 0])
    assert labels.dtype == np.uint32


def test_init_rand_data_skips_duplicates():
    data = np.array([[1, 1], [1, 1], [5, 5], [9, 9]], dtype=np.uint8)
    model = IKMeans(random_state=3)

    model.init_rand_data(data, 3)

    assert model.get_k() == 3
    assert model.get_ndims() == 2
    assert {tuple(c) for c in model.get_centers()} == {(1, 1), (5, 5), (9, 9)}


def test_init_rand_data_with_fewer_distinct_points():
    data = np.array([[2, 2], [2, 2], [2, 2]], dtype=np.uint8)
    model = IKMeans(random_state=0)

    model.init_rand_data(data, 3)

    np.testing.assert_array_equal(model.get_centers(), [[2, 2]] * 3)


def test_init_rand_data_rejects_too_many_centers():
    model = IKMeans()
    with pytest.raises(ValueError):
        model.init_rand_data(SIX_POINTS, 7)


def test_train_requires_initialisation():
    with pytest.raises(ValueError):
        IKMeans().train(SIX_POINTS)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_lloyd_separates_groups(seed):
    model = IKMeans("lloyd", random_state=seed)
    model.init_rand_data(SIX_POINTS, 2)
    n_iters = model.train(SIX_POINTS)

    assert 1 <= n_iters <= model.get_max_niters()
    centers = sorted(map(tuple, model.get_centers()))
    assert centers == [(1, 1), (11, 11)]

    labels = model.push(SIX_POINTS)
    assert labels[0] == labels[1] == labels[2]
    assert labels[3] == labels[4] == labels[5]
    assert labels[0] != labels[3]


@pytest.mark.parametrize("method", ["elkan", "faiss"])
def test_other_methods_give_integer_centers(method):
    model = IKMeans(method, random_state=0)
    model.set_max_niters(20)
    model.init_rand_data(SIX_POINTS, 2)
    model.train(SIX_POINTS)

    assert np.issubdtype(model.get_centers().dtype, np.integer)
    labels = model.push(SIX_POINTS)
    assert len(set(labels[:3].tolist())) == 1
    assert len(set(labels[3:].tolist())) == 1
    assert labels[0] != labels[3]


def test_push_one_matches_push():
    model = IKMeans(random_state=5)
    model.init_rand_data(SIX_POINTS, 3)
    model.train(SIX_POINTS)

    labels = model.push(SIX_POINTS)
    for point, label in zip(SIX_POINTS, labels):
        assert model.push_one(point) == label


def test_push_does_not_change_centers():
    model = IKMeans(random_state=5)
    model.init_rand_data(SIX_POINTS, 2)
    model.train(SIX_POINTS)
    centers = model.get_centers().copy()

    model.push(SIX_POINTS)
    model.push_one(SIX_POINTS[0])

    np.testing.assert_array_equal(model.get_centers(), centers)


def test_zero_points_is_tolerated():
    empty = np.zeros((0, 2), dtype=np.uint8)
    model = IKMeans()

    model.init_rand_data(empty, 0)

    assert model.train(empty) == 0
    assert model.get_k() == 0
    assert model.push(empty).shape == (0,)
    assert model.push_one(np.array([3, 4], dtype=np.uint8)) == 0


def test_zero_iterations_keeps_seeds():
    model = IKMeans(random_state=1)
    model.set_max_niters(0)
    model.init_rand_data(SIX_POINTS, 2)
    seeds = model.get_centers().copy()

    assert model.train(SIX_POINTS) == 0
    np.testing.assert_array_equal(model.get_centers(), seeds)


def test_delete_releases_centers():
    model = IKMeans()
    model.init_rand_data(SIX_POINTS, 2)
    model.delete()

    assert model.get_k() == 0
    with pytest.raises(ValueError):
        model.get_centers()


def test_check_int_data_rejects_overflowing_values():
    with pytest.raises(ValueError):
        check_int_data(np.array([[0], [1], [2 ** 62], [2 ** 62 + 1]], dtype=np.int64))
    with pytest.raises(ValueError):
        check_int_data(np.array([[0], [2 ** 63]], dtype=np.uint64))
    with pytest.raises(ValueError):
        check_int_data(np.array([[-2 ** 31, 0]], dtype=np.int64))

    # La borne diminue avec la dimension
    assert max_abs_value(1) > max_abs_value(128)
    with pytest.raises(ValueError):
        check_int_data(np.full((2, 128), max_abs_value(128) + 1, dtype=np.int64))


def test_large_values_within_bounds_train_exactly():
    data = np.array([[0], [1], [2 ** 29], [2 ** 29 + 1]], dtype=np.int64)
    assert check_int_data(data) is data

    model = IKMeans("lloyd", random_state=0)
    model.init_rand_data(data, 2)
    model.train(data)

    centers = np.sort(model.get_centers()[:, 0])
    np.testing.assert_array_equal(centers, [0, 2 ** 29])
    np.testing.assert_array_equal(np.sort(model.push(data)), [0, 0, 1, 1])
