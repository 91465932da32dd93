import numpy as np
import pytest

from trifactor.core.linear import JacobianFactor, VerticalBlockMatrix
from trifactor.core.values import symbol


def test_vertical_block_matrix_views_share_storage():
    Ab = VerticalBlockMatrix([3], 2, append_one_dimension=True)
    assert Ab.dims == (3, 1)
    assert Ab.matrix.shape == (2, 4)
    Ab[0] = np.arange(6.0).reshape(2, 3)
    Ab[1] = np.array([7.0, 8.0])
    assert np.allclose(Ab.matrix, [[0, 1, 2, 7], [3, 4, 5, 8]])
    view = Ab[-1]
    view[0, 0] = -1.0
    assert Ab.matrix[0, 3] == -1.0
    with pytest.raises(IndexError):
        Ab[2]


def test_jacobian_factor_copies_and_evaluates():
    key = symbol("l", 1)
    Ab = VerticalBlockMatrix([3], 2, append_one_dimension=True)
    Ab[0] = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
    Ab[1] = np.array([1.0, 2.0])
    jf = JacobianFactor([key], Ab)

    Ab[1] = np.array([100.0, 100.0])
    assert np.allclose(jf.b, [1.0, 2.0])

    assert jf.keys == (key,)
    assert jf.rows == 2
    assert np.allclose(jf.error_vector({key: np.array([1.0, 1.0, 0.0])}), [0.0, 0.0])
    assert np.isclose(jf.error({key: np.zeros(3)}), 0.5 * 5.0)
    assert np.allclose(jf.information(), np.diag([1.0, 4.0, 0.0]))
    assert jf.augmented_jacobian().shape == (2, 4)
    with pytest.raises(KeyError):
        jf.get_a(symbol("l", 2))


def test_from_blocks_equals_direct_construction():
    key = symbol("x", 0)
    A = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    b = np.array([0.5, -0.5])
    Ab = VerticalBlockMatrix([3], 2, append_one_dimension=True)
    Ab[0] = A
    Ab[1] = b
    assert JacobianFactor.from_blocks([(key, A)], b).equals(JacobianFactor([key], Ab))
    assert not JacobianFactor.from_blocks([(key, A)], b + 1.0).equals(JacobianFactor([key], Ab))
    assert "x0" in JacobianFactor([key], Ab).describe()


def test_jacobian_factor_blocks_are_read_only():
    key = symbol("l", 1)
    jf = JacobianFactor.from_blocks([(key, np.eye(2, 3))], np.array([1.0, 2.0]))
    with pytest.raises(ValueError):
        jf.b[0] = 99.0
    with pytest.raises(ValueError):
        jf.get_a(key)[0, 0] = 99.0
    assert np.allclose(jf.b, [1.0, 2.0])
    aug = jf.augmented_jacobian()
    aug[0, 0] = 5.0
    assert jf.get_a(key)[0, 0] == 1.0
