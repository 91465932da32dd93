import numpy as np
import pytest

from trifactor.config import ConfigurationError
from trifactor.core.noise import GaussianNoise


def test_whiten_system_matches_inverse_sigma_scaling():
    rng = np.random.default_rng(1)
    A = rng.normal(size=(2, 3))
    b = rng.normal(size=(2,))
    noise = GaussianNoise.from_sigmas([0.5, 2.0])

    A_w, b_w = A.copy(), b.copy()
    out = noise.whiten_system(A_w, b_w)
    assert out[0] is A_w and out[1] is b_w

    scale = 1.0 / np.array([0.5, 2.0])
    assert np.allclose(A_w, scale[:, None] * A)
    assert np.allclose(b_w, scale * b)


def test_from_covariance_whitens_to_unit_covariance():
    cov = np.array([[4.0, 1.0], [1.0, 2.0]])
    noise = GaussianNoise.from_covariance(cov)
    R = noise.sqrt_information
    assert np.allclose(R.T @ R, np.linalg.inv(cov))
    assert np.allclose(noise.covariance, cov)
    assert np.allclose(noise.sigmas, np.sqrt(np.diag(cov)))
    v = np.array([1.0, -1.0])
    assert np.isclose(noise.distance(v), v @ np.linalg.inv(cov) @ v)
    assert np.allclose(noise.unwhiten(noise.whiten(v)), v)


def test_isotropic_and_unit():
    assert GaussianNoise.isotropic(2, 3.0).equals(GaussianNoise.from_sigmas([3.0, 3.0]))
    assert np.allclose(GaussianNoise.unit(2).whiten([1.0, 2.0]), [1.0, 2.0])
    assert not GaussianNoise.unit(2).equals(GaussianNoise.unit(3))


@pytest.mark.parametrize(
    "build",
    [
        lambda: GaussianNoise.from_sigmas([1.0, 0.0]),
        lambda: GaussianNoise.isotropic(2, -1.0),
        lambda: GaussianNoise.from_covariance(np.array([[1.0, 0.0], [0.0, -1.0]])),
        lambda: GaussianNoise(sqrt_information=np.ones((2, 3))),
        lambda: GaussianNoise(sqrt_information=np.zeros((2, 2))),
        lambda: GaussianNoise(sqrt_information=[[1.0, 0.0], [5.0, 1.0]]),
    ],
)
def test_invalid_models_are_rejected(build):
    with pytest.raises(ConfigurationError):
        build()
