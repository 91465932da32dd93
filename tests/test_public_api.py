from __future__ import annotations


def test_public_api_exports() -> None:
    import trifactor as tf

    assert hasattr(tf, "TriangulationFactor")
    assert hasattr(tf, "PinholeCamera")
    assert hasattr(tf, "GaussianNoise")
    assert hasattr(tf, "JacobianFactor")
    assert hasattr(tf, "CheiralityError")
    assert hasattr(tf, "factor_to_dict")
