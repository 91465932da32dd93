import numpy as np
import pytest

from trifactor.config import ConfigurationError, parse_factor_settings


def test_parse_factor_settings_ok():
    s = parse_factor_settings(
        {
            "schema_version": "trifactor.settings.v0",
            "degenerate": {"rethrow": True, "log": False},
            "noise": {"sigmas": [1.0, 2.0]},
        }
    )
    assert s.policy.rethrow is True
    assert s.policy.log is False
    assert s.noise is not None
    assert np.allclose(s.noise.sigmas, [1.0, 2.0])


def test_parse_factor_settings_defaults():
    s = parse_factor_settings({"schema_version": "trifactor.settings.v0"})
    assert s.policy.rethrow is False and s.policy.log is False
    assert s.noise is None
    iso = parse_factor_settings({"schema_version": "trifactor.settings.v0", "noise": {"sigma": 0.5}})
    assert np.allclose(iso.noise.sigmas, [0.5, 0.5])


@pytest.mark.parametrize(
    "data",
    [
        {"schema_version": "other"},
        {"schema_version": "trifactor.settings.v0", "degenerate": {"rethrow": "yes"}},
        {"schema_version": "trifactor.settings.v0", "noise": {"sigmas": [1.0, 1.0, 1.0]}},
        {"schema_version": "trifactor.settings.v0", "noise": {"sigma": 1.0, "sigmas": [1.0, 1.0]}},
        {"schema_version": "trifactor.settings.v0", "noise": {"sigma": 0.0}},
    ],
)
def test_parse_factor_settings_rejects(data):
    with pytest.raises(ConfigurationError):
        parse_factor_settings(data)
