from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from trifactor.core.noise import GaussianNoise


SETTINGS_SCHEMA = "trifactor.settings.v0"


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class DegeneracyPolicy:
    """What a factor does when its landmark ends up behind the camera."""

    rethrow: bool = False
    log: bool = False


@dataclass(frozen=True)
class FactorSettings:
    policy: DegeneracyPolicy
    noise: GaussianNoise | None


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigurationError(msg)


def parse_factor_settings(data: dict[str, Any]) -> FactorSettings:
    from trifactor.core.noise import GaussianNoise

    schema_version = data.get("schema_version")
    _require(schema_version == SETTINGS_SCHEMA, f"schema_version must be {SETTINGS_SCHEMA}")

    degenerate = data.get("degenerate", {})
    _require(isinstance(degenerate, dict), "degenerate must be a mapping")
    rethrow = degenerate.get("rethrow", False)
    log = degenerate.get("log", False)
    _require(isinstance(rethrow, bool), "degenerate.rethrow must be a bool")
    _require(isinstance(log, bool), "degenerate.log must be a bool")

    noise_cfg = data.get("noise")
    noise = None
    if noise_cfg is not None:
        _require(isinstance(noise_cfg, dict), "noise must be a mapping")
        has_sigmas = "sigmas" in noise_cfg
        has_sigma = "sigma" in noise_cfg
        _require(has_sigmas != has_sigma, "noise needs exactly one of sigmas or sigma")
        if has_sigmas:
            sigmas = noise_cfg["sigmas"]
            _require(isinstance(sigmas, (list, tuple)) and len(sigmas) == 2, "noise.sigmas must be [sx,sy]")
            noise = GaussianNoise.from_sigmas([float(s) for s in sigmas])
        else:
            noise = GaussianNoise.isotropic(2, float(noise_cfg["sigma"]))

    return FactorSettings(policy=DegeneracyPolicy(rethrow=rethrow, log=log), noise=noise)
