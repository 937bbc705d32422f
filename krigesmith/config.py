"""YAML configuration for geostatistical workflows.

A config file only needs to override what differs from DEFAULT_CONFIG,
except for the variogram initial guess which has no default and must always
be given.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from krigesmith.primitives.variogram import SEMIVARIANCE_ESTIMATORS, VARIOGRAM_MODELS
from krigesmith.primitives.variogram_fit import WLS_WEIGHTING, InitialGuess
from krigesmith.utils.errors import ParameterError, raise_parameter_error

Number = (int, float)

DEFAULT_CONFIG: Dict[str, Any] = {
    "variogram": {
        "model_type": "exponential",
        "n_lags": 15,
        "max_lag": None,
        "estimator": "matheron",
    },
    "fitting": {
        "method": "wls",
        "weighting": "cressie",
        "fix_nugget": False,
        "likelihood": "ml",
        "initial": {"nugget": None, "partial_sill": None, "range": None},
    },
    "trend": {"covariates": []},
    "kriging": {"condition_max": 1.0e12, "n_jobs": None},
}

SCHEMA: Dict[str, Any] = {
    "variogram": {
        "model_type": (str,),
        "n_lags": (int,),
        "max_lag": Number + (type(None),),
        "estimator": (str,),
    },
    "fitting": {
        "method": (str,),
        "weighting": (str,),
        "fix_nugget": (bool,),
        "likelihood": (str,),
        "initial": {
            "nugget": Number + (type(None),),
            "partial_sill": Number + (type(None),),
            "range": Number + (type(None),),
        },
    },
    "trend": {"covariates": [str]},
    "kriging": {"condition_max": Number, "n_jobs": (int, type(None))},
}

CHOICES: Dict[str, tuple[str, ...]] = {
    "variogram.model_type": tuple(VARIOGRAM_MODELS),
    "variogram.estimator": tuple(SEMIVARIANCE_ESTIMATORS),
    "fitting.method": ("wls", "mle"),
    "fitting.weighting": tuple(WLS_WEIGHTING),
    "fitting.likelihood": ("ml", "reml"),
}


def _deep_merge(defaults: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = deepcopy(dict(defaults))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validate_schema(cfg: Mapping[str, Any], schema: Mapping[str, Any], prefix: str = "") -> None:
    for key in cfg:
        if key not in schema:
            raise ParameterError(f"Unknown config key '{prefix}{key}'")

    for key, expected in schema.items():
        if key not in cfg:
            continue
        value = cfg[key]
        path = f"{prefix}{key}"
        if isinstance(expected, Mapping):
            if not isinstance(value, Mapping):
                raise ParameterError(
                    f"Config key '{path}' must be a mapping, got {type(value).__name__}"
                )
            _validate_schema(value, expected, prefix=f"{path}.")
            continue

        if isinstance(expected, list):
            if not isinstance(value, list):
                raise ParameterError(
                    f"Config key '{path}' must be a list, got {type(value).__name__}"
                )
            for idx, item in enumerate(value):
                if not isinstance(item, expected[0]):
                    raise ParameterError(
                        f"Config key '{path}[{idx}]' must be {expected[0]}, "
                        f"got {type(item).__name__}"
                    )
            continue

        # bool is an int subclass; reject it where a number is expected
        if isinstance(value, bool) and bool not in expected:
            raise ParameterError(f"Config key '{path}' must be {expected}, got bool")
        if not isinstance(value, expected):
            raise ParameterError(
                f"Config key '{path}' must be {expected}, got {type(value).__name__}"
            )


def _validate_choices(cfg: Mapping[str, Any]) -> None:
    for path, allowed in CHOICES.items():
        section, key = path.split(".")
        value = cfg[section][key]
        if value not in allowed:
            raise_parameter_error(path, value, valid_values=list(allowed))


def validate_config(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge overrides onto DEFAULT_CONFIG and validate the result.

    Raises:
        ParameterError: On unknown keys, wrong types, invalid choices or a
            missing initial guess.
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ParameterError("Config must be a mapping (dictionary).")

    cfg = _deep_merge(DEFAULT_CONFIG, data)
    _validate_schema(cfg, SCHEMA)
    _validate_choices(cfg)

    initial = cfg["fitting"]["initial"]
    missing = [key for key, value in initial.items() if value is None]
    if missing:
        raise ParameterError(
            f"fitting.initial is missing {missing}",
            suggestion="Initial guesses have no default; set nugget, partial_sill and range.",
        )
    return cfg


def load_config(path: str | Path) -> Dict[str, Any]:
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    data = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    return validate_config(data)


def save_config(config: Mapping[str, Any], path: str | Path) -> None:
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(yaml.safe_dump(dict(config), sort_keys=False), encoding="utf-8")


@dataclass(frozen=True)
class KrigingConfig:
    """Typed view of a validated configuration."""

    model_type: str
    n_lags: int
    max_lag: Optional[float]
    estimator: str
    method: str
    weighting: str
    fix_nugget: bool
    likelihood: str
    initial: InitialGuess
    covariates: tuple[str, ...]
    condition_max: float
    n_jobs: Optional[int]

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "KrigingConfig":
        cfg = validate_config(data)
        variogram, fitting = cfg["variogram"], cfg["fitting"]
        initial = fitting["initial"]
        return cls(
            model_type=variogram["model_type"],
            n_lags=variogram["n_lags"],
            max_lag=None if variogram["max_lag"] is None else float(variogram["max_lag"]),
            estimator=variogram["estimator"],
            method=fitting["method"],
            weighting=fitting["weighting"],
            fix_nugget=fitting["fix_nugget"],
            likelihood=fitting["likelihood"],
            initial=InitialGuess(
                nugget=initial["nugget"],
                partial_sill=initial["partial_sill"],
                range_param=initial["range"],
            ),
            covariates=tuple(cfg["trend"]["covariates"]),
            condition_max=float(cfg["kriging"]["condition_max"]),
            n_jobs=cfg["kriging"]["n_jobs"],
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "KrigingConfig":
        return cls.from_dict(load_config(path))
