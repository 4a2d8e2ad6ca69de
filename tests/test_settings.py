# Copyright (c) 2022-2026, The Isaac Lab Project Developers.
# All rights reserved.
#
# SPDX-License-Identifier: BSD-3-Clause

import pytest

from legged_mpc import MPCSettings
from legged_mpc.errors import ConfigurationError


def test_defaults_are_valid():
    MPCSettings().validate()


def test_from_dict_accepts_original_key_names():
    settings = MPCSettings.from_dict({"ddpIteration": 3, "TOL": 1e-6, "T": 50, "T_fly": 20, "T_contact": 5})
    assert settings.ddp_iteration == 3
    assert settings.tol == 1e-6
    assert settings.T == 50


def test_to_dict_round_trip():
    settings = MPCSettings(swing_apex=0.2, gait="trot")
    values = settings.to_dict()
    assert values["swing_apex"] == 0.2
    assert "_ALIASES" not in values
    assert MPCSettings.from_dict(values) == settings


def test_unknown_key():
    with pytest.raises(ConfigurationError):
        MPCSettings.from_dict({"horizon": 10})


@pytest.mark.parametrize(
    "overrides",
    [
        {"T": 0},
        {"dt": 0.0},
        {"tol": -1.0},
        {"max_iters": 0},
        {"num_threads": 0},
        {"swing_apex": -0.1},
        {"T_contact": 0},
        {"T_fly": 90, "T_contact": 20},
        {"support_force": 0.0},
        {"gait": "gallop"},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ConfigurationError):
        MPCSettings(**overrides).validate()
