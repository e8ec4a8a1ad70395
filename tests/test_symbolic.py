import math

import numpy as np
import pytest

from armmotion.model.chain import JointType, KinematicChain
from armmotion.model.presets import PRESETS_DEG, arm_6r, planar_3r
from armmotion.model.symbolic import check_numeric_once, evaluate, symbolic_fk
from armmotion.model.transforms import Tx
from armmotion.solvers.end_effector import EndEffectorResolver


def test_planar_symbols_follow_the_chain():
    sym = symbolic_fk(planar_3r())
    assert [str(s) for s in sym.symbols] == ["q_joint1", "q_joint2", "q_joint3"]
    assert sym.joint_names == ("joint1", "joint2", "joint3")
    assert sym.link == "ee_link"


def test_planar_evaluation_matches_closed_form():
    sym = symbolic_fk(planar_3r())
    q = {"joint1": 0.3, "joint2": -0.4, "joint3": 1.1}
    T = evaluate(sym, q)
    a1, a2, a3 = 0.3, -0.1, 1.0
    expected = (math.cos(a1) + math.cos(a2) + math.cos(a3), math.sin(a1) + math.sin(a2) + math.sin(a3), 0.0)
    np.testing.assert_allclose(T[:3, 3], expected, atol=1e-12)


@pytest.mark.parametrize("preset", PRESETS_DEG[:2])
def test_symbolic_and_numeric_agree_on_arm(preset):
    chain = arm_6r()
    sym = symbolic_fk(chain)
    values = dict(zip(chain.joint_names(), np.deg2rad(preset)))
    result = check_numeric_once(chain, sym, values)
    assert result.err_inf < 1e-9
    assert result.delta.shape == (4, 4)
    assert chain.joint_values() == {name: 0.0 for name in chain.joint_names()}


def test_prismatic_joint_symbol():
    chain = KinematicChain()
    chain.add_joint("lift", "base_link", "carriage", JointType.PRISMATIC, axis=(0.0, 0.0, 1.0))
    chain.add_joint("arm", "carriage", "tcp", JointType.FIXED, origin=Tx(0.4))
    sym = symbolic_fk(chain)
    T = evaluate(sym, {"lift": 0.25})
    np.testing.assert_allclose(T[:3, 3], [0.4, 0.0, 0.25], atol=1e-12)


def test_default_link_matches_end_effector_resolver():
    chain = KinematicChain()
    chain.add_joint("shoulder", "base_link", "upper", JointType.REVOLUTE)
    chain.add_joint("wrist", "upper", "tool0", JointType.REVOLUTE, origin=Tx(0.5))
    chain.add_joint("mast", "base_link", "mast_link", JointType.REVOLUTE, axis=(1.0, 0.0, 0.0))
    chain.add_joint("boom", "mast_link", "boom_link", JointType.REVOLUTE, origin=Tx(0.2))
    chain.add_joint("cam", "boom_link", "camera", JointType.FIXED, origin=Tx(0.3))

    sym = symbolic_fk(chain)

    assert sym.link == chain.links[EndEffectorResolver().tip_link(chain)].name == "tool0"
    assert sym.joint_names == ("shoulder", "wrist")
