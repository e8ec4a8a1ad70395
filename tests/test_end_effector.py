import math

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from armmotion.model.chain import JointType, KinematicChain
from armmotion.model.presets import planar_3r
from armmotion.model.transforms import Tx
from armmotion.solvers.end_effector import EndEffectorResolver, ToolOffset


def test_canonical_name_wins_over_deeper_leaf():
    chain = KinematicChain()
    chain.add_joint("j1", "base_link", "tool0", origin=Tx(0.5))
    chain.add_joint("j2", "base_link", "a")
    chain.add_joint("j3", "a", "b")
    chain.add_joint("j4", "b", "c")
    frame = EndEffectorResolver().resolve(chain)
    assert frame is not None
    assert frame.link == "tool0"


def test_deepest_leaf_when_no_canonical_name():
    chain = KinematicChain()
    chain.add_joint("j1", "base_link", "short")
    chain.add_joint("j2", "base_link", "a")
    chain.add_joint("j3", "a", "long", origin=Tx(1.0))
    frame = EndEffectorResolver().resolve(chain)
    assert frame.link == "long"
    np.testing.assert_allclose(frame.position, [1.0, 0.0, 0.0])


def test_depth_ties_go_to_first_link():
    chain = KinematicChain()
    chain.add_joint("j1", "base_link", "left")
    chain.add_joint("j2", "base_link", "right")
    assert EndEffectorResolver().resolve(chain).link == "left"


def test_none_chain_resolves_to_none():
    assert EndEffectorResolver().resolve(None) is None


def test_base_only_chain_reports_the_base():
    frame = EndEffectorResolver().resolve(KinematicChain())
    assert frame.link == "base_link"


def test_selection_is_recomputed_after_structure_changes():
    chain = KinematicChain()
    chain.add_joint("j1", "base_link", "a")
    resolver = EndEffectorResolver()
    assert resolver.resolve(chain).link == "a"
    chain.add_joint("j2", "a", "b")
    assert resolver.resolve(chain).link == "b"


def test_orientation_is_xyzw_quaternion():
    chain = planar_3r()
    chain.set_joint_values({"joint1": math.pi / 2})
    frame = EndEffectorResolver().resolve(chain)
    expected = Rotation.from_euler("z", math.pi / 2).as_quat()
    assert abs(float(np.dot(frame.orientation, expected))) == pytest.approx(1.0)
    np.testing.assert_allclose(frame.position, [0.0, 3.0, 0.0], atol=1e-12)


def test_tool_offset_is_applied_in_tip_frame():
    chain = planar_3r()
    chain.set_joint_values({"joint1": math.pi / 2})
    tool = ToolOffset(position=(0.5, 0.0, 0.0))
    frame = EndEffectorResolver().resolve(chain, tool)
    np.testing.assert_allclose(frame.position, [0.0, 3.5, 0.0], atol=1e-12)


def test_tool_scale_does_not_leak_into_orientation():
    chain = planar_3r()
    tool = ToolOffset(scale=(2.0, 2.0, 2.0))
    frame = EndEffectorResolver().resolve(chain, tool)
    np.testing.assert_allclose(np.abs(frame.orientation), [0.0, 0.0, 0.0, 1.0], atol=1e-12)


def test_tool_offset_mapping_round_trip():
    tool = ToolOffset.from_mapping({"position": [0.0, 0.0, 0.1], "rotation": [0.0, 0.0, 0.0, 2.0]})
    data = tool.to_dict()
    assert data["position"] == [0.0, 0.0, 0.1]
    assert data["rotation"] == [0.0, 0.0, 0.0, 1.0]
    assert data["scale"] == [1.0, 1.0, 1.0]


def test_fixed_only_chain_still_resolves():
    chain = KinematicChain()
    chain.add_joint("mount", "base_link", "flange", JointType.FIXED, origin=Tx(0.2))
    frame = EndEffectorResolver().resolve(chain)
    assert frame.link == "flange"
