import numpy as np
import pytest

from silkcloth.types import (
    ClothConfig,
    Collision,
    CollisionConfig,
    CollisionType,
    GlobalConfig,
    MeshConfig,
    Result,
    SilkError,
    to_string,
)


@pytest.mark.parametrize(
    "result, name",
    [
        (Result.SUCCESS, "Success"),
        (Result.INVALID_CONFIG, "InvalidConfig"),
        (Result.TOO_MANY_BODY, "TooManyBody"),
        (Result.INVALID_HANDLE, "InvalidHandle"),
    ],
)
def test_to_string_named(result, name):
    assert to_string(result) == name


def test_to_string_unnamed_is_unknown():
    assert to_string(Result.NEED_INIT_SOLVER_FIRST) == "Unknown"


def test_to_string_over_all_results():
    names = [to_string(r) for r in Result]
    assert len(names) == 9
    assert names.count("Unknown") == 5
    assert set(names) == {"Success", "InvalidConfig", "TooManyBody", "InvalidHandle", "Unknown"}


def test_silk_error_carries_result():
    err = SilkError(Result.INVALID_HANDLE)
    assert err.result is Result.INVALID_HANDLE
    assert "INVALID_HANDLE" in str(err)


def test_collision_config_defaults():
    c = CollisionConfig()
    assert c.is_collision_on and c.is_self_collision_on
    assert c.group == 0
    assert c.damping == pytest.approx(0.3)
    assert c.friction == pytest.approx(0.3)


def test_cloth_config_defaults():
    c = ClothConfig()
    assert (c.elastic_stiffness, c.bending_stiffness, c.density) == (1.0, 1.0, 1.0)


def test_global_config_defaults():
    g = GlobalConfig()
    assert g.max_iteration == 5
    assert g.r == 30
    assert g.dt == pytest.approx(1.0 / 60.0)
    assert g.ccd_walkback == pytest.approx(0.8)
    assert g.toi_tolerance == pytest.approx(0.1)
    assert g.toi_refine_iteration == 5
    assert g.eps == pytest.approx(1e-6)


def test_mesh_config_reshapes_flat_input():
    verts = [0, 0, 0, 1, 0, 0, 0, 1, 0]
    m = MeshConfig(verts=verts, faces=[0, 1, 2])
    assert m.verts.shape == (3, 3)
    assert m.faces.shape == (1, 3)
    assert m.vert_num == 3 and m.face_num == 1
    np.testing.assert_array_equal(m.verts.reshape(-1), verts)


def test_mesh_config_rejects_partial_triples():
    with pytest.raises(ValueError):
        MeshConfig(verts=[0.0, 1.0], faces=[0, 1, 2])
    with pytest.raises(ValueError):
        MeshConfig(verts=[0.0, 1.0, 2.0], faces=[0, 1])


def test_collision_defaults_and_shapes():
    c = Collision(CollisionType.EDGE_EDGE, 0.5)
    np.testing.assert_array_equal(c.offset, [-1, -1, -1, -1])
    assert c.position.shape == (3, 4)
    assert c.toi == 0.5


def test_collision_rejects_bad_shapes():
    with pytest.raises(ValueError):
        Collision(CollisionType.POINT_TRIANGLE, 0.1, offset=[0, 1, 2])
    with pytest.raises(ValueError):
        Collision(CollisionType.POINT_TRIANGLE, 0.1, position=np.zeros((4, 3)))