import numpy as np
import pytest

from autorig.cli import (
    DEFAULT_SKELETON_OUT,
    DEFAULT_WEIGHT_OUT,
    UsageError,
    parse_animal_args,
    parse_attach_args,
    parse_demo_args,
    read_animal_skeleton,
    write_attachment,
    write_skeleton,
)


def test_attach_requires_filename():
    with pytest.raises(UsageError):
        parse_attach_args([])


def test_attach_defaults():
    opts = parse_attach_args(["model.obj"])
    assert opts.filename == "model.obj"
    assert opts.skel_out == "skeleton.out" == DEFAULT_SKELETON_OUT
    assert opts.weight_out == "attachment.out" == DEFAULT_WEIGHT_OUT
    assert opts.fit is False
    assert opts.stiffness == 1.0
    assert opts.skeleton == "human"
    assert not opts.skeleton_is_file


def test_attach_options():
    opts = parse_attach_args(
        ["m.obj", "-fit", "-stiffness", "2.5", "-skelOut", "s.txt", "-weightOut", "w.txt",
         "-scale", "0.5", "-mo", "-co", "-skel", "horse"]
    )
    assert opts.fit is True
    assert opts.stiffness == 2.5
    assert opts.skel_out == "s.txt"
    assert opts.weight_out == "w.txt"
    assert opts.skel_scale == 0.5
    assert opts.stop_at_mesh and opts.stop_after_circles
    assert opts.skeleton == "horse"


def test_skeleton_file_name():
    opts = parse_attach_args(["m.obj", "-skel", "my_skel.txt"])
    assert opts.skeleton == "my_skel.txt"
    assert opts.skeleton_is_file


def test_rotation_option():
    opts = parse_attach_args(["m.obj", "-rot", "0", "1", "0", "90"])
    rotated = opts.mesh_transform.rotate((1.0, 0.0, 0.0))
    assert np.allclose(rotated, (0.0, 0.0, -1.0))


def test_two_rotations_compose():
    opts = parse_attach_args(["m.obj", "-rot", "0", "1", "0", "90", "-rot", "0", "1", "0", "90"])
    assert np.allclose(opts.mesh_transform.rotate((1.0, 0.0, 0.0)), (-1.0, 0.0, 0.0))


def test_rotation_too_few_args():
    with pytest.raises(UsageError):
        parse_attach_args(["m.obj", "-rot", "0", "1", "0"])


def test_missing_scale_and_stiffness():
    with pytest.raises(UsageError):
        parse_attach_args(["m.obj", "-scale"])
    with pytest.raises(UsageError):
        parse_attach_args(["m.obj", "-stiffness"])


def test_unknown_option():
    with pytest.raises(UsageError) as info:
        parse_attach_args(["m.obj", "-bogus"])
    assert "attachWeights" in info.value.usage


def test_missing_skeleton_name_is_ignored():
    opts = parse_attach_args(["m.obj", "-skel"])
    assert opts.skeleton == "human"


def test_missing_outputs_are_ignored():
    opts = parse_attach_args(["m.obj", "-weightOut"])
    assert opts.weight_out == DEFAULT_WEIGHT_OUT


def test_demo_options():
    opts = parse_demo_args(["m.obj", "-nofit", "-motion", "walk.txt", "-skel", "quad"])
    assert opts.fit is False
    assert opts.motion == "walk.txt"
    assert opts.skeleton == "quad"


def test_demo_defaults_and_errors():
    opts = parse_demo_args(["m.obj", "-motion"])
    assert opts.fit is True
    assert opts.motion == ""
    with pytest.raises(UsageError):
        parse_demo_args(["m.obj", "-fit"])
    with pytest.raises(UsageError):
        parse_demo_args([])


def test_animal_args():
    opts = parse_animal_args(["dog.obj", "-skel", "dog.skel"])
    assert opts.filename == "dog.obj"
    assert opts.skeleton == "dog.skel"
    with pytest.raises(UsageError):
        parse_animal_args(["dog.obj", "-nofit"])


def test_read_animal_skeleton(tmp_path):
    path = tmp_path / "animal.txt"
    path.write_text("0 root 0.5 0.5 0.5 None\n1 spine 0.5 0.6 0.5 root\n\n2 head 0.5 0.7 0.6 spine\n")
    joints = read_animal_skeleton(path)
    assert [j.name for j in joints] == ["root", "spine", "head"]
    assert [j.parent for j in joints] == [None, "root", "spine"]
    assert [j.index for j in joints] == [0, 1, 2]
    assert np.allclose(joints[2].position, (0.5, 0.7, 0.6))


def test_read_animal_skeleton_unknown_parent(tmp_path):
    path = tmp_path / "animal.txt"
    path.write_text("0 root 0 0 0 None\n1 leg 0 1 0 nowhere\n")
    with pytest.raises(ValueError):
        read_animal_skeleton(path)


def test_write_skeleton(tmp_path):
    path = tmp_path / "skeleton.out"
    write_skeleton(path, [(0.0, 0.5, 1.0), (0.25, 0.0, 0.0)], [-1, 0])
    assert path.read_text() == "0 0 0.5 1 -1\n1 0.25 0 0 0\n"


def test_write_attachment_rounds(tmp_path):
    path = tmp_path / "attachment.out"
    write_attachment(path, [[0.123456, 0.876544], [1.0, 0.0]])
    lines = path.read_text().split("\n")
    assert lines[0] == "0.1235 0.8765 "
    assert lines[1] == "1 0 "
    assert lines[2] == ""
    values = [float(w) for w in lines[0].split()]
    assert all(abs(v * 10000 - round(v * 10000)) < 1e-9 for v in values)