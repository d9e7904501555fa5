import numpy as np
import pytest
from PIL import Image, ImageDraw

from topobot.data import registry
from topobot.data.loaders.glyphs import MARKER, build_fixture, render_glyph
from topobot.data.loaders.signs import DATASET_ENV, SignDirectory
from topobot.data.signs import SIGN_CLASSES, SignType, describe, recognize_image, sign_name
from topobot.data.vectorizer import VECTOR_LENGTH, image_to_vector, load_vector, vector_from_bytes


class _FixedNetwork:
    def __init__(self, answer):
        self.answer = answer
        self.inputs = []

    def predict(self, inputs):
        self.inputs.append(np.asarray(inputs))
        return self.answer


def test_blank_image_vectorises_to_zeros():
    vector = image_to_vector(Image.new("RGB", (50, 30), (255, 255, 255)))
    assert vector.shape == (VECTOR_LENGTH,)
    assert not vector.any()


def test_faint_pixels_fall_under_noise_floor():
    vector = image_to_vector(Image.new("RGB", (40, 40), (235, 235, 235)))
    assert not vector.any()


def test_transparent_background_counts_as_white():
    vector = image_to_vector(Image.new("RGBA", (40, 40), (0, 0, 0, 0)))
    assert not vector.any()


def test_dark_symbol_is_centred_with_margin():
    image = Image.new("RGB", (100, 100), (255, 255, 255))
    ImageDraw.Draw(image).rectangle((5, 70, 14, 79), fill="black")
    grid = image_to_vector(image).reshape(20, 20)
    assert grid[10, 10] > 0.9
    assert grid[0, 0] == 0.0 and grid[19, 19] == 0.0
    assert np.all((grid >= 0.0) & (grid <= 1.0))
    # symbol fills the middle third of the padded square
    assert not grid[:4].any() and not grid[-4:].any()


def test_vector_from_bytes_matches_file(tmp_path):
    image = render_glyph(SignType.FIR, np.random.default_rng(0))
    path = tmp_path / "fir.png"
    image.save(path)
    np.testing.assert_allclose(vector_from_bytes(path.read_bytes()), load_vector(path))


def test_build_fixture_writes_every_class(tmp_path):
    root = build_fixture(tmp_path / "glyphs", per_class=3, seed=1)
    assert (root / MARKER).exists()
    for sign in SIGN_CLASSES:
        assert len(list((root / sign.folder).glob("*.png"))) == 3


def test_fixture_is_deterministic(tmp_path):
    a = build_fixture(tmp_path / "a", per_class=2, seed=4)
    b = build_fixture(tmp_path / "b", per_class=2, seed=4)
    for sign in SIGN_CLASSES:
        for name in ("0000.png", "0001.png"):
            assert (a / sign.folder / name).read_bytes() == (b / sign.folder / name).read_bytes()


def test_sign_directory_splits_are_balanced(tmp_path):
    root = build_fixture(tmp_path / "glyphs", per_class=4, seed=0)
    directory = SignDirectory(root, seed=0)
    assert directory.counts() == {sign.folder: 4 for sign in SIGN_CLASSES}

    train = directory.train_set(16)
    test = directory.test_set(24)
    assert len(train) == 16
    assert len(test) == 24
    assert sorted(train.labels()) == sorted(list(range(8)) * 2)
    assert sorted(test.labels()) == sorted(list(range(8)) * 3)
    for sample in train:
        assert sample.inputs.shape == (400,)
        assert sample.target[sample.label] == 1.0


def test_sign_directory_caps_at_available_files(tmp_path):
    root = build_fixture(tmp_path / "glyphs", per_class=2, seed=0)
    assert len(SignDirectory(root, seed=0).train_set(1040)) == 16


def test_random_sample_carries_its_label(tmp_path):
    root = build_fixture(tmp_path / "glyphs", per_class=2, seed=0)
    sample, path = SignDirectory(root, seed=3).random_sample()
    assert SIGN_CLASSES[sample.label].folder == path.parent.name


def test_random_sample_on_empty_directory(tmp_path):
    assert SignDirectory(tmp_path, seed=0).random_sample() is None


def test_registry_builds_glyph_dataset(tmp_path):
    spec = registry.get_dataset("glyphs", cache_dir=tmp_path, per_class=2, seed=0)
    assert spec.d_in == 400
    assert spec.num_classes == 8
    assert spec.class_names[0] == "apiary"
    assert len(spec.split("train", 8)) == 8
    with pytest.raises(ValueError):
        spec.split("validation", 8)


def test_registry_unknown_dataset():
    with pytest.raises(KeyError):
        registry.get_dataset("mnist")


def test_signs_dataset_reads_env_root(tmp_path, monkeypatch):
    monkeypatch.delenv(DATASET_ENV, raising=False)
    with pytest.raises(FileNotFoundError):
        registry.get_dataset("signs")
    build_fixture(tmp_path / "signs", per_class=2, seed=0)
    monkeypatch.setenv(DATASET_ENV, str(tmp_path / "signs"))
    spec = registry.get_dataset("signs")
    assert spec.provenance["files"]["yurt"] == 2


def test_sign_names_and_undefined_mapping():
    assert sign_name(SignType.SMALL_HOUSE) == "small_house"
    assert sign_name(SignType.UNDEF) == "unknown"
    assert SignType.from_prediction(None) is SignType.UNDEF
    assert SignType.from_prediction(8) is SignType.UNDEF
    assert SignType.from_prediction(3) is SignType.CHURCH
    assert "church" in describe(SignType.CHURCH)
    assert "could not" in describe(SignType.UNDEF)


def test_recognize_image_uses_network(tmp_path):
    path = tmp_path / "tower.png"
    render_glyph(SignType.TOWER, np.random.default_rng(1)).save(path)
    network = _FixedNetwork(6)
    assert recognize_image(path, network) is SignType.TOWER
    assert network.inputs[0].shape == (400,)
    assert recognize_image(path, _FixedNetwork(None)) is SignType.UNDEF
