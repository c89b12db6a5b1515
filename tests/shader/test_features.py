from glslcompose.errors import UnknownFeature
from glslcompose.shader.features import FeatureSet, as_feature_set
from pytest import raises


def test_feature_set_init():
    f1 = FeatureSet("DIFFUSE_TEXTURE", "TEXTURES")
    f2 = FeatureSet(["TEXTURES", "DIFFUSE_TEXTURE"])
    f3 = FeatureSet({"DIFFUSE_TEXTURE": True, "TEXTURES": True})
    f4 = FeatureSet(DIFFUSE_TEXTURE=True, TEXTURES=True, NORMAL=False)
    f5 = FeatureSet("DIFFUSE_TEXTURE", TEXTURES=True, TEXTURE_BINDING=0)

    for f in [f2, f3, f4, f5]:
        assert f == f1
        assert hash(f) == hash(f1)

    assert f1.flags == ("DIFFUSE_TEXTURE", "TEXTURES")


def test_feature_set_defaults():
    f = FeatureSet()
    assert f.flags == ()
    assert f["TEXTURE_BINDING"] == 0
    assert f.param("LOCATION_OFFSET") == 0
    assert dict(f) == {"TEXTURE_BINDING": 0, "LOCATION_OFFSET": 0}


def test_feature_set_contains_tests_flags():
    f = FeatureSet("NORMAL", TEXTURE_BINDING=2)
    assert "NORMAL" in f
    assert "TEXTURES" not in f
    # Parameters always have a value, but are not flags
    assert "TEXTURE_BINDING" not in f
    assert f.param("TEXTURE_BINDING") == 2


def test_feature_set_equality_is_by_content():
    assert FeatureSet("NORMAL") != FeatureSet()
    assert FeatureSet(TEXTURE_BINDING=1) != FeatureSet()
    assert FeatureSet(TEXTURE_BINDING=1) == FeatureSet(TEXTURE_BINDING=1)
    assert FeatureSet(NORMAL=False) == FeatureSet()

    cache = {FeatureSet("NORMAL", "TEXTURES"): 1}
    assert FeatureSet("TEXTURES", "NORMAL") in cache


def test_feature_set_is_immutable():
    f = FeatureSet("NORMAL")
    with raises(TypeError):
        f["TEXTURES"] = True
    with raises(TypeError):
        del f["NORMAL"]
    with raises(AttributeError):
        f.foo = 1


def test_feature_set_rejects_unknown_keys():
    with raises(UnknownFeature):
        FeatureSet("SHINY")
    with raises(UnknownFeature):
        FeatureSet(normal=True)
    with raises(UnknownFeature):
        FeatureSet({"BUMP_TEXTURE": True})
    # UnknownFeature is also a ValueError
    with raises(ValueError):
        FeatureSet("SHINY")


def test_feature_set_rejects_bad_values():
    with raises(TypeError):
        FeatureSet(NORMAL=1)
    with raises(TypeError):
        FeatureSet(NORMAL="yes")
    with raises(TypeError):
        FeatureSet(TEXTURE_BINDING=1.0)
    with raises(TypeError):
        FeatureSet(TEXTURE_BINDING=True)
    with raises(ValueError):
        FeatureSet(LOCATION_OFFSET=-1)


def test_feature_set_missing_requirements():
    assert FeatureSet().missing_requirements() == []
    assert FeatureSet("DIFFUSE_TEXTURE", "TEXTURES").missing_requirements() == []
    assert FeatureSet("SPECULAR_TEXTURE").missing_requirements() == [
        ("SPECULAR_TEXTURE", "TEXTURES")
    ]


def test_feature_set_with_features():
    f1 = FeatureSet("NORMAL")
    f2 = f1.with_features("TEXTURES", TEXTURE_BINDING=3)
    assert f1 == FeatureSet("NORMAL")
    assert f2 == FeatureSet("NORMAL", "TEXTURES", TEXTURE_BINDING=3)
    assert f2.with_features(NORMAL=False) == FeatureSet("TEXTURES", TEXTURE_BINDING=3)


def test_feature_set_repr():
    f = FeatureSet("TEXTURES", "NORMAL", LOCATION_OFFSET=2)
    assert repr(f) == "FeatureSet('TEXTURES', 'NORMAL', TEXTURE_BINDING=0, LOCATION_OFFSET=2)"


def test_as_feature_set():
    f = FeatureSet("NORMAL")
    assert as_feature_set(f) is f
    assert as_feature_set(None) == FeatureSet()
    assert as_feature_set({"NORMAL": True}) == f
    assert as_feature_set("NORMAL") == f
    assert as_feature_set(["NORMAL"]) == f
    assert as_feature_set({"NORMAL"}) == f
