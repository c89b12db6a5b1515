from glslcompose.utils import ReadOnlyDict
import pytest


def test_readonlydict_immutable():
    d = ReadOnlyDict(foo=3, bar=4, spam=5)

    with pytest.raises(TypeError):
        d["foo"] = 1
    with pytest.raises(TypeError):
        d["xxxxxxx"] = 1
    with pytest.raises(TypeError):
        del d["foo"]
    with pytest.raises(TypeError):
        d.update({})
    with pytest.raises(TypeError):
        d.clear()
    with pytest.raises(TypeError):
        d.pop("foo", None)
    with pytest.raises(TypeError):
        d.popitem()
    with pytest.raises(TypeError):
        d.setdefault("foo", 42)
    with pytest.raises(TypeError):
        d |= {"foo": 1}

    # Also no new attributes (using __slots__)
    with pytest.raises(AttributeError):
        d.foo = 3


def test_readonlydict_hash():
    d1 = ReadOnlyDict(foo=3, bar=4)
    d2 = ReadOnlyDict(bar=4, foo=3)
    d3 = ReadOnlyDict({"foo": 3}, bar=4)

    for d in [d2, d3]:
        assert d1 == d
        assert hash(d1) == hash(d)

    for d in [ReadOnlyDict(foo=2, bar=4), ReadOnlyDict(foo=3), ReadOnlyDict(foo=3, bar=4, x=1)]:
        assert d1 != d
        assert hash(d1) != hash(d)

    # Can be used as a dict key
    cache = {d1: "x"}
    assert cache[d2] == "x"


def test_readonlydict_values_must_be_hashable():
    with pytest.raises(TypeError):
        ReadOnlyDict(foo=[])
    with pytest.raises(TypeError):
        ReadOnlyDict(foo=dict(foo=3))

    # This works
    ReadOnlyDict(foo=ReadOnlyDict(foo=3))
