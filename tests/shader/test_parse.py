from glslcompose.errors import (
    MalformedDirective,
    ParseError,
    UnbalancedConditional,
    UnknownCondition,
    UnknownTag,
)
from glslcompose.shader.parse import (
    Conditional,
    Literal,
    Placeholder,
    StructuredDocument,
    parse,
)
from pytest import raises


def test_parse_literal_only():
    doc = parse("#version 450 core\nvoid main() {}\n")
    assert isinstance(doc, StructuredDocument)
    assert doc.nodes == (Literal(["#version 450 core", "void main() {}"]),)
    assert not doc.processed

    assert parse("").nodes == ()


def test_parse_preprocessor_directives_are_literal():
    text = "#version 450 core\n#ifdef FOO\nfloat x;\n#endif\n// a comment\n"
    doc = parse(text)
    assert len(doc.nodes) == 1
    assert doc.nodes[0].lines == tuple(text.splitlines())


def test_parse_placeholders():
    doc = parse("#version 450 core\n//T: UNIFORMS\nvoid main() {\n    //T: LOGIC\n}")
    assert doc.nodes == (
        Literal(["#version 450 core"]),
        Placeholder("UNIFORMS"),
        Literal(["void main() {"]),
        Placeholder("LOGIC", "    "),
        Literal(["}"]),
    )
    # Line numbers are 1-based
    assert doc.nodes[1].lineno == 2
    assert doc.nodes[3].lineno == 4
    assert doc.tags == {"UNIFORMS", "LOGIC"}


def test_parse_placeholder_whitespace():
    # Whitespace between the prefix and the tag is optional
    assert parse("//T:IN").nodes == (Placeholder("IN"),)
    assert parse("//T:   IN   ").nodes == (Placeholder("IN"),)
    assert parse("\t//T: IN").nodes == (Placeholder("IN", "\t"),)


def test_parse_conditionals():
    doc = parse(
        """a
//L: IF NORMAL
b
//L: IF TEXTURES
c
//T: TEXTURES
//L: ENDIF
d
//L: ENDIF
e"""
    )
    assert doc.nodes == (
        Literal(["a"]),
        Conditional(
            "NORMAL",
            [
                Literal(["b"]),
                Conditional("TEXTURES", [Literal(["c"]), Placeholder("TEXTURES")]),
                Literal(["d"]),
            ],
        ),
        Literal(["e"]),
    )
    assert doc.nodes[1].lineno == 2
    assert doc.nodes[1].children[1].lineno == 4
    assert doc.conditions == {"NORMAL", "TEXTURES"}
    assert doc.tags == {"TEXTURES"}


def test_parse_deep_nesting():
    flags = ["NORMAL", "TEXTURES", "DIFFUSE_TEXTURE", "INSTANCED"] * 10
    text = "\n".join(f"//L: IF {flag}" for flag in flags)
    text += "\nx\n" + "\n".join("//L: ENDIF" for _ in flags)
    doc = parse(text)

    node = doc.nodes[0]
    for flag in flags:
        assert node.condition == flag
        node = node.children[0]
    assert node == Literal(["x"])


def test_parse_processed_marker():
    doc = parse("#version 450 core\n//processed\nvoid main() {}")
    assert doc.processed
    assert doc.nodes == (Literal(["#version 450 core", "void main() {}"]),)

    # Only a line that is exactly the marker
    doc = parse("// processed by hand")
    assert not doc.processed


def test_parse_unknown_tag():
    with raises(UnknownTag) as err:
        parse("#version 450 core\n//T: UNIFORMS\n//T: FOO\n")
    assert err.value.tag == "FOO"
    assert err.value.lineno == 3
    assert "FOO" in str(err.value)
    assert isinstance(err.value, ParseError)

    # Tags are case sensitive
    with raises(UnknownTag):
        parse("//T: uniforms")


def test_parse_unknown_condition():
    with raises(UnknownCondition) as err:
        parse("//L: IF SHINY\n//L: ENDIF")
    assert err.value.condition == "SHINY"
    assert err.value.lineno == 1

    # Numeric parameters are not conditions
    with raises(UnknownCondition):
        parse("//L: IF TEXTURE_BINDING\n//L: ENDIF")


def test_parse_unbalanced():
    with raises(UnbalancedConditional) as err:
        parse("a\n//L: ENDIF\n")
    assert err.value.lineno == 2

    with raises(UnbalancedConditional) as err:
        parse("//L: IF NORMAL\n//L: IF TEXTURES\n//L: ENDIF\nb")
    assert err.value.lineno == 1


def test_parse_malformed():
    cases = [
        "//T:",
        "//T: IN OUT",
        "//L:",
        "//L: IF",
        "//L: IF NORMAL TEXTURES",
        "//L: IF NORMAL AND TEXTURES",
        "//L: ELSE",
        "//L: IF NORMAL\n//L: ENDIF NORMAL",
    ]
    for text in cases:
        with raises(MalformedDirective):
            parse(text)


def test_parse_requires_str():
    with raises(TypeError):
        parse(b"//T: IN")


def test_parse_is_deterministic():
    text = "a\n//L: IF NORMAL\n    //T: PASSTHROUGHS\n//L: ENDIF\n"
    assert parse(text) == parse(text)
    assert hash(parse(text)) == hash(parse(text))
