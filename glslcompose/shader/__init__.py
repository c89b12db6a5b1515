"""
This subpackage turns GLSL templates into GLSL source for a specific set of
features. Basically this is where the glsl code is parsed, expanded and checked.


## A note about shader templates

A template is plain GLSL for one stage, with two kinds of marker lines. A tag
placeholder (``//T: UNIFORMS``) is replaced with generated declarations or
statements, and a conditional block (``//L: IF NORMAL`` ... ``//L: ENDIF``)
is kept only when its feature is set. Everything else, including ``#version``
and ``#ifdef``, is passed on to the driver untouched.

The flow for one stage is parse -> resolve -> check. Parsing happens once per
template, resolving once per feature set. The varying interface blocks that
connect the stages are generated from the shader family, and the resolved
sources of all stages are checked against each other before a variant is
accepted. A mismatch is reported with the offending field rather than as a
link error from the driver.

The lighting formula of the fragment stage (the LOGIC tag) is a small jinja2
snippet that belongs to the shader family.
"""

from .parse import parse, StructuredDocument, Literal, Placeholder, Conditional  # noqa
from .features import FeatureSet, as_feature_set  # noqa
from .layout import layout, UniformLayout, UniformBlockSpec  # noqa
from .interface import (  # noqa
    VaryingInterface,
    find_interface_blocks,
    check_interface,
    check_program,
)
from .families import ShaderFamily, register_family, get_family  # noqa
from .resolve import resolve  # noqa
