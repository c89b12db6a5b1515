"""
The enums used in glslcompose. The enums are all available from the root
``glslcompose`` namespace.

.. currentmodule:: glslcompose.utils.enums

.. autosummary::
    :toctree: utils/enums

    StageRole
    Feature
    FeatureParam
    Tag
    VariantState

"""

from wgpu.utils import BaseEnum


__all__ = [
    "Feature",
    "FeatureParam",
    "StageRole",
    "Tag",
    "VariantState",
]


class Enum(BaseEnum):
    """Enum base class for glslcompose."""


class StageRole(Enum):
    """The StageRole enum specifies the pipeline stage a template is written for.

    The options are listed in pipeline order.
    """

    vertex = None  #: The vertex stage; reads vertex attributes, produces ``VS_OUT``.
    geometry = None  #: The optional geometry stage; consumes ``VS_OUT``, produces ``GS_OUT``.
    fragment = None  #: The fragment stage; consumes the last producer's interface.


class Feature(Enum):
    """The boolean capabilities a feature set can switch on.

    These are also the only valid condition tokens for ``//L: IF <cond>``.
    """

    DIFFUSE_TEXTURE = None  #: Sample the diffuse color from a texture instead of a uniform.
    SPECULAR_TEXTURE = None  #: Sample the specular strength from a texture instead of a uniform.
    EMISSIVE_TEXTURE = None  #: Sample the emissive color from a texture instead of a uniform.
    TEXTURES = None  #: The mesh provides texture coordinates.
    NORMAL = None  #: The mesh provides vertex normals that should be transformed and passed on.
    INSTANCED = None  #: Per-instance transform and color are provided as vertex attributes.


class FeatureParam(Enum):
    """The numeric parameters of a feature set."""

    TEXTURE_BINDING = None  #: The binding index of the first sampler.
    LOCATION_OFFSET = None  #: The attribute location of the first vertex attribute.


class Tag(Enum):
    """The closed vocabulary of tag placeholders (``//T: <TAG>``)."""

    LOCATIONS = None  #: Vertex attribute declarations.
    STD140 = None  #: The camera and world uniform blocks.
    UNIFORMS = None  #: Plain uniforms and samplers.
    IN = None  #: The incoming varying interface block.
    OUT = None  #: The outgoing varying interface block (or fragment output).
    TEXTURES = None  #: The texture coordinate pass-through.
    PASSTHROUGHS = None  #: Mandatory per-vertex assignments.
    LOGIC = None  #: The lighting expression of the fragment stage.


class VariantState(Enum):
    """The state of an entry in the variant cache."""

    absent = None  #: Not resolved (or invalidated).
    pending = None  #: A resolution is in flight.
    ready = None  #: Resolved and cached.
    failed = None  #: Resolution failed; the error is cached until an explicit retry.
