"""
Shader families: the per-family knowledge the resolver needs besides the
templates themselves. A family is identified by the name of its templates,
e.g. the family "glslcompose.mesh" has the templates "glslcompose.mesh.vert"
and "glslcompose.mesh.frag".
"""

from ..utils.enums import Feature, StageRole
from .interface import VaryingInterface, producer_block_names


# The fields that every varying interface starts with
BASE_VARYINGS = (
    ("Normal", "vec3"),
    ("FragPos", "vec3"),
    ("Time", "float"),
)

TEXCOORD_VARYING = ("TexCoord", "vec2")


# A Blinn-Phong-like headlight, used by all builtin families. The resolver
# provides `slots` (name, type, textured, swizzle) and `normal`.
DEFAULT_LOGIC = """
$$ for slot in slots
$$ if slot.textured
{{ slot.type }} {{ slot.name }}_value = texture({{ slot.name }}, fs_in.TexCoord){{ slot.swizzle }};
$$ else
{{ slot.type }} {{ slot.name }}_value = {{ slot.name }};
$$ endif
$$ endfor
$$ if normal
vec3 normal = normalize(fs_in.Normal);
$$ else
vec3 normal = normalize(cross(dFdx(fs_in.FragPos), dFdy(fs_in.FragPos)));
$$ endif
vec3 light_dir = normalize(cameraPos - fs_in.FragPos);
float lambert = max(dot(normal, light_dir), 0.0);
float highlight = pow(lambert, specular_exponent) * specular_value;
vec3 color = ambient.rgb * diffuse_value.rgb + lambert * diffuse_value.rgb + vec3(highlight) + emissive_value.rgb;
FragColor = vec4(color, diffuse_value.a);
"""


class ShaderFamily:
    """Describes a family of templates.

    Parameters
    ----------
    name : str
        The template name prefix of this family.
    vertex_normals : bool
        Whether the meshes of this family have a normal attribute. Default True.
    required_features : tuple
        Feature flags that every variant of this family must have.
    extra_fields : dict | None
        Maps a producer StageRole to a list of (name, type) fields that are
        appended to the varying interface written by that stage.
    logic : str | None
        The jinja2 snippet for the LOGIC tag. Defaults to ``DEFAULT_LOGIC``.
    """

    def __init__(
        self,
        name,
        *,
        vertex_normals=True,
        required_features=(),
        extra_fields=None,
        logic=None,
    ):
        self.name = name
        self.vertex_normals = bool(vertex_normals)
        for flag in required_features:
            if flag not in Feature:
                raise ValueError(f"Unknown required feature {flag!r}")
        self.required_features = tuple(required_features)
        extra_fields = extra_fields or {}
        for role in extra_fields:
            if role not in producer_block_names:
                raise ValueError(f"Extra varyings can only be declared for producer stages, not {role!r}")
        self.extra_fields = {
            role: tuple((str(n), str(t)) for n, t in fields)
            for role, fields in extra_fields.items()
        }
        self.logic = DEFAULT_LOGIC if logic is None else logic

    def __repr__(self):
        return f"<ShaderFamily {self.name!r} at {hex(id(self))}>"

    def varying_fields(self, features, producer_role):
        """Get the fields of the interface that the given producer stage writes."""
        fields = list(BASE_VARYINGS)
        if Feature.TEXTURES in features:
            fields.append(TEXCOORD_VARYING)
        fields.extend(self.extra_fields.get(producer_role, ()))
        return fields

    def plan_interfaces(self, features, roles):
        """Get a dict mapping each producer role to the VaryingInterface it writes.

        The last stage (the fragment stage) produces no varyings.
        """
        roles = [role for role in StageRole if role in roles]
        interfaces = {}
        for role in roles[:-1]:
            block_name = producer_block_names[role]
            interfaces[role] = VaryingInterface(
                block_name, self.varying_fields(features, role)
            )
        return interfaces


_families = {}


def register_family(family, *, replace=False):
    """Register a ShaderFamily, so the composer uses it for templates with its name."""
    if not isinstance(family, ShaderFamily):
        raise TypeError(f"Expected a ShaderFamily, got {family.__class__.__name__}")
    if family.name in _families and not replace:
        raise RuntimeError(f"A shader family is already registered for {family.name!r}.")
    _families[family.name] = family
    return family


def get_family(name_or_family):
    """Get the registered family, or a default family for an unregistered name."""
    if isinstance(name_or_family, ShaderFamily):
        return name_or_family
    try:
        return _families[name_or_family]
    except KeyError:
        return ShaderFamily(name_or_family)


register_family(ShaderFamily("glslcompose.mesh"))

register_family(
    ShaderFamily(
        "glslcompose.instanced",
        vertex_normals=False,
        required_features=(Feature.INSTANCED,),
        extra_fields={StageRole.vertex: [("Color", "vec4")]},
    )
)

register_family(
    ShaderFamily(
        "glslcompose.bounds",
        extra_fields={StageRole.geometry: [("Bounds", "vec3")]},
    )
)
