"""
Expand a structured document into GLSL source for one feature set and stage.

The resolver walks the nodes of a parsed template. Literal lines are emitted
as-is, conditional blocks are kept or dropped depending on the feature set,
and each tag placeholder is replaced with generated code. The generated code
depends on the stage role, the feature set, the shader family, and the
varying interfaces of the producer stages of the program.
"""

from ..errors import MisplacedTag, MissingFeatureBinding, ResolveError
from ..utils.enums import Feature, FeatureParam, StageRole
from .families import get_family
from .features import as_feature_set
from .interface import instance_names
from .layout import UniformBlockSpec
from .parse import Conditional, Literal, Placeholder
from .templating import apply_templating


__all__ = ["resolve", "MATRICES_BLOCK", "WORLD_BLOCK", "TEXTURE_SLOTS"]


# The camera block has an implicit binding, the world block is at binding 1
MATRICES_BLOCK = UniformBlockSpec(
    "Matrices",
    None,
    [("cameraPos", "vec3"), ("view", "mat4"), ("projection", "mat4")],
)
WORLD_BLOCK = UniformBlockSpec("World", 1, [("ambient", "vec4")])

# The optional texture slots of a material, in declaration order:
# (name, feature flag, plain uniform type, swizzle applied to a texture sample)
TEXTURE_SLOTS = (
    ("diffuse", Feature.DIFFUSE_TEXTURE, "vec4", ""),
    ("emissive", Feature.EMISSIVE_TEXTURE, "vec4", ""),
    ("specular", Feature.SPECULAR_TEXTURE, "float", ".r"),
)

# The number of attribute locations taken by the per-instance attributes
INSTANCE_ATTRIBUTES = (("aModel", "mat4", 4), ("aColor", "vec4", 1))

DEFAULT_FAMILY = "glslcompose.mesh"


def resolve(doc, features, role, family=None, interfaces=None, *, template_id=None):
    """Resolve a StructuredDocument into GLSL source.

    Parameters
    ----------
    doc : StructuredDocument
        The parsed template.
    features : FeatureSet | dict | iterable
        The features of the variant.
    role : StageRole
        The stage that the template is written for.
    family : str | ShaderFamily | None
        The shader family. Default "glslcompose.mesh".
    interfaces : dict | None
        Maps each producer StageRole of the program to the VaryingInterface it
        writes. If not given, these are planned from the family, for a program
        of vertex + fragment (or vertex + geometry + fragment if ``role`` is
        geometry).
    template_id : TemplateId | None
        Used in error messages.

    Returns the source as a str. Line endings are normalized: lines are joined
    with "\\n" and the source ends with a newline, also for CRLF templates and
    templates without a final newline. Raises a ResolveError subclass if a tag
    cannot be expanded.

    A document that was marked ``//processed`` is already generated output:
    its text is returned as-is, for any feature set and family.
    """
    if role not in StageRole:
        raise ValueError(f"Invalid stage role {role!r}")
    features = as_feature_set(features)
    if doc.processed:
        return _pass_through(doc, template_id)
    family = get_family(DEFAULT_FAMILY if family is None else family)

    for flag in family.required_features:
        if flag not in features:
            raise MissingFeatureBinding(
                f"The {family.name} family requires the {flag} feature",
                feature=flag,
                template_id=template_id,
            )

    if interfaces is None:
        roles = [StageRole.vertex, StageRole.fragment]
        if role == StageRole.geometry:
            roles.insert(1, StageRole.geometry)
        interfaces = family.plan_interfaces(features, roles)

    resolver = DocumentResolver(features, role, family, interfaces, template_id)
    lines = resolver.resolve_nodes(doc.nodes)
    return "\n".join(lines) + "\n"


def _pass_through(doc, template_id):
    lines = []
    for node in doc.nodes:
        if not isinstance(node, Literal):
            raise ResolveError(
                "A source marked as processed cannot contain tags or conditionals",
                template_id=template_id,
                lineno=node.lineno,
            )
        lines.extend(node.lines)
    return "\n".join(lines) + "\n"


class DocumentResolver:
    """Expands the nodes of one document. Create one per resolve call."""

    def __init__(self, features, role, family, interfaces, template_id=None):
        self.features = features
        self.role = role
        self.family = family
        self.interfaces = dict(interfaces)
        self.template_id = template_id
        # The number of enclosing NORMAL blocks, PASSTHROUGHS depends on it
        self._normal_depth = 0

    def resolve_nodes(self, nodes):
        lines = []
        for node in nodes:
            if isinstance(node, Literal):
                lines.extend(node.lines)
            elif isinstance(node, Conditional):
                if node.condition in self.features:
                    is_normal = node.condition == Feature.NORMAL
                    self._normal_depth += is_normal
                    try:
                        lines.extend(self.resolve_nodes(node.children))
                    finally:
                        self._normal_depth -= is_normal
            elif isinstance(node, Placeholder):
                expander = getattr(self, "expand_" + node.tag.lower())
                for line in expander(node):
                    lines.append(node.indent + line if line else line)
            else:
                raise TypeError(f"Unexpected node {node!r}")
        return lines

    # %% Helpers

    def _misplaced(self, node, msg):
        return MisplacedTag(
            msg,
            tag=node.tag,
            role=self.role,
            template_id=self.template_id,
            lineno=node.lineno,
        )

    def _interface(self, node, producer_role):
        try:
            return self.interfaces[producer_role]
        except KeyError:
            raise self._misplaced(
                node,
                f"{node.tag} needs the interface of the {producer_role} stage, "
                f"which is not part of this program",
            ) from None

    def _upstream_role(self):
        # The producer that the fragment stage reads from
        if StageRole.geometry in self.interfaces:
            return StageRole.geometry
        return StageRole.vertex

    def _slots(self, node):
        """Get the texture slots as dicts, checking the texture features."""
        missing = dict(self.features.missing_requirements())
        slots = []
        for name, flag, type, swizzle in TEXTURE_SLOTS:
            textured = flag in self.features
            if flag in missing:
                raise MissingFeatureBinding(
                    f"{flag} is set, but the {node.tag} tag needs {missing[flag]} "
                    f"to sample the {name} texture",
                    tag=node.tag,
                    feature=missing[flag],
                    template_id=self.template_id,
                    lineno=node.lineno,
                )
            slots.append(
                {"name": name, "type": type, "textured": textured, "swizzle": swizzle}
            )
        return slots

    # %% Tag expanders, each returns a list of lines

    def expand_locations(self, node):
        if self.role != StageRole.vertex:
            raise self._misplaced(node, "LOCATIONS can only be used in a vertex stage")

        per_vertex = [("aPos", "vec3")]
        if self.family.vertex_normals:
            per_vertex.append(("aNormal", "vec3"))
        per_vertex.append(("aTexCoord", "vec2"))

        # Locations are reserved for all per-vertex attributes, used or not
        location = self.features[FeatureParam.LOCATION_OFFSET]
        lines = []
        for name, type in per_vertex:
            if name != "aTexCoord" or Feature.TEXTURES in self.features:
                lines.append(f"layout (location = {location}) in {type} {name};")
            location += 1

        if Feature.INSTANCED in self.features:
            for name, type, nlocations in INSTANCE_ATTRIBUTES:
                lines.append(f"layout (location = {location}) in {type} {name};")
                location += nlocations
        return lines

    def expand_std140(self, node):
        return [
            *MATRICES_BLOCK.get_code().splitlines(),
            *WORLD_BLOCK.get_code().splitlines(),
        ]

    def expand_uniforms(self, node):
        if self.role == StageRole.vertex:
            lines = []
            if Feature.INSTANCED not in self.features:
                lines.append("uniform mat4 model;")
            lines.append("uniform float time;")
            return lines
        elif self.role == StageRole.fragment:
            binding = self.features[FeatureParam.TEXTURE_BINDING]
            lines = []
            for slot in self._slots(node):
                if slot["textured"]:
                    lines.append(
                        f"layout (binding = {binding}) uniform sampler2D {slot['name']};"
                    )
                    binding += 1
                else:
                    lines.append(f"uniform {slot['type']} {slot['name']};")
            return lines
        else:
            return []

    def expand_in(self, node):
        if self.role == StageRole.vertex:
            raise self._misplaced(node, "A vertex stage has no incoming interface block")
        elif self.role == StageRole.geometry:
            interface = self._interface(node, StageRole.vertex)
            instance_name = instance_names[(StageRole.geometry, "in")]
            return interface.get_code("in", instance_name, array=True).splitlines()
        else:
            interface = self._interface(node, self._upstream_role())
            instance_name = instance_names[(StageRole.fragment, "in")]
            return interface.get_code("in", instance_name).splitlines()

    def expand_out(self, node):
        if self.role == StageRole.fragment:
            return ["out vec4 FragColor;"]
        interface = self._interface(node, self.role)
        instance_name = instance_names[(self.role, "out")]
        return interface.get_code("out", instance_name).splitlines()

    def expand_textures(self, node):
        if Feature.TEXTURES not in self.features:
            return []
        elif self.role == StageRole.vertex:
            return ["vs_out.TexCoord = aTexCoord;"]
        elif self.role == StageRole.geometry:
            return ["gs_out.TexCoord = gs_in[i].TexCoord;"]
        else:
            return []

    def expand_passthroughs(self, node):
        if self.role == StageRole.fragment:
            raise self._misplaced(node, "PASSTHROUGHS can only be used in a vertex or geometry stage")

        if self._normal_depth:
            # Inside a NORMAL block: only the normal
            if self.role == StageRole.vertex:
                if not self.family.vertex_normals:
                    raise ResolveError(
                        f"The {self.family.name} family has no vertex normals to pass through",
                        template_id=self.template_id,
                        lineno=node.lineno,
                    )
                return ["vs_out.Normal = mat3(transpose(inverse(model))) * aNormal;"]
            return ["gs_out.Normal = gs_in[i].Normal;"]

        if self.role == StageRole.vertex:
            return [
                "vs_out.FragPos = vec3(model * vec4(aPos, 1.0));",
                "vs_out.Time = time;",
            ]
        return [
            "gs_out.FragPos = gs_in[i].FragPos;",
            "gs_out.Time = gs_in[i].Time;",
        ]

    def expand_logic(self, node):
        if self.role != StageRole.fragment:
            raise self._misplaced(node, "LOGIC can only be used in a fragment stage")
        normal = Feature.NORMAL in self.features and self.family.vertex_normals
        try:
            code = apply_templating(
                self.family.logic, slots=self._slots(node), normal=normal
            )
        except ResolveError as err:
            err.template_id = self.template_id
            err.lineno = node.lineno
            raise
        return [line.rstrip() for line in code.splitlines() if line.strip()]
