"""
Varying interfaces and the checks that keep stages consistent.

The varying interface is the named block that a producer stage (vertex or
geometry) writes and its consumer (geometry or fragment) reads. In the
templates these blocks used to be kept in sync by hand. Here, the blocks in
the resolved sources are scanned and compared field by field before a
variant is accepted, so a mismatch shows up as an InterfaceMismatchError
rather than as a link error from the driver.
"""

import re

from ..errors import InterfaceMismatchError
from ..utils.enums import StageRole


# The block name written by each producer role
producer_block_names = {
    StageRole.vertex: "VS_OUT",
    StageRole.geometry: "GS_OUT",
}

# The instance names used for the blocks, per (role, direction)
instance_names = {
    (StageRole.vertex, "out"): "vs_out",
    (StageRole.geometry, "in"): "gs_in",
    (StageRole.geometry, "out"): "gs_out",
    (StageRole.fragment, "in"): "fs_in",
}


class VaryingInterface:
    """A named block with an ordered list of (name, type) fields."""

    __slots__ = ["block_name", "fields"]

    def __init__(self, block_name, fields):
        self.block_name = block_name
        self.fields = tuple((str(n), str(t)) for n, t in fields)

    def __eq__(self, other):
        return (
            isinstance(other, VaryingInterface)
            and self.block_name == other.block_name
            and self.fields == other.fields
        )

    def __hash__(self):
        return hash((self.block_name, self.fields))

    def __repr__(self):
        fields = ", ".join(f"{t} {n}" for n, t in self.fields)
        return f"<VaryingInterface {self.block_name} {{{fields}}}>"

    @property
    def names(self):
        return tuple(name for name, _ in self.fields)

    def get_code(self, direction, instance_name, array=False):
        """Get the GLSL declaration of this interface block."""
        assert direction in ("in", "out")
        lines = [f"{direction} {self.block_name} {{"]
        for name, type in self.fields:
            lines.append(f"    {type} {name};")
        suffix = "[]" if array else ""
        lines.append(f"}} {instance_name}{suffix};")
        return "\n".join(lines)


class InterfaceBlock:
    """An interface block as found in GLSL source."""

    __slots__ = ["qualifier", "block_name", "instance_name", "fields"]

    def __init__(self, qualifier, block_name, instance_name, fields):
        self.qualifier = qualifier
        self.block_name = block_name
        self.instance_name = instance_name
        self.fields = tuple(fields)

    def __repr__(self):
        return f"<InterfaceBlock {self.qualifier} {self.block_name} with {len(self.fields)} fields>"

    def as_interface(self):
        return VaryingInterface(self.block_name, self.fields)


re_line_comment = re.compile(r"//[^\n]*")
re_block_comment = re.compile(r"/\*.*?\*/", re.DOTALL)
re_block = re.compile(
    r"(?:layout\s*\([^)]*\)\s*)?\b(in|out|uniform)\s+(\w+)\s*\{([^}]*)\}\s*(\w+)?\s*(\[[^\]]*\])?\s*;",
    re.UNICODE,
)
re_array_suffix = re.compile(r"^(\w+)\s*(\[\s*\w*\s*\])$")

# Qualifiers that may precede the type of a block member, and are not part of its type
member_qualifiers = {
    "flat",
    "smooth",
    "noperspective",
    "centroid",
    "sample",
    "patch",
    "invariant",
    "precise",
    "highp",
    "mediump",
    "lowp",
}


def strip_comments(source):
    source = re_block_comment.sub(" ", source)
    return re_line_comment.sub("", source)


def find_interface_blocks(source):
    """Find the in/out/uniform blocks in GLSL source. Returns a list of InterfaceBlock."""
    blocks = []
    for match in re_block.finditer(strip_comments(source)):
        qualifier, block_name, body, instance_name, _ = match.groups()
        fields = []
        for decl in body.split(";"):
            decl = re.sub(r"layout\s*\([^)]*\)", " ", decl)
            words = [w for w in decl.split() if w not in member_qualifiers]
            if not words:
                continue
            if len(words) < 2:
                raise InterfaceMismatchError(
                    f"Cannot parse member {decl.strip()!r} of block {block_name}",
                    field=decl.strip(),
                )
            type, name = words[-2], words[-1]
            array_match = re_array_suffix.match(name)
            if array_match:
                name = array_match.group(1)
                type += array_match.group(2).replace(" ", "")
            fields.append((name, type))
        blocks.append(InterfaceBlock(qualifier, block_name, instance_name, fields))
    return blocks


def check_interface(producer, consumer, *, template_id=None):
    """Check that two interfaces have the same fields, in the same order.

    Fields are compared positionally: count, names and types. Raises
    InterfaceMismatchError naming the first offending field, with the
    producer's (name, type) as ``expected`` and the consumer's as ``actual``.
    """
    producer_fields = list(producer.fields)
    consumer_fields = list(consumer.fields)
    block = producer.block_name

    if producer.block_name != consumer.block_name:
        raise InterfaceMismatchError(
            f"Consumer reads block {consumer.block_name!r}, but producer writes {producer.block_name!r}",
            field=None,
            expected=producer.block_name,
            actual=consumer.block_name,
            template_id=template_id,
        )

    for index in range(max(len(producer_fields), len(consumer_fields))):
        expected = producer_fields[index] if index < len(producer_fields) else None
        actual = consumer_fields[index] if index < len(consumer_fields) else None
        if expected == actual:
            continue
        field = (expected or actual)[0]
        if expected is None:
            msg = f"{block}.{field} is read by the consumer, but not written by the producer"
        elif actual is None:
            msg = f"{block}.{field} is written by the producer, but not read by the consumer"
        else:
            msg = (
                f"{block} field {index} differs: producer has "
                f"'{expected[1]} {expected[0]}', consumer has '{actual[1]} {actual[0]}'"
            )
        raise InterfaceMismatchError(
            msg, field=field, expected=expected, actual=actual, template_id=template_id
        )


def check_program(sources, *, template_ids=None):
    """Check the consistency of the stages of one program.

    Parameters
    ----------
    sources : dict
        Maps StageRole to resolved GLSL source.
    template_ids : dict | None
        Maps StageRole to the template id, used in error messages.
    """
    template_ids = template_ids or {}
    roles = [role for role in StageRole if role in sources]
    blocks = {role: find_interface_blocks(sources[role]) for role in roles}

    # Varying interfaces, along each producer -> consumer edge
    for producer_role, consumer_role in zip(roles[:-1], roles[1:]):
        outs = {b.block_name: b for b in blocks[producer_role] if b.qualifier == "out"}
        ins = {b.block_name: b for b in blocks[consumer_role] if b.qualifier == "in"}
        consumer_id = template_ids.get(consumer_role)
        for name, out_block in outs.items():
            if name not in ins:
                expected_names = ", ".join(ins) or "nothing"
                raise InterfaceMismatchError(
                    f"{producer_role} stage writes block {name!r}, but the {consumer_role} stage reads {expected_names}",
                    field=None,
                    expected=name,
                    actual=next(iter(ins), None),
                    template_id=consumer_id,
                )
            check_interface(
                out_block.as_interface(),
                ins[name].as_interface(),
                template_id=consumer_id,
            )
        for name in ins:
            if name not in outs:
                raise InterfaceMismatchError(
                    f"{consumer_role} stage reads block {name!r}, which the {producer_role} stage does not write",
                    field=None,
                    expected=None,
                    actual=name,
                    template_id=consumer_id,
                )

    # Uniform blocks must be identical in every stage that declares them
    seen = {}
    for role in roles:
        for block in blocks[role]:
            if block.qualifier != "uniform":
                continue
            if block.block_name in seen:
                _, first_block = seen[block.block_name]
                check_interface(
                    first_block.as_interface(),
                    block.as_interface(),
                    template_id=template_ids.get(role),
                )
            else:
                seen[block.block_name] = role, block
