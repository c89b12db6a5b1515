"""
Compute std140 layouts for uniform blocks, and produce their GLSL declarations.

The layout is also available as a numpy structured dtype with explicit
padding fields, so the CPU-side buffer always matches what the GPU expects.
"""

import re

import numpy as np


# GLSL scalar type -> numpy primitive. bool is 4 bytes in std140.
primitives = {
    "float": "float32",
    "int": "int32",
    "uint": "uint32",
    "bool": "uint32",
}

vector_prefixes = {
    "vec": "float",
    "ivec": "int",
    "uvec": "uint",
    "bvec": "bool",
}

re_array = re.compile(r"^(\w+)\s*\[\s*(\d+)\s*\]$")
re_vector = re.compile(r"^([iub]?vec)([234])$")
re_matrix = re.compile(r"^mat([234])(?:x([234]))?$")


def _round_up(value, alignment):
    return (value + alignment - 1) // alignment * alignment


class LayoutField:
    """A field in a uniform block, with its std140 placement."""

    __slots__ = ["name", "type", "offset", "size", "align", "primitive", "shape"]

    def __init__(self, name, type):
        self.name = name
        self.type = type
        self.offset = None

        # Split off the array part
        base_type, count = type, None
        match = re_array.match(type.replace(" ", ""))
        if match:
            base_type, count = match.group(1), int(match.group(2))
            if count < 1:
                raise TypeError(f"Array field {name!r} must have at least one element")

        # Get scalar type and shape: (columns, components)
        if base_type in primitives:
            scalar, ncols, ncomps = base_type, 1, 1
        elif re_vector.match(base_type):
            prefix, n = re_vector.match(base_type).groups()
            scalar, ncols, ncomps = vector_prefixes[prefix], 1, int(n)
        elif re_matrix.match(base_type):
            # matCxR has C columns of R components (column-major)
            cols, rows = re_matrix.match(base_type).groups()
            scalar, ncols, ncomps = "float", int(cols), int(rows or cols)
        else:
            raise TypeError(f"Unsupported uniform type {type!r} for field {name!r}")
        self.primitive = primitives[scalar]

        is_matrix = ncols > 1
        if count is None and not is_matrix:
            # A scalar or vector
            self.align = 4 if ncomps == 1 else 8 if ncomps == 2 else 16
            self.size = 4 * ncomps
            self.shape = () if ncomps == 1 else (ncomps,)
        else:
            # Arrays and matrices: every element (or column) is padded to a vec4 stride.
            # A matrix array is an array of columns too.
            self.align = 16
            ncols_total = ncols * (count or 1)
            self.size = 16 * ncols_total
            shape = [4]
            if is_matrix:
                shape.insert(0, ncols)
            if count is not None:
                shape.insert(0, count)
            self.shape = tuple(shape)

    def __repr__(self):
        return f"<LayoutField {self.type} {self.name} at offset {self.offset}>"


class UniformLayout:
    """The std140 layout of an ordered list of uniform fields."""

    def __init__(self, fields):
        self.fields = []
        names = set()
        offset = 0
        for name, type in fields:
            if name in names:
                raise ValueError(f"Duplicate uniform field name {name!r}")
            names.add(name)
            field = LayoutField(name, type)
            # Fields are never reordered; only padding is inserted.
            field.offset = _round_up(offset, field.align)
            offset = field.offset + field.size
            self.fields.append(field)
        # The size of a block is rounded up to the alignment of a vec4.
        self.size = _round_up(offset, 16)

    def __iter__(self):
        return iter(self.fields)

    def __len__(self):
        return len(self.fields)

    def __getitem__(self, name):
        for field in self.fields:
            if field.name == name:
                return field
        raise KeyError(name)

    @property
    def offsets(self):
        """A dict mapping field name to byte offset."""
        return {field.name: field.offset for field in self.fields}

    @property
    def dtype(self):
        """A numpy structured dtype that has the same layout, with explicit padding fields."""
        dtype_fields = []
        pad_index = 0
        i = 0
        for field in self.fields:
            if field.offset > i:
                pad_index += 1
                dtype_fields.append((f"__padding{pad_index}", "uint8", (field.offset - i,)))
            dtype_fields.append((field.name, field.primitive, field.shape))
            i = field.offset + field.size
        if self.size > i:
            pad_index += 1
            dtype_fields.append((f"__padding{pad_index}", "uint8", (self.size - i,)))
        return np.dtype(dtype_fields)

    def array(self):
        """Get a zeroed numpy array (a scalar of the structured dtype) to hold the block data."""
        data = np.zeros((), dtype=self.dtype)
        # If this fails we did something wrong above
        assert data.nbytes == self.size
        return data


def layout(fields):
    """Compute the std140 layout for an ordered list of (name, glsl_type) tuples.

    Scalars are 4 bytes, a vec2 aligns to 8 bytes, a vec3 or vec4 aligns to
    16 bytes. Matrices are laid out column by column and arrays element by
    element, each column/element padded to 16 bytes. The order of the fields
    is preserved.
    """
    if isinstance(fields, dict):
        fields = list(fields.items())
    return UniformLayout(fields)


class UniformBlockSpec:
    """The definition of a std140 uniform block.

    Parameters
    ----------
    name : str
        The block name, e.g. "Matrices".
    binding : int | None
        The binding index. If None, no binding qualifier is emitted.
    fields : list
        Ordered list of (field_name, glsl_type) tuples.
    """

    def __init__(self, name, binding, fields):
        self.name = name
        self.binding = binding
        self.fields = tuple((str(n), str(t)) for n, t in fields)
        self._layout = None

    def __repr__(self):
        return f"<UniformBlockSpec {self.name} with {len(self.fields)} fields>"

    @property
    def layout(self):
        """The UniformLayout for this block (computed once)."""
        if self._layout is None:
            self._layout = layout(self.fields)
        return self._layout

    def get_code(self):
        """Get the GLSL declaration of this block, annotated with byte offsets."""
        qualifiers = "std140"
        if self.binding is not None:
            qualifiers += f", binding = {self.binding}"
        lines = [f"layout ({qualifiers}) uniform {self.name} {{"]
        for field in self.layout:
            name, type = field.name, field.type
            match = re_array.match(type.replace(" ", ""))
            if match:
                # GLSL puts the array size after the name
                type, name = match.group(1), f"{name}[{match.group(2)}]"
            lines.append(f"    {type} {name};  // offset {field.offset}")
        lines.append(f"}};  // size {self.layout.size}")
        return "\n".join(lines)
