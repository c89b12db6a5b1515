"""
This directory contains the glsl templates of the builtin shader families.
They are available to the template store under the "glslcompose" context,
and can be read directly with ``load_glsl()``.
"""

import importlib.resources


def load_glsl(template_name):
    """Load the source of a builtin glsl template, e.g. 'mesh.vert'."""

    package_name = "glslcompose.glsl"
    ref = importlib.resources.files(package_name) / template_name
    with importlib.resources.as_file(ref) as path:
        with open(path, "rb") as f:
            return f.read().decode()
