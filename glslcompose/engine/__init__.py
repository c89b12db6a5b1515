"""
The engine of glslcompose: the variant cache and the composer that fills it.

This is the only place where resolved sources are cached and handed to the
compile collaborator. Everything in ``glslcompose.shader`` is pure.

The flow of a request::

    get_variant(family, role, features)
        -> VariantCache: ready? return it. pending? wait for it.
        -> TemplateStore: load (and parse) the templates of all stages
        -> resolve each stage, check the stages against each other
        -> store the variant, return it

    build_program(family, features, compiler)
        -> get_variant for each stage
        -> compiler.compile_stage for each stage
        -> compiler.link_program
"""

from .cache import VariantCache  # noqa
from .composer import ResolvedVariant, StageCompiler, ShaderComposer  # noqa
