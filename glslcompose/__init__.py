"""Compose GLSL shader variants from tagged stage templates."""

# flake8: noqa

from ._version import __version__, version_info
from . import utils

from .errors import *
from .shader import (
    parse,
    resolve,
    layout,
    FeatureSet,
    UniformBlockSpec,
    VaryingInterface,
    check_interface,
    check_program,
    ShaderFamily,
    register_family,
    get_family,
)
from .templates import TemplateId, TemplateStore, register_template_loader
from .engine import VariantCache, ResolvedVariant, StageCompiler, ShaderComposer

from .utils import enums, logger
from .utils.enums import *
