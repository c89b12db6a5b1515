"""
The shader composer: ties the template store, the resolver and the variant
cache together, and hands finished sources to the compile collaborator.
"""

import sys
from concurrent.futures import ThreadPoolExecutor

from ..errors import CompileError, LinkError, TemplateNotFound
from ..shader.families import get_family
from ..shader.features import as_feature_set
from ..shader.interface import check_program, find_interface_blocks
from ..shader.resolve import resolve
from ..templates import TemplateId, TemplateStore
from ..utils import env_flag, logger
from ..utils.enums import StageRole
from .cache import VariantCache


__all__ = ["ResolvedVariant", "StageCompiler", "ShaderComposer"]


PRINT_GLSL_ON_ERROR = env_flag("GLSLCOMPOSE_PRINT_GLSL_ON_COMPILATION_ERROR")


class ResolvedVariant:
    """The resolved source of one stage, for one feature set. Should be considered read-only."""

    __slots__ = ["template_id", "features", "source", "blocks", "dependencies"]

    def __init__(self, template_id, features, source, dependencies):
        self.template_id = template_id
        self.features = features
        self.source = source
        self.blocks = tuple(find_interface_blocks(source))
        self.dependencies = frozenset(dependencies)

    def __repr__(self):
        return f"<ResolvedVariant {self.template_id} {self.features!r}>"

    @property
    def role(self):
        """The StageRole of this variant."""
        return self.template_id.role

    @property
    def family(self):
        return self.template_id.family


class StageCompiler:
    """The interface of the compile and link collaborator.

    Subclass this to connect the composer to an actual GPU context.
    """

    def compile_stage(self, role, source):
        """Compile the source of one stage, and return a handle.

        Raises ``CompileError`` with the driver's diagnostic on failure.
        """
        raise NotImplementedError()

    def link_program(self, handles):
        """Link the compiled stages (a list in pipeline order), and return a program handle.

        Raises ``LinkError`` with the driver's diagnostic on failure.
        """
        raise NotImplementedError()


class ShaderComposer:
    """Produces resolved shader variants, and builds programs from them.

    Parameters
    ----------
    store : TemplateStore | None
        Where templates are loaded from. Default a store on the root loader.
    cache : VariantCache | None
        Where resolved variants are cached. Default a new cache.
    """

    def __init__(self, store=None, cache=None):
        self.store = TemplateStore() if store is None else store
        self.cache = VariantCache() if cache is None else cache
        self.store.add_reload_listener(self.cache.invalidate)

    def __repr__(self):
        return f"<ShaderComposer at {hex(id(self))}>"

    def get_variant(self, family, role, features):
        """Get the ResolvedVariant for the given family, stage role and features.

        Variants are cached by (template id, feature set). On a miss the
        variant is taken from the program of its family, for which all stages
        are resolved and checked against each other, so that the returned
        variant is known to fit its sibling stages.
        """
        family = get_family(family)
        features = as_feature_set(features)
        template_id = TemplateId(family.name, role)
        roles = self.store.stages(family.name)
        if role not in roles:
            raise TemplateNotFound(
                f"The {family.name} family has no {role} stage",
                template_id=template_id,
            )

        def build():
            # A stage that misses gets a fresh attempt at a failed program
            self.cache.retry((family.name, features))
            return self._get_program(family, features, roles)[role]

        dependencies = [TemplateId(family.name, r) for r in roles]
        return self.cache.get((template_id, features), build, dependencies)

    def get_program(self, family, features):
        """Get a dict mapping StageRole to ResolvedVariant for all stages of a family.

        The variants are resolved together, in one resolution of the program.
        If a template is reloaded during that resolution, StaleVariantError is
        raised rather than returning stages that were not checked together.
        """
        family = get_family(family)
        features = as_feature_set(features)
        roles = self.store.stages(family.name)
        return dict(self._get_program(family, features, roles))

    def _get_program(self, family, features, roles):
        # Cached by (family name, feature set), next to the per-stage variants
        dependencies = [TemplateId(family.name, r) for r in roles]
        return self.cache.get(
            (family.name, features),
            lambda: self._resolve_program(family, features, roles),
            dependencies,
        )

    def _resolve_program(self, family, features, roles):
        interfaces = family.plan_interfaces(features, roles)
        template_ids = {}
        sources = {}
        for role in roles:
            template = self.store.load(family.name, role)
            template_ids[role] = template.template_id
            sources[role] = resolve(
                template.document,
                features,
                role,
                family,
                interfaces,
                template_id=template.template_id,
            )
        check_program(sources, template_ids=template_ids)
        dependencies = template_ids.values()
        return {
            role: ResolvedVariant(template_ids[role], features, sources[role], dependencies)
            for role in roles
        }

    def build_program(self, family, features, compiler):
        """Resolve, compile and link all stages of a family.

        Compile and link errors are logged and re-raised as-is; they are never retried.
        """
        variants = self.get_program(family, features)
        handles = []
        for role in StageRole:
            if role not in variants:
                continue
            variant = variants[role]
            try:
                handles.append(compiler.compile_stage(role, variant.source))
            except CompileError as err:
                if err.role is None:
                    err.role = role
                logger.error(f"Failed to compile {variant.template_id}: {err.diagnostic}")
                # The source can be long, so developers have to opt in to see it
                if PRINT_GLSL_ON_ERROR:
                    glsl_with_line_numbers = "\n".join(
                        f"{i + 1:5d}: {line}"
                        for i, line in enumerate(variant.source.splitlines())
                    )
                    print(glsl_with_line_numbers, file=sys.stderr)
                raise
        try:
            return compiler.link_program(handles)
        except LinkError as err:
            logger.error(f"Failed to link {get_family(family).name}: {err.diagnostic}")
            raise

    def reload(self, family=None):
        """Drop the templates (of the given family, or all) and invalidate their variants."""
        family = None if family is None else get_family(family).name
        return self.store.reload(family)

    def check_for_changes(self):
        """Drop the templates whose source changed, and invalidate their variants.

        Returns a list of the template ids that were dropped.
        """
        return self.store.check_for_changes()

    def prefetch(self, requests, max_workers=4):
        """Resolve many variants in parallel.

        Parameters
        ----------
        requests : iterable
            Tuples (family, role, features).
        max_workers : int
            The number of worker threads.

        Returns a list with a ResolvedVariant or an exception for each request.
        """
        requests = list(requests)

        def get(request):
            try:
                return self.get_variant(*request)
            except Exception as err:
                return err

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(get, requests))
