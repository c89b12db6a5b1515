"""
The template store: loads the raw text of stage templates and keeps the
parsed documents around until the source changes.

Template sources come from jinja2 loaders. The root loader is a
``jinja2.PrefixLoader`` on which loaders are registered per context, so a
downstream package can provide its own families next to the builtin ones::

    glslcompose.register_template_loader("myapp", {"toon.vert": ..., "toon.frag": ...})

A template for family "myapp.toon" and the vertex stage is then loaded by the
name "myapp.toon.vert".
"""

import threading

import jinja2

from ..errors import ParseError, TemplateNotFound
from ..shader.parse import parse
from ..utils import logger
from ..utils.enums import StageRole


__all__ = [
    "TemplateId",
    "Template",
    "TemplateStore",
    "register_template_loader",
    "root_loader",
    "role_extensions",
]


root_loader = jinja2.PrefixLoader({}, delimiter=".")

# The file extension of the template for each stage role
role_extensions = {
    StageRole.vertex: "vert",
    StageRole.geometry: "geo",
    StageRole.fragment: "frag",
}


def register_template_loader(context, loader):
    """Register a source for shader templates.

    Parameters
    ----------
    context : str
        The context of the loader, i.e. the first part of the family names
        that it provides.
    loader: jinja2.BaseLoader | callable | dict
        The loader to use for this context. If a function is given, it must accept one
        positional argument (the template name without the context) and return the
        source as a str, or None if it does not exist.
    """
    if not (isinstance(context, str) and context and "." not in context):
        raise TypeError("Template load context must be a non-empty string without dots.")
    if context in root_loader.mapping:
        raise RuntimeError(f"A loader is already registered for '{context}'.")
    root_loader.mapping[context] = as_loader(loader)


def as_loader(loader):
    if isinstance(loader, jinja2.BaseLoader):
        return loader
    elif isinstance(loader, dict):
        return jinja2.DictLoader(loader)
    elif callable(loader):
        return jinja2.FunctionLoader(loader)
    else:
        raise TypeError(
            f"The given template loader must be a jinja2.BaseLoader, function, or dict. Not {loader!r}"
        )


register_template_loader("glslcompose", jinja2.PackageLoader("glslcompose.glsl", "."))


class TemplateId:
    """The identity of a template: a family name and a stage role."""

    __slots__ = ["family", "role"]

    def __init__(self, family, role):
        if not (isinstance(family, str) and family):
            raise TypeError("The family of a template must be a non-empty str.")
        if role not in StageRole:
            raise ValueError(f"Invalid stage role {role!r}, expected one of {', '.join(StageRole)}")
        self.family = family
        self.role = role

    @property
    def name(self):
        """The name by which the template is loaded, e.g. 'glslcompose.mesh.vert'."""
        return f"{self.family}.{role_extensions[self.role]}"

    def __eq__(self, other):
        return (
            isinstance(other, TemplateId)
            and self.family == other.family
            and self.role == other.role
        )

    def __hash__(self):
        return hash((self.family, self.role))

    def __repr__(self):
        return f"TemplateId({self.family!r}, {self.role!r})"

    def __str__(self):
        return self.name


class Template:
    """A loaded template. Immutable once loaded."""

    __slots__ = ["template_id", "source", "filename", "document", "_uptodate"]

    def __init__(self, template_id, source, filename, document, uptodate=None):
        self.template_id = template_id
        self.source = source
        self.filename = filename
        self.document = document
        self._uptodate = uptodate

    def __repr__(self):
        return f"<Template {self.template_id} at {hex(id(self))}>"

    def is_up_to_date(self):
        """Get whether the source of this template is unchanged since it was loaded."""
        if self._uptodate is None:
            return True
        return bool(self._uptodate())


class TemplateStore:
    """Loads and caches templates.

    Parameters
    ----------
    loader : jinja2.BaseLoader | dict | callable | None
        Where to load the template sources from. Default the root loader, on
        which loaders are registered with ``register_template_loader()``.
    """

    def __init__(self, loader=None):
        self._loader = root_loader if loader is None else as_loader(loader)
        # Jinja2 loaders need an environment to load sources, but we never render with it
        self._env = jinja2.Environment(loader=self._loader)
        self._templates = {}
        # Family name -> tuple of stage roles
        self._stages = {}
        self._lock = threading.Lock()
        self._reload_listeners = []

    def __repr__(self):
        return f"<TemplateStore with {len(self._templates)} templates at {hex(id(self))}>"

    @property
    def loaded(self):
        """The ids of the templates that are currently loaded."""
        with self._lock:
            return tuple(self._templates)

    def add_reload_listener(self, callback):
        """Register a callback that is called with a TemplateId when that template is dropped."""
        self._reload_listeners.append(callback)

    def load(self, family, role):
        """Get the Template for the given family and stage role.

        The source is loaded and parsed on first use. Raises TemplateNotFound
        or a ParseError.
        """
        template_id = TemplateId(family, role)
        with self._lock:
            template = self._templates.get(template_id)
        if template is not None:
            return template

        try:
            source, filename, uptodate = self._loader.get_source(self._env, template_id.name)
        except jinja2.TemplateNotFound:
            raise TemplateNotFound(
                f"No template source named {template_id.name!r}",
                template_id=template_id,
            ) from None

        try:
            document = parse(source)
        except ParseError as err:
            err.template_id = template_id
            raise

        template = Template(template_id, source, filename, document, uptodate)
        logger.debug(f"Loaded template {template_id} from {filename or '<memory>'}")
        with self._lock:
            # If another thread beat us to it, use theirs
            return self._templates.setdefault(template_id, template)

    def exists(self, family, role):
        """Get whether a template source exists for the given family and stage role."""
        template_id = TemplateId(family, role)
        with self._lock:
            if template_id in self._templates:
                return True
        try:
            self._loader.get_source(self._env, template_id.name)
        except jinja2.TemplateNotFound:
            return False
        return True

    def stages(self, family):
        """Get the stage roles of a family, in pipeline order.

        The vertex and fragment templates are required, the geometry template is optional.
        The roles are looked up once per family, and again after the family is reloaded.
        """
        with self._lock:
            roles = self._stages.get(family)
        if roles is not None:
            return roles

        roles = []
        for role in StageRole:
            if self.exists(family, role):
                roles.append(role)
            elif role != StageRole.geometry:
                raise TemplateNotFound(
                    f"The {family} family has no {role} template",
                    template_id=TemplateId(family, role),
                )
        with self._lock:
            return self._stages.setdefault(family, tuple(roles))

    def check_for_changes(self):
        """Drop the templates whose source has changed since they were loaded.

        Reload listeners are called for each dropped template. Returns a list
        of the dropped template ids.
        """
        with self._lock:
            templates = list(self._templates.values())
        stale = [t.template_id for t in templates if not t.is_up_to_date()]
        if stale:
            logger.info(f"Template source changed: {', '.join(map(str, stale))}")
        return self._drop(stale)

    def reload(self, family=None):
        """Drop the loaded templates (of the given family, or all), so they're loaded again on next use.

        Reload listeners are called for each dropped template. Returns a list
        of the dropped template ids.
        """
        with self._lock:
            if family is None:
                self._stages.clear()
            else:
                self._stages.pop(family, None)
            ids = [
                template_id
                for template_id in self._templates
                if family is None or template_id.family == family
            ]
        return self._drop(ids)

    def _drop(self, template_ids):
        dropped = []
        with self._lock:
            for template_id in template_ids:
                if self._templates.pop(template_id, None) is not None:
                    dropped.append(template_id)
                    self._stages.pop(template_id.family, None)
        for template_id in dropped:
            logger.debug(f"Dropped template {template_id}")
            for callback in self._reload_listeners:
                callback(template_id)
        return dropped
