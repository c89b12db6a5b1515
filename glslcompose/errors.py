"""
The errors raised by glslcompose.

All generation-time errors derive from ``ShaderCompositionError``. They are
raised before any GPU call, and are fatal for the (template, feature set)
request at hand. ``CompileError`` and ``LinkError`` are raised by the compile
collaborator and forwarded as-is.
"""


class ShaderCompositionError(Exception):
    """Base class for errors detected while generating a shader variant.

    The ``template_id`` is filled in by the component that knows which
    template was being processed.
    """

    def __init__(self, message, *, template_id=None, lineno=None):
        super().__init__(message)
        self.message = message
        self.template_id = template_id
        self.lineno = lineno

    def __str__(self):
        where = ""
        if self.template_id is not None:
            where = str(self.template_id)
        if self.lineno is not None:
            where += f" line {self.lineno}" if where else f"line {self.lineno}"
        return f"{where}: {self.message}" if where else self.message


# ----- Parse errors


class ParseError(ShaderCompositionError):
    """A template could not be parsed into a structured document."""


class UnbalancedConditional(ParseError):
    """An ``//L: ENDIF`` without ``//L: IF``, or an ``//L: IF`` that is never closed."""


class UnknownTag(ParseError):
    """A ``//T: <TAG>`` placeholder with a tag outside the known vocabulary."""

    def __init__(self, message, *, tag=None, **kwargs):
        super().__init__(message, **kwargs)
        self.tag = tag


class UnknownCondition(ParseError):
    """An ``//L: IF <cond>`` with a condition that is not a known feature flag."""

    def __init__(self, message, *, condition=None, **kwargs):
        super().__init__(message, **kwargs)
        self.condition = condition


class MalformedDirective(ParseError):
    """A marker line that does not follow the directive grammar."""


# ----- Resolve errors


class ResolveError(ShaderCompositionError):
    """A structured document could not be expanded for a feature set."""


class MissingFeatureBinding(ResolveError):
    """A tag requires a feature that is not present in the feature set."""

    def __init__(self, message, *, tag=None, feature=None, **kwargs):
        super().__init__(message, **kwargs)
        self.tag = tag
        self.feature = feature


class MisplacedTag(ResolveError):
    """A tag is used in a stage where it has no meaning."""

    def __init__(self, message, *, tag=None, role=None, **kwargs):
        super().__init__(message, **kwargs)
        self.tag = tag
        self.role = role


# ----- Other generation errors


class InterfaceMismatchError(ShaderCompositionError):
    """The interface emitted by a producer stage differs from what the consumer expects."""

    def __init__(self, message, *, field=None, expected=None, actual=None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.expected = expected
        self.actual = actual


class StaleVariantError(ShaderCompositionError):
    """A template was reloaded while a variant derived from it was being resolved."""


class UnknownFeature(ShaderCompositionError, ValueError):
    """A feature set was given a key outside the known vocabulary."""


class TemplateNotFound(ShaderCompositionError, LookupError):
    """No template source exists for the requested family and stage."""


# ----- Collaborator errors


class CompileError(Exception):
    """The compile collaborator rejected a stage source. Carries the driver diagnostic."""

    def __init__(self, diagnostic, *, role=None):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic
        self.role = role


class LinkError(Exception):
    """The link collaborator could not link the compiled stages."""

    def __init__(self, diagnostic):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic
