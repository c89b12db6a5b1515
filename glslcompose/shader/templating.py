import jinja2

from ..errors import ResolveError


# The LOGIC formulas of the shader families are small jinja2 snippets. The
# delimiters are chosen so they do not clash with GLSL syntax.
jinja_env = jinja2.Environment(
    block_start_string="{$",
    block_end_string="$}",
    variable_start_string="{{",
    variable_end_string="}}",
    line_statement_prefix="$$",
    undefined=jinja2.StrictUndefined,
    autoescape=False,
)


def apply_templating(code, **kwargs):
    """Render the given jinja2 snippet. Undefined variables raise a ResolveError."""
    try:
        t = jinja_env.from_string(code)
        return t.render(**kwargs)
    except jinja2.UndefinedError as err:
        raise ResolveError(f"Cannot compose shader logic: {err.args[0]}") from None
    except jinja2.TemplateSyntaxError as err:
        raise ResolveError(
            f"Invalid shader logic formula: {err.message}", lineno=err.lineno
        ) from None
