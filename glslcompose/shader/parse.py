"""
Parse GLSL templates into a structured document.

Templates are plain GLSL with two kinds of marker lines::

    //T: UNIFORMS           <- a tag placeholder
    //L: IF NORMAL          <- start of a conditional block
    //L: ENDIF              <- end of the innermost conditional block

Everything else (including ``#version`` and ``#ifdef``) is literal text. The
parser produces a tree of Literal, Placeholder and Conditional nodes, so that
resolving the document for a feature set never has to look at the text again.
"""

from ..errors import (
    MalformedDirective,
    UnbalancedConditional,
    UnknownCondition,
    UnknownTag,
)
from ..utils.enums import Feature, Tag


TAG_PREFIX = "//T:"
LOGIC_PREFIX = "//L:"
PROCESSED_MARKER = "//processed"


class Literal:
    """A span of literal lines, emitted verbatim."""

    __slots__ = ["lines"]

    def __init__(self, lines):
        self.lines = tuple(lines)

    def __eq__(self, other):
        return isinstance(other, Literal) and self.lines == other.lines

    def __hash__(self):
        return hash(("Literal", self.lines))

    def __repr__(self):
        return f"Literal({len(self.lines)} lines)"


class Placeholder:
    """A ``//T: <TAG>`` line, to be expanded by the resolver."""

    __slots__ = ["tag", "indent", "lineno"]

    def __init__(self, tag, indent="", lineno=0):
        self.tag = tag
        self.indent = indent
        self.lineno = lineno

    def __eq__(self, other):
        return (
            isinstance(other, Placeholder)
            and self.tag == other.tag
            and self.indent == other.indent
        )

    def __hash__(self):
        return hash(("Placeholder", self.tag, self.indent))

    def __repr__(self):
        return f"Placeholder({self.tag!r})"


class Conditional:
    """A ``//L: IF <cond>`` ... ``//L: ENDIF`` block with nested nodes."""

    __slots__ = ["condition", "children", "lineno"]

    def __init__(self, condition, children, lineno=0):
        self.condition = condition
        self.children = tuple(children)
        self.lineno = lineno

    def __eq__(self, other):
        return (
            isinstance(other, Conditional)
            and self.condition == other.condition
            and self.children == other.children
        )

    def __hash__(self):
        return hash(("Conditional", self.condition, self.children))

    def __repr__(self):
        return f"Conditional({self.condition!r}, {len(self.children)} nodes)"


class StructuredDocument:
    """The parsed form of a template: an ordered tuple of nodes.

    Built once per template and reused for every feature set.
    """

    __slots__ = ["nodes", "processed"]

    def __init__(self, nodes, processed=False):
        self.nodes = tuple(nodes)
        self.processed = bool(processed)

    def __eq__(self, other):
        return isinstance(other, StructuredDocument) and self.nodes == other.nodes

    def __hash__(self):
        return hash(self.nodes)

    def __repr__(self):
        return f"<StructuredDocument with {len(self.nodes)} nodes at {hex(id(self))}>"

    def iter_nodes(self):
        """Iterate over all nodes, depth first, including nested ones."""
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, Conditional):
                stack.extend(reversed(node.children))

    @property
    def tags(self):
        """The set of tags used in this document."""
        return {node.tag for node in self.iter_nodes() if isinstance(node, Placeholder)}

    @property
    def conditions(self):
        """The set of condition tokens used in this document."""
        return {
            node.condition
            for node in self.iter_nodes()
            if isinstance(node, Conditional)
        }


def parse(text):
    """Parse template text into a StructuredDocument.

    Raises UnknownTag, UnknownCondition, UnbalancedConditional or
    MalformedDirective. No document is produced when any of these is raised.
    """
    if not isinstance(text, str):
        raise TypeError(f"Template text must be str, not {text.__class__.__name__}")

    processed = False
    # Each entry is (condition, lineno, nodes); the bottom one is the document itself.
    stack = [(None, 0, [])]
    literal_lines = []

    def flush_literal():
        if literal_lines:
            stack[-1][2].append(Literal(literal_lines))
            literal_lines.clear()

    for linenr, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()

        if stripped == PROCESSED_MARKER:
            processed = True
        elif stripped.startswith(TAG_PREFIX):
            flush_literal()
            indent = line[: len(line) - len(line.lstrip())]
            tag = _parse_tag(stripped[len(TAG_PREFIX) :], linenr)
            stack[-1][2].append(Placeholder(tag, indent, linenr))
        elif stripped.startswith(LOGIC_PREFIX):
            flush_literal()
            words = stripped[len(LOGIC_PREFIX) :].split()
            if words and words[0] == "IF":
                condition = _parse_condition(words[1:], linenr)
                stack.append((condition, linenr, []))
            elif words and words[0] == "ENDIF":
                if len(words) > 1:
                    raise MalformedDirective(
                        f"Unexpected text after ENDIF: {' '.join(words[1:])!r}",
                        lineno=linenr,
                    )
                if len(stack) == 1:
                    raise UnbalancedConditional(
                        "ENDIF without matching IF", lineno=linenr
                    )
                condition, start_linenr, nodes = stack.pop()
                stack[-1][2].append(Conditional(condition, nodes, start_linenr))
            else:
                raise MalformedDirective(
                    f"Expected 'IF <cond>' or 'ENDIF' after {LOGIC_PREFIX!r}, got {stripped!r}",
                    lineno=linenr,
                )
        else:
            literal_lines.append(line)

    flush_literal()

    if len(stack) > 1:
        condition, start_linenr, _ = stack[-1]
        raise UnbalancedConditional(
            f"IF {condition} is never closed ({len(stack) - 1} open block(s) at end of input)",
            lineno=start_linenr,
        )

    return StructuredDocument(stack[0][2], processed)


def _parse_tag(rest, linenr):
    words = rest.split()
    if not words:
        raise MalformedDirective("Tag placeholder without a tag name", lineno=linenr)
    elif len(words) > 1:
        raise MalformedDirective(
            f"Tag placeholder must have exactly one tag name, got {rest.strip()!r}",
            lineno=linenr,
        )
    tag = words[0]
    if tag not in Tag:
        raise UnknownTag(
            f"Unknown tag {tag!r}, expected one of {', '.join(Tag)}",
            tag=tag,
            lineno=linenr,
        )
    return tag


def _parse_condition(words, linenr):
    # Only single-token presence checks; no else-branch and no AND/OR.
    if len(words) != 1:
        raise MalformedDirective(
            f"IF needs exactly one condition token, got {' '.join(words)!r}",
            lineno=linenr,
        )
    condition = words[0]
    if condition not in Feature:
        raise UnknownCondition(
            f"Unknown condition {condition!r}, expected one of {', '.join(Feature)}",
            condition=condition,
            lineno=linenr,
        )
    return condition
