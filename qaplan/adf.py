"""
Atlassian Document Format (ADF) helpers.

ADF descriptions arrive as nested dicts. They are parsed into a small tagged
variant (a text leaf or a container of children) and flattened back to plain
text with an explicit stack, so deeply nested input cannot exhaust the
interpreter's recursion limit.
"""
from dataclasses import dataclass
from typing import Any, List, Tuple, Union


@dataclass(frozen=True)
class TextLeaf:
    text: str


@dataclass(frozen=True)
class ContainerNode:
    children: Tuple['RichTextNode', ...] = ()


RichTextNode = Union[TextLeaf, ContainerNode]


def is_adf_document(value: Any) -> bool:
    """True when value looks like an ADF node with a content list"""
    return isinstance(value, dict) and isinstance(value.get('content'), list)


def parse_node(raw: Any) -> RichTextNode:
    """Convert raw ADF (dicts, lists, strings) into the tagged node variant"""
    root_children: List[RichTextNode] = []
    # Each stack entry is (raw value, list the parsed node is appended to)
    stack: List[Tuple[Any, List[RichTextNode]]] = [(raw, root_children)]
    pending: List[Tuple[List[RichTextNode], List[RichTextNode], int]] = []

    while stack:
        value, sink = stack.pop()

        if isinstance(value, str):
            sink.append(TextLeaf(value))
            continue

        if isinstance(value, dict) and value.get('text'):
            sink.append(TextLeaf(str(value['text'])))
            continue

        children_raw = None
        if isinstance(value, dict) and isinstance(value.get('content'), list):
            children_raw = value['content']
        elif isinstance(value, list):
            children_raw = value

        if children_raw is None:
            sink.append(ContainerNode())
            continue

        parsed_children: List[RichTextNode] = []
        # Reserve the slot now so siblings keep document order
        pending.append((parsed_children, sink, len(sink)))
        sink.append(ContainerNode())
        # Push in reverse so children are visited in document order
        for child in reversed(children_raw):
            stack.append((child, parsed_children))

    # Containers were opened parent-first; close them child-first so each
    # parent sees its finished children.
    for parsed_children, sink, slot in reversed(pending):
        sink[slot] = ContainerNode(tuple(parsed_children))

    return root_children[0]


def flatten(node: RichTextNode) -> str:
    """Concatenate every leaf's text in document order, with no separators"""
    parts: List[str] = []
    stack: List[RichTextNode] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, TextLeaf):
            parts.append(current.text)
        else:
            stack.extend(reversed(current.children))
    return ''.join(parts)


def extract_text(raw: Any) -> str:
    """Extract plain text from a raw ADF value"""
    if not raw:
        return ''
    return flatten(parse_node(raw))
