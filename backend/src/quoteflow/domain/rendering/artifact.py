"""Presentation artifact tree.

The render pipeline's output is a tree of ArtifactNodes: a tag, a flat mapping
of string attributes, and children that are either nodes or text. It is
independent of any byte format; delivery adapters turn it into HTML or PDF.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Tuple, Union

Child = Union["ArtifactNode", str]


@dataclass(frozen=True)
class ArtifactNode:
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: Tuple[Child, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "attrs": dict(self.attrs),
            "children": [c.to_dict() if isinstance(c, ArtifactNode) else c for c in self.children],
        }

    def to_json(self) -> str:
        """Canonical serialization: identical trees give identical strings."""
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False, separators=(",", ":"))

    def iter_nodes(self) -> Iterator["ArtifactNode"]:
        yield self
        for child in self.children:
            if isinstance(child, ArtifactNode):
                yield from child.iter_nodes()

    def find_all(self, tag: str, **attrs: str):
        """All descendant nodes (including self) with this tag and attribute values."""
        return [
            node for node in self.iter_nodes()
            if node.tag == tag and all(node.attrs.get(k) == v for k, v in attrs.items())
        ]

    def text(self) -> str:
        """Concatenated text of the subtree."""
        return "".join(c.text() if isinstance(c, ArtifactNode) else c for c in self.children)


def node(tag: str, *children: Child, **attrs: Any) -> ArtifactNode:
    """Build a node; attribute values are stringified and None attributes dropped.

    A trailing underscore in an attribute name is stripped (class_ -> class).
    """
    return ArtifactNode(
        tag=tag,
        attrs={k.rstrip("_"): str(v) for k, v in attrs.items() if v is not None},
        children=tuple(children),
    )
