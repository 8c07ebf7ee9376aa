"""#N references between issue bodies.

Only references to issues that exist are kept; self-references are dropped.
Cycles are allowed and absorbed by the visited set during traversal.
"""

import re
from collections import deque
from enum import Enum

from pydantic import BaseModel, Field

from zap.issues.schemas import Issue

REF_RE = re.compile(r"#([0-9]+)")


def extract_refs(text: str) -> list[int]:
    """Sorted unique positive issue numbers referenced as #N. #0 is ignored."""
    return sorted({n for n in (int(m) for m in REF_RE.findall(text)) if n > 0})


class RefDirection(str, Enum):
    MENTIONS = "mentions"
    MENTIONED_BY = "mentioned_by"


_DIRECTION_ORDER = {RefDirection.MENTIONS: 0, RefDirection.MENTIONED_BY: 1}


class ConnectedIssue(BaseModel):
    """An issue reachable from the root, with how it was reached."""

    number: int
    issue: Issue | None = None
    distance: int = Field(..., description="Hops from the root issue (>= 1)")
    direction: RefDirection
    parent: int = Field(..., description="Issue this one was reached from")


class TreeNode(BaseModel):
    issue: Issue | None = None
    direction: RefDirection
    children: list["TreeNode"] = Field(default_factory=list)


class RefGraph(BaseModel):
    """Forward and reverse adjacency over existing issue numbers."""

    mentions: dict[int, list[int]] = Field(default_factory=dict)
    mentioned_by: dict[int, list[int]] = Field(default_factory=dict)
    issues: dict[int, Issue] = Field(default_factory=dict)

    def get_connected_issues(self, number: int) -> list[ConnectedIssue]:
        """Breadth-first walk from number.

        The first hop goes both ways; after that each branch keeps to its
        own direction. Ordered by distance, mentions before mentioned_by,
        then number.
        """
        if number not in self.issues:
            return []

        visited = {number}
        result: list[ConnectedIssue] = []
        queue: deque[tuple[int, int, RefDirection, int]] = deque()
        for ref in self.mentions.get(number, []):
            queue.append((ref, 1, RefDirection.MENTIONS, number))
        for ref in self.mentioned_by.get(number, []):
            queue.append((ref, 1, RefDirection.MENTIONED_BY, number))

        while queue:
            num, distance, direction, parent = queue.popleft()
            if num in visited:
                continue
            visited.add(num)
            result.append(
                ConnectedIssue(
                    number=num,
                    issue=self.issues.get(num),
                    distance=distance,
                    direction=direction,
                    parent=parent,
                )
            )
            edges = self.mentions if direction is RefDirection.MENTIONS else self.mentioned_by
            for ref in edges.get(num, []):
                if ref not in visited:
                    queue.append((ref, distance + 1, direction, num))

        result.sort(key=lambda c: (c.distance, _DIRECTION_ORDER[c.direction], c.number))
        return result

    def get_ref_count(self, number: int) -> int:
        """Issues this one mentions plus issues that mention it."""
        return len(self.mentions.get(number, [])) + len(self.mentioned_by.get(number, []))

    def build_tree(self, number: int) -> list[TreeNode]:
        """Connected issues grouped under the issue they were reached from."""
        children_of: dict[int, list[ConnectedIssue]] = {}
        for connected in self.get_connected_issues(number):
            children_of.setdefault(connected.parent, []).append(connected)

        def build(parent: int) -> list[TreeNode]:
            return [
                TreeNode(issue=c.issue, direction=c.direction, children=build(c.number))
                for c in children_of.get(parent, [])
            ]

        return build(number)


def build_ref_graph(issues: list[Issue]) -> RefGraph:
    """Index issues by number and link each body's #N references."""
    graph = RefGraph(issues={issue.number: issue for issue in issues})
    for issue in issues:
        for ref in extract_refs(issue.body):
            if ref == issue.number or ref not in graph.issues:
                continue
            graph.mentions.setdefault(issue.number, []).append(ref)
            graph.mentioned_by.setdefault(ref, []).append(issue.number)
    return graph
