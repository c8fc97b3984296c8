"""
Topic graph - the prerequisite DAG behind the roadmap.

Loaded once at startup and shared read-only by every request. Also owns the
mapping from judge tags to topic slugs and the prerequisite distances used to
spread a solve's credit onto the topics it builds on.
"""

import json
from collections import deque
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from pydantic import BaseModel, ConfigDict

from cfplanner.engines.errors import TopicGraphError, TopicNotFoundError
from cfplanner.logging_config import get_logger

logger = get_logger(__name__)


class Topic(BaseModel):
    """A node of the roadmap."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    prerequisites: Tuple[str, ...] = ()


# (prerequisite, dependent)
ROADMAP_EDGES: List[Tuple[str, str]] = [
    ("implementation", "ad hoc"),
    ("implementation", "sortings"),
    ("implementation", "data structures"),
    ("implementation", "greedy"),
    ("implementation", "math"),
    ("implementation", "strings"),
    ("sortings", "two pointers"),
    ("sortings", "searching"),
    ("data structures", "searching"),
    ("data structures", "graphs"),
    ("greedy", "dynamic programming"),
    ("math", "advanced math"),
    ("math", "geometry"),
    ("strings", "advanced strings"),
    ("searching", "meet in the middle"),
    ("dynamic programming", "tree dp"),
    ("trees", "tree dp"),
    ("graphs", "advanced graphs"),
    ("graphs", "trees"),
]

ROADMAP_TOPICS: List[str] = [
    "implementation",
    "ad hoc",
    "sortings",
    "two pointers",
    "searching",
    "meet in the middle",
    "greedy",
    "dynamic programming",
    "math",
    "advanced math",
    "geometry",
    "data structures",
    "graphs",
    "advanced graphs",
    "trees",
    "tree dp",
    "strings",
    "advanced strings",
]

# Judge tag -> topic slug. Tags not listed here are ignored.
TAG_MAP: Dict[str, str] = {
    "implementation": "implementation",
    "brute force": "implementation",
    "constructive algorithms": "ad hoc",
    "sortings": "sortings",
    "two pointers": "two pointers",
    "binary search": "searching",
    "ternary search": "searching",
    "divide and conquer": "searching",
    "meet-in-the-middle": "meet in the middle",
    "greedy": "greedy",
    "math": "math",
    "number theory": "math",
    "combinatorics": "math",
    "matrices": "math",
    "probabilities": "math",
    "fft": "advanced math",
    "chinese remainder theorem": "advanced math",
    "geometry": "geometry",
    "graphs": "graphs",
    "dfs and similar": "graphs",
    "shortest paths": "graphs",
    "dsu": "graphs",
    "flows": "advanced graphs",
    "graph matchings": "advanced graphs",
    "2-sat": "advanced graphs",
    "trees": "trees",
    "strings": "strings",
    "hashing": "strings",
    "string suffix structures": "advanced strings",
    "data structures": "data structures",
    "bitmasks": "data structures",
    "dp": "dynamic programming",
}

# Topics no judge tag names directly; present when all listed topics are.
DERIVED_TOPICS: Dict[str, Tuple[str, ...]] = {
    "tree dp": ("dynamic programming", "trees"),
}

_DISPLAY_OVERRIDES = {
    "tree dp": "Tree DP",
    "dynamic programming": "DP",
}


def display_name(slug: str) -> str:
    """'advanced graphs' -> 'Advanced Graphs', with a few fixed abbreviations."""
    if slug in _DISPLAY_OVERRIDES:
        return _DISPLAY_OVERRIDES[slug]
    return " ".join(w[:1].upper() + w[1:] for w in slug.split())


class TopicGraph:
    """
    Immutable prerequisite DAG.

    Construction validates the whole graph; a cycle, a duplicate topic or an
    edge pointing at an unknown topic raises TopicGraphError.
    """

    def __init__(
        self,
        topics: Sequence[Topic],
        tag_map: Optional[Mapping[str, str]] = None,
        derived_topics: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._topics: Dict[str, Topic] = {}
        for topic in topics:
            if topic.id in self._topics:
                raise TopicGraphError(f"duplicate topic '{topic.id}'")
            self._topics[topic.id] = topic

        for topic in topics:
            for prereq in topic.prerequisites:
                if prereq not in self._topics:
                    raise TopicGraphError(
                        f"topic '{topic.id}' lists unknown prerequisite '{prereq}'"
                    )

        self._tag_map: Dict[str, str] = dict(tag_map if tag_map is not None else TAG_MAP)
        self._derived: Dict[str, Tuple[str, ...]] = {
            k: tuple(v) for k, v in (derived_topics if derived_topics is not None else DERIVED_TOPICS).items()
        }
        for tag, slug in self._tag_map.items():
            if slug not in self._topics:
                raise TopicGraphError(f"tag '{tag}' maps to unknown topic '{slug}'")
        for slug, parts in self._derived.items():
            for name in (slug, *parts):
                if name not in self._topics:
                    raise TopicGraphError(f"derived topic rule references unknown topic '{name}'")

        self._order = self._topological_order(topics)
        self._ancestry: Dict[str, Dict[str, int]] = {
            slug: self._distances_from(slug) for slug in self._topics
        }

    @classmethod
    def default(cls) -> "TopicGraph":
        """The built-in competitive-programming roadmap."""
        prereqs: Dict[str, List[str]] = {slug: [] for slug in ROADMAP_TOPICS}
        for parent, child in ROADMAP_EDGES:
            prereqs[child].append(parent)
        topics = [
            Topic(id=slug, name=display_name(slug), prerequisites=tuple(prereqs[slug]))
            for slug in ROADMAP_TOPICS
        ]
        return cls(topics)

    @classmethod
    def from_mapping(cls, data: Mapping) -> "TopicGraph":
        """
        Build from a plain mapping:

            {"topics": [{"id": "greedy", "name": "Greedy", "prerequisites": [...]}],
             "tag_map": {...}, "derived_topics": {...}}

        `tag_map` and `derived_topics` fall back to the built-in ones,
        restricted to the topics present.
        """
        raw_topics = data.get("topics")
        if not isinstance(raw_topics, list) or not raw_topics:
            raise TopicGraphError("topic graph needs a non-empty 'topics' list")
        topics = []
        for item in raw_topics:
            if not isinstance(item, dict) or not item.get("id"):
                raise TopicGraphError("every topic needs an 'id'")
            slug = item["id"]
            topics.append(Topic(
                id=slug,
                name=item.get("name") or display_name(slug),
                prerequisites=tuple(item.get("prerequisites", ())),
            ))
        slugs = {t.id for t in topics}
        tag_map = data.get("tag_map")
        if tag_map is None:
            tag_map = {tag: slug for tag, slug in TAG_MAP.items() if slug in slugs}
        derived = data.get("derived_topics")
        if derived is None:
            derived = {
                slug: parts for slug, parts in DERIVED_TOPICS.items()
                if slug in slugs and all(p in slugs for p in parts)
            }
        return cls(topics, tag_map, derived)

    @classmethod
    def from_file(cls, path: str) -> "TopicGraph":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise TopicGraphError(f"cannot read topic graph file {path}: {e}") from e
        return cls.from_mapping(data)

    def _topological_order(self, topics: Sequence[Topic]) -> List[str]:
        """Kahn's algorithm; ties keep declaration order."""
        remaining = [t.id for t in topics]
        placed: Set[str] = set()
        order: List[str] = []
        while remaining:
            ready = next(
                (slug for slug in remaining if all(p in placed for p in self._topics[slug].prerequisites)),
                None,
            )
            if ready is None:
                raise TopicGraphError(f"topic graph has a cycle among: {', '.join(sorted(remaining))}")
            remaining.remove(ready)
            placed.add(ready)
            order.append(ready)
        return order

    def _distances_from(self, slug: str) -> Dict[str, int]:
        """BFS along prerequisite edges: {ancestor: hops}, self at 0."""
        dist = {slug: 0}
        queue = deque([slug])
        while queue:
            cur = queue.popleft()
            for prereq in self._topics[cur].prerequisites:
                if prereq not in dist:
                    dist[prereq] = dist[cur] + 1
                    queue.append(prereq)
        return dist

    # Queries

    def list_topics(self) -> List[Topic]:
        """All topics, prerequisites before dependents."""
        return [self._topics[slug] for slug in self._order]

    def topic_ids(self) -> List[str]:
        return list(self._order)

    def __contains__(self, topic_id: object) -> bool:
        return topic_id in self._topics

    def get(self, topic_id: str) -> Topic:
        try:
            return self._topics[topic_id]
        except KeyError:
            raise TopicNotFoundError(topic_id) from None

    def prerequisites_of(self, topic_id: str) -> Set[str]:
        return set(self.get(topic_id).prerequisites)

    def ancestry(self, topic_id: str) -> Dict[str, int]:
        self.get(topic_id)
        return dict(self._ancestry[topic_id])

    def topics_for_tags(self, tags: Iterable[str]) -> List[str]:
        """Map judge tags to topic slugs (plus derived topics), in roadmap order."""
        found = {self._tag_map[tag] for tag in tags if tag in self._tag_map}
        for slug, parts in self._derived.items():
            if all(p in found for p in parts):
                found.add(slug)
        return [slug for slug in self._order if slug in found]

    def as_graph(self) -> Tuple[List[dict], List[dict]]:
        """Numbered nodes and (prerequisite -> dependent) edges for the roadmap view."""
        ids = {slug: i + 1 for i, slug in enumerate(self._order)}
        nodes = [
            {"id": ids[slug], "slug": slug, "display_name": self._topics[slug].name}
            for slug in self._order
        ]
        edges = [
            {"from": ids[prereq], "to": ids[slug]}
            for slug in self._order
            for prereq in self._topics[slug].prerequisites
        ]
        return nodes, edges


def load_topic_graph(path: Optional[str] = None) -> TopicGraph:
    """Load the configured graph or the built-in roadmap. Errors are fatal."""
    graph = TopicGraph.from_file(path) if path else TopicGraph.default()
    logger.info(
        "Topic graph loaded",
        extra={"topics": len(graph.topic_ids()), "source": path or "built-in"},
    )
    return graph
