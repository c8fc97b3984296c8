"""Unit tests for the topic graph (roadmap DAG, tag mapping, ancestry)."""

import json

import pytest

from cfplanner.engines.errors import TopicGraphError, TopicNotFoundError
from cfplanner.pedagogy.topic_graph import (
    ROADMAP_EDGES,
    ROADMAP_TOPICS,
    Topic,
    TopicGraph,
    display_name,
    load_topic_graph,
)


class TestDefaultRoadmap:
    def test_has_all_topics_and_edges(self, graph):
        nodes, edges = graph.as_graph()
        assert len(nodes) == len(ROADMAP_TOPICS) == 18
        assert len(edges) == len(ROADMAP_EDGES) == 19

    def test_list_topics_is_topological(self, graph):
        order = [t.id for t in graph.list_topics()]
        position = {slug: i for i, slug in enumerate(order)}
        for topic in graph.list_topics():
            for prereq in topic.prerequisites:
                assert position[prereq] < position[topic.id]

    def test_ties_keep_declaration_order(self, graph):
        assert graph.topic_ids() == [
            "implementation",
            "ad hoc",
            "sortings",
            "two pointers",
            "greedy",
            "dynamic programming",
            "math",
            "advanced math",
            "geometry",
            "data structures",
            "searching",
            "meet in the middle",
            "graphs",
            "advanced graphs",
            "trees",
            "tree dp",
            "strings",
            "advanced strings",
        ]

    def test_prerequisites_of(self, graph):
        assert graph.prerequisites_of("tree dp") == {"dynamic programming", "trees"}
        assert graph.prerequisites_of("implementation") == set()

    def test_unknown_topic_is_not_found(self, graph):
        with pytest.raises(TopicNotFoundError) as exc:
            graph.prerequisites_of("quantum dp")
        assert "not found" in str(exc.value)

    def test_ancestry_distances(self, graph):
        assert graph.ancestry("tree dp") == {
            "tree dp": 0,
            "dynamic programming": 1,
            "trees": 1,
            "greedy": 2,
            "graphs": 2,
            "implementation": 3,
            "data structures": 3,
        }

    def test_display_names(self, graph):
        nodes, _ = graph.as_graph()
        names = {n["slug"]: n["display_name"] for n in nodes}
        assert names["dynamic programming"] == "DP"
        assert names["tree dp"] == "Tree DP"
        assert names["advanced graphs"] == "Advanced Graphs"
        assert display_name("ad hoc") == "Ad Hoc"

    def test_edges_point_from_prerequisite_to_dependent(self, graph):
        nodes, edges = graph.as_graph()
        ids = {n["slug"]: n["id"] for n in nodes}
        assert nodes[0] == {"id": 1, "slug": "implementation", "display_name": "Implementation"}
        assert {"from": ids["graphs"], "to": ids["trees"]} in edges
        assert all(e["from"] < e["to"] for e in edges)


class TestTagMapping:
    def test_tags_map_to_topics_in_roadmap_order(self, graph):
        assert graph.topics_for_tags(["trees", "brute force", "dp", "unknown tag"]) == [
            "implementation",
            "dynamic programming",
            "trees",
            "tree dp",
        ]

    def test_tree_dp_needs_both_parts(self, graph):
        assert graph.topics_for_tags(["dp"]) == ["dynamic programming"]
        assert graph.topics_for_tags(["trees"]) == ["trees"]

    def test_several_tags_collapse_to_one_topic(self, graph):
        assert graph.topics_for_tags(["binary search", "ternary search"]) == ["searching"]

    def test_no_known_tags(self, graph):
        assert graph.topics_for_tags(["*special", "interactive"]) == []


class TestValidation:
    def test_cycle_rejected(self):
        topics = [
            Topic(id="a", name="A", prerequisites=("b",)),
            Topic(id="b", name="B", prerequisites=("a",)),
        ]
        with pytest.raises(TopicGraphError, match="cycle"):
            TopicGraph(topics, tag_map={}, derived_topics={})

    def test_dangling_prerequisite_rejected(self):
        topics = [Topic(id="a", name="A", prerequisites=("missing",))]
        with pytest.raises(TopicGraphError, match="unknown prerequisite"):
            TopicGraph(topics, tag_map={}, derived_topics={})

    def test_duplicate_topic_rejected(self):
        topics = [Topic(id="a", name="A"), Topic(id="a", name="A again")]
        with pytest.raises(TopicGraphError, match="duplicate"):
            TopicGraph(topics, tag_map={}, derived_topics={})

    def test_tag_map_to_unknown_topic_rejected(self):
        with pytest.raises(TopicGraphError, match="unknown topic"):
            TopicGraph([Topic(id="a", name="A")], tag_map={"x": "b"}, derived_topics={})


class TestLoading:
    def test_from_mapping_restricts_builtin_tag_map(self):
        graph = TopicGraph.from_mapping({
            "topics": [
                {"id": "implementation"},
                {"id": "greedy", "prerequisites": ["implementation"]},
            ]
        })
        assert graph.topic_ids() == ["implementation", "greedy"]
        assert graph.get("greedy").name == "Greedy"
        assert graph.topics_for_tags(["greedy", "dp"]) == ["greedy"]

    def test_from_mapping_requires_topics(self):
        with pytest.raises(TopicGraphError):
            TopicGraph.from_mapping({"topics": []})

    def test_from_file(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({
            "topics": [
                {"id": "basics", "name": "Basics"},
                {"id": "advanced", "prerequisites": ["basics"]},
            ],
            "tag_map": {"implementation": "basics"},
            "derived_topics": {},
        }))
        graph = load_topic_graph(str(path))
        assert graph.prerequisites_of("advanced") == {"basics"}
        assert graph.topics_for_tags(["implementation"]) == ["basics"]

    def test_unreadable_file_is_fatal(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(TopicGraphError):
            TopicGraph.from_file(str(path))

    def test_default_when_no_path(self):
        assert len(load_topic_graph(None).topic_ids()) == 18
