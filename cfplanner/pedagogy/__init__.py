"""Pedagogy layer - the topic roadmap."""

from cfplanner.pedagogy.topic_graph import Topic, TopicGraph, load_topic_graph

__all__ = ["Topic", "TopicGraph", "load_topic_graph"]
