"""Kernel layer - persistence models."""
