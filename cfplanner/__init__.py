"""CF Curriculum Planner - topic mastery tracking and problem recommendation."""

__version__ = "1.0.0"
