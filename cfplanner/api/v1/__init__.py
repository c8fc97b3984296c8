"""
API routes.
"""

from fastapi import APIRouter

from cfplanner.api.v1 import graph, problems, recent, stats, submissions

router = APIRouter()

router.include_router(graph.router, tags=["Roadmap"])
router.include_router(stats.router, tags=["Stats"])
router.include_router(problems.router, tags=["Problems"])
router.include_router(submissions.router, tags=["Submissions"])
router.include_router(recent.router, tags=["Recent Activity"])
