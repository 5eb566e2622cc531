"""
API Mapper
==========

Transforms ledger records and errors into JSON-ready dicts.
Exposes stored data as-is: no derived scores, no smoothing.
"""
from typing import Any, Dict, List, Optional, Tuple

from ..contracts.base import Error, ErrorCode
from ..contracts.records import User, Relationship, Forest, Milestone, PrerequisiteEdge, Completion
from ..query import LearnerProgress, TreeNode


# HTTP status per error kind
_STATUS_BY_CODE = {
    ErrorCode.NOT_AUTHORIZED: 403,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.CHILD_NOT_REGISTERED: 404,
    ErrorCode.FOREST_NOT_FOUND: 404,
    ErrorCode.MILESTONE_NOT_FOUND: 404,
    ErrorCode.PARENT_MILESTONE_NOT_FOUND: 404,
    ErrorCode.PREREQUISITE_NOT_FOUND: 404,
    ErrorCode.USER_ALREADY_EXISTS: 409,
    ErrorCode.FOREST_ALREADY_EXISTS: 409,
    ErrorCode.MILESTONE_ALREADY_EXISTS: 409,
    ErrorCode.DUPLICATE_RELATIONSHIP: 409,
    ErrorCode.MILESTONE_ALREADY_COMPLETED: 409,
    ErrorCode.PREREQUISITES_NOT_COMPLETED: 409,
    ErrorCode.INVALID_PARAMETERS: 422,
    ErrorCode.INVALID_USER_ROLE: 422,
    ErrorCode.STORAGE_FAILURE: 500,
    ErrorCode.STRUCTURAL_INCONSISTENCY: 500,
}


def status_for_error(error: Error) -> int:
    return _STATUS_BY_CODE.get(error.code, 400)


def map_error(error: Error) -> Dict[str, Any]:
    return {
        "error": {
            "code": error.code.name,
            "message": error.message,
            "context": dict(error.context),
        }
    }


def map_user(user: User) -> Dict[str, Any]:
    return {
        "identity": user.identity.value,
        "name": user.name,
        "role": user.role.name.lower(),
        "role_id": user.role.value,
        "registered_at": user.registered_at,
    }


def map_relationship(rel: Relationship) -> Dict[str, Any]:
    return rel.to_dict()


def map_forest(forest: Forest) -> Dict[str, Any]:
    return forest.to_dict()


def map_milestone(milestone: Milestone, prerequisites: Optional[tuple] = None) -> Dict[str, Any]:
    dto = milestone.to_dict()
    if prerequisites is not None:
        dto["prerequisite_ids"] = [p.value for p in prerequisites]
    return dto


def map_edge(edge: PrerequisiteEdge) -> Dict[str, Any]:
    return edge.to_dict()


def map_completion(completion: Completion) -> Dict[str, Any]:
    return completion.to_dict()


def map_progress(progress: LearnerProgress) -> Dict[str, Any]:
    return {
        "learner": progress.learner.value,
        "forest_id": progress.forest_id.value,
        "completed": [m.value for m in progress.completed],
        "remaining": [m.value for m in progress.remaining],
        "completion_ratio": progress.completion_ratio,
    }


def map_tree(forest_id: int, roots: Tuple[TreeNode, ...]) -> Dict[str, Any]:
    """
    Flatten forest roots into pre-order nodes with parent links.

    JSON nesting stays constant however deep the placement chain runs.
    """
    nodes: List[Dict[str, Any]] = []
    for root in roots:
        for node, parent, depth in root.walk():
            nodes.append({
                "milestone_id": node.milestone.milestone_id.value,
                "title": node.milestone.title,
                "parent_milestone_id": parent.milestone.milestone_id.value if parent else None,
                "depth": depth,
            })
    return {
        "forest_id": forest_id,
        "roots": [root.milestone.milestone_id.value for root in roots],
        "nodes": nodes,
    }
