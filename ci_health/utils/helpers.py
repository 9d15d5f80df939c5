"""Helper utilities for the API layer."""
import re
from typing import Dict, List, Optional
from fastapi import HTTPException


def not_found_error(
    resource_type: str,
    resource_id: str,
    parent: Optional[Dict[str, str]] = None
) -> HTTPException:
    """
    Create a standardized 404 error response.

    Args:
        resource_type: Type of resource (e.g., "Release", "Job")
        resource_id: ID of the resource
        parent: Optional parent resource info {"type": "Release", "id": "4.9"}

    Returns:
        HTTPException with standardized error message
    """
    detail = f"{resource_type} '{resource_id}' not found"
    if parent:
        detail += f" in {parent['type']} '{parent['id']}'"
    return HTTPException(status_code=404, detail=detail)


def validation_error(detail: str) -> HTTPException:
    """Create a standardized 400 validation error response."""
    return HTTPException(status_code=400, detail=detail)


def compile_job_filter(pattern: Optional[str]) -> Optional[re.Pattern]:
    """
    Compile an optional job name filter.

    Raises:
        HTTPException: 400 if the pattern is not a valid regular expression
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise validation_error(f"Invalid job filter '{pattern}': {e}")


def clean_list(values: Optional[List[str]]) -> List[str]:
    """Strip query list values and drop empty ones."""
    if not values:
        return []
    return [v.strip() for v in values if v and v.strip()]
