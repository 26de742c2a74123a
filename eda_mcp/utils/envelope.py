from typing import Any, Dict


def failure(error: Any, **fields) -> Dict[str, Any]:
    """Uniform failure envelope returned by every flow driver."""
    response = {"success": False, "error": str(error)}
    response.update(fields)
    return response


def project_not_found(project_id: str, hint: str = "") -> Dict[str, Any]:
    message = f"Project {project_id} not found."
    if hint:
        message = f"{message} {hint}"
    return failure(message, project_id=project_id)
