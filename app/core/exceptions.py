"""
Domain errors raised by the access policy callers and the job workflow.
HTTP status codes are attached so app.main can render them uniformly.
"""


class AppError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail}


class InvalidTransition(AppError):
    """Requested status is not reachable from the current one."""
    status_code = 409

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f"Cannot move job from '{current_status}' to '{requested_status}'"
        )
        self.current_status = current_status
        self.requested_status = requested_status

    def to_dict(self) -> dict:
        return {
            "detail": self.detail,
            "current_status": self.current_status,
            "requested_status": self.requested_status,
        }


class AccessDenied(AppError):
    status_code = 403

    def __init__(self, detail: str = "Access denied", role: str = None, capability: str = None):
        super().__init__(detail)
        self.role = role
        self.capability = capability


class NotFound(AppError):
    status_code = 404

    def __init__(self, resource: str, resource_id: str = None):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConcurrentUpdate(AppError):
    """The row changed between read and write; the caller should re-fetch."""
    status_code = 409

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} {resource_id} was modified by someone else, reload and try again")
        self.resource = resource
        self.resource_id = resource_id
