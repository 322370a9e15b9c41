"""
Response envelopes shared by every route group.

Every body carries ``code``, ``status`` and ``message``; list endpoints add
``data`` and ``total`` and, when paginated, ``page``, ``perpage`` and
``pagecounts``.
"""

from typing import Any, Dict, Optional

OK = {"code": 200, "status": "OK", "message": "Success"}
CREATED = {"code": 201, "status": "CREATED", "message": "Created"}
BAD_REQUEST = {"code": 400, "status": "BAD_REQUEST", "message": "Invalid request"}
NOT_FOUND = {"code": 404, "status": "NOT_FOUND", "message": "Not found"}
SERVER_ERROR = {"code": 500, "status": "SERVER_ERROR", "message": "Internal server error"}


def envelope(base: Dict[str, Any], message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body = dict(base)
    if message:
        body["message"] = message
    body.update(extra)
    return body
