from fastapi import HTTPException, status

from app.schemas.common import ActionResult

STATUS_BY_CODE = {
    # Validation
    "invalid_id": status.HTTP_400_BAD_REQUEST,
    "invalid_query": status.HTTP_400_BAD_REQUEST,
    "missing_content": status.HTTP_400_BAD_REQUEST,
    "text_required": status.HTTP_400_BAD_REQUEST,
    "text_too_long": status.HTTP_400_BAD_REQUEST,
    "no_file": status.HTTP_400_BAD_REQUEST,
    "unsupported_media_type": status.HTTP_400_BAD_REQUEST,
    "file_too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "self_request": status.HTTP_400_BAD_REQUEST,
    "self_accept": status.HTTP_400_BAD_REQUEST,
    "self_decline": status.HTTP_400_BAD_REQUEST,
    "self_cancel": status.HTTP_400_BAD_REQUEST,
    "self_remove": status.HTTP_400_BAD_REQUEST,
    # Not found
    "target_not_found": status.HTTP_404_NOT_FOUND,
    "sender_not_found": status.HTTP_404_NOT_FOUND,
    "not_found": status.HTTP_404_NOT_FOUND,
    # Permission
    "forbidden": status.HTTP_403_FORBIDDEN,
    # Conflicts
    "already_friends": status.HTTP_409_CONFLICT,
    "already_requested": status.HTTP_409_CONFLICT,
    "previously_declined": status.HTTP_409_CONFLICT,
    "no_pending_request": status.HTTP_409_CONFLICT,
    "not_friends": status.HTTP_409_CONFLICT,
    "email_taken": status.HTTP_409_CONFLICT,
}


def raise_for_result(result: ActionResult) -> ActionResult:
    """Turn a failed ActionResult into an HTTPException whose detail is the result code."""
    if result.ok:
        return result
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(result.code, status.HTTP_409_CONFLICT),
        detail=result.code,
    )
