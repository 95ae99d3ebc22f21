from typing import Optional
from pydantic import BaseModel

class ActionResult(BaseModel):
    """Outcome of a state-changing operation. Business-rule failures carry a stable code instead of raising."""
    ok: bool
    code: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def success(cls, id: Optional[str] = None) -> "ActionResult":
        return cls(ok=True, id=id)

    @classmethod
    def failure(cls, code: str) -> "ActionResult":
        return cls(ok=False, code=code)

class MessageResponse(BaseModel):
    message: str
