from pydantic import BaseModel, Field
from typing import Optional

from .prompts import FEEDBACK_DESCRIPTION, SCORE_DESCRIPTION


class ImagePayload(BaseModel):
    data: str
    type: str = ""


class CompareStreamRequest(BaseModel):
    targetImage: Optional[ImagePayload] = None
    attemptImage: Optional[ImagePayload] = None


class PoseComparisonResult(BaseModel):
    score: float = Field(description=SCORE_DESCRIPTION)
    feedback: str = Field(description=FEEDBACK_DESCRIPTION)


FALLBACK_RESULT = {"score": 0, "feedback": "Oops! The AI got confused. Try again!"}
