from pydantic import BaseModel
from typing import Any, List, Optional

# ------------------------------------------------------------
# Request models
# ------------------------------------------------------------
class GenerateQuizRequest(BaseModel):
    topic: Optional[str] = None            # e.g. "Python basics", min 3 chars once trimmed
    count: Any = 5                         # checked by hand: integer in [1, 20]
    usedQuestionsText: Optional[str] = ""  # exclusion directive built by the client ledger


# ------------------------------------------------------------
# Question & Response models
# ------------------------------------------------------------
class QuestionPayload(BaseModel):
    question: str
    options: List[str]
    answer_index: int
    explanation: str = ""


class GenerateQuizResponse(BaseModel):
    status: str
    questions: List[QuestionPayload]


class ModelInfo(BaseModel):
    id: str
    owned_by: Optional[str] = None


class ListModelsResponse(BaseModel):
    status: str
    models: List[ModelInfo]
