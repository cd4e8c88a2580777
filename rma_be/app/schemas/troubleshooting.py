from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class CompletedStep(BaseModel):
    stepId: str
    answer: Any = None
    evidenceIds: List[str] = []
    completedAt: Optional[datetime] = None
    # Snapshot of the playbook step's flag at completion time
    requiresEvidence: bool = False


class EvidenceRecord(BaseModel):
    evidenceId: str
    fileName: str
    filePath: str
    fileSize: int
    mimeType: Optional[str] = None
    uploadedAt: datetime


class TroubleshootingRecord(BaseModel):
    symptoms: Optional[Any] = None
    stepsCompleted: List[CompletedStep] = []
    evidence: List[EvidenceRecord] = []
    customerOptedOutOfTS: bool = False
    aiSummary: Optional[str] = None
    aiRecommendation: Optional[str] = None
    aiConfidence: Optional[float] = None

    def last_step_id(self) -> Optional[str]:
        return self.stepsCompleted[-1].stepId if self.stepsCompleted else None

    def answers(self) -> Dict[str, Any]:
        """Latest answer per step id."""
        return {s.stepId: s.answer for s in self.stepsCompleted}


class SymptomsIn(BaseModel):
    symptoms: Any


class StepCompleteIn(BaseModel):
    answer: Any = None
    evidenceIds: Optional[List[str]] = None
