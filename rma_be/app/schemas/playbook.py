from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime


BranchCondition = Literal["pass", "fail"]


class BranchRule(BaseModel):
    condition: BranchCondition
    nextStepId: Optional[str] = None
    end: bool = False


class PlaybookStep(BaseModel):
    id: str = Field(min_length=1)
    title: str
    description: Optional[str] = None
    mediaUrl: Optional[str] = None
    requiresEvidence: bool = False
    branching: Optional[List[BranchRule]] = None


class PlaybookMetadata(BaseModel):
    name: Optional[str] = None
    version: Optional[int] = None


class Playbook(BaseModel):
    steps: List[PlaybookStep] = []
    metadata: Optional[PlaybookMetadata] = None

    def find_step(self, step_id: Optional[str]) -> Optional[PlaybookStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class PlaybookUpsertIn(BaseModel):
    skuGroupName: str = Field(min_length=1)
    playbookJson: Playbook
    isActive: bool = True


class PlaybookOut(BaseModel):
    skuGroupName: str
    playbookJson: Playbook
    version: int
    isActive: bool
    updatedAt: datetime

    model_config = ConfigDict(from_attributes=True)
