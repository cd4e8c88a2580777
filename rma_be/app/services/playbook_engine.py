"""Troubleshooting playbook sequencing.

``next_step`` walks a playbook one step at a time, honouring pass/fail branch
rules; ``is_playbook_complete`` reports whether every declared step has been
completed. A branch that ends the flow early makes ``next_step`` return None
while ``is_playbook_complete`` can still be False; callers treat that as
"flow ended, troubleshooting not complete" and the terms step stays reachable
from TROUBLESHOOTING_IN_PROGRESS.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.models.playbook import get_active_playbook_row
from app.schemas.playbook import Playbook, PlaybookMetadata, PlaybookStep
from app.services.errors import MalformedDataError

logger = logging.getLogger(__name__)


def _step_id(entry) -> Optional[str]:
    if isinstance(entry, dict):
        return entry.get("stepId")
    return getattr(entry, "stepId", None)


def next_step(
    playbook: Playbook,
    current_step_id: Optional[str],
    completed_steps: Iterable[Any] = (),
    answers: Optional[Dict[str, Any]] = None,
) -> Optional[PlaybookStep]:
    if not playbook.steps:
        return None
    if not current_step_id:
        return playbook.steps[0]

    index = next((i for i, s in enumerate(playbook.steps) if s.id == current_step_id), None)
    if index is None:
        return None
    current = playbook.steps[index]

    if current.branching and answers and current_step_id in answers:
        answer = answers[current_step_id]
        for branch in current.branching:
            if branch.condition != answer:
                continue
            if branch.end:
                return None
            if branch.nextStepId:
                return playbook.find_step(branch.nextStepId)
            # Neither target nor end: keep scanning, then fall back to order

    if index + 1 < len(playbook.steps):
        return playbook.steps[index + 1]
    return None


def is_playbook_complete(playbook: Playbook, completed_steps: Iterable[Any]) -> bool:
    if not playbook.steps:
        return True
    done = {_step_id(entry) for entry in completed_steps}
    return all(step.id in done for step in playbook.steps)


def validate_playbook_integrity(playbook: Playbook) -> List[str]:
    """Problems that make a playbook unsafe to activate; empty when sound."""
    problems = []
    seen = set()
    for step in playbook.steps:
        if step.id in seen:
            problems.append(f"Duplicate step id: {step.id}")
        seen.add(step.id)
    for step in playbook.steps:
        for branch in step.branching or []:
            if branch.end:
                continue
            if not branch.nextStepId:
                problems.append(f"Step {step.id}: '{branch.condition}' branch needs nextStepId or end")
            elif branch.nextStepId not in seen:
                problems.append(f"Step {step.id}: unknown nextStepId {branch.nextStepId}")
    return problems


def parse_playbook(data, name: Optional[str] = None, version: Optional[int] = None) -> Playbook:
    try:
        playbook = Playbook.model_validate(data or {})
    except ValidationError as e:
        logger.error("Stored playbook %s v%s is malformed: %s", name, version, e)
        raise MalformedDataError("Stored playbook is malformed")
    playbook.metadata = PlaybookMetadata(name=name, version=version)
    return playbook


def get_playbook_for_sku_group(db: Session, sku_group_name: str) -> Optional[Playbook]:
    row = get_active_playbook_row(db, sku_group_name)
    if not row:
        return None
    return parse_playbook(row.playbook_json, name=sku_group_name, version=row.version)
