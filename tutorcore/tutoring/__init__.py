"""
Tutoring: dialogue-driven instruction.

- socratic: question-type state machine and response analysis
- dialogue_manager: Socratic dialogue lifecycle
- productive_failure: exploration before instruction
"""

from tutorcore.tutoring.dialogue_manager import (
    DialogueManager,
    DialogueStatus,
    DialogueSummary,
    SocraticDialogue,
)
from tutorcore.tutoring.productive_failure import (
    AttemptCategory,
    ExplorationProblem,
    ExplorationSession,
    get_scaffolding_level,
    record_attempt,
    start_exploration,
)
from tutorcore.tutoring.socratic import (
    DialogueState,
    QuestionType,
    UnderstandingLevel,
    detect_discovery_moment,
    plan_dialogue,
)

__all__ = [
    "AttemptCategory",
    "DialogueManager",
    "DialogueState",
    "DialogueStatus",
    "DialogueSummary",
    "ExplorationProblem",
    "ExplorationSession",
    "QuestionType",
    "SocraticDialogue",
    "UnderstandingLevel",
    "detect_discovery_moment",
    "get_scaffolding_level",
    "plan_dialogue",
    "record_attempt",
    "start_exploration",
]
