"""
Prompt builders for the language model backend.

Each builder asks for a specific JSON shape; the matching parsers live
next to the code that consumes the responses.
"""

from threadlens.models.analysis import AnalysisDimension
from threadlens.models.conversation import ThreadCapsule

EXTRACTION_PROMPT = """Extract the participants and messages from this {source_type} conversation.

Return JSON in exactly this shape:
{{
  "participants": [
    {{"name": "Full Name", "email": "address or null", "identifier": "how they appear in the text"}}
  ],
  "messages": [
    {{"participantIdentifier": "identifier of the sender", "timestamp": "ISO 8601 or null", "content": "message text without quoted replies or signatures"}}
  ]
}}

Keep messages in chronological order.

Conversation:
{text}"""

LINGUISTIC_PROMPT = """Analyze the linguistic features of this message.

Return JSON in exactly this shape:
{{
  "questions": ["each question asked, ending with ?"],
  "containsQuestion": true,
  "wordCount": 0,
  "sentenceCount": 0,
  "sentiment": "Positive | Negative | Neutral",
  "urgency": "High | Medium | Low",
  "politenessScore": 0.5
}}

Message:
{content}"""

DIMENSION_INSTRUCTIONS: dict[AnalysisDimension, tuple[str, str]] = {
    AnalysisDimension.UNANSWERED_QUESTIONS: (
        "Identify questions that never received a substantive answer from another participant.",
        '"unansweredQuestions": [{"question": "...", "askedBy": "participant ID", '
        '"askedAt": "ISO 8601", "timesAsked": 1, "messageId": "..."}]',
    ),
    AnalysisDimension.TENSION_POINTS: (
        "Identify moments of frustration, urgency, repetition, escalation, dismissiveness or negativity.",
        '"tensionPoints": [{"type": "Frustration | Urgent | RepeatedQuestion | Escalation | '
        'Dismissive | NegativeSentiment", "severity": "Low | Medium | High", '
        '"description": "...", "messageId": "...", "timestamp": "ISO 8601", '
        '"participants": ["participant ID"]}]',
    ),
    AnalysisDimension.MISALIGNMENTS: (
        "Identify differences in understanding, expectations or assumptions between participants.",
        '"misalignments": [{"type": "Disagreement | Confusion | Assumption", '
        '"severity": "Low | Medium | High", "description": "...", '
        '"participantsInvolved": ["participant ID"], "suggestedResolution": "...", '
        '"messageId": "..."}]',
    ),
    AnalysisDimension.CONVERSATION_HEALTH: (
        "Assess the overall health of the conversation. Scores are 0-100.",
        '"health": {"overallScore": 0, "clarityScore": 0, "responsivenessScore": 0, '
        '"alignmentScore": 0, "riskLevel": "Low | Medium | High", "issues": ["..."], '
        '"strengths": ["..."], "recommendations": ["..."]}',
    ),
    AnalysisDimension.DECISIONS: (
        "Identify decisions that were made.",
        '"decisions": [{"decision": "...", "decidedBy": "participant ID", '
        '"timestamp": "ISO 8601", "messageId": "..."}]',
    ),
    AnalysisDimension.ACTION_ITEMS: (
        "Identify tasks that were requested or committed to.",
        '"actionItems": [{"action": "...", "assignedTo": "participant ID", '
        '"requestedBy": "participant ID", "timestamp": "ISO 8601", "messageId": "...", '
        '"priority": "Low | Medium | High", "status": "Pending | Completed | Overdue"}]',
    ),
    AnalysisDimension.SUGGESTED_ACTIONS: (
        "Suggest up to five concrete next steps that would move the conversation forward.",
        '"suggestions": [{"action": "...", "priority": "Low | Medium | High", '
        '"reasoning": "...", "evidence": ["message ID or quote"]}]',
    ),
}

SUMMARY_PROMPT = """Summarize this conversation in 2-3 sentences. Focus on the purpose, the outcome and anything left open.

{conversation}"""

KEY_POINTS_PROMPT = """List the 3-5 most important points of this conversation.

Return a JSON array of strings.

{conversation}"""


def build_extraction_prompt(text: str, source_type: str) -> str:
    """Prompt asking for participants and messages as JSON."""
    return EXTRACTION_PROMPT.format(source_type=source_type or "text", text=text)


def build_linguistic_prompt(content: str) -> str:
    """Prompt asking for the linguistic features of one message."""
    return LINGUISTIC_PROMPT.format(content=content)


def build_dimension_prompt(capsule: ThreadCapsule, dimension: AnalysisDimension) -> str:
    """
    Prompt for a single analysis dimension.

    Args:
        capsule: Conversation to analyze
        dimension: Dimension to ask about

    Returns:
        Prompt text requesting a JSON object with one key.
    """
    instruction, shape = DIMENSION_INSTRUCTIONS[dimension]
    return (
        f"{instruction}\n\n"
        f"Return JSON in exactly this shape:\n{{{shape}}}\n\n"
        "Use the participant IDs shown in the conversation. "
        "Return empty lists when nothing applies.\n\n"
        f"{capsule.to_prompt_text()}"
    )


def build_combined_prompt(capsule: ThreadCapsule, dimensions: list[AnalysisDimension]) -> str:
    """
    Prompt covering several dimensions in one request.

    Args:
        capsule: Conversation to analyze
        dimensions: Dimensions to include

    Returns:
        Prompt text requesting a JSON object with one key per dimension.
    """
    instructions = "\n".join(
        f"- {DIMENSION_INSTRUCTIONS[d][0]}" for d in dimensions
    )
    shape = ",\n  ".join(DIMENSION_INSTRUCTIONS[d][1] for d in dimensions)
    return (
        f"Analyze this conversation:\n{instructions}\n\n"
        f"Return JSON in exactly this shape:\n{{\n  {shape}\n}}\n\n"
        "Use the participant IDs shown in the conversation. "
        "Return empty lists when nothing applies.\n\n"
        f"{capsule.to_prompt_text()}"
    )


def build_summary_prompt(capsule: ThreadCapsule) -> str:
    """Prompt for a short narrative summary."""
    return SUMMARY_PROMPT.format(conversation=capsule.to_prompt_text())


def build_key_points_prompt(capsule: ThreadCapsule) -> str:
    """Prompt for key points as a JSON array."""
    return KEY_POINTS_PROMPT.format(conversation=capsule.to_prompt_text())
