"""Prompts for the tutor answer and quiz generation."""

from typing import Optional, Tuple

QUIZ_QUESTION_COUNT = 3


def tutor_answer(question: str, context: Optional[str] = None) -> Tuple[str, str]:
    """Return (system_prompt, user_prompt) for answering a learner's question."""
    system = """You are a kind and knowledgeable tutor.
Answer the student's question clearly and carefully.
Give examples when they help the explanation.
Answer in Japanese."""

    if context:
        user = f"Context: {context}\n\nQuestion: {question}"
    else:
        user = question
    return system, user


def quiz_generation(topic: str, difficulty: str = "medium") -> str:
    """
    Return the user prompt for a multiple-choice quiz.
    Output must be a JSON array; see study.quiz.parse_quiz_questions.
    """
    return f"""Write {QUIZ_QUESTION_COUNT} {difficulty}-difficulty quiz questions about "{topic}".
Output JSON only, no markdown, in this format:
[
  {{
    "question": "question text",
    "options": ["option A", "option B", "option C", "option D"],
    "correctIndex": 0,
    "explanation": "why the answer is correct"
  }}
]"""


def dev_mode_answer(question: str) -> str:
    """Canned reply used when no model is configured."""
    return f"""[Development mode]
Your question: "{question}"

This is a placeholder answer generated in development mode.
In production the answer is generated by the configured language model.

Set OPENAI_API_KEY (or LLM_ENABLED with a local model) to enable it."""
