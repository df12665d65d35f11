from typing import Iterable, List, Optional, Sequence, Tuple

QUESTION_FORMATS = """
1. "Open-ended" - Requires a descriptive or narrative answer. Useful for assessing communication, reasoning, or opinion-based responses.
2. "Coding" - Candidate writes or debugs code. Used for evaluating problem-solving skills, algorithms, and programming language proficiency.
3. "Scenario" - Presents a short, realistic situation and asks how the candidate would respond or act. Tests decision-making, ethics, soft skills, or role-specific judgment.
4. "Case Study" - In-depth problem based on a real or simulated business/technical challenge. Requires analysis, synthesis of information, and a structured response. Often multi-step.
5. "Design" - Asks the candidate to architect a system, process, or solution. Often used in software/system design, business process optimization, or operational planning.
6. "Live Assessment" - Real-time tasks like pair programming, whiteboarding, or collaborative exercises. Tests real-world working ability and communication under pressure.
"""

CODING_RULE = 'The "coding" field must be true when questionFormat is "Coding" or the question requires writing, debugging or analyzing code, false otherwise.'

SINGLE_QUESTION_SYSTEM_PROMPT = (
    "You are an expert interviewer creating high-quality interview questions. "
    "Format your response as a JSON object with fields: question, answer, "
    "category (Technical/Experience/Problem Solving/Soft Skills), difficulty (Easy/Medium/Hard), "
    "questionFormat (Open-ended/Coding/Scenario/Case Study/Design/Live Assessment), and coding (boolean)."
)

BATCH_SYSTEM_PROMPT = """
You are an expert interviewer who creates high-quality interview questions.
Your task is to generate improved questions based on specific feedback.
You must output the content in a valid JSON format.
You must generate exactly the requested number of questions.
"""

CATEGORY_LABELS = {
    "TECHNICAL": "Technical",
    "FUNCTIONAL": "Functional",
    "BEHAVIORAL": "Behavioral",
    "COGNITIVE": "Cognitive",
}


def category_label(category: Optional[str]) -> str:
    return CATEGORY_LABELS.get((category or "TECHNICAL").upper(), "Technical")


def level_difficulty(level: str, difficulty: Optional[str] = None) -> str:
    if difficulty:
        return difficulty
    return {"PROFESSIONAL": "Hard", "EXPERT": "Hard", "INTERMEDIATE": "Medium"}.get(level, "Easy")


def build_dislike_prompt(
    skill_name: str,
    level: str,
    original_question: str,
    reason: Optional[str] = None,
    feedback: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> str:
    """
    Prompt for replacing one disliked question.

    Args:
        skill_name (str): Skill the question belongs to.
        level (str): Skill level.
        original_question (str): Text of the question being replaced.
        reason (Optional[str]): Why the user asked for a new question.
        feedback (Optional[str]): Free-text feedback on the original question.
        difficulty (Optional[str]): Target difficulty, if the skill defines one.
    Returns:
        str: The user prompt.
    """
    segments = [
        f'Generate a new interview question for the skill "{skill_name}" at {level} level.',
        f"Original question: {original_question}",
    ]
    if reason:
        segments.append(f'Reason for regeneration: "{reason}"\nPlease address this specific concern in the new question.')
    if feedback:
        segments.append(
            f'User feedback on original question: "{feedback}"\n'
            "Please use this feedback to greatly improve the question. The feedback is very important and should guide your response."
        )
    else:
        segments.append("Please generate a different question for this skill.")
    if difficulty:
        segments.append(f"Difficulty level: {difficulty}")
    segments.append(f"For the question format, randomly choose one of these and design the question accordingly:{QUESTION_FORMATS}")
    segments.append(CODING_RULE)
    return "\n\n".join(segments)


def build_feedback_prompt(
    skill_name: str,
    level: str,
    questions: Sequence[Tuple[str, Optional[str]]],
    global_feedback: Optional[str] = None,
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    coding_only: bool = False,
    avoid: Iterable[str] = (),
) -> str:
    """
    Prompt for regenerating a batch of questions of one skill.

    `questions` holds (question text, feedback) pairs in the order the
    replacements are expected back.
    """
    segments: List[str] = [
        f'Generate improved interview questions for the skill "{skill_name}" at {level} level.\n'
        f"Difficulty: {level_difficulty(level, difficulty)}\n"
        f"Category: {category_label(category)}",
    ]
    if coding_only:
        segments.append('IMPORTANT: Every question MUST use the "Coding" format. The candidate must write or debug code.')
    else:
        segments.append(f"For each question, randomly choose one of these question formats and design the question accordingly:{QUESTION_FORMATS}")

    if global_feedback:
        segments.append(f"GLOBAL FEEDBACK FOR ALL QUESTIONS: {global_feedback}")

    lines = ["CURRENT QUESTIONS WITH FEEDBACK:"]
    for index, (text, feedback) in enumerate(questions, start=1):
        lines.append(f"Question {index}: {text}")
        lines.append(f"Feedback: {feedback}" if feedback else "No specific feedback")
    segments.append("\n".join(lines))

    avoid = [text for text in avoid if text]
    if avoid:
        listing = "\n".join(f"{i}. {text}" for i, text in enumerate(avoid, start=1))
        segments.append(f"EXISTING QUESTIONS (avoid generating similar questions):\n{listing}")

    segments.append(
        f"Please generate exactly {len(questions)} new and improved questions based on the feedback provided, in the same order.\n"
        'Format your response as a JSON object with a "questions" array where each object has: '
        "question, answer, category, difficulty, questionFormat and coding fields.\n"
        "Category should be one of: Technical, Experience, Problem Solving, Soft Skills, Functional, Behavioral, Cognitive.\n"
        "Difficulty should be one of: Easy, Medium, Hard.\n"
        "QuestionFormat should be one of: Open-ended, Coding, Scenario, Case Study, Design, Live Assessment.\n"
        f"{CODING_RULE}"
    )
    return "\n\n".join(segments)
