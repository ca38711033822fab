from langchain_ollama import ChatOllama
from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from loguru import logger
from sqlalchemy.orm import Session
from typing import Optional

from review_engine.config import settings
from review_engine.crud.usage import record_ai_usage
from review_engine.errors import AIResponseError
from review_engine.rate_limit import UsageLimiter
from review_engine.schemas import AnswerEvaluation, TimedAnswerEvaluation

PERSONALITY_PROMPTS = {
    "PROFESSOR": "Respond in a formal, academic style with thorough explanations.",
    "COACH": "Respond in an encouraging, supportive style that builds confidence.",
    "DIRECT": "Respond concisely and to the point, no fluff.",
    "CREATIVE": "Respond using analogies and creative examples to explain concepts.",
}

# Canned timed-session results; a timed answer is never allowed to fail the session.
ANSWER_RECORDED = TimedAnswerEvaluation(
    is_correct=False,
    feedback="Your answer has been recorded. Review this topic later for detailed feedback."
)
ANSWER_TOO_BRIEF = TimedAnswerEvaluation(
    is_correct=False,
    feedback="Your answer was too brief. Try to provide more detail in your responses."
)
ATTEMPT_CREDITED = TimedAnswerEvaluation(
    is_correct=True,
    feedback="Good attempt! Your answer has been recorded."
)

MIN_TIMED_ANSWER_LENGTH = 10


def get_chat_model() -> BaseChatModel:
    """Factory function to return the configured chat model"""
    if settings.ai_provider.lower() != "ollama":
        raise ValueError(f"Unsupported AI provider: {settings.ai_provider}")
    return ChatOllama(
        model=settings.ollama_model,
        base_url=settings.ollama_base_url,
        temperature=0,
        format="json"
    )


class AnswerEvaluator:
    """
    Evaluate learner answers with an LLM, behind the AI rate limit.

    Every call is admitted by the limiter first and every admitted call is
    counted in the monthly usage ledger. ``evaluate_answer`` surfaces a
    rejection as RateLimited; ``evaluate_timed_answer`` answers with a canned
    result instead so a running timed session is never interrupted.
    """

    def __init__(self, db: Session, limiter: UsageLimiter, llm: Optional[BaseChatModel] = None):
        self.db = db
        self.limiter = limiter
        self.llm = llm if llm is not None else get_chat_model()

    def _ask(self, user_id: int, prompt: ChatPromptTemplate, variables: dict):
        message = (prompt | self.llm).invoke(variables)
        record_ai_usage(self.db, user_id)
        return message

    def evaluate_answer(
        self,
        user_id: int,
        tier: Optional[str],
        question: str,
        user_answer: str,
        expected_answer: str,
        personality: str = "COACH"
    ) -> AnswerEvaluation:
        """
        Three-tier (pass/fail/neutral) evaluation of a free-text answer.

        Raises:
            RateLimited: the user's AI quota for the current window is used up
            AIResponseError: the model did not return JSON
        """
        self.limiter.require_ai_capacity(user_id, tier)

        parser = JsonOutputParser(pydantic_object=AnswerEvaluation)
        prompt = ChatPromptTemplate.from_messages([
            ("system", "{personality}"),
            ("human", """Evaluate this answer using a THREE-TIER system:

Question: {question}
User's Answer: {user_answer}
Expected concepts to cover: {expected_answer}

EVALUATION CRITERIA:
- PASS: The answer demonstrates clear understanding of the core concept. Key points are addressed correctly, even if explanation isn't perfect.
- FAIL: The answer shows fundamental misunderstanding, is factually incorrect, or completely misses the point of the question.
- NEUTRAL: The answer shows partial understanding. Some key points are addressed but important aspects are missing or unclear.

Be fair but accurate in your evaluation.

{format_instructions}""")
        ])

        message = self._ask(user_id, prompt, {
            "personality": PERSONALITY_PROMPTS.get(personality, PERSONALITY_PROMPTS["COACH"]),
            "question": question,
            "user_answer": user_answer,
            "expected_answer": expected_answer,
            "format_instructions": parser.get_format_instructions()
        })
        try:
            parsed = parser.invoke(message)
        except OutputParserException as exc:
            raise AIResponseError() from exc
        if not isinstance(parsed, dict):
            raise AIResponseError()

        result = str(parsed.get("result", "")).lower()
        return AnswerEvaluation(
            result=result if result in ("pass", "fail", "neutral") else "neutral",
            feedback=parsed.get("feedback") or "Your answer has been evaluated.",
            correct_answer=parsed.get("correct_answer") or "",
            key_points_hit=parsed.get("key_points_hit") if isinstance(parsed.get("key_points_hit"), list) else [],
            key_points_missed=parsed.get("key_points_missed") if isinstance(parsed.get("key_points_missed"), list) else []
        )

    def evaluate_timed_answer(
        self,
        user_id: int,
        tier: Optional[str],
        topic_name: str,
        question_text: str,
        user_answer: Optional[str]
    ) -> TimedAnswerEvaluation:
        """Quick evaluation for timed sessions; degrades to a canned result instead of failing"""
        rate_limit = self.limiter.check_ai_rate_limit(user_id, tier)
        if not rate_limit.allowed:
            return ANSWER_RECORDED.model_copy()

        if not user_answer or len(user_answer.strip()) < MIN_TIMED_ANSWER_LENGTH:
            return ANSWER_TOO_BRIEF.model_copy()

        parser = JsonOutputParser(pydantic_object=TimedAnswerEvaluation)
        prompt = ChatPromptTemplate.from_messages([
            ("system", "You are a quick answer evaluator for a timed learning session."),
            ("human", """Topic: {topic_name}
Question: {question_text}
User's Answer: {user_answer}

Evaluate if the answer demonstrates understanding of the concept. Be encouraging but honest.
Keep the feedback to 2-3 sentences.

{format_instructions}""")
        ])

        try:
            message = self._ask(user_id, prompt, {
                "topic_name": topic_name,
                "question_text": question_text,
                "user_answer": user_answer,
                "format_instructions": parser.get_format_instructions()
            })
        except Exception as exc:
            logger.warning(f"Failed to evaluate timed answer for user {user_id}: {exc}")
            return ANSWER_RECORDED.model_copy()

        try:
            parsed = parser.invoke(message)
            return TimedAnswerEvaluation(
                is_correct=bool(parsed["is_correct"]),
                feedback=parsed.get("feedback") or ATTEMPT_CREDITED.feedback
            )
        except (OutputParserException, KeyError, TypeError):
            logger.warning(f"Unparseable timed evaluation for user {user_id}, crediting the attempt")
            return ATTEMPT_CREDITED.model_copy()
