"""
Reply pipeline for one inbound message.

Steps run strictly in order: membership lookup -> tone -> knowledge
retrieval -> generation (or scripted fallback) -> lead recording. Every
collaborator failure is turned into an explicit outcome at its own step so
the fallback taken is visible in the returned `AgentReply` and in the logs.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from . import config, llm_client, prompting, rules, sheets_client
from .rag import retriever
from .sheets_client import MemberRecord

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_RULES = "rules"


@dataclass
class RetrievalOutcome:
    context: str = ""
    error: Optional[str] = None


@dataclass
class GenerationOutcome:
    text: str = ""
    error: Optional[str] = None
    skipped: bool = False

    @property
    def usable(self) -> bool:
        return bool(self.text) and self.error is None


@dataclass
class AgentReply:
    text: str
    source: str
    is_member: bool
    name: Optional[str]
    tone: str
    context_used: bool = False
    error: Optional[str] = None


async def lookup_member(phone: str) -> MemberRecord:
    """Roster lookup; any failure means 'interested party'."""
    try:
        return await sheets_client.check_member(phone)
    except Exception as e:
        logger.warning(f"[AGENT] Member lookup failed for {phone}: {e}")
        return MemberRecord(is_member=False, error=True)


async def fetch_context(text: str) -> RetrievalOutcome:
    try:
        return RetrievalOutcome(context=await retriever.retrieve(text))
    except Exception as e:
        logger.warning(f"[AGENT] RAG retrieve warn: {e}")
        return RetrievalOutcome(error=str(e))


async def try_generate(system_prompt: str, context: str, text: str, tone: str) -> GenerationOutcome:
    if not config.GENERATOR_ENABLED:
        return GenerationOutcome(skipped=True)
    try:
        out = await llm_client.generate(
            system_prompt, context, text, temperature=prompting.temperature_for(tone)
        )
        return GenerationOutcome(text=out)
    except Exception as e:
        # Includes 429 insufficient_quota
        logger.warning(f"[AGENT] OpenAI fallback: {e}")
        return GenerationOutcome(error=str(e))


async def record_lead(phone: str, note: str) -> None:
    result = await sheets_client.log_lead(name="", phone=phone, topic="Asociación", note=note)
    if not result.ok:
        logger.warning(f"[AGENT] Lead not recorded for {phone}: {result.error}")


async def run_agent(phone: str, text: str) -> AgentReply:
    """Produce the reply for `text` sent by `phone`. Always returns a non-empty reply."""
    member = await lookup_member(phone)
    is_member = bool(member.is_member)

    tone = prompting.detect_tone(text)
    system_prompt = prompting.build_system_prompt(is_member, member.name, tone)

    # Context only feeds the generator; skip the embedding call when it is off
    retrieval = await fetch_context(text) if config.GENERATOR_ENABLED else RetrievalOutcome()
    generation = await try_generate(system_prompt, retrieval.context, text, tone)

    if generation.usable:
        reply_text, source = generation.text, SOURCE_LLM
    else:
        reply_text, source = rules.respond(is_member, member.name, text), SOURCE_RULES
        if not generation.skipped:
            logger.info(f"[AGENT] Using scripted reply for {phone} ({generation.error or 'empty output'})")

    if not is_member and prompting.is_lead_intent(text):
        note = "Lead detectado por intención" if source == SOURCE_LLM else "Lead por fallback"
        await record_lead(phone, note)

    return AgentReply(
        text=reply_text,
        source=source,
        is_member=is_member,
        name=member.name,
        tone=tone,
        context_used=bool(retrieval.context),
        error=generation.error,
    )
