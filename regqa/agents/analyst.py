# =============================================================================
# Analyst Agent — Query-Type-Specific Answer Drafting
# =============================================================================
#
# Sends the formatted regulatory context and the question to the configured
# LLM provider with a system prompt tailored to the query type. The prompt
# asks for exactly the elements the completeness validator later checks for
# (rights issue timetable dates, the no-nil-paid statement for open offers,
# and so on), so a well-behaved model produces answers that pass.
#
# DESIGN DECISION: The analyst owns no regulatory logic. It only assembles a
# prompt; everything it knows about the rules arrives in the context.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

from regqa.agents.classifier import QueryType
from regqa.agents.orchestrator import RankedContext
from regqa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class DraftAnswer:
    """Answer text plus provider usage."""

    answer: str
    model: str
    input_tokens: int
    output_tokens: int


_BASE_PROMPT = (
    "You are a Hong Kong capital markets regulatory adviser. Answer using "
    "ONLY the regulatory context provided.\n\n"
    "Rules:\n"
    "- Cite the rule or document for each requirement, using the bracketed "
    "[title | source] labels from the context\n"
    "- If the context does not cover a point, say so explicitly\n"
    "- Finish every sentence and close every table\n"
    "- End answers longer than a few paragraphs with a short 'Conclusion' "
    "section"
)

_TABLE_INSTRUCTION = (
    "- Present any timetable as a markdown table with a header row and "
    "one dated row per event"
)

# Every QueryType must appear here (enforced by tests).
SYSTEM_PROMPTS: dict[QueryType, str] = {
    QueryType.RIGHTS_ISSUE: _BASE_PROMPT + (
        "\n- This is a Listing Rules rights issue. Cover the ex-rights date, "
        "nil-paid rights and their trading period, record date, acceptance "
        "deadline and payment date\n" + _TABLE_INSTRUCTION
    ),
    QueryType.OPEN_OFFER: _BASE_PROMPT + (
        "\n- This is an open offer, a Listing Rules corporate action. State "
        "explicitly that there is no trading in nil-paid rights\n"
        "- Cover the ex-entitlement date, application and excess application "
        "arrangements, the acceptance deadline and the payment date, with the "
        "timetable as a markdown table\n"
        "- Do not describe it in Takeovers Code terms; an open offer is not "
        "a general or mandatory offer"
    ),
    QueryType.TAKEOVER_OFFER: _BASE_PROMPT + (
        "\n- This is a Takeovers Code offer. Cover the offer period and the "
        "consideration\n"
        "- Cite Takeovers Code rules, not Listing Rules chapters"
    ),
    QueryType.WHITEWASH: _BASE_PROMPT + (
        "\n- This concerns a whitewash waiver under the Takeovers Code. "
        "Cover independent shareholders' approval and dealing restrictions "
        "before and after the waiver"
    ),
    QueryType.SHARE_CONSOLIDATION: _BASE_PROMPT + (
        "\n- Cover the general meeting, the effective date and the free "
        "exchange period for share certificates\n" + _TABLE_INSTRUCTION
    ),
    QueryType.BOARD_LOT_CHANGE: _BASE_PROMPT + (
        "\n- Cover the new board lot size and the parallel trading period\n"
        + _TABLE_INSTRUCTION
    ),
    QueryType.COMPANY_NAME_CHANGE: _BASE_PROMPT + (
        "\n- Cover the general meeting approving the change, the new stock "
        "short name and its effective date\n" + _TABLE_INSTRUCTION
    ),
    QueryType.RIGHTS_ISSUE_VS_OPEN_OFFER: _BASE_PROMPT + (
        "\n- This compares a rights issue with an open offer. For the rights "
        "issue cover nil-paid rights, the ex-rights date and the trading "
        "period; for the open offer state that there is no nil-paid rights "
        "trading and give the ex-entitlement date\n"
        "- If you give timetables, show both, each as a markdown table\n"
        "- Finish with an 'In conclusion' or 'Key differences' section, "
        "however short the answer"
    ),
    QueryType.GENERAL: _BASE_PROMPT,
}

NO_CONTEXT_ANSWER = (
    "No relevant regulatory provisions were found for this question. Please "
    "rephrase it or cite the specific rule you are asking about."
)


async def draft_answer(
    question: str,
    context: RankedContext,
    llm: LLMProvider,
) -> DraftAnswer:
    """
    Draft an answer to `question` grounded in `context`.

    Returns a fixed message without calling the provider when retrieval
    found nothing.
    """
    if not context.entries:
        return DraftAnswer(
            answer=NO_CONTEXT_ANSWER, model="n/a", input_tokens=0, output_tokens=0,
        )

    query_type = context.query_type
    user_message = (
        f"Question: {question}\n\n"
        f"Regulatory context ({len(context.entries)} entries):\n\n"
        f"{context.formatted_context}"
    )

    logger.info(
        "Analyst drafting answer: type=%s, entries=%d",
        query_type.value, len(context.entries),
    )

    response = await llm.complete(
        system=SYSTEM_PROMPTS[query_type], prompt=user_message,
    )

    logger.info(
        "Analyst complete: model=%s, tokens=%d+%d",
        response.model, response.input_tokens, response.output_tokens,
    )

    return DraftAnswer(
        answer=response.content,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )
