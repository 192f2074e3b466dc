"""
Prompt construction for the blog assistant.
"""

from __future__ import annotations

from typing import List, Literal, Sequence

from pydantic import BaseModel

HISTORY_TURNS = 6


class HistoryTurn(BaseModel):
    type: Literal["user", "bot"]
    content: str


EN_PREAMBLE = [
    "You are an AI assistant with expertise in cloud-native technologies, technical blogging, "
    "and open source. This knowledge base contains technical articles, insights, and "
    "experiences from a blog.",
    "",
    "LANGUAGE INSTRUCTION: You MUST respond in English only. Even if the source content "
    "below is in Chinese, you must translate and respond in English.",
    "",
    "Answering guidelines:",
    "1. Speak as an expert, in first person, sharing knowledge and experience from the blog.",
    "2. Provide technical depth and relate the question to broader concepts.",
    "3. Emphasize practical applications and real-world implications.",
    "4. Keep a conversational, personable tone.",
]

ZH_PREAMBLE = [
    "你是一名 AI 助手，擅长云原生技术、技术写作和开源。这个知识库包含了技术博客中的文章、见解和经验。",
    "",
    "回答指导原则：",
    "1. 以专家身份、用第一人称分享博客中的知识和经验。",
    "2. 提供有深度的技术解释，并将问题与更广泛的概念联系起来。",
    "3. 强调实际应用和现实意义。",
    "4. 保持亲切、对话式的语气。",
]

EN_FINAL = (
    "Please provide a concise and focused answer based on the knowledge snippets. "
    "Directly address the question with the most relevant information. "
    "CRITICAL: You MUST respond in English only, even if the source content is in Chinese. "
    "IMPORTANT: Do NOT include any source links, URLs, file paths, or reference paths in your "
    "response - sources are handled separately by the system:"
)

ZH_FINAL = (
    "请基于知识库片段提供简洁而有针对性的回答。直接回应问题的核心，使用最相关的信息。"
    "重要：请不要在回答中包含任何来源链接、网址、文件路径或引用路径，这些信息由系统单独处理："
)


def build_prompt(
    question: str,
    contexts: str,
    history: Sequence[HistoryTurn] = (),
    language: str = "zh",
) -> str:
    """
    Assemble the single-turn prompt sent to the LLM.

    Only the last ``HISTORY_TURNS`` history entries are included.
    """
    english = language == "en"

    parts: List[str] = list(EN_PREAMBLE if english else ZH_PREAMBLE)
    parts.append("")
    parts.append("--- Blog Content ---" if english else "--- 博客内容 ---")
    parts.append(contexts or ("(None)" if english else "（空）"))

    if history:
        parts.append("--- Conversation History ---" if english else "--- 对话历史 ---")
        user_label, bot_label = ("User", "Assistant") if english else ("用户", "助手")
        for turn in list(history)[-HISTORY_TURNS:]:
            label = user_label if turn.type == "user" else bot_label
            parts.append(f"{label}: {turn.content}")

    parts.append("--- Question ---" if english else "--- 问题 ---")
    parts.append(question)
    parts.append("")
    parts.append(EN_FINAL if english else ZH_FINAL)

    return "\n".join(parts)
