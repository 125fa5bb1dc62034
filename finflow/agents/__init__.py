"""
AI Agents Package

Gemini-backed chat assistant and receipt scanner.
"""

from finflow.agents.ai_agents import (
    CHAT_FALLBACK_REPLY,
    ChatMessage,
    ChatUnavailableError,
    FinanceChatAgent,
    ReceiptScan,
    ReceiptScanAgent,
    ReceiptScanError,
)

__all__ = [
    "CHAT_FALLBACK_REPLY",
    "ChatMessage",
    "ChatUnavailableError",
    "FinanceChatAgent",
    "ReceiptScan",
    "ReceiptScanAgent",
    "ReceiptScanError",
]
