"""
AI Agents for FinFlow

CRITICAL BOUNDARIES:

1. CHAT AGENT:
   - CAN: Answer questions, give short advice
   - SEES: A one-paragraph summary of the user's money (balance,
     net worth, currency), never the raw document
   - CANNOT: Change anything in the ledger

2. RECEIPT SCAN AGENT:
   - CAN: Read amount, category and note off a receipt photo
   - CANNOT: Save anything. The result only pre-fills the
     transaction form; the user confirms

The LLM is an ASSISTANT, not a BOOKKEEPER.
Nothing it returns reaches the state without the user.
"""

import json
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Optional

import google.generativeai as genai
import structlog
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from finflow.config import get_settings
from finflow.ledger.engine import net_worth, total_balance
from finflow.models.ledger import AppState, Category


logger = structlog.get_logger(__name__)

CHAT_FALLBACK_REPLY = "🚨 Ошибка связи с AI."

# Longest side of a receipt photo sent to the vision model
MAX_RECEIPT_SIDE = 1600


class ChatUnavailableError(Exception):
    """The chat model is not configured or did not answer."""
    pass


class ReceiptScanError(Exception):
    """The receipt could not be read."""
    pass


class ChatMessage(BaseModel):
    """One turn of the chat as the UI keeps it."""
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class ReceiptScan(BaseModel):
    """
    What the vision model read off a receipt.

    A suggestion for the transaction form, never a transaction.
    """
    amount: Optional[Decimal] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    note: str = ""


def _extract_json(text: str) -> dict:
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ValueError("No JSON object in model response")
    data = json.loads(text[start:end])
    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    return data


def _build_model(
    system_instruction: Optional[str] = None,
    temperature: Optional[float] = None,
) -> genai.GenerativeModel:
    try:
        settings = get_settings().gemini
    except Exception as e:
        raise ChatUnavailableError(f"Gemini is not configured: {e}") from e

    genai.configure(api_key=settings.api_key)
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config={
            "temperature": settings.temperature if temperature is None else temperature,
            "max_output_tokens": settings.max_tokens,
        },
        system_instruction=system_instruction,
    )


class FinanceChatAgent:
    """
    Conversational assistant.

    The system instruction is rebuilt from the current state on every
    message, so the model always sees today's numbers.

    Pass `model` (anything with an async `generate_content_async`) to
    bypass Gemini configuration, e.g. in tests.
    """

    def __init__(self, model: Any = None):
        self._model = model

    @staticmethod
    def system_instruction(state: AppState) -> str:
        currency = state.profile.currency
        return (
            "Ты - FinFlow AI. Будь краток и профессионален. "
            f"Твои данные: Баланс: {total_balance(state)} {currency}. "
            f"Капитал: {net_worth(state)} {currency}."
        )

    @staticmethod
    def to_contents(history: list[ChatMessage]) -> list[dict]:
        """Chat history in Gemini's format (assistant turns are 'model')."""
        return [
            {
                "role": "model" if message.role == "assistant" else "user",
                "parts": [message.content],
            }
            for message in history
        ]

    async def reply(self, history: list[ChatMessage], state: AppState) -> str:
        """
        Ask the model for the next assistant turn.

        Raises:
            ChatUnavailableError: If the model is unavailable or fails
        """
        if not history or history[-1].role != "user":
            raise ValueError("History must end with a user message")

        instruction = self.system_instruction(state)
        model = self._model or _build_model(system_instruction=instruction)

        try:
            response = await model.generate_content_async(self.to_contents(history))
            text = (response.text or "").strip()
        except Exception as e:
            raise ChatUnavailableError(f"Chat request failed: {e}") from e

        if not text:
            raise ChatUnavailableError("Empty reply from model")
        return text

    async def send_message(self, history: list[ChatMessage], state: AppState) -> str:
        """Like reply(), but any failure becomes the fallback apology."""
        try:
            return await self.reply(history, state)
        except ChatUnavailableError as e:
            logger.warning("chat_failed", error=str(e))
            return CHAT_FALLBACK_REPLY


class ReceiptScanAgent:
    """
    Reads a receipt photo into a transaction-form suggestion.

    The photo is normalized with Pillow (RGB, bounded size) before it
    is sent to the vision model.
    """

    def __init__(self, model: Any = None):
        self._model = model

    @staticmethod
    def prepare_image(image_bytes: bytes) -> Image.Image:
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ReceiptScanError(f"Not a readable image: {e}") from e

        if img.mode != "RGB":
            img = img.convert("RGB")
        img.thumbnail((MAX_RECEIPT_SIDE, MAX_RECEIPT_SIDE))
        return img

    @staticmethod
    def match_category(name: Optional[str], categories: list[Category]) -> Optional[Category]:
        """First category whose name contains the suggested name (case-insensitive)."""
        if not name:
            return None
        needle = name.strip().lower()
        if not needle:
            return None
        return next((c for c in categories if needle in c.name.lower()), None)

    async def scan(self, image_bytes: bytes, categories: list[Category]) -> ReceiptScan:
        """
        Raises:
            ReceiptScanError: If the image or the model response is unusable
        """
        img = self.prepare_image(image_bytes)
        category_list = ", ".join(c.name for c in categories)
        prompt = (
            f"Извлеки данные из чека. Категории: {category_list}. "
            'Верни ТОЛЬКО JSON: {"amount": number, "categoryName": "string", "note": "string"}'
        )

        try:
            model = self._model or _build_model(temperature=0.1)
            response = await model.generate_content_async([prompt, img])
            data = _extract_json(response.text)
        except ChatUnavailableError as e:
            raise ReceiptScanError(str(e)) from e
        except Exception as e:
            raise ReceiptScanError(f"Could not read receipt: {e}") from e

        amount = None
        if data.get("amount") is not None:
            try:
                amount = Decimal(str(data["amount"]))
            except InvalidOperation:
                amount = None
            if amount is not None and (not amount.is_finite() or amount <= 0):
                amount = None

        category_name = data.get("categoryName") or None
        category = self.match_category(category_name, categories)

        return ReceiptScan(
            amount=amount,
            category_id=category.id if category else None,
            category_name=category_name,
            note=str(data.get("note") or ""),
        )
