"""Tests for the chat and receipt agents with fake models."""

import pytest
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace

from PIL import Image

from finflow.agents import (
    CHAT_FALLBACK_REPLY,
    ChatMessage,
    FinanceChatAgent,
    ReceiptScanAgent,
    ReceiptScanError,
)
from finflow.agents.ai_agents import MAX_RECEIPT_SIDE
from finflow.models.ledger import default_categories, default_state


class FakeModel:
    """Records requests and answers with a fixed text (or raises)."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.requests = []

    async def generate_content_async(self, contents):
        self.requests.append(contents)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def png_bytes(size=(10, 10), mode="RGBA") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size).save(buffer, format="PNG")
    return buffer.getvalue()


class TestChatAgent:
    """Tests for FinanceChatAgent."""

    def test_system_instruction_has_numbers(self):
        """Test the instruction carries balance, net worth and currency."""
        instruction = FinanceChatAgent.system_instruction(default_state(currency="$"))
        assert "FinFlow AI" in instruction
        assert "Баланс: 0 $" in instruction

    def test_history_roles(self):
        """Test assistant turns are sent as 'model'."""
        contents = FinanceChatAgent.to_contents([
            ChatMessage(role="user", content="Привет"),
            ChatMessage(role="assistant", content="Здравствуйте"),
        ])
        assert [c["role"] for c in contents] == ["user", "model"]
        assert contents[1]["parts"] == ["Здравствуйте"]

    @pytest.mark.asyncio
    async def test_reply(self):
        """Test a successful reply is returned stripped."""
        model = FakeModel(text="  Всё хорошо.  ")
        agent = FinanceChatAgent(model=model)
        reply = await agent.reply([ChatMessage(role="user", content="Как дела?")], default_state())
        assert reply == "Всё хорошо."
        assert model.requests[0][0]["parts"] == ["Как дела?"]

    @pytest.mark.asyncio
    async def test_history_must_end_with_user(self):
        """Test the last turn has to be the user's."""
        agent = FinanceChatAgent(model=FakeModel(text="x"))
        with pytest.raises(ValueError):
            await agent.reply([ChatMessage(role="assistant", content="hi")], default_state())

    @pytest.mark.asyncio
    async def test_failure_becomes_fallback(self):
        """Test model errors turn into the apology message."""
        agent = FinanceChatAgent(model=FakeModel(error=RuntimeError("quota")))
        reply = await agent.send_message([ChatMessage(role="user", content="?")], default_state())
        assert reply == CHAT_FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_empty_reply_becomes_fallback(self):
        """Test an empty answer is treated as a failure."""
        agent = FinanceChatAgent(model=FakeModel(text=""))
        reply = await agent.send_message([ChatMessage(role="user", content="?")], default_state())
        assert reply == CHAT_FALLBACK_REPLY


class TestReceiptAgent:
    """Tests for ReceiptScanAgent."""

    def test_prepare_image_converts_and_bounds(self):
        """Test the photo becomes RGB within the size limit."""
        img = ReceiptScanAgent.prepare_image(png_bytes(size=(MAX_RECEIPT_SIDE * 2, 100)))
        assert img.mode == "RGB"
        assert max(img.size) <= MAX_RECEIPT_SIDE

    def test_prepare_image_rejects_garbage(self):
        """Test non-image bytes."""
        with pytest.raises(ReceiptScanError):
            ReceiptScanAgent.prepare_image(b"not an image")

    def test_match_category(self):
        """Test case-insensitive substring matching."""
        categories = default_categories()
        assert ReceiptScanAgent.match_category("продукты", categories).id == "1"
        assert ReceiptScanAgent.match_category("Такси", categories) is None
        assert ReceiptScanAgent.match_category(None, categories) is None

    @pytest.mark.asyncio
    async def test_scan(self):
        """Test a model answer wrapped in prose is parsed."""
        model = FakeModel(text='Вот: {"amount": 1250.5, "categoryName": "Продукты", "note": "Пятёрочка"}')
        scan = await ReceiptScanAgent(model=model).scan(png_bytes(), default_categories())
        assert scan.amount == Decimal("1250.5")
        assert scan.category_id == "1"
        assert scan.note == "Пятёрочка"
        prompt, image = model.requests[0]
        assert "Продукты" in prompt
        assert image.mode == "RGB"

    @pytest.mark.asyncio
    async def test_scan_ignores_bad_amount(self):
        """Test a non-positive amount is dropped, the rest kept."""
        model = FakeModel(text='{"amount": 0, "categoryName": "Кафе", "note": ""}')
        scan = await ReceiptScanAgent(model=model).scan(png_bytes(), default_categories())
        assert scan.amount is None
        assert scan.category_id is None
        assert scan.category_name == "Кафе"

    @pytest.mark.asyncio
    async def test_scan_unreadable_response(self):
        """Test a response without JSON."""
        model = FakeModel(text="Не могу прочитать чек")
        with pytest.raises(ReceiptScanError):
            await ReceiptScanAgent(model=model).scan(png_bytes(), default_categories())
