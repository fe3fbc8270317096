"""
Chat Assistant

CRITICAL BOUNDARIES:
- CAN: answer questions about the rider's own records using the
  context data handed to it
- CANNOT: write, edit or delete records
- MUST: treat the context data as the only source of figures

The assistant is a remote call. Failures are retried a bounded number
of times with exponential backoff, then surfaced as AssistantError so
the caller can show a fallback message.
"""

import json
from collections.abc import Callable, Sequence
from datetime import date
from typing import Any, Literal, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from motoring.config import get_settings
from motoring.config.settings import GeminiSettings
from motoring.models.records import RecordKind
from motoring.reports.periods import resolve_record_date
from motoring.services.storage import RecordStoreInterface


logger = structlog.get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are the assistant of a motoring app used by a delivery rider to track "
    "orders, fuel stops, spare parts and odometer readings. Give informative, "
    "friendly answers relevant to the app. Answer in Indonesian. Use the earlier "
    "conversation to stay consistent. Only use figures present in the context data."
)

RECENT_LIMIT = 5


class AssistantError(Exception):
    """The assistant could not produce an answer."""
    pass


class ConversationMessage(BaseModel):
    """One turn of the chat."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


def build_system_prompt(page: Optional[str] = None, base_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
    """System prompt naming the screen the rider is on."""
    return f"{base_prompt} The user is currently on the page: {page or 'General'}."


def build_system_instruction(system_prompt: str, context_data: Optional[dict[str, Any]]) -> str:
    """Append the JSON context block the model must answer from."""
    if not context_data:
        return f"{system_prompt} There is no additional context data at the moment."
    context_json = json.dumps(context_data, indent=2, default=str)
    return (
        f"{system_prompt} Here is the latest context data from the system: "
        f"{context_json}. Use this information to give accurate, relevant answers."
    )


def _default_model_factory(settings: GeminiSettings) -> Callable[[str], Any]:
    genai.configure(api_key=settings.api_key)

    def factory(system_instruction: str) -> Any:
        return genai.GenerativeModel(
            model_name=settings.model_name,
            system_instruction=system_instruction,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            },
        )

    return factory


class ChatAssistant:
    """
    Gemini-backed chat completion.

    model_factory builds a model for a given system instruction; tests
    pass a fake one.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model_factory: Optional[Callable[[str], Any]] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model_factory = model_factory or _default_model_factory(self._settings)

    async def chat_complete(
        self,
        system_prompt: str,
        history: Sequence[ConversationMessage],
        context_data: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Answer the last user message of the conversation.

        Raises:
            ValueError: If the conversation doesn't end with a user message
            AssistantError: If every attempt failed or the answer was empty
        """
        if not history or history[-1].role != "user":
            raise ValueError("Conversation must end with a user message")

        model = self._model_factory(build_system_instruction(system_prompt, context_data))
        earlier = [
            {"role": "user" if message.role == "user" else "model", "parts": [message.content]}
            for message in history[:-1]
        ]
        question = history[-1].content

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_attempts),
                wait=wait_exponential(multiplier=self._settings.retry_wait_seconds, max=10),
                reraise=True,
            ):
                with attempt:
                    chat = model.start_chat(history=earlier)
                    response = await chat.send_message_async(question)
                    text = (response.text or "").strip()
        except Exception as e:
            logger.warning("assistant_call_failed", error=str(e), attempts=self._settings.max_attempts)
            raise AssistantError(f"Assistant request failed: {e}") from e

        if not text:
            raise AssistantError("Assistant returned an empty answer")
        return text


class AssistantContextBuilder:
    """Collects the rider's recent records for the assistant's context."""

    def __init__(self, store: RecordStoreInterface):
        self._store = store

    async def dashboard_summary(self, owner_id: str) -> dict[str, list[dict]]:
        orders = await self._store.list_records(RecordKind.ORDER, owner_id)
        spare_parts = await self._store.list_records(RecordKind.SPARE_PART, owner_id)
        fuel_stops = await self._store.list_records(RecordKind.FUEL_STOP, owner_id)

        # Fuel stops by day, the others by creation time
        fuel_stops = sorted(fuel_stops, key=lambda stop: resolve_record_date(stop), reverse=True)

        return {
            "recentOrders": [
                {
                    "id": order.id,
                    "qty": order.quantity,
                    "tarif": order.unit_rate,
                    "total": order.total,
                    "date": _iso(resolve_record_date(order)),
                    "note": order.note or "",
                    "labelType": order.label.value,
                }
                for order in orders[:RECENT_LIMIT]
            ],
            "recentSpareparts": [
                {
                    "id": part.id,
                    "name": part.name,
                    "quantity": part.quantity,
                    "price": part.unit_price,
                    "total": part.total,
                    "date": _iso(resolve_record_date(part)),
                    "note": part.note or "",
                    "motorcycleId": part.motorcycle_id or "Unknown",
                }
                for part in spare_parts[:RECENT_LIMIT]
            ],
            "recentFueling": [
                {
                    "id": stop.id,
                    "date": _iso(resolve_record_date(stop)),
                    "liters": stop.liters,
                    "price": stop.liter_price,
                    "cost": stop.total,
                    "location": stop.location or "Unknown",
                    "motorcycleId": stop.motorcycle_id or "Unknown",
                }
                for stop in fuel_stops[:RECENT_LIMIT]
            ],
        }


def _iso(day: date) -> str:
    return day.isoformat()
