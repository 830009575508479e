# src/leakstopper/messaging.py
"""
Reclamation message generation for leaked customers.

The scoring engine never talks to an LLM. The presentation layer picks a
MessageGenerator backend (OpenAI or Google Gemini) from configuration and
dispatches one cancellable request per customer through MessageDispatcher.
Backend failures are mapped onto a small taxonomy so callers can show
actionable guidance (quota, credential, missing model, anything else).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Sequence

from google import genai
from openai import AsyncOpenAI

from . import config
from .models import LeakedCustomer, SectorType

logger = logging.getLogger("leakstopper.messaging")

Provider = Literal["google", "openai"]
DispatchStatus = Literal["idle", "pending", "done", "failed", "cancelled"]


@dataclass(frozen=True)
class SectorPromptConfig:
    persona: str
    tone: str
    keywords: tuple[str, ...]
    offer_type: str
    closing_style: str


SECTOR_CONFIGS: dict[str, SectorPromptConfig] = {
    "Pharma": SectorPromptConfig(
        persona="a professional, trustworthy and warm healthcare industry representative",
        tone=(
            "Loyalty themed, professionally courteous, trust focused, positioned as a "
            "solution partner. Friendly but formal."
        ),
        keywords=(
            "health",
            "reliability",
            "quality",
            "long-term partnership",
            "solution partner",
            "supply guarantee",
        ),
        offer_type="Special pricing terms, priority delivery or additional product support",
        closing_style="Kind regards, wishing you good health.",
    ),
    "ECommerce": SectorPromptConfig(
        persona="a dynamic, customer-focused and friendly e-commerce brand",
        tone="Energetic, playful, creates FOMO and focuses on discounts. Emojis are welcome.",
        keywords=(
            "deal",
            "don't miss out",
            "exclusive discount",
            "limited time",
            "free shipping",
            "gift",
        ),
        offer_type="A personal discount code (e.g. COMEBACK20), free shipping or a free gift",
        closing_style="We can't wait to see you again! 🛒✨",
    ),
    "SaaS": SectorPromptConfig(
        persona="a technically savvy, helpful SaaS customer success manager",
        tone=(
            "Professional but friendly, value focused, reminds the customer of features. "
            "Explains without shying away from technical detail."
        ),
        keywords=(
            "productivity",
            "new features",
            "integrations",
            "automation",
            "time savings",
            "ROI",
        ),
        offer_type="An extended trial, free access to premium features or one-on-one onboarding",
        closing_style="We're here to help. Your success is our success.",
    ),
}

CALLS_TO_ACTION: dict[str, str] = {
    "Pharma": "Call us to schedule a meeting",
    "ECommerce": "Start shopping now →",
    "SaaS": "Request a free demo",
}

SECTOR_INFO: dict[str, dict[str, str]] = {
    "Pharma": {
        "label": "Pharma / Healthcare",
        "description": "Professional courtesy, trust focused",
        "icon": "💊",
    },
    "ECommerce": {
        "label": "E-Commerce",
        "description": "Energetic, discount and FOMO driven",
        "icon": "🛒",
    },
    "SaaS": {
        "label": "SaaS / Software",
        "description": "Feature and value reminders",
        "icon": "💻",
    },
}


# ---------------------------------------------------------------------------
# Errors


class MessageGenerationError(Exception):
    """Generic failure; the backend's own message is passed through."""

    guidance = "Message generation failed."


class QuotaExceededError(MessageGenerationError):
    guidance = "API quota exceeded. Wait a few minutes or create a new API key."


class InvalidCredentialError(MessageGenerationError):
    guidance = "Invalid or expired API key. Please create a new key."


class ModelNotFoundError(MessageGenerationError):
    guidance = "Model not found. Check your provider and model settings."


def classify_error(exc: BaseException) -> MessageGenerationError:
    """Map a raw backend exception onto the failure taxonomy."""
    if isinstance(exc, MessageGenerationError):
        return exc

    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    text = str(exc)
    lowered = text.lower()

    if status == 429 or "429" in text or "quota" in lowered or "rate limit" in lowered:
        return QuotaExceededError(text)
    if (
        status in (401, 403)
        or "401" in text
        or "api key" in lowered
        or "invalid" in lowered
        or "expired" in lowered
    ):
        return InvalidCredentialError(text)
    if status == 404 or "404" in text or "not found" in lowered:
        return ModelNotFoundError(text)
    return MessageGenerationError(f"Message generation failed: {text}")


# ---------------------------------------------------------------------------
# Request / response


@dataclass(frozen=True)
class MessageContext:
    """The slice of a leaked customer a message generator is allowed to see."""

    name: str
    days_since_last_purchase: int
    total_revenue: float
    last_purchase_date: datetime
    favorite_product: str | None = None

    @classmethod
    def from_customer(cls, customer: LeakedCustomer) -> MessageContext:
        return cls(
            name=customer.name,
            days_since_last_purchase=customer.days_since_last_purchase,
            total_revenue=customer.total_revenue,
            last_purchase_date=customer.last_purchase_date,
            favorite_product=customer.favorite_product,
        )


@dataclass(frozen=True)
class MessageResponse:
    message: str
    subject: str | None = None
    call_to_action: str | None = None


def get_call_to_action(sector: SectorType) -> str:
    return CALLS_TO_ACTION[sector]


def get_sector_info(sector: SectorType) -> dict[str, str]:
    return dict(SECTOR_INFO[sector])


def build_prompt(
    context: MessageContext, sector: SectorType, company_name: str | None = None
) -> str:
    sector_config = SECTOR_CONFIGS[sector]
    company = company_name or config.DEFAULT_COMPANY_NAME
    last_purchase = context.last_purchase_date.strftime("%d %B %Y")

    task_lines = [
        f"Our customer {context.name} has not purchased anything since {last_purchase}.",
        f"They have not been in touch with us for {context.days_since_last_purchase} days.",
    ]
    if context.favorite_product:
        task_lines.append(f'They were last interested in "{context.favorite_product}".')
    if context.total_revenue:
        task_lines.append(f"Their lifetime purchases total {context.total_revenue:,.2f}.")

    emoji_rule = (
        "You may use emojis."
        if sector == "ECommerce"
        else "Stay professional, avoid heavy emoji use."
    )

    return "\n".join(
        [
            f"You are {sector_config.persona} at {company}. "
            f"You are writing a win-back message on behalf of {company}.",
            "",
            "## TASK",
            *task_lines,
            "",
            "## TONE AND APPROACH",
            sector_config.tone,
            "",
            f"Keywords you may use: {', '.join(sector_config.keywords)}",
            "",
            "## OFFER",
            f"End the message with an offer such as: {sector_config.offer_type}",
            "",
            "## CLOSING",
            sector_config.closing_style,
            "",
            "## RULES",
            "1. The message is sent over WhatsApp, keep it short "
            f"(max {config.MAX_MESSAGE_CHARS} characters).",
            "2. Use the customer's name and be warm.",
            "3. Do not be pushy, offer value.",
            "4. Mind spelling and grammar.",
            f"5. {emoji_rule}",
            "",
            "Write ONLY the message text, no explanations.",
        ]
    )


def build_subject_prompt(message: str) -> str:
    return (
        f"Write a short email subject line (max {config.MAX_SUBJECT_CHARS} characters) "
        f'for this message: "{message[:100]}..."'
    )


# ---------------------------------------------------------------------------
# Backends


class MessageGenerator(ABC):
    """One message-generation backend. Subclasses only implement the raw completion."""

    provider: Provider

    def __init__(self, model: str) -> None:
        self.model = model

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        ...

    async def close(self) -> None:
        """Release HTTP clients, if any."""

    async def generate(
        self,
        context: MessageContext,
        sector: SectorType,
        company_name: str | None = None,
    ) -> MessageResponse:
        prompt = build_prompt(context, sector, company_name)
        logger.debug("Generating message: provider=%s model=%s", self.provider, self.model)
        try:
            message = (await self._complete(prompt)).strip()
            subject = (await self._complete(build_subject_prompt(message))).strip()
        except Exception as exc:
            error = classify_error(exc)
            logger.warning(
                "Message generation failed: provider=%s model=%s error=%s",
                self.provider,
                self.model,
                type(error).__name__,
            )
            raise error from exc

        return MessageResponse(
            message=message,
            subject=subject,
            call_to_action=get_call_to_action(sector),
        )


class OpenAIMessageGenerator(MessageGenerator):
    provider: Provider = "openai"

    def __init__(
        self, api_key: str, model: str = config.DEFAULT_MODELS["openai"], client: Any = None
    ) -> None:
        super().__init__(model)
        self._client = client if client is not None else AsyncOpenAI(api_key=api_key)

    async def _complete(self, prompt: str) -> str:
        resp = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


class GeminiMessageGenerator(MessageGenerator):
    provider: Provider = "google"

    def __init__(
        self, api_key: str, model: str = config.DEFAULT_MODELS["google"], client: Any = None
    ) -> None:
        super().__init__(model)
        self._client = client if client is not None else genai.Client(api_key=api_key)

    async def _complete(self, prompt: str) -> str:
        # google-genai's client is synchronous
        resp = await asyncio.to_thread(
            self._client.models.generate_content, model=self.model, contents=prompt
        )
        return resp.text or ""


GENERATORS: dict[str, type[MessageGenerator]] = {
    "google": GeminiMessageGenerator,
    "openai": OpenAIMessageGenerator,
}


def create_generator(
    provider: Provider, api_key: str | None, model: str | None = None
) -> MessageGenerator:
    """Pick a backend from configuration. A missing key is a credential failure."""
    if provider not in GENERATORS:
        raise ValueError(f"Unknown message provider: {provider}")
    if not api_key:
        raise InvalidCredentialError(f"No API key configured for provider '{provider}'.")
    return GENERATORS[provider](api_key, model or config.DEFAULT_MODELS[provider])


# ---------------------------------------------------------------------------
# Dispatch


class MessageDispatcher:
    """
    Tracks in-flight message requests keyed by customer id.

    Each request is its own asyncio task: requests run concurrently, can be
    cancelled individually, and one failing never affects the others. Must be
    used from inside a running event loop.
    """

    def __init__(self, generator: MessageGenerator) -> None:
        self._generator = generator
        self._tasks: dict[str, asyncio.Task[MessageResponse]] = {}

    def submit(
        self,
        customer: LeakedCustomer,
        sector: SectorType,
        company_name: str | None = None,
    ) -> asyncio.Task[MessageResponse]:
        existing = self._tasks.get(customer.id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(
            self._generator.generate(MessageContext.from_customer(customer), sector, company_name),
            name=f"message-{customer.id}",
        )
        task.add_done_callback(lambda t, cid=customer.id: self._on_done(cid, t))
        self._tasks[customer.id] = task
        return task

    def _on_done(self, customer_id: str, task: asyncio.Task[MessageResponse]) -> None:
        if task.cancelled():
            logger.info("Message request cancelled: customer=%s", customer_id)
        elif task.exception() is not None:
            logger.warning(
                "Message request failed: customer=%s error=%s", customer_id, task.exception()
            )

    def status(self, customer_id: str) -> DispatchStatus:
        task = self._tasks.get(customer_id)
        if task is None:
            return "idle"
        if not task.done():
            return "pending"
        if task.cancelled():
            return "cancelled"
        return "failed" if task.exception() is not None else "done"

    def in_flight(self) -> list[str]:
        return [cid for cid, task in self._tasks.items() if not task.done()]

    def cancel(self, customer_id: str) -> bool:
        task = self._tasks.get(customer_id)
        if task is None or task.done():
            return False
        return task.cancel()

    def result(self, customer_id: str) -> MessageResponse:
        """Finished result; re-raises the request's failure or CancelledError."""
        task = self._tasks.get(customer_id)
        if task is None:
            raise KeyError(customer_id)
        return task.result()

    async def wait(self, customer_id: str) -> MessageResponse:
        task = self._tasks.get(customer_id)
        if task is None:
            raise KeyError(customer_id)
        return await task

    async def wait_all(self) -> dict[str, MessageResponse | BaseException]:
        """Wait for every tracked request; failures are returned, not raised."""
        ids = list(self._tasks)
        outcomes = await asyncio.gather(*(self._tasks[cid] for cid in ids), return_exceptions=True)
        return dict(zip(ids, outcomes))


async def generate_bulk_previews(
    generator: MessageGenerator,
    customers: Sequence[LeakedCustomer],
    sector: SectorType,
    company_name: str | None = None,
    limit: int = config.BULK_PREVIEW_LIMIT,
) -> dict[str, MessageResponse]:
    """Sequential previews for the first `limit` customers; failures are skipped."""
    previews: dict[str, MessageResponse] = {}
    for customer in customers[:limit]:
        try:
            previews[customer.id] = await generator.generate(
                MessageContext.from_customer(customer), sector, company_name
            )
        except MessageGenerationError as exc:
            logger.warning("Preview failed for %s: %s", customer.name, exc)
    return previews


async def run_message_requests(
    generator: MessageGenerator,
    customers: Sequence[LeakedCustomer],
    sector: SectorType,
    company_name: str | None = None,
) -> dict[str, MessageResponse | BaseException]:
    """
    Dispatch one request per customer and wait for all of them.

    The generator is closed afterwards whether or not the requests succeeded.
    """
    dispatcher = MessageDispatcher(generator)
    try:
        for customer in customers:
            dispatcher.submit(customer, sector, company_name)
        return await dispatcher.wait_all()
    finally:
        await generator.close()
