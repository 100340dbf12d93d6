"""
Statement Recognition Agent

DESIGN DECISION: One multimodal call per statement image. The agent:
1. Builds an instruction listing the user's live categories as id:name pairs
2. Sends instruction + image to the vision model at low temperature
3. Hands the raw reply to the proposal parser

CRITICAL BOUNDARIES:
- CAN: Propose transactions read off the image
- CANNOT: Persist anything; proposals go back to the user for review
- CANNOT: Invent categories; it is told to use only the listed ids, and
  whatever it returns is repaired against the catalog afterwards

The model is a READER, not a BOOKKEEPER.
No automatic retries: a failed call is reported and the user decides.
"""

from typing import Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions

from cashbook.config import GeminiSettings, get_settings
from cashbook.errors import ConfigurationError, InvalidInputError, UpstreamError
from cashbook.models.finance import CategoryCatalog, TransactionProposal
from cashbook.services.image import StatementImage, decode_statement_image
from cashbook.validation import parse_recognition_output


logger = structlog.get_logger(__name__)


def format_category_options(catalog: CategoryCatalog) -> tuple[str, str]:
    """Render ``id:name`` lists for income and expense categories."""
    income = ", ".join(f"{c.id}:{c.name}" for c in catalog.income)
    expense = ", ".join(f"{c.id}:{c.name}" for c in catalog.expense)
    return income, expense


def build_recognition_prompt(catalog: CategoryCatalog) -> str:
    """
    Build the extraction instruction for one statement image.

    Categories are rendered as ``id:name``. The colon separator is
    deliberate: ids themselves contain hyphens (``other-income``).
    """
    income, expense = format_category_options(catalog)

    return f"""You are reading a bank or payment-app statement for a personal bookkeeping app.

Extract EVERY transaction row visible in the image. For each row return:
1. date: the transaction date, formatted YYYY-MM-DD
2. amount: a plain number, without currency symbols or thousands separators
3. type: "income" for money received, "expense" for money spent
4. category: the best matching category id from the lists below
5. description: a short description of the transaction
6. originalInfo: the full original row text (merchant, counterparty, memo, time, balance)

Income categories (id:name): {income}
Expense categories (id:name): {expense}

Category rules:
- Output ONLY the id, the part before the colon. Never include the name.
- Example: for "food:餐饮" output "food"; for "custom-...:房租" output the custom-... id.
- Income rows must use an income category id, expense rows an expense category id.

Missing dates:
- Statements list transactions newest first.
- If a row has no date, use the date of the nearest dated row BELOW it
  (the same day or the next day); never leave date empty.

Respond with ONLY a JSON array, no commentary, in this format:
[
  {{"date": "2024-01-15", "amount": 50.00, "type": "expense", "category": "food", "description": "午餐", "originalInfo": "2024-01-15 12:30 XX餐厅 消费 ¥50.00"}}
]

If the image contains no transactions, respond with []."""


class StatementRecognitionAgent:
    """
    AI agent for statement import.

    RESPONSIBILITIES:
    - Resolve which API key and model to use (caller's, else server default)
    - Validate the image before it leaves the server
    - Call the vision model once and parse its reply

    BOUNDARIES:
    - NEVER persists data
    - NEVER caches categories; the caller passes a fresh catalog
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini

    def resolve_credentials(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> tuple[str, str]:
        """Caller-supplied key/model win over the server defaults."""
        key = api_key or self._settings.api_key
        if not key:
            raise ConfigurationError(
                "Vision API key is not configured; set one on the settings page"
            )
        return key, model or self._settings.model_name

    def _build_model(self, api_key: str, model_name: str):
        """Configure Google Generative AI for this call."""
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def complete(
        self,
        image: StatementImage,
        prompt: str,
        api_key: str,
        model_name: str,
    ) -> str:
        """
        Send one multimodal request and return the reply text.

        Raises:
            UpstreamError: the API call failed or returned no text.
        """
        model = self._build_model(api_key, model_name)

        try:
            response = await model.generate_content_async(
                [prompt, {"mime_type": image.mime_type, "data": image.data}]
            )
        except google_exceptions.GoogleAPICallError as e:
            logger.error("vision_api_call_failed", model=model_name, code=e.code, error=e.message)
            raise UpstreamError(
                f"Vision API call failed: {e.code} {e.message}",
                upstream_status=str(e.code),
            ) from e

        try:
            text = response.text
        except ValueError as e:
            # Raised when the reply has no text part (blocked or empty candidate)
            raise UpstreamError("Vision API returned no content") from e

        if not text or not text.strip():
            raise UpstreamError("Vision API returned no content")
        return text

    async def recognize(
        self,
        image_base64: str,
        catalog: CategoryCatalog,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> list[TransactionProposal]:
        """
        Extract proposed transactions from one statement image.

        Returns an ordered list, possibly empty. Raises InvalidInputError,
        ConfigurationError, UpstreamError or ParseError.
        """
        if not image_base64:
            raise InvalidInputError("Image data is required")

        key, model_name = self.resolve_credentials(api_key, model)
        image = decode_statement_image(image_base64)
        prompt = build_recognition_prompt(catalog)

        text = await self.complete(image, prompt, key, model_name)
        proposals = parse_recognition_output(text)

        logger.info(
            "statement_recognized",
            model=model_name,
            image_format=image.format,
            proposals=len(proposals),
        )
        return proposals
