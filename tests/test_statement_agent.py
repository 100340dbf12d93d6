"""
Tests for statement image checks and the recognition agent.

No real API calls: the Gemini model is replaced with a fake.
"""

import base64

import pytest
from google.api_core import exceptions as google_exceptions

from cashbook.agents import StatementRecognitionAgent, build_recognition_prompt
from cashbook.agents import statement_agent
from cashbook.categories import EXPENSE_CATEGORIES, INCOME_CATEGORIES
from cashbook.config import GeminiSettings
from cashbook.errors import ConfigurationError, InvalidInputError, ParseError, UpstreamError
from cashbook.models.finance import Category, CategoryCatalog
from cashbook.services.image import decode_statement_image, encode_image, strip_data_url


CUSTOM = Category(
    id="custom-0f8fad5b-d9cb-469f-a165-70867728950e",
    name="房租",
    icon="🏠",
    color="#123456",
    type="expense",
)

CATALOG = CategoryCatalog(
    income=list(INCOME_CATEGORIES),
    expense=[*EXPENSE_CATEGORIES, CUSTOM],
)


class FakeResponse:
    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error

    @property
    def text(self):
        if self._error:
            raise self._error
        return self._text


class FakeModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.contents = None

    async def generate_content_async(self, contents):
        self.contents = contents
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def fake_gemini(monkeypatch):
    """Patch genai so the agent builds a FakeModel; returns the model and call log."""
    state = {"model": FakeModel(FakeResponse("[]")), "configured": [], "built": []}

    def configure(api_key):
        state["configured"].append(api_key)

    def generative_model(model_name, generation_config):
        state["built"].append({"model_name": model_name, "generation_config": generation_config})
        return state["model"]

    monkeypatch.setattr(statement_agent.genai, "configure", configure)
    monkeypatch.setattr(statement_agent.genai, "GenerativeModel", generative_model)
    return state


@pytest.fixture
def agent():
    return StatementRecognitionAgent(GeminiSettings(api_key="server-key", model_name="gemini-1.5-flash"))


class TestStatementImage:
    """Tests for decoding and checking uploaded images."""

    def test_decodes_png(self, image_bytes):
        image = decode_statement_image(encode_image(image_bytes("PNG")))
        assert image.format == "png"
        assert image.mime_type == "image/png"
        assert (image.width, image.height) == (8, 8)

    def test_accepts_data_url(self, image_bytes):
        payload = "data:image/jpeg;base64," + encode_image(image_bytes("JPEG"))
        image = decode_statement_image(payload)
        assert image.format == "jpeg"
        assert image.mime_type == "image/jpeg"

    def test_strip_data_url_leaves_bare_base64(self):
        assert strip_data_url("abcd") == "abcd"

    def test_rejects_empty(self):
        with pytest.raises(InvalidInputError, match="required"):
            decode_statement_image("  ")

    def test_rejects_bad_base64(self):
        with pytest.raises(InvalidInputError, match="base64"):
            decode_statement_image("not base64 at all!")

    def test_rejects_non_image(self):
        with pytest.raises(InvalidInputError, match="readable image"):
            decode_statement_image(base64.b64encode(b"plain text").decode())

    def test_rejects_oversized(self, image_bytes):
        data = image_bytes("PNG")
        with pytest.raises(InvalidInputError, match="too large"):
            decode_statement_image(encode_image(data), max_bytes=len(data) - 1)

    def test_rejects_unsupported_format(self, image_bytes):
        with pytest.raises(InvalidInputError, match="Unsupported image format"):
            decode_statement_image(encode_image(image_bytes("GIF")))


class TestRecognitionPrompt:
    """Tests for the extraction instruction."""

    def test_lists_categories_as_id_name_pairs(self):
        prompt = build_recognition_prompt(CATALOG)
        assert "salary:工资" in prompt
        assert "food:餐饮" in prompt
        assert f"{CUSTOM.id}:房租" in prompt

    def test_states_output_rules(self):
        prompt = build_recognition_prompt(CATALOG)
        assert "Output ONLY the id" in prompt
        assert "originalInfo" in prompt
        assert "respond with []" in prompt


class TestStatementRecognitionAgent:
    """Tests for one recognition call."""

    async def test_recognize_parses_and_repairs(self, agent, fake_gemini, png_base64):
        fake_gemini["model"] = FakeModel(FakeResponse(
            '```json\n[{"date":"2024-01-15","amount":-50,"type":"expense",'
            '"category":"food:餐饮","description":"午餐","originalInfo":"XX餐厅"}]\n```'
        ))

        proposals = await agent.recognize(png_base64, CATALOG)

        assert len(proposals) == 1
        assert proposals[0].category == "food"
        assert str(proposals[0].amount) == "50"
        assert fake_gemini["configured"] == ["server-key"]
        assert fake_gemini["built"][0]["model_name"] == "gemini-1.5-flash"

        prompt, image_part = fake_gemini["model"].contents
        assert "food:餐饮" in prompt
        assert image_part["mime_type"] == "image/png"

    async def test_caller_key_and_model_win(self, agent, fake_gemini, png_base64):
        await agent.recognize(png_base64, CATALOG, api_key="user-key", model="gemini-1.5-pro")
        assert fake_gemini["configured"] == ["user-key"]
        assert fake_gemini["built"][0]["model_name"] == "gemini-1.5-pro"

    async def test_missing_image(self, agent, fake_gemini):
        with pytest.raises(InvalidInputError):
            await agent.recognize("", CATALOG)
        assert fake_gemini["built"] == []

    async def test_missing_key(self, fake_gemini, png_base64):
        agent = StatementRecognitionAgent(GeminiSettings(api_key=None))
        with pytest.raises(ConfigurationError):
            await agent.recognize(png_base64, CATALOG)
        assert fake_gemini["built"] == []

    async def test_api_failure_becomes_upstream_error(self, agent, fake_gemini, png_base64):
        fake_gemini["model"] = FakeModel(error=google_exceptions.InternalServerError("model overloaded"))
        with pytest.raises(UpstreamError, match="Vision API call failed"):
            await agent.recognize(png_base64, CATALOG)

    async def test_blocked_reply_becomes_upstream_error(self, agent, fake_gemini, png_base64):
        fake_gemini["model"] = FakeModel(FakeResponse(error=ValueError("no parts")))
        with pytest.raises(UpstreamError, match="no content"):
            await agent.recognize(png_base64, CATALOG)

    async def test_empty_reply_becomes_upstream_error(self, agent, fake_gemini, png_base64):
        fake_gemini["model"] = FakeModel(FakeResponse("   "))
        with pytest.raises(UpstreamError, match="no content"):
            await agent.recognize(png_base64, CATALOG)

    async def test_unparseable_reply(self, agent, fake_gemini, png_base64):
        fake_gemini["model"] = FakeModel(FakeResponse("Sorry, I cannot read this image."))
        with pytest.raises(ParseError):
            await agent.recognize(png_base64, CATALOG)
