"""Tests for the provider adapters against mocked HTTP transports."""

import json

import httpx
import pytest

from image_relay.config.settings import PollingConfig
from image_relay.core.exceptions import (
    BadRequest,
    CredentialInvalid,
    CredentialMissing,
    GenerationTimeout,
    NoProviderAvailable,
    ProviderEmptyResponse,
    ProviderError,
    QuotaExceeded,
)
from image_relay.core.models import (
    Credential,
    GenerationRequest,
    ImageFormat,
    ReferenceType,
)
from image_relay.services.providers import (
    GeminiProvider,
    HuggingFaceProvider,
    OpenAIProvider,
    ProviderFactory,
    ReplicateProvider,
    StabilityProvider,
)
from image_relay.services.providers.base import classify_http_error
from image_relay.services.providers import gemini_provider
from image_relay.services.providers.gemini_provider import extract_inline_image


def i2i_request(reference_image, strength=0.8, reference_type=ReferenceType.STYLE, **kwargs):
    return GenerationRequest(
        prompt="a lighthouse at dusk",
        reference_images=[reference_image],
        strength=strength,
        reference_type=reference_type,
        **kwargs,
    )


class TestErrorClassification:
    """Tests for classify_http_error."""

    @pytest.mark.parametrize(
        "status, error_type",
        [
            (401, CredentialInvalid),
            (403, CredentialInvalid),
            (402, QuotaExceeded),
            (429, QuotaExceeded),
            (400, BadRequest),
            (422, BadRequest),
            (500, ProviderError),
            (502, ProviderError),
        ],
    )
    def test_status_mapping(self, status, error_type):
        error = classify_http_error(status, "upstream says no", "openai")
        assert type(error) is error_type
        assert error.provider == "openai"
        assert "upstream says no" in error.message


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def make(self, handler, mock_client, provider_config, **kwargs):
        return OpenAIProvider(
            "sk-test-1234567890",
            config=provider_config("openai"),
            client=mock_client(handler),
            **kwargs,
        )

    def test_requires_api_key(self, provider_config):
        with pytest.raises(CredentialMissing):
            OpenAIProvider("", config=provider_config("openai"))

    @pytest.mark.asyncio
    async def test_generate_downloads_result(self, mock_client, provider_config, png_bytes):
        """Should request a URL, download it and return raw bytes."""
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path == "/v1/images/generations":
                return httpx.Response(200, json={"data": [{
                    "url": "https://cdn.test/img.png",
                    "revised_prompt": "a cat, photorealistic",
                }]})
            return httpx.Response(200, content=png_bytes)

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat", quality="hd"))

        assert result.format == ImageFormat.BYTES
        assert result.data == png_bytes
        assert result.service == "openai"
        assert result.model == "dall-e-3"
        assert result.url == "https://cdn.test/img.png"
        assert result.revised_prompt == "a cat, photorealistic"

        payload = json.loads(seen[0].content)
        assert payload["quality"] == "hd"
        assert payload["style"] == "natural"
        assert seen[0].headers["Authorization"] == "Bearer sk-test-1234567890"
        assert str(seen[1].url) == "https://cdn.test/img.png"

    def test_small_sizes_use_dalle2(self, provider_config):
        provider = OpenAIProvider("sk-test-1234567890", config=provider_config("openai"))
        payload = provider.build_payload(GenerationRequest(prompt="a cat", size="512x512"))
        assert payload["model"] == "dall-e-2"
        assert "quality" not in payload

    def test_option_validation(self, provider_config):
        provider = OpenAIProvider("sk-test-1234567890", config=provider_config("openai"))
        with pytest.raises(BadRequest):
            provider.validate_options("dall-e-3", "1024x1024", "standard", "natural", n=2)
        with pytest.raises(BadRequest):
            provider.validate_options("dall-e-3", "1024x1024", "standard", "cartoon")
        with pytest.raises(BadRequest):
            provider.validate_options("dall-e-2", "1792x1024", None, None)
        with pytest.raises(BadRequest):
            provider.validate_options("dall-e-2", "512x512", None, None, n=5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [(401, CredentialInvalid), (429, QuotaExceeded), (400, BadRequest)],
    )
    async def test_http_errors_classified(self, mock_client, provider_config, status, error_type):
        def handler(request):
            return httpx.Response(status, json={"error": {"message": "bad things"}})

        provider = self.make(handler, mock_client, provider_config)
        with pytest.raises(error_type) as exc_info:
            await provider.generate_image(GenerationRequest(prompt="a cat"))
        assert "bad things" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_url(self, mock_client, provider_config):
        provider = self.make(lambda request: httpx.Response(200, json={"data": []}), mock_client, provider_config)
        with pytest.raises(ProviderEmptyResponse):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_timeout(self, mock_client, provider_config):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        provider = self.make(handler, mock_client, provider_config)
        with pytest.raises(GenerationTimeout):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_upper_case_size(self, mock_client, provider_config, png_bytes):
        """Should treat 1024X1024 like 1024x1024 when picking the model."""
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path == "/v1/images/generations":
                return httpx.Response(200, json={"data": [{"url": "https://cdn.test/img.png"}]})
            return httpx.Response(200, content=png_bytes)

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat", size="1024X1024"))

        payload = json.loads(seen[0].content)
        assert result.model == "dall-e-3"
        assert payload["model"] == "dall-e-3"
        assert payload["size"] == "1024x1024"

    @pytest.mark.asyncio
    async def test_non_object_body(self, mock_client, provider_config):
        provider = self.make(
            lambda request: httpx.Response(200, json=[]), mock_client, provider_config
        )
        with pytest.raises(ProviderEmptyResponse) as exc_info:
            await provider.generate_image(GenerationRequest(prompt="a cat"))
        assert exc_info.value.provider == "openai"


class TestStabilityProvider:
    """Tests for StabilityProvider."""

    @pytest.mark.asyncio
    async def test_text_to_image(self, mock_client, provider_config, png_b64, png_bytes):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"artifacts": [{"base64": png_b64, "seed": 42}]})

        provider = StabilityProvider(
            "sk-stab-1234567890", config=provider_config("stability"), client=mock_client(handler)
        )
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert seen[0].url.path == "/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"
        assert json.loads(seen[0].content)["width"] == 1024
        assert result.format == ImageFormat.BASE64
        assert result.seed == 42
        assert result.image_bytes() == png_bytes

    def test_small_size_uses_small_engine(self, provider_config):
        provider = StabilityProvider("sk-stab-1234567890", config=provider_config("stability"))
        assert provider.select_engine(512, 512) == "stable-diffusion-v1-6"
        assert provider.select_engine(1024, 1024) == "stable-diffusion-xl-1024-v1-0"

    @pytest.mark.asyncio
    async def test_image_to_image_uses_inverse_strength(
        self, mock_client, provider_config, png_b64, reference_image
    ):
        """Should upload the reference as multipart with inverted image_strength."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"artifacts": [{"base64": png_b64, "seed": 7}]})

        provider = StabilityProvider(
            "sk-stab-1234567890", config=provider_config("stability"), client=mock_client(handler)
        )
        await provider.generate_image(i2i_request(reference_image, strength=0.8))

        request = seen[0]
        assert request.url.path.endswith("/image-to-image")
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="image_strength"\r\n\r\n0.6\r\n' in body
        assert b'name="cfg_scale"\r\n\r\n10.5\r\n' in body
        assert b'name="init_image"; filename="ref.png"' in body

    @pytest.mark.asyncio
    async def test_no_artifacts(self, mock_client, provider_config):
        provider = StabilityProvider(
            "sk-stab-1234567890",
            config=provider_config("stability"),
            client=mock_client(lambda request: httpx.Response(200, json={"artifacts": []})),
        )
        with pytest.raises(ProviderEmptyResponse):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_html_body_is_classified(self, mock_client, provider_config):
        """Should raise a provider error, not a decode error, for a gateway page."""
        provider = StabilityProvider(
            "sk-stab-1234567890",
            config=provider_config("stability"),
            client=mock_client(
                lambda request: httpx.Response(
                    200, content=b"<html>gateway</html>", headers={"Content-Type": "text/html"}
                )
            ),
        )
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert exc_info.value.provider == "stability"
        assert "gateway" in exc_info.value.message


class TestReplicateProvider:
    """Tests for ReplicateProvider."""

    def make(self, handler, mock_client, provider_config, no_sleep, **kwargs):
        return ReplicateProvider(
            "r8_test1234567890",
            config=provider_config("replicate"),
            client=mock_client(handler),
            sleep=no_sleep,
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self, mock_client, provider_config, no_sleep, png_bytes):
        statuses = iter(["processing", "succeeded"])
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "POST":
                return httpx.Response(201, json={"id": "p1", "status": "starting"})
            if request.url.path == "/v1/predictions/p1":
                return httpx.Response(200, json={
                    "id": "p1",
                    "status": next(statuses),
                    "output": ["https://replicate.delivery/out.png"],
                })
            return httpx.Response(200, content=png_bytes)

        provider = self.make(handler, mock_client, provider_config, no_sleep)
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert result.service == "replicate"
        assert result.format == ImageFormat.BYTES
        assert result.data == png_bytes
        assert result.url == "https://replicate.delivery/out.png"
        assert seen[0].headers["Authorization"] == "Token r8_test1234567890"
        assert json.loads(seen[0].content)["version"] == provider.version
        assert no_sleep.delays == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_failed_prediction(self, mock_client, provider_config, no_sleep):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"id": "p1", "status": "starting"})
            return httpx.Response(200, json={"id": "p1", "status": "failed", "error": "NSFW content"})

        provider = self.make(handler, mock_client, provider_config, no_sleep)
        with pytest.raises(ProviderError, match="Generation failed: NSFW content"):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_times_out(self, mock_client, provider_config, no_sleep):
        polls = []

        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"id": "p1", "status": "starting"})
            polls.append(request)
            return httpx.Response(200, json={"id": "p1", "status": "processing"})

        provider = self.make(
            handler, mock_client, provider_config, no_sleep,
            polling=PollingConfig(interval=5.0, max_attempts=3),
        )
        with pytest.raises(GenerationTimeout):
            await provider.generate_image(GenerationRequest(prompt="a cat"))
        assert len(polls) == 3

    def test_image_to_image_payload(self, provider_config, reference_image):
        provider = ReplicateProvider("r8_test1234567890", config=provider_config("replicate"))
        payload = provider.build_payload(
            i2i_request(reference_image, strength=0.9, reference_type=ReferenceType.TRANSFORMATION)
        )
        model_input = payload["input"]
        assert model_input["image"].startswith("data:image/png;base64,")
        assert model_input["prompt_strength"] == pytest.approx(0.9)
        assert model_input["guidance_scale"] == pytest.approx(7.5)

    def test_text_payload_has_no_image(self, provider_config):
        provider = ReplicateProvider("r8_test1234567890", config=provider_config("replicate"))
        payload = provider.build_payload(GenerationRequest(prompt="a cat", size="512x512"))
        assert "image" not in payload["input"]
        assert payload["input"]["width"] == 512


class TestHuggingFaceProvider:
    """Tests for HuggingFaceProvider model chain."""

    def make(self, handler, mock_client, provider_config):
        return HuggingFaceProvider(
            "hf_test1234567890",
            config=provider_config("huggingface"),
            client=mock_client(handler),
            models=["org/model-a", "org/model-b", "org/model-c"],
        )

    @pytest.mark.asyncio
    async def test_advances_on_loading_and_rejection(self, mock_client, provider_config, png_bytes):
        """Should skip a loading model and a rejecting model and use the third."""
        seen = []

        def handler(request):
            seen.append(request.url.path)
            if request.url.path.endswith("model-a"):
                return httpx.Response(503, json={"error": "Model is loading"})
            if request.url.path.endswith("model-b"):
                return httpx.Response(400, json={"error": "Bad input"})
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/jpeg"})

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert result.model == "org/model-c"
        assert result.data == png_bytes
        assert result.mime_type == "image/jpeg"
        assert seen == ["/models/org/model-a", "/models/org/model-b", "/models/org/model-c"]

    @pytest.mark.asyncio
    async def test_all_loading(self, mock_client, provider_config):
        provider = self.make(lambda r: httpx.Response(503, json={"error": "loading"}), mock_client, provider_config)
        with pytest.raises(ProviderError, match="currently loading"):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_all_rejected(self, mock_client, provider_config):
        provider = self.make(lambda r: httpx.Response(400, json={"error": "nope"}), mock_client, provider_config)
        with pytest.raises(BadRequest):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_auth_error_ends_chain(self, mock_client, provider_config):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(401, json={"error": "Invalid token"})

        provider = self.make(handler, mock_client, provider_config)
        with pytest.raises(CredentialInvalid):
            await provider.generate_image(GenerationRequest(prompt="a cat"))
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_empty_responses(self, mock_client, provider_config):
        provider = self.make(lambda r: httpx.Response(200, content=b""), mock_client, provider_config)
        with pytest.raises(ProviderEmptyResponse):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    def test_image_to_image_payload(self, provider_config, reference_image):
        provider = HuggingFaceProvider("hf_test1234567890", config=provider_config("huggingface"))
        request = i2i_request(reference_image, strength=0.8)
        payload = provider.build_payload(request, provider.translate_reference(request))
        assert payload["inputs"] == reference_image.encoded
        assert payload["parameters"]["prompt"] == "a lighthouse at dusk"
        assert payload["parameters"]["strength"] == pytest.approx(0.48)
        assert payload["parameters"]["guidance_scale"] == pytest.approx(10.5)


def inline_image_body(data, mime_type="image/png"):
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": data}}]}}]}


TEXT_ONLY_BODY = {"candidates": [{"content": {"parts": [{"text": "I cannot draw that."}]}}]}


class TestGeminiProvider:
    """Tests for GeminiProvider and its Imagen fallback chain."""

    def make(self, handler, mock_client, provider_config):
        return GeminiProvider(
            "AIza-test-1234567890", config=provider_config("gemini"), client=mock_client(handler)
        )

    @pytest.mark.asyncio
    async def test_primary_model_image(self, mock_client, provider_config, png_b64, reference_image):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=inline_image_body(png_b64))

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(i2i_request(reference_image))

        assert result.model == "gemini-2.0-flash-exp"
        assert result.format == ImageFormat.BASE64
        assert result.data == png_b64
        assert seen[0].headers["x-goog-api-key"] == "AIza-test-1234567890"
        parts = json.loads(seen[0].content)["contents"][0]["parts"]
        assert parts[1]["inline_data"]["data"] == reference_image.encoded

    @pytest.mark.asyncio
    async def test_falls_back_to_imagen_without_image(self, mock_client, provider_config, png_b64):
        def handler(request):
            if "gemini-2.0-flash-exp" in request.url.path:
                return httpx.Response(200, json=TEXT_ONLY_BODY)
            return httpx.Response(200, json=inline_image_body(png_b64))

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert result.model == "gemini-imagen-3.0-generate-001"
        assert isinstance(result.seed, int)

    @pytest.mark.asyncio
    async def test_imagen_chain_advances(self, mock_client, provider_config, png_b64):
        def handler(request):
            path = request.url.path
            if "gemini-2.0-flash-exp" in path:
                return httpx.Response(400, json={"error": {"message": "modality not supported"}})
            if "imagen-3.0-generate-001" in path:
                return httpx.Response(500, json={"error": {"message": "internal"}})
            return httpx.Response(200, json=inline_image_body(png_b64))

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert result.model == "gemini-imagegeneration@006"

    @pytest.mark.asyncio
    async def test_primary_auth_error(self, mock_client, provider_config):
        provider = self.make(
            lambda r: httpx.Response(401, json={"error": {"message": "API key not valid"}}),
            mock_client,
            provider_config,
        )
        with pytest.raises(CredentialInvalid):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_imagen_auth_error_is_fatal(self, mock_client, provider_config):
        seen = []

        def handler(request):
            seen.append(request)
            if "gemini-2.0-flash-exp" in request.url.path:
                return httpx.Response(200, json=TEXT_ONLY_BODY)
            return httpx.Response(403, json={"error": {"message": "permission denied"}})

        provider = self.make(handler, mock_client, provider_config)
        with pytest.raises(CredentialInvalid):
            await provider.generate_image(GenerationRequest(prompt="a cat"))
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_all_models_fail(self, mock_client, provider_config):
        provider = self.make(lambda r: httpx.Response(200, json=TEXT_ONLY_BODY), mock_client, provider_config)
        with pytest.raises(ProviderEmptyResponse):
            await provider.generate_image(GenerationRequest(prompt="a cat"))

    @pytest.mark.asyncio
    async def test_all_models_reject_request(self, mock_client, provider_config):
        """Should keep the bad-request kind when every model rejects the prompt."""
        provider = self.make(
            lambda r: httpx.Response(400, json={"error": {"message": "prompt blocked"}}),
            mock_client,
            provider_config,
        )
        with pytest.raises(BadRequest) as exc_info:
            await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert exc_info.value.provider == "gemini"
        assert "prompt blocked" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_each_imagen_model_gets_its_own_seed(
        self, mock_client, provider_config, png_b64, monkeypatch
    ):
        seeds = iter([11, 22])
        monkeypatch.setattr(gemini_provider.random, "randint", lambda low, high: next(seeds))
        sent = []

        def handler(request):
            path = request.url.path
            if "gemini-2.0-flash-exp" in path:
                return httpx.Response(200, json=TEXT_ONLY_BODY)
            sent.append(json.loads(request.content)["generationConfig"]["seed"])
            if "imagen-3.0-generate-001" in path:
                return httpx.Response(500, json={"error": {"message": "internal"}})
            return httpx.Response(200, json=inline_image_body(png_b64))

        provider = self.make(handler, mock_client, provider_config)
        result = await provider.generate_image(GenerationRequest(prompt="a cat"))

        assert sent == [11, 22]
        assert result.seed == 22

    def test_extract_inline_image_snake_case(self):
        body = {"candidates": [{"content": {"parts": [
            {"text": "here you go"},
            {"inline_data": {"mime_type": "image/jpeg", "data": "abc"}},
        ]}}]}
        assert extract_inline_image(body) == {"data": "abc", "mime_type": "image/jpeg"}
        assert extract_inline_image({}) is None


class TestProviderFactory:
    """Tests for ProviderFactory."""

    def test_lists_all_providers(self):
        assert set(ProviderFactory.list_providers()) >= {
            "openai", "stability", "replicate", "huggingface", "gemini",
        }

    def test_unknown_provider(self):
        with pytest.raises(NoProviderAvailable):
            ProviderFactory.create_provider("midjourney", "key-1234567890")

    def test_create_from_credential(self, provider_config):
        credential = Credential(
            key_name="STABILITY_API_KEY",
            service="stability",
            priority=2,
            description="Stability AI (Stable Diffusion)",
            cost="$0.01 per image",
            api_key="sk-stab-1234567890",
        )
        provider = ProviderFactory.create_from_credential(
            credential, config=provider_config("stability")
        )
        assert isinstance(provider, StabilityProvider)
        assert provider.api_key == "sk-stab-1234567890"
        assert provider.get_provider_info()["capabilities"]["image_to_image"] == "excellent"
