"""Tests for description generation (Gemini with local template fallback)."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from card_studio.schemas.card import TextGenerationOptions
from card_studio.schemas.product import Product
from card_studio.services.gemini_client import GeminiError
from card_studio.services.text_generation import (
    CALL_TO_ACTIONS,
    SOURCE_FALLBACK,
    SOURCE_GEMINI,
    TextGenerationService,
    build_prompt,
    create_fallback_description,
)


class TestFallbackDescription:
    """Deterministic template used when Gemini is unavailable."""

    def test_contains_name_and_discount(self, sample_product):
        text = create_fallback_description(sample_product)
        assert text
        assert "Fone de Ouvido Bluetooth Pro" in text
        assert "20% OFF" in text

    def test_shows_original_and_current_price(self, sample_product):
        text = create_fallback_description(sample_product)
        # 80 / (1 - 0.20) = 100
        assert "De R$100.00 por apenas R$80.00" in text

    def test_discount_without_original_price_still_mentions_off(self):
        product = Product(itemId="9", productName="Camiseta Básica", price=50.0)
        product.price_discount_rate = 30
        text = create_fallback_description(product)
        assert "30% OFF" in text
        assert "Camiseta Básica" in text

    def test_no_discount_shows_plain_price(self):
        product = Product(itemId="10", productName="Livro de Receitas", price=39.9)
        text = create_fallback_description(product)
        assert "OFF" not in text
        assert "Apenas R$39.90" in text

    def test_category_hashtags(self):
        product = Product(itemId="11", productName="Smartphone Xiaomi Redmi", price=999.0)
        text = create_fallback_description(product)
        assert "#smartphone" in text
        assert "#desconto #promocao" in text

    def test_without_hashtags(self, sample_product):
        options = TextGenerationOptions(includeHashtags=False)
        text = create_fallback_description(sample_product, options)
        assert "#" not in text

    def test_without_emojis(self, sample_product):
        options = TextGenerationOptions(includeEmojis=False)
        text = create_fallback_description(sample_product, options)
        assert "💰" not in text
        assert "SUPER OFERTA!" in text
        assert "20% OFF" in text

    def test_free_shipping_line(self):
        product = Product(itemId="12", productName="Panela", price=100.0, freeShipping=True)
        assert "FRETE GRÁTIS" in create_fallback_description(product)

    def test_call_to_action_is_stable_per_product(self, sample_product):
        first = create_fallback_description(sample_product)
        second = create_fallback_description(sample_product)
        assert first == second
        assert any(cta in first for cta in CALL_TO_ACTIONS)


class TestBuildPrompt:
    """Prompt sent to Gemini."""

    def test_includes_product_facts(self, sample_product):
        prompt = build_prompt(sample_product, TextGenerationOptions())
        assert "Nome do produto: Fone de Ouvido Bluetooth Pro" in prompt
        assert "Desconto: 20%" in prompt
        assert "Loja: Loja Teste" in prompt
        assert "Limite a resposta a 300 caracteres" in prompt

    def test_respects_emoji_and_hashtag_flags(self, sample_product):
        options = TextGenerationOptions(includeEmojis=False, includeHashtags=False)
        prompt = build_prompt(sample_product, options)
        assert "Não use emojis" in prompt
        assert "Não use hashtags" in prompt

    def test_single_tone_string_is_accepted(self, sample_product):
        options = TextGenerationOptions(tone="humorous")
        assert options.tone == ["humorous"]
        assert "humorístico" in build_prompt(sample_product, options)


class TestTextGenerationService:
    """Service-level source selection."""

    @pytest.mark.asyncio
    async def test_no_client_uses_fallback(self, sample_product):
        service = TextGenerationService(None)
        text, source = await service.generate_product_description(sample_product)
        assert source == SOURCE_FALLBACK
        assert "20% OFF" in text

    @pytest.mark.asyncio
    async def test_gemini_text_returned(self, sample_product):
        client = MagicMock()
        client.enabled = True
        client.generate_content = AsyncMock(return_value="Descrição incrível 🔥")
        service = TextGenerationService(client)

        text, source = await service.generate_product_description(sample_product)

        assert source == SOURCE_GEMINI
        assert text == "Descrição incrível 🔥"
        kwargs = client.generate_content.call_args.kwargs
        assert kwargs["max_output_tokens"] == 300

    @pytest.mark.asyncio
    async def test_gemini_failure_falls_back(self, sample_product):
        client = MagicMock()
        client.enabled = True
        client.generate_content = AsyncMock(side_effect=GeminiError("All Gemini models failed"))
        service = TextGenerationService(client)

        text, source = await service.generate_product_description(sample_product)

        assert source == SOURCE_FALLBACK
        assert "Fone de Ouvido Bluetooth Pro" in text
