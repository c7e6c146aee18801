"""
Product description generation.

Uses Gemini to write short promotional copy (pt-BR) for a product card.
Any Gemini failure falls back to a deterministic local template so the
card flow never hard-fails on text.
"""

from __future__ import annotations

import logging
import re
import zlib
from typing import List, Optional, Tuple

from card_studio.schemas.card import TextGenerationOptions
from card_studio.schemas.product import Product
from card_studio.services.gemini_client import GeminiClient, GeminiError, get_gemini_client

logger = logging.getLogger(__name__)

SOURCE_GEMINI = "gemini"
SOURCE_FALLBACK = "fallback"

_PROMPT_TEMPERATURE = 0.8

TONE_LABELS = {
    "youthful": "jovem",
    "humorous": "humorístico",
    "persuasive": "persuasivo",
    "professional": "profissional",
    "casual": "descontraído",
}

# (name pattern, emojis, hashtags) - first match wins
_CATEGORY_RULES: List[Tuple[re.Pattern, str, str]] = [
    (re.compile(r"celular|smartphone|iphone|samsung|xiaomi", re.I), "📱 💯", "#tech #smartphone #oferta"),
    (re.compile(r"roupa|camiseta|blusa|vestido|calça", re.I), "👕 👗", "#moda #estilo #oferta"),
    (re.compile(r"sapato|tênis|sandália|calçado", re.I), "👟 👠", "#calçados #moda #estilo"),
    (re.compile(r"maquiagem|batom|perfume|beleza", re.I), "💄 ✨", "#beleza #makeup #oferta"),
    (re.compile(r"eletrônico|fone|headset|gadget|computador|notebook", re.I), "🔌 💻", "#tech #gadget #oferta"),
    (re.compile(r"joia|colar|pulseira|anel|brinco", re.I), "💍 ✨", "#acessorios #estilo #oferta"),
    (re.compile(r"livro|leitura|literatura", re.I), "📚 📖", "#livros #leitura #oferta"),
    (re.compile(r"cozinha|panela|utensílio|fogão", re.I), "🍳 🥘", "#cozinha #casa #oferta"),
]
_DEFAULT_EMOJIS = "🛍️ 🔥"
_DEFAULT_HASHTAGS = "#oferta #shopee"

CALL_TO_ACTIONS = [
    "CORRE QUE TÁ ACABANDO! 🏃‍♂️",
    "NÃO PERCA ESSA CHANCE! ⏰",
    "GARANTA O SEU AGORA! 👆",
    "APROVEITE ENQUANTO DURA! ⚡",
    "OFERTA POR TEMPO LIMITADO! ⏱️",
    "CLICA NO LINK E GARANTE! 🔗",
    "ÚLTIMAS UNIDADES! 🔥",
]

_EMOJI_RE = re.compile(
    "[\U0001F300-\U0001FAFF\u2300-\u23FF\u2600-\u27BF\u2B00-\u2BFF\u200D\uFE0F]+"
)


def _category_tags(name: str) -> Tuple[str, str]:
    for pattern, emojis, hashtags in _CATEGORY_RULES:
        if pattern.search(name):
            return emojis, hashtags
    return _DEFAULT_EMOJIS, _DEFAULT_HASHTAGS


def _pick_call_to_action(product_id: str) -> str:
    """Stable per product so repeated renders produce identical text."""
    index = zlib.crc32(product_id.encode("utf-8")) % len(CALL_TO_ACTIONS)
    return CALL_TO_ACTIONS[index]


def _brl(value: float) -> str:
    return f"R${value:.2f}"


def create_fallback_description(
    product: Product,
    options: Optional[TextGenerationOptions] = None,
) -> str:
    """Deterministic promotional text built from product fields.

    Always contains the product name and, when discounted, ``"<n>% OFF"``.
    """
    options = options or TextGenerationOptions()
    name = product.product_name.strip() or "Produto"
    emojis, hashtags = _category_tags(name)

    lines = [f"{emojis} SUPER OFERTA! {emojis}", "", name, ""]
    if product.has_discount and product.original_price:
        lines.append(
            f"💰 Com {product.discount_percentage}% OFF! "
            f"De {_brl(product.original_price)} por apenas {_brl(product.price)}"
        )
    elif product.has_discount:
        lines.append(f"💰 Com {product.discount_percentage}% OFF! Por apenas {_brl(product.price)}")
    else:
        lines.append(f"💰 Apenas {_brl(product.price)}")
    if product.free_shipping:
        lines.append("✅ FRETE GRÁTIS para todo o Brasil!")
    lines.extend(["", _pick_call_to_action(product.item_id)])
    if options.include_hashtags:
        lines.extend(["", f"{hashtags} #desconto #promocao"])

    text = "\n".join(lines)
    if not options.include_emojis:
        text = _EMOJI_RE.sub("", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
    return text.strip()


def build_prompt(product: Product, options: TextGenerationOptions) -> str:
    tone = ", ".join(TONE_LABELS.get(t, t) for t in options.tone) or "jovem e persuasivo"

    facts = [f"Nome do produto: {product.product_name}", f"Preço: R$ {product.price:.2f}"]
    if product.has_discount:
        facts.append(f"Desconto: {product.discount_percentage}%")
    if product.shop_name:
        facts.append(f"Loja: {product.shop_name}")
    if product.description:
        facts.append(f"Descrição original do produto: {product.description[:800]}")
    if product.attributes:
        attrs = "\n".join(f"{a.get('name')}: {a.get('value')}" for a in product.attributes[:10])
        facts.append(f"Atributos do produto:\n{attrs}")

    rules = [
        f"Use um tom {tone}",
        "Seja criativo e original, não apenas repita as informações acima",
        "Não mencione número de vendas ou avaliações, essas informações já estão no card",
    ]
    if options.highlight_features:
        rules.append("Foque nos benefícios e características únicas do produto")
    rules.append(
        "Inclua de 3 a 5 emojis relevantes" if options.include_emojis else "Não use emojis"
    )
    rules.append(
        "Inclua 2 ou 3 hashtags relevantes" if options.include_hashtags else "Não use hashtags"
    )
    if options.highlight_discount and product.has_discount:
        rules.append("Destaque o desconto de forma criativa")
    if options.highlight_urgency:
        rules.append("Crie sensação de urgência e exclusividade")
    rules.append(f"Limite a resposta a {options.max_length} caracteres")
    rules.append("Escreva em português do Brasil")

    numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, start=1))
    return (
        "Crie uma descrição curta para um post de TikTok sobre este produto da Shopee:\n\n"
        + "\n".join(facts)
        + "\n\nInstruções:\n"
        + numbered
        + "\n\nFormato da resposta: apenas o texto da descrição, sem explicações."
    )


class TextGenerationService:
    """Gemini-backed description writer with local fallback."""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client

    async def generate_product_description(
        self,
        product: Product,
        options: Optional[TextGenerationOptions] = None,
    ) -> Tuple[str, str]:
        """Return ``(text, source)`` where source is ``gemini`` or ``fallback``."""
        options = options or TextGenerationOptions()
        if self.client is None or not self.client.enabled:
            return create_fallback_description(product, options), SOURCE_FALLBACK

        prompt = build_prompt(product, options)
        try:
            text = await self.client.generate_content(
                prompt,
                temperature=_PROMPT_TEMPERATURE,
                max_output_tokens=options.max_length,
            )
        except GeminiError as exc:
            logger.error("Description generation failed for %s: %s", product.item_id, exc)
            return create_fallback_description(product, options), SOURCE_FALLBACK

        return text, SOURCE_GEMINI


_service: Optional[TextGenerationService] = None


def get_text_generation_service() -> TextGenerationService:
    global _service
    if _service is None:
        _service = TextGenerationService(get_gemini_client())
    return _service


def reset_text_generation_service() -> None:
    global _service
    _service = None
