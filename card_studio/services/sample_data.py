"""Sample product data served when Shopee or Redis is unavailable.

Keeps the API answering with well-formed products when credentials are
missing or the store is down. ``FALLBACK_PRODUCTS`` (ids ``fallback-N``) back
the cache; ``SEARCH_CATALOG`` adds ``sample-N`` records for keyword search.
"""

from __future__ import annotations

import re
from typing import Dict, List

from card_studio.schemas.product import Product

_SAMPLE_IMAGE = "https://cf.shopee.com.br/file/br-11134201-7qukw-lf6zz3flmxhv6f"

# ---------------------------------------------------------------------------
# Fallback dataset (cache degraded mode)
# ---------------------------------------------------------------------------

FALLBACK_PRODUCTS: List[Product] = [
    Product(
        itemId="fallback-1",
        categoryId="100630",
        productName="Fone de Ouvido Bluetooth Sem Fio",
        price=79.90,
        calculatedOriginalPrice=99.90,
        sales=1250,
        ratingStar=4.8,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Loja Exemplo",
        commissionRate=5.0,
        offerLink="https://shopee.com.br",
    ),
    Product(
        itemId="fallback-2",
        categoryId="100632",
        productName="Camiseta Básica Algodão",
        price=129.90,
        calculatedOriginalPrice=149.90,
        sales=850,
        ratingStar=4.5,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Loja Exemplo",
        commissionRate=4.5,
        offerLink="https://shopee.com.br",
    ),
    Product(
        itemId="fallback-3",
        categoryId="100634",
        productName="Panela Antiaderente 24cm",
        price=159.90,
        calculatedOriginalPrice=199.90,
        sales=2100,
        ratingStar=4.9,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Loja Exemplo",
        commissionRate=6.0,
        offerLink="https://shopee.com.br",
    ),
]

FALLBACK_DESCRIPTIONS: Dict[str, str] = {
    "fallback-1": "Som limpo e bateria que dura o dia todo. Conecta rápido e cabe no bolso.",
    "fallback-2": "Ótimo custo-benefício. Tecido macio, ideal para o dia a dia.",
    "fallback-3": "A queridinha da cozinha: nada gruda e a limpeza é rapidinha.",
}

# ---------------------------------------------------------------------------
# Search catalog (used when the affiliate API is not configured)
# ---------------------------------------------------------------------------

SEARCH_CATALOG: List[Product] = FALLBACK_PRODUCTS + [
    Product(
        itemId="sample-101",
        categoryId="100630",
        productName="Smartphone Xiaomi Redmi 128GB",
        price=1099.00,
        priceDiscountRate=15,
        sales=3400,
        ratingStar=4.7,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Xiaomi Store",
        commissionRate=3.0,
        offerLink="https://shopee.com.br",
    ),
    Product(
        itemId="sample-102",
        categoryId="100632",
        productName="Tênis Esportivo Masculino Corrida",
        price=149.90,
        priceDiscountRate=30,
        sales=5200,
        ratingStar=4.6,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Esporte Total",
        commissionRate=7.0,
        offerLink="https://shopee.com.br",
    ),
    Product(
        itemId="sample-103",
        categoryId="100633",
        productName="Kit Maquiagem Batom Matte 6 Cores",
        price=39.90,
        priceDiscountRate=40,
        sales=8900,
        ratingStar=4.8,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Beleza Pura",
        commissionRate=8.0,
        offerLink="https://shopee.com.br",
    ),
    Product(
        itemId="sample-104",
        categoryId="100634",
        productName="Jogo de Panelas Inox 5 Peças",
        price=289.90,
        priceDiscountRate=20,
        sales=1700,
        ratingStar=4.7,
        imageUrl=_SAMPLE_IMAGE,
        shopName="Casa & Cozinha",
        commissionRate=5.5,
        offerLink="https://shopee.com.br",
    ),
]


def _tokens(text: str) -> List[str]:
    return [t for t in re.split(r"\W+", text.lower()) if t]


def search_sample_catalog(query: str, limit: int = 20) -> List[Product]:
    """Score catalog entries by query-token matches in the product name.

    Whole-token hits count double; ties are broken by sales.
    """
    terms = _tokens(query)
    if not terms:
        return []

    scored = []
    for product in SEARCH_CATALOG:
        name = product.product_name.lower()
        name_tokens = set(_tokens(name))
        score = 0
        for term in terms:
            if term in name_tokens:
                score += 2
            elif term in name:
                score += 1
        if score:
            scored.append((score, product.sales, product))

    scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
    return [product for _, _, product in scored[:limit]]
