"""Shopee Card Studio - affiliate product cards and videos."""
