"""Textbook quiz helper: OCR a textbook page, then quiz yourself with an LLM."""
