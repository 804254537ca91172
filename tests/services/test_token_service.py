"""
Tests for token accounting.
"""

from mentor.services import token_service
from mentor.services.token_service import count_tokens, estimate_tokens


def test_count_uses_model_tokenizer():
    # conftest installs a one-token-per-word encoding
    assert count_tokens("gpt-4o-mini", "plants need light") == 3


def test_empty_text_is_zero():
    assert count_tokens("gpt-4o-mini", "") == 0


def test_estimate_rounds_up():
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("") == 0


def test_unknown_model_falls_back_to_estimate(monkeypatch):
    """Tokenizer lookup failure never raises."""

    def unknown(model):
        raise KeyError(f"Could not automatically map {model} to a tokeniser")

    monkeypatch.setattr(token_service, "_encoding_for", unknown)

    assert count_tokens("no-such-model", "a" * 10) == 3


def test_encode_failure_falls_back_to_estimate(monkeypatch):
    class BrokenEncoding:
        def encode(self, text):
            raise ValueError("disallowed special token")

    monkeypatch.setattr(token_service, "_encoding_for", lambda model: BrokenEncoding())

    assert count_tokens("gpt-4o-mini", "<|endoftext|>") == 4


def test_count_is_never_negative(monkeypatch):
    monkeypatch.setattr(token_service, "_encoding_for", lambda model: None)

    for text in ["", " ", "x", "hello world"]:
        assert count_tokens("gpt-4o-mini", text) >= 0
