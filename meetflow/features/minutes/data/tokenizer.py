import tiktoken

from ..domain.interfaces import ITokenizer


class TiktokenTokenizer(ITokenizer):
    """Production-grade tokenizer."""

    def __init__(self, model="gpt-4"):
        self.enc = tiktoken.encoding_for_model(model)

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.enc.encode(text))
