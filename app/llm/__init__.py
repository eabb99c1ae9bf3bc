from app.llm.factory import LlmExtractorFactory
from app.llm.receipt_llm import LlmReceiptExtractor, is_image_type_supported

__all__ = ["LlmExtractorFactory", "LlmReceiptExtractor", "is_image_type_supported"]
