"""Statement image decoding and validation."""

from cashbook.services.image.statement_image import (
    StatementImage,
    decode_statement_image,
    encode_image,
    strip_data_url,
)

__all__ = [
    "StatementImage",
    "decode_statement_image",
    "encode_image",
    "strip_data_url",
]
