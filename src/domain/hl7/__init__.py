"""Wire message codec.

The encoder and decoder share one positional contract, defined in
segment_layout.
"""

from src.domain.hl7.decoder import DecodedMessage, MessageDecoder
from src.domain.hl7.encoder import MessageEncoder, MessageHeader

__all__ = ["DecodedMessage", "MessageDecoder", "MessageEncoder", "MessageHeader"]
