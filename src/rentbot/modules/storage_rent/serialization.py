"""
Box Serialization Helpers
=========================
Pure helpers for the parts of the ledger's binary format the bot needs:

- vlq_size: length of an unsigned VLQ-encoded integer
- estimate_box_size: encoded size of a box (drives its rent fee)
- encode_claim_marker: context-extension value authorizing a rent claim
"""

from typing import Any, Dict, Mapping

MAX_UINT16_VALUE = 65_535
TX_ID_BYTES = 32
CLAIM_MARKER_VAR = "127"
SHORT_TYPE_CODE = "03"


def vlq_size(value: int) -> int:
    """Bytes needed to VLQ-encode a non-negative integer (7 bits per byte)."""
    if value < 0:
        raise ValueError(f"VLQ values must be non-negative, got {value}")
    return max(1, (value.bit_length() + 6) // 7)


def vlq_encode(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"VLQ values must be non-negative, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def zigzag_encode(value: int) -> int:
    """ZigZag mapping of a signed integer onto the unsigned range."""
    return (value << 1) if value >= 0 else ((-value) << 1) - 1


def hex_byte_size(hex_string: str) -> int:
    return len(hex_string) // 2


def estimate_box_size(box: Mapping[str, Any]) -> int:
    """
    Estimate the serialized size of a box from its node JSON.

    Layout: value, ergoTree, creationHeight, tokens (id + amount each),
    registers, transaction id, output index.
    """
    size = vlq_size(int(box["value"]))
    size += hex_byte_size(box["ergoTree"])
    size += vlq_size(int(box["creationHeight"]))

    assets = box.get("assets") or []
    size += vlq_size(len(assets))
    for asset in assets:
        size += hex_byte_size(asset["tokenId"]) + vlq_size(int(asset["amount"]))

    registers: Dict[str, str] = box.get("additionalRegisters") or {}
    present = [value for value in registers.values() if value]
    for register in present:
        size += hex_byte_size(_register_hex(register))
    size += vlq_size(len(present))

    size += TX_ID_BYTES
    index = box.get("index")
    size += vlq_size(MAX_UINT16_VALUE if index is None else int(index))
    return size


def _register_hex(register: Any) -> str:
    # Explorer-style registers wrap the hex in {"serializedValue": ...}
    if isinstance(register, Mapping):
        return register.get("serializedValue", "")
    return register


def encode_claim_marker(output_index: int) -> str:
    """
    Hex value of context variable 127 for a rent-claim input.

    The ledger expects a Short holding the index of the output that
    recreates the claimed box: type code 0x03 followed by ZigZag-VLQ.
    """
    if not 0 <= output_index <= 32_767:
        raise ValueError(f"Output index out of Short range: {output_index}")
    return SHORT_TYPE_CODE + vlq_encode(zigzag_encode(output_index)).hex()


def claim_extension(output_index: int) -> Dict[str, str]:
    return {CLAIM_MARKER_VAR: encode_claim_marker(output_index)}


def normalize_registers(registers: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten registers to {"R4": hex, ...}, dropping empty entries."""
    return {key: _register_hex(value) for key, value in sorted(registers.items()) if value}
