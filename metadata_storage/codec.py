"""
Metadata Storage - Memo Record Codec.

============================================================
PURPOSE
============================================================
Wire format of the record embedded in the memo instruction.

FORMATS:
- framed (written by default):
      METADATA:v2:<address>:<byte_length>:<content>
  byte_length is the UTF-8 length of content; the decoder takes
  exactly that many bytes, so colons, quotes or trailing log
  decoration cannot corrupt the payload.
- legacy (read, and written on request):
      METADATA:<address>:<content>
  content is everything after the address field.

The memo program does not log the raw memo. It logs
    Program log: Memo (len N): "<escaped>"
with the text escaped like a Rust debug string, so log lines are
unwrapped before decoding.

============================================================
"""

import re
from typing import Iterable, Optional

from metadata_storage.models import MemoRecord, RecordFormat


RECORD_MARKER = "METADATA:"
FRAMED_VERSION = "v2"

_MEMO_LOG = re.compile(r'^Program log: Memo \(len (\d+)\): "(.*)"$', re.DOTALL)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


# ============================================================
# ENCODING
# ============================================================

def encode_record(
    account_address: str,
    content: str,
    record_format: RecordFormat = RecordFormat.FRAMED,
) -> str:
    """
    Build the memo text for a record.

    Args:
        account_address: Base58 address of the storage account
        content: Payload text
        record_format: Layout to write

    Returns:
        Memo text
    """
    if record_format == RecordFormat.LEGACY:
        return f"{RECORD_MARKER}{account_address}:{content}"

    length = len(content.encode("utf-8"))
    return f"{RECORD_MARKER}{FRAMED_VERSION}:{account_address}:{length}:{content}"


# ============================================================
# DECODING
# ============================================================

def decode_record(text: str) -> Optional[MemoRecord]:
    """
    Decode the first record found in `text`.

    Text before the marker is ignored. Returns None when there is no
    marker or the record is malformed.
    """
    start = text.find(RECORD_MARKER)
    if start < 0:
        return None
    body = text[start + len(RECORD_MARKER):]

    if body.startswith(f"{FRAMED_VERSION}:"):
        return _decode_framed(body[len(FRAMED_VERSION) + 1:])
    return _decode_legacy(body)


def _decode_framed(body: str) -> Optional[MemoRecord]:
    parts = body.split(":", 2)
    if len(parts) != 3:
        return None
    address, length_text, remainder = parts
    if not address or not (length_text.isascii() and length_text.isdigit()):
        return None

    length = int(length_text)
    raw = remainder.encode("utf-8")
    if len(raw) < length:
        return None

    try:
        content = raw[:length].decode("utf-8")
    except UnicodeDecodeError:
        return None
    return MemoRecord(account_address=address, content=content, format=RecordFormat.FRAMED)


def _decode_legacy(body: str) -> Optional[MemoRecord]:
    address, separator, content = body.partition(":")
    if not address or not separator:
        return None
    return MemoRecord(account_address=address, content=content, format=RecordFormat.LEGACY)


# ============================================================
# LOG UNWRAPPING
# ============================================================

def unescape_debug_string(escaped: str) -> str:
    """Reverse Rust `{:?}` escaping of a str body (without the quotes)."""
    out = []
    i = 0
    while i < len(escaped):
        ch = escaped[i]
        if ch != "\\" or i + 1 >= len(escaped):
            out.append(ch)
            i += 1
            continue

        code = escaped[i + 1]
        if code in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[code])
            i += 2
        elif code == "u" and escaped.startswith("{", i + 2):
            end = escaped.find("}", i + 3)
            if end < 0:
                out.append(ch)
                i += 1
                continue
            try:
                out.append(chr(int(escaped[i + 3:end], 16)))
            except ValueError:
                out.append(escaped[i:end + 1])
            i = end + 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def unwrap_memo_log(line: str) -> str:
    """
    Return the memo text of a memo-program log line.

    Lines in any other form are returned unchanged.
    """
    match = _MEMO_LOG.match(line)
    if match is None:
        return line
    return unescape_debug_string(match.group(2))


def find_record(
    log_messages: Iterable[str],
    expected_address: Optional[str] = None,
) -> Optional[MemoRecord]:
    """
    Scan log lines for the first record.

    Args:
        log_messages: Transaction log output, in order
        expected_address: If set, records for other accounts are skipped

    Returns:
        MemoRecord or None
    """
    for line in log_messages:
        if RECORD_MARKER not in line:
            continue
        record = decode_record(unwrap_memo_log(line))
        if record is None:
            continue
        if expected_address is not None and record.account_address != expected_address:
            continue
        return record
    return None
