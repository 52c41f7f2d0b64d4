"""
Signature Catalogue — formats recognisable inside orphaned .CHK fragments.

DESIGN RATIONALE
────────────────
A fragment left behind by CHKDSK / fsck has lost its name and type, but its
bytes usually still start with (or contain) the original file's magic
number.  Each signature is a triple:

  • extension — the tag the recovered file is saved with
  • header    — exact bytes expected at the match offset (never empty)
  • contains  — optional secondary marker that must also appear somewhere
                after the header (distinguishes DOCX from XLSX from ZIP,
                WAV from AVI from WEBP, ...)

Several entries share a header on purpose.  The carver evaluates every
entry independently, so catalogue order carries no priority.

Exported for the carver:
  • Signature            — immutable signature record
  • SignatureRegistry    — ordered, freeze-once catalogue
  • DEFAULT_SIGNATURES   — hand-curated (extension, header hex, contains hex) rows
  • build_default_registry()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Union

logger = logging.getLogger(__name__)


class SignatureError(ValueError):
    """Malformed signature definition or registry misuse."""


@dataclass(frozen=True)
class Signature:
    """Describes how to recognise the start of one file format."""
    extension: str
    header: bytes
    contains: bytes = b""

    def __post_init__(self):
        if not self.extension:
            raise SignatureError("signature extension must not be empty")
        if not self.header:
            raise SignatureError(f"signature {self.extension!r} has an empty header")

    @property
    def has_contains(self) -> bool:
        return bool(self.contains)


def _decode(value: Union[str, bytes], what: str, extension: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes.fromhex(value)
    except (ValueError, TypeError) as e:
        raise SignatureError(f"Error decoding {what} for {extension}: {e}") from e


class SignatureRegistry:
    """Ordered signature catalogue, built once at startup then frozen."""

    def __init__(self):
        self._entries: list[Signature] = []
        self._frozen = False

    def register(
        self,
        extension: str,
        header: Union[str, bytes],
        contains: Union[str, bytes] = "",
    ) -> Signature:
        """Append a signature.  Text values are hex-decoded."""
        if self._frozen:
            raise SignatureError(
                f"registry is frozen; cannot register {extension!r}")
        sig = Signature(
            extension=extension,
            header=_decode(header, "header", extension),
            contains=_decode(contains, "'contains'", extension) if contains else b"",
        )
        self._entries.append(sig)
        return sig

    def freeze(self) -> "SignatureRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def entries(self) -> tuple[Signature, ...]:
        return tuple(self._entries)

    def extensions(self) -> list[str]:
        return sorted(set(s.extension for s in self._entries))

    def __iter__(self) -> Iterator[Signature]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


# ══════════════════════════════════════════════════════════════
#  D E F A U L T   C A T A L O G U E
# ══════════════════════════════════════════════════════════════
# (extension, header hex, contains hex)

DEFAULT_SIGNATURES: list[tuple[str, str, str]] = [
    # ── Images ──
    ("jpg", "ffd8", "4a464946"),                    # JFIF
    ("exif.jpg", "ffd8", "45786966"),               # Exif
    ("png", "89504e470d0a1a", ""),
    ("gif", "47494638", ""),
    ("tif", "49492a00", ""),
    ("tif", "4d4d002a", ""),
    ("bmp", "424d", ""),
    ("psd", "38425053", ""),
    ("webp", "52494646", "57454250"),               # RIFF....WEBP
    ("heic", "000000", "6674797068656963"),         # ftypheic
    ("avif", "000000", "6674797061766966"),         # ftypavif
    ("cr2", "49492a00", "4352"),
    ("nef", "4d4d002a", "4e696b6f6e"),              # "Nikon"
    ("ai", "25215053", ""),
    ("eps", "c5d0d3c6", ""),
    ("3ds", "4d4d", ""),
    ("fpx", "d0cf11e0", "49006d006100670065"),      # UTF-16 "Image"
    ("psp", "5061696e742053686f702050726f", ""),
    ("wpg", "ff575043", ""),

    # ── Audio ──
    ("wav", "52494646", "57415645"),
    ("mp3", "494433", ""),                          # ID3
    ("mid", "4d546864", "4d54726b"),
    ("flac", "664C6143", ""),
    ("m4a", "000000", "667479704d344120"),
    ("ogg", "4f676753", ""),
    ("rmi", "52494646", "524d4944"),

    # ── Video ──
    ("avi", "52494646", "415649"),
    ("mp4", "000000", "66747970"),                  # any ftyp box
    ("webm", "1a45dfa3", "7765626d"),
    ("mkv", "1a45dfa3", ""),
    ("mov", "000000", "6674797071742020"),
    ("wmv", "3026b2758e66cf11", "415346"),
    ("flv", "464c5601", ""),
    ("mpg", "000001b3", ""),
    ("mpeg", "000001ba", ""),
    ("asf", "3026b2758e66cf11a6d900aa0062ce6c", ""),
    ("swf", "465753", ""),
    ("3gp", "000000", "667479703367"),

    # ── Documents (OLE2 / ZIP containers) ──
    ("doc", "d0cf11e0a1b11ae1", "4d6963726f736f667420576f7264"),
    ("xls", "d0cf11e0a1b11ae1", "4d6963726f736f667420457863656c"),
    ("ppt", "d0cf11e0a1b11ae1", "4d6963726f736f667420506f776572506f696e74"),
    ("pst", "2142444e", ""),
    ("wri", "31be", "00002e0d0a"),
    ("docx", "504B0304", "776F72642F"),             # word/
    ("xlsx", "504B0304", "786C2F"),                 # xl/
    ("pptx", "504B0304", "7070742F"),               # ppt/
    ("odt", "504B0304",
     "6d696d65747970656170706c69636174696f6e2f766e642e6f617369732e6f70656e646f63756d656e742e74657874"),
    ("ods", "504B0304",
     "6d696d65747970656170706c69636174696f6e2f766e642e6f617369732e6f70656e646f63756d656e742e7370726561647368656574"),
    ("odp", "504B0304",
     "6d696d65747970656170706c69636174696f6e2f766e642e6f617369732e6f70656e646f63756d656e742e70726573656e746174696f6e"),
    ("odg", "504B0304",
     "6d696d65747970656170706c69636174696f6e2f766e642e6f617369732e6f70656e646f63756d656e742e6772617068696373"),
    ("pdf", "25504446", ""),
    ("epub", "504B0304",
     "6d696d65747970656170706c69636174696f6e2f657075622b7a6970"),

    # ── Fonts ──
    ("ttf", "0001000000", ""),
    ("otf", "4f5454f0", ""),

    # ── Archives ──
    ("rar", "52617221", ""),
    ("7z", "377abcaf271c", ""),
    ("gz", "1f8b", ""),
    ("ace", "2a2a4143452a2a", ""),
    ("zip", "504B0304", ""),
    ("cab", "4d534346", ""),

    # ── Databases / CAD / data ──
    ("mdb", "000100005374616e64617264204a6574204442", ""),
    ("accdb", "000100005374616e6461726420414345204442", ""),
    ("sqlite3", "53514c69746520666f726d6174203300", ""),
    ("dwg", "41433130", ""),
    ("nc", "434446", ""),

    # ── Scripts / code ──
    ("py", "2321", "707974686f6e"),                 # #! ... python
    ("sh", "2321", "2f62696e2f"),                   # #! ... /bin/
    ("class", "cafebabe", ""),
    ("bdsproj", "3c3f786d6c", "426f726c616e6450726f6a656374"),

    # ── Contacts / calendar / misc text containers ──
    ("vcf", "424547494e3a5643415244", ""),
    ("ics", "424547494e3a5643414c454e444152", ""),
    ("torrent", "64383a616e6e6f756e6365", ""),

    # ── Executables ──
    ("exe", "4d5a", ""),
    ("dll", "4d5a", ""),
    ("ocx", "4d5a", "446c6c5265676973746572536572766572"),

    # ── Rich text / help / shortcuts ──
    ("rtf", "7b5c727466", "7b5c666f6e7474626c"),
    ("chm", "49545346", ""),
    ("hlp", "3f5f0300", ""),
    ("lnk", "4c0000000114020000000000c0000000", ""),
    ("url", "5b496e7465726e657453686f72746375745d", ""),
    ("cdr", "52494646", "434452"),
    ("html", "3c21444f4354595045", ""),
    ("htm", "3c68746d6c", ""),
    ("clp", "50c30100", ""),
]


def build_registry(rows) -> SignatureRegistry:
    """Build and freeze a registry from (extension, header, contains) rows.

    Raises SignatureError on the first malformed row, so a broken catalogue
    never reaches the carver.
    """
    registry = SignatureRegistry()
    for row in rows:
        registry.register(*row)
    registry.freeze()
    logger.debug("Signature registry ready: %d entries", len(registry))
    return registry


def build_default_registry() -> SignatureRegistry:
    return build_registry(DEFAULT_SIGNATURES)
