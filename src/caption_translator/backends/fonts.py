"""Download and validate subtitle fonts."""

import logging
import re
from io import BytesIO
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from PIL import ImageFont

from caption_translator.backends.base import FontAsset, FontProvider
from caption_translator.errors import FontError

logger = logging.getLogger(__name__)

# First four bytes of TrueType, OpenType, Apple TrueType, PostScript Type 1 and collections
FONT_SIGNATURES = (b"\x00\x01\x00\x00", b"OTTO", b"true", b"typ1", b"ttcf")

KNOWN_FAMILIES = [
    (re.compile(r"NotoSansCJKsc", re.IGNORECASE), "Noto Sans CJK SC"),
    (re.compile(r"NotoSansSC", re.IGNORECASE), "Noto Sans SC"),
    (re.compile(r"SourceHanSansSC", re.IGNORECASE), "Source Han Sans SC"),
    (re.compile(r"NotoSerifCJKsc", re.IGNORECASE), "Noto Serif CJK SC"),
]


def to_raw_url(url: str) -> str:
    """Convert a GitHub ``blob`` page URL into its raw.githubusercontent.com form.

    Example:
        https://github.com/org/repo/blob/main/fonts/A.otf
        -> https://raw.githubusercontent.com/org/repo/main/fonts/A.otf
    """
    parsed = urlparse(url)
    if parsed.hostname != "github.com" or "/blob/" not in parsed.path:
        return url
    parts = [p for p in parsed.path.split("/") if p]
    blob = parts.index("blob")
    if blob < 2 or len(parts) < blob + 3:
        return url
    org, repo = parts[0], parts[1]
    branch = parts[blob + 1]
    rest = "/".join(parts[blob + 2 :])
    return f"https://raw.githubusercontent.com/{org}/{repo}/{branch}/{rest}"


def is_font_data(data: bytes) -> bool:
    return data[:4] in FONT_SIGNATURES


def filename_for(url: str) -> str:
    name = unquote(Path(urlparse(url).path).name)
    return name or "font.otf"


def family_from_filename(filename: str) -> str:
    """Guess a family name from a font filename."""
    base = re.sub(r"\.(ttf|otf|ttc)$", "", filename, flags=re.IGNORECASE)
    for pattern, family in KNOWN_FAMILIES:
        if pattern.search(base):
            return family
    return base


def family_from_font(data: bytes) -> str | None:
    """Read the family name embedded in the font, if Pillow can parse it."""
    try:
        family, _style = ImageFont.truetype(BytesIO(data), size=12).getname()
    except (OSError, ValueError) as e:
        logger.debug(f"Could not read font family: {e}")
        return None
    return family or None


class HttpFontProvider(FontProvider):
    """Fetch fonts over HTTP into a per-job fonts directory."""

    def __init__(self, timeout: float = 60.0, client: httpx.Client | None = None):
        self.timeout = timeout
        self._client = client

    def _download(self, url: str) -> bytes:
        try:
            if self._client is not None:
                response = self._client.get(url, follow_redirects=True, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    response = client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FontError(f"Failed to download font from {url}: {e}") from e
        return response.content

    def fetch(self, url: str, dest_dir: Path, family: str | None = None) -> FontAsset:
        """Download a font (reusing a valid cached copy) and resolve its family name.

        Args:
            url: Font URL; GitHub page URLs are converted to raw URLs
            dest_dir: Directory to store the font file in
            family: Explicit family name, overriding detection

        Returns:
            FontAsset for the stored file

        Raises:
            FontError: If the download fails or the payload is not a font
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        raw_url = to_raw_url(url)
        path = dest_dir / filename_for(raw_url)

        if path.exists() and is_font_data(path.read_bytes()[:4]):
            data = path.read_bytes()
        else:
            data = self._download(raw_url)
            if not is_font_data(data):
                # GitHub UI links serve HTML unless asked for the raw file
                retry_url = url if "?" in url else f"{url}?raw=1"
                data = self._download(retry_url)
            if not is_font_data(data):
                raise FontError(f"Downloaded file from {url} is not a font")
            path.write_bytes(data)

        resolved = family or family_from_font(data) or family_from_filename(path.name)
        logger.info(f"Using font {resolved!r} from {path}")
        return FontAsset(path=path, family=resolved)
