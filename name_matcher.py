import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

_SEPARATORS = re.compile(r"[-_]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Return the comparison key for an exercise name.

    Lower-cases, turns hyphens and underscores into spaces, collapses
    whitespace runs and strips the ends. Separators are replaced before
    collapsing so ``"leg-_press"`` becomes ``"leg press"``.
    """
    if not text:
        return ""
    key = text.lower()
    key = _SEPARATORS.sub(" ", key)
    key = _WHITESPACE.sub(" ", key)
    return key.strip()


@dataclass(frozen=True)
class ImageCatalogEntry:
    """One exercise of the image reference dataset."""

    name: str
    images: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict) -> "ImageCatalogEntry":
        name = raw.get("name")
        if not isinstance(name, str) or not normalize_name(name):
            raise ValueError(f"dataset entry has no usable name: {raw!r}")
        images = raw.get("images") or ()
        return cls(name=name, images=tuple(images))


def build_catalog(raw: Iterable) -> Tuple[ImageCatalogEntry, ...]:
    """Parse the dataset JSON, skipping entries without a usable name."""
    entries = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            entries.append(ImageCatalogEntry.from_dict(item))
        except ValueError:
            continue
    return tuple(entries)


@dataclass
class ImageLookup:
    found: bool
    images: Optional[List[str]] = field(default=None)

    @classmethod
    def not_found(cls) -> "ImageLookup":
        return cls(found=False, images=None)

    def to_dict(self) -> dict:
        return {"images": self.images, "found": self.found}


def find_match(
    query: str, catalog: Iterable[ImageCatalogEntry]
) -> Optional[ImageCatalogEntry]:
    """Return the first entry whose name contains, or is contained in, ``query``."""
    wanted = normalize_name(query)
    for entry in catalog:
        candidate = normalize_name(entry.name)
        if not candidate:
            continue
        if wanted in candidate or candidate in wanted:
            return entry
    return None


def build_image_url(base: str, fragment: str) -> str:
    return f"{base.rstrip('/')}/{fragment.lstrip('/')}"


def match_images(
    query: str,
    catalog: Optional[Iterable[ImageCatalogEntry]],
    base: str,
) -> ImageLookup:
    if catalog is None:
        return ImageLookup.not_found()
    entry = find_match(query, catalog)
    if entry is None or not entry.images:
        return ImageLookup.not_found()
    return ImageLookup(
        found=True, images=[build_image_url(base, img) for img in entry.images]
    )
