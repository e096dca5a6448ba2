"""Product reference.

The catalog itself lives outside this system; only the identity and the
display fields needed for order snapshots are kept.  Products listed by
different stores are matched by their normalized name.
"""

from __future__ import annotations

from dataclasses import dataclass

from marketflow.domain.exceptions import ValidationError


def normalize_name(name: str) -> str:
    return name.strip().lower()


@dataclass
class Product:
    id: int | None
    name: str
    image_url: str | None = None

    @staticmethod
    def create(name: str, image_url: str | None = None) -> Product:
        if not name or not name.strip():
            raise ValidationError("Product name is required")
        return Product(id=None, name=name.strip(), image_url=image_url)

    @property
    def match_key(self) -> str:
        return normalize_name(self.name)
