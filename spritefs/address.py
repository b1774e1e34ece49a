"""Resource address resolution.

A sprite resource is addressed by a URI of the form::

    sprite://<sprite-name>/<absolute/path>

The authority is the sprite (session) name and the URI path is the path on
the sprite. Paths are not normalized: trailing slashes and ``.``/``..``
segments are left for the remote shell to interpret.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote, urlsplit

SCHEME = "sprite"


@dataclass(frozen=True)
class SpriteAddress:
    """A (sprite name, absolute path) pair."""

    sprite_name: str
    path: str = "/"

    def __post_init__(self) -> None:
        if not self.path:
            object.__setattr__(self, "path", "/")

    @property
    def uri(self) -> str:
        """URI form of this address."""
        return f"{SCHEME}://{self.sprite_name}{quote(self.path, safe='/')}"

    def __str__(self) -> str:
        return self.uri


def parse_uri(uri: str | SpriteAddress) -> SpriteAddress:
    """Resolve a resource identifier into a SpriteAddress.

    Never fails: a missing path resolves to the root directory.

    Examples:
        >>> parse_uri("sprite://dev-box/home/sprite/app.py")
        SpriteAddress(sprite_name='dev-box', path='/home/sprite/app.py')
        >>> parse_uri("sprite://dev-box")
        SpriteAddress(sprite_name='dev-box', path='/')
    """
    if isinstance(uri, SpriteAddress):
        return uri
    parts = urlsplit(uri)
    return SpriteAddress(sprite_name=parts.netloc, path=unquote(parts.path) or "/")
