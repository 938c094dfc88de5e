"""
Content categories of a scene and the mask tracking which of them are still
to be emitted into the current converter stage.
"""
from enum import Flag, auto
from typing import Iterator


class SceneContent(Flag):
    MESHES = auto()
    MATERIALS = auto()
    TEXTURES = auto()
    IMAGES = auto()
    ANIMATIONS = auto()
    CAMERAS = auto()
    LIGHTS = auto()
    SKINS = auto()
    SCENES = auto()
    NAMES = auto()


ALL_CONTENTS = (SceneContent.MESHES | SceneContent.MATERIALS | SceneContent.TEXTURES |
                SceneContent.IMAGES | SceneContent.ANIMATIONS | SceneContent.CAMERAS |
                SceneContent.LIGHTS | SceneContent.SKINS | SceneContent.SCENES |
                SceneContent.NAMES)


def content_members(value: SceneContent) -> Iterator[SceneContent]:
    """Single-bit members of value, in declaration order."""
    for member in SceneContent:
        if member & value:
            yield member


class ContentMask:
    """
    Set of content categories not yet emitted.

    Only ever narrowed: categories can be excluded but not added back, so a
    category consumed by one step of a stage can't be emitted again later in
    the same stage.
    """

    def __init__(self, initial: SceneContent = ALL_CONTENTS):
        self._value = initial

    def __repr__(self) -> str:
        names = "|".join(m.name for m in content_members(self._value))
        return f"ContentMask({names or 'none'})"

    def __contains__(self, content: SceneContent) -> bool:
        return (self._value & content) == content

    def __iter__(self) -> Iterator[SceneContent]:
        return content_members(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    @property
    def value(self) -> SceneContent:
        return self._value

    def exclude(self, content: SceneContent) -> None:
        self._value = self._value & ~content

    def intersection(self, other: SceneContent) -> SceneContent:
        return self._value & other
