"""Scene slot model."""

from dataclasses import dataclass

from x32ctl.api.addresses import MAX_SCENES, SCENE_NAME_MAX_LENGTH


@dataclass(frozen=True, slots=True)
class Scene:
    """A named scene stored in one of the console's 100 slots.

    An empty slot is represented by the absence of a Scene, never by a
    Scene with an empty name.

    Attributes:
        index: Slot index (0-99).
        name: Scene name (at most 64 characters).
        notes: Free-form scene notes.
    """

    index: int
    name: str
    notes: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.index < MAX_SCENES:
            raise ValueError(f"Scene index {self.index} out of range 0-{MAX_SCENES - 1}")
        if not self.name:
            raise ValueError("Scene name must not be empty")
        if len(self.name) > SCENE_NAME_MAX_LENGTH:
            raise ValueError(f"Scene name longer than {SCENE_NAME_MAX_LENGTH} characters")
