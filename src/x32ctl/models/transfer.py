"""Results of bulk state transfers (scene import, console backup)."""

from dataclasses import dataclass, field

from x32ctl.models.console import ConsoleInfo


@dataclass(frozen=True, slots=True)
class ImportResult:
    """Outcome of replaying a scene file to the console.

    Attributes:
        parameter_count: Commands sent successfully.
        duration: Wall-clock time in seconds.
        errors: Lines that failed to encode or send.
    """

    parameter_count: int
    duration: float
    errors: int = 0


@dataclass(slots=True)
class BackupDocument:
    """A console backup: one header line plus raw node lines in console order.

    Attributes:
        header: Header line (firmware, console name, timestamp).
        lines: One raw parameter line per answered node path.
    """

    header: str
    lines: list[str] = field(default_factory=list)

    @classmethod
    def for_console(cls, info: ConsoleInfo, timestamp: str) -> "BackupDocument":
        """Create an empty document with the console.bak header."""
        return cls(header=f'#{info.firmware}# "{info.name}" "{timestamp}"')

    @property
    def parameter_count(self) -> int:
        """Return the number of parameter lines."""
        return len(self.lines)

    def render(self) -> str:
        """Return the document as text."""
        return "\n".join([self.header, *self.lines])


@dataclass(frozen=True, slots=True)
class BackupResult:
    """Outcome of a console backup export.

    Attributes:
        content: The rendered backup document.
        parameter_count: Node queries that returned data.
        scene_count: Scene slots that returned data.
        snippet_count: Snippet slots that returned data.
        duration: Wall-clock time in seconds.
        console_info: Identification of the exported console.
    """

    content: str
    parameter_count: int
    scene_count: int
    snippet_count: int
    duration: float
    console_info: ConsoleInfo
