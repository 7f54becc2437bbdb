"""Node paths of the X32 parameter tree, in console backup order.

Pure data: every function here derives paths from the topology constants
below and touches no shared state. The order matches the console's own
console.bak export, so a backup assembled from these paths lines up with
one made on the desk.
"""

from collections.abc import Iterator

CHANNELS = 32
AUX_INPUTS = 8
FX_RETURNS = 8
BUSES = 16
MATRICES = 6
DCAS = 8
FX_SLOTS = 8
HEADAMPS = 128
SHOW_SLOTS = 100  # scenes and snippets
CUES = 500
LIBRARY_SLOTS = 100
LIBRARIES = ("ch", "fx", "r")

# Bus sends per input strip, matrix sends per bus/main
INPUT_SENDS = 16
BUS_SENDS = 6

OUTPUT_GROUPS: tuple[tuple[str, int], ...] = (
    ("main", 16),
    ("aux", 6),
    ("p16", 16),
    ("aes", 2),
    ("rec", 2),
)

PREFERENCES = (
    "-prefs/ip",
    "-prefs/bright",
    "-prefs/screen",
    "-prefs/remote",
    "-prefs/style",
    "-stat/selidx",
    "-stat/chfaderbank",
    "-stat/grpfaderbank",
    "-stat/sendsonfader",
    "-stat/bussendbank",
    "-stat/eqband",
    "-stat/solo",
    "-stat/keysolo",
    "-stat/userbank",
    "-stat/autosave",
)

CONFIG = (
    "config/chlink",
    "config/auxlink",
    "config/fxlink",
    "config/buslink",
    "config/mtxlink",
    "config/mute",
    "config/linkcfg",
    "config/mono",
    "config/solo",
    "config/talk",
    "config/osc",
    "config/userrout",
    "config/userrout/out",
    "config/routing/IN",
    "config/routing/AES50A",
    "config/routing/AES50B",
    "config/routing/CARD",
    "config/routing/OUT",
    "config/userctrl/A",
    "config/userctrl/B",
    "config/userctrl/C",
)


def _two(n: int) -> str:
    return f"{n:02d}"


def _three(n: int) -> str:
    return f"{n:03d}"


def _eq(prefix: str, bands: int) -> Iterator[str]:
    yield f"{prefix}/eq"
    for band in range(1, bands + 1):
        yield f"{prefix}/eq/{band}"


def _mix(prefix: str, sends: int) -> Iterator[str]:
    yield f"{prefix}/mix"
    for send in range(1, sends + 1):
        yield f"{prefix}/mix/{_two(send)}"


def channel_paths() -> Iterator[str]:
    """Input channels 01-32."""
    for ch in range(1, CHANNELS + 1):
        p = f"ch/{_two(ch)}"
        yield from (f"{p}/config", f"{p}/delay", f"{p}/preamp")
        yield from (f"{p}/gate", f"{p}/gate/filter", f"{p}/dyn", f"{p}/dyn/filter")
        yield f"{p}/insert"
        yield from _eq(p, 4)
        yield from _mix(p, INPUT_SENDS)
        yield from (f"{p}/grp", f"{p}/automix")


def aux_input_paths() -> Iterator[str]:
    """Aux inputs 01-08."""
    for aux in range(1, AUX_INPUTS + 1):
        p = f"auxin/{_two(aux)}"
        yield from (f"{p}/config", f"{p}/preamp")
        yield from _eq(p, 4)
        yield from _mix(p, INPUT_SENDS)
        yield f"{p}/grp"


def fx_return_paths() -> Iterator[str]:
    """FX returns 01-08."""
    for rtn in range(1, FX_RETURNS + 1):
        p = f"fxrtn/{_two(rtn)}"
        yield f"{p}/config"
        yield from _eq(p, 4)
        yield from _mix(p, INPUT_SENDS)
        yield f"{p}/grp"


def _output_strip(p: str, sends: int) -> Iterator[str]:
    yield from (f"{p}/config", f"{p}/dyn", f"{p}/dyn/filter", f"{p}/insert")
    yield from _eq(p, 6)
    if sends:
        yield from _mix(p, sends)
    else:
        yield f"{p}/mix"
    yield f"{p}/grp"


def bus_paths() -> Iterator[str]:
    """Mix buses 01-16."""
    for bus in range(1, BUSES + 1):
        yield from _output_strip(f"bus/{_two(bus)}", BUS_SENDS)


def matrix_paths() -> Iterator[str]:
    """Matrix outputs 01-06 (no sends)."""
    for mtx in range(1, MATRICES + 1):
        yield from _output_strip(f"mtx/{_two(mtx)}", 0)


def main_paths() -> Iterator[str]:
    """Main stereo and mono buses."""
    for main in ("st", "m"):
        yield from _output_strip(f"main/{main}", BUS_SENDS)


def dca_paths() -> Iterator[str]:
    """DCA groups 1-8."""
    for dca in range(1, DCAS + 1):
        yield from (f"dca/{dca}", f"dca/{dca}/config")


def fx_paths(fx_slots: int = FX_SLOTS) -> Iterator[str]:
    """Effect slots 1-N. Smaller desks expose fewer slots."""
    for fx in range(1, fx_slots + 1):
        yield f"fx/{fx}"


def headamp_paths() -> Iterator[str]:
    """Head amps 000-127."""
    for amp in range(HEADAMPS):
        yield f"headamp/{_three(amp)}"


def output_paths() -> Iterator[str]:
    """Physical output patch points."""
    for group, count in OUTPUT_GROUPS:
        for out in range(1, count + 1):
            yield f"outputs/{group}/{_two(out)}"


def show_paths() -> Iterator[str]:
    """Show file: show node, scenes, snippets, cues."""
    yield "-show/showfile/show"
    for kind in ("scene", "snippet"):
        for slot in range(SHOW_SLOTS):
            yield f"-show/showfile/{kind}/{_three(slot)}"
    for cue in range(CUES):
        yield f"-show/showfile/cue/{_three(cue)}"


def library_paths() -> Iterator[str]:
    """Channel, effect and routing library presets."""
    for lib in LIBRARIES:
        for slot in range(LIBRARY_SLOTS):
            yield f"-libs/{lib}/{_three(slot)}"


def console_state_paths(fx_slots: int = FX_SLOTS) -> list[str]:
    """Return the node paths holding the console's current state."""
    return [
        *PREFERENCES,
        *CONFIG,
        *channel_paths(),
        *aux_input_paths(),
        *fx_return_paths(),
        *bus_paths(),
        *matrix_paths(),
        *main_paths(),
        *dca_paths(),
        *fx_paths(fx_slots),
        *headamp_paths(),
        *output_paths(),
    ]


def console_backup_paths(full: bool = True, fx_slots: int = FX_SLOTS) -> list[str]:
    """Return every node path to query for a console backup.

    Args:
        full: Include show data (scenes, snippets, cues) and libraries.
        fx_slots: Number of effect slots on the desk (4 on some models).

    Returns:
        Paths without a leading slash, in console.bak order.
    """
    paths = console_state_paths(fx_slots)
    if full:
        paths.extend(show_paths())
        paths.extend(library_paths())
    return paths
