"""Command-line options and the text files that rigging writes and reads."""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field

import numpy as np

from .geometry import Quaternion

log = logging.getLogger(__name__)

BUILTIN_SKELETONS = ("human", "horse", "quad", "centaur")
DEFAULT_SKELETON_OUT = "skeleton.out"
DEFAULT_WEIGHT_OUT = "attachment.out"
MESH_FORMATS = "{obj | ply | off | gts | stl}"

ATTACH_USAGE = "\n".join(
    [
        f"Usage: attachWeights filename.{MESH_FORMATS}",
        "              [-skel skelname] [-rot x y z deg]* [-scale s]",
        "              [-meshonly | -mo] [-circlesonly | -co]",
        "              [-fit] [-stiffness s]",
        "              [-skelOut skelOutFile] [-weightOut weightOutFile]",
    ]
)

DEMO_USAGE = "\n".join(
    [
        f"Usage: DemoUI filename.{MESH_FORMATS}",
        "              [-skel skelname] [-rot x y z deg]* [-scale s]",
        "              [-meshonly | -mo] [-circlesonly | -co]",
        "              [-motion motionname] [-nofit]",
    ]
)

ANIMAL_USAGE = "\n".join(
    [
        f"Usage: DemoUI filename.{MESH_FORMATS}",
        "              [-skel skelname]",
    ]
)


class UsageError(Exception):
    """The command line could not be understood; ``usage`` holds the help text."""

    def __init__(self, message, usage=""):
        super().__init__(message)
        self.usage = usage


@dataclass
class AttachOptions:
    """Options of the weight-attaching command."""

    filename: str
    stop_at_mesh: bool = False
    stop_after_circles: bool = False
    mesh_transform: Quaternion = field(default_factory=Quaternion)
    skel_scale: float = 1.0
    fit: bool = False
    skeleton: str = "human"
    stiffness: float = 1.0
    skel_out: str = DEFAULT_SKELETON_OUT
    weight_out: str = DEFAULT_WEIGHT_OUT

    @property
    def skeleton_is_file(self) -> bool:
        """Whether ``skeleton`` names a file rather than a built-in skeleton."""
        return self.skeleton not in BUILTIN_SKELETONS


@dataclass
class DemoOptions:
    """Options of the interactive viewers."""

    filename: str
    stop_at_mesh: bool = False
    stop_after_circles: bool = False
    mesh_transform: Quaternion = field(default_factory=Quaternion)
    skel_scale: float = 1.0
    fit: bool = True
    skeleton: str = "human"
    motion: str = ""

    @property
    def skeleton_is_file(self) -> bool:
        """Whether ``skeleton`` names a file rather than a built-in skeleton."""
        return self.skeleton not in BUILTIN_SKELETONS


@dataclass
class JointRecord:
    """One joint of a skeleton file: index, name, position and parent name."""

    index: int
    name: str
    position: np.ndarray
    parent: str | None = None


class _ArgStream:
    def __init__(self, argv, usage):
        self._items = [str(a) for a in argv]
        self._pos = 0
        self.usage = usage

    def __bool__(self):
        return self._pos < len(self._items)

    def remaining(self) -> int:
        return len(self._items) - self._pos

    def take(self) -> str:
        item = self._items[self._pos]
        self._pos += 1
        return item

    def number(self) -> float:
        text = self.take()
        try:
            return float(text)
        except ValueError as exc:
            raise UsageError(f"Not a number: {text}", self.usage) from exc

    def fail(self, message):
        raise UsageError(message, self.usage)


def _start(argv, usage):
    if argv is None:
        argv = sys.argv[1:]
    args = _ArgStream(argv, usage)
    if not args:
        args.fail("No mesh file given")
    return args, args.take()


def _common_option(args, opts, option) -> bool:
    """Handle options shared by the attach and demo commands."""
    if option == "-skel":
        if not args:
            log.warning("No skeleton specified; ignoring.")
            return True
        opts.skeleton = args.take()
        return True
    if option == "-rot":
        if args.remaining() < 4:
            args.fail("Too few rotation arguments; exiting.")
        x, y, z, deg = (args.number() for _ in range(4))
        opts.mesh_transform = (
            Quaternion.from_axis_angle((x, y, z), deg * math.pi / 180.0) * opts.mesh_transform
        )
        return True
    if option == "-scale":
        if not args:
            args.fail("No scale provided; exiting.")
        opts.skel_scale = args.number()
        return True
    if option in ("-meshonly", "-mo"):
        opts.stop_at_mesh = True
        return True
    if option in ("-circlesonly", "-co"):
        opts.stop_after_circles = True
        return True
    return False


def parse_attach_args(argv) -> AttachOptions:
    """Parse the weight-attaching command line (without the program name)."""
    args, filename = _start(argv, ATTACH_USAGE)
    opts = AttachOptions(filename)
    while args:
        option = args.take()
        if _common_option(args, opts, option):
            continue
        if option == "-fit":
            opts.fit = True
        elif option == "-stiffness":
            if not args:
                args.fail("No stiffness provided; exiting.")
            opts.stiffness = args.number()
        elif option == "-skelOut":
            if not args:
                log.warning("No skeleton output specified; ignoring.")
                continue
            opts.skel_out = args.take()
        elif option == "-weightOut":
            if not args:
                log.warning("No weight output specified; ignoring.")
                continue
            opts.weight_out = args.take()
        else:
            args.fail(f"Unrecognized option: {option}")
    return opts


def parse_demo_args(argv) -> DemoOptions:
    """Parse the viewer command line (without the program name)."""
    args, filename = _start(argv, DEMO_USAGE)
    opts = DemoOptions(filename)
    while args:
        option = args.take()
        if _common_option(args, opts, option):
            continue
        if option == "-nofit":
            opts.fit = False
        elif option == "-motion":
            if not args:
                log.warning("No motion filename specified; ignoring.")
                continue
            opts.motion = args.take()
        else:
            args.fail(f"Unrecognized option: {option}")
    return opts


def parse_animal_args(argv) -> DemoOptions:
    """Parse the animal viewer command line; ``-skel`` names a skeleton file."""
    args, filename = _start(argv, ANIMAL_USAGE)
    opts = DemoOptions(filename)
    while args:
        option = args.take()
        if option == "-skel":
            if not args:
                log.warning("No skeleton specified; ignoring.")
                continue
            opts.skeleton = args.take()
        else:
            args.fail(f"Unrecognized option: {option}")
    return opts


def read_animal_skeleton(path) -> list:
    """Read joints written as ``index name x y z parent`` lines; parent ``None`` marks the root."""
    out = []
    names = set()
    with open(path, encoding="utf-8") as stream:
        for line_num, line in enumerate(stream, 1):
            words = line.split()
            if not words:
                continue
            if len(words) < 6:
                raise ValueError(f"too few fields in line {line_num}")
            try:
                index = int(words[0])
                position = np.array([float(w) for w in words[2:5]])
            except ValueError as exc:
                raise ValueError(f"bad number in line {line_num}") from exc
            name, parent = words[1], words[5]
            if parent == "None":
                parent = None
            elif parent not in names:
                raise ValueError(f"unknown parent joint {parent!r} in line {line_num}")
            names.add(name)
            out.append(JointRecord(index, name, position, parent))
    return out


def _fmt(value) -> str:
    return f"{float(value):.6g}"


def write_skeleton(path, embedding, prev):
    """Write ``index x y z parent`` for every embedded joint."""
    with open(path, "w", encoding="utf-8") as stream:
        for i, (point, parent) in enumerate(zip(embedding, prev)):
            x, y, z = (float(c) for c in np.asarray(point, dtype=float))
            stream.write(f"{i} {_fmt(x)} {_fmt(y)} {_fmt(z)} {int(parent)}\n")


def write_attachment(path, weights):
    """Write each vertex's bone weights, rounded to four decimals, one vertex per line."""
    with open(path, "w", encoding="utf-8") as stream:
        for row in weights:
            for w in row:
                rounded = math.floor(0.5 + float(w) * 10000.0) / 10000.0
                stream.write(f"{_fmt(rounded)} ")
            stream.write("\n")