"""
Hex Grid Mesh Builder

A single-file Python library and CLI tool for hexagonal grid geometry. Computes
hexagon metrics (radii, corners, cell centres, offset/cube coordinates) and
builds a renderable triangle mesh for a width x height grid of flat-top or
pointy-top hexagons. The mesh is written as a Wavefront OBJ file, with an
optional PNG preview of the grid rendered via Pillow.

Usage:
    python hexmesh.py --debug
    python hexmesh.py --width 16 --height 12 --hex_size 2 --orientation flat_top
    python hexmesh.py --preview grid.png --labels --antialias high
    python hexmesh.py --pick 3.5,2.0 --debug
    python hexmesh.py --import_settings settings.json
    python hexmesh.py --export_settings settings.json
"""

import argparse
import json
import math
import os
import re
import sys
from enum import Enum
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont


Vec3 = Tuple[float, float, float]
Cube = Tuple[int, int, int]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class HexGeometryError(ValueError):
    """Base class for hex geometry contract violations."""


class InvalidDimensionError(HexGeometryError):
    """Raised when a grid width or height is negative or not an integer."""


class InvalidSizeError(HexGeometryError):
    """Raised when a hex size is not a finite number greater than zero."""


class InvalidCornerIndexError(HexGeometryError):
    """Raised when a corner index lies outside [0, 5]."""


# ---------------------------------------------------------------------------
# HexOrientation
# ---------------------------------------------------------------------------
class HexOrientation(Enum):
    """Hexagon alignment on the grid plane.

    FLAT_TOP hexagons have a flat edge facing +Z and stagger their columns.
    POINTY_TOP hexagons have a corner facing +Z and stagger their rows.
    """

    FLAT_TOP = "flat_top"
    POINTY_TOP = "pointy_top"

    @property
    def angle_offset(self) -> float:
        """Return the corner angle offset in degrees (0 or 30)."""
        return 30.0 if self is HexOrientation.POINTY_TOP else 0.0

    @classmethod
    def parse(cls, value) -> "HexOrientation":
        """Resolve an orientation from an enum member or a name string.

        Accepts ``flat_top``, ``FlatTop``, ``flat-top`` and ``flat`` (and the
        pointy equivalents), case-insensitively.

        Args:
            value: A HexOrientation member or a string naming one.

        Returns:
            The matching HexOrientation member.

        Raises:
            ValueError: If the value does not name an orientation.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = re.sub(r"[\s_\-]", "", value).lower()
            if key.endswith("top"):
                key = key[:-3]
            if key == "flat":
                return cls.FLAT_TOP
            if key == "pointy":
                return cls.POINTY_TOP
        choices = ", ".join(member.value for member in cls)
        raise ValueError(f"Invalid orientation '{value}'. Must be one of: {choices}")


# ---------------------------------------------------------------------------
# HexMetrics
# ---------------------------------------------------------------------------
class HexMetrics:
    """Stateless hexagon geometry queries.

    Every hexagon lies in the horizontal XZ plane (y = 0). The configured hex
    size doubles as the outer radius; cells are addressed with offset
    coordinates (column x, row z) where odd rows (pointy-top) or odd columns
    (flat-top) are shifted by half a cell. Offset arithmetic uses floor
    division, so the stagger pattern continues unchanged for negative
    coordinates.
    """

    INNER_RADIUS_RATIO: float = math.sqrt(3) / 2.0
    CORNER_COUNT: int = 6

    @staticmethod
    def outer_radius(size: float) -> float:
        """Return the outer radius (centre-to-corner distance), equal to size."""
        return size

    @staticmethod
    def inner_radius(size: float) -> float:
        """Return the inner radius (apothem) r = size * sqrt(3)/2."""
        return size * HexMetrics.INNER_RADIUS_RATIO

    @staticmethod
    def corner(size: float, orientation: HexOrientation, index: int) -> Vec3:
        """Compute one corner offset of a hexagon centred at the origin.

        Corner i sits at angle 60*i degrees, plus 30 degrees for pointy-top,
        measured from +X towards +Z.

        Args:
            size: Hex size (outer radius).
            orientation: Hexagon orientation.
            index: Corner index in [0, 5].

        Returns:
            An (x, 0, z) tuple relative to the hexagon centre.

        Raises:
            InvalidCornerIndexError: If index is not an integer in [0, 5].
        """
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < HexMetrics.CORNER_COUNT:
            raise InvalidCornerIndexError(f"Corner index must be an integer in [0, 5], got {index!r}")
        orientation = HexOrientation.parse(orientation)
        angle = math.radians(60.0 * index + orientation.angle_offset)
        return (size * math.cos(angle), 0.0, size * math.sin(angle))

    @staticmethod
    def corners(size: float, orientation: HexOrientation) -> List[Vec3]:
        """Return all 6 corner offsets in increasing angle order.

        Corner i and corner (i + 1) % 6 always share an edge.

        Args:
            size: Hex size (outer radius).
            orientation: Hexagon orientation.

        Returns:
            A list of 6 (x, 0, z) tuples.
        """
        return [HexMetrics.corner(size, orientation, i) for i in range(HexMetrics.CORNER_COUNT)]

    @staticmethod
    def center(size: float, x: int, z: int, orientation: HexOrientation) -> Vec3:
        """Compute the world-space centre of grid cell (x, z).

        Args:
            size: Hex size (outer radius).
            x: Offset column.
            z: Offset row.
            orientation: Hexagon orientation.

        Returns:
            An (x, 0, z) world position.
        """
        orientation = HexOrientation.parse(orientation)
        if orientation is HexOrientation.POINTY_TOP:
            world_x = (x + z * 0.5 - z // 2) * (HexMetrics.inner_radius(size) * 2.0)
            world_z = z * (HexMetrics.outer_radius(size) * 1.5)
        else:
            world_x = x * (HexMetrics.outer_radius(size) * 1.5)
            world_z = (z + x * 0.5 - x // 2) * (HexMetrics.inner_radius(size) * 2.0)
        return (float(world_x), 0.0, float(world_z))

    @staticmethod
    def offset_to_cube(x: int, z: int, orientation: HexOrientation) -> Cube:
        """Convert offset coordinates to cube coordinates.

        Pointy-top grids use the odd-row layout, flat-top grids the odd-column
        layout, matching the stagger applied by center().

        Args:
            x: Offset column.
            z: Offset row.
            orientation: Hexagon orientation.

        Returns:
            A (cube_x, cube_y, cube_z) tuple with cube_x + cube_y + cube_z == 0.
        """
        orientation = HexOrientation.parse(orientation)
        if orientation is HexOrientation.POINTY_TOP:
            cube_x = x - (z - (z & 1)) // 2
            cube_z = z
        else:
            cube_x = x
            cube_z = z - (x - (x & 1)) // 2
        return (cube_x, -cube_x - cube_z, cube_z)

    @staticmethod
    def cube_to_offset(cube: Cube, orientation: HexOrientation) -> Tuple[int, int]:
        """Convert cube coordinates back to offset coordinates.

        Args:
            cube: A (cube_x, cube_y, cube_z) tuple summing to zero.
            orientation: Hexagon orientation.

        Returns:
            An (x, z) offset coordinate.

        Raises:
            HexGeometryError: If the cube components do not sum to zero.
        """
        cube_x, cube_y, cube_z = cube
        if cube_x + cube_y + cube_z != 0:
            raise HexGeometryError(f"Cube coordinates must sum to 0, got {cube}")
        orientation = HexOrientation.parse(orientation)
        if orientation is HexOrientation.POINTY_TOP:
            return (cube_x + (cube_z - (cube_z & 1)) // 2, cube_z)
        return (cube_x, cube_z + (cube_x - (cube_x & 1)) // 2)

    @staticmethod
    def distance(a: Tuple[int, int], b: Tuple[int, int], orientation: HexOrientation) -> int:
        """Return the number of hex steps between two offset cells."""
        ax, ay, az = HexMetrics.offset_to_cube(a[0], a[1], orientation)
        bx, by, bz = HexMetrics.offset_to_cube(b[0], b[1], orientation)
        return max(abs(ax - bx), abs(ay - by), abs(az - bz))

    @staticmethod
    def cell_at(size: float, world_x: float, world_z: float, orientation: HexOrientation) -> Tuple[int, int]:
        """Find the offset cell whose hexagon contains a point on the grid plane.

        Inverse of center(): the point is converted to fractional cube
        coordinates and rounded to the nearest cell.

        Args:
            size: Hex size (outer radius).
            world_x: World X coordinate of the point.
            world_z: World Z coordinate of the point.
            orientation: Hexagon orientation.

        Returns:
            The (x, z) offset coordinate of the containing cell.

        Raises:
            InvalidSizeError: If size is not greater than zero.
            HexGeometryError: If the point is not finite.
        """
        if not size > 0:
            raise InvalidSizeError(f"Hex size must be > 0, got {size!r}")
        if not (math.isfinite(world_x) and math.isfinite(world_z)):
            raise HexGeometryError(f"Point must be finite, got ({world_x}, {world_z})")
        orientation = HexOrientation.parse(orientation)
        if orientation is HexOrientation.POINTY_TOP:
            fx = (math.sqrt(3) / 3.0 * world_x - world_z / 3.0) / size
            fz = (2.0 / 3.0 * world_z) / size
        else:
            fx = (2.0 / 3.0 * world_x) / size
            fz = (math.sqrt(3) / 3.0 * world_z - world_x / 3.0) / size
        return HexMetrics.cube_to_offset(HexMetrics._cube_round(fx, -fx - fz, fz), orientation)

    @staticmethod
    def _cube_round(fx: float, fy: float, fz: float) -> Cube:
        # Reset the component with the largest rounding error so x + y + z == 0.
        rx, ry, rz = round(fx), round(fy), round(fz)
        dx, dy, dz = abs(rx - fx), abs(ry - fy), abs(rz - fz)
        if dx > dy and dx > dz:
            rx = -ry - rz
        elif dy > dz:
            ry = -rx - rz
        else:
            rz = -rx - ry
        return (int(rx), int(ry), int(rz))


# ---------------------------------------------------------------------------
# HexMesh
# ---------------------------------------------------------------------------
class HexMesh(NamedTuple):
    """Immutable vertex and triangle buffers for a hex grid.

    Attributes:
        vertices: 7 vertices per cell; slot 0 is the centre, slots 1..6 are
            the corners in increasing angle order.
        triangles: Flat vertex index list, 3 entries per triangle and
            6 triangles per cell.
    """

    vertices: Tuple[Vec3, ...]
    triangles: Tuple[int, ...]

    @property
    def cell_count(self) -> int:
        """Return the number of hex cells in the mesh."""
        return len(self.vertices) // HexGridMeshBuilder.VERTICES_PER_CELL

    @property
    def triangle_count(self) -> int:
        """Return the number of triangles (not indices) in the mesh."""
        return len(self.triangles) // 3

    def faces(self) -> Iterator[Tuple[int, int, int]]:
        """Yield each triangle as a (centre, corner, next corner) index triple."""
        for i in range(0, len(self.triangles), 3):
            yield (self.triangles[i], self.triangles[i + 1], self.triangles[i + 2])

    def cell_slice(self, x: int, z: int, width: int) -> Tuple[Vec3, ...]:
        """Return the 7 vertices owned by cell (x, z) of a grid `width` cells wide.

        Raises:
            IndexError: If the cell is not part of this mesh.
        """
        cell = z * width + x
        if not 0 <= x < width or not 0 <= cell < self.cell_count:
            raise IndexError(f"Cell ({x}, {z}) is outside the mesh")
        base = cell * HexGridMeshBuilder.VERTICES_PER_CELL
        return self.vertices[base:base + HexGridMeshBuilder.VERTICES_PER_CELL]


# ---------------------------------------------------------------------------
# HexGridMeshBuilder
# ---------------------------------------------------------------------------
class HexGridMeshBuilder:
    """Builds triangle-fan meshes for rectangular hex grids.

    Cells do not share vertices: each cell owns one centre vertex and six
    corner vertices, and is covered by six triangles fanned from its centre.
    Every call builds fresh buffers; no state is kept between calls.
    """

    VERTICES_PER_CELL: int = 7
    TRIANGLES_PER_CELL: int = 6

    def build(self, width: int, height: int, size: float, orientation: HexOrientation) -> HexMesh:
        """Build the mesh for a width x height grid of hexagons.

        Cells are emitted row by row (z outer, x inner). Cell (x, z) occupies
        vertex slots starting at 7 * (z * width + x); its triangles are
        (base, base + 1 + s, base + 1 + (s + 1) % 6) for s in 0..5.

        Args:
            width: Number of columns (>= 0).
            height: Number of rows (>= 0).
            size: Hex size (outer radius, > 0).
            orientation: Hexagon orientation.

        Returns:
            A HexMesh with 7 * width * height vertices and
            18 * width * height triangle indices.

        Raises:
            InvalidDimensionError: If width or height is negative or not an int.
            InvalidSizeError: If size is not a finite number > 0.
        """
        self._validate_dimension("width", width)
        self._validate_dimension("height", height)
        self._validate_size(size)
        orientation = HexOrientation.parse(orientation)

        corners = HexMetrics.corners(size, orientation)
        vertices: List[Vec3] = []
        triangles: List[int] = []

        for z in range(height):
            for x in range(width):
                cx, cy, cz = HexMetrics.center(size, x, z, orientation)
                base = self.VERTICES_PER_CELL * (z * width + x)
                vertices.append((cx, cy, cz))
                vertices.extend((cx + ox, cy + oy, cz + oz) for ox, oy, oz in corners)
                for s in range(self.TRIANGLES_PER_CELL):
                    triangles.extend((base, base + 1 + s, base + 1 + (s + 1) % 6))

        return HexMesh(vertices=tuple(vertices), triangles=tuple(triangles))

    def _validate_dimension(self, name: str, value: int) -> None:
        """Reject a grid dimension that is not a non-negative int.

        Args:
            name: Dimension name used in the error message.
            value: The width or height to check.

        Raises:
            InvalidDimensionError: If value is not an int (bool excluded) or is negative.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidDimensionError(f"Grid {name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidDimensionError(f"Grid {name} must be >= 0, got {value}")

    def _validate_size(self, size: float) -> None:
        """Reject a hex size that is not a finite number above zero.

        Args:
            size: The hex size to check.

        Raises:
            InvalidSizeError: If size is not numeric, not finite, or <= 0.
        """
        if isinstance(size, bool) or not isinstance(size, (int, float)):
            raise InvalidSizeError(f"Hex size must be a number, got {size!r}")
        if not math.isfinite(size) or size <= 0:
            raise InvalidSizeError(f"Hex size must be a finite number > 0, got {size}")


# ---------------------------------------------------------------------------
# MeshExporter
# ---------------------------------------------------------------------------
class MeshExporter:
    """Writes hex meshes as Wavefront OBJ text.

    Only positions and faces are written; normals and bounds are left to the
    consuming tool.
    """

    OBJECT_NAME: str = "hex_grid"

    def to_obj(self, mesh: HexMesh) -> str:
        """Serialise a mesh to OBJ text.

        Args:
            mesh: The mesh to serialise.

        Returns:
            OBJ source with one ``v`` line per vertex and one 1-based ``f``
            line per triangle, in buffer order.
        """
        lines = [
            f"# {len(mesh.vertices)} vertices, {mesh.triangle_count} triangles",
            f"o {self.OBJECT_NAME}",
        ]
        lines.extend(f"v {x:.6f} {y:.6f} {z:.6f}" for x, y, z in mesh.vertices)
        lines.extend(f"f {a + 1} {b + 1} {c + 1}" for a, b, c in mesh.faces())
        return "\n".join(lines) + "\n"

    def export_obj(self, mesh: HexMesh, path: str) -> None:
        """Write a mesh to an OBJ file.

        Args:
            mesh: The mesh to write.
            path: Output file path.

        Raises:
            OSError: If the file cannot be written.
        """
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(self.to_obj(mesh))


# ---------------------------------------------------------------------------
# ColorParser
# ---------------------------------------------------------------------------
class ColorParser:
    """Turns preview colour settings into (R, G, B) tuples.

    Strings go through Pillow's ImageColor (CSS names, '#RGB', '#RRGGBB',
    'rgb(...)', and alpha forms such as '#RRGGBBAA' with the alpha dropped,
    since the preview canvas is RGB). Comma-separated strings like
    '32,64,128' and JSON component lists like [32, 64, 128] are also
    accepted, so colours survive a settings export/import round trip in
    either form.
    """

    def parse(self, value) -> Tuple[int, int, int]:
        """Parse a colour setting.

        Args:
            value: A colour string or a sequence of 3 integer components.

        Returns:
            An (R, G, B) tuple of integers in [0, 255].

        Raises:
            ValueError: If the value is not a recognised colour.
        """
        if isinstance(value, (list, tuple)):
            return self._check_components(list(value), value)
        if not isinstance(value, str):
            raise ValueError(f"Invalid color specification: {value!r}")
        text = value.strip()
        if "," in text and not text.lower().startswith(("rgb", "hsl", "hsv")):
            parts = [p.strip() for p in text.split(",")]
            try:
                components = [int(p) for p in parts]
            except ValueError:
                raise ValueError(f"Color components must be integers: '{text}'")
            return self._check_components(components, text)
        try:
            rgb = ImageColor.getrgb(text)
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid color specification: '{value}'")
        return (rgb[0], rgb[1], rgb[2])

    def _check_components(self, components: List, source) -> Tuple[int, int, int]:
        """Validate explicit R, G, B components.

        Args:
            components: The parsed component values.
            source: The original setting, quoted in error messages.

        Returns:
            An (R, G, B) tuple.

        Raises:
            ValueError: If there are not exactly 3 integers in [0, 255].
        """
        if len(components) != 3:
            raise ValueError(f"Color must have 3 components, got {len(components)}: {source!r}")
        for v in components:
            if isinstance(v, bool) or not isinstance(v, int):
                raise ValueError(f"Color components must be integers: {source!r}")
            if not 0 <= v <= 255:
                raise ValueError(f"Color components must be in [0, 255], got {v}: {source!r}")
        return (components[0], components[1], components[2])


# ---------------------------------------------------------------------------
# GridPreviewRenderer
# ---------------------------------------------------------------------------
class GridPreviewRenderer:
    """Renders a top-down PNG preview of a hex grid mesh.

    World X maps to image X and world Z maps to image Y, flipped so +Z points
    up. Cells are filled from the mesh triangles, outlined edge by edge, and
    optionally labelled with their offset and cube coordinates.
    """

    # Supersampling factors per anti-alias level.
    _AA_SCALES: Dict[str, int] = {
        "off": 1,
        "low": 2,
        "medium": 4,
        "high": 8,
    }
    AA_LEVELS: Tuple[str, ...] = tuple(_AA_SCALES)

    def render(
        self,
        mesh: HexMesh,
        grid_width: int,
        size: float,
        orientation: HexOrientation,
        pixels_per_unit: float,
        line_width: int,
        color_fill: Tuple[int, int, int],
        color_line: Tuple[int, int, int],
        color_background: Tuple[int, int, int],
        antialias: str = "off",
        labels: bool = False,
    ) -> Tuple[Image.Image, int]:
        """Render the preview image.

        Args:
            mesh: Mesh produced by HexGridMeshBuilder.
            grid_width: Number of columns the mesh was built with.
            size: Hex size the mesh was built with.
            orientation: Orientation the mesh was built with.
            pixels_per_unit: Image pixels per world unit.
            line_width: Outline width in pixels (0 = no outline).
            color_fill: Cell fill colour.
            color_line: Outline and label colour.
            color_background: Background colour.
            antialias: Anti-alias level ('off', 'low', 'medium', 'high').
            labels: Whether to draw offset and cube coordinate labels.

        Returns:
            A tuple of (PIL Image, number of cells drawn).

        Raises:
            ValueError: If pixels_per_unit is not a finite number > 0,
                line_width is not a non-negative int, or the anti-alias
                level is unknown.
        """
        if (isinstance(pixels_per_unit, bool) or not isinstance(pixels_per_unit, (int, float))
                or not math.isfinite(pixels_per_unit) or pixels_per_unit <= 0):
            raise ValueError(f"Pixels per unit must be a finite number > 0, got {pixels_per_unit!r}")
        if isinstance(line_width, bool) or not isinstance(line_width, int) or line_width < 0:
            raise ValueError(f"Line width must be an integer >= 0, got {line_width!r}")
        if antialias not in self._AA_SCALES:
            raise ValueError(
                f"Invalid antialias level '{antialias}'. "
                f"Must be one of: {', '.join(sorted(self._AA_SCALES))}"
            )
        k = self._AA_SCALES[antialias]
        padding = max(pixels_per_unit * 0.25, 4.0)

        if mesh.vertices:
            xs = [v[0] for v in mesh.vertices]
            zs = [v[2] for v in mesh.vertices]
            min_x, max_x, min_z, max_z = min(xs), max(xs), min(zs), max(zs)
        else:
            min_x = max_x = min_z = max_z = 0.0

        width = int(math.ceil((max_x - min_x) * pixels_per_unit + 2 * padding))
        height = int(math.ceil((max_z - min_z) * pixels_per_unit + 2 * padding))

        def project(vertex: Vec3, scale: int) -> Tuple[float, float]:
            px = ((vertex[0] - min_x) * pixels_per_unit + padding) * scale
            py = ((max_z - vertex[2]) * pixels_per_unit + padding) * scale
            return (px, py)

        img = Image.new("RGB", (width * k, height * k), color_background)
        draw = ImageDraw.Draw(img)

        for face in mesh.faces():
            draw.polygon([project(mesh.vertices[i], k) for i in face], fill=color_fill)

        stride = HexGridMeshBuilder.VERTICES_PER_CELL
        if line_width > 0:
            for cell in range(mesh.cell_count):
                ring = [project(v, k) for v in mesh.vertices[cell * stride + 1:(cell + 1) * stride]]
                for s in range(len(ring)):
                    draw.line([ring[s], ring[(s + 1) % len(ring)]], fill=color_line, width=line_width * k)

        if k > 1:
            img = img.resize((width, height), Image.LANCZOS)

        if labels and grid_width > 0:
            self._draw_labels(img, mesh, grid_width, size, orientation, pixels_per_unit, color_line, project)

        return img, mesh.cell_count

    def _draw_labels(
        self,
        img: Image.Image,
        mesh: HexMesh,
        grid_width: int,
        size: float,
        orientation: HexOrientation,
        pixels_per_unit: float,
        color: Tuple[int, int, int],
        project: Callable[[Vec3, int], Tuple[float, float]],
    ) -> None:
        """Draw the offset label above and the cube label on each cell centre.

        Args:
            img: Final-resolution preview image, drawn on in place.
            mesh: Mesh the image was rendered from.
            grid_width: Number of columns, used to recover (x, z) per cell.
            size: Hex size, sets how far the offset label is lifted.
            orientation: Orientation used for the cube conversion.
            pixels_per_unit: Image pixels per world unit.
            color: Label colour.
            project: World-to-image projection used by render().
        """
        draw = ImageDraw.Draw(img)
        font = ImageFont.load_default()
        stride = HexGridMeshBuilder.VERTICES_PER_CELL
        lift = HexMetrics.inner_radius(size) * 0.5 * pixels_per_unit

        for cell in range(mesh.cell_count):
            x, z = cell % grid_width, cell // grid_width
            cube = HexMetrics.offset_to_cube(x, z, orientation)
            cx, cy = project(mesh.vertices[cell * stride], 1)
            self._centred_text(draw, (cx, cy - lift), f"[{x}, {z}]", font, color)
            self._centred_text(draw, (cx, cy), f"({cube[0]}, {cube[1]}, {cube[2]})", font, color)

    def _centred_text(
        self,
        draw: ImageDraw.ImageDraw,
        position: Tuple[float, float],
        text: str,
        font,
        color: Tuple[int, int, int],
    ) -> None:
        """Draw text centred on a pixel position.

        Args:
            draw: Drawing context of the target image.
            position: (x, y) pixel position of the text centre.
            text: Label text.
            font: Pillow font used for measuring and drawing.
            color: Text colour.
        """
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = position[0] - (right - left) / 2.0
        y = position[1] - (bottom - top) / 2.0
        draw.text((x, y), text, fill=color, font=font)


# ---------------------------------------------------------------------------
# SettingsManager
# ---------------------------------------------------------------------------
class SettingsManager:
    """JSON import/export of parameter sets with CLI-precedence logic.

    Imported values override argparse defaults; flags given explicitly on the
    command line override imported values.
    """

    _PERSISTED_KEYS: List[str] = [
        "width", "height", "hex_size", "orientation", "file", "preview",
        "pixels_per_unit", "line_width", "labels", "color_fill", "color_line",
        "color_background", "antialias", "debug",
    ]

    def export_settings(self, params: argparse.Namespace, path: str) -> None:
        """Export the persisted parameters to a JSON file.

        Args:
            params: The resolved argparse Namespace.
            path: Output JSON file path.

        Raises:
            OSError: If the file cannot be written.
        """
        data: Dict = {}
        for key in self._PERSISTED_KEYS:
            val = getattr(params, key, None)
            if isinstance(val, HexOrientation):
                val = val.value
            data[key] = val
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def import_settings(self, path: str) -> Dict:
        """Load a settings dictionary from a JSON file.

        Args:
            path: Path to the JSON settings file.

        Returns:
            The decoded settings.

        Raises:
            FileNotFoundError: If the file does not exist.
            json.JSONDecodeError: If the file is not valid JSON.
            ValueError: If the file does not hold a JSON object.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: '{path}'")
        return data

    def merge_settings(
        self,
        defaults: argparse.Namespace,
        json_settings: Dict,
        explicit_keys: set,
    ) -> argparse.Namespace:
        """Merge imported settings into parsed arguments.

        Args:
            defaults: The argparse Namespace with default/CLI values.
            json_settings: Dictionary loaded from JSON.
            explicit_keys: Names of parameters given explicitly on the CLI.

        Returns:
            The updated Namespace.
        """
        for key in self._PERSISTED_KEYS:
            if key in json_settings and key not in explicit_keys:
                setattr(defaults, key, json_settings[key])
        return defaults


# ---------------------------------------------------------------------------
# Version helper
# ---------------------------------------------------------------------------
def _changelog_version(fallback: str = "0.0.0") -> str:
    """Read the highest version from CHANGELOG.md next to this module.

    Returns the first ``## [X.Y.Z]`` heading, or *fallback* when the file is
    missing or has no versioned headings.
    """
    changelog = os.path.join(os.path.dirname(os.path.abspath(__file__)), "CHANGELOG.md")
    try:
        with open(changelog, "r", encoding="utf-8") as fh:
            for line in fh:
                m = re.match(r"^##\s+\[(\d+\.\d+\.\d+)\]", line)
                if m:
                    return m.group(1)
    except OSError:
        pass
    return fallback


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
class Application:
    """Command-line entry point.

    Parses arguments, applies settings files, builds the mesh, writes the OBJ
    file and optional PNG preview, and prints the run report.
    """

    VERSION:      str = _changelog_version("1.0.0")
    BUILD_DATE:   str = "2026-10-19"
    TITLE:        str = "Hex Grid Mesh Builder"
    AUTHOR:       str = "AOC Sandbox"
    BANNER_WIDTH: int = 60

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Execute the full pipeline.

        Args:
            argv: Argument list, defaults to sys.argv[1:].

        Returns:
            None. Exits with status 1 on any user error.
        """
        # Step 1: Parse CLI arguments and detect explicit keys
        args, explicit_keys = self._parse_args(argv)

        # Step 2: Import settings if requested
        if args.import_settings:
            import_path = self._with_extension(args.import_settings, ".json")
            try:
                manager = SettingsManager()
                json_data = manager.import_settings(import_path)
                args = manager.merge_settings(args, json_data, explicit_keys)
            except FileNotFoundError:
                self._fail(f"Settings file not found: '{import_path}'")
            except json.JSONDecodeError as e:
                self._fail(f"Malformed JSON in settings file: {e}")
            except ValueError as e:
                self._fail(str(e))

        # Step 3: Resolve orientation and preview options
        try:
            args.orientation = HexOrientation.parse(args.orientation)
        except ValueError as e:
            self._fail(str(e))

        if args.antialias not in GridPreviewRenderer.AA_LEVELS:
            self._fail(f"Invalid antialias level '{args.antialias}'. "
                       f"Must be one of: {', '.join(sorted(GridPreviewRenderer.AA_LEVELS))}")

        colors: Tuple = ()
        if args.preview:
            parser = ColorParser()
            try:
                colors = (
                    parser.parse(args.color_fill),
                    parser.parse(args.color_line),
                    parser.parse(args.color_background),
                )
            except ValueError as e:
                self._fail(str(e))

        if not isinstance(args.file, str) or not args.file:
            self._fail(f"Output file must be a non-empty string, got {args.file!r}")
        if args.preview is not None and not isinstance(args.preview, str):
            self._fail(f"Preview file must be a string, got {args.preview!r}")

        pick: Optional[Tuple[float, float]] = None
        if args.pick:
            try:
                pick = self._parse_point(args.pick)
            except ValueError as e:
                self._fail(str(e))

        # Step 4: Export settings if requested
        export_path = None
        if args.export_settings:
            export_path = self._with_extension(args.export_settings, ".json")
            try:
                SettingsManager().export_settings(args, export_path)
            except OSError as e:
                self._fail(f"Cannot write settings file: {e}")

        # Step 5: Build the mesh and resolve the picked cell
        picked: Optional[Tuple[int, int]] = None
        try:
            mesh = HexGridMeshBuilder().build(args.width, args.height, args.hex_size, args.orientation)
            if pick is not None:
                picked = HexMetrics.cell_at(args.hex_size, pick[0], pick[1], args.orientation)
        except HexGeometryError as e:
            self._fail(str(e))

        # Step 6: Write the OBJ file
        out_file = self._with_extension(args.file, ".obj")
        try:
            MeshExporter().export_obj(mesh, out_file)
        except OSError as e:
            self._fail(f"Cannot write mesh file: {e}")

        # Step 7: Render the preview
        preview_file = None
        preview_size: Tuple[int, int] = (0, 0)
        if args.preview:
            preview_file = self._with_extension(args.preview, ".png")
            try:
                img, _ = GridPreviewRenderer().render(
                    mesh=mesh,
                    grid_width=args.width,
                    size=args.hex_size,
                    orientation=args.orientation,
                    pixels_per_unit=args.pixels_per_unit,
                    line_width=args.line_width,
                    color_fill=colors[0],
                    color_line=colors[1],
                    color_background=colors[2],
                    antialias=args.antialias,
                    labels=args.labels,
                )
                preview_size = img.size
                img.save(preview_file, "PNG")
            except (ValueError, TypeError, OverflowError) as e:
                self._fail(str(e))
            except OSError as e:
                self._fail(f"Cannot write preview file: {e}")

        # Banner and saved files (always shown)
        self._print_banner()
        for path in (out_file, preview_file, export_path):
            if path:
                print(f"  Saved: {path} ({self._format_file_size(os.path.getsize(path))})")

        if picked is not None:
            inside = 0 <= picked[0] < args.width and 0 <= picked[1] < args.height
            print(f"  Picked: ({pick[0]}, {pick[1]}) -> cell [{picked[0]}, {picked[1]}]"
                  f"{'' if inside else ' (outside grid)'}")

        # Step 8: Debug output
        if args.debug:
            self._print_debug(args=args, mesh=mesh, preview_size=preview_size, picked=picked)
        print()

    def _parse_args(self, argv: Optional[List[str]] = None) -> Tuple[argparse.Namespace, set]:
        """Parse CLI arguments and detect which were explicitly provided.

        Returns:
            A tuple of (parsed Namespace, set of explicitly-provided key names).
        """
        args = self._build_parser().parse_args(argv)

        # Second parse with SUPPRESS defaults to detect explicit keys
        explicit_args = self._build_parser(suppress_defaults=True).parse_args(argv)
        explicit_keys = set(vars(explicit_args).keys())

        return args, explicit_keys

    def _build_parser(self, suppress_defaults: bool = False) -> argparse.ArgumentParser:
        """Build the argparse ArgumentParser.

        Args:
            suppress_defaults: If True, set all defaults to SUPPRESS to
                detect explicitly-provided CLI args.
        """
        d = argparse.SUPPRESS if suppress_defaults else None
        banner = self._banner_text()

        class _BannerParser(argparse.ArgumentParser):
            """ArgumentParser that prints the banner before help text."""

            def print_help(self, file=None):
                if file is None:
                    file = sys.stdout
                file.write(banner + "\n\n")
                super().print_help(file)

        parser = _BannerParser(
            description="Hex Grid Mesh Builder: generate hexagonal grid meshes (OBJ) and previews (PNG).",
        )

        parser.add_argument("--width", type=int, default=d if d else 8,
                            help="Number of hex columns (default: 8)")
        parser.add_argument("--height", type=int, default=d if d else 6,
                            help="Number of hex rows (default: 6)")
        parser.add_argument("--hex_size", type=float, default=d if d else 1.0,
                            help="Hex size / outer radius in world units (default: 1.0)")
        parser.add_argument("--orientation", type=str, default=d if d else HexOrientation.POINTY_TOP.value,
                            help="Hex orientation: flat_top or pointy_top (default: pointy_top)")
        parser.add_argument("--file", type=str, default=d if d else "hex_grid.obj",
                            help="Output OBJ filename (default: hex_grid.obj)")
        parser.add_argument("--preview", type=str, default=d if d else None,
                            help="Also render a PNG preview to this filename")
        parser.add_argument("--pixels_per_unit", type=float, default=d if d else 48.0,
                            help="Preview scale in pixels per world unit (default: 48)")
        parser.add_argument("--line_width", type=int, default=d if d else 2,
                            help="Preview outline width in pixels, 0 = no outline (default: 2)")
        parser.add_argument("--labels", nargs="?", const=True, default=d if d else False,
                            type=self._parse_bool_flag,
                            help="Draw offset and cube coordinate labels on the preview")
        parser.add_argument("--color_fill", type=str, default=d if d else "grey",
                            help="Preview cell fill colour (default: grey)")
        parser.add_argument("--color_line", type=str, default=d if d else "black",
                            help="Preview outline/label colour (default: black)")
        parser.add_argument("--color_background", type=str, default=d if d else "white",
                            help="Preview background colour (default: white)")
        parser.add_argument("--antialias", type=str, default=d if d else "medium",
                            help="Preview anti-alias level: off, low, medium, high (default: medium)")
        parser.add_argument("--pick", type=str, default=d if d else None,
                            help="Report the cell containing world point 'X,Z'")
        parser.add_argument("--debug", nargs="?", const=True, default=d if d else False,
                            type=self._parse_bool_flag,
                            help="Enable debug output")
        parser.add_argument("--export_settings", type=str, default=None,
                            help="Export parameters to a JSON file")
        parser.add_argument("--import_settings", type=str, default=None,
                            help="Import parameters from a JSON file")

        return parser

    def _parse_bool_flag(self, value: str) -> bool:
        """Parse a boolean flag value ('true'/'false' or bare flag)."""
        if isinstance(value, bool):
            return value
        if value.lower() in ("true", "1", "yes"):
            return True
        if value.lower() in ("false", "0", "no"):
            return False
        raise argparse.ArgumentTypeError(f"Boolean value expected, got '{value}'")

    def _parse_point(self, text: str) -> Tuple[float, float]:
        """Parse an 'X,Z' world point."""
        parts = [p.strip() for p in str(text).split(",")]
        if len(parts) != 2:
            raise ValueError(f"Pick point must be 'X,Z', got '{text}'")
        try:
            return (float(parts[0]), float(parts[1]))
        except ValueError:
            raise ValueError(f"Pick point components must be numbers: '{text}'")

    def _with_extension(self, path: str, ext: str) -> str:
        """Append an extension unless the path already ends with it.

        Args:
            path: File path as given by the user.
            ext: Extension including the dot, e.g. '.obj'.

        Returns:
            The path with the extension guaranteed.
        """
        return path if path.lower().endswith(ext) else path + ext

    def _fail(self, message: str) -> None:
        """Report a user error on stderr and exit with status 1.

        Args:
            message: Error text, printed after 'Error: '.
        """
        print(f"Error: {message}", file=sys.stderr)
        sys.exit(1)

    def _banner_text(self) -> str:
        """Build the application banner as a string."""
        inner = self.BANNER_WIDTH - 2
        lines = [
            "┌" + "─" * inner + "┐",
            f"│{'  Program:    ' + self.TITLE:<{inner}}│",
            f"│{'  Version:    ' + self.VERSION:<{inner}}│",
            f"│{'  Build Date: ' + self.BUILD_DATE:<{inner}}│",
            f"│{'  Author:     ' + self.AUTHOR:<{inner}}│",
            "└" + "─" * inner + "┘",
        ]
        return "\n".join(lines)

    def _print_banner(self) -> None:
        print(self._banner_text())

    def _print_debug(
        self,
        args: argparse.Namespace,
        mesh: HexMesh,
        preview_size: Tuple[int, int],
        picked: Optional[Tuple[int, int]],
    ) -> None:
        """Print the parameter and mesh report to stdout."""
        size = args.hex_size
        print(f"\n  Grid size:        {args.width} x {args.height}")
        print(f"  Hex size:         {size}")
        print(f"  Orientation:      {args.orientation.value}")
        print(f"  Outer radius:     {HexMetrics.outer_radius(size):.6f}")
        print(f"  Inner radius:     {HexMetrics.inner_radius(size):.6f}")
        print(f"  Vertices:         {len(mesh.vertices)}")
        print(f"  Triangles:        {mesh.triangle_count} ({len(mesh.triangles)} indices)")
        if mesh.vertices:
            xs = [v[0] for v in mesh.vertices]
            zs = [v[2] for v in mesh.vertices]
            print(f"  Mesh bounds:      x [{min(xs):.4f}, {max(xs):.4f}]  z [{min(zs):.4f}, {max(zs):.4f}]")
        else:
            print("  Mesh bounds:      (empty)")
        if args.preview:
            print(f"  Preview:          {preview_size[0]} x {preview_size[1]} px, "
                  f"antialias {args.antialias}, labels {args.labels}")
            print(f"  Colours:          fill {args.color_fill}, line {args.color_line}, "
                  f"background {args.color_background}")
        if picked is not None:
            print(f"  Picked cell cube: {HexMetrics.offset_to_cube(picked[0], picked[1], args.orientation)}")

    def _format_file_size(self, size_bytes: int) -> str:
        """Format a file size in human-readable form (e.g. '1.23 KB')."""
        if size_bytes < 1024:
            return f"{size_bytes} B"
        elif size_bytes < 1024 * 1024:
            return f"{size_bytes / 1024:.2f} KB"
        else:
            return f"{size_bytes / (1024 * 1024):.2f} MB"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def main() -> None:
    """Main entry point for the Hex Grid Mesh Builder."""
    if sys.stdout and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    app = Application()
    app.run()


if __name__ == "__main__":
    main()
