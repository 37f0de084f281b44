# =============================
# ShaderGraph — tagged expression tree, interpreter, GLSL compiler
# =============================
"""
Effects are described as a small acyclic expression tree instead of
hand-written GLSL.  A graph is plain data (frozen dataclasses), so it
can be compared, hashed, serialised and evaluated without a GPU:

    build  → ShaderGraph (data)
             ├── evaluate()     numpy interpreter (tests, previews)
             └── compile_glsl() fragment shader for the Renderer

Node kinds::

    UV, Const, Uniform, TextureSample, Swizzle, Vec,
    Unary, Binary, Smoothstep, SdCross, CellNoise, ScreenBlend

Every value carries a component count (``dim``): 1 for scalars,
2..4 for vectors.  Scalars broadcast against vectors in arithmetic,
as in GLSL.

The constructor helpers at the bottom (``uv()``, ``texture()``,
``smoothstep()`` ...) plus the arithmetic operators on ``Node`` give
builders a chaining style close to the shader languages they replace.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, fields
from functools import cached_property
from typing import Dict, Tuple

import numpy as np

import shader_math
from errors import GraphBuildError
from shaders import FRAGMENT_TEMPLATE, GLSL_LIBRARY

log = logging.getLogger(__name__)

# Uniform / texture slots a graph may reference, with component counts
UNIFORM_DIMS = {"pointer": 2, "progress": 1, "tint": 3}
TEXTURE_DIMS = {"raw": 3, "depth": 1}

_UNARY_OPS = ("abs", "one_minus", "neg", "floor", "length")
_BINARY_OPS = ("add", "sub", "mul", "div", "mod", "max", "min")
_SWIZZLE = {"x": 0, "y": 1, "z": 2, "w": 3, "r": 0, "g": 1, "b": 2, "a": 3}


# ────────────────── Node kinds ──────────────────

def _wrap(value):
    if isinstance(value, Node):
        return value
    if isinstance(value, (tuple, list)):
        return Const(tuple(float(v) for v in value))
    return Const((float(value),))


@dataclass(frozen=True)
class Node:
    """Base of all graph nodes.  Arithmetic operators build ``Binary`` nodes."""

    def __add__(self, other):
        return Binary("add", self, _wrap(other))

    def __radd__(self, other):
        return Binary("add", _wrap(other), self)

    def __sub__(self, other):
        return Binary("sub", self, _wrap(other))

    def __rsub__(self, other):
        return Binary("sub", _wrap(other), self)

    def __mul__(self, other):
        return Binary("mul", self, _wrap(other))

    def __rmul__(self, other):
        return Binary("mul", _wrap(other), self)

    def __truediv__(self, other):
        return Binary("div", self, _wrap(other))

    def __neg__(self):
        return Unary("neg", self)

    def __abs__(self):
        return Unary("abs", self)


@dataclass(frozen=True)
class UV(Node):
    """Normalised surface coordinate, origin bottom-left, v up."""


@dataclass(frozen=True)
class Const(Node):
    value: Tuple[float, ...]


@dataclass(frozen=True)
class Uniform(Node):
    name: str


@dataclass(frozen=True)
class TextureSample(Node):
    texture: str
    coord: Node


@dataclass(frozen=True)
class Swizzle(Node):
    source: Node
    components: str


@dataclass(frozen=True)
class Vec(Node):
    parts: Tuple[Node, ...]


@dataclass(frozen=True)
class Unary(Node):
    op: str
    a: Node


@dataclass(frozen=True)
class Binary(Node):
    op: str
    a: Node
    b: Node


@dataclass(frozen=True)
class Smoothstep(Node):
    edge0: Node
    edge1: Node
    x: Node


@dataclass(frozen=True)
class SdCross(Node):
    p: Node
    half_extents: Node
    radius: Node


@dataclass(frozen=True)
class CellNoise(Node):
    p: Node


@dataclass(frozen=True)
class ScreenBlend(Node):
    base: Node
    blend: Node


# ────────────────── Constructor helpers ──────────────────

def uv():
    return UV()


def const(*values):
    return Const(tuple(float(v) for v in values))


def uniform(name):
    return Uniform(name)


def texture(name, coord):
    return TextureSample(name, coord)


def swizzle(source, components):
    return Swizzle(source, components)


def vec2(x, y):
    return Vec((_wrap(x), _wrap(y)))


def vec3(x, y, z):
    return Vec((_wrap(x), _wrap(y), _wrap(z)))


def one_minus(a):
    return Unary("one_minus", _wrap(a))


def length(a):
    return Unary("length", _wrap(a))


def mod(a, b):
    return Binary("mod", _wrap(a), _wrap(b))


def maximum(a, b):
    return Binary("max", _wrap(a), _wrap(b))


def minimum(a, b):
    return Binary("min", _wrap(a), _wrap(b))


def smoothstep(edge0, edge1, x):
    return Smoothstep(_wrap(edge0), _wrap(edge1), _wrap(x))


def sd_cross(p, half_extents, radius=0.0):
    return SdCross(_wrap(p), _wrap(half_extents), _wrap(radius))


def cell_noise(p):
    return CellNoise(_wrap(p))


def blend_screen(base, blend):
    return ScreenBlend(_wrap(base), _wrap(blend))


def children(node):
    """Direct child nodes, in field order."""
    out = []
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, Node):
            out.append(value)
        elif isinstance(value, tuple):
            out.extend(v for v in value if isinstance(v, Node))
    return out


# ────────────────── Type inference ──────────────────

def infer_dims(root) -> Dict[Node, int]:
    """Component count of every node; raises GraphBuildError on bad wiring."""
    dims: Dict[Node, int] = {}

    def visit(node):
        if node in dims:
            return dims[node]
        d = _node_dim(node, [visit(c) for c in children(node)])
        dims[node] = d
        return d

    visit(root)
    return dims


def _node_dim(node, child_dims):
    kind = type(node).__name__
    if isinstance(node, UV):
        return 2
    if isinstance(node, Const):
        if not 1 <= len(node.value) <= 4:
            raise GraphBuildError(f"Const must have 1..4 components: {node.value}")
        return len(node.value)
    if isinstance(node, Uniform):
        if node.name not in UNIFORM_DIMS:
            raise GraphBuildError(f"Unknown uniform '{node.name}'")
        return UNIFORM_DIMS[node.name]
    if isinstance(node, TextureSample):
        if node.texture not in TEXTURE_DIMS:
            raise GraphBuildError(f"Unknown texture '{node.texture}'")
        if child_dims[0] != 2:
            raise GraphBuildError("TextureSample coordinate must be vec2")
        return TEXTURE_DIMS[node.texture]
    if isinstance(node, Swizzle):
        comps = node.components
        if not 1 <= len(comps) <= 4 or any(c not in _SWIZZLE for c in comps):
            raise GraphBuildError(f"Bad swizzle '.{comps}'")
        if max(_SWIZZLE[c] for c in comps) >= child_dims[0]:
            raise GraphBuildError(
                f"Swizzle '.{comps}' out of range for dim {child_dims[0]}")
        return len(comps)
    if isinstance(node, Vec):
        total = sum(child_dims)
        if not 2 <= total <= 4:
            raise GraphBuildError(f"Vec must have 2..4 components, got {total}")
        return total
    if isinstance(node, Unary):
        if node.op not in _UNARY_OPS:
            raise GraphBuildError(f"Unknown unary op '{node.op}'")
        return 1 if node.op == "length" else child_dims[0]
    if isinstance(node, Binary):
        if node.op not in _BINARY_OPS:
            raise GraphBuildError(f"Unknown binary op '{node.op}'")
        da, db = child_dims
        if da != db and 1 not in (da, db):
            raise GraphBuildError(f"{node.op}: dim mismatch {da} vs {db}")
        return max(da, db)
    if isinstance(node, Smoothstep):
        if child_dims != [1, 1, 1]:
            raise GraphBuildError("Smoothstep operands must be scalars")
        return 1
    if isinstance(node, SdCross):
        if child_dims != [2, 2, 1]:
            raise GraphBuildError("SdCross expects (vec2, vec2, float)")
        return 1
    if isinstance(node, CellNoise):
        if child_dims[0] != 2:
            raise GraphBuildError("CellNoise expects a vec2")
        return 1
    if isinstance(node, ScreenBlend):
        if child_dims[0] != 3 or child_dims[1] not in (1, 3):
            raise GraphBuildError("ScreenBlend expects (vec3, vec3|float)")
        return 3
    raise GraphBuildError(f"Unsupported node kind {kind}")


# ────────────────── Graph container ──────────────────

@dataclass(frozen=True, eq=False)
class ShaderGraph:
    """A validated expression tree bound to one texture pair.

    Built once per (texture pair, tint, variant) triple; never per frame.
    """

    root: Node
    textures: object          # textures.TexturePair
    variant_id: str
    tint: Tuple[float, float, float]

    def __post_init__(self):
        if self.dims[self.root] != 3:
            raise GraphBuildError("Graph output must be a vec3 colour")

    @cached_property
    def dims(self) -> Dict[Node, int]:
        return infer_dims(self.root)

    @cached_property
    def signature(self) -> str:
        """Stable structural hash; equal for graphs that compile identically."""
        blob = json.dumps(serialize(self.root), sort_keys=True)
        return hashlib.sha1(blob.encode("utf-8")).hexdigest()

    @property
    def uniform_names(self):
        return sorted({n.name for n in self.dims if isinstance(n, Uniform)})

    @property
    def texture_names(self):
        return sorted({n.texture for n in self.dims
                       if isinstance(n, TextureSample)})


def serialize(node):
    """JSON-safe nested dict: ``{"kind": ..., <field>: ...}``."""
    out = {"kind": type(node).__name__}
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, Node):
            out[f.name] = serialize(value)
        elif isinstance(value, tuple):
            out[f.name] = [serialize(v) if isinstance(v, Node) else v
                           for v in value]
        else:
            out[f.name] = value
    return out


# ────────────────── numpy interpreter ──────────────────

def uv_grid(width, height):
    """Pixel-centre uv grid (H, W, 2); row 0 is the top of the image."""
    u = (np.arange(width, dtype=np.float64) + 0.5) / width
    v = 1.0 - (np.arange(height, dtype=np.float64) + 0.5) / height
    uu, vv = np.meshgrid(u, v)
    return np.stack([uu, vv], axis=-1)


def sample_bilinear(image, coord):
    """Bilinear, clamp-to-edge texture lookup at GL uv ``coord`` (..., 2).

    ``image`` is (H, W) or (H, W, C) with row 0 at the top, matching a
    texture uploaded bottom-up.  Returns (..., C).
    """
    img = np.asarray(image, dtype=np.float64)
    if img.ndim == 2:
        img = img[..., None]
    h, w = img.shape[:2]
    x = coord[..., 0] * w - 0.5
    y = (1.0 - coord[..., 1]) * h - 0.5
    x0 = np.floor(x)
    y0 = np.floor(y)
    fx = (x - x0)[..., None]
    fy = (y - y0)[..., None]
    x0i = np.clip(x0, 0, w - 1).astype(np.intp)
    x1i = np.clip(x0 + 1, 0, w - 1).astype(np.intp)
    y0i = np.clip(y0, 0, h - 1).astype(np.intp)
    y1i = np.clip(y0 + 1, 0, h - 1).astype(np.intp)
    top = img[y0i, x0i] * (1.0 - fx) + img[y0i, x1i] * fx
    bottom = img[y1i, x0i] * (1.0 - fx) + img[y1i, x1i] * fx
    return top * (1.0 - fy) + bottom * fy


def evaluate(graph, uniforms, size=None):
    """Evaluate ``graph`` on the CPU.  Returns float64 (H, W, 3) in [0, 1].

    ``size`` is (width, height); defaults to the raw texture size.  Only
    the graph, its textures and ``uniforms`` are read.
    """
    if size is None:
        h, w = graph.textures.raw.shape[:2]
    else:
        w, h = size
    grid = uv_grid(w, h)
    images = {"raw": graph.textures.raw, "depth": graph.textures.depth}
    memo = {}

    def ev(node):
        if node in memo:
            return memo[node]
        value = _eval_node(node, ev, grid, images, uniforms)
        memo[node] = value
        return value

    out = np.broadcast_to(ev(graph.root), (h, w, 3))
    return np.clip(out, 0.0, 1.0)


def _eval_node(node, ev, grid, images, uniforms):
    if isinstance(node, UV):
        return grid
    if isinstance(node, Const):
        return np.asarray(node.value, dtype=np.float64)
    if isinstance(node, Uniform):
        return np.asarray(getattr(uniforms, node.name),
                          dtype=np.float64).reshape(-1)
    if isinstance(node, TextureSample):
        coord = np.broadcast_to(ev(node.coord), grid.shape)
        return sample_bilinear(images[node.texture], coord)
    if isinstance(node, Swizzle):
        src = ev(node.source)
        return src[..., [_SWIZZLE[c] for c in node.components]]
    if isinstance(node, Vec):
        parts = [ev(p) for p in node.parts]
        lead = np.broadcast_shapes(*(p.shape[:-1] for p in parts))
        return np.concatenate(
            [np.broadcast_to(p, lead + p.shape[-1:]) for p in parts], axis=-1)
    if isinstance(node, Unary):
        a = ev(node.a)
        if node.op == "abs":
            return np.abs(a)
        if node.op == "one_minus":
            return 1.0 - a
        if node.op == "neg":
            return -a
        if node.op == "floor":
            return np.floor(a)
        return np.linalg.norm(a, axis=-1, keepdims=True)
    if isinstance(node, Binary):
        a, b = ev(node.a), ev(node.b)
        if node.op == "add":
            return a + b
        if node.op == "sub":
            return a - b
        if node.op == "mul":
            return a * b
        if node.op == "div":
            return a / b
        if node.op == "mod":
            return np.mod(a, b)
        if node.op == "max":
            return np.maximum(a, b)
        return np.minimum(a, b)
    if isinstance(node, Smoothstep):
        return shader_math.smoothstep(ev(node.edge0), ev(node.edge1), ev(node.x))
    if isinstance(node, SdCross):
        d = shader_math.sd_cross(ev(node.p), ev(node.half_extents), 0.0)
        return d[..., None] + ev(node.radius)
    if isinstance(node, CellNoise):
        return shader_math.cell_noise(ev(node.p))[..., None]
    if isinstance(node, ScreenBlend):
        return shader_math.screen_blend(ev(node.base), ev(node.blend))
    raise GraphBuildError(f"Unsupported node kind {type(node).__name__}")


# ────────────────── GLSL compiler ──────────────────

_GLSL_TYPES = {1: "float", 2: "vec2", 3: "vec3", 4: "vec4"}
_INFIX = {"add": "+", "sub": "-", "mul": "*", "div": "/"}


def _flt(x):
    text = repr(float(x))
    return text if ("." in text or "e" in text) else text + ".0"


class _GlslEmitter:
    """Emits one temporary per distinct node (structural CSE)."""

    def __init__(self, dims):
        self.dims = dims
        self.lines = []
        self.names = {}

    def emit(self, node):
        if node in self.names:
            return self.names[node]
        expr, inline = self._expr(node)
        if inline:
            self.names[node] = expr
            return expr
        name = f"n{len(self.lines)}"
        self.lines.append(
            f"    {_GLSL_TYPES[self.dims[node]]} {name} = {expr};")
        self.names[node] = name
        return name

    def _cast(self, node, dim):
        expr = self.emit(node)
        if self.dims[node] == 1 and dim > 1:
            return f"{_GLSL_TYPES[dim]}({expr})"
        return expr

    def _expr(self, node):
        if isinstance(node, UV):
            return "v_uv", True
        if isinstance(node, Const):
            if len(node.value) == 1:
                return _flt(node.value[0]), True
            args = ", ".join(_flt(v) for v in node.value)
            return f"{_GLSL_TYPES[len(node.value)]}({args})", True
        if isinstance(node, Uniform):
            return f"u_{node.name}", True
        if isinstance(node, TextureSample):
            swz = ".rgb" if TEXTURE_DIMS[node.texture] == 3 else ".r"
            return f"texture(u_{node.texture}, {self.emit(node.coord)}){swz}", False
        if isinstance(node, Swizzle):
            src = self.emit(node.source)
            if self.dims[node.source] == 1:
                return src, True
            return f"{src}.{node.components}", True
        if isinstance(node, Vec):
            args = ", ".join(self.emit(p) for p in node.parts)
            return f"{_GLSL_TYPES[self.dims[node]]}({args})", False
        if isinstance(node, Unary):
            a = self.emit(node.a)
            if node.op == "one_minus":
                return f"(1.0 - {a})", False
            if node.op == "neg":
                return f"(-{a})", False
            return f"{node.op}({a})", False
        if isinstance(node, Binary):
            if node.op in _INFIX:
                a, b = self.emit(node.a), self.emit(node.b)
                return f"({a} {_INFIX[node.op]} {b})", False
            # mod/max/min have no (float, vecN) overload
            dim = self.dims[node]
            a = self._cast(node.a, dim)
            b = self.emit(node.b) if self.dims[node.b] == 1 else self._cast(node.b, dim)
            return f"{node.op}({a}, {b})", False
        if isinstance(node, Smoothstep):
            args = ", ".join(self.emit(n) for n in (node.edge0, node.edge1, node.x))
            return f"sstep({args})", False
        if isinstance(node, SdCross):
            args = ", ".join(self.emit(n) for n in (node.p, node.half_extents, node.radius))
            return f"sd_cross({args})", False
        if isinstance(node, CellNoise):
            return f"cell_noise({self.emit(node.p)})", False
        if isinstance(node, ScreenBlend):
            return (f"blend_screen({self.emit(node.base)}, "
                    f"{self._cast(node.blend, 3)})"), False
        raise GraphBuildError(f"Unsupported node kind {type(node).__name__}")


def compile_glsl(graph) -> str:
    """Fragment shader source (GLSL 330) for ``graph``."""
    emitter = _GlslEmitter(graph.dims)
    result = emitter.emit(graph.root)
    decls = [f"uniform sampler2D u_{name};" for name in graph.texture_names]
    decls += [f"uniform {_GLSL_TYPES[UNIFORM_DIMS[name]]} u_{name};"
              for name in graph.uniform_names]
    source = FRAGMENT_TEMPLATE.format(
        uniforms="\n".join(decls),
        library=GLSL_LIBRARY,
        body="\n".join(emitter.lines),
        result=result,
    )
    log.debug("Compiled graph %s (%d temporaries)",
              graph.variant_id, len(emitter.lines))
    return source
