# =============================
# GLSL shaders
# =============================
"""
Static GLSL sources.  The fragment shader body is generated per effect
by ``shader_graph.compile_glsl``; everything here is shared.

``GLSL_LIBRARY`` mirrors ``shader_math`` function for function so the
numpy interpreter and the GPU agree on every pixel.
"""

FULLSCREEN_VERTEX_SHADER = """
#version 330

in vec2 in_pos;
in vec2 in_uv;
out vec2 v_uv;

void main() {
    gl_Position = vec4(in_pos, 0.0, 1.0);
    v_uv = in_uv;
}
"""

GLSL_LIBRARY = """
// Hermite threshold; edge0 > edge1 inverts the ramp (kept explicit,
// GLSL's builtin smoothstep is undefined for edge0 >= edge1)
float sstep(float e0, float e1, float x) {
    float t = clamp((x - e0) / (e1 - e0), 0.0, 1.0);
    return t * t * (3.0 - 2.0 * t);
}

// Signed distance to a centred plus shape; b = (arm length, half width)
float sd_cross(vec2 p, vec2 b, float r) {
    p = abs(p);
    p = (p.y > p.x) ? p.yx : p.xy;
    vec2 q = p - b;
    float k = max(q.y, q.x);
    vec2 w = (k > 0.0) ? q : vec2(b.y - p.x, -k);
    float d = length(max(w, 0.0));
    return ((k > 0.0) ? d : -d) + r;
}

// MaterialX cell noise: lookup3 hash of the integer cell
uint rot32(uint x, uint k) {
    return (x << k) | (x >> (32u - k));
}
uint bjfinal(uint a, uint b, uint c) {
    c ^= b; c -= rot32(b, 14u);
    a ^= c; a -= rot32(c, 11u);
    b ^= a; b -= rot32(a, 25u);
    c ^= b; c -= rot32(b, 16u);
    a ^= c; a -= rot32(c, 4u);
    b ^= a; b -= rot32(a, 14u);
    c ^= b; c -= rot32(b, 24u);
    return c;
}
float cell_noise(vec2 p) {
    int ix = int(floor(p.x));
    int iy = int(floor(p.y));
    uint seed = 0xdeadbeefu + 21u;
    uint a = seed + uint(ix);
    uint b = seed + uint(iy);
    return float(bjfinal(a, b, seed)) / 4294967295.0;
}

vec3 blend_screen(vec3 base, vec3 blend) {
    return 1.0 - (1.0 - base) * (1.0 - blend);
}
"""

FRAGMENT_TEMPLATE = """
#version 330

in vec2 v_uv;
out vec4 fragColor;

{uniforms}
{library}
void main() {{
{body}
    fragColor = vec4(clamp({result}, 0.0, 1.0), 1.0);
}}
"""
