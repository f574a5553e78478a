"""CUDA source of the component kernels.

Every kernel runs one thread per visibility cell ``i_cell = i_bl * nfreq +
i_freq``. The thread sums all components into a register, applies the beam
correction once and adds the result to the complex64 visibility buffer, so no
two threads ever write the same cell.
"""

from __future__ import annotations

import cupy as cp
import numpy as np
from functools import cache

from ..core.phase import GAUSSIAN_EXP_CONST, ONE_OVER_C
from ..errors import LaunchError
from ..shapelets import SQRT_FRAC_PI_SQ_2_LN_2

_PRECISION_DEFS = {
    1: {"REAL_DTYPE": "float", "SINCOS": "sincosf", "EXP": "expf", "FLOOR": "floorf"},
    2: {"REAL_DTYPE": "double", "SINCOS": "sincos", "EXP": "exp", "FLOOR": "floor"},
}

_preamble = r"""
typedef REAL_DTYPE real_t;

#define SINCOS SINCOS_FUNC
#define EXP EXP_FUNC
#define FLOOR FLOOR_FUNC

#define ONE_OVER_C ((real_t)ONE_OVER_C_VALUE)
#define TWO_PI ((real_t)TWO_PI_VALUE)
#define GAUSSIAN_EXP_CONST ((real_t)GAUSSIAN_EXP_CONST_VALUE)
#define SQRT_FRAC_PI_SQ_2_LN_2 ((real_t)SQRT_FRAC_PI_SQ_2_LN_2_VALUE)
"""

_kernel_code = r"""
struct cpx { real_t re; real_t im; };
struct Jones { cpx xx; cpx xy; cpx yx; cpx yy; };
struct cpx32 { float re; float im; };
struct JonesF32 { cpx32 xx; cpx32 xy; cpx32 yx; cpx32 yy; };

__device__ inline cpx c_make(real_t re, real_t im) { cpx c; c.re = re; c.im = im; return c; }
__device__ inline cpx c_add(cpx a, cpx b) { return c_make(a.re + b.re, a.im + b.im); }
__device__ inline cpx c_neg(cpx a) { return c_make(-a.re, -a.im); }
__device__ inline cpx c_conj(cpx a) { return c_make(a.re, -a.im); }
__device__ inline cpx c_scale(cpx a, real_t s) { return c_make(a.re * s, a.im * s); }
__device__ inline cpx c_mul(cpx a, cpx b) {
    return c_make(a.re * b.re - a.im * b.im, a.re * b.im + a.im * b.re);
}
__device__ inline cpx c_div(cpx a, cpx b) {
    const real_t d = b.re * b.re + b.im * b.im;
    return c_make((a.re * b.re + a.im * b.im) / d, (a.im * b.re - a.re * b.im) / d);
}

__device__ inline Jones j_zero() {
    Jones r;
    r.xx = c_make(0, 0); r.xy = c_make(0, 0); r.yx = c_make(0, 0); r.yy = c_make(0, 0);
    return r;
}
__device__ inline Jones j_add(Jones a, Jones b) {
    Jones r;
    r.xx = c_add(a.xx, b.xx); r.xy = c_add(a.xy, b.xy);
    r.yx = c_add(a.yx, b.yx); r.yy = c_add(a.yy, b.yy);
    return r;
}
__device__ inline Jones j_scale(Jones a, cpx s) {
    Jones r;
    r.xx = c_mul(a.xx, s); r.xy = c_mul(a.xy, s);
    r.yx = c_mul(a.yx, s); r.yy = c_mul(a.yy, s);
    return r;
}
__device__ inline Jones j_mul(Jones a, Jones b) {
    Jones r;
    r.xx = c_add(c_mul(a.xx, b.xx), c_mul(a.xy, b.yx));
    r.xy = c_add(c_mul(a.xx, b.xy), c_mul(a.xy, b.yy));
    r.yx = c_add(c_mul(a.yx, b.xx), c_mul(a.yy, b.yx));
    r.yy = c_add(c_mul(a.yx, b.xy), c_mul(a.yy, b.yy));
    return r;
}
__device__ inline Jones j_hermitian(Jones a) {
    Jones r;
    r.xx = c_conj(a.xx); r.xy = c_conj(a.yx);
    r.yx = c_conj(a.xy); r.yy = c_conj(a.yy);
    return r;
}
__device__ inline Jones j_inv(Jones a) {
    const cpx d = c_add(c_mul(a.xx, a.yy), c_neg(c_mul(a.xy, a.yx)));
    Jones r;
    r.xx = c_div(a.yy, d); r.xy = c_div(c_neg(a.xy), d);
    r.yx = c_div(c_neg(a.yx), d); r.yy = c_div(a.xx, d);
    return r;
}

// exp(-2 pi i (ul + vm + w(n - 1)))
__device__ inline cpx phase_term(const real_t u, const real_t v, const real_t w, const real_t* lmn) {
    real_t s, c;
    SINCOS(-TWO_PI * (u * lmn[0] + v * lmn[1] + w * (lmn[2] - (real_t)1)), &s, &c);
    return c_make(c, s);
}

__device__ inline real_t gaussian_envelope(const real_t u, const real_t v, const real_t* gp) {
    real_t s_pa, c_pa;
    SINCOS(gp[2], &s_pa, &c_pa);
    const real_t k_x = u * s_pa + v * c_pa;
    const real_t k_y = u * c_pa - v * s_pa;
    return EXP(GAUSSIAN_EXP_CONST * (gp[0] * gp[0] * k_x * k_x + gp[1] * gp[1] * k_y * k_y));
}

// (-i)^k
__device__ inline cpx i_power(const int k) {
    switch (k % 4) {
        case 0: return c_make(1, 0);
        case 1: return c_make(0, -1);
        case 2: return c_make(-1, 0);
        default: return c_make(0, 1);
    }
}

// Linear interpolation in row `order` of the basis table; zero outside it.
__device__ inline real_t basis_lookup(
    const real_t* basis, const int sbf_l, const int sbf_n, const int order, const real_t pos
) {
    if (order >= sbf_n || !(pos >= (real_t)0) || !(pos < (real_t)(sbf_l - 1))) return 0;
    const int i = (int)FLOOR(pos);
    const real_t* row = &basis[(long long)order * sbf_l];
    return row[i] + (row[i + 1] - row[i]) * (pos - (real_t)i);
}

__device__ inline Jones tile_beam(
    const int tile, const int i_freq, const int* tile_map, const int* freq_map,
    const int num_unique_freqs, const long long* jones_map,
    const Jones* beam_jones, const Jones* norm_jones
) {
    const long long key = (long long)tile_map[tile] * num_unique_freqs + freq_map[i_freq];
    return j_mul(j_inv(norm_jones[key]), beam_jones[jones_map[key]]);
}

#define BEAM_PARAMS \
    const int use_beam, const int* antpairs, const int* tile_map, const int* freq_map, \
    const int num_unique_freqs, const long long* jones_map, \
    const Jones* beam_jones, const Jones* norm_jones

#define GEOMETRY_PARAMS \
    const int num_freqs, const int num_vis, const real_t* uvws, const real_t* freqs

#define CELL_SETUP \
    const int i_cell = blockIdx.x * blockDim.x + threadIdx.x; \
    if (i_cell >= num_vis) return; \
    const int i_bl = i_cell / num_freqs; \
    const int i_freq = i_cell % num_freqs; \
    const real_t scale = freqs[i_freq] * ONE_OVER_C; \
    const real_t u = uvws[3 * i_bl] * scale; \
    const real_t v = uvws[3 * i_bl + 1] * scale; \
    const real_t w = uvws[3 * i_bl + 2] * scale;

#define FINISH_CELL \
    if (use_beam) { \
        const Jones b1 = tile_beam(antpairs[2 * i_bl], i_freq, tile_map, freq_map, \
                                   num_unique_freqs, jones_map, beam_jones, norm_jones); \
        const Jones b2 = tile_beam(antpairs[2 * i_bl + 1], i_freq, tile_map, freq_map, \
                                   num_unique_freqs, jones_map, beam_jones, norm_jones); \
        acc = j_mul(j_mul(b1, acc), j_hermitian(b2)); \
    } \
    JonesF32* out = &vis[i_cell]; \
    out->xx.re += (float)acc.xx.re; out->xx.im += (float)acc.xx.im; \
    out->xy.re += (float)acc.xy.re; out->xy.im += (float)acc.xy.im; \
    out->yx.re += (float)acc.yx.re; out->yx.im += (float)acc.yx.im; \
    out->yy.re += (float)acc.yy.re; out->yy.im += (float)acc.yy.im;

extern "C" __global__ void model_points(
    const int num_points, const real_t* lmns, const Jones* fds,
    GEOMETRY_PARAMS, BEAM_PARAMS, JonesF32* vis
) {
    CELL_SETUP
    const Jones* cell_fds = &fds[(long long)i_freq * num_points];
    Jones acc = j_zero();
    for (int i = 0; i < num_points; i++) {
        acc = j_add(acc, j_scale(cell_fds[i], phase_term(u, v, w, &lmns[3 * i])));
    }
    FINISH_CELL
}

extern "C" __global__ void model_gaussians(
    const int num_gaussians, const real_t* lmns, const Jones* fds, const real_t* gaussian_params,
    GEOMETRY_PARAMS, BEAM_PARAMS, JonesF32* vis
) {
    CELL_SETUP
    const Jones* cell_fds = &fds[(long long)i_freq * num_gaussians];
    Jones acc = j_zero();
    for (int i = 0; i < num_gaussians; i++) {
        const cpx weight = c_scale(
            phase_term(u, v, w, &lmns[3 * i]), gaussian_envelope(u, v, &gaussian_params[3 * i])
        );
        acc = j_add(acc, j_scale(cell_fds[i], weight));
    }
    FINISH_CELL
}

extern "C" __global__ void model_shapelets(
    const int num_shapelets, const real_t* lmns, const Jones* fds, const real_t* gaussian_params,
    const real_t* shapelet_uvs, const int* coeff_n1, const int* coeff_n2,
    const real_t* coeff_values, const long long* coeff_offsets, const int* coeffs_per_component,
    const real_t* basis, const int sbf_l, const int sbf_n, const real_t sbf_c, const real_t sbf_dx,
    GEOMETRY_PARAMS, BEAM_PARAMS, JonesF32* vis
) {
    CELL_SETUP
    const Jones* cell_fds = &fds[(long long)i_freq * num_shapelets];
    Jones acc = j_zero();
    for (int i = 0; i < num_shapelets; i++) {
        const real_t* gp = &gaussian_params[3 * i];
        const long long i_uv = 2 * ((long long)i_bl * num_shapelets + i);
        const real_t su = shapelet_uvs[i_uv] * scale;
        const real_t sv = shapelet_uvs[i_uv + 1] * scale;

        real_t s_pa, c_pa;
        SINCOS(gp[2], &s_pa, &c_pa);
        const real_t x = su * s_pa + sv * c_pa;
        const real_t y = su * c_pa - sv * s_pa;
        const real_t x_pos = x * (gp[0] * SQRT_FRAC_PI_SQ_2_LN_2 / sbf_dx) + sbf_c;
        const real_t y_pos = y * (-gp[1] * SQRT_FRAC_PI_SQ_2_LN_2 / sbf_dx) + sbf_c;

        cpx envelope = c_make(0, 0);
        const long long start = coeff_offsets[i];
        const long long stop = start + coeffs_per_component[i];
        for (long long k = start; k < stop; k++) {
            const real_t value = coeff_values[k]
                * basis_lookup(basis, sbf_l, sbf_n, coeff_n1[k], x_pos)
                * basis_lookup(basis, sbf_l, sbf_n, coeff_n2[k], y_pos);
            envelope = c_add(envelope, c_scale(i_power(coeff_n1[k] + coeff_n2[k]), value));
        }

        const cpx weight = c_mul(phase_term(u, v, w, &lmns[3 * i]), envelope);
        acc = j_add(acc, j_scale(cell_fds[i], weight));
    }
    FINISH_CELL
}
"""


def get_source(precision: int) -> str:
    """Full CUDA source of the kernels at the given precision."""
    defs = _PRECISION_DEFS[precision]
    preamble = (
        _preamble.replace("REAL_DTYPE", defs["REAL_DTYPE"])
        .replace("SINCOS_FUNC", defs["SINCOS"])
        .replace("EXP_FUNC", defs["EXP"])
        .replace("FLOOR_FUNC", defs["FLOOR"])
        .replace("ONE_OVER_C_VALUE", repr(ONE_OVER_C))
        .replace("TWO_PI_VALUE", repr(2 * np.pi))
        .replace("GAUSSIAN_EXP_CONST_VALUE", repr(float(GAUSSIAN_EXP_CONST)))
        .replace(
            "SQRT_FRAC_PI_SQ_2_LN_2_VALUE", repr(float(SQRT_FRAC_PI_SQ_2_LN_2))
        )
    )
    return preamble + _kernel_code


@cache
def _get_module(precision: int) -> cp.RawModule:
    return cp.RawModule(code=get_source(precision))


def get_kernel(name: str, precision: int) -> cp.RawKernel:
    """Compile (once per precision) and return the named kernel."""
    try:
        return _get_module(precision).get_function(name)
    except (cp.cuda.compiler.CompileException, cp.cuda.driver.CUDADriverError) as e:
        raise LaunchError(f"could not compile or load the {name} kernel") from e
