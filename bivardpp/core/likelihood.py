"""Composite Likelihood Objective
==============================

Objective assembler for two-type determinantal point process models.

For an optimizer vector x the engine returns

    f(x) = -2 (2V + V · I(θ) + log det L_θ)

where V is the domain volume, I the spectral integral term, L_θ the kernel
matrix of the observed points and θ = θ(x) the physical parameters produced
by the family's parameter mapper. The gradient is

    ∇f(x) = -2 Jᵀ (V ∇I(θ) + ∇log det L_θ),    J = dθ/dx.

The two terms are cached in an ``EvaluationCache`` guarded by a dirty flag,
so repeated calls with an unchanged vector never recompute them.

Call contract (consumed by an external optimizer):

- ``evaluate`` recomputes when dirty and does not consult feasibility
- ``gradient`` returns zeros for infeasible vectors without recomputing
- ``evaluate_with_gradient`` always recomputes when feasible and returns
  ``(WORST_OBJECTIVE, zeros)`` when not
- constraints are hard barriers with zero gradient

An instance is single-threaded; use one engine per thread, each with its own
``DomainGeometry.copy()``.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np

from bivardpp.core.exceptions import InputValidationError, NumericalInstabilityError
from bivardpp.core.family_base import KernelFamily
from bivardpp.core.geometry import DomainGeometry, build_geometry
from bivardpp.core.models import create_family
from bivardpp.core.numpy_gradients import (
    DifferentiationConfig,
    DifferentiationMethod,
    validate_gradient_accuracy,
)
from bivardpp.core.parameters import (
    NUM_CONSTRAINTS,
    WORST_OBJECTIVE,
    EvaluationCache,
    FeasibilityResult,
    ModelParameters,
    TraceEvent,
)
from bivardpp.core.special import alpha_upper_bound
from bivardpp.core.spectral import QuadratureSettings, SpectralIntegrator
from bivardpp.utils.logging import (
    configure_logging,
    get_logger,
    log_operation,
    log_performance,
)

logger = get_logger(__name__)

TraceSink = Callable[[TraceEvent], None]


class CompositeLikelihood:
    """Stateful composite likelihood objective for a gradient-based optimizer.

    Parameters
    ----------
    family : str or KernelFamily
        Kernel family name ("gaussian", "bessel") or instance
    periodic : bool
        Measure distances with periodic wrap-around
    exhaustive_feasibility : bool
        Record every violated constraint instead of stopping at the first
    series_terms : int
        Truncation order of series kernels
    quadrature : QuadratureSettings, optional
        Tolerances of the spectral integral
    trace_sink : callable, optional
        Receives a ``TraceEvent`` after every parameter change and every
        recomputation of the likelihood terms
    """

    def __init__(
        self,
        family: str | KernelFamily = "gaussian",
        periodic: bool = True,
        exhaustive_feasibility: bool = False,
        series_terms: int = 50,
        quadrature: QuadratureSettings | None = None,
        trace_sink: TraceSink | None = None,
    ):
        if isinstance(family, KernelFamily):
            self.family = family
        else:
            self.family = create_family(
                family,
                series_terms=series_terms,
                integrator=SpectralIntegrator(quadrature),
            )
        self.use_periodic_domain = bool(periodic)
        self.exhaustive_feasibility = bool(exhaustive_feasibility)
        self.trace_sink = trace_sink

        self.geometry: DomainGeometry | None = None
        self.params = ModelParameters()
        self.cache = EvaluationCache()
        self.feasibility = FeasibilityResult(satisfied=False, constraints=np.zeros(NUM_CONSTRAINTS))

    @classmethod
    def from_config(
        cls,
        config: Any = None,
        trace_sink: TraceSink | None = None,
    ) -> "CompositeLikelihood":
        """Build an engine from a LikelihoodConfig, a dictionary or a file path."""
        from bivardpp.config.manager import ConfigManager, LikelihoodConfig

        if config is None:
            settings = LikelihoodConfig()
        elif isinstance(config, LikelihoodConfig):
            settings = config
        elif isinstance(config, dict):
            settings = ConfigManager(config_override=config).to_likelihood_config()
        elif isinstance(config, (str, Path)):
            settings = ConfigManager(config).to_likelihood_config()
        else:
            raise TypeError(f"Unsupported configuration type: {type(config).__name__}")

        configure_logging(settings.log_level)
        engine = cls(
            family=settings.family,
            periodic=settings.periodic,
            exhaustive_feasibility=settings.exhaustive_feasibility,
            series_terms=settings.series_terms,
            quadrature=settings.quadrature,
            trace_sink=trace_sink,
        )
        if settings.intensities is not None:
            engine.set_intensities(*settings.intensities)
        return engine

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_inputs(self, points, labels, lower, upper, volume: float | None = None) -> None:
        """One-time setup: domain volume, neighborhood offsets and distances.

        Args:
            points: Coordinates, shape (N, D) with D >= 1
            labels: Type labels in {1, 2}, length N
            lower: Per-dimension lower bounds of the box domain
            upper: Per-dimension upper bounds of the box domain
            volume: Explicit domain volume; defaults to the box volume
        """
        with log_operation("set_inputs", logger):
            geometry = build_geometry(
                points, labels, lower, upper, periodic=self.use_periodic_domain, volume=volume
            )
            self.set_geometry(geometry)

    def set_geometry(self, geometry: DomainGeometry) -> None:
        """Install pre-computed geometry, e.g. a copy shared by a parallel engine."""
        if geometry.dimension < 1:
            raise InputValidationError(
                "The likelihood needs at least one spatial dimension",
                {"dimension": geometry.dimension},
            )
        self.geometry = geometry
        self.use_periodic_domain = geometry.periodic
        self._reset_parameters(self.params.estimate_intensities)
        logger.info(
            f"Inputs set: {geometry.sample_size} points in {geometry.dimension}D, "
            f"volume {geometry.volume:.6g}, family {self.family.name}"
        )

    def set_use_periodic_domain(self, periodic: bool) -> None:
        """Switch periodic distances on or off; rebuilds existing geometry."""
        self.use_periodic_domain = bool(periodic)
        if self.geometry is not None and self.geometry.periodic != self.use_periodic_domain:
            geometry = self.geometry
            self.geometry = build_geometry(
                geometry.points,
                geometry.labels,
                geometry.lower,
                geometry.upper,
                periodic=self.use_periodic_domain,
                volume=geometry.volume,
            )
            self.cache.invalidate()

    def set_intensities(self, rho1: float, rho2: float) -> None:
        """Fix the intensities; the optimizer vector shrinks to 4 entries."""
        if not (np.isfinite(rho1) and np.isfinite(rho2) and rho1 > 0 and rho2 > 0):
            raise InputValidationError(
                f"Intensities must be positive and finite, got ({rho1}, {rho2})"
            )
        self._reset_parameters(estimate_intensities=False)
        self.params.first_intensity = float(rho1)
        self.params.second_intensity = float(rho2)
        logger.debug(f"Intensities fixed at ({rho1:.6g}, {rho2:.6g})")

    def _reset_parameters(self, estimate_intensities: bool) -> None:
        intensities = (self.params.first_intensity, self.params.second_intensity)
        self.params = ModelParameters(estimate_intensities=estimate_intensities)
        if not estimate_intensities:
            self.params.first_intensity, self.params.second_intensity = intensities
        self.cache.invalidate()

    def _require_inputs(self) -> DomainGeometry:
        if self.geometry is None:
            raise InputValidationError("set_inputs must be called before evaluating the likelihood")
        return self.geometry

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def n_parameters(self) -> int:
        return self.params.n_parameters

    def get_number_of_parameters(self) -> int:
        """4 with fixed intensities, 6 when they are estimated."""
        return self.n_parameters

    def num_constraints(self) -> int:
        return NUM_CONSTRAINTS

    @property
    def volume(self) -> float:
        return self._require_inputs().volume

    def get_distance_matrix(self) -> np.ndarray:
        """Read-only pairwise distance matrix."""
        return self._require_inputs().distance_matrix

    def get_initial_point(
        self,
        rho1: float | None = None,
        rho2: float | None = None,
        alpha1: float | None = None,
        alpha2: float | None = None,
    ) -> np.ndarray:
        """Starting vector for the optimizer.

        Without widths the vector is all zeros. Given ``alpha1`` and
        ``alpha2``, amplitudes are seeded from the amplitude relation with the
        supplied intensities (default: fixed intensities, else the empirical
        ones), the cross amplitude at zero and the cross width control at 0.5.
        """
        x0 = np.zeros(self.n_parameters)
        if alpha1 is None and alpha2 is None:
            return x0
        if alpha1 is None or alpha2 is None:
            raise InputValidationError("Seeding the initial point needs both alpha1 and alpha2")

        geometry = self._require_inputs()
        dimension = geometry.dimension
        if rho1 is None or rho2 is None:
            if self.params.estimate_intensities:
                empirical = geometry.empirical_intensities()
            else:
                empirical = (self.params.first_intensity, self.params.second_intensity)
            rho1 = empirical[0] if rho1 is None else rho1
            rho2 = empirical[1] if rho2 is None else rho2

        constant = self.family.amplitude_constant(dimension)
        x0[0] = rho1 * constant * alpha1**dimension
        x0[1] = rho2 * constant * alpha2**dimension
        x0[3] = 0.5
        if self.params.estimate_intensities:
            upper = alpha_upper_bound(geometry.volume, dimension)
            x0[4] = alpha1 / upper
            x0[5] = alpha2 / upper

        if not (x0[0] < 1.0 and x0[1] < 1.0):
            logger.warning(f"Seeded amplitudes ({x0[0]:.4g}, {x0[1]:.4g}) are not below 1")
        return x0

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------

    def _emit(self, kind: str, payload: dict[str, Any]) -> None:
        if self.trace_sink is not None:
            self.trace_sink(TraceEvent(kind=kind, payload=payload))

    def _map(self, params) -> None:
        geometry = self._require_inputs()
        if self.family.map_parameters(params, self.params, geometry):
            self.cache.invalidate()
            self._emit("parameters", self.params.snapshot())

    def _check_feasibility(self) -> FeasibilityResult:
        self.feasibility = self.family.check_feasibility(self.params, self.exhaustive_feasibility)
        return self.feasibility

    @log_performance(threshold=0.5)
    def _recompute(self) -> None:
        """Recompute both likelihood terms and clear the dirty flag."""
        geometry = self._require_inputs()
        with np.errstate(all="ignore"):
            integral, integral_gradient = self.family.compute_integral(
                self.params, geometry.dimension
            )
            log_determinant, log_determinant_gradient = self.family.compute_log_determinant(
                self.params, geometry
            )

        cache = self.cache
        cache.integral = float(integral)
        cache.integral_gradient = np.asarray(integral_gradient, dtype=float)
        cache.log_determinant = float(log_determinant)
        cache.log_determinant_gradient = np.asarray(log_determinant_gradient, dtype=float)
        cache.dirty = False
        cache.recompute_count += 1

        logger.debug(
            f"Recomputed terms: integral={cache.integral:.10g}, "
            f"log_determinant={cache.log_determinant:.10g}"
        )
        self._emit(
            "terms",
            {
                "integral": cache.integral,
                "log_determinant": cache.log_determinant,
                "integral_gradient": cache.integral_gradient.tolist(),
                "log_determinant_gradient": cache.log_determinant_gradient.tolist(),
            },
        )

    def _objective(self) -> float:
        volume = self.volume
        value = -2.0 * (2.0 * volume + volume * self.cache.integral + self.cache.log_determinant)
        if not np.isfinite(value):
            raise NumericalInstabilityError(
                "Objective is not finite",
                detection_point="objective",
                error_context={
                    "integral": self.cache.integral,
                    "log_determinant": self.cache.log_determinant,
                },
            )
        return float(value)

    def _objective_gradient(self) -> np.ndarray:
        geometry = self._require_inputs()
        physical = geometry.volume * self.cache.integral_gradient + self.cache.log_determinant_gradient
        jacobian = self.family.parameter_jacobian(self.params, geometry)
        gradient = -2.0 * jacobian.T @ physical
        if not np.all(np.isfinite(gradient)):
            raise NumericalInstabilityError(
                "Objective gradient is not finite",
                detection_point="gradient",
                error_context={"physical_gradient": physical.tolist()},
            )
        return gradient

    def _write(self, out: np.ndarray | None, values: np.ndarray) -> np.ndarray:
        if out is None:
            return values
        if out.shape != values.shape:
            raise InputValidationError(
                f"Output gradient must have shape {values.shape}, got {out.shape}"
            )
        out[...] = values
        return out

    def _check_constraint_index(self, index: int) -> None:
        if not 0 <= index < NUM_CONSTRAINTS:
            raise InputValidationError(
                f"Constraint index must be in [0, {NUM_CONSTRAINTS}), got {index}"
            )

    # ------------------------------------------------------------------
    # Optimizer interface
    # ------------------------------------------------------------------

    def evaluate(self, params) -> float:
        """Objective value; recomputes the terms only when parameters changed.

        Feasibility is not checked on this path.

        Raises:
            NumericalInstabilityError: a term or the objective is not finite
            KernelMatrixError: the kernel matrix cannot be factorized
        """
        self._map(params)
        if self.cache.dirty:
            self._recompute()
        return self._objective()

    def gradient(self, params, out: np.ndarray | None = None) -> np.ndarray:
        """Objective gradient with respect to the optimizer vector.

        Infeasible vectors give a zero gradient and leave the cached terms
        untouched (they stay marked dirty).
        """
        self._map(params)
        if not self._check_feasibility().satisfied:
            return self._write(out, np.zeros(self.n_parameters))
        if self.cache.dirty:
            self._recompute()
        return self._write(out, self._objective_gradient())

    def evaluate_with_gradient(
        self, params, out: np.ndarray | None = None
    ) -> tuple[float, np.ndarray]:
        """Objective and gradient in one call, always freshly recomputed.

        Returns:
            (value, gradient); ``(WORST_OBJECTIVE, zeros)`` for infeasible vectors
        """
        self._map(params)
        if not self._check_feasibility().satisfied:
            return WORST_OBJECTIVE, self._write(out, np.zeros(self.n_parameters))
        self._recompute()
        return self._objective(), self._write(out, self._objective_gradient())

    def evaluate_constraint(self, index: int, params) -> float:
        """Entry ``index`` of the constraint vector: 0.0 or ``INFEASIBLE``."""
        self._check_constraint_index(index)
        self._map(params)
        return float(self._check_feasibility().constraints[index])

    def gradient_constraint(self, index: int, params, out: np.ndarray | None = None) -> np.ndarray:
        """Constraints are hard barriers: their gradient is always zero."""
        self._check_constraint_index(index)
        return self._write(out, np.zeros(self.n_parameters))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check_gradient(
        self,
        params,
        rtol: float = 1e-4,
        atol: float = 1e-6,
        step: float | None = None,
    ) -> dict[str, Any]:
        """Compare the analytic gradient with central differences of ``evaluate``."""
        params = np.asarray(params, dtype=float)
        analytical = self.gradient(params).copy()
        config = DifferentiationConfig(method=DifferentiationMethod.CENTRAL, step_size=step)
        result = validate_gradient_accuracy(
            self.evaluate, params, analytical, rtol=rtol, atol=atol, config=config
        )
        # Leave the cache at the requested point
        self.evaluate(params)
        return result

    def __repr__(self) -> str:
        n_points = self.geometry.sample_size if self.geometry is not None else 0
        return (
            f"{self.__class__.__name__}(family='{self.family.name}', "
            f"n_points={n_points}, n_parameters={self.n_parameters})"
        )
