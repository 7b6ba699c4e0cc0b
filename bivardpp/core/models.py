"""Kernel family registry.

The set of families is closed: the objective assembler only talks to the
``KernelFamily`` interface, and new families are added here.
"""

from bivardpp.core.bessel import BesselFamily
from bivardpp.core.family_base import KernelFamily
from bivardpp.core.gaussian import GaussianFamily
from bivardpp.core.spectral import SpectralIntegrator
from bivardpp.utils.logging import get_logger

logger = get_logger(__name__)

FAMILIES: dict[str, type[KernelFamily]] = {
    GaussianFamily.name: GaussianFamily,
    BesselFamily.name: BesselFamily,
}


def create_family(
    name: str,
    series_terms: int = 50,
    integrator: SpectralIntegrator | None = None,
) -> KernelFamily:
    """Factory function for kernel families.

    Args:
        name: "gaussian" or "bessel"
        series_terms: Truncation order of series kernels
        integrator: Quadrature used for the spectral integral

    Returns:
        KernelFamily instance
    """
    key = name.lower()
    if key not in FAMILIES:
        raise ValueError(
            f"Invalid kernel family '{name}'. Must be one of {get_available_families()}",
        )

    logger.debug(f"Creating kernel family: {key}")
    return FAMILIES[key](series_terms=series_terms, integrator=integrator)


def get_available_families() -> list[str]:
    """Get list of available kernel families."""
    return list(FAMILIES)


__all__ = [
    "FAMILIES",
    "create_family",
    "get_available_families",
]
