"""Monte Carlo orchestration of SCC estimates."""

from .distributions import (
    EmpiricalDistribution,
    NormalDistribution,
    TriangularDistribution,
    UniformDistribution,
    default_distributions,
    distribution_from_config,
    distributions_from_config,
    draw_samples,
    roe_baker_table,
)
from .orchestrator import (
    DiscontinuityArtifact,
    MonteCarloBatch,
    MonteCarloOptions,
    MonteCarloTrial,
    run_batch,
    summarise,
)
from .writers import write_batch

__all__ = [
    "EmpiricalDistribution",
    "NormalDistribution",
    "TriangularDistribution",
    "UniformDistribution",
    "default_distributions",
    "distribution_from_config",
    "distributions_from_config",
    "draw_samples",
    "roe_baker_table",
    "DiscontinuityArtifact",
    "MonteCarloBatch",
    "MonteCarloOptions",
    "MonteCarloTrial",
    "run_batch",
    "summarise",
    "write_batch",
]
