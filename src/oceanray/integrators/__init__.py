"""
Numerical Integrators for Wavefront Propagation

Provides:
- LeapfrogIntegrator: second-order time-centered scheme (default)
- RK4Integrator: classical 4th order, used for seeding and sub-steps
- IntegratorFactory / create_integrator: selection by name
"""

from .base import BaseIntegrator, IntegrationStep, IntegrationStats
from .leapfrog import LeapfrogIntegrator
from .rk4 import RK4Integrator
from .factory import IntegratorFactory, IntegratorType, create_integrator

__all__ = [
    'BaseIntegrator',
    'IntegrationStep',
    'IntegrationStats',
    'LeapfrogIntegrator',
    'RK4Integrator',
    'IntegratorFactory',
    'IntegratorType',
    'create_integrator',
]
