"""
Integrator Factory

Provides factory functions for creating integrators by name or configuration.
Simplifies integrator selection in configuration files and command-line tools.

Example:
    # By name
    integrator = create_integrator('leapfrog', equations)

    # By enum
    integrator = IntegratorFactory.create(IntegratorType.RK4, equations,
                                          estimate_error=True)

    # List available integrators
    for name in IntegratorFactory.available():
        print(name)
"""

from enum import Enum, auto
from typing import Dict, List, Type

from .base import BaseIntegrator, DerivativeFunc
from .leapfrog import LeapfrogIntegrator
from .rk4 import RK4Integrator


class IntegratorType(Enum):
    """Available integrator types."""
    LEAPFROG = auto()
    RK4 = auto()


# Mapping from type enum to class
_INTEGRATOR_CLASSES: Dict[IntegratorType, Type[BaseIntegrator]] = {
    IntegratorType.LEAPFROG: LeapfrogIntegrator,
    IntegratorType.RK4: RK4Integrator,
}

# Mapping from string names to type enum
_NAME_TO_TYPE: Dict[str, IntegratorType] = {
    # Time-centered
    'leapfrog': IntegratorType.LEAPFROG,
    'centered': IntegratorType.LEAPFROG,
    'time_centered': IntegratorType.LEAPFROG,

    # Runge-Kutta
    'rk4': IntegratorType.RK4,
    'runge_kutta': IntegratorType.RK4,
    'classical': IntegratorType.RK4,
}


class IntegratorFactory:
    """
    Factory for creating wavefront integrators.

    Supports creation by enum type or string name. String names are
    case-insensitive and support multiple aliases.
    """

    @staticmethod
    def create(
        integrator_type: IntegratorType,
        derivative_func: DerivativeFunc,
        **kwargs,
    ) -> BaseIntegrator:
        """
        Create integrator by type enum.

        Args:
            integrator_type: Type of integrator to create
            derivative_func: Function computing dy/dt given (state, time)
            **kwargs: Additional arguments passed to integrator constructor

        Returns:
            Configured integrator instance

        Raises:
            ValueError: If integrator type is not recognized
        """
        if integrator_type not in _INTEGRATOR_CLASSES:
            raise ValueError(f"Unknown integrator type: {integrator_type}")

        integrator_class = _INTEGRATOR_CLASSES[integrator_type]
        return integrator_class(derivative_func, **kwargs)

    @staticmethod
    def from_name(
        name: str,
        derivative_func: DerivativeFunc,
        **kwargs,
    ) -> BaseIntegrator:
        """
        Create integrator by string name.

        Args:
            name: Integrator name (case-insensitive). Supported names:
                  - 'leapfrog', 'centered', 'time_centered': leapfrog
                  - 'rk4', 'runge_kutta', 'classical': RK4
            derivative_func: Function computing dy/dt given (state, time)
            **kwargs: Additional arguments for integrator

        Returns:
            Configured integrator instance

        Raises:
            ValueError: If name is not recognized
        """
        key = name.lower().strip().replace('-', '_')
        if key not in _NAME_TO_TYPE:
            available = ', '.join(sorted(_NAME_TO_TYPE.keys()))
            raise ValueError(f"Unknown integrator '{name}'. Available: {available}")

        return IntegratorFactory.create(_NAME_TO_TYPE[key], derivative_func, **kwargs)

    @staticmethod
    def available() -> List[str]:
        """List of recognized integrator names."""
        return sorted(_NAME_TO_TYPE.keys())


def create_integrator(
    name: str,
    derivative_func: DerivativeFunc,
    **kwargs,
) -> BaseIntegrator:
    """
    Convenience function to create integrator by name.

    Args:
        name: Integrator name (see IntegratorFactory.from_name)
        derivative_func: Function computing dy/dt given (state, time)
        **kwargs: Additional arguments for integrator

    Returns:
        Configured integrator instance
    """
    return IntegratorFactory.from_name(name, derivative_func, **kwargs)
