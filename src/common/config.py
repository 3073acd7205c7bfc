"""
Centralized Configuration Management for OceanRay

This module provides a unified interface for loading and accessing
propagation run settings from YAML files.
"""

import os
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, asdict


@dataclass
class WavefrontConfig:
    """Configuration for the wavefront time-marching engine"""

    time_step: float = 0.1  # seconds
    integrator: str = "leapfrog"  # see oceanray.integrators.create_integrator
    domain_tolerance_m: float = 1.0  # overshoot allowed before a ray is invalid

    def __post_init__(self):
        if self.time_step <= 0:
            raise ValueError(f"time_step must be positive, got {self.time_step}")
        if self.domain_tolerance_m < 0:
            raise ValueError("domain_tolerance_m must be non-negative")


@dataclass
class SearchConfig:
    """Configuration for the eigenray search"""

    # Cells past the edge of the ray fan that may be used for extrapolation
    extrapolation_limit: float = 1.0

    # Newton solver
    newton_tolerance: float = 1e-10  # parameter step considered converged
    residual_tolerance_m: float = 1e-3  # largest accepted miss distance
    max_iterations: int = 25

    # Roots this close to a cell edge are moved onto it
    snap_tolerance: float = 1e-7

    # Fractional growth of the candidate box in the cell prefilter
    prefilter_margin: float = 0.5

    # Targets searched concurrently when > 1
    max_workers: int = 1

    def __post_init__(self):
        if self.extrapolation_limit < 0:
            raise ValueError("extrapolation_limit must be non-negative")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")


@dataclass
class ProplossConfig:
    """Configuration for propagation loss summation"""

    coherent: bool = True
    total_loss_db: float = 300.0  # loss reported where no eigenray arrives


@dataclass
class OutputConfig:
    """Configuration for output products and logging"""

    output_dir: Path = field(default_factory=lambda: Path("output"))
    wavefront_file: str = "wavefront.nc"
    proploss_file: str = "proploss.nc"
    eigenray_csv: str = "eigenrays.csv"
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None  # written inside output_dir when set

    @property
    def wavefront_path(self) -> Path:
        """Path of the recorded wavefront history"""
        return Path(self.output_dir) / self.wavefront_file

    @property
    def proploss_path(self) -> Path:
        """Path of the propagation loss netCDF file"""
        return Path(self.output_dir) / self.proploss_file

    @property
    def eigenray_csv_path(self) -> Path:
        """Path of the eigenray table"""
        return Path(self.output_dir) / self.eigenray_csv

    @property
    def log_path(self) -> Optional[Path]:
        """Path of the run log, or None to log to stdout only"""
        return Path(self.output_dir) / self.log_file if self.log_file else None


@dataclass
class OceanRayConfig:
    """Master configuration for an OceanRay propagation run"""

    wavefront: WavefrontConfig = field(default_factory=WavefrontConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    proploss: ProplossConfig = field(default_factory=ProplossConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'OceanRayConfig':
        """Load configuration from YAML file"""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        output = dict(config_dict.get('output', {}))
        if 'output_dir' in output:
            output['output_dir'] = Path(output['output_dir'])

        return cls(
            wavefront=WavefrontConfig(**config_dict.get('wavefront', {})),
            search=SearchConfig(**config_dict.get('search', {})),
            proploss=ProplossConfig(**config_dict.get('proploss', {})),
            output=OutputConfig(**output),
        )

    def to_yaml(self, yaml_path: str) -> None:
        """Save configuration to YAML file"""
        output = asdict(self.output)
        output['output_dir'] = str(self.output.output_dir)
        config_dict = {
            'wavefront': asdict(self.wavefront),
            'search': asdict(self.search),
            'proploss': asdict(self.proploss),
            'output': output,
        }

        with open(yaml_path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False)


def get_config(config_path: Optional[str] = None) -> OceanRayConfig:
    """
    Get run configuration

    Priority:
    1. Provided config_path
    2. OCEANRAY_CONFIG environment variable
    3. config/oceanray.yml
    4. Default configuration
    """
    if config_path is None:
        config_path = os.getenv('OCEANRAY_CONFIG')

    if config_path is None:
        default_paths = [
            Path(__file__).parent.parent.parent / 'config' / 'oceanray.yml',
            Path('config/oceanray.yml'),
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path and Path(config_path).exists():
        return OceanRayConfig.from_yaml(config_path)

    return OceanRayConfig()
