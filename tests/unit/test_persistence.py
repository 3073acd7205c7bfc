"""
Unit Tests for Persistence

Tests cover:
- Wavefront netCDF recording
- Propagation loss netCDF output
- Eigenray CSV tables
- PersistenceError on unwritable or closed files
"""

import csv

import pytest
import numpy as np
import netCDF4
import xarray as xr
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from oceanray.eigenray import Eigenray
from oceanray.exceptions import PersistenceError
from oceanray.launch_grid import linear_sequence
from oceanray.ocean import ConstantProfile, FlatBoundary, OceanModel
from oceanray.persistence import (
    EIGENRAY_COLUMNS, WavefrontRecorder, write_eigenray_csv, write_proploss_netcdf
)
from oceanray.proploss import PropagationLoss
from oceanray.wave_queue import WaveQueue


def make_queue() -> WaveQueue:
    ocean = OceanModel.for_area(45.0, bottom=FlatBoundary(100.0), profile=ConstantProfile())
    return WaveQueue(ocean, [1000.0], (45.0, -45.0, -50.0),
                     linear_sequence(-20.0, 10.0, 20.0), linear_sequence(-5.0, 5.0, 5.0),
                     time_step=0.01)


def make_ray(time, intensity, surface=0) -> Eigenray:
    return Eigenray(time=time, intensity=intensity, phase=[0.0] * len(intensity),
                    source_de=1.5, source_az=0.0, target_de=-1.5, target_az=0.0,
                    surface=surface)


def make_loss() -> PropagationLoss:
    loss = PropagationLoss([[45.0, -45.0, -50.0], [45.1, -45.0, -50.0]],
                           frequencies=[1000.0, 2000.0])
    loss.add_eigenray(0, make_ray(1.0, [60.0, 61.0]))
    loss.add_eigenray(0, make_ray(1.2, [66.0, 67.0], surface=1))
    loss.add_eigenray(1, make_ray(7.5, [80.0, 82.0]))
    return loss


class TestWavefrontRecorder:
    """Test wavefront recording"""

    def test_dimensions_and_values(self, tmp_path):
        """Test one time slice per recorded wavefront"""
        wave = make_queue()
        path = tmp_path / "wavefront.nc"
        with WavefrontRecorder(path, wave.grid.de, wave.grid.az) as recorder:
            wave.attach_recorder(recorder)
            wave.run(0.03)
            assert recorder.records == 4

        with netCDF4.Dataset(str(path)) as nc:
            assert len(nc.dimensions['time']) == 4
            assert len(nc.dimensions['de']) == 5
            assert len(nc.dimensions['az']) == 3
            np.testing.assert_allclose(nc['time'][:], [0.0, 0.01, 0.02, 0.03])
            np.testing.assert_allclose(nc['de'][:], wave.grid.de)
            np.testing.assert_allclose(nc['depth'][0], 50.0, atol=1e-6)
            np.testing.assert_allclose(nc['latitude'][-1], wave.wavefront.latitude)
            assert nc['surface_count'][:].dtype == np.int32
        assert wave.persistence_errors == []

    def test_closed_recorder(self, tmp_path):
        """Test recording after close raises"""
        wave = make_queue()
        recorder = WavefrontRecorder(tmp_path / "wavefront.nc", wave.grid.de, wave.grid.az)
        recorder.close()
        with pytest.raises(PersistenceError):
            recorder.record(wave.wavefront)

    def test_closed_recorder_does_not_stop_queue(self, tmp_path):
        """Test the queue keeps running after a recorder fails"""
        wave = make_queue()
        recorder = WavefrontRecorder(tmp_path / "wavefront.nc", wave.grid.de, wave.grid.az)
        recorder.close()
        wave.attach_recorder(recorder)
        wave.step()
        assert len(wave.persistence_errors) == 2

    def test_unwritable_path(self, tmp_path):
        """Test a path that cannot be created raises"""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            WavefrontRecorder(blocker / "wavefront.nc", [0.0, 1.0], [0.0, 1.0])


class TestProplossNetcdf:
    """Test propagation loss output"""

    def test_round_trip(self, tmp_path):
        """Test eigenrays and summed loss are written per target"""
        loss = make_loss()
        loss.sum_eigenrays()
        path = write_proploss_netcdf(loss, tmp_path / "proploss.nc", title="test")

        with xr.open_dataset(path, decode_times=False, decode_timedelta=False) as ds:
            assert ds.attrs['title'] == "test"
            assert ds.sizes['target'] == 2
            assert ds.sizes['eigenray'] == 2
            assert ds.sizes['frequency'] == 2
            np.testing.assert_array_equal(ds['num_eigenrays'].values, [2, 1])
            np.testing.assert_allclose(ds['time'].values[0], [1.0, 1.2])
            assert ds['time'].values[1, 0] == 7.5
            assert np.isnan(ds['time'].values[1, 1])
            assert ds['surface_count'].values[0, 1] == 1
            assert ds['surface_count'].values[1, 1] == -1
            np.testing.assert_allclose(ds['intensity'].values[1, 0], [80.0, 82.0])
            np.testing.assert_allclose(ds['loss'].values[1], [80.0, 82.0])
            np.testing.assert_allclose(ds['latitude'].values, [45.0, 45.1])
            np.testing.assert_allclose(ds['frequency'].values, [1000.0, 2000.0])

    def test_unsummed(self, tmp_path):
        """Test eigenrays are written before summation"""
        path = write_proploss_netcdf(make_loss(), tmp_path / "proploss.nc")
        with xr.open_dataset(path, decode_times=False, decode_timedelta=False) as ds:
            assert 'loss' not in ds
            assert 'intensity' in ds

    def test_no_frequencies(self, tmp_path):
        """Test output needs the run frequencies"""
        with pytest.raises(ValueError):
            write_proploss_netcdf(PropagationLoss([[0.0, 0.0, 0.0]]), tmp_path / "p.nc")

    def test_unwritable_path(self, tmp_path):
        """Test write failures raise PersistenceError"""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            write_proploss_netcdf(make_loss(), blocker / "proploss.nc")


class TestEigenrayCsv:
    """Test eigenray tables"""

    def read(self, path):
        with open(path, newline='') as f:
            return list(csv.reader(f))

    def test_single_target(self, tmp_path):
        """Test one row per eigenray of the chosen target"""
        rows = self.read(write_eigenray_csv(make_loss(), tmp_path / "rays.csv", index=0))
        assert rows[0] == EIGENRAY_COLUMNS
        assert len(rows) == 3
        assert float(rows[1][0]) == 1.0
        assert float(rows[2][1]) == 66.0
        assert int(rows[2][7]) == 1

    def test_all_targets(self, tmp_path):
        """Test a target column is added for several targets"""
        rows = self.read(write_eigenray_csv(make_loss(), tmp_path / "rays.csv"))
        assert rows[0] == ['target'] + EIGENRAY_COLUMNS
        assert [row[0] for row in rows[1:]] == ['0', '0', '1']

    def test_frequency_column(self, tmp_path):
        """Test intensity of another frequency"""
        rows = self.read(write_eigenray_csv(make_loss(), tmp_path / "rays.csv", index=1,
                                            frequency_index=1))
        assert float(rows[1][1]) == 82.0

    def test_unwritable_path(self, tmp_path):
        """Test write failures raise PersistenceError"""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            write_eigenray_csv(make_loss(), blocker / "rays.csv")
