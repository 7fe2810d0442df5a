import logging

import numpy as np
import pandas as pd
import pytest

from logging_config import LOGGER_NAME
from seismic_data import SeismicSeries

HEADER = "time_abs(%Y-%m-%dT%H:%M:%S.%f),time_rel(sec),velocity(m/s)"


@pytest.fixture(autouse=True)
def reset_app_logger():
    yield
    # setup_logging binds handlers to the captured stdout of the test that ran it
    logging.getLogger(LOGGER_NAME).handlers.clear()


@pytest.fixture
def write_csv(tmp_path):
    def _write(rows, name="trace.csv", header=HEADER):
        path = tmp_path / name
        path.write_text("\n".join([header] + list(rows)) + "\n")
        return path
    return _write


@pytest.fixture
def trace_csv(write_csv):
    return write_csv([
        "2022-01-02T04:00:00.009000,0.0,12.5",
        "2022-01-02T04:00:00.059000,0.05,-150.0",
        "2022-01-02T04:00:00.109000,0.1,abc",
        "2022-01-02T04:00:00.159000,0.15,300.0",
        "2022-01-02T04:00:00.209000,0.2,40.0",
    ])


def make_series(velocities):
    velocities = np.asarray(velocities, dtype=np.float64)
    times = pd.date_range("2022-01-02T04:00:00", periods=len(velocities),
                          freq="50ms", tz="UTC")
    return SeismicSeries(times, np.arange(len(velocities)) * 0.05, velocities)
