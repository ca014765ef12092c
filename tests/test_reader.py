"""Tests for the PRISMA L2 HDF5 reader."""

from datetime import datetime

import h5py
import numpy as np
import pytest

from conftest import RAW_COLS, RAW_ROWS, SWIR_WAVELENGTHS, VNIR_WAVELENGTHS


class TestHDF5Inspection:
    """Tests for HDF5 file inspection."""

    def test_inspect_hdf5_returns_dict(self, l2c_product):
        """Test that inspect_hdf5 returns a dictionary with expected keys."""
        from prisma_convert.reader import inspect_hdf5

        info = inspect_hdf5(l2c_product)

        for key in ("path", "groups", "datasets", "attributes"):
            assert key in info

    def test_inspect_hdf5_finds_cubes(self, l2c_product):
        from prisma_convert.reader import inspect_hdf5

        info = inspect_hdf5(l2c_product)
        names = [ds["name"] for ds in info["datasets"]]

        assert "HDFEOS/SWATHS/PRS_L2C_HCO/Data Fields/VNIR_Cube" in names
        assert "HDFEOS/SWATHS/PRS_L2C_HCO/Data Fields/SWIR_Cube" in names
        assert info["attributes"]["Processing_Level"] == "2C"

    def test_print_hdf5_structure(self, l2c_product, capsys):
        from prisma_convert.reader import print_hdf5_structure

        print_hdf5_structure(l2c_product)
        out = capsys.readouterr().out

        assert "VNIR_Cube" in out
        assert "Root Attributes" in out


class TestValidation:
    """Tests for structure validation."""

    def test_validate_valid_file(self, l2c_product):
        from prisma_convert.reader import validate_hdf5_structure

        is_valid, issues = validate_hdf5_structure(l2c_product)

        assert is_valid, issues
        assert issues == []

    def test_validate_valid_l2d_file(self, l2d_product):
        from prisma_convert.reader import validate_hdf5_structure

        is_valid, issues = validate_hdf5_structure(l2d_product)

        assert is_valid, issues

    def test_validate_nonexistent_file(self, tmp_path):
        from prisma_convert.reader import validate_hdf5_structure

        is_valid, issues = validate_hdf5_structure(tmp_path / "nonexistent.he5")

        assert not is_valid
        assert "not found" in issues[0].lower()

    def test_validate_reports_missing_cube(self, l2c_product):
        from prisma_convert.reader import validate_hdf5_structure

        with h5py.File(l2c_product, "a") as f:
            del f["HDFEOS/SWATHS/PRS_L2C_HCO/Data Fields/SWIR_Cube"]

        is_valid, issues = validate_hdf5_structure(l2c_product)

        assert not is_valid
        assert "Missing SWIR cube" in issues

    def test_validate_reports_missing_geolocation(self, l2c_product):
        from prisma_convert.reader import validate_hdf5_structure

        with h5py.File(l2c_product, "a") as f:
            del f["HDFEOS/SWATHS/PRS_L2C_HCO/Geolocation Fields/Longitude"]

        is_valid, issues = validate_hdf5_structure(l2c_product)

        assert not is_valid
        assert issues == ["Missing longitude dataset"]

    def test_validate_unsupported_level(self, make_product):
        from prisma_convert.reader import validate_hdf5_structure

        path = make_product("2C")
        with h5py.File(path, "a") as f:
            f.attrs["Processing_Level"] = "1"

        is_valid, issues = validate_hdf5_structure(path)

        assert not is_valid
        assert len(issues) == 1


class TestLevelDetection:
    """Tests for processing level detection."""

    def test_level_from_attribute(self, l2d_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2d_product) as reader:
            assert reader.level == "2D"
            assert reader.is_projected

    def test_level_from_swath_group(self, make_product):
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2B", name="scene.he5", with_level_attr=False)

        with PrismaL2Reader(path) as reader:
            assert reader.level == "2B"
            assert not reader.is_projected

    def test_level_from_file_name(self, tmp_path):
        from prisma_convert.reader import detect_level

        path = tmp_path / "PRS_L2C_STD_20200524103704_20200524103708_0001.he5"
        with h5py.File(path, "w") as f:
            f.create_group("HDFEOS/SWATHS")

        with h5py.File(path, "r") as f:
            assert detect_level(f, path) == "2C"

    def test_unknown_level_raises(self, tmp_path):
        from prisma_convert.exceptions import UnsupportedFormatError
        from prisma_convert.reader import detect_level

        path = tmp_path / "scene.he5"
        with h5py.File(path, "w") as f:
            f.create_group("HDFEOS/SWATHS/PRS_L1_STD")

        with h5py.File(path, "r") as f:
            with pytest.raises(UnsupportedFormatError):
                detect_level(f, path)

    def test_unsupported_level_attribute_raises(self, make_product):
        from prisma_convert.exceptions import UnsupportedFormatError
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2C")
        with h5py.File(path, "a") as f:
            f.attrs["Processing_Level"] = "1"

        reader = PrismaL2Reader(path)
        with pytest.raises(UnsupportedFormatError):
            reader.open()
        assert not reader.is_open


class TestReaderLifecycle:
    """Tests for the file handle lifecycle."""

    def test_missing_file_raises(self, tmp_path):
        from prisma_convert.reader import PrismaL2Reader

        with pytest.raises(FileNotFoundError):
            with PrismaL2Reader(tmp_path / "missing.he5"):
                pass

    def test_handle_released_after_context(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            assert reader.is_open

        assert not reader.is_open
        with pytest.raises(RuntimeError):
            reader.file

    def test_handle_released_on_error(self, make_product):
        from prisma_convert.exceptions import MissingInputDatasetError
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2C", with_masks=False)
        reader = PrismaL2Reader(path)

        with pytest.raises(MissingInputDatasetError):
            with reader:
                reader.read_mask("CLD")

        assert not reader.is_open


class TestCubeReading:
    """Tests for VNIR/SWIR cube reading."""

    def test_vnir_shape_and_wavelengths(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            cube = reader.read_cube("VNIR")

        assert cube.name == "VNIR"
        assert cube.shape == (RAW_ROWS, RAW_COLS, len(VNIR_WAVELENGTHS))
        np.testing.assert_array_equal(cube.wavelengths, VNIR_WAVELENGTHS)
        assert all(f == 10.0 for f in cube.bands.fwhm)

    def test_zero_wavelength_channels_dropped(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            bands, order = reader.band_metadata("SWIR")

        assert len(bands) == len(SWIR_WAVELENGTHS)
        assert 0.0 not in bands.wavelengths
        # Stored descending with the zero channel last
        assert list(order) == list(range(len(SWIR_WAVELENGTHS) - 1, -1, -1))

    def test_bands_reordered_with_data(self, l2c_product):
        """Band k of the ascending cube comes from stored index n - k."""
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            cube = reader.read_cube("VNIR")

        n = len(VNIR_WAVELENGTHS)
        for k in range(n):
            expected = 1000 * (n - k) + 10 * 3 + 2
            assert cube.data[3, 2, k] == pytest.approx(expected)

    def test_cube_is_float32_and_read_only(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            cube = reader.read_cube("SWIR")

        assert cube.data.dtype == np.float32
        with pytest.raises(ValueError):
            cube.data[0, 0, 0] = 1.0

    def test_scale_applied(self, make_product):
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2C")
        with h5py.File(path, "a") as f:
            f.attrs["L2ScaleVnirMin"] = 0.0
            f.attrs["L2ScaleVnirMax"] = 65535.0 / 1000.0

        with PrismaL2Reader(path) as reader:
            cube = reader.read_cube("VNIR")

        n = len(VNIR_WAVELENGTHS)
        assert cube.data[0, 0, 0] == pytest.approx(1000 * n / 1000.0, rel=1e-5)

    def test_missing_scale_warns(self, make_product):
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2C", with_scale=False)

        with PrismaL2Reader(path) as reader:
            with pytest.warns(UserWarning, match="L2ScaleVnirMin"):
                cube = reader.read_cube("VNIR")

        assert cube.data[0, 0, 0] == pytest.approx(1000 * len(VNIR_WAVELENGTHS))

    def test_missing_cube_raises(self, l2c_product):
        from prisma_convert.exceptions import MissingInputDatasetError
        from prisma_convert.reader import PrismaL2Reader

        with h5py.File(l2c_product, "a") as f:
            del f["HDFEOS/SWATHS/PRS_L2C_HCO/Data Fields/VNIR_Cube"]

        with PrismaL2Reader(l2c_product) as reader:
            with pytest.raises(MissingInputDatasetError, match="VNIR_Cube"):
                reader.read_cube("VNIR")

    def test_unknown_spectrometer(self, l2c_product):
        from prisma_convert.exceptions import UnsupportedFormatError
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            with pytest.raises(UnsupportedFormatError):
                reader.read_cube("TIR")


class TestAncillaryReading:
    """Tests for geolocation, angles, PAN and masks."""

    def test_latlon(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            layer = reader.read_latlon()

        assert layer.name == "LATLON"
        assert layer.band_names == ("latitude", "longitude")
        assert layer.data.shape == (RAW_ROWS, RAW_COLS, 2)
        assert layer.data.dtype == np.float64

    def test_pan_latlon_has_pan_grid(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            hco = reader.read_latlon()
            pco = reader.read_latlon(pan=True)

        assert pco.data.shape[0] > hco.data.shape[0]

    def test_angles(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            layer = reader.read_angles()

        assert layer.name == "ANG"
        assert layer.band_names == ("view_zenith", "relative_azimuth", "solar_zenith")
        assert np.all(layer.data[:, :, 2] == pytest.approx(35.5))

    def test_pan(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            layer = reader.read_pan()

        assert layer.name == "PAN"
        assert layer.data.dtype == np.float32
        assert layer.data.ndim == 2

    @pytest.mark.parametrize("name,dataset", [
        ("CLD", "cloud_mask"),
        ("GLINT", "sunglint_mask"),
        ("LC", "landcover_mask"),
    ])
    def test_masks(self, l2c_product, name, dataset):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            layer = reader.read_mask(name)

        assert layer.name == name
        assert layer.band_names == (dataset,)
        assert layer.data.dtype == np.uint8

    def test_missing_mask_raises(self, make_product):
        from prisma_convert.exceptions import MissingInputDatasetError
        from prisma_convert.reader import PrismaL2Reader

        path = make_product("2C", with_masks=False)

        with PrismaL2Reader(path) as reader:
            with pytest.raises(MissingInputDatasetError):
                reader.read_mask("GLINT")


class TestAcquisitionMetadata:
    """Tests for time, sun angles and projection."""

    def test_acquisition_time_from_attribute(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            assert reader.acquisition_time() == datetime(2020, 5, 24, 10, 37, 4, 500000)

    def test_acquisition_time_from_file_name(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with h5py.File(l2c_product, "a") as f:
            del f.attrs["Product_StartTime"]

        with PrismaL2Reader(l2c_product) as reader:
            assert reader.acquisition_time() == datetime(2020, 5, 24, 10, 37, 4)

    def test_sun_angles(self, l2c_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            assert reader.sun_angles() == (35.5, 150.25)

    def test_projection(self, l2d_product):
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2d_product) as reader:
            assert reader.projection() == (32632, 500015.0, 5000015.0)

    def test_missing_attribute_raises(self, l2c_product):
        from prisma_convert.exceptions import MissingInputDatasetError
        from prisma_convert.reader import PrismaL2Reader

        with PrismaL2Reader(l2c_product) as reader:
            with pytest.raises(MissingInputDatasetError):
                reader.projection()

    def test_scene_bounds(self, l2c_product):
        from conftest import LAT0, LON0, STEP
        from prisma_convert.reader import get_scene_bounds

        bounds = get_scene_bounds(l2c_product)

        assert bounds["max_lat"] == pytest.approx(LAT0)
        assert bounds["min_lat"] == pytest.approx(LAT0 - (RAW_COLS - 1) * STEP)
        assert bounds["min_lon"] == pytest.approx(LON0)
        assert bounds["max_lon"] == pytest.approx(LON0 + (RAW_ROWS - 1) * STEP)


class TestTimeConversion:
    """Tests for acquisition time helpers."""

    def test_parse_iso_time(self):
        from prisma_convert.geometry import parse_acquisition_time

        assert parse_acquisition_time(b"2020-05-24T10:37:04.000000") == datetime(2020, 5, 24, 10, 37, 4)

    def test_parse_compact_time(self):
        from prisma_convert.geometry import parse_acquisition_time

        assert parse_acquisition_time("20200524103704") == datetime(2020, 5, 24, 10, 37, 4)

    def test_parse_utc_suffix(self):
        from prisma_convert.geometry import parse_acquisition_time

        assert parse_acquisition_time("2020-05-24T10:37:04Z") == datetime(2020, 5, 24, 10, 37, 4)

    def test_parse_invalid_time(self):
        from prisma_convert.geometry import parse_acquisition_time

        with pytest.raises(ValueError):
            parse_acquisition_time("not a date")

    def test_time_from_bad_file_name(self):
        from prisma_convert.geometry import parse_time_from_filename

        with pytest.raises(ValueError):
            parse_time_from_filename("scene.he5")

    def test_time_to_decimal_hours(self):
        from prisma_convert.geometry import time_to_decimal_hours

        assert time_to_decimal_hours(datetime(2020, 5, 24, 10, 30, 0)) == pytest.approx(10.5)
        assert time_to_decimal_hours(datetime(2020, 5, 24, 0, 0, 0)) == 0.0
