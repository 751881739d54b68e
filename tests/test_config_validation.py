#!/usr/bin/env python3
"""
Test configuration validation with Pydantic schemas.
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Path setup is handled by tests/conftest.py
from pydantic import ValidationError

from voxstitch.config import (
    ChunkingConfig,
    InferenceConfig,
    StitchingConfig,
    VoxStitchConfig,
    load_config,
    reload_config,
)


class TestConfigValidation(unittest.TestCase):
    """Test configuration validation and schema enforcement."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.test_config_path = self.temp_dir / "test_config.yaml"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults(self):
        config = VoxStitchConfig()

        self.assertEqual(config.audio.target_sample_rate, 16000)
        self.assertEqual(config.chunking.window_seconds, 15.0)
        self.assertEqual(config.chunking.overlap_fraction, 0.1)
        self.assertEqual(config.stitching.min_match_words, 2)
        self.assertEqual(config.inference.model_id, "mistralai/Voxtral-Mini-3B-2507")
        self.assertIsNone(config.logging)

    def test_chunking_bounds(self):
        with self.assertRaises(ValidationError):
            ChunkingConfig(window_seconds=0)
        with self.assertRaises(ValidationError):
            ChunkingConfig(overlap_fraction=1.0)
        with self.assertRaises(ValidationError):
            ChunkingConfig(overlap_fraction=-0.1)

    def test_stitching_window_must_cover_minimum(self):
        with self.assertRaises(ValidationError):
            StitchingConfig(min_match_words=4, search_window_words=3)
        self.assertEqual(StitchingConfig(search_window_words=7).resolve_search_window(100.0), 7)

    def test_search_window_derived_from_overlap(self):
        stitching = StitchingConfig()
        # 1.5 s overlap * 3 words/s * 2
        self.assertEqual(stitching.resolve_search_window(1.5), 9)
        self.assertEqual(stitching.resolve_search_window(0.1), 2)
        self.assertEqual(
            StitchingConfig(min_match_words=3).resolve_search_window(0.1), 3
        )

    def test_zero_overlap_disables_matching(self):
        self.assertEqual(StitchingConfig().resolve_search_window(0.0), 0)
        self.assertEqual(
            StitchingConfig(search_window_words=7).resolve_search_window(0.0), 0
        )

    def test_window_shorter_than_one_sample_rejected(self):
        with self.assertRaises(ValidationError):
            VoxStitchConfig(chunking={"window_seconds": 0.00001})

    def test_unknown_fields_rejected(self):
        with self.assertRaises(ValidationError):
            VoxStitchConfig(nonsense={"a": 1})

    def test_inference_device_resolution(self):
        self.assertEqual(InferenceConfig(device="cuda", force_cpu=True).resolved_device(), "cpu")
        self.assertEqual(InferenceConfig(device="cuda").resolved_device(), "cuda")
        with self.assertRaises(ValidationError):
            InferenceConfig(device="tpu")

    def test_yaml_round_trip(self):
        config = VoxStitchConfig(
            chunking={"window_seconds": 30.0, "overlap_fraction": 0.2},
            output={"out_dir": str(self.temp_dir / "out"), "wrap_width": 80},
        )
        config.save_to_yaml(self.test_config_path)

        loaded = VoxStitchConfig.load_from_yaml(self.test_config_path)

        self.assertEqual(loaded.chunking.window_seconds, 30.0)
        self.assertEqual(loaded.chunking.overlap_fraction, 0.2)
        self.assertEqual(loaded.output.out_dir, self.temp_dir / "out")
        self.assertEqual(loaded.output.wrap_width, 80)

    def test_empty_yaml_gives_defaults(self):
        self.test_config_path.write_text("", encoding="utf-8")
        config = VoxStitchConfig.load_from_yaml(self.test_config_path)
        self.assertEqual(config.chunking.window_seconds, 15.0)

    def test_invalid_yaml_values_raise_value_error(self):
        self.test_config_path.write_text("chunking:\n  overlap_fraction: 2.0\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            VoxStitchConfig.load_from_yaml(self.test_config_path)

    def test_missing_explicit_file_raises(self):
        with self.assertRaises(FileNotFoundError):
            load_config(self.temp_dir / "absent.yaml")

    def test_environment_overrides(self):
        with patch.dict(os.environ, {"VOXSTITCH_CHUNKING__WINDOW_SECONDS": "12.5"}):
            config = VoxStitchConfig()
        self.assertEqual(config.chunking.window_seconds, 12.5)

    def test_reload_config_uses_env_path(self):
        self.test_config_path.write_text(
            "inference:\n  model_id: local/checkpoint\n", encoding="utf-8"
        )
        with patch.dict(os.environ, {}, clear=False):
            config = reload_config(self.test_config_path)
            self.assertEqual(config.inference.model_id, "local/checkpoint")
            os.environ.pop("VOXSTITCH_CONFIG", None)
        reload_config()


if __name__ == "__main__":
    unittest.main()
