from unittest.mock import patch

from vn_txn_parser.core import settings


def test_defaults() -> None:
    keys = {"MIN_AUTO_CONFIDENCE": "", "FALLBACK_AMOUNT_CONFIDENCE": "", "MAX_ALTERNATIVES": ""}
    with patch.dict("os.environ", keys):
        assert settings.min_auto_confidence() == 0.6
        assert settings.fallback_amount_confidence() == 0.25
        assert settings.max_alternatives() == 3


def test_fallback_confidence_never_exceeds_ceiling() -> None:
    with patch.dict("os.environ", {"FALLBACK_AMOUNT_CONFIDENCE": "0.9"}):
        assert settings.fallback_amount_confidence() == 0.25
    with patch.dict("os.environ", {"FALLBACK_AMOUNT_CONFIDENCE": "0.1"}):
        assert settings.fallback_amount_confidence() == 0.1


def test_invalid_values_use_defaults() -> None:
    with patch.dict("os.environ", {"MIN_AUTO_CONFIDENCE": "high", "MIN_RETRAIN_SAMPLES": "0"}):
        assert settings.min_auto_confidence() == 0.6
        assert settings.min_retrain_samples() == 5


def test_read_config_file(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text('MIN_AUTO_CONFIDENCE: 0.7  # stricter\nDATA_DIR: "/data"\n', encoding="utf-8")
    assert settings.read_config_file(str(path)) == {"MIN_AUTO_CONFIDENCE": "0.7", "DATA_DIR": "/data"}
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}
