from planscale.constants import DEFAULT_SCALE_PRESET
from planscale.infra import config_store


def test_config_defaults(tmp_path):
    cfg = config_store.Config(path=str(tmp_path / "config.json"))
    assert cfg.load_error is None
    assert cfg.get("scale_preset") == DEFAULT_SCALE_PRESET
    assert cfg.get("line_interaction") == "click"
    assert cfg.get_float("zoom_max", 1.0) == 5.0


def test_config_load_invalid_json_sets_error(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{invalid", encoding="utf-8")

    cfg = config_store.Config(path=str(config_file))

    assert cfg.load_error
    assert cfg.get("window_geometry") == "1280x800"


def test_config_load_non_object_sets_error(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text('["not", "an", "object"]', encoding="utf-8")

    cfg = config_store.Config(path=str(config_file))

    assert cfg.load_error == "Config payload must be a JSON object."


def test_config_set_persists_and_merges(tmp_path):
    config_file = tmp_path / "nested" / "config.json"
    cfg = config_store.Config(path=str(config_file))
    cfg.set("scale_preset", "1/8\" = 1'-0\"")

    reloaded = config_store.Config(path=str(config_file))
    assert reloaded.get("scale_preset") == "1/8\" = 1'-0\""
    assert reloaded.get("default_layer") == "General"


def test_config_typed_getters_fall_back(tmp_path):
    cfg = config_store.Config(path=str(tmp_path / "config.json"))
    cfg.data["write_retries"] = "many"
    cfg.data["zoom_step"] = None
    assert cfg.get_int("write_retries", 2) == 2
    assert cfg.get_float("zoom_step", 1.2) == 1.2
