"""
Tests for gatekeeper_core/loader.py

Coverage targets:
- YAML, JSON, INI and mapping layers
- INI "[ROLE extends BASE]" sections
- Malformed layers raise ConfigError
"""

import pytest

from gatekeeper_core.errors import ConfigError
from gatekeeper_core.loader import parse_layer


# ========== Format Tests ==========

class TestLayerFormats:
    """Tests for each supported layer format"""

    def test_yaml_layer(self, write_layer):
        path = write_layer("app.yaml", """
permissions:
  view: View a record
  edit: Edit a record
roles:
  READ_ONLY:
    view: 1
  EDIT:
    extends: READ_ONLY
    edit: true
""")
        layer = parse_layer(path)

        assert layer.source == str(path)
        assert layer.permissions == {"view": "View a record", "edit": "Edit a record"}
        assert layer.roles["READ_ONLY"].grants == {"view": 1}
        assert layer.roles["EDIT"].extends == "READ_ONLY"
        assert layer.roles["EDIT"].grants == {"edit": 1}

    def test_yml_suffix(self, write_layer):
        path = write_layer("app.yml", "permissions: [view, edit]\n")
        layer = parse_layer(path)
        assert layer.permissions == {"view": "", "edit": ""}

    def test_json_layer(self, write_layer):
        path = write_layer("module.json", """
{"permissions": {"publish": "Publish a post"},
 "roles": {"EDITOR": {"publish": 1, "extends": "EDIT"}}}
""")
        layer = parse_layer(path)

        assert layer.permissions == {"publish": "Publish a post"}
        assert layer.roles["EDITOR"].grants == {"publish": 1}
        assert layer.roles["EDITOR"].extends == "EDIT"

    def test_ini_layer(self, write_layer):
        path = write_layer("app.ini", """
[permissions]
view = View a record
edit = Edit a record

[READ_ONLY]
view = 1

[EDIT extends READ_ONLY]
edit = 1
view = 0
""")
        layer = parse_layer(path)

        assert layer.permissions == {"view": "View a record", "edit": "Edit a record"}
        assert layer.roles["READ_ONLY"].grants == {"view": 1}
        assert layer.roles["READ_ONLY"].extends is None
        assert layer.roles["EDIT"].extends == "READ_ONLY"
        assert layer.roles["EDIT"].grants == {"edit": 1, "view": 0}

    def test_ini_preserves_case(self, write_layer):
        path = write_layer("case.ini", "[permissions]\nExportCSV = Export as CSV\n")
        assert parse_layer(path).permissions == {"ExportCSV": "Export as CSV"}

    def test_mapping_layer(self):
        layer = parse_layer({"roles": {"EMPTY": None}}, label="<inline>")
        assert layer.source == "<inline>"
        assert layer.roles["EMPTY"].grants == {}

    def test_empty_yaml_file(self, write_layer):
        layer = parse_layer(write_layer("empty.yaml", ""))
        assert layer.permissions == {}
        assert layer.roles == {}


# ========== Error Tests ==========

class TestLayerErrors:
    """Tests for malformed layers"""

    def test_missing_file(self, layer_dir):
        with pytest.raises(ConfigError) as exc_info:
            parse_layer(layer_dir / "nope.yaml")
        assert exc_info.value.code == "CONFIG_ERROR"
        assert "not found" in exc_info.value.message

    def test_unsupported_suffix(self, write_layer):
        with pytest.raises(ConfigError, match="Unsupported"):
            parse_layer(write_layer("layer.toml", "x = 1"))

    def test_unparsable_yaml(self, write_layer):
        with pytest.raises(ConfigError) as exc_info:
            parse_layer(write_layer("bad.yaml", "roles: [unclosed"))
        assert exc_info.value.__cause__ is not None

    def test_unparsable_json(self, write_layer):
        with pytest.raises(ConfigError):
            parse_layer(write_layer("bad.json", "{not json"))

    def test_unparsable_ini(self, write_layer):
        with pytest.raises(ConfigError):
            parse_layer(write_layer("bad.ini", "view = 1\n"))

    def test_non_boolean_value(self, write_layer):
        path = write_layer("bad.yaml", "roles:\n  EDIT:\n    edit: 2\n")
        with pytest.raises(ConfigError) as exc_info:
            parse_layer(path)
        assert exc_info.value.details["role"] == "EDIT"
        assert exc_info.value.details["permission"] == "edit"
        assert exc_info.value.details["source"] == str(path)

    def test_non_boolean_ini_value(self, write_layer):
        with pytest.raises(ConfigError):
            parse_layer(write_layer("bad.ini", "[EDIT]\nedit = maybe\n"))

    def test_top_level_not_mapping(self, write_layer):
        with pytest.raises(ConfigError, match="must be a mapping"):
            parse_layer(write_layer("list.yaml", "- view\n- edit\n"))

    def test_unknown_section(self):
        with pytest.raises(ConfigError, match="Unknown section"):
            parse_layer({"permisions": {"view": ""}})

    def test_role_section_not_mapping(self):
        with pytest.raises(ConfigError):
            parse_layer({"roles": {"EDIT": ["edit"]}})

    def test_empty_extends(self):
        with pytest.raises(ConfigError, match="extends"):
            parse_layer({"roles": {"EDIT": {"extends": ""}}})

    def test_extends_is_reserved(self):
        with pytest.raises(ConfigError, match="reserved"):
            parse_layer({"permissions": {"extends": "nope"}})

    @pytest.mark.parametrize("role", ["ALL", "NO_ACCESS"])
    def test_derived_roles_cannot_be_declared(self, role):
        with pytest.raises(ConfigError, match="derived"):
            parse_layer({"roles": {role: {"view": 1}}})


# ========== YAML Boolean Tests ==========

class TestYamlBooleans:
    """Only 0, 1, true and false are grant values in YAML layers"""

    @pytest.mark.parametrize("value", ["yes", "no", "on", "off", "Y", "n"])
    def test_yaml_1_1_booleans_rejected(self, write_layer, value):
        path = write_layer("bools.yaml", f"roles:\n  R:\n    view: {value}\n")

        with pytest.raises(ConfigError) as exc_info:
            parse_layer(path)

        assert exc_info.value.details["permission"] == "view"

    @pytest.mark.parametrize("value,expected", [("true", 1), ("False", 0), ("TRUE", 1), (1, 1), (0, 0)])
    def test_true_false_accepted(self, write_layer, value, expected):
        path = write_layer("bools.yaml", f"roles:\n  R:\n    view: {value}\n")
        assert parse_layer(path).roles["R"].grants == {"view": expected}

    def test_on_is_a_plain_permission_name(self, write_layer):
        path = write_layer("names.yaml", "permissions:\n  on: Switch on\n  off: Switch off\n")
        assert parse_layer(path).permissions == {"on": "Switch on", "off": "Switch off"}
