from pathlib import Path

import pytest

from src.core.entities import AssetType
from src.rules.loader import load_rules

VALID = """
buckets:
  public: uploads
  private: private_files
paths:
  entity_types: [orders]
uploads:
  max_file_bytes: 1024
  max_files: 2
  allowed_mime_prefixes: ["image/"]
access:
  capabilities:
    designer: [design_file]
"""


def write(tmp_path: Path, text: str, name: str = "rules.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def test_load_real_rules(rules):
    assert rules.buckets.public == "uploads"
    assert rules.buckets.private == "private_files"
    assert "orders" in rules.paths.entity_types
    assert rules.signed_urls.max_bulk_ids == 50
    assert AssetType.DESIGN_FILE in rules.access.types_for("designer")


def test_defaults_applied(tmp_path):
    rules = load_rules(write(tmp_path, VALID))
    assert rules.signed_urls.default_ttl_seconds == 3600
    assert rules.access.admin_role == "admin"
    assert rules.paths.max_filename_length == 255


def test_rules_in_markdown_fence(tmp_path):
    doc = "# Storage rules\n\nSome prose.\n\n```yaml\n" + VALID + "```\n\nMore prose.\n"
    rules = load_rules(write(tmp_path, doc, "rules.md"))
    assert rules.uploads.max_files == 2


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_rules(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_rules(write(tmp_path, "buckets: [unclosed"))


@pytest.mark.parametrize(
    ("old", "new"),
    [
        ("private: private_files", "private: uploads"),
        ("max_files: 2", "max_files: 0"),
        ("designer: [design_file]", "designer: [spreadsheet]"),
    ],
)
def test_schema_violations(tmp_path, old, new):
    with pytest.raises(ValueError, match="Rules validation failed"):
        load_rules(write(tmp_path, VALID.replace(old, new)))


def test_ttl_bounds_must_be_ordered(tmp_path):
    text = VALID + "signed_urls:\n  min_ttl_seconds: 600\n  max_ttl_seconds: 60\n"
    with pytest.raises(ValueError):
        load_rules(write(tmp_path, text))


def test_unknown_role_has_no_capabilities(rules):
    assert rules.access.types_for("intern") == frozenset()
    assert rules.access.types_for(None) == frozenset()
