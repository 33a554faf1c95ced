from history_ingest.allowlist import LicensePolicy, is_license_allowed
from history_ingest.config import load_config


def test_exact_membership():
    p = LicensePolicy.from_config(["CC0", "CC BY 4.0", "ODbL"])
    assert is_license_allowed("CC0", p)
    assert is_license_allowed("CC BY 4.0", p)
    assert is_license_allowed("  ODbL ", p)
    assert not is_license_allowed("cc0", p)
    assert not is_license_allowed("CC BY-SA 4.0", p)
    assert not is_license_allowed("", p)


def test_inner_whitespace_is_collapsed():
    p = LicensePolicy.from_config(["CC  BY 4.0"])
    assert p.allowed == frozenset({"CC BY 4.0"})
    assert is_license_allowed("CC BY  4.0", p)


def test_empty_entries_are_ignored():
    p = LicensePolicy.from_config(["CC0", "", "   "])
    assert p.allowed == frozenset({"CC0"})


def test_repo_allow_list_loads():
    p = LicensePolicy.from_config(load_config().allowed_licenses)
    assert p.sorted_allowed() == ["CC BY 4.0", "CC0", "ODbL"]
