"""
Tests for root certificate sources and PEM helpers.

Organization
------------
- TestPemHelpers: split_pem_blocks, load_pem_certificate(s)
- TestSystemRoots: load_system_roots with patched verify locations
- TestEmbeddedRoots: load_embedded_roots against certifi
- TestCustomCA: parse_ca_text, read_ca_file
"""

import pytest

from trustgate.core.exceptions import (
    CAFileUnreadableError,
    CAStringInvalidError,
    EmbeddedBundleError,
    MalformedCertificateError,
)
from trustgate.core.network import roots
from trustgate.core.network.roots import (
    load_embedded_roots,
    load_pem_certificate,
    load_pem_certificates,
    load_system_roots,
    parse_ca_text,
    read_ca_file,
    split_pem_blocks,
)

BROKEN_PEM = "-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"


class TestPemHelpers:
    """Tests for PEM parsing helpers."""

    def test_split_finds_blocks_in_order_ignoring_comments(self, pki):
        text = "# bundle\n" + pki.root.pem + "junk\n" + pki.foreign_root.pem

        blocks = split_pem_blocks(text)

        assert len(blocks) == 2
        assert blocks[0] == pki.root.pem.strip().encode("ascii")

    def test_load_pem_certificate_takes_first_block(self, pki):
        cert = load_pem_certificate(pki.root.pem + pki.foreign_root.pem)

        assert cert == pki.root.cert

    def test_load_pem_certificate_without_block_raises(self):
        with pytest.raises(MalformedCertificateError):
            load_pem_certificate("no pem here")

    def test_load_pem_certificates_skips_bad_blocks(self, pki):
        certs = load_pem_certificates(pki.root.pem + BROKEN_PEM + pki.foreign_root.pem)

        assert certs == [pki.root.cert, pki.foreign_root.cert]

    def test_load_pem_certificates_strict_raises(self, pki):
        with pytest.raises(MalformedCertificateError) as exc_info:
            load_pem_certificates(pki.root.pem + BROKEN_PEM, strict=True, source="ca.pem")

        assert "ca.pem" in str(exc_info.value)


class TestSystemRoots:
    """Tests for load_system_roots."""

    def test_reads_ca_file_and_directory(self, pki, temp_dir, monkeypatch):
        ca_file = temp_dir / "bundle.pem"
        ca_file.write_text(pki.root.pem)
        ca_dir = temp_dir / "certs"
        ca_dir.mkdir()
        (ca_dir / "a.0").write_text(pki.foreign_root.pem)
        (ca_dir / "broken.0").write_text(BROKEN_PEM)
        monkeypatch.setattr(
            roots, "_default_verify_locations", lambda: (str(ca_file), None, str(ca_dir), None)
        )

        certs = load_system_roots()

        assert certs == [pki.root.cert, pki.foreign_root.cert]

    def test_missing_locations_give_empty_list(self, temp_dir, monkeypatch):
        missing = str(temp_dir / "nope.pem")
        monkeypatch.setattr(roots, "_default_verify_locations", lambda: (missing, None))

        assert load_system_roots() == []

    def test_lookup_failure_never_raises(self, monkeypatch):
        def broken():
            raise OSError("no ssl paths")

        monkeypatch.setattr(roots, "_default_verify_locations", broken)

        assert load_system_roots() == []


class TestEmbeddedRoots:
    """Tests for load_embedded_roots."""

    def test_certifi_bundle_loads(self):
        certs = load_embedded_roots()

        assert len(certs) > 50

    def test_empty_bundle_is_fatal(self, temp_dir, monkeypatch):
        empty = temp_dir / "cacert.pem"
        empty.write_text("")
        monkeypatch.setattr(roots.certifi, "where", lambda: str(empty))

        with pytest.raises(EmbeddedBundleError):
            load_embedded_roots()

    def test_missing_bundle_is_fatal(self, temp_dir, monkeypatch):
        monkeypatch.setattr(roots.certifi, "where", lambda: str(temp_dir / "gone.pem"))

        with pytest.raises(EmbeddedBundleError):
            load_embedded_roots()


class TestCustomCA:
    """Tests for custom CA parsing."""

    def test_parse_ca_text_returns_all_certificates(self, pki):
        certs = parse_ca_text(pki.root.pem + pki.foreign_root.pem)

        assert certs == [pki.root.cert, pki.foreign_root.cert]

    @pytest.mark.parametrize("text", ["garbage", BROKEN_PEM])
    def test_parse_ca_text_without_certificate_raises(self, text):
        with pytest.raises(CAStringInvalidError):
            parse_ca_text(text)

    def test_read_ca_file(self, pki, temp_dir):
        path = temp_dir / "ca.pem"
        path.write_text(pki.root.pem)

        assert read_ca_file(path) == [pki.root.cert]

    def test_read_missing_ca_file_raises(self, temp_dir):
        with pytest.raises(CAFileUnreadableError):
            read_ca_file(temp_dir / "missing.pem")

    def test_read_ca_file_without_certificate_raises(self, temp_dir):
        path = temp_dir / "ca.pem"
        path.write_text("not a cert")

        with pytest.raises(CAStringInvalidError):
            read_ca_file(path)
