"""Tests for lrctl.manifest: YAML-subset flattening and the typed manifest view."""

from __future__ import annotations

from lrctl.manifest import ManifestEntry, VersionManifest, parse_manifest

# ---------------------------------------------------------------------------
# parse_manifest
# ---------------------------------------------------------------------------


class TestParseManifest:
    """Tests for the pure flattening transform."""

    def test_services_document_flattens_to_prefixed_keys(self) -> None:
        text = 'services:\n  lrctl:\n    image: "gcr.io/x/lrctl"\n    version: "1.2.3"\n'

        assert parse_manifest(text) == {
            "services_lrctl_image": "gcr.io/x/lrctl",
            "services_lrctl_version": "1.2.3",
        }

    def test_two_level_document(self) -> None:
        text = "lrctl:\n  image: gcr.io/x/lrctl\n  version: 2.0.0\n"

        assert parse_manifest(text) == {
            "lrctl_image": "gcr.io/x/lrctl",
            "lrctl_version": "2.0.0",
        }

    def test_single_quotes_stripped(self) -> None:
        assert parse_manifest("lrctl:\n  version: '3.1.4'\n") == {"lrctl_version": "3.1.4"}

    def test_unbalanced_quote_kept(self) -> None:
        assert parse_manifest('lrctl:\n  version: "3.1.4\n') == {"lrctl_version": '"3.1.4'}

    def test_sibling_services_do_not_leak_scope(self) -> None:
        text = (
            "services:\n"
            "  lrctl:\n"
            "    version: 1.0.0\n"
            "  agent:\n"
            "    image: gcr.io/x/agent\n"
            "    version: 0.9.1\n"
        )

        assert parse_manifest(text) == {
            "services_lrctl_version": "1.0.0",
            "services_agent_image": "gcr.io/x/agent",
            "services_agent_version": "0.9.1",
        }

    def test_dedent_returns_to_outer_scope(self) -> None:
        text = "services:\n  lrctl:\n    version: 1.0.0\nchannel: stable\n"

        assert parse_manifest(text) == {
            "services_lrctl_version": "1.0.0",
            "channel": "stable",
        }

    def test_comments_blank_lines_and_lists_ignored(self) -> None:
        text = (
            "# published manifest\n"
            "\n"
            "services:\n"
            "  - not a mapping line\n"
            "  lrctl:\n"
            "    version: 1.0.0  # pinned\n"
            "    this line has no colon\n"
        )

        assert parse_manifest(text) == {"services_lrctl_version": "1.0.0"}

    def test_malformed_lines_do_not_crash(self) -> None:
        text = ":\n  : value\n\tlrctl:\n===\n  version 1.2\n"

        assert parse_manifest(text) == {}

    def test_hyphenated_keys_become_underscores(self) -> None:
        text = "services:\n  lrctl-agent:\n    version: 0.1.0\n"

        assert parse_manifest(text) == {"services_lrctl_agent_version": "0.1.0"}

    def test_value_containing_colons(self) -> None:
        text = "lrctl:\n  image: registry.local:5000/lrctl\n"

        assert parse_manifest(text) == {"lrctl_image": "registry.local:5000/lrctl"}

    def test_empty_quoted_value_is_a_leaf(self) -> None:
        text = 'lrctl:\n  image: ""\n  version: 1.0.0\n'

        assert parse_manifest(text) == {"lrctl_image": "", "lrctl_version": "1.0.0"}

    def test_trailing_comment_on_scope_line(self) -> None:
        text = "services:  # published\n  lrctl:\n    version: 1.0.0\n"

        assert parse_manifest(text) == {"services_lrctl_version": "1.0.0"}

    def test_empty_input(self) -> None:
        assert parse_manifest("") == {}

    def test_does_not_mutate_between_calls(self) -> None:
        text = "lrctl:\n  version: 1.0.0\n"
        first = parse_manifest(text)
        first["lrctl_version"] = "tampered"

        assert parse_manifest(text) == {"lrctl_version": "1.0.0"}


# ---------------------------------------------------------------------------
# VersionManifest
# ---------------------------------------------------------------------------


class TestVersionManifest:
    """Tests for grouping flat keys into per-service entries."""

    def test_from_services_document(self) -> None:
        manifest = VersionManifest.parse(
            'services:\n  lrctl:\n    image: "gcr.io/x/lrctl"\n    version: "1.2.3"\n'
        )

        assert manifest.get("lrctl") == ManifestEntry(image="gcr.io/x/lrctl", version="1.2.3")
        assert "lrctl" in manifest
        assert len(manifest) == 1

    def test_without_services_wrapper(self) -> None:
        manifest = VersionManifest.from_flat({"lrctl_image": "img", "lrctl_version": "1.0"})

        entry = manifest.get("lrctl")
        assert entry is not None
        assert entry.image_ref == "img:1.0"

    def test_partial_entry(self) -> None:
        manifest = VersionManifest.from_flat({"services_lrctl_version": "4.5.6"})

        assert manifest.get("lrctl") == ManifestEntry(image="", version="4.5.6")

    def test_unrelated_keys_ignored(self) -> None:
        manifest = VersionManifest.from_flat({"channel": "stable", "image": "x"})

        assert len(manifest) == 0

    def test_missing_service(self) -> None:
        assert VersionManifest.parse("").get("lrctl") is None
