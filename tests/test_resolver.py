"""Tests for dependency resolution: ordering, dedup, cycles and skills."""

import os

import pytest

from rule_squash.core.errors import SkillReferenceError
from rule_squash.core.resolver import DependencyResolver
from rule_squash.core.source import Classification, Source

from conftest import FakeFetcher


def real(path):
    return os.path.realpath(path)


@pytest.fixture
def resolver(canonicalizer):
    """Resolver without a remote fetcher."""
    return DependencyResolver(canonicalizer)


class TestOrdering:
    """Test that dependencies are emitted before their dependents."""

    def test_shared_requirement_lands_once_first(self, write_rule, resolver):
        """Test two files requiring one common file."""
        common = write_rule("rules/common.md", "# Common\n")
        a = write_rule("rules/a.md", "# A\n", frontmatter="requires: [common.md]")
        b = write_rule("rules/b.md", "# B\n", frontmatter="requires: [common.md]")

        resolution = resolver.resolve([Source.local("rules/a.md"), Source.local("rules/b.md")])

        assert resolution.identities == [real(common), real(a), real(b)]

    def test_input_order_is_kept(self, write_rule, resolver):
        """Test that sibling order follows the input order."""
        common = write_rule("rules/common.md", "# Common\n")
        a = write_rule("rules/a.md", "# A\n", frontmatter="requires: [common.md]")
        b = write_rule("rules/b.md", "# B\n", frontmatter="requires: [common.md]")

        resolution = resolver.resolve([Source.local("rules/b.md"), Source.local("rules/a.md")])

        assert resolution.identities == [real(common), real(b), real(a)]

    def test_first_path_is_completed_before_siblings(self, write_rule, resolver):
        """Test depth-first completion of a diamond."""
        d = write_rule("rules/d.md", "D\n")
        b = write_rule("rules/b.md", "B\n", frontmatter="requires: [d.md]")
        c = write_rule("rules/c.md", "C\n", frontmatter="requires: [d.md]")
        a = write_rule("rules/a.md", "A\n", frontmatter="requires: [b.md, c.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert resolution.identities == [real(d), real(b), real(c), real(a)]

    def test_requirement_listed_later_at_top_level(self, write_rule, resolver):
        """Test a top-level file that was already pulled in by requires."""
        common = write_rule("rules/common.md", "C\n")
        a = write_rule("rules/a.md", "A\n", frontmatter="requires: [common.md]")

        resolution = resolver.resolve(
            [Source.local("rules/a.md"), Source.local("rules/common.md")]
        )

        assert resolution.identities == [real(common), real(a)]


class TestDedup:
    """Test that each identity is processed once."""

    def test_different_spellings_collapse(self, project, write_rule, resolver):
        """Test relative, absolute and symlinked references to one file."""
        target = write_rule("rules/a.md", "A\n")
        os.symlink(target, project / "alias.md")

        resolution = resolver.resolve(
            [
                Source.local("rules/a.md"),
                Source.local(str(target)),
                Source.local("rules/../rules/a.md"),
                Source.local("alias.md"),
            ]
        )

        assert resolution.identities == [real(target)]

    def test_content_is_stripped(self, write_rule, resolver):
        """Test that directives are removed from processed content."""
        write_rule("rules/a.md", "# A\n", frontmatter="requires: [missing.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        processed = resolution.sources[0]
        assert processed.content == "# A\n"
        assert processed.original_content.startswith("---\nrequires")
        assert processed.directives.requires == ["missing.md"]


class TestCycles:
    """Test that requirement cycles terminate."""

    def test_self_requirement(self, write_rule, resolver):
        a = write_rule("rules/a.md", "A\n", frontmatter="requires: [a.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert resolution.identities == [real(a)]

    def test_longer_cycle(self, write_rule, resolver):
        """Test a three-file cycle; every member appears exactly once."""
        a = write_rule("rules/a.md", "A\n", frontmatter="requires: [b.md]")
        b = write_rule("rules/b.md", "B\n", frontmatter="requires: [c.md]")
        c = write_rule("rules/c.md", "C\n", frontmatter="requires: [a.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert sorted(resolution.identities) == sorted([real(a), real(b), real(c)])
        assert len(resolution.identities) == 3
        assert resolution.identities[-1] == real(a)


class TestSoftMisses:
    """Test best-effort handling of missing files."""

    def test_missing_requirement_is_silent(self, write_rule, resolver):
        a = write_rule("rules/a.md", "A\n", frontmatter="requires: [gone.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert resolution.identities == [real(a)]
        assert resolution.warnings == []

    def test_missing_top_level_file_warns(self, resolver):
        resolution = resolver.resolve([Source.local("rules/gone.md")])

        assert resolution.sources == []
        assert resolution.warnings == ["File not found: rules/gone.md"]

    def test_remote_without_fetcher_warns(self, resolver):
        url = "https://example.com/a.md"

        resolution = resolver.resolve([Source.remote(url)])

        assert resolution.sources == []
        assert resolution.warnings == [f"No remote fetcher configured, skipping: {url}"]


class TestSkills:
    """Test strict validation of skill references."""

    def test_valid_skill(self, write_rule, resolver):
        skill = write_rule("rules/skills/deploy.md", "# Deploy\n")
        a = write_rule("rules/a.md", "A\n", frontmatter="skills: [skills/deploy.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert resolution.identities == [real(skill), real(a)]
        assert [s.identity for s in resolution.skills] == [real(skill)]
        assert resolution.sources[0].classification is Classification.SKILL

    def test_missing_skill_names_reference_and_declaring_file(self, write_rule, resolver):
        write_rule("rules/a.md", "A\n", frontmatter="skills: [skills/gone.md]")

        with pytest.raises(SkillReferenceError) as exc_info:
            resolver.resolve([Source.local("rules/a.md")])

        message = str(exc_info.value)
        assert "skills/gone.md" in message
        assert "rules/a.md" in message

    def test_skill_outside_skills_directory(self, write_rule, resolver):
        """Test that the message names the resolved path and declaring file."""
        write_rule("rules/helpers/tool.md", "Tool\n")
        write_rule("rules/a.md", "A\n", frontmatter="skills: [helpers/tool.md]")

        with pytest.raises(SkillReferenceError) as exc_info:
            resolver.resolve([Source.local("rules/a.md")])

        message = str(exc_info.value)
        assert "rules/helpers/tool.md" in message
        assert "rules/a.md" in message
        assert exc_info.value.resolved == "rules/helpers/tool.md"

    def test_skill_requirements_are_not_resolved(self, write_rule, resolver):
        """Test that a skill's own requires stay out of the resolution."""
        write_rule("rules/skills/helper.md", "Helper\n")
        skill = write_rule(
            "rules/skills/deploy.md", "Deploy\n", frontmatter="requires: [helper.md]"
        )
        a = write_rule("rules/a.md", "A\n", frontmatter="skills: [skills/deploy.md]")

        resolution = resolver.resolve([Source.local("rules/a.md")])

        assert resolution.identities == [real(skill), real(a)]

    def test_unfetchable_remote_skill_raises(self, canonicalizer):
        """Test that a remote skill that cannot be fetched aborts."""
        declaring = "https://github.com/o/r/blob/main/rules/a.md"
        fetcher = FakeFetcher({declaring: "---\nskills: [../skills/s.md]\n---\nA\n"})
        resolver = DependencyResolver(canonicalizer, fetcher=fetcher)

        with pytest.raises(SkillReferenceError) as exc_info:
            resolver.resolve([Source.remote(declaring)])

        assert exc_info.value.declared_in == declaring


class TestRemote:
    """Test resolution of remote sources."""

    def test_remote_requires_are_joined(self, canonicalizer):
        a = "https://github.com/o/r/blob/main/rules/a.md"
        common = "https://github.com/o/r/blob/main/rules/common.md"
        fetcher = FakeFetcher(
            {a: "---\nrequires: [common.md]\n---\nA\n", common: "Common\n"}
        )

        resolution = DependencyResolver(canonicalizer, fetcher=fetcher).resolve(
            [Source.remote(a)]
        )

        assert resolution.identities == [common, a]
        assert [s.content for s in resolution.sources] == ["Common\n", "A\n"]

    def test_failed_fetch_warns_and_continues(self, write_rule, canonicalizer):
        local = write_rule("rules/a.md", "A\n")
        url = "https://example.com/gone.md"

        resolution = DependencyResolver(canonicalizer, fetcher=FakeFetcher()).resolve(
            [Source.remote(url), Source.local("rules/a.md")]
        )

        assert resolution.identities == [real(local)]
        assert resolution.warnings == [f"Failed to fetch: {url}"]

    def test_prefetched_documents_skip_single_fetches(self, canonicalizer):
        url = "https://github.com/o/r/blob/main/a.md"
        fetcher = FakeFetcher(batch={url: "Batched\n"})

        resolution = DependencyResolver(canonicalizer, fetcher=fetcher).resolve(
            [Source.remote(url)]
        )

        assert resolution.sources[0].content == "Batched\n"
        assert fetcher.prefetched == [[url]]
        assert fetcher.fetched == []

    def test_remote_bin_keeps_script(self, canonicalizer):
        url = "https://github.com/o/r/blob/main/bin/tool.sh"
        fetcher = FakeFetcher({url: "#!/bin/sh\necho hi\n"})

        resolution = DependencyResolver(canonicalizer, fetcher=fetcher).resolve(
            [Source.remote(url)]
        )

        assert resolution.bins[0].original_content == "#!/bin/sh\necho hi\n"


class TestBins:
    """Test local bin scripts."""

    def test_local_bin_is_not_read(self, write_rule, resolver):
        script = write_rule("rules/bin/tool.sh", "#!/bin/sh\n")

        resolution = resolver.resolve([Source.local(str(script))])

        assert resolution.bins[0].identity == real(script)
        assert resolution.bins[0].content == ""
