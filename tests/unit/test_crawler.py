"""Tests for the dependency crawler."""

import json
import os

import pytest

from pkgextract.assets import AssetHandler
from pkgextract.crawler import DependencyCrawler, apply_dependency_filters
from pkgextract.errors import PackageResolutionError
from pkgextract.models import Subspace
from pkgextract.state import ExtractorState
from pkgextract.symlinks import SymlinkAnalyzer


def build_state(options):
    analyzer = SymlinkAnalyzer(required_source_parent_path=options.source_root_folder)
    return ExtractorState(
        symlink_analyzer=analyzer,
        asset_handler=AssetHandler(options, analyzer),
        project_configurations_by_name={p.project_name: p for p in options.project_configurations},
        project_configurations_by_path={
            os.path.realpath(p.project_folder): p for p in options.project_configurations
        },
    )


@pytest.fixture
def crawler_options(monorepo, make_options):
    def _crawler_options(**kwargs):
        return make_options(
            pnpm_install_folder=None,
            subspaces=[Subspace("default", pnpm_install_folder=monorepo.install_folder)],
            **kwargs,
        )

    return _crawler_options


class TestDependencyCrawler:
    """Test dependency collection."""

    @pytest.mark.asyncio
    async def test_diamond_is_collected_once(self, monorepo, crawler_options):
        """A package reached through two paths should be collected once."""
        options = crawler_options()
        state = build_state(options)

        await DependencyCrawler(options, state).collect(monorepo.p1)

        assert state.folders_to_copy == {monorepo.p1, monorepo.p2, monorepo.lib_a}
        assert state.package_json_by_path[monorepo.lib_a]["name"] == "lib-a"

    @pytest.mark.asyncio
    async def test_records_links_into_the_virtual_store(self, monorepo, crawler_options):
        """Links followed while resolving should be recorded."""
        options = crawler_options()
        state = build_state(options)

        await DependencyCrawler(options, state).collect(monorepo.p1)

        link_paths = {link.link_path for link in state.symlink_analyzer.report_symlinks()}
        assert link_paths == {
            os.path.join(monorepo.p1, "node_modules", "p2"),
            os.path.join(monorepo.p1, "node_modules", "lib-a"),
            os.path.join(monorepo.p2, "node_modules", "lib-a"),
            os.path.join(monorepo.store, "node_modules", "lib-a"),
        }

    @pytest.mark.asyncio
    async def test_missing_peer_dependency_is_ignored(self, monorepo, crawler_options):
        """The sample's missing peer dependency should not fail the crawl."""
        options = crawler_options()
        state = build_state(options)

        await DependencyCrawler(options, state).collect(monorepo.p1)

        assert not any("missing-peer" in path for path in state.folders_to_copy)

    @pytest.mark.asyncio
    async def test_missing_required_dependency_raises(self, monorepo, crawler_options):
        """A missing regular dependency should abort the crawl."""
        with open(os.path.join(monorepo.p2, "package.json"), "w", encoding="utf-8") as f:
            json.dump({"name": "p2", "dependencies": {"not-installed": "1.0.0"}}, f)
        options = crawler_options()
        state = build_state(options)

        with pytest.raises(PackageResolutionError) as exc_info:
            await DependencyCrawler(options, state).collect(monorepo.p1)

        assert exc_info.value.package_name == "not-installed"

    @pytest.mark.asyncio
    async def test_missing_virtual_store_link_warns(self, monorepo, crawler_options):
        """A package not hoisted in the virtual store should only warn."""
        os.remove(os.path.join(monorepo.store, "node_modules", "lib-a"))
        warnings = []
        options = crawler_options(on_warning=warnings.append)
        state = build_state(options)

        await DependencyCrawler(options, state).collect(monorepo.p1)

        assert monorepo.lib_a in state.folders_to_copy
        assert len(warnings) == 1
        assert warnings[0].startswith("Ignoring missing PNPM virtual store link")

    @pytest.mark.asyncio
    async def test_dev_dependencies_only_when_requested(self, monorepo, crawler_options, package_writer):
        """devDependencies of local projects are followed only with the flag."""
        tool = package_writer(os.path.join(monorepo.root, "tools", "tool"), {"name": "tool"})
        with open(os.path.join(monorepo.p2, "package.json"), encoding="utf-8") as f:
            manifest = json.load(f)
        manifest["devDependencies"] = {"tool": "1.0.0"}
        with open(os.path.join(monorepo.p2, "package.json"), "w", encoding="utf-8") as f:
            json.dump(manifest, f)
        os.symlink(os.path.relpath(tool, os.path.join(monorepo.p2, "node_modules")),
                   os.path.join(monorepo.p2, "node_modules", "tool"))

        options = crawler_options()
        state = build_state(options)
        await DependencyCrawler(options, state).collect(monorepo.p1)
        assert tool not in state.folders_to_copy

        options = crawler_options(include_dev_dependencies=True)
        state = build_state(options)
        await DependencyCrawler(options, state).collect(monorepo.p1)
        assert tool in state.folders_to_copy

    @pytest.mark.asyncio
    async def test_transform_package_json(self, monorepo, make_options):
        """The transformed manifest should drive dependency processing."""

        def drop_lib_a(package_json):
            transformed = dict(package_json)
            transformed["dependencies"] = {
                name: version
                for name, version in (package_json.get("dependencies") or {}).items()
                if name != "lib-a"
            }
            return transformed

        options = make_options(
            pnpm_install_folder=None,
            subspaces=[Subspace("default", monorepo.root, transform_package_json=drop_lib_a)],
        )
        state = build_state(options)

        await DependencyCrawler(options, state).collect(monorepo.p1)

        assert state.folders_to_copy == {monorepo.p1, monorepo.p2}
        assert "lib-a" not in state.package_json_by_path[monorepo.p1]["dependencies"]


class TestDependencyFilters:
    """Test per-project dependency include/exclude settings."""

    def test_exclude_with_star_and_include_extra(self):
        names = {"@types/node", "@types/react", "lodash"}

        result = apply_dependency_filters(names, ["left-pad"], ["@types/*"])

        assert result == {"lodash", "left-pad"}
        assert result is names

    def test_no_settings_leaves_names_unchanged(self):
        assert apply_dependency_filters({"a", "b"}) == {"a", "b"}
